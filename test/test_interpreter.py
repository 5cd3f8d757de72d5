"""
Evaluation tests for toyexpr
Scoping, closures, mutation and error kinds
"""

import pytest
import interpreter as interpreter_module
from parsing import parse_program
from interpreter import (
    Environment, create_interpreter, eval_expr, evaluate, run_source
)
from error_handling import (
    EvalError, InterpreterError, UndefinedVariableError, ValueTypeError
)
from expressions import Add, Call, Function, Set, Val, Var


def run(code: str, env: Environment = None):
  return evaluate(parse_program(code), env)


class TestArithmetic:
  """Test val, add and if"""

  @pytest.mark.parametrize("a,b", [(0, 0), (1, 2), (-5, 3), (123456789, 987654321)])
  def test_add(self, a, b):
    assert run(f"(add (val {a}) (val {b}))") == Val(a + b)

  def test_val_evaluates_to_fresh_copy(self, env):
    literal = Val(3)
    result = eval_expr(literal, env)
    assert result == literal
    assert result is not literal

  def test_if_then_branch(self):
    assert run("(if (val 5) (val 3) then (val 1) else (val 2))") == Val(1)

  def test_if_else_branch(self):
    assert run("(if (val 1) (val 3) then (val 1) else (val 2))") == Val(2)

  def test_if_equal_takes_else_branch(self):
    assert run("(if (val 3) (val 3) then (val 1) else (val 2))") == Val(2)

  def test_if_only_evaluates_selected_branch(self):
    assert run("(if (val 2) (val 1) then (val 7) else (var missing))") == Val(7)


class TestLet:
  """Test let scoping"""

  def test_let(self):
    assert run("(let x = (val 10) in (add (var x) (val 5)))") == Val(15)

  def test_let_binding_not_visible_afterwards(self, env):
    run("(let x = (val 10) in (add (var x) (val 5)))", env)
    assert "x" not in env
    with pytest.raises(UndefinedVariableError):
      run("(var x)", env)

  def test_shadowing(self):
    assert run("(let x = (val 1) in (let x = (val 2) in (var x)))") == Val(2)

  def test_outer_binding_restored(self):
    code = "(let x = (val 1) in (add (let x = (val 2) in (var x)) (var x)))"
    assert run(code) == Val(3)

  def test_bound_expression_sees_outer_binding(self):
    assert run("(let x = (val 1) in (let x = (add (var x) (val 1)) in (var x)))") == Val(2)

  def test_let_restores_on_error(self, env):
    env.bindings["x"] = Val(99)
    with pytest.raises(UndefinedVariableError):
      run("(let x = (val 1) in (add (var x) (var nope)))", env)
    assert env.bindings == {"x": Val(99)}
    assert env.snapshots == {}


class TestFunctions:
  """Test function values and calls"""

  def test_function_evaluates_to_itself(self):
    assert run("(function a (var a))") == Function("a", Var("a"))

  def test_call_named_function(self):
    code = "(let f = (function a (add (var a) (val 1))) in (call (var f) (val 4)))"
    assert run(code) == Val(5)

  def test_call_anonymous_function(self):
    assert run("(call (function a (add (var a) (var a))) (val 4))") == Val(8)

  def test_argument_evaluated_in_caller_environment(self):
    code = """
    (let a = (val 10) in
      (let f = (function a (add (var a) (val 1))) in
        (call (var f) (add (var a) (val 5)))))
    """
    assert run(code) == Val(16)

  def test_parameter_shadows_and_is_restored(self):
    code = """
    (let a = (val 100) in
      (add (call (function a (var a)) (val 1)) (var a)))
    """
    assert run(code) == Val(101)

  def test_recursion_through_snapshot(self):
    code = """
    (let sum = (function n
                 (if (var n) (val 0)
                  then (add (var n) (call (var sum) (add (var n) (val -1))))
                  else (val 0)))
     in (call (var sum) (val 4)))
    """
    assert run(code) == Val(10)

  def test_function_passed_as_argument(self):
    code = """
    (let twice = (function g (call (var g) (call (var g) (val 1)))) in
      (call (var twice) (function x (add (var x) (var x)))))
    """
    # g has no snapshot, so its calls run with the live bindings
    assert run(code) == Val(4)

  def test_function_result_of_expression_can_be_called(self):
    code = "(call (let f = (function x (add (var x) (val 1))) in (var f)) (val 2))"
    assert run(code) == Val(3)

  def test_named_function_returned_value(self):
    code = "(let id = (function x (var x)) in (call (var id) (function y (var y))))"
    assert run(code) == Function("y", Var("y"))


class TestClosures:
  """Test that named functions resolve free variables at definition time"""

  def test_later_binding_not_visible(self):
    code = """
    (let f = (function a (add (var a) (var y))) in
      (let y = (val 1) in (call (var f) (val 2))))
    """
    with pytest.raises(UndefinedVariableError) as exc_info:
      run(code)
    assert exc_info.value.name == "y"

  def test_definition_time_value_is_used(self):
    code = """
    (let y = (val 1) in
      (let f = (function a (add (var a) (var y))) in
        (let y = (val 100) in (call (var f) (val 2)))))
    """
    assert run(code) == Val(3)

  def test_recapture_sees_new_binding(self):
    code = """
    (let f = (function a (add (var a) (var y))) in
      (let y = (val 1) in
        (let f = (function a (add (var a) (var y))) in (call (var f) (val 2)))))
    """
    assert run(code) == Val(3)

  def test_snapshot_restored_after_inner_let(self, env):
    code = """
    (let y = (val 1) in
      (let f = (function a (var y)) in
        (add (let f = (function a (val 50)) in (call (var f) (val 0)))
             (call (var f) (val 0)))))
    """
    assert run(code, env) == Val(51)
    assert env.snapshots == {}

  def test_anonymous_call_uses_live_environment(self):
    code = "(let y = (val 5) in (call (function a (add (var a) (var y))) (val 1)))"
    assert run(code) == Val(6)


class TestSet:
  """Test permanent rebinding"""

  def test_set_returns_itself(self):
    assert run("(set x (val 1))") == Set("x", Val(1))

  def test_set_binding_visible_in_block(self):
    assert run("(block (set x (val 5)) (add (var x) (val 1)))") == Val(6)

  def test_set_stores_unevaluated_expression(self, env):
    run("(set x (add (val 1) (val 2)))", env)
    assert env.bindings["x"] == Add(Val(1), Val(2))
    assert run("(var x)", env) == Add(Val(1), Val(2))

  def test_set_survives_enclosing_let(self):
    code = "(block (let y = (val 0) in (set z (val 3))) (var z))"
    assert run(code) == Val(3)

  def test_set_on_let_name_is_undone_when_let_exits(self, env):
    run("(let x = (val 1) in (set x (val 2)))", env)
    assert "x" not in env

  def test_set_inside_let_body_overrides_binding(self):
    assert run("(let x = (val 1) in (block (set x (val 7)) (var x)))") == Val(7)

  def test_set_inside_named_call_is_merged(self, env):
    code = """
    (let f = (function a (set counter (val 9))) in
      (block (call (var f) (val 0)) (var counter)))
    """
    assert run(code, env) == Val(9)
    assert env.bindings == {"counter": Val(9)}

  def test_set_inside_anonymous_call_persists(self, env):
    run("(call (function a (set seen (val 1))) (val 0))", env)
    assert env.bindings == {"seen": Val(1)}

  def test_failed_named_call_is_not_merged(self, env):
    code = """
    (let f = (function a (block (set counter (val 9)) (var nope))) in
      (call (var f) (val 0)))
    """
    with pytest.raises(UndefinedVariableError):
      run(code, env)
    assert env.bindings == {}

  def test_set_function_can_be_called(self):
    code = "(block (set g (function x (add (var x) (val 1)))) (call (var g) (val 1)))"
    assert run(code) == Val(2)


class TestBlock:
  """Test sequencing"""

  def test_block_returns_last_value(self):
    assert run("(block (val 1) (val 2) (val 3))") == Val(3)

  def test_block_runs_in_order(self):
    code = "(block (set x (val 1)) (set x (val 2)) (var x))"
    assert run(code) == Val(2)

  def test_empty_block_is_an_error(self):
    with pytest.raises(EvalError):
      run("(block)")


class TestErrors:
  """Test error kinds"""

  def test_undefined_variable(self):
    with pytest.raises(UndefinedVariableError):
      run("(var x)")

  def test_call_undefined_function(self):
    with pytest.raises(UndefinedVariableError):
      run("(call (var f) (val 1))")

  def test_call_non_function_name(self):
    with pytest.raises(ValueTypeError):
      run("(let f = (val 1) in (call (var f) (val 2)))")

  def test_call_non_function_value(self):
    with pytest.raises(ValueTypeError):
      run("(call (val 1) (val 2))")

  def test_add_function(self):
    with pytest.raises(ValueTypeError):
      run("(add (function a (var a)) (val 1))")

  def test_if_on_function(self):
    with pytest.raises(ValueTypeError):
      run("(if (function a (var a)) (val 1) then (val 1) else (val 2))")

  def test_error_hierarchy(self):
    assert issubclass(ValueTypeError, EvalError)
    assert issubclass(UndefinedVariableError, EvalError)
    assert issubclass(EvalError, InterpreterError)

  def test_call_restores_environment_on_error(self, env):
    env.bindings["a"] = Val(1)
    with pytest.raises(UndefinedVariableError):
      run("(call (function a (var nope)) (val 2))", env)
    assert env.bindings == {"a": Val(1)}

  def test_runaway_recursion_is_an_eval_error(self, env):
    code = "(let f = (function n (call (var f) (var n))) in (call (var f) (val 1)))"
    with pytest.raises(EvalError):
      run(code, env)
    assert env.bindings == {}
    assert env.snapshots == {}


class TestSession:
  """Test the interpreter facade"""

  def test_run_source(self):
    assert run_source("(add (val 2) (val 5))") == "(val 7)"

  def test_session_keeps_set_bindings(self):
    interpreter = create_interpreter()
    interpreter.interpret_source("(set x (val 4))")
    assert interpreter.interpret_source("(add (var x) (val 1))") == "(val 5)"

  def test_reset(self):
    interpreter = create_interpreter()
    interpreter.interpret(Set("x", Val(1)))
    interpreter.reset()
    with pytest.raises(UndefinedVariableError):
      interpreter.interpret(Var("x"))

  def test_interpret_tree(self):
    interpreter = create_interpreter()
    assert interpreter.interpret(Call(Function("a", Var("a")), Val(3))) == Val(3)


class TestTracing:
  """Test the evaluation trace"""

  def test_trace_goes_to_stderr(self, capsys):
    code = "(let f = (function a (set x (val 7))) in (call (var f) (val 1)))"
    evaluate(parse_program(code), debug=True)
    captured = capsys.readouterr()
    assert captured.out == ""
    assert "bind f = (function a (set x (val 7)))" in captured.err
    assert "snapshot f: ['f']" in captured.err
    assert "merge x = (val 7)" in captured.err

  def test_bindings_are_not_rendered_without_debug(self, monkeypatch, capsys):
    def fail(*args, **kwargs):
      raise AssertionError("describe_expr called with tracing off")

    monkeypatch.setattr(interpreter_module, "describe_expr", fail)
    code = """
    (let f = (function a (set x (val 7))) in
      (let a = (val 1) in (block (call (var f) (var a)) (var x))))
    """
    assert run(code) == Val(7)
    assert capsys.readouterr().err == ""
