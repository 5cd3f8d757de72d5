"""
toyexpr Interpreter
Tree-walking evaluator over an explicit, mutable environment.
Closures are approximated with environment snapshots taken when `let`
binds a function literal; `set` mutates whichever environment is active.
"""

from typing import Dict, Optional
from contextlib import contextmanager
import sys

from error_handling import EvalError, UndefinedVariableError
from expressions import (
    Add, Block, Call, Expression, Function, If, Let, Set, Val, Var, to_source
)
from parsing import parse_program
from utilities import describe_expr, expect_function, integer_add, integer_gt


_MISSING = object()


# ============================================================================
# ENVIRONMENT
# ============================================================================

class Environment:
  """Live bindings plus the closure snapshots keyed by function name"""

  def __init__(self, bindings: Optional[Dict[str, Expression]] = None,
               snapshots: Optional[Dict[str, Dict[str, Expression]]] = None):
    self.bindings = {} if bindings is None else bindings
    self.snapshots = {} if snapshots is None else snapshots

  def lookup(self, name: str) -> Expression:
    try:
      return self.bindings[name]
    except KeyError:
      raise UndefinedVariableError(name) from None

  def callee(self, bindings: Dict[str, Expression]) -> 'Environment':
    """Environment for a call body; the snapshot map stays shared"""
    return Environment(bindings, self.snapshots)

  def __contains__(self, name: str) -> bool:
    return name in self.bindings

  def __repr__(self) -> str:
    return f"Environment(bindings={sorted(self.bindings)}, snapshots={sorted(self.snapshots)})"


@contextmanager
def scoped_binding(env: Environment, name: str, value: Expression, debug: bool = False):
  """Bind name for the duration of the block, then restore what was there before.

  The name is removed on exit even if the block rebound it with `set`.
  """
  previous = env.bindings.pop(name, _MISSING)
  env.bindings[name] = value
  if debug:
    print(f"  bind {name} = {describe_expr(value)}", file=sys.stderr)
  try:
    yield
  finally:
    env.bindings.pop(name, None)
    if previous is not _MISSING:
      env.bindings[name] = previous
      if debug:
        print(f"  restore {name} = {describe_expr(previous)}", file=sys.stderr)
    elif debug:
      print(f"  unbind {name}", file=sys.stderr)


@contextmanager
def scoped_snapshot(env: Environment, name: str, debug: bool = False):
  """Capture the current bindings as the closure environment of name"""
  previous = env.snapshots.pop(name, _MISSING)
  env.snapshots[name] = dict(env.bindings)
  if debug:
    print(f"  snapshot {name}: {sorted(env.snapshots[name])}", file=sys.stderr)
  try:
    yield
  finally:
    env.snapshots.pop(name, None)
    if previous is not _MISSING:
      env.snapshots[name] = previous


# ============================================================================
# EVALUATION FUNCTIONS
# ============================================================================

def eval_expr(expr: Expression, env: Environment, debug: bool = False) -> Expression:
  """
  Evaluate an expression against env and return the resulting expression.
  env is mutated by let/call/set and restored by let/call on exit.
  """
  if debug:
    print(f"Evaluating: {type(expr).__name__}", file=sys.stderr)

  if isinstance(expr, Val):
    return eval_val(expr, env, debug)
  elif isinstance(expr, Var):
    return eval_var(expr, env, debug)
  elif isinstance(expr, Add):
    return eval_add(expr, env, debug)
  elif isinstance(expr, If):
    return eval_if(expr, env, debug)
  elif isinstance(expr, Let):
    return eval_let(expr, env, debug)
  elif isinstance(expr, Function):
    return eval_function(expr, env, debug)
  elif isinstance(expr, Call):
    return eval_call(expr, env, debug)
  elif isinstance(expr, Set):
    return eval_set(expr, env, debug)
  elif isinstance(expr, Block):
    return eval_block(expr, env, debug)
  else:
    raise EvalError(f"Cannot evaluate {expr!r}")


def eval_val(expr: Val, env: Environment, debug: bool = False) -> Expression:
  """Evaluate integer literal"""
  return Val(expr.value)


def eval_var(expr: Var, env: Environment, debug: bool = False) -> Expression:
  """Evaluate variable by looking it up in the active environment"""
  return env.lookup(expr.name)


def eval_add(expr: Add, env: Environment, debug: bool = False) -> Expression:
  left = eval_expr(expr.left, env, debug)
  right = eval_expr(expr.right, env, debug)
  return Val(integer_add(left, right))


def eval_if(expr: If, env: Environment, debug: bool = False) -> Expression:
  left = eval_expr(expr.left, env, debug)
  right = eval_expr(expr.right, env, debug)

  if integer_gt(left, right):
    return eval_expr(expr.then, env, debug)
  return eval_expr(expr.otherwise, env, debug)


def eval_let(expr: Let, env: Environment, debug: bool = False) -> Expression:
  """Evaluate body with name bound; a function literal also gets a closure snapshot"""
  bound = eval_expr(expr.bound, env, debug)

  with scoped_binding(env, expr.name, bound, debug):
    if isinstance(expr.bound, Function):
      with scoped_snapshot(env, expr.name, debug):
        return eval_expr(expr.body, env, debug)
    return eval_expr(expr.body, env, debug)


def eval_function(expr: Function, env: Environment, debug: bool = False) -> Expression:
  """Functions are values; evaluating one yields a copy"""
  return Function(expr.param, expr.body)


def apply_function(func: Function, arg: Expression, callee: Environment, debug: bool = False) -> Expression:
  """Evaluate func's body in callee with the parameter bound to arg"""
  with scoped_binding(callee, func.param, arg, debug):
    return eval_expr(func.body, callee, debug)


def eval_call(expr: Call, env: Environment, debug: bool = False) -> Expression:
  """Evaluate function application

  A call through a name runs the body in a copy of the closure snapshot
  captured when the name was let-bound, then merges the bindings the call
  changed back into env. Any other function runs directly in env.
  """
  func_expr = expr.func

  if isinstance(func_expr, Var):
    func = expect_function(env.lookup(func_expr.name))
    arg = eval_expr(expr.arg, env, debug)

    snapshot = env.snapshots.get(func_expr.name)
    if snapshot is None:
      if debug:
        print(f"  no snapshot for {func_expr.name}, calling with live bindings", file=sys.stderr)
      snapshot = env.bindings
    callee = env.callee(dict(snapshot))
    before = dict(callee.bindings)

    result = apply_function(func, arg, callee, debug)

    for name, value in callee.bindings.items():
      if before.get(name, _MISSING) is not value:
        if debug:
          print(f"  merge {name} = {describe_expr(value)}", file=sys.stderr)
        env.bindings[name] = value
    return result

  if isinstance(func_expr, Function):
    func = eval_function(func_expr, env, debug)
  else:
    func = expect_function(eval_expr(func_expr, env, debug))

  arg = eval_expr(expr.arg, env, debug)
  return apply_function(func, arg, env, debug)


def eval_set(expr: Set, env: Environment, debug: bool = False) -> Expression:
  """Rebind name to the unevaluated expression; never restored"""
  env.bindings.pop(expr.name, None)
  env.bindings[expr.name] = expr.expr
  if debug:
    print(f"  set {expr.name} = {describe_expr(expr.expr)}", file=sys.stderr)
  return expr


def eval_block(expr: Block, env: Environment, debug: bool = False) -> Expression:
  if not expr.exprs:
    raise EvalError("Empty block has no value")

  result = None
  for sub_expr in expr.exprs:
    result = eval_expr(sub_expr, env, debug)
  return result


# ============================================================================
# PROGRAM EVALUATION
# ============================================================================

def evaluate(expr: Expression, env: Optional[Environment] = None, debug: bool = False) -> Expression:
  """Evaluate a whole program tree, in a fresh environment unless one is given"""
  if env is None:
    env = Environment()

  try:
    return eval_expr(expr, env, debug)
  except RecursionError:
    raise EvalError("Maximum evaluation depth exceeded") from None


def run_source(text: str, env: Optional[Environment] = None, debug: bool = False,
               filename: str = "<input>") -> str:
  """Parse, evaluate and render a program"""
  expr = parse_program(text, filename, debug)
  return to_source(evaluate(expr, env, debug))


# ============================================================================
# FACTORY FUNCTIONS
# ============================================================================

class ExprInterpreter:
  """Interpreter session keeping one environment across programs"""

  def __init__(self, debug: bool = False):
    self.debug = debug
    self.env = Environment()

  def interpret(self, expr: Expression) -> Expression:
    return evaluate(expr, self.env, self.debug)

  def interpret_source(self, text: str, filename: str = "<input>") -> str:
    return run_source(text, self.env, self.debug, filename)

  def reset(self) -> None:
    self.env = Environment()

  @property
  def bindings(self) -> Dict[str, Expression]:
    return self.env.bindings


def create_interpreter(debug: bool = False) -> ExprInterpreter:
  """Create a toyexpr interpreter"""
  return ExprInterpreter(debug=debug)


def create_debug_interpreter() -> ExprInterpreter:
  """Create a toyexpr interpreter with debug enabled"""
  return ExprInterpreter(debug=True)
