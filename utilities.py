"""
Utilities module for the toyexpr interpreter
Contains helpers shared by the evaluator and the command line driver
"""

from typing import Any, Callable, Dict, List
import operator

from error_handling import ValueTypeError
from expressions import Expression, Function, Val, to_source


# ==================== DESCRIPTION UTILITIES ====================

def describe_expr(expr: Expression, limit: int = 60) -> str:
  """
  Short rendering of an expression for messages

  Args:
    expr: Expression to describe
    limit: Maximum length before the text is cut with '...'

  Returns:
    Rendered source text, possibly shortened

  Examples:
    describe_expr(Val(3)) -> "(val 3)"
  """
  text = to_source(expr).replace('\n', ' ')
  if len(text) > limit:
    text = text[:limit - 3] + "..."
  return text


def format_bindings(bindings: Dict[str, Expression], limit: int = 10) -> List[str]:
  """
  Format environment bindings as display lines

  Args:
    bindings: Mapping of identifier to bound expression
    limit: Maximum number of bindings shown

  Returns:
    One "name = expr" line per binding, plus a summary line when truncated
  """
  lines = [f"  {name} = {describe_expr(value)}"
           for name, value in list(bindings.items())[:limit]]
  if len(bindings) > limit:
    lines.append(f"  ... and {len(bindings) - limit} more bindings")
  return lines


# ==================== ERROR MESSAGE BUILDERS ====================

def type_mismatch_error(
  construct: str,
  expected: str,
  actual: Expression
) -> ValueTypeError:
  """
  Generate type mismatch error

  Args:
    construct: Keyword of the expression that needed the value
    expected: Expected node kind
    actual: Expression that was found instead

  Returns:
    ValueTypeError with formatted message
  """
  return ValueTypeError(
    f"{construct} requires {expected}, got {describe_expr(actual)}"
  )


# ==================== VALUE EXTRACTION UTILITIES ====================

def get_value(expr: Expression, construct: str = "expression") -> int:
  """
  Extract the integer carried by a Val

  Raises:
    ValueTypeError if expr is not a Val
  """
  if not isinstance(expr, Val):
    raise type_mismatch_error(construct, "an integer value", expr)
  return expr.value


def expect_function(expr: Expression, construct: str = "call") -> Function:
  """
  Check that a resolved expression is a Function

  Raises:
    ValueTypeError if expr is not a Function
  """
  if not isinstance(expr, Function):
    raise type_mismatch_error(construct, "a function", expr)
  return expr


# ==================== BINARY OPERATION FACTORIES ====================

def binary_integer_op(
  op: Callable[[int, int], Any],
  op_name: str
) -> Callable[[Expression, Expression], Any]:
  """
  Factory for operations over two evaluated integer operands

  Args:
    op: Python operator function (e.g., operator.add)
    op_name: Keyword used in error messages

  Returns:
    Function applying op to the operands' integer values

  Examples:
    integer_add = binary_integer_op(operator.add, "add")
    integer_add(Val(1), Val(2)) -> 3
  """
  def apply(x: Expression, y: Expression) -> Any:
    return op(get_value(x, op_name), get_value(y, op_name))

  return apply


integer_add = binary_integer_op(operator.add, "add")
integer_gt = binary_integer_op(operator.gt, "if")
