"""
toyexpr expression tree
Closed set of immutable node types shared by the parser and the interpreter
"""

from typing import Tuple, Union
from dataclasses import dataclass


# ============================================================================
# NODE TYPES (Frozen Dataclasses)
# ============================================================================

@dataclass(frozen=True)
class Val:
    """Integer literal"""
    value: int


@dataclass(frozen=True)
class Var:
    """Reference to a binding, resolved at evaluation time"""
    name: str


@dataclass(frozen=True)
class Add:
    left: 'Expression'
    right: 'Expression'


@dataclass(frozen=True)
class If:
    """Selects `then` when left > right, `otherwise` in every other case"""
    left: 'Expression'
    right: 'Expression'
    then: 'Expression'
    otherwise: 'Expression'


@dataclass(frozen=True)
class Let:
    name: str
    bound: 'Expression'
    body: 'Expression'


@dataclass(frozen=True)
class Function:
    """Single-parameter function value"""
    param: str
    body: 'Expression'


@dataclass(frozen=True)
class Call:
    func: 'Expression'
    arg: 'Expression'


@dataclass(frozen=True)
class Set:
    """Permanent rebinding of `name` to the unevaluated `expr`"""
    name: str
    expr: 'Expression'


@dataclass(frozen=True)
class Block:
    exprs: Tuple['Expression', ...] = ()


Expression = Union[Val, Var, Add, If, Let, Function, Call, Set, Block]


# ============================================================================
# RENDERING
# ============================================================================

def to_source(expr: Expression) -> str:
    """Render an expression in the prefix notation accepted by the parser"""
    if isinstance(expr, Val):
        return f"(val {expr.value})"
    elif isinstance(expr, Var):
        return f"(var {expr.name})"
    elif isinstance(expr, Add):
        return f"(add {to_source(expr.left)} {to_source(expr.right)})"
    elif isinstance(expr, If):
        return (f"(if {to_source(expr.left)} {to_source(expr.right)} "
                f"then {to_source(expr.then)} else {to_source(expr.otherwise)})")
    elif isinstance(expr, Let):
        return f"(let {expr.name} = {to_source(expr.bound)} in {to_source(expr.body)})"
    elif isinstance(expr, Function):
        return f"(function {expr.param} {to_source(expr.body)})"
    elif isinstance(expr, Call):
        return f"(call {to_source(expr.func)} {to_source(expr.arg)})"
    elif isinstance(expr, Set):
        return f"(set {expr.name} {to_source(expr.expr)})"
    elif isinstance(expr, Block):
        if not expr.exprs:
            return "(block)"
        return "(block " + " ".join(to_source(e) for e in expr.exprs) + ")"
    raise ValueError(f"Not an expression: {expr!r}")


def pretty_print_expr(expr: Expression, indent: int = 0) -> str:
    """Pretty print an expression tree for debugging"""
    pad = "  " * indent

    if isinstance(expr, Val):
        return f"{pad}Val({expr.value})\n"
    if isinstance(expr, Var):
        return f"{pad}Var({expr.name!r})\n"

    if isinstance(expr, Let):
        result = f"{pad}Let({expr.name!r})\n"
        children = [expr.bound, expr.body]
    elif isinstance(expr, Function):
        result = f"{pad}Function({expr.param!r})\n"
        children = [expr.body]
    elif isinstance(expr, Set):
        result = f"{pad}Set({expr.name!r})\n"
        children = [expr.expr]
    elif isinstance(expr, Add):
        result = f"{pad}Add\n"
        children = [expr.left, expr.right]
    elif isinstance(expr, If):
        result = f"{pad}If\n"
        children = [expr.left, expr.right, expr.then, expr.otherwise]
    elif isinstance(expr, Call):
        result = f"{pad}Call\n"
        children = [expr.func, expr.arg]
    elif isinstance(expr, Block):
        result = f"{pad}Block\n"
        children = list(expr.exprs)
    else:
        raise ValueError(f"Not an expression: {expr!r}")

    for child in children:
        result += pretty_print_expr(child, indent + 1)

    return result
