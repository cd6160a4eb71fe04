"""Expression tree nodes and their vectorized interpreter."""

from __future__ import annotations

import functools
from dataclasses import dataclass
from typing import Callable, Union

import numpy as np


@dataclass(frozen=True)
class Num:
    value: float


@dataclass(frozen=True)
class Var:
    name: str  # "x" or "y"


@dataclass(frozen=True)
class UnaryOp:
    op: str  # "-" or "+"
    operand: Node


@dataclass(frozen=True)
class BinaryOp:
    op: str  # "+", "-", "*", "/", "^"
    left: Node
    right: Node


@dataclass(frozen=True)
class Call:
    function: str
    args: tuple[Node, ...]


Node = Union[Num, Var, UnaryOp, BinaryOp, Call]


def _round_half_up(v: np.ndarray) -> np.ndarray:
    return np.floor(v + 0.5)


def _reduce(ufunc: np.ufunc) -> Callable[..., np.ndarray]:
    def apply(*args: np.ndarray) -> np.ndarray:
        return functools.reduce(ufunc, args)

    return apply


@dataclass(frozen=True)
class FunctionSpec:
    min_args: int
    max_args: int | None  # None = variadic
    impl: Callable[..., np.ndarray]


FUNCTIONS: dict[str, FunctionSpec] = {
    "sin": FunctionSpec(1, 1, np.sin),
    "cos": FunctionSpec(1, 1, np.cos),
    "tan": FunctionSpec(1, 1, np.tan),
    "asin": FunctionSpec(1, 1, np.arcsin),
    "acos": FunctionSpec(1, 1, np.arccos),
    "atan": FunctionSpec(1, 1, np.arctan),
    "sinh": FunctionSpec(1, 1, np.sinh),
    "cosh": FunctionSpec(1, 1, np.cosh),
    "tanh": FunctionSpec(1, 1, np.tanh),
    "exp": FunctionSpec(1, 1, np.exp),
    "log": FunctionSpec(1, 1, np.log),
    "abs": FunctionSpec(1, 1, np.abs),
    "sqrt": FunctionSpec(1, 1, np.sqrt),
    "floor": FunctionSpec(1, 1, np.floor),
    "ceil": FunctionSpec(1, 1, np.ceil),
    "round": FunctionSpec(1, 1, _round_half_up),
    "max": FunctionSpec(1, None, _reduce(np.maximum)),
    "min": FunctionSpec(1, None, _reduce(np.minimum)),
}

CONSTANTS: dict[str, float] = {
    "pi": float(np.pi),
    "e": float(np.e),
}

_BINARY_OPS: dict[str, Callable[[np.ndarray, np.ndarray], np.ndarray]] = {
    "+": np.add,
    "-": np.subtract,
    "*": np.multiply,
    "/": np.divide,
    "^": np.power,
}

_PRECEDENCE: dict[str, int] = {"+": 1, "-": 1, "*": 2, "/": 2, "^": 4}


def evaluate(node: Node, x: np.ndarray | float, y: np.ndarray | float) -> np.ndarray:
    """Evaluate *node* at ``(x, y)``; arrays broadcast element-wise.

    Floating-point errors never raise: division by zero, overflow and domain
    errors produce ``inf`` or ``nan`` in the result.
    """
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    with np.errstate(all="ignore"):
        return np.asarray(_evaluate(node, x, y), dtype=np.float64)


def _evaluate(node: Node, x: np.ndarray, y: np.ndarray) -> np.ndarray:
    if isinstance(node, Num):
        return np.float64(node.value)
    if isinstance(node, Var):
        return x if node.name == "x" else y
    if isinstance(node, UnaryOp):
        operand = _evaluate(node.operand, x, y)
        return np.negative(operand) if node.op == "-" else operand
    if isinstance(node, BinaryOp):
        left = _evaluate(node.left, x, y)
        right = _evaluate(node.right, x, y)
        return _BINARY_OPS[node.op](left, right)
    if isinstance(node, Call):
        args = [_evaluate(arg, x, y) for arg in node.args]
        return FUNCTIONS[node.function].impl(*args)
    raise TypeError(f"Unknown expression node: {node!r}")


def variables(node: Node) -> frozenset[str]:
    """Return the set of variable names referenced by *node*."""
    if isinstance(node, Var):
        return frozenset({node.name})
    if isinstance(node, UnaryOp):
        return variables(node.operand)
    if isinstance(node, BinaryOp):
        return variables(node.left) | variables(node.right)
    if isinstance(node, Call):
        found: frozenset[str] = frozenset()
        for arg in node.args:
            found |= variables(arg)
        return found
    return frozenset()


def to_text(node: Node) -> str:
    """Render *node* as fully explicit infix text with minimal parentheses."""
    if isinstance(node, Num):
        for name, value in CONSTANTS.items():
            if node.value == value:
                return name
        value = float(node.value)
        if value.is_integer() and abs(value) < 1e16:
            return str(int(value))
        return repr(value)
    if isinstance(node, Var):
        return node.name
    if isinstance(node, Call):
        return f"{node.function}({', '.join(to_text(arg) for arg in node.args)})"
    if isinstance(node, UnaryOp):
        inner = to_text(node.operand)
        if isinstance(node.operand, BinaryOp) and _PRECEDENCE[node.operand.op] < 4:
            inner = f"({inner})"
        return f"{node.op}{inner}"
    if isinstance(node, BinaryOp):
        prec = _PRECEDENCE[node.op]
        left = to_text(node.left)
        right = to_text(node.right)
        if _needs_parens(node.left, prec, right_side=node.op == "^"):
            left = f"({left})"
        if _needs_parens(node.right, prec, right_side=node.op != "^"):
            right = f"({right})"
        return f"{left} {node.op} {right}" if node.op != "^" else f"{left}^{right}"
    raise TypeError(f"Unknown expression node: {node!r}")


def _needs_parens(child: Node, parent_prec: int, *, right_side: bool) -> bool:
    if isinstance(child, UnaryOp):
        return parent_prec >= 4
    if not isinstance(child, BinaryOp):
        return False
    child_prec = _PRECEDENCE[child.op]
    if child_prec < parent_prec:
        return True
    return child_prec == parent_prec and right_side
