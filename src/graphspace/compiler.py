"""Tokenizer, recursive-descent parser and probe validation for expressions."""

from __future__ import annotations

import logging
import math
import re
from typing import Sequence

import numpy as np

from graphspace.errors import ExpressionSyntaxError, NoValidSampleError
from graphspace.expr_tree import (
    CONSTANTS,
    FUNCTIONS,
    BinaryOp,
    Call,
    Node,
    Num,
    UnaryOp,
    Var,
    evaluate,
)
from graphspace.models import PROBE_POINTS
from graphspace.normalize import prepare_expression

logger = logging.getLogger(__name__)

INVALID_EXPRESSION = "Invalid mathematical expression"
NO_VALID_VALUES = "Expression produces no valid values"

_TOKEN_RE = re.compile(
    r"""
    (\d+\.?\d*(?:[eE][+-]?\d+)?|\.\d+(?:[eE][+-]?\d+)?)  # NUMBER
    |(math\.[A-Za-z_][A-Za-z0-9_]*)   # QUALIFIED (function or constant)
    |([A-Za-z_][A-Za-z0-9_]*)         # IDENT (variable)
    |(\*\*|\^)                        # CARET
    |(\+)                             # PLUS
    |(-)                              # MINUS
    |(\*)                             # STAR
    |(/)                              # SLASH
    |(\()                             # LPAREN
    |(\))                             # RPAREN
    |(,)                              # COMMA
    |(\s+)                            # WHITESPACE (skip)
    """,
    re.VERBOSE,
)

_SIMPLE_KINDS = {
    4: "CARET",
    5: "PLUS",
    6: "MINUS",
    7: "STAR",
    8: "SLASH",
    9: "LPAREN",
    10: "RPAREN",
    11: "COMMA",
}

_TOKEN_TEXT = {
    "CARET": "^",
    "PLUS": "+",
    "MINUS": "-",
    "STAR": "*",
    "SLASH": "/",
    "LPAREN": "(",
    "RPAREN": ")",
    "COMMA": ",",
    "EOF": "end of expression",
}

VARIABLES: frozenset[str] = frozenset({"x", "y"})


def _syntax_error(detail: str) -> ExpressionSyntaxError:
    return ExpressionSyntaxError(f"{INVALID_EXPRESSION}: {detail}")


class _Token:
    __slots__ = ("kind", "value", "pos")

    def __init__(self, kind: str, value: object = None, pos: int = 0):
        self.kind = kind
        self.value = value
        self.pos = pos

    def describe(self) -> str:
        if self.kind == "NUMBER":
            return f"number {self.value!r}"
        if self.kind in ("VAR", "FUNC"):
            return repr(self.value)
        return repr(_TOKEN_TEXT[self.kind]) if self.kind != "EOF" else _TOKEN_TEXT["EOF"]


def tokenize(text: str) -> list[_Token]:
    """Tokenize rewritten expression text.

    Only numbers, ``x``/``y``, ``math.<name>`` references for the fixed
    function and constant set, operators, parentheses and commas are
    accepted.
    """
    tokens: list[_Token] = []
    pos = 0
    while pos < len(text):
        m = _TOKEN_RE.match(text, pos)
        if m is None:
            raise _syntax_error(f"unexpected character {text[pos]!r} at position {pos}")
        start, pos = pos, m.end()
        if m.group(1) is not None:
            tokens.append(_Token("NUMBER", float(m.group(1)), start))
        elif m.group(2) is not None:
            name = m.group(2)[len("math.") :]
            if name in CONSTANTS:
                tokens.append(_Token("NUMBER", CONSTANTS[name], start))
            elif name in FUNCTIONS:
                tokens.append(_Token("FUNC", name, start))
            else:
                raise _syntax_error(f"unknown function {name!r}")
        elif m.group(3) is not None:
            name = m.group(3)
            if name not in VARIABLES:
                raise _syntax_error(f"unknown identifier {name!r}")
            tokens.append(_Token("VAR", name, start))
        elif m.group(12) is None:
            kind = next(_SIMPLE_KINDS[g] for g in _SIMPLE_KINDS if m.group(g) is not None)
            tokens.append(_Token(kind, pos=start))
    tokens.append(_Token("EOF", pos=len(text)))
    return tokens


class _Parser:
    """Recursive descent parser producing an expression tree.

    Grammar::

        expression := additive EOF
        additive   := multiplicative (("+" | "-") multiplicative)*
        multiplicative := unary (("*" | "/") unary)*
        unary      := ("-" | "+") unary | power
        power      := atom ("^" unary)?
        atom       := NUMBER | VAR | FUNC "(" args ")" | "(" additive ")"
    """

    def __init__(self, tokens: list[_Token]):
        self.tokens = tokens
        self.pos = 0

    def _peek(self) -> _Token:
        return self.tokens[self.pos]

    def _advance(self) -> _Token:
        tok = self.tokens[self.pos]
        self.pos += 1
        return tok

    def _expect(self, kind: str) -> _Token:
        tok = self._advance()
        if tok.kind != kind:
            if kind == "RPAREN":
                raise _syntax_error(f"missing ')' before {tok.describe()}")
            raise _syntax_error(f"expected {_TOKEN_TEXT[kind]!r}, got {tok.describe()}")
        return tok

    def parse(self) -> Node:
        node = self._additive()
        tok = self._peek()
        if tok.kind != "EOF":
            raise _syntax_error(f"unexpected {tok.describe()} at position {tok.pos}")
        return node

    def _additive(self) -> Node:
        left = self._multiplicative()
        while self._peek().kind in ("PLUS", "MINUS"):
            op = self._advance()
            right = self._multiplicative()
            left = BinaryOp("+" if op.kind == "PLUS" else "-", left, right)
        return left

    def _multiplicative(self) -> Node:
        left = self._unary()
        while self._peek().kind in ("STAR", "SLASH"):
            op = self._advance()
            right = self._unary()
            left = BinaryOp("*" if op.kind == "STAR" else "/", left, right)
        return left

    def _unary(self) -> Node:
        if self._peek().kind == "MINUS":
            self._advance()
            return UnaryOp("-", self._unary())
        if self._peek().kind == "PLUS":
            self._advance()
            return UnaryOp("+", self._unary())
        return self._power()

    def _power(self) -> Node:
        base = self._atom()
        if self._peek().kind == "CARET":
            self._advance()
            # Right-associative; the exponent may carry its own sign (2^-x)
            return BinaryOp("^", base, self._unary())
        return base

    def _atom(self) -> Node:
        tok = self._peek()
        if tok.kind == "NUMBER":
            self._advance()
            return Num(tok.value)
        if tok.kind == "VAR":
            self._advance()
            return Var(tok.value)
        if tok.kind == "FUNC":
            return self._function_call()
        if tok.kind == "LPAREN":
            self._advance()
            node = self._additive()
            self._expect("RPAREN")
            return node
        if tok.kind == "EOF":
            raise _syntax_error("expression ends unexpectedly")
        raise _syntax_error(f"unexpected {tok.describe()} at position {tok.pos}")

    def _function_call(self) -> Node:
        name = self._advance().value
        spec = FUNCTIONS[name]
        self._expect("LPAREN")
        args: list[Node] = []
        if self._peek().kind != "RPAREN":
            args.append(self._additive())
            while self._peek().kind == "COMMA":
                self._advance()
                args.append(self._additive())
        self._expect("RPAREN")
        if len(args) < spec.min_args or (spec.max_args is not None and len(args) > spec.max_args):
            expected = (
                f"at least {spec.min_args}" if spec.max_args is None else str(spec.min_args)
            )
            raise _syntax_error(
                f"function {name!r} expects {expected} argument(s), got {len(args)}"
            )
        return Call(name, tuple(args))


def parse_expression(text: str) -> Node:
    """Parse already-rewritten expression text into a tree.

    Raises:
        ExpressionSyntaxError: On unknown tokens, unbalanced parentheses or
            wrong function arity.
    """
    try:
        return _Parser(tokenize(text)).parse()
    except RecursionError:
        raise _syntax_error("expression is nested too deeply") from None


class Evaluator:
    """Compiled two-variable function.

    Calling it with scalars returns a float; non-finite results are returned,
    never raised. ``evaluate_grid`` evaluates whole coordinate arrays at once.
    """

    def __init__(self, tree: Node, source: str = "", rewritten: str = ""):
        self.tree = tree
        self.source = source
        self.rewritten = rewritten

    def __call__(self, x: float, y: float) -> float:
        return float(evaluate(self.tree, x, y))

    def evaluate_grid(self, xs: np.ndarray, ys: np.ndarray) -> np.ndarray:
        """Evaluate at every ``(xs[k], ys[k])``; result has the broadcast shape."""
        result = evaluate(self.tree, xs, ys)
        shape = np.broadcast_shapes(np.shape(xs), np.shape(ys))
        return np.array(np.broadcast_to(result, shape), dtype=np.float64)

    def __repr__(self) -> str:
        return f"Evaluator({self.source!r})"


def build_evaluator(text: str) -> Evaluator:
    """Rewrite and parse *text* without probe validation."""
    rewritten = prepare_expression(text)
    if not rewritten:
        raise ExpressionSyntaxError("Expression is empty")
    tree = parse_expression(rewritten)
    return Evaluator(tree, source=text, rewritten=rewritten)


def validate_evaluator(
    evaluator: Evaluator, probes: Sequence[tuple[float, float]] = PROBE_POINTS
) -> int:
    """Evaluate *evaluator* at the probe points and return the finite count.

    Raises:
        NoValidSampleError: If no probe yields a finite value.
    """
    finite = sum(1 for px, py in probes if math.isfinite(evaluator(px, py)))
    if finite == 0:
        raise NoValidSampleError(NO_VALID_VALUES)
    return finite


def compile_expression(
    text: str, probes: Sequence[tuple[float, float]] = PROBE_POINTS
) -> Evaluator:
    """Compile raw user input into a validated evaluator.

    Args:
        text: Expression in everyday notation, e.g. ``"2x² + sin(xy)"``.
        probes: Points at which at least one finite value is required.

    Returns:
        The accepted evaluator.

    Raises:
        ExpressionSyntaxError: If the text is empty or malformed.
        NoValidSampleError: If every probe point yields a non-finite value.
    """
    try:
        evaluator = build_evaluator(text)
        finite = validate_evaluator(evaluator, probes)
    except (ExpressionSyntaxError, NoValidSampleError) as e:
        logger.debug("Rejected expression %r: %s", text, e)
        raise
    logger.debug(
        "Compiled %r as %r (%d/%d finite probes)", text, evaluator.rewritten, finite, len(probes)
    )
    return evaluator
