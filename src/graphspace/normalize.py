"""Text rewriting stages that turn everyday math notation into parser input.

The stages run in a fixed order:

1. ``normalize`` maps unicode glyphs to ASCII and canonicalizes whitespace.
2. ``insert_implicit_multiplication`` makes adjacency products explicit.
3. ``resolve_names`` qualifies function and constant names as ``math.<name>``.

Each stage is a plain string-to-string function so the intermediate text can
be shown to the user when an expression is rejected.
"""

from __future__ import annotations

import re
from typing import NamedTuple

# Glyph replacements. ``π`` is parenthesized so that ``πx`` and ``2π`` still
# split into a product after implicit multiplication.
_GLYPHS: dict[str, str] = {
    "π": "(pi)",
    "√": "sqrt",
    "×": "*",
    "·": "*",
    "÷": "/",
    "−": "-",
}

_SUPERSCRIPTS: dict[str, str] = {
    "⁰": "^0",
    "¹": "^1",
    "²": "^2",
    "³": "^3",
    "⁴": "^4",
    "⁵": "^5",
    "⁶": "^6",
    "⁷": "^7",
    "⁸": "^8",
    "⁹": "^9",
}

_WHITESPACE_RE = re.compile(r"\s+")

# Implicit multiplication rules, applied in this order, one pass each.
# 1. digit followed by a letter, unless it is scientific notation (1e5, 2e-3)
_DIGIT_LETTER_RE = re.compile(r"(?<=\d)(?![eE][+\-\d])(?=[A-Za-z])")
# 2. digit followed by an opening paren
_DIGIT_PAREN_RE = re.compile(r"(?<=\d)(?=\()")
# 3. closing paren followed by an opening paren, a digit or a letter
_CLOSE_PAREN_RE = re.compile(r"(?<=\))(?=[(\dA-Za-z])")
# 4. standalone variable followed by an opening paren (``max(`` is left alone)
_VARIABLE_PAREN_RE = re.compile(r"(?<=[xy])(?<![A-Za-wz][xy])(?=\()")

# Canonical name for every recognized function. ``ln`` and ``log`` are both
# the natural logarithm.
FUNCTION_ALIASES: dict[str, str] = {
    "sin": "sin",
    "cos": "cos",
    "tan": "tan",
    "asin": "asin",
    "acos": "acos",
    "atan": "atan",
    "sinh": "sinh",
    "cosh": "cosh",
    "tanh": "tanh",
    "exp": "exp",
    "ln": "log",
    "log": "log",
    "abs": "abs",
    "sqrt": "sqrt",
    "floor": "floor",
    "ceil": "ceil",
    "round": "round",
    "max": "max",
    "min": "min",
}

CONSTANT_NAMES: tuple[str, ...] = ("pi", "e")

QUALIFIER = "math."

# 5. standalone variable followed by a function call (``xsqrt(y)`` from ``x√(y)``)
_VARIABLE_FUNCTION_RE = re.compile(
    r"(?<=[xy])(?<![A-Za-wz][xy])(?=(?i:"
    + "|".join(sorted(FUNCTION_ALIASES, key=len, reverse=True))
    + r")\()"
)
# 6. adjacent variables
_VARIABLE_PAIR_RE = re.compile(r"(?<=[xy])(?=[xy])")

# A name already preceded by ``math.`` (or part of a longer identifier) never
# matches, which keeps the resolver idempotent.
_FUNCTION_RE = re.compile(
    r"(?<![\w.])("
    + "|".join(sorted(FUNCTION_ALIASES, key=len, reverse=True))
    + r")(?![\w.])",
    re.IGNORECASE,
)
_PI_RE = re.compile(r"(?<![\w.])pi(?![\w.])")
_E_RE = re.compile(r"(?<![\w.])e(?![\w.])")


class RewriteStages(NamedTuple):
    raw: str
    normalized: str
    multiplied: str
    resolved: str


def normalize(text: str) -> str:
    """Map unicode math glyphs to ASCII and canonicalize whitespace.

    Runs of whitespace collapse to a single space and the result is
    stripped. Idempotent; empty input yields ``""``.
    """
    for glyph, replacement in _GLYPHS.items():
        text = text.replace(glyph, replacement)
    for glyph, replacement in _SUPERSCRIPTS.items():
        text = text.replace(glyph, replacement)
    return _WHITESPACE_RE.sub(" ", text).strip()


def insert_implicit_multiplication(text: str) -> str:
    """Insert ``*`` where adjacency denotes a product (``2x``, ``xy``, ``)(``)."""
    text = _DIGIT_LETTER_RE.sub("*", text)
    text = _DIGIT_PAREN_RE.sub("*", text)
    text = _CLOSE_PAREN_RE.sub("*", text)
    text = _VARIABLE_PAREN_RE.sub("*", text)
    text = _VARIABLE_FUNCTION_RE.sub("*", text)
    text = _VARIABLE_PAIR_RE.sub("*", text)
    return text


def resolve_names(text: str) -> str:
    """Qualify recognized function and constant names as ``math.<name>``."""
    text = _FUNCTION_RE.sub(lambda m: QUALIFIER + FUNCTION_ALIASES[m.group(1).lower()], text)
    text = _PI_RE.sub(QUALIFIER + "pi", text)
    text = _E_RE.sub(QUALIFIER + "e", text)
    return text


def rewrite_stages(text: str) -> RewriteStages:
    """Run every rewriting stage and keep the intermediate results."""
    normalized = normalize(text)
    multiplied = insert_implicit_multiplication(normalized)
    resolved = resolve_names(multiplied)
    return RewriteStages(raw=text, normalized=normalized, multiplied=multiplied, resolved=resolved)


def prepare_expression(text: str) -> str:
    """Rewrite raw user input into the text the compiler tokenizes."""
    return rewrite_stages(text).resolved
