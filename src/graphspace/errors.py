"""Custom exception hierarchy for the GraphSpace engine."""


class GraphSpaceError(Exception):
    """Base exception for all GraphSpace errors."""


class CompileError(GraphSpaceError):
    """Raised when an expression cannot be turned into an evaluator."""


class ExpressionSyntaxError(CompileError):
    """Raised when the token stream is malformed (unknown token, unbalanced parens)."""


class NoValidSampleError(CompileError):
    """Raised when an expression compiles but every probe point is non-finite."""


class EvaluationError(GraphSpaceError):
    """Raised when a point evaluation cannot run at all."""


class ParseError(GraphSpaceError):
    """Raised when workspace file loading or schema deserialization fails."""


class ExportError(GraphSpaceError):
    """Raised when STL/CSV/JSON/GLB export fails."""


class UnknownEquationError(GraphSpaceError, KeyError):
    """Raised when a workspace operation names an equation id that does not exist."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else "Unknown equation"


class NoSurfaceError(GraphSpaceError):
    """Raised when an operation needs a sampled surface and the equation has none."""


class DiagnosticError(GraphSpaceError):
    """Raised when a warning code is promoted to an error by the warning policy."""

    def __init__(self, code: str, message: str) -> None:
        self.code = code
        super().__init__(f"[{code}] {message}")
