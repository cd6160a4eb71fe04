"""Coded diagnostics and the policy that decides how each one is reported."""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass
from typing import Literal

from graphspace.errors import DiagnosticError

logger = logging.getLogger(__name__)

WARNING_CODES: dict[str, str] = {
    "W01": "equation rejected while loading a workspace",
    "W02": "surface has no finite sample over the domain",
    "W03": "surface is flat (degenerate z-range)",
}

KNOWN_CODES: frozenset[str] = frozenset(WARNING_CODES)

Action = Literal["warn", "error", "ignore"]


class GraphSpaceWarning(UserWarning):
    def __init__(self, code: str, message: str) -> None:
        self.code = code
        super().__init__(f"[{code}] {message}")


@dataclass(frozen=True)
class WarningPolicy:
    """Per-code overrides; codes in neither set are reported as warnings."""

    warn_as_error: frozenset[str] = frozenset()
    suppress: frozenset[str] = frozenset()

    def action(self, code: str) -> Action:
        # Suppression wins when a code is listed in both sets
        if code in self.suppress:
            return "ignore"
        if code in self.warn_as_error:
            return "error"
        return "warn"

    @classmethod
    def from_options(
        cls, warn_as_error: str | None = None, suppress: str | None = None
    ) -> WarningPolicy | None:
        """Build a policy from comma-separated code lists, or None if both are unset.

        Raises:
            ValueError: For unknown codes.
        """
        if warn_as_error is None and suppress is None:
            return None
        return cls(
            warn_as_error=parse_code_list(warn_as_error or ""),
            suppress=parse_code_list(suppress or ""),
        )


def emit_warning(code: str, message: str, *, policy: WarningPolicy | None = None) -> None:
    """Report diagnostic *code* according to *policy*.

    Raises:
        DiagnosticError: If the policy promotes *code* to an error.
    """
    action = policy.action(code) if policy is not None else "warn"
    if action == "ignore":
        logger.debug("Suppressed [%s] %s", code, message)
        return
    if action == "error":
        raise DiagnosticError(code, message)
    warnings.warn(GraphSpaceWarning(code, message), stacklevel=2)


def parse_code_list(raw: str) -> frozenset[str]:
    """Parse ``"W01, w03"`` into a set of known codes (case-insensitive).

    Raises ``ValueError`` for unknown codes.
    """
    codes = {token.strip().upper() for token in raw.split(",") if token.strip()}
    unknown = sorted(codes - KNOWN_CODES)
    if unknown:
        raise ValueError(
            f"Unknown warning code(s): {', '.join(unknown)} (known: {sorted(KNOWN_CODES)})"
        )
    return frozenset(codes)
