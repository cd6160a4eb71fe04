"""Application state: the equation collection and the shared domain."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

from graphspace import analysis
from graphspace.colorize import colorize
from graphspace.compiler import Evaluator, compile_expression
from graphspace.errors import CompileError, NoSurfaceError, UnknownEquationError
from graphspace.models import (
    COLOR_MODES,
    DEFAULT_PALETTE,
    Domain,
    EquationDef,
    WorkspaceSpec,
)
from graphspace.sampler import SurfaceMesh, sample
from graphspace.warning_policy import WarningPolicy, emit_warning

logger = logging.getLogger(__name__)


@dataclass
class Equation:
    """One plotted function and the evaluator/mesh pair it owns."""

    id: int
    expression: str
    color: str
    visible: bool = True
    evaluator: Evaluator | None = None
    mesh: SurfaceMesh | None = None
    last_error: str | None = None
    sampled_domain: Domain | None = None

    def release(self) -> None:
        """Drop the evaluator and mesh."""
        self.evaluator = None
        self.mesh = None
        self.sampled_domain = None

    def install(self, evaluator: Evaluator, mesh: SurfaceMesh, domain: Domain) -> None:
        self.release()
        self.evaluator = evaluator
        self.mesh = mesh
        self.sampled_domain = domain
        self.last_error = None

    @property
    def is_empty(self) -> bool:
        return not self.expression.strip()


class Workspace:
    """Equations sharing one sampling domain and one color mode.

    Every recompute builds the new evaluator and mesh before touching the
    equation, so a failed edit leaves the previous surface in place and only
    records the message in ``last_error``.
    """

    def __init__(self, domain: Domain | None = None, color_mode: str = "solid"):
        if color_mode not in COLOR_MODES:
            raise ValueError(f"Unknown color mode: {color_mode!r} (known: {list(COLOR_MODES)})")
        self.domain = domain if domain is not None else Domain()
        self.color_mode = color_mode
        self._equations: dict[int, Equation] = {}
        self._next_id = 1

    def __len__(self) -> int:
        return len(self._equations)

    def __iter__(self):
        return iter(list(self._equations.values()))

    @property
    def equations(self) -> list[Equation]:
        return list(self._equations.values())

    def get(self, equation_id: int) -> Equation:
        try:
            return self._equations[equation_id]
        except KeyError:
            raise UnknownEquationError(f"Unknown equation id: {equation_id}") from None

    def add_equation(
        self, expression: str = "", color: str | None = None, visible: bool = True
    ) -> Equation:
        """Create an equation with a fresh id and compute its surface.

        Without an explicit *color* the palette entry for the id is used.
        """
        equation_id = self._next_id
        self._next_id += 1
        if color is None:
            color = DEFAULT_PALETTE[(equation_id - 1) % len(DEFAULT_PALETTE)]
        equation = Equation(id=equation_id, expression=expression, color=color, visible=visible)
        self._equations[equation_id] = equation
        logger.debug("Added equation %d: %r", equation_id, expression)
        if visible:
            self.recompute(equation_id)
        return equation

    def set_expression(self, equation_id: int, text: str) -> Equation:
        equation = self.get(equation_id)
        equation.expression = text
        self.recompute(equation_id)
        return equation

    def recompute(self, equation_id: int) -> Equation:
        """Compile and sample one equation against the current domain."""
        equation = self.get(equation_id)
        if equation.is_empty:
            equation.release()
            equation.last_error = None
            return equation

        try:
            evaluator = compile_expression(equation.expression)
        except CompileError as e:
            equation.last_error = str(e)
            logger.info("Equation %d rejected: %s", equation_id, e)
            return equation

        mesh = sample(evaluator, self.domain)
        equation.install(evaluator, mesh, self.domain)
        logger.debug(
            "Equation %d sampled: %d vertices, z in [%g, %g]",
            equation_id,
            mesh.vertex_count,
            mesh.z_min,
            mesh.z_max,
        )
        return equation

    def recompute_all(self) -> None:
        """Recompute every visible equation that has text."""
        for equation in self.equations:
            if equation.visible and not equation.is_empty:
                self.recompute(equation.id)

    def delete_equation(self, equation_id: int) -> None:
        equation = self.get(equation_id)
        equation.release()
        del self._equations[equation_id]
        logger.debug("Deleted equation %d", equation_id)

    def toggle_visibility(self, equation_id: int) -> Equation:
        """Flip visibility; a surface shown again after a domain change is resampled."""
        equation = self.get(equation_id)
        equation.visible = not equation.visible
        if equation.visible and not equation.is_empty and equation.sampled_domain != self.domain:
            self.recompute(equation_id)
        return equation

    def set_domain(self, domain: Domain) -> None:
        self.domain = domain
        self.recompute_all()

    def set_color_mode(self, mode: str) -> None:
        if mode not in COLOR_MODES:
            raise ValueError(f"Unknown color mode: {mode!r} (known: {list(COLOR_MODES)})")
        self.color_mode = mode

    def colors_for(self, equation_id: int) -> np.ndarray | None:
        """Per-vertex colors in the active mode, or ``None`` for solid/no surface."""
        equation = self.get(equation_id)
        if equation.mesh is None:
            return None
        return colorize(equation.mesh, self.color_mode, equation.color)

    def _require_mesh(self, equation_id: int) -> SurfaceMesh:
        equation = self.get(equation_id)
        if equation.mesh is None:
            raise NoSurfaceError(f"Equation {equation_id} has no surface")
        return equation.mesh

    def analyze(self, equation_id: int) -> analysis.SurfaceStats:
        equation = self.get(equation_id)
        mesh = self._require_mesh(equation_id)
        return analysis.analyze(mesh, equation.sampled_domain or self.domain)

    def find_extrema(self, equation_id: int) -> analysis.Extrema:
        return analysis.find_extrema(self._require_mesh(equation_id))

    def evaluate_point(self, equation_id: int, x: float, y: float) -> analysis.PointEvaluation:
        equation = self.get(equation_id)
        # A rejected edit leaves the previous evaluator installed; evaluate the current text
        if equation.evaluator is not None and equation.last_error is None:
            target = equation.evaluator
        else:
            target = equation.expression
        return analysis.evaluate_point(target, x, y)

    def surfaces(self) -> list[Equation]:
        """Visible equations that currently have a mesh, in id order."""
        return [eq for eq in self.equations if eq.visible and eq.mesh is not None]

    @classmethod
    def from_spec(cls, spec: WorkspaceSpec) -> Workspace:
        workspace = cls(domain=spec.settings, color_mode=spec.color_mode)
        for item in spec.equations:
            workspace.add_equation(item.expression, color=item.color, visible=item.visible)
        return workspace

    def to_spec(self) -> WorkspaceSpec:
        return WorkspaceSpec(
            color_mode=self.color_mode,
            settings=self.domain,
            equations=[
                EquationDef(expression=eq.expression, color=eq.color, visible=eq.visible)
                for eq in self.equations
            ],
        )


def report_diagnostics(workspace: Workspace, policy: WarningPolicy | None = None) -> None:
    """Emit coded warnings for rejected equations and degenerate surfaces.

    Raises:
        DiagnosticError: For any code the policy promotes to an error.
    """
    for equation in workspace.equations:
        if equation.last_error is not None:
            emit_warning(
                "W01",
                f"Equation {equation.id} ({equation.expression!r}): {equation.last_error}",
                policy=policy,
            )
        mesh = equation.mesh
        if mesh is None:
            continue
        if not mesh.has_finite_samples:
            emit_warning(
                "W02",
                f"Equation {equation.id} ({equation.expression!r}) has no finite sample "
                f"in the domain",
                policy=policy,
            )
        elif mesh.z_min == mesh.z_max:
            emit_warning(
                "W03",
                f"Equation {equation.id} ({equation.expression!r}) is flat at z={mesh.z_min:g}",
                policy=policy,
            )
