"""Discrete surface analysis: statistics, extrema, normals, contours and point values."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Callable, Literal, Sequence, Union

import numpy as np

from graphspace.compiler import Evaluator, build_evaluator
from graphspace.errors import CompileError, EvaluationError
from graphspace.models import Domain
from graphspace.sampler import SurfaceMesh

NORMAL_DISPLAY_TARGET = 200

_TRIANGLE_EDGES = ((0, 1), (1, 2), (2, 0))


@dataclass(frozen=True)
class SurfaceStats:
    z_min: float
    z_max: float
    surface_area: float
    volume: float

    def as_dict(self) -> dict[str, float]:
        return {
            "z_min": self.z_min,
            "z_max": self.z_max,
            "surface_area": self.surface_area,
            "volume": self.volume,
        }


@dataclass(frozen=True)
class Extrema:
    """Lowest and highest sampled vertices (a discrete scan, not a calculus solve)."""

    min_index: int | None
    max_index: int | None
    min_vertex: tuple[float, float, float] | None
    max_vertex: tuple[float, float, float] | None


@dataclass(frozen=True)
class NormalArrow:
    index: int
    origin: tuple[float, float, float]
    direction: tuple[float, float, float]


@dataclass
class ContourLine:
    level: float
    segments: np.ndarray = field(default_factory=lambda: np.zeros((0, 2, 3)))  # (S, 2, 3)


@dataclass(frozen=True)
class PointEvaluation:
    status: Literal["ok", "undefined", "error"]
    value: float | None = None
    message: str | None = None


def analyze(mesh: SurfaceMesh, domain: Domain) -> SurfaceStats:
    """Z-range, Riemann-sum volume and triangle-sum surface area.

    ``volume = sum(z) * dx * dy`` over finite vertices with
    ``dx = x_span / sqrt(N)`` and ``dy = y_span / sqrt(N)``.
    """
    n_verts = mesh.vertex_count
    dx = domain.x_span / math.sqrt(n_verts)
    dy = domain.y_span / math.sqrt(n_verts)
    volume = float(mesh.vertices[mesh.finite, 2].sum()) * dx * dy
    return SurfaceStats(
        z_min=mesh.z_min,
        z_max=mesh.z_max,
        surface_area=surface_area(mesh),
        volume=volume,
    )


def surface_area(mesh: SurfaceMesh) -> float:
    """Sum of triangle areas, ``|cross(e1, e2)| / 2`` each."""
    corners = mesh.vertices[mesh.triangles]
    cross = np.cross(corners[:, 1] - corners[:, 0], corners[:, 2] - corners[:, 0])
    return float(np.linalg.norm(cross, axis=1).sum() / 2.0)


def find_extrema(mesh: SurfaceMesh) -> Extrema:
    """Locate the lowest and highest finite vertices.

    The first occurrence wins on ties. When both are the same vertex (a
    single finite sample) the maximum is suppressed so it is not reported
    twice.
    """
    candidates = np.flatnonzero(mesh.finite)
    if len(candidates) == 0:
        return Extrema(None, None, None, None)

    heights = mesh.vertices[candidates, 2]
    min_index = int(candidates[np.argmin(heights)])
    max_index: int | None = int(candidates[np.argmax(heights)])
    if max_index == min_index:
        max_index = None

    return Extrema(
        min_index=min_index,
        max_index=max_index,
        min_vertex=_vertex_tuple(mesh, min_index),
        max_vertex=_vertex_tuple(mesh, max_index) if max_index is not None else None,
    )


def _vertex_tuple(mesh: SurfaceMesh, index: int) -> tuple[float, float, float]:
    x, y, z = mesh.vertices[index]
    return (float(x), float(y), float(z))


def vertex_normals(mesh: SurfaceMesh) -> np.ndarray:
    """Area-weighted vertex normals; vertices with no area keep a zero normal."""
    tris = mesh.triangles.astype(np.int64)
    corners = mesh.vertices[tris]
    face = np.cross(corners[:, 1] - corners[:, 0], corners[:, 2] - corners[:, 0])

    normals = np.zeros_like(mesh.vertices)
    for k in range(3):
        np.add.at(normals, tris[:, k], face)

    lengths = np.linalg.norm(normals, axis=1, keepdims=True)
    nonzero = lengths[:, 0] > 1e-30
    normals[nonzero] /= lengths[nonzero]
    return normals


def sample_normals(mesh: SurfaceMesh, target: int = NORMAL_DISPLAY_TARGET) -> list[NormalArrow]:
    """Evenly spaced subset of vertex normals for display (about *target* arrows)."""
    normals = vertex_normals(mesh)
    step = max(1, math.ceil(mesh.vertex_count / target))
    arrows: list[NormalArrow] = []
    for index in range(0, mesh.vertex_count, step):
        if not mesh.finite[index]:
            continue
        direction = normals[index]
        if not np.any(direction):
            continue
        arrows.append(
            NormalArrow(
                index=index,
                origin=_vertex_tuple(mesh, index),
                direction=(float(direction[0]), float(direction[1]), float(direction[2])),
            )
        )
    return arrows


def contour_levels(mesh: SurfaceMesh, count: int = 10) -> list[float]:
    """*count* evenly spaced levels strictly inside the z-range."""
    if count < 1 or mesh.z_max <= mesh.z_min:
        return []
    span = mesh.z_max - mesh.z_min
    return [mesh.z_min + span * k / (count + 1) for k in range(1, count + 1)]


def contour_segments(mesh: SurfaceMesh, levels: Sequence[float]) -> list[ContourLine]:
    """Iso-height line segments via marching triangles.

    Triangles touching an undefined vertex are skipped. Each crossing edge
    is interpolated linearly, so every segment endpoint lies at the level.
    """
    tris = mesh.triangles.astype(np.int64)
    corners = mesh.vertices[tris]  # (T, 3, 3)
    valid = mesh.finite[tris].all(axis=1)
    heights = corners[:, :, 2]

    lines: list[ContourLine] = []
    for level in levels:
        above = heights >= level
        points = np.zeros((len(tris), 3, 3), dtype=np.float64)
        crossing = np.zeros((len(tris), 3), dtype=bool)
        for e, (a, b) in enumerate(_TRIANGLE_EDGES):
            za = heights[:, a]
            zb = heights[:, b]
            crosses = above[:, a] != above[:, b]
            t = np.divide(level - za, zb - za, out=np.zeros_like(za), where=crosses)
            points[:, e] = corners[:, a] + t[:, None] * (corners[:, b] - corners[:, a])
            crossing[:, e] = crosses

        mixed = valid & (crossing.sum(axis=1) == 2)
        segments = points[mixed][crossing[mixed]].reshape(-1, 2, 3)
        lines.append(ContourLine(level=float(level), segments=segments))
    return lines


def evaluate_point(
    target: Union[str, Evaluator, Callable[[float, float], float]], x: float, y: float
) -> PointEvaluation:
    """Evaluate an expression (or compiled evaluator) at one point.

    ``undefined`` means the function has no finite value there; ``error``
    means the expression could not be executed at all.
    """
    try:
        value = _evaluate_at(target, x, y)
    except EvaluationError as e:
        return PointEvaluation(status="error", message=str(e))
    if not math.isfinite(value):
        return PointEvaluation(status="undefined", value=value)
    return PointEvaluation(status="ok", value=value)


def _evaluate_at(
    target: Union[str, Evaluator, Callable[[float, float], float]], x: float, y: float
) -> float:
    try:
        px = float(x)
        py = float(y)
    except (TypeError, ValueError):
        raise EvaluationError("Invalid input") from None
    if math.isnan(px) or math.isnan(py):
        raise EvaluationError("Invalid input")

    if isinstance(target, str):
        try:
            target = build_evaluator(target)
        except CompileError as e:
            raise EvaluationError(str(e)) from e

    try:
        return float(target(px, py))
    except (ArithmeticError, ValueError, TypeError) as e:
        raise EvaluationError(f"Evaluation failed: {e}") from e


def format_point_value(result: PointEvaluation) -> str:
    if result.status == "ok":
        return f"{result.value:.4f}"
    if result.status == "undefined":
        return "Undefined"
    return "Error"
