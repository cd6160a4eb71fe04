"""Deterministic grid sampling of a compiled function into a height-mapped mesh."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Callable, Union

import numpy as np

from graphspace.compiler import Evaluator
from graphspace.models import Domain

logger = logging.getLogger(__name__)

Sampleable = Union[Evaluator, Callable[[float, float], float]]


@dataclass
class SurfaceMesh:
    """Sampled surface geometry (z-up).

    Vertices are laid out row-major over the ``(R+1) x (R+1)`` grid: vertex
    ``i*(R+1) + j`` sits at ``(x_i, y_j)``.
    """

    vertices: np.ndarray  # (N, 3) float64
    indices: np.ndarray  # (3*T,) uint32
    finite: np.ndarray  # (N,) bool, False where the function was undefined
    z_min: float
    z_max: float
    resolution: int

    @property
    def triangles(self) -> np.ndarray:
        return self.indices.reshape(-1, 3)

    @property
    def vertex_count(self) -> int:
        return len(self.vertices)

    @property
    def triangle_count(self) -> int:
        return len(self.indices) // 3

    @property
    def has_finite_samples(self) -> bool:
        return bool(self.finite.any())

    def height_grid(self) -> np.ndarray:
        """Heights reshaped to ``(R+1, R+1)``, indexed ``[i, j]``."""
        n = self.resolution + 1
        return self.vertices[:, 2].reshape(n, n)


def grid_axes(domain: Domain) -> tuple[np.ndarray, np.ndarray]:
    """Return the x and y sample coordinates of *domain*."""
    steps = np.arange(domain.resolution + 1, dtype=np.float64)
    xs = domain.xmin + domain.x_span * steps / domain.resolution
    ys = domain.ymin + domain.y_span * steps / domain.resolution
    return xs, ys


def triangulate_grid(resolution: int) -> np.ndarray:
    """Two triangles per grid cell, both facing +z.

    For cell ``(i, j)`` with corners ``a=(i,j) b=(i,j+1) c=(i+1,j)
    d=(i+1,j+1)`` the triangles are ``(a, c, b)`` and ``(b, c, d)``.
    """
    n = resolution + 1
    ci, cj = np.meshgrid(
        np.arange(resolution, dtype=np.int64),
        np.arange(resolution, dtype=np.int64),
        indexing="ij",
    )
    a = (ci * n + cj).ravel()
    b = a + 1
    c = a + n
    d = c + 1
    first = np.column_stack([a, c, b])
    second = np.column_stack([b, c, d])
    tris = np.stack([first, second], axis=1).reshape(-1, 3)
    return tris.astype(np.uint32).ravel()


def sample(evaluator: Sampleable, domain: Domain) -> SurfaceMesh:
    """Sample *evaluator* over *domain* into a SurfaceMesh.

    Non-finite samples are stored with height 0 and excluded from the
    z-range. When no sample is finite the range is ``[0, 0]``.
    """
    xs, ys = grid_axes(domain)
    gx, gy = np.meshgrid(xs, ys, indexing="ij")

    if isinstance(evaluator, Evaluator):
        z = evaluator.evaluate_grid(gx, gy)
    else:
        z = _sample_pointwise(evaluator, gx, gy)

    finite = np.isfinite(z)
    heights = np.where(finite, z, 0.0)

    if finite.any():
        z_min = float(heights[finite].min())
        z_max = float(heights[finite].max())
    else:
        z_min = z_max = 0.0

    vertices = np.column_stack([gx.ravel(), gy.ravel(), heights.ravel()])
    finite_flat = finite.ravel()
    undefined = int(finite_flat.size - finite_flat.sum())
    if undefined:
        logger.debug("%d of %d samples undefined; stored at height 0", undefined, finite_flat.size)

    return SurfaceMesh(
        vertices=vertices,
        indices=triangulate_grid(domain.resolution),
        finite=finite_flat,
        z_min=z_min,
        z_max=z_max,
        resolution=domain.resolution,
    )


def _sample_pointwise(
    func: Callable[[float, float], float], gx: np.ndarray, gy: np.ndarray
) -> np.ndarray:
    """Evaluate a plain callable vertex by vertex; failures count as undefined."""
    z = np.empty(gx.shape, dtype=np.float64)
    for idx in np.ndindex(gx.shape):
        try:
            value = float(func(float(gx[idx]), float(gy[idx])))
        except (ArithmeticError, ValueError, TypeError):
            value = math.nan
        z[idx] = value
    return z
