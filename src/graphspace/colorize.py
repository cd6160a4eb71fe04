"""Per-vertex surface coloring."""

from __future__ import annotations

from typing import Sequence, Union

import numpy as np

from graphspace.models import COLOR_MODES
from graphspace.sampler import SurfaceMesh

ColorLike = Union[str, Sequence[float], np.ndarray]

_DARKEN = 0.5
_LIGHTEN = 0.3
_RAINBOW_HUE_SPAN = 0.7  # red (0) to blue (0.7)


def parse_color(color: ColorLike) -> np.ndarray:
    """Convert ``"#rrggbb"`` or an RGB triple in ``[0, 1]`` to a float array."""
    if isinstance(color, str):
        text = color.lstrip("#")
        if len(text) != 6:
            raise ValueError(f"Expected a '#rrggbb' color, got {color!r}")
        try:
            channels = [int(text[k : k + 2], 16) for k in (0, 2, 4)]
        except ValueError:
            raise ValueError(f"Expected a '#rrggbb' color, got {color!r}") from None
        return np.array(channels, dtype=np.float64) / 255.0
    rgb = np.asarray(color, dtype=np.float64)
    if rgb.shape != (3,):
        raise ValueError(f"Expected an RGB triple, got shape {rgb.shape}")
    return np.clip(rgb, 0.0, 1.0)


def format_color(rgb: ColorLike) -> str:
    """Format an RGB triple in ``[0, 1]`` as ``"#rrggbb"``."""
    channels = np.rint(parse_color(rgb) * 255.0).astype(int)
    return "#" + "".join(f"{c:02x}" for c in channels)


def height_parameter(mesh: SurfaceMesh) -> np.ndarray:
    """Normalized height ``t`` per vertex; 0.5 everywhere for a flat surface."""
    z = mesh.vertices[:, 2]
    if mesh.z_max == mesh.z_min:
        return np.full(len(z), 0.5)
    return np.clip((z - mesh.z_min) / (mesh.z_max - mesh.z_min), 0.0, 1.0)


def slope_parameter(mesh: SurfaceMesh) -> np.ndarray:
    """Normalized gradient magnitude per vertex, clamped to ``[0, 1]``.

    Central differences over grid neighbors; vertices on the domain edge
    lack a full neighbor set and get 0.
    """
    n = mesh.resolution + 1
    t = np.zeros((n, n), dtype=np.float64)
    if n < 3:
        return t.ravel()

    x = mesh.vertices[:, 0].reshape(n, n)
    y = mesh.vertices[:, 1].reshape(n, n)
    z = mesh.height_grid()

    dzdx = (z[2:, 1:-1] - z[:-2, 1:-1]) / (x[2:, 1:-1] - x[:-2, 1:-1])
    dzdy = (z[1:-1, 2:] - z[1:-1, :-2]) / (y[1:-1, 2:] - y[1:-1, :-2])
    magnitude = np.hypot(dzdx, dzdy)

    peak = magnitude.max()
    if peak > 0:
        t[1:-1, 1:-1] = np.clip(magnitude / peak, 0.0, 1.0)
    return t.ravel()


def _base_ramp(t: np.ndarray, base: np.ndarray) -> np.ndarray:
    dark = base * _DARKEN
    light = base + (1.0 - base) * _LIGHTEN
    return dark + t[:, None] * (light - dark)


def _hsl_to_rgb(h: np.ndarray, s: float, l: float) -> np.ndarray:
    q = l * (1 + s) if l < 0.5 else l + s - l * s
    p = 2 * l - q

    def channel(tc: np.ndarray) -> np.ndarray:
        tc = np.mod(tc, 1.0)
        return np.select(
            [tc < 1 / 6, tc < 1 / 2, tc < 2 / 3],
            [p + (q - p) * 6 * tc, np.full_like(tc, q), p + (q - p) * (2 / 3 - tc) * 6],
            default=p,
        )

    return np.column_stack([channel(h + 1 / 3), channel(h), channel(h - 1 / 3)])


def colorize(mesh: SurfaceMesh, mode: str, base_color: ColorLike) -> np.ndarray | None:
    """Compute per-vertex RGB colors in ``[0, 1]``.

    Returns ``None`` in ``solid`` mode, where the surface uses *base_color*
    uniformly.

    Raises:
        ValueError: On an unknown mode or malformed color.
    """
    if mode not in COLOR_MODES:
        raise ValueError(f"Unknown color mode: {mode!r} (known: {list(COLOR_MODES)})")
    base = parse_color(base_color)
    if mode == "solid":
        return None
    if mode == "slope":
        return _base_ramp(slope_parameter(mesh), base)

    t = height_parameter(mesh)
    if mode == "height":
        return _base_ramp(t, base)
    if mode == "rainbow":
        return _hsl_to_rgb(t * _RAINBOW_HUE_SPAN, 1.0, 0.5)
    # cool-warm
    return np.column_stack([t, np.full_like(t, 0.5), 1.0 - t])
