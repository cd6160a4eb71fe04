"""Pydantic v2 models and shared defaults for GraphSpace workspaces."""

from __future__ import annotations

import math
import re
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

ColorMode = Literal["solid", "height", "slope", "rainbow", "cool-warm"]

COLOR_MODES: tuple[str, ...] = ("solid", "height", "slope", "rainbow", "cool-warm")

# Assigned to new equations by id, cycling.
DEFAULT_PALETTE: tuple[str, ...] = (
    "#6366f1",
    "#ec4899",
    "#8b5cf6",
    "#10b981",
    "#f59e0b",
    "#06b6d4",
    "#ef4444",
    "#84cc16",
    "#f97316",
    "#a855f7",
)

PROBE_POINTS: tuple[tuple[float, float], ...] = (
    (0.0, 0.0),
    (1.0, 1.0),
    (-1.0, -1.0),
    (0.5, 0.5),
)

_HEX_COLOR_RE = re.compile(r"^#[0-9A-Fa-f]{6}$")


class Domain(BaseModel):
    """Rectangular sampling region and grid resolution."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    xmin: float = -5.0
    xmax: float = 5.0
    ymin: float = -5.0
    ymax: float = 5.0
    resolution: int = Field(default=50, ge=1)

    @model_validator(mode="after")
    def _check_bounds(self) -> Domain:
        for name in ("xmin", "xmax", "ymin", "ymax"):
            if not math.isfinite(getattr(self, name)):
                raise ValueError(f"{name} must be finite")
        if self.xmin >= self.xmax:
            raise ValueError(f"xmin ({self.xmin}) must be less than xmax ({self.xmax})")
        if self.ymin >= self.ymax:
            raise ValueError(f"ymin ({self.ymin}) must be less than ymax ({self.ymax})")
        return self

    @property
    def x_span(self) -> float:
        return self.xmax - self.xmin

    @property
    def y_span(self) -> float:
        return self.ymax - self.ymin


class EquationDef(BaseModel):
    model_config = ConfigDict(extra="forbid")

    expression: str = ""
    color: str | None = None
    visible: bool = True

    @field_validator("color")
    @classmethod
    def _check_color(cls, value: str | None) -> str | None:
        if value is None:
            return value
        if not _HEX_COLOR_RE.match(value):
            raise ValueError(f"color must be a '#rrggbb' hex string, got {value!r}")
        return value.lower()


class WorkspaceSpec(BaseModel):
    """Schema of a workspace file (also the shape of the JSON export)."""

    model_config = ConfigDict(extra="forbid")

    version: str = "1.0"
    color_mode: ColorMode = "solid"
    settings: Domain = Domain()
    equations: list[EquationDef] = []
