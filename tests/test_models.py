"""Tests for workspace models and defaults."""

import math

import pytest
from pydantic import ValidationError

from graphspace.models import DEFAULT_PALETTE, PROBE_POINTS, Domain, EquationDef, WorkspaceSpec


class TestDomain:
    def test_defaults(self):
        d = Domain()
        assert (d.xmin, d.xmax, d.ymin, d.ymax, d.resolution) == (-5, 5, -5, 5, 50)
        assert d.x_span == 10.0 and d.y_span == 10.0

    def test_frozen(self):
        with pytest.raises(ValidationError):
            Domain().xmin = 0

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"xmin": 1, "xmax": 1},
            {"ymin": 2, "ymax": -2},
            {"resolution": 0},
            {"xmax": math.inf},
            {"ymin": math.nan},
        ],
    )
    def test_invalid(self, kwargs):
        with pytest.raises(ValidationError):
            Domain(**kwargs)

    def test_extra_field_rejected(self):
        with pytest.raises(ValidationError):
            Domain(zmin=0)


class TestEquationDef:
    def test_color_lowercased(self):
        assert EquationDef(expression="x", color="#ABCDEF").color == "#abcdef"

    @pytest.mark.parametrize("color", ["abcdef", "#abc", "#abcdeg", "blue"])
    def test_bad_color(self, color):
        with pytest.raises(ValidationError):
            EquationDef(color=color)

    def test_defaults(self):
        eq = EquationDef()
        assert (eq.expression, eq.color, eq.visible) == ("", None, True)


class TestWorkspaceSpec:
    def test_defaults(self):
        spec = WorkspaceSpec()
        assert spec.version == "1.0"
        assert spec.color_mode == "solid"
        assert spec.equations == []

    def test_bad_color_mode(self):
        with pytest.raises(ValidationError):
            WorkspaceSpec(color_mode="neon")


class TestConstants:
    def test_palette(self):
        assert len(DEFAULT_PALETTE) == 10
        assert all(len(c) == 7 and c.startswith("#") for c in DEFAULT_PALETTE)

    def test_probe_points(self):
        assert (0.0, 0.0) in PROBE_POINTS and (0.5, 0.5) in PROBE_POINTS
        assert len(PROBE_POINTS) >= 4
