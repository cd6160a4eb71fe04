"""Tests for surface statistics, extrema, normals, contours and point values."""

import math

import numpy as np
import pytest

from graphspace.analysis import (
    PointEvaluation,
    analyze,
    contour_levels,
    contour_segments,
    evaluate_point,
    find_extrema,
    format_point_value,
    sample_normals,
    surface_area,
    vertex_normals,
)
from graphspace.compiler import compile_expression
from graphspace.models import Domain
from graphspace.sampler import sample


class TestAnalyze:
    def test_flat_plane(self, unit_domain):
        mesh = sample(compile_expression("0*x + 1"), unit_domain)
        stats = analyze(mesh, unit_domain)
        # 9 vertices at z=1, dx = dy = 2/3
        assert stats.volume == pytest.approx(4.0)
        assert stats.surface_area == pytest.approx(4.0)
        assert (stats.z_min, stats.z_max) == (1.0, 1.0)

    def test_tilted_plane_area(self, small_domain, ramp_mesh):
        # z = x over a 4x4 square tilts by 45 degrees
        assert surface_area(ramp_mesh) == pytest.approx(16 * math.sqrt(2))

    def test_undefined_vertices_skipped_in_volume(self, unit_domain):
        mesh = sample(compile_expression("1/x + 0*y"), unit_domain)
        # x = -1 and x = 1 columns cancel, x = 0 is undefined
        assert analyze(mesh, unit_domain).volume == pytest.approx(0.0)

    def test_as_dict(self, paraboloid, small_domain):
        stats = analyze(sample(paraboloid, small_domain), small_domain)
        assert set(stats.as_dict()) == {"z_min", "z_max", "surface_area", "volume"}


class TestExtrema:
    def test_min_and_max(self, unit_domain):
        extrema = find_extrema(sample(compile_expression("x + y"), unit_domain))
        assert extrema.min_index == 0
        assert extrema.max_index == 8
        assert extrema.min_vertex == (-1.0, -1.0, -2.0)
        assert extrema.max_vertex == (1.0, 1.0, 2.0)

    def test_paraboloid_minimum_at_origin(self, paraboloid, small_domain):
        extrema = find_extrema(sample(paraboloid, small_domain))
        assert extrema.min_vertex == (0.0, 0.0, 0.0)
        assert extrema.max_index == 0  # first of the four corners

    def test_coinciding_extrema_reported_once(self, unit_domain):
        extrema = find_extrema(sample(compile_expression("0*x"), unit_domain))
        assert extrema.min_index == 0
        assert extrema.max_index is None
        assert extrema.max_vertex is None

    def test_undefined_vertices_ignored(self, small_domain):
        extrema = find_extrema(sample(compile_expression("sqrt(x) - 5"), small_domain))
        assert extrema.min_vertex[0] == 0.0
        assert extrema.min_vertex[2] == -5.0

    def test_no_finite_vertex(self, small_domain):
        extrema = find_extrema(sample(lambda x, y: math.nan, small_domain))
        assert extrema.min_index is None and extrema.max_index is None
        assert extrema.min_vertex is None and extrema.max_vertex is None


class TestNormals:
    def test_plane_normals(self, ramp_mesh):
        normals = vertex_normals(ramp_mesh)
        expected = np.array([-1.0, 0.0, 1.0]) / math.sqrt(2)
        np.testing.assert_allclose(normals, np.tile(expected, (25, 1)), atol=1e-12)

    def test_unit_length(self, paraboloid):
        normals = vertex_normals(sample(paraboloid, Domain(resolution=8)))
        np.testing.assert_allclose(np.linalg.norm(normals, axis=1), 1.0)

    def test_display_subset(self, paraboloid):
        mesh = sample(paraboloid, Domain(resolution=20))
        arrows = sample_normals(mesh)
        # 441 vertices, step ceil(441 / 200) = 3
        assert len(arrows) == 147
        assert [a.index for a in arrows[:3]] == [0, 3, 6]

    def test_small_mesh_uses_every_vertex(self, paraboloid, small_domain):
        arrows = sample_normals(sample(paraboloid, small_domain))
        assert len(arrows) == 25

    def test_undefined_vertices_skipped(self, small_domain):
        mesh = sample(compile_expression("sqrt(x)"), small_domain)
        arrows = sample_normals(mesh, target=25)
        assert all(mesh.finite[a.index] for a in arrows)
        assert len(arrows) == 15


class TestContours:
    def test_levels_strictly_inside(self, ramp_mesh):
        assert contour_levels(ramp_mesh, 3) == pytest.approx([-1.0, 0.0, 1.0])

    def test_levels_on_flat_surface(self, unit_domain):
        mesh = sample(compile_expression("0*x"), unit_domain)
        assert contour_levels(mesh, 5) == []

    def test_segments_lie_on_level(self, paraboloid):
        mesh = sample(paraboloid, Domain(resolution=16))
        (line,) = contour_segments(mesh, [4.0])
        assert line.level == 4.0
        assert len(line.segments) > 0
        np.testing.assert_allclose(line.segments[:, :, 2], 4.0)
        radii = np.hypot(line.segments[:, :, 0], line.segments[:, :, 1])
        assert np.all(np.abs(radii - 2.0) < 0.2)

    def test_plane_contour(self, ramp_mesh):
        (line,) = contour_segments(ramp_mesh, [0.5])
        # one segment per triangle in the x in [0, 1] strip
        assert line.segments.shape == (8, 2, 3)
        np.testing.assert_allclose(line.segments[:, :, 0], 0.5)

    def test_level_outside_range(self, ramp_mesh):
        (line,) = contour_segments(ramp_mesh, [10.0])
        assert line.segments.shape == (0, 2, 3)

    def test_undefined_triangles_skipped(self, small_domain):
        mesh = sample(compile_expression("1/x"), small_domain)
        (line,) = contour_segments(mesh, [0.75])
        # only the x in [1, 2] strip crosses z = 0.75
        assert line.segments.shape == (8, 2, 3)
        assert np.all(line.segments[:, :, 0] > 1.0)


class TestEvaluatePoint:
    def test_ok(self):
        result = evaluate_point("x^2 + y^2", 3, 4)
        assert result == PointEvaluation(status="ok", value=25.0)
        assert format_point_value(result) == "25.0000"

    def test_evaluator_target(self, paraboloid):
        assert evaluate_point(paraboloid, 1, 2).value == 5.0

    def test_undefined(self):
        result = evaluate_point("1/x", 0, 1)
        assert result.status == "undefined"
        assert format_point_value(result) == "Undefined"

    def test_undefined_without_probe_check(self):
        assert evaluate_point("sqrt(-1 - x^2)", 0, 0).status == "undefined"

    def test_error_on_bad_expression(self):
        result = evaluate_point("qwerty", 0, 0)
        assert result.status == "error"
        assert "Invalid mathematical expression" in result.message
        assert format_point_value(result) == "Error"

    @pytest.mark.parametrize("x", ["abc", None, math.nan])
    def test_error_on_bad_input(self, x):
        result = evaluate_point("x", x, 0)
        assert result.status == "error"
        assert result.message == "Invalid input"

    def test_negative_value_formatting(self):
        assert format_point_value(evaluate_point("x - 0.00001", 0, 0)) == "-0.0000"
