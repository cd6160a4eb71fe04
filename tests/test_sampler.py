"""Tests for grid sampling and triangulation."""

import math

import numpy as np
import pytest

from graphspace.compiler import compile_expression
from graphspace.models import Domain
from graphspace.sampler import grid_axes, sample, triangulate_grid


class TestGrid:
    def test_axes(self, small_domain):
        xs, ys = grid_axes(small_domain)
        np.testing.assert_allclose(xs, [-2, -1, 0, 1, 2])
        np.testing.assert_allclose(ys, [-2, -1, 0, 1, 2])

    def test_asymmetric_axes(self):
        xs, ys = grid_axes(Domain(xmin=0, xmax=1, ymin=10, ymax=20, resolution=2))
        np.testing.assert_allclose(xs, [0, 0.5, 1])
        np.testing.assert_allclose(ys, [10, 15, 20])

    def test_triangulation_size(self):
        assert triangulate_grid(3).shape == (6 * 3 * 3,)
        assert triangulate_grid(3).dtype == np.uint32

    def test_single_cell(self):
        # a=0 b=1 c=2 d=3
        assert triangulate_grid(1).tolist() == [0, 2, 1, 1, 2, 3]


class TestSample:
    @pytest.mark.parametrize("resolution", [1, 2, 7, 50])
    def test_counts(self, paraboloid, resolution):
        mesh = sample(paraboloid, Domain(resolution=resolution))
        assert mesh.vertex_count == (resolution + 1) ** 2
        assert len(mesh.indices) == 6 * resolution**2
        assert mesh.triangle_count == 2 * resolution**2

    def test_indices_in_range(self, paraboloid, small_domain):
        mesh = sample(paraboloid, small_domain)
        assert mesh.indices.max() < mesh.vertex_count

    def test_row_major_layout(self, paraboloid, small_domain):
        mesh = sample(paraboloid, small_domain)
        # vertex i*(R+1) + j sits at (x_i, y_j)
        i, j = 1, 3
        x, y, z = mesh.vertices[i * 5 + j]
        assert (x, y) == (-1.0, 1.0)
        assert z == 2.0

    def test_heights(self, paraboloid, small_domain):
        mesh = sample(paraboloid, small_domain)
        assert mesh.z_min == 0.0
        assert mesh.z_max == 8.0
        assert mesh.has_finite_samples

    def test_triangles_face_up(self, paraboloid, small_domain):
        mesh = sample(paraboloid, small_domain)
        corners = mesh.vertices[mesh.triangles.astype(np.int64)][:, :, :2]
        e1 = corners[:, 1] - corners[:, 0]
        e2 = corners[:, 2] - corners[:, 0]
        assert np.all(e1[:, 0] * e2[:, 1] - e1[:, 1] * e2[:, 0] > 0)

    def test_undefined_stored_at_zero(self, small_domain):
        mesh = sample(compile_expression("sqrt(x)"), small_domain)
        grid = mesh.height_grid()
        np.testing.assert_array_equal(grid[:2], 0.0)
        assert mesh.finite.sum() == 15
        assert mesh.z_min == 0.0
        assert mesh.z_max == pytest.approx(math.sqrt(2))

    def test_undefined_excluded_from_range(self, small_domain):
        mesh = sample(compile_expression("1/x + 10"), small_domain)
        assert not mesh.finite[2 * 5]
        assert mesh.vertices[2 * 5, 2] == 0.0
        assert mesh.z_min == pytest.approx(9.0)
        assert mesh.z_max == pytest.approx(11.0)

    def test_no_finite_samples(self, small_domain):
        mesh = sample(lambda x, y: math.nan, small_domain)
        assert not mesh.has_finite_samples
        assert (mesh.z_min, mesh.z_max) == (0.0, 0.0)
        np.testing.assert_array_equal(mesh.vertices[:, 2], 0.0)

    def test_callable_errors_are_undefined(self, small_domain):
        mesh = sample(lambda x, y: 1 / x, small_domain)
        assert mesh.finite.sum() == 20
        assert not mesh.finite[2 * 5 : 3 * 5].any()

    def test_callable_matches_evaluator(self, small_domain):
        f = compile_expression("sin(x) * y + 1/x")
        vectorized = sample(f, small_domain)
        pointwise = sample(lambda x, y: f(x, y), small_domain)
        np.testing.assert_allclose(vectorized.vertices, pointwise.vertices, rtol=1e-12)
        np.testing.assert_array_equal(vectorized.finite, pointwise.finite)
        np.testing.assert_array_equal(vectorized.indices, pointwise.indices)

    def test_deterministic(self, paraboloid):
        a = sample(paraboloid, Domain(resolution=10))
        b = sample(paraboloid, Domain(resolution=10))
        np.testing.assert_array_equal(a.vertices, b.vertices)
        np.testing.assert_array_equal(a.indices, b.indices)
