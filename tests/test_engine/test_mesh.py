"""Tests for triangulation and mesh refinement."""

from __future__ import annotations

import numpy as np
import pytest

from polyart.engine.config import PipelineConfig
from polyart.engine.edges import build_edge_field
from polyart.engine.errors import GeometryError
from polyart.engine.mesh import build_mesh, classify_triangles, triangle_metrics, triangulate
from polyart.engine.sampling import CORNER, REFINE, PointSet, add_corners, point_key, sample_points
from tests.conftest import checkerboard_image, noise_image, step_image

SQUARE = np.array([[0, 0], [100, 0], [0, 100], [100, 100]], dtype=np.float64)


def _corners(width: int = 100, height: int = 100) -> PointSet:
    ps = PointSet()
    add_corners(ps, width, height)
    return ps


class TestTriangulate:
    def test_four_corners_two_triangles(self):
        tris = triangulate(SQUARE)
        assert tris.shape == (2, 3)
        _, _, areas = triangle_metrics(SQUARE, tris)
        assert areas.sum() == pytest.approx(10000.0)

    def test_indices_reference_points(self):
        pts = np.array([[0, 0], [10, 0], [5, 8], [5, 3], [0, 10], [10, 10]], dtype=np.float64)
        tris = triangulate(pts)
        assert tris.min() >= 0
        assert tris.max() < len(pts)

    def test_too_few_points(self):
        with pytest.raises(GeometryError):
            triangulate(np.array([[0, 0], [1, 1]], dtype=np.float64))

    def test_single_point(self):
        with pytest.raises(GeometryError):
            triangulate(np.array([[0, 0]], dtype=np.float64))

    def test_collinear_points(self):
        pts = np.array([[0, 0], [1, 1], [2, 2], [5, 5]], dtype=np.float64)
        with pytest.raises(GeometryError):
            triangulate(pts)

    def test_bad_shape(self):
        with pytest.raises(GeometryError):
            triangulate(np.zeros((4, 3)))

    def test_geometry_error_is_value_error(self):
        assert issubclass(GeometryError, ValueError)


class TestMetrics:
    def test_right_triangle(self):
        pts = np.array([[0, 0], [3, 0], [0, 4]], dtype=np.float64)
        edges, longest, areas = triangle_metrics(pts, np.array([[0, 1, 2]]))
        # Edge k is opposite vertex k
        np.testing.assert_allclose(edges[0], [5.0, 4.0, 3.0])
        assert longest[0] == 0
        assert areas[0] == pytest.approx(6.0)

    def test_degenerate_area_clamped(self):
        pts = np.array([[0, 0], [1, 0], [2, 0]], dtype=np.float64)
        _, _, areas = triangle_metrics(pts, np.array([[0, 1, 2]]))
        assert areas[0] == 0.0

    def test_classify_sliver_and_oversized(self):
        config = PipelineConfig()
        pts = np.array([[0, 0], [100, 0], [98, 2], [0, 0], [90, 0], [0, 90]], dtype=np.float64)
        tris = np.array([[0, 1, 2], [3, 4, 5]])
        edges, _, areas = triangle_metrics(pts, tris)
        sliver, oversized = classify_triangles(edges, areas, 100, 100, config)
        assert sliver.tolist() == [True, False]
        assert oversized.tolist() == [False, True]

    def test_small_sliver_ignored(self):
        pts = np.array([[0, 0], [20, 0], [10, 0.5]], dtype=np.float64)
        edges, _, areas = triangle_metrics(pts, np.array([[0, 1, 2]]))
        sliver, _ = classify_triangles(edges, areas, 100, 100, PipelineConfig())
        assert not sliver[0]


class TestBuildMesh:
    def test_corners_refinement_history(self):
        result = build_mesh(_corners(), 100, 100)
        history = result.history
        assert [s.triangles for s in history] == [2, 4, 8]
        assert [s.max_area for s in history] == pytest.approx([5000.0, 2500.0, 1250.0])
        assert [s.inserted for s in history] == [1, 4, 0]
        assert result.mesh.num_points == 9
        assert result.mesh.num_triangles == 8

    def test_refinement_never_increases_worst_triangle(self):
        result = build_mesh(_corners(), 100, 100)
        max_areas = [s.max_area for s in result.history]
        bad_areas = [s.bad_area for s in result.history]
        assert all(b <= a for a, b in zip(max_areas, max_areas[1:]))
        assert all(b <= a for a, b in zip(bad_areas, bad_areas[1:]))

    def test_refined_points_tagged_in_point_set(self):
        ps = _corners()
        build_mesh(ps, 100, 100)
        assert ps.count(CORNER) == 4
        assert ps.count(REFINE) == 5
        assert (50.0, 50.0) in ps

    def test_no_passes_leaves_base_triangulation(self):
        result = build_mesh(_corners(), 100, 100, PipelineConfig(refinement_passes=0))
        assert result.mesh.num_triangles == 2
        assert len(result.history) == 1

    def test_stops_when_nothing_inserted(self):
        config = PipelineConfig(oversize_fraction=1.0)
        result = build_mesh(_corners(), 100, 100, config)
        assert len(result.history) == 1
        assert result.history[0].inserted == 0
        assert result.mesh.num_triangles == 2

    def test_mesh_is_frozen(self):
        mesh = build_mesh(_corners(), 100, 100).mesh
        assert mesh.frozen
        with pytest.raises(ValueError):
            mesh.points[0, 0] = 1.0

    def test_triangle_points(self):
        mesh = build_mesh(_corners(), 100, 100, PipelineConfig(refinement_passes=0)).mesh
        tri = mesh.triangle_points(0)
        assert len(tri) == 3
        assert all(isinstance(c, float) for p in tri for c in p)

    def test_degenerate_point_set_raises(self):
        ps = PointSet()
        ps.add(0, 0, CORNER)
        with pytest.raises(GeometryError):
            build_mesh(ps, 0, 0)


class TestRefinedPointsUnique:
    def test_mesh_points_have_unique_keys(self):
        for pixels in (step_image(), checkerboard_image(), noise_image(seed=5)):
            height, width = pixels.shape[:2]
            for quality in (0.2, 0.6, 1.0):
                ps = sample_points(build_edge_field(pixels), pixels, quality, np.random.default_rng(9))
                mesh = build_mesh(ps, width, height).mesh
                keys = {point_key(x, y) for x, y in mesh.points}
                assert len(keys) == mesh.num_points
                assert mesh.num_points == len(ps)
