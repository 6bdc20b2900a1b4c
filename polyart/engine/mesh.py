"""Mesh builder — Delaunay triangulation plus longest-edge refinement passes.

Each pass bisects the longest edge of every sliver or oversized triangle and
re-triangulates the whole point set from scratch.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import numpy as np
from numpy.typing import NDArray
from scipy.spatial import Delaunay, QhullError

from polyart.engine.config import PipelineConfig
from polyart.engine.errors import GeometryError
from polyart.engine.sampling import REFINE, PointSet

logger = logging.getLogger(__name__)

# Area below which a simplex is treated as degenerate (pixels²)
_DEGENERATE_AREA = 1e-9


@dataclass
class Mesh:
    """Unique points plus triangle index triples into ``points``."""

    points: NDArray[np.float64]
    triangles: NDArray[np.int64]
    frozen: bool = False

    def freeze(self) -> Mesh:
        self.points.setflags(write=False)
        self.triangles.setflags(write=False)
        self.frozen = True
        return self

    @property
    def num_points(self) -> int:
        return len(self.points)

    @property
    def num_triangles(self) -> int:
        return len(self.triangles)

    def triangle_points(self, i: int) -> tuple[tuple[float, float], ...]:
        a, b, c = self.triangles[i]
        return tuple((float(p[0]), float(p[1])) for p in self.points[[a, b, c]])


@dataclass
class RefinementStats:
    """Quality census of one triangulation."""

    triangles: int
    slivers: int
    oversized: int
    bad_area: float
    max_area: float
    inserted: int = 0


@dataclass
class MeshResult:
    mesh: Mesh
    history: list[RefinementStats] = field(default_factory=list)


def triangulate(points: NDArray[np.float64]) -> NDArray[np.int64]:
    """Planar Delaunay triangulation; returns (M, 3) vertex indices.

    Raises:
        GeometryError: fewer than 3 points, all points collinear, or Qhull
            rejects the input.
    """
    pts = np.asarray(points, dtype=np.float64)
    if pts.ndim != 2 or pts.shape[1] != 2:
        raise GeometryError(f"Expected (N, 2) points, got shape {pts.shape}")
    if len(pts) < 3:
        raise GeometryError(f"Need at least 3 points to triangulate, got {len(pts)}")

    centered = pts - pts.mean(axis=0)
    if np.linalg.matrix_rank(centered) < 2:
        raise GeometryError("All points are collinear")

    try:
        tri = Delaunay(pts)
    except QhullError as e:
        raise GeometryError(f"Delaunay triangulation failed: {e}") from e

    simplices = tri.simplices.astype(np.int64)
    _, _, areas = triangle_metrics(pts, simplices)
    keep = areas > _DEGENERATE_AREA
    if not np.any(keep):
        raise GeometryError("Triangulation produced only degenerate triangles")
    return simplices[keep]


def triangle_metrics(
    points: NDArray[np.float64],
    triangles: NDArray[np.int64],
) -> tuple[NDArray[np.float64], NDArray[np.int64], NDArray[np.float64]]:
    """Edge lengths, longest-edge index and Heron area for every triangle.

    Edge ``k`` is the edge opposite vertex ``k``. Area is clamped to ≥ 0
    against floating-point underflow in Heron's formula.
    """
    if len(triangles) == 0:
        return np.empty((0, 3)), np.empty(0, dtype=np.int64), np.empty(0)
    a = points[triangles[:, 0]]
    b = points[triangles[:, 1]]
    c = points[triangles[:, 2]]
    edges = np.stack([
        np.linalg.norm(b - c, axis=1),
        np.linalg.norm(c - a, axis=1),
        np.linalg.norm(a - b, axis=1),
    ], axis=1)
    s = edges.sum(axis=1) / 2.0
    product = s * (s - edges[:, 0]) * (s - edges[:, 1]) * (s - edges[:, 2])
    areas = np.sqrt(np.maximum(product, 0.0))
    return edges, np.argmax(edges, axis=1), areas


def classify_triangles(
    edges: NDArray[np.float64],
    areas: NDArray[np.float64],
    width: int,
    height: int,
    config: PipelineConfig,
) -> tuple[NDArray[np.bool_], NDArray[np.bool_]]:
    """Return (sliver, oversized) masks."""
    longest = edges.max(axis=1) if len(edges) else np.empty(0)
    shortest = edges.min(axis=1) if len(edges) else np.empty(0)
    ratio = longest / np.maximum(1.0, shortest)
    sliver = (ratio > config.sliver_ratio) & (areas > config.sliver_min_area)
    oversized = areas > config.oversize_fraction * width * height
    return sliver, oversized


def _census(
    points: NDArray[np.float64],
    triangles: NDArray[np.int64],
    width: int,
    height: int,
    config: PipelineConfig,
) -> tuple[RefinementStats, list[tuple[float, float]]]:
    edges, longest_idx, areas = triangle_metrics(points, triangles)
    sliver, oversized = classify_triangles(edges, areas, width, height, config)
    bad = sliver | oversized

    midpoints: list[tuple[float, float]] = []
    for i in np.flatnonzero(bad):
        k = int(longest_idx[i])
        # Edge k joins the two vertices other than k
        p = points[triangles[i, (k + 1) % 3]]
        q = points[triangles[i, (k + 2) % 3]]
        midpoints.append((float((p[0] + q[0]) / 2), float((p[1] + q[1]) / 2)))

    stats = RefinementStats(
        triangles=len(triangles),
        slivers=int(np.count_nonzero(sliver)),
        oversized=int(np.count_nonzero(oversized)),
        bad_area=float(areas[bad].sum()) if len(areas) else 0.0,
        max_area=float(areas.max()) if len(areas) else 0.0,
    )
    return stats, midpoints


def build_mesh(
    point_set: PointSet,
    width: int,
    height: int,
    config: PipelineConfig | None = None,
) -> MeshResult:
    """Triangulate ``point_set`` and run the refinement passes; result is frozen.

    Midpoints are inserted through ``point_set`` so they obey the same
    deduplication key. A pass that inserts nothing ends refinement early.
    """
    config = config or PipelineConfig()
    points = point_set.as_array()
    triangles = triangulate(points)
    history: list[RefinementStats] = []

    exhausted = True
    for pass_idx in range(config.refinement_passes):
        stats, midpoints = _census(points, triangles, width, height, config)
        stats.inserted = sum(1 for x, y in midpoints if point_set.add(x, y, REFINE))
        history.append(stats)
        logger.debug(
            "Refinement pass %d: %d triangles, %d slivers, %d oversized, %d inserted",
            pass_idx, stats.triangles, stats.slivers, stats.oversized, stats.inserted,
        )
        if stats.inserted == 0:
            exhausted = False
            break
        points = point_set.as_array()
        triangles = triangulate(points)

    if exhausted:
        final, _ = _census(points, triangles, width, height, config)
        history.append(final)

    mesh = Mesh(points=points, triangles=triangles).freeze()
    return MeshResult(mesh=mesh, history=history)

