"""Feature point sampler — border lattice, salient edge points and sparse fill.

Point density follows an adaptive quadtree over the edge field: cells whose
strongest gradient is salient are quartered (up to ``max_subdivision_depth``
levels) so strong edges get dense points while flat regions stay coarse.
No tree is retained; the subdivision is a plain recursion over rectangles.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterator
from dataclasses import dataclass, field

import numpy as np
from numpy.typing import NDArray

from polyart.engine.config import PipelineConfig

logger = logging.getLogger(__name__)

# Point origin tags
CORNER = "corner"
BORDER = "border"
SALIENT = "salient"
EDGE = "edge"
FILL = "fill"
RANDOM = "random"
REFINE = "refine"


def point_key(x: float, y: float) -> str:
    """Identity key: coordinates at one decimal of precision."""
    return f"{x:.1f},{y:.1f}"


@dataclass
class PointSet:
    """Insertion-ordered set of unique points, deduplicated by ``point_key``."""

    points: list[tuple[float, float]] = field(default_factory=list)
    kinds: list[str] = field(default_factory=list)
    _keys: set[str] = field(default_factory=set, repr=False)

    def add(self, x: float, y: float, kind: str) -> bool:
        """Add a point; returns False if its key is already present."""
        key = point_key(x, y)
        if key in self._keys:
            return False
        self._keys.add(key)
        self.points.append((float(x), float(y)))
        self.kinds.append(kind)
        return True

    def __len__(self) -> int:
        return len(self.points)

    def __iter__(self) -> Iterator[tuple[float, float]]:
        return iter(self.points)

    def __contains__(self, point: object) -> bool:
        if not isinstance(point, tuple) or len(point) != 2:
            return False
        return point_key(*point) in self._keys

    def as_array(self) -> NDArray[np.float64]:
        if not self.points:
            return np.empty((0, 2), dtype=np.float64)
        return np.asarray(self.points, dtype=np.float64)

    def count(self, kind: str) -> int:
        return sum(1 for k in self.kinds if k == kind)


def add_corners(ps: PointSet, width: int, height: int) -> None:
    ps.add(0, 0, CORNER)
    ps.add(width, 0, CORNER)
    ps.add(0, height, CORNER)
    ps.add(width, height, CORNER)


def add_border_lattice(ps: PointSet, width: int, height: int, spacing: int) -> None:
    """Regular points every ``spacing`` pixels along all four edges."""
    for x in range(0, width + 1, spacing):
        ps.add(x, 0, BORDER)
        ps.add(x, height, BORDER)
    for y in range(0, height + 1, spacing):
        ps.add(0, y, BORDER)
        ps.add(width, y, BORDER)


@dataclass
class _CellSampler:
    """Recursive cell visitor; holds the per-run thresholds."""

    edge_field: NDArray[np.float32]
    width: int
    height: int
    edge_threshold: float
    salient_threshold: float
    config: PipelineConfig
    rng: np.random.Generator
    points: PointSet

    def visit(self, x0: int, y0: int, x1: int, y1: int, depth: int) -> None:
        # Only interior pixels carry gradient values
        ix0, iy0 = max(x0, 1), max(y0, 1)
        ix1, iy1 = min(x1, self.width - 1), min(y1, self.height - 1)
        if ix1 <= ix0 or iy1 <= iy0:
            return

        window = self.edge_field[iy0:iy1, ix0:ix1]
        flat_idx = int(np.argmax(window))
        row, col = divmod(flat_idx, window.shape[1])
        peak = float(window[row, col])

        size = min(x1 - x0, y1 - y0)
        half = size // 2
        if (
            peak > self.salient_threshold
            and depth < self.config.max_subdivision_depth
            and half >= self.config.min_cell_size
        ):
            mx = x0 + (x1 - x0) // 2
            my = y0 + (y1 - y0) // 2
            self.visit(x0, y0, mx, my, depth + 1)
            self.visit(mx, y0, x1, my, depth + 1)
            self.visit(x0, my, mx, y1, depth + 1)
            self.visit(mx, my, x1, y1, depth + 1)
            return

        if peak > self.edge_threshold:
            kind = SALIENT if peak > self.salient_threshold else EDGE
            self.points.add(ix0 + col, iy0 + row, kind)
            return

        if depth == 0 and self.rng.random() < self.config.fill_probability:
            spread = self.config.fill_jitter * size
            cx = (x0 + x1) / 2 + self.rng.uniform(-spread, spread)
            cy = (y0 + y1) / 2 + self.rng.uniform(-spread, spread)
            self.points.add(
                min(max(cx, 0.0), float(self.width)),
                min(max(cy, 0.0), float(self.height)),
                FILL,
            )


def random_fill_count(width: int, height: int, q: float, config: PipelineConfig) -> int:
    """Quality- and area-scaled budget of uniformly random points."""
    area_scale = max(config.area_scale_min, (width * height) / config.area_scale_reference)
    return int(math.floor(config.random_fill_base * q * area_scale))


def sample_points(
    edge_field: NDArray[np.float32],
    pixels: NDArray[np.uint8],
    quality: float,
    rng: np.random.Generator,
    config: PipelineConfig | None = None,
) -> PointSet:
    """Select the point set fed to triangulation.

    Args:
        edge_field: Edge field, same height/width as ``pixels``.
        pixels: Source RGBA buffer; defines the image extent.
        quality: Normalized density control in [0, 1].
        rng: Random source for fill jitter; seed it for reproducible output.
        config: Tuned constants.

    Returns:
        Unique points, corners first. A 0×0 image collapses to one point.
    """
    config = config or PipelineConfig()
    q = min(max(float(quality), 0.0), 1.0)
    height, width = pixels.shape[:2]
    if edge_field.shape != (height, width):
        raise ValueError(f"Edge field shape {edge_field.shape} != image shape {(height, width)}")

    ps = PointSet()
    add_corners(ps, width, height)

    if q <= 0:
        return ps

    add_border_lattice(ps, width, height, config.border_spacing(q))

    sampler = _CellSampler(
        edge_field=edge_field,
        width=width,
        height=height,
        edge_threshold=config.edge_threshold(q),
        salient_threshold=config.salient_threshold(q),
        config=config,
        rng=rng,
        points=ps,
    )
    cell = config.cell_size(q)
    for y in range(0, height, cell):
        for x in range(0, width, cell):
            sampler.visit(x, y, min(x + cell, width), min(y + cell, height), 0)

    n_random = random_fill_count(width, height, q, config)
    if n_random > 0 and width > 0 and height > 0:
        coords = rng.random((n_random, 2)) * np.array([width, height], dtype=np.float64)
        for x, y in coords:
            ps.add(float(x), float(y), RANDOM)

    logger.debug(
        "Sampled %d points (q=%.2f): %d salient, %d edge, %d fill, %d random",
        len(ps), q, ps.count(SALIENT), ps.count(EDGE), ps.count(FILL), ps.count(RANDOM),
    )
    return ps
