"""Color sampler — per-triangle median of five interior samples."""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from polyart.engine.mesh import Mesh

Point = tuple[float, float]


@dataclass(frozen=True)
class ColoredTriangle:
    """One mosaic tile: vertices, 8-bit RGB color and integer centroid."""

    points: tuple[Point, Point, Point]
    color: tuple[int, int, int]
    center: tuple[int, int]

    @property
    def css(self) -> str:
        return rgb_to_css(self.color)


def rgb_to_css(rgb: tuple[int, int, int]) -> str:
    r, g, b = rgb
    return f"rgb({r},{g},{b})"


def sample_locations(p1: Point, p2: Point, p3: Point) -> list[Point]:
    """Centroid, three vertex-weighted blends, centroid again (double weight)."""
    cx = (p1[0] + p2[0] + p3[0]) / 3
    cy = (p1[1] + p2[1] + p3[1]) / 3
    return [
        (cx, cy),
        ((2 * p1[0] + p2[0] + p3[0]) / 4, (2 * p1[1] + p2[1] + p3[1]) / 4),
        ((p1[0] + 2 * p2[0] + p3[0]) / 4, (p1[1] + 2 * p2[1] + p3[1]) / 4),
        ((p1[0] + p2[0] + 2 * p3[0]) / 4, (p1[1] + p2[1] + 2 * p3[1]) / 4),
        (cx, cy),
    ]


def sample_triangle_color(
    p1: Point,
    p2: Point,
    p3: Point,
    pixels: NDArray[np.uint8],
) -> tuple[tuple[int, int, int], tuple[int, int]]:
    """Return (median RGB, floored centroid) for one triangle.

    Sample coordinates are floored and clamped into the buffer, so no
    triangle can read outside it.
    """
    height, width = pixels.shape[:2]
    if width == 0 or height == 0:
        raise ValueError("Cannot sample colors from an empty pixel buffer")

    samples = sample_locations(p1, p2, p3)
    rs: list[int] = []
    gs: list[int] = []
    bs: list[int] = []
    for sx, sy in samples:
        px = min(max(int(math.floor(sx)), 0), width - 1)
        py = min(max(int(math.floor(sy)), 0), height - 1)
        r, g, b = pixels[py, px, :3]
        rs.append(int(r))
        gs.append(int(g))
        bs.append(int(b))

    rs.sort()
    gs.sort()
    bs.sort()
    cx, cy = samples[0]
    return (rs[2], gs[2], bs[2]), (int(math.floor(cx)), int(math.floor(cy)))


def color_mesh(mesh: Mesh, pixels: NDArray[np.uint8]) -> list[ColoredTriangle]:
    """One ColoredTriangle per mesh triangle, in mesh order."""
    result: list[ColoredTriangle] = []
    for i in range(mesh.num_triangles):
        p1, p2, p3 = mesh.triangle_points(i)
        color, center = sample_triangle_color(p1, p2, p3, pixels)
        result.append(ColoredTriangle(points=(p1, p2, p3), color=color, center=center))
    return result


def shuffle_triangles(
    triangles: list[ColoredTriangle],
    rng: np.random.Generator,
) -> list[ColoredTriangle]:
    """Shuffled copy so the fill reveal pops in place instead of sweeping."""
    order = rng.permutation(len(triangles))
    return [triangles[i] for i in order]
