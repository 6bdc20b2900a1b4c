"""Tests for the Pillow drawing surface."""

from __future__ import annotations

import base64

import numpy as np
import pytest

from polyart.engine.animation import DrawImage, DrawPoints, FillRect, FillTriangles, StrokeTriangles
from polyart.engine.colors import ColoredTriangle
from polyart.engine.errors import ResourceUnavailable
from polyart.engine.imaging import load_image
from polyart.engine.surface import Surface
from tests.conftest import solid_image

FULL = ColoredTriangle(points=((0.0, 0.0), (20.0, 0.0), (0.0, 20.0)), color=(10, 200, 30), center=(6, 6))


def test_zero_size_unavailable():
    with pytest.raises(ResourceUnavailable):
        Surface(0, 10)
    with pytest.raises(ResourceUnavailable):
        Surface(10, -1)


def test_fill_rect():
    arr = Surface(4, 3).paint([FillRect((255, 255, 255, 255))]).to_array()
    assert arr.shape == (3, 4, 4)
    assert (arr == 255).all()


def test_draw_image_opaque():
    src = solid_image(5, 5, (9, 8, 7))
    arr = Surface(5, 5).paint([FillRect((0, 0, 0, 255)), DrawImage(src)]).to_array()
    assert tuple(arr[2, 2]) == (9, 8, 7, 255)


def test_draw_image_alpha_blends():
    src = solid_image(5, 5, (200, 200, 200))
    arr = Surface(5, 5).paint([FillRect((0, 0, 0, 255)), DrawImage(src, alpha=0.5)]).to_array()
    assert 90 <= arr[2, 2, 0] <= 110


def test_zero_alpha_image_is_noop():
    src = solid_image(5, 5, (200, 200, 200))
    arr = Surface(5, 5).paint([FillRect((0, 0, 0, 255)), DrawImage(src, alpha=0.0)]).to_array()
    assert arr[2, 2, 0] == 0


def test_fill_triangles_uses_own_color():
    arr = Surface(20, 20).paint([FillRect((0, 0, 0, 255)), FillTriangles([FULL])]).to_array()
    assert tuple(arr[3, 3, :3]) == (10, 200, 30)
    assert tuple(arr[18, 18, :3]) == (0, 0, 0)


def test_stroke_leaves_interior():
    cmds = [FillRect((0, 0, 0, 255)), StrokeTriangles([FULL], (255, 255, 255, 255))]
    arr = Surface(20, 20).paint(cmds).to_array()
    assert arr[0, 5, 0] == 255
    assert arr[5, 5, 0] == 0


def test_shared_edges_accumulate_alpha():
    a = ColoredTriangle(points=((0.0, 0.0), (20.0, 0.0), (0.0, 20.0)), color=(0, 0, 0), center=(6, 6))
    b = ColoredTriangle(points=((20.0, 0.0), (20.0, 20.0), (0.0, 20.0)), color=(0, 0, 0), center=(13, 13))
    cmds = [FillRect((0, 0, 0, 255)), StrokeTriangles([a, b], (255, 255, 255, 128))]
    arr = Surface(21, 21).paint(cmds).to_array()
    # Hypotenuse is stroked once per triangle, the top edge only once
    assert 0 < arr[0, 10, 0] < arr[10, 10, 0]
    assert arr[5, 5, 0] == 0


def test_draw_points():
    pts = np.array([[5.0, 5.0]])
    arr = Surface(10, 10).paint([FillRect((0, 0, 0, 255)), DrawPoints(pts, 1.0, (0, 255, 204, 255))]).to_array()
    assert tuple(arr[5, 5, :3]) == (0, 255, 204)
    assert arr[0, 0, 1] == 0


def test_unknown_command():
    with pytest.raises(TypeError):
        Surface(2, 2).paint(["not a command"])


def test_png_and_data_uri():
    surface = Surface(6, 4).paint([FillRect((1, 2, 3, 255))])
    png = surface.to_png()
    assert png.startswith(b"\x89PNG")
    uri = surface.to_data_uri()
    assert uri.startswith("data:image/png;base64,")
    img = load_image(base64.b64decode(uri.split(",", 1)[1]))
    assert img.size == (6, 4)
