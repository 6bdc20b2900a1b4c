"""Pillow-backed drawable surface that executes sequencer draw commands."""

from __future__ import annotations

import base64
import io
from collections.abc import Iterable, Sequence

import numpy as np
from numpy.typing import NDArray
from PIL import Image, ImageDraw

from polyart.engine.animation import (
    DrawCommand,
    DrawImage,
    DrawPoints,
    FillRect,
    FillTriangles,
    StrokeTriangles,
)
from polyart.engine.colors import ColoredTriangle
from polyart.engine.errors import ResourceUnavailable


def _line_width(width: float) -> int:
    # Pillow strokes are whole pixels
    return max(1, int(round(width)))


class Surface:
    """Fixed-size RGBA raster the animation paints onto."""

    def __init__(self, width: int, height: int) -> None:
        if width <= 0 or height <= 0:
            raise ResourceUnavailable(f"Cannot allocate a {width}x{height} surface")
        self.width = int(width)
        self.height = int(height)
        self.image = Image.new("RGBA", (self.width, self.height), (0, 0, 0, 0))

    @property
    def size(self) -> tuple[int, int]:
        return (self.width, self.height)

    def paint(self, commands: Iterable[DrawCommand]) -> Surface:
        """Execute draw commands in order."""
        for cmd in commands:
            if isinstance(cmd, FillRect):
                self._composite(Image.new("RGBA", self.size, cmd.color))
            elif isinstance(cmd, DrawImage):
                self._draw_image(cmd.pixels, cmd.alpha)
            elif isinstance(cmd, DrawPoints):
                self._draw_points(cmd.points, cmd.radius, cmd.color)
            elif isinstance(cmd, StrokeTriangles):
                self._stroke(cmd.triangles, cmd.color, cmd.width)
            elif isinstance(cmd, FillTriangles):
                self._fill(cmd.triangles, cmd.outline, cmd.width)
            else:
                raise TypeError(f"Unknown draw command: {type(cmd).__name__}")
        return self

    def _composite(self, layer: Image.Image) -> None:
        self.image = Image.alpha_composite(self.image, layer)

    def _overlay(self) -> tuple[Image.Image, ImageDraw.ImageDraw]:
        layer = Image.new("RGBA", self.size, (0, 0, 0, 0))
        return layer, ImageDraw.Draw(layer)

    def _draw_image(self, pixels: NDArray[np.uint8], alpha: float) -> None:
        if alpha <= 0:
            return
        rgba = np.array(pixels, dtype=np.uint8, copy=True)
        if alpha < 1:
            rgba[..., 3] = (rgba[..., 3].astype(np.float32) * alpha).astype(np.uint8)
        layer = Image.fromarray(rgba)
        if layer.size != self.size:
            layer = layer.resize(self.size, Image.Resampling.BILINEAR)
        self._composite(layer)

    def _draw_points(
        self,
        points: NDArray[np.float64],
        radius: float,
        color: tuple[int, int, int, int],
    ) -> None:
        if len(points) == 0 or color[3] == 0:
            return
        layer, draw = self._overlay()
        for x, y in points:
            draw.ellipse((x - radius, y - radius, x + radius, y + radius), fill=color)
        self._composite(layer)

    def _stroke(
        self,
        triangles: Sequence[ColoredTriangle],
        color: tuple[int, int, int, int],
        width: float,
    ) -> None:
        """Outline triangles over the opaque colors beneath; alpha is left as is."""
        if not triangles or color[3] == 0:
            return
        # Each outline blends on its own, so shared edges accumulate alpha
        rgb = self.image.convert("RGB")
        draw = ImageDraw.Draw(rgb, "RGBA")
        w = _line_width(width)
        for tri in triangles:
            pts = list(tri.points)
            draw.line(pts + [pts[0]], fill=color, width=w)
        rgb.putalpha(self.image.getchannel("A"))
        self.image = rgb

    def _fill(self, triangles: Sequence[ColoredTriangle], outline: bool, width: float) -> None:
        if not triangles:
            return
        draw = ImageDraw.Draw(self.image)
        w = _line_width(width)
        for tri in triangles:
            color = tri.color + (255,)
            pts = list(tri.points)
            draw.polygon(pts, fill=color)
            if outline:
                draw.line(pts + [pts[0]], fill=color, width=w)

    def to_array(self) -> NDArray[np.uint8]:
        return np.asarray(self.image, dtype=np.uint8)

    def to_png(self) -> bytes:
        buf = io.BytesIO()
        self.image.save(buf, format="PNG")
        return buf.getvalue()

    def to_data_uri(self) -> str:
        return "data:image/png;base64," + base64.b64encode(self.to_png()).decode("ascii")
