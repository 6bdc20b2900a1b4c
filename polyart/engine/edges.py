"""EdgeField builder — Sobel gradient magnitude over BT.601 luma.

The field has one value per pixel. Border rows and columns stay at zero:
the 3×3 kernel is undefined there and they are never sampling candidates.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray
from scipy import ndimage

# ITU-R BT.601 luma weights
_LUMA_R = 0.299
_LUMA_G = 0.587
_LUMA_B = 0.114

# Smallest extent with at least one interior pixel
_MIN_EXTENT = 3


def luma(pixels: NDArray[np.uint8]) -> NDArray[np.float32]:
    """Per-pixel luma of an HxWx(3|4) buffer."""
    rgb = pixels[..., :3].astype(np.float32)
    return _LUMA_R * rgb[..., 0] + _LUMA_G * rgb[..., 1] + _LUMA_B * rgb[..., 2]


def build_edge_field(
    pixels: NDArray[np.uint8],
    blurred: NDArray[np.uint8] | None = None,
) -> NDArray[np.float32]:
    """Gradient magnitude sqrt(gx² + gy²) for every interior pixel.

    If ``blurred`` is given the gradient is taken from the smoothed buffer,
    which must have the same shape as ``pixels``. The returned array is
    read-only.
    """
    source = pixels if blurred is None else blurred
    if blurred is not None and blurred.shape != pixels.shape:
        raise ValueError(f"Blurred buffer shape {blurred.shape} != {pixels.shape}")

    height, width = source.shape[:2]
    field = np.zeros((height, width), dtype=np.float32)

    if height >= _MIN_EXTENT and width >= _MIN_EXTENT:
        gray = luma(source)
        gx = ndimage.sobel(gray, axis=1)
        gy = ndimage.sobel(gray, axis=0)
        magnitude = np.hypot(gx, gy)
        field[1:-1, 1:-1] = magnitude[1:-1, 1:-1]

    field.setflags(write=False)
    return field


def edge_field_to_image(field: NDArray[np.float32]) -> NDArray[np.uint8]:
    """Grayscale RGBA visualization, each channel = min(255, magnitude)."""
    gray = np.minimum(255.0, field).astype(np.uint8)
    rgba = np.empty(field.shape + (4,), dtype=np.uint8)
    rgba[..., 0] = gray
    rgba[..., 1] = gray
    rgba[..., 2] = gray
    rgba[..., 3] = 255
    return rgba


def count_edge_pixels(field: NDArray[np.float32], threshold: float) -> int:
    return int(np.count_nonzero(field > threshold))
