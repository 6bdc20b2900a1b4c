"""Image decoding and resizing helpers. No engine imports."""

from __future__ import annotations

import base64
import binascii
import io
import math

import numpy as np
from numpy.typing import NDArray
from PIL import Image, ImageFilter, UnidentifiedImageError

_DATA_URI_PREFIX = "data:"


def fit_dimensions(width: float, height: float, max_dimension: int = 800) -> tuple[int, int]:
    """Downscale (width, height) so neither side exceeds max_dimension.

    Width is capped first, then height; aspect ratio is preserved and the
    result is floored to integer pixels.
    """
    w = float(width)
    h = float(height)
    if w > max_dimension:
        h = max_dimension * h / w
        w = float(max_dimension)
    if h > max_dimension:
        w = max_dimension * w / h
        h = float(max_dimension)
    return int(math.floor(w)), int(math.floor(h))


def decode_data_uri(text: str) -> bytes:
    """Return raw bytes from a ``data:image/...;base64,`` URI or bare base64."""
    payload = text.strip()
    if payload.startswith(_DATA_URI_PREFIX):
        _, _, payload = payload.partition(",")
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Invalid base64 image payload: {e}") from e


def load_image(data: bytes) -> Image.Image:
    """Decode encoded image bytes into an RGBA Pillow image."""
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except (UnidentifiedImageError, OSError) as e:
        raise ValueError(f"Could not decode image: {e}") from e
    return img.convert("RGBA")


def prepare_pixels(image: Image.Image, max_dimension: int = 800) -> tuple[Image.Image, NDArray[np.uint8]]:
    """Resize to the output surface size and return (image, HxWx4 buffer)."""
    width, height = fit_dimensions(image.width, image.height, max_dimension)
    rgba = image.convert("RGBA")
    if (width, height) != rgba.size and width > 0 and height > 0:
        rgba = rgba.resize((width, height), Image.Resampling.BILINEAR)
    if width == 0 or height == 0:
        return rgba, np.zeros((height, width, 4), dtype=np.uint8)
    return rgba, np.asarray(rgba, dtype=np.uint8)


def blurred_pixels(image: Image.Image, radius: float) -> NDArray[np.uint8]:
    """Gaussian-smoothed RGBA buffer used to suppress texture noise."""
    smoothed = image.convert("RGBA").filter(ImageFilter.GaussianBlur(radius=radius))
    return np.asarray(smoothed, dtype=np.uint8)


def pixels_to_image(pixels: NDArray[np.uint8]) -> Image.Image:
    """Wrap an HxWx4 uint8 buffer as a Pillow RGBA image."""
    return Image.fromarray(np.ascontiguousarray(pixels, dtype=np.uint8))
