"""Shared test fixtures."""

from __future__ import annotations

import base64
import io

import numpy as np
import pytest
from PIL import Image


# Synthetic images (HxWx4 uint8)

SOLID_COLOR = (200, 60, 30)


def solid_image(width: int = 100, height: int = 100, color: tuple[int, int, int] = SOLID_COLOR) -> np.ndarray:
    pixels = np.zeros((height, width, 4), dtype=np.uint8)
    pixels[..., :3] = color
    pixels[..., 3] = 255
    return pixels


def step_image(width: int = 100, height: int = 100) -> np.ndarray:
    """Black left half, white right half; the step sits between x=49 and x=50."""
    pixels = solid_image(width, height, (0, 0, 0))
    pixels[:, width // 2:, :3] = 255
    return pixels


def checkerboard_image(width: int = 100, height: int = 100) -> np.ndarray:
    """2×2 checkerboard: black top-left/bottom-right, white elsewhere."""
    pixels = solid_image(width, height, (255, 255, 255))
    pixels[: height // 2, : width // 2, :3] = 0
    pixels[height // 2:, width // 2:, :3] = 0
    return pixels


def noise_image(width: int = 100, height: int = 100, seed: int = 0) -> np.ndarray:
    """Opaque uniform RGB noise; edges everywhere."""
    pixels = np.random.default_rng(seed).integers(0, 256, size=(height, width, 4), dtype=np.uint8)
    pixels[..., 3] = 255
    return pixels


def to_png_bytes(pixels: np.ndarray) -> bytes:
    buf = io.BytesIO()
    Image.fromarray(pixels).save(buf, format="PNG")
    return buf.getvalue()


def to_data_uri(pixels: np.ndarray) -> str:
    return "data:image/png;base64," + base64.b64encode(to_png_bytes(pixels)).decode("ascii")


@pytest.fixture
def solid_pixels() -> np.ndarray:
    return solid_image()


@pytest.fixture
def step_pixels() -> np.ndarray:
    return step_image()


@pytest.fixture
def checkerboard_pixels() -> np.ndarray:
    return checkerboard_image()


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(1234)
