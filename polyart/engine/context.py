"""RenderSession — the single run object flowing through all pipeline stages.

One session = one source image at one quality. Replacing the image or the
quality means building a new session; the old one is cancelled and dropped.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np
from numpy.typing import NDArray
from PIL import Image

from polyart.engine.animation import AnimationSequencer, AnimationState
from polyart.engine.colors import ColoredTriangle
from polyart.engine.config import PipelineConfig
from polyart.engine.imaging import load_image, pixels_to_image, prepare_pixels
from polyart.engine.mesh import Mesh, RefinementStats
from polyart.engine.sampling import PointSet
from polyart.engine.surface import Surface

# User-facing quality scale
QUALITY_MAX = 100

STATUS_PROCESSING = "Processing image"
STATUS_EDGES = "Extracting edges"
STATUS_SAMPLING = "Sampling feature points"
STATUS_TRIANGULATING = "Triangulating"
STATUS_COLORING = "Sampling colors"
STATUS_READY = "Ready"
STATUS_ERROR = "Error: triangulation failed, please upload the image again"


@dataclass
class RenderSession:
    """Image, parameters and every artifact produced for it."""

    image: Image.Image
    pixels: NDArray[np.uint8]
    quality: int = 50
    speed: float = 1.0
    seed: int | None = None
    config: PipelineConfig = field(default_factory=PipelineConfig)
    rng: np.random.Generator = field(init=False)

    # --- Stage outputs ---
    blurred: NDArray[np.uint8] | None = None
    edge_field: NDArray[np.float32] | None = None
    point_set: PointSet | None = None
    mesh: Mesh | None = None
    mesh_history: list[RefinementStats] = field(default_factory=list)
    triangles: list[ColoredTriangle] = field(default_factory=list)
    sequencer: AnimationSequencer | None = None
    surface: Surface | None = None

    # --- Run metadata ---
    status: str = STATUS_PROCESSING
    completed_stages: list[str] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)
    cancelled: bool = False

    def __post_init__(self) -> None:
        if not 0 <= self.quality <= QUALITY_MAX:
            raise ValueError(f"Quality must be in [0, {QUALITY_MAX}], got {self.quality}")
        if not self.speed > 0:
            raise ValueError(f"Speed must be > 0, got {self.speed}")
        self.rng = np.random.default_rng(self.seed)

    @classmethod
    def from_image(
        cls,
        image: Image.Image,
        quality: int = 50,
        speed: float = 1.0,
        seed: int | None = None,
        config: PipelineConfig | None = None,
    ) -> RenderSession:
        """Fit the image to the output surface and open a session on it."""
        config = config or PipelineConfig()
        resized, pixels = prepare_pixels(image, config.max_dimension)
        return cls(image=resized, pixels=pixels, quality=quality, speed=speed, seed=seed, config=config)

    @classmethod
    def from_bytes(cls, data: bytes, **kwargs) -> RenderSession:
        return cls.from_image(load_image(data), **kwargs)

    @classmethod
    def from_pixels(cls, pixels: NDArray[np.uint8], **kwargs) -> RenderSession:
        return cls.from_image(pixels_to_image(pixels), **kwargs)

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def q(self) -> float:
        """Quality normalized to [0, 1]."""
        return self.quality / QUALITY_MAX

    @property
    def failed(self) -> bool:
        return bool(self.errors)

    @property
    def animation_state(self) -> AnimationState | None:
        return self.sequencer.state if self.sequencer is not None else None

    def cancel(self) -> None:
        """Invalidate the run; pending stages and frames stop touching it."""
        self.cancelled = True
        self.sequencer = None
        self.surface = None
