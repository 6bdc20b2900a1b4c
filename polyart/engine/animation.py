"""Animation sequencer — replays the pipeline's artifacts as timed phases.

The sequencer is a pure state machine advanced by an external clock:
``tick(now_ms)`` updates the AnimationState and returns a Frame of draw
commands. It never sleeps or schedules anything itself, so tests drive it
with synthetic timestamps.

Phase order is fixed:
SOURCE_IMAGE → EDGE_VISUALIZATION → POINT_CLOUD → WIREFRAME → COLOR_FILL
→ EDGE_FADE_OUT → COMPLETE. COMPLETE is absorbing.
"""

from __future__ import annotations

import enum
import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass, field

import numpy as np
from numpy.typing import NDArray

from polyart.engine.colors import ColoredTriangle
from polyart.engine.config import PipelineConfig

logger = logging.getLogger(__name__)

RGBA = tuple[int, int, int, int]

_BLACK: RGBA = (0, 0, 0, 255)
_WHITE: RGBA = (255, 255, 255, 255)
_CYAN = (0, 255, 204)
_WIREFRAME: RGBA = (0, 255, 204, 77)  # 0.3 alpha
_EDGE_BACKDROP_ALPHA = 0.3
_POINT_RADIUS = 1.0
_FADING_POINT_RADIUS = 0.8
_FADING_POINT_ALPHA = 0.8
_HIGHLIGHT_ALPHA = 0.1
_LINE_WIDTH = 0.5


class Phase(str, enum.Enum):
    SOURCE_IMAGE = "source_image"
    EDGE_VISUALIZATION = "edge_visualization"
    POINT_CLOUD = "point_cloud"
    WIREFRAME = "wireframe"
    COLOR_FILL = "color_fill"
    EDGE_FADE_OUT = "edge_fade_out"
    COMPLETE = "complete"


PHASE_ORDER: tuple[Phase, ...] = tuple(Phase)

PHASE_LABELS: dict[Phase, str] = {
    Phase.SOURCE_IMAGE: "Source image",
    Phase.EDGE_VISUALIZATION: "Edge extraction (Sobel filter)",
    Phase.POINT_CLOUD: "Feature points",
    Phase.WIREFRAME: "Delaunay triangulation",
    Phase.COLOR_FILL: "Color sampling and fill",
    Phase.EDGE_FADE_OUT: "Final rendering",
    Phase.COMPLETE: "Complete",
}


def ease_out_cubic(progress: float) -> float:
    """Decelerating reveal curve 1 - (1 - p)³."""
    return 1.0 - (1.0 - progress) ** 3


def _alpha(value: float) -> int:
    return int(round(255 * min(max(value, 0.0), 1.0)))


# ---------------------------------------------------------------------------
# Draw commands
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FillRect:
    """Fill the whole surface with a color."""
    color: RGBA


@dataclass(frozen=True)
class DrawImage:
    """Composite an HxWx4 buffer over the surface at the given opacity."""
    pixels: NDArray[np.uint8]
    alpha: float = 1.0


@dataclass(frozen=True)
class DrawPoints:
    points: NDArray[np.float64]
    radius: float
    color: RGBA


@dataclass(frozen=True)
class StrokeTriangles:
    """Outline triangles with a single color."""
    triangles: Sequence[ColoredTriangle]
    color: RGBA
    width: float = _LINE_WIDTH


@dataclass(frozen=True)
class FillTriangles:
    """Fill triangles with their own colors, optionally outlined in the same color."""
    triangles: Sequence[ColoredTriangle]
    outline: bool = True
    width: float = _LINE_WIDTH


DrawCommand = FillRect | DrawImage | DrawPoints | StrokeTriangles | FillTriangles


# ---------------------------------------------------------------------------
# State
# ---------------------------------------------------------------------------

@dataclass
class AnimationScene:
    """Read-only artifacts the sequencer renders."""

    source: NDArray[np.uint8]
    edge_image: NDArray[np.uint8]
    points: NDArray[np.float64]
    triangles: Sequence[ColoredTriangle]

    @property
    def width(self) -> int:
        return int(self.source.shape[1])

    @property
    def height(self) -> int:
        return int(self.source.shape[0])


@dataclass
class AnimationState:
    phase: Phase = Phase.SOURCE_IMAGE
    progress: float = 0.0
    elapsed_ms: float = 0.0
    start_time: float | None = None
    visited: list[Phase] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return self.phase is Phase.COMPLETE


@dataclass(frozen=True)
class Frame:
    phase: Phase
    progress: float
    elapsed_ms: float
    label: str
    commands: tuple[DrawCommand, ...]
    transitions: tuple[Phase, ...] = ()
    request_next: bool = True


class AnimationSequencer:
    """Deterministic phase machine over one scene."""

    def __init__(
        self,
        scene: AnimationScene,
        speed: float = 1.0,
        config: PipelineConfig | None = None,
    ) -> None:
        if not speed > 0:
            raise ValueError(f"Animation speed must be > 0, got {speed}")
        self.scene = scene
        self.speed = speed
        self.config = config or PipelineConfig()
        self.state = AnimationState()
        self.durations: dict[Phase, float] = {
            phase: self.config.phase_durations_ms[phase.value] / speed
            for phase in PHASE_ORDER[:-1]
        }
        self._terminal: Frame | None = None

    @property
    def total_duration_ms(self) -> float:
        return sum(self.durations.values())

    def phase_at(self, elapsed_ms: float) -> tuple[Phase, float]:
        """Active phase and its clamped local progress at ``elapsed_ms``."""
        boundary = 0.0
        for phase in PHASE_ORDER[:-1]:
            duration = self.durations[phase]
            if elapsed_ms < boundary + duration:
                local = (elapsed_ms - boundary) / duration if duration > 0 else 1.0
                return phase, min(max(local, 0.0), 1.0)
            boundary += duration
        return Phase.COMPLETE, 1.0

    def tick(self, now_ms: float) -> Frame:
        """Advance to ``now_ms`` and return the frame to paint."""
        if self._terminal is not None:
            return self._terminal

        state = self.state
        if state.start_time is None:
            state.start_time = now_ms
        state.elapsed_ms = max(now_ms - state.start_time, state.elapsed_ms)

        phase, progress = self.phase_at(state.elapsed_ms)
        transitions = self._advance_to(phase)
        state.progress = progress

        frame = Frame(
            phase=phase,
            progress=progress,
            elapsed_ms=state.elapsed_ms,
            label=PHASE_LABELS[phase],
            commands=self._render(phase, progress),
            transitions=transitions,
            request_next=phase is not Phase.COMPLETE,
        )
        if phase is Phase.COMPLETE:
            self._terminal = Frame(
                phase=frame.phase,
                progress=frame.progress,
                elapsed_ms=frame.elapsed_ms,
                label=frame.label,
                commands=frame.commands,
                request_next=False,
            )
        return frame

    def final_commands(self) -> tuple[DrawCommand, ...]:
        """Commands of the terminal frame, without advancing the clock."""
        return self._render(Phase.COMPLETE, 1.0)

    def _advance_to(self, phase: Phase) -> tuple[Phase, ...]:
        """Record every phase entered up to ``phase``, in order."""
        state = self.state
        start = PHASE_ORDER.index(state.visited[-1]) + 1 if state.visited else 0
        target = PHASE_ORDER.index(phase)
        entered = PHASE_ORDER[start:target + 1]
        for p in entered:
            state.visited.append(p)
            logger.debug("Animation phase -> %s", p.value)
        state.phase = phase
        return tuple(entered)

    # ------------------------------------------------------------------
    # Per-phase rendering rules
    # ------------------------------------------------------------------

    def _render(self, phase: Phase, progress: float) -> tuple[DrawCommand, ...]:
        scene = self.scene
        tris = scene.triangles
        total = len(tris)

        if phase is Phase.SOURCE_IMAGE:
            return (FillRect(_BLACK), DrawImage(scene.source))

        if phase is Phase.EDGE_VISUALIZATION:
            return (FillRect(_BLACK), DrawImage(scene.edge_image, alpha=progress))

        if phase is Phase.POINT_CLOUD:
            visible = int(math.floor(progress * len(scene.points)))
            return (
                FillRect(_BLACK),
                DrawImage(scene.edge_image, alpha=_EDGE_BACKDROP_ALPHA),
                DrawPoints(scene.points[:visible], _POINT_RADIUS, _CYAN + (255,)),
            )

        if phase is Phase.WIREFRAME:
            visible = int(math.floor(ease_out_cubic(progress) * total))
            fading = _CYAN + (_alpha(_FADING_POINT_ALPHA * (1 - progress)),)
            return (
                FillRect(_BLACK),
                DrawPoints(scene.points, _FADING_POINT_RADIUS, fading),
                StrokeTriangles(tris[:visible], _WIREFRAME),
            )

        highlight = (255, 255, 255, _alpha(_HIGHLIGHT_ALPHA * (1 - progress)))

        if phase is Phase.COLOR_FILL:
            colored = int(math.floor(ease_out_cubic(progress) * total))
            return (
                FillRect(_BLACK),
                FillTriangles(tris[:colored], outline=False),
                StrokeTriangles(tris[:colored], highlight),
                StrokeTriangles(tris[colored:], _WIREFRAME),
            )

        if phase is Phase.EDGE_FADE_OUT:
            commands: list[DrawCommand] = [FillRect(_WHITE), FillTriangles(tris)]
            if progress < 1:
                commands.append(StrokeTriangles(tris, highlight))
            return tuple(commands)

        return (FillRect(_WHITE), FillTriangles(tris))
