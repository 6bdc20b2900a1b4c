"""Session lifecycle — one live run at a time, animation playback and export."""

from __future__ import annotations

import logging
from collections.abc import Iterator

from PIL import Image

from polyart.engine.animation import AnimationScene, AnimationSequencer, Frame
from polyart.engine.config import PipelineConfig
from polyart.engine.context import RenderSession
from polyart.engine.edges import edge_field_to_image
from polyart.engine.errors import ResourceUnavailable
from polyart.engine.pipeline import Pipeline, create_pipeline
from polyart.engine.surface import Surface

logger = logging.getLogger(__name__)


def start_animation(session: RenderSession) -> AnimationSequencer | None:
    """Acquire the surface and build the sequencer for a finished run.

    Returns None, leaving the session untouched, when the run failed, was
    cancelled, or the surface cannot be acquired.
    """
    if session.cancelled or session.mesh is None or session.edge_field is None:
        return None
    try:
        surface = Surface(session.width, session.height)
    except ResourceUnavailable as e:
        logger.warning("Animation not started: %s", e)
        return None

    scene = AnimationScene(
        source=session.pixels,
        edge_image=edge_field_to_image(session.edge_field),
        points=session.mesh.points,
        triangles=session.triangles,
    )
    session.surface = surface
    session.sequencer = AnimationSequencer(scene, speed=session.speed, config=session.config)
    return session.sequencer


def render_frame(session: RenderSession, now_ms: float) -> Frame | None:
    """Advance the session's animation to ``now_ms`` and paint its surface."""
    if session.cancelled or session.sequencer is None or session.surface is None:
        return None
    frame = session.sequencer.tick(now_ms)
    session.surface.paint(frame.commands)
    session.status = frame.label
    return frame


def play(session: RenderSession, fps: float = 30.0) -> Iterator[Frame]:
    """Drive the animation with a synthetic clock until it completes."""
    if fps <= 0:
        raise ValueError(f"fps must be > 0, got {fps}")
    step_ms = 1000.0 / fps
    tick = 0
    while True:
        frame = render_frame(session, tick * step_ms)
        if frame is None:
            return
        yield frame
        if not frame.request_next:
            return
        tick += 1


def render_final(session: RenderSession) -> Surface:
    """Paint the finished mosaic on a fresh surface."""
    if session.mesh is None:
        raise ValueError("Session has no mesh to render")
    sequencer = session.sequencer or AnimationSequencer(
        AnimationScene(
            source=session.pixels,
            edge_image=edge_field_to_image(session.edge_field),
            points=session.mesh.points,
            triangles=session.triangles,
        ),
        speed=session.speed,
        config=session.config,
    )
    return Surface(session.width, session.height).paint(sequencer.final_commands())


def export_png(session: RenderSession) -> bytes:
    return render_final(session).to_png()


class SessionManager:
    """Owns the live session; starting a new one cancels the previous."""

    def __init__(self, pipeline: Pipeline | None = None) -> None:
        self.pipeline = pipeline or create_pipeline()
        self.current: RenderSession | None = None

    def _pipeline_for(self, config: PipelineConfig | None) -> Pipeline:
        """Per-call config wins over the manager's pipeline config."""
        return self.pipeline if config is None else create_pipeline(config)

    def _replace(
        self,
        image: Image.Image,
        quality: int,
        speed: float,
        seed: int | None,
        config: PipelineConfig | None,
    ) -> RenderSession:
        self.cancel()
        session = RenderSession.from_image(
            image, quality=quality, speed=speed, seed=seed, config=config or self.pipeline.config,
        )
        self.current = session
        return session

    def start(
        self,
        image: Image.Image,
        quality: int = 50,
        speed: float = 1.0,
        seed: int | None = None,
        config: PipelineConfig | None = None,
    ) -> RenderSession:
        session = self._replace(image, quality, speed, seed, config)
        self._pipeline_for(config).run(session)
        start_animation(session)
        return session

    async def start_async(
        self,
        image: Image.Image,
        quality: int = 50,
        speed: float = 1.0,
        seed: int | None = None,
        config: PipelineConfig | None = None,
    ) -> RenderSession:
        session = self._replace(image, quality, speed, seed, config)
        await self._pipeline_for(config).run_async(session)
        start_animation(session)
        return session

    def cancel(self) -> None:
        if self.current is not None:
            logger.debug("Cancelling session (status=%s)", self.current.status)
            self.current.cancel()
            self.current = None
