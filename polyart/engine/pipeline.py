"""Pipeline orchestrator — runs the four stages in order on a RenderSession.

edges → sampling → mesh → colors. Each stage is a pure function of the
session's earlier outputs. Only the mesh stage is fallible: a GeometryError
there becomes the session's single user-visible error status, and no mesh,
triangles or animation are produced.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Generator
from dataclasses import dataclass
from typing import Any

from polyart.engine.colors import color_mesh, shuffle_triangles
from polyart.engine.config import PipelineConfig
from polyart.engine.context import (
    STATUS_COLORING,
    STATUS_EDGES,
    STATUS_ERROR,
    STATUS_READY,
    STATUS_SAMPLING,
    STATUS_TRIANGULATING,
    RenderSession,
)
from polyart.engine.edges import build_edge_field, count_edge_pixels
from polyart.engine.errors import GeometryError
from polyart.engine.imaging import blurred_pixels
from polyart.engine.mesh import build_mesh
from polyart.engine.sampling import sample_points

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Stage:
    id: str
    label: str
    fn: Callable[[RenderSession], None]


def extract_edges(session: RenderSession) -> None:
    radius = session.config.blur_radius
    if radius > 0 and session.width > 0 and session.height > 0:
        session.blurred = blurred_pixels(session.image, radius)
    session.edge_field = build_edge_field(session.pixels, session.blurred)
    logger.debug(
        "Edge field %dx%d: %d pixels above edge threshold",
        session.width,
        session.height,
        count_edge_pixels(session.edge_field, session.config.edge_threshold(session.q)),
    )


def sample_features(session: RenderSession) -> None:
    session.point_set = sample_points(
        session.edge_field,
        session.pixels,
        session.q,
        session.rng,
        session.config,
    )


def triangulate_mesh(session: RenderSession) -> None:
    result = build_mesh(session.point_set, session.width, session.height, session.config)
    session.mesh = result.mesh
    session.mesh_history = result.history


def sample_colors(session: RenderSession) -> None:
    colored = color_mesh(session.mesh, session.pixels)
    session.triangles = shuffle_triangles(colored, session.rng)


STAGES: tuple[Stage, ...] = (
    Stage("edges", STATUS_EDGES, extract_edges),
    Stage("sampling", STATUS_SAMPLING, sample_features),
    Stage("mesh", STATUS_TRIANGULATING, triangulate_mesh),
    Stage("colors", STATUS_COLORING, sample_colors),
)


class Pipeline:
    """Runs STAGES against a session, sync, streaming or cooperatively."""

    def __init__(self, config: PipelineConfig | None = None) -> None:
        # None: each session runs with its own config
        self.config = config
        self.stages = STAGES

    def _run_stage(self, session: RenderSession, stage: Stage) -> str:
        """Run one stage; returns "ok" or "error"."""
        session.status = stage.label
        try:
            stage.fn(session)
        except GeometryError as e:
            if stage.id != "mesh":
                raise
            session.errors[stage.id] = str(e)
            session.status = STATUS_ERROR
            session.mesh = None
            session.triangles = []
            logger.warning("Triangulation failed: %s", e)
            return "error"
        session.completed_stages.append(stage.id)
        return "ok"

    def _finish(self, session: RenderSession, start: float) -> None:
        if not session.failed:
            session.status = STATUS_READY
        logger.info(
            "Pipeline %s: %dx%d q=%d, %d points, %d triangles in %.0fms",
            "failed" if session.failed else "complete",
            session.width,
            session.height,
            session.quality,
            session.mesh.num_points if session.mesh is not None else 0,
            len(session.triangles),
            (time.perf_counter() - start) * 1000,
        )

    def run(self, session: RenderSession) -> RenderSession:
        """Run every stage; stops at the first failure or cancellation."""
        for _ in self.run_streaming(session):
            pass
        return session

    def run_streaming(self, session: RenderSession) -> Generator[dict[str, Any], None, None]:
        """Run the pipeline, yielding a progress dict around each stage.

        A pipeline built with an explicit config imposes it on the session
        before the first stage, so stages and the later animation agree.
        """
        start = time.perf_counter()
        total = len(self.stages)
        if self.config is not None and session.config is not self.config and not session.cancelled:
            logger.debug("Session config replaced by pipeline config")
            session.config = self.config

        for i, stage in enumerate(self.stages):
            if session.cancelled:
                logger.info("Pipeline cancelled before stage %s", stage.id)
                return

            yield _event(stage, i, total, "running")

            t0 = time.perf_counter()
            status = self._run_stage(session, stage)
            elapsed_ms = round((time.perf_counter() - t0) * 1000, 1)
            logger.debug("  %s %s in %.1fms", stage.id, status, elapsed_ms)

            yield _event(stage, i, total, status, elapsed_ms, session.errors.get(stage.id, ""))
            if status == "error":
                break

        self._finish(session, start)

    async def run_async(self, session: RenderSession) -> RenderSession:
        """Cooperative run: yields to the event loop before every stage.

        A session cancelled while suspended is left untouched from then on.
        """
        steps = self.run_streaming(session)
        for evt in steps:
            if evt["status"] != "running":
                continue
            await asyncio.sleep(session.config.stage_delay_s)
            if session.cancelled:
                steps.close()
                logger.info("Pipeline cancelled before stage %s", evt["stage"])
                break
        return session


def _event(
    stage: Stage,
    index: int,
    total: int,
    status: str,
    elapsed_ms: float = 0.0,
    error: str = "",
) -> dict[str, Any]:
    return {
        "stage": stage.id,
        "label": stage.label,
        "index": index,
        "total": total,
        "status": status,
        "elapsed_ms": elapsed_ms,
        "error": error,
    }


def create_pipeline(config: PipelineConfig | None = None) -> Pipeline:
    """Factory function for creating a pipeline instance."""
    return Pipeline(config=config)
