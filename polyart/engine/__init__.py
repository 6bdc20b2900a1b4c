"""PolyArt low-poly mosaic engine."""

from polyart.engine.animation import AnimationSequencer, AnimationState, Frame, Phase
from polyart.engine.config import PipelineConfig
from polyart.engine.context import RenderSession
from polyart.engine.errors import GeometryError, ResourceUnavailable
from polyart.engine.pipeline import Pipeline, create_pipeline
from polyart.engine.session import SessionManager, export_png, render_frame, start_animation

__all__ = [
    "AnimationSequencer",
    "AnimationState",
    "Frame",
    "Phase",
    "PipelineConfig",
    "RenderSession",
    "GeometryError",
    "ResourceUnavailable",
    "Pipeline",
    "create_pipeline",
    "SessionManager",
    "export_png",
    "render_frame",
    "start_animation",
]
