"""API response models."""

from __future__ import annotations

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "0.1.0"
    phases: int = 0


class RenderResponse(BaseModel):
    width: int = 0
    height: int = 0
    image: str = ""
    status: str = ""
    points: int = 0
    triangles: int = 0
    palette: list[str] = Field(default_factory=list)
    processing_time_ms: float = 0.0
    error: str = ""


class FrameResponse(BaseModel):
    phase: str
    progress: float
    label: str
    image: str
    complete: bool = False
