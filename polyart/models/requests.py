"""API request models."""

from __future__ import annotations

from pydantic import BaseModel, Field

from polyart.config import settings


class RenderRequest(BaseModel):
    image: str = Field(..., description="Encoded image as a data URI or bare base64")
    quality: int = Field(default=settings.default_quality, ge=0, le=100, description="Point density, 0-100")
    speed: float = Field(default=settings.default_speed, gt=0, description="Animation speed multiplier")
    seed: int | None = Field(default=None, description="Random seed for reproducible output")


class FrameRequest(RenderRequest):
    time_ms: float = Field(..., ge=0, description="Animation clock in milliseconds since start")
