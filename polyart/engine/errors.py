"""Engine error types."""

from __future__ import annotations


class GeometryError(ValueError):
    """Triangulation received a degenerate point set (< 3 points or collinear)."""


class ResourceUnavailable(RuntimeError):
    """The drawable surface or its drawing context cannot be acquired."""
