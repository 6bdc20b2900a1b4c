"""Pipeline configuration — every tuned constant of the low-poly pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field

# Nominal phase durations in milliseconds, before the speed multiplier
DEFAULT_PHASE_DURATIONS_MS: dict[str, float] = {
    "source_image": 1500.0,
    "edge_visualization": 2000.0,
    "point_cloud": 2000.0,
    "wireframe": 2500.0,
    "color_fill": 2500.0,
    "edge_fade_out": 2000.0,
}


@dataclass
class PipelineConfig:
    """Named, overridable parameters for sampling, meshing and animation."""

    # Output surface: neither dimension exceeds this
    max_dimension: int = 800
    # Gaussian pre-blur radius before gradient computation (0 = off)
    blur_radius: float = 0.0

    # Border lattice spacing: max(min, round(base - span * q))
    border_spacing_base: float = 100.0
    border_spacing_span: float = 90.0
    border_spacing_min: int = 10

    # Base subdivision grid cell size: max(min, round(base - span * q))
    cell_size_base: float = 50.0
    cell_size_span: float = 40.0
    cell_size_min: int = 10

    # Gradient thresholds: base + span * (1 - q)
    edge_threshold_base: float = 20.0
    edge_threshold_span: float = 50.0
    salient_threshold_base: float = 60.0
    salient_threshold_span: float = 120.0

    # Quadtree subdivision: 2 levels = up to 16-way split
    max_subdivision_depth: int = 2
    min_cell_size: int = 4

    # Flat-region coverage
    fill_probability: float = 0.1
    fill_jitter: float = 0.35  # fraction of cell size
    random_fill_base: int = 1000
    area_scale_reference: float = 480000.0  # 800 x 600
    area_scale_min: float = 0.3

    # Mesh refinement
    refinement_passes: int = 2
    sliver_ratio: float = 4.0
    sliver_min_area: float = 50.0
    oversize_fraction: float = 0.04

    # Cooperative yield between pipeline stages
    stage_delay_s: float = 0.05

    # Per-phase overrides merged over DEFAULT_PHASE_DURATIONS_MS
    phase_durations_ms: dict[str, float] = field(default_factory=dict)

    def __post_init__(self) -> None:
        unknown = set(self.phase_durations_ms) - set(DEFAULT_PHASE_DURATIONS_MS)
        if unknown:
            raise ValueError(f"Unknown animation phases: {sorted(unknown)}")
        negative = {k: v for k, v in self.phase_durations_ms.items() if v < 0}
        if negative:
            raise ValueError(f"Phase durations must be >= 0, got {negative}")
        self.phase_durations_ms = {**DEFAULT_PHASE_DURATIONS_MS, **self.phase_durations_ms}

    def border_spacing(self, q: float) -> int:
        return max(self.border_spacing_min, round(self.border_spacing_base - self.border_spacing_span * q))

    def cell_size(self, q: float) -> int:
        return max(self.cell_size_min, round(self.cell_size_base - self.cell_size_span * q))

    def edge_threshold(self, q: float) -> float:
        return self.edge_threshold_base + self.edge_threshold_span * (1.0 - q)

    def salient_threshold(self, q: float) -> float:
        return self.salient_threshold_base + self.salient_threshold_span * (1.0 - q)
