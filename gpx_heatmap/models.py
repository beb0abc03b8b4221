"""
Data Models for GPX Heatmap Analysis

This module defines the value types shared by the pipeline stages: parsed
track points, the parse result, and the tunable render parameters.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import List, Optional
from . import constants


@dataclass(frozen=True)
class TrackPoint:
    """A single GPS sample. Coordinates are always finite and in range."""
    lat: float
    lon: float
    time: Optional[datetime] = None


@dataclass(frozen=True)
class ParsedTrack:
    """Result of parsing one track document."""
    points: List[TrackPoint] = field(default_factory=list)
    start_time: Optional[datetime] = None

    @property
    def is_empty(self) -> bool:
        return not self.points


def _clamp(value: float, bounds) -> float:
    low, high = bounds
    return min(max(value, low), high)


@dataclass
class RenderParams:
    """
    Tunable knobs for raster heatmap generation.

    Attributes:
        gamma: Exponent applied to normalized intensity (> 0).
        sigma: Gaussian smoothing radius proxy in grid cells (> 0).
        threshold: Post-gamma intensity at or below which cells are transparent, in [0, 1).
        resolution_px: Output width in pixels (> 0).
    """
    gamma: float = constants.DEFAULT_GAMMA
    sigma: float = constants.DEFAULT_SIGMA
    threshold: float = constants.DEFAULT_THRESHOLD
    resolution_px: int = constants.DEFAULT_RESOLUTION_PX

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """
        Check that every knob lies in its mathematical domain.

        Raises:
            ValueError: If any value is out of domain.
        """
        if not self.gamma > 0:
            raise ValueError(f"gamma must be > 0, got {self.gamma}")
        if not self.sigma > 0:
            raise ValueError(f"sigma must be > 0, got {self.sigma}")
        if not 0.0 <= self.threshold < 1.0:
            raise ValueError(f"threshold must be in [0, 1), got {self.threshold}")
        if int(self.resolution_px) != self.resolution_px or self.resolution_px <= 0:
            raise ValueError(f"resolution_px must be a positive integer, got {self.resolution_px}")
        self.resolution_px = int(self.resolution_px)

    @classmethod
    def from_ui(cls, gamma: float = constants.DEFAULT_GAMMA,
                sigma: float = constants.DEFAULT_SIGMA,
                threshold: float = constants.DEFAULT_THRESHOLD,
                resolution_px: int = constants.DEFAULT_RESOLUTION_PX) -> "RenderParams":
        """
        Build parameters from UI control values, clamping each into its UI range.

        Returns:
            A validated RenderParams instance.
        """
        return cls(
            gamma=_clamp(float(gamma), constants.GAMMA_RANGE),
            sigma=_clamp(float(sigma), constants.SIGMA_RANGE),
            threshold=_clamp(float(threshold), constants.THRESHOLD_RANGE),
            resolution_px=int(round(_clamp(float(resolution_px), constants.RESOLUTION_RANGE))),
        )

    def snapshot(self) -> "RenderParams":
        """Return an independent copy, used to pin the values a rebuild ran with."""
        return replace(self)

    def to_dict(self) -> dict:
        return {
            "gamma": self.gamma,
            "sigma": self.sigma,
            "threshold": self.threshold,
            "resolution_px": self.resolution_px,
        }
