"""
Centralized configuration for relationship placement.

The working zone, collision tuning, and spiral-search profiles in one place.
Every resolver takes a ResolverConfig (or the ZoneConfig inside it) instead of
reading module-level constants, so tests can shrink the zone.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

from scene_layout.geometry import Bounds, Point2D, Rect


@dataclass(frozen=True)
class ZoneConfig:
    """The working zone: a fixed square sub-rectangle of the world where
    scenes are composed (not the outer world boundary)."""

    center_x: float = 200.0
    center_z: float = 200.0
    size: float = 380.0  # Edge length in meters

    @property
    def min_x(self) -> float:
        return self.center_x - self.size / 2

    @property
    def max_x(self) -> float:
        return self.center_x + self.size / 2

    @property
    def min_z(self) -> float:
        return self.center_z - self.size / 2

    @property
    def max_z(self) -> float:
        return self.center_z + self.size / 2

    @property
    def center(self) -> Point2D:
        return Point2D(self.center_x, self.center_z)

    @property
    def rect(self) -> Rect:
        return Rect(self.min_x, self.max_x, self.min_z, self.max_z)

    def inset(self, margin: float) -> Rect:
        """Zone rectangle shrunk by *margin* on every side."""
        return Rect(
            self.min_x + margin,
            self.max_x - margin,
            self.min_z + margin,
            self.max_z - margin,
        )

    def clamp(self, x: float, z: float, margin: float = 0.0) -> Point2D:
        r = self.inset(margin)
        return Point2D(
            float(np.clip(x, r.min_x, r.max_x)), float(np.clip(z, r.min_z, r.max_z))
        )


@dataclass(frozen=True)
class SpiralProfile:
    """Tuning for the structure spiral search.

    On collision the candidate is displaced from its ORIGINAL position by
        (own_radius + base_offset) * (1 + (attempt // 8) * growth_rate)
    at angle attempt * angle_step.
    """

    max_attempts: int
    buffer: float  # Multiplicative footprint margin for the overlap test
    base_offset: float  # Meters added to the structure's own radius
    growth_rate: float  # Radius growth per full turn (8 attempts)
    angle_step: float = np.pi / 4


# Caller coordinates are trusted: small nudges, tight budget, clear separation.
EXPLICIT_PROFILE = SpiralProfile(max_attempts=16, buffer=1.3, base_offset=20.0, growth_rate=0.6)
# Keyword placement: larger offsets that spread across the zone.
KEYWORD_PROFILE = SpiralProfile(max_attempts=32, buffer=1.2, base_offset=10.0, growth_rate=0.8)


DENSITY_MULTIPLIERS: dict[str, float] = {
    "sparse": 0.5,
    "medium": 1.0,
    "high": 1.5,
}


@dataclass(frozen=True)
class ResolverConfig:
    """Complete placement configuration."""

    zone: ZoneConfig = field(default_factory=ZoneConfig)
    explicit_profile: SpiralProfile = EXPLICIT_PROFILE
    keyword_profile: SpiralProfile = KEYWORD_PROFILE

    # Center-distance checks: min distance = r_a + r_b + collision_buffer
    collision_buffer: float = 0.5
    # Clearance beyond a structure's half footprint diagonal for scattered items
    structure_avoid_buffer: float = 2.0
    # Inset from the zone edge for clamped explicit coordinates
    explicit_inset: float = 10.0
    # Inset from the zone edge for scattered sampling
    scatter_inset: float = 10.0
    # Structures with neither measured nor estimated bounds
    default_structure_bounds: Bounds = field(
        default_factory=lambda: Bounds(10.0, 10.0, 10.0)
    )
    # Fraction of the zone size used by the edge position keywords
    keyword_edge_fraction: float = 0.45
    keyword_corner_fraction: float = 0.4

    @classmethod
    def for_tests(cls) -> ResolverConfig:
        """Smaller zone so sampling-heavy tests run fast."""
        return cls(zone=ZoneConfig(center_x=60.0, center_z=60.0, size=120.0))
