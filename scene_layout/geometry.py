"""Ground-plane geometry for relationship placement.

Coordinate convention:
    - Y-up; the ground plane is (x, z) and y is height above the ground
    - Yaw θ has forward vector (sin θ, cos θ), so θ=0 faces +z ("south")
    - A structure's local +x maps to world (cos θ, -sin θ), local +z to
      (sin θ, cos θ); its front face is at local +z

Everything in this module is pure: no randomness, no state.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class Point2D:
    """A ground-plane coordinate."""

    x: float
    z: float

    def distance_to(self, other: Point2D) -> float:
        return float(np.hypot(self.x - other.x, self.z - other.z))


@dataclass(frozen=True)
class Pose:
    """World position plus yaw (radians).

    Attributes:
        x, y, z: World position; y is height above the ground plane
        rotation: Yaw in radians, 0 = facing south (+z)
        tilt: Optional lean angle (radians) for the consumer to apply as an
            extra rotation axis (used by leaning decorations)
    """

    x: float
    y: float
    z: float
    rotation: float = 0.0
    tilt: float | None = None

    @property
    def ground(self) -> Point2D:
        return Point2D(self.x, self.z)


@dataclass(frozen=True)
class Bounds:
    """Axis-aligned footprint/height box in world units (local frame)."""

    width: float
    height: float
    depth: float

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0 or self.depth <= 0:
            raise ValueError(
                f"Bounds must be positive, got ({self.width}, {self.height}, {self.depth})"
            )

    @property
    def footprint_radius(self) -> float:
        """Half the larger footprint side."""
        return max(self.width, self.depth) / 2

    @property
    def half_diagonal(self) -> float:
        """Half the footprint diagonal (rotation-independent reach)."""
        return float(np.hypot(self.width, self.depth)) / 2

    def scaled(self, factor: float) -> Bounds:
        return Bounds(self.width * factor, self.height * factor, self.depth * factor)


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle on the ground plane (inclusive)."""

    min_x: float
    max_x: float
    min_z: float
    max_z: float

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def depth(self) -> float:
        return self.max_z - self.min_z

    @property
    def center(self) -> Point2D:
        return Point2D((self.min_x + self.max_x) / 2, (self.min_z + self.max_z) / 2)

    def contains(self, p: Point2D, eps: float = 1e-9) -> bool:
        return (
            self.min_x - eps <= p.x <= self.max_x + eps
            and self.min_z - eps <= p.z <= self.max_z + eps
        )

    @classmethod
    def around(cls, center: Point2D, half_extent: float) -> Rect:
        return cls(
            center.x - half_extent,
            center.x + half_extent,
            center.z - half_extent,
            center.z + half_extent,
        )


# ---------------------------------------------------------------------------
# Yaw / direction helpers
# ---------------------------------------------------------------------------


def forward(angle: float) -> tuple[float, float]:
    """Unit (dx, dz) a pose with this yaw is facing."""
    return (float(np.sin(angle)), float(np.cos(angle)))


def lateral(angle: float) -> tuple[float, float]:
    """Unit (dx, dz) of the local +x axis for this yaw."""
    return (float(np.cos(angle)), float(-np.sin(angle)))


def offset(p: Point2D, angle: float, distance: float) -> Point2D:
    """Move *p* by *distance* along the forward vector of *angle*."""
    dx, dz = forward(angle)
    return Point2D(p.x + dx * distance, p.z + dz * distance)


def local_to_world(
    origin: Point2D, rotation: float, local_x: float, local_z: float
) -> Point2D:
    """Transform an offset in a rotated frame into world coordinates."""
    c, s = np.cos(rotation), np.sin(rotation)
    return Point2D(
        float(origin.x + local_x * c + local_z * s),
        float(origin.z - local_x * s + local_z * c),
    )


def facing_toward(origin: Point2D, target: Point2D) -> float:
    """Yaw that makes a pose at *origin* face *target*."""
    return float(np.arctan2(target.x - origin.x, target.z - origin.z))


# ---------------------------------------------------------------------------
# Footprint overlap
# ---------------------------------------------------------------------------


def footprint_reach(bounds: Bounds, rotation: float) -> Bounds:
    """Axis-aligned box that contains a rotated footprint.

    The max reach of a rotated box along each axis:
        reach_x = w * |cos(rot)| + d * |sin(rot)|
        reach_z = w * |sin(rot)| + d * |cos(rot)|
    """
    cos_r = abs(np.cos(rotation))
    sin_r = abs(np.sin(rotation))
    return Bounds(
        float(bounds.width * cos_r + bounds.depth * sin_r),
        bounds.height,
        float(bounds.width * sin_r + bounds.depth * cos_r),
    )


def rect_overlaps(
    bounds_a: Bounds,
    pos_a: Point2D,
    bounds_b: Bounds,
    pos_b: Point2D,
    buffer: float = 1.0,
) -> bool:
    """Axis-aligned footprint (width x depth) overlap test.

    *buffer* scales every half-extent (1.0 = exact, 1.2 = 20% margin).
    Touching boxes count as overlapping. Height is ignored.
    """
    ahx = bounds_a.width / 2 * buffer
    ahz = bounds_a.depth / 2 * buffer
    bhx = bounds_b.width / 2 * buffer
    bhz = bounds_b.depth / 2 * buffer
    return abs(pos_a.x - pos_b.x) <= ahx + bhx and abs(pos_a.z - pos_b.z) <= ahz + bhz
