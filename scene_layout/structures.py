"""Structure placement: keyword/explicit/relative position + spiral search.

A structure's candidate position comes from one of three placement forms:

    ExplicitPosition   clamped into the zone (inset), facing from the keyword
    KeywordPosition    fixed offset from the zone center (center, north, NE, ...)
    RelativePosition   adjacency point beside an already registered structure

If the candidate's footprint overlaps a registered structure, it is moved
along a spiral around the ORIGINAL candidate (never cumulatively):

    offset = (own_radius + base_offset) * (1 + (attempt // 8) * growth_rate)
    angle  = attempt * angle_step

When the attempt budget runs out the structure is placed at the last tried
position anyway and the result is flagged as unresolved.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

from scene_layout.config import ResolverConfig, SpiralProfile
from scene_layout.geometry import Bounds, Point2D, Pose, footprint_reach, rect_overlaps
from scene_layout.plan import AssetRef, StructureSpec
from scene_layout.registry import StructureRegistry
from scene_layout.relationships import (
    ExplicitPosition,
    KeywordPosition,
    PositionKeyword,
    RelativePosition,
    StructurePlacement,
    facing_to_angle,
)

log = logging.getLogger(__name__)

# Keyword → (x, z) direction; scaled by the edge or corner fraction of the
# zone size. North is -z.
_KEYWORD_DIRECTIONS = {
    PositionKeyword.CENTER: (0, 0),
    PositionKeyword.NORTH: (0, -1),
    PositionKeyword.SOUTH: (0, 1),
    PositionKeyword.EAST: (1, 0),
    PositionKeyword.WEST: (-1, 0),
    PositionKeyword.NE: (1, -1),
    PositionKeyword.NW: (-1, -1),
    PositionKeyword.SE: (1, 1),
    PositionKeyword.SW: (-1, 1),
}


@dataclass(frozen=True)
class StructureResolution:
    """Final pose of a structure and how the spiral search went."""

    pose: Pose
    bounds: Bounds
    attempts: int
    resolved: bool


def structure_bounds(
    asset: AssetRef,
    measured: Bounds | None = None,
    config: ResolverConfig | None = None,
) -> Bounds:
    """World-space footprint for a structure.

    Measured bounds are in normalized asset units and get multiplied by the
    asset's world scale; estimated bounds are already in meters.
    """
    config = config or ResolverConfig()
    if measured is not None:
        return measured.scaled(asset.scale)
    if asset.real_world_size and asset.real_world_size > 0:
        return asset.estimated_bounds
    return config.default_structure_bounds


def candidate_position(
    placement: StructurePlacement,
    registry: StructureRegistry,
    config: ResolverConfig | None = None,
) -> Point2D:
    """Ground position a placement form asks for, before collision checks."""
    config = config or ResolverConfig()
    zone = config.zone

    if isinstance(placement, ExplicitPosition):
        return zone.clamp(placement.x, placement.z, config.explicit_inset)

    if isinstance(placement, RelativePosition):
        adjacent = registry.get_adjacent_position(
            placement.relative_to, placement.side, placement.distance
        )
        if adjacent is None:
            log.warning(
                "relative_to target %r not registered, using zone center",
                placement.relative_to,
            )
            return zone.center
        return adjacent.ground

    keyword = placement.keyword if isinstance(placement, KeywordPosition) else PositionKeyword.CENTER
    dx, dz = _KEYWORD_DIRECTIONS[keyword]
    fraction = (
        config.keyword_corner_fraction if dx and dz else config.keyword_edge_fraction
    )
    return Point2D(
        zone.center_x + dx * zone.size * fraction,
        zone.center_z + dz * zone.size * fraction,
    )


def _overlaps_any(
    reach: Bounds,
    position: Point2D,
    registry: StructureRegistry,
    buffer: float,
    skip_id: str | None,
) -> bool:
    for existing in registry:
        if existing.id == skip_id:
            continue
        if rect_overlaps(reach, position, existing.reach, existing.position, buffer):
            return True
    return False


def spiral_search(
    start: Point2D,
    bounds: Bounds,
    rotation: float,
    registry: StructureRegistry,
    profile: SpiralProfile,
    skip_id: str | None = None,
) -> tuple[Point2D, int, bool]:
    """Move *start* until its footprint clears every registered structure.

    Returns:
        (position, attempts, resolved). resolved is False when the budget was
        exhausted and the last tried position still overlaps.
    """
    reach = footprint_reach(bounds, rotation)
    own_radius = bounds.footprint_radius
    position = start
    attempts = 0

    while _overlaps_any(reach, position, registry, profile.buffer, skip_id):
        if attempts >= profile.max_attempts:
            return position, attempts, False
        distance = (own_radius + profile.base_offset) * (
            1 + (attempts // 8) * profile.growth_rate
        )
        angle = attempts * profile.angle_step
        position = Point2D(
            float(start.x + np.cos(angle) * distance),
            float(start.z + np.sin(angle) * distance),
        )
        attempts += 1

    return position, attempts, True


def resolve_structure(
    spec: StructureSpec,
    registry: StructureRegistry,
    bounds: Bounds,
    config: ResolverConfig | None = None,
) -> StructureResolution:
    """Place one structure and register its final pose and footprint."""
    config = config or ResolverConfig()
    rotation = facing_to_angle(spec.facing)
    start = candidate_position(spec.placement, registry, config)
    if isinstance(spec.placement, ExplicitPosition):
        profile = config.explicit_profile
    else:
        profile = config.keyword_profile

    position, attempts, resolved = spiral_search(
        start, bounds, rotation, registry, profile, skip_id=spec.id
    )

    if not resolved:
        log.warning(
            "%s: collision unresolved after %d attempts, placed at (%.1f, %.1f) "
            "with possible overlap",
            spec.id,
            attempts,
            position.x,
            position.z,
        )
    elif attempts > 0:
        log.info("%s: collision resolved after %d spiral attempts", spec.id, attempts)

    registry.register(spec.id, position, rotation, bounds, spec.asset.category)
    log.debug(
        "%s: (%.0f, %.0f) facing %.0f°", spec.id, position.x, position.z, np.degrees(rotation)
    )
    return StructureResolution(
        Pose(position.x, 0.0, position.z, rotation), bounds, attempts, resolved
    )
