"""NPC placement: an initial pose relative to a structure or an arrangement."""

from __future__ import annotations

import logging

import numpy as np

from scene_layout.config import ZoneConfig
from scene_layout.geometry import Pose, lateral
from scene_layout.registry import Side, StructureRegistry
from scene_layout.relationships import NpcPlacement, NpcPosition

log = logging.getLogger(__name__)

ENTRANCE_DISTANCE = 3.0
NEAR_DISTANCE = 5.0
FALLBACK_SPREAD = 20.0  # Square around the zone center, in meters


def _structure_pose(
    rng: np.random.Generator, placement: NpcPlacement, registry: StructureRegistry
) -> Pose | None:
    structure = registry.get(placement.relative_to)
    if structure is None:
        return None
    if placement.position == NpcPosition.AT_ENTRANCE:
        return registry.get_adjacent_position(
            structure.id, Side.ENTRANCE, placement.distance or ENTRANCE_DISTANCE
        )
    if placement.position == NpcPosition.NEAR:
        return registry.get_adjacent_position(
            structure.id, placement.side, placement.distance or NEAR_DISTANCE
        )
    # WITHIN: jitter inside the footprint
    jitter = structure.bounds.footprint_radius
    return Pose(
        structure.position.x + rng.uniform(-0.5, 0.5) * jitter,
        0.0,
        structure.position.z + rng.uniform(-0.5, 0.5) * jitter,
        rng.uniform(0, 2 * np.pi),
    )


def _arrangement_pose(
    rng: np.random.Generator, placement: NpcPlacement, registry: StructureRegistry
) -> Pose | None:
    arrangement = registry.get_arrangement(placement.relative_to)
    if arrangement is None:
        return None
    if placement.position == NpcPosition.NEAR:
        radius = arrangement.radius or 5.0
        return Pose(
            arrangement.center.x + rng.uniform(-0.5, 0.5) * radius,
            0.0,
            arrangement.center.z + rng.uniform(-0.5, 0.5) * radius,
            rng.uniform(0, 2 * np.pi),
        )
    if placement.position == NpcPosition.WITHIN and arrangement.item_positions:
        item = arrangement.item_positions[int(rng.integers(len(arrangement.item_positions)))]
        return Pose(
            item.x + rng.uniform(-1, 1),
            0.0,
            item.z + rng.uniform(-1, 1),
            rng.uniform(0, 2 * np.pi),
        )
    return None


def resolve_npc(
    rng: np.random.Generator,
    placement: NpcPlacement,
    registry: StructureRegistry,
    zone: ZoneConfig | None = None,
) -> Pose:
    """Starting pose for one NPC.

    Structures are checked before arrangements of the same name. If neither
    resolves, the NPC starts at a random point near the zone center. A
    lateral offset shifts the result sideways relative to its facing so
    several NPCs sharing a reference point don't stack.
    """
    zone = zone or ZoneConfig()
    pose = _structure_pose(rng, placement, registry)
    if pose is None:
        pose = _arrangement_pose(rng, placement, registry)
    if pose is None:
        if placement.relative_to is not None:
            log.warning(
                "NPC reference %r not resolved, placing near zone center",
                placement.relative_to,
            )
        half = FALLBACK_SPREAD / 2
        pose = Pose(
            zone.center_x + rng.uniform(-half, half),
            0.0,
            zone.center_z + rng.uniform(-half, half),
            rng.uniform(0, 2 * np.pi),
        )

    if placement.lateral_offset:
        lx, lz = lateral(pose.rotation)
        pose = Pose(
            pose.x + lx * placement.lateral_offset,
            0.0,
            pose.z + lz * placement.lateral_offset,
            pose.rotation,
        )
    return Pose(pose.x, 0.0, pose.z, pose.rotation)
