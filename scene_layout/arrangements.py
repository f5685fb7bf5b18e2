"""Arrangements: named groups of items laid out in a pattern.

The group center is the zone center, or the adjacency point beside a
target structure. Item instances (each item repeated by its count) are
assigned to pattern positions in declaration order; extra instances beyond
the positions the pattern produced are dropped.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass

import numpy as np

from scene_layout import sampling
from scene_layout.config import ZoneConfig
from scene_layout.geometry import Point2D, Pose, Rect
from scene_layout.placements import LibraryAsset
from scene_layout.plan import ArrangementItem, ArrangementSpec
from scene_layout.registry import StructureRegistry
from scene_layout.relationships import ArrangementPattern

log = logging.getLogger(__name__)

CLUSTER_MIN_SPACING = 2.0
GRID_NOISE = 0.2
CIRCLE_JITTER = 0.2


@dataclass(frozen=True)
class ArrangedItem:
    """One item instance with its candidate pose."""

    item: ArrangementItem
    asset: LibraryAsset
    pose: Pose


def arrangement_center(
    spec: ArrangementSpec, registry: StructureRegistry, zone: ZoneConfig | None = None
) -> Point2D:
    zone = zone or ZoneConfig()
    if spec.relative_to is None:
        return zone.center
    adjacent = registry.get_adjacent_position(spec.relative_to, spec.side, spec.distance)
    if adjacent is None:
        log.warning(
            "Arrangement %s: relative_to %r not registered, using zone center",
            spec.name,
            spec.relative_to,
        )
        return zone.center
    return adjacent.ground


def pattern_positions(
    rng: np.random.Generator,
    pattern: ArrangementPattern,
    center: Point2D,
    count: int,
    radius: float,
    grid_size: tuple[int, int] | None = None,
) -> list[Point2D | Pose]:
    """Positions for *count* items; Poses where the pattern implies a yaw."""
    if count <= 0:
        return []
    if pattern == ArrangementPattern.GRID:
        side = int(np.ceil(np.sqrt(count)))
        cols, rows = grid_size or (side, side)
        return sampling.grid(rng, Rect.around(center, radius), rows, cols, GRID_NOISE)
    elif pattern == ArrangementPattern.ROW:
        spacing = radius * 2 / (count - 1 or 1)
        return [
            Pose(center.x - radius + i * spacing, 0.0, center.z, 0.0) for i in range(count)
        ]
    elif pattern == ArrangementPattern.CIRCLE:
        return sampling.ring(rng, center, count, radius, CIRCLE_JITTER)
    return sampling.cluster(rng, center, count, radius, CLUSTER_MIN_SPACING)


def resolve_arrangement(
    rng: np.random.Generator,
    spec: ArrangementSpec,
    registry: StructureRegistry,
    assets: Mapping[str, LibraryAsset],
    zone: ZoneConfig | None = None,
) -> list[ArrangedItem]:
    """Candidate poses for every item instance of an arrangement."""
    instances: list[tuple[ArrangementItem, LibraryAsset]] = []
    for item in spec.items:
        asset = assets.get(item.asset.prompt)
        if asset is None:
            log.warning(
                "Arrangement %s: asset not found for %r", spec.name, item.asset.prompt[:30]
            )
            continue
        instances.extend([(item, asset)] * item.count)

    center = arrangement_center(spec, registry, zone)
    positions = pattern_positions(
        rng, spec.pattern, center, len(instances), spec.radius, spec.grid_size
    )
    if len(positions) < len(instances):
        log.info(
            "Arrangement %s: pattern produced %d of %d positions",
            spec.name,
            len(positions),
            len(instances),
        )

    arranged = []
    for (item, asset), pos in zip(instances, positions):
        if isinstance(pos, Pose):
            pose = pos
        else:
            pose = Pose(pos.x, 0.0, pos.z, rng.uniform(0, 2 * np.pi))
        arranged.append(ArrangedItem(item, asset, pose))
    return arranged
