"""Five-phase placement pipeline.

    1. structures    keyword/explicit/relative + spiral search, registered
    2. decorations   against registered structures; same-structure items
                     don't reject each other
    3. arrangements  also avoid structure footprints; accepted groups are
                     registered for NPC lookups
    4. atmosphere    avoid everything placed so far
    5. npcs          relative to structures or arrangements

Each phase appends its accepted items to the collision list the next phase
starts from, so results depend on phase order. The registry and collision
lists live only for one call; nothing is shared between calls.

Usage:
    from scene_layout import parse_plan_text, resolve_placements, LibraryAsset

    plan = parse_plan_text(response_text)
    assets = {"a red diner": LibraryAsset("lib_001", "a red diner"), ...}
    result = resolve_placements(plan, assets, seed=42)
    for p in result.placements:
        ...
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence

import numpy as np

from scene_layout.arrangements import resolve_arrangement
from scene_layout.atmosphere import resolve_atmosphere
from scene_layout.config import ResolverConfig
from scene_layout.decorations import resolve_decoration
from scene_layout.geometry import Bounds, Point2D
from scene_layout.npcs import resolve_npc
from scene_layout.placements import (
    COLLISION_UNRESOLVED,
    CollisionEntry,
    LayoutResult,
    LibraryAsset,
    Placement,
    PlacementType,
    collides,
)
from scene_layout.plan import Plan
from scene_layout.registry import StructureRegistry
from scene_layout.sizing import collision_radius
from scene_layout.structures import resolve_structure, structure_bounds

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Phases
# ---------------------------------------------------------------------------


def _place_structures(
    plan: Plan,
    assets: Mapping[str, LibraryAsset],
    measurements: Mapping[str, Bounds],
    registry: StructureRegistry,
    config: ResolverConfig,
) -> list[Placement]:
    placements = []
    for spec in plan.structures:
        asset = assets.get(spec.asset.prompt)
        if asset is None:
            log.warning("Asset not found for structure %r", spec.asset.prompt[:30])
            continue
        bounds = structure_bounds(spec.asset, measurements.get(asset.id), config)
        res = resolve_structure(spec, registry, bounds, config)
        placements.append(
            Placement(
                library_id=asset.id,
                position=(res.pose.x, res.pose.y, res.pose.z),
                rotation=res.pose.rotation,
                scale=spec.asset.scale,
                type=PlacementType.STRUCTURE,
                real_world_size=spec.asset.real_world_size,
                structure_id=spec.id,
                diagnostics=() if res.resolved else (COLLISION_UNRESOLVED,),
            )
        )
    log.info("Structures: %d placed", len(placements))
    return placements


def _place_decorations(
    rng: np.random.Generator,
    plan: Plan,
    assets: Mapping[str, LibraryAsset],
    registry: StructureRegistry,
    collisions: list[CollisionEntry],
    config: ResolverConfig,
) -> list[Placement]:
    placements = []
    for spec in plan.decorations:
        asset = assets.get(spec.asset.prompt)
        if asset is None:
            log.warning("Asset not found for decoration %r", spec.asset.prompt[:30])
            continue
        radius = collision_radius(spec.asset.real_world_size, spec.asset.scale)
        target = spec.target
        placed = rejected = 0
        for pose in resolve_decoration(rng, spec, registry):
            if collides(pose.ground, radius, collisions, config.collision_buffer, skip_target=target):
                rejected += 1
                continue
            placements.append(
                Placement(
                    library_id=asset.id,
                    position=(pose.x, pose.y, pose.z),
                    rotation=pose.rotation,
                    scale=spec.asset.scale,
                    type=PlacementType.DECORATION,
                    real_world_size=spec.asset.real_world_size,
                    tilt=pose.tilt,
                    target_structure_id=target,
                )
            )
            collisions.append(CollisionEntry(pose.ground, radius, target))
            placed += 1
        log.info(
            "Decoration %s -> %s: %d placed, %d rejected (collision)",
            type(spec.relationship).__name__,
            target,
            placed,
            rejected,
        )
    return placements


def _place_arrangements(
    rng: np.random.Generator,
    plan: Plan,
    assets: Mapping[str, LibraryAsset],
    registry: StructureRegistry,
    collisions: list[CollisionEntry],
    config: ResolverConfig,
) -> list[Placement]:
    placements = []
    for spec in plan.arrangements:
        accepted = []
        rejected = 0
        for arranged in resolve_arrangement(rng, spec, registry, assets, config.zone):
            item_asset = arranged.item.asset
            radius = collision_radius(item_asset.real_world_size, item_asset.scale)
            pose = arranged.pose
            if collides(pose.ground, radius, collisions, config.collision_buffer):
                rejected += 1
                continue
            accepted.append(
                Placement(
                    library_id=arranged.asset.id,
                    position=(pose.x, 0.0, pose.z),
                    rotation=pose.rotation,
                    scale=item_asset.scale,
                    type=PlacementType.ARRANGEMENT,
                    real_world_size=item_asset.real_world_size,
                    arrangement_name=spec.name,
                )
            )
            collisions.append(CollisionEntry(pose.ground, radius))

        if accepted:
            xs = [p.position[0] for p in accepted]
            zs = [p.position[2] for p in accepted]
            registry.register_arrangement(
                spec.name,
                Point2D(float(np.mean(xs)), float(np.mean(zs))),
                spec.radius,
                [p.ground for p in accepted],
            )
        placements.extend(accepted)
        log.info(
            "Arrangement %s: %d items placed, %d rejected (collision)",
            spec.name,
            len(accepted),
            rejected,
        )
    return placements


def _place_atmosphere(
    rng: np.random.Generator,
    plan: Plan,
    assets: Mapping[str, LibraryAsset],
    registry: StructureRegistry,
    collisions: list[CollisionEntry],
    config: ResolverConfig,
) -> list[Placement]:
    placements = []
    for spec in plan.atmosphere:
        asset = assets.get(spec.asset.prompt)
        if asset is None:
            log.warning("Asset not found for atmosphere %r", spec.asset.prompt[:30])
            continue
        radius = spec.asset.estimated_bounds.footprint_radius
        placed = rejected = 0
        for pose in resolve_atmosphere(rng, spec, registry, collisions, config, radius):
            if collides(pose.ground, radius, collisions, config.collision_buffer):
                rejected += 1
                continue
            placements.append(
                Placement(
                    library_id=asset.id,
                    position=(pose.x, pose.y, pose.z),
                    rotation=pose.rotation,
                    scale=spec.asset.scale,
                    type=PlacementType.ATMOSPHERE,
                    real_world_size=spec.asset.real_world_size,
                )
            )
            collisions.append(CollisionEntry(pose.ground, radius))
            placed += 1
        log.info(
            "Atmosphere %s: %d/%d placed, %d rejected (collision)",
            type(spec.relationship).__name__,
            placed,
            spec.count,
            rejected,
        )
    return placements


def _place_npcs(
    rng: np.random.Generator,
    plan: Plan,
    assets: Mapping[str, LibraryAsset],
    registry: StructureRegistry,
    config: ResolverConfig,
) -> list[Placement]:
    placements = []
    for spec in plan.npcs:
        asset = assets.get(spec.asset.prompt)
        if asset is None:
            log.warning("Asset not found for NPC %r", spec.asset.prompt[:30])
            continue
        pose = resolve_npc(rng, spec.placement, registry, config.zone)
        placements.append(
            Placement(
                library_id=asset.id,
                position=(pose.x, 0.0, pose.z),
                rotation=pose.rotation,
                scale=spec.asset.scale,
                type=PlacementType.NPC,
                real_world_size=spec.asset.real_world_size,
                behavior=spec.behavior,
                wander_radius=spec.wander_radius,
            )
        )
        log.debug("NPC at (%.0f, %.0f) - %s", pose.x, pose.z, spec.behavior)
    log.info("NPCs: %d placed", len(placements))
    return placements


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def _referenced_assets(
    placements: Sequence[Placement], assets: Mapping[str, LibraryAsset]
) -> list[LibraryAsset]:
    by_id = {a.id: a for a in assets.values()}
    seen: dict[str, LibraryAsset] = {}
    for p in placements:
        if p.library_id not in seen and p.library_id in by_id:
            seen[p.library_id] = by_id[p.library_id]
    return list(seen.values())


def resolve_placements(
    plan: Plan,
    assets: Mapping[str, LibraryAsset],
    existing_placements: Sequence[Placement] = (),
    measurements: Mapping[str, Bounds] | None = None,
    seed: int | None = None,
    rng: np.random.Generator | None = None,
    config: ResolverConfig | None = None,
) -> LayoutResult:
    """Resolve every element of a plan into concrete placements.

    Args:
        plan: Normalized plan (see plan.parse_plan)
        assets: Prompt → generated library asset. Entries whose prompt is
            missing are skipped with a warning.
        existing_placements: Already placed instances decorations and later
            phases must avoid
        measurements: Library id → measured bounds in normalized asset units
        seed: Random seed (overrides rng)
        rng: Random generator
        config: Zone, spiral profiles and buffers

    Returns:
        LayoutResult with placements in phase order and the distinct assets
        they reference
    """
    if seed is not None:
        rng = np.random.default_rng(seed)
    elif rng is None:
        rng = np.random.default_rng()
    config = config or ResolverConfig()
    measurements = measurements or {}

    registry = StructureRegistry()
    placements: list[Placement] = []

    placements += _place_structures(plan, assets, measurements, registry, config)

    collisions = [CollisionEntry.from_placement(p) for p in existing_placements]
    placements += _place_decorations(rng, plan, assets, registry, collisions, config)

    collisions = list(collisions)
    collisions += [CollisionEntry(s.position, s.bounds.footprint_radius) for s in registry]
    placements += _place_arrangements(rng, plan, assets, registry, collisions, config)

    placements += _place_atmosphere(rng, plan, assets, registry, collisions, config)
    placements += _place_npcs(rng, plan, assets, registry, config)

    result = LayoutResult(placements, _referenced_assets(placements, assets))
    log.info(
        "Complete: %d placements (%s)",
        len(placements),
        ", ".join(f"{t.value}={n}" for t, n in result.counts().items()),
    )
    return result
