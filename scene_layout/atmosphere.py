"""Atmosphere relationships: ambient and background elements.

Density scales the requested count before generation
(sparse=0.5, medium=1, high=1.5). Scattered placement filters its own
candidates against the running collision list and, optionally, every
registered structure's footprint; the orchestrator applies the final
center-distance filter to every atmosphere pose.
"""

from __future__ import annotations

import logging
from typing import Callable

import numpy as np

from scene_layout import sampling
from scene_layout.config import DENSITY_MULTIPLIERS, ResolverConfig
from scene_layout.geometry import Point2D, Pose, forward, lateral, offset
from scene_layout.placements import CollisionEntry, collides
from scene_layout.plan import AtmosphereSpec
from scene_layout.registry import StructureRegistry, Surface, side_surface
from scene_layout.relationships import (
    AlongEdgeLine,
    AlongPoints,
    AlongStructureEdge,
    AlongStructures,
    AtmosphereAdjacent,
    Flanking,
    Framing,
    Scattered,
    ScatterZone,
    UnknownRelationship,
)

log = logging.getLogger(__name__)

# Fallback endpoints for a path between unregistered structures
_PATH_FALLBACK_HALF_LENGTH = 30.0


def effective_count(spec: AtmosphereSpec) -> int:
    """Requested count scaled by density (rounded half up)."""
    multiplier = DENSITY_MULTIPLIERS.get(spec.density.value, 1.0)
    return int(np.floor(spec.count * multiplier + 0.5))


def _flanking(rng, rel: Flanking, count, registry, collisions, config, item_radius):
    structure = registry.get(rel.target)
    if structure is None:
        log.warning("Flanking target %r not found", rel.target)
        return []
    adj = registry.get_adjacent_position(rel.target, rel.side, rel.distance)
    lx, lz = lateral(structure.rotation)
    half = rel.spacing / 2
    return [
        Pose(adj.x + lx * d, 0.0, adj.z + lz * d, adj.rotation + rng.uniform(-0.15, 0.15))
        for d in (half, -half)
    ]


def _along_structures(rng, rel: AlongStructures, count, registry, collisions, config, item_radius):
    center = config.zone.center
    start = registry.get(rel.from_id)
    end = registry.get(rel.to_id)
    if start is None or end is None:
        log.warning("Path endpoint not registered (%r -> %r)", rel.from_id, rel.to_id)
    p0 = start.position if start else Point2D(center.x - _PATH_FALLBACK_HALF_LENGTH, center.z)
    p1 = end.position if end else Point2D(center.x + _PATH_FALLBACK_HALF_LENGTH, center.z)
    return sampling.leading_line(rng, p0, p1, count, rel.jitter)


def _along_points(rng, rel: AlongPoints, count, registry, collisions, config, item_radius):
    return sampling.leading_line(rng, rel.start, rel.end, count, rel.jitter)


def _along_edge_line(rng, rel: AlongEdgeLine, count, registry, collisions, config, item_radius):
    if registry.get(rel.target) is None:
        log.warning("Path structure %r not found", rel.target)
        return []
    start = registry.get_surface_position(rel.target, rel.side, 0.0, 0.0)
    end = registry.get_surface_position(rel.target, rel.side, 1.0, 0.0)
    return sampling.leading_line(rng, start.ground, end.ground, count, rel.jitter)


def _along_structure_edge(
    rng, rel: AlongStructureEdge, count, registry, collisions, config, item_radius
):
    if registry.get(rel.target) is None:
        log.warning("Along target %r not found", rel.target)
        return []
    edge = registry.face_length(rel.target, rel.side)
    n = min(count, int(np.floor(edge / rel.spacing)) + 1)
    poses = []
    for i in range(n):
        sp = registry.get_surface_position(rel.target, rel.side, (i + 0.5) / n, 0.0)
        p = offset(sp.ground, sp.normal, rel.distance)
        poses.append(Pose(p.x, 0.0, p.z, sp.normal + np.pi))
    return poses


def _scattered(rng, rel: Scattered, count, registry, collisions, config, item_radius):
    zone = config.zone
    if rel.around is not None:
        structure = registry.get(rel.around)
        if structure is None:
            log.warning("Scatter center %r not found", rel.around)
            return []
        return sampling.ring(rng, structure.position, count, rel.around_radius, 0.5)

    if rel.zone == ScatterZone.EDGES:
        return sampling.background(rng, zone.center, count, zone, rel.camera_aware)

    # Oversample; collisions and structure avoidance thin the candidates
    candidates = sampling.poisson_disk(
        rng, zone.inset(config.scatter_inset), count * 2, rel.spacing, min_count=0
    )
    poses = []
    for p in candidates:
        if len(poses) >= count:
            break
        if collides(p, item_radius, collisions, config.collision_buffer):
            continue
        if rel.avoid_structures and any(
            p.distance_to(s.position) < s.bounds.half_diagonal + config.structure_avoid_buffer
            for s in registry
        ):
            continue
        poses.append(Pose(p.x, 0.0, p.z, rng.uniform(0, 2 * np.pi)))
    if len(poses) < count:
        log.warning(
            "Scattered undercount: requested %d, placed %d (spacing %.1fm, %d candidates)",
            count,
            len(poses),
            rel.spacing,
            len(candidates),
        )
    return poses


def _framing(rng, rel: Framing, count, registry, collisions, config, item_radius):
    zone = config.zone
    return sampling.background(rng, zone.center, count, zone, rel.camera_aware)


def _adjacent(rng, rel: AtmosphereAdjacent, count, registry, collisions, config, item_radius):
    structure = registry.get(rel.target)
    if structure is None:
        log.warning("Adjacent target %r not found", rel.target)
        return []
    adj = registry.get_adjacent_position(rel.target, rel.side, rel.distance)
    edge = registry.face_length(rel.target, rel.side)
    n = min(count, int(np.floor(edge / rel.spacing)) + 1)
    # Front/back faces run along the local x axis, left/right along local z
    if side_surface(rel.side) in (Surface.LEFT, Surface.RIGHT):
        dx, dz = forward(structure.rotation)
    else:
        dx, dz = lateral(structure.rotation)
    away = adj.rotation + np.pi
    poses = []
    for i in range(n):
        d = (i - (n - 1) / 2) * rel.spacing
        poses.append(Pose(adj.x + dx * d, 0.0, adj.z + dz * d, away))
    return poses


_RESOLVERS: dict[type, Callable[..., list[Pose]]] = {
    Flanking: _flanking,
    AlongStructures: _along_structures,
    AlongPoints: _along_points,
    AlongEdgeLine: _along_edge_line,
    AlongStructureEdge: _along_structure_edge,
    Scattered: _scattered,
    Framing: _framing,
    AtmosphereAdjacent: _adjacent,
}


def resolve_atmosphere(
    rng: np.random.Generator,
    spec: AtmosphereSpec,
    registry: StructureRegistry,
    collisions: list[CollisionEntry],
    config: ResolverConfig | None = None,
    item_radius: float = 1.0,
) -> list[Pose]:
    """Candidate poses for one atmosphere entry.

    Args:
        rng: Random generator
        spec: Atmosphere entry from the plan
        registry: Structures and arrangements placed so far
        collisions: Running collision list (read only here)
        config: Zone and buffer settings
        item_radius: Collision radius of this entry's asset

    Returns:
        Poses; may be fewer than requested
    """
    config = config or ResolverConfig()
    rel = spec.relationship
    if isinstance(rel, UnknownRelationship):
        log.warning("Unknown atmosphere relationship type: %s", rel.kind)
        return []
    count = effective_count(spec)
    if count <= 0:
        return []
    return _RESOLVERS[type(rel)](rng, rel, count, registry, collisions, config, item_radius)
