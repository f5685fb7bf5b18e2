"""Decoration relationships: items positioned against one registered structure.

Each relationship variant has its own resolver; all return a list of poses
(possibly empty) and never raise for runtime conditions. A missing target
or an unknown relationship kind logs a warning and yields no poses.

    AttachedTo      surface point pushed out along the face normal
    AdjacentTo      on the ground beside a face
    LeaningAgainst  at a face's base, with a tilt for the renderer
    HangingFrom     below a roof point
    Attachment      anchor + [forward, sideways] offset, fanned out by an
                    arrangement mode
    OnTopOf         on the roof with a little jitter
"""

from __future__ import annotations

import logging
from typing import Callable

import numpy as np

from scene_layout.geometry import Point2D, Pose, facing_toward, lateral, local_to_world, offset
from scene_layout.plan import DecorationSpec
from scene_layout.registry import Structure, StructureRegistry, Surface, side_surface
from scene_layout.relationships import (
    AdjacentTo,
    Anchor,
    AttachedTo,
    Attachment,
    AttachmentArrangement,
    AttachmentFacing,
    HangingFrom,
    LeaningAgainst,
    OnTopOf,
    UnknownRelationship,
    facing_to_angle,
)

log = logging.getLogger(__name__)

# Wall-mounted items only: a larger forward offset means a ground-level item
WALL_MOUNT_MAX_FORWARD = 1.0
LEAN_OFFSET = 0.3  # meters out from the wall base
DEFAULT_ATTACHMENT_SPACING = 3.0


def _row_fractions(center: float, count: int, spacing: float, face_length: float) -> list[float]:
    """Fractions along a face for *count* items *spacing* apart, centered on
    *center*. Fractions that fall off the face are dropped."""
    if face_length <= 0:
        return [center] if 0 <= center <= 1 else []
    start = center - (count - 1) * spacing / face_length / 2
    fractions = [start + i * spacing / face_length for i in range(count)]
    return [h for h in fractions if -1e-9 <= h <= 1 + 1e-9]


def _spacing(spec: DecorationSpec) -> float:
    if spec.spacing is not None and spec.spacing > 0:
        return spec.spacing
    return spec.asset.real_world_size * 1.2


# ---------------------------------------------------------------------------
# Per-relationship resolvers
# ---------------------------------------------------------------------------


def _attached_to(
    rng: np.random.Generator,
    rel: AttachedTo,
    spec: DecorationSpec,
    structure: Structure,
    registry: StructureRegistry,
) -> list[Pose]:
    out = rel.out if rel.out is not None else max(0.1, structure.bounds.depth * 0.05)

    if spec.mirror and spec.count == 2:
        fractions = [rel.horizontal, 1 - rel.horizontal]
    elif spec.count == 1:
        fractions = [rel.horizontal]
    else:
        fractions = _row_fractions(
            rel.horizontal,
            spec.count,
            _spacing(spec),
            registry.face_length(structure.id, rel.surface),
        )

    poses = []
    for h in fractions:
        sp = registry.get_surface_position(structure.id, rel.surface, h, rel.vertical)
        p = offset(sp.ground, sp.normal, out)
        poses.append(Pose(p.x, sp.y, p.z, sp.normal))
    return poses


def _adjacent_to(
    rng: np.random.Generator,
    rel: AdjacentTo,
    spec: DecorationSpec,
    structure: Structure,
    registry: StructureRegistry,
) -> list[Pose]:
    if rel.horizontal is not None:
        sp = registry.get_surface_position(
            structure.id, side_surface(rel.side), rel.horizontal, 0.0
        )
        p = offset(sp.ground, sp.normal, rel.distance)
        return [Pose(p.x, 0.0, p.z, sp.normal + np.pi)]

    adj = registry.get_adjacent_position(structure.id, rel.side, rel.distance)
    if spec.count == 1:
        return [adj]

    spacing = _spacing(spec)
    lx, lz = lateral(adj.rotation)
    start = -(spec.count - 1) * spacing / 2
    poses = []
    for i in range(spec.count):
        d = start + i * spacing
        poses.append(Pose(adj.x + lx * d, 0.0, adj.z + lz * d, adj.rotation))
    return poses


def _leaning_against(
    rng: np.random.Generator,
    rel: LeaningAgainst,
    spec: DecorationSpec,
    structure: Structure,
    registry: StructureRegistry,
) -> list[Pose]:
    tilt = float(np.radians(rel.angle_deg))

    if spec.count == 1:
        fractions = [rel.horizontal]
    else:
        fractions = _row_fractions(
            rel.horizontal,
            spec.count,
            _spacing(spec),
            registry.face_length(structure.id, rel.surface),
        )

    poses = []
    for h in fractions:
        sp = registry.get_surface_position(structure.id, rel.surface, h, 0.0)
        p = offset(sp.ground, sp.normal, LEAN_OFFSET)
        rotation = sp.normal
        if spec.count > 1:
            rotation += rng.uniform(-0.1, 0.1)
        poses.append(Pose(p.x, 0.0, p.z, rotation, tilt=tilt))
    return poses


def _hanging_from(
    rng: np.random.Generator,
    rel: HangingFrom,
    spec: DecorationSpec,
    structure: Structure,
    registry: StructureRegistry,
) -> list[Pose]:
    sp = registry.get_surface_position(structure.id, rel.surface, rel.horizontal, rel.vertical)
    return [Pose(sp.x, sp.y - rel.drop, sp.z, sp.normal)]


def _on_top_of(
    rng: np.random.Generator,
    rel: OnTopOf,
    spec: DecorationSpec,
    structure: Structure,
    registry: StructureRegistry,
) -> list[Pose]:
    top = registry.get_surface_position(structure.id, Surface.ROOF, rel.horizontal, rel.vertical)
    y = top.y + spec.asset.estimated_bounds.height / 2
    poses = []
    for _ in range(spec.count):
        poses.append(
            Pose(
                top.x + rng.uniform(-1, 1),
                y,
                top.z + rng.uniform(-1, 1),
                rng.uniform(0, 2 * np.pi),
            )
        )
    return poses


def _anchor_frame(
    rng: np.random.Generator, rel: Attachment, structure: Structure
) -> tuple[Point2D, float, float]:
    """Base ground point, base height and outward yaw for an anchor."""
    r = structure.rotation
    b = structure.bounds
    hw, hd = b.width / 2, b.depth / 2
    wall_mounted = (
        rel.height_ratio is not None
        and rel.height_ratio > 0
        and abs(rel.forward) <= WALL_MOUNT_MAX_FORWARD
    )
    wall_y = rel.height_ratio * b.height if wall_mounted else 0.0
    center = structure.position

    if rel.anchor == Anchor.FRONT:
        return local_to_world(center, r, 0.0, hd), wall_y, r
    elif rel.anchor == Anchor.BACK:
        return local_to_world(center, r, 0.0, -hd), wall_y, r + np.pi
    elif rel.anchor == Anchor.LEFT:
        return local_to_world(center, r, -hw, 0.0), wall_y, r - np.pi / 2
    elif rel.anchor == Anchor.RIGHT:
        return local_to_world(center, r, hw, 0.0), wall_y, r + np.pi / 2
    elif rel.anchor == Anchor.TOP:
        return center, b.height, r
    elif rel.anchor == Anchor.CENTER:
        return center, b.height / 2, r
    else:  # PERIMETER
        a = rng.uniform(0, 2 * np.pi)
        base = local_to_world(center, r, np.cos(a) * hw, np.sin(a) * hd)
        return base, 0.0, facing_toward(center, base)


def _attachment_yaw(
    rng: np.random.Generator, facing: AttachmentFacing, face_angle: float, parent: float
) -> float:
    if facing == AttachmentFacing.TOWARD_PARENT:
        return face_angle + np.pi
    elif facing == AttachmentFacing.AWAY:
        return face_angle
    elif facing == AttachmentFacing.INHERIT:
        return parent
    elif facing == AttachmentFacing.RANDOM:
        return rng.uniform(0, 2 * np.pi)
    return facing_to_angle(facing.value)


def _attachment(
    rng: np.random.Generator,
    rel: Attachment,
    spec: DecorationSpec,
    structure: Structure,
    registry: StructureRegistry,
) -> list[Pose]:
    anchor, y, fa = _anchor_frame(rng, rel, structure)
    base = local_to_world(anchor, fa, rel.sideways, rel.forward)
    yaw = _attachment_yaw(rng, rel.facing, fa, structure.rotation)
    spacing = spec.spacing if spec.spacing else DEFAULT_ATTACHMENT_SPACING
    n = spec.count

    if rel.arrangement == AttachmentArrangement.SINGLE or n == 1:
        return [Pose(base.x, y, base.z, yaw)]

    poses = []
    if rel.arrangement == AttachmentArrangement.ROW:
        start = -(n - 1) * spacing / 2
        for i in range(n):
            p = local_to_world(base, fa, start + i * spacing, 0.0)
            poses.append(Pose(p.x, y, p.z, yaw))
    elif rel.arrangement == AttachmentArrangement.COLUMN:
        for i in range(n):
            p = local_to_world(base, fa, 0.0, i * spacing)
            poses.append(Pose(p.x, y, p.z, yaw))
    elif rel.arrangement == AttachmentArrangement.CLUSTER:
        for _ in range(n):
            angle = rng.uniform(0, 2 * np.pi)
            dist = rng.random() * spacing
            item_yaw = yaw
            if rel.facing == AttachmentFacing.RANDOM:
                item_yaw = rng.uniform(0, 2 * np.pi)
            poses.append(
                Pose(base.x + np.cos(angle) * dist, y, base.z + np.sin(angle) * dist, item_yaw)
            )
    else:  # GRID
        cols, rows = rel.grid_size
        for row in range(rows):
            for col in range(cols):
                lx = (col - (cols - 1) / 2) * spacing
                lz = (row - (rows - 1) / 2) * spacing
                p = local_to_world(base, fa, lx, lz)
                poses.append(Pose(p.x, y, p.z, yaw))
    return poses


_Resolver = Callable[..., list[Pose]]

_RESOLVERS: dict[type, _Resolver] = {
    AttachedTo: _attached_to,
    AdjacentTo: _adjacent_to,
    LeaningAgainst: _leaning_against,
    HangingFrom: _hanging_from,
    Attachment: _attachment,
    OnTopOf: _on_top_of,
}


def resolve_decoration(
    rng: np.random.Generator,
    spec: DecorationSpec,
    registry: StructureRegistry,
) -> list[Pose]:
    """Candidate poses for one decoration entry (before collision checks)."""
    rel = spec.relationship
    if isinstance(rel, UnknownRelationship):
        log.warning("Unknown decoration relationship type: %s", rel.kind)
        return []

    structure = registry.get(rel.target)
    if structure is None:
        log.warning("Decoration target %r not found", rel.target)
        return []

    return _RESOLVERS[type(rel)](rng, rel, spec, structure, registry)
