"""Placement output types and collision bookkeeping.

A Placement is the unit handed to the renderer: a library asset id, a world
transform, and a few type-specific tags. A LayoutResult keeps placements in
insertion order (structures, decorations, arrangements, atmosphere, NPCs).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

import numpy as np

from scene_layout.geometry import Point2D
from scene_layout.sizing import collision_radius

# Diagnostic tag for a structure whose spiral search ran out of attempts
COLLISION_UNRESOLVED = "collision_unresolved"


class PlacementType(Enum):
    """Pipeline phase that produced a placement (in pipeline order)."""

    STRUCTURE = "structure"
    DECORATION = "decoration"
    ARRANGEMENT = "arrangement"
    ATMOSPHERE = "atmosphere"
    NPC = "npc"


PHASE_ORDER = tuple(PlacementType)


@dataclass(frozen=True)
class LibraryAsset:
    """A generated asset the plan refers to by prompt."""

    id: str
    prompt: str = ""


@dataclass(frozen=True)
class Placement:
    """One resolved scene element.

    Attributes:
        library_id: Asset to instantiate
        position: World (x, y, z); y is height above the terrain, snapped
            downstream
        rotation: Yaw in radians
        scale: World scale multiplier for the normalized asset
        type: Phase that produced this placement
        real_world_size: Largest dimension in meters (collision radius source)
        tilt: Lean angle in radians for leaning decorations
        structure_id: Id a structure was registered under
        target_structure_id: Structure a decoration belongs to
        arrangement_name: Group an arrangement item belongs to
        behavior, wander_radius: NPC runtime hints
        diagnostics: Non-fatal conditions hit while resolving (e.g.
            COLLISION_UNRESOLVED)
    """

    library_id: str
    position: tuple[float, float, float]
    rotation: float
    scale: float
    type: PlacementType
    real_world_size: float | None = None
    tilt: float | None = None
    structure_id: str | None = None
    target_structure_id: str | None = None
    arrangement_name: str | None = None
    behavior: str | None = None
    wander_radius: float | None = None
    diagnostics: tuple[str, ...] = ()

    @property
    def ground(self) -> Point2D:
        return Point2D(self.position[0], self.position[2])

    @property
    def collision_radius(self) -> float:
        return collision_radius(self.real_world_size, self.scale)

    def to_dict(self) -> dict:
        """JSON-friendly dict; unset optional tags are omitted."""
        d = {
            "libraryId": self.library_id,
            "position": [float(v) for v in self.position],
            "rotation": float(self.rotation),
            "scale": float(self.scale),
            "type": self.type.value,
        }
        optional = {
            "realWorldSize": self.real_world_size,
            "tilt": self.tilt,
            "structureId": self.structure_id,
            "targetStructureId": self.target_structure_id,
            "arrangementName": self.arrangement_name,
            "behavior": self.behavior,
            "wanderRadius": self.wander_radius,
        }
        d.update({k: v for k, v in optional.items() if v is not None})
        if self.diagnostics:
            d["diagnostics"] = list(self.diagnostics)
        return d


@dataclass(frozen=True)
class CollisionEntry:
    """Ground position + radius used for center-distance checks.

    target_structure_id marks decorations so items on the same structure
    can skip checking each other.
    """

    position: Point2D
    radius: float
    target_structure_id: str | None = None

    @classmethod
    def from_placement(cls, placement: Placement) -> CollisionEntry:
        return cls(
            placement.ground, placement.collision_radius, placement.target_structure_id
        )


def collides(
    position: Point2D,
    radius: float,
    entries: list[CollisionEntry],
    buffer: float,
    skip_target: str | None = None,
) -> bool:
    """True if *position* is within radius + entry.radius + buffer of any
    entry. Entries tagged with *skip_target* drop the buffer and only
    collide when the two radii actually overlap."""
    for entry in entries:
        same_target = skip_target is not None and entry.target_structure_id == skip_target
        margin = 0.0 if same_target else buffer
        if position.distance_to(entry.position) < radius + entry.radius + margin:
            return True
    return False


@dataclass
class LayoutResult:
    """Ordered placements plus the distinct assets they reference."""

    placements: list[Placement] = field(default_factory=list)
    library_assets: list[LibraryAsset] = field(default_factory=list)

    def of_type(self, placement_type: PlacementType) -> list[Placement]:
        return [p for p in self.placements if p.type == placement_type]

    def counts(self) -> dict[PlacementType, int]:
        return {t: len(self.of_type(t)) for t in PHASE_ORDER}

    def to_dict(self) -> dict:
        return {
            "placements": [p.to_dict() for p in self.placements],
            "libraryAssets": [{"id": a.id, "prompt": a.prompt} for a in self.library_assets],
        }


def describe_placement(p: Placement) -> str:
    """One-line description of a placement."""
    x, y, z = p.position
    rot_deg = np.degrees(p.rotation)
    tags = []
    for label, value in (
        ("id", p.structure_id),
        ("on", p.target_structure_id),
        ("group", p.arrangement_name),
        ("behavior", p.behavior),
    ):
        if value is not None:
            tags.append(f"{label}={value}")
    if p.tilt is not None:
        tags.append(f"tilt={np.degrees(p.tilt):.0f}°")
    tags.extend(f"!{d}" for d in p.diagnostics)
    tag_str = f"  ({', '.join(tags)})" if tags else ""
    return (
        f"{p.type.value:<11} {p.library_id} at ({x:.1f}, {y:.1f}, {z:.1f}) "
        f"rot {rot_deg:.0f}° scale {p.scale:.1f}{tag_str}"
    )


def describe_layout(result: LayoutResult, seed: int | None = None) -> str:
    """Multi-line textual description of a resolved layout.

    Example output:
        Layout (seed=42)  3 placements, 2 assets
          structures=1 decorations=1 arrangements=0 atmosphere=1 npcs=0
          [0] structure   asset_diner at (200.0, 0.0, 200.0) rot 0° scale 40.0  (id=diner)
          [1] decoration  asset_sign at (201.2, 8.5, 204.3) rot 0° scale 4.0  (on=diner)
          [2] atmosphere  asset_tree at (63.0, 0.0, 310.5) rot 212° scale 32.0
    """
    seed_str = f" (seed={seed})" if seed is not None else ""
    lines = [
        f"Layout{seed_str}  {len(result.placements)} placements, "
        f"{len(result.library_assets)} assets"
    ]
    counts = result.counts()
    lines.append(
        "  "
        + " ".join(
            f"{name}={counts[t]}"
            for name, t in (
                ("structures", PlacementType.STRUCTURE),
                ("decorations", PlacementType.DECORATION),
                ("arrangements", PlacementType.ARRANGEMENT),
                ("atmosphere", PlacementType.ATMOSPHERE),
                ("npcs", PlacementType.NPC),
            )
        )
    )
    for i, p in enumerate(result.placements):
        lines.append(f"  [{i}] {describe_placement(p)}")
    return "\n".join(lines)
