"""Relationship vocabulary: closed enums and one variant per relationship kind.

Plan data names relationships with open strings ("attached_to",
"flanking", ...). The plan parser converts those strings into the frozen
dataclasses below; each carries only the fields its kind needs. Strings
that match no known kind become UnknownRelationship, which resolvers
report and skip.

Relationship families:
    structure placement   ExplicitPosition | KeywordPosition | RelativePosition
    decoration            AttachedTo | AdjacentTo | LeaningAgainst | HangingFrom
                          | Attachment | OnTopOf | UnknownRelationship
    atmosphere            Flanking | AlongStructures | AlongEdgeLine | AlongPoints
                          | AlongStructureEdge | Scattered | Framing
                          | AtmosphereAdjacent | UnknownRelationship
    arrangement           ArrangementPattern
    npc                   NpcPlacement (structure or arrangement reference)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union

import numpy as np

from scene_layout.geometry import Point2D
from scene_layout.registry import Side, Surface

# ---------------------------------------------------------------------------
# Facing
# ---------------------------------------------------------------------------


class Facing(Enum):
    """Cardinal facing keywords for structures."""

    SOUTH = "south"
    NORTH = "north"
    EAST = "east"
    WEST = "west"
    TOWARD_CAMERA = "toward_camera"


FACING_ANGLES: dict[Facing, float] = {
    Facing.SOUTH: 0.0,
    Facing.NORTH: np.pi,
    Facing.EAST: np.pi / 2,
    Facing.WEST: -np.pi / 2,
    Facing.TOWARD_CAMERA: np.pi * 0.15,
}


def facing_to_angle(facing: Facing | str | None) -> float:
    """Yaw for a facing keyword. Unknown or missing keywords face south."""
    if facing is None:
        return FACING_ANGLES[Facing.SOUTH]
    if isinstance(facing, str):
        try:
            facing = Facing(facing)
        except ValueError:
            return FACING_ANGLES[Facing.SOUTH]
    return FACING_ANGLES[facing]


# ---------------------------------------------------------------------------
# Structure placement
# ---------------------------------------------------------------------------


class PositionKeyword(Enum):
    """Named spots in the working zone."""

    CENTER = "center"
    NORTH = "north"
    SOUTH = "south"
    EAST = "east"
    WEST = "west"
    NE = "NE"
    NW = "NW"
    SE = "SE"
    SW = "SW"


@dataclass(frozen=True)
class ExplicitPosition:
    """Caller-supplied coordinates; clamped into the zone, never moved far."""

    x: float
    z: float


@dataclass(frozen=True)
class KeywordPosition:
    keyword: PositionKeyword = PositionKeyword.CENTER


@dataclass(frozen=True)
class RelativePosition:
    """Beside another structure, via the registry's adjacency query."""

    relative_to: str
    side: Side = Side.FRONT
    distance: float = 15.0


StructurePlacement = Union[ExplicitPosition, KeywordPosition, RelativePosition]


# ---------------------------------------------------------------------------
# Decorations
# ---------------------------------------------------------------------------


class Anchor(Enum):
    """Local origin on a structure for anchor+offset attachments."""

    FRONT = "front"
    BACK = "back"
    LEFT = "left"
    RIGHT = "right"
    TOP = "top"
    CENTER = "center"
    PERIMETER = "perimeter"


class AttachmentFacing(Enum):
    TOWARD_PARENT = "toward_parent"
    AWAY = "away"
    INHERIT = "inherit"
    NORTH = "north"
    SOUTH = "south"
    EAST = "east"
    WEST = "west"
    RANDOM = "random"


class AttachmentArrangement(Enum):
    """How one anchor point fans out into several items."""

    SINGLE = "single"
    ROW = "row"  # perpendicular to the facing
    COLUMN = "column"  # along the facing
    CLUSTER = "cluster"  # random within the spacing radius
    GRID = "grid"  # cols x rows, rotated into the anchor frame


@dataclass(frozen=True)
class AttachedTo:
    """Mounted on a face (signs, windows, lamps)."""

    target: str
    surface: Surface = Surface.FRONT
    horizontal: float = 0.5
    vertical: float = 0.5
    out: float | None = None  # Outward offset; None scales with the structure depth


@dataclass(frozen=True)
class AdjacentTo:
    """Standing on the ground beside a face.

    With *horizontal* set, a single item goes at that fraction along the
    face instead of the face center.
    """

    target: str
    side: Side = Side.FRONT
    distance: float = 1.0
    horizontal: float | None = None


@dataclass(frozen=True)
class LeaningAgainst:
    target: str
    surface: Surface = Surface.FRONT
    horizontal: float = 0.5
    angle_deg: float = 15.0


@dataclass(frozen=True)
class HangingFrom:
    target: str
    surface: Surface = Surface.ROOF
    horizontal: float = 0.5
    vertical: float = 0.5
    drop: float = 1.0


@dataclass(frozen=True)
class Attachment:
    """Anchor + [forward, sideways] offset in the anchor's frame.

    height_ratio lifts wall-mounted items (0-1 of the structure height) but
    only while |forward| <= 1m; anything pushed further out is furniture on
    the ground.
    """

    target: str
    anchor: Anchor = Anchor.FRONT
    forward: float = 0.0
    sideways: float = 0.0
    height_ratio: float | None = None
    facing: AttachmentFacing = AttachmentFacing.TOWARD_PARENT
    arrangement: AttachmentArrangement = AttachmentArrangement.SINGLE
    grid_size: tuple[int, int] = (2, 2)  # (cols, rows)


@dataclass(frozen=True)
class OnTopOf:
    target: str
    horizontal: float = 0.5
    vertical: float = 0.5


@dataclass(frozen=True)
class UnknownRelationship:
    """A relationship kind this version doesn't understand."""

    kind: str
    target: str | None = None


DecorationRelationship = Union[
    AttachedTo,
    AdjacentTo,
    LeaningAgainst,
    HangingFrom,
    Attachment,
    OnTopOf,
    UnknownRelationship,
]


# ---------------------------------------------------------------------------
# Arrangements
# ---------------------------------------------------------------------------


class ArrangementPattern(Enum):
    CLUSTER = "cluster"
    GRID = "grid"
    ROW = "row"
    CIRCLE = "circle"


# ---------------------------------------------------------------------------
# Atmosphere
# ---------------------------------------------------------------------------


class Density(Enum):
    SPARSE = "sparse"
    MEDIUM = "medium"
    HIGH = "high"


class ScatterZone(Enum):
    EVERYWHERE = "everywhere"
    SCENE = "scene"
    EDGES = "edges"


@dataclass(frozen=True)
class Flanking:
    """Symmetric pair straddling a structure's adjacency point."""

    target: str
    side: Side = Side.ENTRANCE
    spacing: float = 8.0
    distance: float = 3.0


@dataclass(frozen=True)
class AlongStructures:
    """Leading line between two structures' centers."""

    from_id: str
    to_id: str
    jitter: float = 3.0


@dataclass(frozen=True)
class AlongPoints:
    """Leading line between two explicit ground points."""

    start: Point2D
    end: Point2D
    jitter: float = 3.0


@dataclass(frozen=True)
class AlongEdgeLine:
    """Leading line along one face's base ("diner.front")."""

    target: str
    side: Surface = Surface.FRONT
    jitter: float = 3.0


@dataclass(frozen=True)
class AlongStructureEdge:
    """Evenly spaced points just outside one face, facing back at it."""

    target: str
    side: Surface = Surface.FRONT
    spacing: float = 8.0
    distance: float = 2.0


@dataclass(frozen=True)
class Scattered:
    """Poisson-disk scatter over the zone, around a structure, or at the
    zone edges.

    Exactly one of *zone* / *around* applies; *around* wins when set.
    """

    zone: ScatterZone = ScatterZone.EVERYWHERE
    around: str | None = None
    around_radius: float = 15.0
    spacing: float = 5.0
    avoid_structures: bool = True
    camera_aware: bool = False


@dataclass(frozen=True)
class Framing:
    camera_aware: bool = False


@dataclass(frozen=True)
class AtmosphereAdjacent:
    """Several items spread along one face, facing away from it."""

    target: str
    side: Side = Side.FRONT
    spacing: float = 3.0
    distance: float = 2.0


AtmosphereRelationship = Union[
    Flanking,
    AlongStructures,
    AlongPoints,
    AlongEdgeLine,
    AlongStructureEdge,
    Scattered,
    Framing,
    AtmosphereAdjacent,
    UnknownRelationship,
]


# ---------------------------------------------------------------------------
# NPCs
# ---------------------------------------------------------------------------


class NpcPosition(Enum):
    AT_ENTRANCE = "at_entrance"
    NEAR = "near"
    WITHIN = "within"


@dataclass(frozen=True)
class NpcPlacement:
    """Where an NPC starts, relative to a structure or an arrangement name."""

    relative_to: str | None
    position: NpcPosition = NpcPosition.NEAR
    side: Side = Side.FRONT
    distance: float | None = None
    lateral_offset: float = 0.0
