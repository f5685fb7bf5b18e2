"""Structure registry: pose and footprint of everything placed so far.

A registry is created fresh for every resolution pass and threaded through
the resolvers explicitly. It answers two geometric questions about a
registered structure:

    get_surface_position   a point on one face of the structure's box, plus
                           the outward normal of that face
    get_adjacent_position  a point in front of a face, facing back at it

Faces are expressed in the structure's local frame (front = local +z) and
rotated into world space with the structure's yaw.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from enum import Enum

import numpy as np

from scene_layout.geometry import (
    Bounds,
    Point2D,
    Pose,
    footprint_reach,
    local_to_world,
    offset,
)

log = logging.getLogger(__name__)


class Surface(Enum):
    """A face of a structure's bounding box."""

    FRONT = "front"
    BACK = "back"
    LEFT = "left"
    RIGHT = "right"
    ROOF = "roof"
    TOP = "top"


class Side(Enum):
    """A side to stand beside. ENTRANCE is an alias for FRONT."""

    FRONT = "front"
    BACK = "back"
    LEFT = "left"
    RIGHT = "right"
    ENTRANCE = "entrance"


# Outward normal of each face, relative to the structure's yaw
_SURFACE_NORMALS = {
    Surface.FRONT: 0.0,
    Surface.BACK: np.pi,
    Surface.LEFT: -np.pi / 2,
    Surface.RIGHT: np.pi / 2,
}

_SIDE_TO_SURFACE = {
    Side.FRONT: Surface.FRONT,
    Side.ENTRANCE: Surface.FRONT,
    Side.BACK: Surface.BACK,
    Side.LEFT: Surface.LEFT,
    Side.RIGHT: Surface.RIGHT,
}


def side_surface(side: Side | Surface | str) -> Surface:
    """The face a side refers to (entrance is the front face)."""
    if isinstance(side, Surface):
        return side
    return _SIDE_TO_SURFACE[Side(side)]


@dataclass(frozen=True)
class Structure:
    """A registered structure. Immutable once registered."""

    id: str
    position: Point2D
    rotation: float
    bounds: Bounds
    category: str = "buildings"

    @property
    def reach(self) -> Bounds:
        """Axis-aligned box containing the rotated footprint."""
        return footprint_reach(self.bounds, self.rotation)


@dataclass(frozen=True)
class ArrangementInfo:
    """A named group centroid, kept for later NPC/decoration lookups only."""

    name: str
    center: Point2D
    radius: float
    item_positions: tuple[Point2D, ...] = ()


@dataclass(frozen=True)
class SurfacePoint:
    """A world-space point on a structure face.

    Attributes:
        x, y, z: World position (y is height above the structure's base)
        normal: Yaw of the face's outward direction
    """

    x: float
    y: float
    z: float
    normal: float

    @property
    def ground(self) -> Point2D:
        return Point2D(self.x, self.z)


@dataclass
class StructureRegistry:
    """Per-pass catalog of placed structures and named arrangements."""

    _structures: dict[str, Structure] = field(default_factory=dict)
    _arrangements: dict[str, ArrangementInfo] = field(default_factory=dict)

    def register(
        self,
        structure_id: str,
        position: Point2D,
        rotation: float,
        bounds: Bounds,
        category: str = "buildings",
    ) -> Structure:
        """Store a structure's pose and footprint. Re-registering an id
        overwrites it."""
        structure = Structure(structure_id, position, float(rotation), bounds, category)
        self._structures[structure_id] = structure
        log.debug(
            "Registered %s at (%.1f, %.1f) rot=%.2f bounds=%.1fx%.1fx%.1f",
            structure_id,
            position.x,
            position.z,
            rotation,
            bounds.width,
            bounds.height,
            bounds.depth,
        )
        return structure

    def get(self, structure_id: str | None) -> Structure | None:
        if structure_id is None:
            return None
        return self._structures.get(structure_id)

    def __contains__(self, structure_id: object) -> bool:
        return structure_id in self._structures

    def __iter__(self) -> Iterator[Structure]:
        return iter(self._structures.values())

    def __len__(self) -> int:
        return len(self._structures)

    # -- Surface queries ----------------------------------------------------

    def get_surface_position(
        self,
        structure_id: str,
        surface: Surface | str,
        horizontal: float = 0.5,
        vertical: float = 0.5,
    ) -> SurfacePoint | None:
        """World point on one face of a structure, or None if unregistered.

        Args:
            structure_id: Registered structure id
            surface: front/back/left/right, or roof/top for the flat top plane
            horizontal: 0-1 across the face (0 = left edge as seen facing it)
            vertical: 0-1 from the base to the structure's height. For
                roof/top it sweeps the depth instead.

        Returns:
            SurfacePoint with the face's outward normal
        """
        structure = self.get(structure_id)
        if structure is None:
            return None
        surface = Surface(surface)
        b = structure.bounds
        r = structure.rotation
        h = horizontal - 0.5

        if surface in (Surface.ROOF, Surface.TOP):
            p = local_to_world(structure.position, r, h * b.width, (vertical - 0.5) * b.depth)
            return SurfacePoint(p.x, b.height, p.z, r)

        if surface == Surface.FRONT:
            local = (h * b.width, b.depth / 2)
        elif surface == Surface.BACK:
            local = (-h * b.width, -b.depth / 2)
        elif surface == Surface.LEFT:
            local = (-b.width / 2, h * b.depth)
        else:  # RIGHT
            local = (b.width / 2, -h * b.depth)

        p = local_to_world(structure.position, r, *local)
        return SurfacePoint(p.x, vertical * b.height, p.z, r + _SURFACE_NORMALS[surface])

    def get_adjacent_position(
        self, structure_id: str, side: Side | str = Side.FRONT, distance: float = 0.0
    ) -> Pose | None:
        """Ground pose *distance* beyond the center of a face, facing back
        toward the structure. None if the structure is unregistered."""
        structure = self.get(structure_id)
        if structure is None:
            return None
        surface = side_surface(side)
        normal = structure.rotation + _SURFACE_NORMALS[surface]
        if surface in (Surface.FRONT, Surface.BACK):
            half = structure.bounds.depth / 2
        else:
            half = structure.bounds.width / 2
        p = offset(structure.position, normal, half + distance)
        return Pose(p.x, 0.0, p.z, normal + np.pi)

    def face_length(self, structure_id: str, side: Side | Surface | str) -> float:
        """Length of a face along the ground (width for front/back, depth
        for left/right). 0 for an unregistered structure."""
        structure = self.get(structure_id)
        if structure is None:
            return 0.0
        if side_surface(side) in (Surface.LEFT, Surface.RIGHT):
            return structure.bounds.depth
        return structure.bounds.width

    # -- Arrangements -------------------------------------------------------

    def register_arrangement(
        self,
        name: str,
        center: Point2D,
        radius: float,
        item_positions: Sequence[Point2D] = (),
    ) -> ArrangementInfo:
        info = ArrangementInfo(name, center, radius, tuple(item_positions))
        self._arrangements[name] = info
        return info

    def get_arrangement(self, name: str | None) -> ArrangementInfo | None:
        if name is None:
            return None
        return self._arrangements.get(name)
