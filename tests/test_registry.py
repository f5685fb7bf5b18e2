"""Tests for the structure registry's surface and adjacency queries.

Validates that:
- Surface points land on the right face, rotated with the structure's yaw
- Outward normals follow front=r, back=r+pi, left=r-pi/2, right=r+pi/2
- Adjacency poses sit beyond the face and face back at the structure
- Unknown structures answer None instead of raising
"""

import numpy as np
import pytest

from scene_layout.geometry import Bounds, Point2D, forward
from scene_layout.registry import Side, StructureRegistry, Surface, side_surface


@pytest.fixture
def registry():
    reg = StructureRegistry()
    reg.register("diner", Point2D(100.0, 100.0), 0.0, Bounds(10.0, 8.0, 6.0))
    reg.register("tower", Point2D(50.0, 50.0), np.pi / 2, Bounds(10.0, 20.0, 6.0))
    return reg


class TestRegistration:
    def test_get_and_contains(self, registry):
        diner = registry.get("diner")
        assert diner is not None
        assert diner.position == Point2D(100.0, 100.0)
        assert "diner" in registry
        assert "missing" not in registry
        assert len(registry) == 2

    def test_missing_and_none(self, registry):
        assert registry.get("missing") is None
        assert registry.get(None) is None

    def test_reregister_overwrites(self, registry):
        registry.register("diner", Point2D(0.0, 0.0), 1.0, Bounds(1.0, 1.0, 1.0))
        assert registry.get("diner").position == Point2D(0.0, 0.0)
        assert len(registry) == 2

    def test_reach_accounts_for_rotation(self, registry):
        reach = registry.get("tower").reach
        assert reach.width == pytest.approx(6.0)
        assert reach.depth == pytest.approx(10.0)


class TestSurfacePosition:
    """Points on each face of an unrotated 10 x 8 x 6 structure at (100, 100)."""

    def test_front_center(self, registry):
        p = registry.get_surface_position("diner", Surface.FRONT)
        assert (p.x, p.y, p.z) == pytest.approx((100.0, 4.0, 103.0))
        assert p.normal == pytest.approx(0.0)

    def test_front_horizontal_sweep(self, registry):
        left = registry.get_surface_position("diner", "front", horizontal=0.0)
        right = registry.get_surface_position("diner", "front", horizontal=1.0)
        assert left.x == pytest.approx(95.0)
        assert right.x == pytest.approx(105.0)

    def test_vertical_is_height_fraction(self, registry):
        p = registry.get_surface_position("diner", "front", vertical=0.85)
        assert p.y == pytest.approx(8.0 * 0.85)

    @pytest.mark.parametrize(
        "surface, expected_xz, normal",
        [
            (Surface.BACK, (100.0, 97.0), np.pi),
            (Surface.LEFT, (95.0, 100.0), -np.pi / 2),
            (Surface.RIGHT, (105.0, 100.0), np.pi / 2),
        ],
    )
    def test_other_faces(self, registry, surface, expected_xz, normal):
        p = registry.get_surface_position("diner", surface)
        assert (p.x, p.z) == pytest.approx(expected_xz)
        assert p.normal == pytest.approx(normal)

    def test_normal_points_away_from_center(self, registry):
        center = registry.get("tower").position
        for surface in (Surface.FRONT, Surface.BACK, Surface.LEFT, Surface.RIGHT):
            p = registry.get_surface_position("tower", surface)
            dx, dz = forward(p.normal)
            outward = (p.x - center.x) * dx + (p.z - center.z) * dz
            assert outward > 0, f"{surface.value} normal points inward"

    def test_rotated_front(self, registry):
        # Tower faces east (+x): its front is 3m east of its center
        p = registry.get_surface_position("tower", Surface.FRONT)
        assert (p.x, p.z) == pytest.approx((53.0, 50.0))
        assert p.normal == pytest.approx(np.pi / 2)

    def test_roof_is_at_height(self, registry):
        p = registry.get_surface_position("diner", Surface.ROOF)
        assert (p.x, p.y, p.z) == pytest.approx((100.0, 8.0, 100.0))
        assert registry.get_surface_position("diner", "top").y == pytest.approx(8.0)

    def test_missing_structure(self, registry):
        assert registry.get_surface_position("missing", Surface.FRONT) is None


class TestAdjacentPosition:
    def test_front_faces_back(self, registry):
        pose = registry.get_adjacent_position("diner", Side.FRONT, 2.0)
        assert (pose.x, pose.y, pose.z) == pytest.approx((100.0, 0.0, 105.0))
        assert pose.rotation == pytest.approx(np.pi)

    def test_entrance_is_front(self, registry):
        front = registry.get_adjacent_position("diner", Side.FRONT, 3.0)
        entrance = registry.get_adjacent_position("diner", "entrance", 3.0)
        assert front == entrance

    def test_left_uses_half_width(self, registry):
        pose = registry.get_adjacent_position("diner", Side.LEFT, 2.0)
        assert (pose.x, pose.z) == pytest.approx((93.0, 100.0))
        # Facing +x, back toward the structure
        dx, dz = forward(pose.rotation)
        assert dx == pytest.approx(1.0)

    def test_default_distance_is_face(self, registry):
        pose = registry.get_adjacent_position("diner", Side.BACK)
        assert (pose.x, pose.z) == pytest.approx((100.0, 97.0))

    def test_missing_structure(self, registry):
        assert registry.get_adjacent_position("missing") is None


class TestFaceLength:
    def test_lengths(self, registry):
        assert registry.face_length("diner", Side.FRONT) == 10.0
        assert registry.face_length("diner", Surface.BACK) == 10.0
        assert registry.face_length("diner", "left") == 6.0
        assert registry.face_length("missing", Side.FRONT) == 0.0

    def test_side_surface(self):
        assert side_surface(Side.ENTRANCE) == Surface.FRONT
        assert side_surface("right") == Surface.RIGHT
        assert side_surface(Surface.BACK) == Surface.BACK


class TestArrangements:
    def test_register_and_lookup(self):
        reg = StructureRegistry()
        reg.register_arrangement("market", Point2D(10.0, 20.0), 6.0, [Point2D(9.0, 20.0)])
        info = reg.get_arrangement("market")
        assert info.center == Point2D(10.0, 20.0)
        assert info.item_positions == (Point2D(9.0, 20.0),)
        assert reg.get_arrangement("other") is None
        # Arrangements are not structures
        assert len(reg) == 0
