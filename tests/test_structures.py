"""Tests for structure placement and the spiral collision search.

Validates that:
- Keyword positions map to fixed offsets from the zone center (north = -z)
- Explicit coordinates are clamped into the inset zone
- Relative placement uses the registry's adjacency point
- Two structures asking for the same spot end up with disjoint footprints
- An exhausted spiral still places (and registers) the structure, flagged
"""

import logging

import numpy as np
import pytest

from scene_layout.config import ResolverConfig
from scene_layout.geometry import Bounds, Point2D, rect_overlaps
from scene_layout.plan import AssetRef, StructureSpec
from scene_layout.registry import Side, StructureRegistry
from scene_layout.relationships import (
    ExplicitPosition,
    Facing,
    KeywordPosition,
    PositionKeyword,
    RelativePosition,
)
from scene_layout.structures import (
    candidate_position,
    resolve_structure,
    spiral_search,
    structure_bounds,
)


BUILDING = AssetRef("a small building", "buildings", 10.0)


@pytest.fixture
def config():
    return ResolverConfig()


@pytest.fixture
def registry():
    return StructureRegistry()


def _spec(structure_id, placement=None, facing=Facing.SOUTH, asset=BUILDING):
    return StructureSpec(structure_id, asset, placement or KeywordPosition(), facing)


# ---------------------------------------------------------------------------
# Candidate positions
# ---------------------------------------------------------------------------


class TestCandidatePosition:
    @pytest.mark.parametrize(
        "keyword, expected",
        [
            (PositionKeyword.CENTER, (200.0, 200.0)),
            (PositionKeyword.NORTH, (200.0, 29.0)),
            (PositionKeyword.SOUTH, (200.0, 371.0)),
            (PositionKeyword.EAST, (371.0, 200.0)),
            (PositionKeyword.WEST, (29.0, 200.0)),
            (PositionKeyword.NE, (352.0, 48.0)),
            (PositionKeyword.SW, (48.0, 352.0)),
        ],
    )
    def test_keywords(self, registry, config, keyword, expected):
        p = candidate_position(KeywordPosition(keyword), registry, config)
        assert (p.x, p.z) == pytest.approx(expected)

    def test_explicit_is_clamped(self, registry, config):
        p = candidate_position(ExplicitPosition(0.0, 500.0), registry, config)
        assert (p.x, p.z) == pytest.approx((20.0, 380.0))

    def test_explicit_inside_untouched(self, registry, config):
        p = candidate_position(ExplicitPosition(120.0, 80.0), registry, config)
        assert (p.x, p.z) == (120.0, 80.0)

    def test_relative_uses_adjacency(self, registry, config):
        registry.register("diner", Point2D(200.0, 200.0), 0.0, Bounds(10.0, 10.0, 10.0))
        p = candidate_position(RelativePosition("diner", Side.FRONT, 15.0), registry, config)
        assert (p.x, p.z) == pytest.approx((200.0, 220.0))

    def test_relative_unknown_falls_back_to_center(self, registry, config, caplog):
        with caplog.at_level(logging.WARNING):
            p = candidate_position(RelativePosition("ghost"), registry, config)
        assert p == config.zone.center
        assert "ghost" in caplog.text


class TestStructureBounds:
    def test_measured_bounds_scaled(self):
        b = structure_bounds(BUILDING, Bounds(1.0, 0.5, 2.0))
        assert (b.width, b.height, b.depth) == pytest.approx((40.0, 20.0, 80.0))

    def test_estimated_from_size(self):
        b = structure_bounds(BUILDING)
        assert (b.width, b.height, b.depth) == pytest.approx((8.0, 10.0, 6.0))


# ---------------------------------------------------------------------------
# Spiral search
# ---------------------------------------------------------------------------


class TestSpiralSearch:
    def test_free_spot_needs_no_attempts(self, registry, config):
        res = resolve_structure(_spec("a"), registry, BUILDING.estimated_bounds, config)
        assert res.resolved
        assert res.attempts == 0
        assert (res.pose.x, res.pose.z) == (200.0, 200.0)
        assert "a" in registry

    def test_same_keyword_is_separated(self, registry, config):
        bounds = BUILDING.estimated_bounds
        first = resolve_structure(_spec("a"), registry, bounds, config)
        second = resolve_structure(_spec("b"), registry, bounds, config)

        assert second.resolved
        assert second.attempts >= 1
        assert not rect_overlaps(
            bounds, first.pose.ground, bounds, second.pose.ground, 1.0
        ), "structures still overlap after spiral search"

    def test_same_explicit_coordinates_are_separated(self, registry, config):
        bounds = BUILDING.estimated_bounds
        spot = ExplicitPosition(100.0, 100.0)
        first = resolve_structure(_spec("a", spot), registry, bounds, config)
        second = resolve_structure(_spec("b", spot), registry, bounds, config)
        assert second.resolved
        # First explicit nudge: own radius (4) + base offset (20) along +x
        assert second.pose.ground.distance_to(first.pose.ground) == pytest.approx(24.0)

    def test_rotation_from_facing(self, registry, config):
        res = resolve_structure(
            _spec("a", facing=Facing.EAST), registry, BUILDING.estimated_bounds, config
        )
        assert res.pose.rotation == pytest.approx(np.pi / 2)
        assert registry.get("a").rotation == pytest.approx(np.pi / 2)

    def test_exhaustion_places_anyway(self, registry, config, caplog):
        registry.register("plaza", Point2D(200.0, 200.0), 0.0, Bounds(1000.0, 1.0, 1000.0))
        with caplog.at_level(logging.WARNING):
            res = resolve_structure(_spec("a"), registry, BUILDING.estimated_bounds, config)
        assert not res.resolved
        assert res.attempts == config.keyword_profile.max_attempts
        assert "a" in registry
        assert "unresolved" in caplog.text

    def test_skips_own_id(self, registry, config):
        registry.register("a", Point2D(200.0, 200.0), 0.0, Bounds(10.0, 10.0, 10.0))
        position, attempts, resolved = spiral_search(
            Point2D(200.0, 200.0),
            Bounds(10.0, 10.0, 10.0),
            0.0,
            registry,
            config.keyword_profile,
            skip_id="a",
        )
        assert resolved
        assert attempts == 0
        assert position == Point2D(200.0, 200.0)

    def test_many_structures_stay_disjoint(self, registry, config):
        bounds = BUILDING.estimated_bounds
        poses = [
            resolve_structure(_spec(f"s{i}"), registry, bounds, config).pose for i in range(6)
        ]
        for i in range(len(poses)):
            for j in range(i + 1, len(poses)):
                assert not rect_overlaps(
                    bounds, poses[i].ground, bounds, poses[j].ground, 1.0
                ), f"s{i} and s{j} overlap"
