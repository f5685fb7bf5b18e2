"""End-to-end tests for the five-phase pipeline and the command line.

Validates that:
- Placements come out grouped by phase in pipeline order
- A sign attached above a centered diner's door is off the ground, and
  scattered trees keep clear of the diner's footprint
- Decorations on the same structure only reject each other on real overlap
- An exhausted spiral search is reported on the placement, not raised
- The same seed reproduces the same layout
"""

import json

import numpy as np
import pytest

from scene_layout import (
    Bounds,
    LibraryAsset,
    Placement,
    PlacementType,
    ResolverConfig,
    describe_layout,
    parse_plan,
    resolve_placements,
)
from scene_layout.cli import load_measurements, main
from scene_layout.placements import COLLISION_UNRESOLVED, PHASE_ORDER


@pytest.fixture
def plan_data():
    return {
        "theme": "roadside diner",
        "structures": [
            {
                "id": "diner",
                "asset": {"prompt": "a red diner", "category": "buildings", "realWorldSize": 10},
                "placement": {"position": "center"},
            }
        ],
        "decorations": [
            {
                "asset": {"prompt": "neon sign", "realWorldSize": 1},
                "relationship": {
                    "type": "attached_to",
                    "target": "diner",
                    "surface": "front",
                    "position": {"horizontal": 0.5, "vertical": 0.85},
                },
            }
        ],
        "arrangements": [
            {
                "name": "patio",
                "pattern": "row",
                "radius": 5,
                "placement": {"relative_to": "diner", "side": "front", "distance": 8},
                "items": [{"asset": {"prompt": "cafe table"}, "count": 3}],
            }
        ],
        "atmosphere": [
            {
                "asset": {"prompt": "pine tree", "realWorldSize": 8},
                "count": 5,
                "relationship": {"type": "scattered", "avoid": ["structures"]},
            }
        ],
        "npcs": [
            {
                "asset": {"prompt": "a waitress"},
                "behavior": "wander",
                "wanderRadius": 6,
                "placement": {"relative_to": "diner", "position": "at_entrance"},
            }
        ],
    }


@pytest.fixture
def assets():
    prompts = ["a red diner", "neon sign", "cafe table", "pine tree", "a waitress"]
    return {p: LibraryAsset(f"lib_{i}", p) for i, p in enumerate(prompts)}


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


class TestPipeline:
    """Full resolution of a small diner scene."""

    def test_diner_scene(self, plan_data, assets):
        result = resolve_placements(parse_plan(plan_data), assets, seed=42)

        (diner,) = result.of_type(PlacementType.STRUCTURE)
        assert diner.position == (200.0, 0.0, 200.0)
        assert diner.structure_id == "diner"
        assert diner.diagnostics == ()

        (sign,) = result.of_type(PlacementType.DECORATION)
        assert sign.position[1] > 0, "sign should be on the wall, not the ground"
        assert sign.position[2] > 200.0 + 3.0, "sign should be on the front face"
        assert sign.target_structure_id == "diner"

        trees = result.of_type(PlacementType.ATMOSPHERE)
        assert trees
        # Building bounds for a 10m building: 8 x 10 x 6, half diagonal 5
        for tree in trees:
            assert tree.ground.distance_to(diner.ground) > 5.0 + 2.0

        (waitress,) = result.of_type(PlacementType.NPC)
        assert waitress.behavior == "wander"
        assert waitress.wander_radius == 6.0
        assert waitress.position[2] == pytest.approx(206.0)

    def test_arrangement_beside_structure(self, plan_data, assets):
        result = resolve_placements(parse_plan(plan_data), assets, seed=1)
        tables = result.of_type(PlacementType.ARRANGEMENT)
        assert [t.position[0] for t in tables] == pytest.approx([195.0, 200.0, 205.0])
        for t in tables:
            assert t.position[2] == pytest.approx(211.0)
            assert t.arrangement_name == "patio"

    def test_phase_order(self, plan_data, assets):
        result = resolve_placements(parse_plan(plan_data), assets, seed=3)
        order = [PHASE_ORDER.index(p.type) for p in result.placements]
        assert order == sorted(order), "placements must be grouped in pipeline order"
        counts = result.counts()
        assert all(counts[t] > 0 for t in PHASE_ORDER)

    def test_same_seed_same_layout(self, plan_data, assets):
        a = resolve_placements(parse_plan(plan_data), assets, seed=99)
        b = resolve_placements(parse_plan(plan_data), assets, seed=99)
        assert a.to_dict() == b.to_dict()

    def test_rng_argument(self, plan_data, assets):
        a = resolve_placements(parse_plan(plan_data), assets, rng=np.random.default_rng(5))
        b = resolve_placements(parse_plan(plan_data), assets, rng=np.random.default_rng(5))
        assert a.to_dict() == b.to_dict()

    def test_library_assets_first_use_order(self, plan_data, assets):
        assets["unused"] = LibraryAsset("lib_unused", "unused")
        result = resolve_placements(parse_plan(plan_data), assets, seed=42)
        ids = [a.id for a in result.library_assets]
        assert ids == ["lib_0", "lib_1", "lib_2", "lib_3", "lib_4"]

    def test_missing_asset_skipped(self, plan_data, assets, caplog):
        del assets["pine tree"]
        result = resolve_placements(parse_plan(plan_data), assets, seed=42)
        assert result.of_type(PlacementType.ATMOSPHERE) == []
        assert "pine tree" in caplog.text

    def test_small_test_zone(self, plan_data, assets):
        config = ResolverConfig.for_tests()
        result = resolve_placements(parse_plan(plan_data), assets, seed=42, config=config)
        (diner,) = result.of_type(PlacementType.STRUCTURE)
        assert diner.position == (60.0, 0.0, 60.0)
        for tree in result.of_type(PlacementType.ATMOSPHERE):
            assert config.zone.rect.contains(tree.ground)


class TestDecorationCollisions:
    def test_same_structure_items_do_not_reject_each_other(self, plan_data, assets):
        plan_data["decorations"] = [
            {
                "asset": {"prompt": "neon sign", "realWorldSize": 1},
                "count": 3,
                "spacing": 1.2,
                "relationship": {"type": "attached_to", "target": "diner"},
            }
        ]
        # 1.2m apart: inside radius + radius + buffer (1.5m) but not overlapping
        result = resolve_placements(parse_plan(plan_data), assets, seed=42)
        assert len(result.of_type(PlacementType.DECORATION)) == 3

    def test_same_structure_items_that_overlap_are_rejected(self, plan_data, assets):
        sign = {
            "asset": {"prompt": "neon sign", "realWorldSize": 1},
            "relationship": {
                "type": "attached_to",
                "target": "diner",
                "surface": "front",
                "position": {"horizontal": 0.5, "vertical": 0.85},
            },
        }
        plan_data["decorations"] = [sign, dict(sign)]
        result = resolve_placements(parse_plan(plan_data), assets, seed=0)
        signs = result.of_type(PlacementType.DECORATION)
        assert len(signs) == 1, f"stacked signs should not both be kept: {signs}"

    def test_tightly_packed_row_loses_overlapping_items(self, plan_data, assets):
        plan_data["decorations"] = [
            {
                "asset": {"prompt": "neon sign", "realWorldSize": 1},
                "count": 3,
                "spacing": 0.6,
                "relationship": {"type": "attached_to", "target": "diner"},
            }
        ]
        result = resolve_placements(parse_plan(plan_data), assets, seed=42)
        # Items 0.6m apart with 0.5m radii: the middle one overlaps the first,
        # the third is 1.2m from the first and survives
        assert len(result.of_type(PlacementType.DECORATION)) == 2

    def test_existing_placement_blocks(self, plan_data, assets):
        rock = Placement(
            library_id="lib_rock",
            position=(200.0, 0.0, 203.3),
            rotation=0.0,
            scale=4.0,
            type=PlacementType.ATMOSPHERE,
            real_world_size=1.0,
        )
        result = resolve_placements(
            parse_plan(plan_data), assets, existing_placements=[rock], seed=42
        )
        assert result.of_type(PlacementType.DECORATION) == []

    def test_existing_decoration_on_same_structure_drops_buffer(self, plan_data, assets):
        # 1.2m from the new sign: within the buffered distance, no real overlap
        old_sign = Placement(
            library_id="lib_old",
            position=(201.2, 6.0, 203.3),
            rotation=0.0,
            scale=4.0,
            type=PlacementType.DECORATION,
            real_world_size=1.0,
            target_structure_id="diner",
        )
        result = resolve_placements(
            parse_plan(plan_data), assets, existing_placements=[old_sign], seed=42
        )
        assert len(result.of_type(PlacementType.DECORATION)) == 1

    def test_collision_radius_from_size_not_scale(self, plan_data, assets):
        result = resolve_placements(parse_plan(plan_data), assets, seed=42)
        (sign,) = result.of_type(PlacementType.DECORATION)
        assert sign.scale == pytest.approx(4.0)
        assert sign.collision_radius == pytest.approx(0.5)


class TestStructureDiagnostics:
    def test_unresolved_collision_reported(self, assets):
        plan = parse_plan(
            {
                "structures": [
                    {
                        "id": "plaza",
                        "asset": {"prompt": "a red diner", "realWorldSize": 50},
                    },
                    {"id": "kiosk", "asset": {"prompt": "a waitress"}},
                ]
            }
        )
        # Measured 10 units wide at scale 200: a 2km footprint nothing can escape
        measurements = {"lib_0": Bounds(10.0, 0.1, 10.0)}
        result = resolve_placements(plan, assets, measurements=measurements, seed=1)
        plaza, kiosk = result.of_type(PlacementType.STRUCTURE)
        assert plaza.diagnostics == ()
        assert kiosk.diagnostics == (COLLISION_UNRESOLVED,)
        assert kiosk.to_dict()["diagnostics"] == [COLLISION_UNRESOLVED]


class TestV2Pipeline:
    def test_attachment_height_guard(self, assets):
        plan = parse_plan(
            {
                "schemaVersion": 2,
                "structures": [{"id": "diner", "prompt": "a red diner", "position": [100, 120]}],
                "attachments": [
                    {"prompt": "cafe table", "anchor": "front", "offset": [3, 0], "height_ratio": 0.9},
                    {"prompt": "neon sign", "anchor": "front", "offset": [0.2, 0], "height_ratio": 0.9},
                ],
            }
        )
        result = resolve_placements(plan, assets, seed=0)
        table, sign = result.of_type(PlacementType.DECORATION)
        assert table.position[1] == 0.0
        assert sign.position[1] == pytest.approx(9.0)


class TestDescribe:
    def test_summary_lines(self, plan_data, assets):
        result = resolve_placements(parse_plan(plan_data), assets, seed=42)
        text = describe_layout(result, seed=42)
        assert text.startswith("Layout (seed=42)")
        assert "structures=1" in text
        assert "id=diner" in text


# ---------------------------------------------------------------------------
# Command line
# ---------------------------------------------------------------------------


class TestCli:
    @pytest.fixture
    def files(self, tmp_path, plan_data):
        plan_file = tmp_path / "plan.json"
        plan_file.write_text("```json\n" + json.dumps(plan_data) + "\n```")
        assets_file = tmp_path / "assets.json"
        assets_file.write_text(
            json.dumps(
                {
                    "a red diner": "lib_diner",
                    "neon sign": {"id": "lib_sign"},
                    "cafe table": "lib_table",
                    "pine tree": "lib_tree",
                    "a waitress": "lib_waitress",
                }
            )
        )
        return plan_file, assets_file

    def test_json_output(self, files, capsys):
        plan_file, assets_file = files
        main([str(plan_file), "--assets", str(assets_file), "--seed", "42", "--json"])
        out = json.loads(capsys.readouterr().out)
        types = [p["type"] for p in out["placements"]]
        assert types[0] == "structure"
        assert "npc" in types
        assert {"id": "lib_sign", "prompt": "neon sign"} in out["libraryAssets"]

    def test_text_output(self, files, capsys):
        plan_file, assets_file = files
        main([str(plan_file), "--assets", str(assets_file), "--seed", "7"])
        out = capsys.readouterr().out
        assert out.startswith("Layout (seed=7)")

    def test_measurements(self, files, tmp_path, capsys):
        plan_file, assets_file = files
        measurements = tmp_path / "bounds.json"
        measurements.write_text(json.dumps({"lib_diner": {"width": 1, "height": 1, "depth": 1}}))
        main(
            [
                str(plan_file),
                "--assets",
                str(assets_file),
                "--measurements",
                str(measurements),
                "--seed",
                "1",
                "--json",
            ]
        )
        out = json.loads(capsys.readouterr().out)
        assert out["placements"][0]["libraryId"] == "lib_diner"

    def test_flat_measurement_falls_back_to_estimate(self, files, tmp_path, capsys, caplog):
        plan_file, assets_file = files
        measurements = tmp_path / "bounds.json"
        measurements.write_text(
            json.dumps(
                {
                    "lib_diner": {"width": 1, "height": 0, "depth": 1},
                    "lib_sign": {"width": 1},
                    "lib_table": {"width": 0.5, "height": 0.4, "depth": 0.5},
                }
            )
        )
        main(
            [
                str(plan_file),
                "--assets",
                str(assets_file),
                "--measurements",
                str(measurements),
                "--seed",
                "1",
                "--json",
            ]
        )
        out = json.loads(capsys.readouterr().out)
        assert out["placements"][0]["libraryId"] == "lib_diner"
        assert "lib_diner" in caplog.text
        assert "lib_sign" in caplog.text

    def test_load_measurements_skips_bad_entries(self, tmp_path):
        path = tmp_path / "bounds.json"
        path.write_text(
            json.dumps(
                {
                    "flat": {"width": 2, "height": 0, "depth": 2},
                    "text": {"width": "2", "height": 1, "depth": 1},
                    "ok": {"width": 2, "height": 1, "depth": 3},
                }
            )
        )
        assert load_measurements(path) == {"ok": Bounds(2.0, 1.0, 3.0)}

    def test_warns_about_unmapped_prompts(self, files, capsys, caplog):
        plan_file, assets_file = files
        assets = json.loads(assets_file.read_text())
        del assets["pine tree"]
        assets_file.write_text(json.dumps(assets))
        main([str(plan_file), "--assets", str(assets_file), "--seed", "3"])
        capsys.readouterr()
        assert "No library asset for 1 prompt(s): pine tree" in caplog.text

    def test_bad_plan_exits(self, tmp_path, files):
        _, assets_file = files
        bad = tmp_path / "bad.json"
        bad.write_text("{not json")
        with pytest.raises(SystemExit) as excinfo:
            main([str(bad), "--assets", str(assets_file)])
        assert excinfo.value.code == 1
