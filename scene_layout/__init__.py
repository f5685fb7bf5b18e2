"""Relationship-based scene layout.

Turns a semantic scene plan (structures, decorations, arrangements,
atmosphere and NPCs described by spatial relationships such as "attached
to the diner's front wall" or "scattered, avoiding buildings") into
collision-aware world transforms for every element.

Usage:
    from scene_layout import LibraryAsset, parse_plan_text, resolve_placements

    plan = parse_plan_text(plan_json)
    assets = {"a red diner": LibraryAsset("lib_diner", "a red diner")}
    result = resolve_placements(plan, assets, seed=42)
    print(describe_layout(result, seed=42))
"""

from scene_layout.config import ResolverConfig, ZoneConfig
from scene_layout.geometry import Bounds, Point2D, Pose
from scene_layout.orchestrator import resolve_placements
from scene_layout.placements import (
    LayoutResult,
    LibraryAsset,
    Placement,
    PlacementType,
    describe_layout,
)
from scene_layout.plan import Plan, PlanError, parse_plan, parse_plan_text
from scene_layout.registry import StructureRegistry

__all__ = [
    "Bounds",
    "LayoutResult",
    "LibraryAsset",
    "Placement",
    "PlacementType",
    "Plan",
    "PlanError",
    "Point2D",
    "Pose",
    "ResolverConfig",
    "StructureRegistry",
    "ZoneConfig",
    "describe_layout",
    "parse_plan",
    "parse_plan_text",
    "resolve_placements",
]
