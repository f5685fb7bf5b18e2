"""Scene plan data model and the plan-parsing boundary.

A plan arrives as JSON (usually straight from a language model, sometimes
wrapped in a Markdown code fence). Two schemas are accepted:

    relationship plan   structures / decorations / arrangements / atmosphere
                        / npcs, every element positioned by a relationship
    V2 plan             ("schemaVersion": 2) structures with explicit [x, z]
                        coordinates, anchor+offset "attachments", and npcs

Both are normalized into the same Plan value. Relationship "type" strings
are converted to closed enums and variant dataclasses here; anything that
can't be understood is either defaulted or, for whole entries, skipped with
a warning. Only an unusable plan (bad JSON, no structures) raises.

Usage:
    plan = parse_plan_text(llm_response)
    result = resolve_placements(plan, assets, seed=42)
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, TypeVar

import numpy as np

from scene_layout.config import ZoneConfig
from scene_layout.geometry import Bounds, Point2D
from scene_layout.registry import Side, Surface
from scene_layout.relationships import (
    AdjacentTo,
    AlongEdgeLine,
    AlongPoints,
    AlongStructureEdge,
    AlongStructures,
    Anchor,
    ArrangementPattern,
    AtmosphereAdjacent,
    AtmosphereRelationship,
    AttachedTo,
    Attachment,
    AttachmentArrangement,
    AttachmentFacing,
    DecorationRelationship,
    Density,
    ExplicitPosition,
    Facing,
    Flanking,
    Framing,
    HangingFrom,
    KeywordPosition,
    LeaningAgainst,
    NpcPlacement,
    NpcPosition,
    OnTopOf,
    PositionKeyword,
    RelativePosition,
    Scattered,
    ScatterZone,
    StructurePlacement,
    UnknownRelationship,
)
from scene_layout.sizing import (
    AspectHint,
    compute_scale_from_size,
    enforce_invariants,
    estimate_bounds_from_size,
)

log = logging.getLogger(__name__)

E = TypeVar("E", bound=Enum)


class PlanError(ValueError):
    """The plan as a whole is unusable (unparseable, or has no structures)."""


# Interior items would spawn on the ground outside the building
INTERIOR_KEYWORDS = (
    "inside",
    "interior",
    "indoor",
    "indoors",
    "within building",
    "in the building",
    "in the room",
    "inside the",
    "within the",
)

# V2 soft validation
V2_BOUNDS_INSET = 10.0  # [20, 380] in the default zone
V2_OVERLAP_THRESHOLD = 40.0
V2_NUDGE_DISTANCE = 70.0
V2_CLUSTER_THRESHOLD = 80.0
V2_CLUSTER_MAX = 2


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AssetRef:
    """A plan's reference to a library asset, keyed by its prompt."""

    prompt: str
    category: str
    real_world_size: float
    aspect_hint: AspectHint | None = None

    @property
    def scale(self) -> float:
        return compute_scale_from_size(self.real_world_size, self.category)

    @property
    def estimated_bounds(self) -> Bounds:
        return estimate_bounds_from_size(self.real_world_size, self.category, self.aspect_hint)


@dataclass(frozen=True)
class StructureSpec:
    id: str
    asset: AssetRef
    placement: StructurePlacement = field(default_factory=KeywordPosition)
    facing: Facing = Facing.SOUTH


@dataclass(frozen=True)
class DecorationSpec:
    asset: AssetRef
    relationship: DecorationRelationship
    count: int = 1
    spacing: float | None = None
    mirror: bool = False

    @property
    def target(self) -> str | None:
        return self.relationship.target


@dataclass(frozen=True)
class ArrangementItem:
    asset: AssetRef
    count: int = 1
    role: str = "fill"


@dataclass(frozen=True)
class ArrangementSpec:
    name: str
    items: tuple[ArrangementItem, ...]
    pattern: ArrangementPattern = ArrangementPattern.CLUSTER
    radius: float = 5.0
    relative_to: str | None = None
    side: Side = Side.FRONT
    distance: float = 8.0
    grid_size: tuple[int, int] | None = None  # (cols, rows)


@dataclass(frozen=True)
class AtmosphereSpec:
    asset: AssetRef
    relationship: AtmosphereRelationship
    count: int = 5
    density: Density = Density.MEDIUM


@dataclass(frozen=True)
class NpcSpec:
    asset: AssetRef
    placement: NpcPlacement
    behavior: str = "idle"
    wander_radius: float = 10.0


@dataclass(frozen=True)
class Plan:
    """Normalized scene plan: five ordered sequences of element specs."""

    structures: tuple[StructureSpec, ...] = ()
    decorations: tuple[DecorationSpec, ...] = ()
    arrangements: tuple[ArrangementSpec, ...] = ()
    atmosphere: tuple[AtmosphereSpec, ...] = ()
    npcs: tuple[NpcSpec, ...] = ()
    theme: str = ""
    biome: str = "grass"
    schema_version: int = 1
    warnings: tuple[str, ...] = ()

    def prompts(self) -> list[str]:
        """Every asset prompt the plan references, in plan order."""
        out = [s.asset.prompt for s in self.structures]
        out += [d.asset.prompt for d in self.decorations]
        for arr in self.arrangements:
            out += [item.asset.prompt for item in arr.items]
        out += [a.asset.prompt for a in self.atmosphere]
        out += [n.asset.prompt for n in self.npcs]
        return out


# ---------------------------------------------------------------------------
# Value helpers
# ---------------------------------------------------------------------------


def _enum(cls: type[E], value: Any, default: E, what: str) -> E:
    """Convert an open string to a closed enum, defaulting with a warning."""
    if value is None or value == "":
        return default
    if isinstance(value, cls):
        return value
    if isinstance(value, str):
        for candidate in (value, value.lower(), value.upper()):
            try:
                return cls(candidate)
            except ValueError:
                continue
    log.warning("Unknown %s %r, using %s", what, value, default.value)
    return default


def _number(value: Any, default: float | None) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    if not np.isfinite(value):
        return default
    return float(value)


def _positive(value: Any, default: float) -> float:
    v = _number(value, None)
    return v if v is not None and v > 0 else default


def _count(value: Any, default: int) -> int:
    v = _number(value, None)
    return int(v) if v is not None and v >= 1 else default


def _pair(value: Any) -> tuple[float, float] | None:
    if isinstance(value, (list, tuple)) and len(value) >= 2:
        a, b = _number(value[0], None), _number(value[1], None)
        if a is not None and b is not None:
            return (a, b)
    return None


def _ref(value: Any, default: str | None, what: str) -> str | None:
    """An id reference, or *default* when missing or not a string."""
    if isinstance(value, str) and value:
        return value
    if value not in (None, ""):
        log.warning("Ignoring non-string %s %r", what, value)
    return default


def _biome(data: dict) -> str:
    terrain = data.get("terrain")
    if terrain is None:
        return "grass"
    if not isinstance(terrain, dict):
        log.warning("Ignoring malformed terrain %r", terrain)
        return "grass"
    return str(terrain.get("biome") or "grass")


def _aspect_hint(value: Any) -> AspectHint | None:
    if not isinstance(value, dict):
        return None
    return AspectHint(
        width_ratio=_positive(value.get("widthRatio"), 1.0),
        height_ratio=_positive(value.get("heightRatio"), 1.0),
        depth_ratio=_positive(value.get("depthRatio"), 1.0),
    )


def _asset(data: dict, default_category: str, default_size: float) -> AssetRef:
    category = data.get("category") or default_category
    requested = _positive(data.get("realWorldSize"), default_size)
    check = enforce_invariants(requested, category)
    if check.clamped:
        log.warning("[%s]: %s", str(data.get("prompt", "asset"))[:30], check.reason)
    return AssetRef(
        prompt=data["prompt"],
        category=category,
        real_world_size=check.size,
        aspect_hint=_aspect_hint(data.get("aspectHint")),
    )


def _has_prompt(data: Any) -> bool:
    return isinstance(data, dict) and isinstance(data.get("prompt"), str) and bool(data["prompt"])


def is_interior_placement(decoration: dict) -> bool:
    """True if a decoration's prompt or relationship description suggests it
    belongs inside a building."""
    asset = decoration.get("asset")
    rel = decoration.get("relationship")
    prompt = str(asset.get("prompt") or "") if isinstance(asset, dict) else ""
    description = str(rel.get("description") or "") if isinstance(rel, dict) else ""
    combined = f"{prompt} {description}".lower()
    return any(kw in combined for kw in INTERIOR_KEYWORDS)


def strip_code_fence(text: str) -> str:
    s = text.strip()
    if s.startswith("```json"):
        s = s[7:]
    elif s.startswith("```"):
        s = s[3:]
    if s.endswith("```"):
        s = s[:-3]
    return s.strip()


# ---------------------------------------------------------------------------
# Relationship plan
# ---------------------------------------------------------------------------


def _structure_placement(placement: dict) -> StructurePlacement:
    position = placement.get("position")
    if isinstance(position, dict) and _pair(position.get("explicit")):
        x, z = _pair(position["explicit"])
        return ExplicitPosition(x, z)
    if _pair(position):
        x, z = _pair(position)
        return ExplicitPosition(x, z)
    if placement.get("relative_to"):
        return RelativePosition(
            relative_to=str(placement["relative_to"]),
            side=_enum(Side, placement.get("side"), Side.FRONT, "side"),
            distance=_positive(placement.get("distance"), 15.0),
        )
    return KeywordPosition(
        _enum(PositionKeyword, position, PositionKeyword.CENTER, "position keyword")
    )


def _decoration_relationship(rel: dict, default_target: str | None) -> DecorationRelationship:
    kind = rel.get("type") or "adjacent_to"
    target = _ref(rel.get("target"), default_target, "target")
    position = rel.get("position") if isinstance(rel.get("position"), dict) else {}
    offset = rel.get("offset") if isinstance(rel.get("offset"), dict) else {}
    horizontal = _number(position.get("horizontal"), 0.5)
    vertical = _number(position.get("vertical"), 0.5)

    if kind == "attached_to":
        return AttachedTo(
            target=target,
            surface=_enum(Surface, rel.get("surface"), Surface.FRONT, "surface"),
            horizontal=horizontal,
            vertical=vertical,
            out=_number(offset.get("out"), None),
        )
    if kind == "adjacent_to":
        return AdjacentTo(
            target=target,
            side=_enum(Side, rel.get("side") or rel.get("surface"), Side.FRONT, "side"),
            distance=_positive(rel.get("distance"), 1.0),
            horizontal=_number(position.get("horizontal"), None),
        )
    if kind == "leaning_against":
        return LeaningAgainst(
            target=target,
            surface=_enum(Surface, rel.get("surface"), Surface.FRONT, "surface"),
            horizontal=horizontal,
            angle_deg=_positive(rel.get("angle"), 15.0),
        )
    if kind == "hanging_from":
        return HangingFrom(
            target=target,
            surface=_enum(Surface, rel.get("surface"), Surface.ROOF, "surface"),
            horizontal=horizontal,
            vertical=vertical,
            drop=_positive(offset.get("drop"), 1.0),
        )
    if kind == "on_top_of":
        return OnTopOf(target=target, horizontal=horizontal, vertical=vertical)
    if kind == "v2_attachment":
        return _attachment(rel, target)
    return UnknownRelationship(kind=str(kind), target=target)


def _attachment(data: dict, target: str | None, default_spacing: float | None = None) -> Attachment:
    forward, sideways = _pair(data.get("offset")) or (0.0, 0.0)
    grid = _pair(data.get("gridSize"))
    return Attachment(
        target=target,
        anchor=_enum(Anchor, data.get("anchor"), Anchor.FRONT, "anchor"),
        forward=forward,
        sideways=sideways,
        height_ratio=_number(data.get("height_ratio"), None),
        facing=_enum(
            AttachmentFacing, data.get("facing"), AttachmentFacing.TOWARD_PARENT, "facing"
        ),
        arrangement=_enum(
            AttachmentArrangement,
            data.get("arrangement"),
            AttachmentArrangement.SINGLE,
            "attachment arrangement",
        ),
        grid_size=(max(1, int(grid[0])), max(1, int(grid[1]))) if grid else (2, 2),
    )


def _atmosphere_relationship(rel: dict, size: float) -> AtmosphereRelationship:
    kind = rel.get("type") or "scattered"
    target = _ref(rel.get("target"), None, "target")
    spacing = _positive(rel.get("spacing"), size * 1.5)
    distance = _positive(rel.get("distance"), 0.0) or None
    camera_aware = bool(rel.get("cameraAware", False))

    if kind == "flanking":
        return Flanking(
            target=target,
            side=_enum(Side, rel.get("side"), Side.ENTRANCE, "side"),
            spacing=spacing,
            distance=distance if distance is not None else 3.0,
        )
    if kind == "along":
        path = rel.get("path")
        if isinstance(path, dict) and path.get("from") is not None and path.get("to") is not None:
            start, end = _pair(path["from"]), _pair(path["to"])
            if start and end:
                return AlongPoints(Point2D(*start), Point2D(*end), jitter=spacing)
            return AlongStructures(str(path["from"]), str(path["to"]), jitter=spacing)
        if isinstance(path, str) and path:
            structure_id, _, side = path.partition(".")
            return AlongEdgeLine(
                target=structure_id,
                side=_enum(Surface, side or None, Surface.FRONT, "path side"),
                jitter=spacing,
            )
        return AlongStructureEdge(
            target=target,
            side=_enum(Surface, rel.get("side"), Surface.FRONT, "side"),
            spacing=spacing,
            distance=distance if distance is not None else 2.0,
        )
    if kind == "scattered":
        zone = rel.get("zone") or "everywhere"
        avoid = rel.get("avoid")
        avoid_structures = "structures" in (avoid if isinstance(avoid, list) else ["structures"])
        if isinstance(zone, dict) and zone.get("around"):
            return Scattered(
                around=str(zone["around"]),
                around_radius=_positive(zone.get("radius"), 15.0),
                spacing=spacing,
                avoid_structures=avoid_structures,
                camera_aware=camera_aware,
            )
        return Scattered(
            zone=_enum(ScatterZone, zone, ScatterZone.EVERYWHERE, "scatter zone"),
            spacing=spacing,
            avoid_structures=avoid_structures,
            camera_aware=camera_aware,
        )
    if kind == "framing":
        return Framing(camera_aware=camera_aware)
    if kind == "adjacent_to":
        return AtmosphereAdjacent(
            target=target,
            side=_enum(Side, rel.get("side"), Side.FRONT, "side"),
            spacing=_positive(rel.get("spacing"), 3.0),
            distance=distance if distance is not None else 2.0,
        )
    return UnknownRelationship(kind=str(kind), target=target)


def _npc_placement(placement: dict, default_target: str | None) -> NpcPlacement:
    return NpcPlacement(
        relative_to=_ref(placement.get("relative_to"), default_target, "relative_to"),
        position=_enum(NpcPosition, placement.get("position"), NpcPosition.NEAR, "npc position"),
        side=_enum(Side, placement.get("surface"), Side.FRONT, "surface"),
        distance=_positive(placement.get("distance"), 3.0),
        lateral_offset=_number(placement.get("lateralOffset"), 0.0),
    )


def parse_plan(data: dict) -> Plan:
    """Normalize a parsed relationship plan (or V2 plan) dict into a Plan.

    Raises:
        PlanError: if the plan has no usable structures
    """
    if not isinstance(data, dict):
        raise PlanError(f"Plan must be a JSON object, got {type(data).__name__}")
    if data.get("schemaVersion") == 2:
        return parse_v2_plan(data)

    raw_structures = data.get("structures")
    if not isinstance(raw_structures, list) or not raw_structures:
        raise PlanError("Plan must have at least one structure as anchor point")

    structures: list[StructureSpec] = []
    for s in raw_structures:
        if not isinstance(s, dict) or not _has_prompt(s.get("asset")):
            log.warning("Structure missing asset.prompt, skipping")
            continue
        placement = s.get("placement") if isinstance(s.get("placement"), dict) else {}
        structures.append(
            StructureSpec(
                id=str(s.get("id") or f"structure_{len(structures)}"),
                asset=_asset(s["asset"], "buildings", 10.0),
                placement=_structure_placement(placement),
                facing=_enum(Facing, placement.get("facing"), Facing.SOUTH, "facing"),
            )
        )
    if not structures:
        raise PlanError("Plan has no structure with an asset prompt")
    first_id = structures[0].id

    decorations: list[DecorationSpec] = []
    for d in _entries(data, "decorations"):
        if not _has_prompt(d.get("asset")):
            continue
        if is_interior_placement(d):
            log.warning(
                "Skipping interior decoration %r: interior items cannot be placed "
                "inside buildings",
                d["asset"]["prompt"][:40],
            )
            continue
        asset = _asset(d["asset"], "props", 1.0)
        rel = d.get("relationship") if isinstance(d.get("relationship"), dict) else {}
        decorations.append(
            DecorationSpec(
                asset=asset,
                relationship=_decoration_relationship(rel, first_id),
                count=_count(d.get("count"), 1),
                spacing=_positive(d.get("spacing"), asset.real_world_size * 1.2),
                mirror=bool(d.get("mirror", False)),
            )
        )

    arrangements: list[ArrangementSpec] = []
    for a in _entries(data, "arrangements"):
        items = tuple(
            ArrangementItem(
                asset=_asset(item["asset"], "props", 2.0),
                count=_count(item.get("count"), 1),
                role=str(item.get("role") or "fill"),
            )
            for item in a.get("items") or []
            if isinstance(item, dict) and _has_prompt(item.get("asset"))
        )
        if not items:
            continue
        placement = a.get("placement") if isinstance(a.get("placement"), dict) else {}
        grid = a.get("gridSize")
        grid_size = None
        if isinstance(grid, dict) and _count(grid.get("x"), 0) and _count(grid.get("z"), 0):
            grid_size = (_count(grid["x"], 1), _count(grid["z"], 1))
        elif _pair(grid):
            grid_size = tuple(max(1, int(v)) for v in _pair(grid))
        arrangements.append(
            ArrangementSpec(
                name=str(a.get("name") or f"arrangement_{len(arrangements)}"),
                items=items,
                pattern=_enum(
                    ArrangementPattern, a.get("pattern"), ArrangementPattern.CLUSTER, "pattern"
                ),
                radius=_positive(a.get("radius"), 5.0),
                relative_to=_ref(placement.get("relative_to"), first_id, "relative_to"),
                side=_enum(Side, placement.get("side"), Side.FRONT, "side"),
                distance=_positive(placement.get("distance"), 8.0),
                grid_size=grid_size,
            )
        )

    atmosphere: list[AtmosphereSpec] = []
    for a in _entries(data, "atmosphere"):
        if not _has_prompt(a.get("asset")):
            continue
        asset = _asset(a["asset"], "nature", 8.0)
        rel = a.get("relationship") if isinstance(a.get("relationship"), dict) else {}
        atmosphere.append(
            AtmosphereSpec(
                asset=asset,
                relationship=_atmosphere_relationship(rel, asset.real_world_size),
                count=_count(a.get("count"), 5),
                density=_enum(Density, rel.get("density"), Density.MEDIUM, "density"),
            )
        )

    npcs: list[NpcSpec] = []
    for n in _entries(data, "npcs"):
        if not _has_prompt(n.get("asset")):
            continue
        asset_data = dict(n["asset"], category="characters")
        placement = n.get("placement") if isinstance(n.get("placement"), dict) else {}
        npcs.append(
            NpcSpec(
                asset=_asset(asset_data, "characters", 1.8),
                placement=_npc_placement(placement, first_id),
                behavior=str(n.get("behavior") or "idle"),
                wander_radius=_positive(n.get("wanderRadius"), 10.0),
            )
        )

    plan = Plan(
        structures=tuple(structures),
        decorations=tuple(decorations),
        arrangements=tuple(arrangements),
        atmosphere=tuple(atmosphere),
        npcs=tuple(npcs),
        theme=str(data.get("theme") or ""),
        biome=_biome(data),
    )
    _log_summary(plan)
    return plan


def _entries(data: dict, key: str) -> list[dict]:
    value = data.get(key)
    if not isinstance(value, list):
        return []
    return [v for v in value if isinstance(v, dict)]


def _log_summary(plan: Plan):
    log.info(
        "Plan %r: %d structures, %d decorations, %d arrangements (%d items), "
        "%d atmosphere (%d total), %d npcs",
        plan.theme,
        len(plan.structures),
        len(plan.decorations),
        len(plan.arrangements),
        sum(item.count for a in plan.arrangements for item in a.items),
        len(plan.atmosphere),
        sum(a.count for a in plan.atmosphere),
        len(plan.npcs),
    )


# ---------------------------------------------------------------------------
# V2 plan
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class V2Validation:
    """Repaired V2 structure dicts (copies) plus the repairs made."""

    structures: list[dict]
    warnings: list[str]


def validate_v2_structures(
    structures: list[dict], zone: ZoneConfig | None = None
) -> V2Validation:
    """Soft-validate V2 structure coordinates without rejecting the plan.

    1. Clamp positions into the zone inset by V2_BOUNDS_INSET
    2. Push a structure that sits within V2_OVERLAP_THRESHOLD of an earlier
       one out to V2_NUDGE_DISTANCE from it (spread by index if coincident)
    3. Warn about structures with V2_CLUSTER_MAX or more neighbours within
       V2_CLUSTER_THRESHOLD

    The input dicts are not modified.
    """
    zone = zone or ZoneConfig()
    bounds = zone.inset(V2_BOUNDS_INSET)
    repaired = [dict(s) for s in structures]
    warnings: list[str] = []

    def _clamp(x: float, z: float) -> tuple[float, float]:
        return (
            float(np.clip(x, bounds.min_x, bounds.max_x)),
            float(np.clip(z, bounds.min_z, bounds.max_z)),
        )

    for s in repaired:
        pos = _pair(s.get("position"))
        if pos is None:
            continue
        clamped = _clamp(*pos)
        if clamped != pos:
            warnings.append(f"Clamped {s.get('id')} from {list(pos)} to {list(clamped)} (out of bounds)")
        s["position"] = list(clamped)

    for i in range(len(repaired)):
        a = _pair(repaired[i].get("position"))
        if a is None:
            continue
        for j in range(i + 1, len(repaired)):
            b = _pair(repaired[j].get("position"))
            if b is None:
                continue
            dist = float(np.hypot(b[0] - a[0], b[1] - a[1]))
            if dist >= V2_OVERLAP_THRESHOLD:
                continue
            if dist > 0.1:
                angle = float(np.arctan2(b[1] - a[1], b[0] - a[0]))
            else:
                angle = j * np.pi / 4
            nudged = _clamp(
                a[0] + np.cos(angle) * V2_NUDGE_DISTANCE,
                a[1] + np.sin(angle) * V2_NUDGE_DISTANCE,
            )
            warnings.append(
                f"Nudged {repaired[j].get('id')} from {list(b)} to "
                f"[{nudged[0]:.0f}, {nudged[1]:.0f}] (overlapping with {repaired[i].get('id')})"
            )
            repaired[j]["position"] = list(nudged)

    for i, s in enumerate(repaired):
        a = _pair(s.get("position"))
        if a is None:
            continue
        neighbours = 0
        for j, other in enumerate(repaired):
            b = _pair(other.get("position"))
            if i == j or b is None:
                continue
            if np.hypot(b[0] - a[0], b[1] - a[1]) < V2_CLUSTER_THRESHOLD:
                neighbours += 1
        if neighbours >= V2_CLUSTER_MAX:
            warnings.append(
                f"Cluster warning: {s.get('id')} has {neighbours} structures "
                f"within {V2_CLUSTER_THRESHOLD:.0f}m"
            )

    for w in warnings:
        log.warning(w)
    return V2Validation(repaired, warnings)


def parse_v2_plan(data: dict, zone: ZoneConfig | None = None) -> Plan:
    """Normalize a V2 plan (explicit coordinates + attachments).

    Raises:
        PlanError: if the plan has no usable structures
    """
    zone = zone or ZoneConfig()
    raw_structures = data.get("structures")
    if not isinstance(raw_structures, list) or not raw_structures:
        raise PlanError("V2 plan must have at least one structure")

    validation = validate_v2_structures(
        [s for s in raw_structures if isinstance(s, dict)], zone
    )

    structures: list[StructureSpec] = []
    for s in validation.structures:
        if not _has_prompt(s):
            continue
        pos = _pair(s.get("position")) or (zone.center_x, zone.center_z)
        structures.append(
            StructureSpec(
                id=str(s.get("id") or f"structure_{len(structures)}"),
                asset=_asset(s, "buildings", 10.0),
                placement=ExplicitPosition(*pos),
                facing=_enum(Facing, s.get("facing"), Facing.SOUTH, "facing"),
            )
        )
    if not structures:
        raise PlanError("V2 plan has no structure with a prompt")
    first_id = structures[0].id

    decorations: list[DecorationSpec] = []
    for a in _entries(data, "attachments"):
        if not _has_prompt(a):
            continue
        asset = _asset(a, "props", 1.0)
        decorations.append(
            DecorationSpec(
                asset=asset,
                relationship=_attachment(a, _ref(a.get("attached_to"), first_id, "attached_to")),
                count=_count(a.get("count"), 1),
                spacing=_positive(a.get("spacing"), asset.real_world_size * 1.5),
            )
        )

    npcs: list[NpcSpec] = []
    for n in _entries(data, "npcs"):
        if not _has_prompt(n):
            continue
        npcs.append(
            NpcSpec(
                asset=_asset(dict(n, category="characters"), "characters", 1.8),
                placement=NpcPlacement(relative_to=_ref(n.get("near"), first_id, "near")),
                behavior=str(n.get("behavior") or "idle"),
                wander_radius=_positive(n.get("wanderRadius"), 10.0),
            )
        )

    plan = Plan(
        structures=tuple(structures),
        decorations=tuple(decorations),
        npcs=tuple(npcs),
        theme=str(data.get("theme") or ""),
        biome=_biome(data),
        schema_version=2,
        warnings=tuple(validation.warnings),
    )
    _log_summary(plan)
    return plan


def parse_plan_text(text: str) -> Plan:
    """Parse a plan from raw model output (optionally fenced JSON).

    Raises:
        PlanError: on invalid JSON or an unusable plan
    """
    try:
        data = json.loads(strip_code_fence(text))
    except json.JSONDecodeError as e:
        raise PlanError(f"Plan is not valid JSON: {e}") from e
    return parse_plan(data)
