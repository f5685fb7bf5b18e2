"""Real-world size → world scale conversion and footprint estimation.

Assets are normalized to a 2-unit max dimension when generated, so
    scale = (real_world_size / UNIVERSAL_BASELINE) * GAME_SCALE_FACTOR
with hard limits that make impossible sizes (a 450m tree) unreachable.

Collision radii are always derived from real-world size (or from scale
divided back by GAME_SCALE_FACTOR), never from the raw visual scale.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np

from scene_layout.geometry import Bounds

log = logging.getLogger(__name__)

UNIVERSAL_BASELINE = 2.0
GAME_SCALE_FACTOR = 8.0

MIN_ASSET_SIZE = 0.1
MAX_ASSET_SIZE = 60.0

DEFAULT_SIZES: dict[str, float] = {
    "props": 1.5,
    "characters": 1.8,
    "creatures": 2.0,
    "nature": 12.0,
    "buildings": 12.0,
    "vehicles": 4.0,
}

MAX_CATEGORY_SIZES: dict[str, float] = {
    "props": 5.0,
    "characters": 4.0,
    "creatures": 10.0,
    "nature": 60.0,
    "buildings": 50.0,
    "vehicles": 20.0,
}

MAX_SCALE = 80.0
MAX_SCALE_BY_CATEGORY: dict[str, float] = {
    "props": 40.0,
    "characters": 32.0,
    "creatures": 80.0,
    "vehicles": 80.0,
    "buildings": 200.0,
    "nature": 240.0,
}

# (width, height, depth) as fractions of the largest dimension
_CATEGORY_RATIOS: dict[str, tuple[float, float, float]] = {
    "buildings": (0.8, 1.0, 0.6),
    "nature": (0.4, 1.0, 0.4),
    "characters": (0.4, 1.0, 0.3),
    "creatures": (0.4, 1.0, 0.3),
    "props": (1.0, 0.6, 0.8),
    "vehicles": (1.0, 0.6, 0.8),
}


@dataclass(frozen=True)
class SizeCheck:
    """Result of enforce_invariants()."""

    size: float
    clamped: bool = False
    reason: str | None = None


@dataclass(frozen=True)
class AspectHint:
    """Ratio override for assets that don't fit their category's proportions
    (flat parking lots, wide walls)."""

    width_ratio: float = 1.0
    height_ratio: float = 1.0
    depth_ratio: float = 1.0


def enforce_invariants(size: float | None, category: str) -> SizeCheck:
    """Clamp a proposed real-world size (meters) into the allowed range.

    Invalid or non-positive sizes fall back to the category default.
    """
    if size is None or not np.isfinite(size) or size <= 0:
        default = DEFAULT_SIZES.get(category, DEFAULT_SIZES["props"])
        return SizeCheck(
            default, True, f"Invalid size ({size}), using default {default}m for {category}"
        )

    clamped = float(size)
    reason = None
    if clamped < MIN_ASSET_SIZE:
        clamped = MIN_ASSET_SIZE
        reason = f"Size {size}m below minimum, clamped to {clamped}m"
    if clamped > MAX_ASSET_SIZE:
        clamped = MAX_ASSET_SIZE
        reason = f"Size {size}m above maximum, clamped to {clamped}m"
    category_max = MAX_CATEGORY_SIZES.get(category)
    if category_max is not None and clamped > category_max:
        clamped = category_max
        reason = f"Size {size}m exceeds {category} max, clamped to {clamped}m"

    return SizeCheck(clamped, reason is not None, reason)


def max_scale_for(category: str) -> float:
    return MAX_SCALE_BY_CATEGORY.get(category, MAX_SCALE)


def compute_scale_from_size(size: float | None, category: str) -> float:
    """World scale for an asset of *size* meters, capped per category."""
    check = enforce_invariants(size, category)
    scale = check.size / UNIVERSAL_BASELINE * GAME_SCALE_FACTOR
    cap = max_scale_for(category)
    if scale > cap:
        log.warning(
            "Clamping scale %.1f to %.0f for %s (%sm)", scale, cap, category, size
        )
        return cap
    return scale


def estimate_bounds_from_size(
    size: float | None, category: str, aspect_hint: AspectHint | None = None
) -> Bounds:
    """Category-aware footprint/height guess from a single size number.

    Buildings are modeled taller than deep, nature items narrow, props
    wider than tall. An explicit aspect hint wins over the category.
    """
    size = size or 2.0
    if aspect_hint is not None:
        ratios = (aspect_hint.width_ratio, aspect_hint.height_ratio, aspect_hint.depth_ratio)
    else:
        ratios = _CATEGORY_RATIOS.get(category, (1.0, 1.0, 1.0))
    w, h, d = ratios
    return Bounds(size * w, size * h, size * d)


def collision_radius(real_world_size: float | None = None, scale: float | None = None) -> float:
    """Center-distance collision radius for a small item.

    Args:
        real_world_size: Largest dimension in meters (preferred source)
        scale: World scale; converted back to meters via GAME_SCALE_FACTOR

    Returns:
        Radius in meters (1.0 when neither is known)
    """
    if real_world_size is not None and real_world_size > 0:
        return real_world_size / 2
    if scale is not None and scale > 0:
        return scale / GAME_SCALE_FACTOR
    return 1.0
