"""Resolve a scene plan file into placements and print the layout.

Usage:
    scene-layout plan.json --assets assets.json                  # text summary
    scene-layout plan.json --assets assets.json --seed 42 --json # placements as JSON
    scene-layout plan.json --assets assets.json --measurements bounds.json -v

The assets file maps each plan prompt to a library asset id, either as
{"prompt": "id"} or {"prompt": {"id": "..."}}. The measurements file maps
library ids to {"width", "height", "depth"} in normalized asset units.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from scene_layout.geometry import Bounds
from scene_layout.orchestrator import resolve_placements
from scene_layout.placements import LibraryAsset, describe_layout
from scene_layout.plan import PlanError, parse_plan_text

log = logging.getLogger(__name__)


def load_assets(path: Path) -> dict[str, LibraryAsset]:
    raw = json.loads(path.read_text())
    assets = {}
    for prompt, value in raw.items():
        asset_id = value["id"] if isinstance(value, dict) else value
        assets[prompt] = LibraryAsset(str(asset_id), prompt)
    return assets


def load_measurements(path: Path) -> dict[str, Bounds]:
    """Measured bounds by library id. Entries with a missing or non-positive
    dimension are skipped so the asset falls back to estimated bounds."""
    raw = json.loads(path.read_text())
    measurements = {}
    for library_id, b in raw.items():
        dims = [b.get(k) if isinstance(b, dict) else None for k in ("width", "height", "depth")]
        if not all(
            isinstance(v, (int, float)) and not isinstance(v, bool) and v > 0 for v in dims
        ):
            log.warning("Ignoring measurement for %s: %r", library_id, b)
            continue
        measurements[library_id] = Bounds(*(float(v) for v in dims))
    return measurements


def main(argv: list[str] | None = None):
    parser = argparse.ArgumentParser(description="Resolve a scene plan into placements")
    parser.add_argument("plan", type=Path, help="Plan JSON (may be wrapped in a code fence)")
    parser.add_argument(
        "--assets", type=Path, required=True, help="Prompt -> library asset id JSON"
    )
    parser.add_argument(
        "--measurements", type=Path, help="Library id -> measured bounds JSON"
    )
    parser.add_argument("--seed", type=int, help="Random seed (default: random)")
    parser.add_argument(
        "--json", action="store_true", help="Print placements as JSON instead of text"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        plan = parse_plan_text(args.plan.read_text())
    except PlanError as e:
        parser.exit(1, f"error: {e}\n")

    assets = load_assets(args.assets)
    missing = sorted(set(plan.prompts()) - set(assets))
    if missing:
        log.warning("No library asset for %d prompt(s): %s", len(missing), ", ".join(missing))
    measurements = load_measurements(args.measurements) if args.measurements else None
    result = resolve_placements(plan, assets, measurements=measurements, seed=args.seed)

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print(describe_layout(result, seed=args.seed))


if __name__ == "__main__":
    main()
