"""Sampling primitives: stateless point distributions on the ground plane.

    poisson_disk   natural scattering with a guaranteed minimum spacing
    cluster        organic group around a center
    ring           evenly spaced circle facing its center
    edge_band      band along one side of the working zone
    grid           interior grid with proportional noise
    leading_line   points following a segment
    background     framing points spread over the four edge bands

Every function takes the random generator as its first argument so callers
control determinism.
"""

from __future__ import annotations

import logging
from enum import Enum

import numpy as np

from scene_layout.config import ZoneConfig
from scene_layout.geometry import Point2D, Pose, Rect, facing_toward

log = logging.getLogger(__name__)


class Edge(Enum):
    """A side of the working zone. North is the -z side."""

    N = "N"
    S = "S"
    E = "E"
    W = "W"


# Edge-band tuning
_MAX_BAND_DEPTH = 50.0
_EDGE_JITTER = 2.0  # +/- meters perpendicular to the edge


def poisson_disk(
    rng: np.random.Generator,
    rect: Rect,
    target_count: int,
    min_distance: float,
    max_attempts: int = 30,
    min_count: int | None = None,
) -> list[Point2D]:
    """Poisson-disk sampling inside *rect* (Bridson's algorithm).

    Uses a spatial hash with cell size min_distance / sqrt(2), so a cell
    holds at most one point. Candidates are drawn in the annulus
    [min_distance, 2 * min_distance] around a random active point; a point
    is retired after *max_attempts* misses.

    Returns at most *target_count* points. Fewer is a valid outcome (zone
    too small or min_distance too large) and is logged, not raised, when
    the result falls below *min_count* (default: target_count).
    """
    if min_distance <= 0:
        raise ValueError(f"min_distance must be positive, got {min_distance}")
    if target_count <= 0:
        return []

    cell = min_distance / np.sqrt(2)
    grid_w = max(1, int(np.ceil(rect.width / cell)))
    grid_d = max(1, int(np.ceil(rect.depth / cell)))
    grid = np.full((grid_d, grid_w), -1, dtype=int)

    points: list[Point2D] = []
    active: list[int] = []

    def _cell(x: float, z: float) -> tuple[int, int]:
        gx = min(int((x - rect.min_x) / cell), grid_w - 1)
        gz = min(int((z - rect.min_z) / cell), grid_d - 1)
        return gx, gz

    def _valid(x: float, z: float) -> bool:
        if x < rect.min_x or x > rect.max_x or z < rect.min_z or z > rect.max_z:
            return False
        gx, gz = _cell(x, z)
        for nz in range(max(0, gz - 2), min(grid_d, gz + 3)):
            for nx in range(max(0, gx - 2), min(grid_w, gx + 3)):
                idx = grid[nz, nx]
                if idx >= 0:
                    p = points[idx]
                    if np.hypot(x - p.x, z - p.z) < min_distance:
                        return False
        return True

    def _add(x: float, z: float):
        gx, gz = _cell(x, z)
        grid[gz, gx] = len(points)
        active.append(len(points))
        points.append(Point2D(float(x), float(z)))

    _add(rng.uniform(rect.min_x, rect.max_x), rng.uniform(rect.min_z, rect.max_z))

    while active and len(points) < target_count:
        slot = int(rng.integers(len(active)))
        origin = points[active[slot]]

        found = False
        for _ in range(max_attempts):
            angle = rng.uniform(0, 2 * np.pi)
            radius = min_distance + rng.random() * min_distance
            x = origin.x + np.cos(angle) * radius
            z = origin.z + np.sin(angle) * radius
            if _valid(x, z):
                _add(x, z)
                found = True
                if len(points) >= target_count:
                    break

        if not found:
            active.pop(slot)

    if len(points) < (target_count if min_count is None else min_count):
        log.warning(
            "Poisson disk undercount: requested %d, got %d. "
            "Consider reducing min_distance (%.1fm) or expanding the zone.",
            target_count,
            len(points),
            min_distance,
        )
    return points[:target_count]


def cluster(
    rng: np.random.Generator,
    center: Point2D,
    count: int,
    radius: float,
    min_spacing: float = 5.0,
) -> list[Point2D]:
    """Rejection-sample up to *count* points in a disk around *center*.

    r = radius * sqrt(u) gives uniform density over the disk area. Gives up
    after count * 20 draws, so the result may be short.
    """
    points: list[Point2D] = []
    for _ in range(count * 20):
        if len(points) >= count:
            break
        r = radius * np.sqrt(rng.random())
        angle = rng.uniform(0, 2 * np.pi)
        p = Point2D(
            float(center.x + np.cos(angle) * r), float(center.z + np.sin(angle) * r)
        )
        if all(p.distance_to(q) >= min_spacing for q in points):
            points.append(p)
    return points


def ring(
    rng: np.random.Generator,
    center: Point2D,
    count: int,
    radius: float,
    jitter: float = 0.0,
) -> list[Pose]:
    """Exactly *count* points on a circle, each facing back at *center*.

    *jitter* (0-1) perturbs each point by up to 20% of the angular step and
    20% of the radius; facing gets +/-0.25 rad of variance.
    """
    if count <= 0:
        return []
    step = 2 * np.pi / count
    poses: list[Pose] = []
    for i in range(count):
        angle = step * i + rng.uniform(-0.5, 0.5) * step * 0.4 * jitter
        r = radius + rng.uniform(-0.5, 0.5) * radius * 0.4 * jitter
        p = Point2D(
            float(center.x + np.cos(angle) * r), float(center.z + np.sin(angle) * r)
        )
        rotation = facing_toward(p, center) + rng.uniform(-0.25, 0.25)
        poses.append(Pose(p.x, 0.0, p.z, rotation))
    return poses


def edge_band_rect(
    edge: Edge | str, depth: float, margin: float = 5.0, zone: ZoneConfig | None = None
) -> Rect:
    """Band of the working zone along one edge, *depth* deep (max 50m),
    kept *margin* away from the boundary and the corners."""
    edge = Edge(edge)
    zone = zone or ZoneConfig()
    depth = min(depth, _MAX_BAND_DEPTH)
    if depth <= margin:
        raise ValueError(f"Edge band depth ({depth}) must exceed margin ({margin})")

    if edge == Edge.N:
        return Rect(zone.min_x + margin, zone.max_x - margin, zone.min_z + margin, zone.min_z + depth)
    elif edge == Edge.S:
        return Rect(zone.min_x + margin, zone.max_x - margin, zone.max_z - depth, zone.max_z - margin)
    elif edge == Edge.E:
        return Rect(zone.max_x - depth, zone.max_x - margin, zone.min_z + margin, zone.max_z - margin)
    else:  # W
        return Rect(zone.min_x + margin, zone.min_x + depth, zone.min_z + margin, zone.max_z - margin)


def edge_band(
    rng: np.random.Generator,
    edge: Edge | str,
    count: int,
    depth: float,
    margin: float = 5.0,
    zone: ZoneConfig | None = None,
) -> list[Point2D]:
    """Poisson-disk points in the band along one side of the working zone.

    Points get +/-2m of jitter perpendicular to the edge to break up visible
    lines, clamped so they stay inside the band. Raises ValueError for an
    edge outside N/S/E/W.
    """
    edge = Edge(edge)
    band = edge_band_rect(edge, depth, margin, zone)
    min_distance = float(np.clip(min(depth, _MAX_BAND_DEPTH) * 0.4, 4.0, 8.0))

    points = []
    for p in poisson_disk(rng, band, count, min_distance):
        shift = rng.uniform(-_EDGE_JITTER, _EDGE_JITTER)
        if edge in (Edge.N, Edge.S):
            p = Point2D(p.x, float(np.clip(p.z + shift, band.min_z, band.max_z)))
        else:
            p = Point2D(float(np.clip(p.x + shift, band.min_x, band.max_x)), p.z)
        points.append(p)
    return points


def grid(
    rng: np.random.Generator,
    rect: Rect,
    rows: int,
    cols: int,
    noise: float = 0.0,
) -> list[Point2D]:
    """rows x cols interior points (never on the boundary), row-major.

    *noise* (0-1) shifts each point by up to half a cell step.
    """
    noise = float(np.clip(noise, 0.0, 1.0))
    step_x = rect.width / (cols + 1)
    step_z = rect.depth / (rows + 1)
    points = []
    for row in range(1, rows + 1):
        for col in range(1, cols + 1):
            x = rect.min_x + col * step_x + rng.uniform(-0.5, 0.5) * step_x * noise
            z = rect.min_z + row * step_z + rng.uniform(-0.5, 0.5) * step_z * noise
            points.append(Point2D(float(x), float(z)))
    return points


def leading_line(
    rng: np.random.Generator,
    start: Point2D,
    end: Point2D,
    count: int,
    jitter: float = 2.0,
) -> list[Pose]:
    """*count* points spread along start→end, facing along the line.

    Each point sits near (i + 0.5) / count of the way, with +/-15% of a slot
    of along-line randomization and +/-jitter meters sideways.
    """
    dx, dz = end.x - start.x, end.z - start.z
    length = float(np.hypot(dx, dz))
    if length < 1e-9:
        dir_x, dir_z = 1.0, 0.0
    else:
        dir_x, dir_z = dx / length, dz / length
    perp_x, perp_z = -dir_z, dir_x
    heading = facing_toward(start, end) if length >= 1e-9 else 0.0

    poses = []
    for i in range(count):
        t = (i + 0.5 + rng.uniform(-0.15, 0.15)) / count
        side = rng.uniform(-jitter, jitter)
        x = start.x + dir_x * t * length + perp_x * side
        z = start.z + dir_z * t * length + perp_z * side
        poses.append(Pose(float(x), 0.0, float(z), heading + rng.uniform(-0.1, 0.1)))
    return poses


def background(
    rng: np.random.Generator,
    reference: Point2D,
    count: int,
    zone: ZoneConfig | None = None,
    camera_aware: bool = False,
) -> list[Pose]:
    """Framing points spread over the four edge bands, facing *reference*.

    Camera-aware mode weights the N and E edges (away from the usual SW
    camera) at 35% each, S and W at 15%.
    """
    if count <= 0:
        return []
    if camera_aware:
        weights = {Edge.N: 0.35, Edge.E: 0.35, Edge.S: 0.15, Edge.W: 0.15}
    else:
        weights = {Edge.N: 0.25, Edge.E: 0.25, Edge.S: 0.25, Edge.W: 0.25}

    counts = {edge: int(np.floor(count * w + 0.5)) for edge, w in weights.items()}
    counts[Edge.N] += count - sum(counts.values())

    poses = []
    for edge, n in counts.items():
        if n <= 0:
            continue
        for p in edge_band(rng, edge, n, 12.0, 3.0, zone=zone):
            rotation = facing_toward(p, reference) + rng.uniform(-0.2, 0.2)
            poses.append(Pose(p.x, 0.0, p.z, rotation))
    return poses
