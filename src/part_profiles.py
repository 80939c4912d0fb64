"""
Footprint profiles for assembly parts.

Profiles live in the part's local X/Z plane and are extruded along local Y.
Rectangles, L-cut notches, and arbitrary polygons become Shapely polygons;
angled-end lumber is a prism whose end faces lean with height. Point
membership here is the "true shape" test that the fastener search uses to
reject placements which bounding-box math alone would accept.
"""
import logging
import math
from functools import lru_cache
from typing import List, Optional, Tuple

import numpy as np
import shapely
from shapely.geometry import LineString, MultiLineString, MultiPolygon, Polygon, box

from assembly import CutCorner, Part, PartProfile, ProfileKind

logger = logging.getLogger(__name__)

MAX_MITER_DEG = 80.0


def clamp_cut(value: float, max_value: float) -> float:
    """Keep an L-cut dimension inside the part, leaving at least 1/8" of stock."""
    min_value = min(0.125, max_value / 2.0)
    safe_max = max(min_value, max_value - min_value)
    return max(min_value, min(value, safe_max))


def clamp_miter(degrees: float) -> float:
    return max(-MAX_MITER_DEG, min(MAX_MITER_DEG, degrees))


def l_cut_points(
    width: float,
    depth: float,
    cut_width: float,
    cut_depth: float,
    corner: CutCorner,
) -> List[Tuple[float, float]]:
    """Outline of a rectangle with one corner notched out, as (x, z) points."""
    min_x, max_x = -width / 2.0, width / 2.0
    min_z, max_z = -depth / 2.0, depth / 2.0

    if corner == CutCorner.FRONT_LEFT:
        return [
            (min_x, min_z), (max_x, min_z), (max_x, max_z),
            (min_x + cut_width, max_z), (min_x + cut_width, max_z - cut_depth),
            (min_x, max_z - cut_depth),
        ]
    if corner == CutCorner.FRONT_RIGHT:
        return [
            (min_x, min_z), (max_x, min_z), (max_x, max_z - cut_depth),
            (max_x - cut_width, max_z - cut_depth), (max_x - cut_width, max_z),
            (min_x, max_z),
        ]
    if corner == CutCorner.BACK_LEFT:
        return [
            (min_x, min_z + cut_depth), (min_x + cut_width, min_z + cut_depth),
            (min_x + cut_width, min_z), (max_x, min_z), (max_x, max_z),
            (min_x, max_z),
        ]
    return [
        (min_x, min_z), (max_x - cut_width, min_z),
        (max_x - cut_width, min_z + cut_depth), (max_x, min_z + cut_depth),
        (max_x, max_z), (min_x, max_z),
    ]


def footprint_polygon(part: Part) -> Polygon:
    """The part's footprint in local (x, z) coordinates."""
    return _footprint_for(part.profile, float(part.size[0]), float(part.size[2]))


def footprint_area(part: Part) -> float:
    return float(footprint_polygon(part).area)


@lru_cache(maxsize=512)
def _footprint_for(profile: Optional[PartProfile], width: float, depth: float) -> Polygon:
    rect = box(-width / 2.0, -depth / 2.0, width / 2.0, depth / 2.0)
    if profile is None or profile.kind in (ProfileKind.RECT, ProfileKind.ANGLED):
        polygon = rect
    elif profile.kind == ProfileKind.L_CUT:
        cut_w = clamp_cut(
            profile.cut_width if profile.cut_width is not None else width / 2.0, width
        )
        cut_d = clamp_cut(
            profile.cut_depth if profile.cut_depth is not None else depth / 2.0, depth
        )
        polygon = Polygon(l_cut_points(width, depth, cut_w, cut_d, profile.corner))
    else:
        polygon = _polygon_from_points(profile.points, rect)

    shapely.prepare(polygon)
    return polygon


def _polygon_from_points(points, fallback: Polygon) -> Polygon:
    if len(points) < 3:
        logger.warning("Polygon profile has %d points, using rectangle", len(points))
        return fallback
    polygon = Polygon(points)
    if not polygon.is_valid:
        polygon = shapely.make_valid(polygon)
    if isinstance(polygon, MultiPolygon):
        polygon = max(polygon.geoms, key=lambda g: g.area)
    if not isinstance(polygon, Polygon) or polygon.is_empty:
        logger.warning("Polygon profile is degenerate, using rectangle")
        return fallback
    return polygon


def contains_local_points(
    part: Part,
    local_points: np.ndarray,
    tolerance: float = 1e-6,
) -> np.ndarray:
    """Which frame-local points lie inside the part's true solid.

    Args:
        part: The part whose profile is tested.
        local_points: (N, 3) points in the part's local coordinates.
        tolerance: Slack on the extrusion and miter planes.

    Returns:
        (N,) boolean array; boundary points count as inside.
    """
    pts = np.atleast_2d(np.asarray(local_points, dtype=float))
    half = np.asarray(part.size, dtype=float) / 2.0
    x, y, z = pts[:, 0], pts[:, 1], pts[:, 2]
    in_height = np.abs(y) <= half[1] + tolerance
    profile = part.profile

    if profile is not None and profile.kind == ProfileKind.ANGLED:
        start_slope = math.tan(math.radians(clamp_miter(profile.start_angle_deg)))
        end_slope = math.tan(math.radians(clamp_miter(profile.end_angle_deg)))
        back_z = -half[2] + y * start_slope
        front_z = half[2] + y * end_slope
        return (
            in_height
            & (np.abs(x) <= half[0] + tolerance)
            & (z >= back_z - tolerance)
            & (z <= front_z + tolerance)
        )

    polygon = footprint_polygon(part)
    return in_height & shapely.intersects_xy(polygon, x, z)


def wall_clearance(
    part: Part,
    origin: np.ndarray,
    direction: np.ndarray,
    local_points: np.ndarray,
    tolerance: float = 1e-6,
) -> float:
    """Smallest distance from points on a line to the walls the line runs beside.

    Faces the infinite line passes through are entry or exit faces and are
    skipped; every other face of the true solid counts, notch walls and
    miter faces included. All inputs are frame-local.

    Args:
        part: The part whose walls are measured.
        origin: A point on the line, (3,).
        direction: Unit line direction, (3,).
        local_points: (N, 3) points on the line inside the part.
        tolerance: Slack for parallel and on-face tests.

    Returns:
        The minimum distance, or ``inf`` for no points or no side walls.
    """
    pts = np.asarray(local_points, dtype=float).reshape(-1, 3)
    if len(pts) == 0:
        return math.inf
    origin = np.asarray(origin, dtype=float).reshape(3)
    direction = np.asarray(direction, dtype=float).reshape(3)
    half = np.asarray(part.size, dtype=float) / 2.0
    profile = part.profile

    if profile is None or profile.kind in (ProfileKind.RECT, ProfileKind.ANGLED):
        normals, offsets = _prism_halfspaces(profile, half)
        return _convex_wall_clearance(normals, offsets, origin, direction, pts, tolerance)
    return _extruded_wall_clearance(
        footprint_polygon(part), half[1], origin, direction, pts, tolerance
    )


def _prism_halfspaces(
    profile: Optional[PartProfile],
    half: np.ndarray,
) -> Tuple[np.ndarray, np.ndarray]:
    """Unit normals and offsets with the solid as ``normals @ p <= offsets``."""
    start_slope = end_slope = 0.0
    if profile is not None and profile.kind == ProfileKind.ANGLED:
        start_slope = math.tan(math.radians(clamp_miter(profile.start_angle_deg)))
        end_slope = math.tan(math.radians(clamp_miter(profile.end_angle_deg)))
    back = np.array([0.0, start_slope, -1.0])
    front = np.array([0.0, -end_slope, 1.0])
    normals = np.array([
        [1.0, 0.0, 0.0],
        [-1.0, 0.0, 0.0],
        [0.0, 1.0, 0.0],
        [0.0, -1.0, 0.0],
        back / np.linalg.norm(back),
        front / np.linalg.norm(front),
    ])
    offsets = np.array([
        half[0], half[0], half[1], half[1],
        half[2] / np.linalg.norm(back), half[2] / np.linalg.norm(front),
    ])
    return normals, offsets


def _convex_wall_clearance(
    normals: np.ndarray,
    offsets: np.ndarray,
    origin: np.ndarray,
    direction: np.ndarray,
    pts: np.ndarray,
    tolerance: float,
) -> float:
    clearance = math.inf
    for i in range(len(normals)):
        normal, offset = normals[i], offsets[i]
        denom = float(normal @ direction)
        if abs(denom) > tolerance:
            hit = origin + direction * ((offset - float(normal @ origin)) / denom)
            others = np.arange(len(normals)) != i
            if np.all(normals[others] @ hit <= offsets[others] + tolerance):
                continue
        clearance = min(clearance, float(np.min(offset - pts @ normal)))
    return clearance


def _extruded_wall_clearance(
    polygon: Polygon,
    half_height: float,
    origin: np.ndarray,
    direction: np.ndarray,
    pts: np.ndarray,
    tolerance: float,
) -> float:
    clearance = math.inf

    # Top and bottom faces.
    for sign in (1.0, -1.0):
        if abs(direction[1]) > tolerance:
            t = (sign * half_height - origin[1]) / direction[1]
            hit = origin + direction * t
            if shapely.intersects_xy(polygon, hit[0], hit[2]):
                continue
        clearance = min(clearance, float(np.min(half_height - sign * pts[:, 1])))

    # Side walls, one per outline segment.
    ox, oz = origin[0], origin[2]
    dx, dz = direction[0], direction[2]
    side_walls = []
    for ring in [polygon.exterior, *polygon.interiors]:
        coords = np.asarray(ring.coords)
        for a, b in zip(coords[:-1], coords[1:]):
            ex, ez = b[0] - a[0], b[1] - a[1]
            denom = dx * ez - dz * ex
            if abs(denom) > tolerance * max(math.hypot(ex, ez), 1.0):
                rx, rz = a[0] - ox, a[1] - oz
                t = (rx * ez - rz * ex) / denom
                s = (rx * dz - rz * dx) / denom
                crosses = -tolerance <= s <= 1.0 + tolerance
                if crosses and abs(origin[1] + t * direction[1]) <= half_height + tolerance:
                    continue
            side_walls.append(LineString([a, b]))

    if side_walls:
        distances = shapely.distance(
            MultiLineString(side_walls), shapely.points(pts[:, 0], pts[:, 2])
        )
        clearance = min(clearance, float(np.min(distances)))
    return clearance
