"""
Automatic screw placement between two touching parts.

Given two selected wood parts, searches insertion directions, perpendicular
planes, and sample points for two screws that:

- start just outside the first part (or sit on the seam when the first part
  is deeper than any screw),
- never exit the far face of the second part,
- bite at least a length-dependent depth into each part's true shape,
- keep clear of the shared region's edges and of every side wall of
  either part, notch walls included, and
- are spread apart rather than clustered.

The search is all-or-nothing: a successful result holds exactly two new
fastener parts for the caller to append, a failed one holds none.
"""
import logging
import uuid
from dataclasses import dataclass
from enum import Enum
from itertools import combinations
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from assembly import HardwareKind, Part, PartCategory, PartIndex, Vec3
from geometry_primitives import (
    EPS,
    OrientedFrame,
    build_frame,
    intersect_ray_with_frame,
    interval_gap,
    interval_overlap,
    is_parallel,
    normalize,
    projected_range,
    rotation_aligning,
    to_local,
)
from part_profiles import contains_local_points, wall_clearance
from screw_catalog import ScrewPreset, longest_preset_length, presets_by_length

logger = logging.getLogger(__name__)

WORLD_AXES = (
    np.array([1.0, 0.0, 0.0]),
    np.array([0.0, 1.0, 0.0]),
    np.array([0.0, 0.0, 1.0]),
)

# Fasteners are modelled along their local +Y axis: size = (d, length, d).
SCREW_AXIS = (0.0, 1.0, 0.0)


class PlacementFailure(Enum):
    """Why a placement was rejected."""
    SAME_PART = "same_part"
    MISSING_PART = "missing_part"
    HARDWARE_PART = "hardware_part"
    NOT_TOUCHING = "not_touching"
    NO_SHARED_REGION = "no_shared_region"
    NO_VALID_PLACEMENT = "no_valid_placement"


FAILURE_MESSAGES: Dict[PlacementFailure, str] = {
    PlacementFailure.SAME_PART: "Select two different parts.",
    PlacementFailure.MISSING_PART: "Both selected parts must exist in the assembly.",
    PlacementFailure.HARDWARE_PART: "Screws can only join wood parts; a hardware part was selected.",
    PlacementFailure.NOT_TOUCHING: "Selected parts are not touching. Move them into contact first.",
    PlacementFailure.NO_SHARED_REGION: "Parts touch, but there is no shared region for screws.",
    PlacementFailure.NO_VALID_PLACEMENT: "Could not find a valid screw placement for these parts.",
}


@dataclass(frozen=True)
class PlacementConfig:
    """Search tolerances and scoring weights (inches)."""

    # Direction candidates
    direction_parallel_dot: float = 0.985
    min_direction_alignment: float = 0.2
    touch_gap_tolerance: float = 0.08
    max_axis_overlap: float = 0.35

    # Shared planar region
    min_plane_overlap: float = 0.25

    # Line checks
    ray_tolerance: float = 1e-4
    min_interval_length: float = 0.25
    max_seam_gap: float = 0.12

    # Screw seating
    head_protrusion: float = 0.06
    tip_clearance: float = 0.1
    penetration_samples: int = 31

    # Edge blow-out
    min_edge_clearance: float = 0.28
    edge_clearance_diameters: float = 1.5

    # Pair spacing
    min_pair_spacing: float = 0.75
    pair_spacing_fraction: float = 0.35
    pair_spacing_diagonal_cap: float = 0.6

    # Sample scoring
    engagement_weight: float = 0.35
    balance_weight: float = 0.25
    edge_weight: float = 0.25
    seam_weight: float = 0.15
    spread_weight: float = 0.1


@dataclass(frozen=True)
class ScrewCandidate:
    """One valid screw along a sample line."""
    plane_uv: Tuple[float, float]   # coordinates in the basis plane
    origin: np.ndarray              # point on the line at parameter 0
    direction: np.ndarray           # insertion direction, first -> second
    start: float                    # head position along the line
    preset: ScrewPreset
    depth_first: float
    depth_second: float
    edge_clearance: float
    score: float

    @property
    def head_point(self) -> np.ndarray:
        return self.origin + self.direction * self.start

    @property
    def midpoint(self) -> np.ndarray:
        return self.origin + self.direction * (self.start + self.preset.length_in / 2.0)


@dataclass(frozen=True)
class ScrewPair:
    first: ScrewCandidate
    second: ScrewCandidate
    spacing: float
    score: float


@dataclass(frozen=True)
class PlacementResult:
    """Outcome of an automatic screw placement.

    ``fasteners`` is empty unless ``ok`` is True, in which case it holds
    exactly two new fastener parts.
    """
    ok: bool
    message: str
    reason: Optional[PlacementFailure] = None
    fasteners: Tuple[Part, ...] = ()
    direction: Optional[Vec3] = None

    @property
    def screw_count(self) -> int:
        return len(self.fasteners)


@dataclass(frozen=True)
class _SharedRect:
    u_lo: float
    u_hi: float
    v_lo: float
    v_hi: float

    @property
    def u_len(self) -> float:
        return self.u_hi - self.u_lo

    @property
    def v_len(self) -> float:
        return self.v_hi - self.v_lo

    def clearance(self, a: float, b: float) -> float:
        return min(a - self.u_lo, self.u_hi - a, b - self.v_lo, self.v_hi - b)


def place_fasteners(
    first_id: str,
    second_id: str,
    parts: Sequence[Part],
    config: Optional[PlacementConfig] = None,
) -> PlacementResult:
    """Find two screws joining ``first_id`` to ``second_id``.

    Screws are driven from the first part into the second. Nothing in
    ``parts`` is modified; on success the caller appends
    ``result.fasteners``.

    Args:
        first_id: Part the screws are driven through.
        second_id: Part the screws bite into.
        parts: Snapshot of the assembly.
        config: Search parameters.

    Returns:
        PlacementResult; failures carry a reason and a user-facing message.
    """
    if config is None:
        config = PlacementConfig()

    if first_id == second_id:
        return _failure(PlacementFailure.SAME_PART)
    index = PartIndex(list(parts))
    first = index.get(first_id)
    second = index.get(second_id)
    if first is None or second is None:
        return _failure(PlacementFailure.MISSING_PART)
    if first.is_hardware or second.is_hardware:
        return _failure(PlacementFailure.HARDWARE_PART)

    frame_a = build_frame(first)
    frame_b = build_frame(second)
    delta = frame_b.center - frame_a.center
    delta_dir = normalize(delta)

    touching = False
    shared_region = False
    best: Optional[ScrewPair] = None

    for direction in candidate_directions(frame_a, frame_b, delta, config):
        if not _edge_adjacent(frame_a, frame_b, direction, delta_dir, config):
            continue
        touching = True
        for u, v in plane_bases(direction, (frame_a, frame_b), config):
            rect = _shared_rect(frame_a, frame_b, u, v, config)
            if rect is None:
                continue
            shared_region = True
            candidates = _evaluate_samples(
                first, second, frame_a, frame_b, direction, u, v, rect, config
            )
            pair = select_pair(candidates, rect, config)
            logger.debug(
                "Direction %s basis u=%s: %d valid samples, pair=%s",
                np.round(direction, 3), np.round(u, 3), len(candidates),
                None if pair is None else round(pair.score, 3),
            )
            if pair is not None and (best is None or pair.score > best.score):
                best = pair

    if not touching:
        return _failure(PlacementFailure.NOT_TOUCHING, first_id, second_id)
    if not shared_region:
        return _failure(PlacementFailure.NO_SHARED_REGION, first_id, second_id)
    if best is None:
        return _failure(PlacementFailure.NO_VALID_PLACEMENT, first_id, second_id)

    fasteners = (make_fastener(best.first), make_fastener(best.second))
    for fastener, candidate in zip(fasteners, (best.first, best.second)):
        if not revalidate_fastener(fastener, candidate, first, second, frame_a, frame_b, config):
            logger.warning(
                "Screw failed revalidation between %s and %s", first_id, second_id
            )
            return _failure(PlacementFailure.NO_VALID_PLACEMENT, first_id, second_id)

    direction = best.first.direction
    logger.info(
        "Placed 2 screws between %s and %s: %s, spacing=%.2fin score=%.3f",
        first_id, second_id, best.first.preset.name, best.spacing, best.score,
    )
    return PlacementResult(
        ok=True,
        message=f"Added 2 screws ({best.first.preset.name}) across the joint.",
        fasteners=fasteners,
        direction=(float(direction[0]), float(direction[1]), float(direction[2])),
    )


# ─── Search stages ───────────────────────────────────────────────────────────

def candidate_directions(
    frame_a: OrientedFrame,
    frame_b: OrientedFrame,
    delta: np.ndarray,
    config: PlacementConfig,
) -> List[np.ndarray]:
    """Both parts' local axes, deduplicated, each pointing from first to second."""
    directions: List[np.ndarray] = []
    for frame in (frame_a, frame_b):
        for i in range(3):
            axis = np.array(frame.axis(i))
            if float(axis @ delta) < 0.0:
                axis = -axis
            if any(is_parallel(axis, d, config.direction_parallel_dot) for d in directions):
                continue
            directions.append(axis)
    return directions


def plane_bases(
    direction: np.ndarray,
    frames: Sequence[OrientedFrame],
    config: PlacementConfig,
) -> List[Tuple[np.ndarray, np.ndarray]]:
    """Orthonormal (u, v) bases of the plane perpendicular to ``direction``.

    Helpers are the world axes and every frame axis. A basis whose ``u``
    lines up with an earlier basis' ``u`` or ``v`` spans the same grid and is
    skipped.
    """
    helpers = list(WORLD_AXES)
    for frame in frames:
        helpers.extend(np.array(frame.axis(i)) for i in range(3))

    bases: List[Tuple[np.ndarray, np.ndarray]] = []
    for helper in helpers:
        u = normalize(np.cross(helper, direction))
        if u is None:
            continue
        if any(
            is_parallel(u, bu, config.direction_parallel_dot)
            or is_parallel(u, bv, config.direction_parallel_dot)
            for bu, bv in bases
        ):
            continue
        v = np.cross(direction, u)
        bases.append((u, v))
    return bases


def axis_sample_offsets(length: float) -> List[float]:
    """Symmetric sample fractions along one side of the shared rectangle."""
    if length < 1.0:
        return [0.0]
    if length < 3.0:
        return [-0.25, 0.0, 0.25]
    if length < 8.0:
        return [-0.3, -0.15, 0.0, 0.15, 0.3]
    return [-0.4, -0.26, -0.12, 0.0, 0.12, 0.26, 0.4]


def select_pair(
    candidates: Sequence[ScrewCandidate],
    rect: "_SharedRect",
    config: PlacementConfig,
) -> Optional[ScrewPair]:
    """Best-scoring pair of candidates that are far enough apart."""
    if len(candidates) < 2:
        return None
    longest_side = max(rect.u_len, rect.v_len)
    diagonal = float(np.hypot(rect.u_len, rect.v_len))
    spacing_needed = min(
        max(config.min_pair_spacing, config.pair_spacing_fraction * longest_side),
        config.pair_spacing_diagonal_cap * diagonal,
    )

    best: Optional[ScrewPair] = None
    for c1, c2 in combinations(candidates, 2):
        spacing = float(np.hypot(
            c1.plane_uv[0] - c2.plane_uv[0], c1.plane_uv[1] - c2.plane_uv[1]
        ))
        if spacing + EPS < spacing_needed:
            continue
        spread = min(1.0, spacing / max(longest_side, EPS))
        score = c1.score + c2.score + config.spread_weight * spread
        if best is None or score > best.score:
            best = ScrewPair(first=c1, second=c2, spacing=spacing, score=score)
    return best


def make_fastener(candidate: ScrewCandidate) -> Part:
    """Synthesize a fastener part for a screw candidate."""
    preset = candidate.preset
    midpoint = candidate.midpoint
    return Part(
        part_id=uuid.uuid4().hex,
        name=preset.name,
        category=PartCategory.HARDWARE,
        hardware_kind=HardwareKind.FASTENER,
        size=(preset.diameter_in, preset.length_in, preset.diameter_in),
        position=(float(midpoint[0]), float(midpoint[1]), float(midpoint[2])),
        rotation=rotation_aligning(SCREW_AXIS, candidate.direction),
    )


def revalidate_fastener(
    fastener: Part,
    candidate: ScrewCandidate,
    first: Part,
    second: Part,
    frame_a: OrientedFrame,
    frame_b: OrientedFrame,
    config: PlacementConfig,
) -> bool:
    """Re-check a synthesized fastener from its own frame.

    The screw axis is rebuilt from the fastener's Euler angles and sampled
    twice as densely as during the search, so drift in the rotation round
    trip or a marginal sample cannot slip through.
    """
    frame_f = build_frame(fastener)
    axis = np.array(frame_f.axis(1))
    if float(axis @ candidate.direction) < 1.0 - 1e-6:
        return False

    length = candidate.preset.length_in
    head = frame_f.center - axis * (length / 2.0)
    exit_b = intersect_ray_with_frame(frame_b, head, axis, config.ray_tolerance)
    if exit_b is None or length > exit_b[1] - config.tip_clearance * 0.5:
        return False

    samples = max(2, config.penetration_samples * 2 - 1)
    seat = _penetration(first, second, frame_a, frame_b, head, axis, 0.0, length, samples)
    min_depth = candidate.preset.min_penetration_in
    return (
        seat.tip_in_second
        and seat.depth_first >= min_depth
        and seat.depth_second >= min_depth
        and seat.wall_clearance >= _required_clearance(candidate.preset, config) - EPS
    )


# ─── Internal ────────────────────────────────────────────────────────────────

def _failure(
    reason: PlacementFailure,
    first_id: str = "",
    second_id: str = "",
) -> PlacementResult:
    logger.info("Screw placement failed (%s) for %s / %s", reason.value, first_id, second_id)
    return PlacementResult(ok=False, message=FAILURE_MESSAGES[reason], reason=reason)


def _edge_adjacent(
    frame_a: OrientedFrame,
    frame_b: OrientedFrame,
    direction: np.ndarray,
    delta_dir: Optional[np.ndarray],
    config: PlacementConfig,
) -> bool:
    """Parts meet face to face across ``direction`` without deep overlap."""
    alignment = float(direction @ delta_dir) if delta_dir is not None else 0.0
    if alignment < config.min_direction_alignment:
        return False
    range_a = projected_range(frame_a, direction)
    range_b = projected_range(frame_b, direction)
    if interval_gap(range_a, range_b) > config.touch_gap_tolerance:
        return False
    return interval_overlap(range_a, range_b) <= config.max_axis_overlap


def _shared_rect(
    frame_a: OrientedFrame,
    frame_b: OrientedFrame,
    u: np.ndarray,
    v: np.ndarray,
    config: PlacementConfig,
) -> Optional[_SharedRect]:
    au, bu = projected_range(frame_a, u), projected_range(frame_b, u)
    av, bv = projected_range(frame_a, v), projected_range(frame_b, v)
    rect = _SharedRect(
        u_lo=max(au[0], bu[0]), u_hi=min(au[1], bu[1]),
        v_lo=max(av[0], bv[0]), v_hi=min(av[1], bv[1]),
    )
    if rect.u_len < config.min_plane_overlap or rect.v_len < config.min_plane_overlap:
        return None
    return rect


def _evaluate_samples(
    first: Part,
    second: Part,
    frame_a: OrientedFrame,
    frame_b: OrientedFrame,
    direction: np.ndarray,
    u: np.ndarray,
    v: np.ndarray,
    rect: _SharedRect,
    config: PlacementConfig,
) -> List[ScrewCandidate]:
    center_u = (rect.u_lo + rect.u_hi) / 2.0
    center_v = (rect.v_lo + rect.v_hi) / 2.0
    candidates: List[ScrewCandidate] = []

    for fu in axis_sample_offsets(rect.u_len):
        for fv in axis_sample_offsets(rect.v_len):
            a = center_u + fu * rect.u_len
            b = center_v + fv * rect.v_len
            # u, v, direction are orthonormal, so the line parameter of any
            # point is its dot product with direction.
            origin = a * u + b * v
            hit_a = intersect_ray_with_frame(frame_a, origin, direction, config.ray_tolerance)
            hit_b = intersect_ray_with_frame(frame_b, origin, direction, config.ray_tolerance)
            if hit_a is None or hit_b is None:
                continue
            if (hit_a[1] - hit_a[0] < config.min_interval_length
                    or hit_b[1] - hit_b[0] < config.min_interval_length):
                continue
            if hit_b[0] < hit_a[0] or hit_b[1] < hit_a[1]:
                continue
            if hit_b[0] - hit_a[1] > config.max_seam_gap:
                continue

            clearance = rect.clearance(a, b)
            best: Optional[ScrewCandidate] = None
            for preset in presets_by_length():
                candidate = _fit_screw(
                    first, second, frame_a, frame_b, origin, direction,
                    (a, b), hit_a, hit_b, preset, clearance, config,
                )
                if candidate is not None and (best is None or candidate.score > best.score):
                    best = candidate
            if best is not None:
                candidates.append(best)
    return candidates


def _fit_screw(
    first: Part,
    second: Part,
    frame_a: OrientedFrame,
    frame_b: OrientedFrame,
    origin: np.ndarray,
    direction: np.ndarray,
    plane_uv: Tuple[float, float],
    hit_a: Tuple[float, float],
    hit_b: Tuple[float, float],
    preset: ScrewPreset,
    clearance: float,
    config: PlacementConfig,
) -> Optional[ScrewCandidate]:
    required_clearance = _required_clearance(preset, config)
    if clearance < required_clearance:
        return None

    length = preset.length_in
    min_depth = preset.min_penetration_in
    seam = (hit_a[1] + hit_b[0]) / 2.0
    head_at_surface = hit_a[0] - config.head_protrusion

    start = head_at_surface
    if start + length < hit_b[0] + min_depth:
        # First part is deeper than the screw can span: seat it on the seam.
        start = seam - length / 2.0
    start = min(start, hit_b[1] - config.tip_clearance - length)
    if start < head_at_surface - EPS:
        return None

    seat = _penetration(
        first, second, frame_a, frame_b, origin, direction,
        start, length, config.penetration_samples,
    )
    depth_a, depth_b = seat.depth_first, seat.depth_second
    if not seat.tip_in_second or depth_a < min_depth or depth_b < min_depth:
        return None
    # Notch walls and miters can sit closer than the shared rectangle's sides.
    clearance = min(clearance, seat.wall_clearance)
    if clearance < required_clearance:
        return None

    engagement = (depth_a + depth_b) / longest_preset_length()
    balance = min(depth_a, depth_b) / length
    edge = min(1.0, clearance / (2.0 * required_clearance))
    midpoint = start + length / 2.0
    seam_centering = 1.0 - min(1.0, abs(midpoint - seam) / (length / 2.0))
    score = (
        config.engagement_weight * engagement
        + config.balance_weight * balance
        + config.edge_weight * edge
        + config.seam_weight * seam_centering
    )
    return ScrewCandidate(
        plane_uv=plane_uv,
        origin=origin,
        direction=direction,
        start=start,
        preset=preset,
        depth_first=depth_a,
        depth_second=depth_b,
        edge_clearance=clearance,
        score=score,
    )


def _required_clearance(preset: ScrewPreset, config: PlacementConfig) -> float:
    return max(config.min_edge_clearance, config.edge_clearance_diameters * preset.diameter_in)


@dataclass(frozen=True)
class _Seat:
    depth_first: float
    depth_second: float
    tip_in_second: bool
    wall_clearance: float


def _penetration(
    first: Part,
    second: Part,
    frame_a: OrientedFrame,
    frame_b: OrientedFrame,
    origin: np.ndarray,
    direction: np.ndarray,
    start: float,
    length: float,
    samples: int,
) -> _Seat:
    """Screw length inside each part's true shape, whether the tip bites, and
    the closest side wall of either part along the embedded shank."""
    ts = start + np.linspace(0.0, length, samples)
    points = origin + np.outer(ts, direction)
    step = length / (samples - 1)

    depths = []
    clearance = np.inf
    for part, frame in ((first, frame_a), (second, frame_b)):
        local = to_local(frame, points)
        inside = contains_local_points(part, local)
        depths.append((float(inside.sum() * step), inside))
        clearance = min(clearance, wall_clearance(
            part,
            to_local(frame, origin)[0],
            direction @ frame.axes,
            local[inside],
        ))
    (depth_a, _), (depth_b, in_b) = depths
    return _Seat(
        depth_first=depth_a,
        depth_second=depth_b,
        tip_in_second=bool(in_b[-1]),
        wall_clearance=float(clearance),
    )
