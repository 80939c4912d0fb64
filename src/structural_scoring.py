"""
Structural integrity scoring for wood assemblies.

Turns the contact graph into per-part stability scores, an assembly score
and letter grade, a recommendation, and display statistics. Optional stress
scenarios (vertical load, racking, torsion, impact) add per-part penalties
and scenario load points so the heat map shows force-specific weak zones.

The scorer is total: any snapshot of parts, including an empty one, yields a
well-formed report.
"""
import logging
import math
import types
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np
from scipy.spatial import cKDTree

from assembly import Part, PartCategory
from contact_graph import (
    ContactConfig,
    ContactGraph,
    PairSource,
    StructuralPoint,
    build_contact_graph,
)
from geometry_primitives import EPS, Bounds3
from screw_catalog import CU_IN_PER_CU_FT, SQ_IN_PER_SQ_FT, WOOD_DENSITY_LB_PER_CU_FT

logger = logging.getLogger(__name__)

GRADE_BANDS: Tuple[Tuple[float, str], ...] = (
    (0.9, "A+"),
    (0.82, "A"),
    (0.72, "B"),
    (0.6, "C"),
    (0.45, "D"),
)
NO_GRADE = "N/A"

EMPTY_RECOMMENDATION = "Add parts to run structural analysis."
EMPTY_STRESS_RECOMMENDATION = "Add parts to run structural stress simulation."


@dataclass(frozen=True)
class StructuralConfig:
    """Tolerances and weights for the stability model."""

    contact: ContactConfig = field(default_factory=ContactConfig)

    # Grounding
    ground_tolerance: float = 0.18
    support_plane_tolerance: float = 0.22

    # Per-part weights
    support_weight: float = 0.3
    pattern_weight: float = 0.16
    connection_weight: float = 0.18
    axis_weight: float = 0.1
    geometry_weight: float = 0.1
    screw_weight: float = 0.14
    grounded_bonus: float = 0.09
    isolation_penalty: float = 0.22
    weak_threshold: float = 0.48

    # Support pattern
    pattern_grid: Tuple[float, ...] = (0.12, 0.32, 0.5, 0.68, 0.88)
    pattern_grounded_default: float = 0.72
    pattern_floating_default: float = 0.18

    # Assembly weights
    part_score_weight: float = 0.62
    coverage_weight: float = 0.14
    connections_weight: float = 0.11
    symmetry_weight: float = 0.08
    grounded_ratio_weight: float = 0.05
    bridging_weight: float = 0.06
    connections_for_full_credit: float = 3.6
    component_penalty_step: float = 0.06
    component_penalty_cap: float = 0.18
    weak_ratio_penalty: float = 0.12
    top_heavy_threshold: float = 0.7
    top_heavy_cap: float = 0.4
    top_heavy_weight: float = 0.28
    score_floor: float = 0.08

    wood_density_lb_per_cu_ft: float = WOOD_DENSITY_LB_PER_CU_FT


@dataclass(frozen=True)
class StressProfile:
    """A simulated load mix; each load component is in [0, 1]."""
    scenario: str
    label: str
    description: str
    vertical: float
    lateral: float
    torsion: float
    impact: float

    @property
    def is_baseline(self) -> bool:
        return self.scenario == "baseline"


STRESS_PROFILES: Dict[str, StressProfile] = {
    "baseline": StressProfile(
        scenario="baseline",
        label="Baseline",
        description="Normal workshop usage with no simulated extreme force.",
        vertical=0.0, lateral=0.0, torsion=0.0, impact=0.0,
    ),
    "vertical-load": StressProfile(
        scenario="vertical-load",
        label="Vertical Load",
        description="Heavy top-down weight to reveal sag and support distribution.",
        vertical=1.0, lateral=0.2, torsion=0.1, impact=0.0,
    ),
    "lateral-rack": StressProfile(
        scenario="lateral-rack",
        label="Side Racking",
        description="Sideways force to test wobble, bracing, and joint stiffness.",
        vertical=0.2, lateral=1.0, torsion=0.35, impact=0.15,
    ),
    "torsion-twist": StressProfile(
        scenario="torsion-twist",
        label="Twist Torque",
        description="Opposing corner torque to expose torsional weak zones.",
        vertical=0.3, lateral=0.45, torsion=1.0, impact=0.1,
    ),
    "impact-burst": StressProfile(
        scenario="impact-burst",
        label="Impact Burst",
        description="Sudden localized shock load to reveal brittle joints and stress spikes.",
        vertical=0.4, lateral=0.5, torsion=0.25, impact=1.0,
    ),
}


@dataclass(frozen=True)
class StructuralPartField:
    """Per-part overlay data for the heat map."""
    base_stability: float
    support_pattern_score: float
    support_points: Tuple[StructuralPoint, ...]
    load_points: Tuple[StructuralPoint, ...]
    fastener_points: Tuple[StructuralPoint, ...]
    primary_span_axis: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "baseStability": self.base_stability,
            "supportPatternScore": self.support_pattern_score,
            "supportPoints": [_point_dict(p) for p in self.support_points],
            "loadPoints": [_point_dict(p) for p in self.load_points],
            "fastenerPoints": [_point_dict(p) for p in self.fastener_points],
            "primarySpanAxis": self.primary_span_axis,
        }


@dataclass(frozen=True)
class StressSummary:
    scenario: str
    label: str
    description: str
    intensity: float
    score: float
    grade: str
    recommendation: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scenario": self.scenario,
            "label": self.label,
            "description": self.description,
            "intensity": self.intensity,
            "score": self.score,
            "grade": self.grade,
            "recommendation": self.recommendation,
        }


@dataclass(frozen=True)
class AssemblyStats:
    """Display statistics; none of these feed back into the score."""
    part_count: int
    wood_part_count: int
    hardware_count: int
    fastener_count: int
    lumber_count: int
    sheet_count: int
    bridging_fasteners: int = 0
    fastener_engagement: float = 0.0
    connected_groups: int = 0
    grounded_parts: int = 0
    average_connections: float = 0.0
    support_coverage: float = 0.0
    total_volume_cu_in: float = 0.0
    total_volume_cu_ft: float = 0.0
    estimated_weight_lb: float = 0.0
    footprint_sq_ft: float = 0.0
    max_span_in: float = 0.0
    model_height_in: float = 0.0
    center_of_mass_height_in: float = 0.0
    symmetry_score: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "partCount": self.part_count,
            "woodPartCount": self.wood_part_count,
            "hardwareCount": self.hardware_count,
            "fastenerCount": self.fastener_count,
            "bridgingFasteners": self.bridging_fasteners,
            "fastenerEngagement": self.fastener_engagement,
            "lumberCount": self.lumber_count,
            "sheetCount": self.sheet_count,
            "connectedGroups": self.connected_groups,
            "groundedParts": self.grounded_parts,
            "averageConnections": self.average_connections,
            "supportCoverage": self.support_coverage,
            "totalVolumeCuIn": self.total_volume_cu_in,
            "totalVolumeCuFt": self.total_volume_cu_ft,
            "estimatedWeightLb": self.estimated_weight_lb,
            "footprintSqFt": self.footprint_sq_ft,
            "maxSpanIn": self.max_span_in,
            "modelHeightIn": self.model_height_in,
            "centerOfMassHeightIn": self.center_of_mass_height_in,
            "symmetryScore": self.symmetry_score,
        }


@dataclass(frozen=True)
class StructuralReport:
    """Immutable result of one analysis run.

    The per-part maps are read-only views; cached reports are shared between
    callers. ``to_dict`` returns fresh copies.
    """
    overall_score: float
    grade: str
    recommendation: str
    stress: StressSummary
    part_scores: Mapping[str, float]
    part_fields: Mapping[str, StructuralPartField]
    weak_part_ids: Tuple[str, ...]
    stats: AssemblyStats

    @property
    def is_empty(self) -> bool:
        return self.grade == NO_GRADE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overallScore": self.overall_score,
            "grade": self.grade,
            "recommendation": self.recommendation,
            "stress": self.stress.to_dict(),
            "partScores": dict(self.part_scores),
            "partFields": {pid: f.to_dict() for pid, f in self.part_fields.items()},
            "weakPartIds": list(self.weak_part_ids),
            "stats": self.stats.to_dict(),
        }


def grade_for_score(score: float) -> str:
    for threshold, grade in GRADE_BANDS:
        if score >= threshold:
            return grade
    return "F"


def stress_profile(scenario: Optional[str]) -> StressProfile:
    """Look up a stress scenario; unknown names fall back to baseline."""
    if scenario is None:
        return STRESS_PROFILES["baseline"]
    profile = STRESS_PROFILES.get(scenario)
    if profile is None:
        logger.warning("Unknown stress scenario %r, using baseline", scenario)
        return STRESS_PROFILES["baseline"]
    return profile


def build_recommendation(
    overall_score: float,
    weak_count: int,
    connected_groups: int,
    fastener_engagement: float,
) -> str:
    if connected_groups > 1:
        return "Multiple disconnected clusters found. Tie assemblies together before load-bearing use."
    if fastener_engagement < 0.35 and overall_score < 0.8:
        return "Low fastener engagement detected. Add screws that bridge across joint seams in weak zones."
    if weak_count >= 3:
        return "Several weak zones detected. Add braces and increase overlap where heat map is red/orange."
    if weak_count > 0:
        return "Mostly stable with localized weak zones. Reinforce highlighted pieces for better rigidity."
    if overall_score >= 0.86:
        return "Strong load path detected. Current design appears well braced for typical workshop use."
    return "Moderate stability profile. Additional cross-bracing and fastener spread would improve confidence."


def build_stress_recommendation(
    profile: StressProfile,
    stress_score: float,
    weak_count: int,
    fastener_engagement: float,
) -> str:
    if profile.is_baseline:
        return "Baseline model only. Pick a stress scenario to preview force-specific weak zones."
    label = profile.label.lower()
    if stress_score >= 0.82:
        return f"Performs strongly under {label}. Current bracing pattern is handling this load well."
    if stress_score >= 0.65:
        return f"Moderate under {label}. Add a brace near warm zones to improve stiffness."
    if fastener_engagement < 0.34:
        return f"Weak under {label}. Increase seam-bridging screw count before heavier use."
    if weak_count >= 3:
        return f"Several hotspots under {label}. Reinforce red/orange zones first."
    return f"High-risk behavior under {label}. Add support points and shorten unsupported spans."


def support_pattern_score(
    bounds: Bounds3,
    supports: Sequence[StructuralPoint],
    grounded: bool,
    config: Optional[StructuralConfig] = None,
) -> float:
    """How evenly support points cover a part's footprint.

    A 5x5 grid over the X/Z footprint is matched to the nearest support
    point; interior samples weigh more than rim samples. Spread-out supports
    score higher than a single point, and more points earn a small bonus.
    """
    if config is None:
        config = StructuralConfig()
    if not supports:
        return config.pattern_grounded_default if grounded else config.pattern_floating_default

    span_x = max(bounds.max_x - bounds.min_x, EPS)
    span_z = max(bounds.max_z - bounds.min_z, EPS)
    normalizer = max(math.hypot(span_x, span_z) * 0.46, 0.7)

    grid = np.asarray(config.pattern_grid, dtype=float)
    xs = bounds.min_x + grid * span_x
    zs = bounds.min_z + grid * span_z
    gx, gz = np.meshgrid(xs, zs, indexing="ij")
    samples = np.column_stack([gx.ravel(), gz.ravel()])

    tree = cKDTree(np.array([[p.x, p.z] for p in supports]))
    nearest, _ = tree.query(samples)

    edge_x = np.minimum(np.abs(samples[:, 0] - bounds.min_x), np.abs(bounds.max_x - samples[:, 0])) / span_x
    edge_z = np.minimum(np.abs(samples[:, 1] - bounds.min_z), np.abs(bounds.max_z - samples[:, 1])) / span_z
    center_bias = 1.0 + (1.0 - np.minimum(edge_x, edge_z) * 2.0) * 0.7

    avg_distance = float(np.sum(nearest * center_bias) / max(float(np.sum(center_bias)), EPS))
    distribution = _clamp(1.0 - avg_distance / normalizer, 0.0, 1.0)
    count_bonus = _clamp(math.log2(len(supports) + 1) / 3.0, 0.0, 1.0) * 0.22
    return _clamp(distribution + count_bonus, 0.0, 1.0)


def empty_report(
    parts: Sequence[Part],
    profile: StressProfile,
    intensity: float,
) -> StructuralReport:
    """The defined report for an assembly with no wood parts."""
    wood = [p for p in parts if not p.is_hardware]
    hardware = [p for p in parts if p.is_hardware]
    return StructuralReport(
        overall_score=0.0,
        grade=NO_GRADE,
        recommendation=EMPTY_RECOMMENDATION,
        stress=StressSummary(
            scenario=profile.scenario,
            label=profile.label,
            description=profile.description,
            intensity=intensity,
            score=0.0,
            grade=NO_GRADE,
            recommendation=EMPTY_STRESS_RECOMMENDATION,
        ),
        part_scores=types.MappingProxyType({}),
        part_fields=types.MappingProxyType({}),
        weak_part_ids=(),
        stats=AssemblyStats(
            part_count=len(parts),
            wood_part_count=len(wood),
            hardware_count=len(hardware),
            fastener_count=sum(1 for p in hardware if p.is_fastener),
            lumber_count=sum(1 for p in wood if p.category == PartCategory.LUMBER),
            sheet_count=sum(1 for p in wood if p.category == PartCategory.SHEET),
        ),
    )


def analyze(
    parts: Sequence[Part],
    config: Optional[StructuralConfig] = None,
    stress_scenario: Optional[str] = "baseline",
    stress_intensity: float = 0.6,
    pair_source: Optional[PairSource] = None,
) -> StructuralReport:
    """Score the structural stability of an assembly.

    Args:
        parts: Snapshot of every part, wood and hardware.
        config: Model tolerances and weights.
        stress_scenario: One of STRESS_PROFILES; unknown names mean baseline.
        stress_intensity: Scenario strength, clamped to [0, 1].
        pair_source: Candidate pair generator for the contact scan.

    Returns:
        StructuralReport. Never raises for well-formed parts.
    """
    if config is None:
        config = StructuralConfig()
    profile = stress_profile(stress_scenario)
    intensity = _clamp(float(stress_intensity), 0.0, 1.0)

    if not any(not p.is_hardware for p in parts):
        logger.info("No wood parts; returning empty structural report")
        return empty_report(parts, profile, intensity)

    graph = build_contact_graph(parts, config.contact, pair_source)
    model = _ModelFrame.from_graph(graph)
    scenario_weight = 0.0 if profile.is_baseline else _clamp(0.4 + intensity * 0.6, 0.4, 1.0)

    part_scores: Dict[str, float] = {}
    part_fields: Dict[str, StructuralPartField] = {}
    weak_ids: List[str] = []
    grounded_parts = 0
    total_connections = 0
    total_support_ratio = 0.0

    for part in graph.wood_parts:
        result = _score_part(part, graph, model, profile, intensity, scenario_weight, config)
        part_scores[part.part_id] = result.score
        part_fields[part.part_id] = result.part_field
        if result.score < config.weak_threshold:
            weak_ids.append(part.part_id)
        grounded_parts += int(result.grounded)
        total_connections += len(graph.contacts[part.part_id])
        total_support_ratio += result.support_ratio

    wood = graph.wood_parts
    n_wood = len(wood)
    fastener_count = len(graph.fastener_parts)
    volumes = {p.part_id: p.volume for p in wood}
    total_volume = sum(volumes[p.part_id] for p in wood)

    com_y = sum(
        graph.bounds[p.part_id].center[1] * volumes[p.part_id] for p in wood
    ) / max(total_volume, EPS)
    model_height = max(model.max_y - model.min_y, 0.0)
    center_of_mass_height = max(0.0, float(com_y) - model.min_y)
    symmetry = _symmetry_score(graph, volumes, total_volume, model)

    weights = {p.part_id: math.sqrt(max(volumes[p.part_id], EPS)) for p in wood}
    weighted_score = sum(part_scores[pid] * w for pid, w in weights.items()) / sum(weights.values())

    support_coverage = total_support_ratio / max(n_wood, 1)
    average_connections = total_connections / max(n_wood, 1)
    weak_ratio = len(weak_ids) / max(n_wood, 1)
    top_heavy = center_of_mass_height / max(model_height, 1.0)
    groups = graph.connected_groups
    bridging_ratio = (
        _clamp(graph.bridging_fasteners / max(fastener_count, 1), 0.0, 1.0)
        if fastener_count > 0 else 0.0
    )

    raw = (
        weighted_score * config.part_score_weight
        + support_coverage * config.coverage_weight
        + _clamp(average_connections / config.connections_for_full_credit, 0.0, 1.0) * config.connections_weight
        + symmetry * config.symmetry_weight
        + _clamp(grounded_parts / max(n_wood, 1), 0.0, 1.0) * config.grounded_ratio_weight
        + bridging_ratio * config.bridging_weight
    )
    component_penalty = (
        min(config.component_penalty_cap, config.component_penalty_step * (groups - 1))
        if groups > 1 else 0.0
    )
    weak_penalty = weak_ratio * config.weak_ratio_penalty
    top_heavy_penalty = (
        _clamp(top_heavy - config.top_heavy_threshold, 0.0, config.top_heavy_cap)
        * config.top_heavy_weight
    )
    penalized = _clamp(raw - component_penalty - weak_penalty - top_heavy_penalty, 0.0, 1.0)
    overall = _clamp(config.score_floor + penalized * (1.0 - config.score_floor), 0.0, 1.0)
    grade = grade_for_score(overall)
    engagement = bridging_ratio

    total_cu_ft = total_volume / CU_IN_PER_CU_FT
    stats = AssemblyStats(
        part_count=len(parts),
        wood_part_count=n_wood,
        hardware_count=sum(1 for p in parts if p.is_hardware),
        fastener_count=fastener_count,
        lumber_count=sum(1 for p in wood if p.category == PartCategory.LUMBER),
        sheet_count=sum(1 for p in wood if p.category == PartCategory.SHEET),
        bridging_fasteners=graph.bridging_fasteners,
        fastener_engagement=engagement,
        connected_groups=groups,
        grounded_parts=grounded_parts,
        average_connections=average_connections,
        support_coverage=support_coverage,
        total_volume_cu_in=total_volume,
        total_volume_cu_ft=total_cu_ft,
        estimated_weight_lb=total_cu_ft * config.wood_density_lb_per_cu_ft,
        footprint_sq_ft=max(
            (model.max_x - model.min_x) * (model.max_z - model.min_z), 0.0
        ) / SQ_IN_PER_SQ_FT,
        max_span_in=max(model.max_x - model.min_x, model.max_z - model.min_z),
        model_height_in=model_height,
        center_of_mass_height_in=center_of_mass_height,
        symmetry_score=symmetry,
    )

    # The stress score is the scenario-adjusted overall score.
    stress = StressSummary(
        scenario=profile.scenario,
        label=profile.label,
        description=profile.description,
        intensity=intensity,
        score=overall,
        grade=grade,
        recommendation=build_stress_recommendation(profile, overall, len(weak_ids), engagement),
    )
    report = StructuralReport(
        overall_score=overall,
        grade=grade,
        recommendation=build_recommendation(overall, len(weak_ids), groups, engagement),
        stress=stress,
        part_scores=types.MappingProxyType(part_scores),
        part_fields=types.MappingProxyType(part_fields),
        weak_part_ids=tuple(weak_ids),
        stats=stats,
    )
    logger.info(
        "Structural analysis (%s): score=%.3f grade=%s wood=%d weak=%d groups=%d",
        profile.scenario, overall, grade, n_wood, len(weak_ids), groups,
    )
    return report


# ─── Internal ────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class _ModelFrame:
    """Whole-assembly extents shared by every per-part computation."""
    min_x: float
    max_x: float
    min_y: float
    max_y: float
    min_z: float
    max_z: float

    @classmethod
    def from_graph(cls, graph: ContactGraph) -> "_ModelFrame":
        lo = np.min([b.lo for b in graph.bounds.values()], axis=0)
        hi = np.max([b.hi for b in graph.bounds.values()], axis=0)
        return cls(
            min_x=float(lo[0]), max_x=float(hi[0]),
            min_y=float(lo[1]), max_y=float(hi[1]),
            min_z=float(lo[2]), max_z=float(hi[2]),
        )

    @property
    def center_x(self) -> float:
        return (self.min_x + self.max_x) / 2.0

    @property
    def center_z(self) -> float:
        return (self.min_z + self.max_z) / 2.0

    @property
    def span_y(self) -> float:
        return max(self.max_y - self.min_y, EPS)

    @property
    def radius(self) -> float:
        span_x = max(self.max_x - self.min_x, EPS)
        span_z = max(self.max_z - self.min_z, EPS)
        return max(math.hypot(span_x * 0.5, span_z * 0.5), EPS)


@dataclass(frozen=True)
class _PartResult:
    score: float
    part_field: StructuralPartField
    grounded: bool
    support_ratio: float


def _score_part(
    part: Part,
    graph: ContactGraph,
    model: _ModelFrame,
    profile: StressProfile,
    intensity: float,
    scenario_weight: float,
    config: StructuralConfig,
) -> _PartResult:
    pid = part.part_id
    bounds = graph.bounds[pid]
    span_x, span_y, span_z = (float(s) for s in bounds.span)
    footprint = max(span_x * span_z, EPS)
    contacts = graph.contacts[pid]

    floor_grounded = bounds.min_y <= config.ground_tolerance
    externally_supported = bounds.min_y <= model.min_y + config.support_plane_tolerance
    grounded = floor_grounded or externally_supported

    raw_supports = graph.support_points[pid]
    pattern = support_pattern_score(bounds, raw_supports, grounded, config)

    if floor_grounded:
        base_support = footprint * _clamp(
            (config.ground_tolerance - bounds.min_y) / config.ground_tolerance + 0.42, 0.48, 1.0
        )
    elif externally_supported:
        base_support = footprint * 0.58
    else:
        base_support = 0.0
    support = min(footprint * 1.25, base_support + graph.support_area[pid])
    support_ratio = _clamp(support / footprint, 0.0, 1.0)

    contact_area = sum(edge.area for edge in contacts)
    connection = _clamp(contact_area / max(footprint * 1.1, EPS), 0.0, 1.0)
    axis_diversity = (0.0, 0.38, 0.72, 1.0)[min(len({e.axis for e in contacts}), 3)]

    slenderness = max(span_x, span_y, span_z) / max(min(span_x, span_z), 0.5)
    geometry = _clamp(1.0 - (slenderness - 1.0) / 8.0, 0.12, 1.0)

    relative_height = span_y / max(span_x + span_z, 1.0)
    cantilever = 0.0
    if not grounded and support_ratio < 0.36:
        cantilever = _clamp(relative_height * 0.14 + (0.36 - support_ratio) * 0.18, 0.0, 0.22)
    screw_support = _clamp(graph.fastener_links[pid] / 2.5, 0.0, 1.0)
    own_volume = max(span_x * span_y * span_z, EPS)
    load_ratio = _clamp(graph.load_demand[pid] / own_volume, 0.0, 5.0)
    pressure = _clamp((load_ratio - 1.05) * 0.045, 0.0, 0.14) * (1.0 - support_ratio * 0.68)

    score = (
        support_ratio * config.support_weight
        + pattern * config.pattern_weight
        + connection * config.connection_weight
        + axis_diversity * config.axis_weight
        + geometry * config.geometry_weight
        + screw_support * config.screw_weight
        + (config.grounded_bonus if grounded else 0.0)
        - cantilever
        - pressure
    )
    if not grounded and not contacts and screw_support < 0.2:
        score -= config.isolation_penalty

    center_x = (bounds.min_x + bounds.max_x) / 2.0
    center_z = (bounds.min_z + bounds.max_z) / 2.0
    radial = _clamp(
        math.hypot(center_x - model.center_x, center_z - model.center_z) / model.radius, 0.0, 1.0
    )
    top_exposure = _clamp((bounds.max_y - model.min_y) / model.span_y, 0.0, 1.0)

    if not profile.is_baseline:
        w = scenario_weight
        vertical = profile.vertical * w * (0.13 + load_ratio * 0.05) * (1.0 - support_ratio * 0.72)
        lateral = (
            profile.lateral * w
            * (0.12 + relative_height * 0.08 + top_exposure * 0.05)
            * (1.0 - (axis_diversity * 0.5 + screw_support * 0.26 + connection * 0.24))
        )
        torsion = (
            profile.torsion * w
            * (0.1 + radial * 0.1 + top_exposure * 0.06)
            * (1.0 - (pattern * 0.46 + screw_support * 0.34 + axis_diversity * 0.2))
        )
        impact = (
            profile.impact * w
            * (0.08 + load_ratio * 0.05)
            * (1.0 - (screw_support * 0.42 + connection * 0.34 + support_ratio * 0.24))
        )
        stress_penalty = _clamp(vertical + lateral + torsion + impact, 0.0, 0.56)
        resilience = _clamp(
            support_ratio * 0.36 + pattern * 0.25 + screw_support * 0.2 + axis_diversity * 0.19,
            0.0, 1.0,
        )
        stress_bonus = max(0.0, resilience - 0.62) * w * 0.08
        score = score - stress_penalty + stress_bonus

    score = _clamp(score, 0.0, 1.0)

    supports = list(raw_supports)
    if grounded and not supports:
        supports.append(StructuralPoint(
            x=center_x, y=bounds.min_y, z=center_z, intensity=0.5,
        ))
    loads = list(graph.load_points[pid])
    if not profile.is_baseline:
        loads.extend(_scenario_load_points(part, bounds, model, profile, intensity, radial, top_exposure))

    part_field = StructuralPartField(
        base_stability=score,
        support_pattern_score=pattern,
        support_points=_clamped_points(supports),
        load_points=_clamped_points(loads),
        fastener_points=_clamped_points(graph.fastener_points[pid]),
        primary_span_axis="x" if span_x >= span_z else "z",
    )
    return _PartResult(score=score, part_field=part_field, grounded=grounded, support_ratio=support_ratio)


def _scenario_load_points(
    part: Part,
    bounds: Bounds3,
    model: _ModelFrame,
    profile: StressProfile,
    intensity: float,
    radial: float,
    top_exposure: float,
) -> List[StructuralPoint]:
    """Where a scenario's forces land on one part, for the heat overlay."""
    points: List[StructuralPoint] = []
    mid_x = (bounds.min_x + bounds.max_x) / 2.0
    height_bias = _clamp(0.62 + top_exposure * 0.52, 0.62, 1.25)

    def at(tx: float, ty: float, tz: float, strength: float) -> StructuralPoint:
        return StructuralPoint(
            x=_lerp(bounds.min_x, bounds.max_x, tx),
            y=_lerp(bounds.min_y, bounds.max_y, ty),
            z=_lerp(bounds.min_z, bounds.max_z, tz),
            intensity=strength,
        )

    if profile.vertical > 0:
        v = _clamp(0.24 + profile.vertical * intensity * height_bias * 0.62, 0.12, 1.0)
        points.append(at(0.5, 1.0, 0.5, v))
        points.append(at(0.22, 1.0, 0.22, _clamp(v * 0.7, 0.1, 1.0)))
        points.append(at(0.78, 1.0, 0.78, _clamp(v * 0.7, 0.1, 1.0)))

    if profile.lateral > 0:
        # Push from the side facing away from the model center.
        side = 1.0 if model.center_x <= mid_x else 0.0
        lat = _clamp(0.2 + profile.lateral * intensity * height_bias * 0.58, 0.1, 1.0)
        points.append(at(side, 0.8, 0.5, lat))
        points.append(at(side, 0.56, 0.32, _clamp(lat * 0.75, 0.1, 1.0)))

    if profile.torsion > 0:
        t = _clamp(0.2 + profile.torsion * intensity * (0.55 + radial * 0.55), 0.1, 1.0)
        points.append(at(0.0, 1.0, 1.0, t))
        points.append(at(1.0, 1.0, 0.0, _clamp(t * 0.9, 0.1, 1.0)))

    if profile.impact > 0:
        seed = string_seed(part.part_id)
        tx = 0.18 + ((seed % 100) / 100.0) * 0.64
        tz = 0.18 + (((seed >> 7) % 100) / 100.0) * 0.64
        hit = _clamp(0.28 + profile.impact * intensity * 0.72, 0.1, 1.0)
        points.append(at(tx, 0.86, tz, hit))
        points.append(at(
            _clamp(tx + 0.14, 0.08, 0.92), 0.68, _clamp(tz - 0.12, 0.08, 0.92),
            _clamp(hit * 0.62, 0.1, 1.0),
        ))

    logger.debug("Scenario %s: %d load points on %s", profile.scenario, len(points), part.part_id)
    return points


def string_seed(value: str) -> int:
    """Stable non-negative 32-bit hash of a string (h * 31 + code point)."""
    h = 0
    for ch in value:
        h = (h * 31 + ord(ch)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return abs(h)


def _symmetry_score(
    graph: ContactGraph,
    volumes: Dict[str, float],
    total_volume: float,
    model: _ModelFrame,
) -> float:
    pos_x = neg_x = pos_z = neg_z = 0.0
    for part in graph.wood_parts:
        center = graph.bounds[part.part_id].center
        volume = volumes[part.part_id]
        if center[0] >= model.center_x:
            pos_x += volume
        else:
            neg_x += volume
        if center[2] >= model.center_z:
            pos_z += volume
        else:
            neg_z += volume
    denom = max(total_volume, EPS)
    sym_x = 1.0 - abs(pos_x - neg_x) / denom
    sym_z = 1.0 - abs(pos_z - neg_z) / denom
    return _clamp((sym_x + sym_z) / 2.0, 0.0, 1.0)


def _clamped_points(points: Sequence[StructuralPoint]) -> Tuple[StructuralPoint, ...]:
    return tuple(
        StructuralPoint(x=p.x, y=p.y, z=p.z, intensity=_clamp(p.intensity, 0.1, 1.0))
        for p in points
    )


def _point_dict(point: StructuralPoint) -> Dict[str, float]:
    return {"x": point.x, "y": point.y, "z": point.z, "intensity": point.intensity}


def _lerp(a: float, b: float, t: float) -> float:
    return a + (b - a) * t


def _clamp(value: float, lo: float, hi: float) -> float:
    if not math.isfinite(value):
        return lo
    return max(lo, min(hi, value))
