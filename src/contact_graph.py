"""
Contact and support graph for an assembly.

Pairwise analysis of wood parts on their world-space bounding boxes:

- contact edges (two parts touching along one dominant world axis)
- vertical support (a part's bottom resting on another's top)
- load demand propagated down through stacks
- connected components of the contact graph
- fastener bridging (screws overlapping two or more wood parts)

Candidate pairs come from a PairSource so the O(n^2) scan can be swapped for
a spatial index without touching the contact rules.
"""
import logging
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set, Tuple

import numpy as np
from scipy.spatial import cKDTree

from assembly import Part
from geometry_primitives import AXIS_NAMES, EPS, Bounds3, world_bounds

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ContactConfig:
    """Tolerances for contact, support, and fastener detection (inches)."""
    contact_tolerance: float = 0.22
    min_overlap: float = 0.08
    min_contact_area: float = 0.05
    fastener_min_overlap: float = 0.03
    single_part_fastener_credit: float = 0.35
    patch_single_sample_span: float = 0.12
    patch_max_inset: float = 0.7
    patch_dedupe_tolerance: float = 0.04


@dataclass(frozen=True)
class ContactEdge:
    """Two parts touching along one world axis."""
    part_a: str
    part_b: str
    axis: str      # "x", "y" or "z": the axis the parts meet across
    area: float    # overlap area on the other two axes

    def other(self, part_id: str) -> str:
        return self.part_b if part_id == self.part_a else self.part_a


@dataclass(frozen=True)
class StructuralPoint:
    """A weighted point used for support, load, and fastener overlays."""
    x: float
    y: float
    z: float
    intensity: float


@dataclass(frozen=True)
class SupportPatch:
    """Horizontal overlap rectangle between a part and the part below it."""
    x_min: float
    x_max: float
    z_min: float
    z_max: float


@dataclass(frozen=True)
class SupportLink:
    below_id: str
    area: float
    patch: SupportPatch


@dataclass
class ContactGraph:
    """Everything the scorer needs from the pairwise scan."""
    wood_parts: List[Part]
    fastener_parts: List[Part]
    bounds: Dict[str, Bounds3]
    edges: List[ContactEdge] = field(default_factory=list)
    contacts: Dict[str, List[ContactEdge]] = field(default_factory=dict)
    adjacency: Dict[str, Set[str]] = field(default_factory=dict)
    components: List[List[str]] = field(default_factory=list)
    support_area: Dict[str, float] = field(default_factory=dict)
    supporters: Dict[str, List[SupportLink]] = field(default_factory=dict)
    support_points: Dict[str, List[StructuralPoint]] = field(default_factory=dict)
    load_points: Dict[str, List[StructuralPoint]] = field(default_factory=dict)
    load_demand: Dict[str, float] = field(default_factory=dict)
    fastener_links: Dict[str, float] = field(default_factory=dict)
    fastener_points: Dict[str, List[StructuralPoint]] = field(default_factory=dict)
    bridging_fasteners: int = 0

    @property
    def connected_groups(self) -> int:
        return len(self.components)


# ─── Candidate pair sources ─────────────────────────────────────────────────

class PairSource(ABC):
    """Yields index pairs (i < j) of boxes that may touch, sorted."""

    @abstractmethod
    def pairs(self, bounds: Sequence[Bounds3], reach: float) -> List[Tuple[int, int]]:
        ...


class AllPairs(PairSource):
    """Every unordered pair."""

    def pairs(self, bounds: Sequence[Bounds3], reach: float) -> List[Tuple[int, int]]:
        n = len(bounds)
        return [(i, j) for i in range(n) for j in range(i + 1, n)]


class KDTreePairs(PairSource):
    """Pairs whose box centers are close enough that the boxes could touch.

    Two boxes within ``reach`` of each other on every axis have centers no
    further apart than the norm of the largest per-axis span plus
    ``reach * sqrt(3)``, so the radius query never drops a real contact.
    """

    def pairs(self, bounds: Sequence[Bounds3], reach: float) -> List[Tuple[int, int]]:
        if len(bounds) < 2:
            return []
        centers = np.array([b.center for b in bounds])
        spans = np.array([b.hi - b.lo for b in bounds])
        radius = float(np.linalg.norm(spans.max(axis=0)) + reach * np.sqrt(3.0))
        found = cKDTree(centers).query_pairs(radius, output_type="ndarray")
        return sorted((int(i), int(j)) for i, j in found)


# ─── Pairwise rules ─────────────────────────────────────────────────────────

def find_contact_edge(
    a: Bounds3,
    b: Bounds3,
    a_id: str = "",
    b_id: str = "",
    config: Optional[ContactConfig] = None,
) -> Optional[ContactEdge]:
    """Dominant contact between two boxes, or None.

    An axis qualifies when the gap across it is within tolerance and the
    overlaps on both other axes reach the minimum. The qualifying axis with
    the largest overlap area wins if that area is large enough.
    """
    if config is None:
        config = ContactConfig()
    overlaps = a.overlaps(b)
    gaps = a.gaps(b)

    best: Optional[ContactEdge] = None
    for axis in range(3):
        u, v = [k for k in range(3) if k != axis]
        if gaps[axis] > config.contact_tolerance:
            continue
        if overlaps[u] < config.min_overlap or overlaps[v] < config.min_overlap:
            continue
        area = float(overlaps[u] * overlaps[v])
        if best is None or area > best.area:
            best = ContactEdge(part_a=a_id, part_b=b_id, axis=AXIS_NAMES[axis], area=area)

    if best is None or best.area < config.min_contact_area:
        return None
    return best


def build_contact_graph(
    parts: Sequence[Part],
    config: Optional[ContactConfig] = None,
    pair_source: Optional[PairSource] = None,
) -> ContactGraph:
    """Run the pairwise contact, support, and fastener scan.

    Wood parts are processed in id order, so the result does not depend on
    the order of ``parts``.

    Args:
        parts: Snapshot of all parts (wood and hardware).
        config: Contact tolerances.
        pair_source: Candidate pair generator; defaults to AllPairs.

    Returns:
        ContactGraph keyed by part id.
    """
    if config is None:
        config = ContactConfig()
    if pair_source is None:
        pair_source = AllPairs()

    wood = sorted((p for p in parts if not p.is_hardware), key=lambda p: p.part_id)
    fasteners = sorted((p for p in parts if p.is_fastener), key=lambda p: p.part_id)
    bounds = {p.part_id: world_bounds(p) for p in wood}

    graph = ContactGraph(wood_parts=wood, fastener_parts=fasteners, bounds=bounds)
    for part in wood:
        pid = part.part_id
        graph.contacts[pid] = []
        graph.adjacency[pid] = set()
        graph.support_area[pid] = 0.0
        graph.supporters[pid] = []
        graph.support_points[pid] = []
        graph.load_points[pid] = []
        graph.load_demand[pid] = 0.0
        graph.fastener_links[pid] = 0.0
        graph.fastener_points[pid] = []

    ordered_bounds = [bounds[p.part_id] for p in wood]
    for i, j in pair_source.pairs(ordered_bounds, config.contact_tolerance):
        _scan_pair(graph, wood[i], wood[j], config)

    _propagate_loads(graph, config)
    graph.components = connected_components(
        [p.part_id for p in wood], graph.adjacency
    )
    _scan_fasteners(graph, config)

    logger.debug(
        "Contact graph: %d wood parts, %d edges, %d groups, %d/%d bridging fasteners",
        len(wood), len(graph.edges), graph.connected_groups,
        graph.bridging_fasteners, len(fasteners),
    )
    return graph


def connected_components(
    part_ids: Sequence[str],
    adjacency: Dict[str, Set[str]],
) -> List[List[str]]:
    """Breadth-first components, started from each unvisited id in order."""
    visited: Set[str] = set()
    components: List[List[str]] = []
    for start in part_ids:
        if start in visited:
            continue
        visited.add(start)
        queue = deque([start])
        group = []
        while queue:
            current = queue.popleft()
            group.append(current)
            for neighbor in sorted(adjacency.get(current, ())):
                if neighbor not in visited:
                    visited.add(neighbor)
                    queue.append(neighbor)
        components.append(group)
    return components


# ─── Internal ───────────────────────────────────────────────────────────────

def _scan_pair(graph: ContactGraph, part_a: Part, part_b: Part, config: ContactConfig) -> None:
    a = graph.bounds[part_a.part_id]
    b = graph.bounds[part_b.part_id]

    edge = find_contact_edge(a, b, part_a.part_id, part_b.part_id, config)
    if edge is not None:
        graph.edges.append(edge)
        graph.contacts[part_a.part_id].append(edge)
        graph.contacts[part_b.part_id].append(edge)
        graph.adjacency[part_a.part_id].add(part_b.part_id)
        graph.adjacency[part_b.part_id].add(part_a.part_id)

    overlaps = a.overlaps(b)
    vertical_area = float(overlaps[0] * overlaps[2])
    if vertical_area < config.min_contact_area:
        return

    patch = SupportPatch(
        x_min=max(a.min_x, b.min_x),
        x_max=min(a.max_x, b.max_x),
        z_min=max(a.min_z, b.min_z),
        z_max=min(a.max_z, b.max_z),
    )
    if abs(a.min_y - b.max_y) <= config.contact_tolerance:
        _record_support(graph, part_a, a, part_b.part_id, vertical_area, patch, config)
    if abs(b.min_y - a.max_y) <= config.contact_tolerance:
        _record_support(graph, part_b, b, part_a.part_id, vertical_area, patch, config)


def _record_support(
    graph: ContactGraph,
    upper: Part,
    upper_bounds: Bounds3,
    below_id: str,
    area: float,
    patch: SupportPatch,
    config: ContactConfig,
) -> None:
    pid = upper.part_id
    graph.support_area[pid] += area
    nominal_footprint = max(upper.size[0] * upper.size[2], EPS)
    intensity = _clamp(area / nominal_footprint, 0.18, 1.0)
    graph.support_points[pid].extend(
        distributed_patch_points(patch, upper_bounds.min_y, intensity, config)
    )
    graph.supporters[pid].append(SupportLink(below_id=below_id, area=area, patch=patch))


def _propagate_loads(graph: ContactGraph, config: ContactConfig) -> None:
    """Push each part's carried volume down to its supporters, top first."""
    volumes = {p.part_id: max(p.volume, EPS) for p in graph.wood_parts}
    carried = dict(volumes)
    top_down = sorted(
        graph.wood_parts,
        key=lambda p: (-graph.bounds[p.part_id].max_y, p.part_id),
    )

    for part in top_down:
        links = graph.supporters[part.part_id]
        total_area = sum(link.area for link in links)
        if not links or total_area <= EPS:
            continue
        load = carried[part.part_id]
        for link in links:
            transferred = load * (link.area / total_area)
            graph.load_demand[link.below_id] += transferred
            carried[link.below_id] += transferred
            below_bounds = graph.bounds[link.below_id]
            intensity = _clamp((transferred / volumes[link.below_id]) * 0.72, 0.08, 1.0)
            graph.load_points[link.below_id].extend(
                distributed_patch_points(link.patch, below_bounds.max_y, intensity, config)
            )


def _scan_fasteners(graph: ContactGraph, config: ContactConfig) -> None:
    for fastener in graph.fastener_parts:
        fb = world_bounds(fastener)
        touched = []
        for part in graph.wood_parts:
            overlaps = fb.overlaps(graph.bounds[part.part_id])
            if np.all(overlaps >= config.fastener_min_overlap):
                touched.append(part.part_id)

        if len(touched) >= 2:
            graph.bridging_fasteners += 1
            for pid in touched:
                graph.fastener_links[pid] += 1.0
                graph.fastener_points[pid].append(
                    _overlap_center_point(fb, graph.bounds[pid], 1.0)
                )
        elif len(touched) == 1:
            pid = touched[0]
            graph.fastener_links[pid] += config.single_part_fastener_credit
            graph.fastener_points[pid].append(
                _overlap_center_point(fb, graph.bounds[pid], 0.5)
            )


def _overlap_center_point(a: Bounds3, b: Bounds3, intensity: float) -> StructuralPoint:
    center = (np.maximum(a.lo, b.lo) + np.minimum(a.hi, b.hi)) / 2.0
    return StructuralPoint(
        x=float(center[0]), y=float(center[1]), z=float(center[2]), intensity=intensity
    )


def _patch_samples(lo: float, hi: float, config: ContactConfig) -> List[float]:
    span = max(hi - lo, 0.0)
    center = (lo + hi) / 2.0
    if span <= config.patch_single_sample_span:
        return [center]
    inset = min(span * 0.24, config.patch_max_inset)
    unique: List[float] = []
    for value in sorted([lo + inset, center, hi - inset]):
        if not unique or abs(unique[-1] - value) > config.patch_dedupe_tolerance:
            unique.append(value)
    return unique


def distributed_patch_points(
    patch: SupportPatch,
    y: float,
    base_intensity: float,
    config: Optional[ContactConfig] = None,
) -> List[StructuralPoint]:
    """Spread up to a 3x3 grid of points over a patch, fading toward its rim."""
    if config is None:
        config = ContactConfig()
    center_x = (patch.x_min + patch.x_max) / 2.0
    center_z = (patch.z_min + patch.z_max) / 2.0
    half_x = max((patch.x_max - patch.x_min) / 2.0, EPS)
    half_z = max((patch.z_max - patch.z_min) / 2.0, EPS)

    points = []
    for x in _patch_samples(patch.x_min, patch.x_max, config):
        for z in _patch_samples(patch.z_min, patch.z_max, config):
            radial = float(np.hypot((x - center_x) / half_x, (z - center_z) / half_z))
            weight = _clamp(1.0 - radial * 0.22, 0.72, 1.0)
            points.append(StructuralPoint(
                x=x, y=y, z=z, intensity=_clamp(base_intensity * weight, 0.12, 1.0),
            ))
    return points


def _clamp(value: float, lo: float, hi: float) -> float:
    if not np.isfinite(value):
        return lo
    return max(lo, min(hi, value))
