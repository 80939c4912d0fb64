"""
Oriented geometry kernel for assembly parts.

Turns a part's position, size, and rotation into reusable primitives: an
oriented frame, world-space axis-aligned bounds, support-function projections,
and line/box intersection. Everything here is pure and returns new arrays;
frames are read-only once built.
"""
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import numpy as np
import trimesh

from assembly import Part

EPS = 1e-5

AXIS_NAMES = ("x", "y", "z")


@dataclass(frozen=True)
class OrientedFrame:
    """A part's center, half extents, and orthonormal world axes.

    ``axes`` is a (3, 3) matrix whose columns are the part's local X, Y, Z
    axes in world space, so ``world = center + axes @ local``.
    """
    center: np.ndarray      # (3,)
    half: np.ndarray        # (3,) half extents along local X, Y, Z
    axes: np.ndarray        # (3, 3) columns are unit axes

    def axis(self, index: int) -> np.ndarray:
        return self.axes[:, index]


@dataclass(frozen=True)
class Bounds3:
    """World-space axis-aligned bounding box."""
    lo: np.ndarray  # (3,)
    hi: np.ndarray  # (3,)

    @property
    def min_x(self) -> float:
        return float(self.lo[0])

    @property
    def max_x(self) -> float:
        return float(self.hi[0])

    @property
    def min_y(self) -> float:
        return float(self.lo[1])

    @property
    def max_y(self) -> float:
        return float(self.hi[1])

    @property
    def min_z(self) -> float:
        return float(self.lo[2])

    @property
    def max_z(self) -> float:
        return float(self.hi[2])

    @property
    def span(self) -> np.ndarray:
        return np.maximum(self.hi - self.lo, EPS)

    @property
    def center(self) -> np.ndarray:
        return (self.lo + self.hi) / 2.0

    def overlaps(self, other: "Bounds3") -> np.ndarray:
        """Per-axis overlap lengths, clamped at zero."""
        return np.maximum(0.0, np.minimum(self.hi, other.hi) - np.maximum(self.lo, other.lo))

    def gaps(self, other: "Bounds3") -> np.ndarray:
        """Per-axis separation, zero where the boxes overlap."""
        return np.maximum(0.0, np.maximum(self.lo - other.hi, other.lo - self.hi))


def rotation_matrix(rotation: Sequence[float]) -> np.ndarray:
    """Rotation applying X, then Y, then Z (``Rz @ Ry @ Rx``)."""
    rx, ry, rz = (float(r) for r in rotation)
    return trimesh.transformations.euler_matrix(rx, ry, rz, axes="sxyz")[:3, :3]


def rotation_aligning(source: Sequence[float], target: Sequence[float]) -> Tuple[float, float, float]:
    """Euler XYZ angles of a rotation that maps ``source`` onto ``target``."""
    matrix = trimesh.geometry.align_vectors(
        np.asarray(source, dtype=float), np.asarray(target, dtype=float)
    )
    rx, ry, rz = trimesh.transformations.euler_from_matrix(matrix, axes="sxyz")
    return (float(rx), float(ry), float(rz))


def build_frame(part: Part) -> OrientedFrame:
    """Build the oriented frame of a part."""
    center = np.array(part.position, dtype=float)
    half = np.array(part.size, dtype=float) / 2.0
    axes = rotation_matrix(part.rotation)
    for arr in (center, half, axes):
        arr.flags.writeable = False
    return OrientedFrame(center=center, half=half, axes=axes)


def frame_corners(frame: OrientedFrame) -> np.ndarray:
    """The 8 world-space corners of a frame, shape (8, 3)."""
    signs = np.array(
        [[sx, sy, sz] for sx in (1, -1) for sy in (1, -1) for sz in (1, -1)],
        dtype=float,
    )
    return frame.center + (signs * frame.half) @ frame.axes.T


def world_bounds(part: Part) -> Bounds3:
    """Tight axis-aligned box around the part's 8 rotated corners."""
    corners = frame_corners(build_frame(part))
    return Bounds3(lo=corners.min(axis=0), hi=corners.max(axis=0))


def projected_range(frame: OrientedFrame, direction: np.ndarray) -> Tuple[float, float]:
    """Exact 1D interval of an oriented box projected onto ``direction``."""
    d = np.asarray(direction, dtype=float)
    mid = float(frame.center @ d)
    radius = float(np.sum(np.abs(frame.axes.T @ d) * frame.half))
    return (mid - radius, mid + radius)


def intersect_ray_with_frame(
    frame: OrientedFrame,
    point: np.ndarray,
    direction: np.ndarray,
    tolerance: float = 0.0,
) -> Optional[Tuple[float, float]]:
    """Slab-test an infinite line against an oriented box.

    The test runs in the box's local coordinates with every slab widened by
    ``tolerance``. Returns the (entry, exit) parameters along ``direction``,
    or None when the line misses.
    """
    local_p = frame.axes.T @ (np.asarray(point, dtype=float) - frame.center)
    local_d = frame.axes.T @ np.asarray(direction, dtype=float)
    t_min, t_max = -np.inf, np.inf
    for i in range(3):
        extent = frame.half[i] + tolerance
        if abs(local_d[i]) < EPS:
            if abs(local_p[i]) > extent:
                return None
            continue
        t1 = (-extent - local_p[i]) / local_d[i]
        t2 = (extent - local_p[i]) / local_d[i]
        if t1 > t2:
            t1, t2 = t2, t1
        t_min = max(t_min, t1)
        t_max = min(t_max, t2)
        if t_min > t_max:
            return None
    return (float(t_min), float(t_max))


def to_local(frame: OrientedFrame, points: np.ndarray) -> np.ndarray:
    """World points (N, 3) to frame-local coordinates."""
    return (np.atleast_2d(points) - frame.center) @ frame.axes


def to_world(frame: OrientedFrame, points: np.ndarray) -> np.ndarray:
    """Frame-local points (N, 3) to world coordinates."""
    return np.atleast_2d(points) @ frame.axes.T + frame.center


def interval_gap(a: Tuple[float, float], b: Tuple[float, float]) -> float:
    """Separation between two intervals; zero when they overlap."""
    return max(0.0, max(a[0] - b[1], b[0] - a[1]))


def interval_overlap(a: Tuple[float, float], b: Tuple[float, float]) -> float:
    """Length of the shared part of two intervals, clamped at zero."""
    return max(0.0, min(a[1], b[1]) - max(a[0], b[0]))


def is_parallel(a: np.ndarray, b: np.ndarray, threshold: float) -> bool:
    return abs(float(np.dot(a, b))) > threshold


def normalize(vector: np.ndarray) -> Optional[np.ndarray]:
    length = float(np.linalg.norm(vector))
    if length < EPS:
        return None
    return np.asarray(vector, dtype=float) / length
