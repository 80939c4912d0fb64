"""
Core data structures for wood assembly parts.

A Part is the only entity shared with the host application. The engine never
holds on to parts between calls: it reads a snapshot and returns derived
values or new parts.
"""
import json
import sys
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

Vec2 = Tuple[float, float]
Vec3 = Tuple[float, float, float]


class PartCategory(Enum):
    """Broad part families."""
    LUMBER = "lumber"
    SHEET = "sheet"
    HARDWARE = "hardware"


class HardwareKind(Enum):
    """Kinds of hardware parts."""
    FASTENER = "fastener"
    HINGE = "hinge"
    BRACKET = "bracket"
    SLIDE = "slide"
    HANDLE = "handle"
    DOWEL = "dowel"


class ProfileKind(Enum):
    """Footprint profile shapes, described in the part's local X/Z plane."""
    RECT = "rect"
    L_CUT = "l-cut"
    POLYGON = "polygon"
    ANGLED = "angled"


class CutCorner(Enum):
    """Corner removed by an L-cut."""
    FRONT_LEFT = "front-left"
    FRONT_RIGHT = "front-right"
    BACK_LEFT = "back-left"
    BACK_RIGHT = "back-right"


@dataclass(frozen=True)
class PartProfile:
    """
    Footprint profile of a part.

    Attributes:
        kind: Profile shape
        cut_width: L-cut notch size along local X (defaults to half the width)
        cut_depth: L-cut notch size along local Z (defaults to half the depth)
        corner: Corner the L-cut removes
        points: Polygon outline in local X/Z, centered on the part origin
        start_angle_deg: Miter angle at the back (-Z) end of angled lumber
        end_angle_deg: Miter angle at the front (+Z) end of angled lumber
    """
    kind: ProfileKind = ProfileKind.RECT
    cut_width: Optional[float] = None
    cut_depth: Optional[float] = None
    corner: CutCorner = CutCorner.FRONT_LEFT
    points: Tuple[Vec2, ...] = ()
    start_angle_deg: float = 0.0
    end_angle_deg: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"type": self.kind.value}
        if self.kind == ProfileKind.L_CUT:
            payload["corner"] = self.corner.value
            if self.cut_width is not None:
                payload["cutWidth"] = self.cut_width
            if self.cut_depth is not None:
                payload["cutDepth"] = self.cut_depth
        elif self.kind == ProfileKind.POLYGON:
            payload["points"] = [list(p) for p in self.points]
        elif self.kind == ProfileKind.ANGLED:
            payload["startAngle"] = self.start_angle_deg
            payload["endAngle"] = self.end_angle_deg
        return payload

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "PartProfile":
        kind = ProfileKind(payload.get("type", "rect"))
        points = tuple(
            (float(p[0]), float(p[1])) for p in payload.get("points") or []
        )
        cut_width = payload.get("cutWidth")
        cut_depth = payload.get("cutDepth")
        return cls(
            kind=kind,
            cut_width=float(cut_width) if cut_width is not None else None,
            cut_depth=float(cut_depth) if cut_depth is not None else None,
            corner=CutCorner(payload.get("corner", CutCorner.FRONT_LEFT.value)),
            points=points,
            start_angle_deg=float(payload.get("startAngle", 0.0)),
            end_angle_deg=float(payload.get("endAngle", 0.0)),
        )


@dataclass(frozen=True)
class Part:
    """
    A single placed part.

    Attributes:
        part_id: Stable identifier, unique within an assembly
        name: Display name
        category: lumber, sheet, or hardware
        size: (width, height, depth) in inches, along local X, Y, Z
        position: World position of the part center (Y is up)
        rotation: Rotation angles in radians, applied X, then Y, then Z
        hardware_kind: Kind of hardware, for hardware parts
        profile: Footprint profile; None means a plain rectangle
    """
    part_id: str
    name: str
    category: PartCategory
    size: Vec3
    position: Vec3 = (0.0, 0.0, 0.0)
    rotation: Vec3 = (0.0, 0.0, 0.0)
    hardware_kind: Optional[HardwareKind] = None
    profile: Optional[PartProfile] = None

    @property
    def is_hardware(self) -> bool:
        return self.category == PartCategory.HARDWARE

    @property
    def is_fastener(self) -> bool:
        return self.is_hardware and self.hardware_kind == HardwareKind.FASTENER

    @property
    def volume(self) -> float:
        return self.size[0] * self.size[1] * self.size[2]

    def moved_to(self, position: Sequence[float]) -> "Part":
        """Return a copy of this part at a new position."""
        return replace(self, position=to_vec3(position))

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.part_id,
            "name": self.name,
            "type": self.category.value,
            "dimensions": list(self.size),
            "position": list(self.position),
            "rotation": list(self.rotation),
        }
        if self.hardware_kind is not None:
            payload["hardwareKind"] = self.hardware_kind.value
        if self.profile is not None:
            payload["profile"] = self.profile.to_dict()
        return payload

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Part":
        """Build a Part from the host application's JSON shape.

        Raises:
            ValueError: on a non-object payload, a missing id, unknown
                category, or bad vectors.
        """
        if not isinstance(payload, dict):
            raise ValueError(f"Part must be a JSON object, got {payload!r}")
        part_id = str(payload.get("id", "")).strip()
        if not part_id:
            raise ValueError("Part is missing an id")
        try:
            category = PartCategory(payload.get("type"))
        except ValueError:
            raise ValueError(
                f"Part {part_id} has unknown type {payload.get('type')!r}"
            ) from None
        size = to_vec3(payload.get("dimensions", ()), label=f"{part_id}.dimensions")
        if min(size) <= 0.0:
            raise ValueError(f"Part {part_id} has non-positive dimensions {size}")
        kind = payload.get("hardwareKind")
        profile = payload.get("profile")
        if profile and not isinstance(profile, dict):
            raise ValueError(f"Part {part_id} has a malformed profile {profile!r}")
        return cls(
            part_id=part_id,
            name=str(payload.get("name", part_id)),
            category=category,
            size=size,
            position=to_vec3(
                payload.get("position", (0.0, 0.0, 0.0)), label=f"{part_id}.position"
            ),
            rotation=to_vec3(
                payload.get("rotation", (0.0, 0.0, 0.0)), label=f"{part_id}.rotation"
            ),
            hardware_kind=HardwareKind(kind) if kind else None,
            profile=PartProfile.from_dict(profile) if profile else None,
        )


@dataclass
class PartIndex:
    """Lookup helper over a snapshot of parts."""
    parts: List[Part] = field(default_factory=list)

    def get(self, part_id: str) -> Optional[Part]:
        for part in self.parts:
            if part.part_id == part_id:
                return part
        return None

    def wood_parts(self) -> List[Part]:
        return [p for p in self.parts if not p.is_hardware]

    def fasteners(self) -> List[Part]:
        return [p for p in self.parts if p.is_fastener]

    def validate(self) -> Tuple[bool, List[str]]:
        """
        Basic validation of the snapshot.

        Returns:
            (is_valid, list_of_errors)
        """
        errors = []
        ids = [p.part_id for p in self.parts]
        if len(ids) != len(set(ids)):
            errors.append("Duplicate part ids found")
        for part in self.parts:
            if min(part.size) <= 0.0:
                errors.append(f"Part {part.part_id} has non-positive size")
            if part.is_hardware and part.hardware_kind is None:
                errors.append(f"Hardware part {part.part_id} has no hardware kind")
        return (len(errors) == 0, errors)


def to_vec3(values: Sequence[float], label: str = "vector") -> Vec3:
    if isinstance(values, (str, bytes, dict)) or not hasattr(values, "__len__"):
        raise ValueError(f"{label} must be a list of 3 numbers, got {values!r}")
    if len(values) != 3:
        raise ValueError(f"{label} must have 3 components, got {len(values)}")
    try:
        return (float(values[0]), float(values[1]), float(values[2]))
    except TypeError:
        raise ValueError(f"{label} must be a list of 3 numbers, got {values!r}") from None


def parts_from_payload(payload: Any) -> List[Part]:
    """Parse a JSON payload: either a list of parts or {"parts": [...]}."""
    if isinstance(payload, dict):
        payload = payload.get("parts", [])
    if not isinstance(payload, list):
        raise ValueError("Expected a list of parts")
    return [Part.from_dict(item) for item in payload]


def load_parts_json(path: str) -> List[Part]:
    """Read a parts payload from a JSON file, or stdin when ``path`` is "-"."""
    if path == "-":
        payload = json.load(sys.stdin)
    else:
        with open(path, "r", encoding="utf-8") as handle:
            payload = json.load(handle)
    return parts_from_payload(payload)
