"""
Shared test fixtures for the assembly relationship engine.
"""
import sys
from pathlib import Path

import pytest

# Add src/ to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from assembly import (
    CutCorner, HardwareKind, Part, PartCategory, PartProfile, ProfileKind,
)


def _part(
    part_id,
    size,
    position,
    rotation=(0.0, 0.0, 0.0),
    category=PartCategory.LUMBER,
    hardware_kind=None,
    profile=None,
):
    return Part(
        part_id=part_id,
        name=part_id,
        category=category,
        size=tuple(float(v) for v in size),
        position=tuple(float(v) for v in position),
        rotation=tuple(float(v) for v in rotation),
        hardware_kind=hardware_kind,
        profile=profile,
    )


@pytest.fixture
def make_part():
    """Factory for parts: make_part(id, size, position, **kwargs)."""
    return _part


@pytest.fixture
def make_screw():
    """Factory for axis-aligned fastener parts."""
    def factory(part_id, position, length=2.0, diameter=0.164, rotation=(0.0, 0.0, 0.0)):
        return _part(
            part_id,
            (diameter, length, diameter),
            position,
            rotation=rotation,
            category=PartCategory.HARDWARE,
            hardware_kind=HardwareKind.FASTENER,
        )
    return factory


@pytest.fixture
def butt_joint_parts():
    """Two 8-foot 2x4s meeting end to end at the z=48 seam."""
    return [
        _part("board-a", (1.5, 3.5, 96.0), (0.0, 1.75, 0.0)),
        _part("board-b", (1.5, 3.5, 96.0), (0.0, 1.75, 96.0)),
    ]


@pytest.fixture
def face_joint_parts():
    """A 3/4" plank lying on a 2x4 laid flat on the floor."""
    return [
        _part("plank", (3.5, 0.75, 12.0), (0.0, 1.875, 0.0)),
        _part("base", (3.5, 1.5, 12.0), (0.0, 0.75, 0.0)),
    ]


@pytest.fixture
def table_parts():
    """A sheet top on four 2x4 legs, 48 x 24 x 29.25 in."""
    parts = [
        _part(
            "top", (48.0, 0.75, 24.0), (0.0, 28.875, 0.0),
            category=PartCategory.SHEET,
        ),
    ]
    for i, (x, z) in enumerate([(-20.0, -10.0), (20.0, -10.0), (-20.0, 10.0), (20.0, 10.0)]):
        parts.append(_part(f"leg-{i}", (1.5, 28.5, 3.5), (x, 14.25, z)))
    return parts


@pytest.fixture
def l_cut_block():
    """A 12 x 1.5 x 12 block with an 8 x 8 notch at the front-left corner.

    The notch covers x in [-6, 2] and z in [-2, 6].
    """
    profile = PartProfile(
        kind=ProfileKind.L_CUT,
        cut_width=8.0,
        cut_depth=8.0,
        corner=CutCorner.FRONT_LEFT,
    )
    return _part("notched", (12.0, 1.5, 12.0), (0.0, 0.75, 0.0), profile=profile)
