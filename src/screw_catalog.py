"""
Wood screw presets and lumber constants.

Sizes are in inches. The placement search tries every preset and keeps the
one that gives the best engagement for each candidate line.
"""
from dataclasses import dataclass
from typing import Dict, List

CU_IN_PER_CU_FT = 1728.0
SQ_IN_PER_SQ_FT = 144.0

# Average density of common construction softwood (SPF, pine)
WOOD_DENSITY_LB_PER_CU_FT = 34.0


@dataclass(frozen=True)
class ScrewPreset:
    """A common wood screw size."""

    name: str
    gauge: int
    diameter_in: float
    length_in: float

    @property
    def min_penetration_in(self) -> float:
        """Minimum bite into each joined part for this length."""
        return max(0.35, 0.3 * self.length_in)


SCREW_PRESETS: Dict[str, ScrewPreset] = {
    "8x1-1/4": ScrewPreset(
        name='#8 x 1-1/4" Wood Screw',
        gauge=8,
        diameter_in=0.164,
        length_in=1.25,
    ),
    "8x2": ScrewPreset(
        name='#8 x 2" Wood Screw',
        gauge=8,
        diameter_in=0.164,
        length_in=2.0,
    ),
    "10x3": ScrewPreset(
        name='#10 x 3" Wood Screw',
        gauge=10,
        diameter_in=0.19,
        length_in=3.0,
    ),
}


def presets_by_length() -> List[ScrewPreset]:
    return sorted(SCREW_PRESETS.values(), key=lambda p: p.length_in)


def longest_preset_length() -> float:
    return max(p.length_in for p in SCREW_PRESETS.values())
