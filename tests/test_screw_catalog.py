"""Tests for the screw catalog."""
import pytest

from screw_catalog import SCREW_PRESETS, ScrewPreset, longest_preset_length, presets_by_length


def test_presets_sorted_by_length():
    lengths = [p.length_in for p in presets_by_length()]
    assert lengths == [1.25, 2.0, 3.0]
    assert longest_preset_length() == 3.0


@pytest.mark.parametrize("key, expected", [
    ("8x1-1/4", 0.375),
    ("8x2", 0.6),
    ("10x3", 0.9),
])
def test_min_penetration_scales_with_length(key, expected):
    assert SCREW_PRESETS[key].min_penetration_in == pytest.approx(expected)


def test_short_screw_floor():
    short = ScrewPreset(name="tiny", gauge=6, diameter_in=0.138, length_in=0.75)
    assert short.min_penetration_in == pytest.approx(0.35)
