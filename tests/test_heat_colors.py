"""Tests for the score to heat color mapping."""
import math

import pytest

from heat_colors import (
    HEAT_STOPS,
    apply_contrast,
    heat_color,
    heat_color_rgb,
    hex_to_rgb,
    rgb_to_hex,
)


def test_end_stops():
    assert heat_color(0.0) == "#dc2626"
    assert heat_color(1.0) == "#06b6d4"


def test_out_of_range_scores_are_clamped():
    assert heat_color(-5.0) == heat_color(0.0)
    assert heat_color(5.0) == heat_color(1.0)
    assert heat_color(math.nan) == heat_color(0.0)


def test_midpoint_blends_yellow_and_lime():
    assert heat_color(0.5) == "#abcc16"


def test_contrast_fixed_points():
    assert apply_contrast(0.0) == 0.0
    assert apply_contrast(0.5) == pytest.approx(0.5)
    assert apply_contrast(1.0) == 1.0
    # Pushes values away from the middle.
    assert apply_contrast(0.25) < 0.25
    assert apply_contrast(0.75) > 0.75


def test_colors_change_monotonically_in_red():
    reds = [heat_color_rgb(i / 10.0)[0] for i in range(11)]
    # Red falls once the ramp leaves yellow.
    assert reds[5] > reds[8] > reds[10]


def test_hex_helpers():
    assert hex_to_rgb("#fff") == (255, 255, 255)
    assert hex_to_rgb("84cc16") == (132, 204, 22)
    assert rgb_to_hex(300, -4, 16.4) == "#ff0010"
    for _, color in HEAT_STOPS:
        assert rgb_to_hex(*hex_to_rgb(color)) == color


@pytest.mark.parametrize("bad", ["", "#12", "#1234567"])
def test_bad_hex(bad):
    with pytest.raises(ValueError):
        hex_to_rgb(bad)
