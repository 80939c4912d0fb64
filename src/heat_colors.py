"""
Score to heat-map color mapping for structural overlays.

Red means weak, cyan means strong. Scores are clamped to [0, 1] and passed
through a symmetric contrast curve so mid-range scores separate more clearly
before interpolating between six fixed stops.
"""
from typing import Tuple

import numpy as np

RGB = Tuple[int, int, int]

HEAT_STOPS: Tuple[Tuple[float, str], ...] = (
    (0.0, "#dc2626"),
    (0.16, "#f97316"),
    (0.34, "#facc15"),
    (0.58, "#84cc16"),
    (0.78, "#10b981"),
    (1.0, "#06b6d4"),
)

CONTRAST_EXPONENT = 1.28


def hex_to_rgb(value: str) -> RGB:
    digits = value.lstrip("#")
    if len(digits) == 3:
        digits = "".join(c * 2 for c in digits)
    if len(digits) != 6:
        raise ValueError(f"Not a hex color: {value!r}")
    n = int(digits, 16)
    return ((n >> 16) & 255, (n >> 8) & 255, n & 255)


def rgb_to_hex(r: float, g: float, b: float) -> str:
    channels = (int(min(255, max(0, round(c)))) for c in (r, g, b))
    return "#" + "".join(f"{c:02x}" for c in channels)


def apply_contrast(score: float) -> float:
    """S-curve through 0, 0.5 and 1 that spreads the middle of the range."""
    t = _clamp01(score)
    if t < 0.5:
        return 0.5 * (t / 0.5) ** CONTRAST_EXPONENT
    return 1.0 - 0.5 * ((1.0 - t) / 0.5) ** CONTRAST_EXPONENT


def heat_color(score: float) -> str:
    """Hex color for a stability score; out-of-range scores use the end stops."""
    t = apply_contrast(score)
    positions = np.array([stop for stop, _ in HEAT_STOPS])
    colors = np.array([hex_to_rgb(color) for _, color in HEAT_STOPS], dtype=float)
    rgb = [np.interp(t, positions, colors[:, channel]) for channel in range(3)]
    return rgb_to_hex(*rgb)


def heat_color_rgb(score: float) -> RGB:
    return hex_to_rgb(heat_color(score))


def _clamp01(value: float) -> float:
    if not np.isfinite(value):
        return 0.0
    return max(0.0, min(1.0, float(value)))
