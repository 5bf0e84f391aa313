"""
RGB ↔ HSL conversions used by the colour analysis.

HSL is kept at full float precision (hue in [0, 360), saturation and
lightness in [0, 100]) so that RGB → HSL → RGB lands back on the input.
Use round_hsl() for display values. Rounding hue to whole degrees and
S/L to whole percent cannot meet the ±1 RGB round trip across the cube,
so analogous colours derived here can differ by a level or two from ones
computed off integer HSL.
"""
from __future__ import annotations

import math
from typing import List

from models.color_palette import HSL, RGB


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def rgb_to_hsl(rgb: RGB) -> HSL:
    r, g, b = (c / 255.0 for c in rgb)
    high, low = max(r, g, b), min(r, g, b)
    diff = high - low

    hue = 0.0
    if diff != 0:
        if high == r:
            hue = ((g - b) / diff) % 6
        elif high == g:
            hue = (b - r) / diff + 2
        else:
            hue = (r - g) / diff + 4
    hue = (hue * 60.0) % 360.0

    lightness = (high + low) / 2
    saturation = 0.0 if diff == 0 else diff / (1 - abs(2 * lightness - 1))
    return hue, saturation * 100.0, lightness * 100.0


def hsl_to_rgb(hsl: HSL) -> RGB:
    h = hsl[0] % 360.0
    s, l = hsl[1] / 100.0, hsl[2] / 100.0
    c = (1 - abs(2 * l - 1)) * s
    x = c * (1 - abs((h / 60.0) % 2 - 1))
    m = l - c / 2

    if h < 60:
        r, g, b = c, x, 0.0
    elif h < 120:
        r, g, b = x, c, 0.0
    elif h < 180:
        r, g, b = 0.0, c, x
    elif h < 240:
        r, g, b = 0.0, x, c
    elif h < 300:
        r, g, b = x, 0.0, c
    else:
        r, g, b = c, 0.0, x

    return tuple(
        min(255, max(0, _round_half_up((v + m) * 255))) for v in (r, g, b)
    )


def round_hsl(hsl: HSL):
    h, s, l = hsl
    return _round_half_up(h) % 360, _round_half_up(s), _round_half_up(l)


def complementary(rgb: RGB) -> RGB:
    r, g, b = rgb
    return 255 - r, 255 - g, 255 - b


def analogous(rgb: RGB, step: float = 30.0) -> List[RGB]:
    """Hue +step, -step, +2·step, -2·step at the same saturation/lightness."""
    h, s, l = rgb_to_hsl(rgb)
    colors: List[RGB] = []
    for i in (1, 2):
        colors.append(hsl_to_rgb(((h + i * step) % 360.0, s, l)))
        colors.append(hsl_to_rgb(((h - i * step) % 360.0, s, l)))
    return colors
