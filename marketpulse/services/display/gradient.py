"""Percent-change to color-intensity mapping for cards and charts.

The mapping is continuous everywhere:
- |change| <= DEAD_ZONE_PERCENT renders neutral gray (saturation 0)
- between the dead zone and CLAMP_PERCENT saturation follows a square-root
  curve, so mid-range moves stay distinguishable
- beyond CLAMP_PERCENT intensity is flat

The sign only selects the hue family. Inside the dead zone saturation is zero,
so switching hue at 0 is invisible.
"""

import math
from dataclasses import dataclass

DEAD_ZONE_PERCENT = 0.05
CLAMP_PERCENT = 10.0
CURVE_EXPONENT = 0.5

POSITIVE_HUE = 142.0  # green
NEGATIVE_HUE = 0.0  # red

MIN_SATURATION = 0.0
MAX_SATURATION = 85.0
NEUTRAL_LIGHTNESS = 60.0
STRONG_LIGHTNESS = 45.0


@dataclass(frozen=True)
class ColorIntensity:
    """HSL color descriptor; saturation and lightness in percent."""

    hue: float
    saturation: float
    lightness: float

    @property
    def is_neutral(self) -> bool:
        return self.saturation == MIN_SATURATION

    def css(self) -> str:
        return f"hsl({self.hue:.0f}, {self.saturation:.1f}%, {self.lightness:.1f}%)"


def _is_positive(change_percent: float) -> bool:
    return change_percent is not None and math.isfinite(change_percent) and change_percent > 0


def strength(change_percent: float) -> float:
    """Normalized intensity in [0, 1] for a percent change."""
    if change_percent is None or not math.isfinite(change_percent):
        return 0.0
    magnitude = abs(change_percent)
    if magnitude <= DEAD_ZONE_PERCENT:
        return 0.0
    if magnitude >= CLAMP_PERCENT:
        return 1.0
    return ((magnitude - DEAD_ZONE_PERCENT) / (CLAMP_PERCENT - DEAD_ZONE_PERCENT)) ** CURVE_EXPONENT


def intensity(change_percent: float) -> ColorIntensity:
    """Map a percent change to a color descriptor.

    Example:
        intensity(0.009).is_neutral  # True
        intensity(2.0).css()         # 'hsl(142, 37.6%, 53.4%)'
        intensity(100) == intensity(1000)  # True
    """
    s = strength(change_percent)
    hue = POSITIVE_HUE if _is_positive(change_percent) else NEGATIVE_HUE
    return ColorIntensity(
        hue=hue,
        saturation=MIN_SATURATION + (MAX_SATURATION - MIN_SATURATION) * s,
        lightness=NEUTRAL_LIGHTNESS - (NEUTRAL_LIGHTNESS - STRONG_LIGHTNESS) * s,
    )
