"""Presentation-facing derivations: change colors and card periods."""

from .gradient import ColorIntensity, intensity, strength
from .period_controller import CardState, PeriodController

__all__ = ["CardState", "ColorIntensity", "PeriodController", "intensity", "strength"]
