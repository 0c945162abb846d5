"""Stereo matching backends."""

from .base import StereoMatcher
from .bm import BMMatcher
from .precomputed import PrecomputedMatcher
from .sgbm import SGBMMatcher

__all__ = [
    "StereoMatcher",
    "BMMatcher",
    "PrecomputedMatcher",
    "SGBMMatcher",
]
