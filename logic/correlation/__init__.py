"""Sliding-Window Fee Correlator - relay swap input/output linking."""

from .engine import SlidingWindowFeeCorrelator
from .config import ClockSource, FeeCorrelatorConfig

__all__ = [
    "SlidingWindowFeeCorrelator",
    "ClockSource",
    "FeeCorrelatorConfig",
]
