"""Configuration for the Sliding-Window Fee Correlator."""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum


class ClockSource(str, Enum):
    """Which notion of "now" decides window membership."""
    
    WALL = "wall"  # wall clock; bounds memory for live streams
    EVENT = "event"  # latest observed event timestamp; stable under replay


@dataclass
class FeeCorrelatorConfig:
    """Configuration parameters for swap input/output correlation."""
    
    # Inputs older than this are pruned from the window
    WINDOW_MS: int = 10 * 60 * 1000  # 10 minutes
    
    # Accepted delay between input and output
    MIN_DELTA_MS: int = 30 * 1000  # faster is coincidence
    MAX_DELTA_MS: int = 5 * 60 * 1000  # slower went through another path
    
    # Relay fee and accepted deviation of output/input from (1 - fee)
    EXPECTED_FEE: Decimal = Decimal("0.01")  # 1%
    FEE_TOLERANCE: Decimal = Decimal("0.005")  # 0.5%
    
    # Ratio deviation at which confidence reaches zero
    MAX_DEVIATION_FOR_ZERO_CONFIDENCE: Decimal = Decimal("0.02")
    
    # Matches must score strictly above this (0-100)
    MIN_CONFIDENCE: int = 60
    
    CLOCK_SOURCE: ClockSource = ClockSource.WALL


# Default configuration
DEFAULT_CONFIG = FeeCorrelatorConfig()
