"""Configuration for the Timing Correlation Attack."""

from decimal import Decimal
from dataclasses import dataclass


DAY_MS = 24 * 3600 * 1000


@dataclass
class TimingAttackConfig:
    """Configuration parameters for withdrawal-to-deposit timing correlation."""
    
    # Protocol fee deducted between deposit and withdrawal (percentage as decimal)
    EXPECTED_FEE: Decimal = Decimal("0.01")  # 1%
    
    # Scoring weights (amount is the stronger signal)
    AMOUNT_WEIGHT: Decimal = Decimal("0.7")
    TIMING_WEIGHT: Decimal = Decimal("0.3")
    
    # Only deposits this far before the withdrawal are candidates
    LOOKBACK_MS: int = 30 * DAY_MS
    
    # Timing closeness falls linearly from 1 at zero delay to 0 at this delay
    DECAY_HORIZON_MS: int = 30 * DAY_MS
    
    # Candidates at or below this confidence are noise, not anonymity-set members
    MIN_RELEVANCE: Decimal = Decimal("0.75")
    
    # Only withdrawals with an anonymity set this small are reported
    INTERESTING_ANONYMITY_SET: int = 20
    
    # Precision of reported confidences
    CONFIDENCE_QUANTUM: Decimal = Decimal("0.0001")


# Default configuration
DEFAULT_CONFIG = TimingAttackConfig()
