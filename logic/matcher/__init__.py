"""Timing Correlation Attack - withdrawal to deposit linking."""

from .models import RankedSource, TimingAttackResult, TimingAttackSummary
from .matcher import TimingCorrelationAttack, vulnerability_level
from .config import TimingAttackConfig

__all__ = [
    "RankedSource",
    "TimingAttackResult",
    "TimingAttackSummary",
    "TimingCorrelationAttack",
    "TimingAttackConfig",
    "vulnerability_level",
]
