"""Logic layer - deposit index, correlation matchers and the realtime analyzer."""

from .deposit_index import DepositIndex
from .visibility import AddressVisibilityDetector
from .matcher import TimingCorrelationAttack, TimingAttackConfig, TimingAttackResult
from .correlation import SlidingWindowFeeCorrelator, FeeCorrelatorConfig, ClockSource
from .realtime import RealtimeAnalyzer, DepositSnapshotSource

__all__ = [
    "DepositIndex",
    "AddressVisibilityDetector",
    "TimingCorrelationAttack",
    "TimingAttackConfig",
    "TimingAttackResult",
    "SlidingWindowFeeCorrelator",
    "FeeCorrelatorConfig",
    "ClockSource",
    "RealtimeAnalyzer",
    "DepositSnapshotSource",
]
