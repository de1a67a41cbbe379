"""Analytics Layer - amount, timing and anonymity-set statistics and the privacy score."""

from .amounts import (
    AmountDistribution,
    AmountFrequency,
    SuspiciousAmount,
    SuspiciousAmountReport,
    distribution,
    privacy_score,
    mixing_score,
    gini_coefficient,
    suspicious_amounts,
    find_common_denominations,
    recommend_amounts,
    standard_denominations,
    format_amount,
)
from .anonymity import AnonymitySetStats, anonymity_set_statistics, find_weak_anonymity_sets
from .timing import (
    DepositWithdrawalPair,
    TimingDistribution,
    TimingPattern,
    EntropySample,
    match_deposit_withdrawal_pairs,
    shannon_entropy,
    timing_distribution,
    detect_timing_patterns,
    time_of_day,
    day_of_week,
    entropy_time_series,
    recommend_timing,
    format_time_delta,
)
from .scoring import (
    PrivacyScoreBreakdown,
    ProtocolMetrics,
    ProtocolComparison,
    score_privacy,
    score_grade,
    score_color,
    recommendations,
    protocol_metrics,
    compare_protocols,
)

__all__ = [
    "AmountDistribution",
    "AmountFrequency",
    "SuspiciousAmount",
    "SuspiciousAmountReport",
    "distribution",
    "privacy_score",
    "mixing_score",
    "gini_coefficient",
    "suspicious_amounts",
    "find_common_denominations",
    "recommend_amounts",
    "standard_denominations",
    "format_amount",
    "AnonymitySetStats",
    "anonymity_set_statistics",
    "find_weak_anonymity_sets",
    "DepositWithdrawalPair",
    "TimingDistribution",
    "TimingPattern",
    "EntropySample",
    "match_deposit_withdrawal_pairs",
    "shannon_entropy",
    "timing_distribution",
    "detect_timing_patterns",
    "time_of_day",
    "day_of_week",
    "entropy_time_series",
    "recommend_timing",
    "format_time_delta",
    "PrivacyScoreBreakdown",
    "ProtocolMetrics",
    "ProtocolComparison",
    "score_privacy",
    "score_grade",
    "score_color",
    "recommendations",
    "protocol_metrics",
    "compare_protocols",
]
