"""Deposit to withdrawal timing analysis.

Pairs each withdrawal with a plausible source deposit and grades how
predictable the delays between them are. The pairs are hypothetical: they
feed statistics, never a linkage claim.
"""

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Sequence
import logging
import math

from ingestion.models import Deposit, Withdrawal

from .anonymity import percentile

logger = logging.getLogger(__name__)

MINUTE_MS = 60 * 1000
HOUR_MS = 60 * MINUTE_MS
DAY_MS = 24 * HOUR_MS

# Withdrawal must be 95-101% of the deposit it is paired with
FEE_RATIO_MIN = 0.95
FEE_RATIO_MAX = 1.01

# Below this many pairs nothing is inferred
MIN_PAIRS_FOR_ANALYSIS = 10
MIN_PAIRS_PER_WINDOW = 5

PATTERN_CONFIDENCE_THRESHOLD = 0.3


@dataclass(frozen=True)
class DepositWithdrawalPair:
    deposit: Deposit
    withdrawal: Withdrawal
    time_delta_ms: int
    anonymity_set: int  # deposits that could have funded the withdrawal


@dataclass
class TimingDistribution:
    """Histogram and summary statistics of deposit to withdrawal delays."""

    buckets: Dict[int, int] = field(default_factory=dict)  # bucket index -> count
    mean: float = 0.0
    median: float = 0.0
    p25: float = 0.0
    p75: float = 0.0
    entropy: float = 0.0  # bits


@dataclass
class TimingPattern:
    has_pattern: bool = False
    dominant_buckets: List[int] = field(default_factory=list)
    confidence: float = 0.0  # 0-1, higher is more predictable


@dataclass(frozen=True)
class EntropySample:
    timestamp: int
    entropy: float
    sample_size: int


def match_deposit_withdrawal_pairs(
    deposits: Sequence[Deposit],
    withdrawals: Sequence[Withdrawal],
) -> List[DepositWithdrawalPair]:
    """
    Pair each withdrawal with the closest earlier deposit of a compatible amount.

    A deposit is compatible when the withdrawal is within the fee ratio band of
    it and strictly later. Withdrawals with no compatible deposit are skipped.

    Args:
        deposits: Candidate source deposits
        withdrawals: Withdrawals to pair

    Returns:
        Pairs in withdrawal timestamp order
    """
    ordered_deposits = sorted(deposits, key=lambda d: d.timestamp)
    pairs: List[DepositWithdrawalPair] = []

    for withdrawal in sorted(withdrawals, key=lambda w: w.timestamp):
        candidates = [
            d for d in ordered_deposits
            if d.amount > 0
            and d.timestamp < withdrawal.timestamp
            and FEE_RATIO_MIN <= withdrawal.amount / d.amount <= FEE_RATIO_MAX
        ]
        if not candidates:
            continue

        closest = min(candidates, key=lambda d: withdrawal.timestamp - d.timestamp)
        pairs.append(DepositWithdrawalPair(
            deposit=closest,
            withdrawal=withdrawal,
            time_delta_ms=withdrawal.timestamp - closest.timestamp,
            anonymity_set=len(candidates),
        ))

    logger.debug(f"Paired {len(pairs)} of {len(withdrawals)} withdrawals")
    return pairs


def shannon_entropy(counts: Iterable[int]) -> float:
    """Shannon entropy in bits of a histogram's counts."""
    counts = [c for c in counts if c > 0]
    total = sum(counts)
    if total == 0:
        return 0.0

    entropy = 0.0
    for count in counts:
        p = count / total
        entropy -= p * math.log2(p)
    return entropy


def timing_distribution(
    pairs: Sequence[DepositWithdrawalPair],
    bucket_size_ms: int = HOUR_MS,
) -> TimingDistribution:
    """
    Bucket pair delays and summarize them. All zero when there are no pairs.

    Higher entropy means less predictable delays, which is better privacy.
    """
    if not pairs:
        return TimingDistribution()

    deltas = sorted(p.time_delta_ms for p in pairs)
    buckets = Counter(delta // bucket_size_ms for delta in deltas)

    return TimingDistribution(
        buckets=dict(buckets),
        mean=sum(deltas) / len(deltas),
        median=percentile(deltas, 50),
        p25=percentile(deltas, 25),
        p75=percentile(deltas, 75),
        entropy=shannon_entropy(buckets.values()),
    )


def detect_timing_patterns(pairs: Sequence[DepositWithdrawalPair]) -> TimingPattern:
    """
    Look for delays that cluster in a few hourly buckets.

    A bucket is dominant when it holds more than twice the average count.
    Confidence is one minus the entropy normalized by its maximum; a single
    bucket is a perfect pattern.
    """
    if len(pairs) < MIN_PAIRS_FOR_ANALYSIS:
        return TimingPattern()

    dist = timing_distribution(pairs)
    average = len(pairs) / len(dist.buckets)
    dominant = sorted(b for b, count in dist.buckets.items() if count > average * 2)

    max_entropy = math.log2(len(dist.buckets))
    confidence = 1.0 - dist.entropy / max_entropy if max_entropy > 0 else 1.0

    return TimingPattern(
        has_pattern=bool(dominant) and confidence > PATTERN_CONFIDENCE_THRESHOLD,
        dominant_buckets=dominant,
        confidence=confidence,
    )


def _utc(timestamp_ms: int) -> datetime:
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)


def time_of_day(withdrawals: Iterable[Withdrawal]) -> Dict[int, int]:
    """Withdrawal count per UTC hour."""
    return dict(Counter(_utc(w.timestamp).hour for w in withdrawals))


def day_of_week(withdrawals: Iterable[Withdrawal]) -> Dict[int, int]:
    """Withdrawal count per UTC weekday, 0 = Sunday."""
    return dict(Counter(_utc(w.timestamp).isoweekday() % 7 for w in withdrawals))


def entropy_time_series(
    pairs: Sequence[DepositWithdrawalPair],
    window_ms: int = DAY_MS,
    step_ms: int = HOUR_MS,
) -> List[EntropySample]:
    """
    Timing entropy over sliding windows of withdrawal time.

    Windows start at the first withdrawal and advance by ``step_ms`` while a
    full window fits before the last one. Windows with fewer than 5 pairs are
    left out.
    """
    if not pairs:
        return []

    ordered = sorted(pairs, key=lambda p: p.withdrawal.timestamp)
    first = ordered[0].withdrawal.timestamp
    last = ordered[-1].withdrawal.timestamp

    series: List[EntropySample] = []
    start = first
    while start <= last - window_ms:
        window = [
            p for p in ordered
            if start <= p.withdrawal.timestamp < start + window_ms
        ]
        if len(window) >= MIN_PAIRS_PER_WINDOW:
            series.append(EntropySample(
                timestamp=start,
                entropy=timing_distribution(window).entropy,
                sample_size=len(window),
            ))
        start += step_ms

    return series


def recommend_timing(pairs: Sequence[DepositWithdrawalPair]) -> dict:
    """
    Suggest a withdrawal delay that blends in with other users.

    Returns:
        {"min_hours": int, "max_hours": int, "reasoning": str}
    """
    if len(pairs) < MIN_PAIRS_FOR_ANALYSIS:
        return {
            "min_hours": 12,
            "max_hours": 48,
            "reasoning": (
                "Insufficient data for precise recommendation. "
                "General guideline: wait 12-48 hours."
            ),
        }

    dist = timing_distribution(pairs)
    min_hours = math.floor(dist.p25 / HOUR_MS)
    max_hours = math.ceil(dist.p75 / HOUR_MS)
    return {
        "min_hours": min_hours,
        "max_hours": max_hours,
        "reasoning": (
            f"Most users withdraw between {min_hours}-{max_hours} hours after deposit. "
            f"Staying in this range maximizes your anonymity set."
        ),
    }


def format_time_delta(delta_ms: int) -> str:
    """Format a delay for display."""
    hours = delta_ms / HOUR_MS
    if hours < 1:
        return f"{delta_ms // MINUTE_MS} minutes"
    elif hours < 24:
        return f"{hours:.1f} hours"
    return f"{int(hours // 24)}d {int(hours % 24)}h"
