"""Tests for deposit to withdrawal timing analysis."""

import math
import pytest

from ingestion.models import Deposit, Withdrawal
from analytics.timing import (
    DAY_MS,
    HOUR_MS,
    MINUTE_MS,
    DepositWithdrawalPair,
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

SOL = 1_000_000_000


def make_deposit(signature: str, timestamp: int, amount: int = SOL) -> Deposit:
    return Deposit(signature=signature, timestamp=timestamp, amount=amount, depositor=f"{signature}_wallet")


def make_withdrawal(signature: str, timestamp: int, amount: int = 990_000_000) -> Withdrawal:
    return Withdrawal(signature=signature, timestamp=timestamp, amount=amount, recipient=f"{signature}_wallet")


def make_pair(delta_ms: int, withdrawal_ts: int = None, index: int = 0) -> DepositWithdrawalPair:
    withdrawal_ts = delta_ms if withdrawal_ts is None else withdrawal_ts
    return DepositWithdrawalPair(
        deposit=make_deposit(f"dep_{index}", withdrawal_ts - delta_ms),
        withdrawal=make_withdrawal(f"wd_{index}", withdrawal_ts),
        time_delta_ms=delta_ms,
        anonymity_set=1,
    )


def make_pairs(deltas_ms):
    return [make_pair(delta, index=i) for i, delta in enumerate(deltas_ms)]


# ============================================================================
# Unit Tests - Pairing
# ============================================================================

class TestMatchDepositWithdrawalPairs:
    """Tests for match_deposit_withdrawal_pairs()."""

    def test_closest_earlier_deposit(self):
        deposits = [make_deposit("early", 1_000), make_deposit("late", 5_000)]
        withdrawals = [make_withdrawal("wd", 10_000)]

        pairs = match_deposit_withdrawal_pairs(deposits, withdrawals)

        assert len(pairs) == 1
        assert pairs[0].deposit.signature == "late"
        assert pairs[0].time_delta_ms == 5_000
        assert pairs[0].anonymity_set == 2

    def test_later_deposits_ignored(self):
        deposits = [make_deposit("before", 1_000), make_deposit("after", 20_000)]

        pairs = match_deposit_withdrawal_pairs(deposits, [make_withdrawal("wd", 10_000)])

        assert pairs[0].deposit.signature == "before"
        assert pairs[0].anonymity_set == 1

    @pytest.mark.parametrize("amount,matched", [
        (950_000_000, True),
        (1_010_000_000, True),
        (940_000_000, False),
        (1_020_000_000, False),
    ])
    def test_fee_ratio_band(self, amount, matched):
        pairs = match_deposit_withdrawal_pairs(
            [make_deposit("dep", 1_000)],
            [make_withdrawal("wd", 2_000, amount=amount)],
        )

        assert bool(pairs) is matched

    def test_unmatched_withdrawal_skipped(self):
        deposits = [make_deposit("dep", 1_000)]
        withdrawals = [
            make_withdrawal("orphan", 500),
            make_withdrawal("wd", 3_000),
        ]

        pairs = match_deposit_withdrawal_pairs(deposits, withdrawals)

        assert [p.withdrawal.signature for p in pairs] == ["wd"]

    def test_zero_amount_deposit_ignored(self):
        pairs = match_deposit_withdrawal_pairs(
            [make_deposit("dust", 1_000, amount=0)],
            [make_withdrawal("wd", 2_000, amount=0)],
        )

        assert pairs == []

    def test_pairs_in_withdrawal_order(self):
        deposits = [make_deposit("dep", 1_000)]
        withdrawals = [make_withdrawal("second", 9_000), make_withdrawal("first", 4_000)]

        pairs = match_deposit_withdrawal_pairs(deposits, withdrawals)

        assert [p.withdrawal.signature for p in pairs] == ["first", "second"]


# ============================================================================
# Unit Tests - Distribution
# ============================================================================

class TestTimingDistribution:
    """Tests for shannon_entropy() and timing_distribution()."""

    def test_single_bucket_has_no_entropy(self):
        """Every delay in the same hour is perfectly predictable."""
        pairs = make_pairs([10 * MINUTE_MS, 20 * MINUTE_MS, 30 * MINUTE_MS, 50 * MINUTE_MS])

        dist = timing_distribution(pairs)

        assert dist.buckets == {0: 4}
        assert dist.entropy == 0.0

    @pytest.mark.parametrize("k", [2, 3, 4, 8])
    def test_uniform_spread_is_log2_k(self, k):
        """Delays spread evenly over k hourly buckets give log2(k) bits."""
        deltas = [h * HOUR_MS + 30 * MINUTE_MS for h in range(k)] * 3

        dist = timing_distribution(make_pairs(deltas))

        assert len(dist.buckets) == k
        assert dist.entropy == pytest.approx(math.log2(k))

    def test_statistics(self):
        pairs = make_pairs([HOUR_MS, 2 * HOUR_MS, 3 * HOUR_MS, 4 * HOUR_MS])

        dist = timing_distribution(pairs)

        assert dist.buckets == {1: 1, 2: 1, 3: 1, 4: 1}
        assert dist.mean == 2.5 * HOUR_MS
        assert dist.median == 2.5 * HOUR_MS
        assert dist.p25 == pytest.approx(1.75 * HOUR_MS)
        assert dist.p75 == pytest.approx(3.25 * HOUR_MS)
        assert dist.entropy == pytest.approx(2.0)

    def test_custom_bucket_size(self):
        pairs = make_pairs([HOUR_MS, 2 * HOUR_MS, 30 * HOUR_MS])

        dist = timing_distribution(pairs, bucket_size_ms=DAY_MS)

        assert dist.buckets == {0: 2, 1: 1}

    def test_empty(self):
        dist = timing_distribution([])

        assert dist.buckets == {}
        assert dist.mean == 0.0
        assert dist.entropy == 0.0

    def test_entropy_ignores_empty_counts(self):
        assert shannon_entropy([0, 5, 5, 0]) == pytest.approx(1.0)
        assert shannon_entropy([]) == 0.0


# ============================================================================
# Unit Tests - Patterns
# ============================================================================

class TestDetectTimingPatterns:
    """Tests for detect_timing_patterns()."""

    def test_too_few_pairs(self):
        pattern = detect_timing_patterns(make_pairs([HOUR_MS] * 9))

        assert pattern.has_pattern is False
        assert pattern.dominant_buckets == []
        assert pattern.confidence == 0.0

    def test_dominant_bucket(self):
        """Most withdrawals land two hours after their deposit."""
        deltas = [2 * HOUR_MS + 5 * MINUTE_MS] * 10 + [h * HOUR_MS for h in (10, 11, 12, 13)]

        pattern = detect_timing_patterns(make_pairs(deltas))

        assert pattern.has_pattern is True
        assert pattern.dominant_buckets == [2]
        assert pattern.confidence > 0.3

    def test_uniform_spread_has_no_pattern(self):
        pattern = detect_timing_patterns(make_pairs([h * HOUR_MS for h in range(10)]))

        assert pattern.has_pattern is False
        assert pattern.confidence == pytest.approx(0.0)

    def test_single_bucket_is_fully_predictable(self):
        pattern = detect_timing_patterns(make_pairs([HOUR_MS] * 12))

        assert pattern.confidence == 1.0
        assert pattern.dominant_buckets == []


# ============================================================================
# Unit Tests - Calendar
# ============================================================================

class TestCalendar:
    """Tests for time_of_day() and day_of_week()."""

    def test_time_of_day_is_utc(self):
        withdrawals = [
            make_withdrawal("a", 0),
            make_withdrawal("b", 13 * HOUR_MS),
            make_withdrawal("c", DAY_MS + 13 * HOUR_MS + 59 * MINUTE_MS),
        ]

        assert time_of_day(withdrawals) == {0: 1, 13: 2}

    def test_day_of_week_starts_on_sunday(self):
        """The epoch fell on a Thursday."""
        withdrawals = [make_withdrawal("thu", 0), make_withdrawal("sun", 3 * DAY_MS)]

        assert day_of_week(withdrawals) == {4: 1, 0: 1}


# ============================================================================
# Unit Tests - Time series and recommendations
# ============================================================================

class TestEntropyTimeSeries:
    """Tests for entropy_time_series()."""

    def test_sliding_windows(self):
        pairs = [make_pair(HOUR_MS, withdrawal_ts=h * HOUR_MS, index=h) for h in range(6)]
        pairs.append(make_pair(HOUR_MS, withdrawal_ts=25 * HOUR_MS, index=6))

        series = entropy_time_series(pairs)

        assert [s.timestamp for s in series] == [0, HOUR_MS]
        assert [s.sample_size for s in series] == [6, 5]
        assert all(s.entropy == 0.0 for s in series)

    def test_span_shorter_than_window(self):
        pairs = [make_pair(HOUR_MS, withdrawal_ts=h * HOUR_MS, index=h) for h in range(6)]

        assert entropy_time_series(pairs) == []

    def test_empty(self):
        assert entropy_time_series([]) == []


class TestRecommendTiming:
    """Tests for recommend_timing() and format_time_delta()."""

    def test_insufficient_data(self):
        result = recommend_timing(make_pairs([HOUR_MS] * 3))

        assert (result["min_hours"], result["max_hours"]) == (12, 48)
        assert result["reasoning"].startswith("Insufficient data")

    def test_interquartile_range(self):
        result = recommend_timing(make_pairs([h * HOUR_MS for h in range(1, 11)]))

        assert result["min_hours"] == 3
        assert result["max_hours"] == 8
        assert "between 3-8 hours" in result["reasoning"]

    @pytest.mark.parametrize("delta_ms,expected", [
        (30 * MINUTE_MS, "30 minutes"),
        (90 * MINUTE_MS, "1.5 hours"),
        (50 * HOUR_MS, "2d 2h"),
    ])
    def test_format_time_delta(self, delta_ms, expected):
        assert format_time_delta(delta_ms) == expected
