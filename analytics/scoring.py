"""Aggregate privacy score (0-100) for a protocol.

Combines three signals into one weighted score:
- anonymity: average anonymity set size, full marks at 100
- timing: entropy of deposit to withdrawal delays, full marks at 5 bits
- amount: share of deposits using a non-unique amount
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence
import logging

from ingestion.models import Deposit, Withdrawal

from .amounts import _round, distribution
from .anonymity import anonymity_set_statistics
from .timing import match_deposit_withdrawal_pairs, timing_distribution

logger = logging.getLogger(__name__)

# Must sum to 1.0
WEIGHT_ANONYMITY = 0.4
WEIGHT_TIMING = 0.3
WEIGHT_AMOUNT = 0.3

ANONYMITY_TARGET = 100
ENTROPY_TARGET = 5  # bits

RECOMMENDATION_THRESHOLD = 70
COMMON_AMOUNTS_LIMIT = 5


@dataclass
class PrivacyScoreBreakdown:
    """Weighted privacy score and its rounded components."""

    total_score: int
    anonymity_score: int
    timing_score: int
    amount_score: int
    weights: Dict[str, float] = field(default_factory=lambda: {
        "anonymity": WEIGHT_ANONYMITY,
        "timing": WEIGHT_TIMING,
        "amount": WEIGHT_AMOUNT,
    })
    details: Dict[str, str] = field(default_factory=dict)


@dataclass
class ProtocolMetrics:
    protocol: str
    program_id: str
    total_deposits: int = 0
    total_withdrawals: int = 0
    unique_depositors: int = 0
    avg_anonymity_set: float = 0.0
    median_anonymity_set: float = 0.0
    min_anonymity_set: int = 0
    timing_entropy: float = 0.0
    median_time_delta_ms: float = 0.0
    unique_amount_ratio: float = 0.0
    common_amounts: List[int] = field(default_factory=list)
    privacy_score: int = 0


@dataclass
class ProtocolComparison:
    winner: str
    privacy_score_diff: float
    anonymity_set_diff: float
    timing_entropy_diff: float
    amount_privacy_diff: float  # positive when the first protocol reuses amounts more
    summary: str


def score_privacy(
    avg_anonymity_set: float,
    timing_entropy: float,
    unique_amount_ratio: float,
) -> PrivacyScoreBreakdown:
    """
    Weighted privacy score with a per-component breakdown.

    Args:
        avg_anonymity_set: Mean anonymity set size across withdrawals
        timing_entropy: Shannon entropy of delays, in bits
        unique_amount_ratio: Share of deposits whose amount is unique

    Returns:
        Breakdown whose total is rounded half up from the unrounded components
    """
    anonymity = min(avg_anonymity_set / ANONYMITY_TARGET, 1.0) * 100
    timing = min(timing_entropy / ENTROPY_TARGET, 1.0) * 100
    amount = (1 - unique_amount_ratio) * 100

    total = anonymity * WEIGHT_ANONYMITY + timing * WEIGHT_TIMING + amount * WEIGHT_AMOUNT

    return PrivacyScoreBreakdown(
        total_score=_round(total),
        anonymity_score=_round(anonymity),
        timing_score=_round(timing),
        amount_score=_round(amount),
        details={
            "anonymity": anonymity_details(avg_anonymity_set),
            "timing": timing_details(timing_entropy),
            "amount": amount_details(unique_amount_ratio),
        },
    )


def anonymity_details(avg_anonymity_set: float) -> str:
    if avg_anonymity_set < 10:
        return "Weak - Very small anonymity sets make tracking easier"
    elif avg_anonymity_set < 30:
        return "Fair - Moderate anonymity sets provide some privacy"
    elif avg_anonymity_set < 100:
        return "Good - Large anonymity sets make tracking difficult"
    return "Excellent - Very large anonymity sets provide strong privacy"


def timing_details(entropy: float) -> str:
    if entropy < 2:
        return "Weak - Predictable timing patterns leak information"
    elif entropy < 3.5:
        return "Fair - Some timing variation but patterns exist"
    elif entropy < 5:
        return "Good - Random timing makes correlation harder"
    return "Excellent - Highly random timing provides strong protection"


def amount_details(unique_ratio: float) -> str:
    if unique_ratio > 0.7:
        return "Weak - Too many unique amounts create linkability"
    elif unique_ratio > 0.4:
        return "Fair - Moderate use of common amounts"
    elif unique_ratio > 0.2:
        return "Good - Most deposits use common amounts"
    return "Excellent - Strong standardization on common amounts"


def score_grade(score: int) -> str:
    """Letter grade, A (90+) through F (below 60)."""
    if score >= 90:
        return "A"
    if score >= 80:
        return "B"
    if score >= 70:
        return "C"
    if score >= 60:
        return "D"
    return "F"


def score_color(score: int) -> str:
    if score >= 80:
        return "#10b981"  # green
    if score >= 60:
        return "#f59e0b"  # yellow
    return "#ef4444"  # red


def recommendations(breakdown: PrivacyScoreBreakdown) -> List[str]:
    """Advice for every component scoring below 70."""
    advice = []

    if breakdown.anonymity_score < RECOMMENDATION_THRESHOLD:
        advice.append(
            "Increase anonymity set by encouraging more deposits or "
            "waiting longer before withdrawing"
        )
    if breakdown.timing_score < RECOMMENDATION_THRESHOLD:
        advice.append("Vary withdrawal timing more to reduce predictable patterns")
    if breakdown.amount_score < RECOMMENDATION_THRESHOLD:
        advice.append("Use standardized amounts (0.1, 1, 10 SOL) to improve mixing")

    if not advice:
        advice.append("Good privacy practices! Keep up the strong operational security.")
    return advice


def protocol_metrics(
    protocol: str,
    program_id: str,
    deposits: Sequence[Deposit],
    withdrawals: Sequence[Withdrawal],
    anonymity_sets: Optional[Sequence[int]] = None,
) -> ProtocolMetrics:
    """
    Compute the privacy metrics and score of one protocol.

    Args:
        protocol: Display name
        program_id: On-chain program address
        deposits: Every known deposit of the protocol
        withdrawals: Every known withdrawal of the protocol
        anonymity_sets: Per-withdrawal anonymity set sizes; taken from the
            deposit/withdrawal pairing when omitted

    Returns:
        ProtocolMetrics with the weighted privacy score filled in
    """
    pairs = match_deposit_withdrawal_pairs(deposits, withdrawals)
    if anonymity_sets is None:
        anonymity_sets = [p.anonymity_set for p in pairs]

    anonymity = anonymity_set_statistics(anonymity_sets)
    timing = timing_distribution(pairs)
    amounts = distribution(deposits)

    breakdown = score_privacy(anonymity.mean, timing.entropy, amounts.unique_ratio)
    logger.info(
        f"{protocol}: privacy score {breakdown.total_score} "
        f"({score_grade(breakdown.total_score)}) over {len(deposits)} deposits"
    )

    return ProtocolMetrics(
        protocol=protocol,
        program_id=program_id,
        total_deposits=len(deposits),
        total_withdrawals=len(withdrawals),
        unique_depositors=len({d.depositor for d in deposits}),
        avg_anonymity_set=anonymity.mean,
        median_anonymity_set=anonymity.median,
        min_anonymity_set=anonymity.min,
        timing_entropy=timing.entropy,
        median_time_delta_ms=timing.median,
        unique_amount_ratio=amounts.unique_ratio,
        common_amounts=[a.amount for a in amounts.top_amounts[:COMMON_AMOUNTS_LIMIT]],
        privacy_score=breakdown.total_score,
    )


def compare_protocols(first: ProtocolMetrics, second: ProtocolMetrics) -> ProtocolComparison:
    """Compare two protocols; ties go to the second."""
    score_diff = first.privacy_score - second.privacy_score
    anonymity_diff = first.avg_anonymity_set - second.avg_anonymity_set
    winner = first.protocol if score_diff > 0 else second.protocol

    if abs(score_diff) < 5:
        summary = "Both protocols provide similar privacy levels. "
    else:
        summary = f"{winner} provides better overall privacy. "

    if abs(anonymity_diff) > 20:
        better = first.protocol if anonymity_diff > 0 else second.protocol
        summary += f"{better} has significantly larger anonymity sets. "

    return ProtocolComparison(
        winner=winner,
        privacy_score_diff=score_diff,
        anonymity_set_diff=anonymity_diff,
        timing_entropy_diff=first.timing_entropy - second.timing_entropy,
        amount_privacy_diff=second.unique_amount_ratio - first.unique_amount_ratio,
        summary=summary,
    )
