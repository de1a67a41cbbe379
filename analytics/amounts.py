"""Amount distribution analysis.

Read-only statistics over a batch of deposits that grade how well a
protocol's amounts resist fingerprinting: how many amounts are unique, how
unequal the amounts are, and which deposits stand out.
"""

from collections import Counter, defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Sequence
import logging
import math

from ingestion.models import Deposit

logger = logging.getLogger(__name__)

LAMPORTS_PER_SOL = 1_000_000_000

# Unique amounts above this are flagged as linkable (0.1 SOL)
MATERIALITY_THRESHOLD = 100_000_000

# Same depositor, same exact amount, this many times
REPEATED_AMOUNT_MIN = 3

TOP_AMOUNTS_LIMIT = 10
SUSPICIOUS_EXAMPLES_LIMIT = 10


def _round(value: float) -> int:
    """Round half up."""
    return int(math.floor(value + 0.5))


@dataclass(frozen=True)
class AmountFrequency:
    amount: int
    count: int


@dataclass
class AmountDistribution:
    """Frequency of each deposit amount in a batch."""
    
    frequency_by_amount: Dict[int, int] = field(default_factory=dict)
    unique_count: int = 0  # amounts occurring exactly once
    total_count: int = 0
    unique_ratio: float = 0.0
    top_amounts: List[AmountFrequency] = field(default_factory=list)


@dataclass(frozen=True)
class SuspiciousAmount:
    amount: int
    depositor: str
    reason: str


@dataclass
class SuspiciousAmountReport:
    suspicious_count: int = 0
    examples: List[SuspiciousAmount] = field(default_factory=list)


def distribution(deposits: Sequence[Deposit]) -> AmountDistribution:
    """
    Build the amount distribution of a batch of deposits.
    
    Top amounts are ranked by count descending, ties broken by the smaller
    amount, and capped at 10.
    """
    counts = Counter(d.amount for d in deposits)
    unique_count = sum(1 for c in counts.values() if c == 1)
    total_count = len(deposits)
    
    ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    return AmountDistribution(
        frequency_by_amount=dict(counts),
        unique_count=unique_count,
        total_count=total_count,
        unique_ratio=unique_count / total_count if total_count else 0.0,
        top_amounts=[
            AmountFrequency(amount=amount, count=count)
            for amount, count in ranked[:TOP_AMOUNTS_LIMIT]
        ],
    )


def privacy_score(dist: AmountDistribution) -> int:
    """
    Amount privacy score, 0-100.
    
    0 means every deposit amount is unique; 100 means every amount is shared.
    """
    return _round((1 - dist.unique_ratio) * 100)


def mixing_score(count: int, total: int) -> int:
    """
    Score how well an amount hides its depositors, given its frequency.
    
    <1% is too rare (30), >50% is suspiciously dominant (70), anything in
    between is the sweet spot (100). An empty batch counts as too rare.
    """
    frequency = count / total if total > 0 else 0.0
    if frequency < 0.01:
        return 30
    elif frequency > 0.5:
        return 70
    return 100


def gini_coefficient(deposits: Sequence[Deposit]) -> float:
    """
    Gini coefficient of deposit amounts: sum|ai - aj| / (2 n sum a).
    
    Lower is a more even distribution (better privacy). Uses the sorted-rank
    form of the pairwise sum so the cost is O(n log n).
    
    Returns:
        Value in [0, 1); 0 for an empty batch or an all-zero batch
    """
    amounts = sorted(d.amount for d in deposits)
    n = len(amounts)
    total = sum(amounts)
    if n == 0 or total == 0:
        return 0.0
    
    # sum over all ordered pairs |ai - aj| == 2 * sum_i (2i - n + 1) * a_i
    weighted = sum((2 * i - n + 1) * a for i, a in enumerate(amounts))
    return (2 * weighted) / (2 * n * total)


def suspicious_amounts(
    deposits: Sequence[Deposit],
    materiality_threshold: int = MATERIALITY_THRESHOLD,
) -> SuspiciousAmountReport:
    """
    Flag deposits whose amounts make them easy to link.
    
    - A depositor using the same exact amount 3+ times
    - A globally unique amount above the materiality threshold
    """
    suspicious: List[SuspiciousAmount] = []
    
    by_depositor: Dict[str, Counter] = defaultdict(Counter)
    for deposit in deposits:
        by_depositor[deposit.depositor][deposit.amount] += 1
    
    for depositor, amount_counts in by_depositor.items():
        for amount, count in amount_counts.items():
            if count >= REPEATED_AMOUNT_MIN:
                suspicious.append(SuspiciousAmount(
                    amount=amount,
                    depositor=depositor,
                    reason=f"Same address deposited exact amount {count} times",
                ))
    
    dist = distribution(deposits)
    for deposit in deposits:
        if (
            dist.frequency_by_amount[deposit.amount] == 1
            and deposit.amount > materiality_threshold
        ):
            suspicious.append(SuspiciousAmount(
                amount=deposit.amount,
                depositor=deposit.depositor,
                reason="Unique amount makes this deposit easily linkable",
            ))
    
    if suspicious:
        logger.debug(f"Flagged {len(suspicious)} suspicious amount(s)")
    
    return SuspiciousAmountReport(
        suspicious_count=len(suspicious),
        examples=suspicious[:SUSPICIOUS_EXAMPLES_LIMIT],
    )


def find_common_denominations(deposits: Sequence[Deposit], min_count: int = 10) -> List[int]:
    """Top amounts used at least ``min_count`` times."""
    return [a.amount for a in distribution(deposits).top_amounts if a.count >= min_count]


def recommend_amounts(target_amount: int, deposits: Sequence[Deposit]) -> dict:
    """
    Suggest popular amounts near a target deposit amount.
    
    Args:
        target_amount: Desired deposit (lamports)
        deposits: Existing deposits
        
    Returns:
        {"recommendations": [{"amount", "count", "score"}], "reasoning": str}
    """
    dist = distribution(deposits)
    
    candidates = []
    if target_amount > 0:
        for freq in dist.top_amounts:
            if abs(freq.amount - target_amount) / target_amount < 0.5:
                candidates.append({
                    "amount": freq.amount,
                    "count": freq.count,
                    "score": mixing_score(freq.count, dist.total_count),
                })
    candidates.sort(key=lambda c: -c["score"])
    recommendations = candidates[:5]
    
    if not recommendations:
        reasoning = (
            f"No common amounts near {format_amount(target_amount)}. "
            f"Consider popular denominations like 0.1, 1, or 10 SOL."
        )
    else:
        best = recommendations[0]
        reasoning = (
            f"{format_amount(best['amount'])} has {best['count']} deposits, "
            f"providing good mixing."
        )
    
    return {"recommendations": recommendations, "reasoning": reasoning}


def standard_denominations() -> List[int]:
    """Round SOL denominations in lamports."""
    return [
        LAMPORTS_PER_SOL // 100,  # 0.01
        LAMPORTS_PER_SOL // 20,  # 0.05
        LAMPORTS_PER_SOL // 10,  # 0.1
        LAMPORTS_PER_SOL // 2,  # 0.5
        LAMPORTS_PER_SOL,
        5 * LAMPORTS_PER_SOL,
        10 * LAMPORTS_PER_SOL,
        50 * LAMPORTS_PER_SOL,
        100 * LAMPORTS_PER_SOL,
    ]


def format_amount(lamports: int) -> str:
    """Format lamports for display."""
    sol = lamports / LAMPORTS_PER_SOL
    if sol < 0.001:
        return f"{lamports} lamports"
    elif sol < 1:
        return f"{sol:.3f} SOL"
    return f"{sol:.2f} SOL"
