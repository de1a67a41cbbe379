"""Timing Correlation Attack implementation.

Links a withdrawal to the deposits that plausibly funded it, using how close
the amounts are once the protocol fee is deducted and how close the two
transactions are in time.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Sequence, Tuple
import logging

from ingestion.events import VulnerabilityLevel
from ingestion.models import Deposit, Withdrawal
from .models import RankedSource, TimingAttackResult, TimingAttackSummary
from .config import TimingAttackConfig, DEFAULT_CONFIG

logger = logging.getLogger(__name__)

HOUR_MS = 3600 * 1000


def vulnerability_level(anonymity_set: int) -> VulnerabilityLevel:
    """Bucket an anonymity set size into a vulnerability level."""
    if anonymity_set == 1:
        return VulnerabilityLevel.CRITICAL
    elif 2 <= anonymity_set <= 5:
        return VulnerabilityLevel.HIGH
    elif 6 <= anonymity_set <= 20:
        return VulnerabilityLevel.MEDIUM
    return VulnerabilityLevel.LOW


class TimingCorrelationAttack:
    """
    Ranks the deposits that could have funded a withdrawal.
    
    Candidates are deposits strictly before the withdrawal and inside the
    lookback window. The scan covers every deposit, not just same-amount
    ones, because the fee shifts the withdrawn amount.
    
    Confidence = AMOUNT_WEIGHT × amount_closeness + TIMING_WEIGHT × timing_closeness
    
    Example:
        attack = TimingCorrelationAttack()
        result = attack.analyze_withdrawal(withdrawal, index.all())
        if attack.should_report(result):
            print(result.vulnerability_level, result.top_source.deposit.signature)
    """
    
    def __init__(self, config: TimingAttackConfig = DEFAULT_CONFIG):
        """
        Initialize the attack.
        
        Args:
            config: Weights, windows and thresholds
        """
        self.config = config
    
    def analyze_withdrawal(
        self,
        withdrawal: Withdrawal,
        deposits: Iterable[Deposit],
    ) -> TimingAttackResult:
        """
        Score every candidate deposit for one withdrawal.
        
        Args:
            withdrawal: The withdrawal to de-anonymize
            deposits: All known deposits, in any order
            
        Returns:
            TimingAttackResult with sources ranked by confidence
        """
        window_start = withdrawal.timestamp - self.config.LOOKBACK_MS
        seen = set()
        total = 0
        scored: List[Tuple[Deposit, Decimal, int]] = []
        
        for deposit in deposits:
            total += 1
            if deposit.signature in seen:
                continue
            if not (window_start <= deposit.timestamp < withdrawal.timestamp):
                continue
            seen.add(deposit.signature)
            
            time_delta = withdrawal.timestamp - deposit.timestamp
            confidence = self._calculate_confidence(withdrawal, deposit, time_delta)
            if confidence > self.config.MIN_RELEVANCE:
                scored.append((deposit, confidence, time_delta))
        
        # Highest confidence first, then closest in time, then signature
        scored.sort(key=lambda s: (-s[1], s[2], s[0].signature))
        
        anonymity_set = len(scored)
        ranked_sources = [
            RankedSource(
                deposit=deposit,
                confidence=confidence,
                time_delta_ms=time_delta,
                reasoning=self._generate_reasoning(time_delta, anonymity_set, total),
            )
            for deposit, confidence, time_delta in scored
        ]
        
        logger.debug(
            f"Withdrawal {withdrawal.signature[:16]}...: {len(seen)} candidates, "
            f"anonymity set {anonymity_set}"
        )
        
        return TimingAttackResult(
            withdrawal=withdrawal,
            anonymity_set=anonymity_set,
            vulnerability_level=vulnerability_level(anonymity_set),
            ranked_sources=ranked_sources,
        )
    
    def should_report(self, result: TimingAttackResult) -> bool:
        """True if the anonymity set is non-empty and small enough to be interesting."""
        return 1 <= result.anonymity_set <= self.config.INTERESTING_ANONYMITY_SET
    
    def amount_closeness(self, withdrawal_amount: int, deposit_amount: int) -> Decimal:
        """
        How well a withdrawal amount fits a deposit after the expected fee.
        
        Returns:
            1 - |withdrawal - deposit × (1 - fee)| / deposit, clipped to [0, 1]
        """
        if deposit_amount <= 0:
            return Decimal("0")
        
        deposit = Decimal(deposit_amount)
        expected = deposit * (Decimal("1") - self.config.EXPECTED_FEE)
        closeness = Decimal("1") - abs(Decimal(withdrawal_amount) - expected) / deposit
        return min(Decimal("1"), max(Decimal("0"), closeness))
    
    def timing_closeness(self, time_delta_ms: int) -> Decimal:
        """1.0 at zero delay, decreasing linearly to 0 at the decay horizon."""
        if time_delta_ms < 0:
            return Decimal("0")
        horizon = self.config.DECAY_HORIZON_MS
        if horizon <= 0:
            return Decimal("0")
        return max(Decimal("0"), Decimal("1") - Decimal(time_delta_ms) / Decimal(horizon))
    
    def _calculate_confidence(
        self,
        withdrawal: Withdrawal,
        deposit: Deposit,
        time_delta_ms: int,
    ) -> Decimal:
        """
        Weighted link confidence between a withdrawal and a candidate deposit.
        
        Returns:
            Confidence between 0 and 1, quantized to CONFIDENCE_QUANTUM
        """
        amount_score = self.amount_closeness(withdrawal.amount, deposit.amount)
        time_score = self.timing_closeness(time_delta_ms)
        
        confidence = (
            (self.config.AMOUNT_WEIGHT * amount_score) +
            (self.config.TIMING_WEIGHT * time_score)
        )
        confidence = min(Decimal("1"), max(Decimal("0"), confidence))
        return confidence.quantize(self.config.CONFIDENCE_QUANTUM, rounding=ROUND_HALF_UP)
    
    def _generate_reasoning(
        self,
        time_delta_ms: int,
        anonymity_set: int,
        total_deposits: int,
    ) -> List[str]:
        """Human-readable explanation for a ranked source."""
        reasoning: List[str] = []
        hours = time_delta_ms // HOUR_MS
        days = hours // 24
        
        if anonymity_set == 1:
            reasoning.append("CRITICAL: only 1 deposit matches (uniquely identifiable)")
        elif anonymity_set <= 5:
            reasoning.append(f"HIGH RISK: only {anonymity_set} possible sources")
        elif anonymity_set <= 20:
            reasoning.append(f"MEDIUM RISK: {anonymity_set} possible sources")
        else:
            reasoning.append(f"LOW RISK: {anonymity_set} possible sources")
        
        if days == 0:
            reasoning.append(f"Withdrawn same day ({hours}h delay)")
        elif days == 1 and 23 <= hours <= 25:
            reasoning.append("Withdrawn ~24h later (predictable pattern)")
        elif days == 2 and 47 <= hours <= 49:
            reasoning.append("Withdrawn ~48h later (predictable pattern)")
        elif days == 7 and 167 <= hours <= 169:
            reasoning.append("Withdrawn ~1 week later (predictable pattern)")
        else:
            reasoning.append(f"Withdrawn {days}d {hours % 24}h later")
        
        reasoning.append(
            f"{anonymity_set} plausible deposits out of {total_deposits} total"
        )
        return reasoning
    
    def analyze_all(
        self,
        withdrawals: Sequence[Withdrawal],
        deposits: Sequence[Deposit],
    ) -> Tuple[List[TimingAttackResult], TimingAttackSummary]:
        """
        Analyze every withdrawal and summarize the vulnerability distribution.
        
        Returns:
            (per-withdrawal results, summary)
        """
        results = [self.analyze_withdrawal(w, deposits) for w in withdrawals]
        
        summary = TimingAttackSummary(total_withdrawals=len(results))
        for result in results:
            level = result.vulnerability_level
            if level == VulnerabilityLevel.CRITICAL:
                summary.critical += 1
            elif level == VulnerabilityLevel.HIGH:
                summary.high += 1
            elif level == VulnerabilityLevel.MEDIUM:
                summary.medium += 1
            else:
                summary.low += 1
        
        if results:
            summary.average_anonymity_set = (
                sum(r.anonymity_set for r in results) / len(results)
            )
            summary.attack_success_rate = (
                (summary.critical + summary.high) / len(results) * 100
            )
        
        logger.info(
            f"Timing attack over {len(results)} withdrawals: "
            f"{summary.critical} critical, {summary.high} high, "
            f"{summary.attack_success_rate:.1f}% linkable"
        )
        return results, summary
    
    @staticmethod
    def find_most_vulnerable(
        results: Sequence[TimingAttackResult],
        limit: int = 10,
    ) -> List[TimingAttackResult]:
        """Critical and high results, smallest anonymity set first."""
        vulnerable = [
            r for r in results
            if r.vulnerability_level in (VulnerabilityLevel.CRITICAL, VulnerabilityLevel.HIGH)
        ]
        vulnerable.sort(key=lambda r: r.anonymity_set)
        return vulnerable[:limit]
