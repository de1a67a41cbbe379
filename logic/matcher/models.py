"""Data models for the Timing Correlation Attack."""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional

from ingestion.events import TimingAttackMatch, VulnerabilityLevel
from ingestion.models import Deposit, Withdrawal


@dataclass(frozen=True)
class RankedSource:
    """A deposit judged a plausible source of a withdrawal."""
    
    deposit: Deposit
    confidence: Decimal  # 0-1
    time_delta_ms: int
    reasoning: List[str] = field(default_factory=list)
    
    @property
    def is_high_confidence(self) -> bool:
        """Returns True if confidence is at least 0.9."""
        return self.confidence >= Decimal("0.9")


@dataclass
class TimingAttackResult:
    """Outcome of analyzing one withdrawal against the deposit set."""
    
    withdrawal: Withdrawal
    anonymity_set: int
    vulnerability_level: VulnerabilityLevel
    ranked_sources: List[RankedSource] = field(default_factory=list)
    
    @property
    def top_source(self) -> Optional[RankedSource]:
        return self.ranked_sources[0] if self.ranked_sources else None
    
    def to_match(self) -> TimingAttackMatch:
        """
        Build the ``match:found`` record for this result.
        
        Raises:
            ValueError: If there is no ranked source to report
        """
        top = self.top_source
        if top is None:
            raise ValueError(
                f"Withdrawal {self.withdrawal.signature} has no plausible sources"
            )
        return TimingAttackMatch(
            withdrawal_signature=self.withdrawal.signature,
            withdrawal_amount=self.withdrawal.amount,
            withdrawal_timestamp=self.withdrawal.timestamp,
            anonymity_set=self.anonymity_set,
            vulnerability_level=self.vulnerability_level,
            top_source_signature=top.deposit.signature,
            confidence=top.confidence,
            time_delta_ms=top.time_delta_ms,
            source_signatures=tuple(s.deposit.signature for s in self.ranked_sources),
        )


@dataclass
class TimingAttackSummary:
    """Aggregate vulnerability counts over many withdrawals."""
    
    total_withdrawals: int = 0
    critical: int = 0  # anonymity set == 1
    high: int = 0  # 2-5
    medium: int = 0  # 6-20
    low: int = 0  # > 20 or no plausible source
    average_anonymity_set: float = 0.0
    attack_success_rate: float = 0.0  # % critical + high
