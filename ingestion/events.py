"""Event topics and payloads carried by the event bus.

Each topic has exactly one payload type. The bus checks payloads against
``PAYLOAD_TYPES`` so an unknown topic or a mismatched payload is rejected at
publish time instead of surfacing inside a handler.
"""

from dataclasses import dataclass, asdict
from decimal import Decimal
from enum import Enum
from typing import Dict, Union
import json

from .models import Deposit, Withdrawal, Transfer, SwapInput, SwapOutput


class EventType(str, Enum):
    """Topics published on the event bus."""
    
    # Inbound from ingestion
    DEPOSIT_NEW = "deposit:new"
    WITHDRAWAL_NEW = "withdrawal:new"
    TRANSFER_NEW = "transfer:new"
    SWAP_INPUT = "swap:input"
    SWAP_OUTPUT = "swap:output"
    
    # Outbound to consumers
    MATCH_FOUND = "match:found"
    INDEX_UPDATED = "index:updated"
    METRICS_UPDATED = "metrics:updated"


class MatchType(str, Enum):
    """Kinds of linkage reported on ``match:found``."""
    
    TIMING_ATTACK = "timing_attack"
    ADDRESS_LINK = "address_link"
    AMOUNT_CORRELATION = "amount_correlation"


class VulnerabilityLevel(str, Enum):
    """Qualitative bucket derived from a withdrawal's anonymity set."""
    
    CRITICAL = "critical"  # anonymity set == 1
    HIGH = "high"  # 2-5
    MEDIUM = "medium"  # 6-20
    LOW = "low"  # everything else


# ============================================================================
# Match records
# ============================================================================

@dataclass(frozen=True)
class TimingAttackMatch:
    """A withdrawal whose plausible sources were narrowed to a small set."""
    
    withdrawal_signature: str
    withdrawal_amount: int
    withdrawal_timestamp: int
    anonymity_set: int
    vulnerability_level: VulnerabilityLevel
    top_source_signature: str
    confidence: Decimal  # 0-1, of the top source
    time_delta_ms: int
    source_signatures: tuple = ()
    
    def to_dict(self) -> dict:
        """Convert to a JSON-friendly dictionary."""
        return {
            "withdrawal": {
                "signature": self.withdrawal_signature,
                "amount": self.withdrawal_amount,
                "timestamp": self.withdrawal_timestamp,
            },
            "anonymity_set": self.anonymity_set,
            "vulnerability_level": self.vulnerability_level.value,
            "top_source": {
                "deposit_signature": self.top_source_signature,
                "confidence": str(self.confidence),
                "time_delta_ms": self.time_delta_ms,
            },
            "source_signatures": list(self.source_signatures),
        }


@dataclass(frozen=True)
class AddressLinkMatch:
    """A transfer whose sender and recipient are both public addresses."""
    
    signature: str
    timestamp: int
    sender: str
    recipient: str
    confidence: int = 100  # 0-100
    anonymity_set: int = 1
    
    def to_dict(self) -> dict:
        """Convert to a JSON-friendly dictionary."""
        return asdict(self)


@dataclass(frozen=True)
class AmountCorrelationMatch:
    """A swap output whose amount and delay fit a windowed swap input."""
    
    input_signature: str
    output_signature: str
    time_delta_seconds: int
    amount_ratio: Decimal
    confidence: int  # 0-100
    
    def to_dict(self) -> dict:
        """Convert to a JSON-friendly dictionary."""
        return {
            "input_signature": self.input_signature,
            "output_signature": self.output_signature,
            "time_delta_seconds": self.time_delta_seconds,
            "amount_ratio": str(self.amount_ratio),
            "confidence": self.confidence,
        }


Match = Union[TimingAttackMatch, AddressLinkMatch, AmountCorrelationMatch]

MATCH_TYPES: Dict[MatchType, type] = {
    MatchType.TIMING_ATTACK: TimingAttackMatch,
    MatchType.ADDRESS_LINK: AddressLinkMatch,
    MatchType.AMOUNT_CORRELATION: AmountCorrelationMatch,
}


# ============================================================================
# Topic payloads
# ============================================================================

@dataclass(frozen=True)
class DepositEvent:
    deposit: Deposit
    protocol: str


@dataclass(frozen=True)
class WithdrawalEvent:
    withdrawal: Withdrawal
    protocol: str


@dataclass(frozen=True)
class TransferEvent:
    transfer: Transfer
    protocol: str = "ShadowWire"


@dataclass(frozen=True)
class SwapInputEvent:
    input: SwapInput
    protocol: str = "SilentSwap"


@dataclass(frozen=True)
class SwapOutputEvent:
    output: SwapOutput
    protocol: str = "SilentSwap"


@dataclass(frozen=True)
class MatchFoundEvent:
    """Outbound linkage result. Consumers must treat it as read-only."""
    
    type: MatchType
    match: Match
    protocol: str
    
    def __post_init__(self):
        object.__setattr__(self, "type", MatchType(self.type))
        expected = MATCH_TYPES[self.type]
        if not isinstance(self.match, expected):
            raise TypeError(
                f"{self.type.value} match must be {expected.__name__}, "
                f"got {type(self.match).__name__}"
            )
    
    def to_json(self) -> str:
        """Serialize to JSON for downstream consumers."""
        return json.dumps({
            "type": self.type.value,
            "match": self.match.to_dict(),
            "protocol": self.protocol,
        }, sort_keys=True)


@dataclass(frozen=True)
class IndexUpdatedEvent:
    protocol: str
    total_deposits: int
    same_amount_count: int


@dataclass(frozen=True)
class MetricsUpdatedEvent:
    protocol: str


Payload = Union[
    DepositEvent,
    WithdrawalEvent,
    TransferEvent,
    SwapInputEvent,
    SwapOutputEvent,
    MatchFoundEvent,
    IndexUpdatedEvent,
    MetricsUpdatedEvent,
]

PAYLOAD_TYPES: Dict[EventType, type] = {
    EventType.DEPOSIT_NEW: DepositEvent,
    EventType.WITHDRAWAL_NEW: WithdrawalEvent,
    EventType.TRANSFER_NEW: TransferEvent,
    EventType.SWAP_INPUT: SwapInputEvent,
    EventType.SWAP_OUTPUT: SwapOutputEvent,
    EventType.MATCH_FOUND: MatchFoundEvent,
    EventType.INDEX_UPDATED: IndexUpdatedEvent,
    EventType.METRICS_UPDATED: MetricsUpdatedEvent,
}
