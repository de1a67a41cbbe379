"""Ingestion boundary - shared records, event topics, the event bus and protocol parsers."""

from .bus import EventBus, Subscription
from .config import ProtocolConfig, ProtocolRegistry
from .errors import ConfigurationError, MalformedRecordError
from .events import (
    EventType,
    MatchType,
    VulnerabilityLevel,
    DepositEvent,
    WithdrawalEvent,
    TransferEvent,
    SwapInputEvent,
    SwapOutputEvent,
    MatchFoundEvent,
    IndexUpdatedEvent,
    MetricsUpdatedEvent,
    TimingAttackMatch,
    AddressLinkMatch,
    AmountCorrelationMatch,
)
from .models import Deposit, Withdrawal, Transfer, SwapInput, SwapOutput, BalanceChange
from .parsers import (
    TransactionParser,
    BalanceFlowParser,
    ParserRegistry,
    default_parser_registry,
    validate_amount,
)

__all__ = [
    "EventBus",
    "Subscription",
    "ProtocolConfig",
    "ProtocolRegistry",
    "ConfigurationError",
    "MalformedRecordError",
    "EventType",
    "MatchType",
    "VulnerabilityLevel",
    "DepositEvent",
    "WithdrawalEvent",
    "TransferEvent",
    "SwapInputEvent",
    "SwapOutputEvent",
    "MatchFoundEvent",
    "IndexUpdatedEvent",
    "MetricsUpdatedEvent",
    "TimingAttackMatch",
    "AddressLinkMatch",
    "AmountCorrelationMatch",
    "Deposit",
    "Withdrawal",
    "Transfer",
    "SwapInput",
    "SwapOutput",
    "BalanceChange",
    "TransactionParser",
    "BalanceFlowParser",
    "ParserRegistry",
    "default_parser_registry",
    "validate_amount",
]
