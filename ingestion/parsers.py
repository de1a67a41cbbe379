"""Protocol parsers and the registry that hands their records to the engine.

Every protocol supplies a ``TransactionParser`` that turns the balance changes
of one raw transaction into a ``Deposit``, a ``Withdrawal`` or nothing. The
``ParserRegistry`` is the only path from raw transactions into the shared
records; it drops records whose amounts cannot be indexed.
"""

import logging
import math
from dataclasses import replace
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional, Sequence, Type, Union

from .config import ProtocolRegistry
from .errors import ConfigurationError, MalformedRecordError
from .models import BalanceChange, Deposit, Withdrawal

logger = logging.getLogger(__name__)

ParsedRecord = Union[Deposit, Withdrawal, None]

DEFAULT_THRESHOLD = 100_000  # 0.0001 SOL


def validate_amount(amount) -> int:
    """
    Check that an amount is a non-negative integer of smallest units.
    
    Integral floats are accepted and converted.
    
    Raises:
        MalformedRecordError: For negative, non-finite, fractional or non-numeric amounts
    """
    if isinstance(amount, bool) or not isinstance(amount, (int, float)):
        raise MalformedRecordError(f"Amount must be numeric, got {amount!r}")
    if isinstance(amount, float):
        if not math.isfinite(amount) or not amount.is_integer():
            raise MalformedRecordError(f"Amount must be a finite integer, got {amount!r}")
        amount = int(amount)
    if amount < 0:
        raise MalformedRecordError(f"Amount must be non-negative, got {amount}")
    return amount


class TransactionParser(ABC):
    """Base class for protocol-specific parsers."""
    
    def __init__(
        self,
        deposit_threshold: int = DEFAULT_THRESHOLD,
        withdrawal_threshold: int = DEFAULT_THRESHOLD,
        pool_accounts: Iterable[str] = (),
    ):
        self.deposit_threshold = deposit_threshold
        self.withdrawal_threshold = withdrawal_threshold
        self.pool_accounts = frozenset(pool_accounts)
    
    @abstractmethod
    def parse(
        self,
        signature: str,
        timestamp: int,
        fee_payer: str,
        balance_changes: Sequence[BalanceChange],
    ) -> ParsedRecord:
        """
        Classify one transaction.
        
        Args:
            signature: Transaction signature
            timestamp: Block time (Unix ms)
            fee_payer: Address that paid the transaction fee
            balance_changes: Non-zero lamport changes per account
            
        Returns:
            Deposit, Withdrawal, or None if the transaction is neither
        """
        pass
    
    @abstractmethod
    def protocol_name(self) -> str:
        """Human-readable protocol name."""
        pass


class BalanceFlowParser(TransactionParser):
    """
    Infers deposits and withdrawals from SOL balance flow.
    
    - WITHDRAWAL: an account other than the fee payer gains more than the
      withdrawal threshold (largest gain wins). Pool accounts gaining funds
      are the other side of a deposit and never count.
    - DEPOSIT: the fee payer loses more than the deposit threshold.
    """
    
    def parse(
        self,
        signature: str,
        timestamp: int,
        fee_payer: str,
        balance_changes: Sequence[BalanceChange],
    ) -> ParsedRecord:
        pool_account = next(
            (c.address for c in balance_changes if c.address in self.pool_accounts),
            None,
        )
        
        gains = sorted(
            (
                c for c in balance_changes
                if c.change > self.withdrawal_threshold and c.address not in self.pool_accounts
            ),
            key=lambda c: (-c.change, c.address),
        )
        if gains and gains[0].address != fee_payer:
            largest_gain = gains[0]
            return Withdrawal(
                signature=signature,
                timestamp=timestamp,
                amount=largest_gain.change,
                recipient=largest_gain.address,
                pool_account=pool_account,
                fee=0,  # not recoverable from balance flow
            )
        
        losses = sorted(
            (c for c in balance_changes if c.change < -self.deposit_threshold),
            key=lambda c: (c.change, c.address),
        )
        if losses and losses[0].address == fee_payer:
            return Deposit(
                signature=signature,
                timestamp=timestamp,
                amount=-losses[0].change,
                depositor=fee_payer,
                pool_account=pool_account,
            )
        
        return None
    
    def protocol_name(self) -> str:
        return "Privacy Cash"


class ParserRegistry:
    """
    Maps protocol ids to parser classes and builds configured parsers.
    
    Thresholds and pool accounts come from the protocol registry when the
    protocol is known there; explicit arguments to ``create`` take precedence.
    """
    
    def __init__(self, protocols: Optional[ProtocolRegistry] = None):
        self.protocols = protocols if protocols is not None else ProtocolRegistry()
        self._parser_classes: Dict[str, Type[TransactionParser]] = {}
        self._parsers: Dict[str, TransactionParser] = {}
    
    def register(self, protocol_id: str, parser_class: Type[TransactionParser]) -> None:
        """
        Register a parser class for a protocol.
        
        Raises:
            ConfigurationError: If the class is not a TransactionParser
        """
        if not (isinstance(parser_class, type) and issubclass(parser_class, TransactionParser)):
            raise ConfigurationError(
                f"Parser for {protocol_id} must subclass TransactionParser"
            )
        self._parser_classes[protocol_id] = parser_class
        self._parsers.pop(protocol_id, None)
    
    def has(self, protocol_id: str) -> bool:
        return protocol_id in self._parser_classes
    
    def registered(self) -> List[str]:
        return list(self._parser_classes)
    
    def create(
        self,
        protocol_id: str,
        deposit_threshold: Optional[int] = None,
        withdrawal_threshold: Optional[int] = None,
    ) -> TransactionParser:
        """
        Instantiate the parser registered for a protocol.
        
        Raises:
            ConfigurationError: If no parser is registered for the protocol
        """
        parser_class = self._parser_classes.get(protocol_id)
        if parser_class is None:
            raise ConfigurationError(f"No parser registered for protocol: {protocol_id}")
        
        pool_accounts: List[str] = []
        if self.protocols.has(protocol_id):
            config = self.protocols.get(protocol_id)
            if deposit_threshold is None:
                deposit_threshold = config.deposit_threshold
            if withdrawal_threshold is None:
                withdrawal_threshold = config.withdrawal_threshold
            pool_accounts = config.pool_accounts
        
        return parser_class(
            deposit_threshold=DEFAULT_THRESHOLD if deposit_threshold is None else deposit_threshold,
            withdrawal_threshold=DEFAULT_THRESHOLD if withdrawal_threshold is None else withdrawal_threshold,
            pool_accounts=pool_accounts,
        )
    
    def get_parser(self, protocol_id: str) -> TransactionParser:
        """Get the cached parser for a protocol, creating it on first access."""
        if protocol_id not in self._parsers:
            self._parsers[protocol_id] = self.create(protocol_id)
        return self._parsers[protocol_id]
    
    def parse(
        self,
        protocol_id: str,
        signature: str,
        timestamp: int,
        fee_payer: str,
        balance_changes: Sequence[BalanceChange],
    ) -> ParsedRecord:
        """
        Parse one transaction and validate the resulting record.
        
        Records with malformed amounts are logged and dropped.
        
        Raises:
            ConfigurationError: If no parser is registered for the protocol
        """
        parser = self.get_parser(protocol_id)
        record = parser.parse(signature, timestamp, fee_payer, balance_changes)
        if record is None:
            return None
        
        try:
            amount = validate_amount(record.amount)
            if isinstance(record, Withdrawal):
                record = replace(record, amount=amount, fee=validate_amount(record.fee))
            else:
                record = replace(record, amount=amount)
        except MalformedRecordError as e:
            logger.warning(
                f"Dropping malformed {type(record).__name__.lower()} "
                f"{signature[:16]}... from {parser.protocol_name()}: {e}"
            )
            return None
        
        return record


def default_parser_registry(protocols: Optional[ProtocolRegistry] = None) -> ParserRegistry:
    """Parser registry with the built-in parsers registered."""
    registry = ParserRegistry(protocols)
    registry.register("privacy-cash", BalanceFlowParser)
    return registry
