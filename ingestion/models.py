"""Shared transaction records produced by protocol parsers.

All amounts are integers in the smallest unit of the asset (lamports for SOL)
and all timestamps are Unix milliseconds.
"""

from dataclasses import dataclass, asdict
from typing import Optional
import json


@dataclass
class Deposit:
    """A deposit into a privacy pool.

    Only the ``spent*`` fields change after creation, and only once.
    """
    
    signature: str
    timestamp: int
    amount: int
    depositor: str
    pool_account: Optional[str] = None
    spent: bool = False
    spent_at: Optional[int] = None
    linked_withdrawal_signature: Optional[str] = None
    
    def mark_spent(self, withdrawal_signature: str, spent_at: int) -> None:
        """
        Record that a correlation consumer linked this deposit to a withdrawal.
        
        Args:
            withdrawal_signature: Signature of the consuming withdrawal
            spent_at: Withdrawal timestamp (ms)
            
        Raises:
            ValueError: If the deposit was already marked spent
        """
        if self.spent:
            raise ValueError(
                f"Deposit {self.signature} already linked to "
                f"{self.linked_withdrawal_signature}"
            )
        self.spent = True
        self.spent_at = spent_at
        self.linked_withdrawal_signature = withdrawal_signature
    
    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return asdict(self)
    
    def to_json(self) -> str:
        """Serialize to JSON."""
        return json.dumps(self.to_dict())
    
    @classmethod
    def from_json(cls, data: str) -> "Deposit":
        """Deserialize from JSON."""
        parsed = json.loads(data)
        return cls(
            signature=parsed["signature"],
            timestamp=int(parsed["timestamp"]),
            amount=int(parsed["amount"]),
            depositor=parsed["depositor"],
            pool_account=parsed.get("pool_account"),
            spent=parsed.get("spent", False),
            spent_at=parsed.get("spent_at"),
            linked_withdrawal_signature=parsed.get("linked_withdrawal_signature"),
        )


@dataclass(frozen=True)
class Withdrawal:
    """A withdrawal out of a privacy pool."""
    
    signature: str
    timestamp: int
    amount: int
    recipient: str
    pool_account: Optional[str] = None
    fee: int = 0
    
    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return asdict(self)
    
    def to_json(self) -> str:
        """Serialize to JSON."""
        return json.dumps(self.to_dict())
    
    @classmethod
    def from_json(cls, data: str) -> "Withdrawal":
        """Deserialize from JSON."""
        parsed = json.loads(data)
        return cls(
            signature=parsed["signature"],
            timestamp=int(parsed["timestamp"]),
            amount=int(parsed["amount"]),
            recipient=parsed["recipient"],
            pool_account=parsed.get("pool_account"),
            fee=int(parsed.get("fee", 0)),
        )


@dataclass(frozen=True)
class Transfer:
    """A protocol-agnostic two-party movement (e.g. a ShadowWire transfer)."""
    
    signature: str
    timestamp: int
    sender: str
    recipient: str
    amount_hidden: bool = True
    amount: Optional[int] = None
    
    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return asdict(self)


@dataclass(frozen=True)
class SwapInput:
    """Funds entering a relay-style swap (user wallet -> facilitator)."""
    
    signature: str
    timestamp: int
    amount: int
    wallet: str
    
    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return asdict(self)


@dataclass(frozen=True)
class SwapOutput:
    """Funds leaving a relay-style swap (facilitator -> destination)."""
    
    signature: str
    timestamp: int
    amount: int
    wallet: str
    
    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return asdict(self)


@dataclass(frozen=True)
class BalanceChange:
    """Net lamport change of one account inside a transaction."""
    
    address: str
    change: int  # positive = received, negative = sent
    pre_balance: int = 0
    post_balance: int = 0
