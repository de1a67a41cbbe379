"""In-memory deposit index used by the timing correlation attack."""

import logging
import threading
from collections import defaultdict
from typing import Dict, Iterable, List, Optional

from ingestion.models import Deposit

logger = logging.getLogger(__name__)


class DepositIndex:
    """
    All deposits seen so far, in arrival order, with an amount lookup.
    
    Deposits may arrive out of chronological order; the index keeps arrival
    order and never sorts. Callers get copies of the internal lists, so the
    index is only mutated through ``build``, ``insert`` and ``mark_spent``.
    """
    
    def __init__(self):
        self._deposits: List[Deposit] = []
        self._by_amount: Dict[int, List[Deposit]] = defaultdict(list)
        self._by_signature: Dict[str, Deposit] = {}
        self._lock = threading.Lock()
    
    def build(self, initial_deposits: Iterable[Deposit]) -> int:
        """
        Replace the index with a bulk snapshot.
        
        Args:
            initial_deposits: Deposits to load (e.g. most recent N from storage)
            
        Returns:
            Number of deposits indexed
        """
        with self._lock:
            self._deposits = []
            self._by_amount = defaultdict(list)
            self._by_signature = {}
            for deposit in initial_deposits:
                self._append(deposit)
            count = len(self._deposits)
        
        logger.info(f"Deposit index built with {count} deposits")
        return count
    
    def insert(self, deposit: Deposit) -> None:
        """Append a newly observed deposit."""
        with self._lock:
            self._append(deposit)
    
    def _append(self, deposit: Deposit) -> None:
        self._deposits.append(deposit)
        self._by_amount[deposit.amount].append(deposit)
        self._by_signature.setdefault(deposit.signature, deposit)
    
    def by_amount(self, amount: int) -> List[Deposit]:
        """Deposits with exactly this amount, in insertion order."""
        with self._lock:
            return list(self._by_amount.get(amount, ()))
    
    def all(self) -> List[Deposit]:
        """Every indexed deposit, in insertion order."""
        with self._lock:
            return list(self._deposits)
    
    def get(self, signature: str) -> Optional[Deposit]:
        with self._lock:
            return self._by_signature.get(signature)
    
    def mark_spent(self, signature: str, withdrawal_signature: str, spent_at: int) -> bool:
        """
        Link an indexed deposit to the withdrawal that consumed it.
        
        Returns:
            False if the deposit is not indexed
            
        Raises:
            ValueError: If the deposit was already marked spent
        """
        with self._lock:
            deposit = self._by_signature.get(signature)
            if deposit is None:
                return False
            deposit.mark_spent(withdrawal_signature, spent_at)
            return True
    
    def __len__(self) -> int:
        with self._lock:
            return len(self._deposits)
