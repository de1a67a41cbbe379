"""
Address-Visibility Detector - flags transfers that bypass the privacy pool.

A protocol that hides amounts but not counterparties leaks the link
directly: if both sides of a transfer are ordinary addresses, nothing is
left to correlate.
"""

import logging
from typing import Iterable, Optional

from ingestion.events import AddressLinkMatch
from ingestion.models import Transfer

logger = logging.getLogger(__name__)

HIDDEN_MARKERS = frozenset({"unknown", "pool"})


class AddressVisibilityDetector:
    """
    Stateless rule evaluated per transfer.
    
    Logic:
    1. An endpoint is hidden if it is empty, "unknown", "pool", or a known pool address.
    2. If neither endpoint is hidden, the transfer is linked with confidence 100
       and anonymity set 1.
    """
    
    def __init__(self, pool_addresses: Iterable[str] = ()):
        self.pool_addresses = frozenset(pool_addresses)
    
    def is_visible(self, address: Optional[str]) -> bool:
        """True if the address is a real, public counterparty."""
        if not address:
            return False
        return address not in HIDDEN_MARKERS and address not in self.pool_addresses
    
    def is_linked(self, transfer: Transfer) -> bool:
        return self.is_visible(transfer.sender) and self.is_visible(transfer.recipient)
    
    def detect(self, transfer: Transfer) -> Optional[AddressLinkMatch]:
        """
        Evaluate one transfer.
        
        Returns:
            AddressLinkMatch if both endpoints are visible, None otherwise
        """
        if not self.is_linked(transfer):
            return None
        
        logger.info(
            f"Address link: {transfer.sender[:16]}... -> {transfer.recipient[:16]}... "
            f"({transfer.signature[:16]}...)"
        )
        return AddressLinkMatch(
            signature=transfer.signature,
            timestamp=transfer.timestamp,
            sender=transfer.sender,
            recipient=transfer.recipient,
        )
