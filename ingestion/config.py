"""Protocol configuration for the ingestion boundary.

Lists the privacy protocols the engine knows about and the thresholds their
parsers are built with. New protocols are added at runtime through
``ProtocolRegistry.register`` without touching the matchers.
"""

import os
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional
from dotenv import load_dotenv

from .errors import ConfigurationError

load_dotenv()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, str(default))
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from None


@dataclass
class ProtocolConfig:
    """Static description of one privacy protocol."""
    
    id: str
    name: str
    program_id: str
    description: str = ""
    enabled: bool = True
    pool_accounts: List[str] = field(default_factory=list)
    
    # Minimum lamports for a balance change to count as a deposit/withdrawal
    deposit_threshold: int = field(
        default_factory=lambda: _env_int("UNVEIL_DEPOSIT_THRESHOLD", 100_000)
    )
    withdrawal_threshold: int = field(
        default_factory=lambda: _env_int("UNVEIL_WITHDRAWAL_THRESHOLD", 100_000)
    )


# ShadowWire keeps one pool PDA per token
SHADOWWIRE_POOL_ADDRESSES: List[str] = [
    "ApfNmzrNXLUQ5yWpQVmrCB4MNsaRqjsFrLXViBq2rBU",  # SOL
    "3hShyAWTjsm63TnMHCVSerjwmvgtMmvCNSgyXqeQqFft",  # BONK
    "2nwRTVmRSPgLZcdvmUguftrpcnU4Lzg8Nm5dMT9AAazS",  # GOD
    "14kbizF6VZjSFLS21FjvgPYHz45oLzQBomhpiN89xFqv",  # USD1
    "HexBg3QDHTE5SKniXZgDARybQwnoEioDKxoUKBsxhtbT",
    "CCG1UCVWhGfZiCHsDYrts24aPD5e6PFFotaswHG1jf5E",
    "6ZKFfWG7HqJXhZy3Tcu8qMT25nme1JLDWCyQj5F4NNUM",
]


def default_protocols() -> List[ProtocolConfig]:
    """Protocols known out of the box. Only Privacy Cash has a parser today."""
    return [
        ProtocolConfig(
            id="privacy-cash",
            name="Privacy Cash",
            program_id="9fhQBbumKEFuXtMBDw8AaQyAjCorLGJQiS3skWZdQyQD",
            description="Anonymous SOL transfers, parsed from balance flow",
            pool_accounts=["4AV2Qzp3N4c9RfzyEbNZs2wqWfW4EwKnnxFAZCndvfGh"],
        ),
        ProtocolConfig(
            id="elusiv",
            name="Elusiv",
            program_id="ELUZRDWMpMNUW6Xq1CaRDgF31YWwZV4FmKALXBHGCFWk",
            description="ZK-SNARK privacy for SOL and SPL tokens",
            enabled=False,
        ),
        ProtocolConfig(
            id="light-protocol",
            name="Light Protocol",
            program_id="CbjvJc1SNx1aav8tU49dJGHu8EUdzQJSMtkjDmV8miqK",
            description="ZK compression for private transactions",
            enabled=False,
        ),
    ]


class ProtocolRegistry:
    """
    Registry of protocol configurations keyed by protocol id.
    
    Lookups of unknown ids raise ``ConfigurationError`` rather than falling
    back to a default protocol.
    """
    
    def __init__(self, protocols: Optional[List[ProtocolConfig]] = None):
        self._protocols: Dict[str, ProtocolConfig] = {}
        for config in (default_protocols() if protocols is None else protocols):
            self.register(config)
    
    def register(self, config: ProtocolConfig) -> None:
        """
        Register a protocol.
        
        Raises:
            ConfigurationError: If the id is already registered
        """
        if config.id in self._protocols:
            raise ConfigurationError(f"Protocol {config.id} already registered")
        self._protocols[config.id] = config
    
    def get(self, protocol_id: str) -> ProtocolConfig:
        """
        Get a protocol by id.
        
        Raises:
            ConfigurationError: If the id is unknown
        """
        try:
            return self._protocols[protocol_id]
        except KeyError:
            raise ConfigurationError(f"Unknown protocol: {protocol_id}") from None
    
    def has(self, protocol_id: str) -> bool:
        return protocol_id in self._protocols
    
    def all(self) -> List[ProtocolConfig]:
        return list(self._protocols.values())
    
    def enabled(self) -> List[ProtocolConfig]:
        return [p for p in self._protocols.values() if p.enabled]
    
    def by_program_id(self, program_id: str) -> Optional[ProtocolConfig]:
        """Find a protocol by its on-chain program id."""
        for config in self._protocols.values():
            if config.program_id == program_id:
                return config
        return None
    
    def enable(self, protocol_id: str) -> None:
        self._set_enabled(protocol_id, True)
    
    def disable(self, protocol_id: str) -> None:
        self._set_enabled(protocol_id, False)
    
    def _set_enabled(self, protocol_id: str, enabled: bool) -> None:
        self._protocols[protocol_id] = replace(self.get(protocol_id), enabled=enabled)
