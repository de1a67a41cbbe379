"""
Realtime Analyzer - wires the matchers to the event bus.

This module:
1. Seeds the deposit index from a one-shot snapshot at start-up
2. Indexes every new deposit and announces index/metrics updates
3. Runs the Timing Correlation Attack on every withdrawal
4. Runs the Address-Visibility Detector on every private transfer
5. Runs the Sliding-Window Fee Correlator on swap inputs/outputs
6. Publishes every linkage as match:found
"""

import logging
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Protocol

from ingestion.bus import EventBus, Subscription
from ingestion.config import SHADOWWIRE_POOL_ADDRESSES
from ingestion.events import (
    EventType,
    MatchType,
    DepositEvent,
    WithdrawalEvent,
    TransferEvent,
    SwapInputEvent,
    SwapOutputEvent,
    MatchFoundEvent,
    IndexUpdatedEvent,
    MetricsUpdatedEvent,
)
from ingestion.models import Deposit

from .config.settings import EngineSettings
from .correlation.config import DEFAULT_CONFIG as DEFAULT_FEE_CONFIG, FeeCorrelatorConfig
from .correlation.engine import SlidingWindowFeeCorrelator
from .deposit_index import DepositIndex
from .matcher.config import DEFAULT_CONFIG as DEFAULT_TIMING_CONFIG, TimingAttackConfig
from .matcher.matcher import TimingCorrelationAttack
from .visibility import AddressVisibilityDetector

logger = logging.getLogger(__name__)

DEFAULT_SNAPSHOT_LIMIT = 100_000


class DepositSnapshotSource(Protocol):
    """Protocol for the store that supplies the start-up deposit snapshot."""
    async def fetch_recent_deposits(self, limit: int) -> List[Deposit]: ...


class RealtimeAnalyzer:
    """
    Event-driven correlation engine.

    Owns the deposit index and the swap window; nothing else mutates them.
    Every handler is synchronous and short, so events are processed strictly
    in publish order.

    Example:
        bus = EventBus()
        analyzer = RealtimeAnalyzer(bus, snapshot_source=store)
        await analyzer.start()
        bus.publish(EventType.WITHDRAWAL_NEW, WithdrawalEvent(withdrawal, "Privacy Cash"))
    """

    def __init__(
        self,
        bus: EventBus,
        snapshot_source: Optional[DepositSnapshotSource] = None,
        timing_config: TimingAttackConfig = DEFAULT_TIMING_CONFIG,
        protocol_timing_configs: Optional[Mapping[str, TimingAttackConfig]] = None,
        fee_config: FeeCorrelatorConfig = DEFAULT_FEE_CONFIG,
        clock: Optional[Callable[[], int]] = None,
        pool_addresses: Iterable[str] = SHADOWWIRE_POOL_ADDRESSES,
        snapshot_limit: int = DEFAULT_SNAPSHOT_LIMIT,
    ):
        """
        Initialize the analyzer.

        Args:
            bus: Event bus to subscribe to and publish on
            snapshot_source: Store for the start-up deposit snapshot (optional)
            timing_config: Timing attack calibration for protocols without their own
            protocol_timing_configs: Per-protocol timing attack calibration
            fee_config: Fee correlator parameters
            clock: Millisecond wall clock for the fee correlator window
            pool_addresses: Addresses that reveal nothing about a transfer party
            snapshot_limit: Maximum deposits to load at start-up
        """
        self.bus = bus
        self.snapshot_source = snapshot_source
        self.snapshot_limit = snapshot_limit

        self.index = DepositIndex()
        self.timing_attack = TimingCorrelationAttack(timing_config)
        self._protocol_attacks: Dict[str, TimingCorrelationAttack] = {
            protocol: TimingCorrelationAttack(config)
            for protocol, config in (protocol_timing_configs or {}).items()
        }
        self.visibility = AddressVisibilityDetector(pool_addresses)
        self.fee_correlator = SlidingWindowFeeCorrelator(fee_config, clock=clock)

        self._subscriptions: List[Subscription] = []
        self._running = False

    @classmethod
    def from_settings(
        cls,
        bus: EventBus,
        settings: EngineSettings,
        snapshot_source: Optional[DepositSnapshotSource] = None,
        **kwargs,
    ) -> "RealtimeAnalyzer":
        """Build an analyzer from environment-derived settings."""
        return cls(
            bus,
            snapshot_source=snapshot_source,
            timing_config=settings.timing,
            fee_config=settings.fee,
            snapshot_limit=settings.snapshot_limit,
            **kwargs,
        )

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Seed the deposit index and start listening for events."""
        if self._running:
            logger.warning("Realtime analyzer already running")
            return

        logger.info("Starting realtime analyzer...")
        await self._load_snapshot()

        self._subscriptions = [
            self.bus.subscribe(EventType.DEPOSIT_NEW, self.on_deposit),
            self.bus.subscribe(EventType.WITHDRAWAL_NEW, self.on_withdrawal),
            self.bus.subscribe(EventType.TRANSFER_NEW, self.on_transfer),
            self.bus.subscribe(EventType.SWAP_INPUT, self.on_swap_input),
            self.bus.subscribe(EventType.SWAP_OUTPUT, self.on_swap_output),
        ]
        self._running = True
        logger.info(f"Realtime analyzer started with {len(self.index)} indexed deposits")

    def stop(self) -> None:
        """Stop listening. The index and window are kept."""
        for token in self._subscriptions:
            self.bus.unsubscribe(token)
        self._subscriptions = []
        self._running = False
        logger.info("Realtime analyzer stopped")

    async def _load_snapshot(self) -> None:
        if self.snapshot_source is None:
            logger.warning("No deposit snapshot source - starting with an empty index")
            self.index.build([])
            return

        try:
            deposits = await self.snapshot_source.fetch_recent_deposits(self.snapshot_limit)
        except Exception as e:
            logger.warning(f"Deposit snapshot unavailable: {e} - starting with an empty index")
            self.index.build([])
            return

        self.index.build(deposits or [])

    def attack_for(self, protocol: str) -> TimingCorrelationAttack:
        """Timing attack calibrated for a protocol, or the default one."""
        return self._protocol_attacks.get(protocol, self.timing_attack)

    # =========================================================================
    # Handlers
    # =========================================================================

    def on_deposit(self, event: DepositEvent) -> None:
        deposit = event.deposit
        self.index.insert(deposit)

        self.bus.publish(EventType.INDEX_UPDATED, IndexUpdatedEvent(
            protocol=event.protocol,
            total_deposits=len(self.index),
            same_amount_count=len(self.index.by_amount(deposit.amount)),
        ))
        self.bus.publish(EventType.METRICS_UPDATED, MetricsUpdatedEvent(protocol=event.protocol))

    def on_withdrawal(self, event: WithdrawalEvent) -> None:
        withdrawal = event.withdrawal
        attack = self.attack_for(event.protocol)
        result = attack.analyze_withdrawal(withdrawal, self.index.all())

        if not attack.should_report(result):
            logger.debug(
                f"Withdrawal {withdrawal.signature[:16]}... not reported "
                f"(anonymity set {result.anonymity_set})"
            )
            return

        match = result.to_match()
        logger.info(
            f"Timing match: withdrawal {withdrawal.signature[:16]}... <- deposit "
            f"{match.top_source_signature[:16]}... "
            f"({result.vulnerability_level.value}, confidence {match.confidence})"
        )
        self._publish_match(MatchType.TIMING_ATTACK, match, event.protocol)

    def on_transfer(self, event: TransferEvent) -> None:
        match = self.visibility.detect(event.transfer)
        if match is not None:
            self._publish_match(MatchType.ADDRESS_LINK, match, event.protocol)

    def on_swap_input(self, event: SwapInputEvent) -> None:
        self.fee_correlator.add_input(event.input)

    def on_swap_output(self, event: SwapOutputEvent) -> None:
        for match in self.fee_correlator.match_output(event.output):
            self._publish_match(MatchType.AMOUNT_CORRELATION, match, event.protocol)

    def _publish_match(self, match_type: MatchType, match, protocol: str) -> None:
        self.bus.publish(
            EventType.MATCH_FOUND,
            MatchFoundEvent(type=match_type, match=match, protocol=protocol),
        )
