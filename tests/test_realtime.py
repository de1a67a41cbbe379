"""Tests for the Realtime Analyzer."""

import pytest
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

from ingestion.bus import EventBus
from ingestion.events import (
    EventType,
    MatchType,
    VulnerabilityLevel,
    DepositEvent,
    WithdrawalEvent,
    TransferEvent,
    SwapInputEvent,
    SwapOutputEvent,
)
from ingestion.models import Deposit, Withdrawal, Transfer, SwapInput, SwapOutput
from logic.config.settings import EngineSettings
from logic.matcher.config import TimingAttackConfig
from logic.realtime import RealtimeAnalyzer


T0 = 1_700_000_000_000  # Unix ms
INBOUND_TOPICS = [
    EventType.DEPOSIT_NEW,
    EventType.WITHDRAWAL_NEW,
    EventType.TRANSFER_NEW,
    EventType.SWAP_INPUT,
    EventType.SWAP_OUTPUT,
]


def make_deposit(signature: str = "deposit_sig_0001", amount: int = 10_500_000_000, offset_ms: int = 0) -> Deposit:
    return Deposit(signature=signature, timestamp=T0 + offset_ms, amount=amount, depositor="depositor1")


def make_withdrawal(amount: int = 10_400_000_000, offset_ms: int = 47_000) -> Withdrawal:
    return Withdrawal(signature="withdrawal_sig_0001", timestamp=T0 + offset_ms, amount=amount, recipient="recipient1")


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def snapshot_source():
    """Store returning one 10.5 SOL deposit."""
    source = AsyncMock()
    source.fetch_recent_deposits = AsyncMock(return_value=[make_deposit()])
    return source


@pytest.fixture
def clock():
    return MagicMock(return_value=T0)


@pytest.fixture
def analyzer(bus, snapshot_source, clock):
    return RealtimeAnalyzer(bus, snapshot_source=snapshot_source, clock=clock)


@pytest.fixture
def captured(bus):
    """Collect outbound events by topic."""
    events = {EventType.MATCH_FOUND: [], EventType.INDEX_UPDATED: [], EventType.METRICS_UPDATED: []}
    for topic, sink in events.items():
        bus.subscribe(topic, sink.append)
    return events


# ============================================================================
# Lifecycle
# ============================================================================

class TestLifecycle:
    """Tests for start/stop."""
    
    @pytest.mark.asyncio
    async def test_start_seeds_index(self, analyzer, bus, snapshot_source):
        await analyzer.start()
        
        snapshot_source.fetch_recent_deposits.assert_awaited_once_with(100_000)
        assert len(analyzer.index) == 1
        assert analyzer.running is True
        for topic in INBOUND_TOPICS:
            assert bus.subscriber_count(topic) == 1
    
    @pytest.mark.asyncio
    async def test_snapshot_failure_starts_empty(self, bus, caplog):
        """An unavailable store is not fatal."""
        source = AsyncMock()
        source.fetch_recent_deposits = AsyncMock(side_effect=ConnectionError("store down"))
        analyzer = RealtimeAnalyzer(bus, snapshot_source=source)
        
        await analyzer.start()
        
        assert len(analyzer.index) == 0
        assert analyzer.running is True
        assert "store down" in caplog.text
    
    @pytest.mark.asyncio
    async def test_without_snapshot_source(self, bus):
        analyzer = RealtimeAnalyzer(bus)
        
        await analyzer.start()
        
        assert len(analyzer.index) == 0
        assert analyzer.running is True
    
    @pytest.mark.asyncio
    async def test_start_twice(self, analyzer, bus, snapshot_source):
        await analyzer.start()
        await analyzer.start()
        
        snapshot_source.fetch_recent_deposits.assert_awaited_once()
        assert bus.subscriber_count(EventType.DEPOSIT_NEW) == 1
    
    @pytest.mark.asyncio
    async def test_stop_unsubscribes(self, analyzer, bus, captured):
        await analyzer.start()
        analyzer.stop()
        
        for topic in INBOUND_TOPICS:
            assert bus.subscriber_count(topic) == 0
        assert analyzer.running is False
        
        bus.publish(EventType.WITHDRAWAL_NEW, WithdrawalEvent(make_withdrawal(), "Privacy Cash"))
        assert captured[EventType.MATCH_FOUND] == []
    
    @pytest.mark.asyncio
    async def test_from_settings(self, bus, snapshot_source):
        settings = EngineSettings(snapshot_limit=5)
        analyzer = RealtimeAnalyzer.from_settings(bus, settings, snapshot_source=snapshot_source)
        
        await analyzer.start()
        
        snapshot_source.fetch_recent_deposits.assert_awaited_once_with(5)


# ============================================================================
# Event handling
# ============================================================================

class TestEventHandling:
    """End-to-end tests through the bus."""
    
    @pytest.mark.asyncio
    async def test_withdrawal_produces_timing_match(self, analyzer, bus, captured):
        await analyzer.start()
        
        bus.publish(EventType.WITHDRAWAL_NEW, WithdrawalEvent(make_withdrawal(), "Privacy Cash"))
        
        matches = captured[EventType.MATCH_FOUND]
        assert len(matches) == 1
        event = matches[0]
        assert event.type == MatchType.TIMING_ATTACK
        assert event.protocol == "Privacy Cash"
        assert event.match.anonymity_set == 1
        assert event.match.vulnerability_level == VulnerabilityLevel.CRITICAL
        assert event.match.top_source_signature == "deposit_sig_0001"
        assert event.match.confidence >= Decimal("0.9")
    
    @pytest.mark.asyncio
    async def test_withdrawal_without_sources(self, analyzer, bus, captured):
        await analyzer.start()
        
        bus.publish(
            EventType.WITHDRAWAL_NEW,
            WithdrawalEvent(make_withdrawal(amount=77_000_000), "Privacy Cash"),
        )
        
        assert captured[EventType.MATCH_FOUND] == []
    
    @pytest.mark.asyncio
    async def test_deposit_updates_index(self, analyzer, bus, captured):
        await analyzer.start()
        
        bus.publish(
            EventType.DEPOSIT_NEW,
            DepositEvent(make_deposit("deposit_sig_0002", offset_ms=1_000), "Privacy Cash"),
        )
        
        assert len(analyzer.index) == 2
        index_event = captured[EventType.INDEX_UPDATED][0]
        assert index_event.protocol == "Privacy Cash"
        assert index_event.total_deposits == 2
        assert index_event.same_amount_count == 2
        assert [e.protocol for e in captured[EventType.METRICS_UPDATED]] == ["Privacy Cash"]
    
    @pytest.mark.asyncio
    async def test_new_deposit_widens_anonymity_set(self, analyzer, bus, captured):
        await analyzer.start()
        bus.publish(
            EventType.DEPOSIT_NEW,
            DepositEvent(make_deposit("deposit_sig_0002", offset_ms=1_000), "Privacy Cash"),
        )
        
        bus.publish(EventType.WITHDRAWAL_NEW, WithdrawalEvent(make_withdrawal(), "Privacy Cash"))
        
        match = captured[EventType.MATCH_FOUND][0].match
        assert match.anonymity_set == 2
        assert match.vulnerability_level == VulnerabilityLevel.HIGH
    
    @pytest.mark.asyncio
    async def test_transfer_link(self, analyzer, bus, captured):
        await analyzer.start()
        
        bus.publish(EventType.TRANSFER_NEW, TransferEvent(
            Transfer(signature="t1", timestamp=T0, sender="pool", recipient="0xABC")
        ))
        bus.publish(EventType.TRANSFER_NEW, TransferEvent(
            Transfer(signature="t2", timestamp=T0, sender="SenderWallet", recipient="RecipientWallet")
        ))
        
        matches = captured[EventType.MATCH_FOUND]
        assert len(matches) == 1
        assert matches[0].type == MatchType.ADDRESS_LINK
        assert matches[0].protocol == "ShadowWire"
        assert matches[0].match.signature == "t2"
    
    @pytest.mark.asyncio
    async def test_swap_correlation(self, analyzer, bus, captured, clock):
        await analyzer.start()
        
        bus.publish(EventType.SWAP_INPUT, SwapInputEvent(
            SwapInput(signature="in_1", timestamp=T0, amount=1_000_000_000, wallet="user")
        ))
        clock.return_value = T0 + 60_000
        bus.publish(EventType.SWAP_OUTPUT, SwapOutputEvent(
            SwapOutput(signature="out_1", timestamp=T0 + 60_000, amount=990_000_000, wallet="dest")
        ))
        
        matches = captured[EventType.MATCH_FOUND]
        assert len(matches) == 1
        assert matches[0].type == MatchType.AMOUNT_CORRELATION
        assert matches[0].protocol == "SilentSwap"
        assert matches[0].match.confidence == 100
    
    @pytest.mark.asyncio
    async def test_per_protocol_calibration(self, bus, snapshot_source, captured):
        """A protocol with a stricter calibration does not report weak links."""
        strict = TimingAttackConfig(MIN_RELEVANCE=Decimal("0.9999"))
        analyzer = RealtimeAnalyzer(
            bus,
            snapshot_source=snapshot_source,
            protocol_timing_configs={"Strict Pool": strict},
        )
        await analyzer.start()
        
        bus.publish(EventType.WITHDRAWAL_NEW, WithdrawalEvent(make_withdrawal(), "Strict Pool"))
        assert captured[EventType.MATCH_FOUND] == []
        
        bus.publish(EventType.WITHDRAWAL_NEW, WithdrawalEvent(make_withdrawal(), "Privacy Cash"))
        assert len(captured[EventType.MATCH_FOUND]) == 1
    
    @pytest.mark.asyncio
    async def test_failing_consumer_does_not_block_others(self, analyzer, bus):
        broken = MagicMock(side_effect=RuntimeError("dashboard down"))
        healthy = MagicMock()
        bus.subscribe(EventType.MATCH_FOUND, broken)
        bus.subscribe(EventType.MATCH_FOUND, healthy)
        await analyzer.start()
        
        bus.publish(EventType.WITHDRAWAL_NEW, WithdrawalEvent(make_withdrawal(), "Privacy Cash"))
        
        broken.assert_called_once()
        healthy.assert_called_once()
    
    @pytest.mark.asyncio
    async def test_deterministic_output(self, bus, snapshot_source):
        """Replaying the same events yields identical match payloads."""
        async def run():
            local_bus = EventBus()
            outputs = []
            local_bus.subscribe(EventType.MATCH_FOUND, lambda e: outputs.append(e.to_json()))
            analyzer = RealtimeAnalyzer(
                local_bus,
                snapshot_source=snapshot_source,
                clock=MagicMock(return_value=T0),
            )
            await analyzer.start()
            local_bus.publish(
                EventType.DEPOSIT_NEW,
                DepositEvent(make_deposit("deposit_sig_0002", offset_ms=2_000), "Privacy Cash"),
            )
            local_bus.publish(EventType.WITHDRAWAL_NEW, WithdrawalEvent(make_withdrawal(), "Privacy Cash"))
            local_bus.publish(EventType.SWAP_INPUT, SwapInputEvent(
                SwapInput(signature="in_1", timestamp=T0, amount=1_000_000_000, wallet="user")
            ))
            local_bus.publish(EventType.SWAP_OUTPUT, SwapOutputEvent(
                SwapOutput(signature="out_1", timestamp=T0 + 45_000, amount=991_000_000, wallet="dest")
            ))
            return outputs
        
        first = await run()
        second = await run()
        
        assert len(first) == 2
        assert first == second
