"""Sliding-Window Fee Correlator - links relay swap inputs to outputs."""

import bisect
import logging
import threading
import time
from decimal import Decimal, ROUND_HALF_UP
from typing import Callable, List, Optional

from ingestion.events import AmountCorrelationMatch
from ingestion.models import SwapInput, SwapOutput
from .config import ClockSource, FeeCorrelatorConfig, DEFAULT_CONFIG

logger = logging.getLogger(__name__)


def wall_clock_ms() -> int:
    return int(time.time() * 1000)


def _round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class SlidingWindowFeeCorrelator:
    """
    Correlates swap inputs to outputs of a relay that charges a fixed fee.
    
    Recent inputs are kept in a window ordered by their own timestamp. An
    input expires once it is WINDOW_MS older than "now", which is the wall
    clock (WALL) or the latest observed event timestamp (EVENT). Pruning is a
    binary search plus a slice delete.
    
    An output is checked against every input still in the window:
    1. output.timestamp - input.timestamp must lie in [MIN_DELTA_MS, MAX_DELTA_MS]
    2. |output/input - (1 - EXPECTED_FEE)| must not exceed FEE_TOLERANCE
    3. confidence = round(max(0, 1 - deviation / MAX_DEVIATION_FOR_ZERO_CONFIDENCE) × 100)
       must exceed MIN_CONFIDENCE
    
    Every qualifying input is reported, and inputs are never consumed: an
    ambiguous relay shows up as several matches for one output.
    """
    
    def __init__(
        self,
        config: FeeCorrelatorConfig = DEFAULT_CONFIG,
        clock: Optional[Callable[[], int]] = None,
    ):
        """
        Initialize the correlator.
        
        Args:
            config: Window, timing and fee parameters
            clock: Millisecond wall clock, used when CLOCK_SOURCE is WALL
        """
        self.config = config
        self._clock = clock or wall_clock_ms
        
        # Parallel lists kept sorted by input timestamp
        self._stamps: List[int] = []
        self._inputs: List[SwapInput] = []
        
        self._latest_event_ms: Optional[int] = None
        self._lock = threading.Lock()
    
    def add_input(self, swap_input: SwapInput) -> None:
        """Add an input to the window and prune expired inputs."""
        with self._lock:
            self._observe(swap_input.timestamp)
            stamp = swap_input.timestamp
            
            idx = bisect.bisect_right(self._stamps, stamp)
            self._stamps.insert(idx, stamp)
            self._inputs.insert(idx, swap_input)
            self._prune()
        
        logger.debug(
            f"Swap input {swap_input.signature[:16]}... windowed "
            f"({len(self._inputs)} in window)"
        )
    
    def match_output(self, output: SwapOutput) -> List[AmountCorrelationMatch]:
        """
        Find every windowed input that plausibly produced this output.
        
        Args:
            output: The swap output to correlate
            
        Returns:
            Matches in window order (may be empty)
        """
        with self._lock:
            self._observe(output.timestamp)
            self._prune()
            candidates = list(self._inputs)
        
        matches = []
        for swap_input in candidates:
            match = self._evaluate(swap_input, output)
            if match is not None:
                matches.append(match)
        
        if matches:
            logger.info(
                f"Swap output {output.signature[:16]}... correlated with "
                f"{len(matches)} input(s), best confidence "
                f"{max(m.confidence for m in matches)}"
            )
        return matches
    
    def window(self) -> List[SwapInput]:
        """Inputs currently in the window, oldest stamp first."""
        with self._lock:
            return list(self._inputs)
    
    def __len__(self) -> int:
        with self._lock:
            return len(self._inputs)
    
    def _observe(self, timestamp: int) -> None:
        if self._latest_event_ms is None or timestamp > self._latest_event_ms:
            self._latest_event_ms = timestamp
    
    def _now(self) -> int:
        if self.config.CLOCK_SOURCE == ClockSource.EVENT:
            return self._latest_event_ms if self._latest_event_ms is not None else 0
        return self._clock()
    
    def _prune(self) -> None:
        cutoff = self._now() - self.config.WINDOW_MS
        idx = bisect.bisect_right(self._stamps, cutoff)
        if idx:
            del self._stamps[:idx]
            del self._inputs[:idx]
            logger.debug(f"Pruned {idx} expired swap input(s)")
    
    def _evaluate(
        self,
        swap_input: SwapInput,
        output: SwapOutput,
    ) -> Optional[AmountCorrelationMatch]:
        time_delta = output.timestamp - swap_input.timestamp
        if time_delta < self.config.MIN_DELTA_MS or time_delta > self.config.MAX_DELTA_MS:
            return None
        if swap_input.amount <= 0:
            return None
        
        amount_ratio = Decimal(output.amount) / Decimal(swap_input.amount)
        expected_ratio = Decimal("1") - self.config.EXPECTED_FEE
        deviation = abs(amount_ratio - expected_ratio)
        if deviation > self.config.FEE_TOLERANCE:
            return None
        
        score = max(
            Decimal("0"),
            Decimal("1") - deviation / self.config.MAX_DEVIATION_FOR_ZERO_CONFIDENCE,
        )
        confidence = _round_half_up(score * 100)
        if confidence <= self.config.MIN_CONFIDENCE:
            return None
        
        return AmountCorrelationMatch(
            input_signature=swap_input.signature,
            output_signature=output.signature,
            time_delta_seconds=_round_half_up(Decimal(time_delta) / 1000),
            amount_ratio=amount_ratio,
            confidence=confidence,
        )
