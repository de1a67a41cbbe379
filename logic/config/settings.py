"""
Runtime settings for the correlation engine.

Overrides come from the environment (a ``.env`` file is loaded first), all
prefixed ``UNVEIL_``:

    UNVEIL_LOG_LEVEL               INFO
    UNVEIL_LOG_FILE                (unset: console only)
    UNVEIL_SNAPSHOT_LIMIT          100000
    UNVEIL_TIMING_EXPECTED_FEE     0.01
    UNVEIL_TIMING_AMOUNT_WEIGHT    0.7
    UNVEIL_TIMING_TIMING_WEIGHT    0.3
    UNVEIL_TIMING_LOOKBACK_DAYS    30
    UNVEIL_TIMING_MIN_RELEVANCE    0.75
    UNVEIL_SWAP_WINDOW_MS          600000
    UNVEIL_SWAP_EXPECTED_FEE       0.01
    UNVEIL_SWAP_FEE_TOLERANCE      0.005
    UNVEIL_SWAP_MIN_CONFIDENCE     60
    UNVEIL_CLOCK_SOURCE            wall | event
"""

import logging
import os
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Mapping, Optional

from dotenv import load_dotenv

from ingestion.errors import ConfigurationError
from logic.correlation.config import ClockSource, FeeCorrelatorConfig
from logic.matcher.config import DAY_MS, TimingAttackConfig

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'

PREFIX = "UNVEIL_"


def configure_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """
    Install the engine's log format on the root logger.
    
    Args:
        level: Logging level name
        log_file: Also write logs to this file (optional)
    """
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logging.getLogger().addHandler(file_handler)


def _get(environ: Mapping[str, str], name: str) -> Optional[str]:
    value = environ.get(PREFIX + name)
    if value is None or value.strip() == "":
        return None
    return value.strip()


def _decimal(environ: Mapping[str, str], name: str, default: Decimal) -> Decimal:
    value = _get(environ, name)
    if value is None:
        return default
    try:
        return Decimal(value)
    except InvalidOperation:
        raise ConfigurationError(f"{PREFIX}{name} must be a decimal, got {value!r}")


def _int(environ: Mapping[str, str], name: str, default: int) -> int:
    value = _get(environ, name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"{PREFIX}{name} must be an integer, got {value!r}")


@dataclass
class EngineSettings:
    """Everything needed to build a RealtimeAnalyzer."""
    
    log_level: str = "INFO"
    log_file: Optional[str] = None
    snapshot_limit: int = 100_000
    timing: TimingAttackConfig = field(default_factory=TimingAttackConfig)
    fee: FeeCorrelatorConfig = field(default_factory=FeeCorrelatorConfig)
    
    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "EngineSettings":
        """
        Load settings from the environment.
        
        Args:
            environ: Mapping to read instead of ``os.environ`` (skips ``.env``)
            
        Raises:
            ConfigurationError: If a variable cannot be parsed, or the timing
                weights do not favour amount over timing
        """
        if environ is None:
            load_dotenv()
            environ = os.environ
        
        defaults_timing = TimingAttackConfig()
        timing = TimingAttackConfig(
            EXPECTED_FEE=_decimal(environ, "TIMING_EXPECTED_FEE", defaults_timing.EXPECTED_FEE),
            AMOUNT_WEIGHT=_decimal(environ, "TIMING_AMOUNT_WEIGHT", defaults_timing.AMOUNT_WEIGHT),
            TIMING_WEIGHT=_decimal(environ, "TIMING_TIMING_WEIGHT", defaults_timing.TIMING_WEIGHT),
            LOOKBACK_MS=_int(
                environ, "TIMING_LOOKBACK_DAYS", defaults_timing.LOOKBACK_MS // DAY_MS
            ) * DAY_MS,
            MIN_RELEVANCE=_decimal(environ, "TIMING_MIN_RELEVANCE", defaults_timing.MIN_RELEVANCE),
        )
        if timing.AMOUNT_WEIGHT <= timing.TIMING_WEIGHT:
            raise ConfigurationError(
                f"{PREFIX}TIMING_AMOUNT_WEIGHT must exceed {PREFIX}TIMING_TIMING_WEIGHT, "
                f"got {timing.AMOUNT_WEIGHT} <= {timing.TIMING_WEIGHT}"
            )
        
        clock_value = _get(environ, "CLOCK_SOURCE") or ClockSource.WALL.value
        try:
            clock_source = ClockSource(clock_value.lower())
        except ValueError:
            raise ConfigurationError(
                f"{PREFIX}CLOCK_SOURCE must be 'wall' or 'event', got {clock_value!r}"
            )
        
        defaults_fee = FeeCorrelatorConfig()
        fee = FeeCorrelatorConfig(
            WINDOW_MS=_int(environ, "SWAP_WINDOW_MS", defaults_fee.WINDOW_MS),
            EXPECTED_FEE=_decimal(environ, "SWAP_EXPECTED_FEE", defaults_fee.EXPECTED_FEE),
            FEE_TOLERANCE=_decimal(environ, "SWAP_FEE_TOLERANCE", defaults_fee.FEE_TOLERANCE),
            MIN_CONFIDENCE=_int(environ, "SWAP_MIN_CONFIDENCE", defaults_fee.MIN_CONFIDENCE),
            CLOCK_SOURCE=clock_source,
        )
        
        return cls(
            log_level=(_get(environ, "LOG_LEVEL") or "INFO").upper(),
            log_file=_get(environ, "LOG_FILE"),
            snapshot_limit=_int(environ, "SNAPSHOT_LIMIT", 100_000),
            timing=timing,
            fee=fee,
        )
    
    def configure_logging(self) -> None:
        configure_logging(self.log_level, self.log_file)
