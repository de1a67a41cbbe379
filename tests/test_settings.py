"""Tests for runtime settings."""

import logging
import pytest
from decimal import Decimal

from ingestion.errors import ConfigurationError
from logic.config.settings import EngineSettings, configure_logging
from logic.correlation.config import ClockSource
from logic.matcher.config import DAY_MS


class TestEngineSettings:
    """Tests for EngineSettings.from_env."""
    
    def test_defaults(self):
        settings = EngineSettings.from_env({})
        
        assert settings.log_level == "INFO"
        assert settings.log_file is None
        assert settings.snapshot_limit == 100_000
        assert settings.timing.AMOUNT_WEIGHT == Decimal("0.7")
        assert settings.timing.LOOKBACK_MS == 30 * DAY_MS
        assert settings.fee.WINDOW_MS == 600_000
        assert settings.fee.CLOCK_SOURCE == ClockSource.WALL
    
    def test_overrides(self):
        settings = EngineSettings.from_env({
            "UNVEIL_LOG_LEVEL": "debug",
            "UNVEIL_SNAPSHOT_LIMIT": "500",
            "UNVEIL_TIMING_EXPECTED_FEE": "0.02",
            "UNVEIL_TIMING_LOOKBACK_DAYS": "7",
            "UNVEIL_TIMING_MIN_RELEVANCE": "0.8",
            "UNVEIL_SWAP_WINDOW_MS": "120000",
            "UNVEIL_SWAP_MIN_CONFIDENCE": "70",
            "UNVEIL_CLOCK_SOURCE": "EVENT",
        })
        
        assert settings.log_level == "DEBUG"
        assert settings.snapshot_limit == 500
        assert settings.timing.EXPECTED_FEE == Decimal("0.02")
        assert settings.timing.LOOKBACK_MS == 7 * DAY_MS
        assert settings.timing.MIN_RELEVANCE == Decimal("0.8")
        assert settings.fee.WINDOW_MS == 120_000
        assert settings.fee.MIN_CONFIDENCE == 70
        assert settings.fee.CLOCK_SOURCE == ClockSource.EVENT
    
    def test_blank_values_use_defaults(self):
        settings = EngineSettings.from_env({"UNVEIL_SNAPSHOT_LIMIT": "  "})
        
        assert settings.snapshot_limit == 100_000
    
    @pytest.mark.parametrize("name,value", [
        ("UNVEIL_SNAPSHOT_LIMIT", "lots"),
        ("UNVEIL_TIMING_EXPECTED_FEE", "one percent"),
        ("UNVEIL_CLOCK_SOURCE", "sundial"),
    ])
    def test_invalid_values(self, name, value):
        with pytest.raises(ConfigurationError):
            EngineSettings.from_env({name: value})

    @pytest.mark.parametrize("amount_weight,timing_weight", [
        ("0.2", "0.8"),
        ("0.5", "0.5"),
    ])
    def test_timing_must_not_outweigh_amount(self, amount_weight, timing_weight):
        """Timing proximity only breaks ties between amount matches."""
        with pytest.raises(ConfigurationError, match="AMOUNT_WEIGHT"):
            EngineSettings.from_env({
                "UNVEIL_TIMING_AMOUNT_WEIGHT": amount_weight,
                "UNVEIL_TIMING_TIMING_WEIGHT": timing_weight,
            })

    def test_reweighted_timing_config(self):
        settings = EngineSettings.from_env({
            "UNVEIL_TIMING_AMOUNT_WEIGHT": "0.6",
            "UNVEIL_TIMING_TIMING_WEIGHT": "0.4",
        })

        assert settings.timing.AMOUNT_WEIGHT == Decimal("0.6")
        assert settings.timing.TIMING_WEIGHT == Decimal("0.4")


class TestConfigureLogging:
    """Tests for configure_logging."""
    
    def test_file_handler(self, tmp_path):
        log_file = tmp_path / "engine.log"
        root = logging.getLogger()
        handlers = []
        
        configure_logging("INFO", str(log_file))
        try:
            handlers = [
                h for h in root.handlers
                if isinstance(h, logging.FileHandler) and h.baseFilename == str(log_file)
            ]
            assert len(handlers) == 1
            
            logging.getLogger("logic.test").warning("written to file")
            handlers[0].flush()
            assert "WARNING - written to file" in log_file.read_text()
        finally:
            for handler in handlers:
                root.removeHandler(handler)
                handler.close()
