"""Logic configuration package."""

from .settings import EngineSettings, configure_logging, LOG_FORMAT

__all__ = [
    "EngineSettings",
    "configure_logging",
    "LOG_FORMAT",
]
