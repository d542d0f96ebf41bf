"""Core building blocks: the deferred result cell, settings and logging."""

from deferred_result.core.cell import DeferredResult
from deferred_result.core.config import (
    CoordinatorSettings,
    DeferredResultSettings,
    LoggingSettings,
    load_settings,
)
from deferred_result.core.logging import configure_logging, get_logger

__all__ = [
    "CoordinatorSettings",
    "DeferredResult",
    "DeferredResultSettings",
    "LoggingSettings",
    "configure_logging",
    "get_logger",
    "load_settings",
]
