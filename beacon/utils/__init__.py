"""
Utilities module for Beacon Triage.
"""
from .logger import (
    logger,
    init_logging,
    setup_logging,
    set_log_context,
    get_log_context,
    EventReporter,
    LoguruReporter,
)

__all__ = [
    "logger",
    "init_logging",
    "setup_logging",
    "set_log_context",
    "get_log_context",
    "EventReporter",
    "LoguruReporter",
]
