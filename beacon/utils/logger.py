"""
Centralized logging configuration for Beacon Triage.

Usage:
    from beacon.utils.logger import logger

    logger.info("Your message")
    logger.error("Error message")

The scheduling harness does not log through loguru directly: it receives an
EventReporter, so hosts can route cycle events elsewhere. LoguruReporter is
the default.
"""
import sys
from contextvars import ContextVar
from pathlib import Path
from typing import Any, Dict, Optional, Protocol, runtime_checkable

from loguru import logger

# Remove default handler
logger.remove()

# Will be configured on first call to setup_logging
_configured = False

# Context variables carried into every log record via the patcher below
_current_domain: ContextVar[Optional[str]] = ContextVar("domain", default=None)
_current_run_id: ContextVar[Optional[str]] = ContextVar("run_id", default=None)


def set_log_context(domain: Optional[str] = None, run_id: Optional[str] = None):
    """Set the domain / run id for log records emitted in this context."""
    if domain is not None:
        _current_domain.set(domain)
    if run_id is not None:
        _current_run_id.set(run_id)


def get_log_context() -> Dict[str, Optional[str]]:
    """Get current logging context."""
    return {
        "domain": _current_domain.get(),
        "run_id": _current_run_id.get(),
    }


def _patch_record(record):
    context = get_log_context()
    record["extra"].setdefault("domain", context["domain"] or "-")
    record["extra"].setdefault("run_id", context["run_id"] or "-")


logger.configure(patcher=_patch_record)


def setup_logging(log_dir: Path = None, log_level: str = "INFO", app_name: str = "beacon"):
    """
    Configure logging with console and file outputs.

    Args:
        log_dir: Directory to store log files. If None, file logging is disabled.
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR)
        app_name: Name prefix for log files (e.g., "scheduler")
    """
    global _configured

    if _configured:
        return

    # Console logging with colors
    logger.add(
        sys.stderr,
        level=log_level,
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
            "<magenta>{extra[domain]}</magenta> | <cyan>{name}</cyan>:<cyan>{function}</cyan> - "
            "<level>{message}</level>"
        ),
    )

    if log_dir:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)

        # Rotates daily, matching the daily token budget window
        logger.add(
            log_dir / f"{app_name}_{{time:YYYY-MM-DD}}.log",
            level="INFO",
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {extra[domain]} | {extra[run_id]} | {name}:{function} - {message}",
            rotation="00:00",
            retention="30 days",
            compression="gz",
            encoding="utf-8",
        )

        logger.info(f"Logging configured. Log directory: {log_dir}")

    _configured = True


def init_logging(app_name: str = "beacon"):
    """
    Initialize logging using settings from config.
    Call this once at application startup.

    Args:
        app_name: Name prefix for log files
    """
    from beacon.config import settings, ensure_directories

    ensure_directories()
    setup_logging(log_dir=settings.LOG_DIR, log_level=settings.LOG_LEVEL, app_name=app_name)


# =============================================================================
# Event reporting
# =============================================================================

@runtime_checkable
class EventReporter(Protocol):
    """Sink for harness lifecycle events."""

    def info(self, message: str, **fields: Any) -> None:
        ...

    def error(self, message: str, **fields: Any) -> None:
        ...


class LoguruReporter:
    """EventReporter that forwards to loguru with structured fields bound."""

    def __init__(self, name: str = "harness"):
        self._logger = logger.bind(component=name)

    def info(self, message: str, **fields: Any) -> None:
        self._logger.bind(**fields).info(message)

    def error(self, message: str, **fields: Any) -> None:
        self._logger.bind(**fields).error(message)


# Export logger for easy import
__all__ = [
    "logger",
    "setup_logging",
    "init_logging",
    "set_log_context",
    "get_log_context",
    "EventReporter",
    "LoguruReporter",
]
