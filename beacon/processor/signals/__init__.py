"""
Signals Module - deterministic evidence extraction

Components:
- SignalExtractor: Regex-driven signal extraction per domain
- Signal: Immutable weighted evidence
- summarize_signals: Per-category selection for prompts
"""

from .models import Signal
from .extractor import (
    SignalExtractor,
    SOURCE_MULTIPLIERS,
    base_source,
    source_multiplier,
    extract_ticket_ids,
    extract_context,
    age_escalation_weight,
)
from .summarizer import summarize_signals, flatten_summary


__all__ = [
    "Signal",
    "SignalExtractor",
    "SOURCE_MULTIPLIERS",
    "base_source",
    "source_multiplier",
    "extract_ticket_ids",
    "extract_context",
    "age_escalation_weight",
    "summarize_signals",
    "flatten_summary",
]
