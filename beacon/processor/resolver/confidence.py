"""
Confidence adjustment from corroborating evidence.
"""
from datetime import datetime
from typing import Sequence

from beacon.constants import ProgressSignalCategory
from beacon.processor.signals import Signal, base_source

MULTI_SOURCE_BONUS = 0.10
EXTRA_SOURCE_BONUS = 0.05
RECENT_DAY_BONUS = 0.05
RECENT_HOUR_BONUS = 0.05
COMPLETION_BLOCKER_PENALTY = 0.15
COMPLETION_ACTIVITY_PENALTY = 0.05
COMMIT_BONUS = 0.05

MAX_CONFIDENCE_WITH_SIGNALS = 0.95

_DAY = 24 * 3600
_HOUR = 3600



def adjust_confidence(base: float, signals: Sequence[Signal], now: datetime) -> float:
    """
    Adjust a model confidence with signal-derived bonuses and penalties.

    Result is clamped to [0, 0.95] when any signal exists, else [0, 1].
    """
    confidence = float(base)
    if not signals:
        return max(0.0, min(1.0, confidence))

    sources = {s.source for s in signals}
    if len(sources) >= 2:
        confidence += MULTI_SOURCE_BONUS
    if len(sources) >= 3:
        confidence += EXTRA_SOURCE_BONUS

    ages = [(now - s.detected_at).total_seconds() for s in signals]
    if any(age < _DAY for age in ages):
        confidence += RECENT_DAY_BONUS
    if any(age < _HOUR for age in ages):
        confidence += RECENT_HOUR_BONUS

    categories = {s.category for s in signals}
    completion = ProgressSignalCategory.COMPLETION.value
    if completion in categories and ProgressSignalCategory.BLOCKER.value in categories:
        confidence -= COMPLETION_BLOCKER_PENALTY
    if completion in categories and ProgressSignalCategory.ACTIVITY.value in categories:
        confidence -= COMPLETION_ACTIVITY_PENALTY

    if any(base_source(s.source) == "commit" for s in signals):
        confidence += COMMIT_BONUS

    return max(0.0, min(MAX_CONFIDENCE_WITH_SIGNALS, confidence))
