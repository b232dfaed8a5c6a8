"""
Signal summarization for prompts.

Keeps the strongest, most recent evidence per category and drops near
duplicates, so a chatty thread doesn't crowd out everything else.
"""
from typing import Dict, List, Sequence

from .models import Signal

MAX_PER_CATEGORY = 5
DEDUPE_PREFIX_CHARS = 50


def _dedupe_key(signal: Signal) -> str:
    return signal.context.strip().lower()[:DEDUPE_PREFIX_CHARS]


def summarize_signals(
    signals: Sequence[Signal],
    max_per_category: int = MAX_PER_CATEGORY,
) -> Dict[str, List[Signal]]:
    """
    Group signals by category for prompting.

    Within each category signals are ordered by weight (desc) then
    detection time (desc), deduplicated on the normalized first 50
    characters of context, and capped.

    Returns:
        Mapping of category -> selected signals, categories in first-seen order
    """
    grouped: Dict[str, List[Signal]] = {}
    for signal in signals:
        grouped.setdefault(signal.category, []).append(signal)

    summary: Dict[str, List[Signal]] = {}
    for category, members in grouped.items():
        ordered = sorted(
            members,
            key=lambda s: (s.weight, s.detected_at),
            reverse=True,
        )
        seen = set()
        selected: List[Signal] = []
        for signal in ordered:
            key = _dedupe_key(signal)
            if key in seen:
                continue
            seen.add(key)
            selected.append(signal)
            if len(selected) >= max_per_category:
                break
        summary[category] = selected
    return summary


def flatten_summary(summary: Dict[str, List[Signal]]) -> List[Signal]:
    return [signal for members in summary.values() for signal in members]
