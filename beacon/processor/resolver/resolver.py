"""
Score Resolver - model output to persisted scores

Maps each analysis entry back to its batch item, adjusts confidence from
the item's signals, applies the progress transition gate and manual
override rules, and reports which items count as analysed.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Mapping, Optional, Sequence

from loguru import logger

from beacon.constants import Domain, ProgressState, parse_label
from beacon.data_transformers import WorkItem
from beacon.processor.models import AnalysisEntry, Score
from beacon.processor.signals import Signal
from .confidence import adjust_confidence
from .transitions import check_transition


@dataclass
class Resolution:
    """Outcome of resolving one batch."""
    scores: List[Score] = field(default_factory=list)
    analyzed_item_ids: List[str] = field(default_factory=list)
    dropped: int = 0
    rejected_transitions: int = 0
    overrides_kept: int = 0


def parse_item_index(raw) -> Optional[int]:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float) and raw.is_integer():
        return int(raw)
    if isinstance(raw, str) and raw.strip().lstrip("-").isdigit():
        return int(raw.strip())
    return None


def parse_confidence(raw, default: float = 0.5) -> float:
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return default
    if value != value:  # NaN
        return default
    return value


def parse_activity_date(raw) -> Optional[datetime]:
    """Parse a model-supplied ISO date into a naive local datetime."""
    if not raw or not isinstance(raw, str):
        return None
    text = raw.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


class ScoreResolver:
    """
    Example:
        resolver = ScoreResolver(Domain.PROGRESS)
        resolution = resolver.resolve(items, analyses, signals_by_item, existing, "openai/gpt-4o-mini")
    """

    def __init__(self, domain: Domain):
        self.domain = Domain(domain)

    def resolve(
        self,
        items: Sequence[WorkItem],
        analyses: Sequence[AnalysisEntry],
        signals_by_item: Mapping[str, Sequence[Signal]],
        existing_scores: Mapping[str, Score],
        model_used: Optional[str],
        now: Optional[datetime] = None,
    ) -> Resolution:
        """
        Resolve analysis entries for a batch.

        Args:
            items: The batch, in prompt order
            analyses: Entries returned for the batch
            signals_by_item: Extracted signals per item id
            existing_scores: Current scores per item id
            model_used: Model id recorded on new scores
            now: Reference time

        Returns:
            Scores to upsert and ids to mark analysed. Items whose entry was
            dropped appear in neither, so they stay pending.
        """
        now = now or datetime.now()
        resolution = Resolution()
        seen_indexes = set()

        for entry in analyses:
            index = parse_item_index(entry.item_index)
            if index is None or not 0 <= index < len(items):
                logger.debug(f"Dropping analysis with out-of-range index {entry.item_index!r}")
                resolution.dropped += 1
                continue
            if index in seen_indexes:
                logger.debug(f"Dropping duplicate analysis for index {index}")
                resolution.dropped += 1
                continue

            label = parse_label(self.domain, entry.label)
            if label is None:
                logger.debug(f"Dropping analysis with invalid label {entry.label!r} for index {index}")
                resolution.dropped += 1
                continue
            seen_indexes.add(index)

            item = items[index]
            signals = list(signals_by_item.get(item.id, ()))
            existing = existing_scores.get(item.id)
            confidence = adjust_confidence(parse_confidence(entry.confidence), signals, now)

            score = self._resolve_one(item, entry, label.value, confidence, signals, existing, model_used, now, resolution)
            if score is not None:
                resolution.scores.append(score)
            resolution.analyzed_item_ids.append(item.id)

        return resolution

    def _resolve_one(
        self,
        item: WorkItem,
        entry: AnalysisEntry,
        label: str,
        confidence: float,
        signals: List[Signal],
        existing: Optional[Score],
        model_used: Optional[str],
        now: datetime,
        resolution: Resolution,
    ) -> Optional[Score]:
        frozen = existing is not None and existing.is_manual_override

        if self.domain == Domain.PRIORITY:
            if frozen:
                resolution.overrides_kept += 1
                return None
            return Score(
                item_id=item.id,
                domain=self.domain,
                label=label,
                confidence=confidence,
                reasoning=entry.reasoning,
                signals=signals,
                model_signals=list(entry.signals),
                scored_at=now,
                model_used=model_used,
            )

        last_activity = parse_activity_date(entry.last_activity)
        if last_activity is None and signals:
            last_activity = max(s.detected_at for s in signals)
        if last_activity is None and existing is not None:
            last_activity = existing.last_activity_at

        current = ProgressState(existing.label) if existing is not None else None
        decision = check_transition(current, ProgressState(label), signals, now)

        if decision.allowed:
            return Score(
                item_id=item.id,
                domain=self.domain,
                label=label,
                confidence=confidence,
                reasoning=entry.reasoning,
                signals=signals,
                model_signals=list(entry.signals),
                scored_at=now,
                model_used=model_used,
                last_activity_at=last_activity,
            )

        resolution.rejected_transitions += 1
        if frozen:
            resolution.overrides_kept += 1
            return None

        logger.debug(f"Rejected {current.value} -> {label} for {item.id}: {decision.reason}")
        note = f"[kept {current.value}; {label} rejected: {decision.reason}]"
        return Score(
            item_id=item.id,
            domain=self.domain,
            label=current.value,
            confidence=confidence,
            reasoning=f"{note} {entry.reasoning}".strip(),
            signals=signals,
            model_signals=list(entry.signals),
            scored_at=now,
            model_used=model_used,
            last_activity_at=last_activity,
        )


def scores_by_item(scores: Sequence[Score]) -> Dict[str, Score]:
    return {score.item_id: score for score in scores}
