"""
Staleness sweep.

In-progress items whose latest evidence of work is older than the
threshold become stale without a model call.
"""
from dataclasses import replace
from datetime import datetime, timedelta
from typing import List, Optional, Sequence

from loguru import logger

from beacon.constants import Domain, ProgressSignalCategory, ProgressState
from beacon.processor.models import Score

STALENESS_MODEL_ID = "staleness_detection"
STALE_CONFIDENCE = 0.8

_WORK_CATEGORIES = {
    ProgressSignalCategory.ACTIVITY.value,
    ProgressSignalCategory.COMPLETION.value,
}


def last_evidence_time(score: Score) -> Optional[datetime]:
    """
    When work on the item was last evidenced.

    Latest activity/completion signal, else the earliest commitment signal,
    else the score's recorded last activity. None if there is no evidence.
    """
    work = [s.detected_at for s in score.signals if s.category in _WORK_CATEGORIES]
    if work:
        return max(work)
    commitments = [
        s.detected_at for s in score.signals
        if s.category == ProgressSignalCategory.COMMITMENT.value
    ]
    if commitments:
        return min(commitments)
    return score.last_activity_at


def detect_stale(
    scores: Sequence[Score],
    now: datetime,
    threshold: timedelta = timedelta(days=3),
) -> List[Score]:
    """
    Build stale replacements for in-progress scores past the threshold.

    Manual overrides are included: in_progress -> stale is always permitted,
    so the new automatic score supersedes them.
    """
    stale: List[Score] = []
    for score in scores:
        if score.domain != Domain.PROGRESS or score.label != ProgressState.IN_PROGRESS.value:
            continue
        evidence_at = last_evidence_time(score)
        if evidence_at is None:
            continue
        idle = now - evidence_at
        if idle <= threshold:
            continue
        days = idle.total_seconds() / 86400
        stale.append(replace(
            score,
            label=ProgressState.STALE.value,
            confidence=STALE_CONFIDENCE,
            reasoning=f"No activity for {days:.1f} days (threshold {threshold.days} days)",
            is_manual_override=False,
            scored_at=now,
            model_used=STALENESS_MODEL_ID,
            last_activity_at=evidence_at,
        ))
        logger.debug(f"Item {score.item_id} stale after {days:.1f} idle days")
    return stale
