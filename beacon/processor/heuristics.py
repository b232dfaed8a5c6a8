"""
Hybrid heuristics for progress.

Decides a state from signal weight totals alone. In hybrid mode, items the
heuristics are confident about skip the model round-trip.
"""
from dataclasses import dataclass
from typing import Dict, Sequence

from beacon.constants import ProgressSignalCategory, ProgressState
from .models import AnalysisEntry
from .signals import Signal

HEURISTIC_MODEL_ID = "heuristic"

COMPLETION_THRESHOLD = 0.2
BLOCKER_THRESHOLD = 0.15
ACTIVITY_THRESHOLD = 0.1
COMMITMENT_THRESHOLD = 0.05
COMMITMENT_CONFIDENCE_CAP = 0.7
ESCALATION_ONLY_CONFIDENCE = 0.6
NO_SIGNAL_CONFIDENCE = 0.5


@dataclass(frozen=True)
class HeuristicResult:
    state: ProgressState
    confidence: float
    reasoning: str

    def to_analysis(self, item_index: int) -> AnalysisEntry:
        return AnalysisEntry(
            item_index=item_index,
            label=self.state.value,
            confidence=self.confidence,
            reasoning=self.reasoning,
            signals=[],
        )


def _totals(signals: Sequence[Signal]) -> Dict[str, float]:
    totals = {c.value: 0.0 for c in ProgressSignalCategory}
    for signal in signals:
        if signal.category in totals:
            totals[signal.category] += signal.weight
    return totals


def determine_state(signals: Sequence[Signal]) -> HeuristicResult:
    """
    Pick a progress state from summed signal weights.

    Checked in order: completion, blocker, activity, commitment, escalation.
    Confidence is min(total * 2, 1) for the winning category.
    """
    totals = _totals(signals)
    completion = totals[ProgressSignalCategory.COMPLETION.value]
    blocker = totals[ProgressSignalCategory.BLOCKER.value]
    activity = totals[ProgressSignalCategory.ACTIVITY.value]
    commitment = totals[ProgressSignalCategory.COMMITMENT.value]
    escalation = totals[ProgressSignalCategory.ESCALATION.value]

    if completion > COMPLETION_THRESHOLD:
        return HeuristicResult(ProgressState.DONE, min(completion * 2, 1.0), "Completion signals detected")
    if blocker > BLOCKER_THRESHOLD:
        return HeuristicResult(ProgressState.BLOCKED, min(blocker * 2, 1.0), "Blocker signals detected")
    if activity > ACTIVITY_THRESHOLD:
        return HeuristicResult(ProgressState.IN_PROGRESS, min(activity * 2, 1.0), "Activity signals detected")
    if commitment > COMMITMENT_THRESHOLD:
        return HeuristicResult(
            ProgressState.IN_PROGRESS,
            min(commitment * 2, COMMITMENT_CONFIDENCE_CAP),
            "Commitment signals detected",
        )
    if escalation > 0:
        return HeuristicResult(ProgressState.STALE, ESCALATION_ONLY_CONFIDENCE, "Only escalation signals, possibly stalled")
    return HeuristicResult(ProgressState.NOT_STARTED, NO_SIGNAL_CONFIDENCE, "No progress signals detected")
