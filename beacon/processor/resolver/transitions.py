"""
Progress state transition gate.

A proposed state change is checked against the item's current state and
the evidence behind it. Pairs not listed in the rules are allowed.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, Optional, Sequence, Tuple

from beacon.constants import ProgressSignalCategory, ProgressState
from beacon.processor.signals import Signal
from beacon.processor.signals.patterns import REOPEN_KEYWORDS

RECENT_BLOCKER_SECONDS = 24 * 3600


@dataclass(frozen=True)
class TransitionDecision:
    allowed: bool
    reason: str


def _has_category(signals: Sequence[Signal], category: ProgressSignalCategory) -> bool:
    return any(s.category == category.value for s in signals)


def _has_reopen_keyword(signals: Sequence[Signal], now: datetime) -> bool:
    for signal in signals:
        context = signal.context.lower()
        if any(keyword in context for keyword in REOPEN_KEYWORDS):
            return True
    return False


def _has_recent_blocker(signals: Sequence[Signal], now: datetime) -> bool:
    return any(
        s.category == ProgressSignalCategory.BLOCKER.value
        and (now - s.detected_at).total_seconds() <= RECENT_BLOCKER_SECONDS
        for s in signals
    )


def _has_activity(signals: Sequence[Signal], now: datetime) -> bool:
    return _has_category(signals, ProgressSignalCategory.ACTIVITY)


def _has_completion(signals: Sequence[Signal], now: datetime) -> bool:
    return _has_category(signals, ProgressSignalCategory.COMPLETION)


def _always(signals: Sequence[Signal], now: datetime) -> bool:
    return True


def _never(signals: Sequence[Signal], now: datetime) -> bool:
    return False


Rule = Callable[[Sequence[Signal], datetime], bool]

S = ProgressState

TRANSITION_RULES: Dict[Tuple[ProgressState, ProgressState], Tuple[Rule, str]] = {
    (S.DONE, S.IN_PROGRESS): (_has_reopen_keyword, "reopen or revert evidence required"),
    (S.DONE, S.NOT_STARTED): (_never, "completed work cannot become not started"),
    (S.DONE, S.BLOCKED): (_has_recent_blocker, "blocker signal within 24h required"),
    (S.NOT_STARTED, S.DONE): (_always, "completion may skip intermediate states"),
    (S.NOT_STARTED, S.STALE): (_never, "work that never started cannot go stale"),
    (S.BLOCKED, S.DONE): (_always, "blocked work may complete directly"),
    (S.BLOCKED, S.IN_PROGRESS): (_has_activity, "activity signal required to unblock"),
    (S.IN_PROGRESS, S.STALE): (_always, "in-progress work may go stale"),
    (S.STALE, S.IN_PROGRESS): (_has_activity, "activity signal required to revive"),
    (S.STALE, S.DONE): (_has_completion, "completion signal required"),
}


def check_transition(
    current: Optional[ProgressState],
    proposed: ProgressState,
    signals: Sequence[Signal],
    now: Optional[datetime] = None,
) -> TransitionDecision:
    """
    Decide whether `current -> proposed` is permitted.

    Args:
        current: The item's current state, None when it has never been scored
        proposed: The state the model (or heuristics) proposed
        signals: Evidence for the item
        now: Reference time for recency rules
    """
    if current is None:
        return TransitionDecision(True, "no prior state")
    current = ProgressState(current)
    proposed = ProgressState(proposed)
    if current == proposed:
        return TransitionDecision(True, "state unchanged")

    rule = TRANSITION_RULES.get((current, proposed))
    if rule is None:
        return TransitionDecision(True, "unrestricted transition")

    predicate, reason = rule
    allowed = predicate(signals, now or datetime.now())
    return TransitionDecision(allowed, reason)
