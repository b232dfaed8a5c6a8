"""
Resolver Module - turns model output into scores

Components:
- ScoreResolver: Bounds checks, confidence adjustment, transition gate, overrides
- adjust_confidence: Signal-derived confidence arithmetic
- check_transition: Progress state machine
- detect_stale: Staleness sweep
"""

from .confidence import adjust_confidence
from .transitions import TransitionDecision, TRANSITION_RULES, check_transition
from .staleness import STALENESS_MODEL_ID, STALE_CONFIDENCE, detect_stale, last_evidence_time
from .resolver import Resolution, ScoreResolver, parse_activity_date, parse_item_index, scores_by_item


__all__ = [
    "adjust_confidence",
    "TransitionDecision",
    "TRANSITION_RULES",
    "check_transition",
    "STALENESS_MODEL_ID",
    "STALE_CONFIDENCE",
    "detect_stale",
    "last_evidence_time",
    "Resolution",
    "ScoreResolver",
    "parse_activity_date",
    "parse_item_index",
    "scores_by_item",
]
