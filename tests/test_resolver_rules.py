from datetime import timedelta

import pytest

from beacon.constants import Domain
from beacon.constants import ProgressState as S
from beacon.processor.resolver import (
    STALENESS_MODEL_ID,
    adjust_confidence,
    check_transition,
    detect_stale,
    last_evidence_time,
)
from beacon.processor.signals import SignalExtractor

from conftest import NOW, make_score, make_signal


# ============================================
# Confidence
# ============================================

class TestConfidence:
    @pytest.mark.parametrize("base,expected", [(0.99, 0.99), (1.3, 1.0), (-0.2, 0.0)])
    def test_without_signals_only_clamps(self, base, expected):
        assert adjust_confidence(base, [], NOW) == pytest.approx(expected)

    def test_completion_with_blocker_penalty(self):
        signals = [make_signal("completion"), make_signal("blocker")]
        assert adjust_confidence(0.7, signals, NOW) == pytest.approx(0.55)

    def test_extracted_blocker_and_completion_penalty(self):
        text = "Blocked by security review, although the patch is merged"
        signals = SignalExtractor(Domain.PROGRESS).extract(text, "email_body", observed_at=NOW - timedelta(days=3), now=NOW)

        assert {s.category for s in signals} == {"blocker", "completion"}
        assert adjust_confidence(0.7, signals, NOW) == pytest.approx(0.55)

    def test_completion_with_activity_penalty(self):
        signals = [make_signal("completion"), make_signal("activity")]
        assert adjust_confidence(0.7, signals, NOW) == pytest.approx(0.65)

    def test_corroborating_recent_sources(self):
        signals = [
            make_signal("activity", source="email_body", age=timedelta(minutes=10)),
            make_signal("activity", source="teams_message"),
        ]
        assert adjust_confidence(0.5, signals, NOW) == pytest.approx(0.70)

    def test_three_sources(self):
        signals = [
            make_signal("activity", source="email_body"),
            make_signal("activity", source="teams_message"),
            make_signal("activity", source="azure_devops"),
        ]
        assert adjust_confidence(0.5, signals, NOW) == pytest.approx(0.65)

    def test_recent_within_day(self):
        signals = [make_signal("activity", age=timedelta(hours=5))]
        assert adjust_confidence(0.5, signals, NOW) == pytest.approx(0.55)

    def test_commit_bonus_includes_related_commits(self):
        signals = [make_signal("completion", source="commit_related")]
        assert adjust_confidence(0.5, signals, NOW) == pytest.approx(0.55)

    def test_capped_with_signals(self):
        signals = [
            make_signal("activity", source="commit", age=timedelta(minutes=1)),
            make_signal("activity", source="email_body"),
            make_signal("activity", source="teams_message"),
        ]
        assert adjust_confidence(0.95, signals, NOW) == pytest.approx(0.95)
        assert adjust_confidence(1.0, signals, NOW) == pytest.approx(0.95)

    def test_never_negative(self):
        signals = [make_signal("completion"), make_signal("blocker"), make_signal("activity")]
        assert adjust_confidence(0.05, signals, NOW) == 0.0


# ============================================
# Transitions
# ============================================

REOPEN = make_signal("activity", context="Reopened after regression in prod")
ACTIVITY = make_signal("activity")
COMPLETION = make_signal("completion")
RECENT_BLOCKER = make_signal("blocker", age=timedelta(hours=3))
OLD_BLOCKER = make_signal("blocker", age=timedelta(days=2))


class TestTransitions:
    @pytest.mark.parametrize("current,proposed,signals,allowed", [
        (S.DONE, S.IN_PROGRESS, [REOPEN], True),
        (S.DONE, S.IN_PROGRESS, [ACTIVITY], False),
        (S.DONE, S.IN_PROGRESS, [], False),
        (S.DONE, S.NOT_STARTED, [REOPEN, ACTIVITY], False),
        (S.DONE, S.BLOCKED, [RECENT_BLOCKER], True),
        (S.DONE, S.BLOCKED, [OLD_BLOCKER], False),
        (S.DONE, S.BLOCKED, [], False),
        (S.NOT_STARTED, S.DONE, [], True),
        (S.NOT_STARTED, S.STALE, [ACTIVITY], False),
        (S.BLOCKED, S.DONE, [], True),
        (S.BLOCKED, S.IN_PROGRESS, [ACTIVITY], True),
        (S.BLOCKED, S.IN_PROGRESS, [COMPLETION], False),
        (S.IN_PROGRESS, S.STALE, [], True),
        (S.STALE, S.IN_PROGRESS, [ACTIVITY], True),
        (S.STALE, S.IN_PROGRESS, [], False),
        (S.STALE, S.DONE, [COMPLETION], True),
        (S.STALE, S.DONE, [ACTIVITY], False),
    ])
    def test_rule_table(self, current, proposed, signals, allowed):
        decision = check_transition(current, proposed, signals, NOW)
        assert decision.allowed is allowed
        assert decision.reason

    @pytest.mark.parametrize("state", list(S))
    def test_same_state_is_allowed(self, state):
        assert check_transition(state, state, [], NOW).allowed

    @pytest.mark.parametrize("current,proposed", [
        (S.NOT_STARTED, S.IN_PROGRESS),
        (S.NOT_STARTED, S.BLOCKED),
        (S.IN_PROGRESS, S.BLOCKED),
        (S.IN_PROGRESS, S.DONE),
        (S.IN_PROGRESS, S.NOT_STARTED),
        (S.BLOCKED, S.STALE),
        (S.STALE, S.NOT_STARTED),
    ])
    def test_unlisted_pairs_are_allowed(self, current, proposed):
        assert check_transition(current, proposed, [], NOW).allowed

    def test_first_score_is_always_allowed(self):
        assert check_transition(None, S.DONE, [], NOW).allowed


# ============================================
# Staleness
# ============================================

class TestStaleness:
    def test_idle_in_progress_becomes_stale(self):
        score = make_score("t1", "in_progress", signals=[make_signal("activity", age=timedelta(days=4))])

        stale = detect_stale([score], NOW, timedelta(days=3))

        assert len(stale) == 1
        assert stale[0].label == "stale"
        assert stale[0].confidence == 0.8
        assert stale[0].model_used == STALENESS_MODEL_ID
        assert stale[0].last_activity_at == NOW - timedelta(days=4)
        assert stale[0].signals == score.signals
        assert score.label == "in_progress"

    def test_recent_activity_is_not_stale(self):
        score = make_score("t1", "in_progress", signals=[
            make_signal("activity", age=timedelta(days=5)),
            make_signal("completion", age=timedelta(days=2)),
        ])
        assert detect_stale([score], NOW) == []

    def test_earliest_commitment_when_no_work_signals(self):
        score = make_score("t1", "in_progress", signals=[
            make_signal("commitment", age=timedelta(days=5)),
            make_signal("commitment", age=timedelta(days=1)),
        ])
        assert last_evidence_time(score) == NOW - timedelta(days=5)
        assert len(detect_stale([score], NOW)) == 1

    def test_falls_back_to_last_activity(self):
        score = make_score("t1", "in_progress", last_activity_at=NOW - timedelta(days=10))
        assert len(detect_stale([score], NOW)) == 1

    def test_no_evidence_is_left_alone(self):
        score = make_score("t1", "in_progress")
        assert detect_stale([score], NOW) == []

    def test_other_states_are_ignored(self):
        old = [make_signal("activity", age=timedelta(days=30))]
        scores = [make_score("a", "done", signals=old), make_score("b", "blocked", signals=old)]
        assert detect_stale(scores, NOW) == []

    def test_manual_override_is_superseded(self):
        score = make_score("t1", "in_progress", is_manual_override=True,
                           last_activity_at=NOW - timedelta(days=7))
        stale = detect_stale([score], NOW)
        assert stale[0].is_manual_override is False
