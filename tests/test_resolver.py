from datetime import datetime, timedelta

import pytest

from beacon.constants import Domain
from beacon.processor.models import AnalysisEntry
from beacon.processor.resolver import ScoreResolver, parse_activity_date, parse_item_index

from conftest import NOW, make_item, make_score, make_signal


def entry(index, label, confidence=0.8, reasoning="model says so", **kwargs):
    return AnalysisEntry(item_index=index, label=label, confidence=confidence, reasoning=reasoning, **kwargs)


@pytest.fixture
def batch():
    return [make_item("t1", "Login fix"), make_item("t2", "Billing export")]


class TestParsing:
    @pytest.mark.parametrize("raw,expected", [
        (0, 0),
        (2.0, 2),
        ("1", 1),
        (" 3 ", 3),
        (True, None),
        (1.5, None),
        ("one", None),
        (None, None),
    ])
    def test_item_index(self, raw, expected):
        assert parse_item_index(raw) == expected

    def test_activity_date(self):
        assert parse_activity_date("2026-03-09T10:00:00") == datetime(2026, 3, 9, 10, 0)
        assert parse_activity_date("2026-03-09") == datetime(2026, 3, 9)
        assert parse_activity_date("yesterday") is None
        assert parse_activity_date(None) is None
        assert parse_activity_date("2026-03-09T10:00:00Z").tzinfo is None


class TestBounds:
    def test_out_of_range_index_is_dropped(self, batch):
        resolver = ScoreResolver(Domain.PROGRESS)
        analyses = [entry(0, "in_progress"), entry(5, "done"), entry(-1, "done")]

        resolution = resolver.resolve(batch, analyses, {}, {}, "test/model", now=NOW)

        assert [s.item_id for s in resolution.scores] == ["t1"]
        assert resolution.analyzed_item_ids == ["t1"]
        assert resolution.dropped == 2

    def test_invalid_label_is_dropped(self, batch):
        resolver = ScoreResolver(Domain.PROGRESS)
        resolution = resolver.resolve(batch, [entry(0, "finished"), entry(1, "In Progress")], {}, {}, "m", now=NOW)

        assert [(s.item_id, s.label) for s in resolution.scores] == [("t2", "in_progress")]
        assert resolution.dropped == 1

    def test_duplicate_index_keeps_first(self, batch):
        resolver = ScoreResolver(Domain.PRIORITY)
        resolution = resolver.resolve(batch, [entry(1, "p1"), entry("1", "P4")], {}, {}, "m", now=NOW)

        assert [(s.item_id, s.label) for s in resolution.scores] == [("t2", "P1")]
        assert resolution.dropped == 1

    def test_confidence_is_adjusted_from_signals(self, batch):
        resolver = ScoreResolver(Domain.PROGRESS)
        signals = {"t1": [make_signal("activity", age=timedelta(hours=2))]}

        resolution = resolver.resolve(batch, [entry(0, "in_progress", confidence=0.6)], signals, {}, "m", now=NOW)

        assert resolution.scores[0].confidence == pytest.approx(0.65)
        assert resolution.scores[0].signals == signals["t1"]

    def test_unparseable_confidence_defaults(self, batch):
        resolution = ScoreResolver(Domain.PRIORITY).resolve(batch, [entry(0, "P2", confidence="high")], {}, {}, "m", now=NOW)
        assert resolution.scores[0].confidence == 0.5


class TestProgressTransitions:
    def test_done_to_in_progress_keeps_done(self, batch):
        resolver = ScoreResolver(Domain.PROGRESS)
        existing = {"t1": make_score("t1", "done")}
        signals = {"t1": [make_signal("activity", context="still working on tests")]}

        resolution = resolver.resolve(batch, [entry(0, "in_progress")], signals, existing, "m", now=NOW)

        score = resolution.scores[0]
        assert score.label == "done"
        assert score.reasoning.startswith("[kept done; in_progress rejected:")
        assert score.reasoning.endswith("model says so")
        assert resolution.analyzed_item_ids == ["t1"]
        assert resolution.rejected_transitions == 1

    def test_reopen_evidence_allows_done_to_in_progress(self, batch):
        resolver = ScoreResolver(Domain.PROGRESS)
        existing = {"t1": make_score("t1", "done")}
        signals = {"t1": [make_signal("activity", context="Reverted the release, back to work")]}

        resolution = resolver.resolve(batch, [entry(0, "in_progress")], signals, existing, "m", now=NOW)

        assert resolution.scores[0].label == "in_progress"
        assert resolution.rejected_transitions == 0

    def test_last_activity_from_model_date(self, batch):
        resolution = ScoreResolver(Domain.PROGRESS).resolve(
            batch, [entry(0, "in_progress", last_activity="2026-03-08T09:30:00")], {}, {}, "m", now=NOW,
        )
        assert resolution.scores[0].last_activity_at == datetime(2026, 3, 8, 9, 30)

    def test_last_activity_from_signals(self, batch):
        signals = {"t1": [
            make_signal("activity", age=timedelta(days=2)),
            make_signal("commitment", age=timedelta(hours=6)),
        ]}
        resolution = ScoreResolver(Domain.PROGRESS).resolve(
            batch, [entry(0, "in_progress", last_activity="not a date")], signals, {}, "m", now=NOW,
        )
        assert resolution.scores[0].last_activity_at == NOW - timedelta(hours=6)


class TestManualOverrides:
    def test_progress_override_kept_when_transition_rejected(self, batch):
        existing = {"t1": make_score("t1", "done", is_manual_override=True)}

        resolution = ScoreResolver(Domain.PROGRESS).resolve(batch, [entry(0, "not_started")], {}, existing, "m", now=NOW)

        assert resolution.scores == []
        assert resolution.analyzed_item_ids == ["t1"]
        assert resolution.overrides_kept == 1

    def test_progress_override_superseded_by_permitted_change(self, batch):
        existing = {"t1": make_score("t1", "in_progress", is_manual_override=True)}

        resolution = ScoreResolver(Domain.PROGRESS).resolve(batch, [entry(0, "done")], {}, existing, "m", now=NOW)

        assert resolution.scores[0].label == "done"
        assert resolution.scores[0].is_manual_override is False

    def test_priority_override_is_never_superseded(self, batch):
        existing = {"t2": make_score("t2", "P0", domain=Domain.PRIORITY, is_manual_override=True)}

        resolution = ScoreResolver(Domain.PRIORITY).resolve(
            batch, [entry(0, "P2"), entry(1, "P3")], {}, existing, "m", now=NOW,
        )

        assert [s.item_id for s in resolution.scores] == ["t1"]
        assert resolution.analyzed_item_ids == ["t1", "t2"]
        assert resolution.overrides_kept == 1
