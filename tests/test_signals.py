from datetime import timedelta

import pytest

from beacon.constants import Domain, ItemType
from beacon.data_transformers import ChatMessageItem, CommitItem, EmailItem
from beacon.processor.signals import (
    SignalExtractor,
    age_escalation_weight,
    base_source,
    extract_context,
    extract_ticket_ids,
    flatten_summary,
    source_multiplier,
    summarize_signals,
)

from conftest import NOW, make_item, make_signal


def categories(signals):
    return [s.category for s in signals]


class TestHelpers:
    def test_ticket_ids_in_first_seen_order(self):
        assert extract_ticket_ids("Fixes #12 and PROJ-7, see bug 99, again #12") == ["12", "PROJ-7", "99"]

    def test_ticket_ids_empty_text(self):
        assert extract_ticket_ids("") == []

    def test_context_short_match(self):
        assert extract_context("  blocked by infra  ", 2, 12) == "blocked by infra"

    def test_context_is_capped(self):
        text = "x" * 300
        snippet = extract_context(text, 10, 150)
        assert snippet.endswith("...")
        assert len(snippet) == 103

    def test_source_suffixes_are_ignored(self):
        assert base_source("commit_related") == "commit"
        assert base_source("email_subject_title") == "email_subject"
        assert source_multiplier("commit_related") == pytest.approx(1.3)
        assert source_multiplier("unknown_source") == pytest.approx(1.0)

    @pytest.mark.parametrize("days,expected", [
        (0, 0.0),
        (1, 0.0),
        (2, 0.05),
        (8, 0.15),
        (64, 0.30),
        (1000, 0.30),
    ])
    def test_age_escalation_weight(self, days, expected):
        assert age_escalation_weight(NOW - timedelta(days=days), NOW) == pytest.approx(expected)


class TestProgressExtraction:
    def test_completion_phrase_meets_source_weight(self):
        extractor = SignalExtractor(Domain.PROGRESS)

        signals = extractor.extract("Completed the payment fix, merged to main", "commit",
                                    observed_at=NOW - timedelta(days=2), now=NOW)

        completion = [s for s in signals if s.category == "completion"]
        assert len(completion) == 2
        for signal in completion:
            assert signal.weight >= 0.40 * source_multiplier("commit") - 1e-9

    def test_blocker_in_email_body(self):
        extractor = SignalExtractor(Domain.PROGRESS)
        signals = extractor.extract("Blocked by security review", "email_body", now=NOW)

        assert categories(signals) == ["blocker"]
        assert signals[0].weight == pytest.approx(0.30 * 1.0 * 1.2)
        assert "Blocked by" in signals[0].context

    def test_extraction_is_deterministic(self):
        extractor = SignalExtractor(Domain.PROGRESS)
        text = "Working on the fix, waiting for API keys from infra (PROJ-12)"
        first = extractor.extract(text, "email_body", observed_at=NOW, now=NOW)
        second = extractor.extract(text, "email_body", observed_at=NOW, now=NOW)
        assert first == second

    def test_old_text_gets_no_recency_boost(self):
        extractor = SignalExtractor(Domain.PROGRESS)
        signals = extractor.extract("Blocked by security review", "email_body",
                                    observed_at=NOW - timedelta(days=2), now=NOW)
        assert signals[0].weight == pytest.approx(0.30)
        assert signals[0].detected_at == NOW - timedelta(days=2)

    def test_weight_is_clamped(self):
        extractor = SignalExtractor(Domain.PROGRESS)
        signals = extractor.extract("Deployed", "commit", now=NOW, boost=3.0)
        assert signals[0].weight == 1.0

    def test_related_id_defaults_to_first_ticket(self):
        extractor = SignalExtractor(Domain.PROGRESS)
        signals = extractor.extract("Merged PROJ-42 and PROJ-43", "commit", now=NOW)
        assert signals[0].related_id == "PROJ-42"
        assert signals[0].ticket_refs == ("PROJ-42", "PROJ-43")

    def test_reply_subject_adds_activity_cue(self):
        extractor = SignalExtractor(Domain.PROGRESS)
        signals = extractor.extract_email("Re: Deployment done", "", "mail-1", now=NOW)

        completion = [s for s in signals if s.category == "completion"]
        assert completion[0].source == "email_subject"
        assert completion[0].weight == pytest.approx(0.40 * 1.2 * 1.2 * 1.2)

        reply = [s for s in signals if s.source == "email" and s.category == "activity"]
        assert len(reply) == 1
        assert reply[0].weight == pytest.approx(0.7 * 1.2)

    def test_forward_subject_adds_escalation_cue(self):
        extractor = SignalExtractor(Domain.PROGRESS)
        signals = extractor.extract_email("Fwd: vendor contract", "", "mail-2", now=NOW)
        assert [(s.category, s.source) for s in signals] == [("escalation", "email")]

    def test_commit_completion_prefix(self):
        extractor = SignalExtractor(Domain.PROGRESS)
        signals = extractor.extract_commit("fix: handle null session token (#42)", now=NOW)

        assert categories(signals) == ["completion"]
        assert signals[0].source == "commit"
        assert signals[0].weight == pytest.approx(0.40 * 1.3 * 1.2)
        assert signals[0].related_id == "42"

    def test_commit_wip_marker(self):
        extractor = SignalExtractor(Domain.PROGRESS)
        signals = extractor.extract_commit("WIP: refactor parser", now=NOW)
        assert "activity" in categories(signals)
        assert "completion" not in categories(signals)
        assert all(base_source(s.source) == "commit" for s in signals)

    def test_chat_strips_html_and_reads_cues(self):
        extractor = SignalExtractor(Domain.PROGRESS)
        signals = extractor.extract_chat("<p>@alice when can you review the API change?</p>", "msg-1", now=NOW)

        assert all("<p>" not in s.context for s in signals)
        mention = [s for s in signals if s.context == "Direct mention indicates engagement"]
        assert mention[0].weight == 1.0
        question = [s for s in signals if s.category == "blocker"]
        assert question[0].weight == pytest.approx(0.6 * 1.2)
        assert question[0].context.startswith("@alice when can you")

    def test_no_text_no_signals(self):
        extractor = SignalExtractor(Domain.PROGRESS)
        assert extractor.extract("   ", "email_body", now=NOW) == []
        assert extractor.extract_commit("", now=NOW) == []


class TestItemExtraction:
    def test_title_is_boosted_and_tagged(self):
        extractor = SignalExtractor(Domain.PROGRESS)
        item = make_item("task-1", "Blocked by vendor", updated_at=NOW - timedelta(days=2))

        signals = extractor.extract_for_item(item, now=NOW)

        assert signals[0].source == "azure_devops_title"
        assert signals[0].weight == pytest.approx(0.30 * 1.2)

    def test_related_items_contribute_tagged_signals(self):
        extractor = SignalExtractor(Domain.PROGRESS)
        item = make_item("task-1", "Login page rework", ticket_refs=["PROJ-12"])
        commit = CommitItem(sha="abc123", message="Merged PROJ-12 login rework",
                            committed_at=NOW - timedelta(hours=2)).normalize()

        signals = extractor.extract_for_item(item, [commit], now=NOW)

        related = [s for s in signals if s.source == "commit_related"]
        assert related
        assert related[0].related_id == "commit_abc123"
        assert related[0].detected_at == NOW - timedelta(hours=2)

    def test_email_and_chat_items_use_source_helpers(self):
        extractor = SignalExtractor(Domain.PROGRESS)
        email = EmailItem(id="m1", subject="Re: rollout", body="Still working on it",
                          received_at=NOW).normalize()
        chat = ChatMessageItem(id="c1", content="<b>stuck on</b> the migration", sent_at=NOW).normalize()

        email_sources = {s.source for s in extractor.extract_for_item(email, now=NOW)}
        chat_signals = extractor.extract_for_item(chat, now=NOW)

        assert {"email_body", "email"} <= email_sources
        assert [s.source for s in chat_signals] == ["teams_message"]


class TestPriorityExtraction:
    def test_vip_urgent_deadline_email(self):
        extractor = SignalExtractor(Domain.PRIORITY, vip_emails=["boss@corp.com"])
        email = EmailItem(id="m1", subject="URGENT: contract due today", body="Please review the draft.",
                          sender="Boss@Corp.com", received_at=NOW).normalize()

        signals = extractor.extract_for_item(email, now=NOW)
        found = set(categories(signals))

        assert {"vip_sender", "urgency_keyword", "deadline", "action_required"} <= found
        vip = [s for s in signals if s.category == "vip_sender"][0]
        assert vip.weight == pytest.approx(0.30 * 1.2)

    def test_progress_patterns_are_not_used_for_priority(self):
        extractor = SignalExtractor(Domain.PRIORITY)
        signals = extractor.extract("Deployed and merged", "email_body", now=NOW)
        assert signals == []

    def test_age_escalation_is_not_recency_boosted(self):
        extractor = SignalExtractor(Domain.PRIORITY)
        item = make_item("task-9", "Quarterly planning", created_at=NOW - timedelta(days=8),
                         updated_at=NOW)

        signals = extractor.extract_for_item(item, now=NOW)
        age = [s for s in signals if s.category == "age_escalation"]

        assert len(age) == 1
        assert age[0].weight == pytest.approx(0.15)
        assert age[0].detected_at == NOW - timedelta(days=8)

    def test_commit_without_priority_cues_has_no_signals(self):
        extractor = SignalExtractor(Domain.PRIORITY)
        item = make_item("c", "hotfix", item_type=ItemType.COMMIT, source="git")
        assert extractor.extract_for_item(item, now=NOW) == []


class TestSummarizer:
    def test_caps_and_orders_by_weight(self):
        signals = [
            make_signal("completion", weight=w, context=f"completion context {i}")
            for i, w in enumerate([0.1, 0.5, 0.3, 0.9, 0.2, 0.7, 0.4])
        ]
        summary = summarize_signals(signals)

        assert [s.weight for s in summary["completion"]] == [0.9, 0.7, 0.5, 0.4, 0.3]

    def test_drops_near_duplicates(self):
        prefix = "Blocked by the security review of the payments service"
        signals = [
            make_signal("blocker", weight=0.4, context=prefix + " (first)"),
            make_signal("blocker", weight=0.3, context=prefix.upper() + " (second)"),
            make_signal("activity", weight=0.2, context="Working on it"),
        ]
        summary = summarize_signals(signals)

        assert len(summary["blocker"]) == 1
        assert summary["blocker"][0].weight == 0.4
        assert list(summary) == ["blocker", "activity"]
        assert len(flatten_summary(summary)) == 2
