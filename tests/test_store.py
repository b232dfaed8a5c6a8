import asyncio
from datetime import date, datetime, timedelta

import pytest

from beacon.constants import Domain
from beacon.data_transformers import EmailItem
from beacon.database import get_session
from beacon.processor.models import LedgerEntry, Score
from beacon.repositories import ScoreRepository
from beacon.store import WorkItemStore

from conftest import make_item, make_signal


def ids(items):
    return [item.id for item in items]


def progress_score(item_id, label="in_progress", signals=(), now=None):
    now = now or datetime.now()
    return Score(
        item_id=item_id,
        domain=Domain.PROGRESS,
        label=label,
        confidence=0.7,
        reasoning="model reasoning",
        signals=list(signals),
        model_signals=["activity: pushed a fix"],
        scored_at=now,
        model_used="test/model",
        last_activity_at=now - timedelta(hours=1),
    )


async def test_store_satisfies_protocol(store):
    assert isinstance(store, WorkItemStore)


class TestPending:
    async def test_never_analysed_first_then_most_recent(self, store):
        now = datetime.now()
        await store.save_items([
            make_item("a", "Older task", created_at=now - timedelta(hours=3)),
            make_item("b", "Newer task", created_at=now - timedelta(hours=1)),
            make_item("c", "Analysed task", created_at=now - timedelta(hours=2)),
        ])
        await store.upsert_scores(Domain.PROGRESS, [], ["c"])

        assert ids(await store.get_pending_items(Domain.PROGRESS, 10)) == ["b", "a"]
        assert ids(await store.get_pending_items(Domain.PROGRESS, 1)) == ["b"]
        assert len(await store.get_pending_items(Domain.PRIORITY, 10)) == 3

        # A newer update makes an analysed item pending again
        await store.save_items([make_item("c", "Analysed task, edited", created_at=now - timedelta(hours=2),
                                          updated_at=datetime.now() + timedelta(minutes=1))])

        assert ids(await store.get_pending_items(Domain.PROGRESS, 10)) == ["b", "a", "c"]

    async def test_edit_saved_mid_cycle_stays_pending(self, store):
        await store.save_items([make_item("x", "Vendor contract", created_at=datetime.now() - timedelta(hours=1))])
        [snapshot] = await store.get_pending_items(Domain.PROGRESS, 10)

        await store.save_items([make_item("x", "Vendor contract, redlines back", created_at=snapshot.created_at,
                                          updated_at=datetime.now())])
        await store.upsert_scores(Domain.PROGRESS, [], ["x"], {"x": snapshot.updated_at})

        assert ids(await store.get_pending_items(Domain.PROGRESS, 10)) == ["x"]

    async def test_classified_snapshot_is_not_pending(self, store):
        await store.save_items([make_item("x", "Vendor contract", created_at=datetime.now() - timedelta(hours=1))])
        [snapshot] = await store.get_pending_items(Domain.PROGRESS, 10)

        await store.upsert_scores(Domain.PROGRESS, [], ["x"], {"x": snapshot.updated_at})

        assert await store.get_pending_items(Domain.PROGRESS, 10) == []

    async def test_source_variants_are_normalized(self, store):
        await store.save_items([EmailItem(id="m1", subject="Re: PROJ-5 rollout", sender="Ops@Corp.com",
                                          received_at=datetime.now())])

        [item] = await store.get_pending_items(Domain.PRIORITY, 10)

        assert item.sender == "ops@corp.com"
        assert item.ticket_refs == ["PROJ-5"]


class TestRelated:
    async def test_shared_ticket_refs(self, store):
        await store.save_items([
            make_item("a", "Login bug PROJ-12"),
            make_item("b", "Deploy hotfix", ticket_refs=["PROJ-12"]),
            make_item("c", "Unrelated"),
        ])

        assert ids(await store.get_related_items("a", ["PROJ-12"], 10)) == ["b"]
        assert await store.get_related_items("c", [], 10) == []

    async def test_resave_replaces_refs(self, store):
        await store.save_items([
            make_item("a", "Login bug PROJ-12"),
            make_item("b", "Deploy hotfix", ticket_refs=["PROJ-12"]),
        ])
        await store.save_items([make_item("a", "Login bug PROJ-13")])

        assert await store.get_related_items("b", ["PROJ-12"], 10) == []


class TestScores:
    async def test_upsert_is_idempotent(self, store):
        await store.save_items([make_item("a", "Task")])
        score = progress_score("a", signals=[make_signal("activity", now=datetime.now())])

        await store.upsert_scores(Domain.PROGRESS, [score], ["a"])
        await store.upsert_scores(Domain.PROGRESS, [score], ["a"])

        async with get_session() as session:
            assert await ScoreRepository(session).count() == 1
        loaded = await store.get_scores(Domain.PROGRESS, ["a", "missing"])
        assert list(loaded) == ["a"]
        assert loaded["a"].signals == score.signals
        assert loaded["a"].model_signals == score.model_signals
        assert loaded["a"].last_activity_at == score.last_activity_at

    async def test_upsert_replaces_label(self, store):
        await store.upsert_scores(Domain.PROGRESS, [progress_score("a")], [])
        await store.upsert_scores(Domain.PROGRESS, [progress_score("a", label="done")], [])

        loaded = await store.get_scores(Domain.PROGRESS, ["a"])
        assert loaded["a"].label == "done"

    async def test_domains_are_independent(self, store):
        await store.upsert_scores(Domain.PROGRESS, [progress_score("a")], [])
        priority = Score(item_id="a", domain=Domain.PRIORITY, label="P1", confidence=0.9)
        await store.upsert_scores(Domain.PRIORITY, [priority], [])

        assert (await store.get_scores(Domain.PROGRESS, ["a"]))["a"].label == "in_progress"
        assert (await store.get_scores(Domain.PRIORITY, ["a"]))["a"].label == "P1"

    async def test_concurrent_upserts_keep_one_row_per_item(self, store):
        labels = ["not_started", "in_progress", "blocked", "done"]
        writes = [
            store.upsert_scores(Domain.PROGRESS, [progress_score(f"item-{n % 5}", label=labels[n % 4])], [])
            for n in range(40)
        ]

        await asyncio.gather(*writes)

        async with get_session() as session:
            assert await ScoreRepository(session).count() == 5
        loaded = await store.get_scores(Domain.PROGRESS, [f"item-{n}" for n in range(5)])
        assert len(loaded) == 5
        assert all(score.label in labels for score in loaded.values())

    async def test_by_label(self, store):
        await store.upsert_scores(Domain.PROGRESS, [progress_score("a"), progress_score("b", label="done")], [])

        assert [s.item_id for s in await store.get_scores_by_label(Domain.PROGRESS, "in_progress")] == ["a"]


class TestLedger:
    async def test_today_usage_sums_domain_rows(self, store):
        today = date.today()
        for entry in (
            LedgerEntry(run_date=today, domain=Domain.PRIORITY, items_processed=2, tokens_used=300),
            LedgerEntry(run_date=today, domain=Domain.PRIORITY, items_processed=1, tokens_used=200, estimated=True),
            LedgerEntry(run_date=today, domain=Domain.PROGRESS, items_processed=5, tokens_used=999),
            LedgerEntry(run_date=today - timedelta(days=1), domain=Domain.PRIORITY, items_processed=9, tokens_used=5000),
        ):
            await store.append_ledger(entry)

        assert await store.get_today_token_usage(Domain.PRIORITY) == 500
        assert await store.get_today_token_usage(Domain.PROGRESS) == 999

    async def test_empty_ledger(self, store):
        assert await store.get_today_token_usage(Domain.PRIORITY) == 0


class TestManualOverride:
    async def test_invalid_label(self, store):
        with pytest.raises(ValueError):
            await store.set_manual_label(Domain.PROGRESS, "a", "finished")

    async def test_set_and_clear(self, store):
        await store.save_items([make_item("a", "Task", created_at=datetime.now() - timedelta(hours=1))])
        previous = progress_score("a", signals=[make_signal("activity", now=datetime.now())])
        await store.upsert_scores(Domain.PROGRESS, [previous], ["a"])
        assert await store.get_pending_items(Domain.PROGRESS, 10) == []

        score = await store.set_manual_label(Domain.PROGRESS, "a", "Blocked", "waiting on legal")

        loaded = (await store.get_scores(Domain.PROGRESS, ["a"]))["a"]
        assert score.label == loaded.label == "blocked"
        assert loaded.is_manual_override
        assert loaded.confidence == 1.0
        assert loaded.model_used == "manual"
        assert loaded.signals == previous.signals

        assert await store.clear_manual_override(Domain.PROGRESS, "a")
        loaded = (await store.get_scores(Domain.PROGRESS, ["a"]))["a"]
        assert not loaded.is_manual_override
        assert ids(await store.get_pending_items(Domain.PROGRESS, 10)) == ["a"]

    async def test_clear_without_score(self, store):
        assert not await store.clear_manual_override(Domain.PRIORITY, "missing")
