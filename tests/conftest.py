import json
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence

import pytest

from beacon.config import HarnessConfig, RetryConfig
from beacon.constants import Domain, ItemType, parse_label
from beacon.data_transformers import WorkItem
from beacon.database import close_engine, create_tables, init_engine
from beacon.llm.base import LLMClient, LLMResponse
from beacon.processor.models import LedgerEntry, Score
from beacon.processor.signals import Signal
from beacon.store import SqlWorkItemStore

NOW = datetime(2026, 3, 10, 12, 0, 0)


# ============================================
# Builders
# ============================================

def make_item(
    item_id: str,
    title: str,
    content: str = "",
    item_type: ItemType = ItemType.TASK,
    source: str = "azure_devops",
    created_at: Optional[datetime] = None,
    updated_at: Optional[datetime] = None,
    sender: Optional[str] = None,
    ticket_refs: Sequence[str] = (),
) -> WorkItem:
    created_at = created_at or NOW - timedelta(days=1)
    return WorkItem(
        id=item_id,
        item_type=item_type,
        source=source,
        title=title,
        content=content,
        created_at=created_at,
        updated_at=updated_at or created_at,
        sender=sender,
        ticket_refs=list(ticket_refs),
    )


def make_signal(
    category: str,
    source: str = "email_body",
    age: timedelta = timedelta(days=3),
    context: str = "",
    weight: float = 0.3,
    now: datetime = NOW,
) -> Signal:
    return Signal(
        category=category,
        weight=weight,
        source=source,
        context=context or category,
        detected_at=now - age,
    )


def make_score(
    item_id: str,
    label: str,
    domain: Domain = Domain.PROGRESS,
    signals: Sequence[Signal] = (),
    is_manual_override: bool = False,
    last_activity_at: Optional[datetime] = None,
) -> Score:
    return Score(
        item_id=item_id,
        domain=domain,
        label=label,
        confidence=0.7,
        reasoning="previous",
        signals=list(signals),
        is_manual_override=is_manual_override,
        scored_at=NOW - timedelta(days=1),
        model_used="test/model",
        last_activity_at=last_activity_at,
    )


def analyses_response(analyses: List[Dict], total_tokens: Optional[int] = 120, model: str = "test/model") -> LLMResponse:
    return LLMResponse(
        content=json.dumps({"analyses": analyses}),
        model=model,
        usage={"total_tokens": total_tokens} if total_tokens is not None else {},
    )


def progress_config(**overrides) -> HarnessConfig:
    values = dict(
        domain=Domain.PROGRESS,
        daily_token_limit=50_000,
        interval_minutes=45,
        model="test/model",
        retry=RetryConfig(max_attempts=3, base_delay=1.0, max_delay=30.0),
        use_hybrid=False,
    )
    values.update(overrides)
    return HarnessConfig(**values)


def priority_config(**overrides) -> HarnessConfig:
    values = dict(
        domain=Domain.PRIORITY,
        daily_token_limit=100_000,
        interval_minutes=30,
        model="test/model",
        retry=RetryConfig(max_attempts=3, base_delay=1.0, max_delay=30.0),
    )
    values.update(overrides)
    return HarnessConfig(**values)


# ============================================
# Fakes
# ============================================

class FakeLLMClient(LLMClient):
    """Replays scripted responses; an Exception in the script is raised."""

    supports_structured_output = True

    def __init__(self, responses=(), model: str = "test/model"):
        super().__init__(model)
        self.responses = list(responses)
        self.calls: List[Dict] = []

    async def chat(self, messages, system=None, max_tokens=2048, temperature=0.3, response_format=None):
        self.calls.append({
            "prompt": messages[-1].content,
            "response_format": response_format,
            "temperature": temperature,
            "max_tokens": max_tokens,
        })
        if not self.responses:
            raise AssertionError("Unexpected inference call")
        outcome = self.responses.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class FakeStore:
    """In-memory WorkItemStore."""

    def __init__(self, items=(), scores=(), usage: int = 0):
        self.items: Dict[str, WorkItem] = {item.id: item for item in items}
        self.scores: Dict[tuple, Score] = {(s.item_id, s.domain): s for s in scores}
        self.usage = usage
        self.ledger: List[LedgerEntry] = []
        self.upserts: List[tuple] = []
        self.analyzed: Dict[Domain, set] = {Domain.PRIORITY: set(), Domain.PROGRESS: set()}
        self.usage_error: Optional[Exception] = None
        self.pending_calls = 0
        self.versions: Dict[str, datetime] = {}

    async def get_pending_items(self, domain, limit):
        self.pending_calls += 1
        pending = [item for item in self.items.values() if item.id not in self.analyzed[domain]]
        return pending[:limit]

    async def get_related_items(self, item_id, ticket_refs, limit=10):
        refs = set(ticket_refs)
        return [
            other for other in self.items.values()
            if other.id != item_id and refs & set(other.ticket_refs)
        ][:limit]

    async def get_scores(self, domain, item_ids):
        return {i: self.scores[(i, domain)] for i in item_ids if (i, domain) in self.scores}

    async def get_scores_by_label(self, domain, label):
        return [s for (_, d), s in self.scores.items() if d == domain and s.label == label]

    async def upsert_scores(self, domain, scores, analyzed_item_ids, versions=None):
        analyzed = list(analyzed_item_ids)
        self.versions.update(versions or {})
        self.upserts.append((domain, list(scores), analyzed))
        for score in scores:
            self.scores[(score.item_id, domain)] = score
        self.analyzed[domain].update(analyzed)

    async def append_ledger(self, entry):
        self.ledger.append(entry)
        self.usage += entry.tokens_used

    async def get_today_token_usage(self, domain):
        if self.usage_error is not None:
            raise self.usage_error
        return self.usage

    async def set_manual_label(self, domain, item_id, label, reasoning=""):
        parsed = parse_label(domain, label)
        if parsed is None:
            raise ValueError(label)
        score = Score(item_id=item_id, domain=domain, label=parsed.value, confidence=1.0,
                      reasoning=reasoning, is_manual_override=True, model_used="manual")
        self.scores[(item_id, domain)] = score
        return score

    async def clear_manual_override(self, domain, item_id):
        score = self.scores.get((item_id, domain))
        if score is None:
            return False
        score.is_manual_override = False
        self.analyzed[domain].discard(item_id)
        return True


class RecordingReporter:
    def __init__(self):
        self.infos: List[str] = []
        self.errors: List[str] = []

    def info(self, message, **fields):
        self.infos.append(message)

    def error(self, message, **fields):
        self.errors.append(message)


# ============================================
# Fixtures
# ============================================

@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def fake_sleep(sleeps):
    async def _sleep(delay):
        sleeps.append(delay)
    return _sleep


@pytest.fixture
async def store(tmp_path):
    await init_engine(f"sqlite+aiosqlite:///{tmp_path / 'beacon.db'}")
    await create_tables()
    yield SqlWorkItemStore()
    await close_engine()
