"""
Work Item Store

The contract the scheduling harness depends on, and the SQLAlchemy
reference implementation. Each call opens its own session, so lookups can
run concurrently and a write is one transaction.
"""
from contextlib import AbstractAsyncContextManager
from datetime import date, datetime
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence, runtime_checkable

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from beacon.constants import Domain, parse_label
from beacon.data_transformers import WorkItem, SourceItem, normalize
from beacon.database.session import get_session
from beacon.exceptions import PersistenceError
from beacon.processor.models import LedgerEntry, Score
from beacon.repositories import LedgerRepository, ScoreRepository, WorkItemRepository

MANUAL_MODEL_ID = "manual"

SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]


@runtime_checkable
class WorkItemStore(Protocol):
    """Persistence the classification harness needs."""

    async def get_pending_items(self, domain: Domain, limit: int) -> List[WorkItem]:
        ...

    async def get_related_items(self, item_id: str, ticket_refs: Sequence[str], limit: int = 10) -> List[WorkItem]:
        ...

    async def get_scores(self, domain: Domain, item_ids: Iterable[str]) -> Dict[str, Score]:
        ...

    async def get_scores_by_label(self, domain: Domain, label: str) -> List[Score]:
        ...

    async def upsert_scores(
        self,
        domain: Domain,
        scores: Sequence[Score],
        analyzed_item_ids: Iterable[str],
        versions: Optional[Mapping[str, datetime]] = None,
    ) -> None:
        ...

    async def append_ledger(self, entry: LedgerEntry) -> None:
        ...

    async def get_today_token_usage(self, domain: Domain) -> int:
        ...

    async def set_manual_label(self, domain: Domain, item_id: str, label: str, reasoning: str = "") -> Score:
        ...

    async def clear_manual_override(self, domain: Domain, item_id: str) -> bool:
        ...


class SqlWorkItemStore:
    """
    WorkItemStore over SQLAlchemy async sessions.

    Example:
        await init_engine("sqlite+aiosqlite:///data/beacon.db")
        await create_tables()
        store = SqlWorkItemStore()
        await store.save_items([email.normalize()])
    """

    def __init__(self, session_factory: Optional[SessionFactory] = None):
        self._session = session_factory or get_session

    # ============================================
    # INGESTION
    # ============================================

    async def save_items(self, items: Iterable["WorkItem | SourceItem"]) -> int:
        """Insert or update work items (source variants are normalized)."""
        count = 0
        try:
            async with self._session() as session:
                repo = WorkItemRepository(session)
                for item in items:
                    await repo.save(normalize(item))
                    count += 1
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to save work items: {e}") from e
        logger.debug(f"Saved {count} work items")
        return count

    # ============================================
    # READS
    # ============================================

    async def get_pending_items(self, domain: Domain, limit: int) -> List[WorkItem]:
        try:
            async with self._session() as session:
                return await WorkItemRepository(session).get_pending(domain, limit)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load pending {Domain(domain).value} items: {e}") from e

    async def get_related_items(self, item_id: str, ticket_refs: Sequence[str], limit: int = 10) -> List[WorkItem]:
        try:
            async with self._session() as session:
                return await WorkItemRepository(session).get_related(item_id, ticket_refs, limit)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load items related to {item_id}: {e}") from e

    async def get_scores(self, domain: Domain, item_ids: Iterable[str]) -> Dict[str, Score]:
        try:
            async with self._session() as session:
                return await ScoreRepository(session).get_for_items(domain, item_ids)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load scores: {e}") from e

    async def get_scores_by_label(self, domain: Domain, label: str) -> List[Score]:
        try:
            async with self._session() as session:
                return await ScoreRepository(session).get_by_label(domain, label)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load {label} scores: {e}") from e

    async def get_today_token_usage(self, domain: Domain) -> int:
        try:
            async with self._session() as session:
                return await LedgerRepository(session).tokens_for_date(domain, date.today())
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to read token ledger: {e}") from e

    # ============================================
    # WRITES
    # ============================================

    async def upsert_scores(
        self,
        domain: Domain,
        scores: Sequence[Score],
        analyzed_item_ids: Iterable[str],
        versions: Optional[Mapping[str, datetime]] = None,
    ) -> None:
        """
        Upsert scores and mark items analysed in one transaction.

        `versions` holds the `updated_at` of each classified snapshot.
        """
        try:
            async with self._session() as session:
                await ScoreRepository(session).upsert(scores)
                await WorkItemRepository(session).mark_analyzed(domain, analyzed_item_ids, versions)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to write {Domain(domain).value} scores: {e}") from e

    async def append_ledger(self, entry: LedgerEntry) -> None:
        try:
            async with self._session() as session:
                await LedgerRepository(session).append(entry)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to append ledger entry: {e}") from e

    async def set_manual_label(self, domain: Domain, item_id: str, label: str, reasoning: str = "") -> Score:
        """
        Pin a label chosen by a person. The score is frozen until cleared.

        Raises:
            ValueError: If the label isn't valid for the domain
        """
        domain = Domain(domain)
        parsed = parse_label(domain, label)
        if parsed is None:
            raise ValueError(f"Invalid {domain.value} label: {label!r}")

        score = Score(
            item_id=item_id,
            domain=domain,
            label=parsed.value,
            confidence=1.0,
            reasoning=reasoning or "Set manually",
            is_manual_override=True,
            scored_at=datetime.now(),
            model_used=MANUAL_MODEL_ID,
        )
        try:
            async with self._session() as session:
                existing = await ScoreRepository(session).get_for_items(domain, [item_id])
                previous = existing.get(item_id)
                if previous is not None:
                    score.signals = previous.signals
                    score.last_activity_at = previous.last_activity_at
                await ScoreRepository(session).upsert([score])
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to set manual label for {item_id}: {e}") from e
        return score

    async def clear_manual_override(self, domain: Domain, item_id: str) -> bool:
        """Unfreeze a score and queue the item for re-analysis."""
        try:
            async with self._session() as session:
                cleared = await ScoreRepository(session).clear_override(domain, item_id)
                await WorkItemRepository(session).clear_analyzed(domain, item_id)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to clear manual override for {item_id}: {e}") from e
        return cleared
