"""
Work Item Repository
"""
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from sqlalchemy import or_, select, update

from beacon.constants import Domain
from beacon.data_transformers import WorkItem
from beacon.database.models import WorkItemRecord, WorkItemTicket
from beacon.processor.signals import extract_ticket_ids
from .base import BaseRepository


def _analyzed_column(domain: Domain):
    if Domain(domain) == Domain.PRIORITY:
        return WorkItemRecord.priority_analyzed_at
    return WorkItemRecord.progress_analyzed_at


def to_work_item(record: WorkItemRecord) -> WorkItem:
    """Hydrate the canonical WorkItem from its record."""
    return WorkItem(
        id=record.id,
        item_type=record.item_type,
        source=record.source,
        title=record.title,
        content=record.content or "",
        created_at=record.created_at,
        updated_at=record.updated_at,
        external_id=record.external_id,
        sender=record.sender,
        ticket_refs=record.ticket_refs,
        metadata=dict(record.extra or {}),
    )


class WorkItemRepository(BaseRepository[WorkItemRecord]):
    """Work items, their ticket references and per-domain analysis marks."""

    model = WorkItemRecord

    async def save(self, item: WorkItem) -> WorkItemRecord:
        """
        Insert or update an item.

        Ticket references are the item's own plus any found in its text.
        Analysis marks are left as they are; a newer `updated_at` is what
        makes the item pending again.
        """
        refs = list(item.ticket_refs)
        for ref in extract_ticket_ids(f"{item.title}\n{item.content}"):
            if ref not in refs:
                refs.append(ref)

        record = await self.get(item.id)
        if record is None:
            record = WorkItemRecord(id=item.id)
            self.session.add(record)

        record.item_type = item.item_type.value
        record.source = item.source
        record.title = item.title
        record.content = item.content or ""
        record.created_at = item.created_at
        record.updated_at = item.updated_at
        record.external_id = item.external_id
        record.sender = item.sender
        record.extra = dict(item.metadata)
        # Diff rather than replace: re-inserting a deleted (item_id, ticket_ref) in one flush collides
        current = {t.ticket_ref: t for t in record.tickets}
        for ref, ticket in current.items():
            if ref not in refs:
                record.tickets.remove(ticket)
        for ref in refs:
            if ref not in current:
                record.tickets.append(WorkItemTicket(item_id=item.id, ticket_ref=ref))

        await self.session.flush()
        return record

    async def get_pending(self, domain: Domain, limit: int = 10) -> List[WorkItem]:
        """
        Items never analysed for the domain, then items updated since.

        Never-analysed items come first, then most recently updated.
        """
        analyzed_at = _analyzed_column(domain)
        stmt = (
            select(WorkItemRecord)
            .where(or_(analyzed_at.is_(None), WorkItemRecord.updated_at > analyzed_at))
            .order_by(analyzed_at.is_(None).desc(), WorkItemRecord.updated_at.desc())
            .limit(limit)
        )
        return [to_work_item(r) for r in await self._scalars(stmt)]

    async def get_related(self, item_id: str, ticket_refs: Sequence[str], limit: int = 10) -> List[WorkItem]:
        """Other items sharing at least one ticket reference, newest first."""
        if not ticket_refs:
            return []
        shared = (
            select(WorkItemTicket.item_id)
            .where(WorkItemTicket.ticket_ref.in_(list(ticket_refs)))
            .where(WorkItemTicket.item_id != item_id)
        )
        stmt = (
            select(WorkItemRecord)
            .where(WorkItemRecord.id.in_(shared))
            .order_by(WorkItemRecord.updated_at.desc())
            .limit(limit)
        )
        return [to_work_item(r) for r in await self._scalars(stmt)]

    async def mark_analyzed(
        self,
        domain: Domain,
        item_ids: Iterable[str],
        versions: Optional[Mapping[str, datetime]] = None,
    ) -> int:
        """
        Stamp items as analysed for the domain.

        `versions` maps an item id to the `updated_at` of the snapshot that
        was classified. Stamping that value means an edit saved while the
        cycle ran still compares newer, so the item stays pending. Items
        without a version are stamped with the current time.
        """
        ids = list(dict.fromkeys(item_ids))
        if not ids:
            return 0
        versions = versions or {}
        now = self.now()
        by_stamp: Dict[datetime, List[str]] = {}
        for item_id in ids:
            by_stamp.setdefault(versions.get(item_id) or now, []).append(item_id)

        column = _analyzed_column(domain)
        count = 0
        for stamp, group in by_stamp.items():
            stmt = (
                update(WorkItemRecord)
                .where(WorkItemRecord.id.in_(group))
                .values({column.key: stamp})
            )
            result = await self.session.execute(stmt)
            count += result.rowcount
        return count

    async def clear_analyzed(self, domain: Domain, item_id: str) -> None:
        column = _analyzed_column(domain)
        stmt = update(WorkItemRecord).where(WorkItemRecord.id == item_id).values({column.key: None})
        await self.session.execute(stmt)
