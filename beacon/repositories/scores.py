"""
Score Repository
"""
from typing import Dict, Iterable, List, Sequence

from sqlalchemy import select, update
from sqlalchemy.dialects.sqlite import insert

from beacon.constants import Domain
from beacon.database.models import ScoreRecord
from beacon.processor.models import Score
from beacon.processor.signals import Signal
from .base import BaseRepository


_UPSERT_COLUMNS = (
    "label",
    "confidence",
    "reasoning",
    "signals",
    "model_signals",
    "is_manual_override",
    "scored_at",
    "model_used",
    "last_activity_at",
)


def to_score(record: ScoreRecord) -> Score:
    return Score(
        item_id=record.item_id,
        domain=Domain(record.domain),
        label=record.label,
        confidence=record.confidence,
        reasoning=record.reasoning or "",
        signals=[Signal.from_dict(s) for s in (record.signals or [])],
        model_signals=list(record.model_signals or []),
        is_manual_override=record.is_manual_override,
        scored_at=record.scored_at,
        model_used=record.model_used,
        last_activity_at=record.last_activity_at,
    )


def to_row(score: Score) -> Dict:
    return {
        "item_id": score.item_id,
        "domain": score.domain.value,
        "label": score.label,
        "confidence": score.confidence,
        "reasoning": score.reasoning,
        "signals": [s.to_dict() for s in score.signals],
        "model_signals": list(score.model_signals),
        "is_manual_override": score.is_manual_override,
        "scored_at": score.scored_at,
        "model_used": score.model_used,
        "last_activity_at": score.last_activity_at,
    }


class ScoreRepository(BaseRepository[ScoreRecord]):
    """One live score per (item, domain)."""

    model = ScoreRecord

    async def get_for_items(self, domain: Domain, item_ids: Iterable[str]) -> Dict[str, Score]:
        ids = list(item_ids)
        if not ids:
            return {}
        stmt = select(ScoreRecord).where(
            ScoreRecord.domain == Domain(domain).value,
            ScoreRecord.item_id.in_(ids),
        )
        return {r.item_id: to_score(r) for r in await self._scalars(stmt)}

    async def get_by_label(self, domain: Domain, label: str) -> List[Score]:
        stmt = select(ScoreRecord).where(
            ScoreRecord.domain == Domain(domain).value,
            ScoreRecord.label == label,
        )
        return [to_score(r) for r in await self._scalars(stmt)]

    async def upsert(self, scores: Sequence[Score]) -> int:
        """INSERT ... ON CONFLICT (item_id, domain) DO UPDATE for each score."""
        if not scores:
            return 0
        rows = [to_row(s) for s in scores]
        stmt = insert(ScoreRecord).values(rows)
        stmt = stmt.on_conflict_do_update(
            index_elements=[ScoreRecord.item_id, ScoreRecord.domain],
            set_={name: getattr(stmt.excluded, name) for name in _UPSERT_COLUMNS},
        )
        await self.session.execute(stmt)
        return len(rows)

    async def clear_override(self, domain: Domain, item_id: str) -> bool:
        stmt = (
            update(ScoreRecord)
            .where(ScoreRecord.domain == Domain(domain).value, ScoreRecord.item_id == item_id)
            .values(is_manual_override=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0
