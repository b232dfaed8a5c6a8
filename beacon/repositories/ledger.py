"""
Token Ledger Repository

Daily token budget bookkeeping, one row per classification cycle.
"""
from datetime import date
from typing import Optional

from sqlalchemy import func, select

from beacon.constants import Domain
from beacon.database.models import TokenLedgerEntry
from beacon.processor.models import LedgerEntry
from .base import BaseRepository


class LedgerRepository(BaseRepository[TokenLedgerEntry]):
    model = TokenLedgerEntry

    async def append(self, entry: LedgerEntry) -> TokenLedgerEntry:
        return await self.add(TokenLedgerEntry(
            run_date=entry.run_date,
            domain=entry.domain.value,
            items_processed=entry.items_processed,
            tokens_used=entry.tokens_used,
            model_used=entry.model_used,
            estimated=entry.estimated,
            created_at=entry.created_at,
        ))

    async def tokens_for_date(self, domain: Domain, run_date: Optional[date] = None) -> int:
        """Sum of tokens used by a domain on a calendar date (today by default)."""
        stmt = select(func.coalesce(func.sum(TokenLedgerEntry.tokens_used), 0)).where(
            TokenLedgerEntry.domain == Domain(domain).value,
            TokenLedgerEntry.run_date == (run_date or self.today()),
        )
        result = await self.session.execute(stmt)
        return int(result.scalar_one())
