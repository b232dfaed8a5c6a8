"""
SQLAlchemy ORM Models

- Items: work items and their ticket references
- Scores: live classifications per (item, domain)
- Ledger: daily token usage
"""

from .base import Base, TimestampMixin
from .items import WorkItemRecord, WorkItemTicket
from .scores import ScoreRecord, TokenLedgerEntry

__all__ = [
    "Base",
    "TimestampMixin",
    "WorkItemRecord",
    "WorkItemTicket",
    "ScoreRecord",
    "TokenLedgerEntry",
]
