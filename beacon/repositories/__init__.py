"""
Repositories - async data access over SQLAlchemy sessions.
"""

from .base import BaseRepository
from .items import WorkItemRepository, to_work_item
from .scores import ScoreRepository, to_score
from .ledger import LedgerRepository

__all__ = [
    "BaseRepository",
    "WorkItemRepository",
    "ScoreRepository",
    "LedgerRepository",
    "to_work_item",
    "to_score",
]
