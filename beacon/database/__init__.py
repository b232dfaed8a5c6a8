"""
Database Module - SQLAlchemy async persistence for the reference store.
"""

from .session import (
    init_engine,
    close_engine,
    create_tables,
    get_session,
    get_database_url,
)
from .models import Base, WorkItemRecord, WorkItemTicket, ScoreRecord, TokenLedgerEntry

__all__ = [
    "init_engine",
    "close_engine",
    "create_tables",
    "get_session",
    "get_database_url",
    "Base",
    "WorkItemRecord",
    "WorkItemTicket",
    "ScoreRecord",
    "TokenLedgerEntry",
]
