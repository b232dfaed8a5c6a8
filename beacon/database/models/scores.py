"""
Score and Token Ledger Models
"""
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import Boolean, Date, DateTime, Float, Index, Integer, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class ScoreRecord(Base):
    """
    Live classification of one item in one domain.

    Keyed by (item_id, domain); writes go through INSERT ... ON CONFLICT.
    """
    __tablename__ = "scores"

    item_id: Mapped[str] = mapped_column(String(100), primary_key=True)
    domain: Mapped[str] = mapped_column(String(20), primary_key=True)  # priority, progress

    label: Mapped[str] = mapped_column(String(20), nullable=False)
    confidence: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    reasoning: Mapped[str] = mapped_column(Text, nullable=False, default="")

    # Audit trail
    signals: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    model_signals: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)

    is_manual_override: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    scored_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    model_used: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    last_activity_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    __table_args__ = (
        Index("idx_scores_domain_label", "domain", "label"),
    )


class TokenLedgerEntry(Base):
    """Token usage of one classification cycle."""
    __tablename__ = "token_ledger"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    run_date: Mapped[date] = mapped_column(Date, nullable=False)
    domain: Mapped[str] = mapped_column(String(20), nullable=False)
    items_processed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    tokens_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    model_used: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    estimated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.now)

    __table_args__ = (
        Index("idx_token_ledger_date_domain", "run_date", "domain"),
    )
