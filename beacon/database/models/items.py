"""
Work Item Models

Work items and the ticket references used to correlate them.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import DateTime, ForeignKey, Index, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin


class WorkItemRecord(Base, TimestampMixin):
    """
    A normalized work item.

    An item is pending for a domain when its `<domain>_analyzed_at` is NULL
    or older than `updated_at`.
    """
    __tablename__ = "work_items"

    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    item_type: Mapped[str] = mapped_column(String(20), nullable=False)  # task, email, commit, chat
    source: Mapped[str] = mapped_column(String(50), nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")

    external_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    sender: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    extra: Mapped[Dict[str, Any]] = mapped_column("metadata", JSON, nullable=False, default=dict)

    priority_analyzed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    progress_analyzed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    tickets: Mapped[List["WorkItemTicket"]] = relationship(
        back_populates="item",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def ticket_refs(self) -> List[str]:
        return [t.ticket_ref for t in self.tickets]


class WorkItemTicket(Base):
    """Ticket id mentioned by a work item."""
    __tablename__ = "work_item_tickets"

    item_id: Mapped[str] = mapped_column(
        String(100),
        ForeignKey("work_items.id", ondelete="CASCADE"),
        primary_key=True,
    )
    ticket_ref: Mapped[str] = mapped_column(String(50), primary_key=True)

    item: Mapped["WorkItemRecord"] = relationship(back_populates="tickets")

    __table_args__ = (
        Index("idx_work_item_tickets_ref", "ticket_ref"),
    )
