"""
SQLAlchemy Base Model and Mixins
"""
from datetime import datetime
from typing import Any, Dict

from sqlalchemy import DateTime
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    def to_dict(self) -> Dict[str, Any]:
        return {c.name: getattr(self, c.key, None) for c in self.__table__.columns}

    def __repr__(self) -> str:
        keys = ", ".join(f"{c.name}={getattr(self, c.key, None)!r}" for c in self.__table__.primary_key.columns)
        return f"<{self.__class__.__name__}({keys})>"


class TimestampMixin:
    """
    Adds created_at / updated_at columns.

    updated_at is set by the writer, never on UPDATE: marking an item
    analysed must not make it pending again.
    """
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.now,
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.now,
        nullable=False,
        index=True,
    )
