"""Base model and mixins for all SQLAlchemy models.

Provides:
- Base: Declarative base class for all models
- TimestampMixin: Adds an integer primary key and audit timestamps

Timestamps are filled on the Python side so freshly flushed rows can be
serialised without another round trip to the database.
"""

from datetime import datetime, timezone

from sqlalchemy import DateTime, Integer
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


class Base(DeclarativeBase):
    """Declarative base for all tracker models."""
    pass


class TimestampMixin:
    """Mixin providing an autoincrement id and standard audit columns.

    Adds:
    - id: Integer primary key
    - created_at: Timestamp set on insert
    - updated_at: Timestamp refreshed on every ORM update
    """

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )
