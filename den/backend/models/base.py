"""
SQLAlchemy Base Model.

Base class for all database models with common fields and utilities.
"""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import DateTime
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from den.backend.core.utils import utc_now


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class TimestampMixin:
    """
    Mixin that adds created_at and updated_at timestamps.

    Both are naive UTC. Writers that need the two to be identical at
    creation pass them explicitly.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utc_now,
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utc_now,
        nullable=False,
    )


def new_id() -> str:
    return str(uuid4())


class UUIDMixin:
    """Mixin that adds a UUID string primary key."""

    id: Mapped[str] = mapped_column(
        primary_key=True,
        default=new_id,
    )
