"""
SQLAlchemy Base and Mixins

Provides the declarative base, shared column mixins and the JSON column
type used by the parcel schema.
"""
import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import func

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


def new_uuid() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """
    Base class for all database models.
    """

    # Type annotation for primary keys
    id: Any


class UUIDPrimaryKeyMixin:
    """String UUID primary key generated client-side."""

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=new_uuid,
        comment="UUID primary key"
    )


class TimestampMixin:
    """
    Mixin to add created_at and updated_at timestamp columns.

    Automatically tracks when records are created and last updated.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        comment="Timestamp when record was created"
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
        comment="Timestamp when record was last updated"
    )


def import_all_models():
    """
    Import all models to register them with SQLAlchemy Base.

    Call before running Alembic migrations or ``create_all``.
    """
    from src.parcels.db import models  # noqa: F401
