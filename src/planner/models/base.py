"""SQLAlchemy base model and mixins.

Provides common functionality for all database models including
UUID primary keys and timestamps.
"""

import uuid
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import JSON, DateTime, String, Uuid, func, inspect
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# JSONB on PostgreSQL, plain JSON elsewhere
JSONType = JSON().with_variant(JSONB(), "postgresql")


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    type_annotation_map = {
        str: String(255),
        uuid.UUID: Uuid(),
    }


class UUIDMixin:
    """Mixin for UUID primary key."""

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=uuid.uuid4,
    )


class TimestampMixin:
    """Mixin for created_at and updated_at timestamps."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
        index=True,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
        nullable=False,
    )


class BaseModel(Base, UUIDMixin, TimestampMixin):
    """Standard base model with UUID and timestamps.

    Use this as the base class for most entities.
    """

    __abstract__ = True


def column_attributes(model: type[Base]) -> dict[str, str]:
    """Map table column names to mapped attribute keys for a model.

    The two differ where a column name clashes with a reserved declarative
    attribute, e.g. the ``metadata`` column mapped as ``meta``.
    """
    return {
        attr.columns[0].name: attr.key
        for attr in inspect(model).column_attrs
    }


def model_to_dict(obj: Any, exclude: set[str] | None = None) -> dict[str, Any]:
    """Convert SQLAlchemy model instance to a dictionary keyed by column name.

    Values are returned as-is; callers serialize datetimes and UUIDs.

    Args:
        obj: Model instance.
        exclude: Set of column names to exclude.
    """
    exclude = exclude or set()
    return {
        column: getattr(obj, key)
        for column, key in column_attributes(type(obj)).items()
        if column not in exclude
    }
