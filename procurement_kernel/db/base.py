"""
Module: procurement_kernel.db.base
Responsibility: Declarative base classes for all SQLAlchemy ORM models.  Provides
    the UUID surrogate key convention, the type annotation map for consistent
    column types, and the TrackedBase mixin for row timestamps.
Architecture position: Kernel > DB.  Lowest-level import target within the
    kernel.  MUST NOT import from models/, services/, selectors/ or domain/.

Invariants enforced:
    - UUID surrogate keys: every model carries a uuid4 primary key.  Business
      keys (SKU, PendingID, LinkID, email) are separate unique columns.
    - Money precision: Decimal maps to Numeric(18, 4).  Quantities are
      integers, never floats.
    - Timestamps are timezone-aware and written from an injected Clock, not
      from the database server, so tests can pin them.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import BigInteger, DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """UUID stored as String(36) so SQLite and PostgreSQL share one schema."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None:
            return str(value)
        return None

    def process_result_value(self, value, dialect):
        if value is not None:
            return PyUUID(value)
        return None


class Base(DeclarativeBase):
    """
    Declarative base for all procurement models.

    Guarantees:
        - id is a uuid4 stored as String(36).
        - Decimal maps to Numeric(18, 4) for unit prices.
        - datetime maps to DateTime(timezone=True).
        - int maps to BigInteger for counters.
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(18, 4),
        datetime: DateTime(timezone=True),
        PyUUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        primary_key=True,
        default=uuid4,
    )

    def as_row(self) -> dict[str, Any]:
        """Full record as a plain column -> value dict (record store row)."""
        return {attr.key: getattr(self, attr.key) for attr in self.__mapper__.column_attrs}


class TrackedBase(Base):
    """
    Abstract base with creation and modification timestamps.

    Services pass ``created_at`` / ``updated_at`` explicitly from their Clock;
    the server default only backstops rows inserted outside the kernel.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
