"""Module: procurement_kernel.models.sequence -- persisted named counters."""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from procurement_kernel.db.base import Base


class SequenceCounter(Base):
    """One row per counter name. ``current_value`` is the last value handed out."""

    __tablename__ = "sequence_counters"

    name: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    current_value: Mapped[int] = mapped_column(nullable=False, default=0)
