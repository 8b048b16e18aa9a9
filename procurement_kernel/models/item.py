"""
Module: procurement_kernel.models.item
Responsibility: ORM persistence for catalog items (one row per SKU).
Architecture position: Kernel > Models.  May import from db/ and domain/.

Invariants enforced:
    - quantity >= 0 (DB check constraint, also enforced by the delta applier).
    - status is one of Active / On Hold / Retired.
    - sku is unique.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from sqlalchemy import CheckConstraint, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from procurement_kernel.db.base import TrackedBase
from procurement_kernel.domain.approval import Item, ItemStatus


class ItemModel(TrackedBase):
    __tablename__ = "items"

    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_items_quantity_non_negative"),
        CheckConstraint(
            "status IN ('Active', 'On Hold', 'Retired')",
            name="ck_items_valid_status",
        ),
        Index("idx_items_status", "status"),
    )

    sku: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    category: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    unit_of_measure: Mapped[str] = mapped_column(String(32), nullable=False, default="")
    location: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    quantity: Mapped[int] = mapped_column(nullable=False, default=0)
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=ItemStatus.ACTIVE.value
    )
    unit_price: Mapped[Decimal | None] = mapped_column(nullable=True)

    def to_dto(self) -> Item:
        return item_from_row(self.as_row())

    def __repr__(self) -> str:
        return f"<Item {self.sku} qty={self.quantity} {self.status}>"


def item_from_row(row: dict[str, Any]) -> Item:
    return Item(
        sku=row["sku"],
        name=row["name"],
        unit_of_measure=row.get("unit_of_measure") or "",
        quantity=int(row.get("quantity") or 0),
        status=ItemStatus(row["status"]),
        description=row.get("description") or "",
        category=row.get("category") or "",
        location=row.get("location") or "",
        unit_price=row.get("unit_price"),
        created_at=row.get("created_at"),
        updated_at=row.get("updated_at"),
    )
