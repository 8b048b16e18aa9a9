"""
Module: procurement_kernel.models.ledger
Responsibility: ORM persistence for ledger entries, one per LinkID.
Architecture position: Kernel > Models.

Invariants enforced:
    - link_id is unique: every edit of a request shares one ledger row.
    - Ledger rows are never deleted (``before_delete`` listener).
    - delta is signed: + inbound, - outbound, 0 for catalog events.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, CheckConstraint, Index, String, Text, event
from sqlalchemy.orm import Mapped, mapped_column

from procurement_kernel.db.base import TrackedBase
from procurement_kernel.domain.approval import (
    LedgerEntry,
    RequestStatus,
    RequestType,
    history_from_json,
)
from procurement_kernel.domain.payloads import payload_from_dict
from procurement_kernel.exceptions import ImmutableRecordError

MULTI_SKU = "MULTI"


class LedgerEntryModel(TrackedBase):
    __tablename__ = "ledger_entries"

    __table_args__ = (
        CheckConstraint(
            "status IN ('Pending', 'Approved', 'Declined', 'Voided')",
            name="ck_ledger_entries_valid_status",
        ),
        Index("idx_ledger_entries_sku", "sku"),
    )

    link_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    request_type: Mapped[str] = mapped_column(String(16), nullable=False)
    sku: Mapped[str] = mapped_column(String(64), nullable=False)
    item_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    delta: Mapped[int] = mapped_column(nullable=False, default=0)
    unit_of_measure: Mapped[str] = mapped_column(String(32), nullable=False, default="")
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    requested_by: Mapped[str] = mapped_column(String(255), nullable=False)
    reviewed_by: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    reviewed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    note: Mapped[str] = mapped_column(Text, nullable=False, default="")
    payload: Mapped[dict] = mapped_column(JSON, nullable=False)
    approval_history: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    def to_dto(self) -> LedgerEntry:
        return ledger_entry_from_row(self.as_row())


@event.listens_for(LedgerEntryModel, "before_delete")
def _forbid_ledger_delete(mapper, connection, target: LedgerEntryModel) -> None:
    raise ImmutableRecordError("ledger_entries", target.link_id, "ledger rows are never deleted")


def ledger_entry_from_row(row: dict[str, Any]) -> LedgerEntry:
    return LedgerEntry(
        link_id=row["link_id"],
        request_type=RequestType(row["request_type"]),
        sku=row["sku"],
        item_name=row.get("item_name") or "",
        delta=int(row.get("delta") or 0),
        unit_of_measure=row.get("unit_of_measure") or "",
        status=RequestStatus(row["status"]),
        requested_by=row["requested_by"],
        payload=payload_from_dict(row["payload"]),
        approval_history=history_from_json(row.get("approval_history")),
        note=row.get("note") or "",
        reviewed_by=row.get("reviewed_by") or "",
        reviewed_at=row.get("reviewed_at"),
        created_at=row.get("created_at"),
    )
