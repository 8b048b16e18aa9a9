"""
Inventory read models: dashboard counts, low-stock list and SKU history.

History is derived from ledger entries, never from a stored running
balance.  Multi-item entries contribute the line for the requested SKU.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from procurement_kernel.domain.approval import (
    Item,
    ItemStatus,
    RequestStatus,
    RequestType,
)
from procurement_kernel.models import item_from_row, ledger_entry_from_row
from procurement_kernel.selectors.base import BaseSelector
from procurement_kernel.services.record_store import ITEMS, LEDGER, PENDING


@dataclass(frozen=True)
class InventoryCounts:
    active_skus: int
    on_hand: int
    pending: int
    ledger_entries: int


@dataclass(frozen=True)
class SkuHistoryEntry:
    link_id: str
    request_type: RequestType
    status: RequestStatus
    quantity: int
    delta: int
    requested_by: str
    reviewed_by: str
    created_at: datetime | None
    reviewed_at: datetime | None
    note: str


class InventorySelector(BaseSelector):

    def items(self) -> list[Item]:
        return [item_from_row(r) for r in self.store.read_all_records(ITEMS)]

    def counts(self) -> InventoryCounts:
        items = self.items()
        live = [i for i in items if i.status is not ItemStatus.RETIRED]
        pending = [
            r for r in self.store.read_all_records(PENDING)
            if r["status"] == RequestStatus.PENDING.value
        ]
        return InventoryCounts(
            active_skus=len(live),
            on_hand=sum(i.quantity for i in live),
            pending=len(pending),
            ledger_entries=len(self.store.read_all_records(LEDGER)),
        )

    def low_stock(self, threshold: int) -> list[Item]:
        """Active items at or below ``threshold``, lowest quantity first."""
        low = [i for i in self.items() if i.is_active and i.quantity <= threshold]
        return sorted(low, key=lambda i: (i.quantity, i.sku))

    def sku_history(self, sku: str) -> list[SkuHistoryEntry]:
        """Ledger activity touching ``sku``, newest first."""
        history = []
        for row in self.store.read_all_records(LEDGER):
            entry = ledger_entry_from_row(row)
            lines = [line for line in entry.payload.lines if line.sku == sku]
            if not lines and entry.sku != sku:
                continue
            history.append(
                SkuHistoryEntry(
                    link_id=entry.link_id,
                    request_type=entry.request_type,
                    status=entry.status,
                    quantity=sum(line.quantity for line in lines),
                    delta=sum(line.delta for line in lines),
                    requested_by=entry.requested_by,
                    reviewed_by=entry.reviewed_by,
                    created_at=entry.created_at,
                    reviewed_at=entry.reviewed_at,
                    note=entry.note,
                )
            )
        return sorted(
            history,
            key=lambda h: (h.created_at is not None, h.created_at, h.link_id),
            reverse=True,
        )
