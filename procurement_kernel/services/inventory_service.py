"""
InventoryDeltaApplier -- commits signed quantity deltas to catalog items.

Responsibility:
    The only code path that changes ``items.quantity``.  Called by the
    workflow engine at final approval (or on the controller fast path).

Architecture position:
    Kernel > Services.  Reads and writes through the RecordStore.

Invariants enforced:
    - Quantity is never negative.  ``newQty = qty + delta`` is re-validated
      at apply time, independent of any check made at submission, because
      on-hand may have moved in between.
    - Outbound movements require an Active item.
    - A Retired item receiving stock flips to Active only when the request
      asked for reactivation; otherwise status is untouched.
    - Multi-item application validates every line before mutating any, so
      a failure leaves every item exactly as it was.

Failure modes:
    - ItemNotFoundError, StockInsufficientError, ItemNotActiveError.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from procurement_kernel.domain.approval import Item, ItemStatus
from procurement_kernel.domain.clock import Clock, SystemClock
from procurement_kernel.exceptions import (
    ItemNotActiveError,
    ItemNotFoundError,
    StockInsufficientError,
)
from procurement_kernel.logging_config import get_logger
from procurement_kernel.models import item_from_row
from procurement_kernel.services.record_store import ITEMS, RecordStore

logger = get_logger("services.inventory")


@dataclass(frozen=True)
class ItemDelta:
    sku: str
    delta: int
    unit_override: str = ""
    require_active: bool = False


class InventoryDeltaApplier:

    def __init__(self, store: RecordStore, clock: Clock | None = None):
        self._store = store
        self._clock = clock or SystemClock()

    def get_item(self, sku: str) -> Item:
        row = self._store.find_record_by_key(ITEMS, "sku", sku)
        if row is None:
            raise ItemNotFoundError(sku)
        return item_from_row(row)

    def validate(self, deltas: Iterable[ItemDelta]) -> dict[str, Item]:
        """
        Check every delta against current stock without writing anything.

        Lines touching the same SKU are checked cumulatively.  Returns the
        items as read, keyed by SKU.
        """
        items: dict[str, Item] = {}
        running: dict[str, int] = {}
        for d in deltas:
            if d.sku not in items:
                items[d.sku] = self.get_item(d.sku)
                running[d.sku] = items[d.sku].quantity
            item = items[d.sku]
            if d.require_active and not item.is_active:
                raise ItemNotActiveError(d.sku, item.status.value)
            new_qty = running[d.sku] + d.delta
            if new_qty < 0:
                raise StockInsufficientError(d.sku, running[d.sku], -d.delta)
            running[d.sku] = new_qty
        return items

    def apply_delta(
        self,
        sku: str,
        signed_delta: int,
        unit_override: str | None = None,
        reactivate_if_retired: bool = False,
        require_active: bool = False,
    ) -> Item:
        """Apply one delta. Raises before writing if the result would go negative."""
        item = self.get_item(sku)
        if require_active and not item.is_active:
            raise ItemNotActiveError(sku, item.status.value)

        new_qty = item.quantity + signed_delta
        if new_qty < 0:
            raise StockInsufficientError(sku, item.quantity, -signed_delta)

        patch: dict = {"quantity": new_qty, "updated_at": self._clock.now()}
        if unit_override:
            patch["unit_of_measure"] = unit_override
        if item.status is ItemStatus.RETIRED and new_qty > 0 and reactivate_if_retired:
            patch["status"] = ItemStatus.ACTIVE.value
            logger.info("item_reactivated", extra={"sku": sku})

        self._store.update_record_by_key(ITEMS, "sku", sku, patch)
        logger.info(
            "inventory_delta_applied",
            extra={
                "sku": sku,
                "delta": signed_delta,
                "quantity_before": item.quantity,
                "quantity_after": new_qty,
            },
        )
        return self.get_item(sku)

    def apply_deltas(
        self,
        deltas: list[ItemDelta],
        reactivate_if_retired: bool = False,
    ) -> tuple[Item, ...]:
        """Validate all deltas, then apply them in order."""
        self.validate(deltas)
        return tuple(
            self.apply_delta(
                d.sku,
                d.delta,
                unit_override=d.unit_override,
                reactivate_if_retired=reactivate_if_retired,
                require_active=d.require_active,
            )
            for d in deltas
        )

    def low_stock(self, skus: Iterable[str], threshold: int) -> tuple[Item, ...]:
        """Active items among ``skus`` whose quantity is at or below ``threshold``."""
        found = []
        for sku in dict.fromkeys(skus):
            item = self.get_item(sku)
            if item.is_active and item.quantity <= threshold:
                found.append(item)
        return tuple(found)
