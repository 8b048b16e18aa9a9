"""
CatalogService -- CREATE_SKU / MODIFY_SKU / RETIRE_SKU mutations.

Catalog changes carry no approval stage; the workflow engine calls this
service directly and records an audit-only ledger entry.

Rules:
    - create is an idempotent upsert keyed by SKU.  New items start Active
      with quantity 0; a missing SKU is allocated from the sequence service.
    - modify rejects Retired items, and may only set status to Active or
      On Hold.  Retiring goes through ``retire_item``.
    - retire requires quantity == 0.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from procurement_kernel.domain.approval import (
    MODIFIABLE_ITEM_STATUSES,
    Item,
    ItemStatus,
)
from procurement_kernel.domain.clock import Clock, SystemClock
from procurement_kernel.domain.notes import change_summary
from procurement_kernel.exceptions import (
    InvalidStatusChangeError,
    ItemNotFoundError,
    ItemRetiredError,
    RetireWithStockError,
    ValidationError,
)
from procurement_kernel.logging_config import get_logger
from procurement_kernel.models import item_from_row
from procurement_kernel.services.record_store import ITEMS, RecordStore
from procurement_kernel.services.sequence_service import SequenceService

logger = get_logger("services.catalog")

# Editable column -> label used in change summaries.
FIELD_LABELS: dict[str, str] = {
    "name": "Name",
    "description": "Description",
    "category": "Category",
    "unit_of_measure": "UoM",
    "location": "Location",
    "unit_price": "Unit Price",
    "status": "Status",
}


@dataclass(frozen=True)
class CatalogResult:
    item: Item
    created: bool = False
    summary: str = ""


def _clean(changes: dict[str, Any]) -> dict[str, Any]:
    unknown = set(changes) - set(FIELD_LABELS)
    if unknown:
        raise ValidationError(f"Unknown catalog field(s): {', '.join(sorted(unknown))}")
    cleaned: dict[str, Any] = {}
    for key, value in changes.items():
        if key == "unit_price":
            if value in (None, ""):
                cleaned[key] = None
                continue
            try:
                cleaned[key] = Decimal(str(value))
            except InvalidOperation:
                raise ValidationError(f"Invalid unit price: {value!r}") from None
        else:
            cleaned[key] = "" if value is None else str(value).strip()
    return cleaned


def _differs(old: Any, new: Any) -> bool:
    if isinstance(old, Decimal) or isinstance(new, Decimal):
        if old is None or new is None:
            return old is not new
        return Decimal(old) != Decimal(new)
    return str(old or "") != str(new or "")


class CatalogService:

    def __init__(
        self,
        store: RecordStore,
        sequences: SequenceService,
        clock: Clock | None = None,
    ):
        self._store = store
        self._sequences = sequences
        self._clock = clock or SystemClock()

    def _find(self, sku: str) -> Item | None:
        row = self._store.find_record_by_key(ITEMS, "sku", sku)
        return item_from_row(row) if row is not None else None

    def _get(self, sku: str) -> Item:
        item = self._find(sku)
        if item is None:
            raise ItemNotFoundError(sku)
        return item

    def create_item(
        self,
        name: str,
        unit_of_measure: str,
        sku: str | None = None,
        **fields: Any,
    ) -> CatalogResult:
        if not (name or "").strip():
            raise ValidationError("Item name is required")
        values = _clean({"name": name, "unit_of_measure": unit_of_measure, **fields})
        values.pop("status", None)
        now = self._clock.now()

        sku = (sku or "").strip()
        existing = self._find(sku) if sku else None
        if existing is not None:
            self._store.update_record_by_key(ITEMS, "sku", sku, {**values, "updated_at": now})
            logger.info("catalog_item_upserted", extra={"sku": sku, "created": False})
            return CatalogResult(item=self._get(sku), created=False)

        sku = sku or self._sequences.next_sku()
        self._store.append_record(
            ITEMS,
            {
                **values,
                "sku": sku,
                "quantity": 0,
                "status": ItemStatus.ACTIVE.value,
                "created_at": now,
                "updated_at": now,
            },
        )
        logger.info("catalog_item_upserted", extra={"sku": sku, "created": True})
        return CatalogResult(item=self._get(sku), created=True)

    def modify_item(self, sku: str, changes: dict[str, Any]) -> CatalogResult:
        item = self._get(sku)
        if item.status is ItemStatus.RETIRED:
            raise ItemRetiredError(sku)

        values = _clean(changes)
        if "status" in values:
            try:
                requested = ItemStatus(values["status"])
            except ValueError:
                raise InvalidStatusChangeError(sku, values["status"]) from None
            if requested not in MODIFIABLE_ITEM_STATUSES:
                raise InvalidStatusChangeError(sku, requested.value)

        diffs: list[tuple[str, Any, Any]] = []
        for key, new in values.items():
            old = getattr(item, key)
            old_cmp = old.value if isinstance(old, ItemStatus) else old
            if _differs(old_cmp, new):
                diffs.append((FIELD_LABELS[key], old_cmp, new))

        summary = change_summary(diffs)
        if diffs:
            self._store.update_record_by_key(
                ITEMS, "sku", sku, {**values, "updated_at": self._clock.now()}
            )
        logger.info("catalog_item_modified", extra={"sku": sku, "changes": len(diffs)})
        return CatalogResult(item=self._get(sku), summary=summary)

    def retire_item(self, sku: str) -> CatalogResult:
        item = self._get(sku)
        if item.quantity != 0:
            raise RetireWithStockError(sku, item.quantity)
        self._store.update_record_by_key(
            ITEMS,
            "sku",
            sku,
            {"status": ItemStatus.RETIRED.value, "updated_at": self._clock.now()},
        )
        logger.info("catalog_item_retired", extra={"sku": sku})
        return CatalogResult(item=self._get(sku), summary="Status: Retired")
