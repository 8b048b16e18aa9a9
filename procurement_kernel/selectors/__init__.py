"""Read-only query selectors over the record store."""

from procurement_kernel.selectors.inventory_selector import (
    InventoryCounts,
    InventorySelector,
    SkuHistoryEntry,
)
from procurement_kernel.selectors.request_selector import RequestSelector

__all__ = [
    "InventoryCounts",
    "InventorySelector",
    "RequestSelector",
    "SkuHistoryEntry",
]
