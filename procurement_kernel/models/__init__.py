"""ORM models. Importing this package registers every table on Base.metadata."""

from procurement_kernel.models.item import ItemModel, item_from_row
from procurement_kernel.models.ledger import MULTI_SKU, LedgerEntryModel, ledger_entry_from_row
from procurement_kernel.models.pending_request import (
    PendingRequestModel,
    pending_request_from_row,
)
from procurement_kernel.models.sequence import SequenceCounter
from procurement_kernel.models.user import UserModel, user_from_row

__all__ = [
    "ItemModel",
    "LedgerEntryModel",
    "MULTI_SKU",
    "PendingRequestModel",
    "SequenceCounter",
    "UserModel",
    "item_from_row",
    "ledger_entry_from_row",
    "pending_request_from_row",
    "user_from_row",
]
