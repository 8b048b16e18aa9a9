"""
Tests for CatalogService -- CREATE_SKU / MODIFY_SKU / RETIRE_SKU.

Covers:
- create_item(): allocated SKU, Active with zero stock, idempotent upsert
- modify_item(): change summary, Retired items rejected, status limits,
  Decimal prices compared by value
- retire_item(): only empty items
"""

from decimal import Decimal

import pytest

from procurement_kernel.domain.approval import ItemStatus
from procurement_kernel.exceptions import (
    InvalidStatusChangeError,
    ItemNotFoundError,
    ItemRetiredError,
    RetireWithStockError,
    ValidationError,
)


@pytest.fixture
def catalog(services):
    return services.catalog


class TestCreate:

    def test_allocates_sku(self, catalog):
        first = catalog.create_item("Bolt", "pcs")
        second = catalog.create_item("Nut", "pcs")
        assert first.created
        assert (first.item.sku, second.item.sku) == ("YDC-PROC-0001", "YDC-PROC-0002")
        assert (first.item.quantity, first.item.status) == (0, ItemStatus.ACTIVE)

    def test_existing_sku_is_updated_not_duplicated(self, catalog, make_item, store):
        make_item("SKU-1", 7)
        result = catalog.create_item("Widget v2", "box", sku="SKU-1", unit_price="2.50")
        assert not result.created
        assert result.item.name == "Widget v2"
        assert result.item.quantity == 7
        assert result.item.unit_price == Decimal("2.50")
        assert len(store.read_all_records("items")) == 1

    def test_name_required(self, catalog):
        with pytest.raises(ValidationError):
            catalog.create_item("  ", "pcs")

    def test_unknown_field(self, catalog):
        with pytest.raises(ValidationError, match="colour"):
            catalog.create_item("Bolt", "pcs", colour="red")

    def test_bad_price(self, catalog):
        with pytest.raises(ValidationError):
            catalog.create_item("Bolt", "pcs", unit_price="cheap")


class TestModify:

    def test_summary_lists_changed_fields(self, catalog, make_item):
        make_item("SKU-1", 1)
        result = catalog.modify_item("SKU-1", {"name": "Gadget", "category": "Tools"})
        assert result.summary == "Name: “Widget” → “Gadget”; Category: “—” → “Tools”"
        assert result.item.category == "Tools"

    def test_no_changes(self, catalog, make_item):
        make_item("SKU-1", 1)
        assert catalog.modify_item("SKU-1", {"name": "Widget"}).summary == "No visible field changes"

    def test_equal_prices_are_not_a_change(self, catalog, make_item):
        make_item("SKU-1", 1)
        catalog.modify_item("SKU-1", {"unit_price": "3.5"})
        assert catalog.modify_item("SKU-1", {"unit_price": "3.50"}).summary == "No visible field changes"

    def test_put_on_hold(self, catalog, make_item):
        make_item("SKU-1", 1)
        assert catalog.modify_item("SKU-1", {"status": "On Hold"}).item.status is ItemStatus.ON_HOLD

    @pytest.mark.parametrize("status", ["Retired", "Lost"])
    def test_status_limited_to_active_or_on_hold(self, catalog, make_item, status):
        make_item("SKU-1", 0)
        with pytest.raises(InvalidStatusChangeError):
            catalog.modify_item("SKU-1", {"status": status})

    def test_retired_item_is_frozen(self, catalog, make_item):
        make_item("SKU-1", 0, status=ItemStatus.RETIRED)
        with pytest.raises(ItemRetiredError):
            catalog.modify_item("SKU-1", {"name": "Back"})

    def test_unknown_sku(self, catalog):
        with pytest.raises(ItemNotFoundError):
            catalog.modify_item("NOPE", {"name": "x"})


class TestRetire:

    def test_retire_empty_item(self, catalog, make_item):
        make_item("SKU-1", 0)
        assert catalog.retire_item("SKU-1").item.status is ItemStatus.RETIRED

    def test_retire_with_stock_rejected(self, catalog, make_item):
        make_item("SKU-1", 2)
        with pytest.raises(RetireWithStockError) as exc_info:
            catalog.retire_item("SKU-1")
        assert exc_info.value.on_hand == 2
