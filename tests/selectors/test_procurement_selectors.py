"""
Tests for RequestSelector and InventorySelector.

Covers:
- pending_queue(): controllers see every Pending request, managers their
  stage, plain users are refused
- awaiting_role() / pending_all(): resolved requests drop out
- my_activity(): newest first, limited, case-insensitive identity
- counts() / low_stock() / sku_history() derived from items and ledger
"""

import pytest

from procurement_kernel.domain.approval import ItemStatus, RequestStatus, RequestType, Role
from procurement_kernel.domain.payloads import ItemRequest
from procurement_kernel.exceptions import NotApproverError
from procurement_kernel.selectors import InventorySelector, RequestSelector


@pytest.fixture
def requests(store):
    return RequestSelector(store)


@pytest.fixture
def inventory_view(store):
    return InventorySelector(store)


@pytest.fixture
def queue(workflow, make_item, directory, deterministic_clock):
    """One ISSUE at the manager stage and one RECEIVE at the controller stage."""
    make_item("SKU-1", 10)
    deterministic_clock.advance(1)
    issue = workflow.submit_pending("ISSUE", [ItemRequest("SKU-1", 2)], directory["user"], "user")
    deterministic_clock.advance(1)
    receive = workflow.submit_pending("RECEIVE", [ItemRequest("SKU-1", 5)], directory["user"], "user")
    deterministic_clock.advance(1)
    return issue.pending_id, receive.pending_id


class TestRequestSelector:

    def test_controller_sees_everything(self, requests, queue):
        assert {r.pending_id for r in requests.pending_queue("controller")} == set(queue)

    def test_manager_sees_own_stage(self, requests, queue):
        issue_id, _ = queue
        assert [r.pending_id for r in requests.pending_queue(Role.MANAGER)] == [issue_id]

    def test_plain_user_has_no_queue(self, requests, queue):
        with pytest.raises(NotApproverError):
            requests.pending_queue("user")

    def test_awaiting_role_follows_stage(self, requests, workflow, queue, directory):
        issue_id, receive_id = queue
        workflow.approve(issue_id, "manager", directory["manager"])
        assert requests.awaiting_role("manager") == []
        assert {r.pending_id for r in requests.awaiting_role("controller")} == {issue_id, receive_id}

    def test_resolved_requests_leave_the_queue(self, requests, workflow, queue, directory):
        _, receive_id = queue
        workflow.approve(receive_id, "controller", directory["controller"])
        assert [r.pending_id for r in requests.pending_all()] == [queue[0]]

    def test_my_activity_newest_first(self, requests, workflow, queue, directory):
        issue_id, receive_id = queue
        workflow.cancel(issue_id, directory["user"], "not needed")

        mine = requests.my_activity("REQUESTER@example.com")
        assert [r.pending_id for r in mine] == [receive_id, issue_id]
        assert mine[1].status is RequestStatus.VOIDED
        assert len(requests.my_activity(directory["user"], limit=1)) == 1
        assert requests.my_activity(directory["manager"]) == []


class TestInventorySelector:

    def test_counts(self, inventory_view, make_item, queue):
        make_item("OLD", 0, status=ItemStatus.RETIRED)
        counts = inventory_view.counts()
        assert (counts.active_skus, counts.on_hand) == (1, 10)
        assert counts.pending == 2
        assert counts.ledger_entries == 2

    def test_low_stock_lowest_first(self, inventory_view, make_item):
        make_item("A", 4)
        make_item("B", 1)
        make_item("C", 9)
        make_item("D", 0, status=ItemStatus.ON_HOLD)
        assert [i.sku for i in inventory_view.low_stock(5)] == ["B", "A"]

    def test_sku_history_newest_first(self, inventory_view, workflow, make_item, directory, deterministic_clock):
        make_item("SKU-1", 10)
        make_item("SKU-2", 10)
        first = workflow.submit_pending(
            "RECEIVE", [ItemRequest("SKU-1", 3)], directory["controller"], "controller"
        )
        deterministic_clock.advance(10)
        second = workflow.submit_pending(
            "ISSUE",
            [ItemRequest("SKU-2", 1), ItemRequest("SKU-1", 2)],
            directory["user"],
            "user",
        )
        deterministic_clock.advance(10)
        workflow.submit_pending("ISSUE", [ItemRequest("SKU-2", 1)], directory["user"], "user")

        history = inventory_view.sku_history("SKU-1")
        assert [h.link_id for h in history] == [second.link_id, first.link_id]
        assert (history[0].quantity, history[0].delta) == (2, -2)
        assert history[0].request_type is RequestType.ISSUE
        assert history[1].status is RequestStatus.APPROVED

    def test_catalog_events_appear_in_history(self, inventory_view, workflow, make_item, directory):
        make_item("SKU-1", 0)
        workflow.submit_catalog_change("RETIRE_SKU", directory["controller"], "controller", sku="SKU-1")
        [entry] = inventory_view.sku_history("SKU-1")
        assert entry.request_type is RequestType.RETIRE_SKU
        assert entry.delta == 0
