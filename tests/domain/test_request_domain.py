"""
Tests for request domain types, topologies and payloads.

Covers:
- REQUEST_TRANSITIONS: Pending exits, terminal statuses have none
- RequestType properties (movement / outbound / catalog / delta sign)
- Topologies: initial NextRole, manager skip, final stage, auto-approval
- Payload tagged union: single vs multi construction, dict form, bad kind
"""

from datetime import datetime, timezone

import pytest

from procurement_kernel.domain.approval import (
    REQUEST_TRANSITIONS,
    TERMINAL_REQUEST_STATUSES,
    ApprovalHistoryEntry,
    RequestStatus,
    RequestType,
    Role,
    can_transition,
)
from procurement_kernel.domain.payloads import (
    CatalogPayload,
    MultiItemPayload,
    RequestLine,
    RequestMeta,
    SingleItemPayload,
    build_movement_payload,
    payload_from_dict,
    payload_to_dict,
)
from procurement_kernel.domain.workflow import (
    initial_next_role,
    is_auto_approved,
    is_final_stage,
    role_after,
)


class TestRequestTransitions:

    def test_pending_can_reach_every_terminal_status(self):
        for status in TERMINAL_REQUEST_STATUSES:
            assert can_transition(RequestStatus.PENDING, status)

    @pytest.mark.parametrize("status", sorted(TERMINAL_REQUEST_STATUSES, key=lambda s: s.value))
    def test_terminal_statuses_have_no_exits(self, status):
        assert REQUEST_TRANSITIONS[status] == frozenset()
        assert not can_transition(status, RequestStatus.PENDING)

    def test_every_status_has_an_entry(self):
        assert set(REQUEST_TRANSITIONS) == set(RequestStatus)

    def test_status_values_match_stored_strings(self):
        assert [s.value for s in RequestStatus] == ["Pending", "Approved", "Declined", "Voided"]


class TestRequestType:

    def test_delta_signs(self):
        assert RequestType.RECEIVE.delta_sign == 1
        assert RequestType.ISSUE.delta_sign == -1
        assert RequestType.REQUEST.delta_sign == -1
        assert RequestType.MODIFY_SKU.delta_sign == 0

    def test_classification(self):
        assert RequestType.RECEIVE.is_movement and not RequestType.RECEIVE.is_outbound
        assert RequestType.REQUEST.is_outbound
        assert RequestType.CREATE_SKU.is_catalog and not RequestType.CREATE_SKU.is_movement


class TestRoleParse:

    def test_case_insensitive(self):
        assert Role.parse(" Manager ") is Role.MANAGER

    def test_unknown_falls_back_to_user(self):
        assert Role.parse("admin") is Role.USER
        assert Role.parse(None) is Role.USER


class TestTopologies:

    def test_receive_goes_straight_to_controller(self):
        assert initial_next_role(RequestType.RECEIVE, Role.USER) is Role.CONTROLLER
        assert is_final_stage(RequestType.RECEIVE, Role.CONTROLLER)

    @pytest.mark.parametrize("request_type", [RequestType.ISSUE, RequestType.REQUEST])
    def test_issue_starts_with_manager(self, request_type):
        assert initial_next_role(request_type, Role.USER) is Role.MANAGER
        assert not is_final_stage(request_type, Role.MANAGER)
        assert role_after(request_type, Role.MANAGER) is Role.CONTROLLER

    @pytest.mark.parametrize("request_type", [RequestType.ISSUE, RequestType.REQUEST])
    def test_manager_requester_skips_manager_stage(self, request_type):
        assert initial_next_role(request_type, Role.MANAGER) is Role.CONTROLLER

    def test_controller_stage_is_always_final(self):
        for request_type in (RequestType.RECEIVE, RequestType.ISSUE, RequestType.REQUEST):
            assert is_final_stage(request_type, Role.CONTROLLER)
            assert role_after(request_type, Role.CONTROLLER) is None

    def test_catalog_types_have_no_stage(self):
        for request_type in (RequestType.CREATE_SKU, RequestType.MODIFY_SKU, RequestType.RETIRE_SKU):
            assert not is_final_stage(request_type, Role.CONTROLLER)
            assert initial_next_role(request_type, Role.USER) is None

    def test_auto_approval_only_for_controller_movements(self):
        assert is_auto_approved(RequestType.RECEIVE, Role.CONTROLLER)
        assert is_auto_approved(RequestType.ISSUE, Role.CONTROLLER)
        assert not is_auto_approved(RequestType.ISSUE, Role.MANAGER)
        assert not is_auto_approved(RequestType.CREATE_SKU, Role.CONTROLLER)


class TestPayloads:

    def _line(self, sku="SKU-1", qty=5):
        return RequestLine(sku, "Widget", "pcs", qty, -qty)

    def test_one_line_builds_single_payload(self):
        payload = build_movement_payload([self._line()], RequestMeta())
        assert isinstance(payload, SingleItemPayload)
        assert payload.lines == (self._line(),)

    def test_many_lines_build_multi_payload(self):
        payload = build_movement_payload(
            [self._line("A"), self._line("B")], RequestMeta(), {"B": "box", "A": ""}
        )
        assert isinstance(payload, MultiItemPayload)
        assert payload.unit_overrides == {"B": "box"}

    def test_single_dict_form_is_flat(self):
        data = payload_to_dict(build_movement_payload([self._line()], RequestMeta()))
        assert data["kind"] == "single"
        assert (data["sku"], data["quantity"], data["delta"]) == ("SKU-1", 5, -5)

    def test_multi_payload_survives_storage(self):
        meta = RequestMeta(issued_to="Ana", reactivate_if_retired=True)
        payload = build_movement_payload([self._line("A"), self._line("B", 2)], meta)
        assert payload_from_dict(payload_to_dict(payload)) == payload

    def test_catalog_payload_has_no_lines(self):
        payload = CatalogPayload(sku="SKU-1", change_summary="Name: “a” → “b”")
        assert payload.lines == ()
        assert payload_from_dict(payload_to_dict(payload)) == payload

    def test_unknown_kind_rejected(self):
        with pytest.raises(ValueError, match="Unknown payload kind"):
            payload_from_dict({"kind": "mystery"})


class TestApprovalHistoryEntry:

    def test_dict_form(self):
        entry = ApprovalHistoryEntry(
            step=2,
            role="controller",
            actor="c@x",
            timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc),
            decline_reason="no budget",
            declined=True,
        )
        data = entry.to_dict()
        assert data["declined"] is True
        assert data["decline_reason"] == "no budget"
        assert ApprovalHistoryEntry.from_dict(data) == entry
