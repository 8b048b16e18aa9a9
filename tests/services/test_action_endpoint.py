"""
Tests for ActionEndpoint -- emailed approve/decline links.

Covers:
- open(): confirm pages for approve and decline, each rejection page in the
  documented check order (sign-in, link error, wrong account, not an
  approver, not found, already processed)
- submit(): runs approve/decline through the ordinary gate, reason required
  for decline, replays end on already_processed, stock failures surface
  as a rejected page
"""

import pytest

from procurement_kernel.domain.approval import RequestStatus, Role, UserStatus
from procurement_kernel.domain.payloads import ItemRequest
from procurement_kernel.exceptions import ReasonRequiredError
from procurement_kernel.services.action_endpoint import ActionPageKind


@pytest.fixture
def endpoint(services):
    return services.endpoint


@pytest.fixture
def tokens(services):
    return services.tokens


@pytest.fixture
def pending(workflow, make_item, directory, notifier):
    """A plain user's ISSUE waiting on the manager; returns (pending_id, invitation)."""
    make_item("SKU-1", 10)
    result = workflow.submit_pending("ISSUE", [ItemRequest("SKU-1", 4)], directory["user"], "user")
    [(_, _, invitations)] = notifier.of("submitted")
    return result.pending_id, invitations[0]


class TestOpen:

    def test_confirm_approve(self, endpoint, pending, directory):
        pending_id, invite = pending
        page = endpoint.open("approve", invite.approve_token, directory["manager"])
        assert page.kind is ActionPageKind.CONFIRM_APPROVE
        assert page.pending_id == pending_id
        assert page.request.total_quantity == 4
        assert not page.text_required

    def test_confirm_decline_requires_text(self, endpoint, pending, directory):
        _, invite = pending
        page = endpoint.open("decline", invite.decline_token, directory["manager"])
        assert page.kind is ActionPageKind.CONFIRM_DECLINE
        assert page.text_required

    def test_identity_required(self, endpoint, pending):
        _, invite = pending
        assert endpoint.open("approve", invite.approve_token, "  ").kind is ActionPageKind.NOT_AUTHORIZED

    def test_garbage_token(self, endpoint, directory):
        page = endpoint.open("approve", "not-a-token", directory["manager"])
        assert page.kind is ActionPageKind.LINK_ERROR
        assert page.error_code is not None

    def test_action_must_match_token(self, endpoint, pending, directory):
        _, invite = pending
        page = endpoint.open("decline", invite.approve_token, directory["manager"])
        assert page.kind is ActionPageKind.LINK_ERROR

    def test_personal_token_for_someone_else(self, endpoint, pending, directory):
        _, invite = pending
        page = endpoint.open("approve", invite.approve_token, directory["controller"])
        assert page.kind is ActionPageKind.WRONG_ACCOUNT
        assert "manager@example.com" in page.message

    def test_group_token_still_needs_an_approver(self, endpoint, tokens, pending, directory):
        pending_id, _ = pending
        page = endpoint.open("approve", tokens.issue("approve", pending_id), directory["user"])
        assert page.kind is ActionPageKind.NOT_AUTHORIZED

    def test_disabled_approver(self, endpoint, tokens, pending, make_user):
        pending_id, _ = pending
        make_user("old-boss@example.com", Role.MANAGER, UserStatus.DISABLED)
        page = endpoint.open("approve", tokens.issue("approve", pending_id), "old-boss@example.com")
        assert page.kind is ActionPageKind.NOT_AUTHORIZED

    def test_unknown_request(self, endpoint, tokens, directory):
        page = endpoint.open("approve", tokens.issue("approve", "NOPE-P"), directory["manager"])
        assert page.kind is ActionPageKind.NOT_FOUND

    def test_resolved_request(self, endpoint, workflow, pending, directory):
        pending_id, invite = pending
        workflow.void(pending_id, "controller", directory["controller"], "dup")
        page = endpoint.open("approve", invite.approve_token, directory["manager"])
        assert page.kind is ActionPageKind.ALREADY_PROCESSED
        assert page.status is RequestStatus.VOIDED


class TestSubmit:

    def test_manager_approval_forwards(self, endpoint, workflow, pending, directory):
        pending_id, invite = pending
        page = endpoint.submit("approve", invite.approve_token, directory["manager"], "looks good")

        assert page.kind is ActionPageKind.COMPLETED
        assert page.message == "Approved; forwarded to controller."
        request = workflow.get_request(pending_id)
        assert request.stage == 2
        assert request.approval_history[0].comment == "looks good"

    def test_replayed_link_hits_the_stage_gate(self, endpoint, pending, directory):
        _, invite = pending
        endpoint.submit("approve", invite.approve_token, directory["manager"])
        page = endpoint.submit("approve", invite.approve_token, directory["manager"])
        assert page.kind is ActionPageKind.NOT_AUTHORIZED

    def test_replay_after_final_approval(self, endpoint, services, pending, directory, notifier):
        pending_id, invite = pending
        endpoint.submit("approve", invite.approve_token, directory["manager"])
        [(_, _, controller_invites)] = notifier.of("stage_advanced")
        token = controller_invites[0].approve_token

        done = endpoint.submit("approve", token, directory["controller"])
        assert done.kind is ActionPageKind.COMPLETED
        assert done.message == "Request approved."
        assert services.inventory.get_item("SKU-1").quantity == 6

        again = endpoint.submit("approve", token, directory["controller"])
        assert again.kind is ActionPageKind.ALREADY_PROCESSED
        assert again.status is RequestStatus.APPROVED
        assert services.inventory.get_item("SKU-1").quantity == 6

    def test_decline_without_reason(self, endpoint, workflow, pending, directory):
        pending_id, invite = pending
        page = endpoint.submit("decline", invite.decline_token, directory["manager"], "")
        assert page.kind is ActionPageKind.CONFIRM_DECLINE
        assert page.error_code == ReasonRequiredError.code
        assert workflow.get_request(pending_id).status is RequestStatus.PENDING

    def test_decline_with_reason(self, endpoint, workflow, pending, directory):
        pending_id, invite = pending
        page = endpoint.submit("decline", invite.decline_token, directory["manager"], "Not needed")
        assert page.kind is ActionPageKind.COMPLETED
        assert workflow.get_request(pending_id).status is RequestStatus.DECLINED

    def test_stock_failure_is_rejected_page(self, endpoint, workflow, tokens, pending, directory):
        pending_id, invite = pending
        endpoint.submit("approve", invite.approve_token, directory["manager"])
        workflow.submit_pending("ISSUE", [ItemRequest("SKU-1", 9)], directory["controller"], "controller")

        page = endpoint.submit("approve", tokens.issue("approve", pending_id), directory["controller"])
        assert page.kind is ActionPageKind.REJECTED
        assert workflow.get_request(pending_id).status is RequestStatus.PENDING
