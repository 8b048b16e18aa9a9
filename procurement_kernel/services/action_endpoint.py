"""
ActionEndpoint -- inbound handler for emailed approve/decline links.

Responsibility:
    ``open`` validates a link and decides which page to show;
    ``submit`` re-validates and invokes ``approve`` / ``decline`` exactly
    as an in-app call would, under the same role and self-approval gate.

Check order for both calls:
    1. identity present                      -> not_authorized
    2. token verifies (any TokenError)       -> link_error
       token bound to someone else           -> wrong_account
       token action differs from the link    -> link_error
    3. identity is an Active manager/controller -> not_authorized
    4. request exists                        -> not_found
    5. request still Pending                 -> already_processed (with status)
    6. confirm_approve (comment optional) / confirm_decline (reason required)

Pages are plain frozen dataclasses; HTML rendering is out of scope.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from procurement_kernel.domain.approval import RequestStatus, TokenAction, User
from procurement_kernel.exceptions import (
    AlreadyProcessedError,
    AuthorizationError,
    ProcurementKernelError,
    ReasonRequiredError,
    RequestNotFoundError,
    TokenError,
    TokenRecipientMismatchError,
)
from procurement_kernel.logging_config import get_logger
from procurement_kernel.services.action_token_service import ActionTokenData, ActionTokenService
from procurement_kernel.services.approval_workflow_service import ApprovalWorkflowService
from procurement_kernel.services.notification_service import RequestSnapshot
from procurement_kernel.services.user_service import UserDirectory, normalize_email

logger = get_logger("services.action_endpoint")


class ActionPageKind(str, Enum):
    CONFIRM_APPROVE = "confirm_approve"
    CONFIRM_DECLINE = "confirm_decline"
    COMPLETED = "completed"
    ALREADY_PROCESSED = "already_processed"
    NOT_FOUND = "not_found"
    WRONG_ACCOUNT = "wrong_account"
    NOT_AUTHORIZED = "not_authorized"
    LINK_ERROR = "link_error"
    REJECTED = "rejected"


@dataclass(frozen=True)
class ActionPage:
    kind: ActionPageKind
    title: str
    message: str = ""
    pending_id: str | None = None
    status: RequestStatus | None = None
    request: RequestSnapshot | None = None
    text_required: bool = False
    error_code: str | None = None


@dataclass(frozen=True)
class _Gate:
    """Outcome of the shared checks: either a page to show or a go-ahead."""

    page: ActionPage | None = None
    token: ActionTokenData | None = None
    user: User | None = None


class ActionEndpoint:

    def __init__(
        self,
        workflow: ApprovalWorkflowService,
        tokens: ActionTokenService,
        users: UserDirectory,
    ):
        self._workflow = workflow
        self._tokens = tokens
        self._users = users

    def _gate(self, action: str, token: str, identity: str | None) -> _Gate:
        identity = normalize_email(identity)
        if not identity:
            return _Gate(page=ActionPage(ActionPageKind.NOT_AUTHORIZED, "Sign in required"))

        try:
            data = self._tokens.verify(token, presented_identity=identity)
        except TokenRecipientMismatchError as exc:
            return _Gate(page=ActionPage(
                ActionPageKind.WRONG_ACCOUNT,
                "Wrong account",
                f"This link was sent to {exc.recipient}. Sign in with that account.",
                error_code=exc.code,
            ))
        except TokenError as exc:
            return _Gate(page=ActionPage(
                ActionPageKind.LINK_ERROR, "Link error", str(exc), error_code=exc.code,
            ))

        if (action or "").strip().lower() != data.action.value:
            return _Gate(page=ActionPage(
                ActionPageKind.LINK_ERROR,
                "Link error",
                f"Unknown action {action!r} for this link",
                pending_id=data.pending_id,
            ))

        user = self._users.find_user(identity)
        if user is None or not user.is_active_approver:
            return _Gate(page=ActionPage(
                ActionPageKind.NOT_AUTHORIZED,
                "Not authorized",
                "Only active managers and controllers can act on requests.",
                pending_id=data.pending_id,
            ))

        try:
            request = self._workflow.get_request(data.pending_id)
        except RequestNotFoundError:
            return _Gate(page=ActionPage(
                ActionPageKind.NOT_FOUND,
                "Request not found",
                "The request was not found or has been archived.",
                pending_id=data.pending_id,
            ))

        if request.status is not RequestStatus.PENDING:
            return _Gate(page=ActionPage(
                ActionPageKind.ALREADY_PROCESSED,
                f"Already {request.status.value}",
                pending_id=request.pending_id,
                status=request.status,
                request=RequestSnapshot.from_request(request),
            ))

        return _Gate(token=data, user=user)

    def open(self, action: str, token: str, identity: str | None) -> ActionPage:
        gate = self._gate(action, token, identity)
        if gate.page is not None:
            logger.info(
                "action_link_rejected",
                extra={"page": gate.page.kind.value, "pending_id": gate.page.pending_id},
            )
            return gate.page

        request = self._workflow.get_request(gate.token.pending_id)
        snapshot = RequestSnapshot.from_request(request)
        if gate.token.action is TokenAction.APPROVE:
            return ActionPage(
                ActionPageKind.CONFIRM_APPROVE,
                "Approve request",
                "Add an optional comment and confirm.",
                pending_id=request.pending_id,
                status=request.status,
                request=snapshot,
            )
        return ActionPage(
            ActionPageKind.CONFIRM_DECLINE,
            "Decline request",
            "A reason is required to decline.",
            pending_id=request.pending_id,
            status=request.status,
            request=snapshot,
            text_required=True,
        )

    def submit(self, action: str, token: str, identity: str | None, text: str = "") -> ActionPage:
        """Run the decision behind a confirmed form. ``text`` is the comment or reason."""
        gate = self._gate(action, token, identity)
        if gate.page is not None:
            return gate.page

        pending_id = gate.token.pending_id
        user = gate.user
        try:
            if gate.token.action is TokenAction.APPROVE:
                outcome = self._workflow.approve(pending_id, user.role, user.email, text)
                message = (
                    "Request approved."
                    if outcome.finalized
                    else f"Approved; forwarded to {outcome.next_role.value}."
                )
            else:
                self._workflow.decline(pending_id, user.role, user.email, text)
                message = "Request declined."
        except ReasonRequiredError as exc:
            return ActionPage(
                ActionPageKind.CONFIRM_DECLINE,
                "Decline request",
                str(exc),
                pending_id=pending_id,
                text_required=True,
                error_code=exc.code,
            )
        except AlreadyProcessedError as exc:
            return ActionPage(
                ActionPageKind.ALREADY_PROCESSED,
                f"Already {exc.status}",
                pending_id=pending_id,
                status=RequestStatus(exc.status),
                error_code=exc.code,
            )
        except AuthorizationError as exc:
            return ActionPage(
                ActionPageKind.NOT_AUTHORIZED,
                "Not authorized",
                str(exc),
                pending_id=pending_id,
                error_code=exc.code,
            )
        except ProcurementKernelError as exc:
            logger.info(
                "action_submit_rejected",
                extra={"pending_id": pending_id, "error_code": exc.code},
            )
            return ActionPage(
                ActionPageKind.REJECTED,
                "Request could not be completed",
                str(exc),
                pending_id=pending_id,
                error_code=exc.code,
            )

        request = self._workflow.get_request(pending_id)
        return ActionPage(
            ActionPageKind.COMPLETED,
            "Done",
            message,
            pending_id=pending_id,
            status=request.status,
            request=RequestSnapshot.from_request(request),
        )
