"""
Notification routing -- fire-and-forget delivery of workflow decisions.

Responsibility:
    Turns engine decisions into notifier calls: resolves approver
    recipients for the request's NextRole, mints approve/decline action
    tokens per recipient, applies per-event routing from configuration,
    and hands a denormalized ``RequestSnapshot`` to the ``Notifier``.

Architecture position:
    Kernel > Services.  Consumes engine decisions; never influences them.
    Rendering and transport belong to the ``Notifier`` implementation.

Invariants enforced:
    - Delivery never rolls back a workflow transition: every exception
      raised while minting tokens or delivering is caught here and logged
      as ``notification_delivery_failed`` with ``exc_info``.
    - Snapshots carry everything a renderer needs (type, items, amounts,
      requester, approval history) so it never re-queries the engine.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from procurement_config import ProcurementConfig
from procurement_kernel.domain.approval import (
    ApprovalHistoryEntry,
    Item,
    LedgerEntry,
    PendingRequest,
    RequestStatus,
    RequestType,
    Role,
    TokenAction,
    User,
)
from procurement_kernel.domain.payloads import RequestLine, RequestMeta
from procurement_kernel.logging_config import get_logger
from procurement_kernel.services.action_token_service import ActionTokenService
from procurement_kernel.services.user_service import UserDirectory

logger = get_logger("services.notifications")


class NotificationEvent(str, Enum):
    REQUEST_SUBMITTED = "REQUEST_SUBMITTED"
    STAGE_ADVANCED = "STAGE_ADVANCED"
    REQUEST_APPROVED = "REQUEST_APPROVED"
    REQUEST_RESULT = "REQUEST_RESULT"
    LOW_STOCK = "LOW_STOCK"
    USER_REQUESTED = "USER_REQUESTED"


class TerminalResult(str, Enum):
    APPROVED = "approved"
    DECLINED = "declined"
    VOIDED = "voided"
    CANCELLED = "cancelled"


RESULT_SUBTITLES: dict[TerminalResult, str] = {
    TerminalResult.APPROVED: "Your request has been approved.",
    TerminalResult.DECLINED: "Your request has been declined.",
    TerminalResult.VOIDED: "Your request was voided (removed from the queue) by an approver.",
    TerminalResult.CANCELLED: "You cancelled your request.",
}


@dataclass(frozen=True)
class RequestSnapshot:
    """Denormalized request view handed to a Notifier."""

    link_id: str
    request_type: RequestType
    status: RequestStatus
    requested_by: str
    items: tuple[RequestLine, ...]
    meta: RequestMeta
    pending_id: str | None = None
    stage: int | None = None
    next_role: Role | None = None
    reason: str = ""
    note: str = ""
    approval_history: tuple[ApprovalHistoryEntry, ...] = ()

    @property
    def total_quantity(self) -> int:
        return sum(line.quantity for line in self.items)

    @classmethod
    def from_request(cls, request: PendingRequest) -> RequestSnapshot:
        payload = request.payload
        return cls(
            link_id=request.link_id,
            request_type=request.request_type,
            status=request.status,
            requested_by=request.requested_by,
            items=payload.lines,
            meta=getattr(payload, "meta", RequestMeta()),
            pending_id=request.pending_id,
            stage=request.stage,
            next_role=request.next_role,
            reason=request.reason,
            note=request.note,
            approval_history=request.approval_history,
        )

    @classmethod
    def from_ledger(cls, entry: LedgerEntry) -> RequestSnapshot:
        payload = entry.payload
        return cls(
            link_id=entry.link_id,
            request_type=entry.request_type,
            status=entry.status,
            requested_by=entry.requested_by,
            items=payload.lines,
            meta=getattr(payload, "meta", RequestMeta()),
            note=entry.note,
            approval_history=entry.approval_history,
        )


@dataclass(frozen=True)
class ApproverInvitation:
    """Approve/decline links for one recipient. ``recipient`` None means group-scoped."""

    recipient: str | None
    approve_token: str
    decline_token: str


class Notifier(Protocol):
    """Outbound rendering and delivery. Implementations may raise freely."""

    def notify_submitted(
        self, snapshot: RequestSnapshot, invitations: tuple[ApproverInvitation, ...]
    ) -> None:
        ...

    def notify_stage_advanced(
        self, snapshot: RequestSnapshot, invitations: tuple[ApproverInvitation, ...]
    ) -> None:
        ...

    def notify_approved(self, snapshot: RequestSnapshot, cc: tuple[str, ...]) -> None:
        ...

    def notify_terminal(
        self, result: TerminalResult, snapshot: RequestSnapshot, subtitle: str
    ) -> None:
        ...

    def notify_low_stock(self, items: tuple[Item, ...], recipients: tuple[str, ...]) -> None:
        ...

    def notify_user_requested(self, user: User, recipients: tuple[str, ...]) -> None:
        ...


class LoggingNotifier:
    """Notifier that writes one structured log line per message."""

    def notify_submitted(self, snapshot, invitations) -> None:
        logger.info(
            "notify_submitted",
            extra={
                "link_id": snapshot.link_id,
                "next_role": snapshot.next_role.value if snapshot.next_role else "",
                "recipients": [i.recipient for i in invitations],
            },
        )

    def notify_stage_advanced(self, snapshot, invitations) -> None:
        logger.info(
            "notify_stage_advanced",
            extra={
                "link_id": snapshot.link_id,
                "stage": snapshot.stage,
                "recipients": [i.recipient for i in invitations],
            },
        )

    def notify_approved(self, snapshot, cc) -> None:
        logger.info("notify_approved", extra={"link_id": snapshot.link_id, "cc": list(cc)})

    def notify_terminal(self, result, snapshot, subtitle) -> None:
        logger.info(
            "notify_terminal",
            extra={
                "link_id": snapshot.link_id,
                "result": result.value,
                "requester": snapshot.requested_by,
                "subtitle": subtitle,
            },
        )

    def notify_low_stock(self, items, recipients) -> None:
        logger.info(
            "notify_low_stock",
            extra={"skus": [i.sku for i in items], "recipients": list(recipients)},
        )

    def notify_user_requested(self, user, recipients) -> None:
        logger.info(
            "notify_user_requested",
            extra={"email": user.email, "recipients": list(recipients)},
        )


class NotificationDispatcher:
    """
    Routes engine decisions to a Notifier.

    Every public method is safe to call from inside a workflow transition:
    none of them raise.
    """

    def __init__(
        self,
        notifier: Notifier,
        tokens: ActionTokenService,
        users: UserDirectory,
        config: ProcurementConfig,
    ):
        self._notifier = notifier
        self._tokens = tokens
        self._users = users
        self._config = config

    # -- recipients ----------------------------------------------------------

    def _role_recipients(self, event: NotificationEvent, role: Role | None) -> tuple[str, ...]:
        route = self._config.route(event.value)
        recipients = list(self._users.recipients_for_role(role)) if role else []
        for extra_role in route.include_roles:
            recipients.extend(self._users.recipients_for_role(Role.parse(extra_role)))
        recipients.extend(route.recipients)
        return tuple(dict.fromkeys(r.lower() for r in recipients))

    def invitations_for(self, snapshot: RequestSnapshot) -> tuple[ApproverInvitation, ...]:
        """One personalized token pair per approver, or a single group pair if none."""
        if snapshot.pending_id is None or snapshot.next_role is None:
            return ()
        recipients: tuple[str | None, ...] = self._users.recipients_for_role(snapshot.next_role)
        if not recipients:
            recipients = (None,)
        return tuple(
            ApproverInvitation(
                recipient=r,
                approve_token=self._tokens.issue(TokenAction.APPROVE, snapshot.pending_id, r),
                decline_token=self._tokens.issue(TokenAction.DECLINE, snapshot.pending_id, r),
            )
            for r in recipients
        )

    # -- delivery ------------------------------------------------------------

    def _enabled(self, event: NotificationEvent, link_id: str) -> bool:
        if self._config.route(event.value).enabled:
            return True
        logger.debug("notification_disabled", extra={"event": event.value, "link_id": link_id})
        return False

    def _safely(self, event: NotificationEvent, link_id: str, send) -> bool:
        try:
            send()
        except Exception:
            logger.warning(
                "notification_delivery_failed",
                extra={"event": event.value, "link_id": link_id},
                exc_info=True,
            )
            return False
        logger.debug("notification_sent", extra={"event": event.value, "link_id": link_id})
        return True

    def submitted(self, snapshot: RequestSnapshot) -> bool:
        event = NotificationEvent.REQUEST_SUBMITTED
        if not self._enabled(event, snapshot.link_id):
            return False
        return self._safely(
            event,
            snapshot.link_id,
            lambda: self._notifier.notify_submitted(snapshot, self.invitations_for(snapshot)),
        )

    def stage_advanced(self, snapshot: RequestSnapshot) -> bool:
        event = NotificationEvent.STAGE_ADVANCED
        if not self._enabled(event, snapshot.link_id):
            return False
        return self._safely(
            event,
            snapshot.link_id,
            lambda: self._notifier.notify_stage_advanced(
                snapshot, self.invitations_for(snapshot)
            ),
        )

    def approved(self, snapshot: RequestSnapshot) -> bool:
        event = NotificationEvent.REQUEST_APPROVED
        if not self._enabled(event, snapshot.link_id):
            return False
        return self._safely(
            event,
            snapshot.link_id,
            lambda: self._notifier.notify_approved(
                snapshot, self._role_recipients(event, None)
            ),
        )

    def terminal(self, result: TerminalResult, snapshot: RequestSnapshot) -> bool:
        event = NotificationEvent.REQUEST_RESULT
        if not self._enabled(event, snapshot.link_id):
            return False
        return self._safely(
            event,
            snapshot.link_id,
            lambda: self._notifier.notify_terminal(result, snapshot, RESULT_SUBTITLES[result]),
        )

    def low_stock(self, items: tuple[Item, ...]) -> bool:
        event = NotificationEvent.LOW_STOCK
        if not items or not self._enabled(event, ",".join(i.sku for i in items)):
            return False
        return self._safely(
            event,
            ",".join(i.sku for i in items),
            lambda: self._notifier.notify_low_stock(items, self._role_recipients(event, None)),
        )

    def user_requested(self, user: User) -> bool:
        """Tell controllers (plus configured recipients) about an account request."""
        event = NotificationEvent.USER_REQUESTED
        if not self._enabled(event, user.email):
            return False
        recipients = self._role_recipients(event, Role.CONTROLLER)
        if not recipients:
            logger.debug("notification_no_recipients", extra={"event": event.value})
            return False
        return self._safely(
            event,
            user.email,
            lambda: self._notifier.notify_user_requested(user, recipients),
        )
