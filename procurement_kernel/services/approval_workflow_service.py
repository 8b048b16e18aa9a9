"""
ApprovalWorkflowService -- the pending-request state machine.

Responsibility:
    Owns the lifecycle of procurement requests: submission (with the
    controller auto-approval fast path), staged approval, decline, void,
    cancel and edit, plus immediate catalog changes.  Decides when
    inventory deltas are committed and composes the shared audit note of
    each request and its ledger entry.

Architecture position:
    Kernel > Services -- imperative shell.  Reads and writes only through
    the RecordStore; calls InventoryDeltaApplier, CatalogService,
    SequenceService and NotificationDispatcher.  Flushes, never commits.

Invariants enforced:
    - Stage gate: only the request's NextRole may approve or decline, and
      never the original requester.
    - Deltas commit only at the final stage, after every line has been
      validated against current stock, and after Status == Pending has
      been re-read from the store immediately before the terminal write.
    - Terminal statuses (Approved, Declined, Voided) are never left.  Any
      decision on a resolved request raises AlreadyProcessedError and has
      no side effects.
    - ApprovalHistory is structured and authoritative; notes are derived.
    - Notification failures never undo a transition (dispatcher swallows).

Failure modes:
    - ValidationError family: empty request, bad quantity, missing reason,
      blank actor.
    - RequestNotFoundError / ItemNotFoundError.
    - SelfApprovalError / WrongApproverRoleError / NotRequesterError /
      NotApproverError.
    - AlreadyProcessedError (carries the resolved status).
    - StockInsufficientError / ItemNotActiveError at submission or at the
      final-approval re-check.
    - LedgerEntryMissingError when the LinkID has no ledger row.

Audit relevance:
    Every decision appends an ApprovalHistory entry and a stamp such as
    ``[Approved by ctrl@example.com @ 01/01/2024, 12:00:00 PM]`` to both
    the PendingRequest and its LedgerEntry.
"""

from __future__ import annotations

from typing import Any, Sequence

from procurement_config import ProcurementConfig
from procurement_kernel.domain.approval import (
    APPROVER_ROLES,
    ApprovalHistoryEntry,
    ApprovalOutcome,
    LedgerEntry,
    PendingRequest,
    RequestStatus,
    RequestType,
    Role,
    SubmissionResult,
    can_transition,
    history_to_json,
)
from procurement_kernel.domain.clock import Clock, SystemClock
from procurement_kernel.domain.notes import (
    StampFormat,
    append_unique,
    comment_tail,
    edited_marker,
    item_summary_lines,
    meta_lines,
    reason_lines,
    reason_tail,
    stamp,
)
from procurement_kernel.domain.payloads import (
    CatalogPayload,
    ItemRequest,
    RequestLine,
    RequestMeta,
    RequestPayload,
    build_movement_payload,
    payload_to_dict,
)
from procurement_kernel.domain.workflow import (
    initial_next_role,
    is_auto_approved,
    is_final_stage,
    role_after,
)
from procurement_kernel.exceptions import (
    AlreadyProcessedError,
    EmptyRequestError,
    InvalidQuantityError,
    LedgerEntryMissingError,
    NotApproverError,
    NotRequesterError,
    ReasonRequiredError,
    RequestNotFoundError,
    SelfApprovalError,
    UnsupportedRequestTypeError,
    ValidationError,
    WrongApproverRoleError,
)
from procurement_kernel.logging_config import LogContext, get_logger
from procurement_kernel.models import MULTI_SKU, ledger_entry_from_row, pending_request_from_row
from procurement_kernel.services.catalog_service import CatalogResult, CatalogService
from procurement_kernel.services.inventory_service import InventoryDeltaApplier, ItemDelta
from procurement_kernel.services.notification_service import (
    NotificationDispatcher,
    RequestSnapshot,
    TerminalResult,
)
from procurement_kernel.services.record_store import LEDGER, PENDING, RecordStore
from procurement_kernel.services.sequence_service import SequenceService

logger = get_logger("services.approval_workflow")


def _identity(value: str | None) -> str:
    return (value or "").strip().lower()


def _require_actor(value: str | None) -> str:
    actor = _identity(value)
    if not actor:
        raise ValidationError("Actor identity is required")
    return actor


def _require_transition(pending_id: str, current: RequestStatus, target: RequestStatus) -> None:
    if not can_transition(current, target):
        raise AlreadyProcessedError(pending_id, current.value)


def _require_reason(reason: str | None, action: str) -> str:
    reason = (reason or "").strip()
    if not reason:
        raise ReasonRequiredError(action)
    return reason


class ApprovalWorkflowService:
    """
    Pending-request state machine.

    Contract:
        Every public method is one short, synchronous unit of work against
        the RecordStore.  The caller owns the transaction boundary and must
        roll back on any exception this service raises.

    Non-goals:
        - No retries.  Re-invoking after AlreadyProcessedError is a no-op
          report for the caller, not something to recover from.
        - No expiry of pending requests; only action tokens expire.
    """

    def __init__(
        self,
        store: RecordStore,
        inventory: InventoryDeltaApplier,
        catalog: CatalogService,
        sequences: SequenceService,
        notifications: NotificationDispatcher,
        config: ProcurementConfig,
        clock: Clock | None = None,
    ):
        self._store = store
        self._inventory = inventory
        self._catalog = catalog
        self._sequences = sequences
        self._notifications = notifications
        self._config = config
        self._clock = clock or SystemClock()
        self._stamp_format = StampFormat(
            timezone=config.stamps.timezone,
            pattern=config.stamps.pattern,
        )

    # =====================================================================
    # Reads
    # =====================================================================

    def get_request(self, pending_id: str) -> PendingRequest:
        row = self._store.find_record_by_key(PENDING, "pending_id", pending_id)
        if row is None:
            raise RequestNotFoundError(pending_id)
        return pending_request_from_row(row)

    def get_ledger_entry(self, link_id: str) -> LedgerEntry | None:
        row = self._store.find_record_by_key(LEDGER, "link_id", link_id)
        return ledger_entry_from_row(row) if row is not None else None

    # =====================================================================
    # Helpers
    # =====================================================================

    def _stamp(self, verb: str, actor: str, tail: str = "") -> str:
        return stamp(verb, actor, self._clock.now(), tail, self._stamp_format)

    def _resolve_lines(
        self,
        request_type: RequestType,
        items: Sequence[ItemRequest],
    ) -> list[RequestLine]:
        """Validate caller items against the catalog; nothing is written."""
        if not items:
            raise EmptyRequestError(request_type.value)

        deltas = []
        for item in items:
            qty = item.quantity
            if isinstance(qty, bool) or not isinstance(qty, int) or qty <= 0:
                raise InvalidQuantityError(item.sku, qty)
            deltas.append(
                ItemDelta(
                    sku=item.sku,
                    delta=request_type.delta_sign * qty,
                    unit_override=item.unit_override,
                    require_active=request_type.is_outbound,
                )
            )
        catalog = self._inventory.validate(deltas)

        return [
            RequestLine(
                sku=item.sku,
                name=catalog[item.sku].name,
                unit_of_measure=item.unit_override or catalog[item.sku].unit_of_measure,
                quantity=item.quantity,
                delta=d.delta,
            )
            for item, d in zip(items, deltas)
        ]

    @staticmethod
    def _deltas_for(request_type: RequestType, payload: RequestPayload) -> list[ItemDelta]:
        overrides = getattr(payload, "unit_overrides", {})
        return [
            ItemDelta(
                sku=line.sku,
                delta=line.delta,
                unit_override=overrides.get(line.sku, ""),
                require_active=request_type.is_outbound,
            )
            for line in payload.lines
        ]

    @staticmethod
    def _ledger_columns(lines: Sequence[RequestLine]) -> dict[str, Any]:
        if len(lines) == 1:
            line = lines[0]
            return {
                "sku": line.sku,
                "item_name": line.name,
                "delta": line.delta,
                "unit_of_measure": line.unit_of_measure,
            }
        return {
            "sku": MULTI_SKU,
            "item_name": f"{len(lines)} item(s)",
            "delta": sum(line.delta for line in lines),
            "unit_of_measure": "",
        }

    @staticmethod
    def _content_lines(
        request_type: RequestType,
        lines: Sequence[RequestLine],
        meta: RequestMeta,
        reason: str = "",
        remarks: str = "",
    ) -> list[str]:
        return [
            *item_summary_lines(request_type.value, tuple(lines)),
            *reason_lines(reason, remarks),
            *meta_lines(meta),
        ]

    def _check_decidable(
        self,
        request: PendingRequest,
        actor_role: Role,
        actor: str,
        target: RequestStatus,
    ) -> None:
        """Approve/decline preconditions, in order."""
        _require_transition(request.pending_id, request.status, target)
        if actor == _identity(request.requested_by):
            raise SelfApprovalError(request.pending_id, actor)
        if request.next_role is None or actor_role is not request.next_role:
            raise WrongApproverRoleError(
                request.pending_id,
                actor_role.value,
                request.next_role.value if request.next_role else "",
            )

    def _recheck_pending(self, pending_id: str, target: RequestStatus) -> PendingRequest:
        """Re-read the request just before a terminal write."""
        fresh = self.get_request(pending_id)
        if not can_transition(fresh.status, target):
            logger.warning(
                "terminal_write_lost_race",
                extra={"pending_id": pending_id, "status": fresh.status.value},
            )
            raise AlreadyProcessedError(pending_id, fresh.status.value)
        return fresh

    def _write_pending(self, pending_id: str, patch: dict[str, Any]) -> None:
        self._store.update_record_by_key(PENDING, "pending_id", pending_id, patch)

    def _write_ledger(self, link_id: str, patch: dict[str, Any], stamp_lines: list[str]) -> None:
        ledger = self.get_ledger_entry(link_id)
        if ledger is None:
            raise LedgerEntryMissingError(link_id)
        patch = dict(patch)
        patch["note"] = append_unique(ledger.note, stamp_lines)
        patch["updated_at"] = self._clock.now()
        self._store.update_record_by_key(LEDGER, "link_id", link_id, patch)

    def _snapshot(self, pending_id: str) -> RequestSnapshot:
        return RequestSnapshot.from_request(self.get_request(pending_id))

    def _append_pending_row(
        self,
        pending_id: str,
        link_id: str,
        request_type: RequestType,
        requester: str,
        requester_role: Role,
        payload: RequestPayload,
        reason: str,
        note: str,
    ) -> Role | None:
        next_role = initial_next_role(request_type, requester_role)
        self._store.append_record(
            PENDING,
            {
                "pending_id": pending_id,
                "link_id": link_id,
                "request_type": request_type.value,
                "stage": 1,
                "next_role": next_role.value if next_role else "",
                "status": RequestStatus.PENDING.value,
                "requested_by": requester,
                "requester_role": requester_role.value,
                "reason": reason,
                "note": note,
                "payload": payload_to_dict(payload),
                "approval_history": [],
                "created_at": self._clock.now(),
            },
        )
        return next_role

    # =====================================================================
    # Submission
    # =====================================================================

    def submit_pending(
        self,
        request_type: RequestType | str,
        items: Sequence[ItemRequest],
        requester: str,
        requester_role: Role | str,
        meta: RequestMeta | None = None,
        reason: str = "",
        remarks: str = "",
    ) -> SubmissionResult:
        """
        Submit an inventory movement.

        Controllers take the fast path: the delta is applied immediately and
        no PendingRequest is created.  Everyone else gets a Pending request
        at stage 1, routed to the first role of the topology.

        Raises:
            UnsupportedRequestTypeError: catalog types (use
                ``submit_catalog_change``).
            EmptyRequestError, InvalidQuantityError, ItemNotFoundError,
            ItemNotActiveError, StockInsufficientError: before any write.
        """
        request_type = RequestType(request_type)
        if not request_type.is_movement:
            raise UnsupportedRequestTypeError(request_type.value, "submit_pending")
        requester = _identity(requester)
        if not requester:
            raise ValidationError("Requester identity is required")
        role = Role.parse(requester_role)
        meta = meta or RequestMeta()

        lines = self._resolve_lines(request_type, items)
        payload = build_movement_payload(
            lines, meta, {i.sku: i.unit_override for i in items if i.unit_override}
        )
        content = self._content_lines(request_type, lines, meta, reason, remarks)

        if is_auto_approved(request_type, role):
            return self._auto_approve(request_type, requester, role, payload, content)

        link_id = self._sequences.next_link_id()
        pending_id = f"{link_id}-P"
        now = self._clock.now()
        note = append_unique("", [*content, self._stamp("Submitted", requester)])

        with LogContext.bind(pending_id=pending_id, link_id=link_id, actor_id=requester):
            self._store.append_record(
                LEDGER,
                {
                    "link_id": link_id,
                    "request_type": request_type.value,
                    **self._ledger_columns(lines),
                    "status": RequestStatus.PENDING.value,
                    "requested_by": requester,
                    "note": note,
                    "payload": payload_to_dict(payload),
                    "approval_history": [],
                    "created_at": now,
                },
            )
            next_role = self._append_pending_row(
                pending_id, link_id, request_type, requester, role, payload,
                reason.strip(), note,
            )
            logger.info(
                "pending_request_submitted",
                extra={
                    "request_type": request_type.value,
                    "item_count": len(lines),
                    "next_role": next_role.value if next_role else "",
                },
            )
            self._notifications.submitted(self._snapshot(pending_id))

        return SubmissionResult(link_id=link_id, pending_id=pending_id)

    def _auto_approve(
        self,
        request_type: RequestType,
        requester: str,
        role: Role,
        payload: RequestPayload,
        content: list[str],
    ) -> SubmissionResult:
        """Controller fast path: apply now, write an Approved ledger entry only."""
        self._inventory.apply_deltas(
            self._deltas_for(request_type, payload),
            reactivate_if_retired=payload.meta.reactivate_if_retired,
        )

        link_id = self._sequences.next_link_id()
        now = self._clock.now()
        history = (
            ApprovalHistoryEntry(
                step=1,
                role=role.value,
                actor=requester,
                timestamp=now,
                comment="Fully approved by requester",
            ),
        )
        note = append_unique(
            "",
            [*content, self._stamp("Fully approved", f"requester {requester}")],
        )
        with LogContext.bind(link_id=link_id, actor_id=requester):
            self._store.append_record(
                LEDGER,
                {
                    "link_id": link_id,
                    "request_type": request_type.value,
                    **self._ledger_columns(payload.lines),
                    "status": RequestStatus.APPROVED.value,
                    "requested_by": requester,
                    "reviewed_by": requester,
                    "reviewed_at": now,
                    "note": note,
                    "payload": payload_to_dict(payload),
                    "approval_history": history_to_json(history),
                    "created_at": now,
                },
            )
            logger.info(
                "request_auto_approved",
                extra={"request_type": request_type.value, "item_count": len(payload.lines)},
            )

            snapshot = RequestSnapshot.from_ledger(self.get_ledger_entry(link_id))
            self._notifications.approved(snapshot)
            self._notifications.terminal(TerminalResult.APPROVED, snapshot)
            self._check_low_stock(request_type, payload)

        return SubmissionResult(link_id=link_id, auto_approved=True)

    def submit_catalog_change(
        self,
        request_type: RequestType | str,
        requester: str,
        requester_role: Role | str,
        changes: dict[str, Any] | None = None,
        sku: str | None = None,
    ) -> SubmissionResult:
        """
        Execute a CREATE_SKU / MODIFY_SKU / RETIRE_SKU immediately.

        Catalog changes have no approval stage regardless of role; the
        ledger entry is written Approved with a "Fully approved" stamp.
        """
        request_type = RequestType(request_type)
        if not request_type.is_catalog:
            raise UnsupportedRequestTypeError(request_type.value, "submit_catalog_change")
        requester = _identity(requester)
        role = Role.parse(requester_role)
        changes = dict(changes or {})

        result: CatalogResult
        if request_type is RequestType.CREATE_SKU:
            result = self._catalog.create_item(
                name=changes.pop("name", ""),
                unit_of_measure=changes.pop("unit_of_measure", ""),
                sku=sku,
                **changes,
            )
            item = result.item
            where = f" · @ {item.location}" if item.location else ""
            summary = f"{item.name} — {item.sku} · {item.unit_of_measure} UoM{where}"
        elif request_type is RequestType.MODIFY_SKU:
            if not sku:
                raise ValidationError("SKU is required to modify an item")
            result = self._catalog.modify_item(sku, changes)
            summary = result.summary
        else:
            if not sku:
                raise ValidationError("SKU is required to retire an item")
            result = self._catalog.retire_item(sku)
            summary = result.summary

        item = result.item
        payload = CatalogPayload(
            sku=item.sku,
            name=item.name,
            fields=tuple(sorted((k, str(v)) for k, v in changes.items())),
            change_summary=summary,
        )
        link_id = self._sequences.next_link_id()
        now = self._clock.now()
        history = (
            ApprovalHistoryEntry(
                step=1, role=role.value, actor=requester, timestamp=now,
                comment="Catalog change",
            ),
        )
        note = append_unique(
            "",
            [f"{request_type.value}: {summary}", self._stamp("Fully approved", requester)],
        )
        with LogContext.bind(link_id=link_id, actor_id=requester):
            self._store.append_record(
                LEDGER,
                {
                    "link_id": link_id,
                    "request_type": request_type.value,
                    "sku": item.sku,
                    "item_name": item.name,
                    "delta": 0,
                    "unit_of_measure": item.unit_of_measure,
                    "status": RequestStatus.APPROVED.value,
                    "requested_by": requester,
                    "reviewed_by": requester,
                    "reviewed_at": now,
                    "note": note,
                    "payload": payload_to_dict(payload),
                    "approval_history": history_to_json(history),
                    "created_at": now,
                },
            )
            logger.info(
                "catalog_change_applied",
                extra={"request_type": request_type.value, "sku": item.sku},
            )
            self._notifications.approved(
                RequestSnapshot.from_ledger(self.get_ledger_entry(link_id))
            )

        return SubmissionResult(link_id=link_id, auto_approved=True)

    # =====================================================================
    # Decisions
    # =====================================================================

    def approve(
        self,
        pending_id: str,
        actor_role: Role | str,
        actor: str,
        comment: str = "",
    ) -> ApprovalOutcome:
        """
        Approve the current stage of a Pending request.

        Preconditions (checked in order): the request exists, is Pending,
        the actor is not the requester, and ``actor_role`` equals NextRole.

        A non-final stage advances Stage and NextRole and re-notifies.  The
        final stage validates and applies every delta, then marks both
        records Approved and notifies the requester.
        """
        actor = _require_actor(actor)
        role = Role.parse(actor_role)
        request = self.get_request(pending_id)
        self._check_decidable(request, role, actor, RequestStatus.APPROVED)

        now = self._clock.now()
        comment = (comment or "").strip()
        entry = ApprovalHistoryEntry(
            step=request.stage, role=role.value, actor=actor, timestamp=now, comment=comment,
        )
        history = history_to_json((*request.approval_history, entry))

        with LogContext.bind(pending_id=pending_id, link_id=request.link_id, actor_id=actor):
            if not is_final_stage(request.request_type, request.next_role):
                return self._advance_stage(request, role, actor, comment, history)

            deltas = self._deltas_for(request.request_type, request.payload)
            self._inventory.validate(deltas)
            self._recheck_pending(pending_id, RequestStatus.APPROVED)
            self._inventory.apply_deltas(
                deltas,
                reactivate_if_retired=getattr(request.payload, "meta", RequestMeta()).reactivate_if_retired,
            )

            approval_stamp = self._stamp("Approved", actor, comment_tail(comment))
            self._write_pending(
                pending_id,
                {
                    "status": RequestStatus.APPROVED.value,
                    "next_role": "",
                    "reviewed_by": actor,
                    "reviewed_at": now,
                    "approval_history": history,
                    "note": append_unique(request.note, [approval_stamp]),
                    "updated_at": now,
                },
            )
            self._write_ledger(
                request.link_id,
                {
                    "status": RequestStatus.APPROVED.value,
                    "reviewed_by": actor,
                    "reviewed_at": now,
                    "approval_history": history,
                },
                [approval_stamp],
            )
            logger.info(
                "request_finalized",
                extra={
                    "request_type": request.request_type.value,
                    "stage": request.stage,
                    "approver_role": role.value,
                },
            )

            snapshot = self._snapshot(pending_id)
            self._notifications.approved(snapshot)
            self._notifications.terminal(TerminalResult.APPROVED, snapshot)
            low = self._check_low_stock(request.request_type, request.payload)

        return ApprovalOutcome(
            pending_id=pending_id,
            finalized=True,
            status=RequestStatus.APPROVED,
            low_stock=low,
        )

    def _advance_stage(
        self,
        request: PendingRequest,
        role: Role,
        actor: str,
        comment: str,
        history: list[dict[str, Any]],
    ) -> ApprovalOutcome:
        next_role = role_after(request.request_type, role)
        next_stage = request.stage + 1
        approval_stamp = self._stamp(f"Approved ({role.value})", actor, comment_tail(comment))

        self._write_pending(
            request.pending_id,
            {
                "stage": next_stage,
                "next_role": next_role.value if next_role else "",
                "approval_history": history,
                "note": append_unique(request.note, [approval_stamp]),
                "updated_at": self._clock.now(),
            },
        )
        self._write_ledger(request.link_id, {"approval_history": history}, [approval_stamp])
        logger.info(
            "approval_stage_advanced",
            extra={
                "from_stage": request.stage,
                "to_stage": next_stage,
                "next_role": next_role.value if next_role else "",
            },
        )
        self._notifications.stage_advanced(self._snapshot(request.pending_id))
        return ApprovalOutcome(
            pending_id=request.pending_id,
            finalized=False,
            status=RequestStatus.PENDING,
            next_stage=next_stage,
            next_role=next_role,
        )

    def decline(
        self,
        pending_id: str,
        actor_role: Role | str,
        actor: str,
        reason: str,
    ) -> PendingRequest:
        """Decline at the current stage. Same gate as approve; reason required."""
        actor = _require_actor(actor)
        role = Role.parse(actor_role)
        request = self.get_request(pending_id)
        self._check_decidable(request, role, actor, RequestStatus.DECLINED)
        reason = _require_reason(reason, "decline")

        now = self._clock.now()
        entry = ApprovalHistoryEntry(
            step=request.stage, role=role.value, actor=actor, timestamp=now,
            decline_reason=reason, declined=True,
        )
        history = history_to_json((*request.approval_history, entry))
        decline_stamp = self._stamp("Declined", actor, reason_tail(reason))

        with LogContext.bind(pending_id=pending_id, link_id=request.link_id, actor_id=actor):
            self._recheck_pending(pending_id, RequestStatus.DECLINED)
            self._write_pending(
                pending_id,
                {
                    "status": RequestStatus.DECLINED.value,
                    "next_role": "",
                    "reviewed_by": actor,
                    "reviewed_at": now,
                    "reason": reason,
                    "approval_history": history,
                    "note": append_unique(request.note, [decline_stamp]),
                    "updated_at": now,
                },
            )
            self._write_ledger(
                request.link_id,
                {
                    "status": RequestStatus.DECLINED.value,
                    "reviewed_by": actor,
                    "reviewed_at": now,
                    "approval_history": history,
                },
                [decline_stamp],
            )
            logger.info(
                "request_declined",
                extra={"stage": request.stage, "approver_role": role.value},
            )
            self._notifications.terminal(TerminalResult.DECLINED, self._snapshot(pending_id))

        return self.get_request(pending_id)

    def void(
        self,
        pending_id: str,
        actor_role: Role | str,
        actor: str,
        reason: str,
    ) -> PendingRequest:
        """Approver removes a Pending request from the queue at any stage."""
        role = Role.parse(actor_role)
        if role not in APPROVER_ROLES:
            raise NotApproverError(role.value, "void requests")
        actor = _require_actor(actor)
        request = self.get_request(pending_id)
        _require_transition(pending_id, request.status, RequestStatus.VOIDED)
        reason = _require_reason(reason, "void")
        return self._terminate(request, actor, reason, "Voided", TerminalResult.VOIDED)

    def cancel(self, pending_id: str, requester: str, reason: str) -> PendingRequest:
        """The original requester withdraws their own Pending request."""
        requester = _identity(requester)
        request = self.get_request(pending_id)
        _require_transition(pending_id, request.status, RequestStatus.VOIDED)
        if requester != _identity(request.requested_by):
            raise NotRequesterError(pending_id, requester)
        reason = _require_reason(reason, "cancel")
        return self._terminate(request, requester, reason, "Cancelled", TerminalResult.CANCELLED)

    def _terminate(
        self,
        request: PendingRequest,
        actor: str,
        reason: str,
        verb: str,
        result: TerminalResult,
    ) -> PendingRequest:
        now = self._clock.now()
        void_stamp = self._stamp(verb, actor, reason_tail(reason))

        with LogContext.bind(
            pending_id=request.pending_id, link_id=request.link_id, actor_id=actor
        ):
            self._recheck_pending(request.pending_id, RequestStatus.VOIDED)
            self._write_pending(
                request.pending_id,
                {
                    "status": RequestStatus.VOIDED.value,
                    "next_role": "",
                    "reviewed_by": actor,
                    "reviewed_at": now,
                    "reason": reason,
                    "note": append_unique(request.note, [void_stamp]),
                    "updated_at": now,
                },
            )
            self._write_ledger(
                request.link_id,
                {
                    "status": RequestStatus.VOIDED.value,
                    "reviewed_by": actor,
                    "reviewed_at": now,
                },
                [void_stamp],
            )
            logger.info(
                "request_voided",
                extra={"result": result.value, "stage": request.stage},
            )
            self._notifications.terminal(result, self._snapshot(request.pending_id))

        return self.get_request(request.pending_id)

    # =====================================================================
    # Edit
    # =====================================================================

    def edit(
        self,
        pending_id: str,
        requester: str,
        requester_role: Role | str,
        new_items: Sequence[ItemRequest],
        new_reason: str = "",
        new_note: str = "",
        meta: RequestMeta | None = None,
    ) -> SubmissionResult:
        """
        Replace a Pending request with an edited copy.

        The original is voided ("Voided — edited & resubmitted"), the shared
        ledger entry gains an "Edited #N" marker, and a new request starts
        at stage 1 under the same LinkID with PendingID ``<link>-P(N)``.
        NextRole is recomputed from ``requester_role`` as it is now.
        """
        requester = _identity(requester)
        role = Role.parse(requester_role)
        request = self.get_request(pending_id)
        _require_transition(pending_id, request.status, RequestStatus.VOIDED)
        if requester != _identity(request.requested_by):
            raise NotRequesterError(pending_id, requester)

        request_type = request.request_type
        meta = meta or getattr(request.payload, "meta", RequestMeta())
        lines = self._resolve_lines(request_type, new_items)
        payload = build_movement_payload(
            lines, meta, {i.sku: i.unit_override for i in new_items if i.unit_override}
        )

        link_id = request.link_id
        edit_number = sum(
            1 for row in self._store.read_all_records(PENDING) if row["link_id"] == link_id
        )
        new_pending_id = f"{link_id}-P({edit_number})"
        now = self._clock.now()

        with LogContext.bind(pending_id=pending_id, link_id=link_id, actor_id=requester):
            self._recheck_pending(pending_id, RequestStatus.VOIDED)
            void_stamp = self._stamp("Voided — edited & resubmitted", requester)
            self._write_pending(
                pending_id,
                {
                    "status": RequestStatus.VOIDED.value,
                    "next_role": "",
                    "reviewed_by": requester,
                    "reviewed_at": now,
                    "reason": f"Edited & resubmitted as {new_pending_id}",
                    "note": append_unique(request.note, [void_stamp]),
                    "updated_at": now,
                },
            )

            content = self._content_lines(request_type, lines, meta, new_reason, new_note)
            resubmit_stamp = self._stamp("Resubmitted", requester)
            note = append_unique("", [edited_marker(edit_number), *content, resubmit_stamp])
            self._write_ledger(
                link_id,
                {
                    **self._ledger_columns(lines),
                    "status": RequestStatus.PENDING.value,
                    "payload": payload_to_dict(payload),
                    "approval_history": [],
                },
                [void_stamp, edited_marker(edit_number), *content, resubmit_stamp],
            )
            next_role = self._append_pending_row(
                new_pending_id, link_id, request_type, requester, role, payload,
                (new_reason or "").strip(), note,
            )
            logger.info(
                "request_edited",
                extra={
                    "new_pending_id": new_pending_id,
                    "edit_number": edit_number,
                    "next_role": next_role.value if next_role else "",
                },
            )
            self._notifications.submitted(self._snapshot(new_pending_id))

        return SubmissionResult(link_id=link_id, pending_id=new_pending_id)

    # =====================================================================
    # Low stock
    # =====================================================================

    def _check_low_stock(
        self, request_type: RequestType, payload: RequestPayload
    ) -> tuple[str, ...]:
        if not request_type.is_outbound:
            return ()
        low = self._inventory.low_stock(
            (line.sku for line in payload.lines),
            self._config.inventory.low_stock_threshold,
        )
        if low:
            logger.info(
                "low_stock_detected",
                extra={"skus": [i.sku for i in low]},
            )
            self._notifications.low_stock(low)
        return tuple(i.sku for i in low)
