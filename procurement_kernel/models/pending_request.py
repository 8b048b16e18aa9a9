"""
Module: procurement_kernel.models.pending_request
Responsibility: ORM persistence for pending (and resolved) approval requests.
Architecture position: Kernel > Models.  May import from db/, domain/ and
    exceptions.

Invariants enforced:
    - status is one of Pending / Approved / Declined / Voided (check constraint).
    - stage >= 1.
    - A resolved request never changes status again: the ``before_update``
      listener rejects any status change away from a terminal value.

Failure modes:
    - ImmutableRecordError when a terminal request's status is rewritten.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, CheckConstraint, Index, String, Text, event, inspect
from sqlalchemy.orm import Mapped, mapped_column

from procurement_kernel.db.base import TrackedBase
from procurement_kernel.domain.approval import (
    TERMINAL_REQUEST_STATUSES,
    PendingRequest,
    RequestStatus,
    RequestType,
    Role,
    history_from_json,
)
from procurement_kernel.domain.payloads import payload_from_dict
from procurement_kernel.exceptions import ImmutableRecordError

_TERMINAL_VALUES = frozenset(s.value for s in TERMINAL_REQUEST_STATUSES)


class PendingRequestModel(TrackedBase):
    __tablename__ = "pending_requests"

    __table_args__ = (
        CheckConstraint(
            "status IN ('Pending', 'Approved', 'Declined', 'Voided')",
            name="ck_pending_requests_valid_status",
        ),
        CheckConstraint("stage >= 1", name="ck_pending_requests_stage_positive"),
        Index("idx_pending_requests_link", "link_id"),
        Index("idx_pending_requests_queue", "status", "next_role"),
    )

    pending_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    link_id: Mapped[str] = mapped_column(String(64), nullable=False)
    request_type: Mapped[str] = mapped_column(String(16), nullable=False)
    stage: Mapped[int] = mapped_column(nullable=False, default=1)
    next_role: Mapped[str] = mapped_column(String(16), nullable=False, default="")
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=RequestStatus.PENDING.value
    )
    requested_by: Mapped[str] = mapped_column(String(255), nullable=False)
    requester_role: Mapped[str] = mapped_column(String(16), nullable=False, default="user")
    reviewed_by: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    reviewed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    reason: Mapped[str] = mapped_column(Text, nullable=False, default="")
    note: Mapped[str] = mapped_column(Text, nullable=False, default="")
    payload: Mapped[dict] = mapped_column(JSON, nullable=False)
    approval_history: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    def to_dto(self) -> PendingRequest:
        return pending_request_from_row(self.as_row())

    def __repr__(self) -> str:
        return f"<PendingRequest {self.pending_id} {self.status} stage={self.stage}>"


@event.listens_for(PendingRequestModel, "before_update")
def _guard_terminal_status(mapper, connection, target: PendingRequestModel) -> None:
    history = inspect(target).attrs.status.history
    if not history.deleted:
        return
    previous = history.deleted[0]
    if previous in _TERMINAL_VALUES and target.status != previous:
        raise ImmutableRecordError(
            "pending_requests",
            target.pending_id,
            f"status {previous} is terminal, cannot become {target.status}",
        )


def pending_request_from_row(row: dict[str, Any]) -> PendingRequest:
    next_role = row.get("next_role") or ""
    return PendingRequest(
        pending_id=row["pending_id"],
        link_id=row["link_id"],
        request_type=RequestType(row["request_type"]),
        stage=int(row.get("stage") or 1),
        next_role=Role(next_role) if next_role else None,
        status=RequestStatus(row["status"]),
        requested_by=row["requested_by"],
        requester_role=Role.parse(row.get("requester_role")),
        payload=payload_from_dict(row["payload"]),
        approval_history=history_from_json(row.get("approval_history")),
        note=row.get("note") or "",
        reason=row.get("reason") or "",
        reviewed_by=row.get("reviewed_by") or "",
        reviewed_at=row.get("reviewed_at"),
        created_at=row.get("created_at"),
    )
