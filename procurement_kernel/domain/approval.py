"""
Approval domain types (``procurement_kernel.domain.approval``).

Responsibility
--------------
Pure value objects for the procurement approval workflow: request types,
the request status state machine, roles, item and user statuses, the
structured approval history entry, and the read-side DTOs for items,
pending requests, ledger entries and users.

Architecture position
---------------------
**Kernel domain layer** -- ZERO I/O.  No imports from ``db/``,
``services/``, ``selectors/`` or outer layers.

Invariants enforced
-------------------
* ``REQUEST_TRANSITIONS`` defines the only legal status changes.
  Approved, Declined and Voided have no outgoing edges: a resolved
  request is never reopened (an edit voids it and mints a new one).
* ``ApprovalHistoryEntry`` is the structured record of every decision.
  The free-text note is a display projection and is never parsed back.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from procurement_kernel.domain.payloads import RequestPayload


# =========================================================================
# Enumerations
# =========================================================================


class RequestType(str, Enum):
    """What a request does once approved."""

    RECEIVE = "RECEIVE"
    ISSUE = "ISSUE"
    REQUEST = "REQUEST"
    CREATE_SKU = "CREATE_SKU"
    MODIFY_SKU = "MODIFY_SKU"
    RETIRE_SKU = "RETIRE_SKU"

    @property
    def is_movement(self) -> bool:
        return self in MOVEMENT_TYPES

    @property
    def is_outbound(self) -> bool:
        return self in OUTBOUND_TYPES

    @property
    def is_catalog(self) -> bool:
        return self in CATALOG_TYPES

    @property
    def delta_sign(self) -> int:
        """+1 for inbound stock, -1 for outbound, 0 for catalog-only events."""
        if self is RequestType.RECEIVE:
            return 1
        if self in OUTBOUND_TYPES:
            return -1
        return 0


MOVEMENT_TYPES: frozenset[RequestType] = frozenset({
    RequestType.RECEIVE,
    RequestType.ISSUE,
    RequestType.REQUEST,
})

OUTBOUND_TYPES: frozenset[RequestType] = frozenset({
    RequestType.ISSUE,
    RequestType.REQUEST,
})

CATALOG_TYPES: frozenset[RequestType] = frozenset({
    RequestType.CREATE_SKU,
    RequestType.MODIFY_SKU,
    RequestType.RETIRE_SKU,
})


class RequestStatus(str, Enum):
    """Pending request lifecycle states. Values match the stored column."""

    PENDING = "Pending"
    APPROVED = "Approved"
    DECLINED = "Declined"
    VOIDED = "Voided"


REQUEST_TRANSITIONS: dict[RequestStatus, frozenset[RequestStatus]] = {
    RequestStatus.PENDING: frozenset({
        RequestStatus.APPROVED,
        RequestStatus.DECLINED,
        RequestStatus.VOIDED,
    }),
    RequestStatus.APPROVED: frozenset(),
    RequestStatus.DECLINED: frozenset(),
    RequestStatus.VOIDED: frozenset(),
}

TERMINAL_REQUEST_STATUSES: frozenset[RequestStatus] = frozenset({
    RequestStatus.APPROVED,
    RequestStatus.DECLINED,
    RequestStatus.VOIDED,
})


def can_transition(current: RequestStatus, target: RequestStatus) -> bool:
    return target in REQUEST_TRANSITIONS[current]


class Role(str, Enum):
    """Directory roles. Managers and controllers are approvers."""

    USER = "user"
    MANAGER = "manager"
    CONTROLLER = "controller"

    @classmethod
    def parse(cls, value: str | Role | None) -> Role:
        """Lenient parse: unknown or empty values fall back to USER."""
        if isinstance(value, Role):
            return value
        try:
            return cls(str(value or "").strip().lower())
        except ValueError:
            return cls.USER


APPROVER_ROLES: frozenset[Role] = frozenset({Role.MANAGER, Role.CONTROLLER})


class ItemStatus(str, Enum):
    ACTIVE = "Active"
    ON_HOLD = "On Hold"
    RETIRED = "Retired"


# Statuses a MODIFY_SKU may set. Retiring goes through RETIRE_SKU.
MODIFIABLE_ITEM_STATUSES: frozenset[ItemStatus] = frozenset({
    ItemStatus.ACTIVE,
    ItemStatus.ON_HOLD,
})


class UserStatus(str, Enum):
    PENDING = "Pending"
    ACTIVE = "Active"
    DISABLED = "Disabled"


class TokenAction(str, Enum):
    """Actions an out-of-band action token can authorize."""

    APPROVE = "approve"
    DECLINE = "decline"


# =========================================================================
# Approval history
# =========================================================================


@dataclass(frozen=True)
class ApprovalHistoryEntry:
    """One approve or decline decision, in the order it was made."""

    step: int
    role: str
    actor: str
    timestamp: datetime
    comment: str = ""
    decline_reason: str = ""
    declined: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "step": self.step,
            "role": self.role,
            "actor": self.actor,
            "timestamp": self.timestamp.isoformat(),
            "comment": self.comment,
            "decline_reason": self.decline_reason,
            "declined": self.declined,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ApprovalHistoryEntry:
        return cls(
            step=int(data["step"]),
            role=str(data["role"]),
            actor=str(data["actor"]),
            timestamp=datetime.fromisoformat(data["timestamp"]),
            comment=data.get("comment", ""),
            decline_reason=data.get("decline_reason", ""),
            declined=bool(data.get("declined", False)),
        )


def history_to_json(history: tuple[ApprovalHistoryEntry, ...]) -> list[dict[str, Any]]:
    return [entry.to_dict() for entry in history]


def history_from_json(raw: list[dict[str, Any]] | None) -> tuple[ApprovalHistoryEntry, ...]:
    return tuple(ApprovalHistoryEntry.from_dict(d) for d in (raw or []))


# =========================================================================
# Read-side DTOs
# =========================================================================


@dataclass(frozen=True)
class Item:
    """One catalog row (stock-keeping unit)."""

    sku: str
    name: str
    unit_of_measure: str
    quantity: int
    status: ItemStatus
    description: str = ""
    category: str = ""
    location: str = ""
    unit_price: Decimal | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status is ItemStatus.ACTIVE


@dataclass(frozen=True)
class PendingRequest:
    """An in-flight or resolved approval request."""

    pending_id: str
    link_id: str
    request_type: RequestType
    stage: int
    next_role: Role | None
    status: RequestStatus
    requested_by: str
    requester_role: Role
    payload: RequestPayload
    approval_history: tuple[ApprovalHistoryEntry, ...] = ()
    note: str = ""
    reason: str = ""
    reviewed_by: str = ""
    reviewed_at: datetime | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class LedgerEntry:
    """Economic record for a LinkID, mirrored as its request resolves."""

    link_id: str
    request_type: RequestType
    sku: str
    item_name: str
    delta: int
    unit_of_measure: str
    status: RequestStatus
    requested_by: str
    payload: RequestPayload
    approval_history: tuple[ApprovalHistoryEntry, ...] = ()
    note: str = ""
    reviewed_by: str = ""
    reviewed_at: datetime | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class User:
    email: str
    name: str
    role: Role
    status: UserStatus
    department: str = ""
    requested_role: str = ""
    created_at: datetime | None = None

    @property
    def is_active_approver(self) -> bool:
        return self.status is UserStatus.ACTIVE and self.role in APPROVER_ROLES


@dataclass(frozen=True)
class SubmissionResult:
    """What a submit / edit / catalog change returns to its caller."""

    link_id: str
    pending_id: str | None = None
    auto_approved: bool = False


@dataclass(frozen=True)
class ApprovalOutcome:
    """Result of a successful approve call."""

    pending_id: str
    finalized: bool
    status: RequestStatus
    next_stage: int | None = None
    next_role: Role | None = None
    low_stock: tuple[str, ...] = field(default_factory=tuple)
