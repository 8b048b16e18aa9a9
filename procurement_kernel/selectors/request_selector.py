"""Queues and activity views over pending requests."""

from __future__ import annotations

from procurement_kernel.domain.approval import (
    APPROVER_ROLES,
    PendingRequest,
    RequestStatus,
    Role,
)
from procurement_kernel.exceptions import NotApproverError
from procurement_kernel.models import pending_request_from_row
from procurement_kernel.selectors.base import BaseSelector
from procurement_kernel.services.record_store import PENDING


def _newest_first(requests: list[PendingRequest]) -> list[PendingRequest]:
    return sorted(
        requests,
        key=lambda r: (r.created_at is not None, r.created_at),
        reverse=True,
    )


class RequestSelector(BaseSelector):

    def _all(self) -> list[PendingRequest]:
        return [pending_request_from_row(r) for r in self.store.read_all_records(PENDING)]

    def pending_all(self) -> list[PendingRequest]:
        return [r for r in self._all() if r.status is RequestStatus.PENDING]

    def awaiting_role(self, role: Role | str) -> list[PendingRequest]:
        """Pending requests whose NextRole is exactly ``role``."""
        role = Role.parse(role)
        return [r for r in self.pending_all() if r.next_role is role]

    def pending_queue(self, viewer_role: Role | str) -> list[PendingRequest]:
        """Approval queue: controllers see every Pending request, managers their stage."""
        viewer_role = Role.parse(viewer_role)
        if viewer_role not in APPROVER_ROLES:
            raise NotApproverError(viewer_role.value, "view the approval queue")
        if viewer_role is Role.CONTROLLER:
            return self.pending_all()
        return self.awaiting_role(viewer_role)

    def my_activity(self, identity: str, limit: int = 50) -> list[PendingRequest]:
        identity = (identity or "").strip().lower()
        mine = [r for r in self._all() if r.requested_by.lower() == identity]
        return _newest_first(mine)[:limit]
