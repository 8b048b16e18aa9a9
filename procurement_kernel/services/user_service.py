"""
UserDirectory -- requesters, approvers and their roles.

Responsibility:
    Account requests, controller-only activation and role assignment, and
    role lookups used by the workflow engine (requester role) and the
    notification router (approver recipients).

Invariants enforced:
    - Emails are stored and compared lower-cased.
    - New accounts start Pending with role ``user`` regardless of the role
      they asked for; only a controller may activate or re-role them.
    - A new account request notifies controllers once; repeat requests for
      an existing email return the existing user silently.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from procurement_kernel.domain.approval import Role, User, UserStatus
from procurement_kernel.domain.clock import Clock, SystemClock
from procurement_kernel.exceptions import NotApproverError, UserNotFoundError, ValidationError
from procurement_kernel.logging_config import get_logger
from procurement_kernel.models import user_from_row
from procurement_kernel.services.record_store import USERS, RecordStore

if TYPE_CHECKING:
    from procurement_kernel.services.notification_service import NotificationDispatcher

logger = get_logger("services.users")


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


class UserDirectory:

    def __init__(self, store: RecordStore, clock: Clock | None = None):
        self._store = store
        self._clock = clock or SystemClock()
        self._notifications: NotificationDispatcher | None = None

    def attach_notifications(self, notifications: NotificationDispatcher) -> None:
        """Attach after construction; the dispatcher itself reads recipients from here."""
        self._notifications = notifications

    def get_user(self, email: str) -> User:
        row = self._store.find_record_by_key(USERS, "email", normalize_email(email))
        if row is None:
            raise UserNotFoundError(normalize_email(email))
        return user_from_row(row)

    def find_user(self, email: str) -> User | None:
        row = self._store.find_record_by_key(USERS, "email", normalize_email(email))
        return user_from_row(row) if row is not None else None

    def resolve_role(self, email: str) -> Role:
        """Role of an Active user; anyone else is treated as a plain user."""
        user = self.find_user(email)
        if user is None or user.status is not UserStatus.ACTIVE:
            return Role.USER
        return user.role

    def request_account(
        self,
        email: str,
        name: str,
        department: str = "",
        requested_role: str = "",
    ) -> User:
        email = normalize_email(email)
        if not email or "@" not in email:
            raise ValidationError(f"Invalid email address: {email!r}")
        existing = self.find_user(email)
        if existing is not None:
            return existing

        self._store.append_record(
            USERS,
            {
                "email": email,
                "name": name.strip(),
                "department": department.strip(),
                "requested_role": requested_role.strip().lower(),
                "role": Role.USER.value,
                "status": UserStatus.PENDING.value,
                "created_at": self._clock.now(),
            },
        )
        logger.info(
            "account_requested",
            extra={"email": email, "requested_role": requested_role},
        )
        user = self.get_user(email)
        if self._notifications is not None:
            self._notifications.user_requested(user)
        return user

    def set_user_status(
        self,
        actor_role: Role | str,
        email: str,
        status: UserStatus | str,
        role: Role | str | None = None,
    ) -> User:
        """Controller-only: activate, disable or re-role an account."""
        actor_role = Role.parse(actor_role)
        if actor_role is not Role.CONTROLLER:
            raise NotApproverError(actor_role.value, "manage user accounts")
        user = self.get_user(email)

        patch = {"status": UserStatus(status).value, "updated_at": self._clock.now()}
        if role is not None:
            patch["role"] = Role(role).value
        self._store.update_record_by_key(USERS, "email", user.email, patch)
        logger.info(
            "user_status_changed",
            extra={"email": user.email, "status": patch["status"], "role": patch.get("role")},
        )
        return self.get_user(user.email)

    def recipients_for_role(self, role: Role) -> tuple[str, ...]:
        """Emails of Active users holding ``role``, in directory order."""
        emails = []
        for row in self._store.read_all_records(USERS):
            user = user_from_row(row)
            if user.status is UserStatus.ACTIVE and user.role is role:
                emails.append(user.email)
        return tuple(emails)
