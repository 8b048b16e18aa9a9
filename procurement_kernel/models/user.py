"""Module: procurement_kernel.models.user -- directory of requesters and approvers."""

from __future__ import annotations

from typing import Any

from sqlalchemy import CheckConstraint, String
from sqlalchemy.orm import Mapped, mapped_column

from procurement_kernel.db.base import TrackedBase
from procurement_kernel.domain.approval import Role, User, UserStatus


class UserModel(TrackedBase):
    __tablename__ = "users"

    __table_args__ = (
        CheckConstraint(
            "role IN ('user', 'manager', 'controller')",
            name="ck_users_valid_role",
        ),
    )

    # Stored lower-cased; identity comparisons are case-insensitive.
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    department: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    requested_role: Mapped[str] = mapped_column(String(16), nullable=False, default="")
    role: Mapped[str] = mapped_column(String(16), nullable=False, default=Role.USER.value)
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=UserStatus.PENDING.value
    )

    def to_dto(self) -> User:
        return user_from_row(self.as_row())


def user_from_row(row: dict[str, Any]) -> User:
    return User(
        email=row["email"],
        name=row.get("name") or "",
        role=Role.parse(row.get("role")),
        status=UserStatus(row["status"]),
        department=row.get("department") or "",
        requested_role=row.get("requested_role") or "",
        created_at=row.get("created_at"),
    )
