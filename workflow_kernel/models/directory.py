"""
Module: workflow_kernel.models.directory
Responsibility: ORM persistence for users, roles, memberships and
    role-permission grants backing ``workflow_services.directory.SqlDirectory``.

Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Role codes and permission names are unique.
    - A user holds a role at most once; a role carries a permission at most once.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from workflow_kernel.db.base import Base, UUIDString


class UserModel(Base):
    __tablename__ = "users"

    username: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    display_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    active: Mapped[bool] = mapped_column(default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<User {self.username}>"


class RoleModel(Base):
    __tablename__ = "roles"

    code: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)

    def __repr__(self) -> str:
        return f"<Role {self.code}>"


class PermissionModel(Base):
    __tablename__ = "permissions"

    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    description: Mapped[str] = mapped_column(String(500), default="", nullable=False)


class UserRoleModel(Base):
    """Membership of a user in a role."""

    __tablename__ = "user_roles"

    __table_args__ = (
        UniqueConstraint("user_id", "role_code", name="uq_user_roles_member"),
    )

    user_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("users.id"), nullable=False,
    )
    role_code: Mapped[str] = mapped_column(
        String(100), ForeignKey("roles.code"), nullable=False,
    )


class RolePermissionModel(Base):
    """Grant of a permission to a role."""

    __tablename__ = "role_permissions"

    __table_args__ = (
        UniqueConstraint("role_code", "permission_name", name="uq_role_permissions_grant"),
    )

    role_code: Mapped[str] = mapped_column(
        String(100), ForeignKey("roles.code"), nullable=False,
    )
    permission_name: Mapped[str] = mapped_column(
        String(100), ForeignKey("permissions.name"), nullable=False,
    )
