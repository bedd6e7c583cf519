"""
workflow_services.directory -- Identity directory adapters.

Responsibility:
    Implements the kernel's ``IdentityDirectory`` and ``AuthorizationGateway``
    protocols twice: ``StaticDirectory`` over in-process dictionaries (tests,
    embedders, configuration-seeded deployments) and ``SqlDirectory`` over
    the ``users`` / ``roles`` / ``user_roles`` / ``role_permissions`` tables.

Architecture position:
    Services layer.  Consumes ``workflow_config`` role definitions and the
    kernel ORM models; the kernel only ever sees the protocols.

Invariants:
    - Every lookup reads current state; nothing here caches.  Caching of
      role membership is the ``ReviewerCache``'s job.
    - ``users_with_role`` returns ids in a stable order (sorted by string).
"""

from __future__ import annotations

import threading
from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from workflow_config.schema import RoleDef
from workflow_kernel.logging_config import get_logger
from workflow_kernel.models.directory import (
    PermissionModel,
    RoleModel,
    RolePermissionModel,
    UserModel,
    UserRoleModel,
)

logger = get_logger("services.directory")


class StaticDirectory:
    """Dictionary-backed directory; mutations take effect immediately."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._users: dict[UUID, str | None] = {}
        self._memberships: dict[UUID, set[str]] = {}
        self._roles: dict[str, set[str]] = {}

    @classmethod
    def from_roles(cls, roles: Iterable[RoleDef]) -> StaticDirectory:
        directory = cls()
        for role in roles:
            directory.add_role(role.code, role.permissions)
        return directory

    # -- mutation --------------------------------------------------------

    def add_role(self, role_id: str, permissions: Iterable[str] = ()) -> None:
        with self._lock:
            self._roles.setdefault(role_id, set()).update(permissions)

    def add_user(
        self,
        user_id: UUID,
        display_name: str | None = None,
        roles: Iterable[str] = (),
    ) -> None:
        with self._lock:
            self._users[user_id] = display_name
            self._memberships.setdefault(user_id, set())
        for role_id in roles:
            self.grant_role(user_id, role_id)

    def grant_role(self, user_id: UUID, role_id: str) -> None:
        with self._lock:
            if user_id not in self._users:
                raise KeyError(f"Unknown user {user_id}")
            self._roles.setdefault(role_id, set())
            self._memberships[user_id].add(role_id)

    def revoke_role(self, user_id: UUID, role_id: str) -> None:
        with self._lock:
            self._memberships.get(user_id, set()).discard(role_id)

    # -- IdentityDirectory -----------------------------------------------

    def roles_of(self, user_id: UUID) -> frozenset[str]:
        with self._lock:
            return frozenset(self._memberships.get(user_id, ()))

    def users_with_role(self, role_id: str) -> tuple[UUID, ...]:
        with self._lock:
            members = [u for u, roles in self._memberships.items() if role_id in roles]
        return tuple(sorted(members, key=str))

    def display_name(self, user_id: UUID) -> str | None:
        with self._lock:
            return self._users.get(user_id)

    def role_exists(self, role_id: str) -> bool:
        with self._lock:
            return role_id in self._roles

    def user_exists(self, user_id: UUID) -> bool:
        with self._lock:
            return user_id in self._users

    # -- AuthorizationGateway --------------------------------------------

    def has_permission(self, role_id: str, permission_name: str) -> bool:
        with self._lock:
            return permission_name in self._roles.get(role_id, ())


class SqlDirectory:
    """
    Directory backed by the kernel's directory tables.

    Contract:
        Shares the caller's session.  Seeding helpers flush; the caller
        owns commit.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    # -- seeding ---------------------------------------------------------

    def install_roles(self, roles: Iterable[RoleDef]) -> None:
        """Insert any missing roles, permissions and grants."""
        roles = tuple(roles)
        for role in roles:
            if self._session.execute(
                select(RoleModel).where(RoleModel.code == role.code)
            ).scalar_one_or_none() is None:
                self._session.add(RoleModel(code=role.code, name=role.name))
                self._session.flush()
            for permission in role.permissions:
                if self._session.execute(
                    select(PermissionModel).where(PermissionModel.name == permission)
                ).scalar_one_or_none() is None:
                    self._session.add(PermissionModel(name=permission))
                self._session.flush()
                if not self.has_permission(role.code, permission):
                    self._session.add(
                        RolePermissionModel(role_code=role.code, permission_name=permission)
                    )
        self._session.flush()
        logger.info("directory_roles_installed", extra={"role_count": len(roles)})

    def add_user(
        self,
        username: str,
        display_name: str | None = None,
        roles: Iterable[str] = (),
        user_id: UUID | None = None,
    ) -> UUID:
        user = UserModel(username=username, display_name=display_name)
        if user_id is not None:
            user.id = user_id
        self._session.add(user)
        self._session.flush()
        for role_id in roles:
            self.grant_role(user.id, role_id)
        return user.id

    def grant_role(self, user_id: UUID, role_id: str) -> None:
        self._session.add(UserRoleModel(user_id=user_id, role_code=role_id))
        self._session.flush()

    def revoke_role(self, user_id: UUID, role_id: str) -> None:
        membership = self._session.execute(
            select(UserRoleModel).where(
                UserRoleModel.user_id == user_id,
                UserRoleModel.role_code == role_id,
            )
        ).scalar_one_or_none()
        if membership is not None:
            self._session.delete(membership)
            self._session.flush()

    # -- IdentityDirectory -----------------------------------------------

    def roles_of(self, user_id: UUID) -> frozenset[str]:
        """Roles of an active user; a deactivated user holds none."""
        rows = self._session.execute(
            select(UserRoleModel.role_code)
            .join(UserModel, UserModel.id == UserRoleModel.user_id)
            .where(UserRoleModel.user_id == user_id, UserModel.active.is_(True))
        ).scalars()
        return frozenset(rows)

    def users_with_role(self, role_id: str) -> tuple[UUID, ...]:
        rows = self._session.execute(
            select(UserRoleModel.user_id)
            .join(UserModel, UserModel.id == UserRoleModel.user_id)
            .where(UserRoleModel.role_code == role_id, UserModel.active.is_(True))
        ).scalars()
        return tuple(sorted(rows, key=str))

    def display_name(self, user_id: UUID) -> str | None:
        user = self._session.get(UserModel, user_id)
        if user is None:
            return None
        return user.display_name or user.username

    def role_exists(self, role_id: str) -> bool:
        return self._session.execute(
            select(RoleModel.id).where(RoleModel.code == role_id)
        ).first() is not None

    def user_exists(self, user_id: UUID) -> bool:
        user = self._session.get(UserModel, user_id)
        return user is not None and user.active

    # -- AuthorizationGateway --------------------------------------------

    def has_permission(self, role_id: str, permission_name: str) -> bool:
        return self._session.execute(
            select(RolePermissionModel.id).where(
                RolePermissionModel.role_code == role_id,
                RolePermissionModel.permission_name == permission_name,
            )
        ).first() is not None
