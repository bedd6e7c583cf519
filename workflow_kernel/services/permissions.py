"""
workflow_kernel.services.permissions -- Administrative override checks.

Responsibility:
    Answer "may this user act as an administrator?" by asking the identity
    directory for the user's roles and the authorization gateway whether
    any of those roles carries the configured override permission.

Architecture position:
    Kernel > Services.  Consumes the ``IdentityDirectory`` and
    ``AuthorizationGateway`` protocols only.

Invariants:
    - Evaluated freshly on every call; never cached, so a revoked grant
      takes effect immediately.
"""

from __future__ import annotations

from uuid import UUID

from workflow_kernel.domain.gateways import AuthorizationGateway, IdentityDirectory

DEFAULT_ADMIN_PERMISSION = "admin_manage"


class AdminOverride:
    """Checks the administrative override permission for a user."""

    def __init__(
        self,
        directory: IdentityDirectory,
        authorization: AuthorizationGateway,
        permission: str = DEFAULT_ADMIN_PERMISSION,
    ) -> None:
        self._directory = directory
        self._authorization = authorization
        self.permission = permission

    def allows(self, user_id: UUID) -> bool:
        return any(
            self._authorization.has_permission(role_id, self.permission)
            for role_id in sorted(self._directory.roles_of(user_id))
        )
