"""
External collaborator interfaces (``workflow_kernel.domain.gateways``).

Responsibility
--------------
Protocols for everything the kernel consumes but does not own: entity
storage, role-to-permission authorization, and the identity directory.
The kernel depends only on these shapes; adapters live in ``db/`` and
``workflow_services``.

Architecture position
---------------------
**Kernel domain layer** -- interface definitions only.  ZERO I/O.

Invariants enforced
-------------------
* ``PersistenceGateway.update`` on an ``Item`` with ``expected_version``
  raises ``OptimisticLockError`` when the stored version differs.
* ``PersistenceGateway.add`` on a ``ReviewRecord`` whose id already exists
  raises ``ImmutabilityViolationError``.
"""

from __future__ import annotations

from typing import Any, Protocol, TypeVar
from uuid import UUID

E = TypeVar("E")


class PersistenceGateway(Protocol):
    """Entity storage keyed by domain type.

    Supported kinds: ``WorkflowTemplate``, ``Stage``, ``Transition``,
    ``Item`` and ``ReviewRecord``.  Criteria passed to ``find`` are equality
    filters on the entity's field names.
    """

    def get(self, kind: type[E], entity_id: UUID) -> E | None:
        """Return the entity with this id, or None."""
        ...

    def find(self, kind: type[E], **criteria: Any) -> list[E]:
        """Return all entities of ``kind`` whose fields equal ``criteria``."""
        ...

    def add(self, entity: Any) -> None:
        """Store a new entity."""
        ...

    def update(self, entity: Any, expected_version: int | None = None) -> None:
        """Replace a stored entity (version-checked for items)."""
        ...


class AuthorizationGateway(Protocol):
    """Role-to-permission grants."""

    def has_permission(self, role_id: str, permission_name: str) -> bool:
        """Check whether a role carries a named permission."""
        ...


class IdentityDirectory(Protocol):
    """Users, role memberships and display names."""

    def roles_of(self, user_id: UUID) -> frozenset[str]:
        """Return the role ids the user currently holds."""
        ...

    def users_with_role(self, role_id: str) -> tuple[UUID, ...]:
        """Return every user currently holding the role."""
        ...

    def display_name(self, user_id: UUID) -> str | None:
        """Return the user's display name, or None when unknown."""
        ...

    def role_exists(self, role_id: str) -> bool:
        ...

    def user_exists(self, user_id: UUID) -> bool:
        ...
