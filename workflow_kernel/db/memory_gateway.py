"""
Module: workflow_kernel.db.memory_gateway
Responsibility: In-process ``PersistenceGateway`` holding frozen DTOs in
    dictionaries.  Used by tests and by embedders that do not need a
    database.
Architecture position: Kernel > DB.  May import from domain/ and exceptions.

Invariants enforced:
    - Same contract as ``SqlAlchemyGateway``: version-checked item updates,
      append-only review records, immutable stages and transitions.
    - Every read and write happens under one short-held lock, so a
      compare-and-swap on an item version is atomic across threads.
"""

from __future__ import annotations

import threading
from dataclasses import fields
from typing import Any
from uuid import UUID

from workflow_kernel.domain.review import Item, ReviewRecord
from workflow_kernel.domain.workflow import Stage, Transition, WorkflowTemplate
from workflow_kernel.exceptions import (
    ImmutabilityViolationError,
    ItemNotFoundError,
    OptimisticLockError,
)

_KINDS = (WorkflowTemplate, Stage, Transition, Item, ReviewRecord)


class InMemoryGateway:
    """Thread-safe dictionary store keyed by (kind, id)."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._tables: dict[type, dict[UUID, Any]] = {kind: {} for kind in _KINDS}

    def _table(self, kind: type) -> dict[UUID, Any]:
        try:
            return self._tables[kind]
        except KeyError:
            raise TypeError(f"Unsupported entity kind: {kind.__name__}") from None

    def get(self, kind: type, entity_id: UUID) -> Any:
        with self._lock:
            return self._table(kind).get(entity_id)

    def find(self, kind: type, **criteria: Any) -> list[Any]:
        known = {f.name for f in fields(kind)}
        unknown = set(criteria) - known
        if unknown:
            raise AttributeError(f"{kind.__name__} has no field(s) {sorted(unknown)}")
        with self._lock:
            rows = list(self._table(kind).values())
        return [
            row for row in rows
            if all(getattr(row, name) == value for name, value in criteria.items())
        ]

    def add(self, entity: Any) -> None:
        with self._lock:
            table = self._table(type(entity))
            if entity.id in table:
                if isinstance(entity, ReviewRecord):
                    raise ImmutabilityViolationError(
                        entity_type="ReviewRecord",
                        entity_id=str(entity.id),
                        reason="Review records are append-only -- id already written",
                    )
                raise ValueError(f"{type(entity).__name__} {entity.id} already exists")
            table[entity.id] = entity

    def update(self, entity: Any, expected_version: int | None = None) -> None:
        if isinstance(entity, (ReviewRecord, Stage, Transition)):
            raise ImmutabilityViolationError(
                entity_type=type(entity).__name__,
                entity_id=str(entity.id),
                reason="entity is immutable once written",
            )
        with self._lock:
            table = self._table(type(entity))
            current = table.get(entity.id)
            if isinstance(entity, Item):
                if current is None:
                    raise ItemNotFoundError(str(entity.id))
                expected = entity.version - 1 if expected_version is None else expected_version
                if current.version != expected:
                    raise OptimisticLockError(
                        "Item", str(entity.id), expected, current.version
                    )
            table[entity.id] = entity
