"""
Module: workflow_kernel.db.gateway
Responsibility: SQLAlchemy-backed ``PersistenceGateway``.  Translates between
    frozen domain DTOs and ORM models and enforces the optimistic version
    check on item writes.
Architecture position: Kernel > DB.  May import from models/, domain/ and
    exceptions.

Invariants enforced:
    - Item writes are ``UPDATE ... WHERE id = :id AND version = :expected``;
      zero affected rows means another writer got there first.
    - Review records and published stages/transitions are never updated.
    - The gateway flushes but never commits; the caller owns the transaction.

Failure modes:
    - OptimisticLockError on a stale item version.
    - ImmutabilityViolationError on update of an append-only entity, or on
      re-adding an existing review record.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from workflow_kernel.domain.review import Item, ReviewRecord
from workflow_kernel.domain.workflow import Stage, Transition, WorkflowTemplate
from workflow_kernel.exceptions import (
    ImmutabilityViolationError,
    ItemNotFoundError,
    OptimisticLockError,
)
from workflow_kernel.logging_config import get_logger
from workflow_kernel.models.item import ItemModel
from workflow_kernel.models.review_record import ReviewRecordModel
from workflow_kernel.models.workflow import (
    StageModel,
    TransitionModel,
    WorkflowTemplateModel,
)

logger = get_logger("db.gateway")

_MODELS: dict[type, type] = {
    WorkflowTemplate: WorkflowTemplateModel,
    Stage: StageModel,
    Transition: TransitionModel,
    Item: ItemModel,
    ReviewRecord: ReviewRecordModel,
}

# Domain field name -> column attribute name, where they differ
_COLUMN_NAMES: dict[type, dict[str, str]] = {
    Stage: {"order": "stage_order"},
    Transition: {"action": "action_name"},
}


class SqlAlchemyGateway:
    """
    ``PersistenceGateway`` over a caller-owned SQLAlchemy session.

    Contract:
        Accepts and returns frozen domain DTOs only; ORM models never leave
        this class.

    Guarantees:
        - ``flush()`` after every write so constraint violations surface at
          the call site.
        - Never calls ``commit()`` or ``rollback()``.
    """

    def __init__(self, session: Session):
        self.session = session

    def _model(self, kind: type) -> type:
        try:
            return _MODELS[kind]
        except KeyError:
            raise TypeError(f"Unsupported entity kind: {kind.__name__}") from None

    def get(self, kind: type, entity_id: UUID) -> Any:
        row = self.session.get(self._model(kind), entity_id)
        return row.to_dto() if row is not None else None

    def find(self, kind: type, **criteria: Any) -> list[Any]:
        model = self._model(kind)
        names = _COLUMN_NAMES.get(kind, {})
        stmt = select(model)
        for field_name, value in criteria.items():
            column = getattr(model, names.get(field_name, field_name))
            stmt = stmt.where(column.is_(None) if value is None else column == value)
        rows = self.session.execute(stmt.order_by(model.id)).scalars().all()
        return [row.to_dto() for row in rows]

    def add(self, entity: Any) -> None:
        model = self._model(type(entity))
        if isinstance(entity, ReviewRecord) and self.session.get(model, entity.id) is not None:
            raise ImmutabilityViolationError(
                entity_type="ReviewRecord",
                entity_id=str(entity.id),
                reason="Review records are append-only -- id already written",
            )
        self.session.add(model.from_dto(entity))
        self.session.flush()

    def update(self, entity: Any, expected_version: int | None = None) -> None:
        if isinstance(entity, Item):
            self._update_item(entity, expected_version)
        elif isinstance(entity, WorkflowTemplate):
            row = self.session.get(WorkflowTemplateModel, entity.id)
            row.apply_dto(entity)
            self.session.flush()
        else:
            raise ImmutabilityViolationError(
                entity_type=type(entity).__name__,
                entity_id=str(entity.id),
                reason="entity is immutable once written",
            )

    def _update_item(self, item: Item, expected_version: int | None) -> None:
        expected = item.version - 1 if expected_version is None else expected_version
        result = self.session.execute(
            update(ItemModel)
            .where(ItemModel.id == item.id, ItemModel.version == expected)
            .values(
                status=item.status,
                current_stage_id=item.current_stage_id,
                current_reviewer_id=item.current_reviewer_id,
                version=item.version,
            )
            .execution_options(synchronize_session="fetch")
        )
        if result.rowcount == 1:
            self.session.flush()
            return

        actual = self.session.execute(
            select(ItemModel.version).where(ItemModel.id == item.id)
        ).scalar_one_or_none()
        if actual is None:
            raise ItemNotFoundError(str(item.id))
        logger.warning(
            "item_version_conflict",
            extra={
                "item_id": str(item.id),
                "expected_version": expected,
                "actual_version": actual,
            },
        )
        raise OptimisticLockError("Item", str(item.id), expected, actual)
