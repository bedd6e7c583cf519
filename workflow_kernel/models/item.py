"""
Module: workflow_kernel.models.item
Responsibility: ORM persistence for work items under review.

Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - ``version`` is the optimistic-concurrency token; every write goes
      through a ``WHERE version = :expected`` update (see db/gateway.py).
    - Covering index on (current_reviewer_id, status) for workload counts
      and pending-review listings.

Failure modes:
    - OptimisticLockError raised by the gateway when the version moved.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from workflow_kernel.db.base import Base, UUIDString

if TYPE_CHECKING:
    from workflow_kernel.domain.review import Item


class ItemModel(Base):
    """Persistent work item."""

    __tablename__ = "review_items"

    __table_args__ = (
        Index("ix_review_items_reviewer_status", "current_reviewer_id", "status"),
        Index("ix_review_items_creator_status", "creator_id", "status"),
    )

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    template_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("workflow_templates.id"), nullable=False,
    )
    creator_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    created_at: Mapped[datetime] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False)
    current_stage_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("workflow_stages.id"), nullable=True,
    )
    current_reviewer_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    version: Mapped[int] = mapped_column(default=1, nullable=False)

    def __repr__(self) -> str:
        return f"<Item {self.id} status={self.status} v{self.version}>"

    def to_dto(self) -> Item:
        """Convert ORM model to frozen domain DTO."""
        from workflow_kernel.domain.review import Item

        return Item(
            id=self.id,
            title=self.title,
            template_id=self.template_id,
            creator_id=self.creator_id,
            created_at=self.created_at,
            status=self.status,
            current_stage_id=self.current_stage_id,
            current_reviewer_id=self.current_reviewer_id,
            version=self.version,
        )

    @classmethod
    def from_dto(cls, dto: Item) -> ItemModel:
        """Create ORM model from domain DTO."""
        return cls(
            id=dto.id,
            title=dto.title,
            template_id=dto.template_id,
            creator_id=dto.creator_id,
            created_at=dto.created_at,
            status=dto.status,
            current_stage_id=dto.current_stage_id,
            current_reviewer_id=dto.current_reviewer_id,
            version=dto.version,
        )
