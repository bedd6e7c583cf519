"""
Module: workflow_kernel.models.review_record
Responsibility: ORM persistence for the append-only review ledger.

Architecture position: Kernel > Models.  May import from db/base.py and
    exceptions.py only.

Invariants enforced:
    - UNIQUE(item_id, sequence): one ledger position per record.
    - Records are immutable once written: ORM listeners refuse UPDATE and
      DELETE.

Failure modes:
    - ImmutabilityViolationError on record UPDATE/DELETE.
    - IntegrityError on a duplicate ledger position.

Audit relevance:
    The ledger is the only history of who reviewed an item and how; the
    timeline and summary views are derived from it on every read.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, Text, UniqueConstraint, event
from sqlalchemy.orm import Mapped, mapped_column

from workflow_kernel.db.base import Base, UUIDString
from workflow_kernel.exceptions import ImmutabilityViolationError

if TYPE_CHECKING:
    from workflow_kernel.domain.review import ReviewRecord


class ReviewRecordModel(Base):
    """Persistent review record. Append-only."""

    __tablename__ = "review_records"

    __table_args__ = (
        UniqueConstraint("item_id", "sequence", name="uq_review_records_sequence"),
        Index("ix_review_records_item_time", "item_id", "reviewed_at"),
        Index("ix_review_records_actor", "actor_id"),
    )

    item_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("review_items.id"), nullable=False,
    )
    sequence: Mapped[int] = mapped_column(nullable=False)
    actor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    previous_status: Mapped[str] = mapped_column(String(50), nullable=False)
    new_status: Mapped[str] = mapped_column(String(50), nullable=False)
    stage_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    next_reviewer_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    reviewed_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return (
            f"<ReviewRecord item={self.item_id} #{self.sequence} "
            f"{self.action} {self.previous_status}->{self.new_status}>"
        )

    def to_dto(self) -> ReviewRecord:
        """Convert ORM model to frozen domain DTO."""
        from workflow_kernel.domain.review import ReviewRecord

        return ReviewRecord(
            id=self.id,
            item_id=self.item_id,
            sequence=self.sequence,
            actor_id=self.actor_id,
            action=self.action,
            previous_status=self.previous_status,
            new_status=self.new_status,
            reviewed_at=self.reviewed_at,
            stage_id=self.stage_id,
            next_reviewer_id=self.next_reviewer_id,
            comment=self.comment,
        )

    @classmethod
    def from_dto(cls, dto: ReviewRecord) -> ReviewRecordModel:
        """Create ORM model from domain DTO."""
        return cls(
            id=dto.id,
            item_id=dto.item_id,
            sequence=dto.sequence,
            actor_id=dto.actor_id,
            action=dto.action,
            previous_status=dto.previous_status,
            new_status=dto.new_status,
            stage_id=dto.stage_id,
            next_reviewer_id=dto.next_reviewer_id,
            comment=dto.comment,
            reviewed_at=dto.reviewed_at,
        )


# =============================================================================
# ORM-Level Immutability (Append-Only)
# =============================================================================


@event.listens_for(ReviewRecordModel, "before_update")
def prevent_record_update(mapper, connection, target):
    """Prevent updates to review records."""
    raise ImmutabilityViolationError(
        entity_type="ReviewRecord",
        entity_id=str(target.id),
        reason="Review records are immutable -- cannot modify",
    )


@event.listens_for(ReviewRecordModel, "before_delete")
def prevent_record_delete(mapper, connection, target):
    """Prevent deletion of review records."""
    raise ImmutabilityViolationError(
        entity_type="ReviewRecord",
        entity_id=str(target.id),
        reason="Review records are immutable -- cannot delete",
    )
