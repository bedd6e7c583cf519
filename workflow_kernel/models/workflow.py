"""
Module: workflow_kernel.models.workflow
Responsibility: ORM persistence for review templates, their stages and the
    named-action transitions between stages.

Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - UNIQUE(template_id, stage_order): one stage per order within a template.
    - UNIQUE(stage_id, action_name): one transition per action per stage.
    - UNIQUE(name, version): each publication of a template name is distinct.

Failure modes:
    - IntegrityError on duplicate stage order or duplicate stage action.

Audit relevance:
    A published template is never edited in place; a changed definition is
    published as a new version and the old template is deactivated, so every
    item keeps pointing at the exact definition it was reviewed under.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from workflow_kernel.db.base import Base, UUIDString

if TYPE_CHECKING:
    from workflow_kernel.domain.workflow import Stage, Transition, WorkflowTemplate


class WorkflowTemplateModel(Base):
    """Persistent review template header."""

    __tablename__ = "workflow_templates"

    __table_args__ = (
        UniqueConstraint("name", "version", name="uq_workflow_templates_name_version"),
        Index("ix_workflow_templates_active", "active"),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    active: Mapped[bool] = mapped_column(default=True, nullable=False)
    created_by: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    created_at: Mapped[datetime] = mapped_column(nullable=False)
    version: Mapped[int] = mapped_column(default=1, nullable=False)
    definition_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)

    def __repr__(self) -> str:
        return f"<WorkflowTemplate {self.name} v{self.version} active={self.active}>"

    def to_dto(self) -> WorkflowTemplate:
        """Convert ORM model to frozen domain DTO."""
        from workflow_kernel.domain.workflow import WorkflowTemplate

        return WorkflowTemplate(
            id=self.id,
            name=self.name,
            description=self.description,
            active=self.active,
            created_by=self.created_by,
            created_at=self.created_at,
            version=self.version,
            definition_hash=self.definition_hash,
        )

    @classmethod
    def from_dto(cls, dto: WorkflowTemplate) -> WorkflowTemplateModel:
        """Create ORM model from domain DTO."""
        return cls(
            id=dto.id,
            name=dto.name,
            description=dto.description,
            active=dto.active,
            created_by=dto.created_by,
            created_at=dto.created_at,
            version=dto.version,
            definition_hash=dto.definition_hash,
        )

    def apply_dto(self, dto: WorkflowTemplate) -> None:
        # Only the active flag changes after publication.
        self.active = dto.active


class StageModel(Base):
    """Persistent review stage."""

    __tablename__ = "workflow_stages"

    __table_args__ = (
        UniqueConstraint("template_id", "stage_order", name="uq_workflow_stages_order"),
    )

    template_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("workflow_templates.id"), nullable=False,
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    stage_order: Mapped[int] = mapped_column(nullable=False)
    required_role: Mapped[str] = mapped_column(String(100), nullable=False)
    pinned_reviewer_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    def __repr__(self) -> str:
        return f"<Stage {self.stage_order}:{self.name} role={self.required_role}>"

    def to_dto(self) -> Stage:
        from workflow_kernel.domain.workflow import Stage

        return Stage(
            id=self.id,
            template_id=self.template_id,
            name=self.name,
            order=self.stage_order,
            required_role=self.required_role,
            pinned_reviewer_id=self.pinned_reviewer_id,
        )

    @classmethod
    def from_dto(cls, dto: Stage) -> StageModel:
        return cls(
            id=dto.id,
            template_id=dto.template_id,
            name=dto.name,
            stage_order=dto.order,
            required_role=dto.required_role,
            pinned_reviewer_id=dto.pinned_reviewer_id,
        )


class TransitionModel(Base):
    """Persistent stage transition."""

    __tablename__ = "workflow_transitions"

    __table_args__ = (
        UniqueConstraint("stage_id", "action_name", name="uq_workflow_transitions_action"),
    )

    stage_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("workflow_stages.id"), nullable=False,
    )
    action_name: Mapped[str] = mapped_column(String(50), nullable=False)
    next_stage_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("workflow_stages.id"), nullable=True,
    )
    result_status: Mapped[str] = mapped_column(String(50), nullable=False)

    def __repr__(self) -> str:
        return f"<Transition {self.action_name} -> {self.result_status}>"

    def to_dto(self) -> Transition:
        from workflow_kernel.domain.workflow import Transition

        return Transition(
            id=self.id,
            stage_id=self.stage_id,
            action=self.action_name,
            result_status=self.result_status,
            next_stage_id=self.next_stage_id,
        )

    @classmethod
    def from_dto(cls, dto: Transition) -> TransitionModel:
        return cls(
            id=dto.id,
            stage_id=dto.stage_id,
            action_name=dto.action,
            next_stage_id=dto.next_stage_id,
            result_status=dto.result_status,
        )
