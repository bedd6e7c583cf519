"""
Module: workflow_kernel.selectors.visibility_selector
Responsibility: Read-only projections of review state for one user: the
    pending-review inbox, the item detail view, and the review history view.
Architecture position: Kernel > Selectors.  Reads through the persistence
    gateway and the compiled workflow definitions.  Never writes.

Invariants enforced:
    - Read-only: nothing here adds, updates or appends.
    - Deterministic: with no intervening write, repeated calls return equal
      results (ordering is by created_at then id; history by ledger order).
    - Available actions mirror the transition engine's eligibility rules:
      current reviewer, required role (fresh lookup), pinned reviewer.
    - Display names are cosmetic; a directory failure degrades to the
      ``User<id>`` label and never fails the query.

Failure modes:
    - Unknown user or item -> Outcome NOT_FOUND.
    - Viewer without access -> Outcome FORBIDDEN.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from workflow_kernel.domain.gateways import IdentityDirectory, PersistenceGateway
from workflow_kernel.domain.outcome import Outcome
from workflow_kernel.domain.review import (
    Item,
    ReviewRecord,
    ReviewSummary,
    TimelineEvent,
    build_timeline,
    ledger_order,
    summarize,
)
from workflow_kernel.domain.vocabulary import (
    ItemStatus,
    ReviewAction,
    action_display_name,
    is_returned,
    pending_status_for_order,
    status_display_name,
)
from workflow_kernel.domain.workflow import WorkflowDefinition
from workflow_kernel.exceptions import (
    AccessDeniedError,
    ItemNotFoundError,
    UserNotFoundError,
    WorkflowKernelError,
)
from workflow_kernel.logging_config import get_logger

if TYPE_CHECKING:
    from workflow_kernel.services.definition_service import WorkflowDefinitionService
    from workflow_kernel.services.permissions import AdminOverride

logger = get_logger("selectors.visibility")


# =============================================================================
# DTOs
# =============================================================================


@dataclass(frozen=True)
class AvailableAction:
    action: str
    display_name: str
    result_status: str
    next_stage_id: UUID | None = None
    next_stage_name: str | None = None


@dataclass(frozen=True)
class PendingReview:
    """One entry in a user's review inbox."""

    item_id: UUID
    title: str
    template_id: UUID
    template_name: str
    status: str
    status_display: str
    current_stage_id: UUID | None
    current_stage_name: str | None
    creator_id: UUID
    creator_name: str
    created_at: datetime
    version: int
    actions: tuple[AvailableAction, ...]


@dataclass(frozen=True)
class StageView:
    stage_id: UUID
    name: str
    order: int
    required_role: str
    pinned_reviewer_id: UUID | None
    pinned_reviewer_name: str | None
    is_current: bool


@dataclass(frozen=True)
class HistoryEntry:
    """A ledger record with names resolved for display."""

    sequence: int
    action: str
    action_display: str
    actor_id: UUID
    actor_name: str
    previous_status: str
    new_status: str
    new_status_display: str
    stage_id: UUID | None
    stage_name: str | None
    comment: str | None
    reviewed_at: datetime


@dataclass(frozen=True)
class ItemDetail:
    item: Item
    template_name: str
    status_display: str
    creator_name: str
    current_reviewer_name: str | None
    stages: tuple[StageView, ...]
    history: tuple[HistoryEntry, ...]  # newest first
    actions: tuple[AvailableAction, ...]


@dataclass(frozen=True)
class ReviewHistory:
    item_id: UUID
    title: str
    template_name: str
    timeline: tuple[TimelineEvent, ...]
    summary: ReviewSummary


# =============================================================================
# Projection
# =============================================================================


class VisibilityProjection:
    """
    Per-user read models over items, definitions and the review ledger.

    Contract:
        Every public method returns an ``Outcome``; kernel errors are never
        raised to the caller.

    Guarantees:
        - No method writes to storage.

    Non-goals:
        - Pagination and search; callers slice the returned tuples.
    """

    def __init__(
        self,
        gateway: PersistenceGateway,
        directory: IdentityDirectory,
        definitions: WorkflowDefinitionService,
        admin: AdminOverride,
    ) -> None:
        self._gateway = gateway
        self._directory = directory
        self._definitions = definitions
        self._admin = admin

    # ------------------------------------------------------------------
    # Inbox
    # ------------------------------------------------------------------

    def pending_for(self, user_id: UUID) -> Outcome[tuple[PendingReview, ...]]:
        """Items waiting on ``user_id``, oldest first."""
        try:
            if not self._directory.user_exists(user_id):
                raise UserNotFoundError(str(user_id))

            visible: dict[UUID, Item] = {
                item.id: item
                for item in self._gateway.find(Item, current_reviewer_id=user_id)
            }
            for item in self._gateway.find(
                Item, creator_id=user_id, status=ItemStatus.RETURNED_TO_CREATOR.value
            ):
                visible[item.id] = item

            entries = []
            for item in sorted(visible.values(), key=lambda i: (i.created_at, str(i.id))):
                definition = self._definitions.definition(item.template_id)
                stage = definition.stage(item.current_stage_id)
                entries.append(
                    PendingReview(
                        item_id=item.id,
                        title=item.title,
                        template_id=item.template_id,
                        template_name=definition.template.name,
                        status=item.status,
                        status_display=status_display_name(item.status),
                        current_stage_id=item.current_stage_id,
                        current_stage_name=stage.name if stage else None,
                        creator_id=item.creator_id,
                        creator_name=self.display_name(item.creator_id),
                        created_at=item.created_at,
                        version=item.version,
                        actions=self.available_actions(item, user_id, definition),
                    )
                )
        except WorkflowKernelError as exc:
            return Outcome.failed(exc)

        logger.debug(
            "pending_reviews_listed",
            extra={"user_id": str(user_id), "count": len(entries)},
        )
        return Outcome.ok(tuple(entries))

    # ------------------------------------------------------------------
    # Detail / history
    # ------------------------------------------------------------------

    def detail_for(self, user_id: UUID, item_id: UUID) -> Outcome[ItemDetail]:
        """Full view for the creator, current reviewer or an administrator."""
        try:
            item = self._load_item(item_id)
            if user_id not in (item.creator_id, item.current_reviewer_id) and not (
                self._admin.allows(user_id)
            ):
                raise AccessDeniedError(str(item_id), str(user_id))

            definition = self._definitions.definition(item.template_id)
            records = self._records(item.id)
            detail = ItemDetail(
                item=item,
                template_name=definition.template.name,
                status_display=status_display_name(item.status),
                creator_name=self.display_name(item.creator_id),
                current_reviewer_name=(
                    self.display_name(item.current_reviewer_id)
                    if item.current_reviewer_id is not None
                    else None
                ),
                stages=tuple(
                    StageView(
                        stage_id=stage.id,
                        name=stage.name,
                        order=stage.order,
                        required_role=stage.required_role,
                        pinned_reviewer_id=stage.pinned_reviewer_id,
                        pinned_reviewer_name=(
                            self.display_name(stage.pinned_reviewer_id)
                            if stage.pinned_reviewer_id is not None
                            else None
                        ),
                        is_current=stage.id == item.current_stage_id,
                    )
                    for stage in definition.stages
                ),
                history=tuple(
                    self._history_entry(record, definition) for record in reversed(records)
                ),
                actions=self.available_actions(item, user_id, definition),
            )
        except WorkflowKernelError as exc:
            return Outcome.failed(exc)
        return Outcome.ok(detail)

    def history_for(self, user_id: UUID, item_id: UUID) -> Outcome[ReviewHistory]:
        """Timeline and summary for anyone who took part in the review."""
        try:
            item = self._load_item(item_id)
            records = self._records(item.id)
            participants = {r.actor_id for r in records}
            allowed = (
                user_id in (item.creator_id, item.current_reviewer_id)
                or user_id in participants
                or self._admin.allows(user_id)
            )
            if not allowed:
                raise AccessDeniedError(str(item_id), str(user_id))

            definition = self._definitions.definition(item.template_id)
            timeline = build_timeline(item, records)
            history = ReviewHistory(
                item_id=item.id,
                title=item.title,
                template_name=definition.template.name,
                timeline=timeline,
                summary=summarize(timeline, item.status),
            )
        except WorkflowKernelError as exc:
            return Outcome.failed(exc)
        return Outcome.ok(history)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def available_actions(
        self, item: Item, user_id: UUID, definition: WorkflowDefinition
    ) -> tuple[AvailableAction, ...]:
        """Actions ``user_id`` could apply to ``item`` right now."""
        if is_returned(item.status):
            may_resubmit = (
                user_id == item.creator_id
                if item.status == ItemStatus.RETURNED_TO_CREATOR.value
                else user_id == item.current_reviewer_id
            )
            if not may_resubmit:
                return ()
            last_return = self._latest_return(item.id)
            target = definition.reentry_stage(
                item.status,
                item.current_stage_id,
                last_return.stage_id if last_return is not None else None,
            )
            if target is None:
                return ()
            return (
                AvailableAction(
                    action=ReviewAction.RESUBMIT.value,
                    display_name=action_display_name(ReviewAction.RESUBMIT.value),
                    result_status=pending_status_for_order(target.order),
                    next_stage_id=target.id,
                    next_stage_name=target.name,
                ),
            )

        if item.current_stage_id is None or item.current_reviewer_id != user_id:
            return ()
        stage = definition.stage(item.current_stage_id)
        if stage is None:
            return ()
        if stage.required_role not in self._directory.roles_of(user_id):
            return ()
        if stage.pinned_reviewer_id is not None and stage.pinned_reviewer_id != user_id:
            return ()

        actions = []
        for transition in definition.outgoing(stage.id):
            next_stage = definition.stage(transition.next_stage_id)
            actions.append(
                AvailableAction(
                    action=transition.action,
                    display_name=action_display_name(transition.action),
                    result_status=transition.result_status,
                    next_stage_id=transition.next_stage_id,
                    next_stage_name=next_stage.name if next_stage else None,
                )
            )
        return tuple(actions)

    def display_name(self, user_id: UUID) -> str:
        fallback = f"User{user_id}"
        try:
            name = self._directory.display_name(user_id)
        except Exception:
            logger.warning(
                "display_name_unavailable",
                extra={"user_id": str(user_id)},
                exc_info=True,
            )
            return fallback
        return name or fallback

    def _load_item(self, item_id: UUID) -> Item:
        item = self._gateway.get(Item, item_id)
        if item is None:
            raise ItemNotFoundError(str(item_id))
        return item

    def _records(self, item_id: UUID) -> list[ReviewRecord]:
        return ledger_order(self._gateway.find(ReviewRecord, item_id=item_id))

    def _latest_return(self, item_id: UUID) -> ReviewRecord | None:
        returns = [
            r for r in self._records(item_id) if r.action == ReviewAction.RETURN.value
        ]
        return returns[-1] if returns else None

    def _history_entry(self, record: ReviewRecord, definition: WorkflowDefinition) -> HistoryEntry:
        stage = definition.stage(record.stage_id)
        return HistoryEntry(
            sequence=record.sequence,
            action=record.action,
            action_display=action_display_name(record.action),
            actor_id=record.actor_id,
            actor_name=self.display_name(record.actor_id),
            previous_status=record.previous_status,
            new_status=record.new_status,
            new_status_display=status_display_name(record.new_status),
            stage_id=record.stage_id,
            stage_name=stage.name if stage else None,
            comment=record.comment,
            reviewed_at=record.reviewed_at,
        )
