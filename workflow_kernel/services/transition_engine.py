"""
workflow_kernel.services.transition_engine -- The review state machine.

Responsibility:
    Applies a review action (approve / return / reject / resubmit / custom)
    to an item: checks eligibility, resolves the transition, moves the item
    to its new stage, status and reviewer, and appends the ledger record.
    Also creates new items at the entry stage of a template.

Architecture position:
    Kernel > Services.  The only writer of item state.  Depends on the
    definition service, reviewer resolver and history ledger.

Invariants enforced:
    - Eligibility: approve/return/reject/custom require the current
      reviewer; resubmit requires the creator (returned to creator) or the
      current reviewer (returned to reviewer).
    - Role check is a fresh directory lookup, never served from cache, and a
      pinned stage only accepts its pinned reviewer.
    - Unknown actions are always INVALID_ACTION, never ignored.
    - Return goes back to the most recent approval from another stage by
      another actor; with none, the item returns to its creator.
    - Every successful action writes exactly one item version and exactly
      one ledger record.  The record is built before the item is written;
      if appending it fails, the previous item is put back.
    - Actions on one item are serialized by a per-item lock; writers in
      other processes are caught by the version check.

Failure modes:
    - All kernel errors become a failed ``TransitionOutcome`` with the error
      kind and code.
    - Unexpected errors (storage unavailable) are logged once with the
      traceback and re-raised.  Nothing is retried here.

Audit relevance:
    ``transition_applied`` and ``transition_refused`` log lines carry the
    item, actor, action and statuses for every attempt.
"""

from __future__ import annotations

import threading
import weakref
from uuid import UUID, uuid4

from workflow_kernel.domain.clock import Clock, SystemClock
from workflow_kernel.domain.gateways import IdentityDirectory, PersistenceGateway
from workflow_kernel.domain.outcome import Outcome, OutcomeStatus, TransitionOutcome
from workflow_kernel.domain.review import Item, ReviewRecord
from workflow_kernel.domain.vocabulary import (
    DEFAULT_TERMINAL_STATUSES,
    ItemStatus,
    ReviewAction,
    is_returned,
    normalize_action,
    pending_status_for_order,
)
from workflow_kernel.domain.workflow import Stage, WorkflowDefinition
from workflow_kernel.exceptions import (
    InvalidActionError,
    ItemNotFoundError,
    ItemNotReviewableError,
    MissingRoleError,
    NotCreatorError,
    NotCurrentReviewerError,
    OptimisticLockError,
    PinnedReviewerMismatchError,
    ResubmitNotAllowedError,
    StageNotFoundError,
    TemplateInactiveError,
    UserNotFoundError,
    WorkflowKernelError,
)
from workflow_kernel.logging_config import LogContext, get_logger
from workflow_kernel.services.definition_service import WorkflowDefinitionService
from workflow_kernel.services.history_ledger import HistoryLedger
from workflow_kernel.services.reviewer_resolver import ReviewerResolver

logger = get_logger("services.transition_engine")


class _ItemLocks:
    """One lock per item id; distinct items never share a lock.

    Entries are weak: a lock lives only while some caller holds it, so the
    map stays bounded by the number of in-flight transitions.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: weakref.WeakValueDictionary[UUID, threading.Lock] = (
            weakref.WeakValueDictionary()
        )

    def for_item(self, item_id: UUID) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(item_id)
            if lock is None:
                lock = self._locks[item_id] = threading.Lock()
            return lock


class TransitionEngine:
    """
    Canonical transition state machine.

    Contract:
        ``apply`` and ``create_item`` never raise kernel errors; they return
        typed outcomes.  Storage writes go through the gateway (flush only
        for SQL); the caller owns commit.

    Guarantees:
        - A refused action writes nothing.
        - ``is_completed`` is true iff the new status is a terminal status.

    Non-goals:
        - Parallel stages within one item.
        - Retrying on conflict; the caller decides.
    """

    def __init__(
        self,
        gateway: PersistenceGateway,
        directory: IdentityDirectory,
        definitions: WorkflowDefinitionService,
        resolver: ReviewerResolver,
        ledger: HistoryLedger,
        clock: Clock | None = None,
        terminal_statuses: frozenset[str] = DEFAULT_TERMINAL_STATUSES,
    ) -> None:
        self._gateway = gateway
        self._directory = directory
        self._definitions = definitions
        self._resolver = resolver
        self._ledger = ledger
        self._clock = clock or SystemClock()
        self._terminal_statuses = frozenset(terminal_statuses)
        self._locks = _ItemLocks()

    # ------------------------------------------------------------------
    # Item creation
    # ------------------------------------------------------------------

    def create_item(
        self,
        title: str,
        creator_id: UUID,
        template_id: UUID,
        requested_reviewer_id: UUID | None = None,
    ) -> Outcome[Item]:
        """Create an item waiting at stage 1 of an active template."""
        with LogContext.bind(actor_id=str(creator_id), template_id=str(template_id)):
            try:
                if not self._directory.user_exists(creator_id):
                    raise UserNotFoundError(str(creator_id))
                template = self._definitions.template(template_id)
                if not template.active:
                    raise TemplateInactiveError(str(template_id))
                first = self._definitions.first_stage(template_id)
                reviewer_id = self._resolver.resolve(
                    first, requested_reviewer_id, exclude_actor_id=creator_id
                )
                item = Item(
                    id=uuid4(),
                    title=title.strip(),
                    template_id=template_id,
                    creator_id=creator_id,
                    created_at=self._clock.now(),
                    status=pending_status_for_order(first.order),
                    current_stage_id=first.id,
                    current_reviewer_id=reviewer_id,
                )
                self._gateway.add(item)
            except WorkflowKernelError as exc:
                logger.info(
                    "item_create_refused",
                    extra={"error_code": exc.code, "error_kind": exc.kind},
                )
                return Outcome.failed(exc)

            self._resolver.cache.invalidate_workload(reviewer_id)
            logger.info(
                "item_created",
                extra={
                    "item_id": str(item.id),
                    "status": item.status,
                    "reviewer_id": str(reviewer_id) if reviewer_id else None,
                },
            )
            return Outcome.ok(item)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def apply(
        self,
        item_id: UUID,
        actor_id: UUID,
        action: str,
        comment: str | None = None,
        requested_next_reviewer_id: UUID | None = None,
        expected_version: int | None = None,
    ) -> TransitionOutcome:
        """Apply ``action`` by ``actor_id`` to the item."""
        normalized = normalize_action(action)
        with LogContext.bind(item_id=str(item_id), actor_id=str(actor_id)):
            try:
                with self._locks.for_item(item_id):
                    before, after, record = self._apply_locked(
                        item_id,
                        actor_id,
                        normalized,
                        comment,
                        requested_next_reviewer_id,
                        expected_version,
                    )
            except WorkflowKernelError as exc:
                logger.info(
                    "transition_refused",
                    extra={
                        "action": normalized,
                        "error_code": exc.code,
                        "error_kind": exc.kind,
                    },
                )
                return TransitionOutcome.failed(item_id, normalized, exc)
            except Exception:
                logger.exception("transition_failed", extra={"action": normalized})
                raise

            self._resolver.cache.invalidate_workload(before.current_reviewer_id)
            self._resolver.cache.invalidate_workload(after.current_reviewer_id)

            completed = after.status in self._terminal_statuses
            logger.info(
                "transition_applied",
                extra={
                    "action": normalized,
                    "from_status": before.status,
                    "to_status": after.status,
                    "next_reviewer_id": (
                        str(after.current_reviewer_id) if after.current_reviewer_id else None
                    ),
                    "version": after.version,
                    "is_completed": completed,
                },
            )
            return TransitionOutcome(
                status=OutcomeStatus.SUCCESS,
                item_id=item_id,
                action=normalized,
                record=record,
                item=after,
                is_completed=completed,
            )

    def _apply_locked(
        self,
        item_id: UUID,
        actor_id: UUID,
        action: str,
        comment: str | None,
        requested_next_reviewer_id: UUID | None,
        expected_version: int | None,
    ) -> tuple[Item, Item, ReviewRecord]:
        item = self._gateway.get(Item, item_id)
        if item is None:
            raise ItemNotFoundError(str(item_id))
        if expected_version is not None and item.version != expected_version:
            raise OptimisticLockError("Item", str(item_id), expected_version, item.version)
        if not self._directory.user_exists(actor_id):
            raise UserNotFoundError(str(actor_id))

        definition = self._definitions.definition(item.template_id)
        if action == ReviewAction.RESUBMIT.value:
            moved = self._resubmit(item, actor_id, requested_next_reviewer_id, definition)
        else:
            moved = self._review(item, actor_id, action, requested_next_reviewer_id, definition)

        record = self._ledger.new_record(
            item_id=item.id,
            actor_id=actor_id,
            action=action,
            previous_status=item.status,
            new_status=moved.status,
            stage_id=item.current_stage_id,
            next_reviewer_id=moved.current_reviewer_id,
            comment=comment,
        )
        self._gateway.update(moved, expected_version=item.version)
        try:
            self._ledger.append(record)
        except Exception:
            self._restore(item, moved)
            raise
        return item, moved, record

    def _restore(self, item: Item, moved: Item) -> None:
        """Put back the pre-transition item after a failed ledger append."""
        try:
            self._gateway.update(item, expected_version=moved.version)
        except Exception:
            logger.exception("transition_restore_failed", extra={"version": moved.version})

    def _review(
        self,
        item: Item,
        actor_id: UUID,
        action: str,
        requested_next_reviewer_id: UUID | None,
        definition: WorkflowDefinition,
    ) -> Item:
        if item.current_reviewer_id != actor_id:
            raise NotCurrentReviewerError(
                str(item.id),
                str(actor_id),
                str(item.current_reviewer_id) if item.current_reviewer_id else None,
            )
        if item.current_stage_id is None or is_returned(item.status):
            raise ItemNotReviewableError(str(item.id), item.status)

        stage = definition.stage(item.current_stage_id)
        if stage is None:
            raise StageNotFoundError(str(item.template_id), str(item.current_stage_id))
        self._check_stage_eligibility(stage, actor_id)

        transition = definition.resolve_transition(stage.id, action)
        if transition is None:
            raise InvalidActionError(action, str(stage.id))

        if action == ReviewAction.RETURN.value:
            prior = self._ledger.find_previous_approval(item.id, stage.id, actor_id)
            if prior is not None:
                return item.moved(
                    status=ItemStatus.RETURNED_TO_REVIEWER.value,
                    stage_id=prior.stage_id,
                    reviewer_id=prior.actor_id,
                )
            return item.moved(
                status=ItemStatus.RETURNED_TO_CREATOR.value,
                stage_id=None,
                reviewer_id=item.creator_id,
            )

        if action == ReviewAction.REJECT.value:
            return item.moved(status=ItemStatus.REJECTED.value, stage_id=None, reviewer_id=None)

        if transition.is_terminal:
            return item.moved(status=transition.result_status, stage_id=None, reviewer_id=None)

        next_stage = definition.stage(transition.next_stage_id)
        if next_stage is None:
            raise StageNotFoundError(str(item.template_id), str(transition.next_stage_id))
        reviewer_id = self._resolver.resolve(
            next_stage, requested_next_reviewer_id, exclude_actor_id=actor_id
        )
        return item.moved(
            status=transition.result_status,
            stage_id=next_stage.id,
            reviewer_id=reviewer_id,
        )

    def _resubmit(
        self,
        item: Item,
        actor_id: UUID,
        requested_next_reviewer_id: UUID | None,
        definition: WorkflowDefinition,
    ) -> Item:
        if not is_returned(item.status):
            raise ResubmitNotAllowedError(str(item.id), item.status)

        if item.status == ItemStatus.RETURNED_TO_CREATOR.value:
            if actor_id != item.creator_id:
                raise NotCreatorError(str(item.id), str(actor_id))
        elif actor_id != item.current_reviewer_id:
            raise NotCurrentReviewerError(
                str(item.id),
                str(actor_id),
                str(item.current_reviewer_id) if item.current_reviewer_id else None,
            )

        last_return = self._ledger.latest_record(item.id, ReviewAction.RETURN.value)
        target = definition.reentry_stage(
            item.status,
            item.current_stage_id,
            last_return.stage_id if last_return is not None else None,
        )
        if target is None:
            raise StageNotFoundError(str(item.template_id), "re-entry stage")

        # Default to whoever returned the item so the prior assignment is restored.
        requested = requested_next_reviewer_id
        if requested is None and last_return is not None:
            requested = last_return.actor_id
        reviewer_id = self._resolver.resolve(target, requested, exclude_actor_id=actor_id)
        return item.moved(
            status=pending_status_for_order(target.order),
            stage_id=target.id,
            reviewer_id=reviewer_id,
        )

    def _check_stage_eligibility(self, stage: Stage, actor_id: UUID) -> None:
        if not self._resolver.holds_role(actor_id, stage.required_role):
            raise MissingRoleError(str(actor_id), stage.required_role, str(stage.id))
        if stage.pinned_reviewer_id is not None and stage.pinned_reviewer_id != actor_id:
            raise PinnedReviewerMismatchError(
                str(actor_id), str(stage.pinned_reviewer_id), str(stage.id)
            )
