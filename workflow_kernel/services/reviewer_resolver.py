"""
workflow_kernel.services.reviewer_resolver -- Next-reviewer selection.

Responsibility:
    Chooses who reviews an item when it enters a stage.

Architecture position:
    Kernel > Services.  Reads the identity directory and item storage;
    writes nothing.

Invariants enforced:
    Priority order, first match wins:
      1. The requested reviewer, if they hold the stage's role (checked
         freshly against the directory) and the stage is unpinned or pinned
         to them.
      2. The stage's pinned reviewer.
      3. The role holder with the fewest pending items assigned, excluding
         the acting user; ties go to the lowest user id.  The winner's role
         is re-checked against the directory, so a stale cache entry can
         delay a change but never assigns someone who lost the role.

Failure modes:
    - Returns None when no eligible reviewer exists; the caller decides
      whether an unassigned stage is acceptable.
"""

from __future__ import annotations

from uuid import UUID

from workflow_kernel.domain.gateways import IdentityDirectory, PersistenceGateway
from workflow_kernel.domain.review import Item
from workflow_kernel.domain.workflow import Stage
from workflow_kernel.logging_config import get_logger
from workflow_kernel.services.reviewer_cache import ReviewerCache

logger = get_logger("services.reviewer_resolver")

DEFAULT_WORKLOAD_PREFIX = "pending"


class ReviewerResolver:
    """Priority-chain reviewer selection with workload balancing."""

    def __init__(
        self,
        directory: IdentityDirectory,
        gateway: PersistenceGateway,
        cache: ReviewerCache,
        workload_prefix: str = DEFAULT_WORKLOAD_PREFIX,
    ) -> None:
        self._directory = directory
        self._gateway = gateway
        self._cache = cache
        self._workload_prefix = workload_prefix

    @property
    def cache(self) -> ReviewerCache:
        return self._cache

    def holds_role(self, user_id: UUID, role_id: str) -> bool:
        """Fresh directory check, never served from cache."""
        return role_id in self._directory.roles_of(user_id)

    def workload(self, user_id: UUID) -> int:
        """Number of items with a pending status assigned to the user."""
        return self._cache.workload(user_id, lambda: self._count_pending(user_id))

    def _count_pending(self, user_id: UUID) -> int:
        return sum(
            1
            for item in self._gateway.find(Item, current_reviewer_id=user_id)
            if item.status.startswith(self._workload_prefix)
        )

    def candidates(self, role_id: str) -> tuple[UUID, ...]:
        return self._cache.role_members(
            role_id, lambda: tuple(self._directory.users_with_role(role_id))
        )

    def resolve(
        self,
        stage: Stage,
        requested_reviewer_id: UUID | None = None,
        exclude_actor_id: UUID | None = None,
    ) -> UUID | None:
        """Pick the reviewer for ``stage``; None when nobody is eligible."""
        if requested_reviewer_id is not None:
            pinned_ok = (
                stage.pinned_reviewer_id is None
                or stage.pinned_reviewer_id == requested_reviewer_id
            )
            if pinned_ok and self.holds_role(requested_reviewer_id, stage.required_role):
                self._log_resolved(stage, requested_reviewer_id, "requested")
                return requested_reviewer_id
            logger.info(
                "requested_reviewer_ignored",
                extra={
                    "stage_id": str(stage.id),
                    "requested_reviewer_id": str(requested_reviewer_id),
                    "required_role": stage.required_role,
                },
            )

        if stage.pinned_reviewer_id is not None:
            self._log_resolved(stage, stage.pinned_reviewer_id, "pinned")
            return stage.pinned_reviewer_id

        ranked = sorted(
            (self.workload(user_id), user_id)
            for user_id in self.candidates(stage.required_role)
            if user_id != exclude_actor_id
        )
        for load, user_id in ranked:
            if self.holds_role(user_id, stage.required_role):
                self._log_resolved(stage, user_id, "workload", workload=load)
                return user_id
            logger.info(
                "stale_candidate_skipped",
                extra={"stage_id": str(stage.id), "candidate_id": str(user_id)},
            )
            self._cache.invalidate_role(stage.required_role)

        logger.warning(
            "no_eligible_reviewer",
            extra={
                "stage_id": str(stage.id),
                "required_role": stage.required_role,
                "excluded_actor_id": str(exclude_actor_id) if exclude_actor_id else None,
            },
        )
        return None

    def _log_resolved(
        self, stage: Stage, reviewer_id: UUID, source: str, workload: int | None = None
    ) -> None:
        logger.debug(
            "reviewer_resolved",
            extra={
                "stage_id": str(stage.id),
                "reviewer_id": str(reviewer_id),
                "source": source,
                "workload": workload,
            },
        )
