"""
Workflow definition types (``workflow_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for review templates, their ordered stages and the
named-action transitions between stages; the structural validator applied
before anything is persisted; and ``WorkflowDefinition``, the compiled,
immutable index the transition engine queries.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``services/``, ``selectors/``, or outer layers.

Invariants enforced
-------------------
* Stage orders of a template are exactly ``{1..N}``; order 1 is the entry.
* ``(stage, action)`` is unique across a template's transitions.
* Transitions reference only stages of their own template.
* A compiled definition never changes; republishing produces a new one.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable
from uuid import UUID

from workflow_kernel.domain.vocabulary import ItemStatus, ReviewAction, normalize_action

# Actions the engine handles itself; templates may not redefine them.
RESERVED_ACTIONS: frozenset[str] = frozenset({
    ReviewAction.RESUBMIT.value,
    ReviewAction.CREATED.value,
})


# =========================================================================
# Persisted definition types
# =========================================================================


@dataclass(frozen=True)
class WorkflowTemplate:
    """A published review template.

    Contract: frozen; never mutated in place once published.
    ``version`` counts publications of the same ``name``; ``definition_hash``
    fingerprints the stages and transitions it was published with.
    """

    id: UUID
    name: str
    description: str
    active: bool
    created_by: UUID
    created_at: datetime
    version: int = 1
    definition_hash: str | None = None


@dataclass(frozen=True)
class Stage:
    """One ordered review step of a template."""

    id: UUID
    template_id: UUID
    name: str
    order: int
    required_role: str
    pinned_reviewer_id: UUID | None = None


@dataclass(frozen=True)
class Transition:
    """Named action out of a stage.

    ``next_stage_id`` of ``None`` marks a terminal transition.
    """

    id: UUID
    stage_id: UUID
    action: str
    result_status: str
    next_stage_id: UUID | None = None

    @property
    def is_terminal(self) -> bool:
        return self.next_stage_id is None


# =========================================================================
# Drafts (input to validation / publication)
# =========================================================================


@dataclass(frozen=True)
class StageSpec:
    name: str
    order: int
    required_role: str
    pinned_reviewer_id: UUID | None = None


@dataclass(frozen=True)
class TransitionSpec:
    """Transition declared by stage order, resolved to ids at publication."""

    stage_order: int
    action: str
    result_status: str
    next_stage_order: int | None = None


@dataclass(frozen=True)
class TemplateDraft:
    """Unpublished template: what an administrator or config file declares."""

    name: str
    stages: tuple[StageSpec, ...]
    transitions: tuple[TransitionSpec, ...] = ()
    description: str = ""

    def canonical_payload(self) -> dict[str, Any]:
        """Order-independent representation used for fingerprinting."""
        return {
            "name": self.name.strip(),
            "stages": sorted(
                (
                    {
                        "name": s.name,
                        "order": s.order,
                        "required_role": s.required_role,
                        "pinned_reviewer_id": (
                            str(s.pinned_reviewer_id) if s.pinned_reviewer_id else None
                        ),
                    }
                    for s in self.stages
                ),
                key=lambda d: d["order"],
            ),
            "transitions": sorted(
                (
                    {
                        "stage_order": t.stage_order,
                        "action": normalize_action(t.action),
                        "result_status": t.result_status,
                        "next_stage_order": t.next_stage_order,
                    }
                    for t in self.transitions
                ),
                key=lambda d: (d["stage_order"], d["action"]),
            ),
        }


# =========================================================================
# Validation
# =========================================================================


def validate_template(
    draft: TemplateDraft,
    role_exists: Callable[[str], bool] | None = None,
    user_exists: Callable[[UUID], bool] | None = None,
) -> list[str]:
    """Return every structural violation of ``draft`` (empty list = valid).

    Args:
        draft: Template to check.
        role_exists: Directory lookup for required roles; skipped when None.
        user_exists: Directory lookup for pinned reviewers; skipped when None.
    """
    violations: list[str] = []

    if not draft.name or not draft.name.strip():
        violations.append("template name must not be blank")

    if not draft.stages:
        violations.append("template must define at least one stage")
        return violations

    orders = sorted(s.order for s in draft.stages)
    expected = list(range(1, len(draft.stages) + 1))
    if orders != expected:
        violations.append(
            f"stage orders must be contiguous 1..{len(draft.stages)}, got {orders}"
        )

    for spec in draft.stages:
        if not spec.name or not spec.name.strip():
            violations.append(f"stage {spec.order} has a blank name")
        if not spec.required_role or not spec.required_role.strip():
            violations.append(f"stage {spec.order} has no required role")
        elif role_exists is not None and not role_exists(spec.required_role):
            violations.append(
                f"stage {spec.order} requires unknown role '{spec.required_role}'"
            )
        if (
            spec.pinned_reviewer_id is not None
            and user_exists is not None
            and not user_exists(spec.pinned_reviewer_id)
        ):
            violations.append(
                f"stage {spec.order} is pinned to unknown user {spec.pinned_reviewer_id}"
            )

    known_orders = set(orders)
    seen: set[tuple[int, str]] = set()
    for t in draft.transitions:
        action = normalize_action(t.action)
        if not action:
            violations.append(f"stage {t.stage_order} declares a blank action")
            continue
        if action in RESERVED_ACTIONS:
            violations.append(f"action '{action}' is reserved")
        if t.stage_order not in known_orders:
            violations.append(
                f"transition '{action}' references unknown stage {t.stage_order}"
            )
        if t.next_stage_order is not None and t.next_stage_order not in known_orders:
            violations.append(
                f"transition '{action}' on stage {t.stage_order} targets "
                f"unknown stage {t.next_stage_order}"
            )
        if not t.result_status or not t.result_status.strip():
            violations.append(
                f"transition '{action}' on stage {t.stage_order} has no result status"
            )
        key = (t.stage_order, action)
        if key in seen:
            violations.append(
                f"action '{action}' declared twice on stage {t.stage_order}"
            )
        seen.add(key)

    return violations


# =========================================================================
# Compiled definition
# =========================================================================


@dataclass(frozen=True)
class WorkflowDefinition:
    """Compiled, immutable view of one published template.

    Contract:
        Built once per template id from persisted stages and transitions.
        Lookups are dictionary reads; nothing here touches storage.

    Guarantees:
        - ``first_stage()`` is the stage with order 1.
        - ``outgoing()`` is ordered by action name.
    """

    template: WorkflowTemplate
    stages: tuple[Stage, ...]
    transitions: tuple[Transition, ...]
    _by_id: dict[UUID, Stage] = field(init=False, repr=False, compare=False)
    _by_order: dict[int, Stage] = field(init=False, repr=False, compare=False)
    _by_action: dict[tuple[UUID, str], Transition] = field(
        init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        ordered = tuple(sorted(self.stages, key=lambda s: s.order))
        object.__setattr__(self, "stages", ordered)
        object.__setattr__(self, "_by_id", {s.id: s for s in ordered})
        object.__setattr__(self, "_by_order", {s.order: s for s in ordered})
        object.__setattr__(
            self,
            "_by_action",
            {(t.stage_id, normalize_action(t.action)): t for t in self.transitions},
        )

    @property
    def template_id(self) -> UUID:
        return self.template.id

    def stage(self, stage_id: UUID | None) -> Stage | None:
        if stage_id is None:
            return None
        return self._by_id.get(stage_id)

    def first_stage(self) -> Stage:
        return self._by_order[1]

    def stage_by_order(self, order: int) -> Stage | None:
        return self._by_order.get(order)

    def resolve_transition(self, stage_id: UUID, action: str) -> Transition | None:
        return self._by_action.get((stage_id, normalize_action(action)))

    def outgoing(self, stage_id: UUID) -> tuple[Transition, ...]:
        return tuple(
            sorted(
                (t for t in self.transitions if t.stage_id == stage_id),
                key=lambda t: t.action,
            )
        )

    def reentry_stage(
        self,
        status: str,
        current_stage_id: UUID | None,
        returned_from_stage_id: UUID | None = None,
    ) -> Stage | None:
        """Stage a returned item re-enters on resubmit.

        Returned to creator: the entry stage.  Returned to reviewer: the stage
        the item was returned from, else the stage it currently sits at.
        """
        if status == ItemStatus.RETURNED_TO_CREATOR.value:
            return self._by_order.get(1)
        return self.stage(returned_from_stage_id or current_stage_id)
