"""
Review vocabulary (``workflow_kernel.domain.vocabulary``).

Responsibility
--------------
Canonical action and status names, their human-readable display names,
and the status predicates every other component relies on.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  Every table is
built once at import and exposed read-only.

Invariants enforced
-------------------
* Action names are matched case-insensitively (``normalize_action``).
* A status is pending iff it starts with ``pending_review``; returned iff it
  is one of the two returned statuses.
* Display lookups never raise: unknown actions and statuses display as
  themselves, an empty status displays as ``Unknown``.
"""

from __future__ import annotations

from enum import Enum
from types import MappingProxyType
from typing import Mapping


class ReviewAction(str, Enum):
    """Built-in review actions."""

    APPROVE = "approve"
    RETURN = "return"
    REJECT = "reject"
    RESUBMIT = "resubmit"
    CREATED = "created"


class ItemStatus(str, Enum):
    """Fixed item statuses. Pending statuses are generated per stage order."""

    RETURNED_TO_CREATOR = "returned_to_creator"
    RETURNED_TO_REVIEWER = "returned_to_reviewer"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"


PENDING_PREFIX = "pending_review"
PENDING_LEVEL_PREFIX = "pending_review_level"
PENDING_STAGE_PREFIX = "pending_review_stage"

RETURNED_STATUSES: frozenset[str] = frozenset({
    ItemStatus.RETURNED_TO_CREATOR.value,
    ItemStatus.RETURNED_TO_REVIEWER.value,
})

DEFAULT_TERMINAL_STATUSES: frozenset[str] = frozenset({
    ItemStatus.APPROVED.value,
    ItemStatus.REJECTED.value,
    ItemStatus.COMPLETED.value,
})

UNKNOWN_STATUS_DISPLAY = "Unknown"


def pending_status_for_order(order: int) -> str:
    """Status of an item waiting at the stage with the given order."""
    return f"{PENDING_LEVEL_PREFIX}{order}"


def _build_action_display_names() -> Mapping[str, str]:
    return MappingProxyType({
        ReviewAction.APPROVE.value: "Approve",
        ReviewAction.RETURN.value: "Return",
        ReviewAction.REJECT.value: "Reject",
        ReviewAction.RESUBMIT.value: "Resubmit",
        ReviewAction.CREATED.value: "Created",
    })


def _build_status_display_names() -> Mapping[str, str]:
    names: dict[str, str] = {
        ItemStatus.RETURNED_TO_CREATOR.value: "Returned to Creator",
        ItemStatus.RETURNED_TO_REVIEWER.value: "Returned to Reviewer",
        ItemStatus.APPROVED.value: "Approved",
        ItemStatus.REJECTED.value: "Rejected",
        ItemStatus.COMPLETED.value: "Completed",
    }
    for order in (1, 2, 3):
        names[f"{PENDING_LEVEL_PREFIX}{order}"] = f"Pending Level {order} Review"
        names[f"{PENDING_STAGE_PREFIX}{order}"] = f"Pending Stage {order} Review"
    return MappingProxyType(names)


ACTION_DISPLAY_NAMES: Mapping[str, str] = _build_action_display_names()
STATUS_DISPLAY_NAMES: Mapping[str, str] = _build_status_display_names()


def normalize_action(action: str) -> str:
    """Canonical (stripped, lower-case) form of an action name."""
    return (action or "").strip().lower()


def action_display_name(action: str) -> str:
    return ACTION_DISPLAY_NAMES.get(action, action)


def status_display_name(status: str | None) -> str:
    if not status:
        return UNKNOWN_STATUS_DISPLAY
    return STATUS_DISPLAY_NAMES.get(status, status)


def is_pending(status: str | None) -> bool:
    return bool(status) and status.startswith(PENDING_PREFIX)


def is_returned(status: str | None) -> bool:
    return status in RETURNED_STATUSES


def is_terminal(status: str | None, terminal_statuses: frozenset[str] | None = None) -> bool:
    """True when no further review is expected for the status."""
    statuses = DEFAULT_TERMINAL_STATUSES if terminal_statuses is None else terminal_statuses
    return status in statuses
