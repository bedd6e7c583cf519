"""
Typed Exception Hierarchy for the Workflow Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Review workflows are driven by callers that need to tell "you are not the
reviewer" apart from "this action does not exist on this stage" without
parsing message strings.  Every error therefore has:

  1. A TYPED exception class (catch by type, not message)
  2. A CODE attribute (machine-readable, API-safe)
  3. A KIND attribute (the coarse outcome category returned to callers)
  4. Structured DATA as attributes (ids, action names, statuses)

Example - WRONG way to handle errors:
    try:
        engine.apply(item_id, actor_id, "approve")
    except Exception as e:
        if "not the current reviewer" in str(e):  # FRAGILE
            ...

Example - RIGHT way (what this module enables):
    try:
        engine.apply(item_id, actor_id, "approve")
    except NotCurrentReviewerError as e:
        respond(code=e.code, item=e.item_id)

Public kernel operations catch ``WorkflowKernelError`` at their boundary and
return typed results (see ``workflow_kernel.domain.outcome``); the exceptions
themselves travel only inside the kernel.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    WorkflowKernelError (base)
    |
    +-- NotFoundError                       kind NOT_FOUND
    |   +-- ItemNotFoundError
    |   +-- TemplateNotFoundError
    |   +-- StageNotFoundError
    |   +-- UserNotFoundError
    |
    +-- ForbiddenError                      kind FORBIDDEN
    |   +-- NotCurrentReviewerError
    |   +-- MissingRoleError
    |   +-- PinnedReviewerMismatchError
    |   +-- NotCreatorError
    |   +-- AccessDeniedError
    |
    +-- InvalidActionError                  kind INVALID_ACTION
    |
    +-- InvalidStateError                   kind INVALID_STATE
    |   +-- ItemNotReviewableError
    |   +-- ResubmitNotAllowedError
    |   +-- TemplateInactiveError
    |
    +-- TemplateValidationError             kind VALIDATION_ERROR
    |
    +-- ConcurrencyError                    kind CONFLICT
    |   +-- OptimisticLockError
    |
    +-- ImmutabilityError                   kind CONFLICT
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Not found       | ITEM_NOT_FOUND              | Item id doesn't exist
                | TEMPLATE_NOT_FOUND          | Template id doesn't exist
                | STAGE_NOT_FOUND             | Stage id / order doesn't exist
                | USER_NOT_FOUND              | User id unknown to the directory
----------------|-----------------------------|-----------------------------------------
Forbidden       | NOT_CURRENT_REVIEWER        | Actor is not the assigned reviewer
                | MISSING_ROLE                | Actor lacks the stage's required role
                | PINNED_REVIEWER_MISMATCH    | Stage is pinned to another user
                | NOT_CREATOR                 | Only the creator may resubmit
                | ACCESS_DENIED               | Not allowed to view the item
----------------|-----------------------------|-----------------------------------------
Action          | INVALID_ACTION              | No transition for (stage, action)
----------------|-----------------------------|-----------------------------------------
State           | ITEM_NOT_REVIEWABLE         | Item has no current stage
                | RESUBMIT_NOT_ALLOWED        | Resubmit outside a returned status
                | TEMPLATE_INACTIVE           | Template deactivated
----------------|-----------------------------|-----------------------------------------
Validation      | TEMPLATE_VALIDATION_FAILED  | Definition violates structural rules
----------------|-----------------------------|-----------------------------------------
Concurrency     | OPTIMISTIC_LOCK_CONFLICT    | Item version changed underneath caller
Immutability    | IMMUTABILITY_VIOLATION      | Modifying an append-only ledger record

===============================================================================
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Coarse outcome category carried by every kernel error."""

    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    INVALID_ACTION = "invalid_action"
    INVALID_STATE = "invalid_state"
    VALIDATION_ERROR = "validation_error"
    CONFLICT = "conflict"
    INTERNAL = "internal"


class WorkflowKernelError(Exception):
    """
    Base exception for all workflow kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification, and a `kind` for outcome mapping.
    """

    code: str = "WORKFLOW_KERNEL_ERROR"
    kind: ErrorKind = ErrorKind.INTERNAL


# Not-found exceptions


class NotFoundError(WorkflowKernelError):
    """Base exception for missing entities."""

    code: str = "NOT_FOUND"
    kind: ErrorKind = ErrorKind.NOT_FOUND


class ItemNotFoundError(NotFoundError):
    """Work item does not exist."""

    code: str = "ITEM_NOT_FOUND"

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Item not found: {item_id}")


class TemplateNotFoundError(NotFoundError):
    """Workflow template does not exist."""

    code: str = "TEMPLATE_NOT_FOUND"

    def __init__(self, template_id: str):
        self.template_id = template_id
        super().__init__(f"Workflow template not found: {template_id}")


class StageNotFoundError(NotFoundError):
    """Stage does not exist (by id or by order within a template)."""

    code: str = "STAGE_NOT_FOUND"

    def __init__(self, template_id: str, stage_ref: str):
        self.template_id = template_id
        self.stage_ref = stage_ref
        super().__init__(
            f"Stage {stage_ref} not found in template {template_id}"
        )


class UserNotFoundError(NotFoundError):
    """User is unknown to the identity directory."""

    code: str = "USER_NOT_FOUND"

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"User not found: {user_id}")


# Forbidden exceptions


class ForbiddenError(WorkflowKernelError):
    """Base exception for eligibility failures."""

    code: str = "FORBIDDEN"
    kind: ErrorKind = ErrorKind.FORBIDDEN


class NotCurrentReviewerError(ForbiddenError):
    """Actor is not the item's current reviewer."""

    code: str = "NOT_CURRENT_REVIEWER"

    def __init__(self, item_id: str, actor_id: str, current_reviewer_id: str | None):
        self.item_id = item_id
        self.actor_id = actor_id
        self.current_reviewer_id = current_reviewer_id
        super().__init__(
            f"Actor {actor_id} is not the current reviewer of item {item_id}"
        )


class MissingRoleError(ForbiddenError):
    """Actor does not hold the role the stage requires."""

    code: str = "MISSING_ROLE"

    def __init__(self, actor_id: str, role_id: str, stage_id: str):
        self.actor_id = actor_id
        self.role_id = role_id
        self.stage_id = stage_id
        super().__init__(
            f"Actor {actor_id} lacks role '{role_id}' required by stage {stage_id}"
        )


class PinnedReviewerMismatchError(ForbiddenError):
    """Stage is pinned to a different reviewer."""

    code: str = "PINNED_REVIEWER_MISMATCH"

    def __init__(self, actor_id: str, pinned_reviewer_id: str, stage_id: str):
        self.actor_id = actor_id
        self.pinned_reviewer_id = pinned_reviewer_id
        self.stage_id = stage_id
        super().__init__(
            f"Stage {stage_id} is pinned to {pinned_reviewer_id}, not {actor_id}"
        )


class NotCreatorError(ForbiddenError):
    """Only the item's creator may perform this operation."""

    code: str = "NOT_CREATOR"

    def __init__(self, item_id: str, actor_id: str):
        self.item_id = item_id
        self.actor_id = actor_id
        super().__init__(f"Actor {actor_id} is not the creator of item {item_id}")


class AccessDeniedError(ForbiddenError):
    """User may not view the requested item."""

    code: str = "ACCESS_DENIED"

    def __init__(self, item_id: str, user_id: str):
        self.item_id = item_id
        self.user_id = user_id
        super().__init__(f"User {user_id} may not view item {item_id}")


# Action exceptions


class InvalidActionError(WorkflowKernelError):
    """No transition is defined for the action on the current stage."""

    code: str = "INVALID_ACTION"
    kind: ErrorKind = ErrorKind.INVALID_ACTION

    def __init__(self, action: str, stage_id: str | None):
        self.action = action
        self.stage_id = stage_id
        super().__init__(f"Action '{action}' is not available on stage {stage_id}")


# State exceptions


class InvalidStateError(WorkflowKernelError):
    """Base exception for operations not allowed in the current state."""

    code: str = "INVALID_STATE"
    kind: ErrorKind = ErrorKind.INVALID_STATE


class ItemNotReviewableError(InvalidStateError):
    """Item has no current stage or is waiting for a resubmit."""

    code: str = "ITEM_NOT_REVIEWABLE"

    def __init__(self, item_id: str, status: str):
        self.item_id = item_id
        self.status = status
        super().__init__(f"Item {item_id} is not reviewable in status '{status}'")


class ResubmitNotAllowedError(InvalidStateError):
    """Resubmit requested while the item is not in a returned status."""

    code: str = "RESUBMIT_NOT_ALLOWED"

    def __init__(self, item_id: str, status: str):
        self.item_id = item_id
        self.status = status
        super().__init__(
            f"Item {item_id} cannot be resubmitted from status '{status}'"
        )


class TemplateInactiveError(InvalidStateError):
    """Template has been deactivated or superseded."""

    code: str = "TEMPLATE_INACTIVE"

    def __init__(self, template_id: str):
        self.template_id = template_id
        super().__init__(f"Workflow template {template_id} is not active")


# Validation exceptions


class TemplateValidationError(WorkflowKernelError):
    """Workflow definition violates one or more structural rules."""

    code: str = "TEMPLATE_VALIDATION_FAILED"
    kind: ErrorKind = ErrorKind.VALIDATION_ERROR

    def __init__(self, template_name: str, violations: list[str]):
        self.template_name = template_name
        self.violations = list(violations)
        super().__init__(
            f"Template '{template_name}' is invalid: " + "; ".join(self.violations)
        )


# Concurrency-related exceptions


class ConcurrencyError(WorkflowKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"
    kind: ErrorKind = ErrorKind.CONFLICT


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        expected_version: int | None = None,
        actual_version: int | None = None,
    ):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )


# Immutability-related exceptions


class ImmutabilityError(WorkflowKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"
    kind: ErrorKind = ErrorKind.CONFLICT


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    Review records and published workflow definitions are immutable after
    creation.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
