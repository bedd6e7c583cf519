"""
Typed operation results (``workflow_kernel.domain.outcome``).

Responsibility
--------------
The result objects every public kernel operation returns.  Errors raised
inside the kernel are converted to an ``Outcome`` at the service boundary,
so callers branch on ``status`` rather than catching exceptions.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar
from uuid import UUID

from workflow_kernel.domain.review import Item, ReviewRecord
from workflow_kernel.exceptions import ErrorKind, WorkflowKernelError

T = TypeVar("T")


class OutcomeStatus(str, Enum):
    """Status of a kernel operation."""

    SUCCESS = "success"
    NOT_FOUND = ErrorKind.NOT_FOUND.value
    FORBIDDEN = ErrorKind.FORBIDDEN.value
    INVALID_ACTION = ErrorKind.INVALID_ACTION.value
    INVALID_STATE = ErrorKind.INVALID_STATE.value
    VALIDATION_ERROR = ErrorKind.VALIDATION_ERROR.value
    CONFLICT = ErrorKind.CONFLICT.value
    INTERNAL = ErrorKind.INTERNAL.value

    @classmethod
    def from_kind(cls, kind: ErrorKind) -> OutcomeStatus:
        return cls(kind.value)


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Result of a query or definition operation."""

    status: OutcomeStatus
    value: T | None = None
    error_code: str | None = None
    message: str | None = None
    details: tuple[str, ...] = ()

    @property
    def is_success(self) -> bool:
        return self.status == OutcomeStatus.SUCCESS

    @classmethod
    def ok(cls, value: T) -> Outcome[T]:
        return cls(status=OutcomeStatus.SUCCESS, value=value)

    @classmethod
    def failed(cls, error: WorkflowKernelError) -> Outcome[T]:
        return cls(
            status=OutcomeStatus.from_kind(error.kind),
            error_code=error.code,
            message=str(error),
            details=tuple(getattr(error, "violations", ())),
        )


@dataclass(frozen=True)
class TransitionOutcome:
    """Result of applying a review action to an item."""

    status: OutcomeStatus
    item_id: UUID
    action: str
    record: ReviewRecord | None = None
    item: Item | None = None
    is_completed: bool = False
    error_code: str | None = None
    message: str | None = None

    @property
    def is_success(self) -> bool:
        return self.status == OutcomeStatus.SUCCESS

    @classmethod
    def failed(
        cls, item_id: UUID, action: str, error: WorkflowKernelError
    ) -> TransitionOutcome:
        return cls(
            status=OutcomeStatus.from_kind(error.kind),
            item_id=item_id,
            action=action,
            error_code=error.code,
            message=str(error),
        )
