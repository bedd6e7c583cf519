"""
Pure domain layer.

This module contains pure value objects and domain logic with NO
dependencies on:
- ORM (SQLAlchemy)
- Database
- Time/clock (other than the injectable Clock itself)
- I/O

All domain objects are immutable and deterministic.
"""

from workflow_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from workflow_kernel.domain.gateways import (
    AuthorizationGateway,
    IdentityDirectory,
    PersistenceGateway,
)
from workflow_kernel.domain.outcome import Outcome, OutcomeStatus, TransitionOutcome
from workflow_kernel.domain.review import (
    Item,
    ReviewRecord,
    ReviewSummary,
    TimelineEvent,
    build_timeline,
    format_duration,
    summarize,
)
from workflow_kernel.domain.vocabulary import (
    ItemStatus,
    ReviewAction,
    action_display_name,
    is_pending,
    is_returned,
    is_terminal,
    normalize_action,
    pending_status_for_order,
    status_display_name,
)
from workflow_kernel.domain.workflow import (
    Stage,
    StageSpec,
    TemplateDraft,
    Transition,
    TransitionSpec,
    WorkflowDefinition,
    WorkflowTemplate,
    validate_template,
)

__all__ = [
    "AuthorizationGateway",
    "Clock",
    "DeterministicClock",
    "IdentityDirectory",
    "Item",
    "ItemStatus",
    "Outcome",
    "OutcomeStatus",
    "PersistenceGateway",
    "ReviewAction",
    "ReviewRecord",
    "ReviewSummary",
    "Stage",
    "StageSpec",
    "SystemClock",
    "TemplateDraft",
    "TimelineEvent",
    "Transition",
    "TransitionOutcome",
    "TransitionSpec",
    "WorkflowDefinition",
    "WorkflowTemplate",
    "action_display_name",
    "build_timeline",
    "format_duration",
    "is_pending",
    "is_returned",
    "is_terminal",
    "normalize_action",
    "pending_status_for_order",
    "status_display_name",
    "summarize",
    "validate_template",
]
