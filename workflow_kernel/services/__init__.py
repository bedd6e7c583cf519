"""Services for the workflow kernel (write side)."""

from workflow_kernel.services.definition_service import WorkflowDefinitionService
from workflow_kernel.services.history_ledger import HistoryLedger
from workflow_kernel.services.permissions import AdminOverride
from workflow_kernel.services.reviewer_cache import ReviewerCache
from workflow_kernel.services.reviewer_resolver import ReviewerResolver
from workflow_kernel.services.transition_engine import TransitionEngine

__all__ = [
    "AdminOverride",
    "HistoryLedger",
    "ReviewerCache",
    "ReviewerResolver",
    "TransitionEngine",
    "WorkflowDefinitionService",
]
