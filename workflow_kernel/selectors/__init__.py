"""Selectors for the workflow kernel (read side)."""

from workflow_kernel.selectors.visibility_selector import (
    AvailableAction,
    HistoryEntry,
    ItemDetail,
    PendingReview,
    ReviewHistory,
    StageView,
    VisibilityProjection,
)

__all__ = [
    "AvailableAction",
    "HistoryEntry",
    "ItemDetail",
    "PendingReview",
    "ReviewHistory",
    "StageView",
    "VisibilityProjection",
]
