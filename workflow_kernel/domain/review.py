"""
Review item and ledger types (``workflow_kernel.domain.review``).

Responsibility
--------------
Frozen value objects for work items and their review records, plus the
pure projections over a ledger: the display timeline and the review
summary.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* ``ReviewRecord`` is immutable; its ``sequence`` is its 1-based position in
  the item's ledger and breaks ties between equal ``reviewed_at`` values.
* The timeline always starts with exactly one synthetic ``created`` event,
  followed by ledger records in ascending (``reviewed_at``, ``sequence``).
* ``summarize`` is total: an item with no reviews yields zero counts and
  the not-started sentinel, never an error.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Iterable
from uuid import UUID

from workflow_kernel.domain.vocabulary import (
    ReviewAction,
    action_display_name,
    status_display_name,
)

NOT_STARTED_DISPLAY = "Review has not started yet"
REVIEW_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass(frozen=True)
class Item:
    """A work item moving through review.

    ``version`` starts at 1 and increases by one on every persisted change.
    """

    id: UUID
    title: str
    template_id: UUID
    creator_id: UUID
    created_at: datetime
    status: str
    current_stage_id: UUID | None = None
    current_reviewer_id: UUID | None = None
    version: int = 1

    def moved(
        self,
        *,
        status: str,
        stage_id: UUID | None,
        reviewer_id: UUID | None,
    ) -> Item:
        """Copy of this item at a new position, one version later."""
        return replace(
            self,
            status=status,
            current_stage_id=stage_id,
            current_reviewer_id=reviewer_id,
            version=self.version + 1,
        )


@dataclass(frozen=True)
class ReviewRecord:
    """One immutable ledger entry: who did what to an item, and the result."""

    id: UUID
    item_id: UUID
    sequence: int
    actor_id: UUID
    action: str
    previous_status: str
    new_status: str
    reviewed_at: datetime
    stage_id: UUID | None = None
    next_reviewer_id: UUID | None = None
    comment: str | None = None


@dataclass(frozen=True)
class TimelineEvent:
    """Display-ready event in an item's history."""

    sequence: int
    action: str
    action_display: str
    actor_id: UUID
    at: datetime
    status: str
    status_display: str
    previous_status: str | None = None
    stage_id: UUID | None = None
    next_reviewer_id: UUID | None = None
    comment: str | None = None


@dataclass(frozen=True)
class ReviewSummary:
    """Aggregate view of an item's review activity."""

    current_status: str
    current_status_display: str
    total_reviews: int
    approval_count: int
    return_count: int
    reject_count: int
    first_review_at: datetime | None
    last_review_at: datetime | None
    total_duration: timedelta

    @property
    def has_started(self) -> bool:
        return self.total_reviews > 0

    @property
    def first_review_display(self) -> str:
        if self.first_review_at is None:
            return NOT_STARTED_DISPLAY
        return self.first_review_at.strftime(REVIEW_TIME_FORMAT)

    @property
    def last_review_display(self) -> str:
        if self.last_review_at is None:
            return NOT_STARTED_DISPLAY
        return self.last_review_at.strftime(REVIEW_TIME_FORMAT)

    @property
    def duration_display(self) -> str:
        return format_duration(self.total_duration)


def format_duration(duration: timedelta) -> str:
    """Render a duration as ``"{d} days {h} hours {m} minutes"``."""
    hours, remainder = divmod(duration.seconds, 3600)
    return f"{duration.days} days {hours} hours {remainder // 60} minutes"


def ledger_order(records: Iterable[ReviewRecord]) -> list[ReviewRecord]:
    """Ascending ledger order: reviewed_at, then sequence."""
    return sorted(records, key=lambda r: (r.reviewed_at, r.sequence))


def build_timeline(item: Item, records: Iterable[ReviewRecord]) -> tuple[TimelineEvent, ...]:
    """Creation event followed by every review record in ledger order."""
    created = ReviewAction.CREATED.value
    # Status the item entered on creation: the first record's previous status,
    # or the current status when nothing has happened yet.
    ordered = ledger_order(records)
    entry_status = ordered[0].previous_status if ordered else item.status
    events = [
        TimelineEvent(
            sequence=0,
            action=created,
            action_display=action_display_name(created),
            actor_id=item.creator_id,
            at=item.created_at,
            status=entry_status,
            status_display=status_display_name(entry_status),
        )
    ]
    for record in ordered:
        events.append(
            TimelineEvent(
                sequence=record.sequence,
                action=record.action,
                action_display=action_display_name(record.action),
                actor_id=record.actor_id,
                at=record.reviewed_at,
                status=record.new_status,
                status_display=status_display_name(record.new_status),
                previous_status=record.previous_status,
                stage_id=record.stage_id,
                next_reviewer_id=record.next_reviewer_id,
                comment=record.comment,
            )
        )
    return tuple(events)


def summarize(timeline: Iterable[TimelineEvent], current_status: str | None) -> ReviewSummary:
    """Counts and bounds over the non-creation events of a timeline."""
    reviews = [e for e in timeline if e.action != ReviewAction.CREATED.value]
    if not reviews:
        return ReviewSummary(
            current_status=current_status or "",
            current_status_display=status_display_name(current_status),
            total_reviews=0,
            approval_count=0,
            return_count=0,
            reject_count=0,
            first_review_at=None,
            last_review_at=None,
            total_duration=timedelta(0),
        )

    first = min(e.at for e in reviews)
    last = max(e.at for e in reviews)
    return ReviewSummary(
        current_status=current_status or "",
        current_status_display=status_display_name(current_status),
        total_reviews=len(reviews),
        approval_count=sum(1 for e in reviews if e.action == ReviewAction.APPROVE.value),
        return_count=sum(1 for e in reviews if e.action == ReviewAction.RETURN.value),
        reject_count=sum(1 for e in reviews if e.action == ReviewAction.REJECT.value),
        first_review_at=first,
        last_review_at=last,
        total_duration=last - first,
    )
