"""
Tests for review history value objects (``workflow_kernel.domain.review``).

Covers ledger ordering, timeline construction, summaries and duration
formatting.  Pure functions only; no storage.
"""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from workflow_kernel.domain.review import (
    Item,
    ReviewRecord,
    build_timeline,
    format_duration,
    ledger_order,
    summarize,
)

T0 = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)
CREATOR = uuid4()
REVIEWER = uuid4()


def _item(status="pending_review_level1") -> Item:
    return Item(
        id=uuid4(),
        title="Policy update",
        template_id=uuid4(),
        creator_id=CREATOR,
        created_at=T0,
        status=status,
    )


def _record(item, sequence, action, previous, new, at, actor=REVIEWER) -> ReviewRecord:
    return ReviewRecord(
        id=uuid4(),
        item_id=item.id,
        sequence=sequence,
        actor_id=actor,
        action=action,
        previous_status=previous,
        new_status=new,
        reviewed_at=at,
    )


class TestItem:

    def test_moved_bumps_version(self):
        item = _item()
        moved = item.moved(status="approved", stage_id=None, reviewer_id=None)

        assert moved.version == item.version + 1
        assert moved.status == "approved"
        assert item.status == "pending_review_level1"


class TestLedgerOrder:

    def test_sequence_breaks_timestamp_ties(self):
        item = _item()
        later = _record(item, 2, "resubmit", "returned_to_creator", "pending_review_level1", T0)
        earlier = _record(item, 1, "return", "pending_review_level1", "returned_to_creator", T0)

        assert ledger_order([later, earlier]) == [earlier, later]

    def test_time_before_sequence(self):
        item = _item()
        a = _record(item, 2, "approve", "p1", "p2", T0)
        b = _record(item, 1, "approve", "p0", "p1", T0 + timedelta(seconds=1))

        assert ledger_order([b, a]) == [a, b]


class TestTimeline:

    def test_created_event_only(self):
        item = _item()
        timeline = build_timeline(item, [])

        assert len(timeline) == 1
        created = timeline[0]
        assert created.action == "created"
        assert created.action_display == "Created"
        assert created.actor_id == CREATOR
        assert created.at == T0
        assert created.status == "pending_review_level1"

    def test_created_status_taken_from_first_record(self):
        item = _item(status="approved")
        records = [
            _record(item, 1, "approve", "pending_review_level1", "approved", T0 + timedelta(hours=1)),
        ]
        timeline = build_timeline(item, records)

        assert timeline[0].status == "pending_review_level1"
        assert timeline[1].status == "approved"
        assert timeline[1].previous_status == "pending_review_level1"


class TestSummary:

    def test_counts_and_bounds(self):
        item = _item(status="rejected")
        records = [
            _record(item, 1, "return", "pending_review_level1", "returned_to_creator", T0 + timedelta(minutes=5)),
            _record(item, 2, "resubmit", "returned_to_creator", "pending_review_level1",
                    T0 + timedelta(hours=2), actor=CREATOR),
            _record(item, 3, "reject", "pending_review_level1", "rejected", T0 + timedelta(hours=3, minutes=5)),
        ]
        summary = summarize(build_timeline(item, records), item.status)

        assert summary.total_reviews == 3
        assert summary.return_count == 1
        assert summary.reject_count == 1
        assert summary.approval_count == 0
        assert summary.first_review_display == "2024-03-01 09:05:00"
        assert summary.last_review_display == "2024-03-01 12:05:00"
        assert summary.duration_display == "0 days 3 hours 0 minutes"
        assert summary.current_status_display == "Rejected"

    def test_unknown_current_status(self):
        summary = summarize([], None)
        assert summary.current_status_display == "Unknown"
        assert summary.last_review_display == "Review has not started yet"


@pytest.mark.parametrize(
    "delta,expected",
    [
        (timedelta(0), "0 days 0 hours 0 minutes"),
        (timedelta(minutes=59, seconds=59), "0 days 0 hours 59 minutes"),
        (timedelta(days=2, hours=5, minutes=7), "2 days 5 hours 7 minutes"),
    ],
)
def test_format_duration(delta, expected):
    assert format_duration(delta) == expected
