"""
Tests for the HistoryLedger (``workflow_kernel.services.history_ledger``).

Invariants tested:
- Records are append-only; appending an existing id is refused.
- Ledger order is (reviewed_at, sequence).
- Prior-approval search skips the current stage and the acting reviewer.
- Timeline and summary are derived from the records on every call.
"""

from dataclasses import replace
from datetime import timedelta
from uuid import uuid4

import pytest

from tests.conftest import ADMIN_ID, CREATOR_ID, LEVEL2, LEVEL3, MANAGER_ID, SENIOR_A_ID
from workflow_kernel.exceptions import ImmutabilityViolationError


class TestAppend:

    def test_sequence_numbers_are_consecutive(self, engine, create_item, ledger):
        item = create_item(LEVEL2)
        engine.apply(item.id, SENIOR_A_ID, "return")
        engine.apply(item.id, CREATOR_ID, "resubmit")
        engine.apply(item.id, SENIOR_A_ID, "approve")

        assert [r.sequence for r in ledger.records_for(item.id)] == [1, 2, 3]
        assert ledger.next_sequence(item.id) == 4

    def test_duplicate_record_is_refused(self, engine, create_item, ledger):
        item = create_item(LEVEL2)
        record = engine.apply(item.id, SENIOR_A_ID, "approve").record

        with pytest.raises(ImmutabilityViolationError):
            ledger.append(replace(record, comment="rewritten"))
        assert ledger.records_for(item.id)[0].comment is None

    def test_records_of_other_items_are_separate(self, engine, create_item, ledger):
        first = create_item(LEVEL2)
        second = create_item(LEVEL2)
        engine.apply(first.id, SENIOR_A_ID, "approve")

        assert ledger.records_for(second.id) == ()
        assert ledger.next_sequence(second.id) == 1


class TestOrdering:

    def test_records_follow_review_time(self, engine, create_item, ledger, deterministic_clock):
        item = create_item(LEVEL2)
        deterministic_clock.advance(60)
        engine.apply(item.id, SENIOR_A_ID, "approve")
        deterministic_clock.advance(3600)
        engine.apply(item.id, MANAGER_ID, "approve")

        records = ledger.records_for(item.id)
        assert [r.actor_id for r in records] == [SENIOR_A_ID, MANAGER_ID]
        assert records[1].reviewed_at - records[0].reviewed_at == timedelta(hours=1)

    def test_latest_by_action(self, engine, create_item, ledger):
        item = create_item(LEVEL2)
        engine.apply(item.id, SENIOR_A_ID, "return")
        engine.apply(item.id, CREATOR_ID, "resubmit")

        assert ledger.latest_record(item.id).action == "resubmit"
        assert ledger.latest_record(item.id, "return").actor_id == SENIOR_A_ID
        assert ledger.latest_record(item.id, "reject") is None


class TestPreviousApproval:

    def test_none_without_stage(self, ledger):
        assert ledger.find_previous_approval(uuid4(), None, SENIOR_A_ID) is None

    def test_skips_current_stage(self, engine, create_item, ledger):
        item = create_item(LEVEL2)
        engine.apply(item.id, SENIOR_A_ID, "approve")
        stage1 = ledger.records_for(item.id)[0].stage_id

        assert ledger.find_previous_approval(item.id, stage1, MANAGER_ID) is None

    def test_skips_acting_reviewer(self, engine, create_item, ledger):
        item = create_item(LEVEL3)
        engine.apply(item.id, SENIOR_A_ID, "approve")
        after = engine.apply(item.id, MANAGER_ID, "approve").item

        found = ledger.find_previous_approval(item.id, after.current_stage_id, MANAGER_ID)
        assert found.actor_id == SENIOR_A_ID

    def test_most_recent_wins(self, engine, create_item, ledger):
        item = create_item(LEVEL3)
        engine.apply(item.id, SENIOR_A_ID, "approve")
        after = engine.apply(item.id, MANAGER_ID, "approve").item

        found = ledger.find_previous_approval(item.id, after.current_stage_id, ADMIN_ID)
        assert found.actor_id == MANAGER_ID


class TestDerivedViews:

    def test_timeline_starts_with_creation(self, engine, create_item, ledger):
        item = create_item(LEVEL2)
        engine.apply(item.id, SENIOR_A_ID, "approve")

        timeline = ledger.timeline_for(item)
        assert [e.action for e in timeline] == ["created", "approve"]
        assert timeline[0].actor_id == CREATOR_ID
        assert timeline[0].status == "pending_review_level1"
        assert timeline[1].status_display == "Pending Level 2 Review"

    def test_summary_counts(self, engine, create_item, ledger, deterministic_clock):
        item = create_item(LEVEL2)
        deterministic_clock.advance(10)
        engine.apply(item.id, SENIOR_A_ID, "return")
        engine.apply(item.id, CREATOR_ID, "resubmit")
        engine.apply(item.id, SENIOR_A_ID, "approve")
        deterministic_clock.advance(90061)
        final = engine.apply(item.id, MANAGER_ID, "approve").item

        summary = ledger.summarize(final)
        assert summary.total_reviews == 4
        assert summary.approval_count == 2
        assert summary.return_count == 1
        assert summary.reject_count == 0
        assert summary.current_status == "approved"
        assert summary.current_status_display == "Approved"
        assert summary.duration_display == "1 days 1 hours 1 minutes"

    def test_participants(self, engine, create_item, ledger):
        item = create_item(LEVEL2)
        engine.apply(item.id, SENIOR_A_ID, "return")
        engine.apply(item.id, CREATOR_ID, "resubmit")

        assert ledger.participants(item.id) == frozenset({SENIOR_A_ID, CREATOR_ID})
