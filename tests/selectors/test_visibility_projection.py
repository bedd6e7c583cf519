"""
Tests for the VisibilityProjection (``workflow_kernel.selectors.visibility_selector``).

Invariants tested:
- Read-only: querying never changes items or the ledger.
- Idempotent: repeated queries with no intervening write are equal.
- Pending inbox holds assigned items plus the user's returned-to-creator items.
- Detail is limited to creator, current reviewer and administrators; history
  additionally admits past participants.
"""

from uuid import uuid4

from tests.conftest import (
    ADMIN_ID,
    CREATOR_ID,
    LEVEL1,
    LEVEL2,
    MANAGER_ID,
    OUTSIDER_ID,
    SENIOR_A_ID,
    SENIOR_B_ID,
)
from workflow_kernel.domain.outcome import OutcomeStatus
from workflow_kernel.domain.review import Item, ReviewRecord


class TestPendingFor:

    def test_assigned_items_listed_oldest_first(self, projection, create_item, deterministic_clock):
        first = create_item(LEVEL1, title="First", requested_reviewer_id=SENIOR_A_ID)
        deterministic_clock.advance(5)
        second = create_item(LEVEL1, title="Second", requested_reviewer_id=SENIOR_A_ID)

        pending = projection.pending_for(SENIOR_A_ID).value
        assert [p.item_id for p in pending] == [first.id, second.id]
        assert pending[0].status_display == "Pending Level 1 Review"
        assert pending[0].current_stage_name == "Level 1 Review"
        assert pending[0].creator_name == "Casey Creator"
        assert pending[0].template_name == LEVEL1

    def test_actions_offered_to_current_reviewer(self, projection, create_item):
        create_item(LEVEL2)

        entry = projection.pending_for(SENIOR_A_ID).value[0]
        assert [a.action for a in entry.actions] == ["approve", "reject", "return"]
        approve = entry.actions[0]
        assert approve.display_name == "Approve"
        assert approve.next_stage_name == "Level 2 Review"

    def test_returned_item_appears_for_creator(self, projection, engine, create_item):
        item = create_item(LEVEL2)
        engine.apply(item.id, SENIOR_A_ID, "return")

        pending = projection.pending_for(CREATOR_ID).value
        assert [p.item_id for p in pending] == [item.id]
        assert [a.action for a in pending[0].actions] == ["resubmit"]
        assert pending[0].actions[0].result_status == "pending_review_level1"
        assert projection.pending_for(SENIOR_A_ID).value == ()

    def test_completed_items_leave_the_inbox(self, projection, engine, create_item):
        item = create_item(LEVEL1)
        engine.apply(item.id, SENIOR_A_ID, "approve")

        assert projection.pending_for(SENIOR_A_ID).value == ()
        assert projection.pending_for(CREATOR_ID).value == ()

    def test_other_users_see_nothing(self, projection, create_item):
        create_item(LEVEL1)
        assert projection.pending_for(SENIOR_B_ID).value == ()

    def test_unknown_user(self, projection):
        outcome = projection.pending_for(uuid4())
        assert outcome.status == OutcomeStatus.NOT_FOUND

    def test_repeated_query_is_idempotent(self, projection, create_item, orchestrator):
        item = create_item(LEVEL2)
        records_before = orchestrator.gateway.find(ReviewRecord, item_id=item.id)

        first = projection.pending_for(SENIOR_A_ID)
        second = projection.pending_for(SENIOR_A_ID)
        assert first == second
        assert orchestrator.gateway.get(Item, item.id) == item
        assert orchestrator.gateway.find(ReviewRecord, item_id=item.id) == records_before

    def test_reviewer_without_role_sees_no_actions(self, projection, create_item, directory):
        create_item(LEVEL1)
        directory.revoke_role(SENIOR_A_ID, "senior_staff")

        entry = projection.pending_for(SENIOR_A_ID).value[0]
        assert entry.actions == ()


class TestDetailFor:

    def test_creator_sees_detail(self, projection, engine, create_item):
        item = create_item(LEVEL2)
        engine.apply(item.id, SENIOR_A_ID, "approve", comment="good")

        detail = projection.detail_for(CREATOR_ID, item.id).value
        assert detail.current_reviewer_name == "Morgan Manager"
        assert [s.order for s in detail.stages] == [1, 2]
        assert [s.is_current for s in detail.stages] == [False, True]
        assert detail.history[0].comment == "good"
        assert detail.history[0].actor_name == "Sam Senior"
        assert detail.history[0].stage_name == "Level 1 Review"
        assert detail.actions == ()

    def test_history_is_newest_first(self, projection, engine, create_item):
        item = create_item(LEVEL2)
        engine.apply(item.id, SENIOR_A_ID, "return")
        engine.apply(item.id, CREATOR_ID, "resubmit")

        detail = projection.detail_for(CREATOR_ID, item.id).value
        assert [h.action for h in detail.history] == ["resubmit", "return"]

    def test_current_reviewer_sees_actions(self, projection, create_item):
        item = create_item(LEVEL1)
        detail = projection.detail_for(SENIOR_A_ID, item.id).value
        assert {a.action for a in detail.actions} == {"approve", "reject", "return"}

    def test_admin_override(self, projection, create_item):
        item = create_item(LEVEL1)
        outcome = projection.detail_for(ADMIN_ID, item.id)

        assert outcome.is_success
        assert outcome.value.actions == ()

    def test_outsider_is_denied(self, projection, create_item):
        item = create_item(LEVEL1)
        outcome = projection.detail_for(OUTSIDER_ID, item.id)

        assert outcome.status == OutcomeStatus.FORBIDDEN
        assert outcome.error_code == "ACCESS_DENIED"

    def test_unknown_item(self, projection):
        assert projection.detail_for(CREATOR_ID, uuid4()).status == OutcomeStatus.NOT_FOUND

    def test_missing_display_name_falls_back(self, projection, create_item):
        item = create_item(LEVEL1, creator_id=OUTSIDER_ID)
        detail = projection.detail_for(OUTSIDER_ID, item.id).value
        assert detail.creator_name == f"User{OUTSIDER_ID}"

    def test_directory_failure_falls_back(self, projection, create_item, directory, monkeypatch):
        item = create_item(LEVEL1)

        def _down(user_id):
            raise ConnectionError("directory unavailable")

        monkeypatch.setattr(directory, "display_name", _down)
        detail = projection.detail_for(CREATOR_ID, item.id).value
        assert detail.creator_name == f"User{CREATOR_ID}"


class TestHistoryFor:

    def test_past_participant_may_read_history(self, projection, engine, create_item):
        item = create_item(LEVEL2)
        engine.apply(item.id, SENIOR_A_ID, "approve")

        assert projection.detail_for(SENIOR_A_ID, item.id).status == OutcomeStatus.FORBIDDEN
        history = projection.history_for(SENIOR_A_ID, item.id).value
        assert [e.action for e in history.timeline] == ["created", "approve"]
        assert history.summary.approval_count == 1
        assert history.template_name == LEVEL2

    def test_not_started_summary(self, projection, create_item):
        item = create_item(LEVEL1)
        summary = projection.history_for(CREATOR_ID, item.id).value.summary

        assert not summary.has_started
        assert summary.first_review_display == "Review has not started yet"
        assert summary.duration_display == "0 days 0 hours 0 minutes"

    def test_outsider_is_denied(self, projection, create_item):
        item = create_item(LEVEL1)
        assert projection.history_for(MANAGER_ID, item.id).status == OutcomeStatus.FORBIDDEN
