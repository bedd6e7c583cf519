"""
Tests for the SQL persistence layer: ``SqlAlchemyGateway``, ``SqlDirectory``
and the ORM models, against SQLite.

Invariants tested:
- DTOs round-trip through the ORM with UTC-aware timestamps.
- Item updates are version-checked; a stale version raises
  OptimisticLockError and leaves the row unchanged.
- Review records cannot be updated or deleted through the ORM.
- The full review flow works end to end on the SQL orchestrator.
"""

from dataclasses import replace
from datetime import timezone
from uuid import uuid4

import pytest
from sqlalchemy import select

from tests.conftest import ADMIN_ID, CREATOR_ID, LEVEL2, MANAGER_ID, SENIOR_A_ID, SENIOR_B_ID
from workflow_kernel.db.gateway import SqlAlchemyGateway
from workflow_kernel.domain.review import Item, ReviewRecord
from workflow_kernel.domain.workflow import Stage, WorkflowTemplate
from workflow_kernel.exceptions import (
    ImmutabilityViolationError,
    ItemNotFoundError,
    OptimisticLockError,
)
from workflow_kernel.models.directory import UserModel
from workflow_kernel.models.review_record import ReviewRecordModel


@pytest.fixture
def level2(sql_orchestrator):
    return next(t for t in sql_orchestrator.definitions.list_templates() if t.name == LEVEL2)


@pytest.fixture
def sql_item(sql_orchestrator, level2):
    outcome = sql_orchestrator.engine.create_item("Budget", CREATOR_ID, level2.id)
    assert outcome.is_success, outcome.message
    return outcome.value


class TestGateway:

    def test_template_round_trip(self, session, level2):
        stored = SqlAlchemyGateway(session).get(WorkflowTemplate, level2.id)

        assert stored == level2
        assert stored.created_at.tzinfo is not None

    def test_find_by_renamed_column(self, session, level2):
        stages = SqlAlchemyGateway(session).find(Stage, template_id=level2.id, order=2)
        assert [s.name for s in stages] == ["Level 2 Review"]

    def test_find_null_criteria(self, session, sql_orchestrator, sql_item):
        sql_orchestrator.engine.apply(sql_item.id, SENIOR_A_ID, "return")
        gateway = SqlAlchemyGateway(session)

        assert [i.id for i in gateway.find(Item, current_stage_id=None)] == [sql_item.id]

    def test_item_round_trip(self, session, sql_item):
        stored = SqlAlchemyGateway(session).get(Item, sql_item.id)

        assert stored == sql_item
        assert stored.created_at.tzinfo == timezone.utc

    def test_stale_version_is_refused(self, session, sql_item):
        gateway = SqlAlchemyGateway(session)
        moved = sql_item.moved(status="pending_review_level2", stage_id=None, reviewer_id=None)
        gateway.update(moved, expected_version=1)

        with pytest.raises(OptimisticLockError):
            gateway.update(replace(moved, version=3), expected_version=1)
        assert gateway.get(Item, sql_item.id).version == 2

    def test_update_missing_item(self, session, sql_item):
        ghost = replace(sql_item, id=uuid4(), version=2)
        with pytest.raises(ItemNotFoundError):
            SqlAlchemyGateway(session).update(ghost, expected_version=1)

    def test_stage_is_immutable(self, session, level2):
        gateway = SqlAlchemyGateway(session)
        stage = gateway.find(Stage, template_id=level2.id)[0]

        with pytest.raises(ImmutabilityViolationError):
            gateway.update(replace(stage, name="Renamed"))


class TestRecordImmutability:

    def test_duplicate_append_is_refused(self, session, sql_orchestrator, sql_item):
        record = sql_orchestrator.engine.apply(sql_item.id, SENIOR_A_ID, "approve").record

        with pytest.raises(ImmutabilityViolationError):
            SqlAlchemyGateway(session).add(replace(record, comment="again"))

    def test_orm_update_is_blocked(self, session, sql_orchestrator, sql_item):
        sql_orchestrator.engine.apply(sql_item.id, SENIOR_A_ID, "approve")
        row = session.execute(select(ReviewRecordModel)).scalar_one()

        row.comment = "tampered"
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()

    def test_orm_delete_is_blocked(self, session, sql_orchestrator, sql_item):
        sql_orchestrator.engine.apply(sql_item.id, SENIOR_A_ID, "approve")
        row = session.execute(select(ReviewRecordModel)).scalar_one()

        session.delete(row)
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()


class TestSqlFlow:

    def test_two_stage_approval(self, session, sql_orchestrator, sql_item):
        engine = sql_orchestrator.engine
        first = engine.apply(sql_item.id, SENIOR_A_ID, "approve")
        second = engine.apply(sql_item.id, MANAGER_ID, "approve")
        session.commit()

        assert first.item.current_reviewer_id == MANAGER_ID
        assert second.item.status == "approved"
        assert second.is_completed
        records = SqlAlchemyGateway(session).find(ReviewRecord, item_id=sql_item.id)
        assert sorted(r.sequence for r in records) == [1, 2]

    def test_stale_token_is_conflict(self, sql_orchestrator, sql_item):
        engine = sql_orchestrator.engine
        engine.apply(sql_item.id, SENIOR_A_ID, "approve", expected_version=1)

        outcome = engine.apply(sql_item.id, MANAGER_ID, "approve", expected_version=1)
        assert outcome.error_code == "OPTIMISTIC_LOCK_CONFLICT"

    def test_pending_and_admin_detail(self, sql_orchestrator, sql_item):
        projection = sql_orchestrator.projection

        pending = projection.pending_for(SENIOR_A_ID).value
        assert [p.item_id for p in pending] == [sql_item.id]
        assert pending[0].creator_name == "Casey Creator"
        assert projection.detail_for(ADMIN_ID, sql_item.id).is_success


class TestSqlDirectory:

    def test_roles_and_permissions(self, sql_orchestrator):
        directory = sql_orchestrator.directory

        assert directory.roles_of(MANAGER_ID) == frozenset({"manager"})
        assert directory.users_with_role("manager") == (MANAGER_ID,)
        assert directory.has_permission("administrator", "admin_manage")
        assert not directory.has_permission("manager", "admin_manage")
        assert directory.role_exists("senior_staff")
        assert not directory.role_exists("auditor")

    def test_revoke_role(self, sql_orchestrator):
        directory = sql_orchestrator.directory
        directory.revoke_role(MANAGER_ID, "manager")

        assert directory.roles_of(MANAGER_ID) == frozenset()
        assert directory.users_with_role("manager") == ()

    def test_unknown_user(self, sql_orchestrator):
        directory = sql_orchestrator.directory

        assert not directory.user_exists(uuid4())
        assert directory.display_name(uuid4()) is None

    def test_deactivated_user_holds_no_roles(self, sql_orchestrator, session, level2):
        session.get(UserModel, SENIOR_B_ID).active = False
        session.flush()
        directory = sql_orchestrator.directory

        assert directory.roles_of(SENIOR_B_ID) == frozenset()
        assert directory.users_with_role("senior_staff") == (SENIOR_A_ID,)

        outcome = sql_orchestrator.engine.create_item(
            "Budget", CREATOR_ID, level2.id, requested_reviewer_id=SENIOR_B_ID
        )
        assert outcome.is_success, outcome.message
        assert outcome.value.current_reviewer_id == SENIOR_A_ID
