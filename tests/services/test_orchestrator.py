"""
Tests for service wiring (``workflow_services.orchestrator``) and the
in-process directory adapter.
"""

from uuid import uuid4

import pytest

from tests.conftest import ADMIN_ID, CREATOR_ID, LEVEL1, SENIOR_A_ID
from workflow_config.schema import EngineSettings, RoleDef
from workflow_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
    session_scope,
)
from workflow_services import (
    ReviewOrchestrator,
    SqlDirectory,
    StaticDirectory,
    bootstrap,
    build_review_orchestrator,
)


class TestWiring:

    def test_services_share_one_cache(self, orchestrator):
        assert orchestrator.resolver.cache is orchestrator.cache

    def test_settings_reach_services(self, directory, deterministic_clock):
        settings = EngineSettings(cache_ttl_seconds=5, terminal_statuses=frozenset({"approved"}))
        orchestrator = ReviewOrchestrator.in_memory(directory, settings, deterministic_clock)

        assert orchestrator.cache.ttl_seconds == 5.0
        assert orchestrator.admin.permission == "admin_manage"
        assert orchestrator.clock is deterministic_clock

    def test_install_templates_skips_active_names(self, orchestrator, default_config):
        again = orchestrator.install_templates(default_config.templates, ADMIN_ID)

        assert again == []
        assert len(orchestrator.definitions.list_templates()) == 3

    def test_install_requires_admin(self, directory, default_config):
        orchestrator = ReviewOrchestrator.in_memory(directory)
        outcomes = orchestrator.install_templates(default_config.templates, CREATOR_ID)

        assert [o.error_code for o in outcomes] == ["ACCESS_DENIED"] * 3

    def test_custom_admin_permission(self, directory, default_config):
        directory.add_role("auditor", ["audit_all"])
        auditor = uuid4()
        directory.add_user(auditor, "Ari Auditor", roles=["auditor"])
        orchestrator = ReviewOrchestrator.in_memory(
            directory, EngineSettings(admin_permission="audit_all")
        )
        outcomes = orchestrator.install_templates(default_config.templates, auditor)

        assert all(o.is_success for o in outcomes)


class TestBuildFromConfiguration:

    def test_build_review_orchestrator(self, session, default_config):
        directory = SqlDirectory(session)
        directory.install_roles(default_config.roles)
        directory.add_user("admin", "Alex Admin", ["administrator"], user_id=ADMIN_ID)
        directory.add_user("creator", None, ["staff"], user_id=CREATOR_ID)
        directory.add_user("senior", "Sam Senior", ["senior_staff"], user_id=SENIOR_A_ID)

        orchestrator = build_review_orchestrator(session, installed_by=ADMIN_ID)
        level1 = next(
            t for t in orchestrator.definitions.list_templates() if t.name == LEVEL1
        )
        item = orchestrator.engine.create_item("Configured", CREATOR_ID, level1.id).value

        assert item.current_reviewer_id == SENIOR_A_ID
        assert directory.display_name(CREATOR_ID) == "creator"

    def test_bootstrap_initialises_engine(self):
        bootstrap(EngineSettings(database_url="sqlite:///:memory:"))
        try:
            session = get_session()
            assert SqlDirectory(session).role_exists("staff") is False
            session.close()
        finally:
            drop_tables()
            reset_engine()

    def test_session_scope_commits_or_rolls_back(self):
        init_engine_from_url("sqlite:///:memory:")
        create_tables()
        try:
            with session_scope() as session:
                SqlDirectory(session).install_roles([RoleDef("staff", "Staff")])
            with pytest.raises(RuntimeError):
                with session_scope() as session:
                    SqlDirectory(session).install_roles([RoleDef("auditor", "Auditor")])
                    raise RuntimeError("boom")

            with session_scope() as session:
                directory = SqlDirectory(session)
                assert directory.role_exists("staff")
                assert not directory.role_exists("auditor")
        finally:
            drop_tables()
            reset_engine()


class TestStaticDirectory:

    def test_from_roles(self, default_config):
        directory = StaticDirectory.from_roles(default_config.roles)

        assert directory.role_exists("manager")
        assert directory.has_permission("administrator", "admin_manage")
        assert not directory.has_permission("staff", "admin_manage")

    def test_grant_to_unknown_user(self):
        with pytest.raises(KeyError):
            StaticDirectory().grant_role(uuid4(), "staff")

    def test_members_sorted_by_id(self, directory):
        members = directory.users_with_role("senior_staff")
        assert list(members) == sorted(members, key=str)
