"""
Pytest fixtures for the workflow kernel test suite.

Provides:
- Structured logging configured once per session, with a JSON log capture
- A deterministic clock
- A populated in-process directory and an in-memory orchestrator with the
  default review templates installed
- SQLite sessions for the SQL gateway and ORM tests

Environment Variables:
- DATABASE_URL: optional database URL for the SQL fixtures.
  Defaults to an in-memory SQLite database.
"""

import json
import logging
import os
from io import StringIO
from typing import Generator
from uuid import UUID

import pytest
from sqlalchemy.orm import Session

from workflow_config import load_configuration_set
from workflow_config.schema import EngineSettings
from workflow_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from workflow_kernel.domain.clock import DeterministicClock
from workflow_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from workflow_services import ReviewOrchestrator, SqlDirectory, StaticDirectory

# Fixed ids so failures are easy to read and reviewer tie-breaks are known.
CREATOR_ID = UUID("00000000-0000-0000-0000-000000000001")
SENIOR_A_ID = UUID("00000000-0000-0000-0000-00000000000a")
SENIOR_B_ID = UUID("00000000-0000-0000-0000-00000000000b")
MANAGER_ID = UUID("00000000-0000-0000-0000-000000000020")
ADMIN_ID = UUID("00000000-0000-0000-0000-000000000030")
OUTSIDER_ID = UUID("00000000-0000-0000-0000-000000000040")

LEVEL1 = "Level 1 Review Process"
LEVEL2 = "Level 2 Review Process"
LEVEL3 = "Level 3 Review Process"


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture workflow_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, engine):
            engine.apply(...)
            logs = captured_logs()
            assert any(r["message"] == "transition_applied" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("workflow_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Clock / configuration
# =============================================================================


@pytest.fixture
def deterministic_clock():
    """Provide a deterministic clock for testing."""
    return DeterministicClock()


@pytest.fixture(scope="session")
def default_config():
    return load_configuration_set()


# =============================================================================
# In-memory kernel
# =============================================================================


@pytest.fixture
def directory(default_config) -> StaticDirectory:
    """Default roles plus one user per role (two senior staff)."""
    directory = StaticDirectory.from_roles(default_config.roles)
    directory.add_user(CREATOR_ID, "Casey Creator", roles=["staff"])
    directory.add_user(SENIOR_A_ID, "Sam Senior", roles=["senior_staff"])
    directory.add_user(SENIOR_B_ID, "Sasha Senior", roles=["senior_staff"])
    directory.add_user(MANAGER_ID, "Morgan Manager", roles=["manager"])
    directory.add_user(ADMIN_ID, "Alex Admin", roles=["administrator"])
    directory.add_user(OUTSIDER_ID, None, roles=["staff"])
    return directory


@pytest.fixture
def orchestrator(directory, deterministic_clock, default_config) -> ReviewOrchestrator:
    orchestrator = ReviewOrchestrator.in_memory(
        directory, default_config.settings, deterministic_clock
    )
    outcomes = orchestrator.install_templates(default_config.templates, ADMIN_ID)
    assert all(o.is_success for o in outcomes), [o.message for o in outcomes]
    return orchestrator


@pytest.fixture
def templates(orchestrator) -> dict[str, UUID]:
    """Active template id by name."""
    return {t.name: t.id for t in orchestrator.definitions.list_templates()}


@pytest.fixture
def engine(orchestrator):
    return orchestrator.engine


@pytest.fixture
def projection(orchestrator):
    return orchestrator.projection


@pytest.fixture
def ledger(orchestrator):
    return orchestrator.ledger


@pytest.fixture
def definitions(orchestrator):
    return orchestrator.definitions


@pytest.fixture
def create_item(engine, templates):
    """Create an item on a named template and return it."""

    def _create(template_name=LEVEL2, title="Quarterly report", creator_id=CREATOR_ID,
                requested_reviewer_id=None):
        outcome = engine.create_item(
            title, creator_id, templates[template_name], requested_reviewer_id
        )
        assert outcome.is_success, outcome.message
        return outcome.value

    return _create


# =============================================================================
# SQL fixtures
# =============================================================================


def get_database_url() -> str:
    return os.environ.get("DATABASE_URL", "sqlite:///:memory:")


@pytest.fixture
def session() -> Generator[Session, None, None]:
    """Fresh schema per test; dropped at teardown."""
    init_engine_from_url(get_database_url())
    create_tables()
    sess = get_session()
    yield sess
    try:
        sess.close()
    finally:
        drop_tables()
        reset_engine()


@pytest.fixture
def sql_orchestrator(session, deterministic_clock, default_config) -> ReviewOrchestrator:
    """SQL-backed orchestrator seeded with the default roles, users and templates."""
    directory = SqlDirectory(session)
    directory.install_roles(default_config.roles)
    directory.add_user("creator", "Casey Creator", ["staff"], user_id=CREATOR_ID)
    directory.add_user("senior_a", "Sam Senior", ["senior_staff"], user_id=SENIOR_A_ID)
    directory.add_user("senior_b", "Sasha Senior", ["senior_staff"], user_id=SENIOR_B_ID)
    directory.add_user("manager", "Morgan Manager", ["manager"], user_id=MANAGER_ID)
    directory.add_user("admin", "Alex Admin", ["administrator"], user_id=ADMIN_ID)
    orchestrator = ReviewOrchestrator.from_session(
        session, default_config.settings, deterministic_clock
    )
    outcomes = orchestrator.install_templates(default_config.templates, ADMIN_ID)
    assert all(o.is_success for o in outcomes), [o.message for o in outcomes]
    return orchestrator
