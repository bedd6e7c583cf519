"""
workflow_services.orchestrator -- Central DI container for the review kernel.

Responsibility:
    Creates every kernel service exactly once and wires them together:
    gateway, directory, reviewer cache and resolver, history ledger,
    definition service, transition engine and visibility projection.
    No kernel service creates another internally.

Architecture position:
    Services -- the only place where kernel services are constructed and
    where ``workflow_config`` settings are translated into constructor
    arguments.  The kernel never imports ``workflow_config``.

Invariants enforced:
    - Single-instance lifecycle: one cache, one resolver, one definition
      service per orchestrator, so cache invalidation reaches every reader.
    - All services share the same gateway and clock.

Failure modes:
    - ``install_templates`` returns the failed ``Outcome`` of any draft that
      does not validate; the others are still installed.

Usage:
    from workflow_services import ReviewOrchestrator

    orchestrator = ReviewOrchestrator.from_session(session, settings)
    orchestrator.engine.apply(item_id, actor_id, "approve")
    orchestrator.projection.pending_for(user_id)
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path
from uuid import UUID

from sqlalchemy.orm import Session

from workflow_config import load_configuration_set
from workflow_config.schema import EngineSettings
from workflow_kernel.db.engine import create_tables, init_engine_from_url
from workflow_kernel.db.gateway import SqlAlchemyGateway
from workflow_kernel.db.memory_gateway import InMemoryGateway
from workflow_kernel.domain.clock import Clock, SystemClock
from workflow_kernel.domain.gateways import (
    AuthorizationGateway,
    IdentityDirectory,
    PersistenceGateway,
)
from workflow_kernel.domain.outcome import Outcome
from workflow_kernel.domain.workflow import TemplateDraft, WorkflowTemplate
from workflow_kernel.logging_config import configure_logging, get_logger
from workflow_kernel.selectors.visibility_selector import VisibilityProjection
from workflow_kernel.services.definition_service import WorkflowDefinitionService
from workflow_kernel.services.history_ledger import HistoryLedger
from workflow_kernel.services.permissions import AdminOverride
from workflow_kernel.services.reviewer_cache import ReviewerCache
from workflow_kernel.services.reviewer_resolver import ReviewerResolver
from workflow_kernel.services.transition_engine import TransitionEngine
from workflow_services.directory import SqlDirectory, StaticDirectory

logger = get_logger("services.orchestrator")


class ReviewOrchestrator:
    """Central factory for review kernel services.

    Contract:
        Receives a persistence gateway, an identity directory, an
        authorization gateway and optional settings/clock.  Constructs every
        kernel service in dependency order and exposes them as attributes.

    Non-goals:
        - Does NOT manage transaction boundaries (caller's responsibility).
    """

    def __init__(
        self,
        gateway: PersistenceGateway,
        directory: IdentityDirectory,
        authorization: AuthorizationGateway,
        settings: EngineSettings | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.settings = settings or EngineSettings()
        self._clock = clock or SystemClock()
        self.gateway = gateway
        self.directory = directory

        # Foundational services
        self.admin = AdminOverride(directory, authorization, self.settings.admin_permission)
        self.cache = ReviewerCache(self._clock, ttl_seconds=self.settings.cache_ttl_seconds)
        self.resolver = ReviewerResolver(
            directory, gateway, self.cache, workload_prefix=self.settings.workload_prefix
        )
        self.ledger = HistoryLedger(gateway, self._clock)
        self.definitions = WorkflowDefinitionService(gateway, directory, self.admin, self._clock)

        # State machine (depends on all of the above)
        self.engine = TransitionEngine(
            gateway=gateway,
            directory=directory,
            definitions=self.definitions,
            resolver=self.resolver,
            ledger=self.ledger,
            clock=self._clock,
            terminal_statuses=self.settings.terminal_statuses,
        )

        # Read side
        self.projection = VisibilityProjection(gateway, directory, self.definitions, self.admin)

    @classmethod
    def from_session(
        cls,
        session: Session,
        settings: EngineSettings | None = None,
        clock: Clock | None = None,
    ) -> ReviewOrchestrator:
        """SQL-backed orchestrator sharing one session for storage and directory."""
        directory = SqlDirectory(session)
        return cls(SqlAlchemyGateway(session), directory, directory, settings, clock)

    @classmethod
    def in_memory(
        cls,
        directory: StaticDirectory | None = None,
        settings: EngineSettings | None = None,
        clock: Clock | None = None,
    ) -> ReviewOrchestrator:
        """Dictionary-backed orchestrator with no database."""
        directory = directory if directory is not None else StaticDirectory()
        return cls(InMemoryGateway(), directory, directory, settings, clock)

    @property
    def clock(self) -> Clock:
        return self._clock

    def install_templates(
        self, drafts: Iterable[TemplateDraft], installed_by: UUID
    ) -> list[Outcome[WorkflowTemplate]]:
        """Publish each draft whose name is not already active."""
        active = {t.name for t in self.definitions.list_templates(active_only=True)}
        outcomes: list[Outcome[WorkflowTemplate]] = []
        for draft in drafts:
            if draft.name.strip() in active:
                logger.debug("template_already_installed", extra={"template_name": draft.name})
                continue
            outcomes.append(self.definitions.publish(draft, installed_by))
        logger.info(
            "templates_installed",
            extra={
                "installed": sum(1 for o in outcomes if o.is_success),
                "failed": sum(1 for o in outcomes if not o.is_success),
            },
        )
        return outcomes


def build_review_orchestrator(
    session: Session,
    config_path: Path | str | None = None,
    installed_by: UUID | None = None,
    clock: Clock | None = None,
) -> ReviewOrchestrator:
    """Build an orchestrator from a configuration set (single production entrypoint).

    Installs the set's roles into the directory tables and, when
    ``installed_by`` is given, publishes its templates.
    """
    config_set = load_configuration_set(config_path)
    orchestrator = ReviewOrchestrator.from_session(session, config_set.settings, clock)
    SqlDirectory(session).install_roles(config_set.roles)
    if installed_by is not None:
        orchestrator.install_templates(config_set.templates, installed_by)
    return orchestrator


def bootstrap(settings: EngineSettings, create_schema: bool = True) -> None:
    """Process start-up: logging at ``settings.log_level`` and the database engine.

    Call once before opening sessions with ``workflow_kernel.db.engine``.
    """
    configure_logging(level=settings.log_level)
    init_engine_from_url(settings.database_url)
    if create_schema:
        create_tables()
    logger.info(
        "workflow_bootstrapped",
        extra={"log_level": settings.log_level, "create_schema": create_schema},
    )
