"""
workflow_services -- Wiring and adapters around the review kernel.

Public API:
    ReviewOrchestrator        -- builds and exposes every kernel service
    build_review_orchestrator -- orchestrator from a configuration set
    bootstrap                 -- logging and database start-up from settings
    StaticDirectory           -- in-process identity directory
    SqlDirectory              -- identity directory over the ORM tables
"""

from workflow_services.directory import SqlDirectory, StaticDirectory
from workflow_services.orchestrator import (
    ReviewOrchestrator,
    bootstrap,
    build_review_orchestrator,
)

__all__ = [
    "ReviewOrchestrator",
    "SqlDirectory",
    "StaticDirectory",
    "bootstrap",
    "build_review_orchestrator",
]
