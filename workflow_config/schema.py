"""
Workflow configuration schema.

Defines the human-authored configuration artifact for the review engine:
engine settings, the role catalogue, and the review templates to install.
YAML files are parsed into these types by the loader.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from workflow_kernel.domain.vocabulary import DEFAULT_TERMINAL_STATUSES
from workflow_kernel.domain.workflow import TemplateDraft

# ---------------------------------------------------------------------------
# Engine settings
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EngineSettings:
    """Runtime knobs for the kernel services."""

    cache_ttl_seconds: float = 60.0
    admin_permission: str = "admin_manage"
    terminal_statuses: frozenset[str] = DEFAULT_TERMINAL_STATUSES
    workload_prefix: str = "pending"
    database_url: str = "sqlite:///:memory:"
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.cache_ttl_seconds < 0:
            raise ValueError(
                f"cache_ttl_seconds must be >= 0, got {self.cache_ttl_seconds}"
            )
        if not self.admin_permission:
            raise ValueError("admin_permission must not be empty")
        if not self.terminal_statuses:
            raise ValueError("terminal_statuses must not be empty")


# ---------------------------------------------------------------------------
# Role catalogue
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RoleDef:
    """A role and the permissions it carries."""

    code: str
    name: str
    permissions: tuple[str, ...] = ()


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WorkflowConfigurationSet:
    """A complete, versioned configuration set loaded from one YAML file."""

    config_id: str
    version: int
    settings: EngineSettings
    roles: tuple[RoleDef, ...] = ()
    templates: tuple[TemplateDraft, ...] = ()
    checksum: str = field(default="", compare=False)

    def template(self, name: str) -> TemplateDraft:
        for draft in self.templates:
            if draft.name == name:
                return draft
        raise KeyError(f"No template named {name!r} in configuration {self.config_id}")
