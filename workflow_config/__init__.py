"""
workflow_config -- configuration entrypoints for the review engine.

Responsibility:
    Provides ``get_engine_settings()`` and ``load_configuration_set()``, the
    only ways the outer layers obtain settings and template definitions.
    The default set ships in ``workflow_config/sets/default.yaml``.

Architecture position:
    Configuration -- sits above ``workflow_kernel`` and below
    ``workflow_services``.  The kernel MUST NEVER import from
    ``workflow_config``; services receive plain values from it.

Failure modes:
    - ``FileNotFoundError`` -- the requested configuration file is missing.
    - ``KeyError`` / ``ValueError`` -- structurally invalid configuration.

Audit relevance:
    Every load emits a ``workflow_config_loaded`` log entry with the
    config id, version and checksum.
"""

from __future__ import annotations

from pathlib import Path

from workflow_config.loader import load_yaml_file, parse_configuration_set
from workflow_config.schema import EngineSettings, RoleDef, WorkflowConfigurationSet
from workflow_kernel.logging_config import get_logger

_logger = get_logger("config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def load_configuration_set(path: Path | str | None = None) -> WorkflowConfigurationSet:
    """Load and parse a configuration set (default: the shipped set)."""
    config_path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    config_set = parse_configuration_set(load_yaml_file(config_path))
    _logger.info(
        "workflow_config_loaded",
        extra={
            "config_id": config_set.config_id,
            "config_version": config_set.version,
            "checksum": config_set.checksum,
            "template_count": len(config_set.templates),
            "role_count": len(config_set.roles),
        },
    )
    return config_set


def get_engine_settings(path: Path | str | None = None) -> EngineSettings:
    """Engine settings from a configuration file (default: the shipped set)."""
    return load_configuration_set(path).settings


__all__ = [
    "DEFAULT_CONFIG_PATH",
    "EngineSettings",
    "RoleDef",
    "WorkflowConfigurationSet",
    "get_engine_settings",
    "load_configuration_set",
]
