"""
Configuration Loader (``workflow_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into the frozen dataclasses
of ``workflow_config.schema``.  Runtime callers go through
``workflow_config.get_engine_settings()`` / ``load_configuration_set()``.

Architecture position
---------------------
**Config layer** -- infrastructure tooling.  May import kernel domain
types (``TemplateDraft``); the kernel never imports from here.

Invariants enforced
-------------------
* Missing required keys raise ``KeyError``; malformed values raise
  ``ValueError``.  There are no silent defaults for required fields.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the raw
  document for configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any
from uuid import UUID

import yaml

from workflow_config.schema import EngineSettings, RoleDef, WorkflowConfigurationSet
from workflow_kernel.domain.workflow import StageSpec, TemplateDraft, TransitionSpec


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_settings(data: dict[str, Any]) -> EngineSettings:
    """Parse ``EngineSettings``; every key is optional."""
    defaults = EngineSettings()
    terminal = data.get("terminal_statuses")
    return EngineSettings(
        cache_ttl_seconds=float(data.get("cache_ttl_seconds", defaults.cache_ttl_seconds)),
        admin_permission=str(data.get("admin_permission", defaults.admin_permission)),
        terminal_statuses=(
            frozenset(str(s) for s in terminal) if terminal else defaults.terminal_statuses
        ),
        workload_prefix=str(data.get("workload_prefix", defaults.workload_prefix)),
        database_url=str(data.get("database_url", defaults.database_url)),
        log_level=str(data.get("log_level", defaults.log_level)).upper(),
    )


def parse_role(data: dict[str, Any]) -> RoleDef:
    return RoleDef(
        code=data["code"],
        name=data.get("name", data["code"]),
        permissions=tuple(data.get("permissions", ())),
    )


def _optional_uuid(value: Any) -> UUID | None:
    if value is None or value == "":
        return None
    return value if isinstance(value, UUID) else UUID(str(value))


def parse_stage(data: dict[str, Any]) -> StageSpec:
    return StageSpec(
        name=data["name"],
        order=int(data["order"]),
        required_role=data["required_role"],
        pinned_reviewer_id=_optional_uuid(data.get("pinned_reviewer_id")),
    )


def parse_transition(data: dict[str, Any]) -> TransitionSpec:
    next_order = data.get("next_stage")
    return TransitionSpec(
        stage_order=int(data["stage"]),
        action=data["action"],
        result_status=data["result_status"],
        next_stage_order=int(next_order) if next_order is not None else None,
    )


def parse_template(data: dict[str, Any]) -> TemplateDraft:
    """
    Parse a ``TemplateDraft``.

    Stages are declared by order; transitions reference stages by order via
    ``stage`` and ``next_stage`` (omit ``next_stage`` for a terminal action).
    """
    return TemplateDraft(
        name=data["name"],
        description=data.get("description", ""),
        stages=tuple(parse_stage(s) for s in data["stages"]),
        transitions=tuple(parse_transition(t) for t in data.get("transitions", ())),
    )


def parse_configuration_set(data: dict[str, Any]) -> WorkflowConfigurationSet:
    """Parse a whole configuration document."""
    return WorkflowConfigurationSet(
        config_id=data["config_id"],
        version=int(data.get("version", 1)),
        settings=parse_settings(data.get("settings") or {}),
        roles=tuple(parse_role(r) for r in data.get("roles", ())),
        templates=tuple(parse_template(t) for t in data.get("templates", ())),
        checksum=compute_checksum(data),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
