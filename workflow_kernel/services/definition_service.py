"""
workflow_kernel.services.definition_service -- Workflow definition lifecycle.

Responsibility:
    Validates and publishes review templates, republishes changed
    definitions as new versions, and serves compiled ``WorkflowDefinition``
    objects to the transition engine and visibility projection.

Architecture position:
    Kernel > Services.  May import from domain/, utils/ and exceptions.
    Storage goes through the ``PersistenceGateway`` protocol.

Invariants enforced:
    - Nothing is persisted unless ``validate_template`` reports no
      violations.
    - Published templates are never edited in place.  ``republish`` writes a
      new template version and deactivates the previous one.
    - Compiled definitions are cached per template id and dropped only on
      republish or deactivation.

Failure modes:
    - TemplateValidationError -> Outcome VALIDATION_ERROR.
    - Publisher without the admin permission -> Outcome FORBIDDEN.
    - Unknown template or stage -> TemplateNotFoundError / StageNotFoundError.
"""

from __future__ import annotations

import threading
from uuid import UUID, uuid4

from workflow_kernel.domain.clock import Clock, SystemClock
from workflow_kernel.domain.gateways import IdentityDirectory, PersistenceGateway
from workflow_kernel.domain.outcome import Outcome
from workflow_kernel.domain.vocabulary import normalize_action
from workflow_kernel.domain.workflow import (
    Stage,
    TemplateDraft,
    Transition,
    WorkflowDefinition,
    WorkflowTemplate,
    validate_template,
)
from workflow_kernel.exceptions import (
    AccessDeniedError,
    StageNotFoundError,
    TemplateNotFoundError,
    TemplateValidationError,
    WorkflowKernelError,
)
from workflow_kernel.logging_config import LogContext, get_logger
from workflow_kernel.services.permissions import AdminOverride
from workflow_kernel.utils.hashing import hash_definition

logger = get_logger("services.definition")


class WorkflowDefinitionService:
    """
    Publishes templates and serves compiled definitions.

    Contract:
        Public write operations return ``Outcome`` values; lookups used by
        other kernel services raise typed exceptions.

    Guarantees:
        - ``definition(template_id)`` returns the same object until the
          template is republished or deactivated.

    Non-goals:
        - Does NOT migrate items from an old template version to a new one.
          Items keep the definition they were created under.
    """

    def __init__(
        self,
        gateway: PersistenceGateway,
        directory: IdentityDirectory,
        admin: AdminOverride,
        clock: Clock | None = None,
    ) -> None:
        self._gateway = gateway
        self._directory = directory
        self._admin = admin
        self._clock = clock or SystemClock()
        self._cache: dict[UUID, WorkflowDefinition] = {}
        self._cache_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Validation / publication
    # ------------------------------------------------------------------

    def validate(self, draft: TemplateDraft) -> Outcome[TemplateDraft]:
        violations = validate_template(
            draft,
            role_exists=self._directory.role_exists,
            user_exists=self._directory.user_exists,
        )
        if violations:
            return Outcome.failed(TemplateValidationError(draft.name, violations))
        return Outcome.ok(draft)

    def publish(self, draft: TemplateDraft, created_by: UUID) -> Outcome[WorkflowTemplate]:
        """Validate and persist a new template (version 1, or next for its name)."""
        with LogContext.bind(actor_id=str(created_by)):
            try:
                self._require_admin(created_by)
                template = self._persist(draft, created_by, self._next_version(draft.name))
            except WorkflowKernelError as exc:
                logger.warning(
                    "template_publish_refused",
                    extra={"template_name": draft.name, "error_code": exc.code},
                )
                return Outcome.failed(exc)
            return Outcome.ok(template)

    def republish(
        self, template_id: UUID, draft: TemplateDraft, created_by: UUID
    ) -> Outcome[WorkflowTemplate]:
        """Publish ``draft`` as the next version of ``template_id`` and retire the old one."""
        with LogContext.bind(actor_id=str(created_by), template_id=str(template_id)):
            try:
                self._require_admin(created_by)
                previous = self.template(template_id)
                if draft.name.strip() != previous.name:
                    raise TemplateValidationError(
                        draft.name,
                        [f"republished name must stay '{previous.name}'"],
                    )
                template = self._persist(draft, created_by, self._next_version(previous.name))
                self._retire(previous)
            except WorkflowKernelError as exc:
                logger.warning(
                    "template_republish_refused",
                    extra={"error_code": exc.code},
                )
                return Outcome.failed(exc)
            logger.info(
                "template_republished",
                extra={
                    "previous_template_id": str(previous.id),
                    "new_template_id": str(template.id),
                    "version": template.version,
                    "definition_changed": template.definition_hash != previous.definition_hash,
                },
            )
            return Outcome.ok(template)

    def deactivate(self, template_id: UUID, actor_id: UUID) -> Outcome[WorkflowTemplate]:
        with LogContext.bind(actor_id=str(actor_id), template_id=str(template_id)):
            try:
                self._require_admin(actor_id)
                retired = self._retire(self.template(template_id))
            except WorkflowKernelError as exc:
                return Outcome.failed(exc)
            return Outcome.ok(retired)

    def _require_admin(self, user_id: UUID) -> None:
        if not self._admin.allows(user_id):
            raise AccessDeniedError("workflow_templates", str(user_id))

    def _next_version(self, name: str) -> int:
        existing = self._gateway.find(WorkflowTemplate, name=name.strip())
        return max((t.version for t in existing), default=0) + 1

    def _persist(self, draft: TemplateDraft, created_by: UUID, version: int) -> WorkflowTemplate:
        validated = self.validate(draft)
        if not validated.is_success:
            raise TemplateValidationError(draft.name, list(validated.details))

        template = WorkflowTemplate(
            id=uuid4(),
            name=draft.name.strip(),
            description=draft.description,
            active=True,
            created_by=created_by,
            created_at=self._clock.now(),
            version=version,
            definition_hash=hash_definition(draft.canonical_payload()),
        )
        self._gateway.add(template)

        stage_ids: dict[int, UUID] = {}
        for spec in sorted(draft.stages, key=lambda s: s.order):
            stage = Stage(
                id=uuid4(),
                template_id=template.id,
                name=spec.name.strip(),
                order=spec.order,
                required_role=spec.required_role.strip(),
                pinned_reviewer_id=spec.pinned_reviewer_id,
            )
            self._gateway.add(stage)
            stage_ids[spec.order] = stage.id

        for spec in draft.transitions:
            self._gateway.add(
                Transition(
                    id=uuid4(),
                    stage_id=stage_ids[spec.stage_order],
                    action=normalize_action(spec.action),
                    result_status=spec.result_status.strip(),
                    next_stage_id=(
                        stage_ids[spec.next_stage_order]
                        if spec.next_stage_order is not None
                        else None
                    ),
                )
            )

        logger.info(
            "template_published",
            extra={
                "template_id": str(template.id),
                "template_name": template.name,
                "version": template.version,
                "stage_count": len(draft.stages),
                "transition_count": len(draft.transitions),
                "definition_hash": template.definition_hash,
            },
        )
        return template

    def _retire(self, template: WorkflowTemplate) -> WorkflowTemplate:
        retired = WorkflowTemplate(
            id=template.id,
            name=template.name,
            description=template.description,
            active=False,
            created_by=template.created_by,
            created_at=template.created_at,
            version=template.version,
            definition_hash=template.definition_hash,
        )
        self._gateway.update(retired)
        self.invalidate(template.id)
        logger.info("template_deactivated", extra={"version": template.version})
        return retired

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def template(self, template_id: UUID) -> WorkflowTemplate:
        template = self._gateway.get(WorkflowTemplate, template_id)
        if template is None:
            raise TemplateNotFoundError(str(template_id))
        return template

    def list_templates(self, active_only: bool = True) -> list[WorkflowTemplate]:
        templates = (
            self._gateway.find(WorkflowTemplate, active=True)
            if active_only
            else self._gateway.find(WorkflowTemplate)
        )
        return sorted(templates, key=lambda t: (t.name, t.version))

    def definition(self, template_id: UUID) -> WorkflowDefinition:
        with self._cache_lock:
            cached = self._cache.get(template_id)
        if cached is not None:
            return cached

        template = self.template(template_id)
        stages = self._gateway.find(Stage, template_id=template_id)
        transitions: list[Transition] = []
        for stage in stages:
            transitions.extend(self._gateway.find(Transition, stage_id=stage.id))
        compiled = WorkflowDefinition(
            template=template, stages=tuple(stages), transitions=tuple(transitions)
        )

        with self._cache_lock:
            self._cache[template_id] = compiled
        return compiled

    def invalidate(self, template_id: UUID) -> None:
        with self._cache_lock:
            self._cache.pop(template_id, None)

    def resolve_transition(
        self, template_id: UUID, stage_id: UUID, action: str
    ) -> Transition | None:
        return self.definition(template_id).resolve_transition(stage_id, action)

    def first_stage(self, template_id: UUID) -> Stage:
        definition = self.definition(template_id)
        if not definition.stages:
            raise StageNotFoundError(str(template_id), "order 1")
        return definition.first_stage()

    def stage_by_order(self, template_id: UUID, order: int) -> Stage:
        stage = self.definition(template_id).stage_by_order(order)
        if stage is None:
            raise StageNotFoundError(str(template_id), f"order {order}")
        return stage

    def stage(self, template_id: UUID, stage_id: UUID) -> Stage:
        stage = self.definition(template_id).stage(stage_id)
        if stage is None:
            raise StageNotFoundError(str(template_id), str(stage_id))
        return stage
