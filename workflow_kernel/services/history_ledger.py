"""
workflow_kernel.services.history_ledger -- Append-only review history.

Responsibility:
    Writes one ``ReviewRecord`` per applied action and answers every
    question asked of an item's history: ordered records, the prior
    approval a return goes back to, participants, timeline and summary.

Architecture position:
    Kernel > Services.  Writes only ``ReviewRecord`` entities through the
    persistence gateway.

Invariants enforced:
    - Records are written once and never updated or deleted.
    - Ledger order is (reviewed_at, sequence); ``sequence`` is the record's
      1-based position within its item and breaks timestamp ties.

Failure modes:
    - ImmutabilityViolationError when a record id is appended twice.

Audit relevance:
    The ledger is the system of record for review history.  Timeline and
    summary are recomputed from it on every read; nothing derived is stored.
"""

from __future__ import annotations

from uuid import UUID, uuid4

from workflow_kernel.domain.clock import Clock, SystemClock
from workflow_kernel.domain.gateways import PersistenceGateway
from workflow_kernel.domain.review import (
    Item,
    ReviewRecord,
    ReviewSummary,
    TimelineEvent,
    build_timeline,
    ledger_order,
    summarize,
)
from workflow_kernel.domain.vocabulary import ReviewAction
from workflow_kernel.logging_config import get_logger

logger = get_logger("services.history_ledger")


class HistoryLedger:
    """Review-record storage and history projections."""

    def __init__(self, gateway: PersistenceGateway, clock: Clock | None = None) -> None:
        self._gateway = gateway
        self._clock = clock or SystemClock()

    def append(self, record: ReviewRecord) -> ReviewRecord:
        self._gateway.add(record)
        logger.info(
            "review_recorded",
            extra={
                "record_id": str(record.id),
                "sequence": record.sequence,
                "action": record.action,
                "previous_status": record.previous_status,
                "new_status": record.new_status,
            },
        )
        return record

    def new_record(
        self,
        *,
        item_id: UUID,
        actor_id: UUID,
        action: str,
        previous_status: str,
        new_status: str,
        stage_id: UUID | None,
        next_reviewer_id: UUID | None,
        comment: str | None = None,
    ) -> ReviewRecord:
        """Next record for ``item_id``, not yet written."""
        return ReviewRecord(
            id=uuid4(),
            item_id=item_id,
            sequence=self.next_sequence(item_id),
            actor_id=actor_id,
            action=action,
            previous_status=previous_status,
            new_status=new_status,
            reviewed_at=self._clock.now(),
            stage_id=stage_id,
            next_reviewer_id=next_reviewer_id,
            comment=comment,
        )

    def records_for(self, item_id: UUID) -> tuple[ReviewRecord, ...]:
        return tuple(ledger_order(self._gateway.find(ReviewRecord, item_id=item_id)))

    def next_sequence(self, item_id: UUID) -> int:
        records = self._gateway.find(ReviewRecord, item_id=item_id)
        return max((r.sequence for r in records), default=0) + 1

    def latest_record(self, item_id: UUID, action: str | None = None) -> ReviewRecord | None:
        records = self.records_for(item_id)
        if action is not None:
            records = tuple(r for r in records if r.action == action)
        return records[-1] if records else None

    def find_previous_approval(
        self,
        item_id: UUID,
        current_stage_id: UUID | None,
        exclude_actor_id: UUID,
    ) -> ReviewRecord | None:
        """Most recent approval from another stage by another actor."""
        if current_stage_id is None:
            return None
        matches = [
            r
            for r in self.records_for(item_id)
            if r.action == ReviewAction.APPROVE.value
            and r.stage_id is not None
            and r.stage_id != current_stage_id
            and r.actor_id != exclude_actor_id
        ]
        return matches[-1] if matches else None

    def participants(self, item_id: UUID) -> frozenset[UUID]:
        return frozenset(r.actor_id for r in self._gateway.find(ReviewRecord, item_id=item_id))

    def timeline_for(self, item: Item) -> tuple[TimelineEvent, ...]:
        return build_timeline(item, self.records_for(item.id))

    def summarize(self, item: Item) -> ReviewSummary:
        return summarize(self.timeline_for(item), item.status)
