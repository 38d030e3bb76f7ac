"""Append-only run ledger: task outcome events, evaluation, and metrics."""
from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from policyplane.core.audit import audit_event
from policyplane.core.config import LedgerConfig, LoggingConfig
from policyplane.core.exceptions import NotFoundError, StateError
from policyplane.core.schemas import validate_payload
from policyplane.core.utils.time import now_ms

from .evaluators import Evaluator, default_evaluators
from .models import EvaluatorResult, OptimizationMetrics, RunEvent, ViolationRanking

logger = logging.getLogger(__name__)

RUN_EVENT_SCHEMA = "run-event"


class RunLedger:
    """In-memory, append-only store of finalized :class:`RunEvent` objects.

    Events enter the ledger only through :meth:`finalize_event`,
    :meth:`log_event` or :meth:`import_events`; nothing is ever edited or
    removed afterward. Persistence belongs to the caller
    (:meth:`export_events` / :meth:`import_events`).
    """

    def __init__(
        self,
        config: Optional[LedgerConfig] = None,
        *,
        evaluators: Optional[List[Evaluator]] = None,
        audit: Optional[LoggingConfig] = None,
    ) -> None:
        self.config = config or LedgerConfig()
        self._audit = audit
        self._events: List[RunEvent] = []
        self._evaluators: List[Evaluator] = (
            list(evaluators) if evaluators is not None else default_evaluators(self.config)
        )

    # ------------------------------------------------------------------
    # Event lifecycle
    # ------------------------------------------------------------------
    def create_event(
        self,
        task_id: str,
        intent: str,
        guidance_hash: str,
        *,
        session_id: Optional[str] = None,
    ) -> RunEvent:
        """Return a zero-valued, open event; the caller fills it in."""
        return RunEvent(
            event_id=str(uuid.uuid4()),
            task_id=task_id,
            guidance_hash=guidance_hash,
            intent=getattr(intent, "value", intent),
            timestamp=now_ms(),
            session_id=session_id,
        )

    def finalize_event(self, event: RunEvent) -> RunEvent:
        """Stamp the duration, freeze ``event`` and append it.

        Raises:
            StateError: If the event was already finalized.
        """
        if event.finalized:
            raise StateError(
                f"Run event {event.event_id} is already finalized",
                context={"eventId": event.event_id},
            )
        event.freeze(now_ms() - event.timestamp)
        self._append(event)
        return event

    def log_event(self, event: RunEvent) -> RunEvent:
        """Append a prebuilt event under a fresh ID.

        The input is copied, so an already finalized event can be logged
        again as a new record.
        """
        copy = replace(
            event,
            event_id=str(uuid.uuid4()),
            retrieved_rule_ids=list(event.retrieved_rule_ids),
            tools_used=list(event.tools_used),
            files_touched=list(event.files_touched),
            violations=list(event.violations),
        )
        copy.freeze(event.duration_ms)
        self._append(copy)
        return copy

    def _append(self, event: RunEvent) -> None:
        self._events.append(event)
        logger.info(
            "Recorded run event %s for task %s (%d violation(s), %dms)",
            event.event_id,
            event.task_id,
            len(event.violations),
            event.duration_ms,
        )
        audit_event(
            "ledger.finalized",
            settings=self._audit,
            eventId=event.event_id,
            taskId=event.task_id,
            guidanceHash=event.guidance_hash,
            violations=[v.rule_id for v in event.violations],
            reworkLines=event.rework_lines,
            durationMs=event.duration_ms,
        )

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------
    @property
    def evaluators(self) -> List[Evaluator]:
        return list(self._evaluators)

    def add_evaluator(self, evaluator: Evaluator) -> None:
        self._evaluators.append(evaluator)

    def remove_evaluator(self, name: str) -> None:
        """Remove the evaluator called ``name``.

        Raises:
            NotFoundError: If no evaluator has that name.
        """
        for index, evaluator in enumerate(self._evaluators):
            if evaluator.name == name:
                del self._evaluators[index]
                return
        raise NotFoundError(f"Unknown evaluator: {name}", context={"name": name})

    def evaluate(self, event: RunEvent) -> List[EvaluatorResult]:
        """Run every evaluator in order.

        Evaluator exceptions propagate; callers that need isolation run the
        evaluators one by one (see ``GuidanceControlPlane.finalize_run``).
        """
        return [evaluator.evaluate(event) for evaluator in self._evaluators]

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def get_events(self) -> List[RunEvent]:
        return list(self._events)

    def get_events_by_task(self, task_id: str) -> List[RunEvent]:
        return [e for e in self._events if e.task_id == task_id]

    def get_events_in_range(self, start_ms: int, end_ms: int) -> List[RunEvent]:
        """Events whose start timestamp falls in ``[start_ms, end_ms]``."""
        return [e for e in self._events if start_ms <= e.timestamp <= end_ms]

    def get_recent_events(self, count: int) -> List[RunEvent]:
        if count <= 0:
            return []
        return self._events[-count:]

    @property
    def event_count(self) -> int:
        return len(self._events)

    # ------------------------------------------------------------------
    # Aggregates
    # ------------------------------------------------------------------
    def compute_metrics(self, events: Optional[Iterable[RunEvent]] = None) -> OptimizationMetrics:
        """Aggregate metrics over ``events`` (the whole ledger by default)."""
        window = list(self._events if events is None else events)
        if not window:
            return OptimizationMetrics()

        count = len(window)
        total_violations = sum(len(e.violations) for e in window)
        corrected = sum(1 for e in window for v in e.violations if v.auto_corrected)
        return OptimizationMetrics(
            violation_rate=total_violations / count * 10,
            self_correction_rate=corrected / total_violations if total_violations else 1.0,
            rework_lines=sum(e.rework_lines for e in window) / count,
            clarifying_questions=sum(e.clarifying_questions for e in window) / count,
            task_count=count,
        )

    def rank_violations(self, events: Optional[Iterable[RunEvent]] = None) -> List[ViolationRanking]:
        """Rank rule IDs by ``frequency * average rework per occurrence``.

        Each violation occurrence is charged its event's rework lines. Ties
        keep first-seen order.
        """
        window = self._events if events is None else events
        stats: Dict[str, List[float]] = {}
        for event in window:
            for violation in event.violations:
                entry = stats.setdefault(violation.rule_id, [0, 0.0])
                entry[0] += 1
                entry[1] += event.rework_lines

        rankings = []
        for rule_id, (frequency, total_rework) in stats.items():
            cost = total_rework / frequency
            rankings.append(
                ViolationRanking(rule_id=rule_id, frequency=int(frequency), cost=cost, score=frequency * cost)
            )
        return sorted(rankings, key=lambda r: -r.score)

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------
    def export_events(self) -> List[Dict[str, Any]]:
        return [e.to_dict() for e in self._events]

    def import_events(self, records: Iterable[Union[RunEvent, Mapping[str, Any]]]) -> int:
        """Append exported events as finalized records.

        Every mapping is validated against the run-event schema before any
        record is appended, so a bad batch leaves the ledger untouched.

        Returns:
            Number of events imported.

        Raises:
            ValidationError: If a record does not match the schema.
        """
        staged: List[RunEvent] = []
        for record in records:
            if isinstance(record, RunEvent):
                record = record.to_dict()
            validate_payload(dict(record), RUN_EVENT_SCHEMA)
            event = RunEvent.from_dict(record)
            event.freeze(event.duration_ms)
            staged.append(event)

        self._events.extend(staged)
        logger.info("Imported %d run event(s)", len(staged))
        return len(staged)


__all__ = ["RunLedger", "RUN_EVENT_SCHEMA"]
