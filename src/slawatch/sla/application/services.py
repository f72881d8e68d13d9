"""
SLA Application Services
=========================

Application services orchestrate the evaluator tick: they coordinate the
domain deadline logic with the task registry, the notification store and
the alert dispatcher.

Following SOLID principles:
- Single Responsibility: evaluation, deduplication and orchestration are
  separate classes
- Dependency Inversion: depend on abstractions (registry/store interfaces),
  not concrete implementations
"""

import asyncio
import uuid
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta, tzinfo
from typing import Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo

from slawatch.config import (
    ActionTag,
    EvaluationOutcome,
    Settings,
    SLAPhase,
    SubtaskStatus,
)
from slawatch.core import MalformedUnitException, StoreUnavailableException
from slawatch.notifications.domain import (
    Classification,
    NotificationClassifier,
    NotificationEvent,
    Recipient,
    RecipientSet,
    resolve_recipients,
)
from slawatch.notifications.domain.text import delay_detail, status_changed_detail
from slawatch.shared.infrastructure.logging import (
    get_context_logger,
    get_logger,
    log_latency,
)
from slawatch.sla.domain import Clock, PhaseTransition, SLADeadline, Subtask

logger = get_logger(__name__)


# ========== Repository Interfaces (Dependency Inversion) ==========

class ISubtaskRegistry(ABC):
    """Interface for the task registry that owns subtasks."""

    @abstractmethod
    async def list_active_schedulable_units(self) -> List[Subtask]:
        """Subtasks with auto-notify on, status pending/in_progress, in active tasks."""

    @abstractmethod
    async def list_long_running_units(self, started_before: datetime) -> List[Subtask]:
        """In-progress subtasks started at or before the given instant."""

    @abstractmethod
    async def update_unit_status(self, unit: Subtask, status: SubtaskStatus) -> None:
        """Persist a status change. Must be idempotent."""


class INotificationEventStore(ABC):
    """Interface for the append-only notification event store."""

    @abstractmethod
    async def append_event(self, event: NotificationEvent) -> NotificationEvent:
        """Insert an event unconditionally and return it with its id."""

    @abstractmethod
    async def list_active_events(
        self,
        subtask_id: str,
        action: str,
        since: datetime
    ) -> List[NotificationEvent]:
        """Non-archived events of one subtask/action created at or after ``since``."""

    @abstractmethod
    async def append_event_if_absent(
        self,
        event: NotificationEvent,
        since: datetime
    ) -> Optional[NotificationEvent]:
        """
        Atomically insert unless an active event with the same subtask and
        action exists since ``since``. Returns None when suppressed.
        """


class IAlertDispatcher(ABC):
    """Interface for handing emitted events to a delivery channel."""

    @abstractmethod
    async def dispatch(
        self,
        event: NotificationEvent,
        classification: Classification,
        recipients: List[Recipient]
    ) -> bool:
        """Deliver one alert. Returns False on failure, never raises."""


# ========== Domain Orchestration ==========

class DeadlineEvaluator:
    """
    Computes deadline and phase of one subtask at a given instant.

    Stateless; one instance is shared by every concurrent evaluation.
    """

    def __init__(self, warning_window: timedelta, tz: tzinfo):
        self.warning_window = warning_window
        self.tz = tz

    def evaluate(self, unit: Subtask, now: datetime) -> Optional[PhaseTransition]:
        """
        Returns:
            PhaseTransition for Warning/Overdue, None when nothing is due

        Raises:
            MalformedUnitException: If the subtask has no budget or start anchor
        """
        if not unit.is_monitored:
            return None
        sla_deadline = SLADeadline.evaluate(unit, now, self.tz, self.warning_window)
        return PhaseTransition.from_deadline(unit, sla_deadline)


class EventDeduplicator:
    """
    At most one active event per (subtask, phase) inside the lookback window.

    The countdown value is deliberately not part of the key: a warning
    written at 14 min and a re-evaluation at 10 min are the same alert.
    """

    def __init__(self, store: INotificationEventStore, lookback: timedelta):
        self._store = store
        self.lookback = lookback

    @staticmethod
    def build_event(transition: PhaseTransition) -> NotificationEvent:
        unit = transition.subtask
        return NotificationEvent(
            id=None,
            task_id=unit.task_id,
            subtask_id=unit.id,
            action=transition.action.value,
            details=transition.details,
            created_at=transition.detected_at,
            countdown_minutes=transition.countdown_minutes,
        )

    async def should_emit(self, transition: PhaseTransition) -> bool:
        """Read-only check; emit() is the authoritative, atomic decision."""
        existing = await self._store.list_active_events(
            transition.subtask.id,
            transition.action.value,
            since=transition.detected_at - self.lookback,
        )
        return not existing

    async def emit(self, transition: PhaseTransition) -> Optional[NotificationEvent]:
        """Persist the event unless suppressed. Returns the stored event or None."""
        return await self._store.append_event_if_absent(
            self.build_event(transition),
            since=transition.detected_at - self.lookback,
        )


@dataclass
class TickReport:
    """Outcome of one evaluator pass."""
    tick_id: str
    started_at: datetime
    evaluated: int = 0
    emitted: List[NotificationEvent] = field(default_factory=list)
    suppressed: int = 0
    skipped: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)

    def record(self, outcome: EvaluationOutcome, event: Optional[NotificationEvent] = None) -> None:
        if outcome == EvaluationOutcome.EMITTED and event is not None:
            self.emitted.append(event)
        elif outcome == EvaluationOutcome.SUPPRESSED:
            self.suppressed += 1
        elif outcome == EvaluationOutcome.SKIPPED_MALFORMED:
            self.skipped += 1
        elif outcome == EvaluationOutcome.FAILED:
            self.failed += 1


UnitResult = Tuple[EvaluationOutcome, Optional[NotificationEvent], Optional[PhaseTransition]]
GuardedResult = Tuple[EvaluationOutcome, Optional[NotificationEvent], Optional[NotificationEvent]]


@dataclass
class _UnitLock:
    """Per-subtask write lock, dropped once nobody holds or waits for it."""
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


class SLAMonitorService:
    """
    Runs evaluator ticks.

    One tick lists the monitored subtasks, evaluates them concurrently
    (bounded by a semaphore, each under its own timeout), emits deduplicated
    events, moves overdue subtasks to ``overdue`` and hands new events to
    the alert dispatcher. A failure on one subtask never aborts the others.
    """

    def __init__(
        self,
        registry: ISubtaskRegistry,
        store: INotificationEventStore,
        clock: Clock,
        evaluator: DeadlineEvaluator,
        deduplicator: EventDeduplicator,
        dispatcher: Optional[IAlertDispatcher] = None,
        classifier: Optional[NotificationClassifier] = None,
        concurrency: int = 8,
        unit_timeout_seconds: float = 10.0,
        incomplete_threshold: timedelta = timedelta(hours=2),
        dispatch_timeout_seconds: float = 30.0,
    ):
        self._registry = registry
        self._store = store
        self._clock = clock
        self._evaluator = evaluator
        self._deduplicator = deduplicator
        self._dispatcher = dispatcher
        self._classifier = classifier or NotificationClassifier()
        self.concurrency = concurrency
        self.unit_timeout_seconds = unit_timeout_seconds
        self.incomplete_threshold = incomplete_threshold
        self.dispatch_timeout_seconds = dispatch_timeout_seconds

        self._unit_locks: Dict[str, _UnitLock] = {}
        self._stopping = False
        self._ticks_in_flight = 0
        self._idle = asyncio.Event()
        self._idle.set()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        registry: ISubtaskRegistry,
        store: INotificationEventStore,
        clock: Clock,
        dispatcher: Optional[IAlertDispatcher] = None,
    ) -> "SLAMonitorService":
        """Wire a monitor from application settings."""
        return cls(
            registry=registry,
            store=store,
            clock=clock,
            evaluator=DeadlineEvaluator(
                warning_window=timedelta(minutes=settings.warning_window_minutes),
                tz=ZoneInfo(settings.timezone),
            ),
            deduplicator=EventDeduplicator(
                store, timedelta(minutes=settings.dedup_lookback_minutes)
            ),
            dispatcher=dispatcher,
            concurrency=settings.evaluator_concurrency,
            unit_timeout_seconds=settings.evaluator_unit_timeout_seconds,
            incomplete_threshold=timedelta(hours=settings.incomplete_subtask_threshold_hours),
            dispatch_timeout_seconds=settings.alert_dispatch_timeout_seconds,
        )

    # ---------- lifecycle ----------

    @property
    def is_stopping(self) -> bool:
        return self._stopping

    def request_stop(self) -> None:
        """Stop launching new subtask evaluations; in-flight ones finish."""
        self._stopping = True

    def reset_stop(self) -> None:
        self._stopping = False

    async def wait_idle(self) -> None:
        """Wait until no tick is running."""
        await self._idle.wait()

    def _enter_tick(self) -> None:
        self._ticks_in_flight += 1
        self._idle.clear()

    def _exit_tick(self) -> None:
        self._ticks_in_flight -= 1
        if self._ticks_in_flight == 0:
            self._idle.set()

    # ---------- tick ----------

    async def run_tick(self) -> TickReport:
        """
        Evaluate every monitored subtask once.

        All subtasks are evaluated against the same instant so one tick
        gives a consistent picture.
        """
        now = self._clock.now()
        report = TickReport(tick_id=uuid.uuid4().hex[:12], started_at=now)
        tick_logger = get_context_logger(__name__, report.tick_id)

        if self._stopping:
            tick_logger.info("Tick skipped, monitor is stopping")
            return report

        self._enter_tick()
        try:
            with log_latency(tick_logger, "sla_tick", tick_id=report.tick_id):
                try:
                    units = await self._registry.list_active_schedulable_units()
                except StoreUnavailableException as e:
                    tick_logger.warning(
                        "Registry unavailable, tick retried on next run",
                        extra={"error": e.message}
                    )
                    report.errors.append(e.message)
                    return report

                await self._evaluate_units(units, now, report)
                await self._check_incomplete(now, report)

            tick_logger.info(
                "SLA tick finished",
                extra={
                    "tick_id": report.tick_id,
                    "evaluated": report.evaluated,
                    "emitted": len(report.emitted),
                    "suppressed": report.suppressed,
                    "skipped": report.skipped,
                    "failed": report.failed,
                }
            )
            return report
        finally:
            self._exit_tick()

    @asynccontextmanager
    async def _unit_lock(self, unit_id: str):
        """Serialize writes for one subtask across concurrent ticks."""
        entry = self._unit_locks.get(unit_id)
        if entry is None:
            entry = self._unit_locks[unit_id] = _UnitLock()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                del self._unit_locks[unit_id]

    async def _evaluate_units(
        self,
        units: List[Subtask],
        now: datetime,
        report: TickReport
    ) -> None:
        semaphore = asyncio.Semaphore(self.concurrency)

        async def guarded(unit: Subtask) -> Optional[GuardedResult]:
            async with semaphore:
                if self._stopping:
                    return None
                async with self._unit_lock(unit.id):
                    outcome, event, transition = await asyncio.wait_for(
                        self._evaluate_unit(unit, now),
                        timeout=self.unit_timeout_seconds,
                    )
                    status_event = None
                    if (
                        transition is not None
                        and transition.phase == SLAPhase.OVERDUE
                        and unit.status != SubtaskStatus.OVERDUE
                    ):
                        status_event = await self._transition_overdue(unit, now, report)
                    return outcome, event, status_event

        results = await asyncio.gather(
            *(guarded(unit) for unit in units),
            return_exceptions=True,
        )

        to_dispatch: List[Tuple[Subtask, NotificationEvent]] = []
        for unit, result in zip(units, results):
            if result is None:
                continue
            report.evaluated += 1
            if isinstance(result, BaseException):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                error = (
                    f"timed out after {self.unit_timeout_seconds}s"
                    if isinstance(result, asyncio.TimeoutError)
                    else str(result) or type(result).__name__
                )
                logger.error(
                    "Subtask evaluation failed",
                    extra={"tick_id": report.tick_id, "subtask_id": unit.id, "error": error}
                )
                report.errors.append(f"subtask {unit.id}: {error}")
                report.record(EvaluationOutcome.FAILED)
                continue
            outcome, event, status_event = result
            report.record(outcome, event)
            if status_event is not None:
                report.emitted.append(status_event)
            if outcome == EvaluationOutcome.EMITTED and event is not None:
                to_dispatch.append((unit, event))

        await self._dispatch_all(to_dispatch, report)

    async def _evaluate_unit(self, unit: Subtask, now: datetime) -> UnitResult:
        """Evaluate one subtask and store its event unless a duplicate exists."""
        try:
            transition = self._evaluator.evaluate(unit, now)
        except MalformedUnitException as e:
            logger.warning(
                "Skipping malformed subtask",
                extra={"subtask_id": unit.id, "reason": e.reason}
            )
            return EvaluationOutcome.SKIPPED_MALFORMED, None, None

        if transition is None:
            return EvaluationOutcome.NO_OP, None, None

        event = await self._deduplicator.emit(transition)
        if event is None:
            logger.debug(
                "Duplicate suppressed",
                extra={"subtask_id": unit.id, "action": transition.action.value}
            )
            return EvaluationOutcome.SUPPRESSED, None, transition

        logger.info(
            "Notification emitted",
            extra={
                "subtask_id": unit.id,
                "action": event.action,
                "countdown_minutes": event.countdown_minutes,
            }
        )
        return EvaluationOutcome.EMITTED, event, transition

    async def _transition_overdue(
        self,
        unit: Subtask,
        now: datetime,
        report: TickReport
    ) -> Optional[NotificationEvent]:
        """
        Move the subtask to ``overdue`` and write the audit event.

        Runs after the overdue event is stored, so a failed update is only
        logged; the next tick sees the old status and tries again while
        dedup absorbs the repeated overdue event.
        """
        try:
            await asyncio.wait_for(
                self._registry.update_unit_status(unit, SubtaskStatus.OVERDUE),
                timeout=self.unit_timeout_seconds,
            )
        except (StoreUnavailableException, asyncio.TimeoutError) as e:
            error = (
                e.message if isinstance(e, StoreUnavailableException)
                else f"timed out after {self.unit_timeout_seconds}s"
            )
            logger.warning(
                "Status update failed, retried on next tick",
                extra={"tick_id": report.tick_id, "subtask_id": unit.id, "error": error}
            )
            report.errors.append(f"subtask {unit.id}: status update failed: {error}")
            return None

        unit.mark_overdue()
        logger.info(
            "Subtask marked overdue",
            extra={"subtask_id": unit.id, "task_id": unit.task_id}
        )

        audit = NotificationEvent(
            id=None,
            task_id=unit.task_id,
            subtask_id=unit.id,
            action=ActionTag.STATUS_CHANGED.value,
            details=status_changed_detail(SubtaskStatus.OVERDUE.value),
            created_at=now,
        )
        try:
            return await self._store.append_event_if_absent(
                audit, since=now - self._deduplicator.lookback
            )
        except StoreUnavailableException as e:
            logger.warning(
                "Status change event not written",
                extra={"subtask_id": unit.id, "error": e.message}
            )
            report.errors.append(f"subtask {unit.id}: {e.message}")
            return None

    async def _dispatch_all(
        self,
        pending: List[Tuple[Subtask, NotificationEvent]],
        report: TickReport
    ) -> None:
        """Hand stored events to the dispatcher; a slow webhook never fails a subtask."""
        if self._dispatcher is None or not pending:
            return
        results = await asyncio.gather(
            *(
                asyncio.wait_for(self._dispatch(unit, event), timeout=self.dispatch_timeout_seconds)
                for unit, event in pending
            ),
            return_exceptions=True,
        )
        for (unit, event), result in zip(pending, results):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, BaseException):
                logger.error(
                    "Alert dispatch failed",
                    extra={
                        "tick_id": report.tick_id,
                        "subtask_id": unit.id,
                        "event_id": event.id,
                        "error": str(result) or type(result).__name__,
                    }
                )

    async def _dispatch(self, unit: Subtask, event: NotificationEvent) -> None:
        if self._dispatcher is None:
            return
        classification = self._classifier.classify_event(event)
        recipients = resolve_recipients(
            RecipientSet.of(unit.assignee, unit.reporting_managers, unit.escalation_managers),
            classification.type,
        )
        await self._dispatcher.dispatch(event, classification, recipients)

    # ---------- long-running subtasks ----------

    async def check_incomplete_subtasks(self) -> List[NotificationEvent]:
        """
        Emit one delay event per in-progress subtask running longer than the
        threshold. Repeats are suppressed for the length of the threshold.
        """
        now = self._clock.now()
        report = TickReport(tick_id=uuid.uuid4().hex[:12], started_at=now)
        await self._check_incomplete(now, report)
        return report.emitted

    async def _check_incomplete(self, now: datetime, report: TickReport) -> None:
        if self._stopping:
            return

        since = now - self.incomplete_threshold
        try:
            units = await self._registry.list_long_running_units(started_before=since)
        except StoreUnavailableException as e:
            logger.warning(
                "Registry unavailable, long-running check skipped",
                extra={"tick_id": report.tick_id, "error": e.message}
            )
            report.errors.append(e.message)
            return

        hours = int(self.incomplete_threshold.total_seconds() // 3600)
        to_dispatch: List[Tuple[Subtask, NotificationEvent]] = []
        for unit in units:
            if not unit.is_monitored:
                continue
            event = NotificationEvent(
                id=None,
                task_id=unit.task_id,
                subtask_id=unit.id,
                action=ActionTag.DELAY_REPORTED.value,
                details=delay_detail(hours),
                created_at=now,
            )
            try:
                async with self._unit_lock(unit.id):
                    stored = await self._store.append_event_if_absent(event, since=since)
            except StoreUnavailableException as e:
                logger.warning(
                    "Delay event not written",
                    extra={"subtask_id": unit.id, "error": e.message}
                )
                report.errors.append(f"subtask {unit.id}: {e.message}")
                continue

            if stored is not None:
                logger.info("Delay reported", extra={"subtask_id": unit.id, "hours": hours})
                report.emitted.append(stored)
                to_dispatch.append((unit, stored))

        await self._dispatch_all(to_dispatch, report)
