"""Scheduler service.

The scheduler is an explicit service, constructed with a store, an engine and
a clock, started once per process. Each tick makes three scans:

1. active schedules whose ``next_run_at`` has passed are fired and advanced;
2. runs paused on a delay whose ``resume_at`` has passed are resumed;
3. pending or running runs nobody has written to for ``stall_timeout`` seconds
   (left behind by a crashed worker) are taken over.

Every item is claimed with a compare-and-set write before any work happens and
is processed inside its own failure boundary, so one bad schedule or run never
blocks the others. Runs are handed to the engine's tasks; a tick never waits
for a run to finish.
"""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from croniter import croniter

from litestar_automation.core.types import ScheduleType
from litestar_automation.engine.clock import utc
from litestar_automation.exceptions import SchedulingError, StaleRunError

if TYPE_CHECKING:
    from uuid import UUID

    from litestar_automation.core.models import WorkflowRun, WorkflowSchedule
    from litestar_automation.core.protocols import Clock, WorkflowStore
    from litestar_automation.engine.local import AutomationEngine

__all__ = ["Scheduler", "TickReport", "compute_next_run"]

logger = logging.getLogger(__name__)


def compute_next_run(schedule: WorkflowSchedule, now: datetime) -> datetime | None:
    """Compute the first fire time of ``schedule`` strictly after ``now``.

    ``once`` schedules have no next fire time. ``interval`` schedules step
    forward from their current ``next_run_at`` in whole periods, so missed
    periods are skipped instead of replayed. ``recurring`` schedules evaluate
    their cron expression in the schedule's timezone.

    Args:
        schedule: The schedule being advanced.
        now: The current time.

    Returns:
        The next fire time in UTC, or ``None`` for ``once`` schedules.

    Raises:
        SchedulingError: If the interval, cron expression or timezone is unusable.

    Example:
        >>> schedule = WorkflowSchedule(workflow_id, ScheduleType.RECURRING, now, cron_expression="0 9 * * 1-5")
        >>> compute_next_run(schedule, now)
        datetime.datetime(2024, 1, 8, 9, 0, tzinfo=datetime.timezone.utc)
    """
    schedule_type = ScheduleType(schedule.schedule_type)
    if schedule_type == ScheduleType.ONCE:
        return None

    if schedule_type == ScheduleType.INTERVAL:
        interval = schedule.interval_seconds
        if not interval or interval <= 0:
            msg = f"schedule {schedule.id} has no positive interval"
            raise SchedulingError(schedule.id, msg)
        step = timedelta(seconds=interval)
        next_run = utc(schedule.next_run_at)
        if next_run <= now:
            periods = math.floor((now - next_run) / step) + 1
            next_run += step * periods
        return next_run

    if not schedule.cron_expression:
        msg = f"schedule {schedule.id} has no cron expression"
        raise SchedulingError(schedule.id, msg)
    try:
        zone = ZoneInfo(schedule.timezone or "UTC")
        next_run = croniter(schedule.cron_expression, now.astimezone(zone)).get_next(datetime)
    except (ValueError, KeyError, TypeError, ZoneInfoNotFoundError) as exc:
        msg = f"cannot compute next run of schedule {schedule.id} from cron {schedule.cron_expression!r}: {exc}"
        raise SchedulingError(schedule.id, msg) from exc
    return next_run.astimezone(timezone.utc)


@dataclass
class TickReport:
    """What one scheduler tick did.

    Attributes:
        fired: Runs created by due schedules.
        resumed: Delay-paused runs resumed.
        recovered: Stalled runs taken over.
        deactivated: Schedules switched off (fired ``once`` schedules and broken ones).
        errors: Diagnostics of items that failed inside their boundary.
    """

    fired: list[UUID] = field(default_factory=list)
    resumed: list[UUID] = field(default_factory=list)
    recovered: list[UUID] = field(default_factory=list)
    deactivated: list[UUID] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def idle(self) -> bool:
        """Whether the tick found nothing to do."""
        return not (self.fired or self.resumed or self.recovered or self.deactivated or self.errors)


class Scheduler:
    """Tick loop firing schedules and resuming paused runs.

    Attributes:
        store: Store the scheduler scans.
        engine: Engine that executes fired and resumed runs.
        clock: Time source; defaults to the engine's clock.
        tick_interval: Seconds between ticks of the background loop.
        stall_timeout: Seconds after which an untouched pending or running run
            is taken over. ``None`` disables recovery.

    Example:
        >>> scheduler = Scheduler(store, engine, tick_interval=5)
        >>> await scheduler.start()
        >>> ...
        >>> await scheduler.stop()
    """

    def __init__(
        self,
        store: WorkflowStore,
        engine: AutomationEngine,
        *,
        clock: Clock | None = None,
        tick_interval: float = 5.0,
        stall_timeout: float | None = 300.0,
    ) -> None:
        self.store = store
        self.engine = engine
        self.clock = clock or engine.clock
        self.tick_interval = tick_interval
        self.stall_timeout = stall_timeout
        self._task: asyncio.Task[None] | None = None
        self._stopping: asyncio.Event | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the background tick loop. Starting twice is a no-op."""
        if self.running:
            return
        self._stopping = asyncio.Event()
        self._task = asyncio.create_task(self._loop(self._stopping))
        logger.info("Scheduler started (tick every %.1fs)", self.tick_interval)

    async def stop(self) -> None:
        """Stop the tick loop after the current tick finishes."""
        if self._task is None or self._stopping is None:
            return
        self._stopping.set()
        await self._task
        self._task = None
        logger.info("Scheduler stopped")

    async def _loop(self, stopping: asyncio.Event) -> None:
        while not stopping.is_set():
            try:
                await self.tick()
            except Exception:  # noqa: BLE001
                logger.exception("Scheduler tick failed")
            try:
                await asyncio.wait_for(stopping.wait(), timeout=self.tick_interval)
            except asyncio.TimeoutError:
                pass

    async def tick(self) -> TickReport:
        """Run one scan of schedules, delayed runs and stalled runs.

        A tick with nothing due performs no writes.

        Returns:
            What the tick did.
        """
        now = self.clock.now()
        report = TickReport()

        for schedule in await self.store.list_due_schedules(now):
            try:
                await self._fire(schedule, now, report)
            except Exception as exc:  # noqa: BLE001
                logger.exception("Schedule %s failed to fire", schedule.id)
                report.errors.append(f"schedule {schedule.id}: {exc}")

        for run in await self.store.list_due_runs(now):
            await self._resume(run, report)

        if self.stall_timeout is not None:
            for run in await self.store.list_stalled_runs(now - timedelta(seconds=self.stall_timeout)):
                await self._recover(run, report)

        if not report.idle:
            logger.debug(
                "Tick fired=%d resumed=%d recovered=%d deactivated=%d errors=%d",
                len(report.fired),
                len(report.resumed),
                len(report.recovered),
                len(report.deactivated),
                len(report.errors),
            )
        return report

    async def _fire(self, schedule: WorkflowSchedule, now: datetime, report: TickReport) -> None:
        expected = schedule.lock_version
        try:
            next_run = compute_next_run(schedule, now)
        except SchedulingError as exc:
            logger.warning("Deactivating schedule %s: %s", schedule.id, exc)
            broken = replace(schedule, is_active=False, last_error=str(exc), lock_version=expected + 1)
            if await self.store.claim_schedule(broken, expected):
                report.deactivated.append(schedule.id)
            return

        definition = await self.store.get_definition(schedule.workflow_id)
        runs: list[WorkflowRun] = []
        last_error = None
        if definition is None:
            last_error = f"workflow {schedule.workflow_id} not found"
            next_run = None
        elif definition.is_active:
            trigger_data = {"source": "schedule", "scheduleId": str(schedule.id), "scheduledAt": now.isoformat()}
            runs.append(self.engine.new_run(definition, trigger_data))
        else:
            logger.info("Schedule %s skipped: workflow %s is %s", schedule.id, definition.id, definition.status)

        advanced = replace(
            schedule,
            next_run_at=next_run or schedule.next_run_at,
            is_active=next_run is not None,
            last_run_at=now if runs else schedule.last_run_at,
            last_error=last_error,
            lock_version=expected + 1,
        )
        if not await self.store.claim_schedule(advanced, expected, runs):
            logger.info("Schedule %s was claimed by another scheduler", schedule.id)
            return

        if not advanced.is_active:
            report.deactivated.append(schedule.id)
        for run in runs:
            report.fired.append(run.id)
            await self.engine.launch(run)

    async def _resume(self, run: WorkflowRun, report: TickReport) -> None:
        try:
            await self.engine.resume_run(run)
        except StaleRunError:
            logger.debug("Run %s was resumed by another worker", run.id)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Run %s failed to resume", run.id)
            report.errors.append(f"run {run.id}: {exc}")
        else:
            report.resumed.append(run.id)

    async def _recover(self, run: WorkflowRun, report: TickReport) -> None:
        try:
            recovered = await self.engine.recover_run(run)
        except StaleRunError:
            logger.debug("Run %s was recovered by another worker", run.id)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Run %s failed to recover", run.id)
            report.errors.append(f"run {run.id}: {exc}")
        else:
            if recovered is not None:
                report.recovered.append(run.id)
