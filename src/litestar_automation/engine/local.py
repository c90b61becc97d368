"""Local async automation engine.

This module provides the in-process engine that turns trigger matches into
runs and drives them with asyncio tasks. It is suitable for single-instance
deployments and for tests; several instances can share one database store
because every claim is a compare-and-set write.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from litestar_automation.core.events import ManualTrigger
from litestar_automation.core.models import WorkflowRun
from litestar_automation.core.types import DefinitionStatus, RunStatus
from litestar_automation.engine.clock import SystemClock
from litestar_automation.engine.executor import ActionExecutor
from litestar_automation.engine.ledger import RunLedger
from litestar_automation.engine.matcher import TriggerMatcher
from litestar_automation.exceptions import (
    AutomationError,
    InvalidTransitionError,
    StaleRunError,
    WorkflowNotActiveError,
    WorkflowNotFoundError,
    WorkflowRunNotFoundError,
)

if TYPE_CHECKING:
    from collections.abc import Coroutine
    from uuid import UUID

    from litestar_automation.core.events import TriggerEvent
    from litestar_automation.core.models import WorkflowDefinition
    from litestar_automation.core.protocols import ActionProvider, Clock, EventBus, WorkflowStore
    from litestar_automation.engine.conditions import ConditionEvaluator

__all__ = ["AutomationEngine"]

logger = logging.getLogger(__name__)


class AutomationEngine:
    """In-process engine for workflow runs.

    Every run is executed by its own asyncio task, so one slow run never
    blocks event handling, the scheduler tick or other runs. Within a run,
    steps execute strictly in order.

    Attributes:
        store: Persistence for definitions, runs and schedules.
        clock: Time source shared with the ledger and the scheduler.
        ledger: The run ledger all run writes go through.
        executor: The action executor.
        matcher: The trigger matcher.
        event_bus: Optional event bus for emitting run lifecycle events.
        _running: Map of run IDs to the asyncio tasks driving them.
    """

    def __init__(
        self,
        store: WorkflowStore,
        provider: ActionProvider,
        *,
        clock: Clock | None = None,
        evaluator: ConditionEvaluator | None = None,
        event_bus: EventBus | None = None,
        max_concurrent_runs: int | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            store: The workflow store.
            provider: Adapter for effectful actions.
            clock: Time source; defaults to the system clock.
            evaluator: Condition evaluator; defaults to :class:`ConditionEvaluator`.
            event_bus: Optional event bus implementing ``emit``.
            max_concurrent_runs: Upper bound on runs driven at the same time.
                ``None`` leaves concurrency unbounded.
        """
        self.store = store
        self.clock = clock or SystemClock()
        self.ledger = RunLedger(store, self.clock)
        self.executor = ActionExecutor(self.ledger, provider, evaluator)
        self.matcher = TriggerMatcher(store)
        self.event_bus = event_bus
        self._running: dict[UUID, asyncio.Task[Any]] = {}
        self._semaphore = asyncio.Semaphore(max_concurrent_runs) if max_concurrent_runs else None

    # Run creation

    async def handle_event(self, event: TriggerEvent) -> list[WorkflowRun]:
        """Start one run per active definition ``event`` matches.

        Args:
            event: The inbound event.

        Returns:
            The pending runs that were created, possibly none.
        """
        matches = await self.matcher.match(event)
        return [await self.start_run(match.definition, match.trigger_data, match.triggered_by) for match in matches]

    def new_run(
        self,
        definition: WorkflowDefinition,
        trigger_data: dict[str, Any],
        triggered_by: str | None = None,
    ) -> WorkflowRun:
        """Build, without persisting, a pending run of ``definition``'s current version."""
        now = self.clock.now()
        return WorkflowRun(
            workflow_id=definition.id,
            workflow_version=definition.version,
            status=RunStatus.PENDING,
            trigger_data=dict(trigger_data),
            triggered_by=triggered_by,
            variables=dict(definition.variables or {}),
            current_step_index=-1,
            started_at=now,
            updated_at=now,
        )

    async def start_run(
        self,
        definition: WorkflowDefinition,
        trigger_data: dict[str, Any],
        triggered_by: str | None = None,
    ) -> WorkflowRun:
        """Persist a pending run of ``definition`` and enqueue it for execution.

        Raises:
            WorkflowNotActiveError: If the definition is not active.
        """
        if definition.status != DefinitionStatus.ACTIVE:
            raise WorkflowNotActiveError(definition.id, definition.status)

        run = await self.store.add_run(self.new_run(definition, trigger_data, triggered_by))
        await self.launch(run)
        return run

    async def launch(self, run: WorkflowRun) -> None:
        """Announce an already persisted pending run and enqueue it."""
        logger.info("Created run %s of workflow %s v%d", run.id, run.workflow_id, run.workflow_version)
        await self._emit("run.created", run)
        self.enqueue(run.id)

    async def run_manual(
        self,
        workflow_id: UUID,
        trigger_data: dict[str, Any] | None = None,
        triggered_by: str | None = None,
    ) -> WorkflowRun:
        """Start a definition on explicit request.

        Args:
            workflow_id: The definition to run.
            trigger_data: Trigger data for the run; defaults to ``{"source": "manual"}``.
            triggered_by: User who requested the run.

        Raises:
            WorkflowNotFoundError: If the definition does not exist.
            WorkflowNotActiveError: If the definition is not active.
        """
        definition = await self.store.get_definition(workflow_id)
        if definition is None:
            raise WorkflowNotFoundError(workflow_id)
        trigger = ManualTrigger(workflow_id, trigger_data, triggered_by)
        return await self.start_run(definition, trigger.trigger_data(), trigger.triggered_by())

    # Execution

    def enqueue(self, run_id: UUID) -> None:
        """Execute a pending run in the background."""
        self._spawn(run_id, self.execute_run(run_id))

    async def execute_run(self, run_id: UUID) -> WorkflowRun:
        """Claim a pending run and drive it until it pauses or finishes.

        A run that is no longer pending (another worker claimed it, or it
        already finished) is returned unchanged.

        Raises:
            WorkflowRunNotFoundError: If the run does not exist.
            StaleRunError: If another worker claimed the run first.
        """
        run = await self._get_run(run_id)
        if run.status != RunStatus.PENDING:
            logger.debug("Run %s is %s; nothing to execute", run.id, run.status)
            return run
        run = await self.ledger.transition(run, RunStatus.RUNNING)
        await self._emit("run.started", run)
        return await self._drive(run)

    async def resume_run(self, run: WorkflowRun) -> WorkflowRun:
        """Claim a delay-paused run and continue it in the background.

        Args:
            run: The paused run, as last read from the store.

        Returns:
            The claimed run, now ``running``.

        Raises:
            InvalidTransitionError: If the run is not paused on a delay.
            StaleRunError: If another worker claimed the run first.
        """
        if run.awaiting_approval:
            raise InvalidTransitionError(run.status, RunStatus.RUNNING, "approval pauses are resumed by approve()")
        run = await self.ledger.transition(run, RunStatus.RUNNING, resume_at=None)
        logger.info("Resumed run %s at step %d", run.id, run.next_index)
        await self._emit("run.resumed", run)
        self._spawn(run.id, self._drive(run))
        return run

    async def approve(
        self,
        run_id: UUID,
        approval_status: str = "approved",
        variables: dict[str, Any] | None = None,
    ) -> WorkflowRun:
        """Record an approval decision and continue the run.

        Sets ``variables.approval_status`` so later condition steps can branch
        on the decision, then un-pauses the run. Any decision resumes the run;
        the program itself decides what a rejection means.

        Args:
            run_id: The run paused on an ``approval_request``.
            approval_status: The decision, conventionally ``approved`` or ``rejected``.
            variables: Extra variables to merge into the run.

        Raises:
            WorkflowRunNotFoundError: If the run does not exist.
            InvalidTransitionError: If the run is not waiting for approval.
        """
        run = await self._get_run(run_id)
        if not run.awaiting_approval:
            raise InvalidTransitionError(run.status, RunStatus.RUNNING, "run is not waiting for approval")

        merged = {**run.variables, **(variables or {}), "approval_status": approval_status}
        run = await self.ledger.transition(run, RunStatus.RUNNING, variables=merged)
        logger.info("Run %s approval recorded as %r", run.id, approval_status)
        await self._emit("run.resumed", run)
        self._spawn(run.id, self._drive(run))
        return run

    async def recover_run(self, run: WorkflowRun) -> WorkflowRun | None:
        """Take over a stalled pending or running run and drive it.

        Runs this engine is still driving are left alone. A run that stalled
        while an effect was in flight may or may not have delivered it, so it
        is failed rather than dispatching the effect a second time.

        Returns:
            The reclaimed or failed run, or ``None`` when it is being driven locally.

        Raises:
            StaleRunError: If another worker touched the run first.
        """
        if self.is_running(run.id):
            return None
        if run.in_flight_index is not None:
            msg = f"run stalled while step {run.in_flight_index} was in flight; its outcome is unknown"
            run = await self.ledger.transition(run, RunStatus.FAILED, in_flight_index=None, error_message=msg)
            logger.warning("Failed stalled run %s: %s", run.id, msg)
            await self._emit("run.failed", run)
            return run
        run = await self.ledger.reclaim(run)
        if run.status == RunStatus.PENDING:
            run = await self.ledger.transition(run, RunStatus.RUNNING)
        logger.warning("Recovering stalled run %s at step %d", run.id, run.next_index)
        self._spawn(run.id, self._drive(run))
        return run

    async def get_run(self, run_id: UUID) -> WorkflowRun:
        return await self._get_run(run_id)

    async def history(self, workflow_id: UUID, limit: int | None = None) -> list[WorkflowRun]:
        """Return a definition's runs, newest first."""
        return await self.ledger.history(workflow_id, limit)

    # Task management

    def is_running(self, run_id: UUID) -> bool:
        task = self._running.get(run_id)
        return task is not None and not task.done()

    def get_running_run_ids(self) -> list[UUID]:
        return [run_id for run_id, task in self._running.items() if not task.done()]

    async def wait_idle(self) -> None:
        """Wait until no run is being driven, including runs started meanwhile."""
        while self._running:
            await asyncio.gather(*list(self._running.values()), return_exceptions=True)

    async def close(self, timeout: float | None = None) -> None:
        """Wait for in-flight runs, cancelling whatever is left after ``timeout``.

        Cancelled runs stay ``running`` in the store and are picked up as
        stalled runs by the next scheduler that sees them.
        """
        tasks = list(self._running.values())
        if not tasks:
            return
        _, pending = await asyncio.wait(tasks, timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    def _spawn(self, run_id: UUID, coro: Coroutine[Any, Any, WorkflowRun]) -> None:
        previous = self._running.get(run_id)
        task = asyncio.create_task(self._guarded(run_id, coro, previous))
        self._running[run_id] = task

        def _done(finished: asyncio.Task[Any]) -> None:
            if self._running.get(run_id) is finished:
                del self._running[run_id]

        task.add_done_callback(_done)

    async def _guarded(
        self,
        run_id: UUID,
        coro: Coroutine[Any, Any, WorkflowRun],
        previous: asyncio.Task[Any] | None = None,
    ) -> WorkflowRun | None:
        """Failure boundary around one run's task.

        A task started while an earlier task of the same run is still winding
        down waits for it first, so one run is never driven twice at once.
        """
        if previous is not None and not previous.done():
            await asyncio.wait([previous])
        try:
            return await coro
        except StaleRunError:
            logger.info("Run %s was taken over by another worker", run_id)
        except AutomationError:
            logger.exception("Run %s stopped", run_id)
            await self._fail_quietly(run_id, "run stopped by an engine error")
        except Exception as exc:  # noqa: BLE001
            logger.exception("Run %s crashed", run_id)
            await self._fail_quietly(run_id, f"{type(exc).__name__}: {exc}")
        return None

    async def _drive(self, run: WorkflowRun) -> WorkflowRun:
        definition = await self.store.get_definition(run.workflow_id, run.workflow_version)
        if definition is None:
            msg = f"workflow {run.workflow_id} version {run.workflow_version} no longer exists"
            run = await self.ledger.transition(run, RunStatus.FAILED, error_message=msg)
            await self._emit("run.failed", run)
            return run

        if self._semaphore is None:
            run = await self.executor.drive(run, definition)
        else:
            async with self._semaphore:
                run = await self.executor.drive(run, definition)

        await self._emit(f"run.{run.status}", run)
        return run

    async def _fail_quietly(self, run_id: UUID, message: str) -> None:
        """Best-effort: record ``message`` on a run that could not be driven."""
        try:
            run = await self.store.get_run(run_id)
            if run is not None and run.status == RunStatus.RUNNING:
                await self.ledger.transition(run, RunStatus.FAILED, in_flight_index=None, error_message=message)
        except Exception:  # noqa: BLE001
            logger.exception("Could not mark run %s as failed", run_id)

    async def _get_run(self, run_id: UUID) -> WorkflowRun:
        run = await self.store.get_run(run_id)
        if run is None:
            raise WorkflowRunNotFoundError(run_id)
        return run

    async def _emit(self, event_type: str, run: WorkflowRun) -> None:
        if self.event_bus:
            await self.event_bus.emit(event_type, run_id=run.id, workflow_id=run.workflow_id, status=run.status)
