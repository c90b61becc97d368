"""Run ledger: the only writer of workflow run state.

Every change to a run goes through :class:`RunLedger`, which enforces these
rules before anything is persisted:

- the run state machine (``pending -> running -> paused/completed/failed``,
  ``paused -> running``);
- step results are append-only and a step index at or below the persisted
  ``current_step_index`` is never recorded again;
- an effect is marked in flight before it is handed to the provider, so a
  run that stalls mid-effect is failed instead of dispatching it twice;
- writes are compare-and-set on ``lock_version``, so a worker that lost
  ownership of a run cannot overwrite the new owner's progress.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import TYPE_CHECKING, Any

from litestar_automation.core.types import RunStatus
from litestar_automation.engine.clock import SystemClock
from litestar_automation.exceptions import (
    InvalidTransitionError,
    StaleRunError,
    StepAlreadyRecordedError,
)

if TYPE_CHECKING:
    from uuid import UUID

    from litestar_automation.core.models import StepResult, WorkflowRun
    from litestar_automation.core.protocols import Clock, WorkflowStore

__all__ = ["ALLOWED_TRANSITIONS", "RunLedger"]

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[RunStatus, frozenset[RunStatus]] = {
    RunStatus.PENDING: frozenset({RunStatus.RUNNING}),
    RunStatus.RUNNING: frozenset({RunStatus.PAUSED, RunStatus.COMPLETED, RunStatus.FAILED}),
    RunStatus.PAUSED: frozenset({RunStatus.RUNNING}),
    RunStatus.COMPLETED: frozenset(),
    RunStatus.FAILED: frozenset(),
}
"""Run state machine. Terminal statuses have no outgoing transitions."""


class RunLedger:
    """Durable, append-only record of run state.

    Ledger methods never mutate the run they are given; they return the
    persisted copy, whose ``lock_version`` is one higher.

    Attributes:
        store: The workflow store runs are written to.
        clock: Source of ``updated_at`` and ``completed_at`` timestamps.
    """

    def __init__(self, store: WorkflowStore, clock: Clock | None = None) -> None:
        self.store = store
        self.clock = clock or SystemClock()

    @staticmethod
    def check_transition(current: RunStatus, new_status: RunStatus) -> None:
        """Raise :class:`InvalidTransitionError` unless ``current -> new_status`` is allowed."""
        if new_status not in ALLOWED_TRANSITIONS[RunStatus(current)]:
            raise InvalidTransitionError(current, new_status)

    async def transition(self, run: WorkflowRun, new_status: RunStatus, **extra: Any) -> WorkflowRun:
        """Move a run to ``new_status`` and persist it.

        Args:
            run: The run as last read from the store.
            new_status: The status to move to.
            **extra: Other run fields to set in the same write.

        Returns:
            The persisted run.

        Raises:
            InvalidTransitionError: If the state machine forbids the transition.
            StaleRunError: If the run changed in the store since it was read.
        """
        self.check_transition(run.status, new_status)
        return await self._write(run, status=new_status, **extra)

    async def reclaim(self, run: WorkflowRun) -> WorkflowRun:
        """Take ownership of a stalled ``pending`` or ``running`` run without changing its status.

        The version bump makes any write from the previous owner fail.

        Raises:
            InvalidTransitionError: If the run is not pending or running.
            StaleRunError: If the run changed in the store since it was read.
        """
        if run.status not in (RunStatus.PENDING, RunStatus.RUNNING):
            raise InvalidTransitionError(run.status, run.status, "only pending or running runs can be reclaimed")
        return await self._write(run)

    async def mark_in_flight(self, run: WorkflowRun, index: int) -> WorkflowRun:
        """Persist that the effect at ``index`` is about to be dispatched.

        The marker is cleared by the :meth:`record_step` that records the
        effect's outcome.

        Raises:
            InvalidTransitionError: If the run is not running or ``index`` is not its next step.
            StaleRunError: If the run changed in the store since it was read.
        """
        if run.status != RunStatus.RUNNING or index != run.next_index:
            msg = f"step {index} cannot be dispatched by a {run.status} run at step {run.next_index}"
            raise InvalidTransitionError(run.status, run.status, msg)
        return await self._write(run, in_flight_index=index)

    async def record_step(
        self,
        run: WorkflowRun,
        step_result: StepResult,
        *,
        current_step_index: int,
        status: RunStatus = RunStatus.RUNNING,
        **extra: Any,
    ) -> WorkflowRun:
        """Append a step result and advance the program counter in one write.

        Args:
            run: The run as last read from the store.
            step_result: The result to append.
            current_step_index: The new last-recorded index. Normally
                ``step_result.index``; larger when a condition skips steps.
            status: The run's status after this step.
            **extra: Other run fields to set in the same write.

        Returns:
            The persisted run.

        Raises:
            StepAlreadyRecordedError: If ``step_result.index`` is not past the persisted index.
            InvalidTransitionError: If ``status`` is not reachable from the run's status.
            StaleRunError: If the run changed in the store since it was read.
        """
        if step_result.index <= run.current_step_index:
            raise StepAlreadyRecordedError(run.id, step_result.index, run.current_step_index)
        if current_step_index < step_result.index:
            msg = f"program counter cannot move behind step {step_result.index}"
            raise InvalidTransitionError(run.status, status, msg)
        if status != run.status:
            self.check_transition(run.status, status)

        return await self._write(
            run,
            status=status,
            current_step_index=current_step_index,
            step_results=[*run.step_results, step_result],
            in_flight_index=None,
            **extra,
        )

    async def history(self, workflow_id: UUID, limit: int | None = None) -> list[WorkflowRun]:
        """Return a definition's runs, newest first."""
        return await self.store.list_runs(workflow_id, limit=limit)

    async def _write(self, run: WorkflowRun, **changes: Any) -> WorkflowRun:
        now = self.clock.now()
        status = changes.get("status", run.status)
        if RunStatus(status).is_terminal and "completed_at" not in changes:
            changes["completed_at"] = now
        updated = replace(run, updated_at=now, lock_version=run.lock_version + 1, **changes)

        if not await self.store.save_run(updated, expected_version=run.lock_version):
            logger.info("Lost ownership of run %s at version %d", run.id, run.lock_version)
            raise StaleRunError(run.id, run.lock_version)
        return updated
