"""Action executor.

The executor runs a definition's compiled action program one step at a time.
Each call to :meth:`ActionExecutor.step` executes, evaluates or skips exactly
one program index and records the outcome with exactly one ledger write, so a
crash between steps never re-executes a recorded step; a resumed run simply
continues at ``current_step_index + 1``. An effect is additionally marked in
flight before the provider sees it, so a crash during the call is detected
instead of repeated.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, replace
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from litestar_automation.core.context import build_context
from litestar_automation.core.models import ActionResult, StepResult
from litestar_automation.core.program import (
    ApprovalStep,
    ConditionalSkip,
    DelayStep,
    EffectStep,
    UnknownAction,
    compile_program,
)
from litestar_automation.core.types import RunStatus
from litestar_automation.engine.conditions import ConditionEvaluator
from litestar_automation.engine.templating import render_config
from litestar_automation.exceptions import ActionError, InvalidTransitionError
from litestar_automation.providers.base import dispatch_action

if TYPE_CHECKING:
    from litestar_automation.core.models import WorkflowDefinition, WorkflowRun
    from litestar_automation.core.program import ProgramStep
    from litestar_automation.core.protocols import ActionProvider, Clock
    from litestar_automation.core.types import Context
    from litestar_automation.engine.ledger import RunLedger

__all__ = ["ActionExecutor", "RunOutcome"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunOutcome:
    """Result of advancing a run by one tick.

    Attributes:
        run: The run as persisted after the tick.
        step: The program step that was handled, or ``None`` when the tick only
            completed a run whose program was already exhausted.
        result: The ledger entry written for ``step``.
    """

    run: WorkflowRun
    step: ProgramStep | None = None
    result: StepResult | None = None

    @property
    def status(self) -> RunStatus:
        return self.run.status


class ActionExecutor:
    """Advances runs through their action program.

    Attributes:
        ledger: Ledger every step is recorded through.
        provider: Adapter for effectful actions.
        evaluator: Evaluator for ``condition`` steps.
    """

    def __init__(
        self,
        ledger: RunLedger,
        provider: ActionProvider,
        evaluator: ConditionEvaluator | None = None,
    ) -> None:
        self.ledger = ledger
        self.provider = provider
        self.evaluator = evaluator or ConditionEvaluator()

    @property
    def clock(self) -> Clock:
        return self.ledger.clock

    async def drive(self, run: WorkflowRun, definition: WorkflowDefinition) -> WorkflowRun:
        """Step a running run until it pauses, completes or fails.

        Args:
            run: A run in ``running`` status.
            definition: The definition snapshot the run is pinned to.

        Returns:
            The run as last persisted.
        """
        while run.status == RunStatus.RUNNING:
            outcome = await self.step(run, definition)
            run = outcome.run
        return run

    async def step(self, run: WorkflowRun, definition: WorkflowDefinition) -> RunOutcome:
        """Advance ``run`` by exactly one program counter tick.

        Args:
            run: A run in ``running`` status.
            definition: The definition snapshot the run is pinned to.

        Returns:
            The outcome of the tick.

        Raises:
            InvalidTransitionError: If the run is not running.
            StaleRunError: If another worker advanced the run in the meantime.
        """
        if run.status != RunStatus.RUNNING:
            raise InvalidTransitionError(run.status, RunStatus.RUNNING, "only running runs can be stepped")

        program = compile_program(definition.actions)
        index = run.next_index
        if index >= len(program):
            return RunOutcome(await self.ledger.transition(run, RunStatus.COMPLETED))

        program_step = program[index]
        context = build_context(run)
        last_index = len(program) - 1

        if isinstance(program_step, UnknownAction):
            return await self._fail(run, program_step, program_step.reason)
        if isinstance(program_step, ConditionalSkip):
            return await self._condition(run, program_step, context, last_index)
        if isinstance(program_step, DelayStep):
            return await self._delay(run, program_step)
        return await self._effect(run, program_step, context, last_index)

    async def _condition(
        self,
        run: WorkflowRun,
        program_step: ConditionalSkip,
        context: Context,
        last_index: int,
    ) -> RunOutcome:
        nodes = [replace(node, value=render_config(context, node.value)) for node in program_step.conditions]
        met = self.evaluator.evaluate(nodes, context)
        skipped = 0 if met else program_step.count
        target = min(program_step.index + skipped, last_index)
        logger.debug("Run %s condition at step %d met=%s", run.id, program_step.index, met)

        output = {"conditionMet": met, "skipped": skipped}
        result = self._result(program_step.index, program_step.action_type, True, output)
        status = RunStatus.COMPLETED if target >= last_index else RunStatus.RUNNING
        run = await self.ledger.record_step(run, result, current_step_index=target, status=status)
        return RunOutcome(run, program_step, result)

    async def _delay(self, run: WorkflowRun, program_step: DelayStep) -> RunOutcome:
        resume_at = self.clock.now() + timedelta(seconds=program_step.seconds)
        result = self._result(
            program_step.index,
            program_step.action_type,
            True,
            {"seconds": program_step.seconds, "resumeAt": resume_at.isoformat()},
        )
        run = await self.ledger.record_step(
            run,
            result,
            current_step_index=program_step.index,
            status=RunStatus.PAUSED,
            resume_at=resume_at,
        )
        logger.debug("Run %s paused until %s", run.id, resume_at.isoformat())
        return RunOutcome(run, program_step, result)

    async def _effect(
        self,
        run: WorkflowRun,
        program_step: EffectStep | ApprovalStep,
        context: Context,
        last_index: int,
    ) -> RunOutcome:
        config = render_config(context, program_step.config)
        run = await self.ledger.mark_in_flight(run, program_step.index)
        try:
            raw = await dispatch_action(self.provider, program_step.action_type, config, context)
            action_result = self._coerce(raw)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "Action %s at step %d of run %s raised",
                program_step.action_type,
                program_step.index,
                run.id,
                exc_info=True,
            )
            reason = str(exc) or type(exc).__name__
            error = ActionError(program_step.action_type, program_step.index, reason, exc)
            return await self._fail(run, program_step, str(error))

        if not action_result.success:
            reason = action_result.error or "provider reported failure"
            error = ActionError(program_step.action_type, program_step.index, reason)
            return await self._fail(run, program_step, str(error), action_result.output)

        result = self._result(program_step.index, program_step.action_type, True, action_result.output)
        if isinstance(program_step, ApprovalStep):
            run = await self.ledger.record_step(
                run,
                result,
                current_step_index=program_step.index,
                status=RunStatus.PAUSED,
                resume_at=None,
            )
            logger.info("Run %s waiting for approval at step %d", run.id, program_step.index)
        else:
            status = RunStatus.COMPLETED if program_step.index >= last_index else RunStatus.RUNNING
            run = await self.ledger.record_step(run, result, current_step_index=program_step.index, status=status)
        return RunOutcome(run, program_step, result)

    async def _fail(
        self,
        run: WorkflowRun,
        program_step: ProgramStep,
        message: str,
        output: dict[str, Any] | None = None,
    ) -> RunOutcome:
        output = {**(output or {}), "error": message}
        result = self._result(program_step.index, str(program_step.action_type), False, output)
        run = await self.ledger.record_step(
            run,
            result,
            current_step_index=program_step.index,
            status=RunStatus.FAILED,
            error_message=message,
        )
        logger.warning("Run %s failed at step %d: %s", run.id, program_step.index, message)
        return RunOutcome(run, program_step, result)

    def _result(self, index: int, action_type: str, success: bool, output: dict[str, Any]) -> StepResult:
        return StepResult(
            index=index,
            action_type=str(action_type),
            success=success,
            output=output,
            timestamp=self.clock.now(),
        )

    @staticmethod
    def _coerce(value: Any) -> ActionResult:
        """Accept an :class:`ActionResult` or a ``{"success", "output", "error"}`` map."""
        if isinstance(value, ActionResult):
            return value
        if isinstance(value, Mapping):
            return ActionResult(
                success=bool(value.get("success")),
                output=dict(value.get("output") or {}),
                error=value.get("error"),
            )
        msg = f"action provider returned {type(value).__name__}, expected ActionResult"
        raise TypeError(msg)
