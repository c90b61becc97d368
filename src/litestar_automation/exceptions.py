"""Exception hierarchy for litestar-automation."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from uuid import UUID

__all__ = (
    "ActionError",
    "AutomationError",
    "EvaluationError",
    "InvalidTransitionError",
    "ScheduleNotFoundError",
    "SchedulingError",
    "StaleRunError",
    "StepAlreadyRecordedError",
    "TemplateNotFoundError",
    "WorkflowNotActiveError",
    "WorkflowNotFoundError",
    "WorkflowRunNotFoundError",
    "WorkflowValidationError",
)


class AutomationError(Exception):
    """Base exception for all litestar-automation errors.

    All exceptions raised by litestar-automation inherit from this class so
    callers can catch every engine error with a single except clause.
    """


class WorkflowNotFoundError(AutomationError):
    """Raised when a workflow definition is not found.

    Attributes:
        workflow_id: The ID of the definition that was not found.
        version: The specific version requested, if any.
    """

    def __init__(self, workflow_id: str | UUID, version: int | None = None) -> None:
        """Initialize the exception with definition details.

        Args:
            workflow_id: The ID of the definition that was not found.
            version: The specific version requested, if any.
        """
        self.workflow_id = workflow_id
        self.version = version
        msg = f"Workflow '{workflow_id}'"
        if version is not None:
            msg += f" version {version}"
        msg += " not found"
        super().__init__(msg)


class WorkflowRunNotFoundError(AutomationError):
    """Raised when a workflow run is not found.

    Attributes:
        run_id: The ID of the run that was not found.
    """

    def __init__(self, run_id: str | UUID) -> None:
        self.run_id = run_id
        super().__init__(f"Workflow run '{run_id}' not found")


class ScheduleNotFoundError(AutomationError):
    """Raised when a workflow schedule is not found."""

    def __init__(self, schedule_id: str | UUID) -> None:
        self.schedule_id = schedule_id
        super().__init__(f"Schedule '{schedule_id}' not found")


class TemplateNotFoundError(AutomationError):
    """Raised when a workflow template is not found."""

    def __init__(self, template_id: str | UUID) -> None:
        self.template_id = template_id
        super().__init__(f"Template '{template_id}' not found")


class WorkflowNotActiveError(AutomationError):
    """Raised when execution is requested for a definition that is not active.

    Only ``active`` definitions may be run, whether the trigger is automatic
    or an explicit manual request.

    Attributes:
        workflow_id: The ID of the definition.
        status: The definition's current status.
    """

    def __init__(self, workflow_id: str | UUID, status: str) -> None:
        self.workflow_id = workflow_id
        self.status = status
        super().__init__(f"Workflow '{workflow_id}' is not active (status: {status})")


class WorkflowValidationError(AutomationError):
    """Raised when a definition, schedule or template fails validation.

    This is the save-time error: malformed trigger configs, unknown action
    kinds, bad condition operators, invalid cron expressions and the like are
    all rejected before anything is persisted.

    Attributes:
        errors: List of validation error messages.
    """

    def __init__(self, errors: list[str]) -> None:
        """Initialize the exception with validation errors.

        Args:
            errors: List of validation error messages.
        """
        self.errors = errors
        super().__init__(f"Workflow validation failed: {'; '.join(errors)}")


class EvaluationError(AutomationError):
    """Raised internally when a condition cannot be evaluated.

    The condition evaluator catches this and resolves the condition to
    ``False``; it never escapes :meth:`ConditionEvaluator.evaluate`.
    """


class ActionError(AutomationError):
    """Raised when an action provider reports a failure.

    Attributes:
        action_type: The action kind that failed.
        index: The program index of the failing step.
        cause: The underlying exception, if any.
    """

    def __init__(
        self,
        action_type: str,
        index: int,
        message: str,
        cause: BaseException | None = None,
    ) -> None:
        self.action_type = action_type
        self.index = index
        self.cause = cause
        super().__init__(f"Action '{action_type}' at step {index} failed: {message}")


class SchedulingError(AutomationError):
    """Raised when the next fire time of a schedule cannot be computed.

    Attributes:
        schedule_id: The schedule that could not be advanced.
    """

    def __init__(self, schedule_id: str | UUID | None, message: str) -> None:
        self.schedule_id = schedule_id
        super().__init__(message)


class InvalidTransitionError(AutomationError):
    """Raised when a run status transition violates the run state machine.

    Attributes:
        from_status: The status being transitioned from.
        to_status: The status being transitioned to.
    """

    def __init__(self, from_status: str, to_status: str, reason: str | None = None) -> None:
        self.from_status = from_status
        self.to_status = to_status
        msg = f"Invalid run transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class StepAlreadyRecordedError(AutomationError):
    """Raised when a step result is recorded for an index that was already passed.

    Attributes:
        run_id: The run being written.
        index: The rejected step index.
        current_step_index: The run's persisted program counter.
    """

    def __init__(self, run_id: str | UUID, index: int, current_step_index: int) -> None:
        self.run_id = run_id
        self.index = index
        self.current_step_index = current_step_index
        super().__init__(
            f"Run '{run_id}' already recorded up to step {current_step_index}; refusing step {index}"
        )


class StaleRunError(AutomationError):
    """Raised when a run write loses an optimistic concurrency check.

    Another worker changed the run after it was read, so this worker no
    longer owns it and must stop advancing it.
    """

    def __init__(self, run_id: str | UUID, expected_version: int) -> None:
        self.run_id = run_id
        self.expected_version = expected_version
        super().__init__(f"Run '{run_id}' changed since version {expected_version}")
