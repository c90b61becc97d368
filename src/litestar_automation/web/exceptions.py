"""Exception handling for automation web endpoints.

This module maps the engine's exception hierarchy onto HTTP responses so
controllers can let domain errors propagate.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from litestar import Response
from litestar.status_codes import (
    HTTP_400_BAD_REQUEST,
    HTTP_404_NOT_FOUND,
    HTTP_409_CONFLICT,
    HTTP_500_INTERNAL_SERVER_ERROR,
)

from litestar_automation.exceptions import (
    AutomationError,
    InvalidTransitionError,
    ScheduleNotFoundError,
    StaleRunError,
    StepAlreadyRecordedError,
    TemplateNotFoundError,
    WorkflowNotActiveError,
    WorkflowNotFoundError,
    WorkflowRunNotFoundError,
    WorkflowValidationError,
)

if TYPE_CHECKING:  # pragma: no cover
    from litestar import Request

__all__ = ["automation_error_handler", "exception_handlers"]

logger = logging.getLogger(__name__)

_STATUS_CODES: tuple[tuple[type[AutomationError], int, str], ...] = (
    (WorkflowNotFoundError, HTTP_404_NOT_FOUND, "workflow_not_found"),
    (WorkflowRunNotFoundError, HTTP_404_NOT_FOUND, "run_not_found"),
    (ScheduleNotFoundError, HTTP_404_NOT_FOUND, "schedule_not_found"),
    (TemplateNotFoundError, HTTP_404_NOT_FOUND, "template_not_found"),
    (WorkflowValidationError, HTTP_400_BAD_REQUEST, "validation_error"),
    (WorkflowNotActiveError, HTTP_409_CONFLICT, "workflow_not_active"),
    (InvalidTransitionError, HTTP_409_CONFLICT, "invalid_transition"),
    (StepAlreadyRecordedError, HTTP_409_CONFLICT, "step_already_recorded"),
    (StaleRunError, HTTP_409_CONFLICT, "conflict"),
)


def automation_error_handler(
    _request: Request,
    exc: AutomationError,
) -> Response:
    """Exception handler for :class:`AutomationError`.

    Not-found errors become 404, validation errors 400 with the list of
    problems, and state conflicts 409. Anything else is a 500.

    Args:
        request: The Litestar request object.
        exc: The raised engine error.

    Returns:
        JSON response with an ``error`` code and a ``message``.
    """
    for exc_type, status_code, code in _STATUS_CODES:
        if isinstance(exc, exc_type):
            break
    else:
        logger.error("Unhandled automation error: %s", exc)
        status_code, code = HTTP_500_INTERNAL_SERVER_ERROR, "automation_error"

    content: dict[str, Any] = {"error": code, "message": str(exc)}
    if isinstance(exc, WorkflowValidationError):
        content["errors"] = exc.errors
    return Response(content=content, status_code=status_code, media_type="application/json")


exception_handlers = {AutomationError: automation_error_handler}
"""Handlers to register on the app or router."""
