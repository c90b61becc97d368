"""Base class for action providers."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from litestar_automation.core.types import CONTROL_ACTIONS, ActionType

if TYPE_CHECKING:
    from litestar_automation.core.models import ActionResult
    from litestar_automation.core.protocols import ActionProvider
    from litestar_automation.core.types import Context

__all__ = ["EFFECT_ACTIONS", "BaseActionProvider", "dispatch_action"]

EFFECT_ACTIONS = frozenset(action for action in ActionType if action not in CONTROL_ACTIONS)
"""Action kinds delivered through an :class:`~litestar_automation.core.protocols.ActionProvider`."""


async def dispatch_action(
    provider: ActionProvider,
    action_type: ActionType | str,
    config: dict[str, Any],
    context: Context,
) -> ActionResult:
    """Call the provider coroutine named after ``action_type``.

    Raises:
        NotImplementedError: If ``action_type`` is not an effectful kind or the provider lacks it.
    """
    if action_type not in EFFECT_ACTIONS:
        msg = f"'{action_type}' is not delivered by an action provider"
        raise NotImplementedError(msg)
    handler = getattr(provider, str(action_type), None)
    if handler is None:
        msg = f"{type(provider).__name__} does not implement '{action_type}'"
        raise NotImplementedError(msg)
    return await handler(config, context)


class BaseActionProvider:
    """Convenience base for providers that support only some action kinds.

    Subclasses override the coroutines they deliver; every other kind raises
    :class:`NotImplementedError`, which fails the run that reaches it.

    Example:
        >>> class EmailOnlyProvider(BaseActionProvider):
        ...     async def send_email(self, config, context):
        ...         await mailer.send(config["to"], config["subject"], config["body"])
        ...         return ActionResult(success=True, output={"to": config["to"]})
    """

    def _unsupported(self, action_type: ActionType) -> NotImplementedError:
        return NotImplementedError(f"{type(self).__name__} does not support '{action_type}'")

    async def send_message(self, config: dict[str, Any], context: Context) -> ActionResult:
        raise self._unsupported(ActionType.SEND_MESSAGE)

    async def send_email(self, config: dict[str, Any], context: Context) -> ActionResult:
        raise self._unsupported(ActionType.SEND_EMAIL)

    async def create_task(self, config: dict[str, Any], context: Context) -> ActionResult:
        raise self._unsupported(ActionType.CREATE_TASK)

    async def api_call(self, config: dict[str, Any], context: Context) -> ActionResult:
        raise self._unsupported(ActionType.API_CALL)

    async def database_update(self, config: dict[str, Any], context: Context) -> ActionResult:
        raise self._unsupported(ActionType.DATABASE_UPDATE)

    async def notify_team(self, config: dict[str, Any], context: Context) -> ActionResult:
        raise self._unsupported(ActionType.NOTIFY_TEAM)

    async def assign_to_user(self, config: dict[str, Any], context: Context) -> ActionResult:
        raise self._unsupported(ActionType.ASSIGN_TO_USER)

    async def update_candidate(self, config: dict[str, Any], context: Context) -> ActionResult:
        raise self._unsupported(ActionType.UPDATE_CANDIDATE)

    async def move_stage(self, config: dict[str, Any], context: Context) -> ActionResult:
        raise self._unsupported(ActionType.MOVE_STAGE)

    async def assign_tag(self, config: dict[str, Any], context: Context) -> ActionResult:
        raise self._unsupported(ActionType.ASSIGN_TAG)

    async def schedule_interview(self, config: dict[str, Any], context: Context) -> ActionResult:
        raise self._unsupported(ActionType.SCHEDULE_INTERVIEW)

    async def update_score(self, config: dict[str, Any], context: Context) -> ActionResult:
        raise self._unsupported(ActionType.UPDATE_SCORE)

    async def approval_request(self, config: dict[str, Any], context: Context) -> ActionResult:
        raise self._unsupported(ActionType.APPROVAL_REQUEST)
