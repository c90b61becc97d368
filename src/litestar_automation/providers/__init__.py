"""Action provider base classes."""

from __future__ import annotations

from litestar_automation.providers.base import EFFECT_ACTIONS, BaseActionProvider, dispatch_action

__all__ = ["EFFECT_ACTIONS", "BaseActionProvider", "dispatch_action"]
