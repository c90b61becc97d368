"""Workflow automation engine implementations.

This module provides condition evaluation, templating, the action executor,
the run ledger, trigger matching, scheduling and the in-process engine that
ties them together.
"""

from __future__ import annotations

from litestar_automation.engine.clock import SystemClock
from litestar_automation.engine.conditions import ConditionEvaluator
from litestar_automation.engine.executor import ActionExecutor, RunOutcome
from litestar_automation.engine.ledger import RunLedger
from litestar_automation.engine.local import AutomationEngine
from litestar_automation.engine.matcher import TriggerIndex, TriggerMatch, TriggerMatcher
from litestar_automation.engine.memory import InMemoryWorkflowStore
from litestar_automation.engine.registry import WorkflowRegistry
from litestar_automation.engine.scheduler import Scheduler, TickReport, compute_next_run
from litestar_automation.engine.templating import render_config, render_template
from litestar_automation.engine.webhooks import WebhookDispatcher

__all__ = [
    "ActionExecutor",
    "AutomationEngine",
    "ConditionEvaluator",
    "InMemoryWorkflowStore",
    "RunLedger",
    "RunOutcome",
    "Scheduler",
    "SystemClock",
    "TickReport",
    "TriggerIndex",
    "TriggerMatch",
    "TriggerMatcher",
    "WebhookDispatcher",
    "WorkflowRegistry",
    "compute_next_run",
    "render_config",
    "render_template",
]
