"""Tests for the built-in template gallery."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from litestar_automation.core.events import MessageEvent
from litestar_automation.core.types import DefinitionStatus, RunStatus, TriggerType
from litestar_automation.templates import DEFAULT_TEMPLATES, seed_default_templates

if TYPE_CHECKING:
    from litestar_automation.engine.local import AutomationEngine
    from litestar_automation.engine.registry import WorkflowRegistry
    from tests.conftest import RecordingActionProvider


@pytest.mark.unit
@pytest.mark.asyncio
class TestSeedDefaultTemplates:
    """Tests for seed_default_templates."""

    async def test_seeds_every_blueprint_once(self, registry: WorkflowRegistry) -> None:
        created = await seed_default_templates(registry)

        assert len(created) == len(DEFAULT_TEMPLATES) == 5
        assert {template.category for template in created} == {
            "onboarding",
            "notification",
            "approval",
            "feedback",
            "incident",
        }
        assert await seed_default_templates(registry) == []
        assert len(await registry.list_templates()) == 5

    async def test_skips_when_templates_exist(self, registry: WorkflowRegistry) -> None:
        await registry.create_template("Custom", TriggerType.MANUAL, {}, [])

        assert await seed_default_templates(registry) == []

    async def test_filter_by_category(self, registry: WorkflowRegistry) -> None:
        await seed_default_templates(registry)

        incident = await registry.list_templates(category="incident")

        assert [template.name for template in incident] == ["Incident Response"]
        assert incident[0].trigger_config == {"keyword": "incident"}


@pytest.mark.integration
@pytest.mark.asyncio
class TestSeededTemplatesRun:
    """Seeded templates produce definitions the engine can execute."""

    async def test_incident_response_escalates_critical_reports(
        self,
        registry: WorkflowRegistry,
        engine: AutomationEngine,
        provider: RecordingActionProvider,
    ) -> None:
        await seed_default_templates(registry)
        (template,) = await registry.list_templates(category="incident")
        definition = await registry.instantiate_template(template.id)
        await registry.set_status(definition.id, DefinitionStatus.ACTIVE)

        runs = await engine.handle_event(MessageEvent("CRITICAL incident in prod", channel_id="ops"))
        await engine.wait_idle()

        run = await engine.get_run(runs[0].id)
        assert run.status == RunStatus.COMPLETED
        assert provider.messages == ["New incident reported: CRITICAL incident in prod"]
        assert provider.called == ["send_message", "create_task", "send_email", "api_call"]

    async def test_incident_response_skips_email_otherwise(
        self,
        registry: WorkflowRegistry,
        engine: AutomationEngine,
        provider: RecordingActionProvider,
    ) -> None:
        await seed_default_templates(registry)
        (template,) = await registry.list_templates(category="incident")
        definition = await registry.instantiate_template(template.id)
        await registry.set_status(definition.id, DefinitionStatus.ACTIVE)

        await engine.handle_event(MessageEvent("minor incident: printer jammed"))
        await engine.wait_idle()

        assert provider.called == ["send_message", "create_task", "api_call"]
