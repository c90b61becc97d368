"""End-to-end integration tests for recruiting workflows.

These tests drive the registry, engine, scheduler and webhook dispatcher
together over one in-memory store and a fake clock.
"""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING

import pytest

from litestar_automation.core.events import DomainEvent, FormSubmission
from litestar_automation.core.types import DefinitionStatus, RunStatus, ScheduleType, TriggerType
from litestar_automation.engine.scheduler import Scheduler
from litestar_automation.engine.webhooks import WebhookDispatcher
from tests.conftest import condition, message

if TYPE_CHECKING:
    from litestar_automation.engine.local import AutomationEngine
    from litestar_automation.engine.memory import InMemoryWorkflowStore
    from litestar_automation.engine.registry import WorkflowRegistry
    from tests.conftest import FakeClock, MockEventBus, RecordingActionProvider


@pytest.mark.integration
@pytest.mark.asyncio
class TestCandidatePipeline:
    """A new candidate is welcomed, screened and routed."""

    async def _create_pipeline(self, registry: WorkflowRegistry) -> None:
        await registry.create_definition(
            "Screen new candidates",
            TriggerType.EVENT,
            {"eventType": "candidate_created"},
            [
                {
                    "type": "send_email",
                    "config": {"to": "{{candidate.email}}", "subject": "Welcome {{candidate.name}}"},
                },
                condition("candidate.score", "greater_than", "{{threshold}}", skip=2),
                {"type": "create_task", "config": {"title": "Phone screen {{candidate.name}}"}},
                {"type": "move_stage", "config": {"stage": "screening"}},
                message("{{candidate.name}} processed"),
            ],
            status=DefinitionStatus.ACTIVE,
            variables={"threshold": 80},
        )

    async def test_strong_candidate_runs_every_step(
        self,
        registry: WorkflowRegistry,
        engine: AutomationEngine,
        provider: RecordingActionProvider,
    ) -> None:
        await self._create_pipeline(registry)

        (run,) = await engine.handle_event(
            DomainEvent("candidate_created", {"candidate": {"name": "Ada", "email": "ada@example.com", "score": 91}})
        )
        await engine.wait_idle()

        run = await engine.get_run(run.id)
        assert run.status == RunStatus.COMPLETED
        assert provider.called == ["send_email", "create_task", "move_stage", "send_message"]
        assert provider.calls[0][1] == {"to": "ada@example.com", "subject": "Welcome Ada"}
        assert provider.calls[1][1] == {"title": "Phone screen Ada"}
        assert [result.index for result in run.step_results] == [0, 1, 2, 3, 4]

    async def test_weak_candidate_skips_screening(
        self,
        registry: WorkflowRegistry,
        engine: AutomationEngine,
        provider: RecordingActionProvider,
    ) -> None:
        await self._create_pipeline(registry)

        (run,) = await engine.handle_event(
            DomainEvent("candidate_created", {"candidate": {"name": "Bob", "email": "bob@example.com", "score": 40}})
        )
        await engine.wait_idle()

        run = await engine.get_run(run.id)
        assert run.status == RunStatus.COMPLETED
        assert provider.called == ["send_email", "send_message"]
        assert provider.messages == ["Bob processed"]
        assert [result.index for result in run.step_results] == [0, 1, 4]
        assert run.step_results[1].output == {"conditionMet": False, "skipped": 2}

    async def test_skip_sequence_executes_first_and_last(
        self,
        registry: WorkflowRegistry,
        engine: AutomationEngine,
        provider: RecordingActionProvider,
    ) -> None:
        await registry.create_definition(
            "Skip two",
            TriggerType.FORM_SUBMISSION,
            {"formId": "apply"},
            [message("A"), condition("always", "equals", "never", skip=2), message("B"), message("C"), message("D")],
            status=DefinitionStatus.ACTIVE,
        )

        await engine.handle_event(FormSubmission("apply", {"always": "yes"}))
        await engine.wait_idle()

        assert provider.messages == ["A", "D"]


@pytest.mark.integration
@pytest.mark.asyncio
class TestOfferApproval:
    """An offer waits a day, then waits for a hiring manager."""

    async def test_delay_then_approval(
        self,
        registry: WorkflowRegistry,
        engine: AutomationEngine,
        scheduler: Scheduler,
        provider: RecordingActionProvider,
        clock: FakeClock,
        mock_event_bus: MockEventBus,
    ) -> None:
        await registry.create_definition(
            "Offer",
            TriggerType.EVENT,
            {"eventType": "interview_passed"},
            [
                message("Preparing offer"),
                {"type": "delay", "config": {"seconds": 86400}},
                {"type": "approval_request", "config": {"approver": "hiring-manager"}},
                condition("approval_status", "equals", "approved", skip=1),
                {"type": "send_email", "config": {"to": "{{candidate.email}}", "subject": "Your offer"}},
            ],
            status=DefinitionStatus.ACTIVE,
        )

        (run,) = await engine.handle_event(
            DomainEvent("interview_passed", {"candidate": {"email": "ada@example.com"}})
        )
        await engine.wait_idle()

        delayed = await engine.get_run(run.id)
        assert delayed.status == RunStatus.PAUSED
        assert delayed.resume_at == clock.now() + timedelta(days=1)
        assert (await scheduler.tick()).idle

        clock.advance(days=1)
        report = await scheduler.tick()
        await engine.wait_idle()

        assert report.resumed == [run.id]
        waiting = await engine.get_run(run.id)
        assert waiting.awaiting_approval
        assert (await scheduler.tick()).idle

        await engine.approve(run.id, "approved")
        await engine.wait_idle()

        finished = await engine.get_run(run.id)
        assert finished.status == RunStatus.COMPLETED
        assert provider.called == ["send_message", "approval_request", "send_email"]
        assert mock_event_bus.types == [
            "run.created",
            "run.started",
            "run.paused",
            "run.resumed",
            "run.paused",
            "run.resumed",
            "run.completed",
        ]


@pytest.mark.integration
@pytest.mark.asyncio
class TestInboundWebhook:
    """An applicant tracking system posts to a webhook."""

    async def test_payload_becomes_trigger_data(
        self,
        registry: WorkflowRegistry,
        engine: AutomationEngine,
    ) -> None:
        await registry.create_definition(
            "ATS sync",
            TriggerType.WEBHOOK,
            {"webhookId": "abc123"},
            [{"type": "update_candidate", "config": {"externalId": "{{x}}"}}],
            status=DefinitionStatus.ACTIVE,
        )
        dispatcher = WebhookDispatcher(engine)

        run = await dispatcher.receive("abc123", {"x": 1})
        await engine.wait_idle()

        assert run is not None
        finished = await engine.get_run(run.id)
        assert finished.trigger_data == {"x": 1}
        assert finished.status == RunStatus.COMPLETED


@pytest.mark.integration
@pytest.mark.asyncio
class TestRecurringDigest:
    """An hourly digest fires once per due slot."""

    async def test_overdue_schedule_fires_once_across_schedulers(
        self,
        store: InMemoryWorkflowStore,
        registry: WorkflowRegistry,
        engine: AutomationEngine,
        scheduler: Scheduler,
        provider: RecordingActionProvider,
        clock: FakeClock,
    ) -> None:
        definition = await registry.create_definition(
            "Hourly digest",
            TriggerType.SCHEDULE,
            {},
            [message("digest at {{scheduledAt}}")],
            status=DefinitionStatus.ACTIVE,
        )
        schedule = await registry.create_schedule(definition.id, ScheduleType.RECURRING, cron_expression="0 * * * *")
        assert schedule.next_run_at == clock.now() + timedelta(hours=1)
        other = Scheduler(store, engine, clock=clock)

        clock.advance(hours=3, minutes=30)
        first = await scheduler.tick()
        second = await other.tick()
        await engine.wait_idle()

        assert len(first.fired) == 1
        assert second.idle
        assert provider.messages == [f"digest at {clock.now().isoformat()}"]
        advanced = await store.get_schedule(schedule.id)
        assert advanced is not None
        assert advanced.next_run_at == clock.now() + timedelta(minutes=30)
        assert advanced.last_run_at == clock.now()

    async def test_quiet_system_ticks_idle(self, scheduler: Scheduler) -> None:
        assert (await scheduler.tick()).idle
