"""Tests for InMemoryWorkflowStore."""

from __future__ import annotations

from dataclasses import replace
from datetime import timedelta

import pytest

from litestar_automation.core.models import WorkflowDefinition, WorkflowRun, WorkflowSchedule
from litestar_automation.core.types import DefinitionStatus, RunStatus, ScheduleType, TriggerType
from litestar_automation.engine.memory import InMemoryWorkflowStore
from litestar_automation.exceptions import ScheduleNotFoundError
from tests.conftest import START


def make_definition(**overrides: object) -> WorkflowDefinition:
    fields: dict = {"name": "test", "trigger_type": TriggerType.MANUAL}
    fields.update(overrides)
    return WorkflowDefinition(**fields)


@pytest.mark.unit
@pytest.mark.asyncio
class TestIsolation:
    """Values going in and out of the store are copies."""

    async def test_mutating_returned_definition_does_not_leak(self, store: InMemoryWorkflowStore) -> None:
        definition = await store.add_definition(make_definition(variables={"team": "talent"}))

        fetched = await store.get_definition(definition.id)
        assert fetched is not None
        fetched.variables["team"] = "sales"

        again = await store.get_definition(definition.id)
        assert again is not None
        assert again.variables == {"team": "talent"}

    async def test_mutating_saved_run_does_not_leak(self, store: InMemoryWorkflowStore) -> None:
        run = WorkflowRun(workflow_id=make_definition().id, workflow_version=1, trigger_data={"x": 1})
        await store.add_run(run)

        run.trigger_data["x"] = 2

        stored = await store.get_run(run.id)
        assert stored is not None
        assert stored.trigger_data == {"x": 1}


@pytest.mark.unit
@pytest.mark.asyncio
class TestDefinitions:
    """Tests for definitions and their version snapshots."""

    async def test_every_version_is_kept(self, store: InMemoryWorkflowStore) -> None:
        definition = await store.add_definition(make_definition())
        await store.update_definition(replace(definition, version=2, name="renamed"))

        v1 = await store.get_definition(definition.id, version=1)
        current = await store.get_definition(definition.id)

        assert v1 is not None and v1.name == "test"
        assert current is not None and current.version == 2
        assert await store.get_definition(definition.id, version=3) is None

    async def test_list_filters(self, store: InMemoryWorkflowStore) -> None:
        active = await store.add_definition(make_definition(status=DefinitionStatus.ACTIVE))
        await store.add_definition(make_definition(trigger_type=TriggerType.EVENT))

        assert [d.id for d in await store.list_definitions(status=DefinitionStatus.ACTIVE)] == [active.id]
        assert len(await store.list_definitions(trigger_type=TriggerType.EVENT)) == 1

    async def test_delete_cascades_to_schedules_but_keeps_runs(self, store: InMemoryWorkflowStore) -> None:
        definition = await store.add_definition(make_definition())
        await store.add_schedule(WorkflowSchedule(definition.id, ScheduleType.ONCE, START))
        run = await store.add_run(WorkflowRun(workflow_id=definition.id, workflow_version=1))

        assert await store.delete_definition(definition.id)
        assert not await store.delete_definition(definition.id)

        assert await store.get_definition(definition.id, version=1) is None
        assert await store.list_schedules(definition.id) == []
        assert await store.get_run(run.id) is not None


@pytest.mark.unit
@pytest.mark.asyncio
class TestRuns:
    """Tests for run persistence and compare-and-set."""

    async def test_save_requires_expected_version(self, store: InMemoryWorkflowStore) -> None:
        run = await store.add_run(WorkflowRun(workflow_id=make_definition().id, workflow_version=1))
        updated = replace(run, status=RunStatus.RUNNING, lock_version=1)

        assert await store.save_run(updated, expected_version=0)
        assert not await store.save_run(replace(run, status=RunStatus.FAILED, lock_version=1), expected_version=0)

        stored = await store.get_run(run.id)
        assert stored is not None
        assert stored.status == RunStatus.RUNNING

    async def test_save_unknown_run(self, store: InMemoryWorkflowStore) -> None:
        run = WorkflowRun(workflow_id=make_definition().id, workflow_version=1)

        assert not await store.save_run(run, expected_version=0)

    async def test_due_runs_are_delay_paused_only(self, store: InMemoryWorkflowStore) -> None:
        workflow_id = make_definition().id
        due = await store.add_run(
            WorkflowRun(workflow_id, 1, status=RunStatus.PAUSED, resume_at=START - timedelta(seconds=1))
        )
        await store.add_run(WorkflowRun(workflow_id, 1, status=RunStatus.PAUSED, resume_at=START + timedelta(hours=1)))
        await store.add_run(WorkflowRun(workflow_id, 1, status=RunStatus.PAUSED))

        assert [run.id for run in await store.list_due_runs(START)] == [due.id]

    async def test_stalled_runs(self, store: InMemoryWorkflowStore) -> None:
        workflow_id = make_definition().id
        old = START - timedelta(hours=1)
        stalled = await store.add_run(WorkflowRun(workflow_id, 1, status=RunStatus.RUNNING, updated_at=old))
        pending = await store.add_run(WorkflowRun(workflow_id, 1, status=RunStatus.PENDING, started_at=old))
        await store.add_run(WorkflowRun(workflow_id, 1, status=RunStatus.RUNNING, updated_at=START))
        await store.add_run(WorkflowRun(workflow_id, 1, status=RunStatus.COMPLETED, updated_at=old))

        found = {run.id for run in await store.list_stalled_runs(START - timedelta(minutes=5))}

        assert found == {stalled.id, pending.id}


@pytest.mark.unit
@pytest.mark.asyncio
class TestSchedules:
    """Tests for schedule queries and claims."""

    async def test_due_schedules_oldest_first(self, store: InMemoryWorkflowStore) -> None:
        workflow_id = make_definition().id
        later = await store.add_schedule(WorkflowSchedule(workflow_id, ScheduleType.ONCE, START))
        earlier = await store.add_schedule(
            WorkflowSchedule(workflow_id, ScheduleType.ONCE, START - timedelta(minutes=10))
        )
        await store.add_schedule(WorkflowSchedule(workflow_id, ScheduleType.ONCE, START, is_active=False))
        await store.add_schedule(WorkflowSchedule(workflow_id, ScheduleType.ONCE, START + timedelta(seconds=1)))

        assert [s.id for s in await store.list_due_schedules(START)] == [earlier.id, later.id]

    async def test_claim_writes_schedule_and_runs_together(self, store: InMemoryWorkflowStore) -> None:
        workflow_id = make_definition().id
        schedule = await store.add_schedule(WorkflowSchedule(workflow_id, ScheduleType.ONCE, START))
        run = WorkflowRun(workflow_id, 1)

        claimed = await store.claim_schedule(replace(schedule, is_active=False, lock_version=1), 0, [run])

        assert claimed
        assert await store.get_run(run.id) is not None
        stored = await store.get_schedule(schedule.id)
        assert stored is not None
        assert not stored.is_active

    async def test_losing_claim_writes_nothing(self, store: InMemoryWorkflowStore) -> None:
        workflow_id = make_definition().id
        schedule = await store.add_schedule(WorkflowSchedule(workflow_id, ScheduleType.ONCE, START))
        await store.claim_schedule(replace(schedule, lock_version=1), 0)
        run = WorkflowRun(workflow_id, 1)

        claimed = await store.claim_schedule(replace(schedule, is_active=False, lock_version=1), 0, [run])

        assert not claimed
        assert await store.get_run(run.id) is None
        stored = await store.get_schedule(schedule.id)
        assert stored is not None
        assert stored.is_active

    async def test_update_unknown_schedule(self, store: InMemoryWorkflowStore) -> None:
        with pytest.raises(ScheduleNotFoundError):
            await store.update_schedule(WorkflowSchedule(make_definition().id, ScheduleType.ONCE, START))

    async def test_delete_schedule(self, store: InMemoryWorkflowStore) -> None:
        schedule = await store.add_schedule(WorkflowSchedule(make_definition().id, ScheduleType.ONCE, START))

        assert await store.delete_schedule(schedule.id)
        assert not await store.delete_schedule(schedule.id)
