"""Tests for the automation REST API.

The application under test is built by AutomationPlugin with the scheduler
disabled and a recording action provider, so every endpoint is exercised the
way a real deployment wires it.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

import pytest
from litestar import Litestar
from litestar.exceptions import NotAuthorizedException
from litestar.status_codes import (
    HTTP_200_OK,
    HTTP_201_CREATED,
    HTTP_202_ACCEPTED,
    HTTP_204_NO_CONTENT,
    HTTP_400_BAD_REQUEST,
    HTTP_401_UNAUTHORIZED,
    HTTP_404_NOT_FOUND,
    HTTP_409_CONFLICT,
)
from litestar.testing import AsyncTestClient

from litestar_automation import AutomationPlugin, AutomationPluginConfig
from litestar_automation.core.types import DefinitionStatus, TriggerType
from litestar_automation.engine.memory import InMemoryWorkflowStore
from litestar_automation.engine.registry import WorkflowRegistry
from tests.conftest import condition, message

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from httpx import Response

    from tests.conftest import RecordingActionProvider

PREFIX = "/automations"
TERMINAL = {"completed", "failed"}


def make_app(provider: RecordingActionProvider, **config: Any) -> Litestar:
    return Litestar(
        plugins=[AutomationPlugin(AutomationPluginConfig(provider=provider, enable_scheduler=False, **config))]
    )


@pytest.fixture
async def client(provider: RecordingActionProvider) -> AsyncIterator[AsyncTestClient]:
    """Create a test client for an app with the default plugin configuration."""
    async with AsyncTestClient(app=make_app(provider)) as client:
        yield client


async def create_definition(client: AsyncTestClient, **overrides: Any) -> dict[str, Any]:
    payload = {
        "name": "Welcome new candidates",
        "trigger_type": "event",
        "trigger_config": {"eventType": "candidate_created"},
        "actions": [
            {"type": "send_email", "config": {"to": "{{candidate.email}}", "subject": "Hi {{candidate.name}}"}}
        ],
        "status": "active",
    }
    payload.update(overrides)
    response = await client.post(f"{PREFIX}/definitions", json=payload)
    assert response.status_code == HTTP_201_CREATED, response.text
    return response.json()


async def wait_for_run(client: AsyncTestClient, run_id: str, statuses: set[str] = TERMINAL) -> dict[str, Any]:
    """Poll a run until it reaches one of ``statuses``."""
    for _ in range(100):
        response = await client.get(f"{PREFIX}/runs/{run_id}")
        assert response.status_code == HTTP_200_OK
        run = response.json()
        if run["status"] in statuses:
            return run
        await asyncio.sleep(0.01)
    pytest.fail(f"run {run_id} never reached {statuses}")


def assert_error(response: Response, status_code: int, code: str) -> dict[str, Any]:
    assert response.status_code == status_code, response.text
    body = response.json()
    assert body["error"] == code
    assert body["message"]
    return body


@pytest.mark.integration
@pytest.mark.asyncio
class TestWorkflowDefinitionController:
    """Tests for the definition endpoints."""

    async def test_create_and_get(self, client: AsyncTestClient) -> None:
        created = await create_definition(client, status="draft")

        assert created["version"] == 1
        assert created["status"] == "draft"
        assert created["trigger_type"] == "event"

        response = await client.get(f"{PREFIX}/definitions/{created['id']}")
        assert response.status_code == HTTP_200_OK
        assert response.json()["actions"] == created["actions"]

    async def test_list_with_filters(self, client: AsyncTestClient) -> None:
        await create_definition(client)
        await create_definition(client, status="draft")
        await create_definition(client, trigger_type="manual", trigger_config={})

        everything = await client.get(f"{PREFIX}/definitions")
        active = await client.get(f"{PREFIX}/definitions", params={"status": "active", "trigger_type": "event"})

        assert len(everything.json()) == 3
        assert len(active.json()) == 1

    async def test_invalid_definition_is_rejected(self, client: AsyncTestClient) -> None:
        response = await client.post(
            f"{PREFIX}/definitions",
            json={
                "name": "Broken",
                "trigger_type": "webhook",
                "trigger_config": {},
                "actions": [{"type": "condition", "config": {"leftOperand": "score", "operator": "roughly"}}],
            },
        )

        body = assert_error(response, HTTP_400_BAD_REQUEST, "validation_error")
        assert len(body["errors"]) == 2

    async def test_unknown_definition(self, client: AsyncTestClient) -> None:
        response = await client.get(f"{PREFIX}/definitions/00000000-0000-0000-0000-000000000000")

        assert_error(response, HTTP_404_NOT_FOUND, "workflow_not_found")

    async def test_update_versions_program_changes(self, client: AsyncTestClient) -> None:
        created = await create_definition(client)

        renamed = await client.put(f"{PREFIX}/definitions/{created['id']}", json={"name": "Welcome"})
        reprogrammed = await client.put(
            f"{PREFIX}/definitions/{created['id']}",
            json={"actions": [message("Welcome {{candidate.name}}")]},
        )

        assert renamed.json()["version"] == 1
        assert reprogrammed.json()["version"] == 2
        first = await client.get(f"{PREFIX}/definitions/{created['id']}", params={"version": 1})
        assert first.json()["actions"] == created["actions"]

    async def test_delete(self, client: AsyncTestClient) -> None:
        created = await create_definition(client)

        response = await client.delete(f"{PREFIX}/definitions/{created['id']}")

        assert response.status_code == HTTP_204_NO_CONTENT
        missing = await client.delete(f"{PREFIX}/definitions/{created['id']}")
        assert_error(missing, HTTP_404_NOT_FOUND, "workflow_not_found")


@pytest.mark.integration
@pytest.mark.asyncio
class TestWorkflowRunController:
    """Tests for manual runs, run inspection and approvals."""

    async def test_manual_run_of_draft_conflicts(self, client: AsyncTestClient) -> None:
        created = await create_definition(client, status="draft")

        response = await client.post(f"{PREFIX}/definitions/{created['id']}/run", json={})

        assert_error(response, HTTP_409_CONFLICT, "workflow_not_active")

    async def test_manual_run_completes_in_background(
        self,
        client: AsyncTestClient,
        provider: RecordingActionProvider,
    ) -> None:
        created = await create_definition(
            client,
            trigger_type="manual",
            trigger_config={},
            actions=[message("Started by {{source}}")],
        )

        response = await client.post(f"{PREFIX}/definitions/{created['id']}/run", json={})

        assert response.status_code == HTTP_202_ACCEPTED
        accepted = response.json()
        assert accepted["status"] == "pending"
        assert accepted["workflow_version"] == 1

        run = await wait_for_run(client, accepted["id"])
        assert run["status"] == "completed"
        assert run["trigger_data"] == {"source": "manual"}
        assert [step["index"] for step in run["step_results"]] == [0]
        assert provider.messages == ["Started by manual"]
        assert run["triggered_by"] is None

        history = await client.get(f"{PREFIX}/definitions/{created['id']}/runs", params={"limit": 10})
        assert [entry["id"] for entry in history.json()] == [accepted["id"]]

    async def test_manual_run_records_requester(self, client: AsyncTestClient) -> None:
        created = await create_definition(client, trigger_type="manual", trigger_config={}, actions=[message("A")])

        response = await client.post(
            f"{PREFIX}/definitions/{created['id']}/run",
            json={"triggered_by": "recruiter-7"},
        )

        assert response.status_code == HTTP_202_ACCEPTED
        assert response.json()["triggered_by"] == "recruiter-7"
        run = await wait_for_run(client, response.json()["id"])
        assert run["triggered_by"] == "recruiter-7"

    async def test_failed_run_reports_error(self, client: AsyncTestClient, provider: RecordingActionProvider) -> None:
        provider.failures["send_email"] = "mailbox full"
        created = await create_definition(client, trigger_type="manual", trigger_config={})

        accepted = (await client.post(f"{PREFIX}/definitions/{created['id']}/run", json={})).json()
        run = await wait_for_run(client, accepted["id"])

        assert run["status"] == "failed"
        assert run["error_message"] == "Action 'send_email' at step 0 failed: mailbox full"

    async def test_approval_round_trip(self, client: AsyncTestClient, provider: RecordingActionProvider) -> None:
        created = await create_definition(
            client,
            trigger_type="manual",
            trigger_config={},
            actions=[
                {"type": "approval_request", "config": {"approverId": "hiring-manager"}},
                condition("approval_status", "equals", "approved", skip=1),
                message("Offer sent"),
            ],
        )
        accepted = (await client.post(f"{PREFIX}/definitions/{created['id']}/run", json={})).json()
        paused = await wait_for_run(client, accepted["id"], {"paused"})
        assert paused["resume_at"] is None

        response = await client.post(f"{PREFIX}/runs/{accepted['id']}/approve", json={"approval_status": "approved"})

        assert response.status_code == HTTP_202_ACCEPTED
        run = await wait_for_run(client, accepted["id"])
        assert run["status"] == "completed"
        assert run["variables"]["approval_status"] == "approved"
        assert provider.messages == ["Offer sent"]

        again = await client.post(f"{PREFIX}/runs/{accepted['id']}/approve", json={})
        assert_error(again, HTTP_409_CONFLICT, "invalid_transition")

    async def test_unknown_run(self, client: AsyncTestClient) -> None:
        response = await client.get(f"{PREFIX}/runs/00000000-0000-0000-0000-000000000000")

        assert_error(response, HTTP_404_NOT_FOUND, "run_not_found")


@pytest.mark.integration
@pytest.mark.asyncio
class TestWorkflowScheduleController:
    """Tests for the schedule endpoints."""

    async def test_schedule_lifecycle(self, client: AsyncTestClient) -> None:
        created = await create_definition(client, trigger_type="schedule", trigger_config={})

        response = await client.post(
            f"{PREFIX}/definitions/{created['id']}/schedules",
            json={"schedule_type": "recurring", "cron_expression": "0 9 * * 1-5", "timezone": "Europe/Berlin"},
        )

        assert response.status_code == HTTP_201_CREATED
        schedule = response.json()
        assert schedule["is_active"] is True
        assert schedule["next_run_at"]

        listed = await client.get(f"{PREFIX}/definitions/{created['id']}/schedules")
        assert [entry["id"] for entry in listed.json()] == [schedule["id"]]

        paused = await client.put(f"{PREFIX}/schedules/{schedule['id']}", json={"is_active": False})
        assert paused.json()["is_active"] is False

        deleted = await client.delete(f"{PREFIX}/schedules/{schedule['id']}")
        assert deleted.status_code == HTTP_204_NO_CONTENT
        assert (await client.get(f"{PREFIX}/definitions/{created['id']}/schedules")).json() == []

    async def test_invalid_schedule(self, client: AsyncTestClient) -> None:
        created = await create_definition(client, trigger_type="schedule", trigger_config={})

        response = await client.post(
            f"{PREFIX}/definitions/{created['id']}/schedules",
            json={"schedule_type": "interval", "interval_seconds": 0},
        )

        assert_error(response, HTTP_400_BAD_REQUEST, "validation_error")

    async def test_schedule_for_unknown_definition(self, client: AsyncTestClient) -> None:
        response = await client.post(
            f"{PREFIX}/definitions/00000000-0000-0000-0000-000000000000/schedules",
            json={"schedule_type": "once"},
        )

        assert_error(response, HTTP_404_NOT_FOUND, "workflow_not_found")

    async def test_unknown_schedule(self, client: AsyncTestClient) -> None:
        response = await client.put(
            f"{PREFIX}/schedules/00000000-0000-0000-0000-000000000000",
            json={"is_active": True},
        )

        assert_error(response, HTTP_404_NOT_FOUND, "schedule_not_found")


@pytest.mark.integration
@pytest.mark.asyncio
class TestWorkflowTemplateController:
    """Tests for the template endpoints."""

    async def test_seeded_gallery_and_instantiation(self, provider: RecordingActionProvider) -> None:
        async with AsyncTestClient(app=make_app(provider, seed_templates=True)) as client:
            gallery = (await client.get(f"{PREFIX}/templates")).json()
            assert len(gallery) == 5

            feedback = (await client.get(f"{PREFIX}/templates", params={"category": "feedback"})).json()
            assert [template["name"] for template in feedback] == ["Customer Feedback Collection"]

            response = await client.post(
                f"{PREFIX}/templates/{feedback[0]['id']}/instantiate",
                json={"name": "Candidate feedback", "trigger_config_override": {"keyword": "review"}},
            )

            assert response.status_code == HTTP_201_CREATED
            definition = response.json()
            assert definition["status"] == "draft"
            assert definition["trigger_config"] == {"keyword": "review"}
            assert definition["metadata"] == {"templateId": feedback[0]["id"]}

            reordered = (await client.get(f"{PREFIX}/templates")).json()
            assert reordered[0]["id"] == feedback[0]["id"]
            assert reordered[0]["usage_count"] == 1

    async def test_create_template(self, client: AsyncTestClient) -> None:
        response = await client.post(
            f"{PREFIX}/templates",
            json={
                "name": "Stage change notice",
                "trigger_type": "event",
                "trigger_config": {"eventType": "stage_changed"},
                "actions": [message("{{candidate.name}} moved to {{stage}}")],
                "category": "pipeline",
            },
        )

        assert response.status_code == HTTP_201_CREATED
        assert response.json()["usage_count"] == 0

    async def test_unknown_template(self, client: AsyncTestClient) -> None:
        response = await client.post(
            f"{PREFIX}/templates/00000000-0000-0000-0000-000000000000/instantiate",
            json={},
        )

        assert_error(response, HTTP_404_NOT_FOUND, "template_not_found")


@pytest.mark.integration
@pytest.mark.asyncio
class TestTriggerEndpoints:
    """Tests for event, message and webhook ingestion."""

    async def test_domain_event(self, client: AsyncTestClient, provider: RecordingActionProvider) -> None:
        await create_definition(client)
        await create_definition(client, status="inactive")

        response = await client.post(
            f"{PREFIX}/events",
            json={
                "event_type": "candidate_created",
                "data": {"candidate": {"name": "Ada", "email": "ada@example.com"}},
            },
        )

        assert response.status_code == HTTP_202_ACCEPTED
        (accepted,) = response.json()
        await wait_for_run(client, accepted["id"])
        assert provider.calls[0][1] == {"to": "ada@example.com", "subject": "Hi Ada"}

    async def test_unmatched_event(self, client: AsyncTestClient) -> None:
        response = await client.post(f"{PREFIX}/events", json={"event_type": "offer_accepted"})

        assert response.status_code == HTTP_202_ACCEPTED
        assert response.json() == []

    async def test_message(self, client: AsyncTestClient, provider: RecordingActionProvider) -> None:
        await create_definition(
            client,
            trigger_type="message",
            trigger_config={"keyword": "apply"},
            actions=[message("Thanks {{senderId}}, here is the form")],
        )

        response = await client.post(
            f"{PREFIX}/messages",
            json={"content": "How do I Apply?", "channel_id": "careers", "sender_id": "u-7"},
        )

        (accepted,) = response.json()
        assert accepted["triggered_by"] == "u-7"
        await wait_for_run(client, accepted["id"])
        assert provider.messages == ["Thanks u-7, here is the form"]

    async def test_webhook(self, client: AsyncTestClient, provider: RecordingActionProvider) -> None:
        await create_definition(
            client,
            trigger_type="webhook",
            trigger_config={"webhookId": "abc123"},
            actions=[message("x is {{x}}")],
        )

        response = await client.post(f"{PREFIX}/webhook/abc123", json={"x": 1})

        assert response.status_code == HTTP_202_ACCEPTED
        run = await wait_for_run(client, response.json()["id"])
        assert run["trigger_data"] == {"x": 1}
        assert provider.messages == ["x is 1"]

    async def test_webhook_with_form_body(self, client: AsyncTestClient, provider: RecordingActionProvider) -> None:
        await create_definition(
            client,
            trigger_type="webhook",
            trigger_config={"webhookId": "job-board"},
            actions=[message("received {{payload}}")],
        )

        response = await client.post(
            f"{PREFIX}/webhook/job-board",
            content=b"a=1&b=2",
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )

        assert response.status_code == HTTP_202_ACCEPTED, response.text
        run = await wait_for_run(client, response.json()["id"])
        assert run["trigger_data"] == {"payload": "a=1&b=2"}
        assert provider.messages == ["received a=1&b=2"]

    async def test_unknown_webhook(self, client: AsyncTestClient) -> None:
        response = await client.post(f"{PREFIX}/webhook/nope", json={"x": 1})

        assert response.status_code == HTTP_404_NOT_FOUND


def deny_all(connection: Any, handler: Any) -> None:
    raise NotAuthorizedException("recruiter login required")


@pytest.mark.integration
@pytest.mark.asyncio
class TestGuards:
    """api_guards protect everything except the webhook endpoint."""

    async def test_webhook_bypasses_guards(self, provider: RecordingActionProvider) -> None:
        store = InMemoryWorkflowStore()
        await WorkflowRegistry(store).create_definition(
            "Inbound",
            TriggerType.WEBHOOK,
            {"webhookId": "abc123"},
            [message("hello")],
            status=DefinitionStatus.ACTIVE,
        )
        app = make_app(provider, store=store, api_guards=[deny_all])

        async with AsyncTestClient(app=app) as client:
            guarded = await client.get(f"{PREFIX}/definitions")
            webhook = await client.post(f"{PREFIX}/webhook/abc123", json={})

        assert guarded.status_code == HTTP_401_UNAUTHORIZED
        assert webhook.status_code == HTTP_202_ACCEPTED

    async def test_custom_prefix(self, provider: RecordingActionProvider) -> None:
        async with AsyncTestClient(app=make_app(provider, api_path_prefix="/api/v1/automations")) as client:
            assert (await client.get("/api/v1/automations/definitions")).status_code == HTTP_200_OK
            assert (await client.get(f"{PREFIX}/definitions")).status_code == HTTP_404_NOT_FOUND
