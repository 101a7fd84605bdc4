"""Tests for the execution store's conditional state changes."""

from datetime import datetime, timedelta

import pytest
import pytest_asyncio

from core.constants import ApprovalStatus, ExecutionStatus, NotificationStatus
from core.exceptions import NotFoundError, StoreError
from db.models import Approval, Execution, Workflow, WorkflowNotification
from tests.graphs import linear_definition

NOW = datetime(2026, 3, 2, 9, 0, 0)


@pytest_asyncio.fixture
async def execution(store, make_workflow):
    workflow_id = await make_workflow(linear_definition())
    return await store.create_execution(workflow_id, "start", {"trigger": {"a": 1}, "path": ["start"]})


@pytest.mark.unit
class TestExecutions:

    @pytest.mark.asyncio
    async def test_create_and_get(self, store, execution):
        loaded = await store.get_execution(execution.id)
        assert loaded.status == ExecutionStatus.RUNNING.value
        assert loaded.current_step_id == "start"
        assert loaded.context["trigger"] == {"a": 1}

    @pytest.mark.asyncio
    async def test_get_unknown_raises(self, store):
        with pytest.raises(NotFoundError):
            await store.get_execution("missing")

    @pytest.mark.asyncio
    async def test_advance_persists_step_and_context(self, store, execution):
        await store.advance(execution.id, "notify", {"trigger": {"a": 1}, "path": ["start", "notify"]})

        loaded = await store.get_execution(execution.id)
        assert loaded.current_step_id == "notify"
        assert loaded.context["path"] == ["start", "notify"]

    @pytest.mark.asyncio
    async def test_deeply_nested_context_round_trips(self, store, execution):
        payload = {"v": 1}
        for _ in range(15):
            payload = {"n": [payload]}
        context = {"trigger": payload, "path": ["start", "notify"]}

        await store.advance(execution.id, "notify", context)

        loaded = await store.get_execution(execution.id)
        assert loaded.context == context

    @pytest.mark.asyncio
    async def test_terminal_executions_do_not_change(self, store, execution):
        await store.complete(execution.id, NOW)

        with pytest.raises(StoreError):
            await store.fail(execution.id, "late failure", NOW)
        with pytest.raises(StoreError):
            await store.advance(execution.id, "notify", {})

        loaded = await store.get_execution(execution.id)
        assert loaded.status == ExecutionStatus.COMPLETED.value
        assert loaded.completed_at == NOW
        assert loaded.error_message is None

    @pytest.mark.asyncio
    async def test_list_filters(self, store, execution):
        await store.fail(execution.id, "boom", NOW)

        assert len(await store.list_executions(status=ExecutionStatus.FAILED.value)) == 1
        assert await store.list_executions(status=ExecutionStatus.RUNNING.value) == []
        assert len(await store.list_executions(workflow_id=execution.workflow_id)) == 1

    @pytest.mark.asyncio
    async def test_load_definition_unknown_workflow(self, store):
        with pytest.raises(NotFoundError):
            await store.load_definition("missing")


@pytest.mark.unit
class TestApprovals:

    @pytest.mark.asyncio
    async def test_one_pending_approval_per_execution(self, store, execution):
        await store.create_approval(execution.id, "approve", "boss@example.com", NOW + timedelta(days=7))

        with pytest.raises(StoreError):
            await store.create_approval(execution.id, "approve", "boss@example.com", NOW + timedelta(days=7))

    @pytest.mark.asyncio
    async def test_decide_applies_once(self, store, execution):
        approval = await store.create_approval(execution.id, "approve", None, NOW + timedelta(days=7))

        assert await store.decide_approval(approval.id, ApprovalStatus.APPROVED, "ok", "u1", NOW)
        assert not await store.decide_approval(approval.id, ApprovalStatus.REJECTED, "no", "u2", NOW)

        loaded = await store.get_approval(approval.id)
        assert loaded.status == ApprovalStatus.APPROVED.value
        assert loaded.decision_by == "u1"
        assert await store.get_pending_approval(execution.id) is None

    @pytest.mark.asyncio
    async def test_list_expired(self, store, execution):
        approval = await store.create_approval(execution.id, "approve", None, NOW)

        assert await store.list_expired_approvals(NOW - timedelta(seconds=1)) == []
        [expired] = await store.list_expired_approvals(NOW)
        assert expired.id == approval.id

    @pytest.mark.asyncio
    async def test_list_by_assignee(self, store, execution):
        await store.create_approval(execution.id, "approve", "boss@example.com", NOW)

        assert len(await store.list_approvals(assignee="boss@example.com")) == 1
        assert await store.list_approvals(assignee="other@example.com") == []


@pytest.mark.unit
class TestNotifications:

    @pytest.mark.asyncio
    async def test_sent_then_failed_keeps_sent(self, store, execution):
        row = await store.create_notification(execution.id, "notify", "email", "pm@example.com", "S", "M")
        assert row.status == NotificationStatus.PENDING.value

        await store.mark_notification_sent(row.id, NOW)
        await store.mark_notification_failed(row.id, "too late")

        [loaded] = await store.list_notifications(execution.id)
        assert loaded.status == NotificationStatus.SENT.value
        assert loaded.sent_at == NOW
        assert loaded.error_message is None


@pytest.mark.unit
class TestRelationshipLoading:

    @pytest.mark.parametrize("attribute", [
        Execution.workflow,
        Execution.approvals,
        Execution.notifications,
        Approval.execution,
        WorkflowNotification.execution,
        Workflow.executions,
    ])
    def test_relationships_are_never_loaded_implicitly(self, attribute):
        assert attribute.property.lazy == "raise"
