"""Execution Store — durable Execution, Approval and Notification state.

Every public method runs in its own short transaction, so each state
change is a single atomic write scoped to one execution id. Database
errors surface as StoreError.
"""

from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Optional, Sequence

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.constants import ApprovalStatus, ExecutionStatus, NotificationStatus
from core.exceptions import NotFoundError, StoreError
from core.utils import safe_serialize, utc_now
from db.models import Approval, Execution, Workflow, WorkflowNotification
from workflow.graph import WorkflowDefinition

logger = structlog.get_logger(__name__)


class ExecutionStore:
    """SQLAlchemy-backed store owned by the workflow engine."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error("store_operation_failed", error=str(e))
                raise StoreError(f"Execution store failure: {e}") from e

    # ─── Workflows ─────────────────────────────────────────

    async def get_workflow(self, workflow_id: str) -> Optional[Workflow]:
        async with self._session() as session:
            return await session.get(Workflow, workflow_id)

    async def load_definition(self, workflow_id: str) -> WorkflowDefinition:
        """Parse the stored graph of a workflow. NotFoundError if it does not exist."""
        workflow = await self.get_workflow(workflow_id)
        if workflow is None:
            raise NotFoundError(f"Workflow not found: {workflow_id}")
        return WorkflowDefinition.from_dict(workflow.id, workflow.definition)

    # ─── Executions ────────────────────────────────────────

    async def create_execution(
        self,
        workflow_id: str,
        start_step_id: str,
        context: dict,
        form_submission_id: Optional[str] = None,
    ) -> Execution:
        execution = Execution(
            workflow_id=workflow_id,
            form_submission_id=form_submission_id,
            status=ExecutionStatus.RUNNING.value,
            current_step_id=start_step_id,
            context=safe_serialize(context),
        )
        async with self._session() as session:
            session.add(execution)
        return execution

    async def get_execution(self, execution_id: str) -> Execution:
        async with self._session() as session:
            execution = await session.get(Execution, execution_id)
        if execution is None:
            raise NotFoundError(f"Execution not found: {execution_id}")
        return execution

    async def advance(self, execution_id: str, next_step_id: str, context: dict) -> None:
        """Move a running execution to its next step, persisting the context."""
        await self._update_running(
            execution_id,
            current_step_id=next_step_id,
            context=safe_serialize(context),
        )

    async def complete(self, execution_id: str, at: datetime, context: Optional[dict] = None) -> None:
        values = {"status": ExecutionStatus.COMPLETED.value, "completed_at": at}
        if context is not None:
            values["context"] = safe_serialize(context)
        await self._update_running(execution_id, **values)

    async def fail(self, execution_id: str, error_message: str, at: datetime) -> None:
        await self._update_running(
            execution_id,
            status=ExecutionStatus.FAILED.value,
            error_message=error_message,
            completed_at=at,
        )

    async def _update_running(self, execution_id: str, **values) -> None:
        values["updated_at"] = utc_now()
        async with self._session() as session:
            result = await session.execute(
                update(Execution)
                .where(
                    Execution.id == execution_id,
                    Execution.status == ExecutionStatus.RUNNING.value,
                )
                .values(**values)
            )
        if result.rowcount != 1:
            raise StoreError(f"Execution {execution_id} is not running")

    async def list_executions(
        self,
        workflow_id: Optional[str] = None,
        status: Optional[str] = None,
        offset: int = 0,
        limit: int = 50,
    ) -> Sequence[Execution]:
        query = select(Execution).order_by(Execution.created_at.desc())
        if workflow_id:
            query = query.where(Execution.workflow_id == workflow_id)
        if status:
            query = query.where(Execution.status == status)
        async with self._session() as session:
            result = await session.execute(query.offset(offset).limit(limit))
            return result.scalars().all()

    # ─── Approvals ─────────────────────────────────────────

    async def create_approval(
        self,
        execution_id: str,
        step_id: str,
        assignee: Optional[str],
        expires_at: datetime,
    ) -> Approval:
        """Create the pending approval an execution suspends on."""
        async with self._session() as session:
            existing = await session.execute(
                select(Approval.id).where(
                    Approval.execution_id == execution_id,
                    Approval.status == ApprovalStatus.PENDING.value,
                )
            )
            if existing.first() is not None:
                raise StoreError(f"Execution {execution_id} already has a pending approval")

            approval = Approval(
                execution_id=execution_id,
                step_id=step_id,
                assignee=assignee,
                status=ApprovalStatus.PENDING.value,
                expires_at=expires_at,
            )
            session.add(approval)
        return approval

    async def get_approval(self, approval_id: str) -> Approval:
        async with self._session() as session:
            approval = await session.get(Approval, approval_id)
        if approval is None:
            raise NotFoundError(f"Approval not found: {approval_id}")
        return approval

    async def get_pending_approval(self, execution_id: str) -> Optional[Approval]:
        async with self._session() as session:
            result = await session.execute(
                select(Approval).where(
                    Approval.execution_id == execution_id,
                    Approval.status == ApprovalStatus.PENDING.value,
                )
            )
            return result.scalars().first()

    async def mark_approval_notified(self, approval_id: str, at: datetime) -> None:
        async with self._session() as session:
            await session.execute(
                update(Approval)
                .where(Approval.id == approval_id)
                .values(notified_at=at, updated_at=utc_now())
            )

    async def decide_approval(
        self,
        approval_id: str,
        status: ApprovalStatus,
        reason: Optional[str],
        actor: Optional[str],
        at: datetime,
    ) -> bool:
        """Apply a terminal status to a still-pending approval.

        The pending check is part of the UPDATE, so of two concurrent
        callers exactly one sees True.
        """
        async with self._session() as session:
            result = await session.execute(
                update(Approval)
                .where(
                    Approval.id == approval_id,
                    Approval.status == ApprovalStatus.PENDING.value,
                )
                .values(
                    status=status.value,
                    decision_reason=reason,
                    decision_by=actor,
                    decision_at=at,
                    updated_at=utc_now(),
                )
            )
        return result.rowcount == 1

    async def list_approvals(
        self,
        execution_id: Optional[str] = None,
        status: Optional[str] = None,
        assignee: Optional[str] = None,
        offset: int = 0,
        limit: int = 50,
    ) -> Sequence[Approval]:
        query = select(Approval).order_by(Approval.created_at.asc())
        if execution_id:
            query = query.where(Approval.execution_id == execution_id)
        if status:
            query = query.where(Approval.status == status)
        if assignee:
            query = query.where(Approval.assignee == assignee)
        async with self._session() as session:
            result = await session.execute(query.offset(offset).limit(limit))
            return result.scalars().all()

    async def list_expired_approvals(self, now: datetime) -> Sequence[Approval]:
        async with self._session() as session:
            result = await session.execute(
                select(Approval).where(
                    Approval.status == ApprovalStatus.PENDING.value,
                    Approval.expires_at <= now,
                )
            )
            return result.scalars().all()

    # ─── Notifications ─────────────────────────────────────

    async def create_notification(
        self,
        execution_id: str,
        step_id: str,
        channel: str,
        recipient: str,
        subject: str,
        message: str,
    ) -> WorkflowNotification:
        notification = WorkflowNotification(
            execution_id=execution_id,
            step_id=step_id,
            channel=channel,
            recipient=recipient,
            subject=subject,
            message=message,
            status=NotificationStatus.PENDING.value,
        )
        async with self._session() as session:
            session.add(notification)
        return notification

    async def mark_notification_sent(self, notification_id: str, at: datetime) -> None:
        await self._update_notification(
            notification_id, status=NotificationStatus.SENT.value, sent_at=at
        )

    async def mark_notification_failed(self, notification_id: str, error: str) -> None:
        await self._update_notification(
            notification_id, status=NotificationStatus.FAILED.value, error_message=error
        )

    async def _update_notification(self, notification_id: str, **values) -> None:
        values["updated_at"] = utc_now()
        async with self._session() as session:
            await session.execute(
                update(WorkflowNotification)
                .where(
                    WorkflowNotification.id == notification_id,
                    WorkflowNotification.status == NotificationStatus.PENDING.value,
                )
                .values(**values)
            )

    async def list_notifications(self, execution_id: str) -> Sequence[WorkflowNotification]:
        async with self._session() as session:
            result = await session.execute(
                select(WorkflowNotification)
                .where(WorkflowNotification.execution_id == execution_id)
                .order_by(WorkflowNotification.created_at.asc())
            )
            return result.scalars().all()
