"""Workflow service — definition CRUD, plus read access to executions and approvals."""

from typing import Optional, Sequence

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.constants import ExecutionStatus
from core.exceptions import ConflictError, DefinitionError, NotFoundError
from db.models import Approval, Execution, Workflow, WorkflowNotification
from services.base import BaseService
from workflow.graph import WorkflowDefinition

logger = structlog.get_logger(__name__)


def normalize_definition(data: Optional[dict], workflow_id: str = "draft") -> dict:
    """Parse and validate a definition; return it in canonical stored form.

    Raises:
        DefinitionError: the graph is malformed
    """
    definition = WorkflowDefinition.from_dict(workflow_id, data)
    definition.validate()
    return definition.to_dict()


def check_definition(data: Optional[dict]) -> list[str]:
    """Validation errors for a definition; empty when it is valid."""
    try:
        normalize_definition(data)
    except DefinitionError as e:
        return [e.message]
    return []


class WorkflowService(BaseService[Workflow]):
    """Service for workflow definition management."""

    def __init__(self, db: AsyncSession):
        super().__init__(Workflow, db)

    async def get_workflow(self, workflow_id: str) -> Workflow:
        workflow = await self.get_by_id(workflow_id)
        if not workflow:
            raise NotFoundError(f"Workflow not found: {workflow_id}")
        return workflow

    async def create_workflow(
        self,
        name: str,
        definition: dict,
        description: str = "",
        form_template_id: Optional[str] = None,
        is_active: bool = True,
    ) -> Workflow:
        """Create a workflow from a validated definition."""
        workflow = await self.create({
            "name": name,
            "description": description or "",
            "form_template_id": form_template_id,
            "definition": normalize_definition(definition),
            "is_active": is_active,
            "version": 1,
        })
        logger.info("workflow_created", workflow_id=workflow.id, name=name)
        return workflow

    async def update_workflow(
        self,
        workflow_id: str,
        name: Optional[str] = None,
        description: Optional[str] = None,
        definition: Optional[dict] = None,
        form_template_id: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> Workflow:
        """Update workflow fields. A new definition bumps the version.

        Raises:
            NotFoundError: unknown workflow
            DefinitionError: the new definition is malformed
            ConflictError: the definition changes while executions are running
        """
        workflow = await self.get_workflow(workflow_id)
        data = {
            "name": name,
            "description": description,
            "form_template_id": form_template_id,
            "is_active": is_active,
        }

        if definition is not None:
            normalized = normalize_definition(definition, workflow_id)
            if normalized != workflow.definition:
                running = await self.count_running_executions(workflow_id)
                if running:
                    raise ConflictError(
                        f"Workflow {workflow_id} has {running} running execution(s); "
                        f"its definition cannot change until they finish"
                    )
                data["definition"] = normalized
                data["version"] = workflow.version + 1

        updated = await self.update(workflow_id, data)
        logger.info("workflow_updated", workflow_id=workflow_id, version=updated.version)
        return updated

    async def count_running_executions(self, workflow_id: str) -> int:
        result = await self.db.execute(
            select(func.count())
            .select_from(Execution)
            .where(
                Execution.workflow_id == workflow_id,
                Execution.status == ExecutionStatus.RUNNING.value,
            )
        )
        return result.scalar() or 0

    async def active_for_template(self, form_template_id: str) -> Sequence[Workflow]:
        """Active workflows bound to a form template, oldest first."""
        result = await self.db.execute(
            select(Workflow)
            .where(
                Workflow.form_template_id == form_template_id,
                Workflow.is_active == True,  # noqa: E712
            )
            .order_by(Workflow.created_at.asc())
        )
        return result.scalars().all()


class ExecutionService(BaseService[Execution]):
    """Read access to executions and their step history."""

    def __init__(self, db: AsyncSession):
        super().__init__(Execution, db)

    async def get_execution(self, execution_id: str) -> Execution:
        execution = await self.get_by_id(execution_id)
        if not execution:
            raise NotFoundError(f"Execution not found: {execution_id}")
        return execution

    async def get_history(
        self, execution_id: str
    ) -> tuple[Sequence[Approval], Sequence[WorkflowNotification]]:
        """Approvals and notifications recorded for an execution, oldest first."""
        approvals = await self.db.execute(
            select(Approval)
            .where(Approval.execution_id == execution_id)
            .order_by(Approval.created_at.asc())
        )
        notifications = await self.db.execute(
            select(WorkflowNotification)
            .where(WorkflowNotification.execution_id == execution_id)
            .order_by(WorkflowNotification.created_at.asc())
        )
        return approvals.scalars().all(), notifications.scalars().all()


class ApprovalService(BaseService[Approval]):
    """Approval inbox queries."""

    def __init__(self, db: AsyncSession):
        super().__init__(Approval, db)

    async def get_approval(self, approval_id: str) -> Approval:
        approval = await self.get_by_id(approval_id)
        if not approval:
            raise NotFoundError(f"Approval not found: {approval_id}")
        return approval
