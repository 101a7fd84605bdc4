"""Trigger service — starts executions from direct triggers and form submissions."""

from typing import Any, Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import WorkflowError
from services.workflow_service import WorkflowService
from workflow.engine import WorkflowEngine

logger = structlog.get_logger(__name__)


class TriggerService:
    """Bridges inbound events to the workflow engine."""

    def __init__(self, db: AsyncSession, engine: WorkflowEngine):
        self.db = db
        self.engine = engine

    async def trigger(
        self,
        workflow_id: str,
        trigger_context: Optional[dict] = None,
        form_submission_id: Optional[str] = None,
    ) -> str:
        """Start one execution; errors propagate to the caller."""
        return await self.engine.start(workflow_id, trigger_context or {}, form_submission_id)

    async def trigger_form_submission(
        self,
        form_template_id: str,
        form_submission_id: Optional[str],
        submission_data: dict,
    ) -> dict[str, Any]:
        """Start every active workflow bound to a form template.

        A workflow that cannot start is reported in the results and does
        not prevent the others from starting.
        """
        workflows = await WorkflowService(self.db).active_for_template(form_template_id)
        results = []
        failed = 0

        for workflow in workflows:
            entry = {"workflow_id": workflow.id, "workflow_name": workflow.name}
            try:
                entry["execution_id"] = await self.engine.start(
                    workflow.id, submission_data, form_submission_id
                )
                entry["status"] = "started"
            except WorkflowError as e:
                failed += 1
                entry.update(status="failed", error=e.message)
                logger.warning(
                    "form_submission_workflow_not_started",
                    workflow_id=workflow.id,
                    form_template_id=form_template_id,
                    error=e.message,
                )
            results.append(entry)

        logger.info(
            "form_submission_triggered",
            form_template_id=form_template_id,
            form_submission_id=form_submission_id,
            started=len(workflows) - failed,
            failed=failed,
        )
        return {
            "workflows_triggered": len(workflows) - failed,
            "workflows_failed": failed,
            "results": results,
        }
