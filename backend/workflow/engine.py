"""Workflow Execution Engine — drives form-triggered workflow graphs.

An execution walks a graph of start, notification, approval, condition
and end steps. The engine:

- creates the execution row and hands the driver loop to a launcher
- dispatches each step to its processor and persists every transition
- suspends on approval steps and resumes on an approve/reject decision
- fails executions on definition or store errors, and on expired approvals

Execution context layout (Execution.context JSON):
{
    "trigger":   { ...form submission payload... },
    "path":      ["start", "notify-manager", "approval-1", ...],
    "approvals": { "approval-1": {"decision": "approved", "reason": "...",
                                  "actor": "...", "decided_at": "..."} },
    "decision":  "approved"
}

Guards read ``trigger`` first, so ``field: "amount"`` means the submitted
amount, while ``field: "decision"`` sees the most recent approval outcome.
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Awaitable, Callable, Optional

import structlog

from app.config import Settings, get_settings
from core.constants import ApprovalDecision, ApprovalStatus, ExecutionStatus, StepKind
from core.exceptions import (
    BadRequestError,
    DefinitionError,
    NotFoundError,
    ResumeConflictError,
    StoreError,
)
from core.utils import utc_now
from db.models import Execution
from notifications.manager import NotificationDispatcher
from workflow.conditions import select_connection
from workflow.graph import WorkflowDefinition
from workflow.launcher import ExecutionLauncher, InProcessLauncher
from workflow.processors import StepRun, Suspend, build_processors
from workflow.store import ExecutionStore

logger = structlog.get_logger(__name__)


class WorkflowEngine:
    """Starts, drives and resumes executions.

    Transitions of one execution are serialized by a per-execution lock,
    so a resume can never interleave with a running loop of the same id.
    """

    def __init__(
        self,
        store: ExecutionStore,
        dispatcher: NotificationDispatcher,
        launcher: Optional[ExecutionLauncher] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.launcher = launcher or InProcessLauncher()
        self.settings = settings or get_settings()
        self.clock = clock
        self._processors = build_processors(store, dispatcher, self.settings, clock)
        self._locks: dict[str, list] = {}

    # ─── Public API ───────────────────────────────────────

    async def start(
        self,
        workflow_id: str,
        trigger_context: Optional[dict] = None,
        form_submission_id: Optional[str] = None,
    ) -> str:
        """Create a running execution at the start step and launch its loop.

        Returns the execution id once the row exists; the loop itself
        continues in the launcher.

        Raises:
            NotFoundError: unknown workflow
            DefinitionError: workflow graph does not validate
        """
        definition = await self.store.load_definition(workflow_id)
        definition.validate()
        start = definition.start_step

        context = {"trigger": trigger_context or {}, "path": [start.id], "approvals": {}}
        execution = await self.store.create_execution(
            workflow_id=workflow_id,
            start_step_id=start.id,
            context=context,
            form_submission_id=form_submission_id,
        )
        logger.info(
            "execution_started",
            execution_id=execution.id,
            workflow_id=workflow_id,
            form_submission_id=form_submission_id,
        )

        await self.launcher.launch(execution.id, self.run)
        return execution.id

    async def run(self, execution_id: str) -> None:
        """Drive an execution until it suspends, completes or fails.

        A no-op for executions that are not running or that are waiting
        on a pending approval.
        """
        async with self._execution_lock(execution_id):
            with structlog.contextvars.bound_contextvars(execution_id=execution_id):
                execution = await self.store.get_execution(execution_id)
                if execution.status != ExecutionStatus.RUNNING.value:
                    logger.info("execution_not_running", status=execution.status)
                    return
                if await self.store.get_pending_approval(execution_id) is not None:
                    logger.info("execution_awaiting_approval", step_id=execution.current_step_id)
                    return
                await self._guarded(execution_id, self._resume_loop(execution))

    async def resume(
        self,
        approval_id: str,
        decision: str,
        reason: str,
        actor_id: Optional[str] = None,
    ) -> Execution:
        """Apply an approve/reject decision and continue the suspended execution.

        Runs the loop to its next suspension or end before returning, and
        returns the execution as it stands afterwards.

        Raises:
            BadRequestError: unknown decision or empty reason
            NotFoundError: unknown approval
            ResumeConflictError: approval already decided or expired
        """
        try:
            decision = ApprovalDecision(decision).value
        except ValueError:
            raise BadRequestError(f"Invalid decision: {decision!r} (expected 'approved' or 'rejected')")
        if not reason or not reason.strip():
            raise BadRequestError("A reason is required to approve or reject")

        approval = await self.store.get_approval(approval_id)
        self._ensure_pending(approval)

        now = self.clock()
        if approval.expires_at <= now:
            raise ResumeConflictError(f"Approval {approval_id} has expired")

        execution_id = approval.execution_id
        async with self._execution_lock(execution_id):
            with structlog.contextvars.bound_contextvars(execution_id=execution_id):
                applied = await self.store.decide_approval(
                    approval_id, ApprovalStatus(decision), reason, actor_id, now
                )
                if not applied:
                    self._ensure_pending(await self.store.get_approval(approval_id))
                    raise ResumeConflictError(f"Approval {approval_id} is no longer pending")

                logger.info(
                    "approval_decided",
                    approval_id=approval_id,
                    step_id=approval.step_id,
                    decision=decision,
                    actor=actor_id,
                )
                record = {
                    "decision": decision,
                    "reason": reason,
                    "actor": actor_id,
                    "decided_at": now.isoformat(),
                }
                await self._guarded(
                    execution_id, self._continue_after_approval(execution_id, approval.step_id, record)
                )

        return await self.store.get_execution(execution_id)

    async def expire_stale_approvals(self) -> int:
        """Expire pending approvals past their deadline and fail their executions.

        Returns the number of approvals expired by this sweep.
        """
        now = self.clock()
        expired = 0
        for approval in await self.store.list_expired_approvals(now):
            async with self._execution_lock(approval.execution_id):
                applied = await self.store.decide_approval(
                    approval.id, ApprovalStatus.EXPIRED, "Approval expired", None, now
                )
                if not applied:
                    continue
                expired += 1
                try:
                    await self.store.fail(
                        approval.execution_id,
                        f"Approval for step '{approval.step_id}' expired",
                        now,
                    )
                except StoreError as e:
                    logger.warning(
                        "expired_approval_execution_not_failed",
                        execution_id=approval.execution_id,
                        error=e.message,
                    )
                logger.info(
                    "approval_expired",
                    approval_id=approval.id,
                    execution_id=approval.execution_id,
                    step_id=approval.step_id,
                )
        return expired

    # ─── Driver loop ──────────────────────────────────────

    async def _resume_loop(self, execution: Execution) -> None:
        definition = await self._load_definition(execution.workflow_id)
        context = dict(execution.context or {})
        await self._drive(execution.id, execution.current_step_id, definition, context)

    async def _continue_after_approval(self, execution_id: str, step_id: str, record: dict) -> None:
        execution = await self.store.get_execution(execution_id)
        if execution.status != ExecutionStatus.RUNNING.value:
            logger.warning("approval_decided_on_finished_execution", status=execution.status)
            return
        if execution.current_step_id != step_id:
            raise StoreError(
                f"Execution {execution_id} is at step '{execution.current_step_id}', "
                f"not at approval step '{step_id}'"
            )

        definition = await self._load_definition(execution.workflow_id)
        context = dict(execution.context or {})
        context["approvals"] = {**context.get("approvals", {}), step_id: record}
        context["decision"] = record["decision"]

        connection = select_connection(definition.outgoing(step_id), context)
        if connection is None:
            raise DefinitionError(
                f"Approval step '{step_id}' has no connection eligible for decision '{record['decision']}'"
            )

        next_step_id = await self._advance(execution_id, definition, context, connection.target)
        await self._drive(execution_id, next_step_id, definition, context)

    async def _drive(
        self,
        execution_id: str,
        step_id: str,
        definition: WorkflowDefinition,
        context: dict,
    ) -> None:
        while True:
            step = definition.get_step(step_id)

            if step.kind == StepKind.END:
                await self.store.complete(execution_id, self.clock(), context)
                logger.info("execution_completed", end_step=step.id)
                return

            processor = self._processors[step.kind]
            logger.debug("step_processing", step_id=step.id, kind=step.kind.value)
            outcome = await processor.process(step, StepRun(execution_id, definition, context))

            if isinstance(outcome, Suspend):
                logger.info("execution_suspended", step_id=step.id, approval_id=outcome.approval_id)
                return

            step_id = await self._advance(execution_id, definition, context, outcome.next_step_id)

    async def _advance(
        self,
        execution_id: str,
        definition: WorkflowDefinition,
        context: dict,
        next_step_id: str,
    ) -> str:
        target = definition.get_step(next_step_id)
        path = context.setdefault("path", [])

        if target.kind == StepKind.CONDITION:
            limit = self.settings.MAX_CONDITION_VISITS
            if path.count(target.id) >= limit:
                raise DefinitionError(
                    f"Condition step '{target.id}' visited more than {limit} times; "
                    f"the workflow appears to loop"
                )

        path.append(target.id)
        await self.store.advance(execution_id, target.id, context)
        return target.id

    async def _load_definition(self, workflow_id: str) -> WorkflowDefinition:
        try:
            return await self.store.load_definition(workflow_id)
        except NotFoundError as e:
            raise DefinitionError(e.message)

    async def _guarded(self, execution_id: str, work: Awaitable[None]) -> None:
        """Await loop work, turning any error into a failed execution."""
        try:
            await work
        except (DefinitionError, StoreError) as e:
            await self._fail(execution_id, e.message)
        except Exception as e:
            logger.exception("execution_crashed", error=str(e))
            await self._fail(execution_id, f"Unexpected error: {e}")

    async def _fail(self, execution_id: str, message: str) -> None:
        logger.error("execution_failed", error=message)
        try:
            await self.store.fail(execution_id, message, self.clock())
        except StoreError as e:
            logger.error("execution_fail_not_recorded", error=e.message)

    @staticmethod
    def _ensure_pending(approval) -> None:
        if approval.status != ApprovalStatus.PENDING.value:
            raise ResumeConflictError(
                f"Approval {approval.id} is not pending (status: {approval.status})"
            )

    @asynccontextmanager
    async def _execution_lock(self, execution_id: str) -> AsyncIterator[None]:
        entry = self._locks.get(execution_id)
        if entry is None:
            entry = self._locks[execution_id] = [asyncio.Lock(), 0]
        entry[1] += 1
        try:
            async with entry[0]:
                yield
        finally:
            entry[1] -= 1
            if entry[1] == 0:
                self._locks.pop(execution_id, None)
