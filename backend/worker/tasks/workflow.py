"""Celery tasks for workflow execution.

These tasks bridge the Celery worker with the WorkflowEngine. A trigger
on the API side creates the execution row and queues ``run_execution``;
the worker drives the loop until the execution suspends on an approval,
completes, or fails. Beat runs ``expire_approvals`` periodically.
"""

import asyncio
import logging

from worker.celery_app import celery_app

logger = logging.getLogger(__name__)


def _build_engine(session_factory):
    """Engine for one task run; the loop runs inline inside the task."""
    from app.config import get_settings
    from notifications.manager import get_notification_manager
    from workflow.engine import WorkflowEngine
    from workflow.launcher import InlineLauncher
    from workflow.store import ExecutionStore

    return WorkflowEngine(
        store=ExecutionStore(session_factory),
        dispatcher=get_notification_manager(),
        launcher=InlineLauncher(),
        settings=get_settings(),
    )


async def _run_execution(execution_id: str) -> None:
    from db.worker_session import worker_session_factory

    async with worker_session_factory() as session_factory:
        await _build_engine(session_factory).run(execution_id)


async def _expire_approvals() -> int:
    from db.worker_session import worker_session_factory

    async with worker_session_factory() as session_factory:
        return await _build_engine(session_factory).expire_stale_approvals()


def _run(coro):
    """Run a coroutine on a fresh event loop owned by this task."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@celery_app.task(
    name="worker.tasks.workflow.run_execution",
    bind=True,
    acks_late=True,
    queue="workflows",
)
def run_execution(self, execution_id: str):
    """Drive an execution until it suspends, completes or fails.

    Args:
        execution_id: Execution created by the trigger endpoint
    """
    logger.info(f"Running execution {execution_id}")
    _run(_run_execution(execution_id))
    return {"execution_id": execution_id}


@celery_app.task(
    name="worker.tasks.workflow.expire_approvals",
    queue="workflows",
)
def expire_approvals():
    """Expire overdue approvals and fail the executions waiting on them."""
    expired = _run(_expire_approvals())
    if expired:
        logger.info(f"Expired {expired} approval(s)")
    return {"expired": expired}
