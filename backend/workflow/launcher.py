"""Execution launchers — hand a new execution to background work.

The trigger path only waits for the execution row; the driver loop then
runs elsewhere:

- InProcessLauncher: an asyncio task per execution id in this process
- CeleryLauncher: a ``run_execution`` task on the workflows queue
- InlineLauncher: runs the loop before returning (Celery worker, tests)
"""

import asyncio
from functools import partial
from typing import Awaitable, Callable, Protocol

import structlog

from app.config import Settings
from core.constants import ExecutionBackend

logger = structlog.get_logger(__name__)

Runner = Callable[[str], Awaitable[None]]


class ExecutionLauncher(Protocol):
    async def launch(self, execution_id: str, runner: Runner) -> None:
        ...

    async def shutdown(self) -> None:
        ...


class InProcessLauncher:
    """Runs each execution's loop as an asyncio task keyed by execution id."""

    def __init__(self):
        self._tasks: dict[str, asyncio.Task] = {}

    @property
    def running(self) -> list[str]:
        return list(self._tasks)

    async def launch(self, execution_id: str, runner: Runner) -> None:
        if execution_id in self._tasks:
            logger.debug("execution_already_launched", execution_id=execution_id)
            return
        task = asyncio.create_task(runner(execution_id), name=f"execution-{execution_id}")
        self._tasks[execution_id] = task
        task.add_done_callback(partial(self._on_done, execution_id))

    def _on_done(self, execution_id: str, task: asyncio.Task) -> None:
        self._tasks.pop(execution_id, None)
        if task.cancelled():
            logger.warning("execution_task_cancelled", execution_id=execution_id)
        elif task.exception() is not None:
            logger.error(
                "execution_task_crashed",
                execution_id=execution_id,
                error=str(task.exception()),
            )

    async def join(self) -> None:
        """Wait until every launched loop has returned."""
        while self._tasks:
            await asyncio.gather(*self._tasks.values(), return_exceptions=True)

    async def shutdown(self, timeout: float = 30.0) -> None:
        """Give running loops a grace period, then cancel the rest."""
        if not self._tasks:
            return
        try:
            await asyncio.wait_for(self.join(), timeout=timeout)
        except asyncio.TimeoutError:
            for task in list(self._tasks.values()):
                task.cancel()
            logger.warning("execution_tasks_cancelled_on_shutdown", count=len(self._tasks))


class InlineLauncher:
    """Runs the loop to its next suspension or end before returning."""

    async def launch(self, execution_id: str, runner: Runner) -> None:
        await runner(execution_id)

    async def shutdown(self) -> None:
        return None


class CeleryLauncher:
    """Queues the loop on a Celery worker."""

    async def launch(self, execution_id: str, runner: Runner) -> None:
        from worker.tasks.workflow import run_execution

        run_execution.delay(execution_id)
        logger.info("execution_queued", execution_id=execution_id, backend="celery")

    async def shutdown(self) -> None:
        return None


def build_launcher(settings: Settings) -> ExecutionLauncher:
    """Pick the launcher named by EXECUTION_BACKEND."""
    backend = ExecutionBackend(settings.EXECUTION_BACKEND)
    if backend == ExecutionBackend.CELERY:
        return CeleryLauncher()
    return InProcessLauncher()
