"""FastAPI dependency injection functions."""

from typing import Optional

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from app.config import get_settings
from db.database import AsyncSessionLocal
from notifications.manager import get_notification_manager
from workflow.engine import WorkflowEngine
from workflow.launcher import build_launcher
from workflow.store import ExecutionStore

logger = logging.getLogger(__name__)

_engine: Optional[WorkflowEngine] = None


async def get_db() -> AsyncSession:
    """
    Provide a database session for API endpoints.

    Yields an async SQLAlchemy session that is automatically
    committed on success or rolled back on error.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception as e:
            logger.error(f"Database error: {str(e)}")
            await session.rollback()
            raise


def get_workflow_engine() -> WorkflowEngine:
    """Get or create the process-wide workflow engine."""
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = WorkflowEngine(
            store=ExecutionStore(AsyncSessionLocal),
            dispatcher=get_notification_manager(),
            launcher=build_launcher(settings),
            settings=settings,
        )
    return _engine


def get_engine() -> WorkflowEngine:
    """Workflow engine dependency; overridden in tests."""
    return get_workflow_engine()


def get_trigger_service(
    db: AsyncSession = Depends(get_db),
    engine: WorkflowEngine = Depends(get_engine),
):
    from services.trigger_service import TriggerService

    return TriggerService(db, engine)
