"""Form Workflow Engine - FastAPI Application."""

import asyncio
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import get_settings
from app.dependencies import get_workflow_engine
from api.v1.router import api_v1_router
from api.routes import health
from core.constants import ExecutionBackend
from core.logging_config import setup_logging
from core.middleware import RequestTrackingMiddleware, setup_exception_handlers
from db.database import close_db, init_db
from notifications.manager import get_notification_manager
from workflow.engine import WorkflowEngine

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown events."""
    settings = get_settings()
    setup_logging()

    await init_db()

    notif_mgr = get_notification_manager()
    logger.info("notification_manager_ready", channels=notif_mgr.channels)

    engine = get_workflow_engine()
    logger.info("workflow_engine_ready", backend=settings.EXECUTION_BACKEND)

    # Celery beat runs the sweep when executions go through Celery
    sweeper = None
    if settings.EXECUTION_BACKEND != ExecutionBackend.CELERY.value:
        sweeper = asyncio.create_task(
            _approval_sweep_loop(engine, settings.APPROVAL_SWEEP_INTERVAL_MINUTES * 60),
            name="approval-sweeper",
        )

    logger.info(
        "app_started",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
    )
    yield

    if sweeper is not None:
        sweeper.cancel()
    await engine.launcher.shutdown()
    await close_db()
    logger.info("app_shutdown")


async def _approval_sweep_loop(engine: WorkflowEngine, interval_seconds: float) -> None:
    """Expire stale approvals every interval while the app runs."""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            expired = await engine.expire_stale_approvals()
            if expired:
                logger.info("approval_sweep_done", expired=expired)
        except Exception as e:
            logger.error("approval_sweep_failed", error=str(e), exc_info=True)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Runs form-triggered workflows with notification, "
                    "approval and condition steps.",
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        lifespan=lifespan,
    )

    # Request tracking middleware
    app.add_middleware(RequestTrackingMiddleware)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
    )

    # Global exception handlers
    setup_exception_handlers(app)

    # Root health check (unversioned, for load balancers / k8s probes)
    app.include_router(health.router, prefix="/api", tags=["Health"])

    # Versioned API: all business endpoints under /api/v1
    app.include_router(api_v1_router, prefix=settings.API_V1_PREFIX)

    return app


app = create_app()
