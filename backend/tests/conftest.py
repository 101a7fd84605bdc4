"""Shared pytest fixtures for the Form Workflow Engine test suite.

Provides:
- In-memory async SQLite database (no PostgreSQL needed for tests)
- ExecutionStore and a WorkflowEngine wired to a fake dispatcher and clock
- FastAPI test client (httpx.AsyncClient) using the same database
- Workflow row factory
"""

import os
from datetime import datetime, timedelta
from typing import AsyncGenerator, Optional
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

# Override settings BEFORE any app imports
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_FORMAT", "text")
os.environ.setdefault("EXECUTION_BACKEND", "inprocess")

from app.config import Settings  # noqa: E402
from db.base import Base  # noqa: E402
from db.database import create_session_factory  # noqa: E402
from notifications.channels import DeliveryResult, NotificationChannel  # noqa: E402
from workflow.engine import WorkflowEngine  # noqa: E402
from workflow.launcher import InlineLauncher  # noqa: E402
from workflow.store import ExecutionStore  # noqa: E402


# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------

class FakeDispatcher:
    """Records every send; can be told to fail or to raise."""

    def __init__(self):
        self.sent: list[dict] = []
        self.fail_with: Optional[str] = None
        self.raise_with: Optional[Exception] = None

    async def send(self, recipient, subject, body, channel="email") -> DeliveryResult:
        self.sent.append(
            {"recipient": recipient, "subject": subject, "body": body, "channel": channel}
        )
        if self.raise_with is not None:
            raise self.raise_with
        if self.fail_with is not None:
            return DeliveryResult(
                success=False,
                channel=NotificationChannel.EMAIL,
                recipient=recipient,
                error=self.fail_with,
            )
        return DeliveryResult(success=True, channel=NotificationChannel.EMAIL, recipient=recipient)

    def subjects(self) -> list[str]:
        return [m["subject"] for m in self.sent]


class FakeClock:
    """Settable clock; naive UTC like core.utils.utc_now()."""

    def __init__(self, start: datetime = datetime(2026, 3, 2, 9, 0, 0)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def db_engine():
    """Fresh in-memory database per test; one shared connection."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    import db.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return create_session_factory(db_engine)


@pytest.fixture
def store(session_factory) -> ExecutionStore:
    return ExecutionStore(session_factory)


# ---------------------------------------------------------------------------
# Engine fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def settings() -> Settings:
    return Settings(
        APPROVAL_EXPIRY_DAYS=7,
        MAX_CONDITION_VISITS=5,
        APP_BASE_URL="http://forms.test",
        DEFAULT_NOTIFICATION_RECIPIENT="admin@company.com",
    )


@pytest.fixture
def dispatcher() -> FakeDispatcher:
    return FakeDispatcher()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def engine(store, dispatcher, settings, clock) -> WorkflowEngine:
    """Engine whose loop runs inline, so start() returns after the loop settles."""
    return WorkflowEngine(
        store=store,
        dispatcher=dispatcher,
        launcher=InlineLauncher(),
        settings=settings,
        clock=clock,
    )


@pytest.fixture
def make_workflow(session_factory):
    """Insert a workflow row and return its id."""
    from db.models import Workflow

    async def _make(
        definition: dict,
        name: str = "Test Workflow",
        form_template_id: Optional[str] = None,
        is_active: bool = True,
    ) -> str:
        workflow = Workflow(
            id=str(uuid4()),
            name=name,
            description="A workflow for testing",
            form_template_id=form_template_id,
            definition=definition,
            version=1,
            is_active=is_active,
        )
        async with session_factory() as session:
            session.add(workflow)
            await session.commit()
        return workflow.id

    return _make


# ---------------------------------------------------------------------------
# App / HTTP client fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def app(db_engine, session_factory, engine):
    """FastAPI app wired to the test database and engine."""
    import db.database as db_mod
    from app.dependencies import get_db, get_engine
    from app.main import create_app

    original_engine = db_mod.engine
    db_mod.engine = db_engine

    async def _test_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    test_app = create_app()
    test_app.dependency_overrides[get_db] = _test_db
    test_app.dependency_overrides[get_engine] = lambda: engine

    yield test_app

    db_mod.engine = original_engine


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
