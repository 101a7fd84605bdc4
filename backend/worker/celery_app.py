"""Celery application configuration.

This module sets up the Celery app with:
- Redis as broker and result backend
- Workflow tasks routed to their own queue
- Serialization and timezone settings
- Beat schedule for the approval expiry sweep
"""

from celery import Celery

from app.config import get_settings

settings = get_settings()

# Create Celery app
celery_app = Celery(
    "form_workflow_engine",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
)

# Configuration
celery_app.conf.update(
    # Serialization
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",

    # Timezone
    timezone="UTC",
    enable_utc=True,

    task_routes={
        "worker.tasks.workflow.*": {"queue": "workflows"},
        "worker.tasks.*": {"queue": "default"},
    },
    task_default_queue="default",

    # Result expiration (24 hours)
    result_expires=86400,

    # Task execution limits
    task_soft_time_limit=300,   # 5 min soft limit (raises SoftTimeLimitExceeded)
    task_time_limit=600,        # 10 min hard limit (kills the task)
    task_acks_late=True,        # Acknowledge after execution
    worker_prefetch_multiplier=1,

    task_reject_on_worker_lost=True,
    task_acks_on_failure_or_timeout=True,

    beat_schedule={
        "expire-stale-approvals": {
            "task": "worker.tasks.workflow.expire_approvals",
            "schedule": settings.APPROVAL_SWEEP_INTERVAL_MINUTES * 60.0,
            "options": {"queue": "workflows"},
        },
    },

    include=["worker.tasks.workflow"],
)
