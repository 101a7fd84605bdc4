"""Database models for the workflow engine.

This module imports all models to ensure they are registered
with SQLAlchemy's declarative base.
"""

from db.models.workflow import Workflow
from db.models.execution import Execution
from db.models.approval import Approval
from db.models.notification import WorkflowNotification

__all__ = [
    "Workflow",
    "Execution",
    "Approval",
    "WorkflowNotification",
]
