"""Execution model: one run of a workflow graph per triggering event."""

from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, DateTime, ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.constants import ExecutionStatus
from db.base import BaseModel


class Execution(BaseModel):
    """Execution model representing a workflow execution instance.

    Attributes:
        id: Unique identifier (UUID string)
        workflow_id: Foreign key to Workflow
        form_submission_id: Submission that triggered the run, if any
        status: running, completed or failed
        current_step_id: Step the driver loop is at (or suspended on)
        context: Trigger payload plus values recorded by steps
        completed_at: Timestamp of reaching a terminal status
        error_message: Error message if execution failed
        created_at: Creation timestamp
        updated_at: Last update timestamp
    """

    __tablename__ = "executions"

    workflow_id: Mapped[str] = mapped_column(
        ForeignKey("workflows.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    form_submission_id: Mapped[Optional[str]] = mapped_column(nullable=True, index=True)
    status: Mapped[str] = mapped_column(
        default=ExecutionStatus.RUNNING.value, index=True
    )
    current_step_id: Mapped[str] = mapped_column(nullable=False)
    context: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Relationships
    workflow: Mapped["Workflow"] = relationship(
        "Workflow", back_populates="executions", lazy="raise"
    )
    approvals: Mapped[list["Approval"]] = relationship(
        "Approval",
        back_populates="execution",
        cascade="all, delete-orphan",
        lazy="raise",
    )
    notifications: Mapped[list["WorkflowNotification"]] = relationship(
        "WorkflowNotification",
        back_populates="execution",
        cascade="all, delete-orphan",
        lazy="raise",
    )
