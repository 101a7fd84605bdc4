"""Approval model: a human decision an execution is suspended on."""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.constants import ApprovalStatus
from db.base import BaseModel


class Approval(BaseModel):
    """Approval created when an execution reaches an approval step.

    Attributes:
        execution_id: Foreign key to Execution
        step_id: Approval step in the workflow graph
        assignee: Who is asked to decide (email or user id)
        status: pending, approved, rejected or expired
        decision_reason: Reason supplied with the decision
        decision_at: When the decision was applied
        decision_by: Actor who decided
        expires_at: Decisions are refused from this moment on
        notified_at: When the assignee alert was delivered
    """

    __tablename__ = "approvals"

    execution_id: Mapped[str] = mapped_column(
        ForeignKey("executions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    step_id: Mapped[str] = mapped_column(nullable=False)
    assignee: Mapped[Optional[str]] = mapped_column(nullable=True, index=True)
    status: Mapped[str] = mapped_column(
        default=ApprovalStatus.PENDING.value, index=True
    )
    decision_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    decision_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    decision_by: Mapped[Optional[str]] = mapped_column(nullable=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    notified_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    execution: Mapped["Execution"] = relationship(
        "Execution", back_populates="approvals", lazy="raise"
    )

    __table_args__ = (
        Index("ix_approvals_status_expires", "status", "expires_at"),
    )
