"""Notification log model."""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.constants import NotificationStatus
from db.base import BaseModel


class WorkflowNotification(BaseModel):
    """One dispatch attempt made by a notification step.

    Purely a log; never blocks execution progress.
    """

    __tablename__ = "notifications"

    execution_id: Mapped[str] = mapped_column(
        ForeignKey("executions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    step_id: Mapped[str] = mapped_column(nullable=False)
    channel: Mapped[str] = mapped_column(nullable=False, default="email")
    recipient: Mapped[str] = mapped_column(nullable=False, default="")
    subject: Mapped[str] = mapped_column(nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(
        default=NotificationStatus.PENDING.value, index=True
    )
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    execution: Mapped["Execution"] = relationship(
        "Execution", back_populates="notifications", lazy="raise"
    )
