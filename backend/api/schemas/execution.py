"""Execution schemas."""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Any, Dict, List, Optional

from api.schemas.approval import ApprovalResponse


class NotificationResponse(BaseModel):
    """Notification row recorded by a notification or approval step."""

    id: str
    step_id: str
    channel: str
    recipient: str
    subject: str
    message: str
    status: str = Field(description="pending, sent or failed")
    error_message: Optional[str] = None
    sent_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class ExecutionResponse(BaseModel):
    """Execution run information response."""

    id: str = Field(description="Execution ID")
    workflow_id: str = Field(description="Workflow ID")
    form_submission_id: Optional[str] = Field(default=None, description="Triggering form submission")
    status: str = Field(description="Execution status (running, completed, failed)")
    current_step_id: str = Field(description="Step the execution is at")
    context: Dict[str, Any] = Field(default_factory=dict, description="Trigger payload and step outputs")
    error_message: Optional[str] = Field(default=None, description="Error message if execution failed")
    created_at: datetime = Field(description="Start timestamp")
    completed_at: Optional[datetime] = Field(default=None, description="Completion timestamp")

    class Config:
        from_attributes = True


class ExecutionDetailResponse(ExecutionResponse):
    """Execution with its approvals and notifications."""

    approvals: List[ApprovalResponse] = Field(default_factory=list)
    notifications: List[NotificationResponse] = Field(default_factory=list)


class ExecutionListResponse(BaseModel):
    """Paginated list of executions."""

    executions: List[ExecutionResponse] = Field(description="List of executions")
    total: int = Field(description="Total number of executions")
    page: int = Field(description="Current page number")
    per_page: int = Field(description="Items per page")
