"""Approval schemas."""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import List, Optional


class ApprovalResponse(BaseModel):
    """Approval request information."""

    id: str
    execution_id: str
    step_id: str
    assignee: Optional[str] = None
    status: str = Field(description="pending, approved, rejected or expired")
    decision_reason: Optional[str] = None
    decision_by: Optional[str] = None
    decision_at: Optional[datetime] = None
    expires_at: datetime
    notified_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class ApprovalListResponse(BaseModel):
    approvals: List[ApprovalResponse]
    total: int
    page: int
    per_page: int


class ResumeRequest(BaseModel):
    """Approve or reject a pending approval.

    decision and reason are checked by the engine so that a bad value is
    a 400, not a schema error.
    """

    approval_id: str = Field(min_length=1)
    decision: str = Field(description="approved or rejected")
    reason: str = Field(default="", description="Required justification")
    actor_id: Optional[str] = Field(default=None, description="Who decided")


class ResumeResponse(BaseModel):
    approval_id: str
    status: str
    execution_id: str
    execution_status: str
