"""Workflow schemas."""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import List, Optional, Dict, Any


class WorkflowCreate(BaseModel):
    """Request to create a workflow."""

    name: str = Field(min_length=1, description="Workflow name")
    description: Optional[str] = Field(default="", description="Workflow description")
    form_template_id: Optional[str] = Field(
        default=None, description="Form template whose submissions trigger this workflow"
    )
    is_active: bool = Field(default=True, description="Whether form submissions trigger this workflow")
    definition: Dict[str, Any] = Field(description='Step graph: {"steps": [...], "connections": [...]}')


class WorkflowUpdate(BaseModel):
    """Request to update a workflow."""

    name: Optional[str] = Field(default=None, min_length=1, description="Workflow name")
    description: Optional[str] = Field(default=None, description="Workflow description")
    form_template_id: Optional[str] = Field(default=None, description="Bound form template")
    is_active: Optional[bool] = Field(default=None, description="Whether workflow is active")
    definition: Optional[Dict[str, Any]] = Field(default=None, description="Workflow definition")


class WorkflowResponse(BaseModel):
    """Workflow information response."""

    id: str = Field(description="Workflow ID")
    name: str = Field(description="Workflow name")
    description: str = Field(description="Workflow description")
    form_template_id: Optional[str] = Field(default=None, description="Bound form template")
    definition: Dict[str, Any] = Field(description="Workflow definition")
    version: int = Field(description="Workflow version number")
    is_active: bool = Field(description="Whether workflow is active")
    created_at: datetime = Field(description="Creation timestamp")
    updated_at: datetime = Field(description="Last update timestamp")

    class Config:
        from_attributes = True


class WorkflowListResponse(BaseModel):
    """Paginated list of workflows."""

    workflows: List[WorkflowResponse] = Field(description="List of workflows")
    total: int = Field(description="Total number of workflows")
    page: int = Field(description="Current page number")
    per_page: int = Field(description="Items per page")


class DefinitionValidateRequest(BaseModel):
    """Definition to check without saving."""

    definition: Dict[str, Any] = Field(description="Workflow definition")


class DefinitionValidateResponse(BaseModel):
    valid: bool
    errors: List[str] = Field(default_factory=list)
