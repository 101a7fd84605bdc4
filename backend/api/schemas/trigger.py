"""Trigger schemas."""

from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional


class TriggerRequest(BaseModel):
    """Start one execution of a workflow."""

    workflow_id: str = Field(min_length=1)
    trigger_context: Dict[str, Any] = Field(default_factory=dict, description="Form submission payload")
    form_submission_id: Optional[str] = None


class TriggerResponse(BaseModel):
    execution_id: str


class FormSubmissionTrigger(BaseModel):
    """A form submission, fanned out to every active workflow of its template."""

    form_template_id: str = Field(min_length=1)
    form_submission_id: Optional[str] = None
    submission_data: Dict[str, Any] = Field(default_factory=dict)


class FormSubmissionResult(BaseModel):
    workflow_id: str
    workflow_name: str
    status: str = Field(description="started or failed")
    execution_id: Optional[str] = None
    error: Optional[str] = None


class FormSubmissionResponse(BaseModel):
    workflows_triggered: int
    workflows_failed: int
    results: List[FormSubmissionResult]
