"""Trigger endpoints — start executions from a payload or a form submission."""

from fastapi import APIRouter, Depends
import logging

from api.schemas.trigger import (
    FormSubmissionResponse,
    FormSubmissionTrigger,
    TriggerRequest,
    TriggerResponse,
)
from app.dependencies import get_trigger_service
from services.trigger_service import TriggerService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["triggers"])


@router.post("", response_model=TriggerResponse)
async def trigger_workflow(
    request: TriggerRequest,
    svc: TriggerService = Depends(get_trigger_service),
) -> TriggerResponse:
    """
    Start one execution of a workflow.

    Returns as soon as the execution exists; steps run in the background.
    404 for an unknown workflow, 422 for a definition that does not validate.
    """
    execution_id = await svc.trigger(
        request.workflow_id,
        request.trigger_context,
        request.form_submission_id,
    )
    return TriggerResponse(execution_id=execution_id)


@router.post("/form-submission", response_model=FormSubmissionResponse)
async def trigger_form_submission(
    request: FormSubmissionTrigger,
    svc: TriggerService = Depends(get_trigger_service),
) -> FormSubmissionResponse:
    """
    Start every active workflow bound to the submitted form's template.
    """
    result = await svc.trigger_form_submission(
        request.form_template_id,
        request.form_submission_id,
        request.submission_data,
    )
    return FormSubmissionResponse(**result)
