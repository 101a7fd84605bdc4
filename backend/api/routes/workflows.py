"""Workflow definition endpoints — list, create, get, update, validate."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from api.schemas.common import PaginationParams
from api.schemas.workflow import (
    DefinitionValidateRequest,
    DefinitionValidateResponse,
    WorkflowCreate,
    WorkflowListResponse,
    WorkflowResponse,
    WorkflowUpdate,
)
from app.dependencies import get_db
from core.utils import calculate_offset
from services.workflow_service import WorkflowService, check_definition

logger = logging.getLogger(__name__)

router = APIRouter(tags=["workflows"])


@router.get("", response_model=WorkflowListResponse)
async def list_workflows(
    pagination: PaginationParams = Depends(),
    form_template_id: Optional[str] = Query(None, description="Filter by form template"),
    is_active: Optional[bool] = Query(None, description="Filter by active flag"),
    db: AsyncSession = Depends(get_db),
) -> WorkflowListResponse:
    """
    List workflows (paginated, filterable).
    """
    svc = WorkflowService(db)
    workflows, total = await svc.list(
        offset=calculate_offset(pagination.page, pagination.per_page),
        limit=pagination.per_page,
        filters={"form_template_id": form_template_id, "is_active": is_active},
    )

    return WorkflowListResponse(
        workflows=[WorkflowResponse.model_validate(wf) for wf in workflows],
        total=total,
        page=pagination.page,
        per_page=pagination.per_page,
    )


@router.post("", response_model=WorkflowResponse, status_code=status.HTTP_201_CREATED)
async def create_workflow(
    request: WorkflowCreate,
    db: AsyncSession = Depends(get_db),
) -> WorkflowResponse:
    """
    Create a workflow. The definition must validate (422 otherwise).
    """
    wf = await WorkflowService(db).create_workflow(
        name=request.name,
        description=request.description or "",
        definition=request.definition,
        form_template_id=request.form_template_id,
        is_active=request.is_active,
    )
    return WorkflowResponse.model_validate(wf)


@router.post("/validate", response_model=DefinitionValidateResponse)
async def validate_definition(request: DefinitionValidateRequest) -> DefinitionValidateResponse:
    """
    Check a definition without saving it.
    """
    errors = check_definition(request.definition)
    return DefinitionValidateResponse(valid=not errors, errors=errors)


@router.get("/{workflow_id}", response_model=WorkflowResponse)
async def get_workflow(
    workflow_id: str,
    db: AsyncSession = Depends(get_db),
) -> WorkflowResponse:
    """
    Get workflow details by ID.
    """
    wf = await WorkflowService(db).get_workflow(workflow_id)
    return WorkflowResponse.model_validate(wf)


@router.put("/{workflow_id}", response_model=WorkflowResponse)
async def update_workflow(
    workflow_id: str,
    request: WorkflowUpdate,
    db: AsyncSession = Depends(get_db),
) -> WorkflowResponse:
    """
    Update workflow fields. Definition changes bump the version and are
    refused (409) while executions of the workflow are running.
    """
    wf = await WorkflowService(db).update_workflow(
        workflow_id,
        **request.model_dump(exclude_unset=True),
    )
    return WorkflowResponse.model_validate(wf)
