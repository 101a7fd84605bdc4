"""Workflow execution history endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from api.schemas.approval import ApprovalResponse
from api.schemas.common import PaginationParams
from api.schemas.execution import (
    ExecutionDetailResponse,
    ExecutionListResponse,
    ExecutionResponse,
    NotificationResponse,
)
from app.dependencies import get_db
from core.utils import calculate_offset
from services.workflow_service import ExecutionService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["executions"])


@router.get("", response_model=ExecutionListResponse)
async def list_executions(
    pagination: PaginationParams = Depends(),
    workflow_id: Optional[str] = Query(None, description="Filter by workflow ID"),
    exec_status: Optional[str] = Query(None, alias="status", description="Filter by execution status"),
    db: AsyncSession = Depends(get_db),
) -> ExecutionListResponse:
    """
    List workflow executions (paginated, filterable).
    """
    executions, total = await ExecutionService(db).list(
        offset=calculate_offset(pagination.page, pagination.per_page),
        limit=pagination.per_page,
        filters={"workflow_id": workflow_id, "status": exec_status},
    )
    return ExecutionListResponse(
        executions=[ExecutionResponse.model_validate(ex) for ex in executions],
        total=total,
        page=pagination.page,
        per_page=pagination.per_page,
    )


@router.get("/{execution_id}", response_model=ExecutionDetailResponse)
async def get_execution(
    execution_id: str,
    db: AsyncSession = Depends(get_db),
) -> ExecutionDetailResponse:
    """
    Get an execution with its approvals and notifications.
    """
    svc = ExecutionService(db)
    execution = await svc.get_execution(execution_id)
    approvals, notifications = await svc.get_history(execution_id)

    return ExecutionDetailResponse(
        **ExecutionResponse.model_validate(execution).model_dump(),
        approvals=[ApprovalResponse.model_validate(a) for a in approvals],
        notifications=[NotificationResponse.model_validate(n) for n in notifications],
    )
