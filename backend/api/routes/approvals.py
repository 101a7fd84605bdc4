"""Approval endpoints — inbox, detail, and the approve/reject resume call."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from api.schemas.approval import (
    ApprovalListResponse,
    ApprovalResponse,
    ResumeRequest,
    ResumeResponse,
)
from api.schemas.common import PaginationParams
from app.dependencies import get_db, get_engine
from core.utils import calculate_offset
from services.workflow_service import ApprovalService
from workflow.engine import WorkflowEngine

logger = logging.getLogger(__name__)

router = APIRouter(tags=["approvals"])


@router.get("", response_model=ApprovalListResponse)
async def list_approvals(
    pagination: PaginationParams = Depends(),
    approval_status: Optional[str] = Query(None, alias="status", description="Filter by status"),
    assignee: Optional[str] = Query(None, description="Filter by assignee"),
    execution_id: Optional[str] = Query(None, description="Filter by execution"),
    db: AsyncSession = Depends(get_db),
) -> ApprovalListResponse:
    """
    Approval inbox, newest first.
    """
    approvals, total = await ApprovalService(db).list(
        offset=calculate_offset(pagination.page, pagination.per_page),
        limit=pagination.per_page,
        filters={"status": approval_status, "assignee": assignee, "execution_id": execution_id},
    )
    return ApprovalListResponse(
        approvals=[ApprovalResponse.model_validate(a) for a in approvals],
        total=total,
        page=pagination.page,
        per_page=pagination.per_page,
    )


@router.post("/resume", response_model=ResumeResponse)
async def resume_approval(
    request: ResumeRequest,
    engine: WorkflowEngine = Depends(get_engine),
) -> ResumeResponse:
    """
    Approve or reject a pending approval and continue its execution.

    400 for an empty reason or unknown decision, 404 for an unknown
    approval, 409 when the approval is no longer pending or has expired.
    """
    execution = await engine.resume(
        request.approval_id,
        request.decision,
        request.reason,
        request.actor_id,
    )
    approval = await engine.store.get_approval(request.approval_id)
    logger.info(
        f"Approval {approval.id} {approval.status} -> execution {execution.id} {execution.status}"
    )
    return ResumeResponse(
        approval_id=approval.id,
        status=approval.status,
        execution_id=execution.id,
        execution_status=execution.status,
    )


@router.get("/{approval_id}", response_model=ApprovalResponse)
async def get_approval(
    approval_id: str,
    db: AsyncSession = Depends(get_db),
) -> ApprovalResponse:
    """
    Get an approval by ID.
    """
    approval = await ApprovalService(db).get_approval(approval_id)
    return ApprovalResponse.model_validate(approval)
