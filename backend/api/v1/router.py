"""API v1 aggregated router.

All v1 endpoints are registered here and mounted under /api/v1 in main.py.
"""

from fastapi import APIRouter

from api.routes import approvals, executions, triggers, workflows
from api.schemas.common import ErrorResponse

api_v1_router = APIRouter()

# Error bodies produced by the AppException handler
_errors = {code: {"model": ErrorResponse} for code in (400, 404, 409, 422)}

# Workflows
api_v1_router.include_router(
    workflows.router,
    prefix="/workflows",
    tags=["Workflows"],
    responses=_errors,
)

# Triggers
api_v1_router.include_router(
    triggers.router,
    prefix="/triggers",
    tags=["Triggers"],
    responses=_errors,
)

# Approvals
api_v1_router.include_router(
    approvals.router,
    prefix="/approvals",
    tags=["Approvals"],
    responses=_errors,
)

# Executions
api_v1_router.include_router(
    executions.router,
    prefix="/executions",
    tags=["Executions"],
    responses=_errors,
)
