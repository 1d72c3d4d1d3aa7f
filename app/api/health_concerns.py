"""Health concern API endpoints."""

from typing import Any, Dict, Optional
import logging

from fastapi import APIRouter, Depends, Query, Response, status

from app.api.dependencies import require_assessment_user
from app.errors import NotFoundError
from app.models.enums import HealthConcernStatus
from app.models.health_concern import HealthConcern, HealthConcernCreate, HealthConcernUpdate
from app.models.messages import (
    ERROR_RESPONSES,
    HealthConcernListResponse,
    build_pagination,
)
from app.services.health_concern_service import (
    HealthConcernService,
    get_health_concern_service,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/v1/health-concerns", tags=["Health Concerns"], responses=ERROR_RESPONSES
)


@router.post("", response_model=HealthConcern, status_code=status.HTTP_201_CREATED)
async def create_health_concern(
    request: HealthConcernCreate,
    current_user: Dict[str, Any] = Depends(require_assessment_user),
    service: HealthConcernService = Depends(get_health_concern_service),
):
    return await service.create_health_concern(current_user["userId"], request)


@router.get("", response_model=HealthConcernListResponse)
async def list_health_concerns(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = Query(None, max_length=200),
    concern_status: Optional[HealthConcernStatus] = Query(None, alias="status"),
    current_user: Dict[str, Any] = Depends(require_assessment_user),
    service: HealthConcernService = Depends(get_health_concern_service),
):
    """The caller's health concerns, newest first."""
    concerns, total = await service.list_health_concerns(
        current_user["userId"],
        status=concern_status.value if concern_status else None,
        search=search,
        limit=limit,
        offset=(page - 1) * limit,
    )
    return HealthConcernListResponse(
        health_concerns=concerns, pagination=build_pagination(page, limit, total)
    )


@router.get("/{health_concern_id}", response_model=HealthConcern)
async def get_health_concern(
    health_concern_id: str,
    current_user: Dict[str, Any] = Depends(require_assessment_user),
    service: HealthConcernService = Depends(get_health_concern_service),
):
    concern = await service.get_health_concern(health_concern_id, current_user["userId"])
    if not concern:
        raise NotFoundError("Health concern not found")
    return concern


@router.patch("/{health_concern_id}", response_model=HealthConcern)
async def update_health_concern(
    health_concern_id: str,
    request: HealthConcernUpdate,
    current_user: Dict[str, Any] = Depends(require_assessment_user),
    service: HealthConcernService = Depends(get_health_concern_service),
):
    concern = await service.update_health_concern(
        health_concern_id, current_user["userId"], request
    )
    if not concern:
        raise NotFoundError("Health concern not found")
    return concern


@router.delete("/{health_concern_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_health_concern(
    health_concern_id: str,
    current_user: Dict[str, Any] = Depends(require_assessment_user),
    service: HealthConcernService = Depends(get_health_concern_service),
):
    deleted = await service.delete_health_concern(health_concern_id, current_user["userId"])
    if not deleted:
        raise NotFoundError("Health concern not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
