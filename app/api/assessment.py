"""Assessment API endpoints.

Generation, submission and retrieval of health assessments. All routes
require an authenticated caller with the patient or professional role;
every read is scoped to the caller's own data.
"""

from typing import Any, Dict, Optional
import logging

from fastapi import APIRouter, Depends, Query, status

from app.agents.assessment_generator import AssessmentGenerator
from app.api.dependencies import get_assessment_generator, require_assessment_user
from app.errors import NotFoundError
from app.models.assessment import Assessment, AssessmentDetail
from app.models.messages import (
    ERROR_RESPONSES,
    AssessmentHistoryResponse,
    CooldownStatusResponse,
    GenerateAssessmentRequest,
    SubmitResponseRequest,
    build_pagination,
)
from app.models.response import AssessmentResponse
from app.services.assessment_service import AssessmentService, get_assessment_service
from app.services.cooldown import CooldownGate
from app.services.health_concern_service import (
    HealthConcernService,
    get_health_concern_service,
)
from app.services.response_service import ResponseService, get_response_service

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/v1/assessment", tags=["Assessment"], responses=ERROR_RESPONSES
)


@router.post("/generate", response_model=Assessment, status_code=status.HTTP_201_CREATED)
async def generate_assessment(
    request: GenerateAssessmentRequest,
    current_user: Dict[str, Any] = Depends(require_assessment_user),
    generator: AssessmentGenerator = Depends(get_assessment_generator),
):
    """
    Generate a new assessment for a health concern.

    Returns 409 while the previous assessment's cooldown is running and
    404 if the health concern does not belong to the caller.
    """
    assessment = await generator.generate(
        user_id=current_user["userId"],
        role=current_user["role"],
        health_concern_id=request.health_concern_id,
    )
    logger.info(
        f"Assessment generated for user {current_user['userId']}, "
        f"health concern {request.health_concern_id}"
    )
    return assessment


@router.post(
    "/response", response_model=AssessmentResponse, status_code=status.HTTP_201_CREATED
)
async def submit_response(
    request: SubmitResponseRequest,
    current_user: Dict[str, Any] = Depends(require_assessment_user),
    response_service: ResponseService = Depends(get_response_service),
):
    """Submit answers for an assessment. One submission per assessment."""
    return await response_service.submit_response(
        user_id=current_user["userId"],
        assessment_id=request.assessment_id,
        answers=request.answers,
        notes=request.notes,
    )


@router.get("/history", response_model=AssessmentHistoryResponse)
async def get_assessment_history(
    health_concern_id: Optional[str] = Query(None, alias="healthConcernId"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    include_responses: bool = Query(True, alias="includeResponses"),
    current_user: Dict[str, Any] = Depends(require_assessment_user),
    assessment_service: AssessmentService = Depends(get_assessment_service),
    response_service: ResponseService = Depends(get_response_service),
    health_concern_service: HealthConcernService = Depends(get_health_concern_service),
):
    """Paginated assessment history for the caller, newest first."""
    user_id = current_user["userId"]
    assessments, total = await assessment_service.get_user_assessments(
        user_id,
        health_concern_id=health_concern_id,
        limit=limit,
        offset=(page - 1) * limit,
    )

    ids = [a.assessment_id for a in assessments]
    if include_responses:
        responses = await response_service.get_for_assessments(ids, user_id)
        answered = set(responses)
    else:
        responses = {}
        answered = await response_service.answered_assessment_ids(ids)
    concerns = await health_concern_service.get_summaries(
        (a.health_concern_id for a in assessments), user_id
    )

    details = [
        AssessmentDetail(
            **a.model_dump(),
            has_response=a.assessment_id in answered,
            response=responses.get(a.assessment_id),
            health_concern=concerns.get(a.health_concern_id),
        )
        for a in assessments
    ]
    return AssessmentHistoryResponse(
        assessments=details, pagination=build_pagination(page, limit, total)
    )


@router.get("/can-generate/{health_concern_id}", response_model=CooldownStatusResponse)
async def check_can_generate(
    health_concern_id: str,
    current_user: Dict[str, Any] = Depends(require_assessment_user),
    assessment_service: AssessmentService = Depends(get_assessment_service),
):
    """Whether the cooldown allows a new assessment for this health concern."""
    decision = await CooldownGate(assessment_service).check(
        current_user["userId"], health_concern_id
    )
    return CooldownStatusResponse(
        allowed=decision.allowed,
        reason=decision.reason,
        days_remaining=decision.days_remaining,
        last_assessment_date=decision.last_assessment_date,
    )


@router.get("/response/{response_id}", response_model=AssessmentResponse)
async def get_response(
    response_id: str,
    current_user: Dict[str, Any] = Depends(require_assessment_user),
    response_service: ResponseService = Depends(get_response_service),
):
    response = await response_service.get_response(response_id, current_user["userId"])
    if not response:
        raise NotFoundError("Assessment response not found")
    return response


@router.get("/{assessment_id}", response_model=AssessmentDetail)
async def get_assessment(
    assessment_id: str,
    current_user: Dict[str, Any] = Depends(require_assessment_user),
    assessment_service: AssessmentService = Depends(get_assessment_service),
    response_service: ResponseService = Depends(get_response_service),
    health_concern_service: HealthConcernService = Depends(get_health_concern_service),
):
    """An assessment with its response, if one was submitted, and its health concern."""
    user_id = current_user["userId"]
    assessment = await assessment_service.get_assessment(
        assessment_id, user_id, active_only=True
    )
    if not assessment:
        raise NotFoundError("Assessment not found")

    response = await response_service.get_for_assessment(assessment_id, user_id)
    concerns = await health_concern_service.get_summaries(
        [assessment.health_concern_id], user_id
    )
    return AssessmentDetail(
        **assessment.model_dump(),
        has_response=response is not None,
        response=response,
        health_concern=concerns.get(assessment.health_concern_id),
    )
