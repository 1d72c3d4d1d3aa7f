"""API request and response models."""

from pydantic import Field
from typing import Any, List, Optional
from datetime import datetime
from app.models.base import CamelModel
from app.models.assessment import Assessment, AssessmentDetail
from app.models.health_concern import HealthConcern
from app.models.response import Answer


class GenerateAssessmentRequest(CamelModel):
    """Request to generate a new assessment for a health concern."""

    health_concern_id: str = Field(..., min_length=1, description="Health concern ID")


class SubmitResponseRequest(CamelModel):
    """Request to submit answers for an assessment."""

    assessment_id: str = Field(..., min_length=1, description="Assessment ID")
    answers: List[Answer] = Field(..., min_length=1)
    notes: Optional[str] = Field(None, max_length=5000)


class CooldownStatusResponse(CamelModel):
    """Whether a new assessment may be generated for a health concern."""

    allowed: bool
    reason: Optional[str] = None
    days_remaining: Optional[int] = None
    last_assessment_date: Optional[datetime] = None


class Pagination(CamelModel):
    page: int
    limit: int
    total_count: int
    total_pages: int


class AssessmentHistoryResponse(CamelModel):
    """Paginated assessment history, optionally joined with responses."""

    assessments: List[AssessmentDetail]
    pagination: Pagination


class HealthConcernListResponse(CamelModel):
    health_concerns: List[HealthConcern]
    pagination: Pagination


class ErrorResponse(CamelModel):
    """Body of every non-2xx response."""

    detail: str
    error: str
    category: str
    errors: List[Any] = Field(default_factory=list)


ERROR_RESPONSES = {
    code: {"model": ErrorResponse}
    for code in (400, 401, 403, 404, 409, 500, 502, 504)
}


def build_pagination(page: int, limit: int, total_count: int) -> Pagination:
    total_pages = (total_count + limit - 1) // limit if limit else 0
    return Pagination(
        page=page, limit=limit, total_count=total_count, total_pages=total_pages
    )


__all__ = [
    "Assessment",
    "AssessmentDetail",
    "AssessmentHistoryResponse",
    "CooldownStatusResponse",
    "ERROR_RESPONSES",
    "ErrorResponse",
    "GenerateAssessmentRequest",
    "HealthConcernListResponse",
    "Pagination",
    "SubmitResponseRequest",
    "build_pagination",
]
