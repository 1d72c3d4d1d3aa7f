"""MongoDB schema for assessment responses."""

from pydantic import Field, StrictBool, StrictFloat, StrictInt, StrictStr
from typing import Any, Dict, List, Optional, Union
from datetime import datetime
from enum import Enum
from app.models.base import CamelModel, utcnow
from app.models.enums import QuestionType, ReportStatus
import uuid

AnswerScalar = Union[StrictBool, StrictInt, StrictFloat, StrictStr]
AnswerValue = Union[AnswerScalar, List[Union[StrictStr, StrictInt, StrictFloat]]]


class ValueKind(str, Enum):
    """Tag for the shape of a submitted answer value."""

    TEXT = "text"
    NUMBER = "number"
    BOOLEAN = "boolean"
    LIST = "list"


def value_kind(value: Any) -> ValueKind:
    if isinstance(value, bool):
        return ValueKind.BOOLEAN
    if isinstance(value, (int, float)):
        return ValueKind.NUMBER
    if isinstance(value, list):
        return ValueKind.LIST
    return ValueKind.TEXT


class Answer(CamelModel):
    """A single answer, tagged with the type of the question it answers."""

    question_id: str = Field(..., min_length=1)
    question_type: QuestionType
    value: AnswerValue

    @property
    def value_kind(self) -> ValueKind:
        return value_kind(self.value)


class AssessmentResponse(CamelModel):
    """Persisted response document. At most one per assessment."""

    response_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    assessment_id: str
    user_id: str
    health_concern_id: str
    answers: List[Answer] = Field(..., min_length=1)
    notes: Optional[str] = None
    submitted_at: datetime = Field(default_factory=utcnow)
    report_status: ReportStatus = Field(
        default=ReportStatus.PENDING, validate_default=True
    )
    report_payload: Optional[Dict[str, Any]] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def to_document(self) -> dict:
        return self.model_dump()
