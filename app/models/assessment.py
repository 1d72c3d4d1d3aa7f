"""MongoDB schema for generated assessments."""

from pydantic import Field, field_validator
from typing import List, Optional
from datetime import datetime
from app.models.base import CamelModel, utcnow
from app.models.enums import Severity
from app.models.health_concern import HealthConcernSummary
from app.models.question import Question
import uuid


class TokenUsage(CamelModel):
    """Token metering reported by the LLM endpoint."""

    prompt: int = 0
    completion: int = 0
    total: int = 0


class GenerationMetadata(CamelModel):
    """How an assessment was generated. Informational only."""

    provider: str = "openai"
    model: str
    prompt_version: str = "v1.0"
    tokens_used: TokenUsage = Field(default_factory=TokenUsage)
    generation_time_ms: int = 0


class GeneratedAssessment(CamelModel):
    """The questionnaire content produced by the LLM, before persistence.

    Field names match the JSON schema in the generation prompt, so the
    parsed LLM output builds this model directly.
    """

    severity: Severity
    min_days_before_next_assessment: int = Field(..., ge=0, strict=True)
    questions: List[Question] = Field(..., min_length=1)

    @field_validator("questions")
    @classmethod
    def _unique_question_ids(cls, questions):
        seen = set()
        for question in questions:
            if question.id in seen:
                raise ValueError(f"Duplicate question id: {question.id}")
            seen.add(question.id)
        return questions


class Assessment(GeneratedAssessment):
    """Persisted assessment document.

    Immutable once created; only ``is_active`` may change (soft delete).
    """

    assessment_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    health_concern_id: str
    llm_metadata: GenerationMetadata
    is_active: bool = True
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def to_document(self) -> dict:
        return self.model_dump()


class PreviousAssessmentSummary(CamelModel):
    """What the generator is allowed to know about an earlier assessment."""

    created_at: datetime
    severity: Severity
    question_count: int
    has_response: bool = False


class AssessmentDetail(Assessment):
    """An assessment joined with its (at most one) response and its health concern."""

    has_response: bool = False
    response: Optional["AssessmentResponse"] = None
    health_concern: Optional[HealthConcernSummary] = None


from app.models.response import AssessmentResponse  # noqa: E402

AssessmentDetail.model_rebuild()
