"""LangGraph state definition for the assessment generation flow."""

from typing import Any, Dict, Optional, TypedDict

from app.models.assessment import Assessment, GeneratedAssessment
from app.models.health_concern import HealthConcern


class AssessmentGenerationState(TypedDict, total=False):
    """State carried through the generation graph."""

    # Request
    user_id: str
    role: str
    health_concern_id: str

    # CooldownCheck
    days_since_last: Optional[int]

    # ContextBuild
    health_concern: HealthConcern
    context: Dict[str, Any]

    # ContextBudget
    context_text: str
    context_tokens: int
    context_truncated: bool

    # LLMCall
    raw_output: Dict[str, Any]
    model: str
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int
    latency_ms: int

    # ResponseValidate
    generated: GeneratedAssessment

    # Persist
    assessment: Assessment
