"""Assembles the patient context sent with a generation request.

The payload is small and deliberately lossy: demographics instead of
identity, summaries of previous assessments instead of their answers.
"""

from datetime import date
from typing import Any, Dict, List, Optional, Sequence
import logging

import yaml

from app.models.assessment import PreviousAssessmentSummary
from app.models.health_concern import HealthConcern
from app.models.patient import PatientProfile

logger = logging.getLogger(__name__)

SENSITIVE_KEYS = frozenset(
    {
        "password",
        "refresh_token",
        "refreshToken",
        "access_token",
        "accessToken",
        "token",
        "_id",
        "__v",
        "llm_metadata",
        "llmMetadata",
        "report_payload",
        "reportPayload",
    }
)


def clean_context(value: Any) -> Any:
    """Recursively drop sensitive keys and empty values."""
    if isinstance(value, dict):
        cleaned = {}
        for key, item in value.items():
            if key in SENSITIVE_KEYS:
                continue
            item = clean_context(item)
            if item is None:
                continue
            cleaned[key] = item
        return cleaned
    if isinstance(value, (list, tuple)):
        return [clean_context(item) for item in value]
    return value


def _health_concern_context(concern: HealthConcern) -> Dict[str, Any]:
    return {
        "title": concern.title,
        "chiefComplaint": concern.chief_complaint,
        "symptoms": concern.symptoms,
        "onset": concern.onset_description,
        "severity": concern.severity,
        "status": concern.status,
        "notes": concern.notes or None,
    }


def _previous_context(summary: PreviousAssessmentSummary) -> Dict[str, Any]:
    return {
        "createdAt": summary.created_at.date().isoformat(),
        "severity": summary.severity,
        "questionCount": summary.question_count,
        "hasResponse": summary.has_response,
    }


def build_assessment_context(
    health_concern: HealthConcern,
    patient_profile: Optional[PatientProfile] = None,
    previous_assessments: Sequence[PreviousAssessmentSummary] = (),
    today: Optional[date] = None,
) -> Dict[str, Any]:
    """
    Build the structured context for one generation request.

    Args:
        health_concern: The concern being assessed
        patient_profile: Only passed for callers with the patient role
        previous_assessments: Up to three summaries, newest first
        today: Reference date for the patient's age

    Returns:
        Dict with ``patient``, ``healthConcern`` and ``previousAssessments``,
        plus ``chronicConditions``, ``allergies`` and ``medicalHistory`` when
        the profile has them
    """
    context: Dict[str, Any] = {}

    if patient_profile is not None:
        context["patient"] = {
            "age": patient_profile.age(today),
            "gender": patient_profile.gender,
        }
    else:
        context["patient"] = {}

    context["healthConcern"] = _health_concern_context(health_concern)
    context["previousAssessments"] = [_previous_context(s) for s in previous_assessments]

    if patient_profile is not None:
        if patient_profile.chronic_conditions:
            context["chronicConditions"] = [
                {"name": c.name, "description": c.description}
                for c in patient_profile.chronic_conditions
            ]
        if patient_profile.allergies:
            context["allergies"] = [
                {"name": a.name, "category": a.category}
                for a in patient_profile.allergies
            ]
        if patient_profile.medical_history:
            context["medicalHistory"] = patient_profile.medical_history

    return clean_context(context)


def serialize_context(context: Dict[str, Any]) -> str:
    """Compact YAML; key order is kept so the prompt reads top-down."""
    return yaml.safe_dump(
        context,
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
        width=120,
    ).strip()


class ContextBuilder:
    """Reads the stores and builds the context for a (user, health concern) pair."""

    def __init__(
        self,
        health_concern_service,
        patient_service,
        assessment_service,
        response_service,
        history_size: int = 3,
    ):
        self._concerns = health_concern_service
        self._patients = patient_service
        self._assessments = assessment_service
        self._responses = response_service
        self._history_size = history_size

    async def previous_summaries(
        self, user_id: str, health_concern_id: str
    ) -> List[PreviousAssessmentSummary]:
        recent = await self._assessments.get_recent_active(
            user_id, health_concern_id, limit=self._history_size
        )
        answered = await self._responses.answered_assessment_ids(
            a.assessment_id for a in recent
        )
        return [
            PreviousAssessmentSummary(
                created_at=a.created_at,
                severity=a.severity,
                question_count=len(a.questions),
                has_response=a.assessment_id in answered,
            )
            for a in recent
        ]

    async def build(
        self,
        user_id: str,
        role: str,
        health_concern: HealthConcern,
        today: Optional[date] = None,
    ) -> Dict[str, Any]:
        profile = None
        if role == "patient":
            profile = await self._patients.get_profile(user_id)
            if profile is None:
                logger.info(f"No patient profile for user {user_id}; generating without demographics")

        previous = await self.previous_summaries(user_id, health_concern.health_concern_id)
        context = build_assessment_context(health_concern, profile, previous, today)

        logger.info(
            f"Built context for health concern {health_concern.health_concern_id}: "
            f"{len(previous)} previous assessment(s), profile={'yes' if profile else 'no'}"
        )
        return context
