"""Assessment response storage and submission.

One response per assessment. The unique index on ``assessment_id`` is the
guarantee; the lookup before the insert only produces a friendlier error in
the common, non-racing case.
"""

from pymongo.errors import DuplicateKeyError
from app.config.database import get_responses_collection
from app.errors import ConflictError, ErrorTag, NotFoundError, ValidationError
from app.models.response import Answer, AssessmentResponse
from app.services.answer_validator import validate_answers
from app.services.assessment_service import AssessmentService, get_assessment_service
from app.services.report_trigger import ReportRequested, ReportTrigger, get_report_trigger
from typing import Dict, Iterable, List, Optional
import logging

logger = logging.getLogger(__name__)


class ResponseService:
    """Service for submitting and reading assessment responses."""

    def __init__(
        self,
        assessment_service: Optional[AssessmentService] = None,
        report_trigger: Optional[ReportTrigger] = None,
        collection=None,
    ):
        self._assessments = assessment_service or get_assessment_service()
        self._report_trigger = report_trigger or get_report_trigger()
        self._collection = collection

    async def _get_collection(self):
        if self._collection is not None:
            return self._collection
        return await get_responses_collection()

    async def submit_response(
        self,
        user_id: str,
        assessment_id: str,
        answers: List[Answer],
        notes: Optional[str] = None,
    ) -> AssessmentResponse:
        """
        Validate and store the answers for an assessment.

        Args:
            user_id: Caller; must own the assessment
            assessment_id: Assessment being answered
            answers: Submitted answers
            notes: Optional free-text note

        Returns:
            The stored AssessmentResponse with report_status "pending"

        Raises:
            NotFoundError: assessment missing, inactive, or owned by someone else
            ConflictError: the assessment already has a response
            ValidationError: answers do not satisfy the questions
        """
        assessment = await self._assessments.get_assessment(
            assessment_id, user_id, active_only=True
        )
        if not assessment:
            raise NotFoundError("Assessment not found")

        if await self.has_response(assessment_id):
            raise ConflictError(
                "Assessment has already been completed", tag=ErrorTag.ALREADY_COMPLETED
            )

        validation = validate_answers(answers, assessment.questions)
        if not validation.valid:
            raise ValidationError(
                f"Answer validation failed: {', '.join(validation.errors)}",
                errors=validation.errors,
            )

        response = AssessmentResponse(
            assessment_id=assessment.assessment_id,
            user_id=user_id,
            health_concern_id=assessment.health_concern_id,
            answers=answers,
            notes=notes,
        )

        collection = await self._get_collection()
        try:
            await collection.insert_one(response.to_document())
        except DuplicateKeyError:
            logger.warning(
                f"Concurrent submission rejected for assessment {assessment_id}"
            )
            raise ConflictError(
                "Assessment has already been completed", tag=ErrorTag.ALREADY_COMPLETED
            )

        logger.info(
            f"Assessment response {response.response_id} submitted for assessment "
            f"{assessment_id} ({len(answers)} answers)"
        )

        self._report_trigger.emit(
            ReportRequested(
                response_id=response.response_id,
                assessment_id=assessment_id,
                user_id=user_id,
            )
        )
        return response

    async def has_response(self, assessment_id: str) -> bool:
        collection = await self._get_collection()
        return await collection.count_documents({"assessment_id": assessment_id}) > 0

    async def get_response(
        self, response_id: str, user_id: str
    ) -> Optional[AssessmentResponse]:
        collection = await self._get_collection()
        doc = await collection.find_one({"response_id": response_id, "user_id": user_id})
        if doc:
            return AssessmentResponse(**doc)
        return None

    async def get_for_assessment(
        self, assessment_id: str, user_id: str
    ) -> Optional[AssessmentResponse]:
        collection = await self._get_collection()
        doc = await collection.find_one(
            {"assessment_id": assessment_id, "user_id": user_id}
        )
        if doc:
            return AssessmentResponse(**doc)
        return None

    async def get_for_assessments(
        self, assessment_ids: Iterable[str], user_id: str
    ) -> Dict[str, AssessmentResponse]:
        """Responses keyed by assessment id, for joining onto a page of assessments."""
        ids = list(assessment_ids)
        if not ids:
            return {}

        collection = await self._get_collection()
        cursor = collection.find({"assessment_id": {"$in": ids}, "user_id": user_id})

        responses = {}
        async for doc in cursor:
            response = AssessmentResponse(**doc)
            responses[response.assessment_id] = response
        return responses

    async def answered_assessment_ids(self, assessment_ids: Iterable[str]) -> set:
        ids = list(assessment_ids)
        if not ids:
            return set()
        collection = await self._get_collection()
        cursor = collection.find({"assessment_id": {"$in": ids}}, {"assessment_id": 1})
        return {doc["assessment_id"] async for doc in cursor}


# Global service instance
_response_service: Optional[ResponseService] = None


def get_response_service() -> ResponseService:
    """Get or create ResponseService instance."""
    global _response_service
    if _response_service is None:
        _response_service = ResponseService()
    return _response_service
