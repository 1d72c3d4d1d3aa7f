"""Assessment storage and retrieval service."""

from app.models.assessment import Assessment
from app.config.database import get_assessments_collection
from typing import Optional, List
import logging

logger = logging.getLogger(__name__)


class AssessmentService:
    """Service for managing generated assessments.

    Assessments are immutable once inserted; nothing here updates their
    content. Every read is scoped by ``user_id``.
    """

    def __init__(self, collection=None):
        self._collection = collection

    async def _get_collection(self):
        if self._collection is not None:
            return self._collection
        return await get_assessments_collection()

    async def create_assessment(self, assessment: Assessment) -> Assessment:
        """
        Store a newly generated assessment.

        Args:
            assessment: Assessment to store

        Returns:
            The stored assessment
        """
        collection = await self._get_collection()
        await collection.insert_one(assessment.to_document())

        logger.info(
            f"Created assessment {assessment.assessment_id} for health concern "
            f"{assessment.health_concern_id} ({len(assessment.questions)} questions)"
        )
        return assessment

    async def get_assessment(
        self, assessment_id: str, user_id: str, active_only: bool = False
    ) -> Optional[Assessment]:
        """
        Get an assessment owned by a user.

        Args:
            assessment_id: Assessment identifier
            user_id: Owner; assessments of other users are never returned
            active_only: Skip soft-deleted assessments

        Returns:
            Assessment or None if not found
        """
        query = {"assessment_id": assessment_id, "user_id": user_id}
        if active_only:
            query["is_active"] = True

        collection = await self._get_collection()
        doc = await collection.find_one(query)

        if doc:
            return Assessment(**doc)
        return None

    async def get_latest_active(
        self, user_id: str, health_concern_id: str
    ) -> Optional[Assessment]:
        """Most recently created active assessment for a (user, health concern) pair."""
        recent = await self.get_recent_active(user_id, health_concern_id, limit=1)
        return recent[0] if recent else None

    async def get_recent_active(
        self, user_id: str, health_concern_id: str, limit: int = 3
    ) -> List[Assessment]:
        """Active assessments for a pair, newest first."""
        collection = await self._get_collection()
        cursor = (
            collection.find(
                {
                    "user_id": user_id,
                    "health_concern_id": health_concern_id,
                    "is_active": True,
                }
            )
            .sort("created_at", -1)
            .limit(limit)
        )

        assessments = []
        async for doc in cursor:
            assessments.append(Assessment(**doc))
        return assessments

    async def get_user_assessments(
        self,
        user_id: str,
        health_concern_id: Optional[str] = None,
        limit: int = 10,
        offset: int = 0,
    ) -> tuple[List[Assessment], int]:
        """
        Get active assessments for a user, newest first.

        Args:
            user_id: User identifier
            health_concern_id: Optional health concern filter
            limit: Maximum number of assessments to return
            offset: Number of assessments to skip

        Returns:
            Tuple of (assessments list, total count)
        """
        query = {"user_id": user_id, "is_active": True}
        if health_concern_id:
            query["health_concern_id"] = health_concern_id

        collection = await self._get_collection()

        # Get total count
        total = await collection.count_documents(query)

        # Get paginated results
        cursor = collection.find(query).sort("created_at", -1).skip(offset).limit(limit)

        assessments = []
        async for doc in cursor:
            assessments.append(Assessment(**doc))

        logger.info(
            f"Retrieved {len(assessments)} assessments for user {user_id} (total: {total})"
        )
        return assessments, total


# Global service instance
_assessment_service: Optional[AssessmentService] = None


def get_assessment_service() -> AssessmentService:
    """Get or create AssessmentService instance."""
    global _assessment_service
    if _assessment_service is None:
        _assessment_service = AssessmentService()
    return _assessment_service
