"""Health concern management service."""

from app.models.health_concern import (
    HealthConcern,
    HealthConcernCreate,
    HealthConcernSummary,
    HealthConcernUpdate,
)
from app.models.base import utcnow
from app.config.database import get_health_concerns_collection
from typing import Dict, Iterable, List, Optional
import logging
import re

logger = logging.getLogger(__name__)

_SEARCH_FIELDS = ("title", "chief_complaint", "symptoms")


class HealthConcernService:
    """Service for managing a user's health concerns.

    Every lookup is scoped by ``user_id``; a concern owned by someone else is
    indistinguishable from one that does not exist.
    """

    def __init__(self, collection=None):
        self._collection = collection

    async def _get_collection(self):
        if self._collection is not None:
            return self._collection
        return await get_health_concerns_collection()

    async def create_health_concern(
        self, user_id: str, data: HealthConcernCreate
    ) -> HealthConcern:
        """
        Create a health concern for a user.

        Args:
            user_id: Owner, from the JWT
            data: Validated create payload

        Returns:
            Created HealthConcern
        """
        concern = HealthConcern(user_id=user_id, **data.model_dump())

        collection = await self._get_collection()
        await collection.insert_one(concern.model_dump())

        logger.info(f"Created health concern {concern.health_concern_id} for user {user_id}")
        return concern

    async def get_health_concern(
        self, health_concern_id: str, user_id: str, active_only: bool = True
    ) -> Optional[HealthConcern]:
        query = {"health_concern_id": health_concern_id, "user_id": user_id}
        if active_only:
            query["is_active"] = True

        collection = await self._get_collection()
        doc = await collection.find_one(query)

        if doc:
            return HealthConcern(**doc)
        return None

    async def list_health_concerns(
        self,
        user_id: str,
        status: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = 10,
        offset: int = 0,
    ) -> tuple[List[HealthConcern], int]:
        """
        List active health concerns for a user, newest first.

        Args:
            user_id: Owner
            status: Optional status filter (active, resolved, monitoring)
            search: Optional case-insensitive text matched against title,
                chief complaint and symptoms
            limit: Page size
            offset: Number of concerns to skip

        Returns:
            Tuple of (health concerns, total count)
        """
        query = {"user_id": user_id, "is_active": True}
        if status:
            query["status"] = status
        if search:
            pattern = {"$regex": re.escape(search), "$options": "i"}
            query["$or"] = [{field: pattern} for field in _SEARCH_FIELDS]

        collection = await self._get_collection()
        total = await collection.count_documents(query)
        cursor = collection.find(query).sort("created_at", -1).skip(offset).limit(limit)

        concerns = []
        async for doc in cursor:
            concerns.append(HealthConcern(**doc))

        return concerns, total

    async def get_summaries(
        self, health_concern_ids: Iterable[str], user_id: str
    ) -> Dict[str, HealthConcernSummary]:
        """Summaries keyed by id, soft-deleted concerns included."""
        ids = list(set(health_concern_ids))
        if not ids:
            return {}

        collection = await self._get_collection()
        cursor = collection.find({"health_concern_id": {"$in": ids}, "user_id": user_id})

        summaries = {}
        async for doc in cursor:
            summary = HealthConcernSummary(**doc)
            summaries[summary.health_concern_id] = summary
        return summaries

    async def update_health_concern(
        self, health_concern_id: str, user_id: str, update: HealthConcernUpdate
    ) -> Optional[HealthConcern]:
        """
        Apply a partial update.

        Only fields present in the request body are written; an explicit
        null clears an optional field. Required fields never reach here as
        null; HealthConcernUpdate rejects that.

        Returns:
            Updated HealthConcern or None if not found
        """
        changes = update.model_dump(exclude_unset=True)
        changes["updated_at"] = utcnow()

        collection = await self._get_collection()
        result = await collection.update_one(
            {"health_concern_id": health_concern_id, "user_id": user_id, "is_active": True},
            {"$set": changes},
        )
        if result.matched_count == 0:
            return None

        logger.info(f"Updated health concern {health_concern_id}")
        return await self.get_health_concern(health_concern_id, user_id)

    async def delete_health_concern(self, health_concern_id: str, user_id: str) -> bool:
        """Soft delete. Assessments that reference the concern are kept."""
        collection = await self._get_collection()
        result = await collection.update_one(
            {"health_concern_id": health_concern_id, "user_id": user_id, "is_active": True},
            {"$set": {"is_active": False, "updated_at": utcnow()}},
        )

        if result.matched_count > 0:
            logger.info(f"Deleted health concern {health_concern_id}")
            return True
        return False


# Global service instance
_health_concern_service: Optional[HealthConcernService] = None


def get_health_concern_service() -> HealthConcernService:
    """Get or create HealthConcernService instance."""
    global _health_concern_service
    if _health_concern_service is None:
        _health_concern_service = HealthConcernService()
    return _health_concern_service
