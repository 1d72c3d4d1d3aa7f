"""Patient clinical profile service."""

from app.models.patient import PatientProfile, PatientProfileUpdate
from app.models.base import utcnow
from app.config.database import get_patients_collection
from app.errors import ValidationError
from datetime import datetime, time, timezone
from typing import Optional
import logging

logger = logging.getLogger(__name__)


def _to_document(profile: PatientProfile) -> dict:
    doc = profile.model_dump()
    # BSON has no date-only type
    doc["birth_date"] = datetime.combine(profile.birth_date, time.min, tzinfo=timezone.utc)
    return doc


def _from_document(doc: dict) -> PatientProfile:
    doc = dict(doc)
    birth_date = doc.get("birth_date")
    if isinstance(birth_date, datetime):
        doc["birth_date"] = birth_date.date()
    return PatientProfile(**doc)


class PatientService:
    """Service for the per-user patient profile."""

    def __init__(self, collection=None):
        self._collection = collection

    async def _get_collection(self):
        if self._collection is not None:
            return self._collection
        return await get_patients_collection()

    async def get_profile(self, user_id: str) -> Optional[PatientProfile]:
        collection = await self._get_collection()
        doc = await collection.find_one({"user_id": user_id})

        if doc:
            return _from_document(doc)
        return None

    async def upsert_profile(
        self, user_id: str, data: PatientProfileUpdate
    ) -> PatientProfile:
        """
        Create or replace the caller's profile.

        Args:
            user_id: Owner, from the JWT
            data: Full profile payload

        Returns:
            Stored PatientProfile
        """
        if data.birth_date > utcnow().date():
            raise ValidationError("Birth date cannot be in the future")

        existing = await self.get_profile(user_id)
        created_at = existing.created_at if existing else utcnow()

        profile = PatientProfile(
            user_id=user_id,
            created_at=created_at,
            updated_at=utcnow(),
            **data.model_dump(),
        )

        collection = await self._get_collection()
        await collection.update_one(
            {"user_id": user_id}, {"$set": _to_document(profile)}, upsert=True
        )

        logger.info(f"{'Updated' if existing else 'Created'} patient profile for user {user_id}")
        return profile


# Global service instance
_patient_service: Optional[PatientService] = None


def get_patient_service() -> PatientService:
    """Get or create PatientService instance."""
    global _patient_service
    if _patient_service is None:
        _patient_service = PatientService()
    return _patient_service
