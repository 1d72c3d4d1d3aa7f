"""MongoDB schema for the patient clinical profile."""

from pydantic import Field
from typing import List, Optional
from datetime import date, datetime
from app.models.base import CamelModel, utcnow
from app.models.enums import AllergyCategory, Gender


class ChronicCondition(CamelModel):
    name: str = Field(..., min_length=2, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)


class Allergy(CamelModel):
    name: str = Field(..., min_length=2, max_length=100)
    category: AllergyCategory = Field(
        default=AllergyCategory.OTHER, validate_default=True
    )


class PatientProfileUpdate(CamelModel):
    birth_date: date
    gender: Gender
    chronic_conditions: List[ChronicCondition] = Field(default_factory=list)
    allergies: List[Allergy] = Field(default_factory=list)
    medical_history: Optional[str] = None


class PatientProfile(PatientProfileUpdate):
    """Patient profile document, one per user."""

    user_id: str
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def age(self, today: Optional[date] = None) -> int:
        """Age in whole calendar years."""
        today = today or utcnow().date()
        years = today.year - self.birth_date.year
        if (today.month, today.day) < (self.birth_date.month, self.birth_date.day):
            years -= 1
        return years
