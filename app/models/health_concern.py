"""MongoDB schema for patient-reported health concerns."""

from pydantic import Field, field_validator
from typing import Optional
from datetime import datetime
from app.models.base import CamelModel, utcnow
from app.models.enums import HealthConcernSeverity, HealthConcernStatus, OnsetUnit
import uuid


class Onset(CamelModel):
    """When the symptoms started, e.g. 3 weeks."""

    value: int = Field(..., ge=1)
    unit: OnsetUnit


class HealthConcern(CamelModel):
    """Health concern document."""

    health_concern_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    title: str = Field(..., min_length=1, max_length=200)
    chief_complaint: str = Field(..., min_length=1, max_length=1000)
    symptoms: str = Field(..., min_length=1, max_length=2000)
    onset: Onset
    status: HealthConcernStatus = Field(
        default=HealthConcernStatus.ACTIVE, validate_default=True
    )
    severity: Optional[HealthConcernSeverity] = None
    notes: Optional[str] = Field(default=None, max_length=2000)
    is_active: bool = True
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def onset_description(self) -> str:
        plural = "s" if self.onset.value > 1 else ""
        return f"{self.onset.value} {self.onset.unit}{plural} ago"


class HealthConcernCreate(CamelModel):
    title: str = Field(..., min_length=1, max_length=200)
    chief_complaint: str = Field(..., min_length=1, max_length=1000)
    symptoms: str = Field(..., min_length=1, max_length=2000)
    onset: Onset
    status: HealthConcernStatus = Field(
        default=HealthConcernStatus.ACTIVE, validate_default=True
    )
    severity: Optional[HealthConcernSeverity] = None
    notes: Optional[str] = Field(default=None, max_length=2000)


class HealthConcernUpdate(CamelModel):
    """Partial update; only fields present in the request are applied."""

    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    chief_complaint: Optional[str] = Field(default=None, min_length=1, max_length=1000)
    symptoms: Optional[str] = Field(default=None, min_length=1, max_length=2000)
    onset: Optional[Onset] = None
    status: Optional[HealthConcernStatus] = None
    severity: Optional[HealthConcernSeverity] = None
    notes: Optional[str] = Field(default=None, max_length=2000)

    @field_validator("title", "chief_complaint", "symptoms", "onset", "status")
    @classmethod
    def _reject_null(cls, value, info):
        if value is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return value


class HealthConcernSummary(CamelModel):
    """The parts of a health concern shown alongside its assessments."""

    health_concern_id: str
    title: str
    status: HealthConcernStatus
    severity: Optional[HealthConcernSeverity] = None
    is_active: bool = True
