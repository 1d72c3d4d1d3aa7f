"""Patient profile API endpoints."""

from typing import Any, Dict

from fastapi import APIRouter, Depends

from app.api.dependencies import require_patient
from app.errors import NotFoundError
from app.models.messages import ERROR_RESPONSES
from app.models.patient import PatientProfile, PatientProfileUpdate
from app.services.patient_service import PatientService, get_patient_service

router = APIRouter(prefix="/api/v1/patient", tags=["Patient"], responses=ERROR_RESPONSES)


@router.get("/profile", response_model=PatientProfile)
async def get_profile(
    current_user: Dict[str, Any] = Depends(require_patient),
    service: PatientService = Depends(get_patient_service),
):
    profile = await service.get_profile(current_user["userId"])
    if not profile:
        raise NotFoundError("Patient profile not found")
    return profile


@router.put("/profile", response_model=PatientProfile)
async def update_profile(
    request: PatientProfileUpdate,
    current_user: Dict[str, Any] = Depends(require_patient),
    service: PatientService = Depends(get_patient_service),
):
    """Create or replace the caller's clinical profile."""
    return await service.upsert_profile(current_user["userId"], request)
