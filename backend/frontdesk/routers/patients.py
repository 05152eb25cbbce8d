"""
Patient record routes. Missing records surface as NotFoundError through the
app-wide FrontDeskError handler, like the queue routes.
"""

from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status

from ..models.patient import Patient, PatientCreate, PatientUpdate
from .dependencies import get_patient_service

router = APIRouter(prefix="/patients", tags=["Patients"])


@router.post("/", response_model=Patient, response_model_by_alias=False, status_code=status.HTTP_201_CREATED)
async def register_patient(body: PatientCreate, service=Depends(get_patient_service)):
    return await service.create_patient(body)


@router.get("/", response_model=List[Patient], response_model_by_alias=False)
async def find_patients(
    q: Optional[str] = Query(None, description="Name, contact or record number"),
    limit: int = Query(50, ge=1, le=100),
    service=Depends(get_patient_service)
):
    return await service.search_patients(query=q, limit=limit)


@router.get("/{patient_id}", response_model=Patient, response_model_by_alias=False)
async def read_patient(patient_id: str, service=Depends(get_patient_service)):
    return await service.get_patient(patient_id)


@router.put("/{patient_id}", response_model=Patient, response_model_by_alias=False)
async def edit_patient(patient_id: str, body: PatientUpdate, service=Depends(get_patient_service)):
    """Partial update; a record number already held by someone else is a 409."""
    return await service.update_patient(patient_id, body)


@router.delete("/{patient_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_patient(patient_id: str, service=Depends(get_patient_service)):
    await service.delete_patient(patient_id)
