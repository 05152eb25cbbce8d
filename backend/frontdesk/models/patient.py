"""
Patient models.
"""

from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

MRN_PATTERN = "^[A-Z0-9-]+$"


class PatientBase(BaseModel):
    """Base patient model."""
    name: str = Field(..., min_length=1, max_length=100)
    contact_info: Optional[str] = Field(None, max_length=255)
    medical_record_number: Optional[str] = Field(
        None,
        max_length=50,
        pattern=MRN_PATTERN,
        description="Uppercase letters, digits and hyphens"
    )


class PatientCreate(PatientBase):
    """Patient creation model."""
    pass


class PatientUpdate(BaseModel):
    """Patient update model (all fields optional)."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    contact_info: Optional[str] = Field(None, max_length=255)
    medical_record_number: Optional[str] = Field(None, max_length=50, pattern=MRN_PATTERN)


class Patient(PatientBase):
    """Patient response model."""
    id: str = Field(..., alias="_id")
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        populate_by_name = True


class PatientSummary(BaseModel):
    """The patient fields attached to queue entries."""
    id: str
    name: str
    contact_info: Optional[str] = None
    medical_record_number: Optional[str] = None
