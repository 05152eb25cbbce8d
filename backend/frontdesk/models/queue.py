"""
Walk-in queue models.
"""

from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from enum import Enum

from .patient import PatientSummary


class QueueStatus(str, Enum):
    """Queue entry status states."""
    WAITING = "waiting"
    WITH_DOCTOR = "with_doctor"
    COMPLETED = "completed"


class QueuePriority(str, Enum):
    """Priority tiers. Urgent entries are always served before normal ones."""
    NORMAL = "normal"
    URGENT = "urgent"


class QueueEntryCreate(BaseModel):
    """Add a patient to the walk-in queue."""
    patient_id: str
    priority: QueuePriority = QueuePriority.NORMAL


class QueueEntryUpdate(BaseModel):
    """Change status and/or priority of an entry."""
    status: Optional[QueueStatus] = None
    priority: Optional[QueuePriority] = None


class QueueEntry(BaseModel):
    """Queue entry as stored."""
    id: str = Field(..., alias="_id")
    patient_id: str
    queue_number: int = Field(..., ge=1)
    status: QueueStatus = QueueStatus.WAITING
    priority: QueuePriority = QueuePriority.NORMAL
    arrival_time: datetime
    arrival_day: str = Field(..., description="Clinic calendar day, YYYY-MM-DD")
    estimated_wait_time: Optional[int] = Field(None, description="Minutes, waiting entries only")
    status_changed_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        populate_by_name = True


class QueueEntryDetail(QueueEntry):
    """Queue entry response model with the patient attached."""
    patient: Optional[PatientSummary] = None


class QueueFilters(BaseModel):
    """Store-level filters for paginated listing."""
    status: Optional[QueueStatus] = None
    priority: Optional[QueuePriority] = None
    patient_ids: Optional[List[str]] = None


class QueuePage(BaseModel):
    """One page of the queue listing."""
    entries: List[QueueEntryDetail] = []
    total: int = 0
    page: int = 1
    limit: int = 10
    total_pages: int = 1


class QueueStats(BaseModel):
    """Dashboard counters."""
    total_waiting: int = 0
    total_with_doctor: int = 0
    total_completed: int = 0
    urgent_waiting: int = 0
    average_wait_time: int = Field(0, description="Minutes, completed entries of today")
