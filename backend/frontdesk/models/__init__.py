"""Pydantic models for FrontDesk."""

from .patient import Patient, PatientCreate, PatientUpdate, PatientSummary
from .queue import (
    QueueEntry,
    QueueEntryCreate,
    QueueEntryUpdate,
    QueueEntryDetail,
    QueueFilters,
    QueuePage,
    QueuePriority,
    QueueStats,
    QueueStatus
)

__all__ = [
    # Patient
    "Patient", "PatientCreate", "PatientUpdate", "PatientSummary",
    # Queue
    "QueueEntry", "QueueEntryCreate", "QueueEntryUpdate", "QueueEntryDetail",
    "QueueFilters", "QueuePage", "QueuePriority", "QueueStats", "QueueStatus"
]
