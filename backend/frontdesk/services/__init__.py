"""Services package for FrontDesk."""

from .patient_service import PatientService
from .queue_store import QueueEntryStore
from .queue_service import QueueService

__all__ = [
    "PatientService",
    "QueueEntryStore",
    "QueueService"
]
