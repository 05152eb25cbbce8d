"""
Service dependencies for the API routers.

Overridden in tests through ``app.dependency_overrides``.
"""

from fastapi import Request

from ..services.patient_service import PatientService
from ..services.queue_service import QueueService


def get_queue_service(request: Request) -> QueueService:
    """The queue service built at startup; one per process so its lock is shared."""
    return request.app.state.queue_service


def get_patient_service():
    return PatientService
