"""
Walk-in queue API routes.
"""

from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status

from ..models.queue import (
    QueueEntryCreate,
    QueueEntryDetail,
    QueueEntryUpdate,
    QueuePage,
    QueuePriority,
    QueueStats,
    QueueStatus
)
from ..services.queue_service import QueueService
from .dependencies import get_queue_service

router = APIRouter(prefix="/queue", tags=["Walk-in Queue"])


@router.post("/", response_model=QueueEntryDetail, response_model_by_alias=False, status_code=status.HTTP_201_CREATED)
async def add_to_queue(
    entry_data: QueueEntryCreate,
    service: QueueService = Depends(get_queue_service)
):
    """Add a patient to the walk-in queue."""
    return await service.add_to_queue(entry_data.patient_id, entry_data.priority)


@router.get("/", response_model=QueuePage, response_model_by_alias=False)
async def list_queue(
    status_filter: Optional[QueueStatus] = Query(None, alias="status"),
    priority: Optional[QueuePriority] = Query(None),
    search: Optional[str] = Query(None, description="Patient name, contact or record number"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    service: QueueService = Depends(get_queue_service)
):
    """List queue entries with filters and pagination."""
    return await service.list_queue(
        status=status_filter,
        priority=priority,
        search=search,
        page=page,
        limit=limit
    )


@router.get("/current", response_model=List[QueueEntryDetail], response_model_by_alias=False)
async def get_current_queue(service: QueueService = Depends(get_queue_service)):
    """Waiting patients in serving order."""
    return await service.get_current_queue()


@router.get("/stats", response_model=QueueStats)
async def get_queue_stats(service: QueueService = Depends(get_queue_service)):
    return await service.get_stats()


@router.get("/search", response_model=List[QueueEntryDetail], response_model_by_alias=False)
async def search_queue(
    q: str = Query("", description="Search term"),
    service: QueueService = Depends(get_queue_service)
):
    """Search queue entries by patient."""
    return await service.search_queue(q)


@router.get("/number/{queue_number}", response_model=QueueEntryDetail, response_model_by_alias=False)
async def get_by_queue_number(
    queue_number: int,
    service: QueueService = Depends(get_queue_service)
):
    """Get today's entry by its queue number."""
    return await service.get_by_queue_number(queue_number)


@router.get("/{entry_id}", response_model=QueueEntryDetail, response_model_by_alias=False)
async def get_entry(
    entry_id: str,
    service: QueueService = Depends(get_queue_service)
):
    return await service.get_entry(entry_id)


@router.patch("/{entry_id}", response_model=QueueEntryDetail, response_model_by_alias=False)
async def update_entry(
    entry_id: str,
    updates: QueueEntryUpdate,
    service: QueueService = Depends(get_queue_service)
):
    """Update status and/or priority."""
    return await service.update_entry(entry_id, status=updates.status, priority=updates.priority)


@router.delete("/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_from_queue(
    entry_id: str,
    service: QueueService = Depends(get_queue_service)
):
    """Remove an entry from the queue."""
    await service.remove_from_queue(entry_id)
