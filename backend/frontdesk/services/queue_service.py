"""
Walk-in queue service.

Sequences the entry store, the ordering rules and the wait-time estimator.
Every mutation ends with a full recompute pass over the waiting set.
"""

import asyncio
import logging
import math
from datetime import datetime
from enum import Enum
from typing import Callable, Iterable, List, Optional, Type, TypeVar, Union

from ..config import Settings, get_settings
from ..errors import NotFoundError, ValidationFailure
from ..models.queue import (
    QueueEntry,
    QueueEntryDetail,
    QueueFilters,
    QueuePage,
    QueuePriority,
    QueueStats,
    QueueStatus
)
from .queue_numbering import next_queue_number, queue_day
from .queue_ordering import ensure_not_queued, new_entry_document, order_waiting, reprioritize
from .wait_time import changed_estimates, recompute

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Enum)


def _parse(enum_cls: Type[E], value: Union[E, str, None], field: str) -> Optional[E]:
    if value is None or isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationFailure(f"Unknown {field} '{value}', expected one of: {allowed}") from None


class QueueService:
    """
    Public surface of the walk-in queue.

    ``store`` is a QueueEntryStore (or anything with the same coroutines) and
    ``patients`` provides ``exists``, ``get_summaries`` and ``find_matching_ids``.
    Mutations are serialised on an in-process lock so the numbering step and
    the recompute pass see a consistent waiting set.
    """

    def __init__(
        self,
        store,
        patients,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = datetime.utcnow
    ):
        self.store = store
        self.patients = patients
        self.settings = settings or get_settings()
        self.clock = clock
        self._lock = asyncio.Lock()

    def _day(self, moment: datetime) -> str:
        return queue_day(moment, self.settings.CLINIC_TIMEZONE)

    async def _load(self, entry_id: str) -> QueueEntry:
        entry = await self.store.find_by_id(entry_id)
        if entry is None:
            raise NotFoundError(f"Queue entry with ID {entry_id} not found")
        return entry

    async def _attach_patients(self, entries: Iterable[QueueEntry]) -> List[QueueEntryDetail]:
        entries = list(entries)
        summaries = await self.patients.get_summaries(e.patient_id for e in entries)
        return [
            QueueEntryDetail(**entry.model_dump(), patient=summaries.get(entry.patient_id))
            for entry in entries
        ]

    async def _recompute_wait_times(self) -> List[QueueEntry]:
        waiting = order_waiting(await self.store.find_all_by_status(QueueStatus.WAITING))
        estimated = recompute(
            waiting,
            base_minutes=self.settings.BASE_SERVICE_MINUTES,
            urgent_penalty=self.settings.URGENT_PENALTY_MINUTES
        )
        changed = changed_estimates(waiting, estimated)
        await self.store.save_wait_times(changed)
        logger.debug("Recomputed wait times for %d waiting entries (%d changed)",
                     len(estimated), len(changed))
        return estimated

    async def refresh_wait_times(self) -> List[QueueEntry]:
        """Run a recompute pass on its own, e.g. after an interrupted mutation."""
        async with self._lock:
            return await self._recompute_wait_times()

    async def add_to_queue(
        self,
        patient_id: str,
        priority: Union[QueuePriority, str, None] = QueuePriority.NORMAL
    ) -> QueueEntryDetail:
        """Register a walk-in arrival at the back of its priority tier."""
        priority = _parse(QueuePriority, priority, "priority") or QueuePriority.NORMAL

        if not await self.patients.exists(patient_id):
            raise NotFoundError(f"Patient with ID {patient_id} not found")

        async with self._lock:
            existing = await self.store.find_waiting_for_patient(patient_id)
            ensure_not_queued(existing, patient_id)

            now = self.clock()
            day = self._day(now)
            number = next_queue_number(await self.store.queue_numbers_for_day(day))
            entry_id = await self.store.create(
                new_entry_document(patient_id, priority, number, now, day)
            )
            logger.info("Patient %s joined the queue as number %d (%s)",
                        patient_id, number, priority.value)

            await self._recompute_wait_times()

        return await self.get_entry(entry_id)

    async def get_entry(self, entry_id: str) -> QueueEntryDetail:
        entry = await self._load(entry_id)
        return (await self._attach_patients([entry]))[0]

    async def get_by_queue_number(self, queue_number: int) -> QueueEntryDetail:
        """Today's entry with this number."""
        entry = await self.store.find_by_queue_number(self._day(self.clock()), queue_number)
        if entry is None:
            raise NotFoundError(f"Queue entry with number {queue_number} not found")
        return (await self._attach_patients([entry]))[0]

    async def get_current_queue(self) -> List[QueueEntryDetail]:
        """Waiting entries in serving order."""
        waiting = order_waiting(await self.store.find_all_by_status(QueueStatus.WAITING))
        return await self._attach_patients(waiting)

    async def list_queue(
        self,
        status: Union[QueueStatus, str, None] = None,
        priority: Union[QueuePriority, str, None] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: Optional[int] = None
    ) -> QueuePage:
        """Filtered, paginated listing in serving order."""
        filters = QueueFilters(
            status=_parse(QueueStatus, status, "status"),
            priority=_parse(QueuePriority, priority, "priority")
        )
        limit = limit or self.settings.DEFAULT_PAGE_SIZE
        if page < 1:
            raise ValidationFailure("page must be at least 1")
        if not 1 <= limit <= self.settings.MAX_PAGE_SIZE:
            raise ValidationFailure(f"limit must be between 1 and {self.settings.MAX_PAGE_SIZE}")

        if search and search.strip():
            filters.patient_ids = await self.patients.find_matching_ids(search.strip())
            if not filters.patient_ids:
                return QueuePage(entries=[], total=0, page=page, limit=limit, total_pages=1)

        entries, total = await self.store.find_filtered(filters, skip=(page - 1) * limit, limit=limit)
        return QueuePage(
            entries=await self._attach_patients(entries),
            total=total,
            page=page,
            limit=limit,
            total_pages=max(1, math.ceil(total / limit))
        )

    async def search_queue(self, term: Optional[str]) -> List[QueueEntryDetail]:
        """Entries of patients matching ``term`` by name, contact or record number."""
        if not term or not term.strip():
            return []

        patient_ids = await self.patients.find_matching_ids(term.strip())
        if not patient_ids:
            return []

        entries, _ = await self.store.find_filtered(
            QueueFilters(patient_ids=patient_ids),
            skip=0,
            limit=self.settings.SEARCH_RESULT_LIMIT
        )
        return await self._attach_patients(entries)

    async def update_entry(
        self,
        entry_id: str,
        status: Union[QueueStatus, str, None] = None,
        priority: Union[QueuePriority, str, None] = None
    ) -> QueueEntryDetail:
        """
        Change status and/or priority.

        A priority change moves a waiting entry to the back of its new tier
        before the status is applied; entries outside the waiting set keep
        their number. Completed entries cannot change status.
        """
        status = _parse(QueueStatus, status, "status")
        priority = _parse(QueuePriority, priority, "priority")

        async with self._lock:
            entry = await self._load(entry_id)
            now = self.clock()

            ends_waiting = (status or entry.status) == QueueStatus.WAITING
            if priority is not None and priority != entry.priority and ends_waiting:
                waiting = await self.store.find_all_by_status(QueueStatus.WAITING, priority=priority)
                day_numbers = await self.store.queue_numbers_for_day(entry.arrival_day)
                previous = entry.queue_number
                entry = reprioritize(entry, priority, waiting, day_numbers)
                logger.info("Entry %s is now %s, renumbered %d -> %d",
                            entry_id, priority.value, previous, entry.queue_number)
            elif priority is not None:
                # Outside the waiting set the number no longer orders anything
                entry = entry.model_copy(update={"priority": priority})

            changes = {"updated_at": now}
            if status is not None and status != entry.status:
                if entry.status == QueueStatus.COMPLETED:
                    raise ValidationFailure("Completed entries cannot change status")
                if status == QueueStatus.WAITING:
                    ensure_not_queued(
                        await self.store.find_waiting_for_patient(entry.patient_id),
                        entry.patient_id
                    )
                else:
                    changes["estimated_wait_time"] = None
                changes["status"] = status
                changes["status_changed_at"] = now
                logger.info("Entry %s moved %s -> %s", entry_id, entry.status.value, status.value)

            saved = await self.store.update(entry.model_copy(update=changes))
            if saved is None:
                raise NotFoundError(f"Queue entry with ID {entry_id} not found")

            await self._recompute_wait_times()

        return await self.get_entry(entry_id)

    async def remove_from_queue(self, entry_id: str) -> None:
        async with self._lock:
            await self._load(entry_id)
            if not await self.store.delete(entry_id):
                raise NotFoundError(f"Queue entry with ID {entry_id} not found")
            logger.info("Entry %s removed from the queue", entry_id)

            await self._recompute_wait_times()

    async def get_stats(self) -> QueueStats:
        """Counts by status, urgent backlog and today's average wait."""
        total_waiting, total_with_doctor, total_completed, urgent_waiting = await asyncio.gather(
            self.store.count_where(status=QueueStatus.WAITING),
            self.store.count_where(status=QueueStatus.WITH_DOCTOR),
            self.store.count_where(status=QueueStatus.COMPLETED),
            self.store.count_where(status=QueueStatus.WAITING, priority=QueuePriority.URGENT)
        )

        completed_today = await self.store.find_all_by_status(
            QueueStatus.COMPLETED,
            arrival_day=self._day(self.clock())
        )
        waits = [
            ((entry.status_changed_at or entry.updated_at) - entry.arrival_time).total_seconds() / 60
            for entry in completed_today
            if entry.status_changed_at or entry.updated_at
        ]
        average = round(sum(waits) / len(waits)) if waits else 0

        return QueueStats(
            total_waiting=total_waiting,
            total_with_doctor=total_with_doctor,
            total_completed=total_completed,
            urgent_waiting=urgent_waiting,
            average_wait_time=average
        )
