"""Shared test fixtures."""
import asyncio
from datetime import datetime, timedelta
from typing import Dict, List, Optional

import pytest
from bson import ObjectId

from frontdesk.config import Settings
from frontdesk.errors import ConflictError
from frontdesk.models.patient import PatientSummary
from frontdesk.models.queue import QueueEntry, QueueFilters, QueueStatus
from frontdesk.services.queue_ordering import ordering_key
from frontdesk.services.queue_service import QueueService


class InMemoryQueueStore:
    """QueueEntryStore double with the same uniqueness backstops as the Mongo indexes."""

    def __init__(self):
        self.docs: Dict[str, dict] = {}
        self.saved_wait_times: List[Dict[str, int]] = []

    def _entry(self, entry_id: str) -> QueueEntry:
        return QueueEntry(_id=entry_id, **self.docs[entry_id])

    def _entries(self, **criteria) -> List[QueueEntry]:
        entries = [
            self._entry(entry_id) for entry_id, doc in self.docs.items()
            if all(value is None or doc[key] == value for key, value in criteria.items())
        ]
        return sorted(entries, key=ordering_key)

    def _check_unique(self, doc: dict, entry_id: Optional[str] = None):
        for other_id, other in self.docs.items():
            if other_id == entry_id:
                continue
            if (other["arrival_day"], other["queue_number"]) == (doc["arrival_day"], doc["queue_number"]):
                raise ConflictError("duplicate queue number")
            if (doc["status"] == QueueStatus.WAITING and other["status"] == QueueStatus.WAITING
                    and other["patient_id"] == doc["patient_id"]):
                raise ConflictError("duplicate waiting entry")

    async def create(self, entry_doc: dict) -> str:
        await asyncio.sleep(0)
        entry_id = str(ObjectId())
        self._check_unique(entry_doc)
        self.docs[entry_id] = dict(entry_doc)
        return entry_id

    async def find_by_id(self, entry_id: str) -> Optional[QueueEntry]:
        await asyncio.sleep(0)
        return self._entry(entry_id) if entry_id in self.docs else None

    async def find_waiting_for_patient(self, patient_id: str) -> Optional[QueueEntry]:
        await asyncio.sleep(0)
        matches = self._entries(patient_id=patient_id, status=QueueStatus.WAITING)
        return matches[0] if matches else None

    async def find_by_queue_number(self, arrival_day: str, queue_number: int) -> Optional[QueueEntry]:
        matches = self._entries(arrival_day=arrival_day, queue_number=queue_number)
        return matches[0] if matches else None

    async def find_all_by_status(self, status, priority=None, arrival_day=None) -> List[QueueEntry]:
        await asyncio.sleep(0)
        return self._entries(status=status, priority=priority, arrival_day=arrival_day)

    async def find_filtered(self, filters: QueueFilters, skip: int = 0, limit: int = 10):
        entries = self._entries(status=filters.status, priority=filters.priority)
        if filters.patient_ids is not None:
            entries = [e for e in entries if e.patient_id in filters.patient_ids]
        return entries[skip:skip + limit], len(entries)

    async def count_where(self, status=None, priority=None, arrival_day=None) -> int:
        return len(self._entries(status=status, priority=priority, arrival_day=arrival_day))

    async def queue_numbers_for_day(self, arrival_day: str) -> List[int]:
        await asyncio.sleep(0)
        return [doc["queue_number"] for doc in self.docs.values() if doc["arrival_day"] == arrival_day]

    async def update(self, entry: QueueEntry) -> Optional[QueueEntry]:
        await asyncio.sleep(0)
        if entry.id not in self.docs:
            return None
        doc = entry.model_dump(exclude={"id"})
        self._check_unique(doc, entry_id=entry.id)
        self.docs[entry.id] = doc
        return self._entry(entry.id)

    async def save_wait_times(self, estimates: Dict[str, int]) -> None:
        self.saved_wait_times.append(dict(estimates))
        for entry_id, minutes in estimates.items():
            self.docs[entry_id]["estimated_wait_time"] = minutes

    async def delete(self, entry_id: str) -> bool:
        await asyncio.sleep(0)
        return self.docs.pop(entry_id, None) is not None


class FakePatients:
    """Patient collaborator double."""

    def __init__(self):
        self.records: Dict[str, PatientSummary] = {}
        self.searches: List[str] = []

    def add(self, name: str, contact_info: str = None, medical_record_number: str = None) -> str:
        patient_id = str(ObjectId())
        self.records[patient_id] = PatientSummary(
            id=patient_id,
            name=name,
            contact_info=contact_info,
            medical_record_number=medical_record_number
        )
        return patient_id

    async def exists(self, patient_id: str) -> bool:
        return patient_id in self.records

    async def get_summaries(self, patient_ids) -> Dict[str, PatientSummary]:
        return {pid: self.records[pid] for pid in set(patient_ids) if pid in self.records}

    async def find_matching_ids(self, term: str, limit: Optional[int] = None) -> List[str]:
        self.searches.append(term)
        needle = term.lower()
        ids = [
            pid for pid, p in self.records.items()
            if any(needle in (value or "").lower()
                   for value in (p.name, p.contact_info, p.medical_record_number))
        ]
        return ids[:limit] if limit else ids


class FakeClock:
    """Controllable replacement for datetime.utcnow."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        CLINIC_TIMEZONE="UTC",
        BASE_SERVICE_MINUTES=15,
        URGENT_PENALTY_MINUTES=5,
        SEARCH_RESULT_LIMIT=50,
        DEFAULT_PAGE_SIZE=10,
        MAX_PAGE_SIZE=100
    )


@pytest.fixture
def store() -> InMemoryQueueStore:
    return InMemoryQueueStore()


@pytest.fixture
def patients() -> FakePatients:
    return FakePatients()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 3, 2, 9, 0))


@pytest.fixture
def service(store, patients, settings, clock) -> QueueService:
    return QueueService(store, patients, settings=settings, clock=clock)
