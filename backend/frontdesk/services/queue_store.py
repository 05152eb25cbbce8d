"""
MongoDB-backed store for walk-in queue entries.
"""

from typing import Dict, List, Optional, Tuple

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING, ReturnDocument, UpdateOne

from ..database import object_id_or_none, storage_errors
from ..models.queue import QueueEntry, QueueFilters, QueuePriority, QueueStatus

# "urgent" sorts after "normal" as a string, so descending puts urgent first
QUEUE_ORDER = [("priority", DESCENDING), ("queue_number", ASCENDING)]


def _storage_errors(action: str):
    return storage_errors(action, conflict="Queue entry collides with a concurrent change, please retry")


def _to_entry(doc: dict) -> QueueEntry:
    doc["_id"] = str(doc["_id"])
    return QueueEntry(**doc)


class QueueEntryStore:
    """Persistence for queue entries. Holds no queue state of its own."""

    def __init__(self, collection):
        self.collection = collection

    @staticmethod
    def _query(
        status: Optional[QueueStatus] = None,
        priority: Optional[QueuePriority] = None,
        arrival_day: Optional[str] = None
    ) -> dict:
        query = {}
        if status is not None:
            query["status"] = QueueStatus(status).value
        if priority is not None:
            query["priority"] = QueuePriority(priority).value
        if arrival_day is not None:
            query["arrival_day"] = arrival_day
        return query

    async def create(self, entry_doc: dict) -> str:
        """Insert a new entry document and return its id."""
        doc = dict(entry_doc)
        with _storage_errors("creating queue entry"):
            result = await self.collection.insert_one(doc)
        return str(result.inserted_id)

    async def find_by_id(self, entry_id: str) -> Optional[QueueEntry]:
        oid = object_id_or_none(entry_id)
        if oid is None:
            return None
        with _storage_errors("loading queue entry"):
            doc = await self.collection.find_one({"_id": oid})
        return _to_entry(doc) if doc else None

    async def find_waiting_for_patient(self, patient_id: str) -> Optional[QueueEntry]:
        with _storage_errors("looking up patient entry"):
            doc = await self.collection.find_one({
                "patient_id": patient_id,
                "status": QueueStatus.WAITING.value
            })
        return _to_entry(doc) if doc else None

    async def find_by_queue_number(self, arrival_day: str, queue_number: int) -> Optional[QueueEntry]:
        with _storage_errors("looking up queue number"):
            doc = await self.collection.find_one({
                "arrival_day": arrival_day,
                "queue_number": queue_number
            })
        return _to_entry(doc) if doc else None

    async def find_all_by_status(
        self,
        status: QueueStatus,
        priority: Optional[QueuePriority] = None,
        arrival_day: Optional[str] = None
    ) -> List[QueueEntry]:
        """All entries with a status, in queue order."""
        query = self._query(status, priority, arrival_day)
        with _storage_errors("listing queue entries"):
            docs = await self.collection.find(query).sort(QUEUE_ORDER).to_list(length=None)
        return [_to_entry(doc) for doc in docs]

    async def find_filtered(
        self,
        filters: QueueFilters,
        skip: int = 0,
        limit: int = 10
    ) -> Tuple[List[QueueEntry], int]:
        """One page of entries in queue order, plus the unpaginated total."""
        query = self._query(filters.status, filters.priority)
        if filters.patient_ids is not None:
            query["patient_id"] = {"$in": filters.patient_ids}

        with _storage_errors("filtering queue entries"):
            total = await self.collection.count_documents(query)
            cursor = self.collection.find(query).sort(QUEUE_ORDER).skip(skip).limit(limit)
            docs = await cursor.to_list(length=limit)
        return [_to_entry(doc) for doc in docs], total

    async def count_where(
        self,
        status: Optional[QueueStatus] = None,
        priority: Optional[QueuePriority] = None,
        arrival_day: Optional[str] = None
    ) -> int:
        with _storage_errors("counting queue entries"):
            return await self.collection.count_documents(
                self._query(status, priority, arrival_day)
            )

    async def queue_numbers_for_day(self, arrival_day: str) -> List[int]:
        """Every number issued on a clinic day, whatever the entry status."""
        with _storage_errors("reading today's queue numbers"):
            return await self.collection.distinct("queue_number", {"arrival_day": arrival_day})

    async def update(self, entry: QueueEntry) -> Optional[QueueEntry]:
        """Overwrite the mutable fields of an entry. None if it vanished."""
        oid = object_id_or_none(entry.id)
        if oid is None:
            return None

        fields = entry.model_dump(exclude={"id"})
        fields["status"] = entry.status.value
        fields["priority"] = entry.priority.value

        with _storage_errors("updating queue entry"):
            doc = await self.collection.find_one_and_update(
                {"_id": oid},
                {"$set": fields},
                return_document=ReturnDocument.AFTER
            )
        return _to_entry(doc) if doc else None

    async def save_wait_times(self, estimates: Dict[str, int]) -> None:
        """Persist a recompute pass in one bulk write."""
        if not estimates:
            return
        operations = [
            UpdateOne({"_id": ObjectId(entry_id)}, {"$set": {"estimated_wait_time": minutes}})
            for entry_id, minutes in estimates.items()
        ]
        with _storage_errors("saving wait estimates"):
            await self.collection.bulk_write(operations, ordered=False)

    async def delete(self, entry_id: str) -> bool:
        oid = object_id_or_none(entry_id)
        if oid is None:
            return False
        with _storage_errors("deleting queue entry"):
            result = await self.collection.delete_one({"_id": oid})
        return result.deleted_count > 0
