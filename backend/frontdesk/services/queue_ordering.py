"""
Ordering rules for the waiting set.

Waiting entries are totally ordered by (priority desc, queue_number asc).
Nothing here touches storage: the facade loads entries, these functions
decide positions and numbers, and the facade persists the result.
"""

from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from ..errors import ConflictError
from ..models.queue import QueueEntry, QueuePriority, QueueStatus
from .queue_numbering import next_queue_number

PRIORITY_RANK = {
    QueuePriority.URGENT: 0,
    QueuePriority.NORMAL: 1,
}


def ordering_key(entry: QueueEntry) -> Tuple[int, int]:
    return PRIORITY_RANK[entry.priority], entry.queue_number


def order_waiting(entries: Iterable[QueueEntry]) -> List[QueueEntry]:
    """Waiting entries only, urgent tier first, lower numbers first within a tier."""
    return sorted(
        (e for e in entries if e.status == QueueStatus.WAITING),
        key=ordering_key
    )


def ensure_not_queued(existing: Optional[QueueEntry], patient_id: str) -> None:
    """Reject a second waiting entry for the same patient."""
    if existing is not None:
        raise ConflictError(
            f"Patient {patient_id} is already in the queue as number {existing.queue_number}"
        )


def new_entry_document(
    patient_id: str,
    priority: QueuePriority,
    queue_number: int,
    arrival_time: datetime,
    arrival_day: str
) -> dict:
    """Document for a fresh arrival. It lands at the back of its tier by construction."""
    return {
        "patient_id": patient_id,
        "queue_number": queue_number,
        "status": QueueStatus.WAITING.value,
        "priority": priority.value,
        "arrival_time": arrival_time,
        "arrival_day": arrival_day,
        "estimated_wait_time": None,
        "status_changed_at": None,
        "updated_at": None
    }


def back_of_tier_number(
    waiting: Iterable[QueueEntry],
    tier: QueuePriority,
    day_numbers: Iterable[int],
    exclude_id: Optional[str] = None
) -> int:
    """
    Number that puts an entry behind every waiting entry of ``tier``.

    ``day_numbers`` are the numbers issued on the entry's own arrival day.
    The result is never below the next of those, so it stays unique within
    that day even for an entry left over from an earlier day.
    """
    tier_numbers = [
        e.queue_number for e in waiting
        if e.priority == tier and e.status == QueueStatus.WAITING and e.id != exclude_id
    ]
    fresh = next_queue_number(day_numbers)
    if not tier_numbers:
        return fresh
    return max(max(tier_numbers) + 1, fresh)


def reprioritize(
    entry: QueueEntry,
    new_priority: QueuePriority,
    waiting: Iterable[QueueEntry],
    day_numbers: Iterable[int]
) -> QueueEntry:
    """
    Move an entry to the back of its new tier.

    Returns the entry unchanged when the priority does not change.
    """
    if new_priority == entry.priority:
        return entry

    number = back_of_tier_number(waiting, new_priority, day_numbers, exclude_id=entry.id)
    return entry.model_copy(update={"priority": new_priority, "queue_number": number})
