"""
Wait-time estimation for the waiting set.
"""

from typing import Dict, Iterable, List, Sequence

from ..models.queue import QueueEntry, QueuePriority


def recompute(
    ordered: Iterable[QueueEntry],
    base_minutes: int = 15,
    urgent_penalty: int = 5
) -> List[QueueEntry]:
    """
    Re-derive ``estimated_wait_time`` for every entry of an ordered waiting list.

    Each entry waits for everyone ahead of it: ``base_minutes`` per patient,
    plus ``urgent_penalty`` for each urgent patient ahead. The first entry
    always gets 0. Full pass, no incremental state.
    """
    running = 0
    result = []
    for entry in ordered:
        result.append(entry.model_copy(update={"estimated_wait_time": running}))
        running += base_minutes
        if entry.priority == QueuePriority.URGENT:
            running += urgent_penalty
    return result


def changed_estimates(
    before: Sequence[QueueEntry],
    after: Sequence[QueueEntry]
) -> Dict[str, int]:
    """Estimates that differ from what is stored, keyed by entry id."""
    stored = {e.id: e.estimated_wait_time for e in before}
    return {
        e.id: e.estimated_wait_time
        for e in after
        if stored.get(e.id) != e.estimated_wait_time
    }
