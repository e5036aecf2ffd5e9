"""
Per-user history aggregation.

Turns a requester's recent completed attempts into one ``HistoryEntry`` per
item touched. Items without an entry are "cold" and get no history effects.
"""

from typing import Dict, Iterable, List, Mapping

from examselect.domain.questions.model import CompletedAttempt, HistoryEntry


def aggregate_history(attempts: Iterable[CompletedAttempt]) -> List[HistoryEntry]:
    """
    Aggregate the responses of completed attempts into history entries.

    Responses are replayed oldest first. Every touch adds one to
    ``times_used`` and moves ``last_used_at`` forward; the performance score
    is blended as ``(previous + correctness) / 2``, the first touch seeding it
    with its own correctness.

    Args:
        attempts: Completed attempts, in any order

    Returns:
        History entries in order of first touch
    """
    responses = [response for attempt in attempts for response in attempt.responses]
    responses.sort(key=lambda r: r.answered_at)

    entries: Dict[str, HistoryEntry] = {}
    for response in responses:
        correctness = 1.0 if response.is_correct else 0.0
        entry = entries.get(response.item_id)
        if entry is None:
            entries[response.item_id] = HistoryEntry(
                item_id=response.item_id,
                times_used=1,
                last_used_at=response.answered_at,
                performance_score=correctness,
            )
            continue

        entry.times_used += 1
        entry.last_used_at = max(entry.last_used_at, response.answered_at)
        entry.performance_score = (entry.performance_score + correctness) / 2

    return list(entries.values())


def index_history(entries: Iterable[HistoryEntry]) -> Mapping[str, HistoryEntry]:
    """Key history entries by item id; later entries win."""
    return {entry.item_id: entry for entry in entries}
