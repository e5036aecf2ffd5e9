"""
Memory Question Sources Module

This module provides in-memory implementations of the catalog and history
sources for development and testing purposes.
"""

import logging
import threading
from typing import Dict, Iterable, List, Optional

from examselect.selection.history import aggregate_history
from .model import Item, HistoryEntry, CompletedAttempt
from .repository import CatalogSource, HistorySource, DEFAULT_HISTORY_LIMIT

# Setup logging
logger = logging.getLogger(__name__)


class MemoryCatalogSource(CatalogSource):
    """
    In-memory catalog keyed by item id.

    ``increment_usage`` holds a lock so concurrent recorder threads never
    lose a bump.
    """

    def __init__(self, initial_data: Optional[Iterable[Item]] = None):
        """
        Initialize the catalog with optional initial data.

        Args:
            initial_data: Optional items to initialize with
        """
        self._items: Dict[str, Item] = {}
        self._lock = threading.Lock()

        if initial_data:
            for item in initial_data:
                self._items[item.item_id] = item

    def list_active_items(self, category_id: str) -> List[Item]:
        return [
            item for item in self._items.values()
            if item.is_selectable_for(category_id)
        ]

    def get_by_id(self, item_id: str) -> Optional[Item]:
        return self._items.get(item_id)

    def increment_usage(self, item_ids: Iterable[str]) -> int:
        """
        Add one to the usage count of each known item.

        Args:
            item_ids: Items to bump

        Returns:
            Number of items bumped
        """
        bumped = 0
        with self._lock:
            for item_id in item_ids:
                item = self._items.get(item_id)
                if item is not None:
                    item.usage_count += 1
                    bumped += 1
        logger.debug(f"Bumped usage of {bumped} items")
        return bumped


class MemoryHistorySource(HistorySource):
    """
    In-memory store of completed attempts.

    History is aggregated on every call from the most recent attempts, the
    same way the SQL-backed source does it.
    """

    def __init__(self, attempts: Optional[Iterable[CompletedAttempt]] = None):
        self._attempts: List[CompletedAttempt] = list(attempts or [])

    def add_attempt(self, attempt: CompletedAttempt) -> None:
        self._attempts.append(attempt)

    def recent_history(
        self,
        requester_id: str,
        category_id: str,
        limit: int = DEFAULT_HISTORY_LIMIT
    ) -> List[HistoryEntry]:
        attempts = [
            attempt for attempt in self._attempts
            if attempt.requester_id == requester_id and attempt.category_id == category_id
        ]
        attempts.sort(key=lambda a: a.completed_at, reverse=True)
        return aggregate_history(attempts[:limit])
