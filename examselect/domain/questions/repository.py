"""
Question Source Interfaces

This module defines the read-only collaborators the selection engine is
injected with. The engine never talks to storage directly; it asks a
catalog source for candidates and a history source for the requester's
recent usage.
"""

import abc
from typing import List

from .model import Item, HistoryEntry

DEFAULT_HISTORY_LIMIT = 10


class CatalogSource(abc.ABC):
    """
    Abstract base class for catalog sources.

    Implementations return the candidate pool of a category: active,
    publicly usable items only.
    """

    @abc.abstractmethod
    def list_active_items(self, category_id: str) -> List[Item]:
        """
        List selectable items of a category.

        Args:
            category_id: The category to list

        Returns:
            List of active, public items in the category
        """
        pass


class HistorySource(abc.ABC):
    """
    Abstract base class for per-user history sources.
    """

    @abc.abstractmethod
    def recent_history(
        self,
        requester_id: str,
        category_id: str,
        limit: int = DEFAULT_HISTORY_LIMIT
    ) -> List[HistoryEntry]:
        """
        Build the requester's recent history in a category.

        Args:
            requester_id: The user asking for a selection
            category_id: The category of the exam
            limit: Number of most recent completed attempts to consider

        Returns:
            One HistoryEntry per item touched in those attempts

        Raises:
            HistoryUnavailableError: If the history cannot be read
        """
        pass
