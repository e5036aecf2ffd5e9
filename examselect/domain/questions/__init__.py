"""
Question domain module.

This module contains the domain model and source interfaces for handling
catalog items and per-user history in the selection engine.
"""

from .model import (
    Item, Difficulty, QuestionType, HistoryEntry, AttemptResponse, CompletedAttempt
)
from .repository import CatalogSource, HistorySource, DEFAULT_HISTORY_LIMIT

__all__ = [
    'Item',
    'Difficulty',
    'QuestionType',
    'HistoryEntry',
    'AttemptResponse',
    'CompletedAttempt',
    'CatalogSource',
    'HistorySource',
    'DEFAULT_HISTORY_LIMIT',
]
