"""
Question Domain Model Module

This module defines the core domain entities the selection engine works on:
catalog items, per-user history entries and the completed attempts history
is aggregated from.
"""

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import List


class Difficulty(enum.Enum):
    """Difficulty tier of a catalog item."""
    EASY = "EASY"
    MEDIUM = "MEDIUM"
    HARD = "HARD"
    EXPERT = "EXPERT"


class QuestionType(enum.Enum):
    """Presentation type of a catalog item."""
    MULTIPLE_CHOICE = "MULTIPLE_CHOICE"
    ESSAY = "ESSAY"
    SHORT_ANSWER = "SHORT_ANSWER"
    FILL_IN_THE_BLANK = "FILL_IN_THE_BLANK"
    TRUE_FALSE = "TRUE_FALSE"
    MATCHING = "MATCHING"
    ORDERING = "ORDERING"
    ACCOUNTING_TABLE = "ACCOUNTING_TABLE"
    COMPOUND_CHOICE = "COMPOUND_CHOICE"


@dataclass
class Item:
    """
    A content unit (question) belonging to a category catalog.

    Attributes:
        item_id: Unique identifier for the item
        category_id: Category the item belongs to
        difficulty: Difficulty tier
        usage_count: Global number of times the item has been selected
        correct_answer_rate: Share of correct answers (0-1), informational
        active: Whether authors have the item enabled
        public: Whether the item may be used in exams
        question_type: Presentation type of the item
    """
    item_id: str
    category_id: str
    difficulty: Difficulty = Difficulty.MEDIUM
    usage_count: int = 0
    correct_answer_rate: float = 0.0
    active: bool = True
    public: bool = True
    question_type: QuestionType = QuestionType.MULTIPLE_CHOICE

    def is_selectable_for(self, category_id: str) -> bool:
        """Whether the item may be handed out for the given category."""
        return self.active and self.public and self.category_id == category_id


@dataclass
class HistoryEntry:
    """
    Recent usage of one item by one user.

    Attributes:
        item_id: The item the entry describes
        times_used: How many times the user saw the item (>= 1)
        last_used_at: Most recent time the user saw the item
        performance_score: Blended correctness on the item (0-1)
    """
    item_id: str
    times_used: int
    last_used_at: datetime
    performance_score: float


@dataclass
class AttemptResponse:
    """One answered item inside a completed attempt."""
    item_id: str
    answered_at: datetime
    is_correct: bool


@dataclass
class CompletedAttempt:
    """A completed exam attempt of one user in one category."""
    attempt_id: str
    requester_id: str
    category_id: str
    completed_at: datetime
    responses: List[AttemptResponse] = field(default_factory=list)
