"""
Shared fixtures for the selection engine tests.
"""

from datetime import datetime, timedelta, timezone

import numpy as np
import pytest

from examselect.common.metrics import InMemoryMetricsBackend, MetricsService
from examselect.domain.questions.memory_repository import MemoryCatalogSource, MemoryHistorySource
from examselect.domain.questions.model import (
    AttemptResponse, CompletedAttempt, Difficulty, HistoryEntry, Item, QuestionType
)
from examselect.selection.engine import SelectionEngine
from examselect.selection.recorder import InMemoryUsageRecorder

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
CATEGORY = "cat-1"
REQUESTER = "user-1"


def make_item(item_id, difficulty=Difficulty.MEDIUM, usage_count=0, category_id=CATEGORY,
              active=True, public=True, question_type=QuestionType.MULTIPLE_CHOICE,
              correct_answer_rate=0.0):
    return Item(
        item_id=item_id,
        category_id=category_id,
        difficulty=difficulty,
        usage_count=usage_count,
        correct_answer_rate=correct_answer_rate,
        active=active,
        public=public,
        question_type=question_type,
    )


def make_entry(item_id, days_ago=5, times_used=1, performance_score=0.5):
    return HistoryEntry(
        item_id=item_id,
        times_used=times_used,
        last_used_at=NOW - timedelta(days=days_ago),
        performance_score=performance_score,
    )


def make_attempt(attempt_id, responses, completed_days_ago=1, requester_id=REQUESTER, category_id=CATEGORY):
    """Build a completed attempt from ``(item_id, is_correct, days_ago)`` tuples."""
    return CompletedAttempt(
        attempt_id=attempt_id,
        requester_id=requester_id,
        category_id=category_id,
        completed_at=NOW - timedelta(days=completed_days_ago),
        responses=[
            AttemptResponse(item_id=item_id, answered_at=NOW - timedelta(days=days_ago), is_correct=is_correct)
            for item_id, is_correct, days_ago in responses
        ],
    )


def mixed_pool(per_tier=10):
    """``per_tier`` items of every difficulty tier."""
    return [
        make_item(f"{tier.value.lower()}-{i}", difficulty=tier)
        for tier in Difficulty
        for i in range(per_tier)
    ]


@pytest.fixture
def rng():
    return np.random.default_rng(42)


@pytest.fixture
def metrics_backend():
    return InMemoryMetricsBackend()


@pytest.fixture
def metrics(metrics_backend):
    return MetricsService(metrics_backend)


@pytest.fixture
def catalog():
    return MemoryCatalogSource(mixed_pool())


@pytest.fixture
def history_source():
    return MemoryHistorySource()


@pytest.fixture
def recorder(catalog):
    return InMemoryUsageRecorder(catalog)


@pytest.fixture
def engine(catalog, history_source, recorder, metrics, rng):
    engine = SelectionEngine(
        catalog,
        history_source,
        recorder,
        metrics=metrics,
        rng=rng,
        clock=lambda: NOW,
    )
    yield engine
    engine.close()
