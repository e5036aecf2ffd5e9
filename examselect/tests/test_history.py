"""
Tests for history aggregation and the in-memory history source.
"""

from datetime import timedelta

import pytest

from examselect.domain.questions.memory_repository import MemoryHistorySource
from examselect.selection.history import aggregate_history, index_history
from examselect.tests.conftest import CATEGORY, NOW, REQUESTER, make_attempt


def by_item(entries):
    return index_history(entries)


def test_first_touch_seeds_score():
    attempt = make_attempt("a1", [("q1", True, 3), ("q2", False, 3)])
    entries = by_item(aggregate_history([attempt]))

    assert entries["q1"].performance_score == pytest.approx(1.0)
    assert entries["q2"].performance_score == pytest.approx(0.0)
    assert entries["q1"].times_used == 1
    assert entries["q1"].last_used_at == NOW - timedelta(days=3)


def test_repeated_touches_blend_oldest_first():
    attempts = [
        make_attempt("new", [("q1", True, 1)], completed_days_ago=1),
        make_attempt("old", [("q1", False, 10)], completed_days_ago=10),
        make_attempt("mid", [("q1", True, 5)], completed_days_ago=5),
    ]
    entry = by_item(aggregate_history(attempts))["q1"]

    # 0.0 -> (0.0 + 1.0) / 2 -> (0.5 + 1.0) / 2
    assert entry.performance_score == pytest.approx(0.75)
    assert entry.times_used == 3
    assert entry.last_used_at == NOW - timedelta(days=1)


def test_no_attempts_means_cold_history():
    assert aggregate_history([]) == []


class TestMemoryHistorySource:

    def test_filters_by_requester_and_category(self):
        source = MemoryHistorySource([
            make_attempt("a1", [("q1", True, 2)]),
            make_attempt("a2", [("q2", True, 2)], requester_id="someone-else"),
            make_attempt("a3", [("q3", True, 2)], category_id="other-category"),
        ])
        entries = by_item(source.recent_history(REQUESTER, CATEGORY))
        assert set(entries) == {"q1"}

    def test_only_most_recent_attempts_count(self):
        source = MemoryHistorySource([
            make_attempt(f"a{days}", [(f"q{days}", True, days)], completed_days_ago=days)
            for days in range(1, 16)
        ])
        entries = by_item(source.recent_history(REQUESTER, CATEGORY, limit=10))
        assert set(entries) == {f"q{days}" for days in range(1, 11)}
