"""
Tests for the SQL-backed sources and recorder, on in-memory SQLite.
"""

from datetime import datetime, timedelta

import numpy as np
import pytest
from sqlalchemy import select

from examselect.common.exceptions import HistoryUnavailableError, RecorderFailureError
from examselect.database.models import (
    AttemptResponseRecord, AuditLogRecord, ExamAttemptRecord, ItemRecord
)
from examselect.database.repositories import SqlCatalogSource, SqlHistorySource, SqlUsageRecorder
from examselect.database.session import Database, init_database
from examselect.domain.questions.model import Difficulty
from examselect.selection.engine import SelectionEngine
from examselect.selection.types import Algorithm, AuditEvent, SelectionRequest
from examselect.tests.conftest import CATEGORY, REQUESTER

BASE = datetime(2024, 6, 1, 12, 0)


@pytest.fixture
def database():
    database = init_database("sqlite:///:memory:")
    yield database
    database.close()


@pytest.fixture
def seeded(database):
    with database.session() as session:
        session.add_all([
            ItemRecord(id="popular", category_id=CATEGORY, usage_count=9, correct_answer_rate=0.5),
            ItemRecord(id="fresh", category_id=CATEGORY, usage_count=0, correct_answer_rate=0.5,
                       difficulty=Difficulty.HARD.value),
            ItemRecord(id="easy", category_id=CATEGORY, usage_count=0, correct_answer_rate=0.9,
                       difficulty=Difficulty.EASY.value),
            ItemRecord(id="retired", category_id=CATEGORY, is_active=False),
            ItemRecord(id="draft", category_id=CATEGORY, is_public=False),
            ItemRecord(id="elsewhere", category_id="other"),
        ])
    return database


def add_attempt(database, attempt_id, responses, completed_at, status="COMPLETED",
                user_id=REQUESTER, category_id=CATEGORY):
    with database.session() as session:
        attempt = ExamAttemptRecord(
            id=attempt_id,
            user_id=user_id,
            category_id=category_id,
            status=status,
            completed_at=completed_at,
        )
        attempt.responses = [
            AttemptResponseRecord(item_id=item_id, is_correct=is_correct, answered_at=completed_at)
            for item_id, is_correct in responses
        ]
        session.add(attempt)


class TestSqlCatalogSource:

    def test_only_active_public_items_of_the_category(self, seeded):
        items = SqlCatalogSource(seeded).list_active_items(CATEGORY)
        assert {item.item_id for item in items} == {"popular", "fresh", "easy"}

    def test_least_used_first_then_best_answered(self, seeded):
        items = SqlCatalogSource(seeded).list_active_items(CATEGORY)
        assert [item.item_id for item in items] == ["easy", "fresh", "popular"]

    def test_maps_domain_fields(self, seeded):
        items = {item.item_id: item for item in SqlCatalogSource(seeded).list_active_items(CATEGORY)}
        assert items["fresh"].difficulty == Difficulty.HARD
        assert items["popular"].usage_count == 9


class TestSqlHistorySource:

    def test_aggregates_completed_attempts(self, seeded):
        add_attempt(seeded, "a1", [("fresh", False)], BASE - timedelta(days=4))
        add_attempt(seeded, "a2", [("fresh", True), ("easy", True)], BASE - timedelta(days=2))
        add_attempt(seeded, "a3", [("popular", True)], BASE - timedelta(days=1), status="IN_PROGRESS")
        add_attempt(seeded, "a4", [("popular", True)], BASE - timedelta(days=1), user_id="someone-else")

        entries = {e.item_id: e for e in SqlHistorySource(seeded).recent_history(REQUESTER, CATEGORY)}

        assert set(entries) == {"fresh", "easy"}
        assert entries["fresh"].times_used == 2
        assert entries["fresh"].performance_score == pytest.approx(0.5)
        assert entries["fresh"].last_used_at == BASE - timedelta(days=2)

    def test_limit_keeps_most_recent_attempts(self, seeded):
        add_attempt(seeded, "old", [("popular", True)], BASE - timedelta(days=30))
        add_attempt(seeded, "new", [("fresh", True)], BASE - timedelta(days=1))

        entries = SqlHistorySource(seeded).recent_history(REQUESTER, CATEGORY, limit=1)
        assert [entry.item_id for entry in entries] == ["fresh"]

    def test_database_errors_become_history_unavailable(self):
        database = Database("sqlite:///:memory:")
        with pytest.raises(HistoryUnavailableError) as exc_info:
            SqlHistorySource(database).recent_history(REQUESTER, CATEGORY)
        assert exc_info.value.retryable
        database.close()


class TestSqlUsageRecorder:

    def test_bump_usage(self, seeded):
        recorder = SqlUsageRecorder(seeded)
        recorder.bump_usage(["fresh", "popular"])
        recorder.bump_usage(["fresh"])

        with seeded.session() as session:
            counts = dict(session.execute(select(ItemRecord.id, ItemRecord.usage_count)).all())
        assert counts["fresh"] == 2
        assert counts["popular"] == 10
        assert counts["easy"] == 0

    def test_record_audit(self, seeded):
        SqlUsageRecorder(seeded).record_audit(AuditEvent(
            algorithm=Algorithm.ADAPTIVE, requester_id=REQUESTER, category_id=CATEGORY, item_ids=["fresh"]
        ))

        with seeded.session() as session:
            record = session.scalars(select(AuditLogRecord)).one()
        assert record.user_id == REQUESTER
        assert record.action == "QUESTIONS_SELECTED"
        assert record.details['questionIds'] == ["fresh"]
        assert record.details['algorithm'] == "adaptive"

    def test_database_errors_become_recorder_failures(self):
        database = Database("sqlite:///:memory:")
        with pytest.raises(RecorderFailureError):
            SqlUsageRecorder(database).bump_usage(["fresh"])
        database.close()


def test_engine_end_to_end(seeded):
    add_attempt(seeded, "a1", [("easy", True)], BASE - timedelta(days=2))
    engine = SelectionEngine(
        SqlCatalogSource(seeded),
        SqlHistorySource(seeded),
        SqlUsageRecorder(seeded),
        rng=np.random.default_rng(5),
    )

    result = engine.select(SelectionRequest(
        category_id=CATEGORY, desired_count=2, overlap_percentage=0, requester_id=REQUESTER
    ))
    assert engine.dispatcher.drain(timeout=5)
    engine.close()

    assert sorted(result.item_ids) == ["fresh", "popular"]
    with seeded.session() as session:
        counts = dict(session.execute(select(ItemRecord.id, ItemRecord.usage_count)).all())
        audits = session.scalars(select(AuditLogRecord)).all()
    assert counts["fresh"] == 1
    assert counts["popular"] == 10
    assert len(audits) == 1


def test_ping_and_record_helpers(seeded):
    seeded.ping()
    with seeded.session() as session:
        record = session.get(ItemRecord, "fresh")
        as_dict = record.to_dict()
    assert as_dict["id"] == "fresh"
    assert as_dict["difficulty"] == "HARD"
    assert as_dict["created_at"] is not None
    assert repr(record) == "<ItemRecord id='fresh'>"
