"""
SQL-backed catalog source, history source and usage recorder.
"""

from typing import List, Sequence

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload

from examselect.common.exceptions import DatabaseError, HistoryUnavailableError, RecorderFailureError
from examselect.common.logger import app_logger
from examselect.database.models import (
    ATTEMPT_COMPLETED, AuditLogRecord, ExamAttemptRecord, ItemRecord
)
from examselect.database.session import Database
from examselect.domain.questions.model import AttemptResponse, CompletedAttempt, HistoryEntry, Item
from examselect.domain.questions.repository import CatalogSource, HistorySource, DEFAULT_HISTORY_LIMIT
from examselect.selection.history import aggregate_history
from examselect.selection.recorder import UsageRecorder
from examselect.selection.types import AuditEvent

# Module logger
logger = app_logger.getChild("database.repositories")

AUDIT_ACTION = "QUESTIONS_SELECTED"
AUDIT_RESOURCE = "exam_questions"


class SqlCatalogSource(CatalogSource):
    """Catalog backed by the ``items`` table."""

    def __init__(self, database: Database):
        self.database = database

    def list_active_items(self, category_id: str) -> List[Item]:
        """
        Active public items of a category, least used first.

        Raises:
            DatabaseError: If the query fails
        """
        stmt = (
            select(ItemRecord)
            .where(
                ItemRecord.category_id == category_id,
                ItemRecord.is_active.is_(True),
                ItemRecord.is_public.is_(True),
            )
            .order_by(
                ItemRecord.usage_count.asc(),
                ItemRecord.correct_answer_rate.desc(),
                ItemRecord.created_at.desc(),
            )
        )
        try:
            with self.database.session() as session:
                return [record.to_domain() for record in session.scalars(stmt)]
        except SQLAlchemyError as e:
            logger.error(f"Failed to load items for category {category_id}: {e}")
            raise DatabaseError(f"failed to load items for category {category_id}", e) from e


class SqlHistorySource(HistorySource):
    """History aggregated from a user's most recent completed attempts."""

    def __init__(self, database: Database):
        self.database = database

    def recent_history(
        self,
        requester_id: str,
        category_id: str,
        limit: int = DEFAULT_HISTORY_LIMIT
    ) -> List[HistoryEntry]:
        stmt = (
            select(ExamAttemptRecord)
            .where(
                ExamAttemptRecord.user_id == requester_id,
                ExamAttemptRecord.category_id == category_id,
                ExamAttemptRecord.status == ATTEMPT_COMPLETED,
            )
            .order_by(ExamAttemptRecord.completed_at.desc())
            .limit(limit)
            .options(selectinload(ExamAttemptRecord.responses))
        )
        try:
            with self.database.session() as session:
                attempts = [self._to_domain(record) for record in session.scalars(stmt)]
        except SQLAlchemyError as e:
            raise HistoryUnavailableError(requester_id, category_id, e) from e

        return aggregate_history(attempts)

    @staticmethod
    def _to_domain(record: ExamAttemptRecord) -> CompletedAttempt:
        return CompletedAttempt(
            attempt_id=record.id,
            requester_id=record.user_id,
            category_id=record.category_id,
            completed_at=record.completed_at,
            responses=[
                AttemptResponse(
                    item_id=response.item_id,
                    answered_at=response.answered_at,
                    is_correct=bool(response.is_correct),
                )
                for response in record.responses
            ],
        )


class SqlUsageRecorder(UsageRecorder):
    """Bumps ``items.usage_count`` in place and appends to ``audit_log``."""

    def __init__(self, database: Database):
        self.database = database

    def bump_usage(self, item_ids: Sequence[str]) -> None:
        if not item_ids:
            return

        # Single UPDATE so concurrent bumps never lose increments
        stmt = (
            update(ItemRecord)
            .where(ItemRecord.id.in_(list(item_ids)))
            .values(usage_count=ItemRecord.usage_count + 1)
            .execution_options(synchronize_session=False)
        )
        try:
            with self.database.session() as session:
                session.execute(stmt)
        except SQLAlchemyError as e:
            raise RecorderFailureError(f"usage bump of {len(item_ids)} items failed", e) from e

    def record_audit(self, event: AuditEvent) -> None:
        record = AuditLogRecord(
            user_id=event.requester_id,
            action=AUDIT_ACTION,
            resource_type=AUDIT_RESOURCE,
            details=event.to_dict(),
            created_at=event.timestamp,
        )
        try:
            with self.database.session() as session:
                session.add(record)
        except SQLAlchemyError as e:
            raise RecorderFailureError("audit insert failed", e) from e
