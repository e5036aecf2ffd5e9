"""
SQLAlchemy ORM models for question selection.

- ItemRecord: A catalog item with its global usage counter
- ExamAttemptRecord: One exam attempt of a user in a category
- AttemptResponseRecord: The answer given to one item within an attempt
- AuditLogRecord: Audit trail of selections
"""

from sqlalchemy import (
    Boolean, Column, DateTime, Float, ForeignKey, Index, Integer, JSON, String
)
from sqlalchemy.orm import relationship

from examselect.database.base import CreatedAtMixin, ModelBase, utcnow
from examselect.domain.questions.model import Difficulty, Item, QuestionType

ATTEMPT_COMPLETED = "COMPLETED"


class ItemRecord(CreatedAtMixin, ModelBase):
    """Catalog item."""
    __tablename__ = 'items'

    id = Column(String(255), primary_key=True)
    category_id = Column(String(255), nullable=False, index=True)
    difficulty = Column(String(20), nullable=False, default=Difficulty.MEDIUM.value)
    question_type = Column(String(50), nullable=False, default=QuestionType.MULTIPLE_CHOICE.value)
    usage_count = Column(Integer, nullable=False, default=0)
    correct_answer_rate = Column(Float, nullable=False, default=0.0)
    is_active = Column(Boolean, nullable=False, default=True)
    is_public = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        Index('idx_items_category_active', category_id, is_active, is_public),
    )

    def to_domain(self) -> Item:
        return Item(
            item_id=self.id,
            category_id=self.category_id,
            difficulty=Difficulty(self.difficulty),
            usage_count=self.usage_count or 0,
            correct_answer_rate=self.correct_answer_rate or 0.0,
            active=self.is_active,
            public=self.is_public,
            question_type=QuestionType(self.question_type),
        )


class ExamAttemptRecord(CreatedAtMixin, ModelBase):
    """A user's attempt at an exam in one category."""
    __tablename__ = 'exam_attempts'

    id = Column(String(255), primary_key=True)
    user_id = Column(String(255), nullable=False, index=True)
    category_id = Column(String(255), nullable=False)
    status = Column(String(50), nullable=False, default="IN_PROGRESS")
    completed_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    responses = relationship(
        "AttemptResponseRecord", back_populates="attempt", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index('idx_attempts_user_category_completed', user_id, category_id, completed_at),
    )


class AttemptResponseRecord(ModelBase):
    """Answer to one item within an attempt."""
    __tablename__ = 'attempt_responses'

    id = Column(Integer, primary_key=True, autoincrement=True)
    attempt_id = Column(String(255), ForeignKey('exam_attempts.id'), nullable=False, index=True)
    item_id = Column(String(255), ForeignKey('items.id'), nullable=False, index=True)
    is_correct = Column(Boolean, nullable=False, default=False)
    answered_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    attempt = relationship("ExamAttemptRecord", back_populates="responses")


class AuditLogRecord(CreatedAtMixin, ModelBase):
    """Audit entry written after each successful selection."""
    __tablename__ = 'audit_log'

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(255), nullable=False, index=True)
    action = Column(String(100), nullable=False)
    resource_type = Column(String(100), nullable=False)
    details = Column(JSON, nullable=True)
