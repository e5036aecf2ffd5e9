"""
Declarative base shared by all selection tables.
"""

import datetime
from typing import Any, Dict

from sqlalchemy import Column, DateTime, MetaData
from sqlalchemy.orm import declarative_base

# Constraint names stay stable across databases
metadata = MetaData(naming_convention={
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s"
})

Base = declarative_base(metadata=metadata)


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class CreatedAtMixin:
    """Adds a ``created_at`` column filled on insert."""
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)


class ModelBase(Base):
    """Abstract parent of every table model."""

    __abstract__ = True

    def to_dict(self) -> Dict[str, Any]:
        """Column values keyed by column name."""
        return {column.name: getattr(self, column.name) for column in self.__table__.columns}

    def __repr__(self) -> str:
        keys = ", ".join(f"{column.name}={getattr(self, column.name)!r}" for column in self.__table__.primary_key)
        return f"<{type(self).__name__} {keys}>"
