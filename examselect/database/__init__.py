"""
Database layer: models, engine management and SQL-backed sources.
"""

from examselect.database.base import Base, ModelBase, metadata
from examselect.database.session import Database, init_database

__all__ = ['Base', 'ModelBase', 'metadata', 'Database', 'init_database']
