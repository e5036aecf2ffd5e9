"""
Database initialization and connection management.

This module provides:
1. Engine creation from configuration
2. Schema creation
3. Transactional session scopes
"""

import contextlib
from typing import Iterator

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from examselect.common.exceptions import DatabaseError
from examselect.common.logger import app_logger
from examselect.database.base import metadata
from examselect.database import models  # noqa: F401  registers tables

# Setup module logger
logger = app_logger.getChild("database.session")


class Database:
    """
    Owns one SQLAlchemy engine and its session factory.

    SQLite URLs get a single shared connection when in memory, so every
    session and thread sees the same database.
    """

    def __init__(
        self,
        database_url: str,
        echo: bool = False,
        pool_size: int = 5,
        max_overflow: int = 10,
        pool_timeout: int = 30,
    ):
        """
        Initialize the database engine.

        Args:
            database_url: Database connection URL
            echo: Whether to echo SQL statements
            pool_size: Connection pool size
            max_overflow: Maximum number of connections to allow above pool_size
            pool_timeout: Timeout for getting a connection from the pool
        """
        logger.info(f"Initializing database with URL: {database_url[:10]}...")

        options = {"echo": echo}
        if database_url.startswith("sqlite"):
            options["connect_args"] = {"check_same_thread": False}
            if ":memory:" in database_url or database_url.rstrip("/") == "sqlite:":
                options["poolclass"] = StaticPool
        else:
            options.update(pool_size=pool_size, max_overflow=max_overflow, pool_timeout=pool_timeout)

        self.engine: Engine = create_engine(database_url, **options)
        self._session_factory = sessionmaker(self.engine, expire_on_commit=False)

    def create_schema(self) -> None:
        """Create all tables that do not exist yet."""
        try:
            metadata.create_all(self.engine)
        except SQLAlchemyError as e:
            raise DatabaseError("schema creation failed", e) from e
        logger.info("Database schema ready")

    def ping(self) -> None:
        """Round-trip a trivial query; raises if the database is unreachable."""
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))

    @contextlib.contextmanager
    def session(self) -> Iterator[Session]:
        """
        Transactional session scope: commits on success, rolls back on error.
        """
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def close(self) -> None:
        """Dispose the engine and all pooled connections."""
        self.engine.dispose()
        logger.info("Database engine closed")


def init_database(
    database_url: str,
    echo: bool = False,
    pool_size: int = 5,
    max_overflow: int = 10,
    pool_timeout: int = 30,
    create_schema: bool = True,
) -> Database:
    """
    Create a ``Database`` and, by default, its schema.

    Raises:
        DatabaseError: If the database cannot be reached
    """
    database = Database(
        database_url,
        echo=echo,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_timeout=pool_timeout,
    )
    try:
        database.ping()
    except SQLAlchemyError as e:
        logger.error(f"Failed to connect to database: {e}")
        raise DatabaseError("connection failed", e) from e

    if create_schema:
        database.create_schema()
    return database
