"""
Main application entry point for the exam question selection service.

Usage:
    - Direct: python -m examselect.main
    - ASGI server: uvicorn examselect.main:app
"""

import contextlib
from typing import Optional

from fastapi import FastAPI
from sqlalchemy.exc import SQLAlchemyError

from examselect.common.config import AppConfig, get_config
from examselect.common.logger import app_logger, configure_logger
from examselect.database.repositories import SqlCatalogSource, SqlHistorySource, SqlUsageRecorder
from examselect.database.session import Database, init_database
from examselect.selection.engine import SelectionEngine
from examselect.selection.router import router as selection_router

# Setup module logger
logger = app_logger.getChild("main")


def _check_database(database: Database, strict: bool) -> None:
    """Verify the database answers; only production refuses to start without it."""
    try:
        database.ping()
    except SQLAlchemyError as e:
        if strict:
            raise
        logger.warning(f"Database not reachable at startup: {e}")
        return
    logger.info("Database connection verified")


def create_app(engine: Optional[SelectionEngine] = None, config: Optional[AppConfig] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        engine: Selection engine to serve; one backed by the configured
            database is built at startup when omitted
        config: Application configuration, the loaded one by default
    """
    config = config or get_config()
    configure_logger(
        level=config.logging.level,
        use_json=config.logging.use_json,
        log_file=config.logging.file,
    )

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI):
        database = None
        if engine is None:
            database = init_database(
                config.database.url,
                echo=config.database.echo,
                pool_size=config.database.pool_size,
                max_overflow=config.database.max_overflow,
                pool_timeout=config.database.pool_timeout,
            )
            if not config.is_testing:
                _check_database(database, strict=config.is_production)
            recorder = SqlUsageRecorder(database) if config.selection.record_usage else None
            app.state.selection_engine = SelectionEngine(
                SqlCatalogSource(database),
                SqlHistorySource(database),
                recorder,
                history_limit=config.selection.history_attempt_limit,
                recorder_workers=config.selection.recorder_workers,
                default_overlap_percentage=config.selection.default_overlap_percentage,
                default_algorithm=config.selection.default_algorithm,
            )
        else:
            app.state.selection_engine = engine
        logger.info("Application startup complete")

        try:
            yield
        finally:
            # A caller-supplied engine is closed by its owner
            if database is not None:
                app.state.selection_engine.close()
                database.close()
            logger.info("Application shutdown complete")

    app = FastAPI(
        title=f"{config.app_name} API",
        description="Question selection for exam attempts",
        version=config.version,
        lifespan=lifespan,
    )
    app.include_router(selection_router, prefix=f"{config.api.prefix}/selection", tags=["selection"])

    @app.get("/")
    def root():
        """Root endpoint."""
        return {"message": f"Welcome to {config.app_name} API"}

    logger.info(f"Application initialized with {len(app.routes)} routes")
    logger.info(f"Environment: {config.environment.env}")
    return app


app = create_app()

# Entry point for running the application directly
if __name__ == "__main__":
    import uvicorn

    api = get_config().api
    logger.info(f"Starting server on {api.host}:{api.port} (reload: {api.reload})")
    uvicorn.run("examselect.main:app", host=api.host, port=api.port, reload=api.reload, log_level="info")
