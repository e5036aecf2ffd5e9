"""
Application Logger

Every module logs through a child of the ``examselect`` logger. Handlers,
level and output format are set once on that root from ``LOG_LEVEL``,
``LOG_USE_JSON`` and ``LOG_FILE``.
"""

import os
import sys
import json
import time
import logging
import datetime
import functools
from typing import Dict, Any, Optional, Union, Callable, TypeVar

ROOT_LOGGER_NAME = "examselect"

TEXT_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-36s | %(message)s%(context)s"
TEXT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

F = TypeVar('F', bound=Callable[..., Any])

__all__ = [
    'configure_logger',
    'get_logger',
    'LoggerAdapter',
    'JsonFormatter',
    'TextFormatter',
    'app_logger',
    'log_execution_time'
]


def _record_context(record: logging.LogRecord) -> Dict[str, Any]:
    data = getattr(record, 'data', None)
    return data if isinstance(data, dict) else {}


class TextFormatter(logging.Formatter):
    """Human readable lines, with adapter context appended as ``key=value``."""

    def __init__(self, fmt: str = TEXT_LOG_FORMAT, datefmt: str = TEXT_DATE_FORMAT):
        super().__init__(fmt, datefmt)

    def format(self, record: logging.LogRecord) -> str:
        context = _record_context(record)
        record.context = (
            " [" + " ".join(f"{k}={v}" for k, v in sorted(context.items())) + "]" if context else ""
        )
        return super().format(record)


class JsonFormatter(logging.Formatter):
    """
    One JSON object per record.

    Adapter context (requester, category, algorithm, ...) becomes top-level
    keys so selection logs can be filtered per requester or category.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.datetime.fromtimestamp(
                record.created, tz=datetime.timezone.utc
            ).isoformat(),
            "logger": record.name,
            "level": record.levelname,
            "message": record.getMessage(),
            "location": f"{record.module}:{record.lineno}",
        }
        payload.update(_record_context(record))

        if record.exc_info:
            payload["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info)
            }

        return json.dumps(payload, default=str)


def configure_logger(
    name: str = ROOT_LOGGER_NAME,
    level: Union[str, int] = logging.INFO,
    use_json: bool = False,
    log_file: Optional[str] = None,
    stream=None
) -> logging.Logger:
    """
    Replace the handlers of a logger with a console handler and, optionally,
    a file handler sharing one formatter.

    Args:
        name: Logger name
        level: Level name or number
        use_json: Emit JSON lines instead of text
        log_file: Also append to this file; its directory is created
        stream: Console stream, stdout by default

    Returns:
        The configured logger
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())

    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = False
    logger.handlers = []

    formatter = JsonFormatter() if use_json else TextFormatter()

    console_handler = logging.StreamHandler(stream or sys.stdout)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        try:
            log_dir = os.path.dirname(log_file)
            if log_dir:
                os.makedirs(log_dir, exist_ok=True)
            file_handler = logging.FileHandler(log_file)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)
        except OSError as e:
            logger.warning(f"Logging to console only, cannot open {log_file}: {e}")

    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Logger for a module, placed under the ``examselect`` root.

    ``get_logger("examselect.selection.router")`` and
    ``get_logger("selection.router")`` return the same logger.
    """
    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


class LoggerAdapter(logging.LoggerAdapter):
    """
    Attaches a fixed context to every record it emits.

    The selection engine creates one per call, carrying the requester,
    category and algorithm of the request.
    """

    def __init__(
        self,
        logger: logging.Logger,
        context: Dict[str, Any] = None
    ):
        super().__init__(logger, context or {})

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        extra = dict(kwargs.get('extra') or {})
        data = dict(self.extra)
        data.update(extra.get('data') or {})
        extra['data'] = data
        kwargs['extra'] = extra
        return msg, kwargs

    def with_context(self, **context) -> 'LoggerAdapter':
        """Adapter for the same logger with extra context merged in."""
        return LoggerAdapter(self.logger, {**self.extra, **context})


def get_app_logger() -> logging.Logger:
    """The ``examselect`` root logger, configured from the environment once."""
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    if logger.handlers:
        return logger

    return configure_logger(
        level=os.environ.get("LOG_LEVEL", "INFO"),
        use_json=os.environ.get("LOG_USE_JSON", "false").lower() == "true",
        log_file=os.environ.get("LOG_FILE"),
    )


app_logger = get_app_logger()


def log_execution_time(logger: Optional[logging.Logger] = None) -> Callable[[F], F]:
    """
    Log how long each call of the decorated function takes.

    Successful calls are logged at debug level; failed calls at warning
    level with the exception, which is re-raised unchanged.
    """
    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            target = logger or app_logger
            start = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                elapsed_ms = (time.perf_counter() - start) * 1000.0
                target.warning(f"{func.__qualname__} failed after {elapsed_ms:.1f} ms: {e}")
                raise
            elapsed_ms = (time.perf_counter() - start) * 1000.0
            target.debug(f"{func.__qualname__} took {elapsed_ms:.1f} ms")
            return result

        return wrapper
    return decorator
