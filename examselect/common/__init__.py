"""
Common Components for the selection engine

Key components:
1. Logging - Centralized logging configuration
2. Error Handling - The selection error taxonomy
3. Configuration - Environment and file driven settings
4. Metrics - Counters and timers for selection calls
"""

# Initialize logging
from examselect.common.logger import app_logger, get_logger, LoggerAdapter, log_execution_time

from examselect.common.exceptions import (
    BaseError, SelectionError, InsufficientPoolError, UnknownAlgorithmError,
    HistoryUnavailableError, RecorderFailureError, DatabaseError,
    ValidationError, ConfigurationError
)

from examselect.common.metrics import (
    MetricsBackend, LoggingMetricsBackend, InMemoryMetricsBackend,
    MetricsService, get_metrics_service
)

__all__ = [
    # Logging
    'app_logger', 'get_logger', 'LoggerAdapter', 'log_execution_time',

    # Errors
    'BaseError', 'SelectionError', 'InsufficientPoolError', 'UnknownAlgorithmError',
    'HistoryUnavailableError', 'RecorderFailureError', 'DatabaseError',
    'ValidationError', 'ConfigurationError',

    # Metrics
    'MetricsBackend', 'LoggingMetricsBackend', 'InMemoryMetricsBackend',
    'MetricsService', 'get_metrics_service',
]
