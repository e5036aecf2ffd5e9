"""
Metrics

Counters, histograms and timers for selection calls. The engine records
through ``MetricsService``; where the numbers end up depends on the backend:
debug log lines by default, an in-memory store in tests.
"""

import time
import logging
import threading
import contextlib
from typing import Dict, Iterator, List, Optional, Tuple
from abc import ABC, abstractmethod
from collections import defaultdict

from examselect.common.logger import app_logger

Labels = Optional[Dict[str, str]]
MetricKey = Tuple[str, Tuple[Tuple[str, str], ...]]


def metric_key(name: str, labels: Labels = None) -> MetricKey:
    """Identity of a series: its name plus labels in key order."""
    return name, tuple(sorted((labels or {}).items()))


class MetricsBackend(ABC):
    """Destination for recorded metrics."""

    @abstractmethod
    def increment_counter(self, name: str, value: float = 1.0, labels: Labels = None) -> None:
        pass

    @abstractmethod
    def observe_histogram(self, name: str, value: float, labels: Labels = None) -> None:
        pass

    @abstractmethod
    def observe_timer(self, name: str, value_ms: float, labels: Labels = None) -> None:
        pass


class LoggingMetricsBackend(MetricsBackend):
    """Writes every observation as a debug line on ``examselect.metrics``."""

    def __init__(self, logger: logging.Logger = None):
        self.logger = logger or app_logger.getChild("metrics")

    def increment_counter(self, name: str, value: float = 1.0, labels: Labels = None) -> None:
        self.logger.debug(f"counter {self._series(name, labels)} +{value:g}")

    def observe_histogram(self, name: str, value: float, labels: Labels = None) -> None:
        self.logger.debug(f"histogram {self._series(name, labels)} {value:g}")

    def observe_timer(self, name: str, value_ms: float, labels: Labels = None) -> None:
        self.logger.debug(f"timer {self._series(name, labels)} {value_ms:.2f}ms")

    @staticmethod
    def _series(name: str, labels: Labels) -> str:
        _, pairs = metric_key(name, labels)
        if not pairs:
            return name
        return name + "{" + ",".join(f"{k}={v}" for k, v in pairs) + "}"


class InMemoryMetricsBackend(MetricsBackend):
    """
    Keeps every observation in memory.

    Recorder worker threads report failures concurrently with request
    threads, so all access goes through one lock.
    """

    def __init__(self):
        self._counters: Dict[MetricKey, float] = defaultdict(float)
        self._histograms: Dict[MetricKey, List[float]] = defaultdict(list)
        self._timers: Dict[MetricKey, List[float]] = defaultdict(list)
        self._lock = threading.Lock()

    def increment_counter(self, name: str, value: float = 1.0, labels: Labels = None) -> None:
        with self._lock:
            self._counters[metric_key(name, labels)] += value

    def observe_histogram(self, name: str, value: float, labels: Labels = None) -> None:
        with self._lock:
            self._histograms[metric_key(name, labels)].append(value)

    def observe_timer(self, name: str, value_ms: float, labels: Labels = None) -> None:
        with self._lock:
            self._timers[metric_key(name, labels)].append(value_ms)

    def get_counter(self, name: str, labels: Labels = None) -> float:
        with self._lock:
            return self._counters.get(metric_key(name, labels), 0.0)

    def get_histogram_values(self, name: str, labels: Labels = None) -> List[float]:
        with self._lock:
            return list(self._histograms.get(metric_key(name, labels), ()))

    def get_timer_values(self, name: str, labels: Labels = None) -> List[float]:
        with self._lock:
            return list(self._timers.get(metric_key(name, labels), ()))

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._histograms.clear()
            self._timers.clear()


class MetricsService:
    """
    Entry point for recording metrics.

    A process-wide instance is shared by default; components that need
    isolation (tests, mostly) are handed their own.
    """

    _instance: Optional['MetricsService'] = None

    @classmethod
    def get_instance(cls) -> 'MetricsService':
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def __init__(self, backend: MetricsBackend = None):
        self.backend = backend or LoggingMetricsBackend()

    def set_backend(self, backend: MetricsBackend) -> None:
        self.backend = backend

    def counter(self, name: str, value: float = 1.0, labels: Labels = None) -> None:
        self.backend.increment_counter(name, value, labels)

    def histogram(self, name: str, value: float, labels: Labels = None) -> None:
        self.backend.observe_histogram(name, value, labels)

    def timer(self, name: str, value_ms: float, labels: Labels = None) -> None:
        self.backend.observe_timer(name, value_ms, labels)

    @contextlib.contextmanager
    def timer_context(self, name: str, labels: Labels = None) -> Iterator[None]:
        """Time the enclosed block in milliseconds, also when it raises."""
        start = time.perf_counter()
        try:
            yield
        finally:
            self.timer(name, (time.perf_counter() - start) * 1000.0, labels)


def get_metrics_service() -> MetricsService:
    """The process-wide metrics service."""
    return MetricsService.get_instance()
