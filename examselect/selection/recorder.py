"""
Usage recording for selected items.

After a selection succeeds, each chosen item's global usage counter is
bumped by one and an audit record is appended. Recording is best-effort: it
runs on a background thread pool and its failures are logged and counted,
never raised to the caller of the selection.
"""

import abc
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor, wait
from typing import List, Optional, Sequence, Set

from examselect.common.exceptions import RecorderFailureError
from examselect.common.logger import app_logger
from examselect.common.metrics import MetricsService, get_metrics_service
from examselect.selection.types import AuditEvent

# Module logger
logger = app_logger.getChild("selection.recorder")


class UsageRecorder(abc.ABC):
    """Sink for usage bumps and selection audit records."""

    @abc.abstractmethod
    def bump_usage(self, item_ids: Sequence[str]) -> None:
        """
        Atomically add one to the global usage count of each item.

        Raises:
            RecorderFailureError: If the counters could not be updated
        """
        pass

    @abc.abstractmethod
    def record_audit(self, event: AuditEvent) -> None:
        """
        Append an audit record for a selection.

        Raises:
            RecorderFailureError: If the record could not be written
        """
        pass


class InMemoryUsageRecorder(UsageRecorder):
    """
    Recorder that keeps audit events in a list.

    When given a catalog exposing ``increment_usage`` (such as
    ``MemoryCatalogSource``) usage bumps are applied to it.
    """

    def __init__(self, catalog=None):
        self.catalog = catalog
        self.events: List[AuditEvent] = []
        self._lock = threading.Lock()

    def bump_usage(self, item_ids: Sequence[str]) -> None:
        if self.catalog is not None:
            self.catalog.increment_usage(item_ids)

    def record_audit(self, event: AuditEvent) -> None:
        with self._lock:
            self.events.append(event)


class RecorderDispatcher:
    """
    Runs a usage recorder off the caller's thread.

    Every submitted event is recorded exactly once; ``drain`` waits for
    outstanding work, which is mostly useful in tests and at shutdown.
    """

    def __init__(
        self,
        recorder: UsageRecorder,
        max_workers: int = 2,
        metrics: Optional[MetricsService] = None,
        executor: Optional[Executor] = None,
    ):
        self.recorder = recorder
        self.metrics = metrics or get_metrics_service()
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="usage-recorder"
        )
        self._pending: Set[Future] = set()
        self._lock = threading.Lock()

    def submit(self, event: AuditEvent) -> Optional[Future]:
        """
        Schedule recording of an event.

        Returns:
            The scheduled future, or None if the executor refused the work
        """
        try:
            future = self._executor.submit(self._record, event)
        except RuntimeError as e:
            self._report(RecorderFailureError("executor unavailable", e), event)
            return None

        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._forget)
        return future

    def drain(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for all submitted events to be recorded.

        Returns:
            True if nothing is left pending
        """
        with self._lock:
            pending = list(self._pending)
        _, not_done = wait(pending, timeout=timeout)
        return not not_done

    def shutdown(self, wait: bool = True) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=wait)

    def _record(self, event: AuditEvent) -> None:
        # The bump and the audit are independent; one failing does not skip the other
        try:
            self.recorder.bump_usage(event.item_ids)
        except Exception as e:
            self._report(_as_recorder_failure("usage bump failed", e), event)

        try:
            self.recorder.record_audit(event)
        except Exception as e:
            self._report(_as_recorder_failure("audit write failed", e), event)

    def _report(self, error: RecorderFailureError, event: AuditEvent) -> None:
        logger.error(
            f"{error.message} for requester {event.requester_id} "
            f"({len(event.item_ids)} items, algorithm {event.algorithm.value})"
        )
        self.metrics.counter("selection.recorder_failures")

    def _forget(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)


def _as_recorder_failure(message: str, error: Exception) -> RecorderFailureError:
    if isinstance(error, RecorderFailureError):
        return error
    return RecorderFailureError(f"{message}: {error}", error)
