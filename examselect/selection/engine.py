"""
Question selection engine.

The engine is the only entry point callers use: it loads the candidate pool
and the requester's history through injected sources, dispatches to the
requested strategy and hands the outcome to the usage recorder in the
background.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

import numpy as np
from pydantic import ValidationError as PydanticValidationError

from examselect.common.exceptions import (
    InsufficientPoolError, SelectionError, UnknownAlgorithmError, ValidationError
)
from examselect.common.logger import LoggerAdapter, app_logger, log_execution_time
from examselect.common.metrics import MetricsService, get_metrics_service
from examselect.domain.questions.model import Difficulty, HistoryEntry, Item, QuestionType
from examselect.domain.questions.repository import CatalogSource, HistorySource, DEFAULT_HISTORY_LIMIT
from examselect.selection.history import index_history
from examselect.selection.recorder import RecorderDispatcher, UsageRecorder
from examselect.selection.sampler import sample_with_overlap_control
from examselect.selection.strategies import get_strategy
from examselect.selection.types import (
    Algorithm, AuditEvent, SelectionContext, SelectionRequest, SelectionResult,
    compute_overlap_budget
)
from examselect.selection.weights import get_weight_function

# Module logger
logger = app_logger.getChild("selection.engine")

Distribution = Mapping[Union[QuestionType, str], int]


@dataclass
class TypeAvailability:
    """Requested versus available items for one question type."""
    requested: int
    available: int

    @property
    def sufficient(self) -> bool:
        return self.available >= self.requested

    def to_dict(self) -> Dict[str, Any]:
        return {
            'requested': self.requested,
            'available': self.available,
            'sufficient': self.sufficient,
        }


@dataclass
class DistributionReport:
    """
    Whether a category can serve a per-type distribution.

    Attributes:
        total_available: Selectable items in the category
        total_requested: Sum of the distribution
        types: Availability per question type, every type included
        missing: Types that cannot meet their count, with the shortfall
        warnings: Non-fatal findings, e.g. a type with no spare items
    """
    total_available: int
    total_requested: int
    types: Dict[QuestionType, TypeAvailability] = field(default_factory=dict)
    missing: List[Dict[str, Any]] = field(default_factory=list)
    warnings: List[Dict[str, str]] = field(default_factory=list)

    @property
    def total_sufficient(self) -> bool:
        return self.total_available >= self.total_requested

    @property
    def is_valid(self) -> bool:
        return not self.missing and self.total_sufficient

    def to_dict(self) -> Dict[str, Any]:
        return {
            'is_valid': self.is_valid,
            'total_available': self.total_available,
            'total_requested': self.total_requested,
            'total_sufficient': self.total_sufficient,
            'types': {t.value: a.to_dict() for t, a in self.types.items()},
            'missing': list(self.missing),
            'warnings': list(self.warnings),
        }


@dataclass
class TierStatistics:
    """Aggregate figures for one difficulty tier of a category."""
    count: int
    mean_usage: float
    mean_correct_rate: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'count': self.count,
            'mean_usage': self.mean_usage,
            'mean_correct_rate': self.mean_correct_rate,
        }


def parse_distribution(distribution: Distribution) -> Dict[QuestionType, int]:
    """
    Normalize a distribution to ``QuestionType`` keys, dropping zero counts.

    Raises:
        ValidationError: On unknown types or negative counts
    """
    parsed: Dict[QuestionType, int] = {}
    errors: Dict[str, str] = {}
    for key, count in distribution.items():
        try:
            question_type = key if isinstance(key, QuestionType) else QuestionType(str(key).upper())
        except ValueError:
            errors[str(key)] = "unknown question type"
            continue
        if count < 0:
            errors[question_type.value] = "count must not be negative"
            continue
        if count:
            parsed[question_type] = parsed.get(question_type, 0) + count

    if errors:
        raise ValidationError("invalid distribution", errors)
    return parsed


class SelectionEngine:
    """
    Picks question lists for exam attempts.

    Each ``select`` call is synchronous and works on a snapshot of the pool
    and history it loaded itself; engines hold no per-call state and can be
    shared between threads. Only usage recording runs on worker threads.
    """

    def __init__(
        self,
        catalog: CatalogSource,
        history_source: HistorySource,
        recorder: Optional[UsageRecorder] = None,
        *,
        history_limit: Optional[int] = None,
        metrics: Optional[MetricsService] = None,
        rng: Optional[np.random.Generator] = None,
        clock: Optional[Callable[[], datetime]] = None,
        dispatcher: Optional[RecorderDispatcher] = None,
        recorder_workers: Optional[int] = None,
        default_overlap_percentage: float = 10.0,
        default_algorithm: Union[Algorithm, str] = Algorithm.WEIGHTED_RANDOM,
    ):
        """
        Initialize the engine.

        Args:
            catalog: Source of candidate items
            history_source: Source of per-requester history
            recorder: Sink for usage bumps and audits; nothing is recorded
                when omitted
            history_limit: Completed attempts to aggregate history from
            metrics: Metrics service, the shared one by default
            rng: Generator for every draw; a fresh one per call by default
            clock: Returns the current time for recency calculations
            dispatcher: Pre-built dispatcher, overrides ``recorder``
            recorder_workers: Worker threads for a dispatcher built here
            default_overlap_percentage: Overlap used by ``select_items`` when
                none is given
            default_algorithm: Algorithm used by ``select_items`` when none
                is given
        """
        self.catalog = catalog
        self.history_source = history_source
        self.history_limit = history_limit or DEFAULT_HISTORY_LIMIT
        self.metrics = metrics or get_metrics_service()
        self._rng = rng
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.default_overlap_percentage = default_overlap_percentage
        self.default_algorithm = default_algorithm

        if dispatcher is None and recorder is not None:
            dispatcher = RecorderDispatcher(
                recorder, max_workers=recorder_workers or 2, metrics=self.metrics
            )
        self.dispatcher = dispatcher

    @log_execution_time(logger)
    def select(self, request: SelectionRequest) -> SelectionResult:
        """
        Select ``desired_count`` distinct items for one attempt.

        Args:
            request: The selection request

        Returns:
            Ordered item ids with the overlap actually used

        Raises:
            InsufficientPoolError: If the pool, or the pool left after overlap
                rejection, cannot supply the requested count
            UnknownAlgorithmError: If the request names no known algorithm
        """
        log = self._request_logger(request)
        self.metrics.counter("selection.requests")

        try:
            with self.metrics.timer_context("selection.duration_ms"):
                pool = self._load_pool(request.category_id)
                if len(pool) < request.desired_count:
                    raise InsufficientPoolError(request.category_id, request.desired_count, len(pool))

                history = self._load_history(request, log)
                algorithm = Algorithm.parse(request.algorithm)
                strategy = get_strategy(algorithm)

                outcome = strategy(
                    pool, history, request.desired_count, request.overlap_percentage, self._context()
                )
                if outcome.shortfall:
                    raise InsufficientPoolError(
                        request.category_id,
                        request.desired_count,
                        len(outcome.selected),
                        reason="overlap budget exhausted",
                    )
        except SelectionError as e:
            self._count_failure(e)
            raise

        result = SelectionResult(
            item_ids=outcome.item_ids,
            overlap_used=outcome.overlap_used,
            algorithm=algorithm,
            category_id=request.category_id,
            requester_id=request.requester_id,
        )
        self.metrics.histogram("selection.overlap_used", result.overlap_used)
        log.info(
            f"Selected {len(result)} items with {algorithm.value} "
            f"(overlap {result.overlap_used}/{request.overlap_budget})"
        )
        self._record(result)
        return result

    def select_items(
        self,
        category_id: str,
        desired_count: int,
        overlap_percentage: Optional[float] = None,
        algorithm: Optional[Union[Algorithm, str]] = None,
        requester_id: Optional[str] = None,
    ) -> List[str]:
        """
        Flat form of ``select`` returning only the item ids.

        Omitted overlap and algorithm fall back to the engine defaults.

        Raises:
            ValidationError: If the parameters do not form a valid request
        """
        request = build_request(
            category_id=category_id,
            desired_count=desired_count,
            overlap_percentage=self.default_overlap_percentage if overlap_percentage is None else overlap_percentage,
            algorithm=algorithm or self.default_algorithm,
            requester_id=requester_id,
        )
        return self.select(request).item_ids

    def select_by_distribution(
        self,
        request: SelectionRequest,
        distribution: Distribution,
    ) -> SelectionResult:
        """
        Select exact per-type counts, e.g. 5 essays and 15 multiple choice.

        Every type is sampled from its own sub-pool with the request's
        algorithm weights. All types share one overlap budget derived from
        the distribution total. Items are returned grouped by type.

        Raises:
            ValidationError: If the distribution is malformed or its total
                differs from ``desired_count``
            InsufficientPoolError: If any type cannot meet its count
            UnknownAlgorithmError: If the request names no known algorithm
        """
        counts = parse_distribution(distribution)
        total = sum(counts.values())
        if total != request.desired_count:
            raise ValidationError(
                f"distribution total {total} differs from desired count {request.desired_count}"
            )

        log = self._request_logger(request)
        self.metrics.counter("selection.requests")

        try:
            with self.metrics.timer_context("selection.duration_ms"):
                pool = self._load_pool(request.category_id)
                if len(pool) < total:
                    raise InsufficientPoolError(request.category_id, total, len(pool))

                history = self._load_history(request, log)
                algorithm = Algorithm.parse(request.algorithm)
                weight_function = get_weight_function(algorithm)
                context = self._context()

                budget = compute_overlap_budget(total, request.overlap_percentage)
                item_ids: List[str] = []
                overlap_used = 0
                for question_type in QuestionType:
                    wanted = counts.get(question_type, 0)
                    if not wanted:
                        continue

                    type_pool = [item for item in pool if item.question_type == question_type]
                    outcome = sample_with_overlap_control(
                        type_pool,
                        weight_function(type_pool, history, context),
                        wanted,
                        history,
                        request.overlap_percentage,
                        context.rng,
                        overlap_budget=budget - overlap_used,
                    )
                    if outcome.shortfall:
                        raise InsufficientPoolError(
                            request.category_id,
                            wanted,
                            len(outcome.selected),
                            reason=f"not enough {question_type.value} items",
                        )
                    item_ids.extend(outcome.item_ids)
                    overlap_used += outcome.overlap_used
        except SelectionError as e:
            self._count_failure(e)
            log.warning(f"Distribution selection failed: {e.message}")
            raise

        result = SelectionResult(
            item_ids=item_ids,
            overlap_used=overlap_used,
            algorithm=algorithm,
            category_id=request.category_id,
            requester_id=request.requester_id,
        )
        self.metrics.histogram("selection.overlap_used", overlap_used)
        log.info(f"Selected {len(result)} items across {len(counts)} question types")
        self._record(result)
        return result

    def validate_distribution(self, category_id: str, distribution: Distribution) -> DistributionReport:
        """Check whether a category can serve a per-type distribution."""
        counts = parse_distribution(distribution)
        pool = self._load_pool(category_id)

        available: Dict[QuestionType, int] = {}
        for item in pool:
            available[item.question_type] = available.get(item.question_type, 0) + 1

        report = DistributionReport(total_available=len(pool), total_requested=sum(counts.values()))
        for question_type in QuestionType:
            availability = TypeAvailability(
                requested=counts.get(question_type, 0),
                available=available.get(question_type, 0),
            )
            report.types[question_type] = availability
            if not availability.requested:
                continue

            if not availability.sufficient:
                report.missing.append({
                    'type': question_type.value,
                    'requested': availability.requested,
                    'available': availability.available,
                    'missing': availability.requested - availability.available,
                })
            elif availability.available == availability.requested:
                report.warnings.append({
                    'type': question_type.value,
                    'message': (
                        f"Exactly {availability.requested} items available for "
                        f"{question_type.value}, no room for randomization"
                    ),
                })

        if not report.total_sufficient:
            report.warnings.append({
                'type': 'TOTAL',
                'message': (
                    f"Total requested items ({report.total_requested}) exceeds "
                    f"available items ({report.total_available})"
                ),
            })

        logger.info(f"Distribution for category {category_id} valid: {report.is_valid}")
        return report

    def pool_statistics(self, category_id: str) -> Dict[str, TierStatistics]:
        """Per difficulty tier: item count, mean usage and mean correct rate."""
        pool = self._load_pool(category_id)

        stats: Dict[str, TierStatistics] = {}
        for tier in Difficulty:
            items = [item for item in pool if item.difficulty == tier]
            if not items:
                continue
            stats[tier.value] = TierStatistics(
                count=len(items),
                mean_usage=float(np.mean([item.usage_count for item in items])),
                mean_correct_rate=float(np.mean([item.correct_answer_rate for item in items])),
            )
        return stats

    def close(self, wait: bool = True) -> None:
        """Stop the recorder workers, finishing queued work when ``wait``."""
        if self.dispatcher is not None:
            self.dispatcher.shutdown(wait=wait)

    def _load_pool(self, category_id: str) -> List[Item]:
        # Sources are trusted to filter, but the pool must never contain
        # inactive, private or foreign items
        return [
            item for item in self.catalog.list_active_items(category_id)
            if item.is_selectable_for(category_id)
        ]

    def _load_history(self, request: SelectionRequest, log: LoggerAdapter) -> Mapping[str, HistoryEntry]:
        try:
            entries = self.history_source.recent_history(
                request.requester_id, request.category_id, self.history_limit
            )
        except Exception as e:
            log.warning(f"History unavailable, selecting as cold start: {e}")
            self.metrics.counter("selection.history_unavailable")
            return {}
        return index_history(entries)

    def _context(self) -> SelectionContext:
        return SelectionContext(now=self._clock(), rng=self._rng or np.random.default_rng())

    def _record(self, result: SelectionResult) -> None:
        if self.dispatcher is None or not result.item_ids:
            return

        event = AuditEvent(
            algorithm=result.algorithm,
            requester_id=result.requester_id,
            category_id=result.category_id,
            item_ids=list(result.item_ids),
        )
        self.dispatcher.submit(event)

    def _count_failure(self, error: SelectionError) -> None:
        if isinstance(error, InsufficientPoolError):
            reason = "insufficient_pool"
        elif isinstance(error, UnknownAlgorithmError):
            reason = "unknown_algorithm"
        else:
            reason = type(error).__name__
        self.metrics.counter("selection.failures", labels={"reason": reason})

    @staticmethod
    def _request_logger(request: SelectionRequest) -> LoggerAdapter:
        return LoggerAdapter(logger, {
            'requester_id': request.requester_id,
            'category_id': request.category_id,
            'algorithm': request.algorithm,
        })


def build_request(**fields: Any) -> SelectionRequest:
    """
    Build a ``SelectionRequest``, reporting bad fields as ``ValidationError``.
    """
    try:
        return SelectionRequest(**fields)
    except PydanticValidationError as e:
        errors = {
            ".".join(str(part) for part in error['loc']): error['msg']
            for error in e.errors()
        }
        raise ValidationError(f"invalid selection request: {errors}", errors) from e
