"""
Question selection.

Strategies, the overlap-constrained sampler, history aggregation, usage
recording and the engine tying them together.
"""

from examselect.selection.types import (
    Algorithm, SelectionRequest, SelectionResult, AuditEvent, compute_overlap_budget
)
from examselect.selection.engine import (
    SelectionEngine, DistributionReport, TypeAvailability, TierStatistics, build_request
)
from examselect.selection.recorder import UsageRecorder, InMemoryUsageRecorder, RecorderDispatcher

__all__ = [
    'Algorithm',
    'SelectionRequest',
    'SelectionResult',
    'AuditEvent',
    'compute_overlap_budget',
    'SelectionEngine',
    'DistributionReport',
    'TypeAvailability',
    'TierStatistics',
    'build_request',
    'UsageRecorder',
    'InMemoryUsageRecorder',
    'RecorderDispatcher',
]
