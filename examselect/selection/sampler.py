"""
Overlap-constrained weighted sampling without replacement.

The pool is kept as a fixed arena with a parallel weight array; removing an
item zeroes its weight instead of shrinking the arrays, so each draw is one
cumulative-sum pass over the arena.
"""

from dataclasses import dataclass, field
from typing import List, Mapping, Optional, Sequence

import numpy as np

from examselect.common.logger import app_logger
from examselect.domain.questions.model import HistoryEntry, Item
from examselect.selection.types import compute_overlap_budget

# Module logger
logger = app_logger.getChild("selection.sampler")


@dataclass
class SampleOutcome:
    """
    Result of one sampling run.

    Attributes:
        selected: Accepted items in draw order
        overlap_used: Accepted items that were present in history
        requested: Number of items the caller asked for
        rejected: Seen items discarded because the overlap budget was spent
    """
    selected: List[Item] = field(default_factory=list)
    overlap_used: int = 0
    requested: int = 0
    rejected: int = 0

    @property
    def shortfall(self) -> int:
        return max(0, self.requested - len(self.selected))

    @property
    def item_ids(self) -> List[str]:
        return [item.item_id for item in self.selected]


def sample_with_overlap_control(
    pool: Sequence[Item],
    weights: Sequence[float],
    count: int,
    history: Mapping[str, HistoryEntry],
    overlap_percentage: float,
    rng: np.random.Generator,
    overlap_budget: Optional[int] = None,
) -> SampleOutcome:
    """
    Draw up to ``count`` distinct items, favoring heavier weights.

    A drawn item that appears in ``history`` once the overlap budget is spent
    is dropped from the pool and the round is retried; it does not count as
    a draw. If the pool runs out first, the partial selection is returned
    and ``shortfall`` reports how many items are missing.

    Args:
        pool: Candidate items
        weights: Non-negative weight per pool item
        count: Number of items wanted
        history: Requester history keyed by item id
        overlap_percentage: Allowed share of seen items (0-100)
        rng: Random generator for the draws
        overlap_budget: Explicit cap on seen items, overriding the one
            derived from ``count`` and ``overlap_percentage``

    Returns:
        The sampling outcome

    Raises:
        ValueError: If weights do not match the pool or are negative
    """
    arena = np.array(weights, dtype=float)
    if arena.shape != (len(pool),):
        raise ValueError(f"Expected {len(pool)} weights, got {arena.shape}")
    if not np.all(np.isfinite(arena)) or np.any(arena < 0):
        raise ValueError("Weights must be finite and non-negative")

    budget = compute_overlap_budget(count, overlap_percentage) if overlap_budget is None else overlap_budget
    outcome = SampleOutcome(requested=count)
    live = len(pool)

    while len(outcome.selected) < count and live > 0:
        cumulative = np.cumsum(arena)
        total = cumulative[-1]
        if total <= 0:
            # Only zero-weight items remain
            break

        target = rng.random() * total
        index = int(np.searchsorted(cumulative, target, side="right"))
        if index >= len(pool):
            index = int(np.flatnonzero(arena)[-1])

        item = pool[index]
        arena[index] = 0.0
        live -= 1

        seen = item.item_id in history
        if seen and outcome.overlap_used >= budget:
            outcome.rejected += 1
            continue

        outcome.selected.append(item)
        if seen:
            outcome.overlap_used += 1

    if outcome.shortfall:
        logger.debug(
            f"Pool exhausted after {len(outcome.selected)}/{count} picks "
            f"({outcome.rejected} seen items rejected, budget {budget})"
        )
    return outcome
