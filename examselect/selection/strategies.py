"""
Selection strategies.

A strategy turns a candidate pool, the requester's history and the wanted
count into a sampling outcome. Three of them are "weigh, then sample"; the
difficulty-balanced strategy samples per difficulty tier and tops up from
the merged pool.
"""

from typing import Callable, Dict, Mapping, Sequence

from examselect.common.logger import app_logger
from examselect.domain.questions.model import Difficulty, HistoryEntry, Item
from examselect.selection.sampler import SampleOutcome, sample_with_overlap_control
from examselect.selection.types import Algorithm, SelectionContext, compute_overlap_budget
from examselect.selection.weights import WeightFunction, get_weight_function, difficulty_balanced_weights

logger = app_logger.getChild("selection.strategies")

History = Mapping[str, HistoryEntry]
Strategy = Callable[[Sequence[Item], History, int, float, SelectionContext], SampleOutcome]

# Share of the requested count per tier, in percent
TIER_SHARES: Dict[Difficulty, int] = {
    Difficulty.EASY: 20,
    Difficulty.MEDIUM: 50,
    Difficulty.HARD: 20,
    Difficulty.EXPERT: 10,
}


def tier_targets(count: int) -> Dict[Difficulty, int]:
    """Per-tier sub-counts, ``floor(count * share)``."""
    return {tier: count * share // 100 for tier, share in TIER_SHARES.items()}


def weighted_strategy(weight_function: WeightFunction) -> Strategy:
    """Build a strategy that weighs the whole pool once and samples from it."""

    def run(
        pool: Sequence[Item],
        history: History,
        count: int,
        overlap_percentage: float,
        context: SelectionContext,
    ) -> SampleOutcome:
        weights = weight_function(pool, history, context)
        return sample_with_overlap_control(
            pool, weights, count, history, overlap_percentage, context.rng
        )

    run.__name__ = f"{weight_function.__name__}_strategy"
    return run


def difficulty_balanced_selection(
    pool: Sequence[Item],
    history: History,
    count: int,
    overlap_percentage: float,
    context: SelectionContext,
) -> SampleOutcome:
    """
    Sample each difficulty tier towards its target, then top up.

    Tiers are sampled independently. The top-up draws from every item not yet
    chosen, so a short tier is compensated by the others. One overlap budget,
    derived from ``count``, is shared by all phases; a tier never gets more
    than its own ``floor(target * overlap / 100)`` of it.

    The outcome may be short when the whole pool is exhausted; callers decide
    whether that is an error.
    """
    budget = compute_overlap_budget(count, overlap_percentage)
    result = SampleOutcome(requested=count)

    for tier, target in tier_targets(count).items():
        tier_pool = [item for item in pool if item.difficulty == tier]
        tier_count = min(target, len(tier_pool))
        if tier_count == 0:
            continue

        tier_budget = min(
            compute_overlap_budget(tier_count, overlap_percentage),
            budget - result.overlap_used,
        )
        outcome = sample_with_overlap_control(
            tier_pool,
            difficulty_balanced_weights(tier_pool, history, context),
            tier_count,
            history,
            overlap_percentage,
            context.rng,
            overlap_budget=tier_budget,
        )
        _merge(result, outcome)

        if outcome.shortfall:
            logger.debug(f"Tier {tier.value} short by {outcome.shortfall}")

    remaining = count - len(result.selected)
    if remaining > 0:
        chosen = {item.item_id for item in result.selected}
        rest = [item for item in pool if item.item_id not in chosen]
        outcome = sample_with_overlap_control(
            rest,
            difficulty_balanced_weights(rest, history, context),
            min(remaining, len(rest)),
            history,
            overlap_percentage,
            context.rng,
            overlap_budget=budget - result.overlap_used,
        )
        _merge(result, outcome)

    if len(result.selected) > count:
        result.selected = result.selected[:count]
        result.overlap_used = sum(1 for item in result.selected if item.item_id in history)
    return result


def _merge(into: SampleOutcome, outcome: SampleOutcome) -> None:
    into.selected.extend(outcome.selected)
    into.overlap_used += outcome.overlap_used
    into.rejected += outcome.rejected


STRATEGIES: Dict[Algorithm, Strategy] = {
    Algorithm.WEIGHTED_RANDOM: weighted_strategy(get_weight_function(Algorithm.WEIGHTED_RANDOM)),
    Algorithm.DIFFICULTY_BALANCED: difficulty_balanced_selection,
    Algorithm.USAGE_BASED: weighted_strategy(get_weight_function(Algorithm.USAGE_BASED)),
    Algorithm.ADAPTIVE: weighted_strategy(get_weight_function(Algorithm.ADAPTIVE)),
}


def get_strategy(algorithm: Algorithm) -> Strategy:
    return STRATEGIES[algorithm]
