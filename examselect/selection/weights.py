"""
Weight functions for question selection.

Each strategy maps every pool item to a non-negative sampling weight from
the item itself, the requester's history entry for it (if any) and the call
context. They are pure: no state survives between calls, and randomness only
enters through the context's generator (usage-based tie-breaking).

Recency and rarity are favored over strict fairness; weights are relative
and never normalized here.
"""

from datetime import datetime, timezone
from typing import Callable, Dict, List, Mapping, Optional, Sequence

import numpy as np

from examselect.domain.questions.model import Difficulty, HistoryEntry, Item
from examselect.selection.types import Algorithm, SelectionContext

History = Mapping[str, HistoryEntry]
WeightFunction = Callable[[Sequence[Item], History, SelectionContext], np.ndarray]

DIFFICULTY_MULTIPLIERS: Dict[Difficulty, float] = {
    Difficulty.EASY: 0.9,
    Difficulty.MEDIUM: 1.2,
    Difficulty.HARD: 0.8,
    Difficulty.EXPERT: 1.0,
}

# (max days since last use, multiplier), checked in order
RECENCY_BANDS = ((7, 0.1), (30, 0.3), (90, 0.6))

TIMES_USED_PENALTY = 0.2
TIMES_USED_FLOOR = 0.1
RARITY_FLOOR = 0.01

SEEN_PENALTY = 0.1
USAGE_TIE_BAND = 5

ADAPTIVE_STRUGGLING_BELOW = 0.5
ADAPTIVE_STRUGGLING_BOOST = 1.5
ADAPTIVE_MASTERED_ABOVE = 0.8
ADAPTIVE_MASTERED_PENALTY = 0.3
ADAPTIVE_RECENT_DAYS = 30
ADAPTIVE_RECENT_PENALTY = 0.2

_SECONDS_PER_DAY = 86400.0


def days_since(now: datetime, then: datetime) -> float:
    """
    Fractional days elapsed between two timestamps.

    Naive timestamps are taken to be UTC when compared with aware ones.
    """
    if (now.tzinfo is None) != (then.tzinfo is None):
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        else:
            then = then.replace(tzinfo=timezone.utc)
    return (now - then).total_seconds() / _SECONDS_PER_DAY


def difficulty_multiplier(difficulty: Difficulty) -> float:
    return DIFFICULTY_MULTIPLIERS.get(difficulty, 1.0)


def rarity_factor(usage_count: int) -> float:
    """Inverse relationship between global usage and selection weight."""
    return max(RARITY_FLOOR, 1.0 + (100 - usage_count) / 100.0)


def weighted_random_weight(item: Item, entry: Optional[HistoryEntry], now: datetime) -> float:
    weight = 1.0

    if entry is not None:
        age = days_since(now, entry.last_used_at)
        for max_days, multiplier in RECENCY_BANDS:
            if age < max_days:
                weight *= multiplier
                break
        weight *= max(TIMES_USED_FLOOR, 1.0 - entry.times_used * TIMES_USED_PENALTY)

    weight *= rarity_factor(item.usage_count)
    weight *= difficulty_multiplier(item.difficulty)
    return weight


def balanced_weight(item: Item, entry: Optional[HistoryEntry]) -> float:
    """Simplified weight used inside difficulty tiers."""
    weight = difficulty_multiplier(item.difficulty)
    if entry is not None:
        weight *= SEEN_PENALTY
    return weight


def adaptive_weight(entry: Optional[HistoryEntry], now: datetime) -> float:
    weight = 1.0
    if entry is None:
        return weight

    # Reinforce missed items, back off from mastered ones
    if entry.performance_score < ADAPTIVE_STRUGGLING_BELOW:
        weight *= ADAPTIVE_STRUGGLING_BOOST
    elif entry.performance_score > ADAPTIVE_MASTERED_ABOVE:
        weight *= ADAPTIVE_MASTERED_PENALTY

    if days_since(now, entry.last_used_at) < ADAPTIVE_RECENT_DAYS:
        weight *= ADAPTIVE_RECENT_PENALTY
    return weight


def usage_rank_order(pool: Sequence[Item], rng: np.random.Generator) -> List[int]:
    """
    Pool indices ordered by ascending global usage.

    Items whose usage is within ``USAGE_TIE_BAND`` of the first item of their
    band are shuffled among themselves, so near-equal items do not always
    rank the same way.
    """
    order = sorted(range(len(pool)), key=lambda i: pool[i].usage_count)

    ranked: List[int] = []
    band: List[int] = []
    anchor = 0
    for index in order:
        usage = pool[index].usage_count
        if band and usage - anchor >= USAGE_TIE_BAND:
            rng.shuffle(band)
            ranked.extend(band)
            band = []
        if not band:
            anchor = usage
        band.append(index)
    if band:
        rng.shuffle(band)
        ranked.extend(band)
    return ranked


def weighted_random_weights(pool: Sequence[Item], history: History, context: SelectionContext) -> np.ndarray:
    return np.array(
        [weighted_random_weight(item, history.get(item.item_id), context.now) for item in pool],
        dtype=float,
    )


def difficulty_balanced_weights(pool: Sequence[Item], history: History, context: SelectionContext) -> np.ndarray:
    return np.array(
        [balanced_weight(item, history.get(item.item_id)) for item in pool],
        dtype=float,
    )


def usage_based_weights(pool: Sequence[Item], history: History, context: SelectionContext) -> np.ndarray:
    size = len(pool)
    weights = np.empty(size, dtype=float)
    for rank, index in enumerate(usage_rank_order(pool, context.rng)):
        weight = 1.0 + (size - rank) / size
        if pool[index].item_id in history:
            weight *= SEEN_PENALTY
        weights[index] = weight
    return weights


def adaptive_weights(pool: Sequence[Item], history: History, context: SelectionContext) -> np.ndarray:
    return np.array(
        [adaptive_weight(history.get(item.item_id), context.now) for item in pool],
        dtype=float,
    )


WEIGHT_FUNCTIONS: Dict[Algorithm, WeightFunction] = {
    Algorithm.WEIGHTED_RANDOM: weighted_random_weights,
    Algorithm.DIFFICULTY_BALANCED: difficulty_balanced_weights,
    Algorithm.USAGE_BASED: usage_based_weights,
    Algorithm.ADAPTIVE: adaptive_weights,
}


def get_weight_function(algorithm: Algorithm) -> WeightFunction:
    return WEIGHT_FUNCTIONS[algorithm]
