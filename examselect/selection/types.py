"""
Selection request, result and context types.
"""

import enum
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Union

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, field_validator

from examselect.common.exceptions import UnknownAlgorithmError


class Algorithm(str, enum.Enum):
    """Interchangeable selection strategies."""
    WEIGHTED_RANDOM = "weighted_random"
    DIFFICULTY_BALANCED = "difficulty_balanced"
    USAGE_BASED = "usage_based"
    ADAPTIVE = "adaptive"

    @classmethod
    def parse(cls, value: Union['Algorithm', str]) -> 'Algorithm':
        """
        Resolve an algorithm from its value, enum name or CamelCase name.

        ``"weighted_random"``, ``"WEIGHTED_RANDOM"`` and ``"WeightedRandom"``
        all resolve to ``Algorithm.WEIGHTED_RANDOM``.

        Raises:
            UnknownAlgorithmError: If the name matches no algorithm
        """
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            raise UnknownAlgorithmError(value)

        key = value.strip().replace("_", "").replace("-", "").replace(" ", "").lower()
        for algorithm in cls:
            if algorithm.value.replace("_", "") == key:
                return algorithm
        raise UnknownAlgorithmError(value)


def compute_overlap_budget(count: int, overlap_percentage: float) -> int:
    """Maximum number of previously seen items allowed among ``count`` picks."""
    return max(0, math.floor(count * overlap_percentage / 100))


class SelectionRequest(BaseModel):
    """A request for the item list of one exam attempt."""
    model_config = ConfigDict(frozen=True)

    category_id: str = Field(min_length=1)
    desired_count: int = Field(gt=0)
    overlap_percentage: float = Field(default=10.0, ge=0, le=100)
    algorithm: str = Algorithm.WEIGHTED_RANDOM.value
    requester_id: str = Field(min_length=1)

    @field_validator('algorithm', mode='before')
    @classmethod
    def _algorithm_as_text(cls, v: Any) -> Any:
        # Resolution happens in the engine so unknown names surface as
        # UnknownAlgorithmError rather than a validation failure.
        if isinstance(v, Algorithm):
            return v.value
        return v

    @property
    def overlap_budget(self) -> int:
        return compute_overlap_budget(self.desired_count, self.overlap_percentage)


@dataclass
class SelectionResult:
    """
    Ordered, duplicate-free item ids chosen for one attempt.

    Attributes:
        item_ids: Chosen ids in presentation order
        overlap_used: How many of them appear in the requester's history
        algorithm: Strategy that produced the list
        category_id: Category the items were drawn from
        requester_id: User the list was produced for
    """
    item_ids: List[str]
    overlap_used: int
    algorithm: Algorithm
    category_id: str
    requester_id: str

    def __len__(self) -> int:
        return len(self.item_ids)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'item_ids': list(self.item_ids),
            'overlap_used': self.overlap_used,
            'algorithm': self.algorithm.value,
            'category_id': self.category_id,
            'requester_id': self.requester_id,
        }


@dataclass
class AuditEvent:
    """Audit record written after a successful selection."""
    algorithm: Algorithm
    requester_id: str
    category_id: str
    item_ids: List[str]
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'questionCount': len(self.item_ids),
            'questionIds': list(self.item_ids),
            'algorithm': self.algorithm.value,
            'categoryId': self.category_id,
            'timestamp': self.timestamp.isoformat(),
        }


@dataclass
class SelectionContext:
    """Per-call inputs shared by all strategies: the clock reading and the RNG."""
    now: datetime
    rng: np.random.Generator
