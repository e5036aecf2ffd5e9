"""
Tests for request types and algorithm resolution.
"""

import pytest
from pydantic import ValidationError as PydanticValidationError

from examselect.common.exceptions import UnknownAlgorithmError, ValidationError
from examselect.selection.engine import build_request
from examselect.selection.types import Algorithm, SelectionRequest, compute_overlap_budget


@pytest.mark.parametrize("count, pct, expected", [
    (10, 0, 0), (10, 10, 1), (10, 15, 1), (10, 100, 10), (3, 10, 0), (25, 10, 2),
])
def test_overlap_budget(count, pct, expected):
    assert compute_overlap_budget(count, pct) == expected


@pytest.mark.parametrize("name", [
    "weighted_random", "WEIGHTED_RANDOM", "WeightedRandom", "weighted-random", Algorithm.WEIGHTED_RANDOM,
])
def test_algorithm_parse(name):
    assert Algorithm.parse(name) is Algorithm.WEIGHTED_RANDOM


def test_algorithm_parse_unknown():
    with pytest.raises(UnknownAlgorithmError):
        Algorithm.parse("fastest")


def test_request_defaults():
    request = SelectionRequest(category_id="c", desired_count=20, requester_id="u")
    assert request.overlap_percentage == 10.0
    assert request.algorithm == "weighted_random"
    assert request.overlap_budget == 2


def test_request_accepts_enum_algorithm():
    request = SelectionRequest(category_id="c", desired_count=1, requester_id="u", algorithm=Algorithm.ADAPTIVE)
    assert request.algorithm == "adaptive"


@pytest.mark.parametrize("fields", [
    {"desired_count": 0},
    {"overlap_percentage": 120},
    {"overlap_percentage": -5},
    {"category_id": ""},
])
def test_request_validation(fields):
    values = {"category_id": "c", "desired_count": 5, "requester_id": "u", **fields}
    with pytest.raises(PydanticValidationError):
        SelectionRequest(**values)
    with pytest.raises(ValidationError) as exc_info:
        build_request(**values)
    assert exc_info.value.errors
