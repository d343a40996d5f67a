"""
Test cases for the squared-distance pre-check.
"""

import random

import pytest

from zkface.constants import MATCH_THRESHOLD
from zkface.distance import is_within_threshold, squared_distance
from zkface.exceptions import LengthMismatchError


def _random_vector(rng, length):
    return [rng.randint(-200_000, 200_000) for _ in range(length)]


def test_squared_distance_simple():
    assert squared_distance([1, 2, 3], [1, 2, 5]) == 4
    assert squared_distance([-3, 4], [0, 0]) == 25


def test_squared_distance_identity():
    rng = random.Random(7)
    for length in (1, 3, 128):
        vector = _random_vector(rng, length)
        assert squared_distance(vector, vector) == 0


def test_squared_distance_symmetry():
    rng = random.Random(11)
    for _ in range(20):
        a = _random_vector(rng, 128)
        b = _random_vector(rng, 128)
        assert squared_distance(a, b) == squared_distance(b, a)


@pytest.mark.parametrize("left,right", [(0, 1), (3, 2), (128, 127), (1, 128)])
def test_squared_distance_length_mismatch(left, right):
    with pytest.raises(LengthMismatchError) as exc_info:
        squared_distance([0] * left, [0] * right)

    assert exc_info.value.context["left_length"] == left
    assert exc_info.value.context["right_length"] == right
    assert exc_info.value.error_code == "MATCH_002"


def test_squared_distance_is_exact_for_large_values():
    """The sum must not overflow or lose precision."""
    a = [2**40] * 128
    b = [-(2**40)] * 128
    assert squared_distance(a, b) == 128 * (2**41) ** 2


def test_threshold_is_exclusive():
    assert is_within_threshold(0)
    assert is_within_threshold(MATCH_THRESHOLD - 1)
    assert not is_within_threshold(MATCH_THRESHOLD)
    assert not is_within_threshold(MATCH_THRESHOLD + 1)


def test_threshold_custom_bound():
    assert is_within_threshold(9, threshold=10)
    assert not is_within_threshold(10, threshold=10)
