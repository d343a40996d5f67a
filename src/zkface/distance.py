"""
Squared-distance pre-check between quantized vectors.

The plaintext distance gives immediate local feedback. It is never the
trust boundary: a recognition is accepted only when this check AND the
zero-knowledge proof both pass.
"""

from typing import Sequence

from .constants import MATCH_THRESHOLD
from .exceptions import LengthMismatchError


def squared_distance(a: Sequence[int], b: Sequence[int]) -> int:
    """
    Compute the squared Euclidean distance between two quantized vectors.

    Python integers are used throughout so the sum is exact for any
    vector length.

    Parameters
    ----------
    a, b : Sequence[int]
        Quantized vectors of equal length.

    Returns
    -------
    int
        Sum of squared per-element differences.

    Raises
    ------
    LengthMismatchError
        If the vectors differ in length.

    Examples
    --------
    >>> squared_distance([1, 2, 3], [1, 2, 5])
    4
    """
    if len(a) != len(b):
        raise LengthMismatchError(len(a), len(b))

    return sum((int(x) - int(y)) ** 2 for x, y in zip(a, b))


def is_within_threshold(distance: int, threshold: int = MATCH_THRESHOLD) -> bool:
    """Return True when the squared distance is strictly below the threshold."""
    return distance < threshold
