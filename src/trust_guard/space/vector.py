"""Dense vector math over the fixed dimension set.

All vectors handled here are plain ``list[float]`` of length
:data:`~trust_guard.space.dimensions.DIMENSION_COUNT`. A length mismatch can
only come from schema drift inside the package, so it is reported as an
assertion-class error rather than a recoverable condition.
"""
from __future__ import annotations

import math
from collections.abc import Mapping, Sequence

from trust_guard.space.dimensions import DIMENSIONS, Dimension


class DimensionMismatchError(AssertionError):
    """Raised when two vectors (or a vector and the dimension set) disagree in length.

    Parameters
    ----------
    expected:
        The length that was required.
    actual:
        The length that was supplied.
    """

    def __init__(self, expected: int, actual: int) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"Vector dimension mismatch: expected {expected}, got {actual}")


def to_vector(scores: Mapping[Dimension, float]) -> list[float]:
    """Project a sparse score map onto the dense dimension order.

    Dimensions absent from *scores* become 0.0. Never fails.
    """
    return [float(scores.get(dim, 0.0)) for dim in DIMENSIONS]


def dot(a: Sequence[float], b: Sequence[float]) -> float:
    """Return the dot product of two equal-length vectors.

    Raises
    ------
    DimensionMismatchError
        If the vectors differ in length.
    """
    if len(a) != len(b):
        raise DimensionMismatchError(len(a), len(b))
    return sum(x * y for x, y in zip(a, b))


def magnitude(v: Sequence[float]) -> float:
    """Return the Euclidean (L2) norm of *v*."""
    return math.sqrt(dot(v, v))


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Return cos(θ) between *a* and *b*, clamped to [-1, 1].

    A zero-magnitude vector has no defined angle; that is treated as "no
    evidence" and yields 0.0.
    """
    mag_a = magnitude(a)
    mag_b = magnitude(b)
    if mag_a == 0.0 or mag_b == 0.0:
        return 0.0
    similarity = dot(a, b) / (mag_a * mag_b)
    return max(-1.0, min(1.0, similarity))
