"""
Vector Math Utilities

Stateless numeric helpers used by the record validator, the in-memory
collection and the test-suite.

All functions accept plain sequences of numbers (lists, tuples or 1-D numpy
arrays) and return plain Python floats / lists so results are JSON-safe.
"""

from __future__ import annotations

import math
from typing import Any, Callable, Dict, List, Optional, Sequence, TypeVar

import numpy as np

from ..config import settings


T = TypeVar("T")
R = TypeVar("R")

Vector = Sequence[float]


# ---------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------

class VectorMathError(ValueError):
    """Base error for invalid vector input."""


class DimensionMismatchError(VectorMathError):
    """Raised when two vectors (or a vector and an expected size) disagree in length."""


class DimensionExceededError(VectorMathError):
    """Raised when a vector is longer than the configured maximum."""


class NotAnArrayError(VectorMathError):
    """Raised when the input is not a sequence of numbers."""


class EmptyVectorError(VectorMathError):
    """Raised when a vector has no elements."""


class InvalidNumbersError(VectorMathError):
    """Raised when a vector holds NaN, Infinity or non-numeric values."""


class EmptySetError(VectorMathError):
    """Raised when an aggregate is requested over zero vectors."""


# ---------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------

def _is_finite_number(value: Any) -> bool:
    # bool is an int subclass but never a valid coordinate
    if isinstance(value, bool):
        return False
    if not isinstance(value, (int, float, np.integer, np.floating)):
        return False
    return math.isfinite(value)


def _as_array(vector: Vector) -> np.ndarray:
    return np.asarray(vector, dtype="float64")


def _require_same_length(a: Vector, b: Vector) -> None:
    if len(a) != len(b):
        raise DimensionMismatchError(
            f"Vectors must have the same dimensions ({len(a)} != {len(b)})"
        )


# ---------------------------------------------------------------------
# Similarity & Distance
# ---------------------------------------------------------------------

def dot_product(a: Vector, b: Vector) -> float:
    _require_same_length(a, b)
    return float(np.dot(_as_array(a), _as_array(b)))


def magnitude(vector: Vector) -> float:
    """L2 norm of a vector."""
    return float(np.linalg.norm(_as_array(vector)))


def cosine_similarity(a: Vector, b: Vector) -> float:
    """
    Cosine of the angle between two vectors.

    Returns 0.0 when either vector has zero magnitude.
    """
    _require_same_length(a, b)

    denominator = magnitude(a) * magnitude(b)
    if denominator == 0:
        return 0.0

    similarity = dot_product(a, b) / denominator
    # Clamp floating point drift just outside [-1, 1]
    return max(-1.0, min(1.0, similarity))


def euclidean_distance(a: Vector, b: Vector) -> float:
    _require_same_length(a, b)
    return float(np.linalg.norm(_as_array(a) - _as_array(b)))


def normalize(vector: Vector) -> List[float]:
    """
    Scale a vector to unit length.

    A zero-magnitude vector is returned unchanged (as zeros of the same length).
    """
    norm = magnitude(vector)
    if norm == 0:
        return [0.0] * len(vector)
    return (_as_array(vector) / norm).tolist()


# ---------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------

def validate_vector(
    vector: Any,
    expected_dimensions: Optional[int] = None,
    max_dimensions: Optional[int] = None,
) -> None:
    """
    Validate vector format and dimensions.

    Parameters
    ----------
    vector : Any
        Candidate vector.
    expected_dimensions : Optional[int]
        Exact length required, if given.
    max_dimensions : Optional[int]
        Upper bound on length. Defaults to settings.max_vector_dimensions.

    Raises
    ------
    NotAnArrayError, EmptyVectorError, InvalidNumbersError,
    DimensionMismatchError, DimensionExceededError
    """
    if isinstance(vector, np.ndarray):
        if vector.ndim != 1:
            raise NotAnArrayError("Vector must be a one-dimensional array")
    elif not isinstance(vector, (list, tuple)):
        raise NotAnArrayError("Vector must be an array")

    if len(vector) == 0:
        raise EmptyVectorError("Vector cannot be empty")

    if not is_valid_vector(vector):
        raise InvalidNumbersError("Vector must contain only valid numbers")

    if expected_dimensions is not None and len(vector) != expected_dimensions:
        raise DimensionMismatchError(
            f"Vector must have exactly {expected_dimensions} dimensions"
        )

    limit = max_dimensions if max_dimensions is not None else settings.max_vector_dimensions
    if len(vector) > limit:
        raise DimensionExceededError(f"Vector exceeds maximum dimensions: {limit}")


def is_valid_vector(vector: Vector) -> bool:
    """True if every element is a finite real number."""
    return all(_is_finite_number(v) for v in vector)


# ---------------------------------------------------------------------
# Aggregates
# ---------------------------------------------------------------------

def centroid(vectors: Sequence[Vector]) -> List[float]:
    """Elementwise arithmetic mean of a set of equal-length vectors."""
    if len(vectors) == 0:
        raise EmptySetError("Cannot calculate centroid of empty vector set")

    dimensions = len(vectors[0])
    if any(len(v) != dimensions for v in vectors):
        raise DimensionMismatchError("All vectors must have the same dimensions")

    matrix = np.asarray(vectors, dtype="float64")
    return matrix.mean(axis=0).tolist()


def round_vector(vector: Vector, precision: int = 6) -> List[float]:
    return [round(float(v), precision) for v in vector]


def batch_process(
    items: Sequence[T],
    fn: Callable[[T], R],
    batch_size: int = 100,
) -> List[R]:
    """
    Apply ``fn`` to every item, walking the input in fixed-size chunks.

    The output is identical to ``[fn(x) for x in items]``.
    """
    if batch_size < 1:
        raise ValueError("batch_size must be at least 1")

    results: List[R] = []
    for start in range(0, len(items), batch_size):
        batch = items[start : start + batch_size]
        results.extend(fn(item) for item in batch)
    return results


def vector_statistics(vectors: Sequence[Vector]) -> Optional[Dict[str, Any]]:
    """
    Summary statistics over a set of vectors.

    Returns None for an empty set. Per-dimension standard deviation is the
    population standard deviation (divisor = count).
    """
    if len(vectors) == 0:
        return None

    dimensions = len(vectors[0])
    if any(len(v) != dimensions for v in vectors):
        raise DimensionMismatchError("All vectors must have the same dimensions")

    matrix = np.asarray(vectors, dtype="float64")
    magnitudes = np.linalg.norm(matrix, axis=1)

    mins = matrix.min(axis=0)
    maxs = matrix.max(axis=0)
    means = matrix.mean(axis=0)
    stds = matrix.std(axis=0)  # ddof=0

    return {
        "count": len(vectors),
        "dimensions": dimensions,
        "mean_magnitude": float(magnitudes.mean()),
        "min_magnitude": float(magnitudes.min()),
        "max_magnitude": float(magnitudes.max()),
        "dimension_stats": [
            {
                "min": float(mins[i]),
                "max": float(maxs[i]),
                "mean": float(means[i]),
                "std": float(stds[i]),
            }
            for i in range(dimensions)
        ],
    }


def random_vector(
    dimensions: int,
    low: float = -1.0,
    high: float = 1.0,
    seed: Optional[int] = None,
) -> List[float]:
    """Uniform random vector, used for seeding and tests."""
    rng = np.random.default_rng(seed)
    return rng.uniform(low, high, size=dimensions).tolist()
