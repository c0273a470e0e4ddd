"""Feature vector validation and normalization shared by training and serving."""

from typing import Sequence, Union

import numpy as np

from ..errors import InputError

ArrayLike = Union[Sequence[float], np.ndarray]


def validate_vector(features: ArrayLike, expected_length: int, label: str = "features") -> np.ndarray:
    """
    Coerce a feature vector to a 1-D float array and check its shape.

    Args:
        features: Sequence of numbers.
        expected_length: Required number of features.
        label: Name used in error messages.

    Returns:
        Float array of shape (expected_length,).

    Raises:
        InputError: If the vector is missing, non-numeric, non-finite or
            of the wrong length.
    """
    if features is None:
        raise InputError(f"{label} are required")
    try:
        vector = np.asarray(features, dtype=float)
    except (TypeError, ValueError) as e:
        raise InputError(f"{label} must be numeric") from e

    if vector.ndim != 1:
        raise InputError(f"{label} must be a flat list of numbers")
    if vector.shape[0] != expected_length:
        raise InputError(
            f"{label} must contain {expected_length} values, got {vector.shape[0]}",
            details={"expected": expected_length, "received": int(vector.shape[0])},
        )
    if not np.all(np.isfinite(vector)):
        raise InputError(f"{label} must be finite numbers")
    return vector


def validate_matrix(X: ArrayLike, expected_width: int, label: str = "features") -> np.ndarray:
    """Coerce a feature matrix to 2-D float and check its width."""
    matrix = np.asarray(X, dtype=float)
    if matrix.ndim == 1:
        matrix = matrix.reshape(1, -1)
    if matrix.ndim != 2 or matrix.shape[1] != expected_width:
        raise InputError(f"{label} must have {expected_width} columns, got shape {matrix.shape}")
    if not np.all(np.isfinite(matrix)):
        raise InputError(f"{label} must be finite numbers")
    return matrix


def normalize_features(
    features: ArrayLike,
    lower: float = 0.0,
    upper: float = 100.0,
) -> np.ndarray:
    """
    Min-max normalize with fixed domain bounds.

    Values outside [lower, upper] are mapped outside [0, 1] and are not
    clipped, so raw magnitudes above the upper bound stay distinguishable.

    Args:
        features: Vector or matrix of raw feature values.
        lower: Lower domain bound.
        upper: Upper domain bound.

    Returns:
        Array of the same shape scaled by the fixed bounds.
    """
    if upper <= lower:
        raise ValueError("upper bound must be greater than lower bound")
    return (np.asarray(features, dtype=float) - lower) / (upper - lower)


def spread_confidence(
    features: ArrayLike,
    base: float = 0.8,
    factor: float = 0.1,
    max_penalty: float = 0.3,
    floor: float = 0.1,
) -> float:
    """
    Confidence penalized by the spread of the raw feature values.

    confidence = max(floor, base - min(std * factor, max_penalty)), where std
    is the population standard deviation of the vector.
    """
    spread = float(np.std(np.asarray(features, dtype=float)))
    return max(floor, base - min(spread * factor, max_penalty))
