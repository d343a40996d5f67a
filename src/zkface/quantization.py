"""
Fixed-point quantization of facial feature vectors.

Circuits operate on integers, so every real-valued feature is multiplied by
SCALE and rounded before it is used as a circuit input or compared in
plaintext. Both paths must use the same quantized values, and the rounding
rule must be the one the deployed circuit assumes.
"""

from typing import List, Sequence, Union

import numpy as np
import structlog

from .constants import (
    ROUNDING_HALF_AWAY_FROM_ZERO,
    ROUNDING_HALF_EVEN,
    ROUNDING_MODES,
    ROUNDING_TRUNCATE,
    SCALE,
)
from .exceptions import ConfigurationError, InvalidFeatureVectorError

# Initialize structured logger
logger = structlog.get_logger(__name__)

FeatureVector = Union[np.ndarray, Sequence[float]]
QuantizedVector = List[int]


def quantize(
    vector: FeatureVector,
    rounding: str = ROUNDING_HALF_AWAY_FROM_ZERO,
    scale: int = SCALE,
) -> QuantizedVector:
    """
    Convert a real-valued feature vector to fixed-point integers.

    Each element becomes ``round(vector[i] * scale)``. The conversion is
    deterministic and has no failure path for finite input; non-finite
    values must be rejected upstream with validate_feature_vector().

    Parameters
    ----------
    vector : array-like
        Feature vector of length D.
    rounding : str, default="half_away_from_zero"
        Rounding rule, one of ROUNDING_MODES.
    scale : int, default=SCALE
        Fixed-point scale factor.

    Returns
    -------
    List[int]
        Quantized vector of length D as plain Python integers.

    Raises
    ------
    ConfigurationError
        If the rounding rule is unknown.

    Examples
    --------
    >>> quantize([0.1, -0.2, 0.3])
    [6554, -13107, 19661]
    """
    scaled = np.asarray(vector, dtype=np.float64) * scale

    if rounding == ROUNDING_HALF_AWAY_FROM_ZERO:
        # Compare the exact fractional part; adding 0.5 first can round up
        truncated = np.trunc(scaled)
        rounded = truncated + np.sign(scaled) * (np.abs(scaled - truncated) >= 0.5)
    elif rounding == ROUNDING_HALF_EVEN:
        rounded = np.rint(scaled)
    elif rounding == ROUNDING_TRUNCATE:
        rounded = np.trunc(scaled)
    else:
        raise ConfigurationError(
            f"Unknown rounding mode '{rounding}'. Must be one of {list(ROUNDING_MODES)}",
            config_key="QUANTIZATION_ROUNDING",
            config_value=rounding,
        )

    return [int(value) for value in rounded.ravel()]


def validate_feature_vector(vector: FeatureVector) -> np.ndarray:
    """
    Reject feature vectors that cannot be quantized meaningfully.

    Parameters
    ----------
    vector : array-like
        Feature vector produced by the detection capability.

    Returns
    -------
    np.ndarray
        The vector as a 1-D float64 array.

    Raises
    ------
    InvalidFeatureVectorError
        If the vector is not 1-D, is empty or holds NaN or infinity.
    """
    try:
        array = np.asarray(vector, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise InvalidFeatureVectorError(
            f"Feature vector is not numeric: {e}",
            vector_shape=getattr(vector, "shape", ()),
        )

    if array.ndim != 1:
        raise InvalidFeatureVectorError(
            f"Feature vector must be 1D, got {array.ndim}D",
            vector_shape=array.shape,
        )

    if array.size == 0:
        raise InvalidFeatureVectorError(
            "Feature vector cannot be empty", vector_shape=array.shape
        )

    if not np.isfinite(array).all():
        raise InvalidFeatureVectorError(
            "Feature vector contains non-finite values (NaN or infinity)",
            vector_shape=array.shape,
        )

    logger.debug(
        "Feature vector validation passed",
        length=int(array.size),
        value_range=(float(array.min()), float(array.max())),
    )

    return array
