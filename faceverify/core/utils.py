"""Utility functions for the identity resolution pipeline.

This module provides descriptor normalization, the distance metric shared by
all matchers, and image decoding for the extractor backends.
"""

from __future__ import annotations

from typing import Sequence, Union

import cv2
import numpy as np

from faceverify.core.exceptions import DimensionMismatch, ExtractionUnavailable

ArrayLike = Union[np.ndarray, Sequence[float]]


def as_descriptor(values: ArrayLike) -> np.ndarray:
    """Convert values to an immutable face descriptor.

    Args:
        values: 1-D sequence of numbers, or a [1, D] array

    Returns:
        Read-only float32 array, shape [D]. Arrays that already satisfy
        this are returned as-is.

    Raises:
        ValueError: If values are empty, not 1-D or not finite.

    Example:
        >>> d = as_descriptor([0.1, 0.2, 0.3])
        >>> d.flags.writeable
        False
    """
    if (
        isinstance(values, np.ndarray)
        and values.dtype == np.float32
        and values.ndim == 1
        and not values.flags.writeable
    ):
        return values

    arr = np.array(values, dtype=np.float32)

    if arr.ndim == 2 and arr.shape[0] == 1:
        arr = arr.reshape(-1)

    if arr.ndim != 1 or arr.shape[0] == 0:
        raise ValueError(f"Expected a non-empty 1-D descriptor, got shape {arr.shape}")

    if not np.all(np.isfinite(arr)):
        raise ValueError("Descriptor contains NaN or infinite values")

    arr.flags.writeable = False
    return arr


def euclidean_distance(a: ArrayLike, b: ArrayLike) -> float:
    """Compute the Euclidean distance between two descriptors.

    Args:
        a: First descriptor, shape [D]
        b: Second descriptor, shape [D]

    Returns:
        Euclidean (L2) distance, >= 0.0. Exactly 0.0 for identical inputs.

    Raises:
        DimensionMismatch: If the descriptors have different lengths.

    Example:
        >>> euclidean_distance([0.0, 0.0], [3.0, 4.0])
        5.0
    """
    a = as_descriptor(a)
    b = as_descriptor(b)

    if a.shape[0] != b.shape[0]:
        raise DimensionMismatch(a.shape[0], b.shape[0])

    return float(np.linalg.norm(a.astype(np.float64) - b.astype(np.float64)))


def decode_image(image_bytes: bytes) -> np.ndarray:
    """Decode an encoded image into a BGR array.

    Args:
        image_bytes: Encoded image (JPEG, PNG, BMP, ...)

    Returns:
        Image in BGR format (OpenCV convention), shape [H, W, 3], dtype uint8.

    Raises:
        ExtractionUnavailable: If the bytes are empty or not a decodable image.
    """
    if not image_bytes:
        raise ExtractionUnavailable("Empty image provided")

    buffer = np.frombuffer(image_bytes, dtype=np.uint8)
    image_bgr = cv2.imdecode(buffer, cv2.IMREAD_COLOR)

    if image_bgr is None or image_bgr.size == 0:
        raise ExtractionUnavailable("Could not decode image bytes")

    return image_bgr
