"""Matchers resolving a query descriptor to an enrolled identity.

- EuclideanMatcher: exhaustive numpy scan (default)
- FaissMatcher: exact FAISS L2 index, same decisions

FaissMatcher is imported lazily by the backend factory so that faiss is
only loaded when selected.
"""

from faceverify.matching.euclidean import (
    EuclideanMatcher,
    decide,
    validate_matcher_params,
)

__all__ = [
    "EuclideanMatcher",
    "decide",
    "validate_matcher_params",
]
