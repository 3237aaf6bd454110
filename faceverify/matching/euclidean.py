"""Euclidean distance matcher over a full enrollment snapshot.

Compares the query against every enrolled descriptor, keeps the true
minimum, and reports ties at that minimum instead of picking one.
Cost is O(n * d) per query.
"""

from __future__ import annotations

from typing import Iterable, List, Tuple

import numpy as np

from faceverify.core.exceptions import DimensionMismatch
from faceverify.core.interfaces import EnrollmentRecord
from faceverify.core.logging_config import get_logger
from faceverify.core.results import Ambiguous, Matched, MatchResult, NoMatch
from faceverify.core.utils import ArrayLike, as_descriptor

logger = get_logger(__name__)

DEFAULT_THRESHOLD = 0.6
DEFAULT_TIE_EPSILON = 1e-6


def decide(
    keys: List[str],
    distances: np.ndarray,
    threshold: float,
    tie_epsilon: float,
) -> MatchResult:
    """Turn per-record distances into a match decision.

    Args:
        keys: Identity key of each candidate
        distances: Distance of each candidate to the query, same order as keys
        threshold: Maximum accepted distance
        tie_epsilon: Distances within this of the minimum count as tied

    Returns:
        NoMatch if there are no candidates or the minimum exceeds the
        threshold, Ambiguous if several candidates share the minimum,
        Matched otherwise.
    """
    if len(keys) == 0:
        return NoMatch()

    best = float(distances.min())

    if best > threshold:
        return NoMatch(best_distance=best)

    tied = np.flatnonzero(distances <= best + tie_epsilon)

    if len(tied) > 1:
        return Ambiguous(
            identity_keys=tuple(sorted(keys[i] for i in tied)),
            distance=best,
        )

    return Matched(identity_key=keys[int(tied[0])], distance=best)


def validate_matcher_params(threshold: float, tie_epsilon: float) -> None:
    """Raise ValueError unless threshold > 0 and tie_epsilon >= 0."""
    if threshold <= 0.0:
        raise ValueError(f"threshold must be > 0, got {threshold}")
    if tie_epsilon < 0.0:
        raise ValueError(f"tie_epsilon must be >= 0, got {tie_epsilon}")


class EuclideanMatcher:
    """Exhaustive nearest-neighbor matcher using Euclidean distance.

    The matcher holds no per-query state and only reads the snapshot it is
    given, so one instance can serve concurrent requests.

    Attributes:
        threshold: Maximum Euclidean distance accepted as a match.
                   0.6 is the standard tolerance for dlib 128-D descriptors.
        tie_epsilon: Distances within this of the minimum count as a tie

    Example:
        >>> matcher = EuclideanMatcher(threshold=0.6)
        >>> result = matcher.resolve(query, store.get_all())
        >>> if result.is_match:
        ...     print(f"Identified: {result.identity_key}")
    """

    def __init__(
        self,
        threshold: float = DEFAULT_THRESHOLD,
        tie_epsilon: float = DEFAULT_TIE_EPSILON,
    ):
        validate_matcher_params(threshold, tie_epsilon)
        self.threshold = threshold
        self.tie_epsilon = tie_epsilon

        logger.debug(
            f"Initialized EuclideanMatcher with threshold={threshold}, "
            f"tie_epsilon={tie_epsilon}"
        )

    def distances(
        self, query: ArrayLike, records: Iterable[EnrollmentRecord]
    ) -> Tuple[List[str], np.ndarray]:
        """Compute the distance from the query to every record.

        Args:
            query: Query descriptor, shape [D]
            records: Records to compare against

        Returns:
            Tuple of (keys, distances) in record order.

        Raises:
            DimensionMismatch: If any record's dimension differs from the query's.
        """
        query = as_descriptor(query)
        records = list(records)

        if not records:
            return [], np.zeros(0, dtype=np.float64)

        for record in records:
            if record.dimension != query.shape[0]:
                raise DimensionMismatch(record.dimension, query.shape[0])

        matrix = np.stack([r.descriptor for r in records]).astype(np.float64)
        distances = np.linalg.norm(matrix - query.astype(np.float64), axis=1)

        return [r.identity_key for r in records], distances

    def resolve(
        self, query: ArrayLike, snapshot: Iterable[EnrollmentRecord]
    ) -> MatchResult:
        """Resolve a query descriptor against an enrollment snapshot.

        Args:
            query: Query descriptor, shape [D]
            snapshot: Enrolled records (any order)

        Returns:
            Matched, NoMatch or Ambiguous. The outcome does not depend on
            the order of the snapshot.

        Raises:
            DimensionMismatch: If the query length differs from the records'.
        """
        keys, distances = self.distances(query, snapshot)
        result = decide(keys, distances, self.threshold, self.tie_epsilon)

        logger.debug(f"Resolved query against {len(keys)} record(s): {result!r}")
        return result

    def __repr__(self) -> str:
        return (
            f"EuclideanMatcher(threshold={self.threshold}, "
            f"tie_epsilon={self.tie_epsilon})"
        )
