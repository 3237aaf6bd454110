"""FAISS-based matcher for identity resolution.

Drop-in replacement for EuclideanMatcher backed by an exact FAISS
``IndexFlatL2``. The index is built once per store snapshot version and
reused by every query against that version.
"""

from __future__ import annotations

import threading
import weakref
from typing import Iterable, List, Optional, Tuple

import faiss
import numpy as np

from faceverify.core.exceptions import DimensionMismatch
from faceverify.core.interfaces import EnrollmentRecord
from faceverify.core.logging_config import get_logger
from faceverify.core.results import MatchResult, NoMatch
from faceverify.core.utils import ArrayLike, as_descriptor
from faceverify.matching.euclidean import (
    DEFAULT_THRESHOLD,
    DEFAULT_TIE_EPSILON,
    decide,
    validate_matcher_params,
)

logger = get_logger(__name__)


class _BuiltIndex:
    """FAISS index plus the identity key of each row.

    ``source`` is a weak reference to the store the rows came from, so a
    later store that reuses the same memory address never matches it.
    """

    def __init__(
        self,
        index: faiss.Index,
        keys: List[str],
        source: Optional[weakref.ref] = None,
        version: Optional[int] = None,
    ):
        self.index = index
        self.keys = keys
        self.source = source
        self.version = version

    def built_from(self, source: object, version: int) -> bool:
        """True if this index was built from ``source`` at ``version``."""
        if self.source is None or self.version != version:
            return False
        return self.source() is source


class FaissMatcher:
    """Nearest-neighbor matcher using an exact FAISS L2 index.

    Produces the same decisions as EuclideanMatcher: FAISS finds the
    minimum distance, then a range search collects every record tied with
    it so ties still surface as Ambiguous.

    Attributes:
        threshold: Maximum Euclidean distance accepted as a match
        tie_epsilon: Distances within this of the minimum count as a tie

    Example:
        >>> matcher = FaissMatcher(threshold=0.6)
        >>> result = matcher.resolve(query, store.get_all())
    """

    def __init__(
        self,
        threshold: float = DEFAULT_THRESHOLD,
        tie_epsilon: float = DEFAULT_TIE_EPSILON,
    ):
        validate_matcher_params(threshold, tie_epsilon)
        self.threshold = threshold
        self.tie_epsilon = tie_epsilon

        self._cached: Optional[_BuiltIndex] = None
        self._lock = threading.Lock()

        logger.debug(f"Initialized FaissMatcher with threshold={threshold}")

    def _build(self, records: List[EnrollmentRecord]) -> _BuiltIndex:
        dimension = records[0].dimension
        for record in records:
            if record.dimension != dimension:
                raise DimensionMismatch(dimension, record.dimension)

        matrix = np.ascontiguousarray(
            np.stack([r.descriptor for r in records]), dtype=np.float32
        )

        index = faiss.IndexFlatL2(dimension)
        index.add(matrix)

        logger.info(f"Built FAISS index with {index.ntotal} record(s), dim={dimension}")
        return _BuiltIndex(index, [r.identity_key for r in records])

    def _index_for(
        self, snapshot: Iterable[EnrollmentRecord]
    ) -> Optional[_BuiltIndex]:
        """Return the index for this snapshot, reusing the cached one if current.

        Returns:
            The built index, or None if the snapshot is empty.
        """
        version = getattr(snapshot, "version", None)
        source = getattr(snapshot, "source", None)
        cacheable = source is not None and version is not None

        with self._lock:
            cached = self._cached
        if cacheable and cached is not None and cached.built_from(source, version):
            return cached

        records = list(snapshot)
        if not records:
            return None

        built = self._build(records)

        if cacheable:
            built.source = weakref.ref(source)
            built.version = version
            with self._lock:
                self._cached = built

        return built

    def _search(
        self, built: _BuiltIndex, query: np.ndarray
    ) -> Tuple[List[str], np.ndarray]:
        """Return the closest record plus every record tied with it."""
        x = query.reshape(1, -1).astype(np.float32)

        sq_dists, labels = built.index.search(x, 1)
        best_key = built.keys[int(labels[0][0])]
        best = float(np.sqrt(max(float(sq_dists[0][0]), 0.0)))

        if best > self.threshold:
            return [best_key], np.array([best])

        radius = (best + self.tie_epsilon) ** 2 + 1e-12
        lims, range_dists, range_labels = built.index.range_search(x, radius)
        start, end = int(lims[0]), int(lims[1])

        if end <= start:
            return [best_key], np.array([best])

        keys = [built.keys[int(i)] for i in range_labels[start:end]]
        distances = np.sqrt(np.maximum(range_dists[start:end].astype(np.float64), 0.0))
        return keys, distances

    def resolve(
        self, query: ArrayLike, snapshot: Iterable[EnrollmentRecord]
    ) -> MatchResult:
        """Resolve a query descriptor against an enrollment snapshot.

        Args:
            query: Query descriptor, shape [D]
            snapshot: Enrolled records. The version of an EnrollmentSnapshot
                      is used to reuse the index across queries.

        Returns:
            Matched, NoMatch or Ambiguous.

        Raises:
            DimensionMismatch: If the query length differs from the records'.
        """
        query = as_descriptor(query)

        built = self._index_for(snapshot)
        if built is None:
            return NoMatch()

        if built.index.d != query.shape[0]:
            raise DimensionMismatch(built.index.d, query.shape[0])

        keys, distances = self._search(built, query)
        result = decide(keys, distances, self.threshold, self.tie_epsilon)

        logger.debug(
            f"Resolved query against {built.index.ntotal} record(s): {result!r}"
        )
        return result

    def __repr__(self) -> str:
        cached = self._cached
        size = cached.index.ntotal if cached is not None else 0
        return f"FaissMatcher(threshold={self.threshold}, index_size={size})"
