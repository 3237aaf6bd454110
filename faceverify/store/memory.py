"""In-memory enrollment store.

Holds one reference descriptor per identity key in a dict guarded by a lock.
Readers take a snapshot copy, so matching never runs under the lock.
"""

from __future__ import annotations

import threading
from typing import Dict, List, Optional

from faceverify.core.exceptions import DimensionMismatch
from faceverify.core.interfaces import EnrollmentRecord, EnrollmentSnapshot
from faceverify.core.logging_config import get_logger
from faceverify.core.utils import ArrayLike, as_descriptor

logger = get_logger(__name__)


class InMemoryEnrollmentStore:
    """Key-indexed store of enrollment records.

    Records are immutable and replaced as a whole, so a concurrent reader
    observes either the previous or the new descriptor for an identity.

    Attributes:
        dimension: Descriptor length accepted by this store
        version: Counter incremented on every mutation

    Example:
        >>> store = InMemoryEnrollmentStore(dimension=128)
        >>> store.put("alice", alice_descriptor)
        >>> for record in store.get_all():
        ...     print(record.identity_key)
    """

    def __init__(self, dimension: int = 128):
        """Initialize an empty store.

        Args:
            dimension: Descriptor length fixed by the extraction model

        Raises:
            ValueError: If dimension is not positive.
        """
        if dimension < 1:
            raise ValueError(f"dimension must be >= 1, got {dimension}")

        self.dimension = dimension
        self.version = 0
        self._records: Dict[str, EnrollmentRecord] = {}
        self._lock = threading.RLock()

        logger.debug(f"Initialized {type(self).__name__} with dimension={dimension}")

    def put(self, identity_key: str, descriptor: ArrayLike) -> EnrollmentRecord:
        """Insert or replace the record for an identity.

        Args:
            identity_key: Opaque unique identity key
            descriptor: Reference descriptor, shape [dimension]

        Returns:
            The stored EnrollmentRecord.

        Raises:
            ValueError: If identity_key is empty.
            DimensionMismatch: If the descriptor length differs from the
                store's dimension. The store is left unchanged.
        """
        if not identity_key:
            raise ValueError("identity_key must be a non-empty string")

        descriptor = as_descriptor(descriptor)
        if descriptor.shape[0] != self.dimension:
            raise DimensionMismatch(self.dimension, descriptor.shape[0])

        record = EnrollmentRecord(identity_key=identity_key, descriptor=descriptor)

        with self._lock:
            previous = self._records.get(identity_key)
            self._records[identity_key] = record
            try:
                self._on_change()
            except Exception:
                self._restore(identity_key, previous)
                raise
            self.version += 1

        logger.info(
            f"{'Replaced' if previous is not None else 'Enrolled'} descriptor "
            f"for '{identity_key}' (total: {len(self)})"
        )
        return record

    def get(self, identity_key: str) -> Optional[EnrollmentRecord]:
        """Return the record for an identity, or None if not enrolled."""
        with self._lock:
            return self._records.get(identity_key)

    def get_all(self) -> EnrollmentSnapshot:
        """Return a consistent snapshot of all records as of this call.

        Writes made after the call are not visible in the returned snapshot.
        """
        with self._lock:
            return EnrollmentSnapshot(
                self._records.values(),
                version=self.version,
                dimension=self.dimension,
                source=self,
            )

    def remove(self, identity_key: str) -> None:
        """Remove an identity. Idempotent, no error if it is absent."""
        with self._lock:
            if identity_key not in self._records:
                logger.debug(f"Remove of unknown identity '{identity_key}' ignored")
                return
            previous = self._records.pop(identity_key)
            try:
                self._on_change()
            except Exception:
                self._restore(identity_key, previous)
                raise
            self.version += 1

        logger.info(f"Removed identity '{identity_key}' (total: {len(self)})")

    def keys(self) -> List[str]:
        """Return the sorted list of enrolled identity keys."""
        with self._lock:
            return sorted(self._records)

    def _on_change(self) -> None:
        """Hook called under the lock after every mutation.

        Subclasses persist the new state here. If it raises, the mutation
        is rolled back and the error propagates to the caller.
        """
        pass

    def _restore(
        self, identity_key: str, previous: Optional[EnrollmentRecord]
    ) -> None:
        if previous is None:
            self._records.pop(identity_key, None)
        else:
            self._records[identity_key] = previous

    def __contains__(self, identity_key: object) -> bool:
        with self._lock:
            return identity_key in self._records

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(dimension={self.dimension}, "
            f"records={len(self)}, version={self.version})"
        )
