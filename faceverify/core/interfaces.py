"""Core interfaces and data structures for identity resolution.

This module defines the abstract interfaces (Protocols) and data classes
that allow for modular, swappable components: any face model can sit behind
``Extractor``, any storage behind ``EnrollmentStore`` and any nearest-neighbor
search behind ``Matcher``.

Following the Dependency Inversion Principle, the verification service depends
on these abstractions rather than concrete implementations.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, Iterator, List, Optional, Protocol, Tuple, runtime_checkable

import numpy as np

from faceverify.core.results import MatchResult
from faceverify.core.utils import as_descriptor

# A FaceDescriptor is an immutable 1-D float32 array (see utils.as_descriptor)
FaceDescriptor = np.ndarray


@dataclass(frozen=True)
class ExtractedFace:
    """A single face found by an extractor.

    Attributes:
        descriptor: Immutable face descriptor, shape [D], dtype float32
        confidence: Detection confidence score (0.0 to 1.0)
    """

    descriptor: FaceDescriptor
    confidence: float

    def __post_init__(self) -> None:
        """Validate and freeze the descriptor."""
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(
                f"Detection confidence must be in [0, 1], got {self.confidence}"
            )
        object.__setattr__(self, "descriptor", as_descriptor(self.descriptor))

    def __repr__(self) -> str:
        return (
            f"ExtractedFace(dim={self.descriptor.shape[0]}, "
            f"confidence={self.confidence:.3f})"
        )


@dataclass(frozen=True)
class EnrollmentRecord:
    """Reference descriptor of one enrolled identity.

    Records are immutable. Re-enrolling an identity replaces its record.

    Attributes:
        identity_key: Opaque unique identity key
        descriptor: Reference face descriptor
        enrolled_at: UTC timestamp of the (re-)enrollment
    """

    identity_key: str
    descriptor: FaceDescriptor
    enrolled_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        object.__setattr__(self, "descriptor", as_descriptor(self.descriptor))

    @property
    def dimension(self) -> int:
        return int(self.descriptor.shape[0])

    def __repr__(self) -> str:
        return (
            f"EnrollmentRecord(identity_key='{self.identity_key}', "
            f"dim={self.dimension}, enrolled_at={self.enrolled_at.isoformat()})"
        )


class EnrollmentSnapshot:
    """Point-in-time view of an enrollment store.

    Iterating a snapshot can be repeated any number of times and always
    yields the same records, regardless of later writes to the store.

    Attributes:
        version: Store mutation counter at the time the snapshot was taken
        dimension: Descriptor dimension of the store
        source: The store the snapshot was taken from, if any
    """

    def __init__(
        self,
        records: Iterable[EnrollmentRecord],
        version: int = 0,
        dimension: Optional[int] = None,
        source: Optional[object] = None,
    ):
        self._records: Tuple[EnrollmentRecord, ...] = tuple(records)
        self.version = version
        self.dimension = dimension
        self.source = source

    def __iter__(self) -> Iterator[EnrollmentRecord]:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __repr__(self) -> str:
        return f"EnrollmentSnapshot(records={len(self._records)}, version={self.version})"


@runtime_checkable
class Extractor(Protocol):
    """Protocol for face descriptor extraction.

    An Extractor takes raw image bytes and returns every face it detected,
    each with a fixed-dimensional descriptor and a detection confidence.
    It must be deterministic for identical bytes given a fixed model.
    """

    descriptor_dim: int

    def extract(self, image_bytes: bytes) -> List[ExtractedFace]:
        """Extract descriptors for all faces in an encoded image.

        Args:
            image_bytes: Encoded image (JPEG, PNG, ...)

        Returns:
            List of ExtractedFace objects, one per detected face.
            List is empty if no faces were detected.

        Raises:
            ExtractionUnavailable: If the image cannot be decoded or the
                model fails.

        Example:
            >>> faces = extractor.extract(open("photo.jpg", "rb").read())
            >>> print(f"Found {len(faces)} faces")
        """
        ...


@runtime_checkable
class EnrollmentStore(Protocol):
    """Protocol for enrollment storage.

    Holds at most one reference descriptor per identity key. Mutations are
    atomic per identity: concurrent readers see the old or the new record,
    never a partially written one.
    """

    dimension: int

    def put(self, identity_key: str, descriptor: FaceDescriptor) -> EnrollmentRecord:
        """Insert or replace the record for an identity.

        Raises:
            DimensionMismatch: If the descriptor length differs from the
                store's dimension. The store is left unchanged.
        """
        ...

    def get(self, identity_key: str) -> Optional[EnrollmentRecord]:
        """Return the record for an identity, or None."""
        ...

    def get_all(self) -> EnrollmentSnapshot:
        """Return a consistent, restartable snapshot of all records."""
        ...

    def remove(self, identity_key: str) -> None:
        """Remove an identity. No error if it is absent."""
        ...

    def keys(self) -> List[str]:
        """Return the sorted list of enrolled identity keys."""
        ...


@runtime_checkable
class Matcher(Protocol):
    """Protocol for resolving a query descriptor against enrolled records.

    A Matcher only reads the snapshot it is given, so a single instance can
    serve concurrent requests.
    """

    threshold: float

    def resolve(
        self, query: FaceDescriptor, snapshot: Iterable[EnrollmentRecord]
    ) -> MatchResult:
        """Find the enrolled identity closest to the query.

        Args:
            query: Query descriptor, shape [D]
            snapshot: Enrolled records to search

        Returns:
            Matched, NoMatch or Ambiguous.

        Raises:
            DimensionMismatch: If the query length differs from the records'.

        Example:
            >>> result = matcher.resolve(query, store.get_all())
            >>> print(result)
            Matched(identity_key='alice', distance=0.3127)
        """
        ...
