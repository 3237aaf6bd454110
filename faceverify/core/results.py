"""Match results returned by the matcher and the verification service.

A result is one of four frozen dataclasses. Each carries what a downstream
consumer needs to audit the decision (distance, candidate keys or reason).

Example:
    >>> result = service.verify(photo_bytes)
    >>> if isinstance(result, Matched):
    ...     print(f"{result.identity_key} at {result.distance:.3f}")
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple, Union

# Reasons for ExtractionFailed
NO_FACE = "no-face"
MULTIPLE_FACES = "multiple-faces"
LOW_CONFIDENCE = "low-confidence"

EXTRACTION_FAILURE_REASONS = (NO_FACE, MULTIPLE_FACES, LOW_CONFIDENCE)

# Reasons for Ambiguous
TIED_DISTANCE = "tied-distance"


@dataclass(frozen=True)
class Matched:
    """The query resolved to exactly one enrolled identity.

    Attributes:
        identity_key: Key of the closest enrolled identity
        distance: Euclidean distance to its descriptor (<= threshold)
    """

    identity_key: str
    distance: float

    @property
    def is_match(self) -> bool:
        return True

    def __repr__(self) -> str:
        return f"Matched(identity_key='{self.identity_key}', distance={self.distance:.4f})"


@dataclass(frozen=True)
class NoMatch:
    """No enrolled identity lies within the threshold.

    Attributes:
        best_distance: Distance to the closest record, None for an empty store
    """

    best_distance: Optional[float] = None

    @property
    def is_match(self) -> bool:
        return False

    def __repr__(self) -> str:
        if self.best_distance is None:
            return "NoMatch()"
        return f"NoMatch(best_distance={self.best_distance:.4f})"


@dataclass(frozen=True)
class Ambiguous:
    """Two or more identities tie for the closest distance within the threshold.

    Attributes:
        reason: Why the decision was withheld
        identity_keys: Sorted keys of every tied identity
        distance: The shared minimum distance
    """

    reason: str = TIED_DISTANCE
    identity_keys: Tuple[str, ...] = ()
    distance: Optional[float] = None

    @property
    def is_match(self) -> bool:
        return False


@dataclass(frozen=True)
class ExtractionFailed:
    """The photo could not yield exactly one usable face.

    Attributes:
        reason: One of "no-face", "multiple-faces", "low-confidence"
        num_faces: Number of faces the extractor reported
        confidence: Detection confidence of the single face (low-confidence only)
    """

    reason: str
    num_faces: int = 0
    confidence: Optional[float] = None

    def __post_init__(self) -> None:
        if self.reason not in EXTRACTION_FAILURE_REASONS:
            raise ValueError(
                f"reason must be one of {EXTRACTION_FAILURE_REASONS}, got '{self.reason}'"
            )

    @property
    def is_match(self) -> bool:
        return False


MatchResult = Union[Matched, NoMatch, Ambiguous, ExtractionFailed]
