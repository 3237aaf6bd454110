"""Verification service for enrolling and identifying faces in photos.

This module provides the resolution pipeline that combines descriptor
extraction, the enrollment store and the matcher:

1. enroll: photo → extract → single clear face → store.put
2. verify: photo → extract → single clear face → matcher.resolve(store snapshot)

Descriptors are extracted once per enrollment. Verification only computes
distances against stored descriptors.
"""

from __future__ import annotations

from typing import List, Union

from faceverify.core.exceptions import DimensionMismatch, EnrollmentRejected
from faceverify.core.interfaces import (
    EnrollmentRecord,
    EnrollmentStore,
    ExtractedFace,
    Extractor,
    Matcher,
)
from faceverify.core.logging_config import get_logger, log_decision
from faceverify.core.results import (
    LOW_CONFIDENCE,
    MULTIPLE_FACES,
    NO_FACE,
    ExtractionFailed,
    MatchResult,
)

logger = get_logger(__name__)


class VerificationService:
    """Service for biometric enrollment and verification.

    The service keeps no per-call state. Each call is a function of the
    image bytes and the store contents at the time of the call, so one
    instance can be shared by concurrent requests.

    Attributes:
        extractor: Face descriptor extractor
        store: Enrollment store
        matcher: Matcher resolving query descriptors
        min_confidence: Minimum detection confidence for a usable face

    Example:
        >>> service = VerificationService(
        ...     extractor=extractor,
        ...     store=store,
        ...     matcher=EuclideanMatcher(threshold=0.6),
        ...     min_confidence=0.5,
        ... )
        >>> service.enroll("user-42", enrollment_photo)
        >>> result = service.verify(live_photo)
        >>> if result.is_match:
        ...     print(f"Identified {result.identity_key} ({result.distance:.3f})")
    """

    def __init__(
        self,
        extractor: Extractor,
        store: EnrollmentStore,
        matcher: Matcher,
        min_confidence: float = 0.5,
    ):
        """Initialize verification service.

        Args:
            extractor: Extractor instance
            store: Enrollment store instance
            matcher: Matcher instance (Euclidean or FAISS)
            min_confidence: Detection confidence floor (0.0 to 1.0)

        Raises:
            ValueError: If min_confidence is not in valid range.
            DimensionMismatch: If the store's dimension differs from the
                extractor's descriptor dimension.
        """
        if not 0.0 <= min_confidence <= 1.0:
            raise ValueError(f"min_confidence must be in [0, 1], got {min_confidence}")

        if extractor.descriptor_dim != store.dimension:
            raise DimensionMismatch(store.dimension, extractor.descriptor_dim)

        self.extractor = extractor
        self.store = store
        self.matcher = matcher
        self.min_confidence = min_confidence

        logger.info(
            f"Initialized VerificationService with threshold={matcher.threshold}, "
            f"min_confidence={min_confidence:.2f}, dim={store.dimension}"
        )

    def _select_face(
        self, faces: List[ExtractedFace]
    ) -> Union[ExtractedFace, ExtractionFailed]:
        """Apply the single clear face rule to extractor output.

        Returns:
            The only face, or ExtractionFailed explaining why there is none.
        """
        if len(faces) == 0:
            return ExtractionFailed(NO_FACE, num_faces=0)

        if len(faces) > 1:
            return ExtractionFailed(MULTIPLE_FACES, num_faces=len(faces))

        face = faces[0]

        if face.confidence < self.min_confidence:
            return ExtractionFailed(
                LOW_CONFIDENCE, num_faces=1, confidence=face.confidence
            )

        return face

    def extract_face(self, image_bytes: bytes) -> Union[ExtractedFace, ExtractionFailed]:
        """Extract the single clear face from a photo.

        Args:
            image_bytes: Encoded photo

        Returns:
            ExtractedFace if the photo shows exactly one face above the
            confidence floor, ExtractionFailed otherwise.

        Raises:
            ExtractionUnavailable: If the extractor could not evaluate the photo.
        """
        faces = self.extractor.extract(image_bytes)
        logger.debug(f"Extractor returned {len(faces)} face(s)")
        return self._select_face(faces)

    def enroll(self, identity_key: str, image_bytes: bytes) -> EnrollmentRecord:
        """Enroll or re-enroll an identity from a photo.

        Re-enrolling an existing identity replaces its descriptor.

        Args:
            identity_key: Opaque unique identity key
            image_bytes: Encoded enrollment photo showing exactly one clear face

        Returns:
            The stored EnrollmentRecord.

        Raises:
            EnrollmentRejected: If the photo has no face, several faces or a
                low-confidence face.
            DimensionMismatch: If the descriptor does not fit the store.
            ExtractionUnavailable: If the extractor could not evaluate the photo.

        Example:
            >>> record = service.enroll("user-42", photo_bytes)
            >>> record.identity_key
            'user-42'
        """
        selected = self.extract_face(image_bytes)

        if isinstance(selected, ExtractionFailed):
            log_decision(logger, "enroll", selected, identity_key=identity_key)
            raise EnrollmentRejected(selected)

        record = self.store.put(identity_key, selected.descriptor)
        log_decision(
            logger,
            "enroll",
            outcome="Enrolled",
            identity_key=identity_key,
            confidence=selected.confidence,
            dimension=record.dimension,
        )
        return record

    def unenroll(self, identity_key: str) -> None:
        """Remove an identity from the store. No error if it is absent."""
        self.store.remove(identity_key)

    def verify(self, image_bytes: bytes) -> MatchResult:
        """Identify the single face in a photo against all enrollments.

        Args:
            image_bytes: Encoded query photo

        Returns:
            ExtractionFailed if the photo has no single clear face, otherwise
            the matcher's result (Matched, NoMatch or Ambiguous) verbatim.

        Raises:
            ExtractionUnavailable: If the extractor could not evaluate the
                photo. Never reported as NoMatch.
            DimensionMismatch: If the extracted descriptor does not fit the store.

        Example:
            >>> result = service.verify(photo_bytes)
            >>> print(result)
            Matched(identity_key='user-42', distance=0.3127)
        """
        selected = self.extract_face(image_bytes)

        if isinstance(selected, ExtractionFailed):
            log_decision(logger, "verify", selected)
            return selected

        dimension = selected.descriptor.shape[0]
        if dimension != self.store.dimension:
            raise DimensionMismatch(self.store.dimension, dimension)

        snapshot = self.store.get_all()
        result = self.matcher.resolve(selected.descriptor, snapshot)

        log_decision(
            logger,
            "verify",
            result,
            threshold=self.matcher.threshold,
            enrolled=len(snapshot),
        )
        return result

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"VerificationService(min_confidence={self.min_confidence:.2f}, "
            f"store={self.store}, matcher={self.matcher})"
        )
