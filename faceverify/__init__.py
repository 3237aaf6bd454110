"""Biometric identity resolution.

Turns photos into face descriptors, keeps one reference descriptor per
enrolled identity, and resolves query photos to an enrolled identity (or no
match) under a Euclidean distance threshold.

Example:
    >>> from faceverify import create_service
    >>> service = create_service()
    >>> service.enroll("user-42", open("enroll.jpg", "rb").read())
    >>> service.verify(open("live.jpg", "rb").read())
    Matched(identity_key='user-42', distance=0.3127)
"""

from faceverify.backends.factory import create_backend, create_service
from faceverify.core.config import Config
from faceverify.core.exceptions import (
    DimensionMismatch,
    EnrollmentRejected,
    ExtractionUnavailable,
    FaceVerifyError,
    StoreError,
)
from faceverify.core.results import (
    Ambiguous,
    ExtractionFailed,
    Matched,
    MatchResult,
    NoMatch,
)
from faceverify.matching.euclidean import EuclideanMatcher
from faceverify.services.verification import VerificationService
from faceverify.store import InMemoryEnrollmentStore, PickleEnrollmentStore

__version__ = "0.1.0"

__all__ = [
    "Config",
    "create_backend",
    "create_service",
    "VerificationService",
    "EuclideanMatcher",
    "InMemoryEnrollmentStore",
    "PickleEnrollmentStore",
    "Matched",
    "NoMatch",
    "Ambiguous",
    "ExtractionFailed",
    "MatchResult",
    "FaceVerifyError",
    "DimensionMismatch",
    "ExtractionUnavailable",
    "EnrollmentRejected",
    "StoreError",
]
