"""Core modules for the identity resolution pipeline.

This package contains the interfaces, results, errors and utilities used by
every backend, store and matcher.
"""

from faceverify.core.config import Config, get_config
from faceverify.core.exceptions import (
    DimensionMismatch,
    EnrollmentRejected,
    ExtractionUnavailable,
    FaceVerifyError,
    StoreError,
)
from faceverify.core.interfaces import (
    EnrollmentRecord,
    EnrollmentSnapshot,
    EnrollmentStore,
    ExtractedFace,
    Extractor,
    FaceDescriptor,
    Matcher,
)
from faceverify.core.logging_config import get_logger, log_decision, setup_logging
from faceverify.core.results import (
    Ambiguous,
    ExtractionFailed,
    Matched,
    MatchResult,
    NoMatch,
)
from faceverify.core.utils import as_descriptor, decode_image, euclidean_distance

__all__ = [
    # Config
    "Config",
    "get_config",
    # Errors
    "FaceVerifyError",
    "DimensionMismatch",
    "ExtractionUnavailable",
    "EnrollmentRejected",
    "StoreError",
    # Interfaces
    "FaceDescriptor",
    "ExtractedFace",
    "EnrollmentRecord",
    "EnrollmentSnapshot",
    "Extractor",
    "EnrollmentStore",
    "Matcher",
    # Results
    "Matched",
    "NoMatch",
    "Ambiguous",
    "ExtractionFailed",
    "MatchResult",
    # Logging
    "setup_logging",
    "get_logger",
    "log_decision",
    # Utils
    "as_descriptor",
    "euclidean_distance",
    "decode_image",
]
