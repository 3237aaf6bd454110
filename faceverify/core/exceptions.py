"""Exception hierarchy for the identity resolution pipeline.

Only conditions that stop an operation from being evaluated are raised.
Non-matches, ambiguous matches and rejected query photos are ordinary
results (see ``faceverify.core.results``).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from faceverify.core.results import ExtractionFailed


class FaceVerifyError(Exception):
    """Base class for all identity resolution errors."""

    pass


class DimensionMismatch(FaceVerifyError, ValueError):
    """Raised when a descriptor length differs from the configured dimension."""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Expected descriptor dimension {expected}, got {actual}"
        )


class ExtractionUnavailable(FaceVerifyError, RuntimeError):
    """Raised when the extractor could not evaluate an image.

    Covers corrupt or undecodable images and model failures. Distinct from
    a photo that was evaluated and contained no usable face.
    """

    pass


class EnrollmentRejected(FaceVerifyError):
    """Raised when an enrollment photo does not show exactly one clear face."""

    def __init__(self, result: ExtractionFailed):
        self.result = result
        self.reason = result.reason
        super().__init__(f"Enrollment photo rejected: {result.reason}")


class StoreError(FaceVerifyError):
    """Raised when persisted enrollment data cannot be read back."""

    pass
