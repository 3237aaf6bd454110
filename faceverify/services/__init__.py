"""High-level services for identity resolution.

This package contains the service that orchestrates extraction,
enrollment storage and matching.
"""

from faceverify.services.verification import VerificationService

__all__ = [
    "VerificationService",
]
