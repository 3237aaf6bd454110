"""Backend implementations for identity resolution.

This package contains the extractor backends:
- dlib: HOG/CNN detector + ResNet-34 descriptors (128-D)
- insightface: SCRFD detector + ArcFace descriptors (512-D)

Use the factory module to create and wire pipeline components.
"""

from faceverify.backends.factory import (
    BackendComponents,
    BackendType,
    create_backend,
    create_extractor,
    create_matcher,
    create_service,
    create_store,
)

__all__ = [
    "create_backend",
    "create_service",
    "create_extractor",
    "create_store",
    "create_matcher",
    "BackendComponents",
    "BackendType",
]
