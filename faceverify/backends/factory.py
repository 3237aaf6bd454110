"""Backend factory for the identity resolution pipeline.

This module is the composition root: it builds the extractor, enrollment
store and matcher once from a Config and wires them into a
VerificationService. Nothing else in the package creates these components
implicitly.

Backends:
- dlib: HOG/CNN detector + ResNet-34 descriptors (128-D)
- insightface: SCRFD detector + ArcFace descriptors (512-D)

Usage:
    service = create_service(get_config())
    result = service.verify(photo_bytes)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from faceverify.core.config import Config
from faceverify.core.exceptions import DimensionMismatch
from faceverify.core.interfaces import EnrollmentStore, Extractor, Matcher
from faceverify.core.logging_config import get_logger
from faceverify.matching.euclidean import EuclideanMatcher
from faceverify.services.verification import VerificationService
from faceverify.store.memory import InMemoryEnrollmentStore
from faceverify.store.pickle_store import PickleEnrollmentStore

logger = get_logger(__name__)

BackendType = Literal["dlib", "insightface"]


@dataclass
class BackendComponents:
    """Container for pipeline components.

    Attributes:
        extractor: Face descriptor extractor
        store: Enrollment store
        matcher: Matcher instance
        backend_type: Name of the backend ("dlib" or "insightface")
        descriptor_dim: Dimension of descriptors (128 or 512)
    """

    extractor: Extractor
    store: EnrollmentStore
    matcher: Matcher
    backend_type: str
    descriptor_dim: int


def create_extractor(config: Config) -> Extractor:
    """Create the extractor selected by config.backend.

    Model imports are deferred so that only the selected backend's
    libraries are loaded.

    Raises:
        ValueError: If the backend is unknown.
        DimensionMismatch: If config.descriptor_dim differs from the model's.
    """
    if config.backend == "dlib":
        from faceverify.backends.dlib.extractor import DlibExtractor

        logger.info(f"Creating dlib extractor (detector={config.detection_model})...")
        extractor = DlibExtractor(
            detection_model=config.detection_model,
            num_jitters=config.num_jitters,
        )
    elif config.backend == "insightface":
        from faceverify.backends.insightface.extractor import InsightFaceExtractor

        logger.info(f"Creating InsightFace extractor (model={config.model_pack})...")
        extractor = InsightFaceExtractor(
            model_pack=config.model_pack, ctx_id=config.ctx_id
        )
    else:
        raise ValueError(
            f"Unknown backend: '{config.backend}'. "
            f"Supported backends: 'dlib', 'insightface'"
        )

    if extractor.descriptor_dim != config.descriptor_dim:
        raise DimensionMismatch(config.descriptor_dim, extractor.descriptor_dim)

    return extractor


def create_store(config: Config) -> EnrollmentStore:
    """Create a pickle store at config.store_path, or an in-memory store."""
    if config.store_path is None:
        return InMemoryEnrollmentStore(dimension=config.descriptor_dim)

    return PickleEnrollmentStore(config.store_path, dimension=config.descriptor_dim)


def create_matcher(config: Config) -> Matcher:
    """Create the matcher selected by config.matcher.

    Raises:
        ValueError: If the matcher type is unknown.
    """
    if config.matcher == "euclidean":
        return EuclideanMatcher(threshold=config.match_threshold)

    if config.matcher == "faiss":
        # faiss is only loaded when selected
        from faceverify.matching.faiss_matcher import FaissMatcher

        return FaissMatcher(threshold=config.match_threshold)

    raise ValueError(
        f"Unknown matcher: '{config.matcher}'. Supported matchers: 'euclidean', 'faiss'"
    )


def create_backend(config: Config | None = None) -> BackendComponents:
    """Create all pipeline components for the configured backend.

    Args:
        config: Configuration object. If None, loads from .env

    Returns:
        BackendComponents with extractor, store and matcher.

    Example:
        >>> components = create_backend(Config(backend="dlib", store_path=None))
        >>> components.descriptor_dim
        128
    """
    if config is None:
        from faceverify.core.config import get_config

        config = get_config()

    extractor = create_extractor(config)
    store = create_store(config)
    matcher = create_matcher(config)

    logger.info(f"{config.backend} backend created successfully")

    return BackendComponents(
        extractor=extractor,
        store=store,
        matcher=matcher,
        backend_type=config.backend,
        descriptor_dim=config.descriptor_dim,
    )


def create_service(config: Config | None = None) -> VerificationService:
    """Create a ready-to-use VerificationService.

    Args:
        config: Configuration object. If None, loads from .env

    Returns:
        VerificationService wired with the configured components.
    """
    if config is None:
        from faceverify.core.config import get_config

        config = get_config()

    components = create_backend(config)

    return VerificationService(
        extractor=components.extractor,
        store=components.store,
        matcher=components.matcher,
        min_confidence=config.min_confidence,
    )
