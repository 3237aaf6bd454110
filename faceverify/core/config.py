"""Configuration management for the identity resolution pipeline.

This module loads configuration from environment variables (.env file) and
provides a centralized Config class for accessing application settings.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

VALID_BACKENDS = ("dlib", "insightface")
VALID_MATCHERS = ("euclidean", "faiss")
VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
VALID_MODEL_PACKS = ("buffalo_l", "buffalo_m", "buffalo_s", "buffalo_sc")

# Descriptor length produced by each backend's recognition model
BACKEND_DIMENSIONS = {"dlib": 128, "insightface": 512}

# Default Euclidean thresholds. ArcFace descriptors are L2-normalized, so
# distances live in [0, 2] and 1.1 corresponds to cosine similarity ~0.4
BACKEND_THRESHOLDS = {"dlib": 0.6, "insightface": 1.1}


@dataclass
class Config:
    """Application configuration loaded from environment variables.

    Attributes:
        backend: Extraction backend ("dlib" or "insightface")
        match_threshold: Maximum Euclidean distance accepted as a match
        min_confidence: Detection confidence floor (0.0-1.0)
        descriptor_dim: Descriptor length fixed by the extraction model
        matcher: Matcher implementation ("euclidean" or "faiss")
        store_path: Pickle file for enrolled descriptors (None = in-memory only)
        detection_model: dlib detector model ("hog" or "cnn")
        num_jitters: dlib re-sampling count when encoding a face
        ctx_id: InsightFace device context ID (-1 for CPU, 0+ for GPU)
        model_pack: InsightFace model pack name
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    backend: str = "dlib"
    match_threshold: float = 0.6
    min_confidence: float = 0.5
    descriptor_dim: int = 128
    matcher: str = "euclidean"
    store_path: Optional[Path] = None
    detection_model: str = "hog"
    num_jitters: int = 1
    ctx_id: int = -1
    model_pack: str = "buffalo_l"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> Config:
        """Load configuration from environment variables.

        Returns:
            Config instance with values from environment or defaults.

        Raises:
            ValueError: If environment variables are invalid.
        """
        backend = os.getenv("BACKEND", "dlib").lower()
        if backend not in VALID_BACKENDS:
            raise ValueError(f"BACKEND must be one of {VALID_BACKENDS}, got {backend}")

        # Matching
        match_threshold = float(
            os.getenv("MATCH_THRESHOLD", str(BACKEND_THRESHOLDS[backend]))
        )
        if match_threshold <= 0.0:
            raise ValueError(f"MATCH_THRESHOLD must be > 0, got {match_threshold}")

        min_confidence = float(os.getenv("MIN_CONFIDENCE", "0.5"))
        if not 0.0 <= min_confidence <= 1.0:
            raise ValueError(
                f"MIN_CONFIDENCE must be between 0.0 and 1.0, got {min_confidence}"
            )

        descriptor_dim = int(
            os.getenv("DESCRIPTOR_DIM", str(BACKEND_DIMENSIONS[backend]))
        )
        if descriptor_dim < 1:
            raise ValueError(f"DESCRIPTOR_DIM must be >= 1, got {descriptor_dim}")

        matcher = os.getenv("MATCHER", "euclidean").lower()
        if matcher not in VALID_MATCHERS:
            raise ValueError(f"MATCHER must be one of {VALID_MATCHERS}, got {matcher}")

        # Storage, an empty value keeps enrollments in memory only
        store_env = os.getenv("STORE_PATH", "data/enrollments.pkl").strip()
        store_path = Path(store_env) if store_env else None

        # dlib backend
        detection_model = os.getenv("DETECTION_MODEL", "hog").lower()
        if detection_model not in ("hog", "cnn"):
            raise ValueError(
                f"DETECTION_MODEL must be 'hog' or 'cnn', got {detection_model}"
            )

        num_jitters = int(os.getenv("NUM_JITTERS", "1"))
        if num_jitters < 1:
            raise ValueError(f"NUM_JITTERS must be >= 1, got {num_jitters}")

        # InsightFace backend
        ctx_id = int(os.getenv("CTX_ID", "-1"))

        model_pack = os.getenv("MODEL_PACK", "buffalo_l")
        if model_pack not in VALID_MODEL_PACKS:
            raise ValueError(
                f"MODEL_PACK must be one of {VALID_MODEL_PACKS}, got {model_pack}"
            )

        log_level = os.getenv("LOG_LEVEL", "INFO").upper()
        if log_level not in VALID_LOG_LEVELS:
            raise ValueError(
                f"LOG_LEVEL must be one of {VALID_LOG_LEVELS}, got {log_level}"
            )

        return cls(
            backend=backend,
            match_threshold=match_threshold,
            min_confidence=min_confidence,
            descriptor_dim=descriptor_dim,
            matcher=matcher,
            store_path=store_path,
            detection_model=detection_model,
            num_jitters=num_jitters,
            ctx_id=ctx_id,
            model_pack=model_pack,
            log_level=log_level,
        )

    def __repr__(self) -> str:
        """Return string representation of config."""
        return (
            f"Config(\n"
            f"  Backend: {self.backend} (dim={self.descriptor_dim}),\n"
            f"  Matcher: {self.matcher},\n"
            f"  Threshold: {self.match_threshold},\n"
            f"  Min Confidence: {self.min_confidence},\n"
            f"  Store: {self.store_path or 'in-memory'},\n"
            f"  Log Level: {self.log_level}\n"
            f")"
        )


# Global config instance (lazy-loaded), used by command line entry points only
_config: Config | None = None


def get_config() -> Config:
    """Get global config instance (singleton pattern).

    Returns:
        Config instance loaded from environment.
    """
    global _config
    if _config is None:
        _config = Config.from_env()
    return _config
