"""InsightFace extractor (SCRFD detection + ArcFace recognition).

This module turns an encoded photo into L2-normalized 512-D ArcFace
descriptors using InsightFace's FaceAnalysis API. Detection scores are
reported as confidence.
"""

from __future__ import annotations

from typing import List, Tuple

import numpy as np
from insightface.app import FaceAnalysis

from faceverify.core.exceptions import ExtractionUnavailable
from faceverify.core.interfaces import ExtractedFace
from faceverify.core.logging_config import get_logger
from faceverify.core.utils import decode_image

logger = get_logger(__name__)

DESCRIPTOR_DIM = 512


class InsightFaceExtractor:
    """Face descriptor extractor backed by InsightFace.

    Attributes:
        app: InsightFace FaceAnalysis instance
        ctx_id: Device context (-1=CPU, 0+=GPU)
        det_size: Detection input size
        descriptor_dim: Dimension of output descriptors (512 for ArcFace)

    Example:
        >>> extractor = InsightFaceExtractor(model_pack="buffalo_l")
        >>> faces = extractor.extract(photo_bytes)
        >>> print([round(f.confidence, 2) for f in faces])
    """

    def __init__(
        self,
        model_pack: str = "buffalo_l",
        ctx_id: int = -1,
        det_size: Tuple[int, int] = (640, 640),
    ):
        """Initialize InsightFace extractor.

        Args:
            model_pack: InsightFace model pack name
            ctx_id: Device context ID (-1 for CPU, 0+ for GPU)
            det_size: Detection input size as (width, height)

        Raises:
            ExtractionUnavailable: If the models fail to load.
        """
        self.ctx_id = ctx_id
        self.det_size = det_size
        self.model_pack = model_pack
        self.descriptor_dim = DESCRIPTOR_DIM

        logger.info(
            f"Initializing InsightFace extractor (model={model_pack}, "
            f"device={'GPU:' + str(ctx_id) if ctx_id >= 0 else 'CPU'}, "
            f"det_size={det_size})"
        )

        try:
            self.app = FaceAnalysis(
                name=model_pack,
                allowed_modules=["detection", "recognition"],
                providers=(
                    ["CUDAExecutionProvider", "CPUExecutionProvider"]
                    if ctx_id >= 0
                    else ["CPUExecutionProvider"]
                ),
            )
            self.app.prepare(ctx_id=ctx_id, det_size=det_size)

        except Exception as e:
            logger.error(f"Failed to initialize InsightFace: {e}", exc_info=True)
            raise ExtractionUnavailable(f"Could not load InsightFace models: {e}") from e

        logger.info("InsightFace extractor initialized successfully")

    def extract(self, image_bytes: bytes) -> List[ExtractedFace]:
        """Extract 512-D descriptors for every face in an encoded image.

        Args:
            image_bytes: Encoded image (JPEG, PNG, ...)

        Returns:
            List of ExtractedFace objects sorted by confidence (descending).
            Empty if no faces are detected.

        Raises:
            ExtractionUnavailable: If the image cannot be decoded or inference fails.
        """
        image_bgr = decode_image(image_bytes)

        try:
            detected = self.app.get(image_bgr)
        except Exception as e:
            logger.error(f"Face extraction failed: {e}", exc_info=True)
            raise ExtractionUnavailable(f"InsightFace extraction failed: {e}") from e

        faces = []
        for face in detected:
            embedding = getattr(face, "normed_embedding", None)
            if embedding is None:
                raise ExtractionUnavailable("Recognition model produced no embedding")

            try:
                score = float(np.clip(face.det_score, 0.0, 1.0))
                faces.append(
                    ExtractedFace(
                        descriptor=np.asarray(embedding, dtype=np.float32),
                        confidence=score,
                    )
                )
            except ValueError as e:
                raise ExtractionUnavailable(
                    f"InsightFace produced an invalid descriptor: {e}"
                ) from e

        faces.sort(key=lambda f: f.confidence, reverse=True)

        logger.debug(f"Extracted {len(faces)} face descriptor(s)")
        return faces

    def __repr__(self) -> str:
        """String representation of extractor."""
        return (
            f"InsightFaceExtractor(model_pack='{self.model_pack}', "
            f"ctx_id={self.ctx_id}, det_size={self.det_size})"
        )
