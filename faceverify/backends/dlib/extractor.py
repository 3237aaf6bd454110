"""Dlib extractor using the face_recognition library.

This module turns an encoded photo into 128-D face descriptors using dlib's
HOG or CNN detector and its ResNet-34 recognition model, via the
face_recognition library. Descriptors are returned raw (not normalized), so
the standard 0.6 Euclidean tolerance applies.
"""

from __future__ import annotations

from typing import List, Literal

import cv2
import face_recognition
import numpy as np

from faceverify.core.exceptions import ExtractionUnavailable
from faceverify.core.interfaces import ExtractedFace
from faceverify.core.logging_config import get_logger
from faceverify.core.utils import decode_image

logger = get_logger(__name__)

DESCRIPTOR_DIM = 128

# dlib/face_recognition doesn't expose detection scores, every detected
# face is reported with this fixed confidence
DETECTION_CONFIDENCE = 0.99


class DlibExtractor:
    """Face descriptor extractor backed by dlib.

    Supports two detection models:
    - HOG: Faster, suitable for CPU, less accurate
    - CNN: More accurate, requires GPU for reasonable speed

    Attributes:
        detection_model: Detection model ("hog" or "cnn")
        encoding_model: Landmark model used for encoding ("large" or "small")
        upsample: Number of times to upsample the image before detection
        num_jitters: Number of times to re-sample each face when encoding
        descriptor_dim: Dimension of output descriptors (128 for dlib)

    Example:
        >>> extractor = DlibExtractor(detection_model="hog")
        >>> faces = extractor.extract(open("photo.jpg", "rb").read())
        >>> assert all(f.descriptor.shape == (128,) for f in faces)
    """

    def __init__(
        self,
        detection_model: Literal["hog", "cnn"] = "hog",
        encoding_model: Literal["large", "small"] = "large",
        upsample: int = 1,
        num_jitters: int = 1,
    ):
        """Initialize dlib extractor.

        Args:
            detection_model: "hog" (faster, CPU-friendly) or "cnn" (more accurate)
            encoding_model: "large" (68 landmarks) or "small" (5 landmarks)
            upsample: Upsampling passes before detection. Higher values
                      find smaller faces but are slower.
            num_jitters: Re-sampling count per face. Higher values are more
                         accurate but slower.
        """
        if detection_model not in ("hog", "cnn"):
            raise ValueError(
                f"detection_model must be 'hog' or 'cnn', got '{detection_model}'"
            )
        if encoding_model not in ("large", "small"):
            raise ValueError(
                f"encoding_model must be 'large' or 'small', got '{encoding_model}'"
            )
        if upsample < 0:
            raise ValueError(f"upsample must be >= 0, got {upsample}")
        if num_jitters < 1:
            raise ValueError(f"num_jitters must be >= 1, got {num_jitters}")

        self.detection_model = detection_model
        self.encoding_model = encoding_model
        self.upsample = upsample
        self.num_jitters = num_jitters
        self.descriptor_dim = DESCRIPTOR_DIM

        logger.info(
            f"Initialized dlib extractor (detection={detection_model}, "
            f"encoding={encoding_model}, upsample={upsample}, num_jitters={num_jitters})"
        )

    def extract(self, image_bytes: bytes) -> List[ExtractedFace]:
        """Extract 128-D descriptors for every face in an encoded image.

        Args:
            image_bytes: Encoded image (JPEG, PNG, ...)

        Returns:
            List of ExtractedFace objects in detection order. Empty if no
            faces are detected.

        Raises:
            ExtractionUnavailable: If the image cannot be decoded or dlib fails.
        """
        image_bgr = decode_image(image_bytes)

        try:
            # face_recognition expects RGB
            image_rgb = cv2.cvtColor(image_bgr, cv2.COLOR_BGR2RGB)

            # (top, right, bottom, left) tuples
            face_locations = face_recognition.face_locations(
                image_rgb,
                number_of_times_to_upsample=self.upsample,
                model=self.detection_model,
            )

            if not face_locations:
                logger.debug("No faces detected")
                return []

            encodings = face_recognition.face_encodings(
                image_rgb,
                known_face_locations=face_locations,
                num_jitters=self.num_jitters,
                model=self.encoding_model,
            )

        except Exception as e:
            logger.error(f"Face extraction failed: {e}", exc_info=True)
            raise ExtractionUnavailable(f"dlib extraction failed: {e}") from e

        faces = []
        for encoding in encodings:
            descriptor = np.asarray(encoding, dtype=np.float32)

            if descriptor.shape != (self.descriptor_dim,):
                raise ExtractionUnavailable(
                    f"Unexpected descriptor shape {descriptor.shape}, "
                    f"expected ({self.descriptor_dim},)"
                )

            try:
                faces.append(
                    ExtractedFace(descriptor=descriptor, confidence=DETECTION_CONFIDENCE)
                )
            except ValueError as e:
                raise ExtractionUnavailable(
                    f"dlib produced an invalid descriptor: {e}"
                ) from e

        logger.debug(f"Extracted {len(faces)} face descriptor(s)")
        return faces

    def __repr__(self) -> str:
        """String representation of extractor."""
        return (
            f"DlibExtractor(detection_model='{self.detection_model}', "
            f"encoding_model='{self.encoding_model}', num_jitters={self.num_jitters}, "
            f"dim={self.descriptor_dim})"
        )
