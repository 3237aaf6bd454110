"""InsightFace backend: SCRFD detection + ArcFace 512-D descriptors."""

from faceverify.backends.insightface.extractor import InsightFaceExtractor

__all__ = [
    "InsightFaceExtractor",
]
