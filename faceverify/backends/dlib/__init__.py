"""dlib backend: HOG/CNN detection + ResNet-34 128-D descriptors."""

from faceverify.backends.dlib.extractor import DlibExtractor

__all__ = [
    "DlibExtractor",
]
