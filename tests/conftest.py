"""Shared fixtures for identity resolution tests."""

from __future__ import annotations

from typing import Dict, List, Sequence

import numpy as np
import pytest

from faceverify.core.exceptions import ExtractionUnavailable
from faceverify.core.interfaces import ExtractedFace
from faceverify.matching.euclidean import EuclideanMatcher

DIM = 128

CONFIG_ENV_VARS = [
    "BACKEND",
    "MATCH_THRESHOLD",
    "MIN_CONFIDENCE",
    "DESCRIPTOR_DIM",
    "MATCHER",
    "STORE_PATH",
    "DETECTION_MODEL",
    "NUM_JITTERS",
    "CTX_ID",
    "MODEL_PACK",
    "LOG_LEVEL",
]


def make_descriptor(*leading: float, dim: int = DIM) -> np.ndarray:
    """Descriptor of zeros with the given leading values."""
    d = np.zeros(dim, dtype=np.float32)
    d[: len(leading)] = leading
    return d


def face(descriptor: np.ndarray, confidence: float = 0.99) -> ExtractedFace:
    return ExtractedFace(descriptor=descriptor, confidence=confidence)


class FakeExtractor:
    """Extractor returning canned faces keyed by the exact image bytes.

    Unknown bytes raise ExtractionUnavailable, like an undecodable image.
    """

    def __init__(self, photos: Dict[bytes, Sequence[ExtractedFace]], descriptor_dim: int = DIM):
        self.photos = dict(photos)
        self.descriptor_dim = descriptor_dim
        self.calls: List[bytes] = []

    def extract(self, image_bytes: bytes) -> List[ExtractedFace]:
        self.calls.append(image_bytes)
        if image_bytes not in self.photos:
            raise ExtractionUnavailable("Could not decode image bytes")
        return list(self.photos[image_bytes])


@pytest.fixture
def photos():
    """Canned photos for the fake extractor."""
    return {
        b"alice.jpg": [face(make_descriptor(1.0))],
        b"alice-live.jpg": [face(make_descriptor(1.0, 0.2))],
        b"bob.jpg": [face(make_descriptor(0.0, 1.0))],
        b"stranger.jpg": [face(make_descriptor(0.0, 0.0, 5.0))],
        b"empty-room.jpg": [],
        b"group.jpg": [face(make_descriptor(1.0)), face(make_descriptor(0.0, 1.0))],
        b"blurry.jpg": [face(make_descriptor(1.0), confidence=0.2)],
        b"small-face.jpg": [face(make_descriptor(1.0, dim=64))],
    }


@pytest.fixture
def extractor(photos):
    return FakeExtractor(photos)


@pytest.fixture(params=["euclidean", "faiss"])
def matcher_cls(request):
    """Every matcher implementation, so decision rules are checked for each."""
    if request.param == "faiss":
        pytest.importorskip("faiss")
        from faceverify.matching.faiss_matcher import FaissMatcher

        return FaissMatcher
    return EuclideanMatcher


@pytest.fixture
def clean_env(monkeypatch):
    """Remove configuration variables so defaults apply."""
    for name in CONFIG_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch
