"""Unit tests for the verification service."""

from __future__ import annotations

import threading
from unittest.mock import Mock

import numpy as np
import pytest

from conftest import FakeExtractor, face, make_descriptor

from faceverify.core.exceptions import (
    DimensionMismatch,
    EnrollmentRejected,
    ExtractionUnavailable,
)
from faceverify.core.results import (
    LOW_CONFIDENCE,
    MULTIPLE_FACES,
    NO_FACE,
    Ambiguous,
    ExtractionFailed,
    Matched,
    NoMatch,
)
from faceverify.matching.euclidean import EuclideanMatcher
from faceverify.services.verification import VerificationService
from faceverify.store.memory import InMemoryEnrollmentStore


@pytest.fixture
def store():
    return InMemoryEnrollmentStore(dimension=128)


@pytest.fixture
def service(extractor, store, matcher_cls):
    """Create a verification service with a fake extractor."""
    return VerificationService(
        extractor=extractor,
        store=store,
        matcher=matcher_cls(threshold=0.6),
        min_confidence=0.5,
    )


def test_verify_no_face(service):
    """Test a photo with no detectable face."""
    result = service.verify(b"empty-room.jpg")

    assert result == ExtractionFailed(NO_FACE, num_faces=0)
    assert not result.is_match


def test_verify_multiple_faces_even_if_one_is_enrolled(service):
    """Test that a group photo is rejected regardless of store contents."""
    service.enroll("alice", b"alice.jpg")

    result = service.verify(b"group.jpg")

    assert isinstance(result, ExtractionFailed)
    assert result.reason == MULTIPLE_FACES
    assert result.num_faces == 2


def test_verify_low_confidence(service):
    service.enroll("alice", b"alice.jpg")

    result = service.verify(b"blurry.jpg")

    assert isinstance(result, ExtractionFailed)
    assert result.reason == LOW_CONFIDENCE
    assert result.confidence == pytest.approx(0.2)


def test_verify_empty_store(service):
    assert service.verify(b"alice.jpg") == NoMatch()


def test_enroll_then_verify_same_photo(service):
    """Test that the enrollment photo resolves to its own identity at distance 0."""
    record = service.enroll("alice", b"alice.jpg")
    service.enroll("bob", b"bob.jpg")

    result = service.verify(b"alice.jpg")

    assert record.identity_key == "alice"
    assert isinstance(result, Matched)
    assert result.identity_key == "alice"
    assert result.distance == pytest.approx(0.0, abs=1e-6)


def test_verify_live_photo_within_threshold(service):
    service.enroll("alice", b"alice.jpg")
    service.enroll("bob", b"bob.jpg")

    result = service.verify(b"alice-live.jpg")

    assert result.identity_key == "alice"
    assert result.distance == pytest.approx(0.2, rel=1e-5)


def test_verify_stranger(service):
    service.enroll("alice", b"alice.jpg")
    service.enroll("bob", b"bob.jpg")

    result = service.verify(b"stranger.jpg")

    assert isinstance(result, NoMatch)
    assert result.best_distance > 0.6


def test_verify_is_idempotent(service):
    """Test repeated verification of identical bytes with no store change."""
    service.enroll("alice", b"alice.jpg")
    service.enroll("bob", b"bob.jpg")

    for photo in [b"alice-live.jpg", b"stranger.jpg", b"group.jpg"]:
        assert service.verify(photo) == service.verify(photo)


def test_verify_ambiguous(photos, store, matcher_cls):
    """Test two enrolled identities equidistant from the query."""
    photos[b"twin-a.jpg"] = [face(make_descriptor(0.3))]
    photos[b"twin-b.jpg"] = [face(make_descriptor(0.0, 0.3))]
    photos[b"between.jpg"] = [face(make_descriptor())]
    service = VerificationService(FakeExtractor(photos), store, matcher_cls())

    service.enroll("twin-a", b"twin-a.jpg")
    service.enroll("twin-b", b"twin-b.jpg")
    result = service.verify(b"between.jpg")

    assert isinstance(result, Ambiguous)
    assert result.identity_keys == ("twin-a", "twin-b")


@pytest.mark.parametrize(
    "photo, reason",
    [
        (b"empty-room.jpg", NO_FACE),
        (b"group.jpg", MULTIPLE_FACES),
        (b"blurry.jpg", LOW_CONFIDENCE),
    ],
)
def test_enroll_rejected_leaves_store_unchanged(service, store, photo, reason):
    """Test that a rejected enrollment never creates or replaces a record."""
    original = service.enroll("alice", b"alice.jpg")

    with pytest.raises(EnrollmentRejected) as exc_info:
        service.enroll("alice", photo)
    with pytest.raises(EnrollmentRejected):
        service.enroll("bob", photo)

    assert exc_info.value.reason == reason
    assert exc_info.value.result.reason == reason
    assert store.get("alice") is original
    assert store.keys() == ["alice"]


def test_re_enroll_replaces_descriptor(service, store):
    """Test that re-enrollment moves the identity to the new photo."""
    service.enroll("alice", b"alice.jpg")
    service.enroll("alice", b"stranger.jpg")

    assert len(store) == 1
    assert service.verify(b"stranger.jpg").identity_key == "alice"
    assert isinstance(service.verify(b"alice.jpg"), NoMatch)


def test_unenroll(service, store):
    service.enroll("alice", b"alice.jpg")

    service.unenroll("alice")
    service.unenroll("alice")

    assert len(store) == 0
    assert service.verify(b"alice.jpg") == NoMatch()


def test_extraction_unavailable_propagates(service):
    """Test that an undecodable photo raises instead of returning NoMatch."""
    service.enroll("alice", b"alice.jpg")

    with pytest.raises(ExtractionUnavailable):
        service.verify(b"\x00corrupt")
    with pytest.raises(ExtractionUnavailable):
        service.enroll("bob", b"\x00corrupt")

    assert service.store.keys() == ["alice"]


def test_extraction_happens_once_per_call(service, extractor):
    """Test that verification never re-extracts enrolled photos."""
    service.enroll("alice", b"alice.jpg")
    service.enroll("bob", b"bob.jpg")
    extractor.calls.clear()

    service.verify(b"alice-live.jpg")
    service.verify(b"alice-live.jpg")

    assert extractor.calls == [b"alice-live.jpg", b"alice-live.jpg"]


def test_enroll_wrong_dimension(service, store):
    """Test a 64-D descriptor offered to a 128-D store."""
    with pytest.raises(DimensionMismatch):
        service.enroll("alice", b"small-face.jpg")

    assert len(store) == 0


def test_verify_wrong_dimension(service):
    with pytest.raises(DimensionMismatch):
        service.verify(b"small-face.jpg")


def test_extractor_store_dimension_mismatch(photos):
    """Test that a 512-D model cannot be wired to a 128-D store."""
    extractor = FakeExtractor(photos, descriptor_dim=512)

    with pytest.raises(DimensionMismatch) as exc_info:
        VerificationService(extractor, InMemoryEnrollmentStore(dimension=128), EuclideanMatcher())

    assert exc_info.value.expected == 128
    assert exc_info.value.actual == 512


@pytest.mark.parametrize("min_confidence", [-0.1, 1.5])
def test_invalid_min_confidence(extractor, store, min_confidence):
    with pytest.raises(ValueError):
        VerificationService(extractor, store, EuclideanMatcher(), min_confidence=min_confidence)


def test_matcher_receives_store_snapshot(extractor, store):
    """Test that the matcher result is returned verbatim."""
    matcher = Mock()
    matcher.threshold = 0.6
    matcher.resolve.return_value = Matched("carol", 0.42)
    service = VerificationService(extractor, store, matcher)
    store.put("carol", make_descriptor(9.0))

    result = service.verify(b"alice.jpg")

    assert result == Matched("carol", 0.42)
    query, snapshot = matcher.resolve.call_args[0]
    assert query[0] == 1.0
    assert [r.identity_key for r in snapshot] == ["carol"]


def test_verify_during_concurrent_re_enrollment(photos, store):
    """Test that verification sees the old or new descriptor, never neither."""
    photos[b"alice-a.jpg"] = [face(make_descriptor(1.0))]
    photos[b"alice-b.jpg"] = [face(make_descriptor(1.0, 0.1))]
    service = VerificationService(FakeExtractor(photos), store, EuclideanMatcher())
    service.enroll("alice", b"alice-a.jpg")

    stop = threading.Event()
    results = []

    def re_enroll():
        while not stop.is_set():
            service.enroll("alice", b"alice-b.jpg")
            service.enroll("alice", b"alice-a.jpg")

    writer = threading.Thread(target=re_enroll)
    writer.start()
    try:
        for _ in range(300):
            results.append(service.verify(b"alice.jpg"))
    finally:
        stop.set()
        writer.join()

    assert all(isinstance(r, Matched) and r.identity_key == "alice" for r in results)
    distances = {round(r.distance, 4) for r in results}
    assert distances <= {0.0, 0.1}


def test_repr(service):
    assert "VerificationService" in repr(service)
    assert "min_confidence=0.50" in repr(service)


def test_descriptor_is_float32(service, store):
    service.enroll("alice", b"alice.jpg")
    assert store.get("alice").descriptor.dtype == np.float32
