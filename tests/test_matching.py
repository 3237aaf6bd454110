"""Tests for match decisions.

Every test using the ``matcher_cls`` fixture runs against both the exhaustive
Euclidean matcher and the FAISS matcher, which must agree on every decision.
"""

from __future__ import annotations

import random

import numpy as np
import pytest

from conftest import make_descriptor

from faceverify.core.exceptions import DimensionMismatch
from faceverify.core.interfaces import EnrollmentRecord, Matcher
from faceverify.core.results import Ambiguous, Matched, NoMatch
from faceverify.matching.euclidean import (
    EuclideanMatcher,
    decide,
    validate_matcher_params,
)
from faceverify.store.memory import InMemoryEnrollmentStore


def record(key, *leading):
    return EnrollmentRecord(identity_key=key, descriptor=make_descriptor(*leading))


def test_satisfies_protocol(matcher_cls):
    assert isinstance(matcher_cls(), Matcher)


def test_empty_snapshot_is_no_match(matcher_cls):
    """Test that an empty store never produces a match."""
    matcher = matcher_cls()
    store = InMemoryEnrollmentStore(dimension=128)

    result = matcher.resolve(make_descriptor(1.0), store.get_all())

    assert result == NoMatch()
    assert result.best_distance is None


def test_exact_descriptor_matches_at_zero(matcher_cls):
    matcher = matcher_cls()
    records = [record("alice", 1.0), record("bob", 0.0, 1.0)]

    result = matcher.resolve(make_descriptor(1.0), records)

    assert isinstance(result, Matched)
    assert result.identity_key == "alice"
    assert result.distance == pytest.approx(0.0, abs=1e-6)


@pytest.mark.parametrize(
    "offset, expected",
    [(0.59, Matched), (0.61, NoMatch)],
)
def test_threshold_boundary(matcher_cls, offset, expected):
    """Test distances just inside and just outside the threshold."""
    matcher = matcher_cls(threshold=0.6)
    records = [record("alice", 1.0)]

    result = matcher.resolve(make_descriptor(1.0, offset), records)

    assert isinstance(result, expected)


def test_distance_equal_to_threshold_matches(matcher_cls):
    """Test that the threshold itself is inclusive."""
    matcher = matcher_cls(threshold=0.5)
    records = [record("alice", 1.0)]

    result = matcher.resolve(make_descriptor(1.0, 0.5), records)

    assert isinstance(result, Matched)
    assert result.distance == pytest.approx(0.5)


def test_no_match_reports_best_distance(matcher_cls):
    matcher = matcher_cls(threshold=0.6)
    records = [record("alice", 1.0), record("bob", 0.0, 1.0)]

    result = matcher.resolve(make_descriptor(0.0, 0.0, 3.0), records)

    assert isinstance(result, NoMatch)
    assert result.best_distance == pytest.approx(np.sqrt(10.0), rel=1e-5)


def test_nearest_wins_not_first(matcher_cls):
    """Test that a later, closer record beats an earlier one within threshold."""
    matcher = matcher_cls(threshold=0.6)
    records = [
        record("alice", 1.0),
        record("alicia", 1.0, 0.1),
    ]

    # 0.5 from alice, 0.4 from alicia: both within threshold
    result = matcher.resolve(make_descriptor(1.0, 0.5), records)

    assert result == Matched("alicia", pytest.approx(0.4, rel=1e-5))


def test_tie_within_threshold_is_ambiguous(matcher_cls):
    """Test two identities at exactly the same distance."""
    matcher = matcher_cls(threshold=0.6)
    records = [record("bob", 0.0, 0.3), record("alice", 0.3)]

    result = matcher.resolve(np.zeros(128, dtype=np.float32), records)

    assert isinstance(result, Ambiguous)
    assert result.identity_keys == ("alice", "bob")
    assert result.distance == pytest.approx(0.3, rel=1e-5)
    assert not result.is_match


def test_tie_above_threshold_is_no_match(matcher_cls):
    matcher = matcher_cls(threshold=0.6)
    records = [record("alice", 0.7), record("bob", 0.0, 0.7)]

    result = matcher.resolve(np.zeros(128, dtype=np.float32), records)

    assert isinstance(result, NoMatch)
    assert result.best_distance == pytest.approx(0.7, rel=1e-5)


def test_near_tie_outside_epsilon_matches(matcher_cls):
    """Test that a small but real gap still picks the closer identity."""
    matcher = matcher_cls(threshold=0.6)
    records = [record("alice", 0.3), record("bob", 0.0, 0.301)]

    result = matcher.resolve(np.zeros(128, dtype=np.float32), records)

    assert isinstance(result, Matched)
    assert result.identity_key == "alice"


def test_result_independent_of_order(matcher_cls):
    """Test that shuffling the enrollment order never changes the outcome."""
    matcher = matcher_cls(threshold=0.6)
    rng = np.random.default_rng(11)
    records = [
        EnrollmentRecord(f"id-{i}", rng.normal(scale=0.1, size=128).astype(np.float32))
        for i in range(25)
    ]
    queries = [r.descriptor + np.float32(0.001) for r in records[:5]]
    queries.append(np.full(128, 10.0, dtype=np.float32))

    expected = [matcher.resolve(q, records) for q in queries]

    shuffler = random.Random(5)
    for _ in range(5):
        shuffled = list(records)
        shuffler.shuffle(shuffled)
        assert [matcher.resolve(q, shuffled) for q in queries] == expected


def test_query_dimension_mismatch(matcher_cls):
    matcher = matcher_cls()
    records = [record("alice", 1.0)]

    with pytest.raises(DimensionMismatch) as exc_info:
        matcher.resolve(np.zeros(64, dtype=np.float32), records)

    assert exc_info.value.expected == 128
    assert exc_info.value.actual == 64


@pytest.mark.parametrize("threshold", [0.0, -0.5])
def test_invalid_threshold(matcher_cls, threshold):
    with pytest.raises(ValueError):
        matcher_cls(threshold=threshold)


def test_invalid_tie_epsilon(matcher_cls):
    with pytest.raises(ValueError):
        matcher_cls(tie_epsilon=-1e-3)


def test_matches_track_store_updates(matcher_cls):
    """Test that re-enrollment is visible to the next query."""
    matcher = matcher_cls(threshold=0.6)
    store = InMemoryEnrollmentStore(dimension=128)
    store.put("alice", make_descriptor(1.0))

    query = make_descriptor(0.0, 0.0, 1.0)
    assert isinstance(matcher.resolve(query, store.get_all()), NoMatch)

    store.put("alice", make_descriptor(0.0, 0.0, 1.0))
    assert matcher.resolve(query, store.get_all()).identity_key == "alice"

    store.remove("alice")
    assert matcher.resolve(query, store.get_all()) == NoMatch()


class TestDecide:
    """Tests for the shared decision rule."""

    def test_empty(self):
        assert decide([], np.zeros(0), 0.6, 1e-6) == NoMatch()

    def test_single_within_threshold(self):
        result = decide(["alice"], np.array([0.2]), 0.6, 1e-6)
        assert result == Matched("alice", 0.2)

    def test_three_way_tie(self):
        result = decide(["c", "a", "b"], np.array([0.4, 0.4, 0.4]), 0.6, 1e-6)
        assert result == Ambiguous(identity_keys=("a", "b", "c"), distance=0.4)

    def test_tie_epsilon_zero_requires_exact_equality(self):
        result = decide(["a", "b"], np.array([0.4, 0.4 + 1e-9]), 0.6, 0.0)
        assert result == Matched("a", 0.4)

    def test_tie_at_runner_up_is_ignored(self):
        """Test that only ties at the minimum are ambiguous."""
        result = decide(["a", "b", "c"], np.array([0.1, 0.5, 0.5]), 0.6, 1e-6)
        assert result == Matched("a", 0.1)


@pytest.mark.parametrize(
    "threshold, tie_epsilon",
    [(0.0, 1e-6), (-0.1, 1e-6), (0.6, -1e-9)],
)
def test_validate_matcher_params_rejects(threshold, tie_epsilon):
    with pytest.raises(ValueError):
        validate_matcher_params(threshold, tie_epsilon)


def test_validate_matcher_params_accepts_zero_epsilon():
    validate_matcher_params(0.6, 0.0)


class TestEuclideanMatcher:
    def test_distances_in_record_order(self):
        matcher = EuclideanMatcher()
        records = [record("alice", 3.0), record("bob", 0.0, 4.0)]

        keys, distances = matcher.distances(np.zeros(128), records)

        assert keys == ["alice", "bob"]
        assert distances.tolist() == pytest.approx([3.0, 4.0])

    def test_repr(self):
        assert repr(EuclideanMatcher(threshold=0.5)) == (
            "EuclideanMatcher(threshold=0.5, tie_epsilon=1e-06)"
        )


class TestFaissIndexCache:
    """Tests for reuse of the FAISS index across queries."""

    @pytest.fixture
    def matcher(self):
        pytest.importorskip("faiss")
        from faceverify.matching.faiss_matcher import FaissMatcher

        return FaissMatcher(threshold=0.6)

    def test_index_reused_for_same_version(self, matcher):
        store = InMemoryEnrollmentStore(dimension=128)
        store.put("alice", make_descriptor(1.0))

        matcher.resolve(make_descriptor(1.0), store.get_all())
        first = matcher._cached
        matcher.resolve(make_descriptor(0.0, 1.0), store.get_all())

        assert matcher._cached is first

    def test_index_rebuilt_after_mutation(self, matcher):
        store = InMemoryEnrollmentStore(dimension=128)
        store.put("alice", make_descriptor(1.0))
        matcher.resolve(make_descriptor(1.0), store.get_all())
        first = matcher._cached

        store.put("bob", make_descriptor(0.0, 1.0))
        result = matcher.resolve(make_descriptor(0.0, 1.0), store.get_all())

        assert matcher._cached is not first
        assert matcher._cached.index.ntotal == 2
        assert result.identity_key == "bob"

    def test_short_lived_stores_never_reuse_index(self, matcher):
        """Test stores created and discarded one after another.

        A new store may be allocated at the address of a collected one and
        sit at the same version; it must still get its own index.
        """

        def enroll_and_resolve(key):
            store = InMemoryEnrollmentStore(dimension=128)
            descriptor = make_descriptor(1.0)
            store.put(key, descriptor)
            return matcher.resolve(descriptor, store.get_all())

        for key in ["alice", "bob", "carol", "dave", "erin"]:
            result = enroll_and_resolve(key)
            assert isinstance(result, Matched)
            assert result.identity_key == key

    def test_stores_do_not_share_index(self, matcher):
        """Test two stores at the same version get separate indexes."""
        store_a = InMemoryEnrollmentStore(dimension=128)
        store_b = InMemoryEnrollmentStore(dimension=128)
        store_a.put("alice", make_descriptor(1.0))
        store_b.put("bob", make_descriptor(1.0))

        assert matcher.resolve(make_descriptor(1.0), store_a.get_all()).identity_key == "alice"
        assert matcher.resolve(make_descriptor(1.0), store_b.get_all()).identity_key == "bob"
