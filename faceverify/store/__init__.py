"""Enrollment stores holding one reference descriptor per identity."""

from faceverify.store.memory import InMemoryEnrollmentStore
from faceverify.store.pickle_store import PickleEnrollmentStore

__all__ = [
    "InMemoryEnrollmentStore",
    "PickleEnrollmentStore",
]
