"""Pickle-backed enrollment store.

Persists enrolled descriptors to a single pickle file so that extraction
happens once per enrollment, not once per query. The file is rewritten
atomically after every mutation and loaded on construction.
"""

from __future__ import annotations

import os
import pickle
import tempfile
from pathlib import Path
from typing import List

from faceverify.core.exceptions import DimensionMismatch, StoreError
from faceverify.core.interfaces import EnrollmentRecord
from faceverify.core.logging_config import get_logger
from faceverify.store.memory import InMemoryEnrollmentStore

logger = get_logger(__name__)

SCHEMA_VERSION = 1


class PickleEnrollmentStore(InMemoryEnrollmentStore):
    """Enrollment store persisted to a pickle file.

    File layout::

        {
            "schema_version": 1,
            "dimension": 128,
            "records": [
                {"identity_key": "...", "descriptor": ndarray, "enrolled_at": datetime},
                ...
            ],
        }

    I/O errors while saving propagate to the caller and the in-memory
    mutation is rolled back.

    Attributes:
        path: Pickle file location

    Example:
        >>> store = PickleEnrollmentStore("data/enrollments.pkl", dimension=128)
        >>> store.put("alice", descriptor)   # written to disk immediately
    """

    def __init__(self, path: str | Path, dimension: int = 128):
        """Open a store, loading existing records if the file exists.

        Args:
            path: Pickle file location (parent directories are created)
            dimension: Descriptor length fixed by the extraction model

        Raises:
            StoreError: If the file exists but cannot be parsed.
            DimensionMismatch: If the file was written for another dimension.
        """
        super().__init__(dimension=dimension)
        self.path = Path(path)

        if self.path.exists():
            self._load()
        else:
            logger.info(f"No enrollment file at {self.path}, starting empty")

    def _load(self) -> None:
        with open(self.path, "rb") as f:
            try:
                data = pickle.load(f)
            except (pickle.UnpicklingError, EOFError, AttributeError, ValueError) as e:
                raise StoreError(f"Corrupt enrollment file {self.path}: {e}") from e

        if not isinstance(data, dict) or "records" not in data:
            raise StoreError(f"Unrecognized enrollment file format: {self.path}")

        if data.get("schema_version") != SCHEMA_VERSION:
            raise StoreError(
                f"Unsupported schema version {data.get('schema_version')!r} "
                f"in {self.path}"
            )

        dimension = data.get("dimension")
        if dimension != self.dimension:
            raise DimensionMismatch(self.dimension, dimension)

        records = {}
        for record in self._parse_records(data["records"]):
            if record.dimension != self.dimension:
                raise DimensionMismatch(self.dimension, record.dimension)
            records[record.identity_key] = record

        with self._lock:
            self._records = records
            self.version += 1

        logger.info(f"Loaded {len(records)} enrollment(s) from {self.path}")

    def _parse_records(self, items: object) -> List[EnrollmentRecord]:
        if not isinstance(items, list):
            raise StoreError(
                f"'records' must be a list in {self.path}, got {type(items).__name__}"
            )

        try:
            return [
                EnrollmentRecord(
                    identity_key=item["identity_key"],
                    descriptor=item["descriptor"],
                    enrolled_at=item["enrolled_at"],
                )
                for item in items
            ]
        except (KeyError, TypeError, ValueError) as e:
            raise StoreError(f"Malformed enrollment record in {self.path}: {e!r}") from e

    def _on_change(self) -> None:
        """Rewrite the pickle file with the current records."""
        data = {
            "schema_version": SCHEMA_VERSION,
            "dimension": self.dimension,
            "records": [
                {
                    "identity_key": r.identity_key,
                    "descriptor": r.descriptor,
                    "enrolled_at": r.enrolled_at,
                }
                for r in self._records.values()
            ],
        }

        self.path.parent.mkdir(parents=True, exist_ok=True)

        # Write to a sibling temp file and swap it in, readers never see a partial file
        fd, tmp_name = tempfile.mkstemp(
            dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "wb") as f:
                pickle.dump(data, f, protocol=pickle.HIGHEST_PROTOCOL)
            os.replace(tmp_name, self.path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

        logger.debug(f"Saved {len(self._records)} enrollment(s) to {self.path}")

    def __repr__(self) -> str:
        return (
            f"PickleEnrollmentStore(path='{self.path}', dimension={self.dimension}, "
            f"records={len(self)})"
        )
