"""Thread-safe memo of place details keyed by place id."""

from __future__ import annotations

import threading

from cleir.models import PlaceRecord


class PlaceCache:
    """In-memory ``place_id -> PlaceRecord`` store.

    One instance is shared by every enrichment that should reuse lookups.
    Only successful detail lookups are stored; the first record stored for
    a place id wins.
    """

    def __init__(self) -> None:
        self._records: dict[str, PlaceRecord] = {}
        self._lock = threading.Lock()

    def get(self, place_id: str) -> PlaceRecord | None:
        with self._lock:
            return self._records.get(place_id)

    def put(self, record: PlaceRecord) -> PlaceRecord:
        """Store ``record`` unless its place id is already cached.

        Returns:
            The record held by the cache afterwards.
        """
        with self._lock:
            return self._records.setdefault(record.place_id, record)

    def clear(self) -> None:
        with self._lock:
            self._records.clear()

    def __contains__(self, place_id: object) -> bool:
        with self._lock:
            return place_id in self._records

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
