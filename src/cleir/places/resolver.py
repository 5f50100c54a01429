"""Two-step place resolution: search, then cached details."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from cleir.models import PlaceCandidate, PlaceRecord
from cleir.places.cache import PlaceCache
from cleir.places.provider import PlaceProvider, PlaceProviderError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlaceMatch:
    """A resolved place.

    Attributes:
        candidate: The search hit (id and coordinates).
        record: Full details, or None when the detail lookup failed.
    """

    candidate: PlaceCandidate
    record: PlaceRecord | None = None


class PlaceResolver:
    """Resolves free-text queries to places through a shared cache.

    Searches are never cached. Details are served from the cache when
    present, otherwise fetched and stored. Misses and failures are never
    stored.
    """

    def __init__(self, provider: PlaceProvider, cache: PlaceCache | None = None) -> None:
        self.provider = provider
        self.cache = cache if cache is not None else PlaceCache()

    async def lookup(self, query: str, region: str | None = None) -> PlaceMatch | None:
        """Find the place for ``query``.

        Returns:
            PlaceMatch, or None when the search finds nothing.

        Raises:
            PlaceProviderError: If the search call fails.
        """
        candidate = await self.provider.find_place(query, region)
        if candidate is None:
            return None

        record = await self.details(candidate.place_id)
        return PlaceMatch(candidate=candidate, record=record)

    async def details(self, place_id: str) -> PlaceRecord | None:
        """Cached detail lookup; provider failures yield None."""
        cached = self.cache.get(place_id)
        if cached is not None:
            return cached

        try:
            record = await self.provider.get_details(place_id)
        except PlaceProviderError as e:
            logger.warning(f"Place details failed for {place_id}: {e.message}")
            return None

        if record is None:
            return None
        return self.cache.put(record)
