"""Place data providers.

``PlaceProvider`` is the two-call interface the enrichment path depends on:
search a free-text query for a place id, then fetch that place's details.
``GooglePlacesProvider`` implements it against the Google Places web
service with ``httpx``.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol, runtime_checkable

import httpx
from pydantic import ValidationError

from cleir.config import PlacesConfig
from cleir.models import Coordinates, PlaceCandidate, PlaceRecord, TopReview

logger = logging.getLogger(__name__)

PLACES_BASE_URL = "https://maps.googleapis.com/maps/api/place"

DETAIL_FIELDS = [
    "place_id",
    "name",
    "formatted_address",
    "geometry",
    "rating",
    "user_ratings_total",
    "price_level",
    "photos",
    "opening_hours",
    "website",
    "formatted_phone_number",
    "url",
    "types",
    "editorial_summary",
    "reviews",
    "business_status",
]


class PlaceProviderError(Exception):
    """A place lookup failed for a reason other than "not found".

    Attributes:
        message: Human-readable description.
        status_code: HTTP status when the service answered with one.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


@runtime_checkable
class PlaceProvider(Protocol):
    """Source of place search results and place details.

    Both calls return None when nothing matches and raise
    ``PlaceProviderError`` when the provider itself fails.
    """

    async def find_place(self, query: str, region: str | None = None) -> PlaceCandidate | None: ...

    async def get_details(self, place_id: str) -> PlaceRecord | None: ...


def photo_url(photo_reference: str, api_key: str, max_width: int = 800) -> str:
    return (
        f"{PLACES_BASE_URL}/photo?maxwidth={max_width}"
        f"&photo_reference={photo_reference}&key={api_key}"
    )


def _mapping(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _mappings(value: Any) -> list[dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def _coordinates(result: dict[str, Any]) -> Coordinates | None:
    location = _mapping(_mapping(result.get("geometry")).get("location"))
    if "lat" not in location or "lng" not in location:
        return None
    return Coordinates(lat=location["lat"], lng=location["lng"])


class GooglePlacesProvider:
    """Google Places web service adapter.

    A fresh ``httpx.AsyncClient`` is opened per call so one provider can be
    shared by itineraries enriched on different event loops.

    Args:
        config: Places settings (key, timeout and photo/review limits).
        api_key: Overrides the key from ``config``.
        transport: Optional httpx transport, used by tests.
    """

    def __init__(
        self,
        config: PlacesConfig | None = None,
        api_key: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config or PlacesConfig()
        self._api_key = api_key or self.config.resolve_api_key()
        self._transport = transport

    def is_available(self) -> bool:
        return bool(self._api_key)

    async def find_place(self, query: str, region: str | None = None) -> PlaceCandidate | None:
        search = f"{query}, {region}" if region else query
        data = await self._get(
            "findplacefromtext",
            {"input": search, "inputtype": "textquery", "fields": "place_id,geometry,name"},
        )
        candidates = _mappings(data.get("candidates"))
        if data.get("status") != "OK" or not candidates:
            logger.debug(f"No place found for query ({len(search)} chars)")
            return None

        candidate = candidates[0]
        try:
            return PlaceCandidate(
                place_id=candidate["place_id"],
                name=candidate.get("name"),
                coordinates=_coordinates(candidate),
            )
        except (KeyError, ValidationError) as e:
            raise PlaceProviderError(f"Malformed place search result: {e}") from e

    async def get_details(self, place_id: str) -> PlaceRecord | None:
        data = await self._get("details", {"place_id": place_id, "fields": ",".join(DETAIL_FIELDS)})
        result = _mapping(data.get("result"))
        if data.get("status") != "OK" or not result:
            return None

        try:
            return self._record_from(result, place_id)
        except (KeyError, TypeError, ValueError) as e:
            raise PlaceProviderError(f"Malformed place details for {place_id}: {e}") from e

    def _record_from(self, result: dict[str, Any], place_id: str) -> PlaceRecord:
        photos = _mappings(result.get("photos"))[: self.config.max_photos]
        reviews = _mappings(result.get("reviews"))[: self.config.max_reviews]
        hours = _mapping(result.get("opening_hours"))

        top_review = None
        if reviews:
            first = reviews[0]
            top_review = TopReview(
                author_name=first.get("author_name") or "",
                rating=first.get("rating"),
                text=first.get("text") or "",
            )

        return PlaceRecord(
            place_id=result.get("place_id") or place_id,
            name=result.get("name") or "",
            formatted_address=result.get("formatted_address"),
            coordinates=_coordinates(result),
            rating=result.get("rating"),
            user_rating_count=result.get("user_ratings_total"),
            price_level=result.get("price_level"),
            photo_urls=[
                photo_url(p["photo_reference"], self._api_key, self.config.photo_max_width)
                for p in photos
                if p.get("photo_reference")
            ],
            open_now=hours.get("open_now"),
            opening_hours=hours.get("weekday_text"),
            website=result.get("website"),
            phone=result.get("formatted_phone_number"),
            maps_url=result.get("url"),
            editorial_summary=_mapping(result.get("editorial_summary")).get("overview"),
            top_review=top_review,
        )

    async def _get(self, endpoint: str, params: dict[str, str]) -> dict[str, Any]:
        if not self._api_key:
            raise PlaceProviderError("GOOGLE_MAPS_API_KEY not set")

        url = f"{PLACES_BASE_URL}/{endpoint}/json"
        try:
            async with httpx.AsyncClient(
                timeout=self.config.timeout_seconds,
                transport=self._transport,
            ) as client:
                response = await client.get(url, params={**params, "key": self._api_key})
        except httpx.HTTPError as e:
            raise PlaceProviderError(f"Places {endpoint} request failed: {type(e).__name__}") from e

        if response.status_code != 200:
            raise PlaceProviderError(
                f"Places {endpoint} returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise PlaceProviderError(f"Places {endpoint} returned invalid JSON") from e
        if not isinstance(data, dict):
            raise PlaceProviderError(f"Places {endpoint} returned {type(data).__name__}, expected an object")

        status = data.get("status")
        if status not in ("OK", "ZERO_RESULTS", "NOT_FOUND"):
            raise PlaceProviderError(f"Places {endpoint} status {status}: {data.get('error_message', '')}".strip())
        return data
