"""Itinerary enrichment.

Attaches real-world place data (coordinates, rating, photos, hours and a
booking link) to AI-authored itinerary activities. Activities are resolved
in fixed-size chunks: members of a chunk run concurrently, chunks run one
after another with a short pause in between. Output order always matches
input order.
"""

from __future__ import annotations

import asyncio
import logging
from urllib.parse import quote

from cleir.config import PlacesConfig
from cleir.models import (
    Activity,
    ActivityType,
    EnrichedActivity,
    EnrichedDay,
    ItineraryDay,
    PlaceRecord,
    TopReview,
)
from cleir.places.provider import PlaceProviderError
from cleir.places.resolver import PlaceMatch, PlaceResolver

logger = logging.getLogger(__name__)

# Activity types never looked up
UNRESOLVED_TYPES = frozenset({ActivityType.FLIGHT, ActivityType.TRANSPORT})

PRICE_LEVELS = ["Free", "$", "$$", "$$$", "$$$$"]


# =============================================================================
# Pure Helpers
# =============================================================================


def format_price_level(price_level: int | None) -> str:
    if price_level is None or not 0 <= price_level < len(PRICE_LEVELS):
        return ""
    return PRICE_LEVELS[price_level]


def booking_link(activity_type: ActivityType, place: PlaceRecord) -> tuple[str, str]:
    """Booking URL and button label for a resolved place.

    Returns:
        ``(url, label)``.
    """
    name = quote(place.name, safe="")
    address = quote(place.formatted_address or place.name, safe="")

    if activity_type is ActivityType.HOTEL:
        return f"https://www.booking.com/searchresults.html?ss={name}", "Book on Booking.com"
    if activity_type is ActivityType.RESTAURANT:
        url = place.website or place.maps_url or f"https://www.google.com/maps/search/{address}"
        return url, "Make Reservation"
    if activity_type is ActivityType.ATTRACTION:
        return f"https://www.viator.com/searchResults/all?text={name}", "Book Tour"
    if activity_type is ActivityType.FLIGHT:
        return "https://www.google.com/travel/flights", "Search Flights"
    if activity_type is ActivityType.TRANSPORT:
        return place.maps_url or f"https://www.google.com/maps/dir//{address}", "Get Directions"
    return place.maps_url or f"https://www.google.com/maps/search/{address}", "View on Maps"


def apply_place(
    activity: Activity,
    match: PlaceMatch,
    review_snippet_chars: int = 200,
) -> EnrichedActivity:
    """Merge a resolved place into an activity."""
    enriched = EnrichedActivity.from_activity(activity)
    enriched.place_id = match.candidate.place_id
    enriched.coordinates = match.candidate.coordinates

    place = match.record
    if place is None:
        return enriched

    url, label = booking_link(activity.type, place)
    enriched.place_id = place.place_id
    enriched.coordinates = place.coordinates or match.candidate.coordinates
    enriched.rating = place.rating
    enriched.user_rating_count = place.user_rating_count
    enriched.price_level = place.price_level
    enriched.website = place.website
    enriched.phone = place.phone
    enriched.maps_url = place.maps_url
    enriched.open_now = place.open_now
    enriched.opening_hours = place.opening_hours
    enriched.editorial_summary = place.editorial_summary
    enriched.photo_urls = list(place.photo_urls)
    enriched.image = place.photo_urls[0] if place.photo_urls else None
    enriched.booking_url = url
    enriched.action_label = activity.action_label or label

    if place.top_review is not None:
        text = place.top_review.text
        if len(text) > review_snippet_chars:
            text = f"{text[:review_snippet_chars]}..."
        enriched.top_review = TopReview(
            author_name=place.top_review.author_name,
            rating=place.top_review.rating,
            text=text,
        )

    if place.formatted_address:
        enriched.location = place.formatted_address
    if not activity.price and place.price_level is not None:
        enriched.price_note = format_price_level(place.price_level)

    return enriched


# =============================================================================
# Scheduler
# =============================================================================


class EnrichmentScheduler:
    """Chunked, bounded-concurrency activity enrichment.

    Args:
        resolver: Place resolver (provider plus shared cache).
        concurrency: Activities resolved at once.
        chunk_delay: Seconds to pause between chunks.
        review_snippet_chars: Maximum top-review length.
    """

    def __init__(
        self,
        resolver: PlaceResolver,
        concurrency: int = 3,
        chunk_delay: float = 0.2,
        review_snippet_chars: int = 200,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.resolver = resolver
        self.concurrency = concurrency
        self.chunk_delay = chunk_delay
        self.review_snippet_chars = review_snippet_chars

    @classmethod
    def from_config(cls, resolver: PlaceResolver, config: PlacesConfig) -> EnrichmentScheduler:
        return cls(
            resolver,
            concurrency=config.concurrency,
            chunk_delay=config.chunk_delay_seconds,
            review_snippet_chars=config.review_snippet_chars,
        )

    async def enrich(self, activities: list[Activity], destination: str | None = None) -> list[EnrichedActivity]:
        """Enrich activities, preserving their order."""
        results: list[EnrichedActivity] = []
        for start in range(0, len(activities), self.concurrency):
            chunk = activities[start : start + self.concurrency]
            results.extend(await asyncio.gather(*(self.enrich_one(a, destination) for a in chunk)))
            if start + self.concurrency < len(activities):
                await asyncio.sleep(self.chunk_delay)
        return results

    async def enrich_one(self, activity: Activity, destination: str | None = None) -> EnrichedActivity:
        """Enrich one activity; failures leave it unresolved."""
        if activity.type in UNRESOLVED_TYPES:
            return EnrichedActivity.from_activity(activity)

        query = activity.title or activity.location or ""
        try:
            match = await self.resolver.lookup(query, destination)
            if match is None:
                logger.info(f"Could not find place for: {activity.title}")
                return EnrichedActivity.from_activity(activity)
            return apply_place(activity, match, self.review_snippet_chars)
        except PlaceProviderError as e:
            logger.warning(f"Could not enrich '{activity.title}': {e.message}")
        except Exception as e:
            logger.warning(f"Could not enrich '{activity.title}': {type(e).__name__}: {e}")
        return EnrichedActivity.from_activity(activity)

    async def enrich_days(self, days: list[ItineraryDay], destination: str | None = None) -> list[EnrichedDay]:
        """Enrich whole days, one day at a time."""
        enriched_days = []
        for day in days:
            activities = await self.enrich(list(day.activities), destination)
            enriched_days.append(
                EnrichedDay(
                    day_number=day.day_number,
                    title=day.title,
                    date=day.date,
                    description=day.description,
                    activities=activities,
                )
            )
        resolved = sum(1 for d in enriched_days for a in d.activities if a.is_resolved)
        total = sum(len(d.activities) for d in enriched_days)
        logger.info(f"Enriched {resolved}/{total} activities across {len(enriched_days)} days")
        return enriched_days
