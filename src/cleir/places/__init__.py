"""Place lookup and itinerary enrichment."""

from cleir.places.cache import PlaceCache
from cleir.places.enrichment import (
    EnrichmentScheduler,
    apply_place,
    booking_link,
    format_price_level,
)
from cleir.places.provider import (
    GooglePlacesProvider,
    PlaceProvider,
    PlaceProviderError,
)
from cleir.places.resolver import PlaceMatch, PlaceResolver

__all__ = [
    "PlaceCache",
    "PlaceProvider",
    "PlaceProviderError",
    "GooglePlacesProvider",
    "PlaceResolver",
    "PlaceMatch",
    "EnrichmentScheduler",
    "apply_place",
    "booking_link",
    "format_price_level",
]
