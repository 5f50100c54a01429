"""Public entry points for Cleir.

``CleirPipeline`` wires detection, routing, synthesis and itinerary
enrichment together. The module-level functions use one shared default
pipeline built from ``get_config()``.

Every failure that leaves this module is a ``PipelineError``.

Example:
    >>> from cleir.models import RawInput
    >>> report = analyze_request(RawInput(text="He said I'm too sensitive again..."))
    >>> print(report.headline)
"""

from __future__ import annotations

import asyncio
import functools
import logging
from typing import Any, Iterable

from pydantic import ValidationError

from cleir.ai.client import AIClient
from cleir.ai.parsing import extract_itinerary
from cleir.analyzers import build_business_analyzers, build_personal_analyzers
from cleir.config import AppConfig, get_config
from cleir.detection import ModeDetector, forced_result
from cleir.errors import EnrichmentError, PipelineError
from cleir.models import (
    DocumentAnalysis,
    EnrichedDay,
    Itinerary,
    ItineraryDay,
    PersonalTrack,
    RawInput,
    SynthesizedReport,
)
from cleir.places.cache import PlaceCache
from cleir.places.enrichment import EnrichmentScheduler
from cleir.places.provider import GooglePlacesProvider, PlaceProvider
from cleir.places.resolver import PlaceResolver
from cleir.router import TrackRouter
from cleir.synthesis import SynthesisStage

logger = logging.getLogger(__name__)


def _boundary(func):
    """Re-raise anything that is not a ``PipelineError`` as kind ``internal``."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except PipelineError:
            raise
        except Exception as e:
            logger.exception(f"Unexpected failure in {func.__name__}")
            raise PipelineError(f"{type(e).__name__}: {e}") from e

    return wrapper


class CleirPipeline:
    """Analysis and enrichment pipeline.

    Args:
        config: Application config; ``get_config()`` when omitted.
        client: Model client shared by detection and analyzers.
        place_provider: Place data source; Google Places when omitted.
        place_cache: Shared place-detail cache.
    """

    def __init__(
        self,
        config: AppConfig | None = None,
        client: AIClient | None = None,
        place_provider: PlaceProvider | None = None,
        place_cache: PlaceCache | None = None,
    ) -> None:
        self.config = config or get_config()
        self.client = client or AIClient(self.config)
        self.synthesis = SynthesisStage(self.config)
        threshold = self.config.routing.confidence_threshold

        self.personal_detector = ModeDetector(self.client, family="personal")
        self.business_detector = ModeDetector(self.client, family="business")
        self.personal_router = TrackRouter(
            build_personal_analyzers(self.client),
            family="personal",
            synthesis=self.synthesis,
            threshold=threshold,
        )
        self.business_router = TrackRouter(
            build_business_analyzers(self.client),
            family="business",
            synthesis=self.synthesis,
            threshold=threshold,
        )

        self.place_cache = place_cache if place_cache is not None else PlaceCache()
        provider = place_provider or GooglePlacesProvider(self.config.places)
        self.scheduler = EnrichmentScheduler.from_config(
            PlaceResolver(provider, self.place_cache),
            self.config.places,
        )

    # -------------------------------------------------------------------------
    # Analysis
    # -------------------------------------------------------------------------

    @_boundary
    def analyze_request(
        self,
        raw_input: RawInput,
        track: PersonalTrack | str | None = None,
    ) -> SynthesizedReport:
        """Analyze a personal conversation.

        Args:
            raw_input: Screenshot and/or text.
            track: Skip detection and use this personal track.

        Returns:
            The synthesized report.
        """
        if track is not None:
            try:
                forced = PersonalTrack(track)
            except ValueError as e:
                raise PipelineError(f"Unknown personal track: {track}", kind="invalid_input") from e
            detection = forced_result(forced)
        else:
            detection = self.personal_detector.detect(raw_input)

        return self.personal_router.route(detection, raw_input)

    @_boundary
    def analyze_document(self, raw_input: RawInput) -> DocumentAnalysis:
        """Detect, analyze and report on a business document."""
        detection = self.business_detector.detect(raw_input)
        report = self.business_router.route(detection, raw_input)
        return DocumentAnalysis(detection=detection, report=report)

    # -------------------------------------------------------------------------
    # Itinerary Enrichment
    # -------------------------------------------------------------------------

    @_boundary
    def enrich_itinerary(
        self,
        destination: str | None,
        days: Iterable[ItineraryDay | dict[str, Any]],
    ) -> list[EnrichedDay]:
        """Enrich itinerary days with place data.

        Runs its own event loop, so it must not be called from inside one.

        Raises:
            EnrichmentError: If a day does not match the itinerary contract.
        """
        try:
            parsed = [d if isinstance(d, ItineraryDay) else ItineraryDay.model_validate(d) for d in days]
        except ValidationError as e:
            raise EnrichmentError(f"Invalid itinerary day: {e.error_count()} validation errors") from e

        return asyncio.run(self.scheduler.enrich_days(parsed, destination))

    @_boundary
    def enrich_text(self, text: str) -> tuple[str, Itinerary | None, list[EnrichedDay]]:
        """Pull an itinerary out of a model reply and enrich it.

        Returns:
            ``(clean_text, itinerary, enriched_days)``; the itinerary is None
            and the day list empty when the reply holds no valid itinerary.
        """
        itinerary, clean_text = extract_itinerary(text)
        if itinerary is None:
            return clean_text, None, []
        days = self.enrich_itinerary(itinerary.destination or None, itinerary.days)
        return clean_text, itinerary, days


# =============================================================================
# Module-level API
# =============================================================================


@functools.lru_cache(maxsize=1)
def get_pipeline() -> CleirPipeline:
    """Shared pipeline built from the active configuration."""
    return CleirPipeline(get_config())


def reset_pipeline() -> None:
    get_pipeline.cache_clear()


def analyze_request(raw_input: RawInput, track: PersonalTrack | str | None = None) -> SynthesizedReport:
    return get_pipeline().analyze_request(raw_input, track=track)


def analyze_document(raw_input: RawInput) -> DocumentAnalysis:
    return get_pipeline().analyze_document(raw_input)


def enrich_itinerary(
    destination: str | None,
    days: Iterable[ItineraryDay | dict[str, Any]],
) -> list[EnrichedDay]:
    return get_pipeline().enrich_itinerary(destination, days)


def enrich_text(text: str) -> tuple[str, Itinerary | None, list[EnrichedDay]]:
    return get_pipeline().enrich_text(text)
