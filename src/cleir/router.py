"""Track routing for Cleir.

The router binds each routable track of a family to one analyzer, builds the
analyzer's input from the detection, runs it exactly once and hands the
output to the synthesis stage.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Mapping

from pydantic import ValidationError

from cleir.ai.client import (
    AIClientError,
    AIRateLimitError,
    AIServerError,
    AITimeoutError,
    AIUnavailableError,
)
from cleir.analyzers.base import AnalysisError, BaseAnalyzer
from cleir.config import get_config
from cleir.detection import FAMILY_TRACKS, Family
from cleir.errors import AnalysisPipelineError, UnhandledTrackError
from cleir.models import (
    AnalyzerInput,
    BusinessTrack,
    ConversationInput,
    DetectionResult,
    LegalInput,
    PersonalTrack,
    RawInput,
    ScamDocumentInput,
    SynthesizedReport,
    TripInput,
    TripStop,
    VisaInput,
)
from cleir.synthesis import SynthesisStage

logger = logging.getLogger(__name__)

Track = PersonalTrack | BusinessTrack

# Provider failures that mean the model could not be reached at all
UNAVAILABLE_ERRORS = (AIUnavailableError, AIServerError, AITimeoutError, AIRateLimitError)


def routable_tracks(family: Family) -> list[Track]:
    return [t for t in FAMILY_TRACKS[family] if t.value != "unknown"]


# =============================================================================
# Input Construction
# =============================================================================


def _text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _amount(value: Any) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, str):
        value = value.replace(",", "").replace("$", "").strip()
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _stops(value: Any) -> list[TripStop]:
    stops = []
    if not isinstance(value, list):
        return stops
    for item in value:
        if not isinstance(item, dict) or not _text(item.get("country")):
            continue
        duration = item.get("duration") or item.get("days")
        if not isinstance(duration, (int, float)) or isinstance(duration, bool) or not math.isfinite(duration):
            duration = None
        stops.append(
            TripStop(
                country=_text(item["country"]),
                city=_text(item.get("city")),
                duration=int(duration) if duration is not None else None,
                purpose=_text(item.get("purpose")) or "tourism",
            )
        )
    return stops


def build_input(
    track: Track,
    detection: DetectionResult,
    raw_input: RawInput | None = None,
) -> AnalyzerInput:
    """Build the analyzer input for ``track`` from detection and raw input."""
    fields = detection.extracted_fields
    raw_text = raw_input.text if raw_input else None
    image = raw_input.image_bytes if raw_input else None
    mime_type = raw_input.image_mime_type if raw_input else None

    if isinstance(track, PersonalTrack):
        return ConversationInput(
            track=track,
            text=raw_text or detection.extracted_text,
            image_bytes=image,
            image_mime_type=mime_type,
        )

    if track is BusinessTrack.VISA:
        return VisaInput(
            document_bytes=image,
            document_mime_type=mime_type,
            destination_country=_text(fields.get("destinationCountry") or fields.get("destination_country"))
            or "Unknown",
            passport_country=_text(fields.get("passportCountry") or fields.get("passport_country")) or "Unknown",
            travel_date=_text(fields.get("travelDate") or fields.get("travel_date")),
            trip_purpose=_text(fields.get("tripPurpose") or fields.get("trip_purpose")) or "tourism",
        )

    if track is BusinessTrack.LEGAL:
        return LegalInput(
            document_text=detection.extracted_text or raw_text,
            document_bytes=image,
            document_mime_type=mime_type,
            contract_type="contract",
        )

    if track is BusinessTrack.SCAM_DOCUMENT:
        return ScamDocumentInput(
            content=detection.extracted_text or raw_text or "",
            content_type="invoice" if fields.get("isInvoice") is True else "email",
            image_bytes=image,
            image_mime_type=mime_type,
            claimed_sender=_text(fields.get("sender")),
            claimed_amount=_amount(fields.get("amount")),
            sender_domain=_text(fields.get("senderDomain") or fields.get("sender_domain")),
        )

    if track is BusinessTrack.TRIP:
        return TripInput(
            passport_country=_text(fields.get("passportCountry") or fields.get("passport_country")) or "Unknown",
            stops=_stops(fields.get("stops")),
            start_date=_text(fields.get("startDate") or fields.get("start_date")),
        )

    raise UnhandledTrackError(track.value)


# =============================================================================
# Router
# =============================================================================


class TrackRouter:
    """Dispatches a detection to its analyzer.

    Args:
        analyzers: Mapping of track to analyzer.
        family: Track family the router serves.
        synthesis: Report builder; a default stage when omitted.
        threshold: Minimum confidence for routing; read from config when None.
        require_complete: Raise at construction when a routable track has no analyzer.

    Raises:
        UnhandledTrackError: If ``require_complete`` and the registry misses a track.
    """

    def __init__(
        self,
        analyzers: Mapping[Track, BaseAnalyzer],
        family: Family = "business",
        synthesis: SynthesisStage | None = None,
        threshold: float | None = None,
        require_complete: bool = True,
    ) -> None:
        if family not in FAMILY_TRACKS:
            raise ValueError(f"Unknown track family: {family}")
        self.family = family
        self.analyzers = dict(analyzers)
        self.synthesis = synthesis or SynthesisStage()
        self.threshold = threshold if threshold is not None else get_config().routing.confidence_threshold

        if require_complete:
            for track in routable_tracks(family):
                if track not in self.analyzers:
                    raise UnhandledTrackError(track.value)

    def route(self, detection: DetectionResult, raw_input: RawInput | None = None) -> SynthesizedReport:
        """Run the bound analyzer for a detection and synthesize its report.

        Raises:
            UnhandledTrackError: If the detected track has no analyzer.
            AnalysisPipelineError: If the analyzer fails.
        """
        if detection.is_unknown or detection.confidence < self.threshold:
            logger.info(
                f"Not routing {detection.track.value} at {detection.confidence:.2f} "
                f"(threshold {self.threshold:.2f})"
            )
            return self.synthesis.canned_report(self.family, detection)

        track = detection.track
        analyzer = self.analyzers.get(track)
        if analyzer is None:
            raise UnhandledTrackError(track.value)

        analyzer_input = build_input(track, detection, raw_input)
        logger.info(f"Routing to {type(analyzer).__name__} for track {track.value}")

        try:
            output = analyzer.analyze(analyzer_input)
        except AnalysisError as e:
            logger.error(f"{track.value} analysis failed: {e.message}")
            raise AnalysisPipelineError(track.value, e.message) from e
        except AIClientError as e:
            unavailable = isinstance(e, UNAVAILABLE_ERRORS)
            logger.error(f"{track.value} analysis failed: {type(e).__name__}")
            raise AnalysisPipelineError(track.value, e.message, provider_unavailable=unavailable) from e
        except ValidationError as e:
            logger.error(f"{track.value} analysis produced an invalid result: {e.error_count()} error(s)")
            raise AnalysisPipelineError(track.value, f"Malformed {track.value} analysis result") from e

        return self.synthesis.synthesize(track, output)
