"""Cleir - see through manipulation, scams and paperwork.

Cleir classifies user content (a conversation screenshot, an email, a
contract, a passport scan) into an analysis track, runs the specialist
analyzer for that track on Gemini and turns the result into a report with
action items and a speech-friendly rendering. It also enriches AI-authored
travel itineraries with real place data from Google Places.

Quick Start:
    >>> from cleir import RawInput, analyze_document, enrich_text
    >>>
    >>> result = analyze_document(RawInput(text="URGENT: wire $4,800 today..."))
    >>> print(result.report.headline)
    >>>
    >>> clean_text, itinerary, days = enrich_text(model_reply)

Configuration comes from ``CLEIR_*`` environment variables or a
``cleir.yaml`` file; see ``cleir.config``.
"""

__version__ = "0.1.0"

from cleir.errors import (
    AnalysisPipelineError,
    EnrichmentError,
    InvalidInputError,
    PipelineError,
    UnhandledTrackError,
)
from cleir.models import (
    BusinessTrack,
    DetectionResult,
    DocumentAnalysis,
    EnrichedActivity,
    EnrichedDay,
    Itinerary,
    PersonalTrack,
    RawInput,
    SynthesizedReport,
)
from cleir.pipeline import (
    CleirPipeline,
    analyze_document,
    analyze_request,
    enrich_itinerary,
    enrich_text,
)

__all__ = [
    "__version__",
    # Pipeline
    "CleirPipeline",
    "analyze_request",
    "analyze_document",
    "enrich_itinerary",
    "enrich_text",
    # Models
    "RawInput",
    "PersonalTrack",
    "BusinessTrack",
    "DetectionResult",
    "DocumentAnalysis",
    "SynthesizedReport",
    "Itinerary",
    "EnrichedDay",
    "EnrichedActivity",
    # Errors
    "PipelineError",
    "InvalidInputError",
    "UnhandledTrackError",
    "AnalysisPipelineError",
    "EnrichmentError",
]
