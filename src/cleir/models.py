"""Core data models for Cleir.

This module defines the records that flow through the analysis pipeline
(raw input, detection, per-track analyzer inputs and outputs, the final
report) and through itinerary enrichment (activities, place records,
enriched days). All models use Pydantic v2 for validation and serialization.
"""

from __future__ import annotations

from enum import Enum
from io import BytesIO
from pathlib import Path
from typing import Any, Literal

from PIL import Image, UnidentifiedImageError
from pydantic import BaseModel, Field, field_validator, model_validator

from cleir.errors import InvalidInputError

DEFAULT_IMAGE_MIME_TYPE = "image/jpeg"


# =============================================================================
# Enums
# =============================================================================


class PersonalTrack(str, Enum):
    """Analysis tracks for personal conversations.

    Attributes:
        RELATIONSHIP: Manipulation and toxic patterns from the other party.
        SCAM: Phishing, fraud and social engineering in a conversation.
        SELF_ANALYSIS: The user's own messages, for growth.
        UNKNOWN: Detection could not pick a track.
    """

    RELATIONSHIP = "relationship"
    SCAM = "scam"
    SELF_ANALYSIS = "self_analysis"
    UNKNOWN = "unknown"


class BusinessTrack(str, Enum):
    """Analysis tracks for business documents.

    Attributes:
        VISA: Passports, visas and other travel documents.
        LEGAL: Contracts and agreements.
        SCAM_DOCUMENT: Suspicious emails and invoices.
        TRIP: Travel itineraries.
        UNKNOWN: Detection could not pick a track.
    """

    VISA = "visa"
    LEGAL = "legal"
    SCAM_DOCUMENT = "scam"
    TRIP = "trip"
    UNKNOWN = "unknown"


Track = PersonalTrack | BusinessTrack


class ActivityType(str, Enum):
    FLIGHT = "flight"
    HOTEL = "hotel"
    RESTAURANT = "restaurant"
    ATTRACTION = "attraction"
    TRANSPORT = "transport"
    OTHER = "other"


# =============================================================================
# Raw Input & Detection
# =============================================================================


def sniff_image_mime_type(data: bytes) -> str:
    """Guess the MIME type of uploaded bytes.

    PDFs are recognized by their header; images are identified with Pillow.
    Anything unrecognized is treated as JPEG.

    Args:
        data: Raw file bytes.

    Returns:
        A MIME type string.
    """
    if data.startswith(b"%PDF"):
        return "application/pdf"
    try:
        with Image.open(BytesIO(data)) as img:
            fmt = img.format
    except (UnidentifiedImageError, OSError):
        return DEFAULT_IMAGE_MIME_TYPE
    if not fmt:
        return DEFAULT_IMAGE_MIME_TYPE
    return Image.MIME.get(fmt, DEFAULT_IMAGE_MIME_TYPE)


class RawInput(BaseModel):
    """A piece of user content submitted for analysis.

    At least one of ``image_bytes`` or ``text`` must be present. Blank text
    counts as absent. Construction fails with ``InvalidInputError`` before any
    pipeline stage runs.

    Attributes:
        image_bytes: Screenshot, scan or PDF bytes.
        image_mime_type: MIME type of the image; sniffed when omitted.
        text: Free text (a pasted conversation, email, contract...).
    """

    image_bytes: bytes | None = None
    image_mime_type: str | None = None
    text: str | None = None

    @model_validator(mode="after")
    def _require_content(self) -> "RawInput":
        if self.text is not None and not self.text.strip():
            self.text = None
        if not self.image_bytes:
            self.image_bytes = None
        if self.image_bytes is None and self.text is None:
            raise InvalidInputError("No content provided. Supply an image or text.")
        if self.image_bytes is not None and not self.image_mime_type:
            self.image_mime_type = sniff_image_mime_type(self.image_bytes)
        return self

    @property
    def has_image(self) -> bool:
        return self.image_bytes is not None

    @classmethod
    def from_path(cls, image_path: Path | None = None, text: str | None = None) -> "RawInput":
        """Build an input from an image file and/or text.

        Args:
            image_path: Optional path to an image or PDF.
            text: Optional text content.

        Returns:
            RawInput instance.

        Raises:
            InvalidInputError: If neither yields any content.
        """
        image_bytes = image_path.read_bytes() if image_path is not None else None
        return cls(image_bytes=image_bytes, text=text)


class DetectionResult(BaseModel):
    """Classification of a raw input into one track.

    Attributes:
        track: The detected track (family enum instance).
        confidence: Detection confidence in [0, 1].
        reasoning: Short explanation from the model.
        extracted_text: Key text the model read from the input.
        extracted_fields: Structured fields used to build analyzer input.
    """

    model_config = {"frozen": True}

    track: PersonalTrack | BusinessTrack
    confidence: float = Field(0.0, ge=0.0, le=1.0)
    reasoning: str = ""
    extracted_text: str | None = None
    extracted_fields: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_unknown(self) -> bool:
        return self.track.value == "unknown"


# =============================================================================
# Visa Track
# =============================================================================


class Issue(BaseModel):
    issue: str
    severity: Literal["blocker", "warning", "info"] = "warning"
    fix: str = ""

    @field_validator("severity", mode="before")
    @classmethod
    def _normalize_severity(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.lower()
            if v in {"blocker", "warning", "info"}:
                return v
            if v in {"critical", "high"}:
                return "blocker"
        return "warning"


class AnalyzedDocument(BaseModel):
    """One uploaded travel document after model extraction."""

    type: str = "other"
    file_name: str | None = None
    extracted: dict[str, Any] = Field(default_factory=dict)
    issues: list[Issue] = Field(default_factory=list)
    is_valid: bool = True
    confidence: float = 0.0


class Fee(BaseModel):
    amount: float
    currency: str


class VisaRequirements(BaseModel):
    """Entry requirements for a passport/destination pair."""

    visa_required: bool = True
    visa_type: str = "Tourist Visa"
    processing_days: int = 15
    financial_threshold: str = "Sufficient funds for duration of stay"
    documents_required: list[str] = Field(default_factory=list)
    application_url: str | None = None
    fees: Fee | None = None
    additional_requirements: list[str] = Field(default_factory=list)


class ChecklistItem(BaseModel):
    requirement: str
    status: Literal["met", "missing", "issue"]
    details: str = ""
    document_type: str | None = None


class VisaInput(BaseModel):
    document_bytes: bytes | None = None
    document_mime_type: str | None = None
    destination_country: str = "Unknown"
    passport_country: str = "Unknown"
    travel_date: str | None = None
    trip_purpose: str = "tourism"


class VisaAnalysis(BaseModel):
    """Result of checking travel documents against visa requirements."""

    documents_analyzed: list[AnalyzedDocument] = Field(default_factory=list)
    requirements: VisaRequirements
    checklist: list[ChecklistItem] = Field(default_factory=list)
    approval_likelihood: Literal["high", "medium", "low"] = "low"
    approval_percentage: int = Field(0, ge=0, le=100)
    missing_documents: list[str] = Field(default_factory=list)
    critical_issues: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    flights_link: str = ""


# =============================================================================
# Legal Track
# =============================================================================


class AnalyzedClause(BaseModel):
    clause_id: str = "N/A"
    clause_name: str = "Unknown Clause"
    original_text: str = ""
    plain_english: str = "No translation available"
    risk_level: Literal["safe", "caution", "danger"] = "safe"
    red_flag_type: str | None = None
    market_comparison: str | None = None
    negotiation_tip: str | None = None


class LegalInput(BaseModel):
    document_text: str | None = None
    document_bytes: bytes | None = None
    document_mime_type: str | None = None
    contract_type: str = "contract"


class LegalAnalysis(BaseModel):
    """Clause-level risk review of a contract."""

    contract_type: str = "other"
    parties: list[str] = Field(default_factory=list)
    effective_date: str | None = None
    term_length: str | None = None
    clauses: list[AnalyzedClause] = Field(default_factory=list)
    overall_risk: Literal["low", "medium", "high", "critical"] = "medium"
    risk_score: int = Field(50, ge=0, le=100)
    danger_clauses: list[str] = Field(default_factory=list)
    caution_clauses: list[str] = Field(default_factory=list)
    safe_clauses: list[str] = Field(default_factory=list)
    must_negotiate: list[str] = Field(default_factory=list)
    recommend_lawyer: bool = False
    lawyer_reason: str | None = None


# =============================================================================
# Scam Document Track
# =============================================================================


class ScamRedFlag(BaseModel):
    flag: str
    flag_name: str
    evidence: str = ""
    severity: Literal["medium", "high", "critical"] = "high"


class Verification(BaseModel):
    """Heuristic sender checks. ``None`` means not checked."""

    domain_legitimate: bool | None = None
    company_exists: bool | None = None
    email_matches_company: bool | None = None
    bank_details_changed: bool | None = None
    domain_age: str | None = None
    email_reputation: Literal["good", "neutral", "poor", "unknown"] | None = None


class ScamDocumentInput(BaseModel):
    content: str = ""
    content_type: Literal["email", "invoice"] = "email"
    image_bytes: bytes | None = None
    image_mime_type: str | None = None
    claimed_sender: str | None = None
    claimed_amount: float | None = None
    sender_domain: str | None = None


class ScamAnalysis(BaseModel):
    """Fraud assessment of a business email or invoice."""

    scam_likelihood: Literal["safe", "suspicious", "likely_scam"] = "suspicious"
    confidence_score: float = Field(0.5, ge=0.0, le=1.0)
    red_flags: list[ScamRedFlag] = Field(default_factory=list)
    verification: Verification = Field(default_factory=Verification)
    urgency_tactics: list[str] = Field(default_factory=list)
    suspicious_payment_methods: list[str] = Field(default_factory=list)
    recommended_actions: list[str] = Field(default_factory=list)


# =============================================================================
# Trip Track
# =============================================================================


class TripStop(BaseModel):
    country: str
    city: str | None = None
    duration: int | None = None
    purpose: str = "tourism"


class TripInput(BaseModel):
    passport_country: str = "Unknown"
    stops: list[TripStop] = Field(default_factory=list)
    start_date: str | None = None


class StopAnalysis(BaseModel):
    country: str
    country_name: str
    city: str | None = None
    duration: int = 1
    visa_required: bool
    visa_type: str | None = None
    processing_days: int = 0
    documents: list[str] = Field(default_factory=list)
    fees: Fee | None = None
    travel_advisory: Literal["none", "low", "medium", "high"] = "none"
    advisory_notes: str | None = None
    notes: str | None = None

    @property
    def estimated_cost(self) -> str | None:
        if self.fees is None:
            return None
        return f"{self.fees.currency} {self.fees.amount:g}"


class LayoverAlert(BaseModel):
    airport: str
    country: str
    transit_visa_required: bool
    max_hours: int | None = None
    notes: str = ""


class CombinedDocument(BaseModel):
    document: str
    for_countries: list[str] = Field(default_factory=list)
    priority: Literal["required", "recommended"] = "required"


class CostBreakdown(BaseModel):
    visa_fees: float = 0.0
    insurance: float = 0.0

    @property
    def total(self) -> float:
        return self.visa_fees + self.insurance


class TripAnalysis(BaseModel):
    """Per-stop visa plan for a multi-country trip."""

    total_countries: int = 0
    total_days: int = 0
    visas_required: int = 0
    per_stop: list[StopAnalysis] = Field(default_factory=list)
    layover_alerts: list[LayoverAlert] = Field(default_factory=list)
    document_checklist: list[CombinedDocument] = Field(default_factory=list)
    suggested_order: list[str] = Field(default_factory=list)
    ordering_reason: str = ""
    estimated_cost: CostBreakdown = Field(default_factory=CostBreakdown)
    multi_city_link: str = ""


# =============================================================================
# Personal Tracks
# =============================================================================


class Tactic(BaseModel):
    tactic: str
    tactic_name: str
    category: Literal["relationship", "scam", "self", "other"] = "other"
    severity: Literal["none", "low", "medium", "high", "critical"] = "medium"
    confidence: float = Field(0.5, ge=0.0, le=1.0)
    evidence_quotes: list[str] = Field(default_factory=list)


class Translation(BaseModel):
    original: str
    meaning: str
    tactic_used: str | None = None


class RecommendedResponse(BaseModel):
    type: str
    response: str
    explanation: str = ""


class SafetyResource(BaseModel):
    name: str
    contact: str = ""
    description: str = ""
    url: str | None = None


class ConversationInput(BaseModel):
    track: PersonalTrack
    text: str | None = None
    image_bytes: bytes | None = None
    image_mime_type: str | None = None


class ConversationAnalysis(BaseModel):
    """Combined tactic, psychology and defense analysis of a conversation."""

    track: PersonalTrack
    threat_level: Literal["green", "yellow", "orange", "red"] = "yellow"
    pattern_type: str | None = None
    scam_type: str | None = None
    tactics: list[Tactic] = Field(default_factory=list)
    health_score: int = Field(50, ge=0, le=100)
    explanation: str = ""
    validation: str = ""
    translations: list[Translation] = Field(default_factory=list)
    recommended_responses: list[RecommendedResponse] = Field(default_factory=list)
    immediate_actions: list[str] = Field(default_factory=list)
    safety_resources: list[SafetyResource] = Field(default_factory=list)


AnalyzerInput = VisaInput | LegalInput | ScamDocumentInput | TripInput | ConversationInput
AnalyzerOutput = VisaAnalysis | LegalAnalysis | ScamAnalysis | TripAnalysis | ConversationAnalysis


# =============================================================================
# Report
# =============================================================================


class SynthesizedReport(BaseModel):
    """Final human-facing artifact of the analysis pipeline.

    Attributes:
        headline: One-line summary.
        full_text: Markdown body.
        action_items: Ordered list of things to do.
        voice_text: Speech-friendly rendering of ``full_text``.
        per_track_raw: Analyzer output keyed by track value.
        track: Track value the report was built for ("unknown" for canned reports).
        severity: Coarse severity label.
        is_fallback: True when no analyzer ran.
    """

    headline: str
    full_text: str
    action_items: list[str] = Field(default_factory=list)
    voice_text: str = ""
    per_track_raw: dict[str, Any] = Field(default_factory=dict)
    track: str = "unknown"
    severity: str = "unknown"
    is_fallback: bool = False


class DocumentAnalysis(BaseModel):
    """Business-family result: the detection plus the report."""

    detection: DetectionResult
    report: SynthesizedReport


# =============================================================================
# Itinerary
# =============================================================================


class Activity(BaseModel):
    """One AI-authored itinerary entry."""

    model_config = {"frozen": True}

    title: str
    type: ActivityType = ActivityType.OTHER
    location: str | None = None
    description: str | None = None
    time: str | None = None
    price: str | None = None
    duration: str | None = None
    tips: str | None = None
    action_label: str | None = None

    @field_validator("type", mode="before")
    @classmethod
    def _coerce_type(cls, v: Any) -> Any:
        if isinstance(v, ActivityType):
            return v
        if isinstance(v, str) and v.lower() in {t.value for t in ActivityType}:
            return v.lower()
        return ActivityType.OTHER

    @field_validator("price", "duration", "time", mode="before")
    @classmethod
    def _stringify(cls, v: Any) -> Any:
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v


class ItineraryDay(BaseModel):
    day_number: int
    title: str = ""
    date: str | None = None
    description: str | None = None
    activities: list[Activity] = Field(default_factory=list)


class Itinerary(BaseModel):
    """Itinerary payload embedded in a model reply."""

    type: Literal["itinerary"]
    title: str = ""
    destination: str = ""
    start_date: str | None = None
    end_date: str | None = None
    days: list[ItineraryDay]


class Coordinates(BaseModel):
    model_config = {"frozen": True}

    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class TopReview(BaseModel):
    author_name: str = ""
    rating: float | None = None
    text: str = ""


class PlaceCandidate(BaseModel):
    """Result of a place search: the id plus where it is."""

    place_id: str
    name: str | None = None
    coordinates: Coordinates | None = None


class PlaceRecord(BaseModel):
    """Detail record for one place, cached by ``place_id``."""

    place_id: str
    name: str
    formatted_address: str | None = None
    coordinates: Coordinates | None = None
    rating: float | None = None
    user_rating_count: int | None = None
    price_level: int | None = Field(None, ge=0, le=4)
    photo_urls: list[str] = Field(default_factory=list)
    open_now: bool | None = None
    opening_hours: list[str] | None = None
    website: str | None = None
    phone: str | None = None
    maps_url: str | None = None
    editorial_summary: str | None = None
    top_review: TopReview | None = None


class EnrichedActivity(BaseModel):
    """An activity with place metadata attached.

    ``coordinates`` is None when the place could not be resolved.
    """

    title: str
    type: ActivityType
    location: str | None = None
    description: str | None = None
    time: str | None = None
    price: str | None = None
    duration: str | None = None
    tips: str | None = None
    price_note: str | None = None
    image: str | None = None
    coordinates: Coordinates | None = None
    booking_url: str | None = None
    action_label: str | None = None
    place_id: str | None = None
    rating: float | None = None
    user_rating_count: int | None = None
    price_level: int | None = None
    photo_urls: list[str] = Field(default_factory=list)
    open_now: bool | None = None
    opening_hours: list[str] | None = None
    website: str | None = None
    phone: str | None = None
    maps_url: str | None = None
    editorial_summary: str | None = None
    top_review: TopReview | None = None

    @classmethod
    def from_activity(cls, activity: Activity) -> "EnrichedActivity":
        """Copy an activity with no enrichment applied."""
        return cls(
            title=activity.title,
            type=activity.type,
            location=activity.location,
            description=activity.description,
            time=activity.time,
            price=activity.price,
            duration=activity.duration,
            tips=activity.tips,
            action_label=activity.action_label,
        )

    @property
    def is_resolved(self) -> bool:
        return self.coordinates is not None


class EnrichedDay(BaseModel):
    day_number: int
    title: str = ""
    date: str | None = None
    description: str | None = None
    activities: list[EnrichedActivity] = Field(default_factory=list)
