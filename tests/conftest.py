"""Central Pytest Fixtures for Cleir.

This module provides reusable configuration, model-client mocks, sample
analyzer outputs and an in-memory place provider across all test modules.

Fixtures included:
- Config: app_config
- AI Mocks: mock_client, make_response
- Analyzer outputs: sample_visa_analysis, sample_legal_analysis,
  sample_scam_analysis, sample_conversation_analysis
- Places: fake_places, sample_itinerary_payload
- Utilities: png_bytes
"""

from __future__ import annotations

import asyncio
import json
from io import BytesIO
from unittest.mock import MagicMock

import pytest
from PIL import Image

from cleir.ai.client import AIClient, AIResponse
from cleir.config import AIConfig, AppConfig, PlacesConfig, reset_config
from cleir.models import (
    AnalyzedClause,
    ChecklistItem,
    ConversationAnalysis,
    Coordinates,
    Fee,
    LegalAnalysis,
    PersonalTrack,
    PlaceCandidate,
    PlaceRecord,
    RecommendedResponse,
    ScamAnalysis,
    ScamRedFlag,
    Tactic,
    TopReview,
    Translation,
    VisaAnalysis,
    VisaRequirements,
)
from cleir.places.provider import PlaceProviderError

# =============================================================================
# Helper Functions
# =============================================================================


def make_response(payload: dict | str) -> AIResponse:
    """Build an AIResponse whose text is ``payload`` (JSON-encoded if a dict)."""
    text = payload if isinstance(payload, str) else json.dumps(payload)
    return AIResponse(text=text, model="gemini-test")


def make_place(
    place_id: str,
    name: str,
    lat: float = 48.8584,
    lng: float = 2.2945,
    **extra,
) -> PlaceRecord:
    """Helper to create a PlaceRecord with sensible defaults."""
    params = {
        "place_id": place_id,
        "name": name,
        "formatted_address": f"{name}, Paris, France",
        "coordinates": Coordinates(lat=lat, lng=lng),
        "rating": 4.6,
        "user_rating_count": 1200,
        "maps_url": f"https://maps.google.com/?cid={place_id}",
    }
    params.update(extra)
    return PlaceRecord(**params)


class FakePlaceProvider:
    """In-memory PlaceProvider that records calls and concurrency.

    Places are keyed by the query text (the activity title).
    """

    def __init__(
        self,
        places: dict[str, PlaceRecord] | None = None,
        delay: float = 0.01,
        delays: dict[str, float] | None = None,
    ) -> None:
        self.places = places or {}
        self.delay = delay
        self.delays = delays or {}
        self.completed: list[str] = []
        self.broken_searches: set[str] = set()
        self.search_calls: list[tuple[str, str | None]] = []
        self.detail_calls: list[str] = []
        self.failing_searches: set[str] = set()
        self.failing_details: set[str] = set()
        self.in_flight = 0
        self.max_in_flight = 0

    async def find_place(self, query: str, region: str | None = None) -> PlaceCandidate | None:
        self.search_calls.append((query, region))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(query, self.delay))
            self.completed.append(query)
            if query in self.failing_searches:
                raise PlaceProviderError("search unavailable", status_code=503)
            if query in self.broken_searches:
                raise AttributeError("'str' object has no attribute 'get'")
            record = self.places.get(query)
            if record is None:
                return None
            return PlaceCandidate(place_id=record.place_id, name=record.name, coordinates=record.coordinates)
        finally:
            self.in_flight -= 1

    async def get_details(self, place_id: str) -> PlaceRecord | None:
        self.detail_calls.append(place_id)
        if place_id in self.failing_details:
            raise PlaceProviderError("details unavailable", status_code=500)
        for record in self.places.values():
            if record.place_id == place_id:
                return record
        return None


# =============================================================================
# Config Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def clear_config_cache():
    """Make sure no test sees another test's cached configuration."""
    reset_config()
    yield
    reset_config()


@pytest.fixture
def app_config() -> AppConfig:
    """Config with keys set, no retries and no chunk pause."""
    return AppConfig(
        ai=AIConfig(api_key="test-gemini-key", max_retries=0, retry_base_delay=0.0),
        places=PlacesConfig(api_key="test-maps-key", chunk_delay_seconds=0.0),
    )


# =============================================================================
# AI Mocks
# =============================================================================


@pytest.fixture
def mock_client() -> MagicMock:
    """AIClient mock; set ``generate.return_value`` or ``side_effect`` per test."""
    client = MagicMock(spec=AIClient)
    client.generate.return_value = make_response({})
    return client


# =============================================================================
# Analyzer Output Fixtures
# =============================================================================


@pytest.fixture
def sample_visa_analysis() -> VisaAnalysis:
    return VisaAnalysis(
        requirements=VisaRequirements(
            visa_type="Standard Visitor Visa",
            processing_days=15,
            fees=Fee(amount=115, currency="GBP"),
            documents_required=["Valid passport (6+ months validity)", "Bank statements (3-6 months)"],
        ),
        checklist=[
            ChecklistItem(requirement="Valid passport (6+ months validity)", status="met", document_type="passport"),
            ChecklistItem(requirement="Bank statements (3-6 months)", status="missing", document_type="bank_statement"),
        ],
        approval_likelihood="medium",
        approval_percentage=45,
        missing_documents=["Bank statements (3-6 months)"],
        recommendations=["Upload the missing documents: Bank statements (3-6 months)"],
        flights_link="https://app.diasporaai.dev/flights?from=NG&to=GB",
    )


@pytest.fixture
def sample_legal_analysis() -> LegalAnalysis:
    return LegalAnalysis(
        contract_type="employment",
        parties=["Acme Corp", "Jordan Lee"],
        clauses=[
            AnalyzedClause(
                clause_id="7.2",
                clause_name="Non-Compete",
                plain_english="You cannot work for a competitor for 3 years anywhere.",
                risk_level="danger",
                red_flag_type="non_compete",
                negotiation_tip="Limit to 6 months maximum",
            ),
            AnalyzedClause(clause_id="3.1", clause_name="Salary", plain_english="You are paid monthly."),
        ],
        overall_risk="high",
        risk_score=72,
        danger_clauses=["Non-Compete"],
        must_negotiate=["Shorten the non-compete"],
        recommend_lawyer=True,
    )


@pytest.fixture
def sample_scam_analysis() -> ScamAnalysis:
    return ScamAnalysis(
        scam_likelihood="likely_scam",
        confidence_score=0.92,
        red_flags=[
            ScamRedFlag(
                flag="payment_redirect",
                flag_name="Payment Redirect Fraud",
                evidence="Please use our new account",
                severity="critical",
            )
        ],
        urgency_tactics=["Pay within 24 hours"],
        recommended_actions=["🚨 DO NOT make any payments"],
    )


@pytest.fixture
def sample_conversation_analysis() -> ConversationAnalysis:
    return ConversationAnalysis(
        track=PersonalTrack.RELATIONSHIP,
        threat_level="orange",
        tactics=[
            Tactic(
                tactic="gaslighting",
                tactic_name="Gaslighting",
                severity="high",
                confidence=0.9,
                evidence_quotes=["That never happened, you're imagining things"],
            ),
            Tactic(tactic="guilt_tripping", tactic_name="Guilt Tripping", severity="medium"),
        ],
        health_score=35,
        explanation="They are denying events you remember clearly.",
        validation="Your memory of events is valid.",
        translations=[Translation(original="You're too sensitive", meaning="Your feelings don't matter to me")],
        recommended_responses=[RecommendedResponse(type="boundary", response="I remember it differently.")],
        immediate_actions=["Write down what happened while it's fresh"],
    )


# =============================================================================
# Places Fixtures
# =============================================================================


@pytest.fixture
def fake_places() -> FakePlaceProvider:
    """Provider knowing the Eiffel Tower, the Louvre and a hotel."""
    return FakePlaceProvider(
        {
            "Eiffel Tower": make_place(
                "place-eiffel",
                "Eiffel Tower",
                price_level=2,
                photo_urls=["https://photos.example/eiffel.jpg"],
                top_review=TopReview(author_name="Ana", rating=5, text="Breathtaking at night. " * 20),
            ),
            "Louvre Museum": make_place("place-louvre", "Louvre Museum", lat=48.8606, lng=2.3376),
            "Hotel Lutetia": make_place("place-lutetia", "Hotel Lutetia", lat=48.8511, lng=2.3270),
        }
    )


@pytest.fixture
def sample_itinerary_payload() -> dict:
    return {
        "type": "itinerary",
        "title": "Paris in Two Days",
        "destination": "Paris, France",
        "days": [
            {
                "day_number": 1,
                "title": "Icons",
                "activities": [
                    {"title": "Flight to CDG", "type": "flight"},
                    {"title": "Hotel Lutetia", "type": "hotel"},
                    {"title": "Eiffel Tower", "type": "attraction", "time": "18:00"},
                ],
            },
            {
                "day_number": 2,
                "title": "Museums",
                "activities": [
                    {"title": "Louvre Museum", "type": "attraction", "price": "€22"},
                    {"title": "Hidden Speakeasy", "type": "restaurant"},
                ],
            },
        ],
    }


# =============================================================================
# Utility Fixtures
# =============================================================================


@pytest.fixture
def png_bytes() -> bytes:
    """A tiny PNG image."""
    buffer = BytesIO()
    Image.new("RGB", (8, 8), color="red").save(buffer, format="PNG")
    return buffer.getvalue()
