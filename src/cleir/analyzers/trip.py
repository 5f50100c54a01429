"""Multi-country trip planner.

Works out the visa situation for every stop of a trip, flags transit hubs
that need a transit visa, orders visa applications by processing time and
consolidates the paperwork. Runs entirely on reference tables; no model
round trip is needed.
"""

from __future__ import annotations

from urllib.parse import urlencode

from cleir.analyzers.base import BaseAnalyzer
from cleir.analyzers.visa import get_visa_requirements
from cleir.models import (
    BusinessTrack,
    CombinedDocument,
    CostBreakdown,
    LayoverAlert,
    StopAnalysis,
    TripAnalysis,
    TripInput,
)

# =============================================================================
# Reference Data
# =============================================================================

COUNTRY_NAMES: dict[str, str] = {
    "US": "United States",
    "GB": "United Kingdom",
    "CA": "Canada",
    "AU": "Australia",
    "NZ": "New Zealand",
    "DE": "Germany",
    "FR": "France",
    "IT": "Italy",
    "ES": "Spain",
    "NL": "Netherlands",
    "BE": "Belgium",
    "CH": "Switzerland",
    "AT": "Austria",
    "PT": "Portugal",
    "GR": "Greece",
    "JP": "Japan",
    "KR": "South Korea",
    "CN": "China",
    "SG": "Singapore",
    "AE": "United Arab Emirates",
    "QA": "Qatar",
    "SA": "Saudi Arabia",
    "ZA": "South Africa",
    "KE": "Kenya",
    "NG": "Nigeria",
    "GH": "Ghana",
    "EG": "Egypt",
    "MA": "Morocco",
    "BR": "Brazil",
    "MX": "Mexico",
    "AR": "Argentina",
    "CO": "Colombia",
    "PE": "Peru",
    "IN": "India",
    "TH": "Thailand",
    "MY": "Malaysia",
    "ID": "Indonesia",
    "PH": "Philippines",
    "VN": "Vietnam",
    "TR": "Turkey",
    "RU": "Russia",
    "PL": "Poland",
    "CZ": "Czech Republic",
    "HU": "Hungary",
    "SE": "Sweden",
    "NO": "Norway",
    "DK": "Denmark",
    "FI": "Finland",
    "IE": "Ireland",
}

# country -> (airport, visa-free transit, max visa-free hours, notes)
TRANSIT_VISA_INFO: dict[str, tuple[str, bool, int | None, str]] = {
    "AE": (
        "Dubai (DXB)",
        True,
        24,
        "Most nationalities can transit without visa for up to 24 hours. 96-hour transit visa available.",
    ),
    "QA": (
        "Doha (DOH)",
        True,
        24,
        "Transit without visa permitted if staying in airport for less than 24 hours.",
    ),
    "TR": (
        "Istanbul (IST)",
        True,
        24,
        "Airside transit usually permitted. Check specific nationality requirements.",
    ),
    "GB": (
        "London (LHR/LGW)",
        False,
        None,
        "Transit visa often required. Check UK transit visa requirements for your nationality.",
    ),
    "US": (
        "Various US airports",
        False,
        None,
        "Transit visa (C visa) or ESTA required. No airside transit available - must clear immigration.",
    ),
    "SG": (
        "Singapore (SIN)",
        True,
        96,
        "Most nationalities can get VFTI (Visa Free Transit Facility) for up to 96 hours.",
    ),
}

TRAVEL_ADVISORIES: dict[str, tuple[str, str]] = {
    "US": ("none", ""),
    "GB": ("none", ""),
    "CA": ("none", ""),
    "AU": ("none", ""),
    "DE": ("none", ""),
    "FR": ("low", "Exercise normal precautions. Be aware of pickpockets in tourist areas."),
    "IT": ("low", "Exercise normal precautions. Watch for petty theft in major cities."),
    "AE": ("none", ""),
    "SG": ("none", ""),
    "JP": ("none", ""),
}

TRANSIT_PURPOSES = ("layover", "transit")
LONG_PROCESSING_DAYS = 20
MIN_INSURANCE = 50.0
INSURANCE_PER_DAY = 2.0
MULTI_CITY_URL = "https://app.diasporaai.dev/multi-city"


def country_name(code: str) -> str:
    return COUNTRY_NAMES.get(code.upper(), code)


# =============================================================================
# Planning Steps
# =============================================================================


def optimize_visa_order(per_stop: list[StopAnalysis]) -> tuple[list[str], str]:
    """Order visa applications, longest processing time first.

    Visa-free countries follow in trip order.

    Returns:
        ``(suggested_order, reason)``.
    """
    needing_visa = sorted(
        (s for s in per_stop if s.visa_required),
        key=lambda s: s.processing_days,
        reverse=True,
    )

    order: list[str] = []
    reasons: list[str] = []
    for stop in needing_visa:
        if stop.country in order:
            continue
        order.append(stop.country)
        if stop.processing_days > LONG_PROCESSING_DAYS:
            reasons.append(f"{stop.country_name} visa takes {stop.processing_days}+ days")

    for stop in per_stop:
        if not stop.visa_required and stop.country not in order:
            order.append(stop.country)

    if reasons:
        reason = f"Apply for visas in this order: {'. '.join(reasons)}. This ensures adequate processing time."
    else:
        reason = "No specific order required - visas have similar processing times."
    return order, reason


def consolidate_documents(per_stop: list[StopAnalysis]) -> list[CombinedDocument]:
    """Merge per-stop document lists, most widely needed first."""
    doc_countries: dict[str, list[str]] = {}
    for stop in per_stop:
        for document in stop.documents:
            countries = doc_countries.setdefault(document, [])
            if stop.country_name not in countries:
                countries.append(stop.country_name)

    combined = [CombinedDocument(document=doc, for_countries=countries) for doc, countries in doc_countries.items()]
    # sorted() is stable, so ties keep first-seen order
    return sorted(combined, key=lambda d: len(d.for_countries), reverse=True)


def estimate_costs(per_stop: list[StopAnalysis], total_days: int) -> CostBreakdown:
    visa_fees = sum(s.fees.amount for s in per_stop if s.fees is not None)
    insurance = max(MIN_INSURANCE, total_days * INSURANCE_PER_DAY)
    return CostBreakdown(visa_fees=visa_fees, insurance=insurance)


def multi_city_link(trip: TripInput) -> str:
    params = {
        "from": trip.passport_country,
        "destinations": ",".join(stop.country for stop in trip.stops),
        "type": "multi-city",
    }
    return f"{MULTI_CITY_URL}?{urlencode(params)}"


# =============================================================================
# Analyzer
# =============================================================================


class TripAnalyzer(BaseAnalyzer):
    """Per-stop visa planning for a multi-country trip."""

    track = BusinessTrack.TRIP

    def analyze(self, analyzer_input: TripInput) -> TripAnalysis:
        self.logger.info(
            f"Planning trip for {analyzer_input.passport_country} passport, {len(analyzer_input.stops)} stops"
        )

        per_stop: list[StopAnalysis] = []
        layover_alerts: list[LayoverAlert] = []
        total_days = 0

        for stop in analyzer_input.stops:
            code = stop.country.upper()
            name = country_name(code)
            days = stop.duration or 1
            total_days += days

            requirements = get_visa_requirements(analyzer_input.passport_country, code)
            advisory, advisory_notes = TRAVEL_ADVISORIES.get(code, ("none", ""))

            per_stop.append(
                StopAnalysis(
                    country=code,
                    country_name=name,
                    city=stop.city,
                    duration=days,
                    visa_required=requirements.visa_required,
                    visa_type=requirements.visa_type,
                    processing_days=requirements.processing_days,
                    documents=list(requirements.documents_required),
                    fees=requirements.fees,
                    travel_advisory=advisory,
                    advisory_notes=advisory_notes or None,
                    notes=". ".join(requirements.additional_requirements) or None,
                )
            )

            if stop.purpose.lower() in TRANSIT_PURPOSES and code in TRANSIT_VISA_INFO:
                airport, visa_free, max_hours, notes = TRANSIT_VISA_INFO[code]
                layover_alerts.append(
                    LayoverAlert(
                        airport=airport,
                        country=name,
                        transit_visa_required=not visa_free,
                        max_hours=max_hours,
                        notes=notes,
                    )
                )

        suggested_order, ordering_reason = optimize_visa_order(per_stop)
        visas_required = sum(1 for s in per_stop if s.visa_required)

        self.logger.info(f"Trip planned: {visas_required} visas for {len(per_stop)} countries")

        return TripAnalysis(
            total_countries=len(per_stop),
            total_days=total_days,
            visas_required=visas_required,
            per_stop=per_stop,
            layover_alerts=layover_alerts,
            document_checklist=consolidate_documents(per_stop),
            suggested_order=suggested_order,
            ordering_reason=ordering_reason,
            estimated_cost=estimate_costs(per_stop, total_days),
            multi_city_link=multi_city_link(analyzer_input),
        )
