"""Visa document analyzer.

Checks uploaded travel documents against the entry requirements for a
passport/destination pair, builds a requirement checklist and scores the
approval likelihood.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import urlencode

from cleir.ai.client import AIClientError
from cleir.ai.prompts import VISA_DOCUMENT_PROMPT
from cleir.analyzers.base import AnalysisError, BaseAnalyzer, as_float, dict_list, optional_str
from cleir.models import (
    AnalyzedDocument,
    BusinessTrack,
    ChecklistItem,
    Fee,
    Issue,
    VisaAnalysis,
    VisaInput,
    VisaRequirements,
)

# =============================================================================
# Requirements Data
# =============================================================================

COMMON_DOCUMENTS = [
    "Valid passport (6+ months validity)",
    "Bank statements (3-6 months)",
    "Employment letter or business documents",
    "Passport-sized photos",
    "Travel itinerary",
    "Accommodation proof",
]

DESTINATION_REQUIREMENTS: dict[str, dict] = {
    "GB": {
        "visa_type": "Standard Visitor Visa",
        "processing_days": 15,
        "financial_threshold": "£1,890 per month of stay",
        "documents_required": COMMON_DOCUMENTS
        + ["TB test certificate (if applicable)", "Cover letter explaining purpose"],
        "fees": Fee(amount=115, currency="GBP"),
    },
    "US": {
        "visa_type": "B1/B2 Visitor Visa",
        "processing_days": 30,
        "financial_threshold": "Evidence of strong ties to home country",
        "documents_required": COMMON_DOCUMENTS
        + ["DS-160 confirmation", "Interview appointment", "Evidence of ties to home country"],
        "fees": Fee(amount=185, currency="USD"),
    },
    "CA": {
        "visa_type": "Temporary Resident Visa",
        "processing_days": 20,
        "financial_threshold": "CAD 1,000/month plus return ticket",
        "documents_required": COMMON_DOCUMENTS
        + ["Biometrics appointment", "Purpose of travel letter"],
        "fees": Fee(amount=100, currency="CAD"),
    },
    "FR": {"visa_type": "Schengen Visa (France)", "processing_days": 15, "fees": Fee(amount=80, currency="EUR")},
    "DE": {"visa_type": "Schengen Visa (Germany)", "processing_days": 15, "fees": Fee(amount=80, currency="EUR")},
    "IT": {"visa_type": "Schengen Visa (Italy)", "processing_days": 15, "fees": Fee(amount=80, currency="EUR")},
    "ES": {"visa_type": "Schengen Visa (Spain)", "processing_days": 15, "fees": Fee(amount=80, currency="EUR")},
    "AE": {
        "visa_required": False,
        "visa_type": "Visa on Arrival",
        "processing_days": 0,
        "financial_threshold": "None specified",
        "documents_required": ["Valid passport", "Return ticket"],
        "fees": Fee(amount=0, currency="AED"),
    },
}

# Requirement keywords, checked in order, mapped to a document type
REQUIREMENT_KEYWORDS: list[tuple[tuple[str, ...], str]] = [
    (("passport",), "passport"),
    (("bank",), "bank_statement"),
    (("employment", "letter"), "employment_letter"),
    (("photo",), "photo"),
    (("tb test",), "tb_test"),
    (("hotel", "accommodation"), "hotel_booking"),
    (("flight", "itinerary"), "flight_booking"),
    (("insurance",), "insurance"),
]

FLIGHTS_URL = "https://app.diasporaai.dev/flights"


def get_visa_requirements(passport_country: str, destination_country: str) -> VisaRequirements:
    """Look up entry requirements, falling back to common defaults.

    Args:
        passport_country: ISO code of the traveller's passport.
        destination_country: ISO code of the destination.

    Returns:
        VisaRequirements for the destination.
    """
    overrides = DESTINATION_REQUIREMENTS.get(destination_country.upper(), {})
    params = {
        "visa_required": True,
        "visa_type": "Tourist Visa",
        "processing_days": 15,
        "financial_threshold": "Sufficient funds for duration of stay",
        "documents_required": list(COMMON_DOCUMENTS),
    }
    params.update(overrides)
    return VisaRequirements(**params)


def requirement_document_type(requirement: str) -> str | None:
    normalized = requirement.lower()
    for keywords, doc_type in REQUIREMENT_KEYWORDS:
        if any(keyword in normalized for keyword in keywords):
            return doc_type
    return None


def generate_checklist(
    documents: list[AnalyzedDocument],
    requirements: VisaRequirements,
) -> list[ChecklistItem]:
    """Match each required document against the analyzed uploads."""
    checklist: list[ChecklistItem] = []

    for required in requirements.documents_required:
        doc_type = requirement_document_type(required)
        match = next((d for d in documents if doc_type and d.type == doc_type), None)

        if match is None:
            checklist.append(
                ChecklistItem(
                    requirement=required,
                    status="missing",
                    details=f"Upload your {required}",
                    document_type=doc_type,
                )
            )
        elif not match.is_valid or any(i.severity == "blocker" for i in match.issues):
            blockers = [i.issue for i in match.issues if i.severity == "blocker"]
            checklist.append(
                ChecklistItem(
                    requirement=required,
                    status="issue",
                    details="; ".join(blockers) if blockers else "Document has issues that need to be resolved",
                    document_type=doc_type,
                )
            )
        else:
            checklist.append(
                ChecklistItem(
                    requirement=required,
                    status="met",
                    details="Document verified ✓",
                    document_type=doc_type,
                )
            )

    return checklist


def calculate_approval_likelihood(
    checklist: list[ChecklistItem],
    documents: list[AnalyzedDocument],
) -> tuple[str, int]:
    """Score approval odds from the checklist and document blockers.

    Returns:
        ``(likelihood, percentage)`` where likelihood is high, medium or low.
    """
    met = sum(1 for c in checklist if c.status == "met")
    issues = sum(1 for c in checklist if c.status == "issue")
    missing = sum(1 for c in checklist if c.status == "missing")
    blockers = sum(1 for d in documents for i in d.issues if i.severity == "blocker")

    percentage = round(met / len(checklist) * 100) if checklist else 0
    percentage -= issues * 10
    percentage -= missing * 20
    percentage -= blockers * 15
    percentage = max(0, min(100, percentage))

    if percentage >= 70:
        likelihood = "high"
    elif percentage >= 40:
        likelihood = "medium"
    else:
        likelihood = "low"
    return likelihood, percentage


def flights_link(passport_country: str, destination_country: str, travel_date: str | None = None) -> str:
    params = {"from": passport_country, "to": destination_country}
    if travel_date:
        params["date"] = travel_date
    return f"{FLIGHTS_URL}?{urlencode(params)}"


def _issue_from(data: dict[str, Any]) -> Issue:
    return Issue(
        issue=optional_str(data.get("issue")) or "Unspecified issue",
        severity=data.get("severity"),
        fix=optional_str(data.get("fix")) or "",
    )


# =============================================================================
# Analyzer
# =============================================================================


class VisaAnalyzer(BaseAnalyzer):
    """Validates travel documents for a visa application."""

    track = BusinessTrack.VISA

    def analyze(self, analyzer_input: VisaInput) -> VisaAnalysis:
        requirements = get_visa_requirements(
            analyzer_input.passport_country,
            analyzer_input.destination_country,
        )
        self.logger.info(
            f"Visa check {analyzer_input.passport_country} -> {analyzer_input.destination_country}: "
            f"{requirements.visa_type}"
        )

        documents: list[AnalyzedDocument] = []
        if analyzer_input.document_bytes:
            documents.append(
                self._analyze_document(
                    analyzer_input.document_bytes,
                    analyzer_input.document_mime_type,
                    requirements,
                )
            )

        checklist = generate_checklist(documents, requirements)
        likelihood, percentage = calculate_approval_likelihood(checklist, documents)

        missing_documents = [c.requirement for c in checklist if c.status == "missing"]
        critical_issues = [i.issue for d in documents for i in d.issues if i.severity == "blocker"]

        recommendations: list[str] = []
        if missing_documents:
            recommendations.append(f"Upload the missing documents: {', '.join(missing_documents)}")
        if critical_issues:
            recommendations.append("Resolve all critical issues before applying")
        if likelihood in ("medium", "low"):
            recommendations.append("Consider adding a cover letter explaining your purpose of visit")
        if "Visitor" in requirements.visa_type:
            recommendations.append("Ensure you have proof of ties to your home country")

        self.logger.info(f"Visa analysis complete: {likelihood} ({percentage}%)")

        return VisaAnalysis(
            documents_analyzed=documents,
            requirements=requirements,
            checklist=checklist,
            approval_likelihood=likelihood,
            approval_percentage=percentage,
            missing_documents=missing_documents,
            critical_issues=critical_issues,
            recommendations=recommendations,
            flights_link=flights_link(
                analyzer_input.passport_country,
                analyzer_input.destination_country,
                analyzer_input.travel_date,
            ),
        )

    def _analyze_document(
        self,
        data: bytes,
        mime_type: str | None,
        requirements: VisaRequirements,
    ) -> AnalyzedDocument:
        """Extract one document; any failure becomes a blocker issue."""
        try:
            result = self._ask(
                VISA_DOCUMENT_PROMPT,
                image=data,
                mime_type=mime_type,
                financial_threshold=requirements.financial_threshold,
                documents_required=", ".join(requirements.documents_required),
            )
            return AnalyzedDocument(
                type=str(result.get("documentType") or "other"),
                extracted=result.get("extracted") if isinstance(result.get("extracted"), dict) else {},
                issues=[_issue_from(i) for i in dict_list(result.get("issues")) if optional_str(i.get("issue"))],
                is_valid=bool(result.get("isValid", True)),
                confidence=max(0.0, min(1.0, as_float(result.get("confidence"), 0.8))),
                file_name="uploaded_document",
            )
        except (AIClientError, AnalysisError) as e:
            self.logger.warning(f"Document extraction failed: {type(e).__name__}")
            return AnalyzedDocument(
                type="other",
                file_name="uploaded_document",
                issues=[
                    Issue(
                        issue="Failed to analyze document",
                        severity="blocker",
                        fix="Please upload a clearer image of the document",
                    )
                ],
                is_valid=False,
                confidence=0.0,
            )
