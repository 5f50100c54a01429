"""Track analyzers for Cleir.

Each routable track is bound to exactly one analyzer. The registry builders
below produce complete bindings for a family; callers may replace any entry.
"""

from __future__ import annotations

from cleir.ai.client import AIClient
from cleir.analyzers.base import AnalysisError, BaseAnalyzer
from cleir.analyzers.conversation import ConversationAnalyzer
from cleir.analyzers.legal import LegalAnalyzer
from cleir.analyzers.scam import ScamDocumentAnalyzer
from cleir.analyzers.trip import TripAnalyzer
from cleir.analyzers.visa import VisaAnalyzer
from cleir.models import BusinessTrack, PersonalTrack


def build_business_analyzers(client: AIClient) -> dict[BusinessTrack, BaseAnalyzer]:
    return {
        BusinessTrack.VISA: VisaAnalyzer(client),
        BusinessTrack.LEGAL: LegalAnalyzer(client),
        BusinessTrack.SCAM_DOCUMENT: ScamDocumentAnalyzer(client),
        BusinessTrack.TRIP: TripAnalyzer(client),
    }


def build_personal_analyzers(client: AIClient) -> dict[PersonalTrack, BaseAnalyzer]:
    return {
        track: ConversationAnalyzer(client, track)
        for track in PersonalTrack
        if track is not PersonalTrack.UNKNOWN
    }


__all__ = [
    "AnalysisError",
    "BaseAnalyzer",
    "ConversationAnalyzer",
    "LegalAnalyzer",
    "ScamDocumentAnalyzer",
    "TripAnalyzer",
    "VisaAnalyzer",
    "build_business_analyzers",
    "build_personal_analyzers",
]
