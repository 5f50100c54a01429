"""Conversation analyzer for the personal tracks.

One analyzer class serves relationship, scam and self-analysis conversations;
the track selects the system instruction and the default safety resources.
"""

from __future__ import annotations

from cleir.ai.prompts import CONVERSATION_ANALYST_SYSTEMS, CONVERSATION_PROMPT
from cleir.analyzers.base import BaseAnalyzer, as_int, clamp, dict_list, optional_str, str_list
from cleir.analyzers.taxonomy import normalize_tactic, tactic_catalogue, threat_level_from_tactics
from cleir.models import (
    ConversationAnalysis,
    ConversationInput,
    PersonalTrack,
    RecommendedResponse,
    SafetyResource,
    Translation,
)

THREAT_LEVELS = ("green", "yellow", "orange", "red")
MAX_SAFETY_RESOURCES = 5

DEFAULT_SAFETY_RESOURCES: dict[PersonalTrack, list[SafetyResource]] = {
    PersonalTrack.RELATIONSHIP: [
        SafetyResource(
            name="National Domestic Violence Hotline",
            contact="1-800-799-7233",
            description="24/7 support for domestic violence situations",
            url="https://thehotline.org",
        ),
        SafetyResource(
            name="Crisis Text Line",
            contact="Text HOME to 741741",
            description="Free 24/7 crisis counseling via text",
            url="https://crisistextline.org",
        ),
        SafetyResource(
            name="RAINN (Rape, Abuse & Incest National Network)",
            contact="1-800-656-4673",
            description="24/7 support for sexual assault survivors",
            url="https://rainn.org",
        ),
    ],
    PersonalTrack.SCAM: [
        SafetyResource(
            name="FTC Report Fraud",
            contact="reportfraud.ftc.gov",
            description="Report scams to the Federal Trade Commission",
            url="https://reportfraud.ftc.gov",
        ),
        SafetyResource(
            name="IC3 (FBI Internet Crime)",
            contact="ic3.gov",
            description="Report internet crimes to the FBI",
            url="https://www.ic3.gov",
        ),
        SafetyResource(
            name="AARP Fraud Helpline",
            contact="1-877-908-3360",
            description="Fraud support and reporting",
            url="https://aarp.org/fraud",
        ),
        SafetyResource(
            name="IdentityTheft.gov",
            contact="identitytheft.gov",
            description="Report and recover from identity theft",
            url="https://www.identitytheft.gov",
        ),
    ],
    PersonalTrack.SELF_ANALYSIS: [
        SafetyResource(
            name="Psychology Today Therapist Finder",
            contact="psychologytoday.com/therapists",
            description="Find a therapist in your area",
            url="https://www.psychologytoday.com/us/therapists",
        ),
        SafetyResource(
            name="BetterHelp",
            contact="betterhelp.com",
            description="Online therapy and counseling",
            url="https://betterhelp.com",
        ),
        SafetyResource(
            name="7 Cups",
            contact="7cups.com",
            description="Free emotional support from trained listeners",
            url="https://7cups.com",
        ),
    ],
}


def merge_safety_resources(
    suggested: list[SafetyResource],
    track: PersonalTrack,
) -> list[SafetyResource]:
    """Model suggestions first, then defaults, deduplicated by name."""
    merged: list[SafetyResource] = []
    seen: set[str] = set()
    for resource in suggested + DEFAULT_SAFETY_RESOURCES.get(track, []):
        if resource.name in seen:
            continue
        seen.add(resource.name)
        merged.append(resource)
    return merged[:MAX_SAFETY_RESOURCES]


class ConversationAnalyzer(BaseAnalyzer):
    """Tactic, psychology and defense analysis for one personal track.

    Args:
        client: Model client.
        track: The personal track this instance serves.
    """

    def __init__(self, client, track: PersonalTrack, parser=None) -> None:
        if track is PersonalTrack.UNKNOWN:
            raise ValueError("ConversationAnalyzer needs a concrete track")
        super().__init__(client, parser)
        self.track = track

    def analyze(self, analyzer_input: ConversationInput) -> ConversationAnalysis:
        conversation = analyzer_input.text or "(See the attached screenshot.)"

        result = self._ask(
            CONVERSATION_PROMPT,
            image=analyzer_input.image_bytes,
            mime_type=analyzer_input.image_mime_type,
            system_instruction=CONVERSATION_ANALYST_SYSTEMS[self.track.value],
            temperature=0.3,
            track=self.track.value,
            tactic_catalogue=tactic_catalogue(self.track),
            conversation=f"CONVERSATION:\n{conversation}",
        )

        tactics = [normalize_tactic(t, self.track) for t in dict_list(result.get("tactics"))]

        reported = (optional_str(result.get("threatLevel")) or "").lower()
        if reported not in THREAT_LEVELS:
            reported = "yellow"
        threat_level = max(reported, threat_level_from_tactics(tactics), key=THREAT_LEVELS.index)
        if threat_level != reported:
            self.logger.info(f"Raised threat level {reported} -> {threat_level} from detected tactics")

        translations = [
            Translation(
                original=optional_str(t.get("original")),
                meaning=optional_str(t.get("meaning")),
                tactic_used=optional_str(t.get("tacticUsed")),
            )
            for t in dict_list(result.get("translations"))
            if optional_str(t.get("original")) and optional_str(t.get("meaning"))
        ]
        responses = [
            RecommendedResponse(
                type=str(r.get("type") or "boundary"),
                response=str(r["response"]),
                explanation=str(r.get("explanation") or ""),
            )
            for r in dict_list(result.get("recommendedResponses"))
            if r.get("response")
        ]
        suggested_resources = [
            SafetyResource(
                name=str(r["name"]),
                contact=str(r.get("contact") or ""),
                description=str(r.get("description") or ""),
                url=optional_str(r.get("url")),
            )
            for r in dict_list(result.get("safetyResources"))
            if r.get("name")
        ]

        self.logger.info(f"{self.track.value} analysis complete: {threat_level}, {len(tactics)} tactics")

        return ConversationAnalysis(
            track=self.track,
            threat_level=threat_level,
            pattern_type=optional_str(result.get("patternType")),
            scam_type=optional_str(result.get("scamType")),
            tactics=tactics,
            health_score=int(clamp(as_int(result.get("healthScore"), 50), 0, 100)),
            explanation=str(result.get("explanation") or ""),
            validation=str(result.get("validation") or ""),
            translations=translations,
            recommended_responses=responses,
            immediate_actions=str_list(result.get("immediateActions")),
            safety_resources=merge_safety_resources(suggested_resources, self.track),
        )
