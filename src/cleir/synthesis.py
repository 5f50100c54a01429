"""Report synthesis for Cleir.

Turns one analyzer output into a ``SynthesizedReport``: a headline, a
markdown body, ordered action items and a voice rendering. Synthesis is
deterministic; it never calls the model.

Example:
    >>> stage = SynthesisStage()
    >>> report = stage.synthesize(BusinessTrack.LEGAL, legal_analysis)
    >>> print(report.headline)
    Employment Contract: HIGH Risk (72/100)
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from cleir.config import AppConfig, get_config
from cleir.models import (
    AnalyzerOutput,
    BusinessTrack,
    ConversationAnalysis,
    DetectionResult,
    LegalAnalysis,
    PersonalTrack,
    ScamAnalysis,
    SynthesizedReport,
    TripAnalysis,
    VisaAnalysis,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Presentation Constants
# =============================================================================

BUSINESS_TYPE_EMOJIS: dict[BusinessTrack, str] = {
    BusinessTrack.VISA: "🛂",
    BusinessTrack.LEGAL: "📜",
    BusinessTrack.SCAM_DOCUMENT: "🎣",
    BusinessTrack.TRIP: "🗺️",
}

BUSINESS_SEVERITY_EMOJIS = {
    "safe": "🟢",
    "warning": "🟡",
    "danger": "🟠",
    "critical": "🔴",
}

PRIORITY_EMOJIS = {"high": "🔴", "medium": "🟡", "low": "🟢"}

PERSONAL_SEVERITY_EMOJIS = {
    "green": "💚",
    "yellow": "🟡",
    "orange": "🟠",
    "red": "🔴",
}

VOICE_EMOJI_REPLACEMENTS = [
    ("🟢", ""),
    ("🟡", "note: "),
    ("🟠", "warning: "),
    ("🔴", "critical: "),
]

BUSINESS_UNKNOWN_REPORT = """## 🔍 Document Analysis

I've analyzed your document but couldn't classify it into one of my specialized categories.

**What I found:** {reasoning}

### What I Can Help With:
- 🛂 **Visa & Travel Documents** - Passport analysis, visa requirements, immigration papers
- 📝 **Contracts & Legal Documents** - Agreement review, red flag detection, terms analysis
- 🚨 **Scam Detection** - Phishing emails, fake invoices, fraudulent messages
- ✈️ **Trip Planning** - Multi-city itineraries, travel logistics

**Try uploading:**
- A clearer image of the document
- A screenshot of the specific content you want analyzed
- Or describe what you need help with in the chat"""

PERSONAL_UNKNOWN_REPORT = """## 🔍 Conversation Analysis

I read your message but couldn't tell which kind of analysis would help most.

**What I found:** {reasoning}

### What I Can Help With:
- 🚩 **Relationship** - Manipulation tactics, gaslighting, controlling behaviour
- 🚨 **Scams** - Romance scams, fake prizes, impersonation, payment requests
- 🪞 **Self-Analysis** - Your own communication patterns and how to grow

**Try sharing:**
- A clearer screenshot of the conversation
- The conversation pasted as text
- Or pick a mode explicitly"""

UNKNOWN_TRACK_ACTIONS = {
    "business": {
        BusinessTrack.VISA: "Visa & travel documents: upload a passport, visa or immigration letter",
        BusinessTrack.LEGAL: "Contracts & legal documents: paste the agreement for a clause-by-clause review",
        BusinessTrack.SCAM_DOCUMENT: "Scam emails & invoices: share the message or invoice you want checked",
        BusinessTrack.TRIP: "Multi-city trips: list your stops and your passport country",
    },
    "personal": {
        PersonalTrack.RELATIONSHIP: "Relationship: share a conversation to check it for manipulation tactics",
        PersonalTrack.SCAM: "Scams: share a message that asks for money, gifts or personal details",
        PersonalTrack.SELF_ANALYSIS: "Self-analysis: share your own messages to review how you communicate",
    },
}

PERSONAL_DEFAULT_ACTIONS = {
    "red": "Talk to someone you trust about this conversation before replying",
    "orange": "Save a copy of this conversation and take time before you respond",
    "yellow": "Keep an eye on whether this pattern repeats",
    "green": "No action needed; keep communicating the way you are",
}


@dataclass
class ActionItem:
    action: str
    priority: str = "medium"


# =============================================================================
# Synthesis Stage
# =============================================================================


class SynthesisStage:
    """Builds reports from analyzer outputs.

    Args:
        config: Application config; the voice limits are read from it.
    """

    def __init__(self, config: AppConfig | None = None) -> None:
        self.config = config or get_config()

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def synthesize(
        self,
        track: PersonalTrack | BusinessTrack,
        output: AnalyzerOutput,
    ) -> SynthesizedReport:
        """Build the report for one analyzer output.

        Raises:
            TypeError: If ``output`` does not belong to ``track``.
        """
        if isinstance(track, PersonalTrack):
            if not isinstance(output, ConversationAnalysis):
                raise TypeError(f"Expected ConversationAnalysis for {track.value}, got {type(output).__name__}")
            report = self._personal_report(track, output)
        else:
            report = self._business_report(track, output)

        report.voice_text = self.optimize_for_voice(report.full_text)
        logger.info(f"Synthesized {report.track} report ({report.severity})")
        return report

    def canned_report(self, family: str, detection: DetectionResult) -> SynthesizedReport:
        """Report for input that could not be classified."""
        template = PERSONAL_UNKNOWN_REPORT if family == "personal" else BUSINESS_UNKNOWN_REPORT
        action_items = list(UNKNOWN_TRACK_ACTIONS["personal" if family == "personal" else "business"].values())
        action_items.append("Or upload a clearer image or paste the text")
        reasoning = detection.reasoning or "No clear match"
        full_text = template.format(reasoning=reasoning)
        return SynthesizedReport(
            headline="I couldn't classify this content",
            full_text=full_text,
            action_items=action_items,
            voice_text=self.optimize_for_voice(full_text),
            track="unknown",
            severity="unknown",
            is_fallback=True,
        )

    def optimize_for_voice(self, text: str) -> str:
        """Rewrite markdown into speech-friendly plain text."""
        voice = text.replace("**", "").replace("*", "")
        voice = re.sub(r"#{1,6}\s", "", voice)
        voice = re.sub(r"\[([^\]]+)\]\([^)]+\)", r"\1", voice)
        voice = voice.replace("•", "").replace("---", "")
        voice = re.sub(r"\n{3,}", "\n\n", voice)

        for emoji, spoken in VOICE_EMOJI_REPLACEMENTS:
            voice = voice.replace(emoji, spoken)
        voice = voice.strip()

        words = voice.split()
        if len(words) > self.config.voice.max_words:
            voice = " ".join(words[: self.config.voice.truncate_to]) + "..."
        return voice

    # -------------------------------------------------------------------------
    # Business Family
    # -------------------------------------------------------------------------

    def _business_report(self, track: BusinessTrack, output: AnalyzerOutput) -> SynthesizedReport:
        builders = {
            BusinessTrack.VISA: (VisaAnalysis, self._visa_parts),
            BusinessTrack.LEGAL: (LegalAnalysis, self._legal_parts),
            BusinessTrack.SCAM_DOCUMENT: (ScamAnalysis, self._scam_parts),
            BusinessTrack.TRIP: (TripAnalysis, self._trip_parts),
        }
        if track not in builders:
            raise TypeError(f"No report builder for track: {track.value}")
        expected, build = builders[track]
        if not isinstance(output, expected):
            raise TypeError(f"Expected {expected.__name__} for {track.value}, got {type(output).__name__}")

        headline, severity, summary, findings, actions, link = build(output)

        text = f"{BUSINESS_TYPE_EMOJIS[track]} **{headline}**\n\n"
        text += f"{BUSINESS_SEVERITY_EMOJIS[severity]} {severity.upper()}\n\n"
        text += f"{summary}\n\n"
        if findings:
            text += "**Key Findings:**\n"
            text += "\n".join(f"• {f}" for f in findings)
            text += "\n\n"
        if actions:
            text += "**Action Items:**\n"
            text += "\n".join(
                f"{i}. {PRIORITY_EMOJIS[item.priority]} {item.action}" for i, item in enumerate(actions, start=1)
            )
            text += "\n\n"
        if link:
            text += f"---\n✈️ **Ready to book?** [Book on Diaspora AI →]({link})\n"

        return SynthesizedReport(
            headline=headline,
            full_text=text.strip(),
            action_items=[item.action for item in actions],
            per_track_raw={track.value: output},
            track=track.value,
            severity=severity,
        )

    def _visa_parts(self, result: VisaAnalysis):
        met = sum(1 for c in result.checklist if c.status == "met")
        total = len(result.checklist)

        if result.approval_likelihood == "high":
            severity = "safe"
        elif result.approval_likelihood == "medium":
            severity = "warning"
        elif result.critical_issues:
            severity = "critical"
        else:
            severity = "danger"

        headline = (
            f"Visa Approval Likelihood: {result.approval_likelihood.upper()} ({result.approval_percentage}%)"
        )
        summary = (
            f"{result.requirements.visa_type}: {met} of {total} requirements met. "
            f"Processing takes about {result.requirements.processing_days} days."
        )

        findings = [f"{c.requirement}: {c.status}" for c in result.checklist if c.status != "met"]
        findings += [f"Critical issue: {issue}" for issue in result.critical_issues]
        if result.requirements.fees is not None:
            findings.append(f"Visa fee: {result.requirements.fees.currency} {result.requirements.fees.amount:g}")

        actions = [ActionItem(f"Fix: {issue}", "high") for issue in result.critical_issues]
        actions += [ActionItem(rec, "medium") for rec in result.recommendations]
        if not actions:
            actions.append(
                ActionItem(f"Apply at least {result.requirements.processing_days} days before you travel", "low")
            )
        return headline, severity, summary, findings, actions, result.flights_link

    def _legal_parts(self, result: LegalAnalysis):
        severity = {"low": "safe", "medium": "warning", "high": "danger", "critical": "critical"}[result.overall_risk]
        contract = result.contract_type.replace("_", " ").title()
        headline = f"{contract} Contract: {result.overall_risk.upper()} Risk ({result.risk_score}/100)"

        danger = [c for c in result.clauses if c.risk_level == "danger"]
        caution = [c for c in result.clauses if c.risk_level == "caution"]
        parties = " & ".join(result.parties) if result.parties else "the parties"
        summary = (
            f"Reviewed {len(result.clauses)} clauses between {parties}: "
            f"{len(danger)} dangerous, {len(caution)} worth a closer look."
        )

        findings = [f"{c.clause_name}: {c.plain_english}" for c in danger]
        findings += [f"{name} needs attention" for name in result.caution_clauses if name not in {c.clause_name for c in danger}]
        if result.recommend_lawyer:
            findings.append(f"Lawyer review recommended{': ' + result.lawyer_reason if result.lawyer_reason else ''}")

        actions = [ActionItem(item, "high") for item in result.must_negotiate]
        actions += [
            ActionItem(f"{c.clause_name}: {c.negotiation_tip}", "medium") for c in danger if c.negotiation_tip
        ]
        if result.recommend_lawyer:
            actions.append(ActionItem("Have a lawyer review the contract before signing", "high"))
        if not actions:
            actions.append(ActionItem("Read the full contract once more before signing", "low"))
        return headline, severity, summary, findings, actions, None

    def _scam_parts(self, result: ScamAnalysis):
        if result.scam_likelihood == "likely_scam":
            severity = "critical"
            headline = "Likely Scam Detected"
        elif result.scam_likelihood == "suspicious":
            severity = "danger" if any(f.severity == "critical" for f in result.red_flags) else "warning"
            headline = "Suspicious Content: Verify Before Acting"
        else:
            severity = "safe"
            headline = "No Fraud Indicators Found"

        summary = (
            f"Assessment confidence {round(result.confidence_score * 100)}% "
            f"with {len(result.red_flags)} red flags found."
        )

        findings = [
            f"{f.flag_name} ({f.severity})" + (f": {f.evidence}" if f.evidence else "") for f in result.red_flags
        ]
        if result.verification.domain_legitimate is False:
            findings.append("Sender domain looks like a lookalike or spoofed domain")
        if result.verification.email_matches_company is False:
            findings.append("Sender domain does not match the claimed company")
        findings += [f"Urgency tactic: {t}" for t in result.urgency_tactics]
        findings += [f"Suspicious payment method: {m}" for m in result.suspicious_payment_methods]

        priority = {"likely_scam": "high", "suspicious": "medium", "safe": "low"}[result.scam_likelihood]
        actions = [ActionItem(action, priority) for action in result.recommended_actions]
        return headline, severity, summary, findings, actions, None

    def _trip_parts(self, result: TripAnalysis):
        advisories = {s.travel_advisory for s in result.per_stop}
        if "high" in advisories:
            severity = "danger"
        elif "medium" in advisories or result.visas_required or any(
            a.transit_visa_required for a in result.layover_alerts
        ):
            severity = "warning"
        else:
            severity = "safe"

        visa_word = "Visa" if result.visas_required == 1 else "Visas"
        headline = f"{result.total_countries}-Country Trip: {result.visas_required} {visa_word} Needed"
        summary = (
            f"{result.total_days} days across {result.total_countries} countries. "
            f"Estimated cost: {result.estimated_cost.visa_fees:g} in visa fees plus "
            f"about {result.estimated_cost.insurance:g} for travel insurance."
        )

        findings = []
        for stop in result.per_stop:
            visa = f"Visa required ({stop.visa_type})" if stop.visa_required else "No visa needed"
            findings.append(f"{stop.country_name}: {visa}")
            if stop.advisory_notes:
                findings.append(f"{stop.country_name} advisory: {stop.advisory_notes}")
        for alert in result.layover_alerts:
            status = "transit visa required" if alert.transit_visa_required else "visa-free transit"
            findings.append(f"Layover at {alert.airport}: {status}")

        actions = []
        if result.visas_required:
            actions.append(ActionItem(result.ordering_reason, "high"))
        for alert in result.layover_alerts:
            if alert.transit_visa_required:
                actions.append(ActionItem(f"Arrange a transit visa for {alert.airport}", "high"))
        docs = [d.document for d in result.document_checklist[:5]]
        if docs:
            actions.append(ActionItem(f"Gather documents: {', '.join(docs)}", "medium"))
        actions.append(ActionItem("Buy travel insurance covering every stop", "low"))
        return headline, severity, summary, findings, actions, result.multi_city_link

    # -------------------------------------------------------------------------
    # Personal Family
    # -------------------------------------------------------------------------

    def _personal_report(self, track: PersonalTrack, result: ConversationAnalysis) -> SynthesizedReport:
        emoji = PERSONAL_SEVERITY_EMOJIS[result.threat_level]

        text = f"# {emoji} Analysis Complete\n\n"
        if result.tactics:
            text += "## 🚩 Red Flags Detected\n\n"
            for t in result.tactics:
                evidence = t.evidence_quotes[0] if t.evidence_quotes else "Evidence found"
                text += f'- **{t.tactic_name}** ({t.severity}): "{evidence}"\n'
            text += "\n"
        if result.explanation:
            text += f"## 🧠 What's Happening\n\n{result.explanation}\n\n"
        if result.translations:
            text += "## 🗣️ Translation Table\n\n"
            text += "| What They Said | What They Meant |\n|---|---|\n"
            for tr in result.translations:
                text += f'| "{tr.original}" | {tr.meaning} |\n'
            text += "\n"
        if result.recommended_responses:
            text += "## 💪 Your Responses\n\n"
            for r in result.recommended_responses[:3]:
                text += f'**{r.type.upper()}:** "{r.response}"\n\n'
        if result.validation:
            text += f"\n---\n\n💜 {result.validation}"

        return SynthesizedReport(
            headline=personal_headline(track, result),
            full_text=text.strip(),
            action_items=list(result.immediate_actions) or [PERSONAL_DEFAULT_ACTIONS[result.threat_level]],
            per_track_raw={track.value: result},
            track=track.value,
            severity=result.threat_level,
        )


def personal_headline(track: PersonalTrack, result: ConversationAnalysis) -> str:
    level = result.threat_level
    count = len(result.tactics)

    if track is PersonalTrack.SCAM:
        if level == "red":
            return "🚨 HIGH RISK SCAM DETECTED"
        if level == "orange":
            return "⚠️ SUSPICIOUS ACTIVITY DETECTED"
        if level == "yellow":
            return "⚡ POSSIBLE SCAM INDICATORS"
        return "✅ NO SCAM DETECTED"

    if track is PersonalTrack.SELF_ANALYSIS:
        if count > 3:
            return "🪞 Multiple patterns identified for growth"
        if count > 0:
            return "💭 Some communication patterns to explore"
        return "💚 Healthy communication observed!"

    if level == "red":
        return f"🚩 {count} SERIOUS RED FLAGS DETECTED"
    if level == "orange":
        return f"⚠️ {count} MANIPULATION TACTICS FOUND"
    if level == "yellow":
        return f"⚡ {count} CONCERNING PATTERNS"
    return "💚 No manipulation detected!"
