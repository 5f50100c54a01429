"""Manipulation and scam tactic taxonomy.

Catalogue of the tactics the conversation analyzer reports, grouped by
category (relationship, scam, self). Model replies name tactics loosely;
``normalize_tactic`` maps them back onto catalogue keys so reports carry
canonical names, severities and categories.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from cleir.analyzers.base import as_float, clamp, optional_str, str_list
from cleir.models import PersonalTrack, Tactic

TACTIC_SEVERITIES = ("none", "low", "medium", "high", "critical")

# Threat level implied by the most severe tactic found
SEVERITY_THREAT_LEVELS = {
    "critical": "red",
    "high": "orange",
    "medium": "yellow",
    "low": "green",
    "none": "green",
}


@dataclass(frozen=True)
class TacticDefinition:
    """A known manipulation or scam tactic."""

    name: str
    severity: str
    category: str
    description: str
    markers: list[str] = field(default_factory=list)


RELATIONSHIP_TAXONOMY: dict[str, TacticDefinition] = {
    "gaslighting": TacticDefinition(
        "Gaslighting",
        "high",
        "relationship",
        "Making you question your own reality and memories",
        ["That never happened", "You're imagining things", "You're too sensitive"],
    ),
    "darvo": TacticDefinition(
        "DARVO",
        "high",
        "relationship",
        "Deny, Attack, Reverse Victim & Offender",
        ["I'm the real victim here", "Look what you made me do", "You're the abusive one"],
    ),
    "love_bombing": TacticDefinition(
        "Love Bombing",
        "medium",
        "relationship",
        "Overwhelming affection to create dependency",
        ["You're my soulmate", "I've never felt this way about anyone", "We're meant to be together"],
    ),
    "isolation": TacticDefinition(
        "Isolation",
        "high",
        "relationship",
        "Cutting you off from support systems",
        ["Your friends are bad influence", "Your family doesn't understand us", "You don't need anyone else"],
    ),
    "guilt_tripping": TacticDefinition(
        "Guilt Tripping",
        "medium",
        "relationship",
        "Using guilt to control behavior",
        ["After everything I've done for you", "I guess I'm just not important", "If you really cared"],
    ),
    "emotional_blackmail": TacticDefinition(
        "Emotional Blackmail",
        "critical",
        "relationship",
        "Using threats to control",
        ["If you leave, I'll hurt myself", "I'll die without you", "You'll regret this"],
    ),
    "stonewalling": TacticDefinition(
        "Stonewalling",
        "medium",
        "relationship",
        "Shutting down communication as punishment",
        ["I'm not talking about this", "Whatever", "I don't care"],
    ),
    "silent_treatment": TacticDefinition(
        "Silent Treatment",
        "medium",
        "relationship",
        "Withholding communication as punishment",
        ["Ignoring messages for days", "Refusing to speak"],
    ),
    "moving_goalposts": TacticDefinition(
        "Moving Goalposts",
        "medium",
        "relationship",
        "Changing expectations so you can never succeed",
        ["You still didn't do X", "It's not enough"],
    ),
    "triangulation": TacticDefinition(
        "Triangulation",
        "medium",
        "relationship",
        "Bringing in third parties to manipulate",
        ["My ex would never do this", "Everyone agrees with me"],
    ),
    "blame_shifting": TacticDefinition(
        "Blame Shifting",
        "high",
        "relationship",
        "Never taking responsibility, always your fault",
        ["If you hadn't", "You made me do this", "This is because of you"],
    ),
    "contempt": TacticDefinition(
        "Contempt",
        "high",
        "relationship",
        "Disrespect, mockery, and superiority",
        ["You're pathetic", "You're so stupid"],
    ),
    "invalidation": TacticDefinition(
        "Invalidation",
        "medium",
        "relationship",
        "Dismissing or minimizing feelings",
        ["You're being dramatic", "It's not that big of a deal", "You're too emotional"],
    ),
    "future_faking": TacticDefinition(
        "Future Faking",
        "medium",
        "relationship",
        "Making promises with no intention to keep them",
        ["I'll change, I promise", "Things will be different"],
    ),
    "projection": TacticDefinition(
        "Projection",
        "high",
        "relationship",
        "Accusing you of what they're doing",
        ["You're the one who's cheating", "You're the liar here"],
    ),
    "healthy_conflict": TacticDefinition(
        "Healthy Communication",
        "none",
        "relationship",
        "Normal disagreement without manipulation",
        ["I understand your perspective", "I'm sorry, I was wrong"],
    ),
}

SCAM_TAXONOMY: dict[str, TacticDefinition] = {
    "urgency_pressure": TacticDefinition(
        "Urgency Pressure",
        "high",
        "scam",
        "Creating false time pressure to prevent thinking",
        ["Act now", "Limited time", "Only today"],
    ),
    "fake_authority": TacticDefinition(
        "Fake Authority",
        "critical",
        "scam",
        "Impersonating officials, companies, or institutions",
        ["We are calling from", "This is the IRS", "Your bank has flagged"],
    ),
    "phishing_link": TacticDefinition(
        "Phishing Link",
        "critical",
        "scam",
        "Malicious links designed to steal information",
        ["Click here to verify", "Login to confirm", "Update your information"],
    ),
    "too_good_to_be_true": TacticDefinition(
        "Too Good To Be True",
        "high",
        "scam",
        "Unrealistic promises and offers",
        ["You've won", "Free gift", "Guaranteed returns"],
    ),
    "advance_fee": TacticDefinition(
        "Advance Fee Scam",
        "critical",
        "scam",
        "Requesting payment upfront for promised benefits",
        ["Small fee required", "Processing fee", "Transfer fee"],
    ),
    "impersonation": TacticDefinition(
        "Impersonation",
        "high",
        "scam",
        "Pretending to be someone you know",
        ["Hey it's me", "This is my new number", "I lost my phone"],
    ),
    "romance_scam": TacticDefinition(
        "Romance Scam",
        "critical",
        "scam",
        "Fake romantic interest to extract money",
        ["I love you but we haven't met", "I need money for a plane ticket"],
    ),
    "tech_support_scam": TacticDefinition(
        "Tech Support Scam",
        "critical",
        "scam",
        "Fake technical problems requiring immediate action",
        ["Your computer has a virus", "Remote access needed"],
    ),
    "lottery_inheritance": TacticDefinition(
        "Lottery/Inheritance Scam",
        "high",
        "scam",
        "Fake winnings or unexpected inheritance",
        ["You've inherited", "Lottery winner", "Unclaimed funds"],
    ),
    "investment_scam": TacticDefinition(
        "Investment Scam",
        "critical",
        "scam",
        "Fake investment opportunities with guaranteed returns",
        ["Guaranteed profit", "Risk-free investment", "Insider information"],
    ),
    "job_scam": TacticDefinition(
        "Job/Employment Scam",
        "high",
        "scam",
        "Fake job offers requiring payment or information",
        ["Work from home $5000/week", "No experience needed"],
    ),
    "sms_smishing": TacticDefinition(
        "SMS Smishing",
        "high",
        "scam",
        "Phishing via text message",
        ["Package delivery failed", "Unusual activity detected"],
    ),
}

SELF_TAXONOMY: dict[str, TacticDefinition] = {
    "over_apologizing": TacticDefinition(
        "Over-Apologizing",
        "medium",
        "self",
        "Excessive apologies, even when not at fault",
        ["I'm sorry for", "Sorry to bother you"],
    ),
    "minimizing_needs": TacticDefinition(
        "Minimizing Your Needs",
        "medium",
        "self",
        "Downplaying your own feelings and needs",
        ["It's not a big deal", "I'm probably overreacting", "Never mind, it's fine"],
    ),
    "fawning": TacticDefinition(
        "Fawning Response",
        "high",
        "self",
        "People-pleasing to avoid conflict or danger",
        ["Whatever you want", "I'll do anything"],
    ),
    "self_blame": TacticDefinition(
        "Self-Blame",
        "high",
        "self",
        "Taking responsibility for others' behavior",
        ["It's my fault they", "I made them angry", "If I had just"],
    ),
    "trauma_bonding_language": TacticDefinition(
        "Trauma Bonding Language",
        "high",
        "self",
        "Defending or excusing abusive behavior",
        ["But they also do nice things", "They didn't mean it"],
    ),
    "seeking_validation": TacticDefinition(
        "Excessive Validation Seeking",
        "medium",
        "self",
        "Constantly checking if you're okay/liked",
        ["Are you mad at me", "Did I do something wrong"],
    ),
    "walking_on_eggshells": TacticDefinition(
        "Walking on Eggshells",
        "high",
        "self",
        "Excessive caution to avoid triggering others",
        ["I didn't want to upset you", "I was afraid to say"],
    ),
    "healthy_communication": TacticDefinition(
        "Healthy Self-Expression",
        "none",
        "self",
        "Clear, confident communication patterns",
        ["I feel", "I need", "My boundary is"],
    ),
}

FULL_TAXONOMY: dict[str, TacticDefinition] = {**RELATIONSHIP_TAXONOMY, **SCAM_TAXONOMY, **SELF_TAXONOMY}

TRACK_TAXONOMIES: dict[PersonalTrack, dict[str, TacticDefinition]] = {
    PersonalTrack.RELATIONSHIP: RELATIONSHIP_TAXONOMY,
    PersonalTrack.SCAM: SCAM_TAXONOMY,
    PersonalTrack.SELF_ANALYSIS: SELF_TAXONOMY,
}

TRACK_CATEGORIES: dict[PersonalTrack, str] = {
    PersonalTrack.RELATIONSHIP: "relationship",
    PersonalTrack.SCAM: "scam",
    PersonalTrack.SELF_ANALYSIS: "self",
}

# Spellings models commonly use for catalogue keys
TACTIC_ALIASES = {
    "gaslight": "gaslighting",
    "love_bomb": "love_bombing",
    "guilt_trip": "guilt_tripping",
    "guilt": "guilt_tripping",
    "blackmail": "emotional_blackmail",
    "silence": "silent_treatment",
    "moving_the_goalposts": "moving_goalposts",
    "blaming": "blame_shifting",
    "false_urgency": "urgency_pressure",
    "urgency": "urgency_pressure",
    "authority": "fake_authority",
    "phishing": "phishing_link",
    "advance_fee_fraud": "advance_fee",
    "smishing": "sms_smishing",
    "pig_butchering": "investment_scam",
    "apologizing": "over_apologizing",
    "people_pleasing": "fawning",
    "trauma_bonding": "trauma_bonding_language",
    "validation_seeking": "seeking_validation",
}


def slugify_tactic(value: str) -> str:
    """Lower-case snake_case form of a tactic key or name."""
    return re.sub(r"[^a-z0-9]+", "_", value.lower()).strip("_")


_NAME_KEYS = {slugify_tactic(d.name): key for key, d in FULL_TAXONOMY.items()}


def lookup_tactic(value: str | None) -> tuple[str, TacticDefinition] | None:
    """Find the catalogue entry for a key, alias or display name."""
    if not value:
        return None
    slug = slugify_tactic(value)
    key = slug if slug in FULL_TAXONOMY else TACTIC_ALIASES.get(slug) or _NAME_KEYS.get(slug)
    if key is None:
        return None
    return key, FULL_TAXONOMY[key]


def normalize_tactic(data: dict[str, Any], track: PersonalTrack) -> Tactic:
    """Build a Tactic from a model-reported entry.

    Known tactics take the catalogue key, name and category; the reported
    severity is kept when valid and otherwise falls back to the catalogue's.
    Unknown tactics keep a slugged key and are filed under the track's
    category.
    """
    reported_key = optional_str(data.get("tactic"))
    reported_name = optional_str(data.get("tacticName"))
    found = lookup_tactic(reported_key) or lookup_tactic(reported_name)

    if found is not None:
        key, definition = found
        name = definition.name
        default_severity = definition.severity
        category = definition.category
    else:
        key = slugify_tactic(reported_key or reported_name or "") or "unknown"
        name = reported_name or key.replace("_", " ").title()
        default_severity = "medium"
        category = TRACK_CATEGORIES.get(track, "other")

    severity = (optional_str(data.get("severity")) or "").lower()
    return Tactic(
        tactic=key,
        tactic_name=name,
        category=category,
        severity=severity if severity in TACTIC_SEVERITIES else default_severity,
        confidence=clamp(as_float(data.get("confidence"), 0.5), 0.0, 1.0),
        evidence_quotes=str_list(data.get("evidenceQuotes")),
    )


def threat_level_from_tactics(tactics: list[Tactic]) -> str:
    """Lowest threat level consistent with the most severe tactic."""
    if not tactics:
        return "green"
    worst = max(TACTIC_SEVERITIES.index(t.severity) for t in tactics)
    return SEVERITY_THREAT_LEVELS[TACTIC_SEVERITIES[worst]]


def tactic_catalogue(track: PersonalTrack) -> str:
    """Prompt listing of the tactic keys for a track."""
    return "\n".join(
        f"- {key} ({d.name}, {d.severity}): {d.description}"
        + (f" (e.g. {'; '.join(d.markers[:2])})" if d.markers else "")
        for key, d in TRACK_TAXONOMIES.get(track, FULL_TAXONOMY).items()
    )
