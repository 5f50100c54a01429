"""Prompt templates for Cleir.

Every prompt sent to Gemini is defined here. A template pairs a system
instruction with a user prompt containing ``$placeholder`` variables.

Example:
    >>> from cleir.ai.prompts import get_prompt
    >>>
    >>> template = get_prompt("legal_contract_v1")
    >>> system, user = template.render(contract_type="nda", contract_text="...")
    >>> response = client.generate(user, system_instruction=system)
"""

from __future__ import annotations

import textwrap
from dataclasses import dataclass, field
from enum import Enum
from string import Template
from typing import Any


# =============================================================================
# Enums
# =============================================================================


class PromptCategory(str, Enum):
    DETECTION = "detection"
    VISA = "visa"
    LEGAL = "legal"
    SCAM = "scam"
    CONVERSATION = "conversation"
    EXTRACTION = "extraction"


# =============================================================================
# Data Structures
# =============================================================================


@dataclass
class PromptTemplate:
    """Metadata and content for a prompt template.

    Attributes:
        id: Unique identifier (e.g., "detection_business_v1").
        category: Type of prompt for filtering.
        version: Version string for tracking changes.
        system_instruction: Role and behavior instructions for the model.
        user_prompt_template: User prompt with ``$placeholder`` variables.
        required_variables: Variables that must be provided to render.
        description: What the prompt is for.
    """

    id: str
    category: PromptCategory
    version: str
    system_instruction: str
    user_prompt_template: str
    required_variables: set[str] = field(default_factory=set)
    description: str = ""

    def render(self, **variables: Any) -> tuple[str, str]:
        """Render the template with provided variables.

        Args:
            **variables: Values for template substitution.

        Returns:
            Tuple of (system_instruction, rendered_user_prompt).

        Raises:
            ValueError: If required variables are missing.
        """
        missing = sorted(self.required_variables - set(variables))
        if missing:
            raise ValueError(f"Missing required variables for prompt '{self.id}': {missing}")
        rendered = Template(self.user_prompt_template).safe_substitute(variables)
        return self.system_instruction, rendered


# =============================================================================
# System Instructions
# =============================================================================

JSON_ONLY = "Respond with a single JSON object and no additional text."

CLASSIFIER_SYSTEM = (
    "You are a careful content classifier. You read screenshots and text and decide "
    "which specialist should analyze them. " + JSON_ONLY
)

DOCUMENT_ANALYST_SYSTEM = (
    "You are a document analysis expert for visa applications. You extract fields "
    "precisely and flag problems that would get an application refused. " + JSON_ONLY
)

CONTRACT_ATTORNEY_SYSTEM = (
    "You are an expert contract attorney. You translate legal language into plain "
    "English and flag clauses that put the signer at risk. " + JSON_ONLY
)

FRAUD_ANALYST_SYSTEM = (
    "You are a cybersecurity expert specializing in business email compromise and "
    "B2B fraud. Even small red flags matter. " + JSON_ONLY
)

CONVERSATION_ANALYST_SYSTEMS = {
    "relationship": (
        "You are a relationship psychologist specializing in emotional abuse and "
        "manipulation. You are validating, direct and practical. " + JSON_ONLY
    ),
    "scam": (
        "You are a fraud psychology and protection specialist. You explain how the "
        "scam works and exactly what to do next. " + JSON_ONLY
    ),
    "self_analysis": (
        "You are a supportive, trauma-informed coach helping someone understand their "
        "own communication patterns without shame. " + JSON_ONLY
    ),
}

TEXT_EXTRACTION_SYSTEM = "You transcribe documents exactly. Return only the extracted text."


# =============================================================================
# Prompt Templates
# =============================================================================


BUSINESS_DETECTION_PROMPT = PromptTemplate(
    id="detection_business_v1",
    category=PromptCategory.DETECTION,
    version="1.0.0",
    description="Classify a business document into visa, legal, scam or trip.",
    system_instruction=CLASSIFIER_SYSTEM,
    user_prompt_template=textwrap.dedent(
        """
        Determine what type of business document this is.

        CATEGORIES (choose ONE):
        1. "visa" - passports, visa stamps, immigration papers, entry permits
        2. "legal" - contracts, agreements, terms of service, NDAs, leases
        3. "scam" - suspicious emails, phishing, fake invoices, fraudulent payment requests
        4. "trip" - itineraries, flight bookings, hotel reservations, travel schedules
        5. "unknown" - cannot determine or fits none of the above

        Respond in this JSON format:
        {
          "track": "visa|legal|scam|trip|unknown",
          "confidence": 0.0-1.0,
          "reasoning": "Brief explanation",
          "extracted_text": "Key text read from the document",
          "extracted_fields": {}
        }

        For visa documents extract: passportCountry, destinationCountry, travelDate, tripPurpose
        For legal documents extract: parties, key terms, dates, amounts
        For scam content extract: sender, amount, isInvoice, urgency indicators
        For trip content extract: passportCountry, startDate, stops [{country, city, duration, purpose}]
        Use ISO 3166 alpha-2 country codes.
        $context
    """
    ).strip(),
)

PERSONAL_DETECTION_PROMPT = PromptTemplate(
    id="detection_personal_v1",
    category=PromptCategory.DETECTION,
    version="1.0.0",
    description="Pick the analysis track for a personal conversation.",
    system_instruction=CLASSIFIER_SYSTEM,
    user_prompt_template=textwrap.dedent(
        """
        Determine which analysis this conversation needs.

        1. "scam" - any request for money, gift cards, crypto or wire transfers;
           urgency or secrecy pressure; impersonation of banks, government or support;
           requests for passwords or card numbers; too-good-to-be-true offers.
        2. "self_analysis" - only when the user explicitly asks to analyze their OWN
           messages ("Am I being toxic?", "What am I doing wrong?").
        3. "relationship" - all other interpersonal conversations: manipulation,
           gaslighting, toxic dynamics, family, workplace or friendship conflict.
        4. "unknown" - the content is not a conversation at all.

        If there is ANY financial element, choose "scam" even if it also looks like a
        relationship issue.

        Respond in this JSON format:
        {
          "track": "relationship|scam|self_analysis|unknown",
          "confidence": 0.0-1.0,
          "reasoning": "Brief explanation",
          "extracted_text": "The conversation as plain text"
        }
        $context
    """
    ).strip(),
)

VISA_DOCUMENT_PROMPT = PromptTemplate(
    id="visa_document_v1",
    category=PromptCategory.VISA,
    version="1.0.0",
    description="Extract fields and issues from one visa supporting document.",
    system_instruction=DOCUMENT_ANALYST_SYSTEM,
    user_prompt_template=textwrap.dedent(
        """
        Determine the document type and extract all relevant fields.

        - Passport: full name, passport number, nationality, date of birth, expiry, issue date
        - Bank statement: account holder, bank, currency, current balance, statement period
        - Employment letter: employee, employer, position, start date, salary, letter date
        - Photo: quality, dimensions, background, face visibility

        Issue rules:
        - Passport expiring within 6 months or unreadable = blocker
        - Balance below threshold or statement older than 3 months = warning
        - Employment letter undated = warning, missing salary = info
        - Photo with wrong dimensions or background = blocker

        The financial threshold for this visa is: $financial_threshold
        Required documents: $documents_required

        Respond in this JSON format:
        {
          "documentType": "passport|bank_statement|employment_letter|photo|other",
          "confidence": 0.0-1.0,
          "extracted": {},
          "issues": [{"issue": "...", "severity": "blocker|warning|info", "fix": "..."}],
          "isValid": true
        }
    """
    ).strip(),
    required_variables={"financial_threshold", "documents_required"},
)

LEGAL_CONTRACT_PROMPT = PromptTemplate(
    id="legal_contract_v1",
    category=PromptCategory.LEGAL,
    version="1.0.0",
    description="Clause-by-clause contract risk review.",
    system_instruction=CONTRACT_ATTORNEY_SYSTEM,
    user_prompt_template=textwrap.dedent(
        """
        Analyze this contract.

        1. Identify the contract type, parties, effective date and term length
        2. Review each significant clause and translate it to plain English
        3. Flag red flags using these types: $red_flag_types
        4. Score the overall risk

        Respond in this JSON format:
        {
          "contractType": "employment|nda|service|freelance|lease|partnership|other",
          "parties": ["Party A", "Party B"],
          "effectiveDate": "YYYY-MM-DD or null",
          "termLength": "string or null",
          "clauses": [{
            "clauseId": "Section number",
            "clauseName": "Name",
            "originalText": "First 500 chars of the clause",
            "plainEnglish": "What it means",
            "riskLevel": "safe|caution|danger",
            "redFlagType": "type or null",
            "marketComparison": "How it compares to standard",
            "negotiationTip": "What to ask for instead"
          }],
          "overallRisk": "low|medium|high|critical",
          "riskScore": 0-100,
          "dangerClauses": [], "cautionClauses": [], "safeClauses": [],
          "mustNegotiate": [],
          "recommendLawyer": true,
          "lawyerThreshold": "Why a lawyer is recommended"
        }

        Contract type hint: $contract_type

        CONTRACT TEXT:

        $contract_text
    """
    ).strip(),
    required_variables={"contract_type", "contract_text"},
)

SCAM_DOCUMENT_PROMPT = PromptTemplate(
    id="scam_document_v1",
    category=PromptCategory.SCAM,
    version="1.0.0",
    description="Business email / invoice fraud assessment.",
    system_instruction=FRAUD_ANALYST_SYSTEM,
    user_prompt_template=textwrap.dedent(
        """
        Analyze this content for business fraud. Known patterns: $pattern_types

        Check for urgency language, secrecy requests, wire transfer or crypto requests,
        gift cards, lookalike domains, grammar inconsistent with the claimed sender and
        requests to bypass normal procedures.

        Respond in this JSON format:
        {
          "scamLikelihood": "safe|suspicious|likely_scam",
          "confidenceScore": 0.0-1.0,
          "redFlags": [{"flag": "pattern", "flagName": "Name", "evidence": "Quote", "severity": "medium|high|critical"}],
          "urgencyTactics": [],
          "suspiciousPaymentMethods": [],
          "recommendedActions": []
        }

        $context
    """
    ).strip(),
    required_variables={"pattern_types", "context"},
)

CONVERSATION_PROMPT = PromptTemplate(
    id="conversation_v1",
    category=PromptCategory.CONVERSATION,
    version="1.1.0",
    description="Single-pass tactic, psychology and defense analysis of a conversation.",
    system_instruction=CONVERSATION_ANALYST_SYSTEMS["relationship"],
    user_prompt_template=textwrap.dedent(
        """
        Analysis mode: $track

        Read the conversation and produce:
        - the tactics or patterns present, with evidence quotes
        - an overall threat level (green, yellow, orange or red)
        - a 0-100 health score for the communication
        - a plain explanation of what is happening
        - a short validating message for the user
        - translations of what was said versus what was meant
        - up to three recommended responses and the immediate actions to take
        - safety resources when the threat level is orange or red

        Use these tactic keys where they apply and invent new snake_case keys only
        for patterns the list does not cover:
        $tactic_catalogue

        Respond in this JSON format:
        {
          "threatLevel": "green|yellow|orange|red",
          "patternType": "isolated_incident|recurring_pattern|escalating",
          "scamType": "string or null",
          "tactics": [{"tactic": "key", "tacticName": "Name", "severity": "none|low|medium|high|critical",
                       "confidence": 0.0-1.0, "evidenceQuotes": []}],
          "healthScore": 0-100,
          "explanation": "...",
          "validation": "...",
          "translations": [{"original": "...", "meaning": "...", "tacticUsed": "..."}],
          "recommendedResponses": [{"type": "boundary|gray_rock|exit|block|report", "response": "...", "explanation": "..."}],
          "immediateActions": [],
          "safetyResources": [{"name": "...", "contact": "...", "description": "...", "url": null}]
        }

        $conversation
    """
    ).strip(),
    required_variables={"track", "tactic_catalogue", "conversation"},
)

TEXT_EXTRACTION_PROMPT = PromptTemplate(
    id="text_extraction_v1",
    category=PromptCategory.EXTRACTION,
    version="1.0.0",
    description="Transcribe all text in an image or PDF.",
    system_instruction=TEXT_EXTRACTION_SYSTEM,
    user_prompt_template=(
        "Extract ALL text from this document. Include email addresses, amounts and "
        "bank details. Return only the extracted text, no commentary."
    ),
)


# =============================================================================
# Registry
# =============================================================================


PROMPT_REGISTRY: dict[str, PromptTemplate] = {}


def register_prompt(template: PromptTemplate) -> None:
    """Register a prompt template.

    Raises:
        ValueError: If a prompt with the same ID is already registered.
    """
    if template.id in PROMPT_REGISTRY:
        raise ValueError(f"Prompt '{template.id}' is already registered")
    PROMPT_REGISTRY[template.id] = template


def get_prompt(prompt_id: str) -> PromptTemplate:
    """Retrieve a prompt template by ID.

    Raises:
        KeyError: If no prompt with the given ID exists.
    """
    if prompt_id not in PROMPT_REGISTRY:
        available = ", ".join(sorted(PROMPT_REGISTRY))
        raise KeyError(f"Prompt '{prompt_id}' not found. Available prompts: {available}")
    return PROMPT_REGISTRY[prompt_id]


def _register_builtin_prompts() -> None:
    for template in [
        BUSINESS_DETECTION_PROMPT,
        PERSONAL_DETECTION_PROMPT,
        VISA_DOCUMENT_PROMPT,
        LEGAL_CONTRACT_PROMPT,
        SCAM_DOCUMENT_PROMPT,
        CONVERSATION_PROMPT,
        TEXT_EXTRACTION_PROMPT,
    ]:
        register_prompt(template)


_register_builtin_prompts()
