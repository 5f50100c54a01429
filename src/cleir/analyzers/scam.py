"""Business fraud analyzer.

Assesses a business email or invoice for business email compromise and
related B2B fraud patterns, and runs a few offline sender-domain checks.
"""

from __future__ import annotations

import re
from typing import Any

from cleir.ai.prompts import SCAM_DOCUMENT_PROMPT
from cleir.analyzers.base import BaseAnalyzer, as_float, clamp, dict_list, str_list
from cleir.models import (
    BusinessTrack,
    ScamAnalysis,
    ScamDocumentInput,
    ScamRedFlag,
    Verification,
)

# =============================================================================
# Pattern Catalogue
# =============================================================================

SCAM_PATTERNS: dict[str, dict[str, str]] = {
    "ceo_fraud": {
        "name": "CEO Fraud",
        "severity": "critical",
        "description": "Fake email impersonating an executive requesting an urgent wire transfer",
    },
    "invoice_manipulation": {
        "name": "Invoice Manipulation",
        "severity": "critical",
        "description": "Real invoice with bank details changed to the fraudster's account",
    },
    "vendor_impersonation": {
        "name": "Vendor Impersonation",
        "severity": "critical",
        "description": "Pretending to be a known vendor to redirect payments",
    },
    "payment_redirect": {
        "name": "Payment Redirect Scam",
        "severity": "critical",
        "description": "Request to change the payment destination for existing invoices",
    },
    "advance_fee_b2b": {
        "name": "Advance Fee Fraud",
        "severity": "high",
        "description": "Upfront payment required to secure a contract or deal",
    },
    "fake_rfp": {
        "name": "Fake RFP/RFQ",
        "severity": "high",
        "description": "Fake request for proposal used to harvest company information",
    },
    "domain_spoofing": {
        "name": "Domain Spoofing",
        "severity": "high",
        "description": "Email from a lookalike domain",
    },
    "urgency_pressure": {
        "name": "Urgency Pressure Tactics",
        "severity": "high",
        "description": "Artificial urgency to prevent verification",
    },
    "overpayment_scam": {
        "name": "Overpayment Scam",
        "severity": "medium",
        "description": "Paying too much and requesting a refund of the difference",
    },
    "directory_scam": {
        "name": "Business Directory Scam",
        "severity": "medium",
        "description": "Fake business directory listing fees",
    },
    "fake_compliance": {
        "name": "Fake Compliance Notice",
        "severity": "high",
        "description": "Pretending to be a regulator demanding payment",
    },
    "supply_chain_attack": {
        "name": "Supply Chain Attack",
        "severity": "critical",
        "description": "Compromised vendor email account used to defraud",
    },
}

FLAG_SEVERITIES = ("medium", "high", "critical")
LIKELIHOODS = ("safe", "suspicious", "likely_scam")

SPOOF_PATTERNS = [
    re.compile(r"micros[0o]ft", re.IGNORECASE),
    re.compile(r"g[0o][0o]gle", re.IGNORECASE),
    re.compile(r"app[l1]e", re.IGNORECASE),
    re.compile(r"amaz[0o]n", re.IGNORECASE),
    re.compile(r"paypa[l1]", re.IGNORECASE),
    re.compile(r"-secure\.", re.IGNORECASE),
    re.compile(r"-verify\.", re.IGNORECASE),
    re.compile(r"-support\.", re.IGNORECASE),
    re.compile(r"\d{3,}"),
]


# =============================================================================
# Verification Heuristics
# =============================================================================


def verify_domain(domain: str) -> Verification:
    """Offline lookalike-domain checks.

    ``domain_legitimate`` is False when the domain matches a known spoofing
    pattern or has more than two hyphen-separated parts, and None (not
    determined) otherwise.
    """
    legitimate: bool | None = None
    if any(pattern.search(domain) for pattern in SPOOF_PATTERNS):
        legitimate = False
    if len(domain.split("-")) > 2:
        legitimate = False
    return Verification(domain_legitimate=legitimate, domain_age="unknown", email_reputation="unknown")


def email_matches_company(domain: str, company: str) -> bool:
    company_name = re.sub(r"[^a-z]", "", company.lower())
    domain_base = domain.split(".")[0].lower()
    if not company_name or not domain_base:
        return False
    return company_name in domain_base or domain_base in company_name


def generate_recommended_actions(
    likelihood: str,
    red_flags: list[ScamRedFlag],
    sender_domain: str | None = None,
) -> list[str]:
    """Fallback actions when the model suggests none."""
    actions: list[str] = []
    flags = {rf.flag for rf in red_flags}

    if likelihood == "likely_scam":
        actions.append("🚨 DO NOT respond to this message")
        actions.append("🚨 DO NOT make any payments")
        actions.append("🚨 DO NOT click any links or download attachments")

    if "ceo_fraud" in flags:
        actions.append("📞 Call the CEO/executive directly using a known number to verify")

    if flags & {"invoice_manipulation", "payment_redirect"}:
        actions.append("📞 Call the vendor using the phone number from your records (NOT from this email)")
        actions.append("🔍 Compare bank details with previous invoices")

    if sender_domain:
        actions.append(f"🔍 Verify the sender domain '{sender_domain}' matches the official company website")

    if likelihood != "safe":
        actions.append("📧 Forward this to your IT security team")
        actions.append("📝 Report to reportphishing@apwg.org if it's phishing")

    if not actions:
        actions.append("✅ This appears to be legitimate, but always verify large payments")
        actions.append("📞 When in doubt, call to verify using a known number")

    return actions


def _red_flag_from(data: dict[str, Any]) -> ScamRedFlag:
    flag = str(data.get("flag") or "unknown")
    pattern = SCAM_PATTERNS.get(flag, {})
    severity = str(data.get("severity") or pattern.get("severity") or "high").lower()
    return ScamRedFlag(
        flag=flag,
        flag_name=str(data.get("flagName") or pattern.get("name") or flag),
        evidence=str(data.get("evidence") or ""),
        severity=severity if severity in FLAG_SEVERITIES else "high",
    )


# =============================================================================
# Analyzer
# =============================================================================


class ScamDocumentAnalyzer(BaseAnalyzer):
    """Business email and invoice fraud detection."""

    track = BusinessTrack.SCAM_DOCUMENT

    def analyze(self, analyzer_input: ScamDocumentInput) -> ScamAnalysis:
        content = analyzer_input.content
        if analyzer_input.image_bytes:
            self.logger.info("Extracting text from image")
            content = self._extract_text(analyzer_input.image_bytes, analyzer_input.image_mime_type) or content

        result = self._ask(
            SCAM_DOCUMENT_PROMPT,
            pattern_types=", ".join(SCAM_PATTERNS),
            context=self._build_context(analyzer_input, content),
        )

        verification = Verification()
        if analyzer_input.sender_domain:
            verification = verify_domain(analyzer_input.sender_domain)
            if analyzer_input.claimed_sender:
                verification.email_matches_company = email_matches_company(
                    analyzer_input.sender_domain, analyzer_input.claimed_sender
                )

        likelihood = str(result.get("scamLikelihood") or "suspicious").lower()
        if likelihood not in LIKELIHOODS:
            likelihood = "suspicious"

        red_flags = [_red_flag_from(rf) for rf in dict_list(result.get("redFlags"))]

        actions = str_list(result.get("recommendedActions"))
        if not actions:
            actions = generate_recommended_actions(likelihood, red_flags, analyzer_input.sender_domain)

        self.logger.info(f"Fraud analysis complete: {likelihood}, {len(red_flags)} red flags")

        return ScamAnalysis(
            scam_likelihood=likelihood,
            confidence_score=clamp(as_float(result.get("confidenceScore"), 0.5) or 0.5, 0.0, 1.0),
            red_flags=red_flags,
            verification=verification,
            urgency_tactics=str_list(result.get("urgencyTactics")),
            suspicious_payment_methods=str_list(result.get("suspiciousPaymentMethods")),
            recommended_actions=actions,
        )

    @staticmethod
    def _build_context(analyzer_input: ScamDocumentInput, content: str) -> str:
        lines = [f"Content Type: {analyzer_input.content_type}"]
        if analyzer_input.sender_domain:
            lines.append(f"Sender Domain: {analyzer_input.sender_domain}")
        if analyzer_input.claimed_sender:
            lines.append(f"Claimed Company: {analyzer_input.claimed_sender}")
        if analyzer_input.claimed_amount is not None:
            lines.append(f"Invoice Amount: ${analyzer_input.claimed_amount:,.2f}")
        lines.append("")
        lines.append("CONTENT:")
        lines.append(content)
        return "\n".join(lines)
