"""Contract analyzer.

Reviews a contract clause by clause, translating each clause to plain
English and flagging the terms that usually hurt the signing party.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from cleir.ai.prompts import LEGAL_CONTRACT_PROMPT
from cleir.analyzers.base import BaseAnalyzer, as_int, clamp, dict_list, str_list
from cleir.models import AnalyzedClause, BusinessTrack, LegalAnalysis, LegalInput

MIN_CONTRACT_CHARS = 100
RISK_LEVELS = ("low", "medium", "high", "critical")
CLAUSE_RISK_LEVELS = ("safe", "caution", "danger")


@dataclass(frozen=True)
class RedFlagDefinition:
    """A known unfavourable clause pattern."""

    name: str
    severity: str
    description: str
    negotiation_tips: list[str] = field(default_factory=list)


RED_FLAG_DEFINITIONS: dict[str, RedFlagDefinition] = {
    "non_compete": RedFlagDefinition(
        "Non-Compete Clause",
        "high",
        "Restricts your ability to work in the same industry after leaving",
        ["Limit to 6 months maximum", "Add geographic restrictions", "Define 'competitor' narrowly"],
    ),
    "ip_assignment_broad": RedFlagDefinition(
        "Broad IP Assignment",
        "critical",
        "Company owns ALL your intellectual property, including personal projects",
        ["Exclude personal projects", "Limit to work-related IP only", "Add carve-out for prior work"],
    ),
    "ip_assignment_work": RedFlagDefinition(
        "Work IP Assignment",
        "medium",
        "Company owns IP created as part of your job",
        ["This is typically acceptable", "Ensure personal projects are excluded"],
    ),
    "mandatory_arbitration": RedFlagDefinition(
        "Mandatory Arbitration",
        "high",
        "All disputes go through private arbitration instead of court",
        [
            "Request option for small claims court",
            "Specify neutral arbitration location",
            "Ensure employer pays arbitration fees",
        ],
    ),
    "class_action_waiver": RedFlagDefinition(
        "Class Action Waiver",
        "high",
        "You cannot join class action lawsuits against the company",
        ["Try to remove entirely", "Understand what rights you're giving up"],
    ),
    "unilateral_termination": RedFlagDefinition(
        "Unilateral Termination",
        "medium",
        "Company can terminate without cause at any time",
        ["Request notice period", "Add severance clause", "Define termination for cause clearly"],
    ),
    "asymmetric_liability": RedFlagDefinition(
        "Asymmetric Liability",
        "high",
        "Company's liability is capped, but yours is unlimited",
        ["Make liability mutual and equal", "Cap your liability too", "Add mutual indemnification"],
    ),
    "auto_renewal": RedFlagDefinition(
        "Auto-Renewal",
        "low",
        "Contract renews automatically unless cancelled",
        ["Set calendar reminder", "Request opt-in renewal instead", "Shorten renewal period"],
    ),
    "long_notice_period": RedFlagDefinition(
        "Long Notice Period",
        "medium",
        "Requires 90+ days notice to terminate",
        ["Reduce to 30 days", "Make notice period mutual", "Allow payment in lieu of notice"],
    ),
    "non_solicitation": RedFlagDefinition(
        "Non-Solicitation",
        "medium",
        "Cannot contact or work with former clients or colleagues after leaving",
        ["Limit duration to 6-12 months", "Define scope narrowly", "Exclude contacts you had before joining"],
    ),
    "broad_confidentiality": RedFlagDefinition(
        "Broad Confidentiality",
        "medium",
        "Treats too much information as confidential, including public information",
        ["Add expiration date (2-3 years)", "Exclude public information", "Define what is actually confidential"],
    ),
    "indemnification": RedFlagDefinition(
        "Indemnification Clause",
        "high",
        "You must pay the company's legal fees and damages",
        ["Make indemnification mutual", "Cap the amount", "Limit to your direct actions only"],
    ),
    "unfavorable_jurisdiction": RedFlagDefinition(
        "Unfavorable Jurisdiction",
        "medium",
        "Disputes must be resolved in a distant location",
        ["Request local jurisdiction", "Allow remote participation", "Specify neutral venue"],
    ),
    "penalty_clauses": RedFlagDefinition(
        "Penalty Clauses",
        "high",
        "Financial penalties for breach that may exceed actual damages",
        ["Cap the amount", "Make proportional to actual damages", "Remove or reduce penalties"],
    ),
    "assignment_without_consent": RedFlagDefinition(
        "Assignment Without Consent",
        "medium",
        "Company can transfer the contract without your approval",
        ["Require your consent for assignment", "Add termination right if assigned", "Limit to affiliates only"],
    ),
}


def _red_flag_types() -> str:
    return "; ".join(f"{key} ({d.name})" for key, d in RED_FLAG_DEFINITIONS.items())


def _clause_from(data: dict[str, Any]) -> AnalyzedClause:
    risk = str(data.get("riskLevel") or "safe").lower()
    red_flag = data.get("redFlagType") or None
    tip = data.get("negotiationTip")
    if not tip and red_flag in RED_FLAG_DEFINITIONS:
        tip = RED_FLAG_DEFINITIONS[red_flag].negotiation_tips[0]

    return AnalyzedClause(
        clause_id=str(data.get("clauseId") or "N/A"),
        clause_name=str(data.get("clauseName") or "Unknown Clause"),
        original_text=str(data.get("originalText") or "")[:500],
        plain_english=str(data.get("plainEnglish") or "No translation available"),
        risk_level=risk if risk in CLAUSE_RISK_LEVELS else "safe",
        red_flag_type=str(red_flag) if red_flag else None,
        market_comparison=data.get("marketComparison"),
        negotiation_tip=tip,
    )


class LegalAnalyzer(BaseAnalyzer):
    """Clause-level contract risk review."""

    track = BusinessTrack.LEGAL

    def analyze(self, analyzer_input: LegalInput) -> LegalAnalysis:
        contract_text = (analyzer_input.document_text or "").strip()

        if len(contract_text) < MIN_CONTRACT_CHARS and analyzer_input.document_bytes:
            self.logger.info("Extracting contract text from document")
            contract_text = self._extract_text(
                analyzer_input.document_bytes,
                analyzer_input.document_mime_type,
            )

        if len(contract_text) < MIN_CONTRACT_CHARS:
            raise self._fail("Contract text is too short or empty. Please provide a valid contract.")

        self.logger.info(f"Contract length: {len(contract_text)} characters")

        result = self._ask(
            LEGAL_CONTRACT_PROMPT,
            contract_type=analyzer_input.contract_type,
            contract_text=contract_text,
            red_flag_types=_red_flag_types(),
        )

        overall_risk = str(result.get("overallRisk") or "medium").lower()
        if overall_risk not in RISK_LEVELS:
            overall_risk = "medium"
        risk_score = int(clamp(as_int(result.get("riskScore"), 50) or 50, 0, 100))

        recommend_lawyer = result.get("recommendLawyer")
        if not isinstance(recommend_lawyer, bool):
            recommend_lawyer = overall_risk in ("critical", "high") or risk_score > 60

        clauses = [_clause_from(c) for c in dict_list(result.get("clauses"))]
        danger_count = sum(1 for c in clauses if c.risk_level == "danger")
        self.logger.info(f"Contract risk {overall_risk} ({risk_score}/100), {danger_count} danger clauses")

        return LegalAnalysis(
            contract_type=str(result.get("contractType") or analyzer_input.contract_type or "other"),
            parties=str_list(result.get("parties")),
            effective_date=result.get("effectiveDate") or None,
            term_length=result.get("termLength") or None,
            clauses=clauses,
            overall_risk=overall_risk,
            risk_score=risk_score,
            danger_clauses=str_list(result.get("dangerClauses")),
            caution_clauses=str_list(result.get("cautionClauses")),
            safe_clauses=str_list(result.get("safeClauses")),
            must_negotiate=str_list(result.get("mustNegotiate")),
            recommend_lawyer=recommend_lawyer,
            lawyer_reason=result.get("lawyerThreshold") or None,
        )
