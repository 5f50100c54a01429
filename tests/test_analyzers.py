"""Tests for the track analyzers in cleir.analyzers."""

from __future__ import annotations

import pytest

from cleir.ai.client import AIServerError
from cleir.ai.prompts import CONVERSATION_ANALYST_SYSTEMS
from cleir.analyzers import build_business_analyzers, build_personal_analyzers
from cleir.analyzers.base import AnalysisError
from cleir.analyzers.conversation import ConversationAnalyzer, merge_safety_resources
from cleir.analyzers.legal import LegalAnalyzer
from cleir.analyzers.scam import (
    ScamDocumentAnalyzer,
    email_matches_company,
    generate_recommended_actions,
    verify_domain,
)
from cleir.analyzers.taxonomy import (
    FULL_TAXONOMY,
    lookup_tactic,
    normalize_tactic,
    tactic_catalogue,
    threat_level_from_tactics,
)
from cleir.analyzers.trip import (
    TripAnalyzer,
    estimate_costs,
    multi_city_link,
    optimize_visa_order,
)
from cleir.analyzers.visa import (
    VisaAnalyzer,
    calculate_approval_likelihood,
    flights_link,
    generate_checklist,
    get_visa_requirements,
    requirement_document_type,
)
from cleir.models import (
    AnalyzedDocument,
    BusinessTrack,
    ChecklistItem,
    ConversationInput,
    Issue,
    LegalInput,
    PersonalTrack,
    SafetyResource,
    ScamDocumentInput,
    ScamRedFlag,
    StopAnalysis,
    Tactic,
    TripInput,
    TripStop,
    VisaInput,
    VisaRequirements,
)

from conftest import make_response

CONTRACT_TEXT = (
    "EMPLOYMENT AGREEMENT. This Agreement is made between Acme Corp (the Company) and Jordan Lee "
    "(the Employee). 7.2 Non-Competition: For three (3) years after termination the Employee shall "
    "not work for any competitor anywhere in the world."
)


# =============================================================================
# Registry
# =============================================================================


class TestRegistries:
    def test_business_registry_is_complete(self, mock_client):
        analyzers = build_business_analyzers(mock_client)
        assert set(analyzers) == {t for t in BusinessTrack if t is not BusinessTrack.UNKNOWN}

    def test_personal_registry_is_complete(self, mock_client):
        analyzers = build_personal_analyzers(mock_client)
        assert set(analyzers) == {PersonalTrack.RELATIONSHIP, PersonalTrack.SCAM, PersonalTrack.SELF_ANALYSIS}
        assert all(a.track is t for t, a in analyzers.items())


# =============================================================================
# Visa
# =============================================================================


class TestVisaRequirements:
    def test_known_destination(self):
        requirements = get_visa_requirements("NG", "gb")
        assert requirements.visa_type == "Standard Visitor Visa"
        assert requirements.fees.amount == 115
        assert "TB test certificate (if applicable)" in requirements.documents_required

    def test_unknown_destination_uses_defaults(self):
        requirements = get_visa_requirements("NG", "ZZ")
        assert requirements.visa_type == "Tourist Visa"
        assert requirements.processing_days == 15
        assert requirements.visa_required is True

    @pytest.mark.parametrize(
        "requirement,expected",
        [
            ("Valid passport (6+ months validity)", "passport"),
            ("Bank statements (3-6 months)", "bank_statement"),
            ("Passport-sized photos", "passport"),
            ("Travel itinerary", "flight_booking"),
            ("Accommodation proof", "hotel_booking"),
            ("DS-160 confirmation", None),
        ],
    )
    def test_requirement_document_type(self, requirement, expected):
        assert requirement_document_type(requirement) == expected


class TestVisaChecklist:
    @pytest.fixture
    def requirements(self) -> VisaRequirements:
        return VisaRequirements(
            documents_required=["Valid passport (6+ months validity)", "Bank statements (3-6 months)", "Travel insurance"]
        )

    def test_statuses(self, requirements):
        documents = [
            AnalyzedDocument(type="passport", is_valid=True),
            AnalyzedDocument(
                type="bank_statement",
                issues=[Issue(issue="Balance below threshold", severity="blocker")],
            ),
        ]

        checklist = generate_checklist(documents, requirements)

        assert [c.status for c in checklist] == ["met", "issue", "missing"]
        assert checklist[1].details == "Balance below threshold"
        assert checklist[2].details == "Upload your Travel insurance"

    def test_likelihood_all_met(self):
        checklist = [ChecklistItem(requirement=f"Doc {i}", status="met") for i in range(4)]
        assert calculate_approval_likelihood(checklist, []) == ("high", 100)

    def test_likelihood_penalties(self):
        checklist = [
            ChecklistItem(requirement="A", status="met"),
            ChecklistItem(requirement="B", status="met"),
            ChecklistItem(requirement="C", status="missing"),
        ]
        # round(2/3 * 100) - 20
        assert calculate_approval_likelihood(checklist, []) == ("medium", 47)

    def test_likelihood_never_negative(self):
        checklist = [ChecklistItem(requirement="A", status="missing")]
        documents = [AnalyzedDocument(issues=[Issue(issue="Torn page", severity="blocker")])]
        assert calculate_approval_likelihood(checklist, documents) == ("low", 0)

    def test_empty_checklist(self):
        assert calculate_approval_likelihood([], []) == ("low", 0)

    def test_flights_link(self):
        link = flights_link("NG", "GB", "2026-03-01")
        assert link.endswith("?from=NG&to=GB&date=2026-03-01")


class TestVisaAnalyzer:
    def test_document_with_blocker(self, mock_client, png_bytes):
        mock_client.generate.return_value = make_response(
            {
                "documentType": "passport",
                "extracted": {"fullName": "ADA OBI", "expiryDate": "2026-06-01"},
                "issues": [{"issue": "Passport expires within 6 months", "severity": "critical", "fix": "Renew it"}],
                "isValid": True,
                "confidence": 0.93,
            }
        )

        result = VisaAnalyzer(mock_client).analyze(
            VisaInput(
                document_bytes=png_bytes,
                document_mime_type="image/png",
                passport_country="NG",
                destination_country="GB",
            )
        )

        assert result.documents_analyzed[0].type == "passport"
        assert result.checklist[0].status == "issue"
        assert result.critical_issues == ["Passport expires within 6 months"]
        assert result.approval_likelihood == "low"
        assert "Resolve all critical issues before applying" in result.recommendations
        assert "Ensure you have proof of ties to your home country" in result.recommendations
        assert "from=NG&to=GB" in result.flights_link

    def test_extraction_failure_becomes_blocker(self, mock_client, png_bytes):
        mock_client.generate.side_effect = AIServerError()

        result = VisaAnalyzer(mock_client).analyze(
            VisaInput(document_bytes=png_bytes, passport_country="NG", destination_country="US")
        )

        document = result.documents_analyzed[0]
        assert document.is_valid is False
        assert document.issues[0].issue == "Failed to analyze document"
        assert document.issues[0].severity == "blocker"

    def test_null_issue_fields_tolerated(self, mock_client, png_bytes):
        mock_client.generate.return_value = make_response(
            {
                "documentType": "bank_statement",
                "issues": [
                    {"issue": "Balance below threshold", "severity": None, "fix": None},
                    {"issue": None, "severity": "critical"},
                    {"issue": "Statement older than 3 months", "severity": "HIGH", "fix": {"step": "reorder"}},
                ],
                "isValid": None,
                "confidence": "n/a",
            }
        )

        result = VisaAnalyzer(mock_client).analyze(
            VisaInput(document_bytes=png_bytes, passport_country="NG", destination_country="GB")
        )

        issues = result.documents_analyzed[0].issues
        assert [(i.issue, i.severity, i.fix) for i in issues] == [
            ("Balance below threshold", "warning", ""),
            ("Statement older than 3 months", "blocker", ""),
        ]
        assert result.critical_issues == ["Statement older than 3 months"]

    def test_without_document_no_model_call(self, mock_client):
        result = VisaAnalyzer(mock_client).analyze(VisaInput(passport_country="NG", destination_country="AE"))

        mock_client.generate.assert_not_called()
        assert result.documents_analyzed == []
        assert all(c.status == "missing" for c in result.checklist)
        assert result.requirements.visa_required is False


# =============================================================================
# Legal
# =============================================================================


class TestLegalAnalyzer:
    def test_short_contract_rejected(self, mock_client):
        with pytest.raises(AnalysisError) as exc_info:
            LegalAnalyzer(mock_client).analyze(LegalInput(document_text="Sign here."))

        assert exc_info.value.track == "legal"
        assert "too short" in exc_info.value.message
        mock_client.generate.assert_not_called()

    def test_text_extracted_from_image(self, mock_client, png_bytes):
        mock_client.generate.side_effect = [
            make_response(CONTRACT_TEXT),
            make_response({"contractType": "employment", "overallRisk": "high", "riskScore": 70, "clauses": []}),
        ]

        result = LegalAnalyzer(mock_client).analyze(LegalInput(document_bytes=png_bytes))

        assert mock_client.generate.call_count == 2
        analysis_prompt = mock_client.generate.call_args_list[1].args[0]
        assert "Non-Competition" in analysis_prompt
        assert result.contract_type == "employment"

    def test_clause_mapping(self, mock_client):
        mock_client.generate.return_value = make_response(
            {
                "contractType": "employment",
                "parties": ["Acme Corp", "Jordan Lee"],
                "clauses": [
                    {
                        "clauseId": "7.2",
                        "clauseName": "Non-Compete",
                        "originalText": "For three (3) years...",
                        "plainEnglish": "You can't work for a competitor for 3 years.",
                        "riskLevel": "DANGER",
                        "redFlagType": "non_compete",
                    },
                    {"clauseName": "Salary", "riskLevel": "fine"},
                ],
                "overallRisk": "high",
                "riskScore": 72,
                "dangerClauses": ["Non-Compete"],
            }
        )

        result = LegalAnalyzer(mock_client).analyze(LegalInput(document_text=CONTRACT_TEXT))

        danger, salary = result.clauses
        assert danger.risk_level == "danger"
        assert danger.negotiation_tip == "Limit to 6 months maximum"
        assert salary.risk_level == "safe"
        assert salary.clause_id == "N/A"
        assert result.parties == ["Acme Corp", "Jordan Lee"]
        assert result.recommend_lawyer is True

    def test_prompt_lists_red_flag_types(self, mock_client):
        mock_client.generate.return_value = make_response({"overallRisk": "low", "riskScore": 20})

        LegalAnalyzer(mock_client).analyze(LegalInput(document_text=CONTRACT_TEXT))

        prompt = mock_client.generate.call_args.args[0]
        assert "non_compete" in prompt
        assert "ip_assignment_broad" in prompt

    @pytest.mark.parametrize(
        "risk,score,expected",
        [("low", 20, False), ("medium", 65, True), ("critical", 40, True)],
    )
    def test_lawyer_fallback(self, mock_client, risk, score, expected):
        mock_client.generate.return_value = make_response({"overallRisk": risk, "riskScore": score})

        result = LegalAnalyzer(mock_client).analyze(LegalInput(document_text=CONTRACT_TEXT))

        assert result.recommend_lawyer is expected

    def test_invalid_risk_normalized(self, mock_client):
        mock_client.generate.return_value = make_response({"overallRisk": "extreme", "riskScore": 250})

        result = LegalAnalyzer(mock_client).analyze(LegalInput(document_text=CONTRACT_TEXT))

        assert result.overall_risk == "medium"
        assert result.risk_score == 100

    def test_unparseable_reply(self, mock_client):
        mock_client.generate.return_value = make_response("The contract looks fine to me.")

        with pytest.raises(AnalysisError):
            LegalAnalyzer(mock_client).analyze(LegalInput(document_text=CONTRACT_TEXT))


# =============================================================================
# Scam Documents
# =============================================================================


class TestScamHeuristics:
    @pytest.mark.parametrize(
        "domain,expected",
        [
            ("micros0ft.com", False),
            ("acme-billing-secure.com", False),
            ("invoices-verify.net", False),
            ("acme.com", None),
            ("acme-corp.com", None),
        ],
    )
    def test_verify_domain(self, domain, expected):
        verification = verify_domain(domain)
        assert verification.domain_legitimate is expected
        assert verification.domain_age == "unknown"
        assert verification.email_reputation == "unknown"

    def test_email_matches_company(self):
        assert email_matches_company("acmecorp.com", "Acme Corp") is True
        assert email_matches_company("payments-portal.net", "Acme Corp") is False

    def test_actions_for_likely_scam(self):
        flags = [ScamRedFlag(flag="payment_redirect", flag_name="Payment Redirect Fraud")]

        actions = generate_recommended_actions("likely_scam", flags, "acme-pay.com")

        assert actions[:3] == [
            "🚨 DO NOT respond to this message",
            "🚨 DO NOT make any payments",
            "🚨 DO NOT click any links or download attachments",
        ]
        assert any(a.startswith("📞 Call the vendor") for a in actions)
        assert any("acme-pay.com" in a for a in actions)
        assert actions[-1].startswith("📝 Report")

    def test_actions_for_safe(self):
        actions = generate_recommended_actions("safe", [])
        assert len(actions) == 2
        assert actions[0].startswith("✅")


class TestScamDocumentAnalyzer:
    def test_invoice_context_and_fallback_actions(self, mock_client):
        mock_client.generate.return_value = make_response(
            {
                "scamLikelihood": "likely_scam",
                "confidenceScore": 0.9,
                "redFlags": [{"flag": "payment_redirect", "evidence": "Our bank details have changed"}],
                "urgencyTactics": ["Pay today"],
            }
        )

        result = ScamDocumentAnalyzer(mock_client).analyze(
            ScamDocumentInput(
                content="Our bank details have changed. Pay invoice #442 today.",
                content_type="invoice",
                claimed_sender="Acme Corp",
                claimed_amount=4800,
                sender_domain="acme-payments-secure.com",
            )
        )

        prompt = mock_client.generate.call_args.args[0]
        assert "Content Type: invoice" in prompt
        assert "Invoice Amount: $4,800.00" in prompt
        assert "Sender Domain: acme-payments-secure.com" in prompt

        assert result.red_flags[0].flag_name == "Payment Redirect Scam"
        assert result.red_flags[0].severity == "critical"
        assert result.verification.domain_legitimate is False
        assert result.verification.email_matches_company is False
        assert result.recommended_actions[0] == "🚨 DO NOT respond to this message"

    def test_image_text_extracted_first(self, mock_client, png_bytes):
        mock_client.generate.side_effect = [
            make_response("URGENT: gift cards needed for the CEO"),
            make_response({"scamLikelihood": "suspicious", "recommendedActions": ["Call the CEO"]}),
        ]

        result = ScamDocumentAnalyzer(mock_client).analyze(ScamDocumentInput(image_bytes=png_bytes))

        assert "URGENT: gift cards needed for the CEO" in mock_client.generate.call_args_list[1].args[0]
        assert result.recommended_actions == ["Call the CEO"]

    def test_invalid_likelihood_normalized(self, mock_client):
        mock_client.generate.return_value = make_response({"scamLikelihood": "maybe"})

        result = ScamDocumentAnalyzer(mock_client).analyze(ScamDocumentInput(content="Hello"))

        assert result.scam_likelihood == "suspicious"
        assert result.verification.domain_legitimate is None


# =============================================================================
# Trip
# =============================================================================


class TestTripPlanning:
    def test_schengen_trip(self, mock_client):
        trip = TripInput(
            passport_country="NG",
            stops=[TripStop(country="FR", duration=5), TripStop(country="it", duration=4)],
        )

        result = TripAnalyzer(mock_client).analyze(trip)

        mock_client.generate.assert_not_called()
        assert result.total_countries == 2
        assert result.total_days == 9
        assert result.visas_required == 2
        assert result.suggested_order == ["FR", "IT"]
        assert result.ordering_reason.startswith("No specific order required")
        assert result.estimated_cost.visa_fees == pytest.approx(160)
        assert result.estimated_cost.insurance == pytest.approx(50)
        assert result.per_stop[0].travel_advisory == "low"
        assert result.document_checklist[0].for_countries == ["France", "Italy"]

    def test_longest_processing_first(self, mock_client):
        trip = TripInput(
            passport_country="NG",
            stops=[
                TripStop(country="GB", duration=3),
                TripStop(country="AE", duration=2),
                TripStop(country="US", duration=7),
            ],
        )

        result = TripAnalyzer(mock_client).analyze(trip)

        assert result.suggested_order == ["US", "GB", "AE"]
        assert "United States visa takes 30+ days" in result.ordering_reason

    def test_layover_alerts(self, mock_client):
        trip = TripInput(
            passport_country="NG",
            stops=[
                TripStop(country="AE", purpose="layover"),
                TripStop(country="GB", purpose="transit"),
                TripStop(country="FR", duration=6),
            ],
        )

        result = TripAnalyzer(mock_client).analyze(trip)

        dubai, london = result.layover_alerts
        assert dubai.airport == "Dubai (DXB)"
        assert dubai.transit_visa_required is False
        assert dubai.max_hours == 24
        assert london.transit_visa_required is True

    def test_insurance_scales_with_days(self):
        stops = [StopAnalysis(country="FR", country_name="France", visa_required=True)]
        assert estimate_costs(stops, 40).insurance == pytest.approx(80)

    def test_visa_free_only(self):
        stops = [StopAnalysis(country="AE", country_name="United Arab Emirates", visa_required=False)]
        order, reason = optimize_visa_order(stops)
        assert order == ["AE"]
        assert reason.startswith("No specific order required")

    def test_multi_city_link(self):
        trip = TripInput(passport_country="NG", stops=[TripStop(country="FR"), TripStop(country="IT")])
        link = multi_city_link(trip)
        assert "destinations=FR%2CIT" in link
        assert "type=multi-city" in link


# =============================================================================
# Conversations
# =============================================================================


class TestConversationAnalyzer:
    def test_unknown_track_rejected(self, mock_client):
        with pytest.raises(ValueError):
            ConversationAnalyzer(mock_client, PersonalTrack.UNKNOWN)

    def test_analysis_mapping(self, mock_client):
        mock_client.generate.return_value = make_response(
            {
                "threatLevel": "RED",
                "patternType": "gaslighting",
                "tactics": [
                    {
                        "tactic": "gaslighting",
                        "severity": "high",
                        "confidence": 0.9,
                        "evidenceQuotes": ["That never happened"],
                    }
                ],
                "healthScore": 150,
                "translations": [
                    {"original": "You're too sensitive", "meaning": "Your feelings don't matter"},
                    {"original": "Missing meaning"},
                ],
                "recommendedResponses": [{"type": "boundary", "response": "I remember it differently."}],
                "immediateActions": ["Talk to someone you trust"],
                "safetyResources": [
                    {"name": "Local Support Line", "contact": "555-0100"},
                    {"name": "Crisis Text Line", "contact": "Text HOME to 741741"},
                ],
            }
        )

        result = ConversationAnalyzer(mock_client, PersonalTrack.RELATIONSHIP).analyze(
            ConversationInput(track=PersonalTrack.RELATIONSHIP, text="Him: That never happened")
        )

        kwargs = mock_client.generate.call_args.kwargs
        assert kwargs["system_instruction"] == CONVERSATION_ANALYST_SYSTEMS["relationship"]
        assert kwargs["temperature"] == pytest.approx(0.3)

        assert result.threat_level == "red"
        assert result.tactics[0].tactic_name == "Gaslighting"
        assert result.health_score == 100
        assert len(result.translations) == 1
        names = [r.name for r in result.safety_resources]
        assert names[:2] == ["Local Support Line", "Crisis Text Line"]
        assert names.count("Crisis Text Line") == 1

    def test_defaults_for_sparse_reply(self, mock_client):
        mock_client.generate.return_value = make_response({"threatLevel": "purple"})

        result = ConversationAnalyzer(mock_client, PersonalTrack.SCAM).analyze(
            ConversationInput(track=PersonalTrack.SCAM, text="You won a prize!")
        )

        assert result.threat_level == "yellow"
        assert result.track is PersonalTrack.SCAM
        assert result.safety_resources[0].name == "FTC Report Fraud"

    def test_merge_caps_resources(self):
        suggested = [SafetyResource(name=f"Line {i}") for i in range(4)]

        merged = merge_safety_resources(suggested, PersonalTrack.SELF_ANALYSIS)

        assert len(merged) == 5
        assert merged[-1].name == "Psychology Today Therapist Finder"

    def test_null_optional_fields(self, mock_client):
        mock_client.generate.return_value = make_response(
            {
                "threatLevel": None,
                "patternType": None,
                "scamType": {"kind": "romance"},
                "tactics": [{"tactic": None, "tacticName": None, "severity": None}],
                "translations": [
                    {"original": "Trust me", "meaning": "Don't verify", "tacticUsed": None},
                    {"original": None, "meaning": "dropped"},
                ],
                "safetyResources": [{"name": "Local Line", "url": None}],
            }
        )

        result = ConversationAnalyzer(mock_client, PersonalTrack.SCAM).analyze(
            ConversationInput(track=PersonalTrack.SCAM, text="Trust me")
        )

        assert result.pattern_type is None
        assert result.scam_type is None
        assert [(t.tactic, t.severity, t.category) for t in result.tactics] == [("unknown", "medium", "scam")]
        assert [(t.original, t.tactic_used) for t in result.translations] == [("Trust me", None)]
        assert result.safety_resources[0].url is None

    def test_tactics_normalized_against_catalogue(self, mock_client):
        mock_client.generate.return_value = make_response(
            {
                "threatLevel": "green",
                "tactics": [
                    {"tactic": "Love-Bombing", "confidence": 0.8},
                    {"tacticName": "Emotional Blackmail", "severity": "extreme"},
                    {"tactic": "breadcrumbing", "severity": "LOW"},
                ],
            }
        )

        result = ConversationAnalyzer(mock_client, PersonalTrack.RELATIONSHIP).analyze(
            ConversationInput(track=PersonalTrack.RELATIONSHIP, text="Him: nobody gets me like you do")
        )

        prompt = mock_client.generate.call_args.args[0]
        assert "love_bombing (Love Bombing, medium)" in prompt
        assert "You're my soulmate" in prompt
        assert "phishing_link" not in prompt

        assert [(t.tactic, t.tactic_name, t.severity, t.category) for t in result.tactics] == [
            ("love_bombing", "Love Bombing", "medium", "relationship"),
            ("emotional_blackmail", "Emotional Blackmail", "critical", "relationship"),
            ("breadcrumbing", "Breadcrumbing", "low", "relationship"),
        ]
        assert result.threat_level == "red"


# =============================================================================
# Tactic Taxonomy
# =============================================================================


class TestTacticTaxonomy:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("gaslighting", "gaslighting"),
            ("Gaslighting", "gaslighting"),
            ("gaslight", "gaslighting"),
            ("guilt-trip", "guilt_tripping"),
            ("Advance Fee Scam", "advance_fee"),
            ("Lottery/Inheritance Scam", "lottery_inheritance"),
            ("smishing", "sms_smishing"),
            ("Over-Apologizing", "over_apologizing"),
        ],
    )
    def test_lookup_by_key_alias_or_name(self, value, expected):
        key, definition = lookup_tactic(value)
        assert key == expected
        assert definition is FULL_TAXONOMY[expected]

    @pytest.mark.parametrize("value", [None, "", "breadcrumbing"])
    def test_lookup_misses(self, value):
        assert lookup_tactic(value) is None

    def test_reported_severity_kept_when_valid(self):
        tactic = normalize_tactic({"tactic": "gaslighting", "severity": "Low"}, PersonalTrack.RELATIONSHIP)
        assert tactic.severity == "low"
        assert tactic.tactic_name == "Gaslighting"

    def test_catalogue_category_wins_over_track(self):
        tactic = normalize_tactic({"tactic": "urgency_pressure"}, PersonalTrack.RELATIONSHIP)
        assert (tactic.category, tactic.severity) == ("scam", "high")

    def test_structured_fields_ignored(self):
        tactic = normalize_tactic(
            {"tactic": ["isolation"], "tacticName": "Isolation", "confidence": 7, "evidenceQuotes": "quote"},
            PersonalTrack.RELATIONSHIP,
        )
        assert tactic.tactic == "isolation"
        assert tactic.confidence == 1.0

    @pytest.mark.parametrize(
        "severities,expected",
        [
            ([], "green"),
            (["none", "low"], "green"),
            (["medium"], "yellow"),
            (["medium", "high"], "orange"),
            (["low", "critical"], "red"),
        ],
    )
    def test_threat_level_from_tactics(self, severities, expected):
        tactics = [Tactic(tactic=f"t{i}", tactic_name=f"T{i}", severity=s) for i, s in enumerate(severities)]
        assert threat_level_from_tactics(tactics) == expected

    def test_every_track_has_a_catalogue(self):
        for track in PersonalTrack:
            if track is PersonalTrack.UNKNOWN:
                continue
            assert tactic_catalogue(track).startswith("- ")
