"""Heuristic report extraction from free-form and JSON provider output."""
from __future__ import annotations

from datetime import datetime, timezone

import pytest

from app.models.schemas import (
    ConfidenceLevel,
    EvidenceQuality,
    PatientInfo,
    PreStructuredOutput,
    RiskLevel,
    TextOutput,
    WrappedOutput,
)
from app.services.degraded import DegradedFallback
from app.services.response_parser import (
    ResponseParser,
    assess_confidence_level,
    assess_evidence_quality,
    assess_risk_level,
    extract_black_box_warnings,
    extract_medication_names,
    extract_section,
    extract_summary,
    parse_side_effects,
)

from conftest import SAMPLE_ANALYSIS

FIXED_NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def parser() -> ResponseParser:
    return ResponseParser(clock=lambda: FIXED_NOW)


# ── section extraction ──

def test_markdown_heading_section():
    text = "## Dosing: adults\nTake 500mg every 6 hours.\n## Monitoring\nLiver tests."
    assert extract_section(text, "dosing|dose", "none") == "Take 500mg every 6 hours."


def test_blank_line_separated_headings_use_the_label_match():
    text = "## Dosing\n\nTake 500mg every 6 hours.\n\n## Monitoring\n\nLiver tests."
    assert extract_section(text, "dosing|dose", "none") == "Take 500mg every 6 hours."


def test_bare_heading_followed_by_heading_captures_the_next_heading():
    # Known mis-segmentation: the newline after a bare heading is absorbed,
    # so the body line is skipped and the following heading is captured.
    text = "## Dosing\nTake 500mg every 6 hours.\n## Monitoring\nLiver tests."
    assert extract_section(text, "dosing|dose", "none") == "## Monitoring"


def test_labelled_section_without_heading():
    text = "**Warning:** Severe liver disease.\n**Dosing:** 500mg"
    assert extract_section(text, "contraindication|avoid|warning|caution", "none") == "Severe liver disease."


def test_missing_section_returns_default():
    assert extract_section("Nothing relevant here.", "pregnancy", "not available") == "not available"


def test_non_string_content_returns_default():
    assert extract_section(None, "pregnancy", "fallback") == "fallback"
    assert extract_section("", "pregnancy", None) is None


def test_asterisks_are_stripped():
    text = "## Overview\n** Paracetamol is an analgesic **\n"
    assert extract_section(text, "overview", "none") == "Paracetamol is an analgesic "


# ── side effects ──

def test_side_effect_lists():
    side_effects = parse_side_effects(SAMPLE_ANALYSIS)

    assert side_effects.common == ["Common side effects include nausea"]
    assert side_effects.serious == ["Serious reactions include liver injury with overdose"]
    assert side_effects.rare == ["rare skin reactions occur"]
    assert side_effects.summary.startswith("Common side effects include nausea")


def test_side_effects_fall_back_to_first_long_paragraph():
    text = "## Adverse Events\nPatients occasionally report mild headaches and drowsiness\n"
    side_effects = parse_side_effects(text)

    assert side_effects.common == ["Patients occasionally report mild headaches and drowsiness"]
    assert side_effects.serious == [] and side_effects.rare == []


def test_side_effects_without_section():
    side_effects = parse_side_effects("No relevant content")
    assert side_effects.summary == "Side effect information not available."
    assert side_effects.common == []


# ── classifiers ──

@pytest.mark.parametrize(
    "text, patient, expected",
    [
        ("Contraindicated in severe liver disease.", PatientInfo(), "high"),
        ("Avoid alcohol.", PatientInfo(), "moderate"),
        ("Use with caution.", PatientInfo(), "low-moderate"),
        ("Generally safe.", PatientInfo(), "low"),
        ("Pregnancy category D.", PatientInfo(is_pregnant=True), "moderate"),
        ("Pregnancy category D. Use with caution.", PatientInfo(is_pregnant=True), "high"),
        ("Pregnancy category D.", PatientInfo(is_pregnant=False), "low"),
    ],
)
def test_risk_scoring(text, patient, expected):
    assert assess_risk_level(text, patient) == expected


def test_child_risk_markers_are_literal_substrings():
    # The pattern-looking markers only match when they appear verbatim
    assert assess_risk_level("Pediatric use is contraindicated", PatientInfo(is_child=True)) == "high"
    assert assess_risk_level("not approved for children", PatientInfo(is_child=True)) == "low"
    assert assess_risk_level("flag: not.*approved.*children", PatientInfo(is_child=True)) == "low-moderate"


def test_confidence_levels():
    assert assess_confidence_level("Well established therapy") == "moderate"
    assert assess_confidence_level("marker well.*established") == "high"
    assert assess_confidence_level("seen in case.*reports") == "low"


@pytest.mark.parametrize(
    "text, expected",
    [
        ("A randomized controlled trial showed benefit", "high"),
        ("A meta-analysis of 12 studies", "high"),
        ("Large cohort study data", "moderate"),
        ("Based on expert opinion", "low"),
        ("No detail", "moderate"),
    ],
)
def test_evidence_quality(text, expected):
    assert assess_evidence_quality(text) == expected


def test_black_box_warning():
    assert extract_black_box_warnings("Carries an FDA Warning about liver") == "FDA Warning"
    assert extract_black_box_warnings("No warnings") is None


def test_summary_heading_and_sentence_fallback():
    assert extract_summary("Intro.\n\nSummary: well tolerated.\n\nMore") == "Summary: well tolerated."
    assert extract_summary("One. Two. Three. Four. Five.") == "One. Two. Three. Four."


def test_medication_names_are_unique_and_ordered():
    text = "Paracetamol or Metformin. Paracetamol is preferred; Naproxen too."
    assert extract_medication_names(text) == ["Paracetamol", "Metformin"]


def test_medication_names_stop_at_the_first_suffix_hit():
    # Known mis-segmentation: the suffix alternation is tried left to right,
    # so "-ine" names are cut at "-in" and capitalised words can slip in.
    text = "Consider Cetirizine or Loratadine."
    assert extract_medication_names(text) == ["Conside", "Cetirizin", "Loratadin"]


# ── full parse ──

def test_text_report(parser):
    report = parser.parse(TextOutput(text=SAMPLE_ANALYSIS), "Paracetamol", PatientInfo())

    assert report.medication_overview.startswith("Paracetamol is an analgesic")
    assert report.general_safety.startswith("Generally safe")
    assert report.pregnancy_safety.startswith("Considered compatible")
    assert report.risk_level is RiskLevel.LOW_MODERATE
    assert report.last_updated == FIXED_NOW


def test_every_text_field_is_populated_for_empty_input(parser):
    report = parser.parse("", "Mystery", PatientInfo())

    for name in ("medication_overview", "general_safety", "womens_safety", "pediatric_safety",
                 "pregnancy_safety", "clinical_trials", "contraindications", "dosing",
                 "interactions", "monitoring", "summary"):
        assert getattr(report, name), name
    assert report.side_effects.summary
    assert report.summary == "Analysis for Mystery with limited details available."


def test_unstructured_text_is_surfaced_as_general_safety(parser):
    text = "Mystery compound " * 80
    report = parser.parse(text, "Mystery", PatientInfo())

    assert report.medication_overview == "Comprehensive analysis for Mystery"
    assert report.general_safety == text[:1000] + "..."
    assert report.summary == "AI analysis of Mystery. " + text[:200] + "..."


def test_parse_is_idempotent(parser):
    first = parser.parse(SAMPLE_ANALYSIS, "Paracetamol", PatientInfo(is_pregnant=True))
    second = parser.parse(SAMPLE_ANALYSIS, "Paracetamol", PatientInfo(is_pregnant=True))
    assert first == second


def test_pre_structured_report_is_adopted_with_backfill(parser):
    report = parser.parse(
        PreStructuredOutput(report={"medicationOverview": "Direct", "riskLevel": None, "summary": "S"}),
        "X",
    )

    assert report.medication_overview == "Direct"
    assert report.risk_level is RiskLevel.LOW
    assert report.confidence_level is ConfidenceLevel.MODERATE
    assert report.evidence_quality is EvidenceQuality.MODERATE
    assert report.general_safety == "General safety information not available."


def test_blank_strings_in_pre_structured_report_take_defaults(parser):
    report = parser.parse(
        PreStructuredOutput(report={"medicationOverview": "Direct", "generalSafety": "", "dosing": "   "}),
        "X",
    )

    assert report.medication_overview == "Direct"
    assert report.general_safety == "General safety information not available."
    assert report.dosing == "Dosing information not available."


def test_blank_strings_in_wrapped_report_take_defaults(parser):
    report = parser.parse(
        WrappedOutput(content={"medicationOverview": "", "summary": " ", "monitoring": "Liver tests"}),
        "X",
    )

    assert report.medication_overview == "Medication information not available."
    assert report.summary == "Summary not available."
    assert report.monitoring == "Liver tests"


def test_json_with_empty_overview_is_parsed_as_text(parser):
    report = parser.parse('{"medicationOverview": "", "generalSafety": ""}', "X")

    for name in ("medication_overview", "general_safety", "dosing", "summary"):
        assert getattr(report, name).strip(), name


def test_degraded_report_round_trips_through_parser(parser):
    payload = DegradedFallback().build('Analyze the medication "Paracetamol" for safety.')
    report = parser.parse(payload, "Paracetamol")

    assert report.risk_level is RiskLevel.LOW_MODERATE
    assert report.evidence_quality is EvidenceQuality.OFFLINE_DATABASE
    assert report.side_effects.common[0] == "Nausea (rare)"


def test_wrapped_report_computes_missing_risk(parser):
    report = parser.parse(
        WrappedOutput(content={"medicationOverview": "Wrapped", "contraindications": "Contraindicated in asthma"}),
        "X",
    )

    assert report.medication_overview == "Wrapped"
    assert report.risk_level is RiskLevel.HIGH


def test_unknown_enum_values_are_coerced(parser):
    report = parser.parse(
        PreStructuredOutput(report={"medicationOverview": "x", "riskLevel": "catastrophic", "confidenceLevel": "??"}),
        "X",
    )
    assert report.risk_level is RiskLevel.UNKNOWN
    assert report.confidence_level is ConfidenceLevel.LOW


def test_invalid_structured_payload_yields_fallback(parser):
    report = parser.parse(PreStructuredOutput(report={"medicationOverview": "x", "sideEffects": "oops"}), "Drug")

    assert report.medication_overview == "Analysis for Drug"
    assert report.risk_level is RiskLevel.UNKNOWN
    assert report.confidence_level is ConfidenceLevel.LOW
    assert report.evidence_quality is EvidenceQuality.INSUFFICIENT
    assert '"sideEffects": "oops"' in report.general_safety


# ── interactions and alternatives ──

def test_parse_interactions(parser):
    text = (
        "## Pharmacokinetic\n\nWarfarin metabolism is inhibited via CYP2C9.\n\n"
        "## Management\n\nReduce the dose and monitor INR.\n"
    )
    report = parser.parse_interactions(text, ["Warfarin", "Fluconazole"])

    assert report.medicines == ["Warfarin", "Fluconazole"]
    assert report.pharmacokinetic_interactions == "Warfarin metabolism is inhibited via CYP2C9."
    assert report.management_strategies == "Reduce the dose and monitor INR."
    assert report.severity_assessment == "mild"
    assert report.risk_level == "medium"
    assert report.checked_at == FIXED_NOW


def test_parse_alternatives(parser):
    text = (
        "## Pregnancy\n\nParacetamol and Metformin are preferred.\n\n"
        "## Elderly\n\nAtenolol at a low dose.\n\n"
        "We recommend a slow taper.\n\n"
        "You should consult a pharmacist.\n"
    )
    report = parser.parse_alternatives(text)

    assert report.by_population.pregnant == ["Paracetamol", "Metformin"]
    assert report.by_population.elderly == ["Atenolol"]
    assert report.by_population.pediatric == []
    assert report.recommendations == ["We recommend a slow taper.", "You should consult a pharmacist."]
    assert report.safety_comparisons == "Safety comparison data not available."


def test_alternatives_default_recommendation(parser):
    report = parser.parse_alternatives("nothing useful")
    assert report.recommendations == ["Consult your healthcare provider for personalized recommendations."]
