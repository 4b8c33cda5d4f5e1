"""
Response Parser — turns free-form model output into fixed report schemas.

Providers answer in loosely structured markdown (or, sometimes, JSON). This
module slices that text into named sections with keyword-anchored regexes and
a three-level fallback per field:

  1. a markdown heading whose text matches the field's keywords,
  2. a same-line "keyword: ..." match running to the next bold heading,
     "##" heading, numbered item or end of text,
  3. a loose match running to the next blank line.

If nothing matches, the field gets its "not available" default. The keyword
lists are fuzzy and mis-segment text that lacks headings; report content
depends on their exact wording and order.

Parsing never raises. Any unexpected failure yields a minimal fallback report.
"""
from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from app.models.schemas import (
    AlternativesReport,
    AnalysisReport,
    InteractionReport,
    PatientInfo,
    PopulationAlternatives,
    PopulationInteractions,
    PreStructuredOutput,
    SideEffects,
    SpecialPopulations,
    TextOutput,
    WrappedOutput,
)
from app.services.providers.base import classify_output, output_to_text

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

# ──────────────────────────────────────────────
# Keyword tables
# ──────────────────────────────────────────────

SECTION_KEYWORDS: Dict[str, str] = {
    "medication_overview": "medication overview|overview|general information|drug class|mechanism",
    "general_safety": "general safety|safety profile|safety concern",
    "womens_safety": "women.*health|female.*health|gender.*specific|hormonal|estrogen|progesterone",
    "pediatric_safety": "pediatric|children|child|adolescent|infant",
    "pregnancy_safety": "pregnancy|pregnant|lactation|breastfeeding|fetus|fetal",
    "clinical_trials": "clinical trial|studies|research|evidence|analysis",
    "contraindications": "contraindication|avoid|warning|caution",
    "dosing": "dosing|dose|dosage|administration|recommended",
    "interactions": "interaction|drug.*drug|medication.*interaction",
    "monitoring": "monitoring|surveillance|follow.*up|test|check",
}

# Checked to decide whether anything at all was extracted
PRIMARY_SECTIONS = (
    "medication_overview",
    "general_safety",
    "womens_safety",
    "pediatric_safety",
    "pregnancy_safety",
)

SIDE_EFFECT_SECTION = "side effect|adverse|reaction|adverse event"
SIDE_EFFECT_LISTS = {
    "common": "common|frequent|≥.*%|>.*%|most",
    "serious": "serious|severe|life.*threatening|danger",
    "rare": "rare|uncommon|<.*%|infre",
}
GENDER_SPECIFIC = "women|female|gender|estrogen|menstr"
AGE_SPECIFIC = "children|pediatric|elderly|geriatric|age"

SPECIAL_POPULATION_KEYWORDS = {
    "renal_impairment": "renal|kidney|creatinine",
    "hepatic_impairment": "hepatic|liver|ast|alt",
    "elderly": "elderly|geriatric|age.*65",
    "pediatric": "pediatric|children|infant",
}

EVIDENCE_MARKERS = {
    "high": ["randomized.*controlled.*trial", "meta.*analysis", "systematic.*review"],
    "moderate": ["cohort.*study", "case.*control", "observational"],
    "low": ["case.*report", "expert.*opinion", "theoretical"],
}

NOT_AVAILABLE = "not available"
SIDE_EFFECTS_DEFAULT = "Side effect information not available."

_SUMMARY_RE = re.compile(r"(summary|key points|executive summary|conclusion).*?(?=\n\n|##)", re.IGNORECASE | re.DOTALL)
_BLACK_BOX_RE = re.compile(r"black.*box.*warning|boxed.*warning|fda.*warning", re.IGNORECASE | re.DOTALL)
_MEDICATION_NAME_RE = re.compile(r"([A-Z][a-z]+(?:in|ol|ide|ine|ate|pam|zole|cin|xin|mab|nib))")
_PARAGRAPH_SPLIT_RE = re.compile(r"\n\n|\r\n\r\n")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _field_default(name: str) -> str:
    return AnalysisReport.model_fields[name].default


def _present(data: Dict[str, Any]) -> Dict[str, Any]:
    """Drop None and blank strings so the report defaults apply."""
    return {k: v for k, v in data.items() if v is not None and not (isinstance(v, str) and not v.strip())}


# ──────────────────────────────────────────────
# Extraction primitives
# ──────────────────────────────────────────────

def _clean(text: str) -> str:
    text = text.strip()
    text = re.sub(r"^\*+\s*", "", text)
    return re.sub(r"\*+\Z", "", text)


def extract_section(content: Any, keywords: str, default: Optional[str]) -> Optional[str]:
    """Pull the text belonging to the first heading/label matching `keywords`."""
    if not content or not isinstance(content, str):
        return default

    try:
        heading = re.search(
            rf"^#+\s*({keywords})[\s\*]*:?.*?\n([\s\S]*?)(?=\n#+|$)",
            content,
            re.IGNORECASE | re.MULTILINE,
        )
        if heading and heading.group(2):
            extracted = _clean(heading.group(2))
            if extracted:
                return extracted

        labelled = re.search(
            rf"({keywords})[\s\*]*:?[\s\*]*(.*?)(?=\n\*\*[^\*]|\n##|\n\d+\.|\Z)",
            content,
            re.IGNORECASE | re.DOTALL,
        )
        if labelled and labelled.group(2):
            return _clean(labelled.group(2)) or default

        # Ungrouped alternation: only the last keyword reaches the capture group
        loose = re.search(
            rf"{keywords}[\s\*]*:?[\s\*]*([^\n].*?)(?=\n\n|\Z)",
            content,
            re.IGNORECASE | re.DOTALL,
        )
        if loose and loose.group(1):
            return _clean(loose.group(1)) or default

        return default
    except re.error as e:
        logger.warning(f"Error in section extraction regex: {e}")
        return default


def extract_list(text: str, pattern: str) -> List[str]:
    """Every phrase from a keyword hit to the next newline, period or semicolon."""
    if not text:
        return []
    matches = re.finditer(rf"({pattern}).*?(?=\n|\.|;)", text, re.IGNORECASE)
    return [m.group(0).strip() for m in matches if m.group(0).strip()]


def extract_summary(content: str) -> str:
    match = _SUMMARY_RE.search(content)
    if match:
        return match.group(0).strip()

    # First few sentences
    sentences = content.split(".")[:4]
    return ".".join(sentences) + ("." if len(sentences) == 4 else "")


def extract_black_box_warnings(content: str) -> Optional[str]:
    match = _BLACK_BOX_RE.search(content)
    return match.group(0).strip() if match else None


def extract_special_populations(content: str) -> SpecialPopulations:
    return SpecialPopulations(
        **{field: extract_section(content, keywords, None) for field, keywords in SPECIAL_POPULATION_KEYWORDS.items()}
    )


def extract_medication_names(text: Optional[str]) -> List[str]:
    if not text:
        return []
    return list(dict.fromkeys(_MEDICATION_NAME_RE.findall(text)))


def parse_side_effects(content: str) -> SideEffects:
    section = extract_section(content, SIDE_EFFECT_SECTION, "")

    lists = {name: extract_list(section, pattern) for name, pattern in SIDE_EFFECT_LISTS.items()}
    side_effects = SideEffects(
        **lists,
        gender_specific=extract_list(content, GENDER_SPECIFIC),
        age_specific=extract_list(content, AGE_SPECIFIC),
        summary=section or SIDE_EFFECTS_DEFAULT,
    )

    if not any(lists.values()) and section:
        paragraphs = [p for p in _PARAGRAPH_SPLIT_RE.split(section) if len(p.strip()) > 20]
        if paragraphs:
            side_effects.common = [paragraphs[0]]

    return side_effects


# ──────────────────────────────────────────────
# Classifiers
# ──────────────────────────────────────────────

def assess_risk_level(content: str, patient: Optional[PatientInfo] = None) -> str:
    """Additive keyword score mapped onto the risk ordinal."""
    lowered = content.lower()
    score = 0

    if "contraindicated" in lowered or "black box" in lowered:
        score += 3
    if "avoid" in lowered or "not recommended" in lowered:
        score += 2
    if "caution" in lowered or "monitor" in lowered:
        score += 1

    if patient is not None and patient.is_pregnant:
        if "category d" in lowered or "category x" in lowered:
            score += 2
        if "teratogenic" in lowered:
            score += 2

    # These two are substring checks, not patterns
    if patient is not None and patient.is_child:
        if "pediatric.*contraindicated" in lowered:
            score += 2
        if "not.*approved.*children" in lowered:
            score += 1

    if score >= 3:
        return "high"
    if score >= 2:
        return "moderate"
    if score >= 1:
        return "low-moderate"
    return "low"


def assess_confidence_level(content: str) -> str:
    lowered = content.lower()
    # Substring checks, not patterns
    if "well.*established" in lowered or "extensive.*data" in lowered:
        return "high"
    if "limited.*data" in lowered or "case.*reports" in lowered:
        return "low"
    return "moderate"


def assess_evidence_quality(content: str) -> str:
    lowered = content.lower()
    for level, markers in EVIDENCE_MARKERS.items():
        for marker in markers:
            if re.search(marker, lowered):
                return level
    return "moderate"


def assess_interaction_severity(content: str) -> str:
    lowered = content.lower()
    if "severe" in lowered or "life.*threatening" in lowered:
        return "severe"
    if "moderate" in lowered or "significant" in lowered:
        return "moderate"
    return "mild"


def assess_interaction_risk(content: str) -> str:
    lowered = content.lower()
    if "severe" in lowered or "major" in lowered or "contraindicated" in lowered:
        return "high"
    if "moderate" in lowered or "caution" in lowered or "monitor" in lowered:
        return "medium"
    return "low"


def extract_recommendations(content: str) -> List[str]:
    recommendations = []
    for line in content.split("\n"):
        lowered = line.strip().lower()
        if any(word in lowered for word in ("recommend", "should", "consider", "consult")):
            recommendations.append(line.strip())
    return recommendations or ["Consult your healthcare provider for personalized recommendations."]


# ──────────────────────────────────────────────
# Parser
# ──────────────────────────────────────────────

class ResponseParser:
    """
    Builds reports from provider output.

    The clock is injectable so that parsing the same input twice yields
    identical reports.
    """

    def __init__(self, clock: Clock = _utcnow):
        self.clock = clock

    def parse(
        self,
        raw: Any,
        medicine_name: str,
        patient: Optional[PatientInfo] = None,
    ) -> AnalysisReport:
        """
        Parse a provider payload into an AnalysisReport.

        Args:
            raw: RawProviderOutput, or a str/dict that will be classified first
            medicine_name: Name used in generated fallback wording
            patient: Patient attributes (adjust the risk score)

        Returns:
            A fully populated AnalysisReport; never raises
        """
        patient = patient or PatientInfo()
        try:
            output = classify_output(raw)

            if isinstance(output, PreStructuredOutput):
                logger.info("Processing pre-structured analysis response")
                return self._adopt_pre_structured(output.report)

            if isinstance(output, WrappedOutput):
                logger.info("Processing wrapped structured analysis response")
                return self._adopt_wrapped(output.content, patient)

            return self._parse_text(output.text, medicine_name, patient)

        except Exception as e:
            logger.warning(f"Failed to parse analysis response: {e}")
            return self.fallback_report(raw, medicine_name)

    def _adopt_pre_structured(self, report: Dict[str, Any]) -> AnalysisReport:
        data = _present(report)
        data["riskLevel"] = data.get("riskLevel") or "low"
        data["confidenceLevel"] = data.get("confidenceLevel") or "moderate"
        data["evidenceQuality"] = data.get("evidenceQuality") or "moderate"
        data["specialPopulations"] = data.get("specialPopulations") or SpecialPopulations()
        data["lastUpdated"] = self.clock()
        return AnalysisReport.model_validate(data)

    def _adopt_wrapped(self, content: Dict[str, Any], patient: PatientInfo) -> AnalysisReport:
        text = json.dumps(content, default=str)
        data = _present(content)

        data["riskLevel"] = data.get("riskLevel") or assess_risk_level(text, patient)
        data["confidenceLevel"] = data.get("confidenceLevel") or "moderate"
        data["evidenceQuality"] = data.get("evidenceQuality") or "moderate"

        side_effects = data.get("sideEffects")
        if isinstance(side_effects, dict):
            side_effects = {**side_effects, "summary": side_effects.get("summary") or "Side effects vary by individual."}
        data["sideEffects"] = side_effects or parse_side_effects(text)
        data["specialPopulations"] = data.get("specialPopulations") or extract_special_populations(text)
        data["lastUpdated"] = self.clock()
        return AnalysisReport.model_validate(data)

    def _parse_text(self, content: str, medicine_name: str, patient: PatientInfo) -> AnalysisReport:
        logger.info(f"Processing plain text response, length: {len(content)}")

        sections = {
            field: extract_section(content, keywords, _field_default(field))
            for field, keywords in SECTION_KEYWORDS.items()
        }

        summary = extract_summary(content) or f"Analysis for {medicine_name} with limited details available."

        # Nothing recognisable: show the raw text rather than a page of defaults
        if all(NOT_AVAILABLE in sections[f] for f in PRIMARY_SECTIONS) and len(content) > 50:
            logger.info("No structured sections found, using raw content as general information")
            sections["medication_overview"] = f"Comprehensive analysis for {medicine_name}"
            sections["general_safety"] = content[:1000] + ("..." if len(content) > 1000 else "")
            summary = f"AI analysis of {medicine_name}. " + content[:200] + ("..." if len(content) > 200 else "")

        report = AnalysisReport(
            **sections,
            side_effects=parse_side_effects(content),
            summary=summary,
            risk_level=assess_risk_level(content, patient),
            confidence_level=assess_confidence_level(content),
            evidence_quality=assess_evidence_quality(content),
            black_box_warnings=extract_black_box_warnings(content),
            special_populations=extract_special_populations(content),
            last_updated=self.clock(),
        )

        logger.info(
            f"Parsed analysis structure: risk={report.risk_level.value}, "
            f"confidence={report.confidence_level.value}, content_length={len(content)}"
        )
        return report

    def fallback_report(self, raw: Any, medicine_name: str) -> AnalysisReport:
        """Minimal report used when parsing itself blew up."""
        try:
            response_text = output_to_text(raw) if raw is not None else ""
        except (TypeError, ValueError):
            response_text = str(raw)

        return AnalysisReport(
            medication_overview=f"Analysis for {medicine_name}",
            general_safety=response_text or "Analysis data not available",
            womens_safety="Please consult healthcare provider for women-specific information.",
            pediatric_safety="Please consult healthcare provider for pediatric information.",
            pregnancy_safety="Please consult healthcare provider for pregnancy safety information.",
            clinical_trials="Clinical trial information not available.",
            side_effects=SideEffects(summary="Please refer to medication packaging for side effects."),
            contraindications="Please refer to medication packaging for contraindications.",
            dosing="Please follow healthcare provider instructions for dosing.",
            interactions="Please consult healthcare provider for drug interactions.",
            monitoring="Please follow healthcare provider monitoring recommendations.",
            summary="Consult your healthcare provider for comprehensive medication information.",
            risk_level="unknown",
            confidence_level="low",
            evidence_quality="insufficient",
            black_box_warnings=None,
            special_populations=SpecialPopulations(),
            last_updated=self.clock(),
        )

    def parse_interactions(self, raw: Any, medicines: List[str]) -> InteractionReport:
        content = output_to_text(classify_output(raw))
        return InteractionReport(
            medicines=list(medicines),
            pharmacokinetic_interactions=extract_section(
                content,
                "pharmacokinetic|cyp|absorption|metabolism|elimination",
                "Pharmacokinetic interaction data not available.",
            ),
            pharmacodynamic_interactions=extract_section(
                content,
                "pharmacodynamic|synergistic|antagonistic|additive",
                "Pharmacodynamic interaction data not available.",
            ),
            population_specific=PopulationInteractions(
                women=extract_section(content, "women|female", None),
                pediatric=extract_section(content, "pediatric|children", None),
                pregnancy=extract_section(content, "pregnancy|pregnant", None),
            ),
            severity_assessment=assess_interaction_severity(content),
            management_strategies=extract_section(
                content,
                "management|strategy|prevention|mitigation",
                "Management strategies not available.",
            ),
            monitoring_requirements=extract_section(
                content,
                "monitoring|surveillance|laboratory|clinical.*assessment",
                "Monitoring requirements not available.",
            ),
            risk_level=assess_interaction_risk(content),
            checked_at=self.clock(),
        )

    def parse_alternatives(self, raw: Any) -> AlternativesReport:
        content = output_to_text(classify_output(raw))

        def by_population(pattern: str) -> List[str]:
            return extract_medication_names(extract_section(content, pattern, ""))

        return AlternativesReport(
            by_population=PopulationAlternatives(
                women_reproductive_age=by_population("women.*reproductive|reproductive.*age"),
                pregnant=by_population("pregnant|pregnancy"),
                pediatric=by_population("pediatric|children|child"),
                elderly=by_population("elderly|geriatric"),
            ),
            by_mechanism=extract_medication_names(
                extract_section(content, "mechanism.*based|same.*class|different.*mechanism", "")
            ),
            safety_comparisons=extract_section(
                content,
                "safety.*comparison|efficacy.*comparison|versus",
                "Safety comparison data not available.",
            ),
            transition_strategies=extract_section(
                content,
                "transition|switching|taper|cross.*taper",
                "Transition guidance not available.",
            ),
            evidence_level=assess_evidence_quality(content),
            recommendations=extract_recommendations(content),
        )

    @staticmethod
    def summarize_specialized(raw: Any) -> str:
        """Text body for a population-specific sub-analysis."""
        if isinstance(raw, (TextOutput, WrappedOutput, PreStructuredOutput, str)):
            return output_to_text(raw)
        return output_to_text(classify_output(raw))
