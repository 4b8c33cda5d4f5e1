"""
Domain models for the Medicine Safety Checker.

These Pydantic models define the data flowing from the provider adapters,
through the orchestrator and response parser, out to the API. Python code uses
snake_case; the wire format is camelCase via aliases.
"""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator
from pydantic.alias_generators import to_camel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """Base for every model that crosses the API boundary."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ──────────────────────────────────────────────
# Enums
# ──────────────────────────────────────────────

class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class RiskLevel(str, Enum):
    LOW = "low"
    LOW_MODERATE = "low-moderate"
    MODERATE = "moderate"
    HIGH = "high"
    UNKNOWN = "unknown"


class ConfidenceLevel(str, Enum):
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"


class EvidenceQuality(str, Enum):
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    OFFLINE_DATABASE = "offline_database"
    INSUFFICIENT = "insufficient"


def _coerce_enum(value: Any, enum_cls: type[Enum], fallback: Enum) -> Any:
    """Lower-case string values and map anything unrecognised to a fallback member."""
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        value = value.strip().lower()
        if value in {m.value for m in enum_cls}:
            return value
    return fallback


# ──────────────────────────────────────────────
# Provider output
# ──────────────────────────────────────────────

class TextOutput(BaseModel):
    """Free text returned by a provider."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["text"] = "text"
    text: str
    metadata: Dict[str, Any] = Field(default_factory=dict)


class WrappedOutput(BaseModel):
    """A JSON object the provider nested under a `content` key."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["wrapped"] = "wrapped"
    content: Dict[str, Any]


class PreStructuredOutput(BaseModel):
    """An object that is already shaped like an AnalysisReport."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["pre_structured"] = "pre_structured"
    report: Dict[str, Any]


RawProviderOutput = Union[TextOutput, WrappedOutput, PreStructuredOutput]


class OrchestrationResult(BaseModel):
    """Outcome of one failover run: the winning payload and who produced it."""
    model_config = ConfigDict(frozen=True)

    payload: Union[TextOutput, WrappedOutput, PreStructuredOutput, str]
    service_used: str


# ──────────────────────────────────────────────
# Patient input
# ──────────────────────────────────────────────

class PatientInfo(CamelModel):
    age: Optional[int] = Field(None, ge=0, le=120)
    gender: Optional[Gender] = None
    is_pregnant: Optional[bool] = None
    is_child: Optional[bool] = None


# ──────────────────────────────────────────────
# Analysis report
# ──────────────────────────────────────────────

class SideEffects(CamelModel):
    common: List[str] = Field(default_factory=list)
    serious: List[str] = Field(default_factory=list)
    rare: List[str] = Field(default_factory=list)
    gender_specific: List[str] = Field(default_factory=list)
    age_specific: List[str] = Field(default_factory=list)
    summary: str = "Side effect information not available."


class SpecialPopulations(CamelModel):
    renal_impairment: Optional[str] = None
    hepatic_impairment: Optional[str] = None
    elderly: Optional[str] = None
    pediatric: Optional[str] = None


class MedicineNames(CamelModel):
    original: str
    resolved: str
    was_resolved: bool


class SpecializedAnalysis(CamelModel):
    """Output of one population-specific follow-up round-trip."""
    analysis: str
    focus: str
    age_group: Optional[str] = None
    error: bool = False
    timestamp: datetime = Field(default_factory=_utcnow)


class PopulationAlternatives(CamelModel):
    women_reproductive_age: List[str] = Field(default_factory=list)
    pregnant: List[str] = Field(default_factory=list)
    pediatric: List[str] = Field(default_factory=list)
    elderly: List[str] = Field(default_factory=list)


class AlternativesReport(CamelModel):
    by_population: PopulationAlternatives = Field(default_factory=PopulationAlternatives)
    by_mechanism: List[str] = Field(default_factory=list)
    safety_comparisons: str = "Safety comparison data not available."
    transition_strategies: str = "Transition guidance not available."
    evidence_level: EvidenceQuality = EvidenceQuality.MODERATE
    recommendations: List[str] = Field(default_factory=list)
    error: Optional[str] = None

    @field_validator("evidence_level", mode="before")
    @classmethod
    def _normalise_evidence(cls, v: Any) -> Any:
        return _coerce_enum(v, EvidenceQuality, EvidenceQuality.INSUFFICIENT)


class AnalysisReport(CamelModel):
    """
    The canonical safety report. Every text field carries a non-empty
    default, so a report is never partially undefined.
    """
    medication_overview: str = "Medication information not available."
    general_safety: str = "General safety information not available."
    womens_safety: str = "Women-specific safety information not available."
    pediatric_safety: str = "Pediatric safety information not available."
    pregnancy_safety: str = "Pregnancy safety information not available."
    clinical_trials: str = "Clinical trial information not available."
    side_effects: SideEffects = Field(default_factory=SideEffects)
    contraindications: str = "Contraindication information not available."
    dosing: str = "Dosing information not available."
    interactions: str = "Drug interaction information not available."
    monitoring: str = "Monitoring recommendations not available."
    summary: str = "Summary not available."
    risk_level: RiskLevel = RiskLevel.LOW
    confidence_level: ConfidenceLevel = ConfidenceLevel.MODERATE
    evidence_quality: EvidenceQuality = EvidenceQuality.MODERATE
    black_box_warnings: Optional[str] = None
    special_populations: SpecialPopulations = Field(default_factory=SpecialPopulations)
    last_updated: datetime = Field(default_factory=_utcnow)

    # Enrichment attached by the analysis service
    medicine_names: Optional[MedicineNames] = None
    specialized_womens_health: Optional[SpecializedAnalysis] = None
    specialized_pediatric: Optional[SpecializedAnalysis] = None
    specialized_pregnancy: Optional[SpecializedAnalysis] = None
    alternatives: Optional[AlternativesReport] = None

    @field_validator("risk_level", mode="before")
    @classmethod
    def _normalise_risk(cls, v: Any) -> Any:
        return _coerce_enum(v, RiskLevel, RiskLevel.UNKNOWN)

    @field_validator("confidence_level", mode="before")
    @classmethod
    def _normalise_confidence(cls, v: Any) -> Any:
        return _coerce_enum(v, ConfidenceLevel, ConfidenceLevel.LOW)

    @field_validator("evidence_quality", mode="before")
    @classmethod
    def _normalise_evidence(cls, v: Any) -> Any:
        return _coerce_enum(v, EvidenceQuality, EvidenceQuality.INSUFFICIENT)


# ──────────────────────────────────────────────
# Interaction report
# ──────────────────────────────────────────────

class PopulationInteractions(CamelModel):
    women: Optional[str] = None
    pediatric: Optional[str] = None
    pregnancy: Optional[str] = None


class InteractionReport(CamelModel):
    medicines: List[str]
    pharmacokinetic_interactions: str = "Pharmacokinetic interaction data not available."
    pharmacodynamic_interactions: str = "Pharmacodynamic interaction data not available."
    population_specific: PopulationInteractions = Field(default_factory=PopulationInteractions)
    severity_assessment: str = "unknown"
    management_strategies: str = "Management strategies not available."
    monitoring_requirements: str = "Monitoring requirements not available."
    risk_level: str = "unknown"
    checked_at: datetime = Field(default_factory=_utcnow)
    error: Optional[str] = None


# ──────────────────────────────────────────────
# Name resolution
# ──────────────────────────────────────────────

class NameMapping(CamelModel):
    common_brand_name: str
    generic_name: str


class MedicineSuggestion(CamelModel):
    common_name: str
    generic_name: str
    match: Literal["prefix", "contains", "ai_suggested"]


class IdentifiedMedicine(CamelModel):
    common_name: str = ""
    generic_name: str = ""
    confidence: float = 0.0
    reasoning: str = ""


class ExactMatch(CamelModel):
    common_name: str
    generic_name: str
    source: str = "exact_mapping"


class SearchResult(CamelModel):
    exact_match: Optional[ExactMatch] = None
    suggestions: List[MedicineSuggestion] = Field(default_factory=list)
    ai_identified: List[IdentifiedMedicine] = Field(default_factory=list)
    search_query: str


class IdentificationResult(BaseModel):
    identified: List[IdentifiedMedicine] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)
    raw_response: str = ""


# ──────────────────────────────────────────────
# API Request / Response Models
# ──────────────────────────────────────────────

MedicineNameStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=200)]

DISCLAIMER_ANALYSIS = (
    "This analysis is for informational purposes only and should not replace professional "
    "medical advice. Always consult with a healthcare provider before making any medical decisions."
)
DISCLAIMER_ALTERNATIVES = (
    "Alternative suggestions are for informational purposes only. "
    "Consult your healthcare provider before switching medications."
)
DISCLAIMER_INTERACTIONS = (
    "Interaction information is for educational purposes only. "
    "Always consult your healthcare provider about potential drug interactions."
)


class AnalyzeRequest(CamelModel):
    """API request to analyze one medicine."""
    medicine_name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        pattern=r"^[a-zA-Z0-9\s\-.,()]+$",
        description="Brand or generic medicine name",
    )
    patient_info: PatientInfo = Field(default_factory=PatientInfo)

    @field_validator("medicine_name", mode="before")
    @classmethod
    def _strip(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v


class InteractionRequest(CamelModel):
    """API request for a drug interaction check."""
    medicines: List[MedicineNameStr] = Field(..., min_length=2, max_length=10)


class AnalyzeResponse(CamelModel):
    success: bool = True
    medicine: str
    patient_info: PatientInfo
    analysis: AnalysisReport
    timestamp: datetime = Field(default_factory=_utcnow)
    disclaimer: str = DISCLAIMER_ANALYSIS


class AlternativesResponse(CamelModel):
    success: bool = True
    original_medicine: str
    condition: str
    alternatives: AlternativesReport
    timestamp: datetime = Field(default_factory=_utcnow)
    disclaimer: str = DISCLAIMER_ALTERNATIVES


class InteractionsResponse(CamelModel):
    success: bool = True
    medicines: List[str]
    interactions: InteractionReport
    timestamp: datetime = Field(default_factory=_utcnow)
    disclaimer: str = DISCLAIMER_INTERACTIONS


class SearchResponse(CamelModel):
    success: bool = True
    query: str
    results: SearchResult
    timestamp: datetime = Field(default_factory=_utcnow)


class SuggestionItem(CamelModel):
    display: str
    common_name: str
    generic_name: str
    value: str


class SuggestionsResponse(CamelModel):
    success: bool = True
    query: str
    suggestions: List[SuggestionItem] = Field(default_factory=list)
