"""
Medicine Analysis Service — composes resolution, prompting, orchestration and
parsing into the three user-facing operations:

  analyze            one medicine for one patient profile, with
                     population-specific follow-ups and alternatives
  check_interactions 2..10 medicines
  get_alternatives   safer options for one medicine

The main analysis call propagates provider failure. Everything layered on top
of it (specialized sub-analyses, alternatives, interactions) degrades to a
defaulted report instead of failing the request.
"""
from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

from app.models.schemas import (
    AlternativesReport,
    AnalysisReport,
    Gender,
    InteractionReport,
    MedicineNames,
    PatientInfo,
    SpecializedAnalysis,
)
from app.services import prompts
from app.services.name_resolver import NameResolver
from app.services.orchestrator import ProviderOrchestrator
from app.services.response_parser import ResponseParser

logger = logging.getLogger(__name__)

MIN_INTERACTION_MEDICINES = 2
MAX_INTERACTION_MEDICINES = 10


def get_age_group(age: Optional[int]) -> str:
    if age is None:
        return "adult"
    if age < 1:
        return "neonate"
    if age < 2:
        return "infant"
    if age < 12:
        return "child"
    if age < 18:
        return "adolescent"
    return "adult"


def needs_womens_health(patient: PatientInfo) -> bool:
    return patient.gender == Gender.FEMALE or bool(patient.is_pregnant)


def needs_pediatric(patient: PatientInfo) -> bool:
    return bool(patient.is_child) or (patient.age is not None and patient.age < 18)


def needs_pregnancy(patient: PatientInfo) -> bool:
    return bool(patient.is_pregnant)


class MedicineAnalysisService:
    """
    Usage:
        service = MedicineAnalysisService(orchestrator, resolver)
        report = await service.analyze("Dolo 650", PatientInfo(age=30))
    """

    def __init__(
        self,
        orchestrator: ProviderOrchestrator,
        resolver: NameResolver,
        parser: Optional[ResponseParser] = None,
    ):
        self.orchestrator = orchestrator
        self.resolver = resolver
        self.parser = parser or ResponseParser()

    async def analyze(self, medicine_name: str, patient: Optional[PatientInfo] = None) -> AnalysisReport:
        """
        Full safety analysis of one medicine.

        Raises:
            AllProvidersFailed: if the main analysis could not be produced
        """
        patient = patient or PatientInfo()

        generic_name = self.resolver.resolve(medicine_name)
        if generic_name:
            logger.info(f"Resolved {medicine_name} to generic name: {generic_name}")
        resolved_name = generic_name or medicine_name

        logger.info(
            f"Analyzing medicine: {resolved_name} (original: {medicine_name}) "
            f"for patient profile: {patient.model_dump(exclude_none=True)}"
        )

        try:
            result = await self.orchestrator.generate_structured_content(
                prompts.create_analysis_prompt(resolved_name, patient)
            )
        except Exception as e:
            logger.error(f"Medicine analysis failed for {medicine_name}: {e}")
            raise
        logger.info(f"Medicine analysis provided by {result.service_used} service")

        report = self.parser.parse(result.payload, resolved_name, patient)

        womens, pediatric, pregnancy, alternatives = await asyncio.gather(
            self._womens_health(resolved_name, patient) if needs_womens_health(patient) else _none(),
            self._pediatric(resolved_name, patient.age) if needs_pediatric(patient) else _none(),
            self._pregnancy(resolved_name) if needs_pregnancy(patient) else _none(),
            self._alternatives_for_report(resolved_name),
        )

        return report.model_copy(
            update={
                "medicine_names": MedicineNames(
                    original=medicine_name,
                    resolved=resolved_name,
                    was_resolved=generic_name is not None,
                ),
                "specialized_womens_health": womens,
                "specialized_pediatric": pediatric,
                "specialized_pregnancy": pregnancy,
                "alternatives": alternatives,
            }
        )

    # ── specialized follow-ups ──

    async def _specialized(self, prompt: str, label: str) -> str:
        result = await self.orchestrator.generate_structured_content(prompt)
        logger.info(f"{label} analysis provided by {result.service_used} service")
        return self.parser.summarize_specialized(result.payload)

    async def _womens_health(self, medicine_name: str, patient: PatientInfo) -> SpecializedAnalysis:
        try:
            text = await self._specialized(
                prompts.create_womens_health_prompt(medicine_name, patient), "Women's health"
            )
            return SpecializedAnalysis(analysis=text, focus="women_health")
        except Exception as e:
            logger.warning(f"Women's health analysis failed for {medicine_name}: {e}")
            return SpecializedAnalysis(
                analysis="Specialized women's health analysis unavailable. Please consult your healthcare provider.",
                focus="women_health",
                error=True,
            )

    async def _pediatric(self, medicine_name: str, age: Optional[int]) -> SpecializedAnalysis:
        try:
            text = await self._specialized(prompts.create_pediatric_prompt(medicine_name, age), "Pediatric")
            return SpecializedAnalysis(analysis=text, focus="pediatric", age_group=get_age_group(age))
        except Exception as e:
            logger.warning(f"Pediatric analysis failed for {medicine_name}: {e}")
            return SpecializedAnalysis(
                analysis="Specialized pediatric analysis unavailable. Please consult a pediatrician.",
                focus="pediatric",
                age_group=get_age_group(age),
                error=True,
            )

    async def _pregnancy(self, medicine_name: str) -> SpecializedAnalysis:
        try:
            text = await self._specialized(prompts.create_pregnancy_prompt(medicine_name), "Pregnancy")
            return SpecializedAnalysis(analysis=text, focus="pregnancy")
        except Exception as e:
            logger.warning(f"Pregnancy analysis failed for {medicine_name}: {e}")
            return SpecializedAnalysis(
                analysis="Specialized pregnancy analysis unavailable. Please consult your obstetrician.",
                focus="pregnancy",
                error=True,
            )

    async def _alternatives_for_report(self, medicine_name: str) -> AlternativesReport:
        try:
            return await self.get_alternatives(medicine_name)
        except Exception as e:
            logger.warning(f"Failed to get alternatives for {medicine_name}: {e}")
            return AlternativesReport(
                safety_comparisons="Alternative medication analysis unavailable.",
                transition_strategies="Consult your healthcare provider for medication alternatives.",
                evidence_level="insufficient",
                recommendations=["Discuss alternative options with your healthcare provider."],
            )

    # ── standalone operations ──

    async def get_alternatives(self, medicine_name: str, condition: Optional[str] = None) -> AlternativesReport:
        logger.info(f"Getting alternatives for: {medicine_name}, condition: {condition or ''}")
        try:
            result = await self.orchestrator.generate_structured_content(
                prompts.create_alternatives_prompt(medicine_name, condition)
            )
        except Exception as e:
            logger.error(f"Failed to get alternatives for {medicine_name}: {e}")
            return AlternativesReport(
                evidence_level="insufficient",
                recommendations=["Consult your healthcare provider for alternative medication options."],
                error="Unable to retrieve alternative medications at this time.",
            )

        logger.info(f"Alternatives provided by {result.service_used} service")
        return self.parser.parse_alternatives(result.payload)

    async def check_interactions(self, medicines: List[str]) -> InteractionReport:
        """
        Interaction check across 2..10 medicines.

        Raises:
            ValueError: if the medicine count is out of range
        """
        if not MIN_INTERACTION_MEDICINES <= len(medicines) <= MAX_INTERACTION_MEDICINES:
            raise ValueError(
                f"Between {MIN_INTERACTION_MEDICINES} and {MAX_INTERACTION_MEDICINES} medicines are required"
            )

        joined = ", ".join(medicines)
        logger.info(f"Checking interactions for: {joined}")
        try:
            result = await self.orchestrator.generate_structured_content(prompts.create_interaction_prompt(medicines))
        except Exception as e:
            logger.error(f"Interaction check failed for {joined}: {e}")
            return InteractionReport(
                medicines=list(medicines),
                management_strategies="Consult your healthcare provider for interaction management.",
                monitoring_requirements="Monitoring requirements should be discussed with your healthcare provider.",
                error="Unable to retrieve interaction data at this time. Please consult your healthcare provider.",
            )

        logger.info(f"Interaction check provided by {result.service_used} service")
        return self.parser.parse_interactions(result.payload, medicines)


async def _none() -> None:
    return None
