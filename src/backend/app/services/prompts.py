"""
Prompt templates.

Provider-agnostic natural-language prompts for each analysis kind. Pure
functions: (medicine name, patient attributes) -> prompt string.
"""
from __future__ import annotations

from typing import List, Optional

from app.models.schemas import PatientInfo

ANALYSIS_PROMPT = """Analyze the medication "{medicine_name}" for safety. Provide a concise analysis covering:

1. **Medication Overview**: Generic name, drug class, primary uses
2. **General Safety**: Common side effects, contraindications
3. **Special Populations**:
   - Women's health considerations
   - Pediatric safety (if age < 18)
   - Pregnancy safety (if applicable)
4. **Key Warnings**: Important safety alerts or black box warnings
5. **Dosing Guidelines**: Standard dosing information

Patient Info: Age {age}, Gender {gender}{flags}

Keep the response concise but medically accurate. Focus on practical safety information."""

WOMENS_HEALTH_PROMPT = """Provide women's health analysis for {medicine_name}. Focus on:
- Hormonal interactions
- Reproductive health effects
- Pregnancy safety
- Menstrual cycle impacts
Keep response brief and practical."""

PEDIATRIC_PROMPT = """Analyze {medicine_name} for pediatric safety (age: {age}). Include:
- Age-appropriate dosing
- Developmental considerations
- Safety concerns for children
- Contraindications
Keep response brief and practical."""

PREGNANCY_PROMPT = """Analyze {medicine_name} for pregnancy safety. Include:
- Pregnancy category/classification
- Trimester-specific risks
- Breastfeeding safety
- Alternative options
Keep response brief and practical."""

ALTERNATIVES_PROMPT = """Suggest safer alternatives to {medicine_name}{condition}. Include:
- Similar efficacy medications
- Lower risk options
- Non-pharmaceutical alternatives
- Population-specific recommendations
Keep response brief and practical."""

INTERACTION_PROMPT = """Check drug interactions between: {medicines}. Include:
- Pharmacokinetic interactions
- Pharmacodynamic interactions
- Severity levels
- Management recommendations
Keep response brief and practical."""

IDENTIFICATION_PROMPT = """You are a medicine identification expert. Based on the following description, identify the most likely medicine name (both brand and generic if applicable). The user might describe:
- Common/brand names used in India
- Symptoms the medicine treats
- Physical description of the medicine
- Usage context

Description: "{description}"

Please respond in this exact JSON format:
{{
  "identifiedMedicines": [
    {{
      "commonName": "Brand/Common name",
      "genericName": "Generic name",
      "confidence": 0.95,
      "reasoning": "Why this medicine was identified"
    }}
  ],
  "suggestions": [
    "Alternative medicine 1",
    "Alternative medicine 2"
  ]
}}

Focus on commonly available medicines in India. If unsure, provide multiple options with confidence scores."""


def create_analysis_prompt(medicine_name: str, patient: Optional[PatientInfo] = None) -> str:
    patient = patient or PatientInfo()
    flags = ""
    if patient.is_pregnant:
        flags += ", Pregnant"
    if patient.is_child:
        flags += ", Child"
    return ANALYSIS_PROMPT.format(
        medicine_name=medicine_name,
        # age 0 reads as "not specified", as it always has
        age=patient.age or "not specified",
        gender=patient.gender.value if patient.gender else "not specified",
        flags=flags,
    )


def create_womens_health_prompt(medicine_name: str, patient: Optional[PatientInfo] = None) -> str:
    return WOMENS_HEALTH_PROMPT.format(medicine_name=medicine_name)


def create_pediatric_prompt(medicine_name: str, age: Optional[int]) -> str:
    return PEDIATRIC_PROMPT.format(medicine_name=medicine_name, age=age if age is not None else "not specified")


def create_pregnancy_prompt(medicine_name: str) -> str:
    return PREGNANCY_PROMPT.format(medicine_name=medicine_name)


def create_alternatives_prompt(medicine_name: str, condition: Optional[str] = None) -> str:
    return ALTERNATIVES_PROMPT.format(
        medicine_name=medicine_name,
        condition=f" for {condition}" if condition else "",
    )


def create_interaction_prompt(medicines: List[str]) -> str:
    return INTERACTION_PROMPT.format(medicines=", ".join(medicines))


def create_identification_prompt(description: str) -> str:
    return IDENTIFICATION_PROMPT.format(description=description)
