"""
Degraded-mode canned reports.

Used only when every provider failed and degraded mode is switched on. The
medicine name is recovered from the prompt text by a pluggable extractor, so
the prompt wording and this lookup can change independently.
"""
from __future__ import annotations

import logging
import re
from typing import Callable, Optional

from app.models.schemas import PreStructuredOutput

logger = logging.getLogger(__name__)

NameExtractor = Callable[[str], Optional[str]]

_PROMPT_MEDICINE_RE = re.compile(r'medication["\s]*([a-zA-Z0-9\s]+)["\s]', re.IGNORECASE)

COMMON_MEDICINES = {
    "paracetamol": {
        "overview": "Paracetamol (acetaminophen) is a widely used analgesic and antipyretic medication available over-the-counter.",
        "safety": "Generally well-tolerated when used as directed. Maximum daily dose should not exceed 4000mg for adults.",
        "side_effects": ["Nausea (rare)", "Allergic reactions (very rare)", "Liver damage (with overdose)"],
        "contraindications": "Severe liver disease, known hypersensitivity to paracetamol",
        "dosing": "Adults: 500-1000mg every 4-6 hours, maximum 4000mg/24 hours",
    },
    "ibuprofen": {
        "overview": "Ibuprofen is a nonsteroidal anti-inflammatory drug (NSAID) used for pain, fever, and inflammation.",
        "safety": "Use with caution in elderly, those with heart/kidney disease, or stomach ulcers.",
        "side_effects": ["Stomach upset", "Nausea", "Dizziness", "Headache"],
        "contraindications": "Active peptic ulcer, severe heart failure, severe kidney disease",
        "dosing": "Adults: 200-400mg every 4-6 hours, maximum 1200mg/24 hours for OTC use",
    },
    "aspirin": {
        "overview": "Aspirin is an NSAID and antiplatelet medication used for pain, fever, inflammation, and cardiovascular protection.",
        "safety": "Increased bleeding risk. Not recommended for children under 16 due to Reye's syndrome risk.",
        "side_effects": ["Stomach irritation", "Increased bleeding", "Nausea", "Tinnitus (high doses)"],
        "contraindications": "Active bleeding, severe liver disease, children under 16 with viral infections",
        "dosing": "Pain/fever: 300-600mg every 4 hours; Cardioprotection: 75-100mg daily",
    },
}


def extract_medicine_from_prompt(prompt: str) -> Optional[str]:
    """Pull the quoted medication name out of an analysis prompt."""
    match = _PROMPT_MEDICINE_RE.search(prompt or "")
    if match:
        name = match.group(1).strip()
        return name or None
    return None


class DegradedFallback:
    """Builds a synthetic report from a small built-in table."""

    def __init__(self, name_extractor: NameExtractor = extract_medicine_from_prompt):
        self.name_extractor = name_extractor

    def build(self, prompt: str) -> PreStructuredOutput:
        medicine_name = self.name_extractor(prompt) or "this medication"
        logger.warning(f"Degraded mode: serving canned analysis for '{medicine_name}'")
        return PreStructuredOutput(report=self.canned_report(medicine_name))

    @staticmethod
    def lookup(medicine_name: str) -> Optional[dict]:
        name = medicine_name.lower()
        for key, info in COMMON_MEDICINES.items():
            if key in name or name in key:
                return info
        return None

    def canned_report(self, medicine_name: str) -> dict:
        info = self.lookup(medicine_name) or {
            "overview": f"{medicine_name} analysis requires access to current medical databases.",
            "safety": "Complete safety information is not available in offline mode.",
            "side_effects": ["Information unavailable - consult healthcare provider"],
            "contraindications": "Consult healthcare provider for contraindications",
            "dosing": "Follow healthcare provider instructions or official prescribing information",
        }

        return {
            "medicationOverview": info["overview"],
            "generalSafety": info["safety"],
            "womensSafety": "Consult healthcare provider for women-specific considerations.",
            "pediatricSafety": "Consult pediatrician for children's dosing and safety.",
            "pregnancySafety": "Consult healthcare provider before use during pregnancy or breastfeeding.",
            "clinicalTrials": "Refer to medical literature and clinical databases for current research.",
            "sideEffects": {
                "common": list(info["side_effects"]),
                "serious": ["Severe allergic reactions", "Organ toxicity (with misuse)"],
                "rare": ["Anaphylaxis", "Stevens-Johnson syndrome"],
                "genderSpecific": [],
                "ageSpecific": [],
                "summary": f"Common side effects may include: {', '.join(info['side_effects'])}",
            },
            "contraindications": info["contraindications"],
            "dosing": info["dosing"],
            "interactions": "Check with pharmacist for drug interactions.",
            "monitoring": "Follow healthcare provider monitoring recommendations.",
            "summary": f"{info['overview']} Always consult healthcare providers for personalized medical advice.",
            "riskLevel": "low-moderate",
            "confidenceLevel": "low",
            "evidenceQuality": "offline_database",
            "blackBoxWarnings": None,
            "specialPopulations": {
                "renalImpairment": "Dose adjustment may be needed",
                "hepaticImpairment": "Use with caution",
                "elderly": "Consider reduced dosing",
                "pediatric": "Consult pediatrician for appropriate dosing",
            },
        }
