"""
Name Resolver — brand/common medicine names to generic names.

A static dictionary of brand names common in India, loaded from
app/data/brand_names.json. Lookups are normalised (case, punctuation,
surrounding whitespace). When the dictionary has nothing, free-text search can
ask the provider chain to identify the medicine from a description.
"""
from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Dict, List, Optional

from app.models.schemas import (
    ExactMatch,
    IdentificationResult,
    IdentifiedMedicine,
    MedicineSuggestion,
    NameMapping,
    SearchResult,
)
from app.services.errors import MedicineIdentificationError
from app.services.prompts import create_identification_prompt
from app.services.providers.base import output_to_text

logger = logging.getLogger(__name__)

BRAND_NAMES_PATH = Path(__file__).parent.parent / "data" / "brand_names.json"

_PUNCTUATION_RE = re.compile(r"[^\w\s]", re.ASCII)
_CODE_FENCE_RE = re.compile(r"```json|```")
_TOKEN_SPLIT_RE = re.compile(r"[\s,.-]+")


def capitalize_words(text: str) -> str:
    return " ".join(word[:1].upper() + word[1:].lower() for word in text.split(" "))


class NameResolver:
    """
    Read-only brand-name dictionary plus AI-assisted identification.

    Usage:
        resolver = NameResolver.load(orchestrator=orchestrator)
        resolver.resolve("Dolo 650")   # -> "Paracetamol 650mg"
        await resolver.search("fever tablet")
    """

    def __init__(self, mapping: Dict[str, str], orchestrator=None):
        self._mapping: Dict[str, NameMapping] = {
            self.normalize(brand): NameMapping(common_brand_name=brand, generic_name=generic)
            for brand, generic in mapping.items()
        }
        self.orchestrator = orchestrator

    @classmethod
    def load(cls, path: Path = BRAND_NAMES_PATH, orchestrator=None) -> "NameResolver":
        with open(path) as f:
            mapping = json.load(f)
        logger.info(f"Loaded {len(mapping)} brand name mappings from {path.name}")
        return cls(mapping, orchestrator=orchestrator)

    def __len__(self) -> int:
        return len(self._mapping)

    @staticmethod
    def normalize(name: str) -> str:
        return _PUNCTUATION_RE.sub("", name.lower()).strip()

    def resolve(self, name: str) -> Optional[str]:
        """Generic name for a brand name, or None if unknown."""
        if not name:
            return None
        entry = self._mapping.get(self.normalize(name))
        return entry.generic_name if entry else None

    def suggest(self, partial: str, limit: int = 10) -> List[MedicineSuggestion]:
        """Dictionary entries related to a partial name, prefix matches first."""
        query = self.normalize(partial)
        suggestions = []
        for key, entry in self._mapping.items():
            if query in key or key in query:
                suggestions.append(
                    MedicineSuggestion(
                        common_name=capitalize_words(key),
                        generic_name=entry.generic_name,
                        match="prefix" if key.startswith(query) else "contains",
                    )
                )

        suggestions.sort(key=lambda s: (s.match != "prefix", len(s.common_name)))
        return suggestions[:limit]

    def extract_names_from_text(self, text: str) -> List[str]:
        """Dictionary keys appearing as single tokens in free text, in order."""
        found = [word for word in _TOKEN_SPLIT_RE.split(text.lower()) if word and self.resolve(word)]
        return list(dict.fromkeys(found))

    async def identify_from_description(self, description: str) -> IdentificationResult:
        """
        Ask the provider chain to identify a medicine from a description.

        Raises:
            MedicineIdentificationError: if no provider could answer
        """
        if self.orchestrator is None:
            raise MedicineIdentificationError("Medicine identification failed: no AI service configured")

        try:
            result = await self.orchestrator.generate_content(create_identification_prompt(description))
        except Exception as e:
            logger.error(f"AI medicine identification failed: {e}")
            raise MedicineIdentificationError("Medicine identification failed") from e

        logger.info(f"Medicine identification provided by {result.service_used} service")
        response = output_to_text(result.payload)

        try:
            parsed = json.loads(_CODE_FENCE_RE.sub("", response).strip())
            if not isinstance(parsed, dict):
                raise ValueError("identification response is not an object")
            return IdentificationResult(
                identified=[
                    IdentifiedMedicine.model_validate(item)
                    for item in parsed.get("identifiedMedicines") or []
                    if isinstance(item, dict)
                ],
                suggestions=[str(s) for s in parsed.get("suggestions") or []],
                raw_response=response,
            )
        except ValueError:
            logger.warning("Failed to parse AI medicine identification response as JSON")

        return IdentificationResult(
            identified=[
                IdentifiedMedicine(
                    common_name=name,
                    generic_name=self.resolve(name) or name,
                    confidence=0.7,
                    reasoning="Extracted from AI text response",
                )
                for name in self.extract_names_from_text(response)
            ],
            suggestions=[],
            raw_response=response,
        )

    async def search(self, query: str) -> SearchResult:
        """Exact mapping, local suggestions, and AI identification for descriptive queries."""
        result = SearchResult(search_query=query)

        generic = self.resolve(query)
        if generic:
            result.exact_match = ExactMatch(common_name=capitalize_words(query), generic_name=generic)

        result.suggestions = self.suggest(query, limit=5)

        if result.exact_match is None and len(query) > 3:
            try:
                identification = await self.identify_from_description(query)
            except MedicineIdentificationError:
                logger.warning("AI medicine identification failed, using only local mapping")
            else:
                result.ai_identified = identification.identified
                result.suggestions.extend(
                    MedicineSuggestion(
                        common_name=name,
                        generic_name=self.resolve(name) or name,
                        match="ai_suggested",
                    )
                    for name in identification.suggestions
                )

        return result
