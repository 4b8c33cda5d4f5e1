"""
Perplexity adapter: first fallback.

Perplexity signals an exhausted balance with HTTP 402 rather than 429, and
tends to answer in markdown, so structured prompts ask for clear sections.
"""
from __future__ import annotations

from typing import Any

import openai

from app.services.errors import ProviderConfigError, ProviderError, QuotaExceeded
from app.services.providers.base import MEDICAL_SYSTEM_PROMPT
from app.services.providers.openai_compat import OpenAICompatibleAdapter

STRUCTURE_INSTRUCTION = (
    "Please provide your response in a well-structured format with clear sections and "
    "subsections. Use markdown formatting where appropriate for better readability."
)


class PerplexityAdapter(OpenAICompatibleAdapter):
    name = "perplexity"
    label = "Perplexity"

    def __init__(
        self,
        api_key: str,
        model: str = "llama-3.1-sonar-large-128k-online",
        base_url: str = "https://api.perplexity.ai",
        timeout: float = 30.0,
        max_retries: int = 2,
        retry_delay: float = 1.0,
        client: Any = None,
    ):
        if not api_key:
            raise ProviderConfigError("PERPLEXITY_API_KEY environment variable is required")
        super().__init__(
            api_key=api_key,
            model=model,
            base_url=base_url,
            timeout=timeout,
            max_retries=max_retries,
            retry_delay=retry_delay,
            system_prompt=MEDICAL_SYSTEM_PROMPT,
            max_tokens=4000,
            temperature=0.1,
            client=client,
        )

    def structured_prompt(self, prompt: str) -> str:
        return f"{prompt}\n\n{STRUCTURE_INSTRUCTION}"

    def classify_error(self, error: Exception) -> ProviderError:
        if isinstance(error, openai.APIStatusError) and error.status_code == 402:
            return QuotaExceeded("Perplexity API quota exceeded", provider=self.name)
        return super().classify_error(error)
