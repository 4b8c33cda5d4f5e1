"""
Gemini adapter: the primary provider.

Talks to Google's OpenAI-compatible endpoint. Google reports most problems
as plain 400s with a descriptive message, so classification also looks at the
message text ("API_KEY", "quota", "rate limit").
"""
from __future__ import annotations

from typing import Any

from app.services.errors import (
    InvalidCredentials,
    ProviderConfigError,
    ProviderError,
    QuotaExceeded,
    RateLimited,
)
from app.services.providers.openai_compat import OpenAICompatibleAdapter


class GeminiAdapter(OpenAICompatibleAdapter):
    name = "gemini"
    label = "Gemini"

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-1.5-flash-latest",
        base_url: str = "https://generativelanguage.googleapis.com/v1beta/openai/",
        timeout: float = 25.0,
        max_retries: int = 2,
        retry_delay: float = 1.0,
        client: Any = None,
    ):
        if not api_key:
            raise ProviderConfigError("GEMINI_API_KEY environment variable is required")
        super().__init__(
            api_key=api_key,
            model=model,
            base_url=base_url,
            timeout=timeout,
            max_retries=max_retries,
            retry_delay=retry_delay,
            max_tokens=4000,
            temperature=0.3,
            client=client,
        )

    def classify_error(self, error: Exception) -> ProviderError:
        message = str(error)
        if "API_KEY" in message or "API key" in message:
            return InvalidCredentials("Invalid API key configuration", provider=self.name)
        if "quota" in message.lower():
            return QuotaExceeded("API quota exceeded", provider=self.name)
        if "rate limit" in message.lower():
            return RateLimited("API rate limit exceeded", provider=self.name)
        return super().classify_error(error)
