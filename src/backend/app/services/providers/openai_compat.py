"""
Shared plumbing for vendors that speak the OpenAI chat-completions protocol.

Gemini (through Google's OpenAI-compatible endpoint) and Perplexity both go
through openai.AsyncOpenAI. The SDK's own retries are disabled: retry lives in
ProviderAdapter.generate_structured_content and failover in the orchestrator.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

import openai

from app.services.errors import (
    InvalidCredentials,
    MalformedResponse,
    ProviderError,
    ProviderOverloaded,
    ProviderTimeout,
    QuotaExceeded,
    RateLimited,
)
from app.services.providers.base import ProviderAdapter

logger = logging.getLogger(__name__)


class OpenAICompatibleAdapter(ProviderAdapter):
    """Adapter for any OpenAI-compatible chat completions endpoint."""

    label: str = "OpenAI-compatible"

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str,
        timeout: float,
        max_retries: int = 2,
        retry_delay: float = 1.0,
        system_prompt: Optional[str] = None,
        max_tokens: int = 4000,
        temperature: float = 0.1,
        client: Any = None,
    ):
        super().__init__(timeout=timeout, max_retries=max_retries, retry_delay=retry_delay)
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.system_prompt = system_prompt
        self.max_tokens = max_tokens
        self.temperature = temperature
        self._client = client

    def _get_client(self):
        """Lazy-initialize the API client."""
        if self._client is None:
            self._client = openai.AsyncOpenAI(
                api_key=self.api_key,
                base_url=self.base_url,
                timeout=self.timeout,
                max_retries=0,
            )
        return self._client

    def _messages(self, prompt: str) -> list[dict]:
        messages = []
        if self.system_prompt:
            messages.append({"role": "system", "content": self.system_prompt})
        messages.append({"role": "user", "content": prompt})
        return messages

    async def generate_content(self, prompt: str) -> str:
        client = self._get_client()
        logger.info(f"Sending request to {self.label} API")
        try:
            response = await client.chat.completions.create(
                model=self.model,
                messages=self._messages(prompt),
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
        except Exception as e:
            logger.error(f"{self.label} API request failed: {e}")
            raise self.classify_error(e) from e

        if not getattr(response, "choices", None):
            raise MalformedResponse(f"Invalid response structure from {self.label} API", provider=self.name)
        text = response.choices[0].message.content
        if text is None:
            raise MalformedResponse(f"Empty response from {self.label} API", provider=self.name)

        logger.info(f"{self.label} API response received successfully")
        return text

    async def test_connection(self) -> bool:
        client = self._get_client()
        try:
            await client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": 'Test connection - respond with "OK"'}],
                max_tokens=10,
                temperature=0,
            )
        except Exception as e:
            logger.error(f"{self.label} API connection test failed: {e}")
            raise ProviderError(f"{self.label} API connection failed", provider=self.name) from e

        logger.info(f"{self.label} API connection test successful")
        return True

    def classify_error(self, error: Exception) -> ProviderError:
        """Map an SDK exception onto the ProviderError hierarchy."""
        message = str(error)
        lowered = message.lower()

        if isinstance(error, (openai.AuthenticationError, openai.PermissionDeniedError)):
            return InvalidCredentials(f"Invalid {self.label} API key", provider=self.name)
        if isinstance(error, openai.RateLimitError):
            if "quota" in lowered:
                return QuotaExceeded(f"{self.label} API quota exceeded", provider=self.name)
            return RateLimited(f"{self.label} API rate limit exceeded", provider=self.name)
        if isinstance(error, openai.APITimeoutError) or "timeout" in lowered or "timed out" in lowered:
            return ProviderTimeout(f"{self.label} API request timed out", provider=self.name)
        if isinstance(error, openai.APIStatusError) and error.status_code in (502, 503):
            return ProviderOverloaded(f"{self.label} API is overloaded", provider=self.name)
        if "overloaded" in lowered:
            return ProviderOverloaded(f"{self.label} API is overloaded", provider=self.name)
        return ProviderError(f"{self.label} API error: {message}", provider=self.name)

    async def aclose(self) -> None:
        if self._client is not None and hasattr(self._client, "close"):
            await self._client.close()
