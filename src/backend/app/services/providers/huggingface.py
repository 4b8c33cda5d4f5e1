"""
Hugging Face adapter: secondary fallback.

Plain HTTP against the chat-completions router with a fixed request envelope.
It never retries internally; retry and timeout are left entirely to the
orchestrator.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from app.models.schemas import RawProviderOutput, TextOutput
from app.services.errors import (
    InvalidCredentials,
    MalformedResponse,
    ProviderError,
    ProviderOverloaded,
    ProviderTimeout,
    RateLimited,
)
from app.services.providers.base import ProviderAdapter

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a medical AI assistant providing accurate, evidence-based information about "
    "medications. Always structure your responses clearly and include safety warnings when appropriate."
)


class HuggingFaceAdapter(ProviderAdapter):
    name = "huggingface"

    def __init__(
        self,
        token: str,
        model: str = "meta-llama/Meta-Llama-3.1-8B-Instruct",
        base_url: str = "https://router.huggingface.co/v1/chat/completions",
        timeout: float = 30.0,
        health_check_timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(timeout=timeout, max_retries=0)
        self.token = token
        self.model = model
        self.base_url = base_url
        self.health_check_timeout = health_check_timeout
        self._http_client = client
        if not token:
            logger.warning("HF_TOKEN not found in environment variables")

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.timeout)
        return self._http_client

    async def _post(self, payload: dict, timeout: float) -> dict:
        client = await self._get_client()
        headers = {
            "Authorization": f"Bearer {self.token}",
            "Content-Type": "application/json",
        }
        try:
            resp = await client.post(self.base_url, json=payload, headers=headers, timeout=timeout)
            resp.raise_for_status()
        except httpx.TimeoutException as e:
            raise ProviderTimeout(
                f"Hugging Face API request timeout after {int(timeout * 1000)}ms", provider=self.name
            ) from e
        except httpx.HTTPStatusError as e:
            raise self._map_status(e.response) from e
        except httpx.HTTPError as e:
            raise ProviderError(f"Hugging Face API request failed: {e}", provider=self.name) from e

        try:
            return resp.json()
        except ValueError as e:
            raise MalformedResponse("Hugging Face API returned invalid JSON", provider=self.name) from e

    def _map_status(self, response: httpx.Response) -> ProviderError:
        status = response.status_code
        try:
            body = response.json()
        except ValueError:
            body = {}
        error = body.get("error") if isinstance(body, dict) else None
        if isinstance(error, dict):
            message = error.get("message") or "Unknown error"
        else:
            message = error or (body.get("message") if isinstance(body, dict) else None) or "Unknown error"

        if status == 401:
            return InvalidCredentials("Invalid Hugging Face API token", provider=self.name)
        if status == 403:
            return InvalidCredentials(
                "Hugging Face API access forbidden - check your token permissions", provider=self.name
            )
        if status == 429:
            return RateLimited("Hugging Face API rate limit exceeded", provider=self.name)
        if status == 503:
            return ProviderOverloaded(
                "Hugging Face API service temporarily unavailable (overloaded)", provider=self.name
            )
        return ProviderError(f"Hugging Face API error ({status}): {message}", provider=self.name)

    async def _complete(self, prompt: str) -> dict[str, Any]:
        """Send one request and return the {content, usage, model, provider} envelope."""
        logger.info("Sending request to Hugging Face API")
        data = await self._post(
            {
                "model": self.model,
                "messages": [
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                "max_tokens": 2000,
                "temperature": 0.7,
                "stream": False,
            },
            timeout=self.timeout,
        )

        choices = data.get("choices") if isinstance(data, dict) else None
        if not choices:
            raise MalformedResponse("Invalid response structure from Hugging Face API", provider=self.name)
        content = (choices[0].get("message") or {}).get("content")
        if content is None:
            raise MalformedResponse("Invalid response structure from Hugging Face API", provider=self.name)

        logger.info("Successfully received response from Hugging Face API")
        return {
            "content": content,
            "usage": data.get("usage"),
            "model": data.get("model"),
            "provider": self.name,
        }

    async def generate_content(self, prompt: str) -> str:
        envelope = await self._complete(prompt)
        return envelope["content"]

    async def generate_structured_content(self, prompt: str, retry_count: int = 0) -> RawProviderOutput:
        envelope = await self._complete(prompt)
        return TextOutput(
            text=envelope["content"],
            metadata={k: v for k, v in envelope.items() if k != "content"},
        )

    async def test_connection(self) -> bool:
        logger.info("Testing Hugging Face API connection")
        try:
            data = await self._post(
                {
                    "model": self.model,
                    "messages": [{"role": "user", "content": "Hello, this is a connection test."}],
                    "max_tokens": 10,
                    "temperature": 0.1,
                },
                timeout=self.health_check_timeout,
            )
        except ProviderError as e:
            logger.error(f"Hugging Face API connection test failed: {e}")
            raise

        if not isinstance(data, dict) or "choices" not in data:
            raise MalformedResponse("Invalid response from Hugging Face API", provider=self.name)
        logger.info("Hugging Face API connection successful")
        return True

    async def aclose(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
