"""
Provider adapter contract.

Every LLM vendor is wrapped in a ProviderAdapter exposing the same three
operations, so the orchestrator can swap one for another without knowing
which vendor it is talking to:

  - generate_content(prompt) -> str
  - generate_structured_content(prompt) -> RawProviderOutput
  - test_connection() -> bool

Adapters own their error classification (mapping vendor errors onto the
ProviderError hierarchy) and their transient-retry policy. Whatever the vendor
returns is classified into a RawProviderOutput here, once, so nothing
downstream has to sniff shapes again.
"""
from __future__ import annotations

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from typing import Any

from app.models.schemas import (
    PreStructuredOutput,
    RawProviderOutput,
    TextOutput,
    WrappedOutput,
)

logger = logging.getLogger(__name__)

MEDICAL_SYSTEM_PROMPT = (
    "You are a medical AI assistant specializing in medication safety analysis, particularly "
    "for women and children. Provide detailed, accurate, and well-structured information."
)


def classify_output(value: Any) -> RawProviderOutput:
    """
    Turn whatever a provider produced into a RawProviderOutput.

    Text that looks like a JSON object is parsed; if parsing fails it stays text.
    """
    if isinstance(value, (TextOutput, WrappedOutput, PreStructuredOutput)):
        return value

    if isinstance(value, str):
        stripped = value.strip()
        if stripped.startswith("{") and stripped.endswith("}"):
            try:
                parsed = json.loads(stripped)
            except json.JSONDecodeError:
                logger.warning("Failed to parse JSON response, returning as text")
                return TextOutput(text=value)
            if isinstance(parsed, dict):
                return classify_output(parsed)
        return TextOutput(text=value)

    if isinstance(value, dict):
        overview = value.get("medicationOverview")
        if isinstance(overview, str) and overview.strip():
            return PreStructuredOutput(report=value)
        content = value.get("content")
        if isinstance(content, dict):
            return WrappedOutput(content=content)
        if isinstance(content, str):
            metadata = {k: v for k, v in value.items() if k != "content"}
            return TextOutput(text=content, metadata=metadata)
        return TextOutput(text=json.dumps(value, default=str))

    return TextOutput(text=json.dumps(value, default=str))


def output_to_text(output: Any) -> str:
    """Flatten a provider payload to a single text blob."""
    if isinstance(output, str):
        return output
    if isinstance(output, TextOutput):
        return output.text
    if isinstance(output, WrappedOutput):
        return json.dumps(output.content, default=str)
    if isinstance(output, PreStructuredOutput):
        return json.dumps(output.report, default=str)
    return json.dumps(output, default=str)


class ProviderAdapter(ABC):
    """
    Base class for all LLM provider adapters.

    Subclasses implement generate_content() and test_connection(); the
    structured variant with bounded linear-backoff retry lives here.
    """

    name: str = "provider"

    def __init__(self, timeout: float, max_retries: int = 2, retry_delay: float = 1.0):
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay

    @abstractmethod
    async def generate_content(self, prompt: str) -> str:
        """Issue one outbound call and return the model's text."""
        ...

    @abstractmethod
    async def test_connection(self) -> bool:
        """Minimal low-cost request. Returns True or raises ProviderError."""
        ...

    async def generate_structured_content(self, prompt: str, retry_count: int = 0) -> RawProviderOutput:
        """
        Generate content and classify it.

        On failure, retries up to max_retries more times, sleeping
        retry_delay * attempt between attempts, then re-raises.
        """
        try:
            response = await self.generate_content(self.structured_prompt(prompt))
        except Exception as e:
            if retry_count < self.max_retries:
                logger.warning(f"{self.name} request failed ({e}), retrying ({retry_count + 1}/{self.max_retries})")
                await asyncio.sleep(self.retry_delay * (retry_count + 1))
                return await self.generate_structured_content(prompt, retry_count + 1)
            raise

        return classify_output(response)

    def structured_prompt(self, prompt: str) -> str:
        """Hook for vendors that need extra formatting instructions."""
        return prompt

    async def aclose(self) -> None:
        """Release any network clients held by the adapter."""
        return None

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, timeout={self.timeout})"
