"""
Provider Orchestrator — timeout-bounded failover across LLM providers.

Tries each adapter in a fixed priority order (Gemini -> Perplexity ->
Hugging Face). Each attempt gets its own time budget; the first adapter to
answer wins and no further adapters are called. Timeouts, overload, quota and
any other failure simply advance to the next adapter.

If every adapter fails:
  - in degraded mode, structured requests get a canned report
    (service_used == "degraded-fallback");
  - otherwise AllProvidersFailed is raised, carrying the last error.

Every request starts the sequence cold: no circuit breaking, no reordering,
no state shared between requests beyond the read-only adapter list.
"""
from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from app.config import Settings
from app.models.schemas import OrchestrationResult
from app.services.degraded import DegradedFallback
from app.services.errors import (
    AllProvidersFailed,
    ProviderOverloaded,
    ProviderTimeout,
    QuotaExceeded,
)
from app.services.providers.base import ProviderAdapter
from app.services.providers.gemini import GeminiAdapter
from app.services.providers.huggingface import HuggingFaceAdapter
from app.services.providers.perplexity import PerplexityAdapter

logger = logging.getLogger(__name__)

DEGRADED_SERVICE_NAME = "degraded-fallback"
STRUCTURED_OPERATION = "generate_structured_content"
OPERATIONS = frozenset({"generate_content", STRUCTURED_OPERATION})

DEBUG_PROMPT_LIMIT = 1000


class FailureKind(str, Enum):
    TIMEOUT = "timeout"
    OVERLOADED = "overloaded"
    QUOTA_EXCEEDED = "quota_exceeded"
    OTHER = "other"


def classify_failure(error: BaseException) -> FailureKind:
    """Bucket a failed attempt for logging; every kind is non-fatal here."""
    if isinstance(error, (asyncio.TimeoutError, TimeoutError, ProviderTimeout)):
        return FailureKind.TIMEOUT
    message = str(error).lower()
    if isinstance(error, ProviderOverloaded) or "overloaded" in message:
        return FailureKind.OVERLOADED
    if isinstance(error, QuotaExceeded) or "quota" in message:
        return FailureKind.QUOTA_EXCEEDED
    return FailureKind.OTHER


class ProviderOrchestrator:
    """
    Runs one operation against the adapters in priority order.

    Usage:
        orchestrator = ProviderOrchestrator(adapters, degraded_mode=True)
        result = await orchestrator.generate_structured_content(prompt)
        result.payload, result.service_used
    """

    def __init__(
        self,
        adapters: Sequence[ProviderAdapter],
        primary_timeout: float = 25.0,
        default_timeout: float = 30.0,
        degraded_mode: bool = False,
        debug: bool = False,
        degraded_fallback: Optional[DegradedFallback] = None,
    ):
        if not adapters:
            raise ValueError("At least one provider adapter is required")
        self.adapters: List[ProviderAdapter] = list(adapters)
        self.primary_timeout = primary_timeout
        self.default_timeout = default_timeout
        self.degraded_mode = degraded_mode
        self.debug = debug
        self.degraded_fallback = degraded_fallback or DegradedFallback()

        order = " -> ".join(a.name for a in self.adapters)
        logger.info(
            f"Provider orchestrator initialized: {order} "
            f"(primary timeout {self.primary_timeout}s, default {self.default_timeout}s)"
        )
        if self.debug:
            logger.info("Provider orchestrator running in debug mode")

    @property
    def service_order(self) -> List[str]:
        return [a.name for a in self.adapters]

    def timeout_for(self, index: int) -> float:
        """The primary adapter gets its own budget; the rest share the default."""
        return self.primary_timeout if index == 0 else self.default_timeout

    async def request_with_fallback(self, operation: str, *args: Any) -> OrchestrationResult:
        """
        Run `operation` on each adapter in turn until one succeeds.

        Args:
            operation: Adapter method name (must exist on every adapter)
            *args: Operation arguments; by convention args[0] is the prompt

        Returns:
            OrchestrationResult with the winning payload and adapter name
        """
        if operation not in OPERATIONS:
            raise ValueError(f"Unknown provider operation: {operation}")

        args_list = list(args)
        if (
            self.debug
            and operation == STRUCTURED_OPERATION
            and args_list
            and isinstance(args_list[0], str)
            and len(args_list[0]) > DEBUG_PROMPT_LIMIT
        ):
            logger.info("Debug mode: truncating long prompt for testing")
            args_list[0] = args_list[0][:DEBUG_PROMPT_LIMIT] + "\n\n[Prompt truncated for testing]"

        last_error: Optional[BaseException] = None

        for index, adapter in enumerate(self.adapters):
            timeout = self.timeout_for(index)
            logger.info(f"Attempting request with {adapter.name} service (timeout: {timeout}s)")
            try:
                call = getattr(adapter, operation)(*args_list)
                result = await asyncio.wait_for(call, timeout=timeout)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                last_error = e
                kind = classify_failure(e)
                if kind is FailureKind.TIMEOUT:
                    logger.warning(f"{adapter.name} service timed out after {timeout}s, trying next service")
                elif kind is FailureKind.OVERLOADED:
                    logger.warning(f"{adapter.name} service is overloaded, trying next service")
                elif kind is FailureKind.QUOTA_EXCEEDED:
                    logger.warning(f"{adapter.name} service quota exceeded, trying next service")
                else:
                    logger.error(f"{adapter.name} service error: {e}")
                continue

            logger.info(f"Successfully got response from {adapter.name} service")
            return OrchestrationResult(payload=result, service_used=adapter.name)

        logger.error("All AI services failed")

        if self.degraded_mode and operation == STRUCTURED_OPERATION:
            prompt = args_list[0] if args_list and isinstance(args_list[0], str) else ""
            return OrchestrationResult(
                payload=self.degraded_fallback.build(prompt),
                service_used=DEGRADED_SERVICE_NAME,
            )

        raise AllProvidersFailed(
            f"All AI services failed: {last_error}" if last_error else "All AI services failed",
            last_error=last_error,
        ) from last_error

    async def generate_content(self, prompt: str) -> OrchestrationResult:
        return await self.request_with_fallback("generate_content", prompt)

    async def generate_structured_content(self, prompt: str) -> OrchestrationResult:
        return await self.request_with_fallback(STRUCTURED_OPERATION, prompt)

    async def test_connections(self) -> Dict[str, str]:
        """Probe every adapter; returns {name: "operational" | "error"}."""
        results: Dict[str, str] = {}
        for adapter in self.adapters:
            try:
                await adapter.test_connection()
                results[adapter.name] = "operational"
            except Exception as e:
                logger.warning(f"{adapter.name} connection check failed: {e}")
                results[adapter.name] = "error"
        return results

    async def aclose(self) -> None:
        for adapter in self.adapters:
            try:
                await adapter.aclose()
            except Exception as e:
                logger.warning(f"Failed to close {adapter.name} adapter: {e}")


def build_default_adapters(settings: Settings) -> List[ProviderAdapter]:
    """
    Construct the three production adapters from configuration.

    Raises ProviderConfigError if a required credential (Gemini, Perplexity)
    is missing.
    """
    return [
        GeminiAdapter(
            api_key=settings.gemini_api_key,
            model=settings.gemini_model,
            base_url=settings.gemini_base_url,
            timeout=settings.primary_timeout_seconds,
            max_retries=settings.provider_max_retries,
            retry_delay=settings.provider_retry_delay_seconds,
        ),
        PerplexityAdapter(
            api_key=settings.perplexity_api_key,
            model=settings.perplexity_model,
            base_url=settings.perplexity_base_url,
            timeout=settings.default_timeout_seconds,
            max_retries=settings.provider_max_retries,
            retry_delay=settings.provider_retry_delay_seconds,
        ),
        HuggingFaceAdapter(
            token=settings.hf_token,
            model=settings.hf_model,
            base_url=settings.hf_base_url,
            timeout=settings.default_timeout_seconds,
            health_check_timeout=settings.health_check_timeout_seconds,
        ),
    ]


def build_orchestrator(settings: Settings) -> ProviderOrchestrator:
    return ProviderOrchestrator(
        build_default_adapters(settings),
        primary_timeout=settings.primary_timeout_seconds,
        default_timeout=settings.default_timeout_seconds,
        degraded_mode=settings.degraded_mode,
        debug=settings.debug,
    )
