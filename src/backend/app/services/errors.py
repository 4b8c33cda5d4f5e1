"""
Error taxonomy shared by the provider adapters, the orchestrator and the API layer.

Adapters raise the ProviderError subclasses; the orchestrator treats all of
them as non-fatal and moves on to the next provider. Only AllProvidersFailed
(and configuration problems) ever reach a route handler.
"""
from __future__ import annotations

from typing import Optional


class ProviderConfigError(RuntimeError):
    """A required provider credential is missing or unusable."""


class ProviderError(RuntimeError):
    """Vendor-side failure for a single provider call."""

    def __init__(self, message: str, provider: str = "unknown"):
        super().__init__(message)
        self.provider = provider


class InvalidCredentials(ProviderError):
    pass


class QuotaExceeded(ProviderError):
    pass


class RateLimited(ProviderError):
    pass


class ProviderTimeout(ProviderError):
    pass


class ProviderOverloaded(ProviderError):
    pass


class MalformedResponse(ProviderError):
    pass


class AllProvidersFailed(RuntimeError):
    """Every adapter in the failover chain failed for one request."""

    def __init__(self, message: str, last_error: Optional[BaseException] = None):
        super().__init__(message)
        self.last_error = last_error


class MedicineIdentificationError(RuntimeError):
    """AI-assisted medicine identification could not be completed."""
