"""Shared fixtures: scripted provider adapters and fake SDK clients."""
from __future__ import annotations

import asyncio
from types import SimpleNamespace
from typing import Any, List

import pytest

from app.api.deps import ServiceContainer
from app.config import Settings
from app.services.medicine_analysis import MedicineAnalysisService
from app.services.name_resolver import NameResolver
from app.services.orchestrator import ProviderOrchestrator
from app.services.providers.base import ProviderAdapter


class ScriptedAdapter(ProviderAdapter):
    """
    Adapter whose behaviour is a list of steps, one per call.

    A step is either a value to return, an exception to raise, or a
    ("sleep", seconds) tuple that hangs past any test timeout.
    """

    def __init__(self, name: str, steps: List[Any], max_retries: int = 0, healthy: bool = True):
        super().__init__(timeout=1.0, max_retries=max_retries, retry_delay=0)
        self.name = name
        self.steps = list(steps)
        self.healthy = healthy
        self.prompts: List[str] = []
        self.closed = False

    async def generate_content(self, prompt: str) -> str:
        self.prompts.append(prompt)
        step = self.steps.pop(0) if len(self.steps) > 1 else self.steps[0]
        if isinstance(step, tuple) and step[0] == "sleep":
            await asyncio.sleep(step[1])
            return "too late"
        if isinstance(step, BaseException):
            raise step
        return step

    async def test_connection(self) -> bool:
        if not self.healthy:
            raise RuntimeError(f"{self.name} unreachable")
        return True

    async def aclose(self) -> None:
        self.closed = True

    @property
    def calls(self) -> int:
        return len(self.prompts)


class FakeCompletions:
    """Stands in for AsyncOpenAI().chat.completions."""

    def __init__(self, steps: List[Any]):
        self.steps = list(steps)
        self.requests: List[dict] = []

    async def create(self, **kwargs):
        self.requests.append(kwargs)
        step = self.steps.pop(0) if len(self.steps) > 1 else self.steps[0]
        if isinstance(step, BaseException):
            raise step
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=step))])


def fake_openai_client(*steps: Any) -> SimpleNamespace:
    completions = FakeCompletions(list(steps))
    return SimpleNamespace(chat=SimpleNamespace(completions=completions))


SAMPLE_ANALYSIS = """## Medication Overview
Paracetamol is an analgesic and antipyretic of the anilide class.

## General Safety
Generally safe at recommended doses. Use caution in chronic alcohol users.

## Side Effects
Common side effects include nausea. Serious reactions include liver injury with overdose; rare skin reactions occur.

## Pregnancy Safety
Considered compatible with pregnancy at standard doses.

## Summary
Paracetamol is well tolerated when used as directed.

"""


@pytest.fixture
def make_orchestrator():
    def _make(*adapters: ProviderAdapter, degraded_mode: bool = False, timeout: float = 0.5) -> ProviderOrchestrator:
        return ProviderOrchestrator(
            list(adapters),
            primary_timeout=timeout,
            default_timeout=timeout,
            degraded_mode=degraded_mode,
        )

    return _make


@pytest.fixture
def resolver() -> NameResolver:
    return NameResolver.load()


@pytest.fixture
def make_container(make_orchestrator):
    def _make(*adapters: ProviderAdapter, degraded_mode: bool = False, **overrides: Any) -> ServiceContainer:
        orchestrator = make_orchestrator(*adapters, degraded_mode=degraded_mode)
        resolver = NameResolver.load(orchestrator=orchestrator)
        return ServiceContainer(
            settings=Settings(degraded_mode=degraded_mode, **overrides),
            orchestrator=orchestrator,
            resolver=resolver,
            analysis=MedicineAnalysisService(orchestrator, resolver),
        )

    return _make
