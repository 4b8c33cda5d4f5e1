"""
Service container and FastAPI dependencies.

Services are built once at startup and handed to route handlers through
Depends(), so tests can swap in a container wired to fake providers.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field

from fastapi import Request

from app.config import Settings
from app.services.medicine_analysis import MedicineAnalysisService
from app.services.name_resolver import NameResolver
from app.services.orchestrator import ProviderOrchestrator, build_orchestrator


@dataclass
class ServiceContainer:
    settings: Settings
    orchestrator: ProviderOrchestrator
    resolver: NameResolver
    analysis: MedicineAnalysisService
    started_at: float = field(default_factory=time.monotonic)

    @classmethod
    def build(cls, settings: Settings) -> "ServiceContainer":
        orchestrator = build_orchestrator(settings)
        resolver = NameResolver.load(orchestrator=orchestrator)
        return cls(
            settings=settings,
            orchestrator=orchestrator,
            resolver=resolver,
            analysis=MedicineAnalysisService(orchestrator, resolver),
        )

    @property
    def uptime(self) -> float:
        return time.monotonic() - self.started_at

    async def aclose(self) -> None:
        await self.orchestrator.aclose()


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def get_analysis_service(request: Request) -> MedicineAnalysisService:
    return get_container(request).analysis


def get_resolver(request: Request) -> NameResolver:
    return get_container(request).resolver


def get_settings(request: Request) -> Settings:
    return get_container(request).settings
