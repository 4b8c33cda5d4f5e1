"""
REST API for medicine analysis, alternatives, interactions and name search.
"""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from app.api.deps import get_analysis_service, get_resolver, get_settings
from app.config import Settings
from app.models.schemas import (
    AlternativesResponse,
    AnalyzeRequest,
    AnalyzeResponse,
    InteractionRequest,
    InteractionsResponse,
    SearchResponse,
    SuggestionItem,
    SuggestionsResponse,
)
from app.services.errors import (
    AllProvidersFailed,
    InvalidCredentials,
    ProviderConfigError,
    QuotaExceeded,
    RateLimited,
)
from app.services.medicine_analysis import MedicineAnalysisService
from app.services.name_resolver import NameResolver

logger = logging.getLogger(__name__)
router = APIRouter()


def _internal_error(error: str, exc: Exception, settings: Settings) -> JSONResponse:
    return JSONResponse(
        status_code=500,
        content={
            "error": error,
            "message": str(exc) if settings.environment == "development" else "Internal server error",
        },
    )


def _analysis_error_response(exc: Exception, settings: Settings) -> JSONResponse:
    """Map a failed analysis onto the client-facing status code."""
    cause = exc.last_error if isinstance(exc, AllProvidersFailed) and exc.last_error else exc

    if isinstance(cause, (InvalidCredentials, ProviderConfigError)):
        return JSONResponse(
            status_code=500,
            content={"error": "AI service configuration error", "message": "Please check API configuration"},
        )
    if isinstance(cause, (RateLimited, QuotaExceeded)):
        return JSONResponse(
            status_code=429,
            content={"error": "Rate limit exceeded", "message": "Too many requests. Please try again later."},
        )
    return _internal_error("Analysis failed", exc, settings)


@router.post("/analyze", response_model=AnalyzeResponse, response_model_by_alias=True)
async def analyze_medicine(
    request: AnalyzeRequest,
    service: MedicineAnalysisService = Depends(get_analysis_service),
    settings: Settings = Depends(get_settings),
):
    """Full safety analysis of one medicine for an optional patient profile."""
    logger.info(f"Medicine analysis requested for: {request.medicine_name}")
    try:
        report = await service.analyze(request.medicine_name, request.patient_info)
    except Exception as e:
        logger.error(f"Medicine analysis failed: {e}")
        return _analysis_error_response(e, settings)

    logger.info(f"Analysis completed for: {request.medicine_name}")
    return AnalyzeResponse(
        medicine=request.medicine_name,
        patient_info=request.patient_info,
        analysis=report,
    )


@router.get("/alternatives", response_model=AlternativesResponse, response_model_by_alias=True)
async def get_alternatives(
    medicine: Optional[str] = Query(None),
    condition: Optional[str] = Query(None),
    service: MedicineAnalysisService = Depends(get_analysis_service),
    settings: Settings = Depends(get_settings),
):
    if not medicine:
        return JSONResponse(status_code=400, content={"error": "Medicine parameter is required"})

    logger.info(f"Alternative medicines requested for: {medicine}")
    try:
        alternatives = await service.get_alternatives(medicine, condition)
    except Exception as e:
        logger.error(f"Alternative medicines lookup failed: {e}")
        return _internal_error("Failed to get alternatives", e, settings)

    return AlternativesResponse(
        original_medicine=medicine,
        condition=condition or "general",
        alternatives=alternatives,
    )


@router.post("/interactions", response_model=InteractionsResponse, response_model_by_alias=True)
async def check_interactions(
    request: InteractionRequest,
    service: MedicineAnalysisService = Depends(get_analysis_service),
    settings: Settings = Depends(get_settings),
):
    logger.info(f"Drug interaction check requested for: {', '.join(request.medicines)}")
    try:
        interactions = await service.check_interactions(request.medicines)
    except Exception as e:
        logger.error(f"Drug interaction check failed: {e}")
        return _internal_error("Interaction check failed", e, settings)

    return InteractionsResponse(medicines=request.medicines, interactions=interactions)


@router.get("/search", response_model=SearchResponse, response_model_by_alias=True)
async def search_medicines(
    q: Optional[str] = Query(None),
    resolver: NameResolver = Depends(get_resolver),
    settings: Settings = Depends(get_settings),
):
    """Exact brand-name lookup plus suggestions, falling back to AI identification."""
    if not q or not q.strip():
        return JSONResponse(
            status_code=400,
            content={"error": 'Query parameter "q" is required', "example": "/api/medicine/search?q=dolo"},
        )

    query = q.strip()
    logger.info(f"Medicine search requested for: {query}")
    try:
        results = await resolver.search(query)
    except Exception as e:
        logger.error(f"Medicine search failed: {e}")
        return _internal_error("Search failed", e, settings)

    return SearchResponse(query=query, results=results)


@router.get("/suggestions", response_model=SuggestionsResponse, response_model_by_alias=True)
async def get_suggestions(
    q: Optional[str] = Query(None),
    limit: int = Query(5, ge=1, le=50),
    resolver: NameResolver = Depends(get_resolver),
):
    """Autocomplete from the local brand-name dictionary only."""
    if not q or len(q.strip()) < 2:
        return SuggestionsResponse(query=q or "")

    query = q.strip()
    return SuggestionsResponse(
        query=query,
        suggestions=[
            SuggestionItem(
                display=f"{s.common_name} ({s.generic_name})",
                common_name=s.common_name,
                generic_name=s.generic_name,
                value=s.generic_name,
            )
            for s in resolver.suggest(query, limit=limit)
        ],
    )
