"""
Medicine Safety Checker — FastAPI Backend
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from app.api import health, medicine
from app.api.deps import ServiceContainer
from app.api.rate_limit import build_limiter, rate_limit_handler
from app.config import Settings, settings

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")
logger = logging.getLogger(__name__)


def _mask(val: str) -> str:
    if not val:
        return "(empty)"
    if len(val) <= 8:
        return "***"
    return val[:4] + "..." + val[-4:]


def log_configuration(cfg: Settings) -> None:
    """Log configuration (mask secrets)."""
    logger.info("=== Medicine Safety Checker Backend Starting ===")
    logger.info(f"  environment        : {cfg.environment}")
    logger.info(f"  degraded_mode      : {cfg.degraded_mode}")
    logger.info(f"  gemini_model       : {cfg.gemini_model}")
    logger.info(f"  gemini_api_key     : {_mask(cfg.gemini_api_key)}")
    logger.info(f"  perplexity_model   : {cfg.perplexity_model}")
    logger.info(f"  perplexity_api_key : {_mask(cfg.perplexity_api_key)}")
    logger.info(f"  hf_model           : {cfg.hf_model}")
    logger.info(f"  hf_token           : {_mask(cfg.hf_token)}")
    logger.info(f"  primary_timeout    : {cfg.primary_timeout_seconds}s")
    logger.info(f"  default_timeout    : {cfg.default_timeout_seconds}s")
    logger.info(f"  cors_origins       : {cfg.allowed_origins}")

    if not cfg.gemini_api_key:
        logger.warning("GEMINI_API_KEY is empty -- Gemini adapter cannot be created!")
    if not cfg.perplexity_api_key:
        logger.warning("PERPLEXITY_API_KEY is empty -- Perplexity adapter cannot be created!")
    if not cfg.hf_token:
        logger.warning("HF_TOKEN is empty -- Hugging Face API calls will fail!")


def create_app(container: Optional[ServiceContainer] = None) -> FastAPI:
    """
    Build the application.

    Args:
        container: Prebuilt services; when omitted they are built from
            settings at startup and closed at shutdown
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if container is not None:
            app.state.container = container
            yield
            return

        log_configuration(settings)
        try:
            app.state.container = ServiceContainer.build(settings)
        except Exception as e:
            logger.error(f"Failed to initialize services: {e}")
            raise
        try:
            yield
        finally:
            logger.info("Shutting down gracefully")
            await app.state.container.aclose()

    cfg = container.settings if container is not None else settings

    app = FastAPI(
        title="AI Medicine Safety Checker",
        description="Medication safety analysis with multi-provider AI failover",
        version=cfg.version,
        lifespan=lifespan,
    )
    if container is not None:
        app.state.container = container

    # Rate limiting (inside CORS so 429s still carry CORS headers)
    app.state.limiter = build_limiter(cfg)
    app.add_exception_handler(RateLimitExceeded, rate_limit_handler(cfg))
    app.add_middleware(SlowAPIMiddleware)

    # CORS for frontend
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        client = request.client.host if request.client else "-"
        logger.info(f"{request.method} {request.url.path} - {client}")
        return await call_next(request)

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"error": "Validation failed", "details": jsonable_encoder(exc.errors())},
        )

    # Routes
    app.include_router(health.router, prefix="/api/health", tags=["health"])
    app.include_router(medicine.router, prefix="/api/medicine", tags=["medicine"])

    @app.get("/")
    async def root():
        return {
            "message": "AI Medicine Safety Checker API",
            "version": cfg.version,
            "status": "running",
            "endpoints": {
                "health": "/api/health",
                "medicine": "/api/medicine",
            },
        }

    return app


app = create_app()
