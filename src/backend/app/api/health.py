"""Health check endpoints."""
import logging
import os
import platform
import sys
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.api.deps import ServiceContainer, get_container

logger = logging.getLogger(__name__)
router = APIRouter()

AI_SERVICES = ("gemini", "perplexity", "huggingface")


def _rss_megabytes():
    """Peak resident set size of this process, where the platform reports it."""
    try:
        import resource
    except ImportError:
        return None
    rss = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    # macOS reports bytes, Linux kilobytes
    divisor = 1024 * 1024 if sys.platform == "darwin" else 1024
    return f"{round(rss / divisor)} MB"


@router.get("")
async def health_check(container: ServiceContainer = Depends(get_container)):
    """Probe every AI provider. 503 when none of them is reachable."""
    settings = container.settings
    health = {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": container.uptime,
        "environment": settings.environment,
        "version": settings.version,
        "services": {"api": "operational", **{name: "checking..." for name in AI_SERVICES}},
    }

    try:
        statuses = await container.orchestrator.test_connections()
        health["services"].update(statuses)
        warnings = [
            f"{name.capitalize()} API connection failed"
            for name, status in statuses.items()
            if status != "operational"
        ]
        if warnings:
            health["warnings"] = warnings
    except Exception as e:
        logger.warning(f"AI services health check failed: {e}")
        health["services"].update({name: "error" for name in AI_SERVICES})
        health["warnings"] = ["AI services connection check failed"]

    all_down = all(status == "error" for name, status in health["services"].items() if name != "api")
    if all_down:
        health["status"] = "unhealthy"
    return JSONResponse(status_code=503 if all_down else 200, content=health)


@router.get("/detailed")
async def detailed_health(container: ServiceContainer = Depends(get_container)):
    """Process and host information; never touches the providers."""
    settings = container.settings
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": container.uptime,
        "environment": settings.environment,
        "version": settings.version,
        "system": {
            "platform": sys.platform,
            "pythonVersion": platform.python_version(),
            "memory": {"rss": _rss_megabytes()},
            "pid": os.getpid(),
        },
        "services": {
            "api": "operational",
            "cors": "configured" if settings.cors_origin else "default",
            "rateLimit": "active" if settings.rate_limit_enabled else "disabled",
            "providers": container.orchestrator.service_order,
        },
    }
