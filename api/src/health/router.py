"""Health check endpoints."""

from fastapi import APIRouter, Request, status
from fastapi.responses import ORJSONResponse

from src.config import get_settings


router = APIRouter(prefix="/health", tags=["health"])


@router.get("/live")
async def liveness() -> dict[str, str]:
    """Liveness probe - checks if the application is running."""
    return {"status": "alive"}


@router.get("/ready")
async def readiness(request: Request) -> ORJSONResponse:
    """Readiness probe - services are wired to a database session."""
    settings = get_settings()
    state = request.app.state
    checks = {
        "cassandra": getattr(state, "cassandra_session", None) is not None,
        "redis": getattr(state, "redis", None) is not None,
        "services": getattr(state, "progress_service", None) is not None
        and getattr(state, "certificate_service", None) is not None,
    }
    # Redis only carries notification fan-out
    ready = checks["services"]
    return ORJSONResponse(
        status_code=status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "ready" if ready else "not_ready",
            "environment": settings.environment,
            "debug": settings.debug,
            "checks": checks,
        },
    )


@router.get("")
async def health() -> dict[str, str]:
    """General health check endpoint."""
    settings = get_settings()
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
    }
