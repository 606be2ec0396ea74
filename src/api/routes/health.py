"""
Health check endpoints.

Provides endpoints for monitoring application health and its dependencies
(Supabase interaction store, ORION-CORE memory service).
"""

from typing import Any, Dict

from fastapi import APIRouter

from api.deps import get_orion_client
from config.database import check_table, get_supabase_client_optional
from config.settings import get_settings


router = APIRouter(tags=["Health"])

SERVICE_NAME = "personalization-api"


@router.get("/health")
async def health_check() -> Dict[str, Any]:
    """Basic health check."""
    return {
        "status": "healthy",
        "service": SERVICE_NAME,
    }


@router.get("/health/detailed")
async def detailed_health_check() -> Dict[str, Any]:
    """
    Detailed health check with dependency status.

    Checks:
    - Supabase interactions table
    - ORION-CORE /health (when enabled)
    """
    settings = get_settings()

    supabase = check_table(get_supabase_client_optional(), settings.interactions_table)

    orion_client = get_orion_client()
    if orion_client is None:
        orion = {"status": "disabled"}
    else:
        orion = await orion_client.health()

    healthy = supabase["status"] in ("connected", "empty") and orion["status"] in ("healthy", "disabled")

    return {
        "status": "healthy" if healthy else "degraded",
        "service": SERVICE_NAME,
        "environment": settings.environment,
        "checks": {
            "config": "ok",
            "supabase": supabase,
            "orion": orion,
        },
    }


@router.get("/ready")
async def readiness_check() -> Dict[str, str]:
    """
    Kubernetes-style readiness probe.

    Ready once the interaction store client can be created; ORION-CORE
    outages only degrade responses.
    """
    if get_supabase_client_optional() is None:
        return {"status": "not_ready", "reason": "database_not_configured"}
    return {"status": "ready"}


@router.get("/live")
async def liveness_check() -> Dict[str, str]:
    """Kubernetes-style liveness probe."""
    return {"status": "alive"}
