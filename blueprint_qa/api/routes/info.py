import os
from typing import Any, Dict

from fastapi import APIRouter, Response, status

from lib.logger import Logger
from blueprint_qa.dependencies.providers import AnalysisOrchestratorDep

info_router = APIRouter()

__all__ = ["info_router"]

logger = Logger.get_logger(os.path.basename(__file__))


@info_router.get("/liveness", tags=["Healthcheck"], status_code=status.HTTP_200_OK)
async def liveness_check() -> Dict[str, str]:
    """Simple liveness check - returns OK if service is running."""
    return {"status": "ok"}


@info_router.get("/readiness", tags=["Healthcheck"], status_code=status.HTTP_200_OK)
async def readiness_check(response: Response, orchestrator: AnalysisOrchestratorDep) -> Dict[str, Any]:
    """Checks that an analysis provider can be built; never calls the upstream AI service."""
    health_result = orchestrator.health_check()
    overall_health = health_result.get("overall_health", "unknown")

    if overall_health == "healthy":
        service_status = "ready"
    else:
        service_status = "not ready"
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        logger.warning("Readiness check failed", provider_health=health_result.get("analysis_provider"))

    return {
        "status": service_status,
        "overall_health": overall_health,
        "services": {"analysis_provider": health_result.get("analysis_provider", {})},
    }
