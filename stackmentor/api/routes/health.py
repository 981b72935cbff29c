"""Operational endpoints for health, liveness and readiness probes."""

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from stackmentor import __version__
from stackmentor.services.database import get_db_manager

router = APIRouter(prefix="/actuator", tags=["health"])


async def _database_status() -> str:
    db_manager = get_db_manager()
    if db_manager is None:
        return "not_initialized"
    return "healthy" if await db_manager.health_check() else "unhealthy"


@router.get(
    "/health",
    summary="General health check",
    description="Service status with the database check",
)
async def health() -> dict:
    """Overall status; degraded when the database is not healthy."""
    database = await _database_status()
    return {
        "status": "UP" if database == "healthy" else "DEGRADED",
        "checks": {"database": database},
    }


@router.get(
    "/health/liveness",
    summary="Liveness probe",
    description="Check if the service is alive",
)
async def liveness() -> dict:
    return {"status": "UP"}


@router.get(
    "/health/readiness",
    summary="Readiness probe",
    description="Check if the service is ready to accept requests",
)
async def readiness() -> JSONResponse:
    """Readiness probe endpoint.

    Returns 200 when the database answers, 503 when it is unavailable
    or was never initialized.
    """
    database = await _database_status()
    if database == "healthy":
        return JSONResponse(
            status_code=status.HTTP_200_OK,
            content={"status": "UP", "checks": {"database": database}},
        )
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": "DOWN", "checks": {"database": database}},
    )


@router.get("/info", summary="Service information")
async def info() -> dict:
    return {"service": "stackmentor", "version": __version__}
