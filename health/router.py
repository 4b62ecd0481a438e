"""
Health check endpoints for load balancers and orchestrators.
"""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

router = APIRouter(tags=["health"])

SERVICE_NAME = "Fleet Management API"


def _service_info(request: Request) -> dict:
    return {"service": SERVICE_NAME, "version": request.app.version}


@router.get("/health")
async def health_basic(request: Request):
    """Returns 200 while the service is accepting requests."""
    result = await request.app.state.health_check_service.check_health()
    return {"status": result["status"], **_service_info(request), "timestamp": result["timestamp"]}


@router.get("/health/ready")
async def health_ready(request: Request):
    """
    Readiness check with dependency verification.

    Returns:
        - 200 OK: healthy or degraded (store up, change feed possibly down)
        - 503 Service Unavailable: store unreachable, with failure reasons
    """
    health_status = await request.app.state.health_check_service.check_readiness()
    response_data = {
        "status": health_status.status,
        **_service_info(request),
        "timestamp": health_status.timestamp.isoformat() + "Z",
        "dependencies": [dep.to_dict() for dep in health_status.dependencies],
        "subscribers": request.app.state.subscriber_registry.connection_count,
    }

    if health_status.status == "unhealthy":
        response_data["failure_reasons"] = [
            {"dependency": dep.name, "error": dep.error}
            for dep in health_status.dependencies
            if not dep.healthy
        ]
        return JSONResponse(status_code=503, content=response_data)

    return response_data


@router.get("/health/live")
async def health_live(request: Request):
    """Returns 200 whenever the process is running, regardless of dependencies."""
    result = await request.app.state.health_check_service.check_liveness()
    return {"status": result["status"], **_service_info(request), "timestamp": result["timestamp"]}
