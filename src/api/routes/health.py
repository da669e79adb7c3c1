"""
Health check endpoints.

- /health: liveness, plus a quick call to the object store
- /health/ready: readiness (configuration, object store and converter)

The converter is only part of readiness. Non-image uploads keep working
while it is down, so it should not take the service out of rotation for
liveness probes.
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..dependencies import ImageConverterDep, ObjectStoreDep, SettingsDep

logger = logging.getLogger(__name__)

router = APIRouter()


class HealthResponse(BaseModel):
    status: str
    version: str
    details: dict[str, Any] = {}


class ReadinessCheck(BaseModel):
    """Individual readiness check result."""
    name: str
    status: str  # "ok" or "error"
    error: Optional[str] = None


class ReadinessResponse(BaseModel):
    status: str  # "ready" or "not_ready"
    version: str
    checks: list[ReadinessCheck]


@router.get(
    "",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Basic health check",
    description="Returns 200 if the service is running and the object store answers.",
    responses={503: {"description": "Object store unreachable", "model": HealthResponse}},
)
async def health_check(settings: SettingsDep, store: ObjectStoreDep):
    details: dict[str, Any] = {
        "mock_mode": {
            "storage": settings.s3_mock_mode,
            "converter": settings.converter_mock_mode,
        }
    }

    try:
        buckets = await store.list_buckets()
        details["storage"] = {"status": "connected", "buckets": len(buckets)}
    except Exception as e:
        logger.error("Object store health check failed", extra={"error": str(e)})
        details["storage"] = {"status": "error", "error": str(e)}
        body = HealthResponse(status="error", version=settings.api_version, details=details)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=body.model_dump(),
        )

    return HealthResponse(status="ok", version=settings.api_version, details=details)


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    status_code=status.HTTP_200_OK,
    summary="Readiness check",
    description="Returns 200 if the service can handle traffic. Checks external dependencies.",
    responses={
        503: {
            "description": "Service not ready",
            "model": ReadinessResponse,
        }
    },
)
async def readiness_check(
    settings: SettingsDep,
    store: ObjectStoreDep,
    converter: ImageConverterDep,
):
    """
    Readiness check - can we serve traffic?

    Returns 503 if any check fails, which tells load balancers not
    to route traffic here.
    """
    checks: list[ReadinessCheck] = []

    missing_fields = settings.validate_required_fields()
    if missing_fields:
        checks.append(ReadinessCheck(
            name="configuration",
            status="error",
            error=f"Missing required fields: {', '.join(missing_fields)}"
        ))
    else:
        checks.append(ReadinessCheck(name="configuration", status="ok"))

    try:
        await store.list_buckets()
        checks.append(ReadinessCheck(
            name="storage",
            status="ok",
            error="mock mode" if settings.s3_mock_mode else None,
        ))
    except Exception as e:
        logger.error("Object store readiness check failed", extra={"error": str(e)})
        checks.append(ReadinessCheck(name="storage", status="error", error=str(e)))

    health = await converter.health_check()
    checks.append(ReadinessCheck(
        name="converter",
        status="ok" if health.ok else "error",
        error=None if health.ok else str(health.detail),
    ))

    all_ok = all(c.status == "ok" for c in checks)
    response = ReadinessResponse(
        status="ready" if all_ok else "not_ready",
        version=settings.api_version,
        checks=checks,
    )

    if not all_ok:
        logger.warning(
            "Readiness check failed",
            extra={
                "checks": [
                    {"name": c.name, "status": c.status, "error": c.error}
                    for c in checks
                ]
            }
        )
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=response.model_dump(),
        )

    return response
