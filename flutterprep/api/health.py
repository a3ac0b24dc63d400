"""Health and readiness endpoints.

  /health (liveness): always 200 while the process can answer.  The body
      reports each backend and an overall "ok" or "degraded".

  /ready (readiness): 200 when reads can be served, which means the primary
      answers a ping, or fallback is enabled and the secondary does.  503
      otherwise, so the load balancer stops routing here without a restart.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Response, status

from flutterprep.api.dependencies import get_services
from flutterprep.backends.base import Backend, BackendError
from flutterprep.services.container import Services

router = APIRouter(tags=["health"])


async def _check(backend: Backend) -> str:
    try:
        await backend.ping()
    except BackendError:
        return "degraded"
    return "ok"


@router.get("/health")
async def health(services: Annotated[Services, Depends(get_services)]) -> dict:
    checks = {
        services.relational.name: await _check(services.relational),
        services.document.name: await _check(services.document),
    }
    overall = "ok" if all(v == "ok" for v in checks.values()) else "degraded"
    return {
        "status": overall,
        "checks": checks,
        "database": services.db.describe(),
    }


@router.get("/ready")
async def ready(services: Annotated[Services, Depends(get_services)]) -> Response:
    db = services.db
    if await _check(db.primary) == "ok":
        return Response(status_code=status.HTTP_200_OK)
    if db.config.fallback_enabled and await _check(db.secondary) == "ok":
        return Response(status_code=status.HTTP_200_OK)
    return Response(status_code=status.HTTP_503_SERVICE_UNAVAILABLE)
