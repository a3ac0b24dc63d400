"""Admin endpoints: database configuration, self test, migration, cache.

All routes require the ``admin`` role.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Annotated, Any, Literal

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from flutterprep.api.dependencies import get_services, require_role
from flutterprep.models.principal import Principal
from flutterprep.services.container import Services
from flutterprep.services.dual_database import DualDatabaseService
from flutterprep.services.migration import summarize

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])

TestKind = Literal["all", "topics", "definitions", "projects", "quizzes"]

# (name, fetch, sample fields) for each read the self test exercises
_SELF_TESTS: tuple[tuple[str, Callable[[DualDatabaseService], Awaitable[list]], tuple[str, ...]], ...] = (
    ("topics", lambda db: db.get_topics(), ("id", "title", "slug")),
    ("definitions", lambda db: db.get_definitions(), ("id", "term")),
    ("projects", lambda db: db.get_projects(), ("id", "name", "slug")),
    ("quizzes", lambda db: db.get_quizzes(), ("id", "title", "slug")),
)


class MigrationIn(BaseModel):
    clear_target: bool = False


@router.get("/database")
def database_config(
    principal: Annotated[Principal, Depends(require_role("admin"))],
    services: Annotated[Services, Depends(get_services)],
) -> dict:
    return services.db.describe()


@router.get("/database/test")
async def database_self_test(
    principal: Annotated[Principal, Depends(require_role("admin"))],
    services: Annotated[Services, Depends(get_services)],
    kind: Annotated[TestKind, Query(alias="type")] = "all",
) -> dict:
    """Run each content read through the orchestrator and report per entity."""
    tests: dict[str, Any] = {}
    for name, fetch, fields in _SELF_TESTS:
        if kind not in ("all", name):
            continue
        start = time.perf_counter()
        try:
            items = await fetch(services.db)
        except Exception as exc:
            logger.warning("Self test failed for %s: %s", name, exc)
            tests[name] = {"success": False, "error": str(exc)}
            continue
        tests[name] = {
            "success": True,
            "count": len(items),
            "duration_ms": round((time.perf_counter() - start) * 1000, 1),
            "sample": [{f: getattr(item, f) for f in fields} for item in items[:3]],
        }
    return {
        "config": services.db.describe(),
        "timestamp": datetime.now(UTC).isoformat(),
        "tests": tests,
    }


@router.post("/migration")
async def run_migration(
    principal: Annotated[Principal, Depends(require_role("admin"))],
    services: Annotated[Services, Depends(get_services)],
    payload: MigrationIn | None = None,
) -> dict:
    clear_target = payload.clear_target if payload is not None else False
    logger.info(
        "Migration requested by user=%s clear_target=%s", principal.user_id, clear_target
    )
    result = await services.migration_runner().run(clear_target=clear_target)
    # Content on the document store changed; cached topics may be stale
    await services.content.invalidate_topics()
    return summarize(result)


@router.get("/migration/validate")
async def validate_migration(
    principal: Annotated[Principal, Depends(require_role("admin"))],
    services: Annotated[Services, Depends(get_services)],
) -> dict:
    """Per-entity record counts on the source and target of a migration."""
    result = await services.migration_runner().validate()
    return result.to_dict()


@router.post("/cache/invalidate")
async def invalidate_cache(
    principal: Annotated[Principal, Depends(require_role("admin"))],
    services: Annotated[Services, Depends(get_services)],
) -> dict:
    await services.content.invalidate_topics()
    logger.info("Topic cache invalidated by user=%s", principal.user_id)
    return {"message": "Topic cache invalidated"}
