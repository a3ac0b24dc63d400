from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from flutterprep.api.admin import router as admin_router
from flutterprep.api.auth import router as auth_router
from flutterprep.api.content import router as content_router
from flutterprep.api.health import router as health_router
from flutterprep.api.metrics_endpoint import router as metrics_router
from flutterprep.api.progress import router as progress_router
from flutterprep.backends.base import (
    BackendError,
    InvalidCredentialsError,
    RecordNotFoundError,
    UserAlreadyExistsError,
    UserValidationError,
)
from flutterprep.core.config import Settings, load_settings
from flutterprep.core.logging import setup_logging
from flutterprep.db.engine import lifespan_db
from flutterprep.db.redis import lifespan_redis
from flutterprep.middleware.metrics import MetricsMiddleware
from flutterprep.middleware.request_context import RequestContextMiddleware
from flutterprep.services.container import build_services

logger = logging.getLogger(__name__)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": {"message": message}})


async def _backend_error(_request: Request, exc: Exception) -> JSONResponse:
    # Anything that escaped the fallback path: both stores (or the only one) failed
    backend = getattr(exc, "backend", None)
    logger.error("Backend failure escaped to route: %s", exc, extra={"backend": backend})
    return _error(
        status.HTTP_503_SERVICE_UNAVAILABLE,
        "The content database is temporarily unavailable. Please try again shortly.",
    )


async def _not_found(_request: Request, exc: Exception) -> JSONResponse:
    return _error(status.HTTP_404_NOT_FOUND, str(exc))


async def _conflict(_request: Request, _exc: Exception) -> JSONResponse:
    return _error(status.HTTP_409_CONFLICT, "A user with this email already exists")


async def _unauthorized(_request: Request, _exc: Exception) -> JSONResponse:
    return _error(status.HTTP_401_UNAUTHORIZED, "Invalid email or password")


async def _invalid(_request: Request, exc: Exception) -> JSONResponse:
    return _error(status.HTTP_422_UNPROCESSABLE_ENTITY, str(exc))


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or load_settings()
    setup_logging(settings.log_level, json_format=settings.log_json)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        # Nested so teardown runs in reverse order even if one fails
        async with lifespan_db(settings) as session_factory:
            async with lifespan_redis(settings) as redis_client:
                app.state.services = build_services(
                    settings, session_factory=session_factory, redis_client=redis_client
                )
                yield

    app = FastAPI(
        title="flutterprep-service",
        lifespan=lifespan,
        docs_url="/docs" if settings.is_dev else None,
        redoc_url="/redoc" if settings.is_dev else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    # Last-added runs first: RequestContext (outermost) -> Metrics -> CORS
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestContextMiddleware)

    # Starlette picks the handler for the most specific class in the MRO
    app.add_exception_handler(BackendError, _backend_error)
    app.add_exception_handler(RecordNotFoundError, _not_found)
    app.add_exception_handler(UserAlreadyExistsError, _conflict)
    app.add_exception_handler(InvalidCredentialsError, _unauthorized)
    app.add_exception_handler(UserValidationError, _invalid)

    app.include_router(metrics_router)
    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(content_router)
    app.include_router(progress_router)
    app.include_router(admin_router)

    logger.info(
        "flutterprep-service configured  env=%s log_level=%s port=%d docs=%s",
        settings.app_env,
        settings.log_level,
        settings.port,
        "on" if settings.is_dev else "off",
    )
    return app


def main() -> None:
    """Console entry point: serve the app on PORT."""
    settings = load_settings()
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    main()
