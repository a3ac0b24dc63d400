from __future__ import annotations

import asyncio
from collections.abc import Iterator
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from flutterprep.backends.base import BackendUnavailableError
from flutterprep.backends.document import DocumentBackend
from flutterprep.backends.document_store import InMemoryDocumentStore
from flutterprep.core.config import Settings
from flutterprep.main import create_app
from flutterprep.services.container import Services

ADMIN_EMAIL = "admin@example.com"


def make_settings(**overrides: Any) -> Settings:
    """Test settings: no DATABASE_URL/REDIS_URL, so every store is in-memory."""
    values: dict[str, Any] = {
        "app_env": "test",
        "log_level": "warning",
        "log_json": False,
        "port": 8000,
        "database_url": None,
        "redis_url": None,
        "admin_emails": frozenset({ADMIN_EMAIL}),
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def app() -> FastAPI:
    return create_app(make_settings())


@pytest.fixture
def client(app: FastAPI) -> Iterator[TestClient]:
    # Context manager so the lifespan runs and app.state.services exists
    with TestClient(app) as c:
        yield c


@pytest.fixture
def services(client: TestClient, app: FastAPI) -> Services:
    return app.state.services


def mint_token(
    services: Services,
    user_id: str = "test-user",
    roles: list[str] | None = None,
) -> str:
    """Create a valid ES256 JWT signed by this app's key."""
    return services.tokens.create_access_token(sub=user_id, roles=roles)


@pytest.fixture
def token(services: Services) -> str:
    """Token with default role (user)."""
    return mint_token(services)


@pytest.fixture
def admin_token(services: Services) -> str:
    """Token with admin role."""
    return mint_token(services, user_id="test-admin", roles=["user", "admin"])


def auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


# ---------------------------------------------------------------------------
# Backend helpers
# ---------------------------------------------------------------------------


@pytest.fixture
def relational() -> DocumentBackend:
    """In-memory stand-in for the relational store (same contract)."""
    return DocumentBackend(InMemoryDocumentStore(), name="relational")


@pytest.fixture
def document() -> DocumentBackend:
    return DocumentBackend(InMemoryDocumentStore())


def seed(backend: Any, collection: str, *records: dict[str, Any]) -> list[str]:
    """Write records straight into a backend through its write batch."""

    async def _seed() -> list[str]:
        batch = backend.batch()
        ids = [batch.add(collection, record) for record in records]
        await batch.commit()
        return ids

    return asyncio.run(_seed())


def fail_with(backend_name: str = "relational"):
    """An async replacement for a backend method that always fails."""

    async def _fail(*args: Any, **kwargs: Any) -> Any:
        raise BackendUnavailableError(f"{backend_name} is down", backend=backend_name)

    return _fail


def topic_record(slug: str, **overrides: Any) -> dict[str, Any]:
    record = {
        "title": slug.replace("-", " ").title(),
        "slug": slug,
        "description": f"About {slug}",
        "content": "# Heading",
        "level": "junior",
        "estimated_time": 10,
    }
    record.update(overrides)
    return record
