from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]

_TRUTHY = ("1", "true", "yes", "on")
_FALSY = ("0", "false", "no", "off")

# Upper bound mirrors the per-batch write limit of document stores.
MAX_BATCH_SIZE = 500


def _getenv(name: str, default: str) -> str:
    return os.environ.get(name, default).strip()


def _getbool(name: str, default: bool) -> bool:
    raw = _getenv(name, "true" if default else "false").lower()
    if raw in _TRUTHY:
        return True
    if raw in _FALSY:
        return False
    raise ValueError(f"{name} must be a boolean like true|false (got {raw!r})")


def _getint(name: str, default: int) -> int:
    raw = _getenv(name, str(default))
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer (got {raw!r})") from None


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    database_url: str | None
    redis_url: str | None
    use_document_primary: bool = False
    enable_dual_write: bool = True
    enable_fallback: bool = True
    cache_ttl_seconds: int = 3600
    migration_batch_size: int = MAX_BATCH_SIZE
    admin_emails: frozenset[str] = frozenset()
    jwt_private_key_pem: str | None = None

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"

    @property
    def is_test(self) -> bool:
        return self.app_env == "test"

    @property
    def is_prod(self) -> bool:
        return self.app_env == "prod"


def load_settings() -> Settings:
    app_env_raw = _getenv("APP_ENV", "dev").lower()
    log_level_raw = _getenv("LOG_LEVEL", "info").lower()

    if app_env_raw not in ("dev", "test", "prod"):
        raise ValueError(f"APP_ENV must be dev|test|prod (got {app_env_raw!r})")

    if log_level_raw not in ("debug", "info", "warning", "error"):
        raise ValueError(
            f"LOG_LEVEL must be debug|info|warning|error (got {log_level_raw!r})"
        )

    port = _getint("PORT", 8000)

    cache_ttl = _getint("CACHE_TTL_SECONDS", 3600)
    if cache_ttl <= 0:
        raise ValueError(f"CACHE_TTL_SECONDS must be positive (got {cache_ttl})")

    batch_size = _getint("MIGRATION_BATCH_SIZE", MAX_BATCH_SIZE)
    if not 1 <= batch_size <= MAX_BATCH_SIZE:
        raise ValueError(
            f"MIGRATION_BATCH_SIZE must be between 1 and {MAX_BATCH_SIZE} "
            f"(got {batch_size})"
        )

    admin_emails = frozenset(
        e.strip().lower() for e in _getenv("ADMIN_EMAILS", "").split(",") if e.strip()
    )

    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=_getbool("LOG_JSON", False),
        port=port,
        database_url=_getenv("DATABASE_URL", "") or None,
        redis_url=_getenv("REDIS_URL", "") or None,
        use_document_primary=_getbool("USE_DOCUMENT_PRIMARY", False),
        enable_dual_write=_getbool("ENABLE_DUAL_WRITE", True),
        enable_fallback=_getbool("ENABLE_FALLBACK", True),
        cache_ttl_seconds=cache_ttl,
        migration_batch_size=batch_size,
        admin_emails=admin_emails,
        jwt_private_key_pem=_getenv("JWT_PRIVATE_KEY_PEM", "") or None,
    )
