from __future__ import annotations

import os
import threading
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, ValidationError


_ENV_LOCK = threading.Lock()
_SETTINGS: "Settings | None" = None


def _read_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    value = value.strip().lower()
    if value in {"1", "true", "yes", "y", "on"}:
        return True
    if value in {"0", "false", "no", "n", "off"}:
        return False
    return default


class Settings(BaseModel):
    """Application configuration loaded from environment variables.

    Environment precedence is:

    1. Canonical env var names (e.g. POSTGRES_DSN, APP_ENV).
    2. Legacy aliases (e.g. DATABASE_URL, ENV) when canonical is unset.
    3. Built-in defaults where defined.
    """

    # Core
    APP_ENV: str = Field(default="local")
    SERVICE_NAME: str = Field(default="api")
    LOG_LEVEL: str = Field(default="INFO")

    # Database
    POSTGRES_DSN: str
    DB_POOL_SIZE: int = Field(default=10)
    DB_MAX_OVERFLOW: int = Field(default=20)
    DB_POOL_TIMEOUT: float = Field(default=30.0)
    DB_CONNECT_ON_STARTUP: bool = Field(default=False)

    # Redis
    REDIS_URL: str = Field(default="redis://localhost:6379/0")
    SPECTR_REDIS_PREFIX: str = Field(default="spectr")
    REDIS_POOL_SIZE: int = Field(default=10)
    REDIS_MAX_CONNECTIONS: Optional[int] = Field(default=None)

    # Auth (bearer tokens issued by the identity service)
    JWT_SECRET: Optional[str] = Field(default=None)
    JWT_ISSUER: Optional[str] = Field(default=None)
    JWT_AUDIENCE: Optional[str] = Field(default=None)

    # Usage metering
    USAGE_CACHE_TTL_SECONDS: int = Field(default=30, ge=0)

    # Dataset registry
    DATASET_STRICT_HEADERS: bool = Field(default=False)

    # Admin console
    ADMIN_USERS_PAGE_SIZE: int = Field(default=50, ge=1)

    class Config:
        frozen = True

    @property
    def env(self) -> str:
        """Canonical environment label used for metrics and namespacing."""
        return self.APP_ENV

    @property
    def service(self) -> str:
        """Canonical service name label used for metrics."""
        return self.SERVICE_NAME

    @property
    def is_sqlite(self) -> bool:
        return self.POSTGRES_DSN.startswith("sqlite")

    @classmethod
    def from_env(cls) -> "Settings":
        """Build Settings from environment with support for legacy aliases.

        Canonical names are preferred; legacy aliases are only consulted if the
        canonical variable is unset.
        """

        env = os.environ

        def pick(
            primary: str,
            *aliases: str,
            default: Optional[str] = None,
        ) -> Optional[str]:
            if primary in env and env[primary]:
                return env[primary]
            for name in aliases:
                if name in env and env[name]:
                    return env[name]
            return default

        data: Dict[str, Any] = {}

        # Core
        data["APP_ENV"] = (pick("APP_ENV", "ENV", default="local") or "local").strip()
        data["SERVICE_NAME"] = (
            pick("SERVICE_NAME", default="api") or "api"
        ).strip()
        data["LOG_LEVEL"] = (
            pick("LOG_LEVEL", default="INFO") or "INFO"
        ).strip().upper()

        # Database
        dsn = pick("POSTGRES_DSN", "DATABASE_URL")
        if not dsn:
            raise RuntimeError(
                "POSTGRES_DSN (or legacy DATABASE_URL) must be set in the environment."
            )
        data["POSTGRES_DSN"] = dsn
        data["DB_POOL_SIZE"] = int(pick("DB_POOL_SIZE", default="10") or "10")
        data["DB_MAX_OVERFLOW"] = int(pick("DB_MAX_OVERFLOW", default="20") or "20")
        data["DB_POOL_TIMEOUT"] = float(
            pick("DB_POOL_TIMEOUT", default="30.0") or "30.0"
        )
        data["DB_CONNECT_ON_STARTUP"] = _read_bool(
            pick("DB_CONNECT_ON_STARTUP", default=None),
            default=False,
        )

        # Redis
        data["REDIS_URL"] = (
            pick("REDIS_URL", default="redis://localhost:6379/0")
            or "redis://localhost:6379/0"
        )
        data["SPECTR_REDIS_PREFIX"] = (
            pick("SPECTR_REDIS_PREFIX", "REDIS_PREFIX", default="spectr") or "spectr"
        )
        data["REDIS_POOL_SIZE"] = int(
            pick("REDIS_POOL_SIZE", default="10") or "10"
        )
        max_conns_raw = pick("REDIS_MAX_CONNECTIONS", default="")
        data["REDIS_MAX_CONNECTIONS"] = (
            int(max_conns_raw) if max_conns_raw not in ("", None) else None
        )

        # Auth
        data["JWT_SECRET"] = pick("JWT_SECRET", "SECRET_KEY", default=None)
        data["JWT_ISSUER"] = pick("JWT_ISSUER", default=None)
        data["JWT_AUDIENCE"] = pick("JWT_AUDIENCE", default=None)

        # Usage metering
        data["USAGE_CACHE_TTL_SECONDS"] = int(
            pick("USAGE_CACHE_TTL_SECONDS", default="30") or "30"
        )

        # Dataset registry
        data["DATASET_STRICT_HEADERS"] = _read_bool(
            pick("DATASET_STRICT_HEADERS", default=None),
            default=False,
        )

        # Admin console
        data["ADMIN_USERS_PAGE_SIZE"] = int(
            pick("ADMIN_USERS_PAGE_SIZE", default="50") or "50"
        )

        try:
            return cls(**data)
        except ValidationError as exc:
            raise RuntimeError(f"Invalid configuration: {exc}") from exc


def get_settings() -> Settings:
    """Return a cached Settings instance (process-wide singleton).

    The first call reads from environment; subsequent calls return the same
    immutable Settings object.
    """
    global _SETTINGS
    if _SETTINGS is None:
        with _ENV_LOCK:
            if _SETTINGS is None:
                _SETTINGS = Settings.from_env()
    return _SETTINGS
