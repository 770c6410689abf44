"""
Configuration for the Task Tracker service.

All recognized environment variables are read here, once, into a `Settings`
object that is passed to the store and the API.
"""

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv
from sqlalchemy.engine import URL


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_list(name: str, default: list[str]) -> list[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    return [part.strip() for part in raw.split(",") if part.strip()]


@dataclass(frozen=True)
class Settings:
    """
    Service settings.

    Attributes:
        db_host: PostgreSQL host.
        db_port: PostgreSQL port.
        db_name: Database name.
        db_user: Database user.
        db_password: Database password.
        db_ssl: Require TLS for database connections.
        db_pool_size: Number of pooled database connections.
        database_url_override: Full SQLAlchemy URL, used instead of the parts above.
        host: Interface the HTTP server binds to.
        port: Port the HTTP server listens on.
        environment: Environment name (development, production, ...).
        log_level: Root logging level name.
        cors_origins: Origins allowed by CORS.
        shutdown_timeout: Seconds to wait for in-flight requests on shutdown.
    """

    db_host: str = "localhost"
    db_port: int = 5432
    db_name: str = "taskdb"
    db_user: str = "postgres"
    db_password: str = "password"
    db_ssl: bool = False
    db_pool_size: int = 10
    database_url_override: str | None = None
    host: str = "0.0.0.0"
    port: int = 3000
    environment: str = "development"
    log_level: str = "INFO"
    cors_origins: list[str] = field(default_factory=lambda: ["*"])
    shutdown_timeout: int = 10

    @classmethod
    def from_env(cls, load_env_file: bool = True) -> "Settings":
        """
        Build settings from environment variables.

        Args:
            load_env_file: Merge a local .env file first (real env vars win).

        Returns:
            Settings with every unset option at its default.
        """
        if load_env_file:
            load_dotenv(override=False)

        defaults = cls()
        return cls(
            db_host=os.getenv("DB_HOST", defaults.db_host),
            db_port=_env_int("DB_PORT", defaults.db_port),
            db_name=os.getenv("DB_NAME", defaults.db_name),
            db_user=os.getenv("DB_USER", defaults.db_user),
            db_password=os.getenv("DB_PASSWORD", defaults.db_password),
            db_ssl=_env_bool("DB_SSL", defaults.db_ssl),
            db_pool_size=_env_int("DB_POOL_SIZE", defaults.db_pool_size),
            database_url_override=os.getenv("DATABASE_URL") or None,
            host=os.getenv("HOST", defaults.host),
            port=_env_int("PORT", defaults.port),
            environment=os.getenv("APP_ENV", defaults.environment).strip().lower(),
            log_level=os.getenv("LOG_LEVEL", defaults.log_level).strip().upper(),
            cors_origins=_env_list("CORS_ORIGINS", defaults.cors_origins),
            shutdown_timeout=_env_int("SHUTDOWN_TIMEOUT", defaults.shutdown_timeout),
        )

    @property
    def database_url(self) -> str | URL:
        """SQLAlchemy URL for the task database."""
        if self.database_url_override:
            return self.database_url_override
        return URL.create(
            "postgresql+psycopg2",
            username=self.db_user,
            password=self.db_password,
            host=self.db_host,
            port=self.db_port,
            database=self.db_name,
        )

    @property
    def is_production(self) -> bool:
        return self.environment == "production"
