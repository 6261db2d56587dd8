"""
config.py
---------
Central configuration module. Loads environment variables from the .env file,
exposes process-wide settings as typed constants, and resolves the database
settings handed to the provisioner.
"""

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional
from urllib.parse import unquote, urlsplit

from dotenv import load_dotenv

from errors import ConfigurationError

load_dotenv()


def _env_flag(value: Optional[str], default: bool = False) -> bool:
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# ── Process ───────────────────────────────────────────────
APP_ENV: str = os.getenv("APP_ENV", "development").strip().lower()
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
SHUTDOWN_TIMEOUT_SECONDS: float = float(os.getenv("SHUTDOWN_TIMEOUT_SECONDS", "10"))

# ── PostgreSQL defaults ───────────────────────────────────
DEFAULT_DB_HOST: str = "localhost"
DEFAULT_DB_PORT: int = 5432
DEFAULT_DB_USER: str = "postgres"
DEFAULT_DB_PASSWORD: str = ""
DEFAULT_DB_NAME: str = "user_registry"
DEFAULT_TEST_DB_NAME: str = "user_registry_test"
DEFAULT_MAINTENANCE_DB: str = "postgres"
DEFAULT_CONNECT_TIMEOUT: int = 10

ENVIRONMENTS = ("development", "test", "production")

# ── Pool presets (min, max) per environment ───────────────
POOL_PRESETS: dict[str, tuple[int, int]] = {
    "development": (2, 10),
    "test": (1, 5),
    "production": (5, 20),
}


@dataclass(frozen=True)
class ConnectionParams:
    """
    Where and as whom to connect.

    Attributes:
        host: Server hostname.
        port: Server port.
        user: Login role.
        password: Login password (hidden from repr).
        database: Target database name.
    """
    host: str = DEFAULT_DB_HOST
    port: int = DEFAULT_DB_PORT
    user: str = DEFAULT_DB_USER
    password: str = field(default=DEFAULT_DB_PASSWORD, repr=False)
    database: str = DEFAULT_DB_NAME

    def __str__(self) -> str:
        return f"{self.user}@{self.host}:{self.port}/{self.database}"


@dataclass(frozen=True)
class DatabaseSettings:
    """Everything the provisioner needs to build a live handle."""
    params: ConnectionParams
    environment: str = "development"
    pool_min: int = 2
    pool_max: int = 10
    run_migrations: bool = True
    seed_on_boot: bool = False
    sslmode: Optional[str] = None
    connect_timeout: int = DEFAULT_CONNECT_TIMEOUT
    statement_timeout_ms: int = 0
    maintenance_database: str = DEFAULT_MAINTENANCE_DB

    def connect_kwargs(self, database: Optional[str] = None) -> dict:
        """
        Build keyword arguments for ``psycopg2.connect`` / the pool.

        Args:
            database: Override the target database (used for the maintenance link).
        """
        options = "-c timezone=UTC"
        if self.statement_timeout_ms > 0:
            options += f" -c statement_timeout={self.statement_timeout_ms}"
        kwargs = {
            "host": self.params.host,
            "port": self.params.port,
            "user": self.params.user,
            "password": self.params.password,
            "dbname": database or self.params.database,
            "connect_timeout": self.connect_timeout,
            "options": options,
        }
        if self.sslmode:
            kwargs["sslmode"] = self.sslmode
        return kwargs


def _parse_int(environ: Mapping[str, str], key: str, default: int) -> int:
    raw = environ.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{key} must be an integer, got {raw!r}") from e


def _params_from_url(url: str) -> ConnectionParams:
    parts = urlsplit(url)
    if parts.scheme not in ("postgres", "postgresql"):
        raise ConfigurationError(f"Unsupported DATABASE_URL scheme: {parts.scheme!r}")
    try:
        port = parts.port or DEFAULT_DB_PORT
    except ValueError as e:
        raise ConfigurationError("DATABASE_URL has an invalid port") from e
    return ConnectionParams(
        host=parts.hostname or DEFAULT_DB_HOST,
        port=port,
        user=unquote(parts.username) if parts.username else DEFAULT_DB_USER,
        password=unquote(parts.password) if parts.password else DEFAULT_DB_PASSWORD,
        database=parts.path.lstrip("/") or DEFAULT_DB_NAME,
    )


def _params_from_fields(environ: Mapping[str, str]) -> ConnectionParams:
    return ConnectionParams(
        host=environ.get("DB_HOST") or DEFAULT_DB_HOST,
        port=_parse_int(environ, "DB_PORT", DEFAULT_DB_PORT),
        user=environ.get("DB_USER") or DEFAULT_DB_USER,
        password=environ.get("DB_PASSWORD", DEFAULT_DB_PASSWORD),
        database=environ.get("DB_NAME") or DEFAULT_DB_NAME,
    )


def resolve_config(environ: Optional[Mapping[str, str]] = None) -> DatabaseSettings:
    """
    Merge the URL form and the discrete-field form into one set of settings.

    DATABASE_URL wins when present; unset pieces fall back to the defaults above.
    In the test environment the database name always comes from TEST_DB_NAME.

    Args:
        environ: Mapping to read from (defaults to ``os.environ``).

    Returns:
        A frozen DatabaseSettings.

    Raises:
        ConfigurationError: On an unknown environment, bad numbers or a bad URL.
    """
    if environ is None:
        environ = os.environ

    environment = (environ.get("APP_ENV") or "development").strip().lower()
    if environment not in ENVIRONMENTS:
        raise ConfigurationError(
            f"APP_ENV must be one of {', '.join(ENVIRONMENTS)}, got {environment!r}"
        )

    url = (environ.get("DATABASE_URL") or "").strip()
    params = _params_from_url(url) if url else _params_from_fields(environ)

    if environment == "test":
        params = ConnectionParams(
            host=params.host,
            port=params.port,
            user=params.user,
            password=params.password,
            database=environ.get("TEST_DB_NAME") or DEFAULT_TEST_DB_NAME,
        )

    preset_min, preset_max = POOL_PRESETS[environment]
    pool_min = _parse_int(environ, "DB_POOL_MIN", preset_min)
    pool_max = _parse_int(environ, "DB_POOL_MAX", preset_max)
    if pool_min < 0 or pool_max < 1 or pool_min > pool_max:
        raise ConfigurationError(f"Invalid pool bounds: min={pool_min}, max={pool_max}")

    skip_migrations = _env_flag(environ.get("SKIP_MIGRATIONS"))
    sslmode = environ.get("DB_SSLMODE") or ("require" if environment == "production" else None)

    return DatabaseSettings(
        params=params,
        environment=environment,
        pool_min=pool_min,
        pool_max=pool_max,
        run_migrations=environment != "test" and not skip_migrations,
        seed_on_boot=_env_flag(environ.get("SEED_ON_BOOT"), default=environment == "development"),
        sslmode=sslmode,
        connect_timeout=_parse_int(environ, "DB_CONNECT_TIMEOUT", DEFAULT_CONNECT_TIMEOUT),
        statement_timeout_ms=_parse_int(environ, "DB_STATEMENT_TIMEOUT_MS", 0),
        maintenance_database=environ.get("DB_MAINTENANCE_NAME") or DEFAULT_MAINTENANCE_DB,
    )
