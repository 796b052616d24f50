"""
Configuration Management.

Loads secrets from config/.env (or DEN_* environment variables) and settings
from config/settings/*.yaml.

Secrets / overrides (.env or environment):
    DEN_AUTH_TOKEN  - shared bearer secret; generated at startup when unset
    DEN_DB_PATH     - SQLite database file, overrides database.yaml `path`

Settings (YAML):
    application.yaml - App identity, server, cors, pagination
    database.yaml    - SQLite file, echo, busy timeout
    logging.yaml     - Logging configuration
    notifier.yaml    - Change stream liveness and delivery settings
"""

from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from den.backend.core.config_schema import (
    ApplicationSchema,
    DatabaseSchema,
    LoggingSchema,
    NotifierSchema,
)


def find_project_root() -> Path:
    """Find project root by looking for .project_root marker file."""
    current = Path.cwd()
    while current != current.parent:
        if (current / ".project_root").exists():
            return current
        current = current.parent
    raise RuntimeError("Project root not found. Ensure .project_root file exists.")


def validate_project_root() -> Path:
    """
    Validate that the project root can be found.

    Raises SystemExit with a clear message if .project_root is not found.
    Use this in entry scripts before any configuration loading.
    """
    try:
        return find_project_root()
    except RuntimeError as e:
        raise SystemExit(f"Error: {e}") from e


def load_yaml_config(filename: str) -> dict[str, Any]:
    """Load a YAML configuration file from config/settings/."""
    project_root = find_project_root()
    config_path = project_root / "config" / "settings" / filename

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path) as f:
        return yaml.safe_load(f) or {}


class Settings(BaseSettings):
    """Secrets and deployment overrides. Both are optional."""

    auth_token: str | None = None
    db_path: str | None = None

    model_config = SettingsConfigDict(
        env_prefix="DEN_",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


def _load_validated(schema_cls: type, filename: str) -> Any:
    """Load YAML and validate against schema. Returns typed model instance."""
    raw = load_yaml_config(filename)
    try:
        return schema_cls(**raw)
    except ValidationError as e:
        raise ValueError(
            f"Invalid configuration in {filename}:\n{e}"
        ) from e


class AppConfig:
    """
    Application configuration loaded from YAML files.

    Each YAML file is validated against its Pydantic schema at load time.
    Properties return typed Pydantic model instances with attribute access.
    """

    def __init__(self) -> None:
        self._application = _load_validated(ApplicationSchema, "application.yaml")
        self._database = _load_validated(DatabaseSchema, "database.yaml")
        self._logging = _load_validated(LoggingSchema, "logging.yaml")
        self._notifier = _load_validated(NotifierSchema, "notifier.yaml")

    @property
    def application(self) -> ApplicationSchema:
        """Application settings."""
        return self._application

    @property
    def database(self) -> DatabaseSchema:
        """Database settings."""
        return self._database

    @property
    def logging(self) -> LoggingSchema:
        """Logging settings."""
        return self._logging

    @property
    def notifier(self) -> NotifierSchema:
        """Change notifier settings."""
        return self._notifier


@lru_cache
def get_settings() -> Settings:
    """Get cached secrets instance. Resolves .env path from project root."""
    env_path = find_project_root() / "config" / ".env"
    return Settings(_env_file=str(env_path))


@lru_cache
def get_app_config() -> AppConfig:
    """Get cached application configuration."""
    return AppConfig()


def get_database_path() -> Path:
    """
    Resolve the SQLite database file.

    DEN_DB_PATH wins over database.yaml. Relative paths are resolved
    against the project root.
    """
    configured = get_settings().db_path or get_app_config().database.path
    path = Path(configured).expanduser()
    if not path.is_absolute():
        path = find_project_root() / path
    return path


def get_database_url() -> str:
    """
    Construct the async SQLAlchemy database URL.

    Returns:
        Database connection URL string (aiosqlite driver).
    """
    return f"sqlite+aiosqlite:///{get_database_path()}"


def get_server_base_url() -> str:
    """Get the server base URL from application.yaml."""
    server = get_app_config().application.server
    return f"http://{server.host}:{server.port}"
