"""
Configuration Schemas.

Pydantic models defining the expected structure of each YAML config file.
Used by AppConfig to validate configuration at load time. If a YAML file
has missing keys, wrong types, or unknown fields, a clear ValidationError
is raised at startup instead of a cryptic KeyError deep in application code.

Each top-level class corresponds to one file in config/settings/:
    ApplicationSchema  → application.yaml
    DatabaseSchema     → database.yaml
    LoggingSchema      → logging.yaml
    NotifierSchema     → notifier.yaml
"""

from pydantic import BaseModel, ConfigDict, Field


class _StrictBase(BaseModel):
    """Base with extra='forbid' so unknown YAML keys are caught immediately."""

    model_config = ConfigDict(extra="forbid")


# =============================================================================
# application.yaml
# =============================================================================


class ServerSchema(_StrictBase):
    host: str
    port: int


class CorsSchema(_StrictBase):
    origins: list[str]
    allow_methods: list[str]
    allow_headers: list[str]


class PaginationSchema(_StrictBase):
    default_limit: int = Field(ge=0)
    max_limit: int = Field(ge=0, le=200)


class ApplicationSchema(_StrictBase):
    name: str
    version: str
    description: str
    environment: str
    debug: bool
    server: ServerSchema
    cors: CorsSchema
    pagination: PaginationSchema


# =============================================================================
# database.yaml
# =============================================================================


class DatabaseSchema(_StrictBase):
    path: str
    echo: bool
    busy_timeout_seconds: float


# =============================================================================
# logging.yaml
# =============================================================================


class ConsoleHandlerSchema(_StrictBase):
    enabled: bool


class FileHandlerSchema(_StrictBase):
    enabled: bool
    path: str
    max_bytes: int
    backup_count: int


class HandlersSchema(_StrictBase):
    console: ConsoleHandlerSchema
    file: FileHandlerSchema


class LoggingSchema(_StrictBase):
    level: str
    format: str
    handlers: HandlersSchema


# =============================================================================
# notifier.yaml
# =============================================================================


class NotifierSchema(_StrictBase):
    enabled: bool
    ping_message: str
    pong_message: str
    idle_timeout_seconds: float
    send_timeout_seconds: float
