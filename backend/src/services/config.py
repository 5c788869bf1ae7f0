"""Application configuration helpers."""

from __future__ import annotations

from functools import lru_cache
import logging
import os
from pathlib import Path
from typing import Any, Callable, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.fields import FieldInfo

logger = logging.getLogger(__name__)

T = TypeVar("T", int, float)

PROJECT_ROOT = Path(__file__).resolve().parents[3]
DEFAULT_DB_PATH = PROJECT_ROOT / "data" / "libraria.db"

# Gemini exposes an OpenAI-compatible chat-completions surface.
DEFAULT_MODEL_API_BASE = "https://generativelanguage.googleapis.com/v1beta/openai"


class AppConfig(BaseModel):
    """Runtime configuration loaded from environment variables."""

    model_config = ConfigDict(frozen=True)

    jwt_secret_key: Optional[str] = Field(
        default=None,
        description="HMAC secret for JWT signing (required for JWT/HTTP auth)",
    )
    enable_local_mode: bool = Field(
        default=True,
        description="Allow local-dev token bypass when running locally",
    )
    local_dev_token: Optional[str] = Field(
        default="local-dev-token",
        description="Static token accepted in local mode (maps to 'demo-user')",
    )
    encryption_secret: Optional[str] = Field(
        default=None,
        description="Application secret the credential vault derives its keys from",
    )
    database_path: Path = Field(
        default=DEFAULT_DB_PATH,
        description="SQLite file holding the library, profiles and conversations",
    )
    model_api_base: str = Field(
        default=DEFAULT_MODEL_API_BASE,
        description="Base URL of the OpenAI-compatible chat completions endpoint",
    )
    cors_origins: tuple[str, ...] = Field(
        default=("http://localhost:3000", "http://localhost:5173"),
        description="Allowed CORS origins for the web client",
    )

    @field_validator("database_path", mode="before")
    @classmethod
    def _normalize_db_path(cls, value: str | Path | None) -> Path:
        if value is None or value == "":
            return DEFAULT_DB_PATH
        path = value if isinstance(value, Path) else Path(value)
        return path.expanduser().resolve()

    @field_validator("jwt_secret_key", mode="before")
    @classmethod
    def _ensure_secret(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        cleaned = value.strip()
        if not cleaned:
            raise ValueError(
                "JWT_SECRET_KEY cannot be empty; unset the variable to disable JWT auth in local mode"
            )
        if len(cleaned) < 16:
            raise ValueError("JWT_SECRET_KEY must be at least 16 characters")
        return cleaned

    @field_validator("encryption_secret", mode="before")
    @classmethod
    def _blank_secret_is_unset(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        return value


def _read_env(key: str, default: Optional[str] = None) -> Optional[str]:
    return os.getenv(key, default)


@lru_cache(maxsize=1)
def get_config() -> AppConfig:
    """Load and cache application configuration."""
    enable_local_mode = _read_env("ENABLE_LOCAL_MODE", "true").lower() not in {
        "0",
        "false",
        "no",
    }
    origins_str = _read_env("CORS_ORIGINS", "")
    cors_origins = tuple(o.strip() for o in origins_str.split(",") if o.strip())

    config = AppConfig(
        jwt_secret_key=_read_env("JWT_SECRET_KEY"),
        enable_local_mode=enable_local_mode,
        local_dev_token=_read_env("LOCAL_DEV_TOKEN", "local-dev-token"),
        encryption_secret=_read_env("ENCRYPTION_SECRET"),
        database_path=_read_env("DATABASE_PATH", str(DEFAULT_DB_PATH)),
        model_api_base=_read_env("MODEL_API_BASE", DEFAULT_MODEL_API_BASE),
        **({"cors_origins": cors_origins} if cors_origins else {}),
    )
    config.database_path.parent.mkdir(parents=True, exist_ok=True)
    return config


def reload_config() -> AppConfig:
    """Clear cached config (useful for tests) and reload."""
    get_config.cache_clear()
    return get_config()


# =============================================================================
# Agent Configuration (step budget and tool execution limits)
# =============================================================================


class AgentConfig(BaseModel):
    """Library agent configuration loaded from environment.

    Environment Variables:
        AGENT_MAX_STEPS: Maximum planning/tool-execution rounds per user turn (default: 10)
        AGENT_TOOL_TIMEOUT: Per-tool timeout in seconds (default: 30)
        AGENT_MAX_PARALLEL_TOOLS: Concurrent tool executions per step (default: 4)
    """

    model_config = ConfigDict(frozen=True)

    max_steps: int = Field(
        default=10,
        ge=1,
        le=50,
        description="Maximum planning/tool-execution rounds per user turn (AGENT_MAX_STEPS)",
    )
    step_warning_percent: int = Field(
        default=80,
        ge=50,
        le=100,
        description="Percentage of the step budget at which a status warning is streamed",
    )
    tool_timeout_seconds: float = Field(
        default=30.0,
        ge=1.0,
        le=300.0,
        description="Per-tool execution timeout in seconds",
    )
    max_parallel_tools: int = Field(
        default=4,
        ge=1,
        le=10,
        description="Maximum concurrent tool executions within one step",
    )
    max_tool_calls_per_step: int = Field(
        default=20,
        ge=1,
        le=100,
        description="Tool calls beyond this count in a single step are dropped",
    )
    web_search_max_results: int = Field(
        default=10,
        ge=1,
        le=20,
        description="Upper bound on results requested from the search provider",
    )
    web_search_content_chars: int = Field(
        default=500,
        ge=50,
        le=5000,
        description="Each search result body is truncated to this many characters",
    )
    max_output_tokens: int = Field(
        default=4096,
        ge=256,
        le=65536,
        description="max_tokens sent with every model request",
    )


def _bounded_env(key: str, field_info: FieldInfo, cast: Callable[[Any], T]) -> T:
    """Read a numeric setting, clamped to the field's ge/le bounds.

    Unparseable values fall back to the field default.
    """
    default = field_info.default
    raw = _read_env(key)
    if raw is None:
        return default
    try:
        value = cast(raw)
    except ValueError:
        logger.warning(f"Ignoring invalid {key}={raw!r}; using {default}")
        return default

    lower = next((m.ge for m in field_info.metadata if getattr(m, "ge", None) is not None), None)
    upper = next((m.le for m in field_info.metadata if getattr(m, "le", None) is not None), None)
    clamped = value
    if lower is not None:
        clamped = max(clamped, lower)
    if upper is not None:
        clamped = min(clamped, upper)
    if clamped != value:
        logger.warning(f"{key}={value} is out of range; using {clamped}")
    return cast(clamped)


@lru_cache(maxsize=1)
def get_agent_config() -> AgentConfig:
    """Load and cache agent configuration from environment.

    Returns:
        AgentConfig instance with values from environment or defaults.
    """
    fields = AgentConfig.model_fields
    return AgentConfig(
        max_steps=_bounded_env("AGENT_MAX_STEPS", fields["max_steps"], int),
        tool_timeout_seconds=_bounded_env("AGENT_TOOL_TIMEOUT", fields["tool_timeout_seconds"], float),
        max_parallel_tools=_bounded_env("AGENT_MAX_PARALLEL_TOOLS", fields["max_parallel_tools"], int),
    )


def reload_agent_config() -> AgentConfig:
    """Clear cached agent config and reload from environment."""
    get_agent_config.cache_clear()
    return get_agent_config()


__all__ = [
    "AppConfig", "get_config", "reload_config",
    "AgentConfig", "get_agent_config", "reload_agent_config",
    "PROJECT_ROOT", "DEFAULT_DB_PATH", "DEFAULT_MODEL_API_BASE",
]
