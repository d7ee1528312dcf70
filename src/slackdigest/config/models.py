"""Pydantic models for application configuration."""

from typing import Any, Literal

from croniter import croniter
from pydantic import BaseModel, Field, field_validator

DEFAULT_CONVERSATION_TYPES = ["public_channel", "private_channel", "mpim", "im"]


class SlackConfig(BaseModel):
    """Slack integration configuration."""

    bot_token: str = Field(
        ...,
        description=(
            "Slack bot token used for Web API calls (typically starts with 'xoxb-')."
        ),
    )
    digest_channel: str | None = Field(
        default=None,
        description=(
            "Channel ID that receives digest messages. Posting is disabled "
            "when unset."
        ),
    )
    max_retries: int = Field(
        default=3,
        ge=0,
        description="Maximum number of retries for a rate-limited API call.",
    )
    base_delay: float = Field(
        default=1.0,
        ge=0,
        description=(
            "Initial backoff in seconds after a rate-limit response. Doubled "
            "on every retry."
        ),
    )
    conversation_delay: float = Field(
        default=1.0,
        ge=0,
        description="Pause in seconds between two conversations during ingestion.",
    )
    conversation_types: list[str] = Field(
        default_factory=lambda: list(DEFAULT_CONVERSATION_TYPES),
        description="Conversation types passed to conversations.list.",
    )
    page_size: int = Field(
        default=200,
        ge=1,
        le=1000,
        description="Page size requested from cursor-paginated endpoints.",
    )
    user_cache_ttl: float = Field(
        default=3600.0,
        gt=0,
        description="Seconds a resolved user record stays fresh in memory.",
    )
    preload_users: bool = Field(
        default=False,
        description="Warm the user cache from users.list before ingestion.",
    )


class DatabaseConfig(BaseModel):
    """Database connection configuration."""

    url: str = Field(
        default="sqlite+aiosqlite:///./data/slackdigest.db",
        description=(
            "SQLAlchemy-style database connection URL "
            "(e.g., 'sqlite+aiosqlite:///path/to/db')."
        ),
    )


class LLMConfig(BaseModel):
    """LLM configuration for LiteLLM."""

    model_id: str
    params: dict[str, Any] = Field(default_factory=dict)
    client_args: dict[str, Any] = Field(default_factory=dict)


class SummaryConfig(BaseModel):
    """Summary generation configuration."""

    llm: LLMConfig | None = Field(
        default=None,
        description=(
            "Model used for summaries. Only heuristic summaries are produced "
            "when unset."
        ),
    )
    highlight_limit: int = Field(default=5, ge=1)
    mention_context_chars: int = Field(default=30, ge=1)
    max_mention_contexts: int = Field(default=3, ge=0)


class SchedulerConfig(BaseModel):
    """Recurring run configuration."""

    cron: str = Field(
        default="0 23 * * *",
        description="Cron expression for the recurring digest run (UTC).",
    )
    retention_days: int | None = Field(
        default=None,
        ge=1,
        description="Purge raw messages older than this many days. Disabled when unset.",
    )

    @field_validator("cron")
    @classmethod
    def _validate_cron(cls, value: str) -> str:
        if not croniter.is_valid(value):
            raise ValueError(f"Invalid cron expression: {value!r}")
        return value


class ServerConfig(BaseModel):
    """HTTP server configuration."""

    enabled: bool = True
    host: str = "0.0.0.0"
    port: int = 8080


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["json", "text"] = "json"


class AppConfig(BaseModel):
    """Application configuration."""

    slack: SlackConfig
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    summary: SummaryConfig = Field(default_factory=SummaryConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
