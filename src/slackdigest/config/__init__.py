"""Configuration module for slackdigest."""

from slackdigest.config.loader import (
    ConfigError,
    ConfigFileNotFoundError,
    ConfigParseError,
    EnvVarNotFoundError,
    expand_env_vars,
    load_config,
)
from slackdigest.config.models import (
    AppConfig,
    DatabaseConfig,
    LLMConfig,
    LoggingConfig,
    SchedulerConfig,
    ServerConfig,
    SlackConfig,
    SummaryConfig,
)

__all__ = [
    # Exceptions
    "ConfigError",
    "ConfigFileNotFoundError",
    "ConfigParseError",
    "EnvVarNotFoundError",
    # Functions
    "expand_env_vars",
    "load_config",
    # Models
    "AppConfig",
    "DatabaseConfig",
    "LLMConfig",
    "LoggingConfig",
    "SchedulerConfig",
    "ServerConfig",
    "SlackConfig",
    "SummaryConfig",
]
