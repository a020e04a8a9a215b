"""Configuration management for personmatch."""

from .exceptions import ConfigurationError, describe_validation_errors
from .environment import EnvironmentConfig, load_environment_config, setup_logging
from .loader import load_config, parse_config, validate_config_file
from .models import (
    AppConfig,
    BlockingRule,
    ComparatorConfig,
    ComparatorKind,
    LogFormat,
    LoggingConfig,
    LogLevel,
    MatchConfig,
    TierRule,
)

__all__ = [
    # Loaders
    "load_config",
    "parse_config",
    "validate_config_file",
    "load_environment_config",
    "setup_logging",
    # Models
    "AppConfig",
    "MatchConfig",
    "ComparatorConfig",
    "BlockingRule",
    "TierRule",
    "LoggingConfig",
    "EnvironmentConfig",
    # Enums
    "ComparatorKind",
    "LogLevel",
    "LogFormat",
    # Exceptions
    "ConfigurationError",
    "describe_validation_errors",
]
