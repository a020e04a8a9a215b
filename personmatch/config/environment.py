"""Environment variable loading and runtime logging setup."""

import os
from typing import Optional

from dotenv import load_dotenv

from personmatch.logging.config import configure_logging

from .exceptions import ConfigurationError
from .models import AppConfig

VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
VALID_LOG_FORMATS = ("json", "key-value")


class EnvironmentConfig:
    """Settings that come from the process environment rather than YAML."""

    def __init__(
        self,
        log_level: Optional[str] = None,
        log_format: Optional[str] = None,
        environment: Optional[str] = None,
    ):
        self.log_level = log_level
        self.log_format = log_format
        self.environment = environment or "local"


def load_environment_config(dotenv_path: Optional[str] = None) -> EnvironmentConfig:
    """Load and validate environment variables, reading a .env file first if present.

    Variables:
    - LOG_LEVEL: DEBUG, INFO, WARNING, ERROR or CRITICAL
    - LOG_FORMAT: json or key-value
    - ENVIRONMENT: label attached to log records (default: local)

    Raises:
        ConfigurationError: If a variable is set to an invalid value
    """
    load_dotenv(dotenv_path=dotenv_path, override=False)

    log_level = os.getenv("LOG_LEVEL")
    log_format = os.getenv("LOG_FORMAT")
    environment = os.getenv("ENVIRONMENT")

    errors = []
    if log_level:
        log_level = log_level.upper()
        if log_level not in VALID_LOG_LEVELS:
            errors.append(
                f"Invalid LOG_LEVEL: '{log_level}'. Must be one of: {', '.join(VALID_LOG_LEVELS)}"
            )

    if log_format:
        log_format = log_format.lower()
        if log_format not in VALID_LOG_FORMATS:
            errors.append(
                f"Invalid LOG_FORMAT: '{log_format}'. Must be one of: {', '.join(VALID_LOG_FORMATS)}"
            )

    if errors:
        raise ConfigurationError(
            "Environment variable validation failed",
            errors=errors,
            suggestions=["Check your .env file or exported variables"],
        )

    return EnvironmentConfig(
        log_level=log_level or None,
        log_format=log_format or None,
        environment=environment,
    )


def setup_logging(
    app_config: Optional[AppConfig] = None,
    dotenv_path: Optional[str] = None,
    log_level_override: Optional[str] = None,
) -> EnvironmentConfig:
    """Configure logging from the YAML settings and the environment.

    Level priority: ``log_level_override`` > LOG_LEVEL > ``logging.level`` in
    the config file. Format priority: LOG_FORMAT > ``logging.format``.

    Returns:
        EnvironmentConfig with the level and format that were applied

    Raises:
        ConfigurationError: If an environment variable is invalid
    """
    app_config = app_config or AppConfig()
    env_config = load_environment_config(dotenv_path)

    if log_level_override:
        env_config.log_level = log_level_override.upper()
    elif not env_config.log_level:
        env_config.log_level = app_config.logging.level

    if not env_config.log_format:
        env_config.log_format = app_config.logging.format

    configure_logging(
        level=env_config.log_level,
        format_type=env_config.log_format,
        environment=env_config.environment,
    )
    return env_config
