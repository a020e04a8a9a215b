"""YAML configuration loader."""

from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError

from .exceptions import ConfigurationError, describe_validation_errors
from .models import AppConfig
from .validators import check_for_warnings, emit_warnings

DEFAULT_CONFIG_LOCATIONS = (
    Path("personmatch.yaml"),
    Path("config") / "personmatch.yaml",
)


def load_config(config_path: Optional[Path] = None) -> AppConfig:
    """Load and validate configuration from a YAML file.

    Lookup order when no path is given: ./personmatch.yaml, then
    ./config/personmatch.yaml.

    Args:
        config_path: Optional explicit path to the configuration file

    Returns:
        Validated AppConfig

    Raises:
        ConfigurationError: If the file is missing, unreadable or invalid
    """
    config_file = _find_config_file(config_path)

    try:
        with open(config_file, "r", encoding="utf-8") as f:
            config_dict = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Failed to parse YAML configuration: {e}",
            suggestions=[
                "Check YAML syntax in your config file",
                "Ensure proper indentation (use spaces, not tabs)",
            ],
        ) from e
    except OSError as e:
        raise ConfigurationError(
            f"Failed to read configuration file: {e}",
            suggestions=[f"Ensure {config_file} is readable"],
        ) from e

    # An empty file means "all defaults"
    return parse_config(config_dict or {})


def parse_config(config_dict: Dict[str, Any]) -> AppConfig:
    """Validate an already-parsed configuration mapping.

    Raises:
        ConfigurationError: With one entry per validation problem
    """
    if not isinstance(config_dict, dict):
        raise ConfigurationError(
            "Configuration root must be a mapping",
            suggestions=["Start the file with top-level keys such as 'match:' and 'logging:'"],
        )

    warnings = check_for_warnings(config_dict)
    if warnings:
        emit_warnings(warnings)

    try:
        return AppConfig.model_validate(config_dict)
    except ValidationError as e:
        raise ConfigurationError(
            "Configuration validation failed",
            errors=describe_validation_errors(e),
            suggestions=[
                "Comparator kinds are: exact, levenshtein, jaro_winkler",
                "Fields are: forename, surname, dob, postcode",
                "Every tier rule needs a unique name and at least one constraint",
            ],
        ) from e


def _find_config_file(config_path: Optional[Path] = None) -> Path:
    if config_path is not None:
        config_path = Path(config_path)
        if not config_path.exists():
            raise ConfigurationError(
                f"Specified configuration file not found: {config_path}",
                suggestions=[f"Ensure {config_path} exists"],
            )
        return config_path

    for candidate in DEFAULT_CONFIG_LOCATIONS:
        if candidate.exists():
            return candidate

    raise ConfigurationError(
        "Configuration file not found",
        errors=[f"Tried: {candidate}" for candidate in DEFAULT_CONFIG_LOCATIONS],
        suggestions=["Pass an explicit path to load_config()"],
    )


def validate_config_file(config_path: Path) -> bool:
    """Return True if the file loads and validates, False otherwise."""
    try:
        load_config(config_path)
    except ConfigurationError:
        return False
    return True
