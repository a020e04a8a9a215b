"""Exceptions raised while validating configuration or composing a match."""

from typing import List, Optional

from pydantic import ValidationError


class ConfigurationError(Exception):
    """Raised when configuration, a field mapping or a match request is invalid.

    Carries a list of individual problems and optional suggestions, rendered
    into a single readable message.
    """

    def __init__(
        self,
        message: str,
        errors: Optional[List[str]] = None,
        suggestions: Optional[List[str]] = None,
    ):
        self.message = message
        self.errors = list(errors or [])
        self.suggestions = list(suggestions or [])
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        parts = [self.message]

        if self.errors:
            parts.append("\nValidation Errors:")
            for i, error in enumerate(self.errors, 1):
                parts.append(f"  {i}. {error}")

        if self.suggestions:
            parts.append("\nSuggestions:")
            for suggestion in self.suggestions:
                parts.append(f"  - {suggestion}")

        return "\n".join(parts)


def describe_validation_errors(exc: ValidationError) -> List[str]:
    """Turn a pydantic ValidationError into one readable line per problem."""
    errors = []
    for error in exc.errors():
        field_path = " -> ".join(str(loc) for loc in error["loc"]) or "(root)"
        error_type = error["type"]

        if error_type == "missing":
            errors.append(f"Missing required field: {field_path}")
        elif error_type == "extra_forbidden":
            errors.append(f"Unknown field: {field_path}")
        elif error_type.endswith("_type"):
            expected = error_type[: -len("_type")]
            errors.append(
                f"Invalid type for '{field_path}': expected {expected}, got {error.get('input')!r}"
            )
        elif "enum" in error_type:
            errors.append(f"Invalid value for '{field_path}': {error['msg']}")
        else:
            errors.append(f"{field_path}: {error['msg']}")
    return errors
