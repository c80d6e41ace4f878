"""
Error types for metafields schema normalization, configuration and runtime.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional


class MetafieldsError(Exception):
    """Base exception for all metafields errors."""

    def __init__(self, message: str, context: Optional["ErrorContext"] = None):
        self.message = message
        self.context = context
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format error message with context if available."""
        where = self.context.format() if self.context else ""
        if where:
            return f"{where}: {self.message}"
        return self.message


class ConfigError(MetafieldsError):
    """
    Raised when a field declaration cannot be normalized.

    Examples:
    - Empty or non-string field key
    - Unknown field kind
    - Missing kind-required constraint (amount_type without type_options)
    - Container nested inside another container
    - Malformed show_when conditions
    """

    pass


class FormConfigError(MetafieldsError):
    """
    Raised when a form configuration file cannot be loaded.

    Examples:
    - Unsupported file extension
    - Invalid TOML/YAML syntax
    - Top-level document is not a mapping
    """

    pass


class RowLimitError(MetafieldsError):
    """
    Raised when a repeater row mutation is refused.

    Examples:
    - Inserting beyond max_items
    - Removing at or below min_items
    - Reorder permutation that is not a permutation of current positions
    """

    pass


class RemoteOptionError(MetafieldsError):
    """
    Raised when a remote option source request fails.

    The option source catches this and converts it into a user-visible
    notice; it never propagates out of a search or hydration call.
    """

    pass


@dataclass
class ErrorContext:
    """
    Context information for an error, naming where in a form it occurred.

    Attributes:
        field_path: Path of the offending field (e.g. "features.items")
        form_id: Optional id of the form being normalized
        file: Optional configuration file the form was loaded from
    """

    field_path: str | None = None
    form_id: str | None = None
    file: Path | None = None

    def format(self) -> str:
        """
        Format error context as a human-readable string.

        Returns:
            Formatted string like: "product.yaml [product_info] field 'price'"
        """
        parts: list[str] = []
        if self.file:
            parts.append(str(self.file))
        if self.form_id:
            parts.append(f"[{self.form_id}]")
        if self.field_path:
            parts.append(f"field '{self.field_path}'")
        return " ".join(parts)


def make_config_error(
    message: str,
    field_path: str | None = None,
    form_id: str | None = None,
) -> ConfigError:
    """
    Helper to create a ConfigError with optional context.

    Args:
        message: Error description
        field_path: Optional path of the field being normalized
        form_id: Optional form id

    Returns:
        ConfigError with context if a field path was provided
    """
    if field_path:
        return ConfigError(message, ErrorContext(field_path=field_path, form_id=form_id))
    return ConfigError(message)
