"""SDK error types."""

from __future__ import annotations


class ConfigValidationError(Exception):
    """Raised when a host config YAML fails parsing or validation."""
