"""Exceptions raised by the type generator."""

from __future__ import annotations

from pathlib import Path


class TypegenError(Exception):
    """Base exception for all generator errors."""


class SpecError(TypegenError):
    """Raised when the OpenAPI document is unreachable or malformed."""

    def __init__(self, message: str, url: str | None = None) -> None:
        self.url = url
        full_message = message if not url else f"[{url}] {message}"
        super().__init__(full_message)


class ConfigError(TypegenError):
    """Raised when the configuration is missing or invalid."""

    def __init__(
        self,
        message: str,
        config_path: str | Path | None = None,
        field: str | None = None,
    ) -> None:
        self.config_path = config_path
        self.field = field
        if field:
            message = f"Field '{field}': {message}"
        if config_path:
            message = f"[{config_path}] {message}"
        super().__init__(message)


class ModuleError(TypegenError):
    """Raised when a selected module cannot be generated."""

    def __init__(self, message: str, tag: str) -> None:
        self.tag = tag
        super().__init__(f"Module '{tag}': {message}")


class TranslationError(TypegenError):
    """Raised by a translator when a label cannot be translated."""

    def __init__(self, label: str, reason: str) -> None:
        self.label = label
        super().__init__(f"Could not translate {label!r}: {reason}")
