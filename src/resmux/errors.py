"""Exceptions raised while building and loading resources."""

from typing import Literal

__all__ = [
    "ConfigurationError",
    "ModuleResolutionError",
    "ResmuxError",
]

type ConfigurationErrorKind = Literal["missing_field", "invalid_type"]


class ResmuxError(Exception):
    """Base class for resmux errors."""


class ConfigurationError(ResmuxError):
    """Raised when a configuration document is missing a field or has the wrong shape.

    Always raised while building, before any middleware is returned.

    Attributes:
        field: Dotted name of the offending field, e.g. ``"paths.controllers"``.
        kind: ``"missing_field"`` or ``"invalid_type"``.
    """

    def __init__(
        self,
        field: str,
        message: str,
        kind: ConfigurationErrorKind = "missing_field",
    ) -> None:
        self.field = field
        self.kind = kind
        super().__init__(message)


class ModuleResolutionError(ResmuxError, LookupError):
    """Raised when a controller or middleware module cannot be resolved.

    Attributes:
        name: The name that was looked up.
    """

    def __init__(self, name: str, message: str | None = None) -> None:
        self.name = name
        super().__init__(message or f"cannot resolve module '{name}'")
