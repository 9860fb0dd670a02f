"""Core modules for rulebook - centralized error definitions."""

from rulebook.core.errors import (
    ConfigurationError,
    DatasourceError,
    ExitCode,
    ExpressionError,
    RulebookError,
    TemplateError,
    TenantTokenError,
    UnknownFieldsError,
    ValidationError,
    WarningResult,
    format_error_message,
    main_with_error_handling,
)

__all__ = [
    "ExitCode",
    "RulebookError",
    "ConfigurationError",
    "UnknownFieldsError",
    "ValidationError",
    "TenantTokenError",
    "ExpressionError",
    "TemplateError",
    "DatasourceError",
    "WarningResult",
    "main_with_error_handling",
    "format_error_message",
]
