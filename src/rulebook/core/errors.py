"""
Unified error handling for rulebook.

Every failure raised while loading rule files or querying a datasource is a
``RulebookError``. Each subclass maps onto an exit code so the CLI can report
it consistently.

Exit Codes:
- 0: Success
- 1: Warning (operation succeeded with warnings, e.g. no groups loaded)
- 10: Configuration error (file read, YAML decode, unknown fields)
- 11: Provider error (datasource failure)
- 12: Validation error
- 127: Unknown/internal error
"""

from __future__ import annotations

import functools
import sys
import traceback
from enum import IntEnum
from typing import Any, Callable, Iterable, TypeVar

import structlog

logger = structlog.get_logger()


class ExitCode(IntEnum):
    """Standardized exit codes for CLI commands."""

    SUCCESS = 0
    WARNING = 1
    CONFIG_ERROR = 10
    PROVIDER_ERROR = 11
    VALIDATION_ERROR = 12
    UNKNOWN_ERROR = 127


class RulebookError(Exception):
    """Base exception for rulebook errors with exit code support."""

    exit_code: ExitCode = ExitCode.UNKNOWN_ERROR
    show_traceback: bool = False

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def wrap(self, context: str, **details: Any) -> "RulebookError":
        """
        Return a copy of this error with ``context`` prefixed to the message.

        The copy keeps the original class so callers can still catch the
        specific error; raise it ``from`` the original to keep the cause.
        """
        wrapped = self.__class__.__new__(self.__class__)
        wrapped.__dict__.update(self.__dict__)
        wrapped.message = f"{context}: {self.message}"
        wrapped.args = (wrapped.message,)
        wrapped.details = {**self.details, **details}
        return wrapped


class ConfigurationError(RulebookError):
    """Raised when rule files cannot be read, decoded or matched."""

    exit_code = ExitCode.CONFIG_ERROR


class UnknownFieldsError(ConfigurationError):
    """Raised when a config, group or rule mapping carries undeclared keys."""

    def __init__(
        self,
        fields: Iterable[str],
        context: str,
        details: dict[str, Any] | None = None,
    ):
        self.fields = sorted(fields)
        self.context = context
        super().__init__(f"unknown fields in {context}: {', '.join(self.fields)}", details)


class ValidationError(RulebookError):
    """Raised for semantic validation failures."""

    exit_code = ExitCode.VALIDATION_ERROR


class TenantTokenError(ValidationError):
    """Raised when a tenant token cannot be parsed."""


class ExpressionError(ValidationError):
    """Raised when a query expression is syntactically invalid."""


class TemplateError(ValidationError):
    """Raised when a label or annotation template is malformed."""


class DatasourceError(RulebookError):
    """Raised when the metrics datasource fails or answers unexpectedly."""

    exit_code = ExitCode.PROVIDER_ERROR


class WarningResult(RulebookError):
    """Raised to indicate success with warnings."""

    exit_code = ExitCode.WARNING


# Type variable for decorated functions
F = TypeVar("F", bound=Callable[..., int])


def main_with_error_handling(
    *,
    show_traceback: bool = False,
    log_errors: bool = True,
) -> Callable[[F], F]:
    """
    Decorator for CLI main functions that provides unified error handling.

    Exit codes:
        - RulebookError subclasses: Uses the error's exit_code
        - KeyboardInterrupt: Returns 130 (standard for SIGINT)
        - Other exceptions: Returns 127 (unknown error)
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> int:
            try:
                return func(*args, **kwargs)
            except RulebookError as e:
                if log_errors:
                    logger.error(
                        "command_error",
                        error_type=type(e).__name__,
                        message=e.message,
                        exit_code=e.exit_code,
                        **e.details,
                    )
                if e.show_traceback or show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return e.exit_code
            except KeyboardInterrupt:
                if log_errors:
                    logger.info("command_interrupted")
                return 130
            except Exception as e:
                if log_errors:
                    logger.error(
                        "unexpected_error",
                        error_type=type(e).__name__,
                        message=str(e),
                        exit_code=ExitCode.UNKNOWN_ERROR,
                    )
                if show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return ExitCode.UNKNOWN_ERROR

        return wrapper  # type: ignore[return-value]

    return decorator


def format_error_message(error: RulebookError) -> str:
    """Format an error message for display to users."""
    msg = error.message
    if error.details:
        detail_str = ", ".join(f"{k}={v}" for k, v in error.details.items())
        msg = f"{msg} ({detail_str})"
    return msg
