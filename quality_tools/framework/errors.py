"""
Error taxonomy for configuration resolution.

Every failure raised by the configuration core derives from
QualityToolsError, which carries a stable error code and a severity so that
CLI commands and other collaborators can decide how to surface it.

Key features:
- Error code enums (avoid typos)
- Severity levels (fatal, user_error, security)
- Pydantic model for structured error details
- Boundary translation helper for unexpected exceptions
"""

from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# ============================================================================
# Error Codes and Severity
# ============================================================================


class ErrorCode(str, Enum):
    """Enumeration of all error codes raised by the configuration core."""

    # File access
    FILE_NOT_FOUND = "FILE_NOT_FOUND"
    FILE_NOT_READABLE = "FILE_NOT_READABLE"

    # Loading and parsing
    LOAD_ERROR = "LOAD_ERROR"
    PARSE_ERROR = "PARSE_ERROR"

    # Environment interpolation
    ENV_ACCESS_DENIED = "ENV_ACCESS_DENIED"
    ENV_UNSAFE_VALUE = "ENV_UNSAFE_VALUE"
    ENV_MISSING = "ENV_MISSING"

    # Validation
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_OVERRIDE = "INVALID_OVERRIDE"

    # Internal errors
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ErrorSeverity(str, Enum):
    """Error severity used when reporting to the user."""

    FATAL = "fatal"  # Resolution cannot continue
    USER_ERROR = "user_error"  # Fixable by editing a configuration file
    SECURITY = "security"  # Blocked by the interpolation allowlist or content check


# ============================================================================
# Pydantic Error Models
# ============================================================================


class ErrorDetails(BaseModel):
    """Structured error details for serialization."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    code: ErrorCode = Field(..., description="Error code enum")
    message: str = Field(..., description="Human-readable error message")
    context: dict[str, Any] = Field(default_factory=dict, description="Additional context")
    severity: ErrorSeverity = Field(default=ErrorSeverity.FATAL, description="Error severity")

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return self.model_dump(mode="json")


# ============================================================================
# Base Exception Class
# ============================================================================


class QualityToolsError(Exception):
    """Base class for all configuration core errors."""

    def __init__(
        self,
        message: str,
        code: ErrorCode,
        details: dict[str, Any] | None = None,
        severity: ErrorSeverity = ErrorSeverity.FATAL,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}
        self.severity = severity

    def to_details(self) -> ErrorDetails:
        """Convert to structured ErrorDetails."""
        return ErrorDetails(
            code=self.code, message=self.message, context=self.details, severity=self.severity
        )


# ============================================================================
# File and Load Errors
# ============================================================================


class ConfigLoadError(QualityToolsError):
    """A configuration file could not be loaded, parsed or accepted."""

    def __init__(
        self,
        message: str,
        path: str | Path | None = None,
        code: ErrorCode = ErrorCode.LOAD_ERROR,
        cause: Exception | None = None,
    ) -> None:
        details: dict[str, Any] = {}
        if path is not None:
            details["path"] = str(path)
        if cause:
            details["cause"] = str(cause)
            details["cause_type"] = type(cause).__name__
        super().__init__(message, code, details, severity=ErrorSeverity.USER_ERROR)
        self.path = str(path) if path is not None else None


class ConfigurationFileNotFoundError(ConfigLoadError):
    """Configuration file does not exist."""

    def __init__(self, path: str | Path) -> None:
        super().__init__(
            f"Configuration file not found: {path}", path, code=ErrorCode.FILE_NOT_FOUND
        )


class ConfigurationFileNotReadableError(ConfigLoadError):
    """Configuration file exists but cannot be read."""

    def __init__(self, path: str | Path, cause: Exception | None = None) -> None:
        super().__init__(
            f"Configuration file is not readable: {path}",
            path,
            code=ErrorCode.FILE_NOT_READABLE,
            cause=cause,
        )


# ============================================================================
# Environment Interpolation Errors
# ============================================================================


class EnvExpansionError(QualityToolsError):
    """Raised when environment variable expansion fails."""

    def __init__(
        self,
        message: str,
        variable: str,
        code: ErrorCode,
        severity: ErrorSeverity = ErrorSeverity.SECURITY,
    ) -> None:
        super().__init__(message, code, {"variable": variable}, severity=severity)
        self.variable = variable


class EnvironmentAccessDeniedError(EnvExpansionError):
    """Variable name is outside the interpolation allowlist."""

    def __init__(self, variable: str) -> None:
        super().__init__(
            f'Access to environment variable "{variable}" is not allowed for security reasons',
            variable,
            ErrorCode.ENV_ACCESS_DENIED,
        )


class UnsafeEnvironmentValueError(EnvExpansionError):
    """Variable value failed the content-safety check."""

    def __init__(self, variable: str) -> None:
        super().__init__(
            f'Environment variable "{variable}" contains potentially unsafe content',
            variable,
            ErrorCode.ENV_UNSAFE_VALUE,
        )


class MissingEnvironmentVariableError(EnvExpansionError):
    """Variable is allowed but unset and the reference carries no default."""

    def __init__(self, variable: str) -> None:
        super().__init__(
            f'Environment variable "{variable}" is not set and no default value provided',
            variable,
            ErrorCode.ENV_MISSING,
            severity=ErrorSeverity.USER_ERROR,
        )


# ============================================================================
# Validation Errors
# ============================================================================


class ConfigValidationError(QualityToolsError):
    """The effective configuration does not satisfy the schema."""

    def __init__(self, errors: list[str], subject: str = "merged configuration") -> None:
        self.errors = list(errors)
        lines = "\n".join(f"  - {error}" for error in self.errors)
        super().__init__(
            f"Invalid {subject}:\n{lines}",
            ErrorCode.VALIDATION_ERROR,
            {"errors": self.errors, "key_paths": _key_paths(self.errors)},
            severity=ErrorSeverity.USER_ERROR,
        )


def _key_paths(errors: list[str]) -> list[str]:
    paths = []
    for error in errors:
        path, sep, _ = error.partition(": ")
        if sep and path not in paths:
            paths.append(path)
    return paths


class InvalidOverrideError(QualityToolsError, ValueError):
    """A command-line override is not of the form key.path=value."""

    def __init__(self, assignment: str) -> None:
        super().__init__(
            f"Invalid override '{assignment}', expected key.path=value",
            ErrorCode.INVALID_OVERRIDE,
            {"assignment": assignment},
            severity=ErrorSeverity.USER_ERROR,
        )
        self.assignment = assignment


# ============================================================================
# Internal Errors
# ============================================================================


class InternalError(QualityToolsError):
    """Unexpected condition inside the configuration core."""

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        details = {}
        if cause:
            details["cause"] = str(cause)
            details["cause_type"] = type(cause).__name__
        super().__init__(message, ErrorCode.INTERNAL_ERROR, details, severity=ErrorSeverity.FATAL)


# ============================================================================
# Boundary Translation
# ============================================================================


def to_quality_tools_error(exc: Exception) -> QualityToolsError:
    """
    Translate arbitrary exceptions to QualityToolsError at the CLI boundary.

    Args:
        exc: Any exception

    Returns:
        QualityToolsError instance
    """
    if isinstance(exc, QualityToolsError):
        return exc

    if isinstance(exc, FileNotFoundError):
        return ConfigurationFileNotFoundError(exc.filename or str(exc))
    if isinstance(exc, PermissionError):
        return ConfigurationFileNotReadableError(exc.filename or str(exc), cause=exc)
    return InternalError(message=f"Unexpected error: {exc}", cause=exc)
