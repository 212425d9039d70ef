"""
Error taxonomy for edge-adapter.

Four failure families exist below the user handler:

- platform-undetectable: no platform signal matched; fatal to the request
- capability-unavailable: an optional native module or store is missing;
  always recovered locally as an absent value
- handler errors: anything the user handler raises; caught once by the
  dispatcher and turned into a 500 response
- emission errors: a log sink or a fetch option translation step failed;
  isolated per target / per call
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .types import Response


class ErrorCode(str, Enum):
    """Standardized error codes for the adapter."""

    # Platform errors (1xxx)
    PLATFORM_ERROR = "ERR_1000"
    PLATFORM_UNDETECTABLE = "ERR_1001"

    # Capability errors (2xxx)
    CAPABILITY_UNAVAILABLE = "ERR_2000"
    SECRET_LOOKUP_FAILED = "ERR_2001"

    # Handler errors (3xxx)
    HANDLER_ERROR = "ERR_3000"

    # Emission errors (4xxx)
    EMISSION_ERROR = "ERR_4000"
    LOG_SINK_ERROR = "ERR_4001"
    FETCH_OPTION_ERROR = "ERR_4002"

    # Configuration errors (6xxx)
    CONFIG_ERROR = "ERR_6000"
    INVALID_CONFIG = "ERR_6001"
    INVALID_CACHE_MODE = "ERR_6002"

    # Internal errors (9xxx)
    INTERNAL_ERROR = "ERR_9000"


@dataclass
class ErrorContext:
    """Structured context for error debugging."""

    request_id: str | None = None
    transaction_id: str | None = None
    platform: str | None = None
    operation: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "request_id": self.request_id,
            "transaction_id": self.transaction_id,
            "platform": self.platform,
            "operation": self.operation,
            **self.extra,
        }


class EdgeAdapterError(Exception):
    """
    Base exception for all adapter errors.

    Attributes:
        code: Standardized error code for programmatic handling
        message: Human-readable error message
        context: Structured debugging context
        cause: Original exception that caused this error
    """

    code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.context = context or ErrorContext()
        self.cause = cause

    def __str__(self) -> str:
        parts = [f"[{self.code.value}] {self.message}"]
        if self.context.request_id:
            parts.append(f"(request_id={self.context.request_id})")
        return " ".join(parts)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code.value,
            "message": self.message,
            "context": self.context.to_dict(),
            "cause": str(self.cause) if self.cause else None,
        }


# =============================================================================
# Platform Errors
# =============================================================================


class PlatformError(EdgeAdapterError):
    """Base class for platform detection errors."""

    code = ErrorCode.PLATFORM_ERROR


class PlatformNotDetectedError(PlatformError):
    """No platform signal matched the inbound event."""

    code = ErrorCode.PLATFORM_UNDETECTABLE

    def __init__(self, message: str = "Unknown platform", **kwargs):
        super().__init__(message, **kwargs)


# =============================================================================
# Capability Errors
# =============================================================================


class CapabilityUnavailableError(EdgeAdapterError):
    """A required native module could not be loaded."""

    code = ErrorCode.CAPABILITY_UNAVAILABLE

    def __init__(
        self,
        message: str = "Capability unavailable",
        *,
        module_name: str | None = None,
        **kwargs,
    ):
        if module_name and message == "Capability unavailable":
            message = f"Cannot find module '{module_name}'"
        super().__init__(message, **kwargs)
        self.module_name = module_name


class SecretLookupError(EdgeAdapterError):
    """A secret store lookup failed. Never surfaced to user code."""

    code = ErrorCode.SECRET_LOOKUP_FAILED

    def __init__(
        self,
        message: str = "Secret lookup failed",
        *,
        store: str | None = None,
        key: str | None = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.store = store
        self.key = key


# =============================================================================
# Handler Errors
# =============================================================================


class HandlerError(EdgeAdapterError):
    """Wraps an exception raised by the user handler."""

    code = ErrorCode.HANDLER_ERROR

    @classmethod
    def wrap(cls, exc: BaseException, *, context: ErrorContext | None = None) -> HandlerError:
        if isinstance(exc, HandlerError):
            return exc
        return cls(_message_of(exc), context=context, cause=exc)


# =============================================================================
# Emission Errors
# =============================================================================


class EmissionError(EdgeAdapterError):
    """Base class for secondary emission failures (logs, fetch options)."""

    code = ErrorCode.EMISSION_ERROR


class LogSinkError(EmissionError):
    """A native log sink could not be constructed or written to."""

    code = ErrorCode.LOG_SINK_ERROR

    def __init__(
        self,
        message: str = "Log sink failed",
        *,
        target: str | None = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.target = target


class FetchOptionError(EmissionError):
    """A fetch option could not be translated and was dropped."""

    code = ErrorCode.FETCH_OPTION_ERROR


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigError(EdgeAdapterError):
    """Base class for configuration errors."""

    code = ErrorCode.CONFIG_ERROR


class InvalidConfigError(ConfigError):
    """Configuration is invalid."""

    code = ErrorCode.INVALID_CONFIG


class InvalidCacheModeError(ConfigError, ValueError):
    """A cache directive was constructed with an unknown mode."""

    code = ErrorCode.INVALID_CACHE_MODE

    def __init__(self, mode: Any, **kwargs):
        super().__init__(
            f"Invalid cache mode: {mode!r}. Must be one of 'override', 'pass', 'none'",
            **kwargs,
        )
        self.mode = mode


# =============================================================================
# Utilities
# =============================================================================


def _message_of(exc: BaseException) -> str:
    if isinstance(exc, EdgeAdapterError):
        return exc.message
    return str(exc) or exc.__class__.__name__


def error_response(exc: BaseException) -> Response:
    """
    Build the dispatcher's failure response for an exception.

    The body carries only the error message, never the traceback.
    """
    from .types import Response

    if isinstance(exc, PlatformNotDetectedError):
        return Response(exc.message, status=500, headers={"content-type": "text/plain; charset=utf-8"})
    return Response(
        f"Error: {_message_of(exc)}",
        status=500,
        headers={"content-type": "text/plain; charset=utf-8"},
    )


__all__ = [
    # Base
    "ErrorCode",
    "ErrorContext",
    "EdgeAdapterError",
    # Platform errors
    "PlatformError",
    "PlatformNotDetectedError",
    # Capability errors
    "CapabilityUnavailableError",
    "SecretLookupError",
    # Handler errors
    "HandlerError",
    # Emission errors
    "EmissionError",
    "LogSinkError",
    "FetchOptionError",
    # Config errors
    "ConfigError",
    "InvalidConfigError",
    "InvalidCacheModeError",
    # Utilities
    "error_response",
]
