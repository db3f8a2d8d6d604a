"""SMS Dispatch Exception Hierarchy.

Provides structured error handling with context preservation.
Gateway adapters raise these internally and convert them into
failed SMSResult records at their call boundary.
"""

from __future__ import annotations

from typing import Any


class SMSDispatchError(Exception):
    """Base exception for all SMS dispatch errors.

    Provides:
    - Structured error context
    - Stable error codes for callers
    - Logging-friendly representation
    """

    error_code: str = "SMS_DISPATCH_ERROR"

    def __init__(
        self,
        message: str,
        *,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error message
            details: Additional context for debugging
            cause: Original exception if wrapping
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.cause = cause

    def to_dict(self) -> dict[str, Any]:
        """Convert to API-friendly dictionary."""
        result = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        if self.cause:
            result["cause"] = str(self.cause)
        return result

    def __str__(self) -> str:
        """String representation for logging."""
        parts = [f"{self.error_code}: {self.message}"]
        if self.details:
            parts.append(f"details={self.details}")
        if self.cause:
            parts.append(f"cause={self.cause}")
        return " | ".join(parts)


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(SMSDispatchError):
    """Missing or invalid gateway configuration.

    Raised before any adapter is constructed or any network call is made.
    """

    error_code = "CONFIGURATION_ERROR"


class GatewayNotFoundError(SMSDispatchError):
    """Requested gateway is not registered."""

    error_code = "GATEWAY_NOT_FOUND"


# =============================================================================
# Provider Errors
# =============================================================================


class SMSGatewayError(SMSDispatchError):
    """Base class for errors reported by (or while talking to) a provider."""

    error_code = "SMS_GATEWAY_ERROR"

    def __init__(
        self,
        message: str,
        *,
        provider_status: int | None = None,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, details=details, cause=cause)
        self.provider_status = provider_status


class ConnectivityError(SMSGatewayError):
    """Timeout, DNS or TCP failure before the provider answered."""

    error_code = "CONNECTIVITY_ERROR"


class TransientProviderError(SMSGatewayError):
    """Provider answered with a temporary failure (429, 5xx, 402)."""

    error_code = "TRANSIENT_PROVIDER_ERROR"


class TerminalProviderRejection(SMSGatewayError):
    """Provider permanently rejected the request."""

    error_code = "TERMINAL_PROVIDER_REJECTION"


class GatewayQueryError(SMSGatewayError):
    """Diagnostic query (balance, status) failed."""

    error_code = "GATEWAY_QUERY_ERROR"


# HTTP statuses a provider uses for temporary conditions
TRANSIENT_HTTP_STATUSES = frozenset({402, 429, 500, 502, 503, 504})


def provider_error(message: str, status_code: int | None) -> SMSGatewayError:
    """Build the provider error matching an HTTP status.

    Args:
        message: Raw provider error text
        status_code: HTTP status returned by the provider

    Returns:
        TransientProviderError for temporary statuses,
        TerminalProviderRejection otherwise
    """
    if status_code is not None and status_code in TRANSIENT_HTTP_STATUSES:
        return TransientProviderError(message, provider_status=status_code)
    return TerminalProviderRejection(message, provider_status=status_code)


def wrap_exception(
    exc: Exception,
    wrapper_class: type[SMSDispatchError] = SMSDispatchError,
    message: str | None = None,
    **details: Any,
) -> SMSDispatchError:
    """Wrap a generic exception in an SMSDispatchError.

    Args:
        exc: Original exception to wrap
        wrapper_class: SMSDispatchError subclass to use
        message: Override message (defaults to str(exc))
        **details: Additional context details

    Returns:
        Wrapped SMSDispatchError instance
    """
    return wrapper_class(
        message=message or str(exc),
        details=details or None,
        cause=exc,
    )
