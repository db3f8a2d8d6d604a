"""Core building blocks: errors and logging."""

from sms_dispatch.core.exceptions import (
    SMSDispatchError,
    ConfigurationError,
    GatewayNotFoundError,
    SMSGatewayError,
    ConnectivityError,
    TransientProviderError,
    TerminalProviderRejection,
    GatewayQueryError,
    provider_error,
    wrap_exception,
)
from sms_dispatch.core.logging import get_logger, setup_logging

__all__ = [
    # Exceptions
    "SMSDispatchError",
    "ConfigurationError",
    "GatewayNotFoundError",
    "SMSGatewayError",
    "ConnectivityError",
    "TransientProviderError",
    "TerminalProviderRejection",
    "GatewayQueryError",
    "provider_error",
    "wrap_exception",
    # Logging
    "get_logger",
    "setup_logging",
]
