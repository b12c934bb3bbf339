"""
Utilities Module

Provides shared utilities across the application:
- Logging configuration
- Custom exceptions
- Rate limiting
- Input sanitization
"""

from .logging import get_logger, setup_logging, log_api_call, mask_token
from .exceptions import (
    CaptchaRelayError,
    InvalidRequestError,
    MissingApiKey,
    CaptchaError,
    ServiceUnreachable,
    NoHandleReturned,
    TaskFailed,
    NoSolutionFound,
    SolveTimeout,
    SolveCancelled,
    TaskHandleReused,
)
from .sanitize import validate_page_url, sanitize_site_key

__all__ = [
    # Logging
    "get_logger",
    "setup_logging",
    "log_api_call",
    "mask_token",
    # Exceptions
    "CaptchaRelayError",
    "InvalidRequestError",
    "MissingApiKey",
    "CaptchaError",
    "ServiceUnreachable",
    "NoHandleReturned",
    "TaskFailed",
    "NoSolutionFound",
    "SolveTimeout",
    "SolveCancelled",
    "TaskHandleReused",
    # Sanitization
    "validate_page_url",
    "sanitize_site_key",
]
