"""
Custom Exceptions Module

Defines application-specific exceptions for clearer error handling.
All exceptions inherit from a base CaptchaRelayError for easy catching.

Usage:
    from utils.exceptions import CaptchaError, ServiceUnreachable

    try:
        token = await client.solve(site_key, page_url)
    except CaptchaError as e:
        logger.error(f"Solve failed: {e}")
"""

from typing import Optional, Dict, Any


class CaptchaRelayError(Exception):
    """
    Base exception for all Captcha Relay application errors.

    Attributes:
        message: Human-readable error message
        details: Additional error details (optional)
        status_code: HTTP status code to return (optional)
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 500
    ):
        self.message = message
        self.details = details or {}
        self.status_code = status_code
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "details": self.details
        }


# =============================================================================
# Request Validation
# =============================================================================

class InvalidRequestError(CaptchaRelayError):
    """
    Raised when caller input is rejected before any work is done.

    Common causes:
        - Non-http(s) or internal page URL
        - Empty or malformed site key
    """

    def __init__(
        self,
        message: str = "Invalid request",
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            details={"field": field, **(details or {})},
            status_code=422
        )


class MissingApiKey(CaptchaRelayError):
    """Raised when the solving service key is not configured."""

    def __init__(self, message: str = "CAPTCHA solving API key is not configured"):
        super().__init__(message=message, status_code=503)


# =============================================================================
# CAPTCHA Solving Exceptions
# =============================================================================

class CaptchaError(CaptchaRelayError):
    """
    Base for failures while obtaining a solution token.

    Attributes:
        task_id: Remote task handle, when one was issued
    """

    default_message = "CAPTCHA solving failed"
    default_status = 502

    def __init__(
        self,
        message: Optional[str] = None,
        task_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.task_id = task_id
        super().__init__(
            message=message or self.default_message,
            details={"task_id": task_id, **(details or {})},
            status_code=self.default_status
        )


class ServiceUnreachable(CaptchaError):
    """
    Raised when a request to the solving service cannot complete.

    Common causes:
        - DNS/connection failure
        - Request timeout
        - Non-JSON response body
    """
    default_message = "CAPTCHA solving service is unreachable"
    default_status = 502


class NoHandleReturned(CaptchaError):
    """Raised when createTask succeeds but the response carries no taskId."""
    default_message = "Solving service did not return a task id"
    default_status = 502


class TaskFailed(CaptchaError):
    """Raised when the service reports an error or a failed task."""
    default_message = "Solving service reported failure"
    default_status = 422


class NoSolutionFound(CaptchaError):
    """Raised when a task is reported ready but the solution is empty."""
    default_message = "Task is ready but no solution token was returned"
    default_status = 422


class SolveTimeout(CaptchaError):
    """Raised when polling exceeds the attempt or time limit."""
    default_message = "Timed out waiting for CAPTCHA solution"
    default_status = 504


class SolveCancelled(CaptchaError):
    """Raised when the caller's cancel signal stops polling."""
    default_message = "CAPTCHA solve was cancelled"
    default_status = 499


class TaskHandleReused(CaptchaError):
    """Raised when polling a task handle that already finished."""
    default_message = "Task handle has already finished"
    default_status = 409
