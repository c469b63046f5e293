"""Production hardening utilities for FeedPulse.

Provides retry logic for calls to external services, user-friendly
error formatting, and input validation at the ingestion boundary.
"""

from __future__ import annotations

import json
import logging
import re
import sqlite3
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# 1. Retry Logic
# ---------------------------------------------------------------------------

# requests.RequestException derives from IOError, so HTTP transport
# failures are covered by the defaults.
_DEFAULT_RETRYABLE = (IOError, OSError, TimeoutError, ConnectionError)


@dataclass
class RetryConfig:
    """Configuration for retry-with-backoff behavior.

    Attributes:
        max_attempts: Total number of attempts (including the first).
        base_delay: Initial delay in seconds before first retry.
        max_delay: Upper bound on delay between retries.
        exponential_backoff: Double delay on each retry when True.
        retryable_exceptions: Tuple of exception types that trigger a retry.
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    exponential_backoff: bool = True
    retryable_exceptions: tuple[type[BaseException], ...] = _DEFAULT_RETRYABLE


class RetriesExhaustedError(Exception):
    """Raised when all retry attempts have been exhausted.

    Attributes:
        last_error: The final exception that caused the failure.
        attempts: Total number of attempts made.
    """

    def __init__(self, last_error: Exception, attempts: int) -> None:
        self.last_error = last_error
        self.attempts = attempts
        super().__init__(f"All {attempts} attempts failed. Last error: {last_error}")


def _compute_delay(attempt: int, config: RetryConfig) -> float:
    """Compute the delay before the next retry attempt.

    Args:
        attempt: Zero-based attempt index (0 = first retry).
        config: Retry configuration.

    Returns:
        Delay in seconds, capped at config.max_delay.
    """
    if config.exponential_backoff:
        delay = config.base_delay * (2**attempt)
    else:
        delay = config.base_delay
    return min(delay, config.max_delay)


def retry_with_backoff(
    func: Callable[..., Any],
    config: RetryConfig | None = None,
    *args: Any,
    sleep_func: Callable[[float], None] | None = None,
    **kwargs: Any,
) -> Any:
    """Execute *func* with exponential-backoff retry on transient failures.

    Args:
        func: Callable to invoke.
        config: Retry configuration. Uses defaults when None.
        *args: Positional arguments forwarded to *func*.
        sleep_func: Injectable sleep for testing. Defaults to time.sleep.
        **kwargs: Keyword arguments forwarded to *func*.

    Returns:
        Whatever *func* returns on success.

    Raises:
        RetriesExhaustedError: When all attempts fail with retryable errors.
        Exception: Immediately re-raised for non-retryable errors.
    """
    cfg = config or RetryConfig()
    do_sleep = sleep_func or time.sleep
    last_error: Exception | None = None

    for attempt in range(cfg.max_attempts):
        try:
            return func(*args, **kwargs)
        except cfg.retryable_exceptions as exc:
            last_error = exc
            if attempt < cfg.max_attempts - 1:
                delay = _compute_delay(attempt, cfg)
                logger.warning(
                    "Attempt %d/%d failed (%s). Retrying in %.1fs.",
                    attempt + 1,
                    cfg.max_attempts,
                    exc,
                    delay,
                )
                do_sleep(delay)

    raise RetriesExhaustedError(last_error, cfg.max_attempts)  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# 2. Error Formatting
# ---------------------------------------------------------------------------


@dataclass
class UserFriendlyError:
    """A structured error designed for API consumers.

    Attributes:
        message: Clear description for the user.
        suggestion: Actionable guidance.
        component: Originating subsystem (store, classifier).
        error_code: Machine-readable identifier (e.g. "STOR_003").
        technical_detail: Debugging info for logs only -- never returned.
    """

    message: str
    suggestion: str
    component: str
    error_code: str
    technical_detail: str = ""

    def to_dict(self) -> dict[str, str]:
        """Serialize for API responses (excludes technical_detail).

        Returns:
            Dictionary safe for sending to clients.
        """
        return {
            "message": self.message,
            "suggestion": self.suggestion,
            "component": self.component,
            "error_code": self.error_code,
        }


class ErrorFormatter:
    """Convert internal exceptions to user-friendly messages.

    Never exposes file paths, SQL, or stack traces to the client.
    """

    def format_store_error(self, error: Exception) -> UserFriendlyError:
        """Format a feedback store error.

        Args:
            error: The caught exception.

        Returns:
            User-friendly error with actionable suggestion.
        """
        return self._format(error, component="store", code_prefix="STOR")

    def format_classifier_error(self, error: Exception) -> UserFriendlyError:
        """Format a text classification error.

        Args:
            error: The caught exception.

        Returns:
            User-friendly error with actionable suggestion.
        """
        return self._format(error, component="classifier", code_prefix="CLAS")

    def _format(
        self,
        error: Exception,
        *,
        component: str,
        code_prefix: str,
    ) -> UserFriendlyError:
        message, suggestion, code_suffix = _classify_error(error)
        return UserFriendlyError(
            message=message,
            suggestion=suggestion,
            component=component,
            error_code=f"{code_prefix}_{code_suffix}",
            technical_detail=repr(error),
        )


def _classify_error(error: Exception) -> tuple[str, str, str]:
    """Map an exception to (message, suggestion, code_suffix).

    Args:
        error: The caught exception.

    Returns:
        Tuple of user message, suggestion text, and error code suffix.
    """
    cause = error.__cause__ if isinstance(error.__cause__, Exception) else error

    if isinstance(cause, sqlite3.OperationalError):
        return (
            "The feedback database is unavailable or locked.",
            "Try again shortly. If the problem persists, check the database file.",
            "001",
        )
    if isinstance(cause, sqlite3.IntegrityError):
        return (
            "The record violates a database constraint.",
            "Check the submitted values and try again.",
            "002",
        )
    if isinstance(cause, (TimeoutError, ConnectionError)):
        return (
            "The operation timed out or lost its connection.",
            "Try again. If the problem persists, check network access.",
            "003",
        )
    if isinstance(cause, json.JSONDecodeError):
        return (
            "Stored data contains invalid JSON.",
            "Inspect the affected records or reseed the store.",
            "006",
        )
    if isinstance(cause, ValueError):
        return (
            "Invalid input was provided.",
            "Check the input values and try again.",
            "005",
        )
    return (
        "An unexpected error occurred.",
        "If this keeps happening, please report the issue.",
        "999",
    )


# ---------------------------------------------------------------------------
# 3. Input Validation
# ---------------------------------------------------------------------------

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")

MAX_CONTENT_LENGTH = 5_000


class ValidationError(Exception):
    """Raised when input validation fails."""


class InputValidator:
    """Validate inputs at the ingestion boundary.

    All methods raise ``ValidationError`` on failure.
    """

    def validate_content(
        self,
        value: Any,
        *,
        max_length: int = MAX_CONTENT_LENGTH,
    ) -> str:
        """Clean and validate free-text feedback content.

        Args:
            value: Raw content from the request.
            max_length: Maximum allowed length after cleaning.

        Returns:
            Content with control characters and surrounding whitespace removed.

        Raises:
            ValidationError: If content is missing, not text, empty, or too long.
        """
        if not isinstance(value, str):
            raise ValidationError("content is required")
        cleaned = _strip_control_chars(value).strip()
        if not cleaned:
            raise ValidationError("content is required")
        if len(cleaned) > max_length:
            raise ValidationError(f"content must be at most {max_length} characters")
        return cleaned

    def validate_choice(self, value: Any, choices: list[str], field_name: str) -> str:
        """Check that *value* is one of the allowed string choices.

        Args:
            value: Raw value from the request.
            choices: Allowed values.
            field_name: Name used in the error message.

        Returns:
            The validated value.

        Raises:
            ValidationError: If the value is not an allowed choice.
        """
        if not isinstance(value, str) or value not in choices:
            raise ValidationError(f"{field_name} must be one of: {', '.join(choices)}")
        return value

    def validate_record_id(self, value: Any) -> int:
        """Check that *value* is a positive integer record ID.

        Args:
            value: Raw identifier.

        Returns:
            The identifier as an int.

        Raises:
            ValidationError: If the value is not a positive integer.
        """
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            raise ValidationError("id must be a positive integer")
        return value


def _strip_control_chars(text: str) -> str:
    """Remove ASCII control characters except common whitespace.

    Args:
        text: Input string.

    Returns:
        Cleaned string.
    """
    return _CONTROL_CHARS.sub("", text)
