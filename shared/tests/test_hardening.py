"""Tests for shared.hardening production hardening utilities.

Covers the three components: retry logic, error formatting, and input
validation at the ingestion boundary.
"""

from __future__ import annotations

import json
import sqlite3

import pytest

from shared.hardening import (
    MAX_CONTENT_LENGTH,
    ErrorFormatter,
    InputValidator,
    RetriesExhaustedError,
    RetryConfig,
    UserFriendlyError,
    ValidationError,
    _classify_error,
    _compute_delay,
    _strip_control_chars,
    retry_with_backoff,
)

# =========================================================================
# 1. Retry Logic
# =========================================================================


class TestRetryConfig:
    """Tests for RetryConfig dataclass defaults and overrides."""

    def test_default_values(self) -> None:
        """Default config has sensible production values."""
        cfg = RetryConfig()
        assert cfg.max_attempts == 3
        assert cfg.base_delay == 1.0
        assert cfg.max_delay == 30.0
        assert cfg.exponential_backoff is True
        assert OSError in cfg.retryable_exceptions

    def test_custom_values(self) -> None:
        """Overriding defaults works correctly."""
        cfg = RetryConfig(max_attempts=5, base_delay=0.5, retryable_exceptions=(ValueError,))
        assert cfg.max_attempts == 5
        assert cfg.base_delay == 0.5
        assert cfg.retryable_exceptions == (ValueError,)


class TestComputeDelay:
    """Tests for the delay computation helper."""

    def test_exponential_backoff_doubles(self) -> None:
        """Each retry doubles the previous delay."""
        cfg = RetryConfig(base_delay=0.5)
        assert [_compute_delay(i, cfg) for i in range(3)] == [0.5, 1.0, 2.0]

    def test_delay_capped_at_max(self) -> None:
        """Delay never exceeds max_delay."""
        cfg = RetryConfig(base_delay=1.0, max_delay=5.0)
        assert _compute_delay(10, cfg) == 5.0

    def test_linear_backoff(self) -> None:
        """Without exponential backoff the delay stays constant."""
        cfg = RetryConfig(base_delay=2.0, exponential_backoff=False)
        assert _compute_delay(3, cfg) == 2.0


class TestRetryWithBackoff:
    """Tests for the retry_with_backoff function."""

    def test_succeeds_on_first_attempt(self) -> None:
        """No retries needed when func succeeds immediately."""
        assert retry_with_backoff(lambda: 42, sleep_func=lambda _: None) == 42

    def test_succeeds_after_transient_failure(self) -> None:
        """Retries on ConnectionError and eventually succeeds."""
        call_count = 0

        def flaky() -> str:
            nonlocal call_count
            call_count += 1
            if call_count < 2:
                raise ConnectionError("reset by peer")
            return "ok"

        assert retry_with_backoff(flaky, sleep_func=lambda _: None) == "ok"
        assert call_count == 2

    def test_raises_retries_exhausted(self) -> None:
        """Raises RetriesExhaustedError when all attempts fail."""
        cfg = RetryConfig(max_attempts=2)

        with pytest.raises(RetriesExhaustedError) as exc_info:
            retry_with_backoff(
                lambda: (_ for _ in ()).throw(TimeoutError("slow")),
                config=cfg,
                sleep_func=lambda _: None,
            )

        assert exc_info.value.attempts == 2
        assert isinstance(exc_info.value.last_error, TimeoutError)

    def test_non_retryable_exception_raised_immediately(self) -> None:
        """ValueError is not retryable by default and raises at once."""
        call_count = 0

        def bad() -> None:
            nonlocal call_count
            call_count += 1
            raise ValueError("bad input")

        with pytest.raises(ValueError, match="bad input"):
            retry_with_backoff(bad, sleep_func=lambda _: None)

        assert call_count == 1

    def test_sleep_called_between_retries(self) -> None:
        """Sleep function is invoked with the backoff delays."""
        delays: list[float] = []
        cfg = RetryConfig(max_attempts=3, base_delay=1.0)

        with pytest.raises(RetriesExhaustedError):
            retry_with_backoff(
                lambda: (_ for _ in ()).throw(OSError("down")),
                config=cfg,
                sleep_func=delays.append,
            )

        assert delays == [1.0, 2.0]

    def test_passes_args_and_kwargs(self) -> None:
        """Positional and keyword arguments are forwarded."""

        def add(a: int, b: int, extra: int = 0) -> int:
            return a + b + extra

        assert retry_with_backoff(add, None, 2, 3, sleep_func=lambda _: None, extra=10) == 15


# =========================================================================
# 2. Error Formatting
# =========================================================================


class TestUserFriendlyError:
    """Tests for UserFriendlyError dataclass."""

    def test_to_dict_excludes_technical_detail(self) -> None:
        """to_dict never includes technical_detail."""
        err = UserFriendlyError(
            message="Something failed.",
            suggestion="Try again.",
            component="store",
            error_code="STOR_001",
            technical_detail="OperationalError at /var/lib/feedpulse.db",
        )
        d = err.to_dict()
        assert set(d) == {"message", "suggestion", "component", "error_code"}
        assert d["error_code"] == "STOR_001"


class TestClassifyError:
    """Tests for the internal _classify_error helper."""

    @pytest.mark.parametrize(
        "exc,expected_suffix",
        [
            (sqlite3.OperationalError("database is locked"), "001"),
            (sqlite3.IntegrityError("CHECK constraint failed"), "002"),
            (TimeoutError("slow"), "003"),
            (ConnectionError("refused"), "003"),
            (json.JSONDecodeError("bad", "doc", 0), "006"),
            (ValueError("nope"), "005"),
            (RuntimeError("surprise"), "999"),
        ],
    )
    def test_known_exception_types(self, exc: Exception, expected_suffix: str) -> None:
        """Each known exception maps to a specific code suffix."""
        _msg, _sug, suffix = _classify_error(exc)
        assert suffix == expected_suffix

    def test_uses_chained_cause(self) -> None:
        """A wrapping exception is classified by its __cause__."""
        try:
            try:
                raise sqlite3.OperationalError("disk I/O error")
            except sqlite3.OperationalError as inner:
                raise RuntimeError("Query failed") from inner
        except RuntimeError as outer:
            _, _, suffix = _classify_error(outer)
        assert suffix == "001"


class TestErrorFormatter:
    """Tests for ErrorFormatter methods."""

    def setup_method(self) -> None:
        """Create a formatter for each test."""
        self.fmt = ErrorFormatter()

    def test_format_store_error(self) -> None:
        """Store errors carry the STOR prefix and store component."""
        err = self.fmt.format_store_error(sqlite3.IntegrityError("constraint"))
        assert err.error_code == "STOR_002"
        assert err.component == "store"

    def test_format_classifier_error(self) -> None:
        """Classifier errors carry the CLAS prefix."""
        err = self.fmt.format_classifier_error(TimeoutError("timed out"))
        assert err.error_code == "CLAS_003"
        assert err.component == "classifier"

    def test_message_has_no_internal_detail(self) -> None:
        """User-facing message never echoes the raw exception text."""
        err = self.fmt.format_store_error(sqlite3.OperationalError("/srv/secret.db locked"))
        assert "/srv/secret.db" not in err.message
        assert "/srv/secret.db" in err.technical_detail


# =========================================================================
# 3. Input Validation
# =========================================================================


class TestInputValidator:
    """Tests for InputValidator."""

    def setup_method(self) -> None:
        """Create a validator for each test."""
        self.v = InputValidator()

    def test_content_trimmed(self) -> None:
        """Surrounding whitespace is removed."""
        assert self.v.validate_content("  slow builds \n") == "slow builds"

    def test_content_control_chars_removed(self) -> None:
        """Control characters are stripped but newlines and tabs stay."""
        assert self.v.validate_content("bad\x00 deploy\x07\nagain") == "bad deploy\nagain"

    @pytest.mark.parametrize("value", [None, "", "   ", "\x00\x01", 42, ["text"]])
    def test_content_missing(self, value: object) -> None:
        """Missing, blank, or non-text content is rejected."""
        with pytest.raises(ValidationError, match="content is required"):
            self.v.validate_content(value)

    def test_content_too_long(self) -> None:
        """Content longer than the limit is rejected."""
        with pytest.raises(ValidationError, match=str(MAX_CONTENT_LENGTH)):
            self.v.validate_content("x" * (MAX_CONTENT_LENGTH + 1))

    def test_content_custom_limit(self) -> None:
        """The length limit can be overridden."""
        assert self.v.validate_content("abc", max_length=3) == "abc"
        with pytest.raises(ValidationError):
            self.v.validate_content("abcd", max_length=3)

    def test_choice_accepted(self) -> None:
        """An allowed value is returned unchanged."""
        assert self.v.validate_choice("github", ["github", "discord"], "source") == "github"

    @pytest.mark.parametrize("value", ["email", "", None, 1, "GitHub"])
    def test_choice_rejected(self, value: object) -> None:
        """Values outside the allowed set are rejected with the field name."""
        with pytest.raises(ValidationError, match="source must be one of: github, discord"):
            self.v.validate_choice(value, ["github", "discord"], "source")

    def test_record_id_accepted(self) -> None:
        """Positive integers are valid IDs."""
        assert self.v.validate_record_id(7) == 7

    @pytest.mark.parametrize("value", [0, -1, True, "3", 2.0, None])
    def test_record_id_rejected(self, value: object) -> None:
        """Non-positive, boolean, and non-integer IDs are rejected."""
        with pytest.raises(ValidationError):
            self.v.validate_record_id(value)


class TestStripControlChars:
    """Tests for the control character stripper."""

    def test_keeps_common_whitespace(self) -> None:
        """Tabs, newlines, and carriage returns survive."""
        assert _strip_control_chars("a\tb\r\nc") == "a\tb\r\nc"

    def test_removes_delete_char(self) -> None:
        """DEL (0x7f) is removed."""
        assert _strip_control_chars("a\x7fb") == "ab"
