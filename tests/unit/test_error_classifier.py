"""Unit tests for the error classifier."""
import pytest
from cartpilot.core.exceptions import WorkerTimeoutError
from cartpilot.services.error_classifier import classify_error, is_retryable_error


class TestIsRetryableError:
    """Test retry decisions by message inspection."""

    @pytest.mark.parametrize("message", [
        "Navigation timeout of 30000 ms exceeded",
        "Request timed out",
        "Network error while loading page",
        "net::ERR_CONNECTION_RESET",
        "read ECONNRESET",
        "connect ECONNREFUSED 127.0.0.1:443",
        "Element not found: #cart",
        "Error while waiting for selector .product",
        "Page crashed!",
        "Execution context destroyed",
        "Target closed",
        "socket hang up",
    ])
    def test_transient_errors_are_retryable(self, message):
        """Test transient failures are retried."""
        assert is_retryable_error(Exception(message)) is True

    @pytest.mark.parametrize("message", [
        "Authentication required",
        "Login page shown",
        "401 Unauthorized",
        "403 Forbidden",
        "Invalid product id",
        "Validation failed for cart",
        "User not logged in",
        "Purchase blocked",
        "Order could not be loaded",
        "Payment declined",
    ])
    def test_permanent_errors_are_not_retryable(self, message):
        """Test permanent failures are never retried."""
        assert is_retryable_error(Exception(message)) is False

    def test_non_retryable_wins_over_retryable(self):
        """Test a message matching both lists is not retried."""
        assert is_retryable_error("Login timed out") is False
        assert is_retryable_error("network error loading order history") is False

    def test_unknown_error_is_not_retryable(self):
        """Test unclassified messages are not retried."""
        assert is_retryable_error("Something odd happened") is False

    def test_case_insensitive(self):
        """Test matching ignores case."""
        assert is_retryable_error("TIMEOUT") is True
        assert is_retryable_error("UNAUTHORIZED") is False

    def test_accepts_string_and_none(self):
        """Test strings and None are accepted."""
        assert is_retryable_error("socket hang up") is True
        assert is_retryable_error(None) is False

    def test_worker_timeout_error_is_retryable(self):
        """Test the engine's own timeout error is retried."""
        assert is_retryable_error(WorkerTimeoutError("slot_scout", 500)) is True


class TestClassifyError:
    """Test classification details used for logging."""

    def test_retryable_match(self):
        """Test a retryable match reports its pattern."""
        result = classify_error("connect ECONNREFUSED")

        assert result.retryable is True
        assert result.matched_rule == "retryable"
        assert result.matched_pattern == "econnrefused"

    def test_non_retryable_match(self):
        """Test a non-retryable match reports its pattern."""
        result = classify_error(Exception("Payment declined"))

        assert result.retryable is False
        assert result.matched_rule == "non_retryable"
        assert result.matched_pattern == "payment"

    def test_unclassified(self):
        """Test no match is reported as unclassified."""
        result = classify_error("boom")

        assert result.retryable is False
        assert result.matched_rule == "unclassified"
        assert result.matched_pattern is None
