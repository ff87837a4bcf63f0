"""Message-based classification of worker failures into retryable and not."""
from dataclasses import dataclass
from typing import Optional, Tuple, Union

# Checked first: a match here wins over any retryable pattern.
NON_RETRYABLE_PATTERNS: Tuple[str, ...] = (
    "authentication",
    "login",
    "unauthorized",
    "forbidden",
    "invalid",
    "validation",
    "not logged in",
    "purchase",
    "order",
    "payment",
)

RETRYABLE_PATTERNS: Tuple[str, ...] = (
    "timeout",
    "timed out",
    "network",
    "navigation",
    "net::",
    "econnreset",
    "econnrefused",
    "element not found",
    "waiting for selector",
    "page crashed",
    "context destroyed",
    "target closed",
    "socket hang up",
)


@dataclass(frozen=True)
class ErrorClassification:
    """Outcome of classifying a single failure."""

    retryable: bool
    matched_rule: str
    matched_pattern: Optional[str] = None


def error_message(error: Union[BaseException, str, None]) -> str:
    """Return the message used for classification."""
    if error is None:
        return ""
    return str(error)


def classify_error(error: Union[BaseException, str, None]) -> ErrorClassification:
    """
    Classify a failure by inspecting its message.

    Args:
        error: Exception or error message

    Returns:
        ErrorClassification: Retry decision plus the rule that produced it
    """
    haystack = error_message(error).lower()

    pattern = _first_match(haystack, NON_RETRYABLE_PATTERNS)
    if pattern is not None:
        return ErrorClassification(False, "non_retryable", pattern)

    pattern = _first_match(haystack, RETRYABLE_PATTERNS)
    if pattern is not None:
        return ErrorClassification(True, "retryable", pattern)

    # Unknown errors are not retried
    return ErrorClassification(False, "unclassified")


def is_retryable_error(error: Union[BaseException, str, None]) -> bool:
    """
    Check whether a failure is transient and worth another attempt.

    Args:
        error: Exception or error message

    Returns:
        bool: True if the error is retryable, False otherwise
    """
    return classify_error(error).retryable


def _first_match(haystack: str, patterns: Tuple[str, ...]) -> Optional[str]:
    for pattern in patterns:
        if pattern in haystack:
            return pattern
    return None
