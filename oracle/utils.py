"""
Utility functions for the market-resolution oracle.

This module provides shared helper utilities used across the codebase.
All functions are pure helpers with no domain logic.
"""

import logging
import math
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Generic, Optional, TypeVar, Union

# Configure module logger
logger = logging.getLogger(__name__)

# Type variable for generic function typing
T = TypeVar('T')


@dataclass(frozen=True)
class Succeeded(Generic[T]):
    """Outcome of a retried call that eventually returned a value."""
    value: T
    attempts: int


@dataclass(frozen=True)
class Exhausted:
    """Outcome of a retried call that failed on every attempt."""
    error: Exception
    attempts: int


RetryOutcome = Union[Succeeded[T], Exhausted]


def linear_backoff(step_seconds: float) -> Callable[[int], float]:
    """
    Build a delay function growing linearly with the attempt number.

    Args:
        step_seconds: Delay after the first failed attempt

    Returns:
        Function mapping a 1-based attempt number to a delay in seconds
    """
    return lambda attempt: step_seconds * attempt


def retry_with_backoff(
    func: Callable[[], T],
    max_attempts: int,
    delay: Callable[[int], float],
    exceptions: tuple = (Exception,),
    label: str = "call"
) -> RetryOutcome:
    """
    Call ``func`` until it succeeds or ``max_attempts`` calls have failed.

    Only exceptions listed in ``exceptions`` are retried; anything else
    propagates immediately. No delay follows the final failed attempt.

    Args:
        func: Zero-argument callable to invoke
        max_attempts: Total number of calls allowed (at least 1)
        delay: Maps the 1-based number of the failed attempt to a sleep in seconds
        exceptions: Tuple of exceptions to catch and retry on
        label: Name used in log messages

    Returns:
        Succeeded with the value and attempt count, or Exhausted with the last error

    Example:
        outcome = retry_with_backoff(fetch, max_attempts=3, delay=linear_backoff(0.5))
        if isinstance(outcome, Succeeded):
            use(outcome.value)
    """
    attempts = max(1, max_attempts)
    last_exception: Optional[Exception] = None

    for attempt in range(1, attempts + 1):
        try:
            return Succeeded(value=func(), attempts=attempt)

        except exceptions as e:
            last_exception = e

            if attempt < attempts:
                wait = delay(attempt)
                logger.warning(
                    f"{label} failed (attempt {attempt}/{attempts}): {e}. "
                    f"Retrying in {wait:.2f}s..."
                )
                time.sleep(wait)
            else:
                logger.error(f"{label} failed after {attempts} attempts: {e}")

    return Exhausted(error=last_exception, attempts=attempts)


def current_utc_timestamp() -> str:
    """
    Get current UTC timestamp as ISO 8601 string.

    Returns:
        ISO 8601 formatted timestamp string (e.g., "2024-01-15T10:30:45.123456+00:00")
    """
    return datetime.now(timezone.utc).isoformat()


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse an ISO 8601 string or datetime into an aware UTC datetime.

    Naive values are assumed to be UTC. A trailing "Z" is accepted.

    Args:
        value: ISO 8601 string, datetime, or None

    Returns:
        Aware datetime, or None if the value is missing or unparsable
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            logger.debug(f"Unparsable timestamp: {value!r}")
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)

    return parsed


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    """Format a datetime as ISO 8601, passing None through."""
    if value is None:
        return None
    return value.isoformat()


def is_finite_number(value: Any) -> bool:
    """True for int/float values that are finite; bools are not numbers here."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        return False


def extract_json_text(text: str) -> Optional[str]:
    """
    Extract a JSON object from response text, handling markdown code blocks.

    Args:
        text: Raw response text

    Returns:
        Text between the first "{" and the last "}", or None if empty
    """
    if not text or not isinstance(text, str):
        return None

    text = text.strip()

    # Remove markdown code blocks
    if text.startswith("```json"):
        text = text[7:]
    elif text.startswith("```"):
        text = text[3:]

    if text.endswith("```"):
        text = text[:-3]

    text = text.strip()

    first_brace = text.find("{")
    last_brace = text.rfind("}")

    if first_brace != -1 and last_brace != -1 and last_brace > first_brace:
        text = text[first_brace:last_brace + 1]

    return text if text else None
