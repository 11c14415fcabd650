"""
src/openai_retry.py
====================
Shared OpenAI API retry utility — VoicePrep

Wraps any OpenAI SDK call and retries it on transient failures (429
rate-limit, 5xx server errors, connection problems and timeouts) with
exponential back-off.

Usage::

    from src.openai_retry import call_with_retry

    response = call_with_retry(
        client.audio.transcriptions.create,
        model="whisper-1",
        file=audio_file,
    )

This module does NOT:
    - Create or manage OpenAI client instances
    - Retry non-transient errors (bad request, auth, missing model)
"""

import logging
import time
from typing import Any, Callable

logger = logging.getLogger("voiceprep.openai_retry")

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

MAX_RETRIES: int = 4          # total attempts = MAX_RETRIES + 1 (initial)
BASE_DELAY: float = 1.0       # seconds — first back-off delay
MAX_DELAY: float = 30.0       # cap so we don't wait forever
BACKOFF_FACTOR: float = 2.0   # exponential multiplier

# HTTP status codes worth retrying on
_RETRYABLE_STATUS_CODES: set[int] = {429, 500, 502, 503, 504}
_RETRYABLE_EXCEPTION_NAMES = {"RateLimitError", "APITimeoutError", "APIConnectionError"}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _is_retryable(exc: Exception) -> bool:
    """Return True if the exception is a transient OpenAI error."""
    if type(exc).__name__ in _RETRYABLE_EXCEPTION_NAMES:
        return True

    # Generic APIStatusError — check for retryable status codes
    status_code = getattr(exc, "status_code", None)
    if isinstance(status_code, int):
        return status_code in _RETRYABLE_STATUS_CODES

    return False


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def call_with_retry(
    fn: Callable[..., Any],
    *args: Any,
    sleep: Callable[[float], None] | None = None,
    **kwargs: Any,
) -> Any:
    """
    Call ``fn(*args, **kwargs)`` with automatic retry.

    Retries up to ``MAX_RETRIES`` times on transient errors using
    exponential back-off. Non-retryable errors are re-raised immediately.
    ``sleep`` defaults to time.sleep.

    Raises:
        The last exception if all retries are exhausted.
    """
    last_exc: Exception | None = None
    delay = BASE_DELAY

    for attempt in range(MAX_RETRIES + 1):
        try:
            return fn(*args, **kwargs)
        except Exception as exc:
            last_exc = exc

            if not _is_retryable(exc):
                logger.warning(
                    "OpenAI call failed with non-retryable error: %s", exc,
                )
                raise

            if attempt < MAX_RETRIES:
                logger.warning(
                    "OpenAI call failed (attempt %d/%d): %s — retrying in %.1fs",
                    attempt + 1,
                    MAX_RETRIES + 1,
                    exc,
                    delay,
                )
                (sleep or time.sleep)(delay)
                delay = min(delay * BACKOFF_FACTOR, MAX_DELAY)
            else:
                logger.error(
                    "OpenAI call failed after %d attempts: %s",
                    MAX_RETRIES + 1,
                    exc,
                )

    # All retries exhausted
    raise last_exc  # type: ignore[misc]
