"""Transient error retry with exponential backoff and jitter.

Wraps the inference call, which is the only step of a scenario worth
retrying blindly. Handles timeouts, connection failures, and HTTP
status codes that are likely transient.
"""

from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable
from typing import Any

import httpx
import openai

# Exception types considered transient (network-level issues)
TRANSIENT_EXCEPTIONS: tuple[type[Exception], ...] = (
    TimeoutError,
    ConnectionError,
    httpx.TransportError,
    openai.APIConnectionError,
)

# HTTP status codes considered transient (rate-limit, server errors)
TRANSIENT_STATUS_CODES: frozenset[int] = frozenset({408, 429, 500, 502, 503, 504})


def _is_transient(exc: Exception) -> bool:
    """Check if an exception represents a transient error.

    Matches against known transient exception types, then checks
    for HTTP status code attributes set by SDK exceptions.
    """
    if isinstance(exc, TRANSIENT_EXCEPTIONS):
        return True

    status = getattr(exc, "status_code", None) or getattr(exc, "status", None)
    return status is not None and status in TRANSIENT_STATUS_CODES


async def retry_with_backoff(
    coro_factory: Callable[[], Awaitable[Any]],
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
) -> tuple[Any, int, list[str]]:
    """Execute a coroutine with retry on transient errors.

    Uses exponential backoff with full jitter. Returns
    (result, retries_used, error_types) on success.

    Args:
        coro_factory: Callable that creates a new awaitable each call.
        max_retries: Maximum number of retries (total calls = max_retries + 1).
        base_delay: Initial backoff delay in seconds.
        max_delay: Maximum backoff delay cap in seconds.

    Raises:
        Exception: The last exception if non-transient or retries are exhausted.
    """
    error_types: list[str] = []

    for attempt in range(max_retries + 1):
        try:
            result = await coro_factory()
            return (result, attempt, error_types)
        except Exception as exc:
            if not _is_transient(exc) or attempt == max_retries:
                raise
            error_types.append(type(exc).__name__)
            delay = min(base_delay * (2**attempt), max_delay)
            await asyncio.sleep(random.uniform(0, delay))  # noqa: S311

    raise RuntimeError("Retry loop exited unexpectedly")  # pragma: no cover
