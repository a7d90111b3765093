import asyncio
import logging
import ssl
from functools import wraps
from typing import Callable, Tuple, Type

import httpx

logger = logging.getLogger("Utils")

# Network errors, timeouts and transient server failures
RETRYABLE_EXCEPTIONS = (
    httpx.ConnectError,
    httpx.TimeoutException,
    httpx.HTTPStatusError,
    httpx.RemoteProtocolError,  # Server disconnected, malformed responses
    httpx.NetworkError,
    ConnectionResetError,
    ConnectionAbortedError,
    ConnectionRefusedError,
    ssl.SSLError,
)


def retry_on_error(
    max_retries: int = 3,
    backoff_factor: float = 2.0,
    base_delay: float = 1.0,
    exceptions: Tuple[Type[Exception], ...] = RETRYABLE_EXCEPTIONS
):
    """
    Decorator to retry async functions on specific exceptions.
    Handles rate limiting with exponential backoff.
    """
    def decorator(func: Callable):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            last_exception = None
            for attempt in range(max_retries):
                try:
                    return await func(*args, **kwargs)
                except exceptions as e:
                    last_exception = e
                    # Don't retry 4xx client errors (except 429 Too Many Requests)
                    if isinstance(e, httpx.HTTPStatusError):
                        if e.response.status_code < 500 and e.response.status_code != 429:
                            raise e

                    if attempt == max_retries - 1:
                        break

                    wait_time = base_delay * backoff_factor ** attempt
                    if isinstance(e, httpx.HTTPStatusError) and e.response.status_code == 429:
                        wait_time *= 5
                        logger.warning(f"Rate limit hit in {func.__name__}. Retrying in {wait_time}s...")
                    else:
                        logger.warning(f"Transient error in {func.__name__}: {e}. Retrying in {wait_time}s...")
                    await asyncio.sleep(wait_time)

            raise last_exception
        return wrapper
    return decorator


def chunked(items: list, size: int):
    """Yield consecutive slices of at most `size` items."""
    if size < 1:
        raise ValueError("chunk size must be positive")
    for start in range(0, len(items), size):
        yield items[start:start + size]
