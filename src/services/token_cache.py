"""
Single-slot cache for the ServiceNow OAuth bearer token.

Rules:
- A cached token is served until 5 minutes before it expires.
- When `expires_in` is missing from the token response, 30 minutes is assumed.
- A failed fetch caches nothing; the error reaches the caller.
- `invalidate()` drops the token so the next caller fetches a fresh one.
- Refreshes are single-flight: concurrent callers wait on one exchange.
"""

import asyncio
import time
from typing import Awaitable, Callable, Optional, Tuple

from src.core.logging import logger

# (access_token, expires_in seconds or None)
TokenFetcher = Callable[[], Awaitable[Tuple[str, Optional[float]]]]


class TokenCache:
    SAFETY_BUFFER_SECONDS = 300
    DEFAULT_EXPIRES_IN_SECONDS = 1800

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._token: Optional[str] = None
        self._expires_at: Optional[float] = None
        self._lock = asyncio.Lock()

    def _valid_token(self) -> Optional[str]:
        if self._token and self._expires_at is not None:
            if self._clock() < self._expires_at - self.SAFETY_BUFFER_SECONDS:
                return self._token
        return None

    async def get_token(self, fetch: TokenFetcher) -> str:
        """
        Return the cached token, or fetch and cache a new one.

        Args:
            fetch: Coroutine factory performing the OAuth exchange.

        Returns:
            The bearer token.
        """
        token = self._valid_token()
        if token:
            logger.debug("[token] Using cached ServiceNow token")
            return token

        async with self._lock:
            # Another caller may have refreshed while we waited.
            token = self._valid_token()
            if token:
                return token

            access_token, expires_in = await fetch()
            self._token = access_token
            self._expires_at = self._clock() + (expires_in or self.DEFAULT_EXPIRES_IN_SECONDS)
            logger.info("[token] Fetched new ServiceNow token")
            return access_token

    def invalidate(self) -> None:
        """Drop the cached token unconditionally."""
        if self._token:
            logger.warning("[token] Clearing cached token")
        self._token = None
        self._expires_at = None

    def get_status(self) -> dict:
        """
        Returns:
            {
                "cached": bool,
                "expires_at": Optional[float],
                "seconds_remaining": Optional[float]
            }
        """
        cached = self._valid_token() is not None
        remaining = None
        if self._expires_at is not None:
            remaining = max(0.0, self._expires_at - self._clock())
        return {
            "cached": cached,
            "expires_at": self._expires_at,
            "seconds_remaining": remaining,
        }


# Process-wide TokenCache instance.
_token_cache: Optional[TokenCache] = None


def get_token_cache() -> TokenCache:
    """Return the process-wide TokenCache instance."""
    global _token_cache
    if _token_cache is None:
        _token_cache = TokenCache()
    return _token_cache
