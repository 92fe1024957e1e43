"""
Access token cache for outbound API clients.

Holds a single bearer token together with its expiry so a client can reuse it
inside the validity window instead of re-authenticating on every call.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass


@dataclass(frozen=True)
class CachedToken:
    value: str
    expires_at: float  # monotonic seconds


class TokenCache:
    """
    Cache one token per client instance.

    ``refresh_margin_s`` renews the token slightly before it expires so an
    in-flight request never carries a token that lapses mid-call.
    """

    def __init__(
        self,
        refresh_margin_s: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.refresh_margin_s = refresh_margin_s
        self._clock = clock
        self._token: CachedToken | None = None
        self._lock = asyncio.Lock()

    @property
    def token(self) -> CachedToken | None:
        return self._token

    def is_valid(self) -> bool:
        """Check if a cached token exists and is outside the refresh margin."""
        if self._token is None:
            return False
        return self._clock() < self._token.expires_at - self.refresh_margin_s

    def store(self, value: str, expires_in_s: float) -> CachedToken:
        self._token = CachedToken(value=value, expires_at=self._clock() + expires_in_s)
        return self._token

    def invalidate(self) -> None:
        """Drop the cached token, e.g. after the remote side answered 401."""
        self._token = None

    async def get_or_refresh(
        self, fetch: Callable[[], Awaitable[tuple[str, float]]]
    ) -> str:
        """
        Return a valid token, calling ``fetch`` only when needed.

        ``fetch`` returns ``(token, expires_in_seconds)``. Concurrent callers
        share a single refresh.
        """
        if self.is_valid():
            return self._token.value

        async with self._lock:
            if not self.is_valid():
                value, expires_in = await fetch()
                self.store(value, expires_in)
            return self._token.value
