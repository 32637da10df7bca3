"""Redis connection holding upload wizard drafts."""

from collections.abc import Callable

import redis.asyncio as redis


class RedisConnection:
    """Explicit-lifecycle wrapper around a ``redis.asyncio`` client.

    Responses are left as bytes because staged file contents are stored
    beside the JSON draft state.
    """

    def __init__(self, url: str, client_factory: Callable[[], redis.Redis] | None = None):
        self.url = url
        self._client_factory = client_factory
        self._client: redis.Redis | None = None

    async def connect(self) -> None:
        """Open the pool and verify connectivity."""
        if self._client is not None:
            return

        if self._client_factory is not None:
            self._client = self._client_factory()
        else:
            self._client = redis.from_url(self.url, decode_responses=False)

        await self._client.ping()

    async def disconnect(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> redis.Redis:
        """Return the client.

        Raises RuntimeError if connect() has not been called.
        """
        if self._client is None:
            raise RuntimeError("Redis not connected. Call connect() first.")
        return self._client
