"""Queue registry: the Redis client, the named stores and the readiness signal."""

import asyncio
import logging
from typing import Any, Dict, Optional

from redis.asyncio import Redis
from redis.exceptions import RedisError

from ..config import Settings
from ..utils.errors import QueueUnavailable
from ..utils.redis import create_redis_client, close_redis
from .progress import ProgressPublisher
from .store import DurableQueueStore

logger = logging.getLogger(__name__)


class QueueRegistry:
    """Owns one DurableQueueStore per queue name.

    Created when the application starts and closed when it stops. ``start()``
    never fails on an unreachable Redis; it keeps retrying in the background
    and sets ``ready`` once the first ping succeeds.
    """

    def __init__(self, settings: Settings, client: Optional[Redis] = None):
        self.settings = settings
        self.client = client or create_redis_client(settings.REDIS_URL)
        self._owns_client = client is None
        self._stores: Dict[str, DurableQueueStore] = {}
        self._ready = asyncio.Event()
        self._connect_task: Optional[asyncio.Task] = None

    def get(self, name: Optional[str] = None) -> DurableQueueStore:
        """Return the store for ``name``, creating it on first use."""
        name = name or self.settings.GENERATION_QUEUE_NAME
        store = self._stores.get(name)
        if store is None:
            store = DurableQueueStore(
                name,
                self.client,
                prefix=self.settings.REDIS_KEY_PREFIX,
                default_attempts=self.settings.QUEUE_DEFAULT_ATTEMPTS,
                backoff_ms=self.settings.QUEUE_BACKOFF_DELAY_MS,
                keep_completed=self.settings.QUEUE_KEEP_COMPLETED,
                keep_failed=self.settings.QUEUE_KEEP_FAILED,
                lock_duration_ms=self.settings.QUEUE_LOCK_DURATION_MS,
                publisher=ProgressPublisher(self.client, name),
            )
            self._stores[name] = store
        return store

    @property
    def names(self):
        return list(self._stores)

    @property
    def is_ready(self) -> bool:
        return self._ready.is_set()

    async def start(self) -> None:
        """Begin connecting in the background; returns immediately."""
        if self._connect_task is not None and not self._connect_task.done():
            return
        self.get()
        self._connect_task = asyncio.create_task(
            self._connect_loop(), name="queue-registry-connect"
        )

    async def _connect_loop(self) -> None:
        interval = self.settings.REDIS_RECONNECT_INTERVAL
        attempt = 0
        while not self._ready.is_set():
            attempt += 1
            try:
                await self.client.ping()
            except (RedisError, OSError) as e:
                logger.warning(
                    f"[queue] Redis not reachable (attempt {attempt}), retrying in {interval}s: {e}"
                )
                await asyncio.sleep(interval)
                continue
            self._ready.set()
            logger.info(f"[queue] Redis connection ready after {attempt} attempt(s)")

    async def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Wait for the first successful connection.

        Returns:
            False if ``timeout`` elapsed first
        """
        if timeout is None:
            await self._ready.wait()
            return True
        try:
            await asyncio.wait_for(self._ready.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return True

    async def health_check(self) -> Dict[str, Any]:
        """Connectivity and statistics of every registered queue."""
        queues: Dict[str, Any] = {}
        healthy = True

        for name, store in self._stores.items():
            connected = await store.health()
            entry: Dict[str, Any] = {"connected": connected, "stats": None}
            if connected:
                try:
                    entry["stats"] = (await store.stats()).model_dump()
                except (RedisError, OSError, QueueUnavailable) as e:
                    logger.warning(f"[queue] Could not read stats for {name}: {e}")
                    entry["connected"] = connected = False
            healthy = healthy and connected
            queues[name] = entry

        return {"healthy": healthy and bool(queues), "queues": queues}

    async def close(self) -> None:
        if self._connect_task is not None and not self._connect_task.done():
            self._connect_task.cancel()
            try:
                await self._connect_task
            except asyncio.CancelledError:
                pass
        self._connect_task = None
        self._ready.clear()

        if self._owns_client:
            await close_redis(self.client)
        logger.info("[queue] Queue registry closed")


__all__ = ["QueueRegistry"]
