"""Job progress over Redis Pub/Sub."""

import json
from typing import Any, AsyncIterator, Dict, Optional

from redis.asyncio import Redis

from ..utils.asyncio import utc_now


# Steps published when a job reaches a final state
TERMINAL_STEPS = frozenset({"completed", "failed"})


def progress_channel(job_id: str) -> str:
    return f"progress:{job_id}"


class ProgressPublisher:
    """Publish generation progress so status streams can follow a job live.

    Messages are JSON objects with ``job_id``, ``queue``, ``progress``,
    ``step``, ``message`` and an ISO ``timestamp``.
    """

    def __init__(self, redis_client: Redis, queue: Optional[str] = None):
        self.redis_client = redis_client
        self.queue = queue

    async def publish_progress(
        self,
        job_id: str,
        progress: int,
        step: str,
        message: str,
    ) -> int:
        """Publish a progress update; returns the number of subscribers reached."""
        payload = {
            "job_id": job_id,
            "queue": self.queue,
            "progress": progress,
            "step": step,
            "message": message,
            "timestamp": utc_now().isoformat(),
        }
        return await self.redis_client.publish(progress_channel(job_id), json.dumps(payload))


async def listen_progress(
    redis_client: Redis,
    job_id: str,
    timeout: float = 1.0,
) -> AsyncIterator[Dict[str, Any]]:
    """Yield progress updates for ``job_id`` until the job finishes.

    Ends after an update with a terminal step or progress 100.
    """
    pubsub = redis_client.pubsub()
    await pubsub.subscribe(progress_channel(job_id))
    try:
        while True:
            message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=timeout)
            if message is None:
                continue
            update = json.loads(message["data"])
            yield update
            if update.get("step") in TERMINAL_STEPS or update.get("progress", 0) >= 100:
                return
    finally:
        await pubsub.unsubscribe(progress_channel(job_id))
        await pubsub.aclose()
