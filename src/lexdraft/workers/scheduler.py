"""Worker scheduler: pulls jobs from a queue and runs them with bounded concurrency."""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from redis.exceptions import RedisError

from ..config import settings
from ..generation.orchestrator import ProgressReporter
from ..queue.models import JobRecord
from ..queue.registry import QueueRegistry
from ..utils.errors import LexDraftError

logger = logging.getLogger(__name__)

Processor = Callable[[JobRecord, ProgressReporter], Awaitable[Dict[str, Any]]]


class WorkerScheduler:
    """Binds a processor to one queue of the registry.

    Args:
        registry: Registry providing the store and the readiness signal
        processor: Coroutine function ``(job, report_progress) -> result dict``
        queue_name: Queue to consume (defaults to the generation queue)
        concurrency: Jobs processed at once
        poll_interval: Seconds to sleep when there is nothing to claim
        reconnect_interval: Seconds to back off after a Redis error
        shutdown_timeout: Seconds ``stop()`` waits for in-flight jobs
    """

    def __init__(
        self,
        registry: QueueRegistry,
        processor: Processor,
        queue_name: Optional[str] = None,
        *,
        concurrency: Optional[int] = None,
        poll_interval: Optional[float] = None,
        reconnect_interval: Optional[float] = None,
        shutdown_timeout: Optional[float] = None,
    ):
        self.registry = registry
        self.store = registry.get(queue_name)
        self.processor = processor
        self.concurrency = concurrency or settings.WORKER_CONCURRENCY
        self.poll_interval = settings.WORKER_POLL_INTERVAL if poll_interval is None else poll_interval
        self.reconnect_interval = (
            settings.REDIS_RECONNECT_INTERVAL if reconnect_interval is None else reconnect_interval
        )
        self.shutdown_timeout = (
            settings.WORKER_SHUTDOWN_TIMEOUT if shutdown_timeout is None else shutdown_timeout
        )

        self._slots = asyncio.Semaphore(self.concurrency)
        self._running = False
        self._loop_task: Optional[asyncio.Task] = None
        self._in_flight: Set[asyncio.Task] = set()

    @property
    def is_running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    async def start(self) -> None:
        """Start consuming in the background; calling it again is a no-op."""
        if self.is_running:
            logger.debug(f"[worker] Worker for {self.store.name} already running")
            return
        self._running = True
        self._loop_task = asyncio.create_task(self._run(), name=f"worker-{self.store.name}")
        logger.info(
            f"[worker] Worker for {self.store.name} started (concurrency {self.concurrency})"
        )

    async def stop(self) -> None:
        """Stop claiming, let in-flight jobs finish, then cancel the loop."""
        if self._loop_task is None:
            return
        self._running = False

        if self._in_flight:
            logger.info(f"[worker] Waiting for {len(self._in_flight)} in-flight jobs")
            _, pending = await asyncio.wait(set(self._in_flight), timeout=self.shutdown_timeout)
            if pending:
                logger.warning(
                    f"[worker] Cancelling {len(pending)} jobs still running after "
                    f"{self.shutdown_timeout:g}s; they will be recovered as stalled"
                )
                for task in pending:
                    task.cancel()
                await asyncio.gather(*pending, return_exceptions=True)

        self._loop_task.cancel()
        try:
            await self._loop_task
        except asyncio.CancelledError:
            pass
        self._loop_task = None
        logger.info(f"[worker] Worker for {self.store.name} stopped")

    async def _run(self) -> None:
        await self.registry.wait_until_ready()
        logger.info(f"[worker] Queue {self.store.name} ready, processing jobs")

        try:
            recovered = await self.store.recover_stalled()
            if recovered:
                logger.info(f"[worker] Recovered {recovered} stalled jobs in {self.store.name}")
        except (RedisError, OSError) as e:
            logger.warning(f"[worker] Stalled job recovery failed: {e}")

        while self._running:
            try:
                await self.store.promote_delayed()
                claimed = await self._fill_slots()
            except (RedisError, OSError) as e:
                logger.error(
                    f"[worker] Redis error in {self.store.name} loop, retrying in "
                    f"{self.reconnect_interval:g}s: {e}"
                )
                await asyncio.sleep(self.reconnect_interval)
                continue

            if not claimed:
                await asyncio.sleep(self.poll_interval)

    async def _fill_slots(self) -> int:
        """Claim jobs while slots are free; returns how many were started."""
        claimed = 0
        while self._running and not self._slots.locked():
            await self._slots.acquire()
            try:
                job = await self.store.claim_next()
            except BaseException:
                self._slots.release()
                raise

            if job is None:
                self._slots.release()
                break

            task = asyncio.create_task(self._execute(job), name=f"job-{job.id}")
            self._in_flight.add(task)
            task.add_done_callback(self._in_flight.discard)
            claimed += 1
        return claimed

    async def _execute(self, job: JobRecord) -> None:
        async def report(progress: int, step: str, message: str) -> None:
            await self.store.update_progress(job.id, progress, step, message)

        logger.info(
            f"[worker] Processing job {job.id} (attempt {job.attempts_made}/{job.attempts})",
            extra={"job_id": job.id, "queue": self.store.name},
        )
        try:
            try:
                result = await self.processor(job, report)
            except Exception as e:
                logger.exception(f"[worker] Processor raised for job {job.id}: {e}")
                await self.store.fail(job.id, str(e) or e.__class__.__name__)
                return
            await self.store.complete(job.id, result)
        except (RedisError, OSError, LexDraftError) as e:
            logger.error(
                f"[worker] Could not record outcome of job {job.id}: {e}",
                extra={"job_id": job.id},
            )
        finally:
            self._slots.release()
