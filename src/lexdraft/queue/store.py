"""Redis-backed durable job queue.

Every queue lives under ``{prefix}:queue:{name}`` and is made of:

- ``job:{id}``   hash holding the serialized JobRecord
- ``wait``       sorted set, score = priority band + enqueue sequence
- ``active``     set of claimed job ids
- ``delayed``    sorted set, score = epoch ms when the job becomes due
- ``completed``  sorted set, score = epoch ms when the job finished
- ``failed``     sorted set, score = epoch ms when the job failed
- ``lock:{id}``  expiring key held while a job is being processed
- ``paused``     present while the queue is paused
- ``id``         counter for sequence numbers and generated job ids

State changes touching more than one key run as WATCH/MULTI/EXEC
transactions, so concurrent workers and API processes never see a job in two
states at once.
"""

import functools
import json
import logging
from datetime import datetime, timedelta
from typing import Any, Collection, Dict, List, Optional

from redis.asyncio import Redis
from redis.exceptions import (
    ConnectionError as RedisConnectionError,
    RedisError,
    TimeoutError as RedisTimeoutError,
)

from ..utils.asyncio import utc_now, now_ms
from ..utils.errors import JobNotFound, JobStateError, QueueUnavailable
from .models import JobOptions, JobRecord, JobStatusView, QueueStats
from .progress import ProgressPublisher
from .states import JobState, TERMINAL_STATES, ensure_transition

logger = logging.getLogger(__name__)

# Width of one priority band in the wait set; sequences stay below it
_PRIORITY_STRIDE = 10 ** 12

_STATE_KEYS = {
    JobState.WAITING: "wait",
    JobState.ACTIVE: "active",
    JobState.DELAYED: "delayed",
    JobState.COMPLETED: "completed",
    JobState.FAILED: "failed",
}

STALLED_REASON = "job stalled more than allowable limit"


def _epoch_ms(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)


def _unavailable_on_disconnect(method):
    """Raise QueueUnavailable instead of Redis connection and timeout errors."""

    @functools.wraps(method)
    async def wrapper(self, *args, **kwargs):
        try:
            return await method(self, *args, **kwargs)
        except (RedisConnectionError, RedisTimeoutError) as e:
            logger.error(
                f"[queue] {method.__name__} on {self.name} failed, Redis unreachable: {e}",
                extra={"queue": self.name},
            )
            raise QueueUnavailable(f"Queue {self.name} is unavailable: {e}") from e

    return wrapper


class DurableQueueStore:
    """Named job queue persisted in Redis.

    Args:
        name: Queue name, e.g. ``letter-generation``
        redis: Async Redis client created with ``decode_responses=True``
        prefix: Key prefix shared by all queues of the application
        default_attempts: Queue-level attempts when a job does not set its own
        backoff_ms: Base delay of the queue-level exponential backoff
        keep_completed: Completed jobs retained (negative keeps all)
        keep_failed: Failed jobs retained (negative keeps all)
        lock_duration_ms: TTL of the processing lock on an active job
        publisher: Optional pub/sub publisher for progress updates
    """

    def __init__(
        self,
        name: str,
        redis: Redis,
        *,
        prefix: str = "lexdraft",
        default_attempts: int = 3,
        backoff_ms: int = 2000,
        keep_completed: int = 100,
        keep_failed: int = 500,
        lock_duration_ms: int = 300000,
        publisher: Optional[ProgressPublisher] = None,
    ):
        self.name = name
        self.redis = redis
        self.prefix = prefix
        self.default_attempts = default_attempts
        self.backoff_ms = backoff_ms
        self.keep_completed = keep_completed
        self.keep_failed = keep_failed
        self.lock_duration_ms = lock_duration_ms
        self.publisher = publisher

    # ===== KEYS =====

    def _key(self, *parts: str) -> str:
        return ":".join((self.prefix, "queue", self.name) + parts)

    def _job_key(self, job_id: str) -> str:
        return self._key("job", job_id)

    def _lock_key(self, job_id: str) -> str:
        return self._key("lock", job_id)

    def _state_key(self, state: JobState) -> str:
        return self._key(_STATE_KEYS[state])

    @staticmethod
    def _wait_score(priority: int, seq: int) -> int:
        return priority * _PRIORITY_STRIDE + seq

    def _unlink(self, pipe, state: JobState, job_id: str) -> None:
        """Buffer removal of ``job_id`` from the container of ``state``."""
        if state is JobState.ACTIVE:
            pipe.srem(self._state_key(state), job_id)
        else:
            pipe.zrem(self._state_key(state), job_id)

    # ===== PRODUCER SIDE =====

    @_unavailable_on_disconnect
    async def enqueue(
        self,
        payload: Dict[str, Any],
        options: Optional[JobOptions] = None,
    ) -> JobRecord:
        """Add a job, or return the existing one if its id is still in flight.

        A job whose id matches a waiting, delayed or active job is never
        duplicated; the existing record is returned untouched. A finished job
        with the same id is replaced.

        Raises:
            QueueUnavailable: If Redis cannot be reached
        """
        options = options or JobOptions()

        seq = await self.redis.incr(self._key("id"))
        job_id = options.job_id or str(seq)
        job_key = self._job_key(job_id)
        now = utc_now()

        record = JobRecord(
            id=job_id,
            queue=self.name,
            data=payload,
            priority=options.priority,
            seq=seq,
            attempts=options.attempts or self.default_attempts,
            backoff_ms=self.backoff_ms if options.backoff_ms is None else options.backoff_ms,
            created_at=now,
        )
        if options.delay_ms:
            record.state = JobState.DELAYED
            record.delay_until = now + timedelta(milliseconds=options.delay_ms)

        async def _add(pipe):
            raw = await pipe.hgetall(job_key)
            existing = JobRecord.from_hash(raw) if raw else None
            pipe.multi()
            if existing is not None and not existing.state.is_terminal:
                return existing
            if existing is not None:
                self._unlink(pipe, existing.state, job_id)
                pipe.delete(job_key)
            pipe.hset(job_key, mapping=record.to_hash())
            if record.state is JobState.DELAYED:
                pipe.zadd(
                    self._state_key(JobState.DELAYED),
                    {job_id: _epoch_ms(record.delay_until)},
                )
            else:
                pipe.zadd(
                    self._state_key(JobState.WAITING),
                    {job_id: self._wait_score(record.priority, seq)},
                )
            return record

        job = await self.redis.transaction(_add, job_key, value_from_callable=True)

        if job is record:
            logger.info(
                f"[queue] Job {job.id} added to queue {self.name}",
                extra={"job_id": job.id, "queue": self.name, "state": job.state.value},
            )
        else:
            logger.info(
                f"[queue] Job {job.id} already {job.state.value} in {self.name}, not duplicated",
                extra={"job_id": job.id, "queue": self.name},
            )
        return job

    async def _read_job(self, job_id: str) -> Optional[JobRecord]:
        raw = await self.redis.hgetall(self._job_key(job_id))
        return JobRecord.from_hash(raw) if raw else None

    @_unavailable_on_disconnect
    async def get_job(self, job_id: str) -> Optional[JobRecord]:
        return await self._read_job(job_id)

    @_unavailable_on_disconnect
    async def get_status(self, job_id: str) -> JobStatusView:
        """Status snapshot; ``not_found`` for unknown ids."""
        job = await self._read_job(job_id)
        if job is None:
            return JobStatusView(status=JobState.NOT_FOUND)

        view = JobStatusView(
            status=job.state,
            progress=job.progress,
            attempts_made=job.attempts_made,
            data=job.data,
        )
        if job.state is JobState.COMPLETED:
            view.result = job.result
        if job.state is JobState.FAILED:
            view.error = job.failed_reason
        return view

    @_unavailable_on_disconnect
    async def list_jobs(
        self,
        state: JobState,
        start: int = 0,
        end: int = -1,
    ) -> List[JobRecord]:
        """Jobs currently in ``state``, oldest first."""
        key = self._state_key(state)
        if state is JobState.ACTIVE:
            ids = sorted(await self.redis.smembers(key))
            ids = ids[start:] if end == -1 else ids[start:end + 1]
        else:
            ids = await self.redis.zrange(key, start, end)
        if not ids:
            return []

        async with self.redis.pipeline(transaction=False) as pipe:
            for job_id in ids:
                pipe.hgetall(self._job_key(job_id))
            rows = await pipe.execute()
        return [JobRecord.from_hash(row) for row in rows if row]

    @_unavailable_on_disconnect
    async def remove(
        self,
        job_id: str,
        allowed_states: Optional[Collection[JobState]] = None,
    ) -> bool:
        """Delete a job that is not being processed.

        The state is checked inside the transaction, so a job that moved on
        since the caller looked at it is never removed.

        Args:
            job_id: Job to delete
            allowed_states: States the job must be in to be removed

        Returns:
            False if the job does not exist

        Raises:
            JobStateError: If the job is active or not in ``allowed_states``
        """
        job_key = self._job_key(job_id)

        async def _remove(pipe):
            state = await pipe.hget(job_key, "state")
            if state is None:
                pipe.multi()
                return False
            state = JobState(state)
            if state is JobState.ACTIVE:
                raise JobStateError(f"Cannot remove job {job_id} while it is active")
            if allowed_states is not None and state not in allowed_states:
                raise JobStateError(f"Cannot remove job {job_id} in status: {state.value}")
            pipe.multi()
            self._unlink(pipe, state, job_id)
            pipe.delete(job_key, self._lock_key(job_id))
            return True

        removed = await self.redis.transaction(_remove, job_key, value_from_callable=True)
        if removed:
            logger.info(
                f"[queue] Job {job_id} removed from queue {self.name}",
                extra={"job_id": job_id, "queue": self.name},
            )
        return removed

    @_unavailable_on_disconnect
    async def stats(self) -> QueueStats:
        async with self.redis.pipeline(transaction=False) as pipe:
            pipe.zcard(self._state_key(JobState.WAITING))
            pipe.scard(self._state_key(JobState.ACTIVE))
            pipe.zcard(self._state_key(JobState.COMPLETED))
            pipe.zcard(self._state_key(JobState.FAILED))
            pipe.zcard(self._state_key(JobState.DELAYED))
            pipe.exists(self._key("paused"))
            waiting, active, completed, failed, delayed, paused = await pipe.execute()

        return QueueStats(
            waiting=waiting,
            active=active,
            completed=completed,
            failed=failed,
            delayed=delayed,
            paused=bool(paused),
        )

    @_unavailable_on_disconnect
    async def pause(self) -> None:
        await self.redis.set(self._key("paused"), "1")
        logger.info(f"[queue] Queue {self.name} paused")

    @_unavailable_on_disconnect
    async def resume(self) -> None:
        await self.redis.delete(self._key("paused"))
        logger.info(f"[queue] Queue {self.name} resumed")

    @_unavailable_on_disconnect
    async def is_paused(self) -> bool:
        return bool(await self.redis.exists(self._key("paused")))

    async def health(self) -> bool:
        """True when Redis answers; transient disconnects are reported, not raised."""
        try:
            return bool(await self.redis.ping())
        except (RedisError, OSError) as e:
            logger.warning(
                f"[queue] Health check failed for {self.name}: {e}",
                extra={"queue": self.name},
            )
            return False

    # ===== WORKER SIDE =====

    async def claim_next(self) -> Optional[JobRecord]:
        """Move the next waiting job to active and return it.

        Returns None when the queue is empty or paused.
        """
        wait_key = self._state_key(JobState.WAITING)
        paused_key = self._key("paused")
        now = utc_now()

        async def _claim(pipe):
            if await pipe.exists(paused_key):
                pipe.multi()
                return None
            ids = await pipe.zrange(wait_key, 0, 0)
            if not ids:
                pipe.multi()
                return None

            job_id = ids[0]
            job_key = self._job_key(job_id)
            await pipe.watch(job_key)
            if not await pipe.exists(job_key):
                # Dangling id whose record was deleted
                pipe.multi()
                pipe.zrem(wait_key, job_id)
                return None

            pipe.multi()
            pipe.zrem(wait_key, job_id)
            pipe.sadd(self._state_key(JobState.ACTIVE), job_id)
            pipe.hset(job_key, mapping={
                "state": JobState.ACTIVE.value,
                "processed_at": now.isoformat(),
            })
            pipe.hincrby(job_key, "attempts_made", 1)
            pipe.set(self._lock_key(job_id), now.isoformat(), px=self.lock_duration_ms)
            return job_id

        job_id = await self.redis.transaction(
            _claim, wait_key, paused_key, value_from_callable=True
        )
        if job_id is None:
            return None

        job = await self._read_job(job_id)
        if job is not None:
            logger.debug(
                f"[queue] Job {job_id} claimed from {self.name}",
                extra={"job_id": job_id, "attempt": job.attempts_made},
            )
        return job

    async def update_progress(
        self,
        job_id: str,
        progress: int,
        step: str = "",
        message: str = "",
    ) -> None:
        progress = max(0, min(100, int(progress)))
        job_key = self._job_key(job_id)
        if not await self.redis.exists(job_key):
            logger.warning(f"[queue] Progress for unknown job {job_id} ignored")
            return

        await self.redis.hset(job_key, "progress", progress)
        await self._publish(job_id, progress, step, message)

    async def _publish(self, job_id: str, progress: int, step: str, message: str) -> None:
        if self.publisher is None:
            return
        try:
            await self.publisher.publish_progress(job_id, progress, step, message)
        except RedisError as e:
            logger.warning(f"[queue] Could not publish progress for {job_id}: {e}")

    async def complete(self, job_id: str, result: Dict[str, Any]) -> JobRecord:
        """Record the processor's return value and finish the job."""
        job_key = self._job_key(job_id)
        now = utc_now()

        async def _complete(pipe):
            raw = await pipe.hgetall(job_key)
            if not raw:
                raise JobNotFound(f"Job {job_id} not found in {self.name}")
            job = JobRecord.from_hash(raw)
            ensure_transition(job.state, JobState.COMPLETED)

            pipe.multi()
            self._unlink(pipe, job.state, job_id)
            pipe.zadd(self._state_key(JobState.COMPLETED), {job_id: _epoch_ms(now)})
            pipe.hset(job_key, mapping={
                "state": JobState.COMPLETED.value,
                "result": json.dumps(result),
                "finished_at": now.isoformat(),
            })
            pipe.delete(self._lock_key(job_id))

            job.state = JobState.COMPLETED
            job.result = result
            job.finished_at = now
            return job

        job = await self.redis.transaction(_complete, job_key, value_from_callable=True)
        await self._trim(JobState.COMPLETED, self.keep_completed)

        # Final update for status streams; processors report failure via ``success``
        if result.get("success", True):
            await self._publish(job_id, 100, "completed", "Job completed")
        else:
            reason = (result.get("error") or {}).get("reason") or "Job failed"
            await self._publish(job_id, job.progress, "failed", reason)

        duration_ms = None
        if job.processed_at is not None:
            duration_ms = _epoch_ms(now) - _epoch_ms(job.processed_at)
        logger.info(
            f"[queue] Job {job_id} in queue {self.name} completed",
            extra={"job_id": job_id, "queue": self.name, "duration_ms": duration_ms},
        )
        return job

    async def fail(self, job_id: str, reason: str) -> JobRecord:
        """Record a processing failure.

        The job is retried after an exponential delay while it has attempts
        left, otherwise it moves to ``failed``.
        """
        job_key = self._job_key(job_id)
        now = utc_now()

        async def _fail(pipe):
            raw = await pipe.hgetall(job_key)
            if not raw:
                raise JobNotFound(f"Job {job_id} not found in {self.name}")
            job = JobRecord.from_hash(raw)
            retry = job.attempts_made < job.attempts
            target = JobState.DELAYED if retry else JobState.FAILED
            ensure_transition(job.state, target)

            pipe.multi()
            self._unlink(pipe, job.state, job_id)
            pipe.delete(self._lock_key(job_id))
            if retry:
                delay = job.backoff_ms * 2 ** (max(job.attempts_made, 1) - 1)
                until = now + timedelta(milliseconds=delay)
                pipe.zadd(self._state_key(JobState.DELAYED), {job_id: _epoch_ms(until)})
                pipe.hset(job_key, mapping={
                    "state": JobState.DELAYED.value,
                    "failed_reason": reason,
                    "delay_until": until.isoformat(),
                })
                job.delay_until = until
            else:
                pipe.zadd(self._state_key(JobState.FAILED), {job_id: _epoch_ms(now)})
                pipe.hset(job_key, mapping={
                    "state": JobState.FAILED.value,
                    "failed_reason": reason,
                    "finished_at": now.isoformat(),
                })
                job.finished_at = now

            job.state = target
            job.failed_reason = reason
            return job

        job = await self.redis.transaction(_fail, job_key, value_from_callable=True)

        if job.state is JobState.FAILED:
            await self._trim(JobState.FAILED, self.keep_failed)
            await self._publish(job_id, job.progress, "failed", reason)
            logger.error(
                f"[queue] Job {job_id} in queue {self.name} failed",
                extra={"job_id": job_id, "error": reason, "attempts": job.attempts_made},
            )
        else:
            logger.warning(
                f"[queue] Job {job_id} will be retried at {job.delay_until.isoformat()}",
                extra={"job_id": job_id, "error": reason, "attempts": job.attempts_made},
            )
        return job

    async def promote_delayed(self) -> int:
        """Move delayed jobs that are due back to ``waiting``."""
        delayed_key = self._state_key(JobState.DELAYED)
        due = await self.redis.zrangebyscore(delayed_key, "-inf", now_ms())
        promoted = 0

        for job_id in due:
            job_key = self._job_key(job_id)

            async def _promote(pipe, job_id=job_id, job_key=job_key):
                raw = await pipe.hgetall(job_key)
                pipe.multi()
                if not raw or raw.get("state") != JobState.DELAYED.value:
                    pipe.zrem(delayed_key, job_id)
                    return False
                job = JobRecord.from_hash(raw)
                ensure_transition(job.state, JobState.WAITING)
                pipe.zrem(delayed_key, job_id)
                pipe.zadd(
                    self._state_key(JobState.WAITING),
                    {job_id: self._wait_score(job.priority, job.seq)},
                )
                pipe.hset(job_key, "state", JobState.WAITING.value)
                pipe.hdel(job_key, "delay_until")
                return True

            if await self.redis.transaction(_promote, job_key, value_from_callable=True):
                promoted += 1

        if promoted:
            logger.info(f"[queue] Promoted {promoted} delayed jobs in {self.name}")
        return promoted

    async def recover_stalled(self) -> int:
        """Hand active jobs whose lock expired back to the queue.

        A stalled job that already used all its attempts is failed instead.
        """
        active_key = self._state_key(JobState.ACTIVE)
        recovered = 0

        for job_id in await self.redis.smembers(active_key):
            job_key = self._job_key(job_id)
            lock_key = self._lock_key(job_id)

            async def _recover(pipe, job_id=job_id, job_key=job_key, lock_key=lock_key):
                if await pipe.exists(lock_key):
                    pipe.multi()
                    return None
                raw = await pipe.hgetall(job_key)
                if not raw or raw.get("state") != JobState.ACTIVE.value:
                    pipe.multi()
                    pipe.srem(active_key, job_id)
                    return None

                job = JobRecord.from_hash(raw)
                now = utc_now()
                pipe.multi()
                pipe.srem(active_key, job_id)
                if job.attempts_made >= job.attempts:
                    ensure_transition(job.state, JobState.FAILED)
                    pipe.zadd(self._state_key(JobState.FAILED), {job_id: _epoch_ms(now)})
                    pipe.hset(job_key, mapping={
                        "state": JobState.FAILED.value,
                        "failed_reason": STALLED_REASON,
                        "finished_at": now.isoformat(),
                    })
                    return JobState.FAILED

                ensure_transition(job.state, JobState.WAITING)
                pipe.zadd(
                    self._state_key(JobState.WAITING),
                    {job_id: self._wait_score(job.priority, job.seq)},
                )
                pipe.hset(job_key, "state", JobState.WAITING.value)
                return JobState.WAITING

            outcome = await self.redis.transaction(
                _recover, lock_key, job_key, value_from_callable=True
            )
            if outcome is not None:
                recovered += 1
                logger.warning(
                    f"[queue] Stalled job {job_id} moved to {outcome.value}",
                    extra={"job_id": job_id, "queue": self.name},
                )

        return recovered

    # ===== RETENTION =====

    async def clean(self, grace_ms: int, state: JobState = JobState.COMPLETED) -> int:
        """Remove finished jobs older than ``grace_ms``; returns how many."""
        if state not in TERMINAL_STATES:
            raise ValueError(f"Only finished jobs can be cleaned, got {state.value}")

        cutoff = now_ms() - grace_ms
        ids = await self.redis.zrangebyscore(self._state_key(state), "-inf", cutoff)
        if ids:
            await self._delete_jobs(state, ids)

        logger.info(f"[queue] Cleaned {len(ids)} {state.value} jobs from queue {self.name}")
        return len(ids)

    async def _trim(self, state: JobState, keep: int) -> None:
        if keep < 0:
            return
        ids = await self.redis.zrange(self._state_key(state), 0, -(keep + 1))
        if ids:
            await self._delete_jobs(state, ids)

    async def _delete_jobs(self, state: JobState, ids: List[str]) -> None:
        async with self.redis.pipeline(transaction=True) as pipe:
            pipe.zrem(self._state_key(state), *ids)
            pipe.delete(*[self._job_key(job_id) for job_id in ids])
            await pipe.execute()


__all__ = ["DurableQueueStore", "STALLED_REASON"]
