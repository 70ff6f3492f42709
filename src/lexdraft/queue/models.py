"""Job record definitions stored in the durable queue."""

import json
from datetime import datetime
from pydantic import BaseModel, Field
from typing import Any, Dict, Optional

from .states import JobState

DEFAULT_PRIORITY = 5


class JobOptions(BaseModel):
    """Options accepted by ``DurableQueueStore.enqueue``.

    Lower ``priority`` values are served first; jobs with equal priority are
    served in enqueue order.
    """
    job_id: Optional[str] = None
    priority: int = Field(default=DEFAULT_PRIORITY, ge=0, le=1000)
    delay_ms: int = Field(default=0, ge=0)
    attempts: Optional[int] = Field(default=None, ge=1)
    backoff_ms: Optional[int] = Field(default=None, ge=0)


class JobRecord(BaseModel):
    """Unit of queued work."""
    id: str
    queue: str
    data: Dict[str, Any] = Field(default_factory=dict)
    state: JobState = JobState.WAITING
    priority: int = DEFAULT_PRIORITY
    seq: int = 0
    progress: int = 0
    attempts: int = 1
    attempts_made: int = 0
    backoff_ms: int = 0
    result: Optional[Dict[str, Any]] = None
    failed_reason: Optional[str] = None
    created_at: datetime
    processed_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    delay_until: Optional[datetime] = None

    def to_hash(self) -> Dict[str, str]:
        """Flatten into the string mapping stored in the job's Redis hash."""
        mapping = {
            "id": self.id,
            "queue": self.queue,
            "data": json.dumps(self.data),
            "state": self.state.value,
            "priority": str(self.priority),
            "seq": str(self.seq),
            "progress": str(self.progress),
            "attempts": str(self.attempts),
            "attempts_made": str(self.attempts_made),
            "backoff_ms": str(self.backoff_ms),
            "created_at": self.created_at.isoformat(),
        }
        if self.result is not None:
            mapping["result"] = json.dumps(self.result)
        if self.failed_reason is not None:
            mapping["failed_reason"] = self.failed_reason
        for name in ("processed_at", "finished_at", "delay_until"):
            value = getattr(self, name)
            if value is not None:
                mapping[name] = value.isoformat()
        return mapping

    @classmethod
    def from_hash(cls, raw: Dict[str, str]) -> "JobRecord":
        return cls(
            id=raw["id"],
            queue=raw["queue"],
            data=json.loads(raw.get("data") or "{}"),
            state=JobState(raw["state"]),
            priority=int(raw.get("priority", DEFAULT_PRIORITY)),
            seq=int(raw.get("seq", 0)),
            progress=int(raw.get("progress", 0)),
            attempts=int(raw.get("attempts", 1)),
            attempts_made=int(raw.get("attempts_made", 0)),
            backoff_ms=int(raw.get("backoff_ms", 0)),
            result=json.loads(raw["result"]) if raw.get("result") else None,
            failed_reason=raw.get("failed_reason") or None,
            created_at=raw["created_at"],
            processed_at=raw.get("processed_at") or None,
            finished_at=raw.get("finished_at") or None,
            delay_until=raw.get("delay_until") or None,
        )


class JobStatusView(BaseModel):
    """Caller-facing snapshot of a job."""
    status: JobState
    progress: Optional[int] = None
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    attempts_made: Optional[int] = None
    data: Optional[Dict[str, Any]] = None


class QueueStats(BaseModel):
    waiting: int = 0
    active: int = 0
    completed: int = 0
    failed: int = 0
    delayed: int = 0
    paused: bool = False
