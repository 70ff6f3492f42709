from .states import (
    JobState,
    TRANSITIONS,
    TERMINAL_STATES,
    CANCELLABLE_STATES,
    can_transition,
    ensure_transition,
)
from .models import DEFAULT_PRIORITY, JobOptions, JobRecord, JobStatusView, QueueStats
from .progress import TERMINAL_STEPS, ProgressPublisher, listen_progress, progress_channel
from .store import DurableQueueStore, STALLED_REASON
from .registry import QueueRegistry

__all__ = [
    "JobState",
    "TRANSITIONS",
    "TERMINAL_STATES",
    "CANCELLABLE_STATES",
    "can_transition",
    "ensure_transition",
    "DEFAULT_PRIORITY",
    "JobOptions",
    "JobRecord",
    "JobStatusView",
    "QueueStats",
    "TERMINAL_STEPS",
    "ProgressPublisher",
    "listen_progress",
    "progress_channel",
    "DurableQueueStore",
    "STALLED_REASON",
    "QueueRegistry",
]
