"""Job lifecycle states and the transitions allowed between them."""

import enum
from typing import Dict, FrozenSet

from ..utils.errors import InvalidTransition


class JobState(str, enum.Enum):
    WAITING = "waiting"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"
    DELAYED = "delayed"
    # Reported for unknown ids; never stored
    NOT_FOUND = "not_found"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES

    @property
    def is_cancellable(self) -> bool:
        return self in CANCELLABLE_STATES


TRANSITIONS: Dict[JobState, FrozenSet[JobState]] = {
    JobState.WAITING: frozenset({JobState.ACTIVE}),
    JobState.DELAYED: frozenset({JobState.WAITING}),
    JobState.ACTIVE: frozenset({
        JobState.COMPLETED,
        JobState.FAILED,
        JobState.DELAYED,
        JobState.WAITING,  # stalled job handed back to the queue
    }),
    JobState.COMPLETED: frozenset(),
    JobState.FAILED: frozenset(),
}

TERMINAL_STATES: FrozenSet[JobState] = frozenset({JobState.COMPLETED, JobState.FAILED})
CANCELLABLE_STATES: FrozenSet[JobState] = frozenset({JobState.WAITING, JobState.DELAYED})


def can_transition(source: JobState, target: JobState) -> bool:
    return target in TRANSITIONS.get(source, frozenset())


def ensure_transition(source: JobState, target: JobState) -> None:
    """Raise InvalidTransition unless ``source -> target`` is allowed."""
    if not can_transition(source, target):
        raise InvalidTransition(source.value, target.value)


__all__ = [
    "JobState",
    "TRANSITIONS",
    "TERMINAL_STATES",
    "CANCELLABLE_STATES",
    "can_transition",
    "ensure_transition",
]
