"""Tests for the job status machine."""

import pytest

from lexdraft.queue.states import (
    CANCELLABLE_STATES,
    JobState,
    TERMINAL_STATES,
    can_transition,
    ensure_transition,
)
from lexdraft.utils.errors import InvalidTransition, JobStateError


@pytest.mark.parametrize("source,target", [
    (JobState.WAITING, JobState.ACTIVE),
    (JobState.DELAYED, JobState.WAITING),
    (JobState.ACTIVE, JobState.COMPLETED),
    (JobState.ACTIVE, JobState.FAILED),
    (JobState.ACTIVE, JobState.DELAYED),
    (JobState.ACTIVE, JobState.WAITING),
])
def test_allowed_transitions(source, target):
    assert can_transition(source, target)
    ensure_transition(source, target)


@pytest.mark.parametrize("source,target", [
    (JobState.COMPLETED, JobState.WAITING),
    (JobState.FAILED, JobState.ACTIVE),
    (JobState.WAITING, JobState.COMPLETED),
    (JobState.DELAYED, JobState.ACTIVE),
    (JobState.NOT_FOUND, JobState.WAITING),
])
def test_rejected_transitions(source, target):
    assert not can_transition(source, target)
    with pytest.raises(InvalidTransition) as exc_info:
        ensure_transition(source, target)
    assert exc_info.value.source == source.value
    assert exc_info.value.target == target.value


def test_invalid_transition_is_a_job_state_error():
    with pytest.raises(JobStateError):
        ensure_transition(JobState.COMPLETED, JobState.ACTIVE)


def test_terminal_and_cancellable_states():
    assert TERMINAL_STATES == {JobState.COMPLETED, JobState.FAILED}
    assert CANCELLABLE_STATES == {JobState.WAITING, JobState.DELAYED}
    assert JobState.COMPLETED.is_terminal
    assert not JobState.ACTIVE.is_terminal
    assert JobState.DELAYED.is_cancellable
    assert not JobState.ACTIVE.is_cancellable
