"""Shared error definitions for LexDraft."""

import enum
from typing import Any, Dict, Optional


class LexDraftError(Exception):
    """Base exception for LexDraft."""
    pass


class PermanentError(LexDraftError):
    """Error that should not be retried."""
    pass


class RetryableError(LexDraftError):
    """Error that can be retried with backoff."""
    pass


class LetterNotFound(PermanentError):
    """Letter not found in database."""
    pass


class DocumentNotFound(PermanentError):
    """Supporting document not found in database."""
    pass


class TemplateNotFound(PermanentError):
    """Letter template not found in database."""
    pass


class JobNotFound(PermanentError):
    """Generation job not found in the queue."""
    pass


class AccessDenied(PermanentError):
    """Resource belongs to another firm."""
    pass


class CannotCancelJob(PermanentError):
    """Job is in a state that does not allow cancellation."""
    pass


class JobStateError(PermanentError):
    """Queue operation is not allowed for the job's current state."""
    pass


class InvalidTransition(JobStateError):
    """Job status machine rejected a transition."""

    def __init__(self, source: Any, target: Any):
        self.source = source
        self.target = target
        super().__init__(f"Invalid job transition: {source} -> {target}")


class QueueUnavailable(RetryableError):
    """Queue backing store is unreachable."""
    pass


class FailureKind(str, enum.Enum):
    """Tag carried by every generation failure."""

    VALIDATION = "validation"
    RETRIEVAL = "retrieval"
    CONTEXT_TOO_LARGE = "context_too_large"
    THROTTLED = "throttled"
    TIMEOUT = "timeout"
    SERVICE_UNAVAILABLE = "service_unavailable"
    UNAUTHORIZED = "unauthorized"
    PROVIDER = "provider"
    UNKNOWN = "unknown"


class GenerationFailure(LexDraftError):
    """Failure raised by a step of the generation pipeline.

    Args:
        kind: Failure category consumed by the error classifier
        message: Underlying human-readable reason
        details: Optional diagnostics for logs
    """

    def __init__(
        self,
        kind: FailureKind,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.details = details or {}

    def __repr__(self) -> str:
        return f"GenerationFailure(kind={self.kind.value!r}, message={self.message!r})"
