from .errors import (
    LexDraftError,
    PermanentError,
    RetryableError,
    LetterNotFound,
    DocumentNotFound,
    TemplateNotFound,
    JobNotFound,
    AccessDenied,
    CannotCancelJob,
    JobStateError,
    InvalidTransition,
    QueueUnavailable,
    FailureKind,
    GenerationFailure,
)
from .logging import setup_logging, JSONFormatter
from .redis import create_redis_client, close_redis
from .asyncio import run_async, utc_now, now_ms

__all__ = [
    "LexDraftError",
    "PermanentError",
    "RetryableError",
    "LetterNotFound",
    "DocumentNotFound",
    "TemplateNotFound",
    "JobNotFound",
    "AccessDenied",
    "CannotCancelJob",
    "JobStateError",
    "InvalidTransition",
    "QueueUnavailable",
    "FailureKind",
    "GenerationFailure",
    "setup_logging",
    "JSONFormatter",
    "create_redis_client",
    "close_redis",
    "run_async",
    "utc_now",
    "now_ms",
]
