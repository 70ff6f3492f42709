"""Maps generation failures to actionable structured errors."""

from typing import Dict, NamedTuple

from ..schemas.jobs import StructuredError
from ..utils.errors import FailureKind, GenerationFailure


class _Rule(NamedTuple):
    title: str
    probable_cause: str
    suggested_action: str


_GENERIC = _Rule(
    title="Generation failed",
    probable_cause="An unexpected error occurred while generating the letter.",
    suggested_action="Try generating the letter again. Contact support if the problem persists.",
)

_AI_UNAVAILABLE = _Rule(
    title="AI service unavailable",
    probable_cause="The AI service is throttling requests, timed out or is temporarily down.",
    suggested_action="Wait a few minutes and try generating the letter again.",
)

FAILURE_RULES: Dict[FailureKind, _Rule] = {
    FailureKind.VALIDATION: _Rule(
        title="Missing required information",
        probable_cause="The case details are incomplete or contain invalid values.",
        suggested_action="Complete the required case fields and start the generation again.",
    ),
    FailureKind.CONTEXT_TOO_LARGE: _Rule(
        title="Case summary too large",
        probable_cause="The case description and supporting documents exceed what the AI model can read at once.",
        suggested_action="Shorten the incident description or attach fewer supporting documents.",
    ),
    FailureKind.THROTTLED: _AI_UNAVAILABLE,
    FailureKind.TIMEOUT: _AI_UNAVAILABLE,
    FailureKind.SERVICE_UNAVAILABLE: _AI_UNAVAILABLE,
    FailureKind.UNAUTHORIZED: _Rule(
        title="AI credentials missing or invalid",
        probable_cause="The AI provider rejected the configured API credentials.",
        suggested_action="Ask an administrator to check the AI provider API key.",
    ),
    FailureKind.RETRIEVAL: _GENERIC,
    FailureKind.PROVIDER: _GENERIC,
    FailureKind.UNKNOWN: _GENERIC,
}


def classify_failure(exc: BaseException) -> StructuredError:
    """Structured error for any exception raised during generation.

    Tagged failures are looked up by kind; anything else is generic. The
    reason is always the underlying message.
    """
    if isinstance(exc, GenerationFailure):
        rule = FAILURE_RULES.get(exc.kind, _GENERIC)
        reason = exc.message
    else:
        rule = _GENERIC
        reason = str(exc) or exc.__class__.__name__

    return StructuredError(
        title=rule.title,
        reason=reason,
        probable_cause=rule.probable_cause,
        suggested_action=rule.suggested_action,
    )


def structured_error_from_reason(reason: str) -> StructuredError:
    """Structured error for a bare queue-level failure reason."""
    return StructuredError(
        title=_GENERIC.title,
        reason=reason or "Unknown error",
        probable_cause=_GENERIC.probable_cause,
        suggested_action=_GENERIC.suggested_action,
    )
