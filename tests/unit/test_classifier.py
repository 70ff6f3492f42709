"""Tests for generation failure classification."""

import pytest

from lexdraft.generation.classifier import classify_failure, structured_error_from_reason
from lexdraft.utils.errors import FailureKind, GenerationFailure


@pytest.mark.parametrize("kind,title", [
    (FailureKind.VALIDATION, "Missing required information"),
    (FailureKind.CONTEXT_TOO_LARGE, "Case summary too large"),
    (FailureKind.THROTTLED, "AI service unavailable"),
    (FailureKind.TIMEOUT, "AI service unavailable"),
    (FailureKind.SERVICE_UNAVAILABLE, "AI service unavailable"),
    (FailureKind.UNAUTHORIZED, "AI credentials missing or invalid"),
    (FailureKind.RETRIEVAL, "Generation failed"),
    (FailureKind.PROVIDER, "Generation failed"),
    (FailureKind.UNKNOWN, "Generation failed"),
])
def test_title_follows_failure_kind(kind, title):
    error = classify_failure(GenerationFailure(kind, "underlying message"))

    assert error.title == title
    assert error.reason == "underlying message"
    assert error.probable_cause
    assert error.suggested_action


def test_classification_ignores_message_text():
    """A message mentioning timeouts does not change the kind."""
    error = classify_failure(GenerationFailure(FailureKind.VALIDATION, "request timeout 429 rate limit"))
    assert error.title == "Missing required information"


def test_untagged_exception_is_generic():
    error = classify_failure(RuntimeError("boom"))
    assert error.title == "Generation failed"
    assert error.reason == "boom"


def test_untagged_exception_without_message_uses_class_name():
    error = classify_failure(KeyError())
    assert error.reason == "KeyError"


def test_structured_error_from_queue_reason():
    error = structured_error_from_reason("job stalled more than allowable limit")
    assert error.title == "Generation failed"
    assert error.reason == "job stalled more than allowable limit"


def test_structured_error_from_empty_reason():
    assert structured_error_from_reason(None).reason == "Unknown error"
