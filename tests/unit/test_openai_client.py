"""Tests for the OpenAI generation client."""

import httpx
import openai
import pytest
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

from lexdraft.generation.client import OpenAIGenerationClient, map_provider_error
from lexdraft.schemas import GenerationRequest
from lexdraft.utils.errors import FailureKind, GenerationFailure

REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


def _status_error(cls, status_code, body=None):
    response = httpx.Response(status_code, request=REQUEST)
    return cls("provider error", response=response, body=body)


def _completion(content="Dear Sir...", prompt_tokens=100, completion_tokens=50):
    return SimpleNamespace(
        id="chatcmpl-1",
        model="gpt-4o-2024-08-06",
        choices=[SimpleNamespace(
            message=SimpleNamespace(content=content),
            finish_reason="stop",
        )],
        usage=SimpleNamespace(prompt_tokens=prompt_tokens, completion_tokens=completion_tokens),
    )


def _client(create):
    sdk = MagicMock()
    sdk.chat.completions.create = create
    return OpenAIGenerationClient(api_key="sk-test", model="gpt-4o", client=sdk)


@pytest.mark.parametrize("exc,kind", [
    (_status_error(openai.RateLimitError, 429), FailureKind.THROTTLED),
    (openai.APITimeoutError(request=REQUEST), FailureKind.TIMEOUT),
    (_status_error(openai.AuthenticationError, 401), FailureKind.UNAUTHORIZED),
    (_status_error(openai.PermissionDeniedError, 403), FailureKind.UNAUTHORIZED),
    (
        _status_error(openai.BadRequestError, 400, {"code": "context_length_exceeded", "message": "too long"}),
        FailureKind.CONTEXT_TOO_LARGE,
    ),
    (_status_error(openai.BadRequestError, 400, {"code": "invalid_value"}), FailureKind.PROVIDER),
    (openai.APIConnectionError(request=REQUEST), FailureKind.SERVICE_UNAVAILABLE),
    (_status_error(openai.InternalServerError, 500), FailureKind.SERVICE_UNAVAILABLE),
    (_status_error(openai.NotFoundError, 404), FailureKind.PROVIDER),
])
def test_provider_errors_map_to_failure_kinds(exc, kind):
    failure = map_provider_error(exc)
    assert failure.kind == kind
    assert failure.details["provider_error"] == exc.__class__.__name__


@pytest.mark.asyncio
async def test_generate_returns_text_and_usage():
    create = AsyncMock(return_value=_completion())
    client = _client(create)

    response = await client.generate(GenerationRequest(
        messages=[{"role": "user", "content": "Draft"}],
        temperature=0.2,
        max_tokens=500,
    ))

    assert response.text == "Dear Sir..."
    assert response.usage.input_tokens == 100
    assert response.usage.output_tokens == 50
    assert response.usage.total_tokens == 150
    assert response.stop_reason == "stop"
    assert response.model_metadata.model_id == "gpt-4o-2024-08-06"
    assert response.model_metadata.request_id == "chatcmpl-1"

    kwargs = create.call_args.kwargs
    assert kwargs["model"] == "gpt-4o"
    assert kwargs["temperature"] == 0.2
    assert kwargs["max_tokens"] == 500


@pytest.mark.asyncio
async def test_generate_applies_defaults():
    create = AsyncMock(return_value=_completion())
    client = _client(create)
    client.default_temperature = 0.7
    client.default_max_tokens = 4096

    await client.generate(GenerationRequest(messages=[{"role": "user", "content": "Draft"}]))

    assert create.call_args.kwargs["temperature"] == 0.7
    assert create.call_args.kwargs["max_tokens"] == 4096


@pytest.mark.asyncio
async def test_generate_raises_tagged_failure():
    client = _client(AsyncMock(side_effect=_status_error(openai.RateLimitError, 429)))

    with pytest.raises(GenerationFailure) as exc_info:
        await client.generate(GenerationRequest(messages=[{"role": "user", "content": "Draft"}]))

    assert exc_info.value.kind == FailureKind.THROTTLED
    assert exc_info.value.details["status_code"] == 429


@pytest.mark.asyncio
async def test_empty_completion_is_a_provider_failure():
    client = _client(AsyncMock(return_value=_completion(content="   ")))

    with pytest.raises(GenerationFailure) as exc_info:
        await client.generate(GenerationRequest(messages=[{"role": "user", "content": "Draft"}]))

    assert exc_info.value.kind == FailureKind.PROVIDER


@pytest.mark.asyncio
async def test_missing_api_key_is_unauthorized():
    client = OpenAIGenerationClient(api_key="")

    with pytest.raises(GenerationFailure) as exc_info:
        await client.generate(GenerationRequest(messages=[{"role": "user", "content": "Draft"}]))

    assert exc_info.value.kind == FailureKind.UNAUTHORIZED
