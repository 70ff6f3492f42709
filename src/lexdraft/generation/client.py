"""
AI text generation client

Wraps the OpenAI chat completions API and translates provider errors into
tagged generation failures.
"""

import logging
from typing import Optional

import openai
from openai import AsyncOpenAI

from ..config import settings
from ..schemas.ai import GenerationRequest, GenerationResponse, ModelMetadata
from ..schemas.jobs import TokenUsage
from ..utils.errors import FailureKind, GenerationFailure

logger = logging.getLogger(__name__)


def map_provider_error(exc: Exception) -> GenerationFailure:
    """Tag an OpenAI SDK exception with its failure kind."""
    if isinstance(exc, openai.RateLimitError):
        kind = FailureKind.THROTTLED
    elif isinstance(exc, openai.APITimeoutError):
        kind = FailureKind.TIMEOUT
    elif isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError)):
        kind = FailureKind.UNAUTHORIZED
    elif isinstance(exc, openai.BadRequestError) and exc.code == "context_length_exceeded":
        kind = FailureKind.CONTEXT_TOO_LARGE
    elif isinstance(exc, (openai.APIConnectionError, openai.InternalServerError)):
        kind = FailureKind.SERVICE_UNAVAILABLE
    else:
        kind = FailureKind.PROVIDER

    details = {"provider_error": exc.__class__.__name__}
    status_code = getattr(exc, "status_code", None)
    if status_code is not None:
        details["status_code"] = status_code
    return GenerationFailure(kind, str(exc), details)


class OpenAIGenerationClient:
    """GenerationClient backed by ``openai.AsyncOpenAI``.

    SDK retries are disabled; the orchestrator owns the retry policy.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        default_temperature: Optional[float] = None,
        default_max_tokens: Optional[int] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        api_key = api_key if api_key is not None else settings.OPENAI_API_KEY
        self.model = model or settings.OPENAI_CHAT_MODEL or "gpt-4o"
        self.default_temperature = (
            settings.AI_DEFAULT_TEMPERATURE if default_temperature is None else default_temperature
        )
        self.default_max_tokens = default_max_tokens or settings.AI_DEFAULT_MAX_TOKENS

        if client is not None:
            self._client = client
        elif api_key:
            self._client = AsyncOpenAI(
                api_key=api_key,
                base_url=base_url or settings.OPENAI_BASE_URL,
                max_retries=0,
            )
        else:
            self._client = None

    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        if self._client is None:
            raise GenerationFailure(
                FailureKind.UNAUTHORIZED,
                "OpenAI API key is not configured",
            )

        temperature = self.default_temperature if request.temperature is None else request.temperature
        max_tokens = request.max_tokens or self.default_max_tokens

        logger.info(
            f"[generation] Calling OpenAI model {self.model}",
            extra={"model": self.model, "max_tokens": max_tokens},
        )

        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                messages=request.messages,
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except openai.OpenAIError as e:
            failure = map_provider_error(e)
            logger.warning(
                f"[generation] OpenAI request failed ({failure.kind.value}): {e}",
                extra=failure.details,
            )
            raise failure from e

        choice = response.choices[0] if response.choices else None
        text = (choice.message.content or "") if choice else ""
        if not text.strip():
            raise GenerationFailure(
                FailureKind.PROVIDER,
                "AI model returned an empty response",
                {"finish_reason": choice.finish_reason if choice else None},
            )

        input_tokens = response.usage.prompt_tokens if response.usage else 0
        output_tokens = response.usage.completion_tokens if response.usage else 0

        return GenerationResponse(
            text=text,
            usage=TokenUsage(
                input_tokens=input_tokens,
                output_tokens=output_tokens,
                total_tokens=input_tokens + output_tokens,
            ),
            stop_reason=choice.finish_reason,
            model_metadata=ModelMetadata(
                model_id=response.model or self.model,
                request_id=response.id,
            ),
        )
