"""
Generation orchestrator

Runs one letter generation job end to end:
1. Validate the job payload
2. Retrieve supporting documents and template, assemble the prompt
3. Generate with retries, bounded by a wall-clock timeout
4. Persist letter content, version snapshot and usage telemetry

Every outcome is returned as a GenerationResult; failures are classified and
recorded on the letter instead of being raised.
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional

from pydantic import ValidationError

from ..config import settings
from ..models import LetterStatus
from ..queue.models import JobRecord
from ..repositories.interfaces import (
    DocumentSource,
    GenerationClient,
    LetterStore,
    TemplateSource,
    UsageEvent,
    UsageRecorder,
    VersionStore,
)
from ..schemas.ai import GenerationRequest, GenerationResponse
from ..schemas.jobs import GenerationResult, LetterGenerationJob
from ..utils.asyncio import utc_now
from ..utils.errors import FailureKind, GenerationFailure
from .backoff import compute_backoff_delay
from .classifier import classify_failure
from .metadata import merge_metadata
from .pricing import calculate_cost
from .prompts import build_messages, estimate_messages_tokens

logger = logging.getLogger(__name__)

ProgressReporter = Callable[[int, str, str], Awaitable[None]]


async def _no_progress(progress: int, step: str, message: str) -> None:
    return None


class GenerationOrchestrator:
    """Processes letter generation jobs."""

    def __init__(
        self,
        ai_client: GenerationClient,
        letters: LetterStore,
        versions: VersionStore,
        usage: UsageRecorder,
        documents: DocumentSource,
        templates: TemplateSource,
        *,
        timeout_seconds: Optional[float] = None,
        max_attempts: Optional[int] = None,
        retry_base_delay_ms: Optional[int] = None,
        retry_max_delay_ms: Optional[int] = None,
        max_input_tokens: Optional[int] = None,
    ):
        self.ai_client = ai_client
        self.letters = letters
        self.versions = versions
        self.usage = usage
        self.documents = documents
        self.templates = templates

        self.timeout_seconds = timeout_seconds or settings.GENERATION_TIMEOUT_SECONDS
        self.max_attempts = max_attempts or settings.GENERATION_MAX_ATTEMPTS
        self.retry_base_delay_ms = (
            settings.GENERATION_RETRY_BASE_DELAY_MS if retry_base_delay_ms is None else retry_base_delay_ms
        )
        self.retry_max_delay_ms = (
            settings.GENERATION_RETRY_MAX_DELAY_MS if retry_max_delay_ms is None else retry_max_delay_ms
        )
        self.max_input_tokens = max_input_tokens or settings.AI_MAX_INPUT_TOKENS

    async def handle(
        self,
        job: JobRecord,
        report_progress: Optional[ProgressReporter] = None,
    ) -> Dict[str, Any]:
        """Queue processor entry point; returns the JSON-ready result."""
        result = await self.process(job.data, job_id=job.id, report_progress=report_progress)
        return result.model_dump(mode="json")

    async def process(
        self,
        payload: Dict[str, Any],
        job_id: Optional[str] = None,
        report_progress: Optional[ProgressReporter] = None,
    ) -> GenerationResult:
        started = time.monotonic()
        reporter = report_progress or _no_progress
        letter_id = str(payload.get("letter_id") or "")
        job_id = job_id or letter_id

        try:
            await self._report(reporter, 5, "validating", "Validating case information")
            job = self._validate(payload)

            messages = await self._prepare_messages(job)

            await self._report(reporter, 10, "generating", "Generating letter draft")
            request = GenerationRequest(
                messages=messages,
                temperature=job.temperature,
                max_tokens=job.max_tokens,
            )
            response = await self._generate_with_timeout(request, letter_id)

            await self._report(reporter, 50, "saving", "Saving generated letter")
            result = await self._persist(job, job_id, response, started, reporter)

            await self._report(reporter, 100, "completed", "Letter generated")
            logger.info(
                f"[generation] Letter {letter_id} generated",
                extra={
                    "letter_id": letter_id,
                    "job_id": job_id,
                    "total_tokens": response.usage.total_tokens,
                    "duration_ms": int((time.monotonic() - started) * 1000),
                },
            )
            return result

        except Exception as exc:
            return await self._record_failure(letter_id, job_id, exc)

    # ===== STEPS =====

    def _validate(self, payload: Dict[str, Any]) -> LetterGenerationJob:
        try:
            return LetterGenerationJob.model_validate(payload)
        except ValidationError as e:
            fields = sorted({
                ".".join(str(part) for part in error["loc"]) or "payload"
                for error in e.errors()
            })
            raise GenerationFailure(
                FailureKind.VALIDATION,
                f"Missing or invalid fields: {', '.join(fields)}",
                {"fields": fields},
            ) from e

    async def _prepare_messages(self, job: LetterGenerationJob) -> List[Dict[str, str]]:
        try:
            documents = []
            if job.document_ids:
                documents = await self.documents.get_document_texts(job.document_ids, job.firm_id)

            template_content = job.template_content
            if template_content is None and job.template_id:
                template_content = await self.templates.get_template_content(
                    job.template_id, job.firm_id
                )
        except Exception as e:
            raise GenerationFailure(FailureKind.RETRIEVAL, str(e)) from e

        messages = build_messages(job, documents, template_content, self.max_input_tokens)

        tokens = estimate_messages_tokens(messages)
        if tokens > self.max_input_tokens:
            raise GenerationFailure(
                FailureKind.CONTEXT_TOO_LARGE,
                f"Input context too large: {tokens} tokens (max: {self.max_input_tokens})",
                {"tokens": tokens},
            )
        return messages

    async def _generate_with_timeout(
        self,
        request: GenerationRequest,
        letter_id: str,
    ) -> GenerationResponse:
        try:
            return await asyncio.wait_for(
                self._generate_with_retry(request, letter_id),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise GenerationFailure(
                FailureKind.TIMEOUT,
                f"Generation timed out after {self.timeout_seconds:g} seconds",
            ) from e

    async def _generate_with_retry(
        self,
        request: GenerationRequest,
        letter_id: str,
    ) -> GenerationResponse:
        last_error: Optional[Exception] = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                return await self.ai_client.generate(request)
            except Exception as e:
                last_error = e
                if attempt == self.max_attempts:
                    break
                delay_ms = compute_backoff_delay(
                    attempt, self.retry_base_delay_ms, self.retry_max_delay_ms
                )
                logger.warning(
                    f"[generation] Attempt {attempt}/{self.max_attempts} failed for letter "
                    f"{letter_id}, retrying in {delay_ms}ms: {e}",
                    extra={"letter_id": letter_id, "attempt": attempt},
                )
                await asyncio.sleep(delay_ms / 1000)

        logger.error(
            f"[generation] All {self.max_attempts} attempts failed for letter {letter_id}",
            extra={"letter_id": letter_id},
        )
        if isinstance(last_error, GenerationFailure):
            raise last_error
        kind = FailureKind.TIMEOUT if isinstance(last_error, asyncio.TimeoutError) else FailureKind.UNKNOWN
        raise GenerationFailure(kind, str(last_error) or last_error.__class__.__name__) from last_error

    async def _persist(
        self,
        job: LetterGenerationJob,
        job_id: str,
        response: GenerationResponse,
        started: float,
        reporter: ProgressReporter,
    ) -> GenerationResult:
        usage = response.usage
        model_id = response.model_metadata.model_id
        cost = calculate_cost(usage.input_tokens, usage.output_tokens, model_id)
        generated_at = utc_now()

        current = await self.letters.get_by_id(job.letter_id)
        metadata = merge_metadata(current.metadata if current else {}, {
            "aiGenerated": True,
            "usage": usage.model_dump(),
            "cost": cost,
            "modelId": model_id,
            "generationStatus": "completed",
            "generatedAt": generated_at.isoformat(),
            "jobId": job_id,
        })
        await self.letters.update(
            job.letter_id,
            content=response.text,
            status=LetterStatus.IN_REVIEW,
            metadata=metadata,
        )
        await self._report(reporter, 75, "saving", "Recording version and usage")

        elapsed_ms = int((time.monotonic() - started) * 1000)
        outcomes = await asyncio.gather(
            self.versions.create_version(job.letter_id, response.text, job.user_id),
            self.usage.record(UsageEvent(
                firm_id=job.firm_id,
                user_id=job.user_id,
                operation_type="generation",
                model_id=model_id,
                input_tokens=usage.input_tokens,
                output_tokens=usage.output_tokens,
                total_tokens=usage.total_tokens,
                cost=cost,
                request_id=response.model_metadata.request_id,
                letter_id=job.letter_id,
                job_id=job_id,
                processing_time_ms=elapsed_ms,
                document_ids=job.document_ids or [],
                details={"case_type": job.case_type, "stop_reason": response.stop_reason},
            )),
            return_exceptions=True,
        )
        for label, outcome in zip(("version snapshot", "usage record"), outcomes):
            if isinstance(outcome, BaseException):
                logger.error(
                    f"[generation] Could not save {label} for letter {job.letter_id}: {outcome}",
                    extra={"letter_id": job.letter_id, "job_id": job_id},
                )

        return GenerationResult(
            success=True,
            letter_id=job.letter_id,
            content=response.text,
            usage=usage,
            cost=cost,
            generated_at=generated_at,
        )

    async def _record_failure(
        self,
        letter_id: str,
        job_id: str,
        exc: Exception,
    ) -> GenerationResult:
        error = classify_failure(exc)
        failed_at = utc_now()
        logger.error(
            f"[generation] Letter {letter_id or '<unknown>'} failed: {error.title}: {error.reason}",
            extra={"letter_id": letter_id, "job_id": job_id, "error_title": error.title},
            exc_info=not isinstance(exc, GenerationFailure),
        )

        if letter_id:
            existing: Dict[str, Any] = {}
            try:
                current = await self.letters.get_by_id(letter_id)
                if current is not None:
                    existing = current.metadata
            except Exception as e:
                logger.warning(f"[generation] Could not re-read letter {letter_id}: {e}")

            metadata = merge_metadata(existing, {
                "generationStatus": "failed",
                "error": error.model_dump(by_alias=True),
                "failedAt": failed_at.isoformat(),
                "jobId": job_id,
            })
            try:
                await self.letters.update(letter_id, status=LetterStatus.DRAFT, metadata=metadata)
            except Exception as e:
                logger.error(
                    f"[generation] Could not record failure on letter {letter_id}: {e}",
                    extra={"letter_id": letter_id, "job_id": job_id},
                )

        return GenerationResult(
            success=False,
            letter_id=letter_id,
            error=error,
            generated_at=failed_at,
        )

    @staticmethod
    async def _report(reporter: ProgressReporter, progress: int, step: str, message: str) -> None:
        try:
            await reporter(progress, step, message)
        except Exception as e:
            logger.warning(f"[generation] Progress update failed at {progress}%: {e}")
