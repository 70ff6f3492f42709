"""
Letter generation service

Caller-facing operations:
- Start a generation (new letter or regeneration)
- Poll generation status
- Cancel a queued generation
"""

import logging
from typing import Optional
from uuid import uuid4

from ..generation.classifier import structured_error_from_reason
from ..generation.metadata import merge_metadata
from ..models import LetterStatus
from ..queue.models import JobOptions, JobStatusView
from ..queue.states import CANCELLABLE_STATES, JobState
from ..queue.store import DurableQueueStore
from ..repositories.interfaces import LetterStore, TemplateSource
from ..schemas.generation import (
    GenerationStatusResponse,
    StartGenerationRequest,
    StartGenerationResponse,
)
from ..schemas.jobs import LetterGenerationJob, StructuredError
from ..schemas.letters import LetterCreate, LetterRecord
from ..utils.asyncio import utc_now
from ..utils.errors import (
    AccessDenied,
    CannotCancelJob,
    JobNotFound,
    JobStateError,
    LetterNotFound,
    QueueUnavailable,
)

logger = logging.getLogger(__name__)

# Generation jobs jump ahead of default-priority work
GENERATION_PRIORITY = 1

_CALLER_STATUS = {
    JobState.WAITING: "queued",
    JobState.DELAYED: "queued",
    JobState.ACTIVE: "processing",
    JobState.FAILED: "failed",
}


def caller_status(view: JobStatusView) -> str:
    """Status shown to callers for a queue status snapshot."""
    if view.status is JobState.COMPLETED:
        return "completed" if (view.result or {}).get("success") else "failed"
    return _CALLER_STATUS.get(view.status, view.status.value)


class GenerationService:
    """Letter generation operations on top of the generation queue."""

    def __init__(
        self,
        queue: DurableQueueStore,
        letters: LetterStore,
        templates: TemplateSource,
    ):
        self.queue = queue
        self.letters = letters
        self.templates = templates

    async def start_generation(
        self,
        request: StartGenerationRequest,
        firm_id: str,
        user_id: str,
    ) -> StartGenerationResponse:
        """
        Create (or reuse) the letter and queue its generation job

        Args:
            request: Case information and generation overrides
            firm_id: Firm of the calling user
            user_id: Calling user

        Returns:
            Letter id, job id and caller status

        Raises:
            TemplateNotFound: If ``template_id`` is unknown for the firm
            LetterNotFound: If a regeneration targets an unknown letter
            AccessDenied: If a regeneration targets another firm's letter
            QueueUnavailable: If the queue cannot accept the job
        """
        template_content = None
        if request.template_id:
            template_content = await self.templates.get_template_content(request.template_id, firm_id)

        if request.letter_id:
            letter = await self._get_letter_for_firm(request.letter_id, firm_id)
            letter_id = letter.id

            in_flight = await self.queue.get_job(letter_id)
            if in_flight is not None and not in_flight.state.is_terminal:
                logger.info(f"[generation] Letter {letter_id} already has a generation in progress")
                return self._response(letter_id, in_flight.state, deduplicated=True)

            await self.letters.update(
                letter_id,
                status=LetterStatus.DRAFT,
                metadata={"generationStatus": "pending"},
            )
        else:
            letter_id = str(uuid4())
            await self.letters.create(letter_id, LetterCreate(
                firm_id=firm_id,
                created_by=user_id,
                title=request.title or f"Demand Letter - {request.client_name} v. {request.defendant_name}",
                template_id=request.template_id,
                recipient_name=request.recipient_name or request.defendant_name,
                recipient_address=request.recipient_address or request.defendant_address,
                case_reference=request.case_reference,
                metadata={"generationStatus": "pending", "caseType": request.case_type},
            ))

        if request.document_ids:
            await self.letters.link_documents(letter_id, request.document_ids)

        payload = LetterGenerationJob(
            letter_id=letter_id,
            firm_id=firm_id,
            user_id=user_id,
            template_content=template_content,
            **request.model_dump(exclude={"letter_id", "title", "recipient_name", "recipient_address", "case_reference"}),
        ).model_dump(mode="json")

        requested_at = utc_now()
        try:
            job = await self.queue.enqueue(
                payload,
                JobOptions(job_id=letter_id, priority=GENERATION_PRIORITY),
            )
        except QueueUnavailable:
            await self.letters.update(letter_id, metadata={"generationStatus": "queue_unavailable"})
            raise

        deduplicated = job.created_at < requested_at
        logger.info(
            f"[generation] Queued generation for letter {letter_id}",
            extra={"letter_id": letter_id, "job_id": job.id, "firm_id": firm_id, "deduplicated": deduplicated},
        )
        return self._response(letter_id, job.state, deduplicated=deduplicated, job_id=job.id)

    async def get_generation_status(
        self,
        job_id: str,
        firm_id: Optional[str] = None,
    ) -> GenerationStatusResponse:
        """
        Caller view of a generation job

        Raises:
            JobNotFound: If the job does not exist (or was cleaned)
            AccessDenied: If ``firm_id`` is given and the job belongs to another firm
            QueueUnavailable: If Redis cannot be reached
        """
        view = await self.queue.get_status(job_id)
        if view.status is JobState.NOT_FOUND:
            raise JobNotFound(f"Generation job {job_id} not found")

        data = view.data or {}
        if firm_id is not None and data.get("firm_id") != firm_id:
            raise AccessDenied("Access denied")

        response = GenerationStatusResponse(
            job_id=job_id,
            status=caller_status(view),
            job_state=view.status.value,
            progress=view.progress or 0,
            attempts_made=view.attempts_made or 0,
            result=view.result,
        )

        if view.status is JobState.FAILED:
            response.error = structured_error_from_reason(view.error)
        elif view.result is not None and not view.result.get("success"):
            raw_error = view.result.get("error")
            response.error = (
                StructuredError.model_validate(raw_error)
                if raw_error else structured_error_from_reason("Unknown error")
            )

        if view.status is JobState.COMPLETED:
            letter_id = data.get("letter_id") or job_id
            try:
                response.letter = await self.letters.get_by_id(letter_id)
            except Exception as e:
                logger.warning(f"[generation] Could not load letter {letter_id} for status: {e}")

        return response

    async def cancel_generation(self, job_id: str, firm_id: str, user_id: str) -> None:
        """
        Cancel a queued generation and archive its letter

        The job is removed before the letter is touched, so a job claimed by
        a worker in the meantime leaves the letter unchanged.

        Raises:
            JobNotFound: If the job does not exist
            CannotCancelJob: If the job is not waiting or delayed
            AccessDenied: If the job belongs to another firm
            QueueUnavailable: If Redis cannot be reached
        """
        view = await self.queue.get_status(job_id)
        if view.status is JobState.NOT_FOUND:
            raise JobNotFound(f"Generation job {job_id} not found")

        if not view.status.is_cancellable:
            raise CannotCancelJob(f"Cannot cancel job in status: {view.status.value}")

        data = view.data or {}
        if data.get("firm_id") != firm_id:
            raise AccessDenied("Access denied")

        try:
            removed = await self.queue.remove(job_id, allowed_states=CANCELLABLE_STATES)
        except JobStateError as e:
            # Claimed or finished since the status read
            current_view = await self.queue.get_status(job_id)
            raise CannotCancelJob(f"Cannot cancel job in status: {current_view.status.value}") from e
        if not removed:
            raise JobNotFound(f"Generation job {job_id} not found")

        letter_id = data.get("letter_id") or job_id
        current = await self.letters.get_by_id(letter_id)
        metadata = merge_metadata(current.metadata if current else {}, {
            "cancelled": True,
            "cancelledAt": utc_now().isoformat(),
            "cancelledBy": user_id,
            "generationStatus": "cancelled",
        })
        await self.letters.update(letter_id, status=LetterStatus.ARCHIVED, metadata=metadata)

        logger.info(
            f"[generation] Generation job {job_id} cancelled",
            extra={"job_id": job_id, "letter_id": letter_id, "firm_id": firm_id, "user_id": user_id},
        )

    async def _get_letter_for_firm(self, letter_id: str, firm_id: str) -> LetterRecord:
        letter = await self.letters.get_by_id(letter_id)
        if letter is None:
            raise LetterNotFound(f"Letter {letter_id} not found")
        if letter.firm_id != firm_id:
            raise AccessDenied("Access denied")
        return letter

    @staticmethod
    def _response(
        letter_id: str,
        state: JobState,
        deduplicated: bool,
        job_id: Optional[str] = None,
    ) -> StartGenerationResponse:
        status = _CALLER_STATUS.get(state, state.value)
        message = (
            "Letter generation already in progress"
            if deduplicated else "Letter generation started"
        )
        return StartGenerationResponse(
            letter_id=letter_id,
            job_id=job_id or letter_id,
            status=status,
            message=message,
        )
