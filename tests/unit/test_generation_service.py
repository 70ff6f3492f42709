"""Tests for the caller-facing generation operations."""

import asyncio
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from unittest.mock import AsyncMock

from lexdraft.models import LetterStatus
from lexdraft.queue import JobState
from lexdraft.schemas import StartGenerationRequest
from lexdraft.services import GenerationService
from lexdraft.utils.errors import (
    AccessDenied,
    CannotCancelJob,
    JobNotFound,
    LetterNotFound,
    QueueUnavailable,
    TemplateNotFound,
)
from tests.fakes import InMemoryLetters, StaticTemplates, make_payload


def make_request(**overrides):
    fields = {
        key: value
        for key, value in make_payload().items()
        if key not in ("letter_id", "firm_id", "user_id")
    }
    fields.update(overrides)
    return StartGenerationRequest(**fields)


@pytest.fixture
def letters():
    return InMemoryLetters()


@pytest.fixture
def service(store, letters):
    return GenerationService(store, letters, StaticTemplates("Firm template"))


@pytest.mark.asyncio
async def test_start_creates_letter_and_enqueues_job(service, store, letters):
    response = await service.start_generation(
        make_request(document_ids=["doc-1"], template_id="tpl-1"), "firm-1", "user-1"
    )

    assert response.job_id == response.letter_id
    assert response.status == "queued"

    letter = letters.records[response.letter_id]
    assert letter.status == LetterStatus.DRAFT
    assert letter.metadata["generationStatus"] == "pending"
    assert letter.title == "Demand Letter - Jane Roe v. Acme Logistics LLC"
    assert letters.links[response.letter_id] == ["doc-1"]

    job = await store.get_job(response.job_id)
    assert job.priority == 1
    assert job.data["letter_id"] == response.letter_id
    assert job.data["firm_id"] == "firm-1"
    assert job.data["template_content"] == "Firm template"
    assert job.data["damages"]["medical"] == 5000


@pytest.mark.asyncio
async def test_start_with_unknown_template(store, letters):
    service = GenerationService(store, letters, StaticTemplates(error=TemplateNotFound("Template tpl-1 not found")))

    with pytest.raises(TemplateNotFound):
        await service.start_generation(make_request(template_id="tpl-1"), "firm-1", "user-1")

    assert letters.records == {}


@pytest.mark.asyncio
async def test_regeneration_reuses_letter(service, store, letters):
    letters.seed("ltr-1", metadata={"previousVersions": [1], "generationStatus": "completed"}, status=LetterStatus.IN_REVIEW)

    response = await service.start_generation(make_request(letter_id="ltr-1"), "firm-1", "user-1")

    assert response.letter_id == "ltr-1"
    assert response.job_id == "ltr-1"
    letter = letters.records["ltr-1"]
    assert letter.status == LetterStatus.DRAFT
    assert letter.metadata["generationStatus"] == "pending"
    assert letter.metadata["previousVersions"] == [1]


@pytest.mark.asyncio
async def test_regeneration_while_in_flight_is_deduplicated(service, store, letters):
    letters.seed("ltr-1")
    await service.start_generation(make_request(letter_id="ltr-1"), "firm-1", "user-1")

    response = await service.start_generation(make_request(letter_id="ltr-1"), "firm-1", "user-1")

    assert response.message == "Letter generation already in progress"
    assert (await store.stats()).waiting == 1


@pytest.mark.asyncio
async def test_regeneration_of_other_firms_letter(service, letters):
    letters.seed("ltr-1", firm_id="firm-2")

    with pytest.raises(AccessDenied):
        await service.start_generation(make_request(letter_id="ltr-1"), "firm-1", "user-1")


@pytest.mark.asyncio
async def test_regeneration_of_unknown_letter(service):
    with pytest.raises(LetterNotFound):
        await service.start_generation(make_request(letter_id="missing"), "firm-1", "user-1")


@pytest.mark.asyncio
async def test_start_when_queue_is_unavailable(service, store, letters):
    store.redis.incr = AsyncMock(side_effect=RedisConnectionError("refused"))

    with pytest.raises(QueueUnavailable):
        await service.start_generation(make_request(), "firm-1", "user-1")

    (letter,) = letters.records.values()
    assert letter.metadata["generationStatus"] == "queue_unavailable"


@pytest.mark.asyncio
async def test_status_of_unknown_job(service):
    with pytest.raises(JobNotFound):
        await service.get_generation_status("missing")


@pytest.mark.asyncio
async def test_status_mapping(service, store, letters):
    response = await service.start_generation(make_request(), "firm-1", "user-1")
    job_id = response.job_id

    status = await service.get_generation_status(job_id)
    assert status.status == "queued"
    assert status.job_state == "waiting"

    await store.claim_next()
    await store.update_progress(job_id, 40)
    status = await service.get_generation_status(job_id)
    assert status.status == "processing"
    assert status.progress == 40

    await store.complete(job_id, {"success": True, "letter_id": job_id, "content": "Dear Sir..."})
    status = await service.get_generation_status(job_id)
    assert status.status == "completed"
    assert status.letter.id == job_id
    assert status.error is None


@pytest.mark.asyncio
async def test_completed_job_with_failed_result_reports_failed(service, store):
    response = await service.start_generation(make_request(), "firm-1", "user-1")
    await store.claim_next()
    await store.complete(response.job_id, {
        "success": False,
        "letter_id": response.job_id,
        "error": {
            "title": "Missing required information",
            "reason": "Missing or invalid fields: client_name",
            "probable_cause": "x",
            "suggested_action": "y",
        },
    })

    status = await service.get_generation_status(response.job_id)

    assert status.status == "failed"
    assert status.job_state == "completed"
    assert status.error.title == "Missing required information"


@pytest.mark.asyncio
async def test_failed_job_reports_structured_error(service, store):
    response = await service.start_generation(make_request(), "firm-1", "user-1")
    await store.claim_next()
    while (await store.fail(response.job_id, "worker crashed")).state is JobState.DELAYED:
        await asyncio.sleep(0.05)
        await store.promote_delayed()
        await store.claim_next()

    status = await service.get_generation_status(response.job_id)

    assert status.status == "failed"
    assert status.error.title == "Generation failed"
    assert status.error.reason == "worker crashed"


@pytest.mark.asyncio
async def test_status_of_other_firms_job(service):
    response = await service.start_generation(make_request(), "firm-1", "user-1")

    with pytest.raises(AccessDenied):
        await service.get_generation_status(response.job_id, firm_id="firm-2")


@pytest.mark.asyncio
async def test_cancel_waiting_job_archives_letter(service, store, letters):
    response = await service.start_generation(make_request(), "firm-1", "user-1")

    await service.cancel_generation(response.job_id, "firm-1", "user-9")

    assert (await store.get_status(response.job_id)).status == JobState.NOT_FOUND
    letter = letters.records[response.letter_id]
    assert letter.status == LetterStatus.ARCHIVED
    assert letter.metadata["cancelled"] is True
    assert letter.metadata["cancelledBy"] == "user-9"
    assert letter.metadata["generationStatus"] == "cancelled"
    assert "cancelledAt" in letter.metadata


@pytest.mark.asyncio
async def test_cancel_active_job_is_refused(service, store, letters):
    response = await service.start_generation(make_request(), "firm-1", "user-1")
    await store.claim_next()

    with pytest.raises(CannotCancelJob, match="Cannot cancel job in status: active"):
        await service.cancel_generation(response.job_id, "firm-1", "user-1")

    assert (await store.get_status(response.job_id)).status == JobState.ACTIVE
    assert letters.records[response.letter_id].status == LetterStatus.DRAFT


@pytest.mark.asyncio
async def test_cancel_completed_job_is_refused(service, store):
    response = await service.start_generation(make_request(), "firm-1", "user-1")
    await store.claim_next()
    await store.complete(response.job_id, {"success": True})

    with pytest.raises(CannotCancelJob, match="completed"):
        await service.cancel_generation(response.job_id, "firm-1", "user-1")


@pytest.mark.asyncio
async def test_cancel_other_firms_job(service, store, letters):
    response = await service.start_generation(make_request(), "firm-1", "user-1")

    with pytest.raises(AccessDenied):
        await service.cancel_generation(response.job_id, "firm-2", "user-1")

    assert (await store.get_status(response.job_id)).status == JobState.WAITING
    assert letters.records[response.letter_id].status == LetterStatus.DRAFT


@pytest.mark.asyncio
async def test_cancel_unknown_job(service):
    with pytest.raises(JobNotFound):
        await service.cancel_generation("missing", "firm-1", "user-1")


@pytest.mark.asyncio
async def test_cancel_job_finished_after_status_read_is_refused(service, store, letters, monkeypatch):
    response = await service.start_generation(make_request(), "firm-1", "user-1")
    waiting_view = await store.get_status(response.job_id)
    await store.claim_next()
    await store.complete(response.job_id, {"success": True})
    finished_view = await store.get_status(response.job_id)
    monkeypatch.setattr(store, "get_status", AsyncMock(side_effect=[waiting_view, finished_view]))

    with pytest.raises(CannotCancelJob, match="Cannot cancel job in status: completed"):
        await service.cancel_generation(response.job_id, "firm-1", "user-1")

    assert await store.get_job(response.job_id) is not None
    assert letters.records[response.letter_id].status == LetterStatus.DRAFT


@pytest.mark.asyncio
async def test_status_and_cancel_when_queue_is_unavailable(service, redis_server):
    response = await service.start_generation(make_request(), "firm-1", "user-1")
    redis_server.connected = False

    with pytest.raises(QueueUnavailable):
        await service.get_generation_status(response.job_id)
    with pytest.raises(QueueUnavailable):
        await service.cancel_generation(response.job_id, "firm-1", "user-1")

    redis_server.connected = True
