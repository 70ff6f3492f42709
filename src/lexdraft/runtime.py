"""Wires the queue, persistence, AI client, orchestrator and worker together."""

import logging
from dataclasses import dataclass
from typing import Optional

from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import async_sessionmaker

from .config import Settings, settings as default_settings
from .generation.client import OpenAIGenerationClient
from .generation.orchestrator import GenerationOrchestrator
from .queue.registry import QueueRegistry
from .repositories import (
    DocumentRepository,
    GenerationClient,
    LetterRepository,
    TemplateRepository,
    UsageTracker,
    VersionRepository,
)
from .services.generation import GenerationService
from .workers.scheduler import WorkerScheduler

logger = logging.getLogger(__name__)


@dataclass
class Runtime:
    settings: Settings
    registry: QueueRegistry
    orchestrator: GenerationOrchestrator
    scheduler: WorkerScheduler
    service: GenerationService
    run_worker: bool = True

    async def start(self) -> None:
        """Connect to Redis in the background and optionally start the worker."""
        await self.registry.start()
        if self.run_worker:
            await self.scheduler.start()
        logger.info(
            f"[runtime] Started (in-process worker: {'on' if self.run_worker else 'off'})"
        )

    async def stop(self) -> None:
        await self.scheduler.stop()
        await self.registry.close()
        logger.info("[runtime] Stopped")


def build_runtime(
    settings: Optional[Settings] = None,
    *,
    redis_client: Optional[Redis] = None,
    session_factory: Optional[async_sessionmaker] = None,
    ai_client: Optional[GenerationClient] = None,
    run_worker: Optional[bool] = None,
) -> Runtime:
    """
    Build the generation runtime

    Args:
        settings: Configuration (defaults to the module settings)
        redis_client: Existing Redis client; one is created from REDIS_URL otherwise
        session_factory: Session factory for the repositories
        ai_client: Text generator; defaults to the OpenAI client
        run_worker: Override RUN_WORKER_IN_PROCESS

    Returns:
        Runtime whose start()/stop() the host process calls
    """
    settings = settings or default_settings
    if session_factory is None:
        from .database import async_session
        session_factory = async_session

    registry = QueueRegistry(settings, client=redis_client)
    letters = LetterRepository(session_factory)
    templates = TemplateRepository(session_factory)

    orchestrator = GenerationOrchestrator(
        ai_client or OpenAIGenerationClient(
            api_key=settings.OPENAI_API_KEY,
            model=settings.OPENAI_CHAT_MODEL,
            base_url=settings.OPENAI_BASE_URL,
            default_temperature=settings.AI_DEFAULT_TEMPERATURE,
            default_max_tokens=settings.AI_DEFAULT_MAX_TOKENS,
        ),
        letters,
        VersionRepository(session_factory),
        UsageTracker(session_factory),
        DocumentRepository(session_factory),
        templates,
        timeout_seconds=settings.GENERATION_TIMEOUT_SECONDS,
        max_attempts=settings.GENERATION_MAX_ATTEMPTS,
        retry_base_delay_ms=settings.GENERATION_RETRY_BASE_DELAY_MS,
        retry_max_delay_ms=settings.GENERATION_RETRY_MAX_DELAY_MS,
        max_input_tokens=settings.AI_MAX_INPUT_TOKENS,
    )
    scheduler = WorkerScheduler(
        registry,
        orchestrator.handle,
        settings.GENERATION_QUEUE_NAME,
        concurrency=settings.WORKER_CONCURRENCY,
        poll_interval=settings.WORKER_POLL_INTERVAL,
        reconnect_interval=settings.REDIS_RECONNECT_INTERVAL,
        shutdown_timeout=settings.WORKER_SHUTDOWN_TIMEOUT,
    )
    service = GenerationService(
        registry.get(settings.GENERATION_QUEUE_NAME),
        letters,
        templates,
    )

    return Runtime(
        settings=settings,
        registry=registry,
        orchestrator=orchestrator,
        scheduler=scheduler,
        service=service,
        run_worker=settings.RUN_WORKER_IN_PROCESS if run_worker is None else run_worker,
    )
