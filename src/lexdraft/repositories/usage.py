"""AI usage telemetry."""

import logging
from uuid import uuid4

from sqlalchemy.ext.asyncio import async_sessionmaker

from ..models import AIUsage
from .interfaces import UsageEvent

logger = logging.getLogger(__name__)


class UsageTracker:
    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def record(self, event: UsageEvent) -> None:
        async with self.session_factory() as session:
            session.add(AIUsage(id=str(uuid4()), **event.model_dump()))
            await session.commit()

        logger.info(
            f"[usage] {event.operation_type} used {event.total_tokens} tokens (${event.cost:.4f})",
            extra={
                "firm_id": event.firm_id,
                "letter_id": event.letter_id,
                "job_id": event.job_id,
                "model_id": event.model_id,
                "processing_time_ms": event.processing_time_ms,
            },
        )
