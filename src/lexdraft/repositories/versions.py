"""Letter version snapshots."""

import logging
from typing import Optional
from uuid import uuid4

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import async_sessionmaker

from ..models import Letter, LetterVersion
from ..utils.errors import LetterNotFound

logger = logging.getLogger(__name__)


class VersionRepository:
    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def create_version(
        self,
        letter_id: str,
        content: str,
        created_by: Optional[str] = None,
    ) -> int:
        """Snapshot ``content`` as the next version and bump the letter's counter.

        Returns:
            The new version number
        """
        async with self.session_factory() as session:
            letter = await session.get(Letter, letter_id)
            if not letter:
                raise LetterNotFound(f"Letter {letter_id} not found")

            stmt = select(func.max(LetterVersion.version)).where(
                LetterVersion.letter_id == letter_id
            )
            latest = (await session.execute(stmt)).scalar()
            version = (latest or 0) + 1

            session.add(LetterVersion(
                id=str(uuid4()),
                letter_id=letter_id,
                version=version,
                content=content,
                created_by=created_by or letter.created_by,
            ))
            letter.version = version
            await session.commit()

            logger.info(
                f"[letters] Saved version {version} of letter {letter_id}",
                extra={"letter_id": letter_id, "version": version},
            )
            return version
