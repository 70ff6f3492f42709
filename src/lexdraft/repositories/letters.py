"""Letter persistence."""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from ..generation.metadata import merge_metadata
from ..models import Letter, LetterStatus, letter_documents
from ..schemas.letters import LetterCreate, LetterRecord
from ..utils.errors import LetterNotFound

logger = logging.getLogger(__name__)


def to_record(letter: Letter) -> LetterRecord:
    return LetterRecord(
        id=letter.id,
        firm_id=letter.firm_id,
        created_by=letter.created_by,
        title=letter.title,
        content=letter.content or "",
        status=letter.status,
        version=letter.version or 0,
        template_id=letter.template_id,
        recipient_name=letter.recipient_name,
        recipient_address=letter.recipient_address,
        case_reference=letter.case_reference,
        metadata=dict(letter.letter_metadata or {}),
        created_at=letter.created_at,
        updated_at=letter.updated_at,
    )


class LetterRepository:
    """LetterStore backed by the ``letters`` table.

    Every call runs in its own session so concurrent jobs never share one.
    """

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def create(self, letter_id: str, data: LetterCreate) -> LetterRecord:
        async with self.session_factory() as session:
            letter = Letter(
                id=letter_id,
                firm_id=data.firm_id,
                created_by=data.created_by,
                title=data.title,
                content=data.content,
                status=LetterStatus.DRAFT,
                version=0,
                template_id=data.template_id,
                recipient_name=data.recipient_name,
                recipient_address=data.recipient_address,
                case_reference=data.case_reference,
                letter_metadata=dict(data.metadata),
            )
            session.add(letter)
            await session.commit()
            await session.refresh(letter)

            logger.info(f"[letters] Created letter {letter_id}", extra={"letter_id": letter_id})
            return to_record(letter)

    async def get_by_id(self, letter_id: str) -> Optional[LetterRecord]:
        async with self.session_factory() as session:
            letter = await session.get(Letter, letter_id)
            return to_record(letter) if letter else None

    async def update(
        self,
        letter_id: str,
        *,
        content: Optional[str] = None,
        status: Optional[LetterStatus] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> LetterRecord:
        """Update a letter in one transaction.

        ``metadata`` is merged onto the stored map; preserved history keys
        keep their stored values.

        Raises:
            LetterNotFound: If the letter does not exist
        """
        async with self.session_factory() as session:
            stmt = select(Letter).where(Letter.id == letter_id)
            result = await session.execute(stmt)
            letter = result.scalars().first()

            if not letter:
                raise LetterNotFound(f"Letter {letter_id} not found")

            if content is not None:
                letter.content = content
            if status is not None:
                letter.status = status
            if metadata is not None:
                letter.letter_metadata = merge_metadata(letter.letter_metadata, metadata)

            await session.commit()
            await session.refresh(letter)
            return to_record(letter)

    async def link_documents(self, letter_id: str, document_ids: List[str]) -> None:
        if not document_ids:
            return

        async with self.session_factory() as session:
            stmt = select(letter_documents.c.document_id).where(
                letter_documents.c.letter_id == letter_id
            )
            existing = set((await session.execute(stmt)).scalars().all())
            missing = [doc_id for doc_id in dict.fromkeys(document_ids) if doc_id not in existing]

            if missing:
                await session.execute(
                    letter_documents.insert(),
                    [{"letter_id": letter_id, "document_id": doc_id} for doc_id in missing],
                )
                await session.commit()

            logger.info(
                f"[letters] Linked {len(missing)} documents to letter {letter_id}",
                extra={"letter_id": letter_id},
            )
