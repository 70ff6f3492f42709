"""Read access to supporting documents and templates."""

import logging
from typing import Dict, List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from ..models import Document, Template
from ..utils.errors import DocumentNotFound, TemplateNotFound

logger = logging.getLogger(__name__)


class DocumentRepository:
    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def get_document_texts(
        self,
        document_ids: List[str],
        firm_id: str,
    ) -> List[Dict[str, str]]:
        """
        Extracted text of the firm's documents, in the order requested

        Args:
            document_ids: Documents to read
            firm_id: Owning firm; other firms' documents are invisible

        Returns:
            List of ``{"id", "title", "text"}`` dicts

        Raises:
            DocumentNotFound: If any id is unknown for the firm
        """
        if not document_ids:
            return []

        async with self.session_factory() as session:
            stmt = select(Document).where(
                Document.id.in_(document_ids),
                Document.firm_id == firm_id,
            )
            result = await session.execute(stmt)
            documents = {doc.id: doc for doc in result.scalars().all()}

        missing = [doc_id for doc_id in document_ids if doc_id not in documents]
        if missing:
            raise DocumentNotFound(f"Documents not found: {', '.join(missing)}")

        texts = []
        for doc_id in document_ids:
            doc = documents[doc_id]
            texts.append({
                "id": doc.id,
                "title": doc.title or doc.filename,
                "text": doc.extracted_text or "",
            })
        logger.debug(f"[documents] Loaded text of {len(texts)} documents for firm {firm_id}")
        return texts


class TemplateRepository:
    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def get_template_content(self, template_id: str, firm_id: str) -> str:
        async with self.session_factory() as session:
            stmt = select(Template).where(
                Template.id == template_id,
                Template.firm_id == firm_id,
                Template.is_active.is_(True),
            )
            result = await session.execute(stmt)
            template = result.scalars().first()

        if not template:
            raise TemplateNotFound(f"Template {template_id} not found")
        return template.content
