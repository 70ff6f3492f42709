"""Collaborator interfaces used by the generation pipeline."""

from typing import Any, Dict, List, Optional, Protocol

from pydantic import BaseModel, Field

from ..schemas.ai import GenerationRequest, GenerationResponse
from ..models import LetterStatus
from ..schemas.letters import LetterCreate, LetterRecord


class UsageEvent(BaseModel):
    """One AI call to be recorded for billing and analytics."""
    firm_id: str
    user_id: str
    operation_type: str = "generation"
    model_id: str
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    cost: float = 0.0
    request_id: Optional[str] = None
    letter_id: Optional[str] = None
    job_id: Optional[str] = None
    processing_time_ms: Optional[int] = None
    document_ids: List[str] = Field(default_factory=list)
    details: Dict[str, Any] = Field(default_factory=dict)


class GenerationClient(Protocol):
    async def generate(self, request: GenerationRequest) -> GenerationResponse: ...


class LetterStore(Protocol):
    async def create(self, letter_id: str, data: LetterCreate) -> LetterRecord: ...

    async def get_by_id(self, letter_id: str) -> Optional[LetterRecord]: ...

    async def update(
        self,
        letter_id: str,
        *,
        content: Optional[str] = None,
        status: Optional[LetterStatus] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> LetterRecord: ...

    async def link_documents(self, letter_id: str, document_ids: List[str]) -> None: ...


class VersionStore(Protocol):
    async def create_version(
        self,
        letter_id: str,
        content: str,
        created_by: Optional[str] = None,
    ) -> int: ...


class UsageRecorder(Protocol):
    async def record(self, event: UsageEvent) -> None: ...


class DocumentSource(Protocol):
    async def get_document_texts(
        self,
        document_ids: List[str],
        firm_id: str,
    ) -> List[Dict[str, str]]: ...


class TemplateSource(Protocol):
    async def get_template_content(self, template_id: str, firm_id: str) -> str: ...
