from pydantic import BaseModel, Field
from datetime import datetime
from typing import Any, Dict, Optional
from ..models import LetterStatus

class LetterRecord(BaseModel):
    """Letter as seen by the generation pipeline."""
    id: str
    firm_id: str
    created_by: str
    title: str
    content: str = ""
    status: LetterStatus = LetterStatus.DRAFT
    version: int = 0
    template_id: Optional[str] = None
    recipient_name: Optional[str] = None
    recipient_address: Optional[str] = None
    case_reference: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class LetterCreate(BaseModel):
    firm_id: str
    created_by: str
    title: str
    content: str = ""
    template_id: Optional[str] = None
    recipient_name: Optional[str] = None
    recipient_address: Optional[str] = None
    case_reference: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
