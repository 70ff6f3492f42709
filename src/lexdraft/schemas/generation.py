from pydantic import BaseModel, Field
from datetime import date
from typing import Any, Dict, List, Optional, Union
from .jobs import Damages, StructuredError, Tone
from .letters import LetterRecord

class StartGenerationRequest(BaseModel):
    """Caller input for starting a generation."""
    # Set to regenerate an existing letter instead of creating one
    letter_id: Optional[str] = None

    case_type: str = Field(min_length=1)
    incident_date: Union[date, str]
    incident_description: str = Field(min_length=10)
    location: Optional[str] = None

    client_name: str = Field(min_length=1)
    client_contact: Optional[str] = None
    defendant_name: str = Field(min_length=1)
    defendant_address: Optional[str] = None

    damages: Damages = Field(default_factory=Damages)
    document_ids: Optional[List[str]] = None
    template_id: Optional[str] = None

    title: Optional[str] = None
    recipient_name: Optional[str] = None
    recipient_address: Optional[str] = None
    case_reference: Optional[str] = None

    special_instructions: Optional[str] = None
    tone: Optional[Tone] = None
    temperature: Optional[float] = Field(default=None, ge=0, le=1)
    max_tokens: Optional[int] = Field(default=None, ge=100, le=4096)

class StartGenerationResponse(BaseModel):
    letter_id: str
    job_id: str
    status: str
    message: str

class GenerationStatusResponse(BaseModel):
    job_id: str
    status: str
    job_state: str
    progress: int = 0
    attempts_made: int = 0
    result: Optional[Dict[str, Any]] = None
    error: Optional[StructuredError] = None
    letter: Optional[LetterRecord] = None
