from pydantic import BaseModel, Field
from typing import Dict, List, Optional
from .jobs import TokenUsage

class GenerationRequest(BaseModel):
    """Chat messages and sampling overrides for one AI call."""
    messages: List[Dict[str, str]]
    temperature: Optional[float] = Field(default=None, ge=0, le=1)
    max_tokens: Optional[int] = Field(default=None, ge=1)

class ModelMetadata(BaseModel):
    model_id: str
    request_id: Optional[str] = None

class GenerationResponse(BaseModel):
    text: str
    usage: TokenUsage
    stop_reason: Optional[str] = None
    model_metadata: ModelMetadata
