from .jobs import (
    Tone,
    ItemizedMedicalExpense,
    Damages,
    LetterGenerationJob,
    TokenUsage,
    StructuredError,
    GenerationResult,
)
from .ai import GenerationRequest, GenerationResponse, ModelMetadata
from .letters import LetterRecord, LetterCreate
from .generation import (
    StartGenerationRequest,
    StartGenerationResponse,
    GenerationStatusResponse,
)

__all__ = [
    "Tone",
    "ItemizedMedicalExpense",
    "Damages",
    "LetterGenerationJob",
    "TokenUsage",
    "StructuredError",
    "GenerationResult",
    "GenerationRequest",
    "GenerationResponse",
    "ModelMetadata",
    "LetterRecord",
    "LetterCreate",
    "StartGenerationRequest",
    "StartGenerationResponse",
    "GenerationStatusResponse",
]
