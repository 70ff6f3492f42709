from .interfaces import (
    UsageEvent,
    GenerationClient,
    LetterStore,
    VersionStore,
    UsageRecorder,
    DocumentSource,
    TemplateSource,
)
from .letters import LetterRepository
from .versions import VersionRepository
from .usage import UsageTracker
from .documents import DocumentRepository, TemplateRepository

__all__ = [
    "UsageEvent",
    "GenerationClient",
    "LetterStore",
    "VersionStore",
    "UsageRecorder",
    "DocumentSource",
    "TemplateSource",
    "LetterRepository",
    "VersionRepository",
    "UsageTracker",
    "DocumentRepository",
    "TemplateRepository",
]
