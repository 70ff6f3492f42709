from .base import Base, TimestampMixin
from .document import Document, ProcessingStatus, Template
from .letter import Letter, LetterStatus, LetterVersion, letter_documents
from .usage import AIUsage

__all__ = [
    "Base",
    "TimestampMixin",
    "Document",
    "ProcessingStatus",
    "Template",
    "Letter",
    "LetterStatus",
    "LetterVersion",
    "letter_documents",
    "AIUsage",
]
