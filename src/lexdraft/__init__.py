"""LexDraft: asynchronous demand letter generation."""

__version__ = "0.1.0"
