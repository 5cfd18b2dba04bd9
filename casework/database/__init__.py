"""Database models package."""

from casework.database.models import Case, Document, GeneratedDocument, GenerationSequence

__all__ = ["Case", "Document", "GeneratedDocument", "GenerationSequence"]
