"""Repositories wrapping database access for the pipeline."""

from casework.repositories.base_repository import BaseRepository
from casework.repositories.case_repository import CaseRepository
from casework.repositories.document_repository import DocumentRepository
from casework.repositories.generated_document_repository import GeneratedDocumentRepository

__all__ = [
    "BaseRepository",
    "CaseRepository",
    "DocumentRepository",
    "GeneratedDocumentRepository",
]
