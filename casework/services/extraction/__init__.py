"""Extraction client and backends."""

from casework.services.extraction.client import ExtractionBackend, ExtractionClient
from casework.services.extraction.file_store import FileStore, LocalFileStore

__all__ = ["ExtractionBackend", "ExtractionClient", "FileStore", "LocalFileStore"]
