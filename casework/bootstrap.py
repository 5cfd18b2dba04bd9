"""Wiring of the pipeline from settings."""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from casework.core.config import settings
from casework.core.exceptions import ConfigurationError
from casework.services.extraction.client import ExtractionBackend, ExtractionClient
from casework.services.extraction.file_store import FileStore, LocalFileStore
from casework.services.extraction.http_backend import HttpExtractionBackend
from casework.services.extraction.llm_backend import LLMExtractionBackend
from casework.services.pipeline.coordinator import PipelineCoordinator
from casework.utils.logging import get_logger

LOGGER = get_logger(__name__)


def build_backend(kind: Optional[str] = None, file_store: Optional[FileStore] = None) -> ExtractionBackend:
    """Create the extraction backend named by settings.extraction_backend.

    Raises:
        ConfigurationError: If the backend kind is unknown
    """
    kind = (kind or settings.extraction_backend).lower()
    file_store = file_store or LocalFileStore()

    if kind == "http":
        return HttpExtractionBackend(file_store)
    if kind == "llm":
        if not settings.llm_api_key:
            raise ConfigurationError("LLM extraction backend selected but LLM_API_KEY is not set")
        return LLMExtractionBackend(file_store)

    raise ConfigurationError(f"Unknown extraction backend: {kind!r} (expected 'http' or 'llm')")


def build_coordinator(
    session_maker: async_sessionmaker[AsyncSession],
    backend: Optional[ExtractionBackend] = None,
) -> PipelineCoordinator:
    """Create a coordinator with the configured extraction backend."""
    backend = backend or build_backend()
    LOGGER.info(
        "Building pipeline coordinator",
        extra={"backend": type(backend).__name__, "environment": settings.environment}
    )
    return PipelineCoordinator(session_maker, ExtractionClient(backend))
