"""Per-document processing stage machine.

A document moves PENDING -> EXTRACTING_TEXT -> CLASSIFYING -> EXTRACTING_DATA
-> COMPLETED, or to FAILED from any non-terminal stage. A status names the
stage in progress; each stage's result is persisted together with the next
status, so run() can resume a document at whatever stage it was left in.
"""

import asyncio
from typing import Any, Awaitable, Callable, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from casework.core.exceptions import ClassificationError, ExtractionError
from casework.database.models import Document
from casework.repositories.document_repository import DocumentRepository
from casework.schemas.enums import DocumentCategory, ProcessingStatus
from casework.schemas.extraction import DocumentInput
from casework.services.extraction.client import ExtractionClient
from casework.utils.dates import parse_date
from casework.utils.logging import get_logger

LOGGER = get_logger(__name__)

# (document_id, case_id, from_status, to_status)
TransitionListener = Callable[[UUID, UUID, ProcessingStatus, ProcessingStatus], Awaitable[None]]

STAGE_LABELS = {
    ProcessingStatus.PENDING: "Queueing",
    ProcessingStatus.EXTRACTING_TEXT: "Text extraction",
    ProcessingStatus.CLASSIFYING: "Classification",
    ProcessingStatus.EXTRACTING_DATA: "Data extraction",
}


class StageOutputMissing(Exception):
    """Staged data needed to resume a document is not there."""


class DocumentStageMachine:
    """Drives one document through extraction, classification and data extraction."""

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        extraction_client: ExtractionClient,
        listener: Optional[TransitionListener] = None,
    ):
        """Initialize the stage machine.

        Args:
            session_maker: Factory for database sessions
            extraction_client: Client used for every stage call
            listener: Awaited after every persisted transition
        """
        self.session_maker = session_maker
        self.extraction_client = extraction_client
        self.listener = listener

    async def run(self, document_id: UUID) -> ProcessingStatus:
        """Process a document until it is COMPLETED or FAILED.

        Re-entering a document resumes at its persisted status. Terminal
        documents are returned unchanged.

        Args:
            document_id: Document to process

        Returns:
            The status the document ended in

        Raises:
            DocumentNotFoundError: If the document does not exist
        """
        document = await self._load(document_id)
        status = ProcessingStatus(document.processing_status)

        while not status.is_terminal:
            try:
                advanced = await self._run_stage(document, status)
            except asyncio.CancelledError:
                LOGGER.info(
                    "Document processing cancelled",
                    extra={"document_id": str(document_id), "stage": status.value}
                )
                raise
            except (ExtractionError, ClassificationError) as e:
                advanced = await self._fail(
                    document, status, f"{STAGE_LABELS[status]} failed: {e.message}"
                )
            except StageOutputMissing as e:
                advanced = await self._fail(
                    document, status, f"{STAGE_LABELS[status]} failed: {e}"
                )
            except Exception:
                LOGGER.error(
                    f"Unexpected error while processing document {document_id}",
                    exc_info=True,
                    extra={"document_id": str(document_id), "stage": status.value}
                )
                advanced = await self._fail(
                    document, status, f"Unexpected error during {STAGE_LABELS[status].lower()}"
                )

            if not advanced:
                # Another runner moved the document; leave it to that runner
                current = await self._load(document_id)
                LOGGER.info(
                    "Document advanced elsewhere, stopping",
                    extra={"document_id": str(document_id), "status": current.processing_status}
                )
                return ProcessingStatus(current.processing_status)

            document = await self._load(document_id)
            status = ProcessingStatus(document.processing_status)

        return status

    async def _run_stage(self, document: Document, status: ProcessingStatus) -> bool:
        if status == ProcessingStatus.PENDING:
            return await self._persist(document, status, ProcessingStatus.EXTRACTING_TEXT)

        if status == ProcessingStatus.EXTRACTING_TEXT:
            extracted = await self.extraction_client.extract_text(
                DocumentInput(
                    file_ref=document.file_ref,
                    filename=document.original_filename,
                    mime_type=document.mime_type,
                )
            )
            return await self._persist(
                document,
                status,
                ProcessingStatus.CLASSIFYING,
                page_count=extracted.page_count,
                stage_output={"text": extracted.text, "page_count": extracted.page_count},
            )

        staged = dict(document.stage_output or {})
        text = staged.get("text")
        if not isinstance(text, str):
            raise StageOutputMissing("extracted text from the previous stage is missing")

        if status == ProcessingStatus.CLASSIFYING:
            classification = await self.extraction_client.classify(
                text,
                hints={
                    "filename": document.original_filename,
                    "mime_type": document.mime_type,
                    "category_hint": document.category_hint,
                },
            )
            category = self._choose_category(classification.category, document.category_hint)
            staged["classification"] = classification.model_dump(mode="json")
            return await self._persist(
                document,
                status,
                ProcessingStatus.EXTRACTING_DATA,
                category=category.value,
                subcategory=classification.subcategory,
                document_date=parse_date(classification.document_date),
                provider_name=classification.provider_name,
                stage_output=staged,
            )

        if status == ProcessingStatus.EXTRACTING_DATA:
            if not document.category:
                raise StageOutputMissing("the document has no category")
            data = await self.extraction_client.extract_data(
                text, DocumentCategory(document.category)
            )
            return await self._persist(
                document,
                status,
                ProcessingStatus.COMPLETED,
                extracted_text=text,
                extracted_data=data,
                stage_output=None,
                processing_error=None,
            )

        raise ValueError(f"No stage for status {status.value}")

    @staticmethod
    def _choose_category(
        classified: DocumentCategory, hint: Optional[str]
    ) -> DocumentCategory:
        # The uploader's hint only fills in for an unrecognised document
        if classified == DocumentCategory.OTHER and hint:
            return DocumentCategory.parse(hint)
        return classified

    async def _fail(self, document: Document, status: ProcessingStatus, message: str) -> bool:
        LOGGER.warning(
            "Document processing failed",
            extra={"document_id": str(document.id), "stage": status.value, "error": message}
        )
        return await self._persist(
            document,
            status,
            ProcessingStatus.FAILED,
            processing_error=message,
            stage_output=None,
        )

    async def _persist(
        self,
        document: Document,
        current: ProcessingStatus,
        new: ProcessingStatus,
        **fields: Any,
    ) -> bool:
        async with self.session_maker() as session:
            repo = DocumentRepository(session)
            updated = await repo.transition(document.id, current, new, **fields)
            await session.commit()

        if updated:
            LOGGER.info(
                f"Document {document.id}: {current.value} -> {new.value}",
                extra={"document_id": str(document.id), "case_id": str(document.case_id)}
            )
            # The transition is committed; finish notifying even if cancelled
            await asyncio.shield(self._notify(document, current, new))
        return updated

    async def _notify(
        self, document: Document, current: ProcessingStatus, new: ProcessingStatus
    ) -> None:
        if self.listener is None:
            return
        try:
            await self.listener(document.id, document.case_id, current, new)
        except asyncio.CancelledError:
            raise
        except Exception:
            LOGGER.error(
                "Transition listener failed",
                exc_info=True,
                extra={"document_id": str(document.id), "to_status": new.value}
            )

    async def _load(self, document_id: UUID) -> Document:
        async with self.session_maker() as session:
            return await DocumentRepository(session).get_or_raise(document_id)
