from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError

from casework.core.exceptions import DocumentNotFoundError
from casework.database.models import Document
from casework.repositories.base_repository import BaseRepository
from casework.schemas.enums import DocumentCategory, ProcessingStatus
from casework.services.processing.transitions import validate_document_transition
from casework.utils.logging import get_logger

LOGGER = get_logger(__name__)

_TERMINAL = (ProcessingStatus.COMPLETED.value, ProcessingStatus.FAILED.value)


class DocumentRepository(BaseRepository[Document]):
    """Repository for managing Document records.

    transition() is the only place a document's processing status is written.
    """

    def __init__(self, session: AsyncSession):
        """Initialize document repository.

        Args:
            session: SQLAlchemy async session
        """
        super().__init__(session, Document)

    async def create_document(
        self,
        case_id: UUID,
        file_ref: str,
        original_filename: Optional[str] = None,
        mime_type: Optional[str] = None,
        category_hint: Optional[DocumentCategory] = None,
        replaces_document_id: Optional[UUID] = None,
    ) -> Document:
        """Create a new PENDING document record.

        Args:
            case_id: Owning case
            file_ref: Stored file reference resolved by the file store
            original_filename: Name the file was uploaded with
            mime_type: MIME type of the file
            category_hint: Category suggested by the uploader
            replaces_document_id: Earlier document this upload replaces

        Returns:
            Created Document record
        """
        return await self.create(
            case_id=case_id,
            file_ref=file_ref,
            original_filename=original_filename,
            mime_type=mime_type,
            category_hint=DocumentCategory(category_hint).value if category_hint else None,
            replaces_document_id=replaces_document_id,
            processing_status=ProcessingStatus.PENDING.value,
            uploaded_at=datetime.now(timezone.utc),
        )

    async def get_or_raise(self, document_id: UUID) -> Document:
        document = await self.get_by_id(document_id)
        if document is None:
            raise DocumentNotFoundError(f"Document {document_id} not found")
        return document

    async def transition(
        self,
        document_id: UUID,
        expected: ProcessingStatus,
        new: ProcessingStatus,
        **fields: Any,
    ) -> bool:
        """Compare-and-set the processing status, writing stage results with it.

        Args:
            document_id: Document ID
            expected: Status the document must currently have
            new: Status to move to
            **fields: Other columns written in the same UPDATE

        Returns:
            True if updated, False if the document was no longer in the
            expected status

        Raises:
            InvalidTransitionError: If expected -> new is not an allowed transition
        """
        validate_document_transition(expected, new)
        values: Dict[str, Any] = dict(fields)
        values["processing_status"] = ProcessingStatus(new).value
        values["updated_at"] = datetime.now(timezone.utc)

        try:
            result = await self.session.execute(
                update(Document)
                .where(
                    Document.id == document_id,
                    Document.processing_status == ProcessingStatus(expected).value,
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )
        except SQLAlchemyError as e:
            self.logger.error(
                f"Error transitioning document {document_id}: {str(e)}",
                exc_info=True
            )
            raise

        if result.rowcount != 1:
            LOGGER.warning(
                "Document transition lost compare-and-set",
                extra={
                    "document_id": str(document_id),
                    "expected": ProcessingStatus(expected).value,
                    "new": ProcessingStatus(new).value,
                }
            )
            return False
        return True

    async def list_by_case(self, case_id: UUID) -> List[Document]:
        """Fetch all documents of a case in upload order."""
        result = await self.session.execute(
            select(Document)
            .where(Document.case_id == case_id)
            .order_by(Document.uploaded_at, Document.id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def list_unfinished(self) -> List[Document]:
        """Fetch every document that has not reached a terminal status."""
        result = await self.session.execute(
            select(Document)
            .where(Document.processing_status.not_in(_TERMINAL))
            .order_by(Document.uploaded_at, Document.id)
        )
        return list(result.scalars().all())

    async def count_by_status(self, case_id: UUID) -> Dict[ProcessingStatus, int]:
        """Count a case's documents per processing status."""
        result = await self.session.execute(
            select(Document.processing_status, func.count())
            .where(Document.case_id == case_id)
            .group_by(Document.processing_status)
        )
        return {ProcessingStatus(status): count for status, count in result.all()}
