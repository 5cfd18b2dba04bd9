from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from casework.database.models import GeneratedDocument, GenerationSequence
from casework.repositories.base_repository import BaseRepository
from casework.schemas.enums import GeneratedDocumentType, Tone
from casework.utils.logging import get_logger

LOGGER = get_logger(__name__)


class GeneratedDocumentRepository(BaseRepository[GeneratedDocument]):
    """Repository for generated documents and their version sequences."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, GeneratedDocument)

    async def next_version(self, case_id: UUID, document_type: GeneratedDocumentType) -> int:
        """Reserve the next version number for (case, document type).

        The sequence row is locked for the rest of the transaction, so the
        version is only consumed if the caller commits.

        Args:
            case_id: Case ID
            document_type: Generated document type

        Returns:
            The reserved version, starting at 1
        """
        doc_type = GeneratedDocumentType(document_type).value
        result = await self.session.execute(
            select(GenerationSequence)
            .where(
                GenerationSequence.case_id == case_id,
                GenerationSequence.document_type == doc_type,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        sequence = result.scalar_one_or_none()

        if sequence is None:
            sequence = GenerationSequence(case_id=case_id, document_type=doc_type, last_version=1)
            self.session.add(sequence)
        else:
            sequence.last_version += 1

        await self.session.flush()
        return sequence.last_version

    async def create_generated_document(
        self,
        case_id: UUID,
        document_type: GeneratedDocumentType,
        version: int,
        tone: Tone,
        parameters: Dict[str, Any],
        content: str,
        content_html: str,
        warnings: List[Dict[str, Any]],
    ) -> GeneratedDocument:
        return await self.create(
            case_id=case_id,
            document_type=GeneratedDocumentType(document_type).value,
            version=version,
            tone=Tone(tone).value,
            parameters=parameters,
            content=content,
            content_html=content_html,
            warnings=warnings,
        )

    async def list_for_case(
        self,
        case_id: UUID,
        document_type: Optional[GeneratedDocumentType] = None,
    ) -> List[GeneratedDocument]:
        """Version history of a case's generated documents, oldest first."""
        query = select(GeneratedDocument).where(GeneratedDocument.case_id == case_id)
        if document_type is not None:
            query = query.where(
                GeneratedDocument.document_type == GeneratedDocumentType(document_type).value
            )
        query = query.order_by(GeneratedDocument.document_type, GeneratedDocument.version)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def exists_for_type(self, case_id: UUID, document_type: GeneratedDocumentType) -> bool:
        result = await self.session.execute(
            select(func.count())
            .select_from(GeneratedDocument)
            .where(
                GeneratedDocument.case_id == case_id,
                GeneratedDocument.document_type == GeneratedDocumentType(document_type).value,
            )
        )
        return result.scalar_one() > 0
