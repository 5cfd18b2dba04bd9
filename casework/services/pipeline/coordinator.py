"""Pipeline coordinator: the entry point tying the pipeline together.

Uploads start document processing, terminal document transitions schedule
case aggregation, aggregation advances the case status, and generation
requests are handed to the document generator.
"""

import asyncio
from datetime import date, datetime, timezone
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from casework.core.config import settings
from casework.core.exceptions import InvalidTransitionError, ValidationError
from casework.database.models import Document
from casework.repositories.case_repository import CaseRepository
from casework.repositories.document_repository import DocumentRepository
from casework.repositories.generated_document_repository import GeneratedDocumentRepository
from casework.schemas.case import (
    CaseIntake,
    CaseStatusView,
    CaseView,
    DocumentSnapshot,
    DocumentView,
    GeneratedDocumentView,
)
from casework.schemas.enums import (
    CaseStatus,
    DocumentCategory,
    GeneratedDocumentType,
    ProcessingStatus,
    Tone,
)
from casework.services.aggregation.aggregator import CaseAggregator, derived_case_fields
from casework.services.extraction.client import ExtractionClient
from casework.services.generation.generator import DocumentGenerator
from casework.services.pipeline.scheduler import AggregationScheduler
from casework.services.processing.stage_machine import DocumentStageMachine
from casework.services.processing.transitions import case_path
from casework.services.warnings.engine import CaseRecord, RuleThresholds, WarningRuleEngine
from casework.utils.locks import KeyedLocks
from casework.utils.logging import get_logger

LOGGER = get_logger(__name__)

# Statuses only the pipeline itself may set
PIPELINE_OWNED_STATUSES = frozenset({
    CaseStatus.INTAKE,
    CaseStatus.DOCUMENTS_UPLOADED,
    CaseStatus.PROCESSING,
    CaseStatus.EXTRACTION_COMPLETE,
    CaseStatus.DRAFT_READY,
})


def active_documents(documents: List[Document]) -> List[Document]:
    """Drop documents superseded by a completed replacement."""
    superseded = {
        d.replaces_document_id for d in documents
        if d.replaces_document_id and d.processing_status == ProcessingStatus.COMPLETED.value
    }
    return [d for d in documents if d.id not in superseded]


class PipelineCoordinator:
    """Coordinates document processing, aggregation and generation for cases.

    Case-level locks are always taken before a database session is opened.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        extraction_client: ExtractionClient,
        aggregator: Optional[CaseAggregator] = None,
        warning_engine: Optional[WarningRuleEngine] = None,
        thresholds: Optional[RuleThresholds] = None,
        max_concurrent_documents: Optional[int] = None,
        aggregation_debounce_seconds: Optional[float] = None,
    ):
        """Initialize the coordinator.

        Args:
            session_maker: Factory for database sessions
            extraction_client: Client used by the stage machine
            aggregator: Case aggregator (built from settings if omitted)
            warning_engine: Warning rule engine (default rules if omitted)
            thresholds: Day counts handed to the warning rules
            max_concurrent_documents: Documents processed in parallel
            aggregation_debounce_seconds: Delay before each aggregation pass
        """
        self.session_maker = session_maker
        self.thresholds = thresholds or RuleThresholds()
        self.aggregator = aggregator or CaseAggregator(self.thresholds.treatment_gap_days)
        self.warning_engine = warning_engine or WarningRuleEngine()
        self.generator = DocumentGenerator(session_maker, self.warning_engine)
        self.stage_machine = DocumentStageMachine(
            session_maker, extraction_client, listener=self._on_document_transition
        )
        self.scheduler = AggregationScheduler(self.aggregate_now, aggregation_debounce_seconds)
        self._semaphore = asyncio.Semaphore(
            max_concurrent_documents or settings.max_concurrent_documents
        )
        self._case_locks = KeyedLocks()
        self._document_tasks: Dict[UUID, asyncio.Task] = {}
        self._document_cases: Dict[UUID, UUID] = {}

    # Intake

    async def create_case(self, intake: CaseIntake) -> CaseView:
        async with self.session_maker() as session:
            case = await CaseRepository(session).create_case(intake)
            await session.commit()

        LOGGER.info(f"Created case {case.id}", extra={"case_id": str(case.id)})
        return CaseView.model_validate(case)

    async def upload_document(
        self,
        case_id: UUID,
        file_ref: str,
        filename: Optional[str] = None,
        mime_type: Optional[str] = None,
        category_hint: Optional[DocumentCategory] = None,
        start: bool = True,
    ) -> DocumentView:
        """Register an uploaded file and start processing it.

        The first upload moves the case from INTAKE to DOCUMENTS_UPLOADED in
        the same transaction as the insert.

        Args:
            case_id: Case the document belongs to
            file_ref: Stored file reference
            filename: Original file name
            mime_type: MIME type of the file
            category_hint: Category suggested by the uploader
            start: Begin processing immediately

        Returns:
            DocumentView of the PENDING document

        Raises:
            CaseNotFoundError: If the case does not exist
            ValidationError: If the case is closed
        """
        return await self._add_document(
            case_id, file_ref, filename, mime_type, category_hint, None, start
        )

    async def replace_document(
        self,
        document_id: UUID,
        file_ref: str,
        filename: Optional[str] = None,
        mime_type: Optional[str] = None,
        category_hint: Optional[DocumentCategory] = None,
        start: bool = True,
    ) -> DocumentView:
        """Upload a new file in place of a processed or failed document.

        The old document is kept; once the replacement completes, the old
        one no longer contributes to aggregation.

        Raises:
            DocumentNotFoundError: If the document does not exist
            ValidationError: If the document is still being processed
        """
        async with self.session_maker() as session:
            original = await DocumentRepository(session).get_or_raise(document_id)

        if not ProcessingStatus(original.processing_status).is_terminal:
            raise ValidationError(
                f"Document {document_id} is still being processed and cannot be replaced"
            )

        hint = category_hint or original.category_hint or original.category
        return await self._add_document(
            original.case_id, file_ref, filename, mime_type,
            DocumentCategory.parse(hint) if hint else None, original.id, start,
        )

    async def _add_document(
        self,
        case_id: UUID,
        file_ref: str,
        filename: Optional[str],
        mime_type: Optional[str],
        category_hint: Optional[DocumentCategory],
        replaces_document_id: Optional[UUID],
        start: bool,
    ) -> DocumentView:
        async with self._case_locks.hold(case_id):
            async with self.session_maker() as session:
                case_repo = CaseRepository(session)
                case = await case_repo.get_or_raise(case_id)
                if case.status == CaseStatus.CLOSED.value:
                    raise ValidationError(f"Case {case_id} is closed")

                document = await DocumentRepository(session).create_document(
                    case_id=case_id,
                    file_ref=file_ref,
                    original_filename=filename,
                    mime_type=mime_type,
                    category_hint=category_hint,
                    replaces_document_id=replaces_document_id,
                )
                if case.status == CaseStatus.INTAKE.value:
                    await case_repo.advance_status(
                        case_id, CaseStatus.INTAKE, CaseStatus.DOCUMENTS_UPLOADED
                    )
                await session.commit()

        LOGGER.info(
            f"Document {document.id} uploaded to case {case_id}",
            extra={"case_id": str(case_id), "document_id": str(document.id), "file_ref": file_ref}
        )
        if start:
            self.start_document(document.id, case_id)
        return DocumentView.model_validate(document)

    # Processing

    def start_document(self, document_id: UUID, case_id: UUID) -> asyncio.Task:
        """Run a document through the stage machine in the background."""
        existing = self._document_tasks.get(document_id)
        if existing is not None and not existing.done():
            return existing

        task = asyncio.create_task(self.process_document(document_id), name=f"document-{document_id}")
        self._document_tasks[document_id] = task
        self._document_cases[document_id] = case_id
        task.add_done_callback(lambda t, d=document_id: self._forget_document(d, t))
        return task

    def _forget_document(self, document_id: UUID, task: asyncio.Task) -> None:
        if self._document_tasks.get(document_id) is task:
            del self._document_tasks[document_id]
            self._document_cases.pop(document_id, None)
        if not task.cancelled() and task.exception() is not None:
            LOGGER.error(
                f"Processing task for document {document_id} failed",
                exc_info=task.exception(),
                extra={"document_id": str(document_id)}
            )

    async def process_document(self, document_id: UUID) -> ProcessingStatus:
        """Process a document now, bounded by the concurrency limit."""
        async with self._semaphore:
            return await self.stage_machine.run(document_id)

    async def _on_document_transition(
        self,
        document_id: UUID,
        case_id: UUID,
        previous: ProcessingStatus,
        current: ProcessingStatus,
    ) -> None:
        if previous == ProcessingStatus.PENDING:
            await self._advance_case(case_id, CaseStatus.DOCUMENTS_UPLOADED, CaseStatus.PROCESSING)
        if current.is_terminal:
            self.request_aggregation(case_id)

    async def _advance_case(self, case_id: UUID, expected: CaseStatus, new: CaseStatus) -> bool:
        async with self._case_locks.hold(case_id):
            async with self.session_maker() as session:
                repo = CaseRepository(session)
                if await repo.get_status(case_id) != expected:
                    return False
                updated = await repo.advance_status(case_id, expected, new)
                await session.commit()
        return updated

    async def resume_unfinished(self) -> List[UUID]:
        """Restart processing of every non-terminal document, e.g. after a restart.

        Cases still marked as in progress whose documents have all finished
        are aggregated again, since the run that would have advanced them
        may have been interrupted.
        """
        async with self.session_maker() as session:
            documents = await DocumentRepository(session).list_unfinished()
            in_progress = await CaseRepository(session).list_ids_by_status(
                [CaseStatus.DOCUMENTS_UPLOADED, CaseStatus.PROCESSING]
            )

        for document in documents:
            self.start_document(document.id, document.case_id)

        pending_cases = {document.case_id for document in documents}
        for case_id in in_progress:
            if case_id not in pending_cases:
                self.request_aggregation(case_id)

        if documents:
            LOGGER.info(f"Resumed processing of {len(documents)} documents")
        return [document.id for document in documents]

    # Aggregation

    def request_aggregation(self, case_id: UUID) -> asyncio.Task:
        return self.scheduler.request(case_id)

    async def aggregate_now(self, case_id: UUID, as_of: Optional[date] = None) -> CaseView:
        """Recompute the derived case record and advance the case status.

        Derived fields are replaced in one UPDATE. When every document is
        terminal the case moves on to EXTRACTION_COMPLETE, and to DRAFT_READY
        if a demand letter already exists.

        Args:
            case_id: Case to aggregate
            as_of: Evaluation date for the warning rules (defaults to today)

        Returns:
            CaseView after the update
        """
        now = datetime.now(timezone.utc)
        as_of = as_of or now.date()

        async with self.session_maker() as session:
            case = await CaseRepository(session).get_or_raise(case_id)
            documents = await DocumentRepository(session).list_by_case(case_id)

        intake = CaseIntake.model_validate(case)
        snapshots = [DocumentSnapshot.model_validate(d) for d in active_documents(documents)]
        result = self.aggregator.aggregate(intake, snapshots)
        warnings = self.warning_engine.evaluate(
            CaseRecord(intake=intake, aggregation=result, as_of=as_of, thresholds=self.thresholds)
        )
        read_terminal = bool(documents) and all(
            ProcessingStatus(d.processing_status).is_terminal for d in documents
        )

        async with self._case_locks.hold(case_id):
            async with self.session_maker() as session:
                case_repo = CaseRepository(session)
                await case_repo.replace_derived_fields(
                    case_id, derived_case_fields(result, warnings, now)
                )
                # Uploads may have committed since the read; recount under the lock
                counts = await DocumentRepository(session).count_by_status(case_id)
                all_terminal = (
                    read_terminal
                    and sum(counts.values()) == len(documents)
                    and all(status.is_terminal for status in counts)
                )
                if all_terminal:
                    await self._complete_extraction(session, case_repo, case_id)
                await session.commit()
                case = await case_repo.get_or_raise(case_id)

        LOGGER.info(
            f"Aggregated case {case_id}",
            extra={
                "case_id": str(case_id),
                "documents": result.document_count,
                "warnings": len(warnings),
                "conflicts": len(result.conflicts),
                "status": case.status,
            }
        )
        return CaseView.model_validate(case)

    async def _complete_extraction(
        self, session: AsyncSession, case_repo: CaseRepository, case_id: UUID
    ) -> None:
        current = await case_repo.get_status(case_id)
        for step in case_path(current, CaseStatus.EXTRACTION_COMPLETE):
            if not await case_repo.advance_status(case_id, current, step):
                return
            current = step

        if current == CaseStatus.EXTRACTION_COMPLETE and await GeneratedDocumentRepository(
            session
        ).exists_for_type(case_id, GeneratedDocumentType.DEMAND_LETTER):
            await case_repo.advance_status(
                case_id, CaseStatus.EXTRACTION_COMPLETE, CaseStatus.DRAFT_READY
            )

    # Generation

    async def generate(
        self,
        case_id: UUID,
        document_type: GeneratedDocumentType,
        tone: Tone = Tone.MODERATE,
        parameters: Optional[dict] = None,
    ) -> GeneratedDocumentView:
        return await self.generator.generate(case_id, document_type, tone, parameters)

    async def list_generated_documents(
        self,
        case_id: UUID,
        document_type: Optional[GeneratedDocumentType] = None,
    ) -> List[GeneratedDocumentView]:
        async with self.session_maker() as session:
            await CaseRepository(session).get_or_raise(case_id)
            documents = await GeneratedDocumentRepository(session).list_for_case(
                case_id, document_type
            )
        return [GeneratedDocumentView.model_validate(d) for d in documents]

    # Status

    async def get_case(self, case_id: UUID) -> CaseView:
        async with self.session_maker() as session:
            case = await CaseRepository(session).get_or_raise(case_id)
        return CaseView.model_validate(case)

    async def get_case_status(self, case_id: UUID) -> CaseStatusView:
        async with self.session_maker() as session:
            case = await CaseRepository(session).get_or_raise(case_id)
            counts = await DocumentRepository(session).count_by_status(case_id)

        total = sum(counts.values())
        return CaseStatusView(
            case_id=case.id,
            status=CaseStatus(case.status),
            total_documents=total,
            document_counts=counts,
            all_documents_terminal=total > 0 and all(s.is_terminal for s in counts),
            attorney_warnings=case.attorney_warnings or [],
            aggregated_at=case.aggregated_at,
        )

    async def get_document_status(self, document_id: UUID) -> DocumentView:
        async with self.session_maker() as session:
            document = await DocumentRepository(session).get_or_raise(document_id)
        return DocumentView.model_validate(document)

    async def list_documents(self, case_id: UUID) -> List[DocumentView]:
        async with self.session_maker() as session:
            await CaseRepository(session).get_or_raise(case_id)
            documents = await DocumentRepository(session).list_by_case(case_id)
        return [DocumentView.model_validate(d) for d in documents]

    async def apply_workflow_action(self, case_id: UUID, status: CaseStatus) -> CaseView:
        """Move a case along the attorney workflow (review, sent, settled, closed).

        Raises:
            InvalidTransitionError: If the target is set by the pipeline itself
                or is not reachable from the current status
        """
        status = CaseStatus(status)
        if status in PIPELINE_OWNED_STATUSES:
            raise InvalidTransitionError(
                f"Case status {status.value} is set by the pipeline, not by a workflow action"
            )

        async with self._case_locks.hold(case_id):
            async with self.session_maker() as session:
                repo = CaseRepository(session)
                current = CaseStatus((await repo.get_or_raise(case_id)).status)
                if not await repo.advance_status(case_id, current, status):
                    raise InvalidTransitionError(
                        f"Case {case_id} changed status concurrently; retry the action"
                    )
                await session.commit()
                case = await repo.get_or_raise(case_id)

        return CaseView.model_validate(case)

    # Lifecycle

    async def wait_for_case(self, case_id: UUID) -> None:
        """Wait until the case has no document processing or aggregation pending."""
        while True:
            tasks = [
                task for document_id, task in list(self._document_tasks.items())
                if self._document_cases.get(document_id) == case_id
            ]
            if tasks:
                await asyncio.gather(*tasks, return_exceptions=True)
                continue
            if self.scheduler.is_running(case_id):
                await self.scheduler.wait(case_id)
                continue
            return

    async def drain(self) -> None:
        """Wait until all document processing and aggregation has finished."""
        while self._document_tasks or self.scheduler._runners:
            if self._document_tasks:
                await asyncio.gather(*list(self._document_tasks.values()), return_exceptions=True)
            await self.scheduler.drain()

    async def close(self) -> None:
        tasks = list(self._document_tasks.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        await self.scheduler.close()
