"""Document generator: renders templates and stores versioned output."""

from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from casework.core.exceptions import GenerationError
from casework.database.models import Case
from casework.repositories.case_repository import CaseRepository
from casework.repositories.document_repository import DocumentRepository
from casework.repositories.generated_document_repository import GeneratedDocumentRepository
from casework.schemas.aggregation import AggregationResult, DamagesCalculation, TreatmentTimeline
from casework.schemas.case import CaseIntake, GeneratedDocumentView
from casework.schemas.enums import CaseStatus, GeneratedDocumentType, ProcessingStatus, Tone
from casework.schemas.warnings import AttorneyWarning
from casework.services.generation.rendering import render_html, render_markdown
from casework.services.generation.templates import GenerationContext, get_template
from casework.services.warnings.engine import CaseRecord, WarningRuleEngine
from casework.utils.locks import KeyedLocks
from casework.utils.logging import get_logger

LOGGER = get_logger(__name__)

# Attempts when another process creates the same sequence row first
MAX_VERSION_ATTEMPTS = 3


class DocumentGenerator:
    """Generates immutable, versioned documents from a case record.

    Rendering happens before anything is written. The version is reserved
    and the document inserted in one transaction, under a per-(case, type)
    lock, so a failed or cancelled generation consumes no version.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        warning_engine: Optional[WarningRuleEngine] = None,
        locks: Optional[KeyedLocks] = None,
    ):
        self.session_maker = session_maker
        self.warning_engine = warning_engine or WarningRuleEngine()
        self.locks = locks or KeyedLocks()

    async def generate(
        self,
        case_id: UUID,
        document_type: GeneratedDocumentType,
        tone: Tone = Tone.MODERATE,
        parameters: Optional[Dict[str, Any]] = None,
        as_of: Optional[date] = None,
    ) -> GeneratedDocumentView:
        """Generate a new version of a document for a case.

        Args:
            case_id: Case to generate for
            document_type: Type of document
            tone: Tone of the correspondence
            parameters: Request parameters such as demand_amount
            as_of: Date printed on the document (defaults to today)

        Returns:
            GeneratedDocumentView of the stored document

        Raises:
            CaseNotFoundError: If the case does not exist
            GenerationError: If preconditions or required fields are not met
        """
        document_type = GeneratedDocumentType(document_type)
        tone = Tone(tone)
        parameters = dict(parameters or {})
        as_of = as_of or datetime.now(timezone.utc).date()
        template = get_template(document_type)

        async with self.session_maker() as session:
            case = await CaseRepository(session).get_or_raise(case_id)
            counts = await DocumentRepository(session).count_by_status(case_id)

        completed = counts.get(ProcessingStatus.COMPLETED, 0)
        if completed == 0 and not template.allows_intake_only:
            raise GenerationError(
                f"Cannot generate {document_type.value} for case {case_id}: "
                "no documents have completed processing"
            )

        context = self._build_context(case, tone, parameters, completed, as_of)
        body = template.render(context)
        content = render_markdown(body)
        content_html = render_html(body)
        warnings = [w.model_dump(mode="json") for w in context.warnings]

        for attempt in range(MAX_VERSION_ATTEMPTS):
            try:
                return await self._store(
                    case_id, document_type, tone, parameters, content, content_html, warnings
                )
            except IntegrityError as e:
                LOGGER.warning(
                    f"Version reservation collided (Attempt {attempt + 1}/{MAX_VERSION_ATTEMPTS})",
                    extra={"case_id": str(case_id), "document_type": document_type.value}
                )
                if attempt == MAX_VERSION_ATTEMPTS - 1:
                    raise GenerationError(
                        f"Could not reserve a version for {document_type.value} of case {case_id}",
                        original_error=e,
                    ) from e

        raise GenerationError(f"Could not store {document_type.value} for case {case_id}")

    async def _store(
        self,
        case_id: UUID,
        document_type: GeneratedDocumentType,
        tone: Tone,
        parameters: Dict[str, Any],
        content: str,
        content_html: str,
        warnings: List[Dict[str, Any]],
    ) -> GeneratedDocumentView:
        async with self.locks.hold((case_id, document_type)):
            async with self.session_maker() as session:
                repo = GeneratedDocumentRepository(session)
                version = await repo.next_version(case_id, document_type)
                generated = await repo.create_generated_document(
                    case_id=case_id,
                    document_type=document_type,
                    version=version,
                    tone=tone,
                    parameters=parameters,
                    content=content,
                    content_html=content_html,
                    warnings=warnings,
                )

                if document_type == GeneratedDocumentType.DEMAND_LETTER:
                    case_repo = CaseRepository(session)
                    if await case_repo.get_status(case_id) == CaseStatus.EXTRACTION_COMPLETE:
                        await case_repo.advance_status(
                            case_id, CaseStatus.EXTRACTION_COMPLETE, CaseStatus.DRAFT_READY
                        )

                await session.commit()

        LOGGER.info(
            f"Generated {document_type.value} v{version} for case {case_id}",
            extra={"case_id": str(case_id), "document_type": document_type.value, "version": version}
        )
        return GeneratedDocumentView.model_validate(generated)

    def _build_context(
        self,
        case: Case,
        tone: Tone,
        parameters: Dict[str, Any],
        completed: int,
        as_of: date,
    ) -> GenerationContext:
        intake = CaseIntake.model_validate(case)
        if case.aggregated_at is None:
            # Never aggregated: evaluate the rules against an empty record
            warnings = self.warning_engine.evaluate(
                CaseRecord(intake=intake, aggregation=AggregationResult(), as_of=as_of)
            )
        else:
            warnings = [AttorneyWarning.model_validate(w) for w in case.attorney_warnings or []]

        return GenerationContext(
            case_id=case.id,
            intake=intake,
            tone=tone,
            as_of=as_of,
            timeline=TreatmentTimeline.model_validate(case.treatment_timeline or {}),
            damages=DamagesCalculation.model_validate(case.damages_calculation or {}),
            warnings=warnings,
            extracted_data=dict(case.extracted_data or {}),
            completed_documents=completed,
            parameters=parameters,
        )
