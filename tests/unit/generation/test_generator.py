"""Unit tests for DocumentGenerator."""

import asyncio
from unittest.mock import patch
from uuid import uuid4

import pytest
from sqlalchemy import select

from casework.core.exceptions import CaseNotFoundError, GenerationError
from casework.database.models import GeneratedDocument, GenerationSequence
from casework.repositories.case_repository import CaseRepository
from casework.repositories.document_repository import DocumentRepository
from casework.schemas.enums import (
    CaseStatus,
    GeneratedDocumentType,
    Tone,
)
from casework.services.generation.generator import DocumentGenerator
from casework.services.processing.transitions import DOCUMENT_STAGE_ORDER


async def create_case(session_maker, intake, completed=1, status=None):
    """Create a case with `completed` documents already processed."""
    async with session_maker() as session:
        case_repo = CaseRepository(session)
        doc_repo = DocumentRepository(session)
        case = await case_repo.create_case(intake)
        for index in range(completed):
            document = await doc_repo.create_document(case_id=case.id, file_ref=f"doc-{index}.pdf")
            for current, new in zip(DOCUMENT_STAGE_ORDER, DOCUMENT_STAGE_ORDER[1:]):
                await doc_repo.transition(document.id, current, new)
        if status is not None:
            path = [CaseStatus.DOCUMENTS_UPLOADED, CaseStatus.PROCESSING, CaseStatus.EXTRACTION_COMPLETE]
            current = CaseStatus.INTAKE
            for step in path[:path.index(status) + 1]:
                await case_repo.advance_status(case.id, current, step)
                current = step
        await session.commit()
    return case


class TestDocumentGenerator:
    """Test suite for DocumentGenerator."""

    @pytest.fixture
    def generator(self, session_maker):
        return DocumentGenerator(session_maker)

    @pytest.mark.asyncio
    async def test_generates_version_one(self, generator, session_maker, intake):
        case = await create_case(session_maker, intake)

        generated = await generator.generate(case.id, GeneratedDocumentType.DEMAND_LETTER, Tone.AGGRESSIVE)

        assert generated.version == 1
        assert generated.tone == Tone.AGGRESSIVE
        assert generated.content.startswith("# Settlement Demand")
        assert generated.content_html.startswith("<article><h1>Settlement Demand</h1>")

    @pytest.mark.asyncio
    async def test_requires_completed_documents(self, generator, session_maker, intake):
        case = await create_case(session_maker, intake, completed=0)

        with pytest.raises(GenerationError, match="no documents have completed processing"):
            await generator.generate(case.id, GeneratedDocumentType.DEMAND_LETTER)

    @pytest.mark.asyncio
    async def test_gap_analysis_from_intake_only(self, generator, session_maker, intake):
        case = await create_case(session_maker, intake, completed=0)

        generated = await generator.generate(case.id, GeneratedDocumentType.GAP_ANALYSIS)

        assert generated.version == 1
        # Never aggregated: the rules still run against the empty record
        assert "missing_medical_records" in {w.rule for w in generated.warnings}

    @pytest.mark.asyncio
    async def test_unknown_case(self, generator):
        with pytest.raises(CaseNotFoundError):
            await generator.generate(uuid4(), GeneratedDocumentType.DEMAND_LETTER)

    @pytest.mark.asyncio
    async def test_failed_render_consumes_no_version(self, generator, session_maker, intake):
        case = await create_case(session_maker, intake.model_copy(update={"incident_date": None}))

        with pytest.raises(GenerationError, match="incident_date"):
            await generator.generate(case.id, GeneratedDocumentType.DEMAND_LETTER)

        async with session_maker() as session:
            sequences = (await session.execute(select(GenerationSequence))).scalars().all()
        assert sequences == []

    @pytest.mark.asyncio
    async def test_concurrent_requests_get_distinct_versions(self, generator, session_maker, intake):
        case = await create_case(session_maker, intake)

        results = await asyncio.gather(*[
            generator.generate(case.id, GeneratedDocumentType.DEMAND_LETTER) for _ in range(5)
        ])

        assert sorted(r.version for r in results) == [1, 2, 3, 4, 5]

    @pytest.mark.asyncio
    async def test_versions_are_per_document_type(self, generator, session_maker, intake):
        case = await create_case(session_maker, intake)

        await generator.generate(case.id, GeneratedDocumentType.DEMAND_LETTER)
        summary = await generator.generate(case.id, GeneratedDocumentType.EXECUTIVE_SUMMARY)
        second_letter = await generator.generate(case.id, GeneratedDocumentType.DEMAND_LETTER)

        assert summary.version == 1
        assert second_letter.version == 2

    @pytest.mark.asyncio
    async def test_demand_letter_marks_draft_ready(self, generator, session_maker, intake):
        case = await create_case(session_maker, intake, status=CaseStatus.EXTRACTION_COMPLETE)

        await generator.generate(case.id, GeneratedDocumentType.DEMAND_LETTER)

        async with session_maker() as session:
            assert await CaseRepository(session).get_status(case.id) == CaseStatus.DRAFT_READY

    @pytest.mark.asyncio
    async def test_other_documents_leave_status(self, generator, session_maker, intake):
        case = await create_case(session_maker, intake, status=CaseStatus.EXTRACTION_COMPLETE)

        await generator.generate(case.id, GeneratedDocumentType.EXECUTIVE_SUMMARY)

        async with session_maker() as session:
            assert await CaseRepository(session).get_status(case.id) == CaseStatus.EXTRACTION_COMPLETE


async def stored_rows(session_maker):
    async with session_maker() as session:
        documents = (await session.execute(select(GeneratedDocument))).scalars().all()
        sequences = (await session.execute(select(GenerationSequence))).scalars().all()
    return list(documents) + list(sequences)


class TestGenerationCancellation:
    """A cancelled generation leaves no version behind."""

    @pytest.fixture
    def generator(self, session_maker):
        return DocumentGenerator(session_maker)

    @pytest.mark.asyncio
    async def test_cancel_while_waiting_for_version_lock(self, generator, session_maker, intake):
        case = await create_case(session_maker, intake)
        key = (case.id, GeneratedDocumentType.DEMAND_LETTER)

        async def queued():
            while generator.locks._users.get(key, 0) < 2:
                await asyncio.sleep(0.01)

        async with generator.locks.hold(key):
            task = asyncio.create_task(generator.generate(case.id, GeneratedDocumentType.DEMAND_LETTER))
            await asyncio.wait_for(queued(), timeout=5)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        assert await stored_rows(session_maker) == []
        assert len(generator.locks) == 0
        generated = await generator.generate(case.id, GeneratedDocumentType.DEMAND_LETTER)
        assert generated.version == 1

    @pytest.mark.asyncio
    async def test_cancel_before_commit_rolls_back(self, generator, session_maker, intake):
        case = await create_case(session_maker, intake, status=CaseStatus.EXTRACTION_COMPLETE)
        entered = asyncio.Event()

        async def stalled_status(self, case_id):
            entered.set()
            await asyncio.Event().wait()

        with patch.object(CaseRepository, "get_status", stalled_status):
            task = asyncio.create_task(generator.generate(case.id, GeneratedDocumentType.DEMAND_LETTER))
            await asyncio.wait_for(entered.wait(), timeout=5)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        assert await stored_rows(session_maker) == []
        async with session_maker() as session:
            assert await CaseRepository(session).get_status(case.id) == CaseStatus.EXTRACTION_COMPLETE
        generated = await generator.generate(case.id, GeneratedDocumentType.DEMAND_LETTER)
        assert generated.version == 1
