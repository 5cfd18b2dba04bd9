"""Unit tests for the Temporal activities."""

import asyncio
from uuid import uuid4

import pytest
from temporalio.exceptions import ApplicationError
from temporalio.testing import ActivityEnvironment

from casework.core.exceptions import ExtractionError
from casework.schemas.enums import CaseStatus, DocumentCategory, GeneratedDocumentType
from casework.temporal import activities
from casework.temporal.registry import ActivityRegistry


@pytest.fixture
def configured(coordinator):
    activities.configure(coordinator)
    yield coordinator
    activities.configure(None)


class TestActivityRegistry:

    def test_activities_registered_by_category(self):
        registered = ActivityRegistry.get_all_activities()

        assert registered["documents:process_document_activity"] is activities.process_document_activity
        assert set(ActivityRegistry.activities_for("cases")) == {
            activities.aggregate_case_activity,
            activities.generate_document_activity,
        }


class TestActivities:
    """Test suite for the pipeline activities."""

    @pytest.mark.asyncio
    async def test_process_then_aggregate(self, configured, backend, intake, medical_bill):
        backend.script("bill.pdf", DocumentCategory.MEDICAL_BILLS, data=medical_bill)
        case = await configured.create_case(intake)
        document = await configured.upload_document(case.id, "bill.pdf", start=False)
        env = ActivityEnvironment()

        processed = await env.run(activities.process_document_activity, str(document.id))
        aggregated = await env.run(activities.aggregate_case_activity, processed["case_id"])

        assert processed["status"] == "COMPLETED"
        assert processed["category"] == "MEDICAL_BILLS"
        assert processed["case_id"] == str(case.id)
        assert aggregated["status"] == CaseStatus.EXTRACTION_COMPLETE.value
        await configured.drain()

    @pytest.mark.asyncio
    async def test_aggregation_coalesces_with_scheduled_run(self, configured, backend, intake, medical_bill):
        backend.script("bill.pdf", DocumentCategory.MEDICAL_BILLS, data=medical_bill)
        case = await configured.create_case(intake)
        document = await configured.upload_document(case.id, "bill.pdf", start=False)
        await configured.process_document(document.id)
        await configured.scheduler.wait(case.id)

        active = []
        overlaps = []
        aggregate = configured.scheduler.run_aggregation

        async def tracked(case_id):
            active.append(case_id)
            overlaps.append(len(active))
            try:
                return await aggregate(case_id)
            finally:
                active.remove(case_id)

        configured.scheduler.run_aggregation = tracked

        async def requested():
            while case.id not in configured.scheduler._dirty:
                await asyncio.sleep(0.01)

        async with configured._case_locks.hold(case.id):
            configured.request_aggregation(case.id)
            await asyncio.sleep(0.05)
            activity_run = asyncio.create_task(
                ActivityEnvironment().run(activities.aggregate_case_activity, str(case.id))
            )
            await asyncio.wait_for(requested(), timeout=5)

        result = await activity_run

        # One pass already queued on the lock, plus exactly one for the activity
        assert overlaps == [1, 1]
        assert result["status"] == CaseStatus.EXTRACTION_COMPLETE.value

    @pytest.mark.asyncio
    async def test_aggregate_missing_case_is_non_retryable(self, configured):
        with pytest.raises(ApplicationError) as exc_info:
            await ActivityEnvironment().run(activities.aggregate_case_activity, str(uuid4()))

        assert exc_info.value.non_retryable
        assert not configured.scheduler._runners

    @pytest.mark.asyncio
    async def test_failed_document_reported_in_result(self, configured, backend, intake):
        backend.script("scan.pdf", DocumentCategory.MEDICAL_RECORDS)
        backend.fail("scan.pdf", "extract_text", ExtractionError("the PDF could not be read"))
        case = await configured.create_case(intake)
        document = await configured.upload_document(case.id, "scan.pdf", start=False)

        result = await ActivityEnvironment().run(activities.process_document_activity, str(document.id))

        assert result["status"] == "FAILED"
        assert result["error"] == "Text extraction failed: the PDF could not be read"
        await configured.drain()

    @pytest.mark.asyncio
    async def test_missing_document_is_non_retryable(self, configured):
        with pytest.raises(ApplicationError) as exc_info:
            await ActivityEnvironment().run(activities.process_document_activity, str(uuid4()))

        assert exc_info.value.non_retryable

    @pytest.mark.asyncio
    async def test_generate_document(self, configured, backend, intake, medical_bill):
        backend.script("bill.pdf", DocumentCategory.MEDICAL_BILLS, data=medical_bill)
        case = await configured.create_case(intake)
        await configured.upload_document(case.id, "bill.pdf")
        await configured.wait_for_case(case.id)

        result = await ActivityEnvironment().run(
            activities.generate_document_activity,
            str(case.id),
            GeneratedDocumentType.DEMAND_LETTER.value,
        )

        assert result["version"] == 1
        assert result["document_type"] == "DEMAND_LETTER"

    @pytest.mark.asyncio
    async def test_generation_errors_are_non_retryable(self, configured, intake):
        case = await configured.create_case(intake)

        with pytest.raises(ApplicationError) as exc_info:
            await ActivityEnvironment().run(
                activities.generate_document_activity, str(case.id), "DEMAND_LETTER",
            )

        assert exc_info.value.non_retryable
        assert exc_info.value.type == "GenerationError"
