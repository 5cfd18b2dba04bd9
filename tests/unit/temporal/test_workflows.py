"""Tests for the intake and generation workflows and the helpers starting them."""

import uuid
from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
from temporalio import activity
from temporalio.testing import WorkflowEnvironment
from temporalio.worker import Worker

from casework.core.config import settings
from casework.temporal import client as temporal_client
from casework.temporal.workflows import DocumentIntakeWorkflow, GenerateDocumentWorkflow

TASK_QUEUE = "casework-test"
CASE_ID = "6f9c2d4e-0000-4000-8000-000000000001"

calls = []


@activity.defn(name="process_document_activity")
async def fake_process_document(document_id: str) -> dict:
    calls.append(("process", document_id))
    return {"document_id": document_id, "case_id": CASE_ID, "status": "COMPLETED"}


@activity.defn(name="aggregate_case_activity")
async def fake_aggregate_case(case_id: str) -> dict:
    calls.append(("aggregate", case_id))
    return {"case_id": case_id, "status": "EXTRACTION_COMPLETE", "warnings": 0}


@activity.defn(name="generate_document_activity")
async def fake_generate_document(case_id, document_type, tone="moderate", parameters=None) -> dict:
    calls.append(("generate", case_id, document_type, tone, parameters))
    return {"case_id": case_id, "document_type": document_type, "version": 1}


@pytest_asyncio.fixture
async def workflow_env():
    try:
        env = await WorkflowEnvironment.start_time_skipping()
    except (RuntimeError, OSError) as e:
        pytest.skip(f"Temporal test server unavailable: {e}")
    calls.clear()
    async with env:
        async with Worker(
            env.client,
            task_queue=TASK_QUEUE,
            workflows=[DocumentIntakeWorkflow, GenerateDocumentWorkflow],
            activities=[fake_process_document, fake_aggregate_case, fake_generate_document],
        ):
            yield env


class TestWorkflows:
    """Test suite for the workflows, with activities replaced by name."""

    @pytest.mark.asyncio
    async def test_document_intake_processes_then_aggregates(self, workflow_env):
        result = await workflow_env.client.execute_workflow(
            DocumentIntakeWorkflow.run,
            "doc-1",
            id=f"intake-{uuid.uuid4()}",
            task_queue=TASK_QUEUE,
        )

        assert calls == [("process", "doc-1"), ("aggregate", CASE_ID)]
        assert result == {
            "document_id": "doc-1",
            "case_id": CASE_ID,
            "document_status": "COMPLETED",
            "case_status": "EXTRACTION_COMPLETE",
        }

    @pytest.mark.asyncio
    async def test_generate_document_passes_arguments(self, workflow_env):
        result = await workflow_env.client.execute_workflow(
            GenerateDocumentWorkflow.run,
            args=[CASE_ID, "DEMAND_LETTER", "aggressive", {"demand_amount": 50000}],
            id=f"generate-{uuid.uuid4()}",
            task_queue=TASK_QUEUE,
        )

        assert calls == [("generate", CASE_ID, "DEMAND_LETTER", "aggressive", {"demand_amount": 50000})]
        assert result["version"] == 1


class TestStartHelpers:
    """Test suite for the helpers that start workflows."""

    @pytest.fixture
    def client(self):
        client = AsyncMock()
        with patch.object(temporal_client, "get_temporal_client", AsyncMock(return_value=client)):
            yield client

    @pytest.mark.asyncio
    async def test_start_document_intake(self, client):
        await temporal_client.start_document_intake("doc-1")

        client.start_workflow.assert_awaited_once_with(
            DocumentIntakeWorkflow.run,
            "doc-1",
            id="document-intake-doc-1",
            task_queue=settings.temporal_task_queue,
        )

    @pytest.mark.asyncio
    async def test_start_generation_with_request_id(self, client):
        await temporal_client.start_generation(CASE_ID, "DEMAND_LETTER", request_id="r1")

        client.start_workflow.assert_awaited_once_with(
            GenerateDocumentWorkflow.run,
            args=[CASE_ID, "DEMAND_LETTER", "moderate", None],
            id=f"generate-{CASE_ID}-demand_letter-r1",
            task_queue=settings.temporal_task_queue,
        )
