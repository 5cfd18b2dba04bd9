"""Workflows for document intake and document generation.

Activities are referenced by name so the workflow sandbox never imports the
database or HTTP stack.
"""

from datetime import timedelta
from typing import Any, Dict, Optional

from temporalio import workflow
from temporalio.common import RetryPolicy

ACTIVITY_RETRY_POLICY = RetryPolicy(
    maximum_attempts=5,
    initial_interval=timedelta(seconds=5),
    maximum_interval=timedelta(seconds=60),
    backoff_coefficient=2.0,
)


@workflow.defn
class DocumentIntakeWorkflow:
    """Processes an uploaded document, then refreshes its case record."""

    def __init__(self):
        self._status = "initialized"
        self._result: Optional[Dict[str, Any]] = None

    @workflow.query
    def get_status(self) -> dict:
        return {
            "status": self._status,
            "document_status": self._result.get("status") if self._result else None,
        }

    @workflow.run
    async def run(self, document_id: str) -> dict:
        workflow.logger.info(f"Starting document intake: {document_id}")
        self._status = "processing"

        self._result = await workflow.execute_activity(
            "process_document_activity",
            document_id,
            start_to_close_timeout=timedelta(minutes=15),
            retry_policy=ACTIVITY_RETRY_POLICY,
        )

        self._status = "aggregating"
        case = await workflow.execute_activity(
            "aggregate_case_activity",
            self._result["case_id"],
            start_to_close_timeout=timedelta(minutes=5),
            retry_policy=ACTIVITY_RETRY_POLICY,
        )

        self._status = "completed"
        workflow.logger.info(
            f"Document intake complete: {document_id} -> {self._result['status']}"
        )
        return {
            "document_id": document_id,
            "case_id": self._result["case_id"],
            "document_status": self._result["status"],
            "case_status": case["status"],
        }


@workflow.defn
class GenerateDocumentWorkflow:
    """Generates one versioned document for a case."""

    @workflow.run
    async def run(
        self,
        case_id: str,
        document_type: str,
        tone: str = "moderate",
        parameters: Optional[Dict[str, Any]] = None,
    ) -> dict:
        return await workflow.execute_activity(
            "generate_document_activity",
            args=[case_id, document_type, tone, parameters],
            start_to_close_timeout=timedelta(minutes=5),
            retry_policy=RetryPolicy(maximum_attempts=3),
        )
