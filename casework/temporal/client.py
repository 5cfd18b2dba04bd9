"""Temporal client configuration and connection management."""

from typing import Any, Dict, Optional

from temporalio.client import Client as TemporalClient
from temporalio.client import WorkflowHandle

from casework.core.config import settings
from casework.temporal.workflows import DocumentIntakeWorkflow, GenerateDocumentWorkflow


class TemporalClientManager:
    """Manages Temporal client connection."""

    _client: Optional[TemporalClient] = None

    async def get_client(self) -> TemporalClient:
        """Get or create Temporal client instance.

        Returns:
            TemporalClient: Connected Temporal client
        """
        if self._client is None:
            self._client = await TemporalClient.connect(
                f"{settings.temporal_host}:{settings.temporal_port}",
                namespace=settings.temporal_namespace,
            )
        return self._client

    async def close(self) -> None:
        # The SDK client holds no resources of its own; dropping it is enough
        self._client = None


# Global Temporal client manager instance
_temporal_manager = TemporalClientManager()


async def get_temporal_client() -> TemporalClient:
    return await _temporal_manager.get_client()


async def close_temporal_client() -> None:
    await _temporal_manager.close()


async def start_document_intake(document_id: str) -> WorkflowHandle:
    """Start durable processing of an uploaded document.

    The workflow ID is derived from the document ID, so starting the same
    document twice is rejected by the server.
    """
    client = await get_temporal_client()
    return await client.start_workflow(
        DocumentIntakeWorkflow.run,
        document_id,
        id=f"document-intake-{document_id}",
        task_queue=settings.temporal_task_queue,
    )


async def start_generation(
    case_id: str,
    document_type: str,
    tone: str = "moderate",
    parameters: Optional[Dict[str, Any]] = None,
    request_id: Optional[str] = None,
) -> WorkflowHandle:
    client = await get_temporal_client()
    workflow_id = f"generate-{case_id}-{document_type.lower()}"
    if request_id:
        workflow_id = f"{workflow_id}-{request_id}"
    return await client.start_workflow(
        GenerateDocumentWorkflow.run,
        args=[case_id, document_type, tone, parameters],
        id=workflow_id,
        task_queue=settings.temporal_task_queue,
    )
