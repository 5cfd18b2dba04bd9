"""Temporal worker service for case document processing.

This worker:
- Checks the database and creates missing tables
- Connects to the configured Temporal server
- Registers the intake and generation workflows and all registered activities
- Resumes documents left unfinished by a previous run
- Polls the configured task queue
"""

import asyncio

from temporalio.client import Client
from temporalio.worker import Worker

from casework.bootstrap import build_coordinator
from casework.core.config import settings
from casework.core.database import DatabaseClient, create_engine, create_session_maker
from casework.temporal import activities
from casework.temporal.registry import ActivityRegistry
from casework.temporal.workflows import DocumentIntakeWorkflow, GenerateDocumentWorkflow
from casework.utils.logging import get_logger

logger = get_logger(__name__)

WORKFLOWS = [DocumentIntakeWorkflow, GenerateDocumentWorkflow]


def build_worker(client: Client) -> Worker:
    return Worker(
        client,
        task_queue=settings.temporal_task_queue,
        workflows=WORKFLOWS,
        activities=list(ActivityRegistry.get_all_activities().values()),
        max_concurrent_activities=settings.max_concurrent_documents,
        max_concurrent_workflow_tasks=10,
    )


async def main():
    """Start the Temporal worker."""
    temporal_host = f"{settings.temporal_host}:{settings.temporal_port}"
    logger.info(f"Connecting to Temporal server at {temporal_host}")

    client = await Client.connect(temporal_host, namespace=settings.temporal_namespace)
    logger.info("Successfully connected to Temporal server")

    database = DatabaseClient(create_engine())
    await database.connect()
    await database.create_tables()

    coordinator = build_coordinator(create_session_maker(database.engine))
    activities.configure(coordinator)
    resumed = await coordinator.resume_unfinished()

    worker = build_worker(client)
    logger.info(
        "Temporal worker started",
        extra={
            "task_queue": settings.temporal_task_queue,
            "workflows": len(WORKFLOWS),
            "activities": len(ActivityRegistry.get_all_activities()),
            "resumed_documents": len(resumed),
        }
    )

    try:
        await worker.run()
    finally:
        await coordinator.close()
        await database.disconnect()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Worker stopped by user")
    except Exception as e:
        logger.error(f"Worker failed: {e}", exc_info=True)
        raise
