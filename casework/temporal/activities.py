"""Temporal activities wrapping the pipeline coordinator.

Activities run in the worker process, which holds a single coordinator
built from settings on first use.
"""

from typing import Any, Dict, Optional
from uuid import UUID

from temporalio import activity
from temporalio.exceptions import ApplicationError

from casework.core.exceptions import CaseNotFoundError, DocumentNotFoundError, GenerationError
from casework.schemas.enums import GeneratedDocumentType, Tone
from casework.services.pipeline.coordinator import PipelineCoordinator
from casework.temporal.registry import ActivityRegistry
from casework.utils.logging import get_logger

LOGGER = get_logger(__name__)

_coordinator: Optional[PipelineCoordinator] = None


def configure(coordinator: Optional[PipelineCoordinator]) -> None:
    """Set the coordinator used by the activities in this process."""
    global _coordinator
    _coordinator = coordinator


def get_coordinator() -> PipelineCoordinator:
    global _coordinator
    if _coordinator is None:
        from casework.bootstrap import build_coordinator
        from casework.core.database import create_engine, create_session_maker

        _coordinator = build_coordinator(create_session_maker(create_engine()))
    return _coordinator


@ActivityRegistry.register("documents", "process_document_activity")
@activity.defn
async def process_document_activity(document_id: str) -> Dict[str, Any]:
    """Run one document through its processing stages.

    Stage failures are recorded on the document and reported in the result;
    only a missing document fails the activity.
    """
    coordinator = get_coordinator()
    try:
        document = await coordinator.get_document_status(UUID(document_id))
    except DocumentNotFoundError as e:
        raise ApplicationError(str(e), non_retryable=True) from e

    activity.logger.info(f"Processing document {document_id}")
    status = await coordinator.process_document(document.id)
    document = await coordinator.get_document_status(document.id)

    return {
        "document_id": document_id,
        "case_id": str(document.case_id),
        "status": status.value,
        "category": document.category.value if document.category else None,
        "error": document.processing_error,
    }


@ActivityRegistry.register("cases", "aggregate_case_activity")
@activity.defn
async def aggregate_case_activity(case_id: str) -> Dict[str, Any]:
    """Recompute the derived record of a case.

    The request goes through the coordinator's scheduler, so it coalesces
    with aggregations triggered by document completions instead of running
    beside them.
    """
    coordinator = get_coordinator()
    try:
        case = await coordinator.get_case(UUID(case_id))
    except CaseNotFoundError as e:
        raise ApplicationError(str(e), non_retryable=True) from e

    try:
        coordinator.request_aggregation(case.id)
        await coordinator.scheduler.wait(case.id)
        case = await coordinator.get_case(case.id)
    except Exception as e:
        LOGGER.error(f"Aggregation activity failed for case {case_id}: {e}", exc_info=True)
        raise

    return {
        "case_id": case_id,
        "status": case.status.value,
        "warnings": len(case.attorney_warnings),
    }


@ActivityRegistry.register("cases", "generate_document_activity")
@activity.defn
async def generate_document_activity(
    case_id: str,
    document_type: str,
    tone: str = Tone.MODERATE.value,
    parameters: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Generate a new version of a case document."""
    coordinator = get_coordinator()
    try:
        generated = await coordinator.generate(
            UUID(case_id), GeneratedDocumentType(document_type), Tone(tone), parameters
        )
    except (CaseNotFoundError, GenerationError, ValueError) as e:
        raise ApplicationError(str(e), type=type(e).__name__, non_retryable=True) from e

    return {
        "generated_document_id": str(generated.id),
        "case_id": case_id,
        "document_type": generated.document_type.value,
        "version": generated.version,
    }
