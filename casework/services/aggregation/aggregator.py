"""Case aggregator: derives the case record from completed documents."""

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from casework.core.config import settings
from casework.schemas.aggregation import AggregationResult
from casework.schemas.case import CaseIntake, DocumentSnapshot
from casework.schemas.enums import DocumentCategory, ProcessingStatus
from casework.schemas.warnings import AttorneyWarning
from casework.services.aggregation.damages import calculate_damages
from casework.services.aggregation.merge import merge_extracted_data, order_documents
from casework.services.aggregation.timeline import build_timeline
from casework.utils.logging import get_logger

LOGGER = get_logger(__name__)

_CATEGORY_ORDER = {category: index for index, category in enumerate(DocumentCategory)}


class CaseAggregator:
    """Pure recomputation of the derived case record.

    Only COMPLETED documents with a category contribute. The previous derived
    state is never read, so aggregating the same inputs twice gives the same
    result.
    """

    def __init__(self, gap_threshold_days: Optional[int] = None):
        self.gap_threshold_days = (
            settings.treatment_gap_threshold_days if gap_threshold_days is None else gap_threshold_days
        )

    def aggregate(
        self, intake: CaseIntake, documents: Iterable[DocumentSnapshot]
    ) -> AggregationResult:
        """Aggregate a case.

        Args:
            intake: The case's intake fields
            documents: Snapshots of the case's documents, any status

        Returns:
            AggregationResult with merged data, conflicts, timeline, damages
            and diagnostics for input that had to be skipped
        """
        completed = order_documents(
            d for d in documents
            if d.processing_status == ProcessingStatus.COMPLETED and d.category is not None
        )

        extracted_data, conflicts, merge_diagnostics = merge_extracted_data(completed)
        timeline, timeline_diagnostics = build_timeline(
            completed, self.gap_threshold_days, intake.incident_date
        )
        damages, damages_diagnostics = calculate_damages(completed)

        diagnostics = merge_diagnostics + timeline_diagnostics + damages_diagnostics
        if diagnostics:
            LOGGER.warning(
                f"Aggregation skipped input from {len({d.document_id for d in diagnostics})} documents",
                extra={"diagnostics": [d.message for d in diagnostics]}
            )

        categories = sorted({d.category for d in completed}, key=_CATEGORY_ORDER.__getitem__)
        return AggregationResult(
            extracted_data=extracted_data,
            conflicts=conflicts,
            timeline=timeline,
            damages=damages,
            diagnostics=diagnostics,
            completed_categories=categories,
            document_count=len(completed),
        )


def derived_case_fields(
    result: AggregationResult,
    warnings: List[AttorneyWarning],
    aggregated_at: datetime,
) -> Dict[str, Any]:
    """Column values written to the case for one aggregation run."""
    return {
        "extracted_data": result.extracted_data,
        "extraction_conflicts": [c.model_dump(mode="json") for c in result.conflicts],
        "treatment_timeline": result.timeline.model_dump(mode="json"),
        "damages_calculation": result.damages.model_dump(mode="json"),
        "attorney_warnings": [w.model_dump(mode="json") for w in warnings],
        "aggregation_diagnostics": [d.model_dump(mode="json") for d in result.diagnostics],
        "aggregated_at": aggregated_at,
    }
