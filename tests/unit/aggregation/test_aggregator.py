"""Unit tests for CaseAggregator."""

from datetime import date, datetime, timezone
from uuid import uuid4

import pytest

from casework.schemas.case import DocumentSnapshot
from casework.schemas.enums import DocumentCategory, ProcessingStatus
from casework.services.aggregation.aggregator import CaseAggregator, derived_case_fields


def snapshot(category, data, status=ProcessingStatus.COMPLETED, document_date=None):
    return DocumentSnapshot(
        id=uuid4(),
        case_id=uuid4(),
        category=category,
        processing_status=status,
        extracted_data=data,
        document_date=document_date,
    )


class TestCaseAggregator:
    """Test suite for CaseAggregator."""

    @pytest.fixture
    def documents(self, medical_bill, wage_documentation, medical_records):
        return [
            snapshot(DocumentCategory.MEDICAL_RECORDS, medical_records, document_date=date(2024, 2, 1)),
            snapshot(DocumentCategory.MEDICAL_BILLS, medical_bill, document_date=date(2024, 1, 11)),
            snapshot(DocumentCategory.WAGE_DOCUMENTATION, wage_documentation),
        ]

    def test_aggregates_completed_documents(self, intake, documents):
        result = CaseAggregator(gap_threshold_days=30).aggregate(intake, documents)

        assert result.document_count == 3
        assert result.completed_categories == [
            DocumentCategory.MEDICAL_RECORDS,
            DocumentCategory.MEDICAL_BILLS,
            DocumentCategory.WAGE_DOCUMENTATION,
        ]
        assert result.damages.medical_expenses == 500
        assert result.damages.lost_wages == 1200
        assert result.timeline.total_visits == 2
        assert set(result.extracted_data) == {"MEDICAL_RECORDS", "MEDICAL_BILLS", "WAGE_DOCUMENTATION"}

    def test_only_completed_documents_contribute(self, intake, medical_bill):
        documents = [
            snapshot(DocumentCategory.MEDICAL_BILLS, medical_bill),
            snapshot(DocumentCategory.MEDICAL_BILLS, {"charges": [{"amountBilled": 900}]},
                     status=ProcessingStatus.FAILED),
            snapshot(None, {"charges": [{"amountBilled": 900}]}, status=ProcessingStatus.EXTRACTING_DATA),
        ]

        result = CaseAggregator().aggregate(intake, documents)

        assert result.document_count == 1
        assert result.damages.medical_expenses == 500

    def test_aggregation_is_idempotent(self, intake, documents):
        aggregator = CaseAggregator(gap_threshold_days=30)

        first = aggregator.aggregate(intake, documents)
        second = aggregator.aggregate(intake, list(reversed(documents)))

        assert first == second

    def test_no_documents(self, intake):
        result = CaseAggregator().aggregate(intake, [])

        assert result.document_count == 0
        assert result.extracted_data == {}
        assert result.damages.total == 0

    def test_derived_case_fields_are_json_ready(self, intake, documents):
        result = CaseAggregator().aggregate(intake, documents)
        now = datetime(2024, 3, 1, tzinfo=timezone.utc)

        fields = derived_case_fields(result, [], now)

        assert fields["aggregated_at"] == now
        assert fields["damages_calculation"]["total"] == 1700
        assert fields["treatment_timeline"]["first_treatment_date"] == "2024-01-11"
        assert fields["attorney_warnings"] == []
