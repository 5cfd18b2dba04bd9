"""Unit tests for the chronology summaries built with the treatment timeline."""

from datetime import date
from uuid import uuid4

from casework.schemas.case import DocumentSnapshot
from casework.schemas.enums import DocumentCategory, ProcessingStatus
from casework.services.aggregation.timeline import build_timeline


def records(visits):
    return DocumentSnapshot(
        id=uuid4(),
        case_id=uuid4(),
        category=DocumentCategory.MEDICAL_RECORDS,
        processing_status=ProcessingStatus.COMPLETED,
        extracted_data={"visits": visits},
    )


STRAIN = {"icd10Code": "S13.4XXA", "description": "Cervical strain", "bodyPart": "Neck"}
RADICULOPATHY = {"description": "Lumbar radiculopathy", "bodyPart": "Lower back"}

VISITS = [
    {"date": "2024-01-11", "providerName": "Valley Urgent Care", "diagnoses": [STRAIN],
     "painScore": "8/10", "painLocation": "neck", "charge": 500},
    {"date": "2024-01-25", "providerName": "Dr. Patel", "diagnoses": [STRAIN, RADICULOPATHY],
     "painScore": 6, "charge": "$250.00",
     "proceduresPerformed": ["Neck trigger point injection", "Lower back stretching"]},
    {"date": "2024-02-20", "providerName": "dr. patel", "diagnoses": ["Cervical strain"],
     "painScore": 2, "charge": 150,
     "prognosis": "Patient has reached maximum medical improvement."},
]


class TestChronologySummaries:
    """Test suite for provider, diagnosis, pain, body part and MMI summaries."""

    def test_provider_summary(self):
        timeline, _ = build_timeline([records(VISITS)], threshold_days=30)

        busiest, other = timeline.providers
        assert (busiest.name, busiest.visit_count, busiest.total_cost) == ("Dr. Patel", 2, 400.0)
        assert (other.name, other.visit_count, other.total_cost) == ("Valley Urgent Care", 1, 500.0)

    def test_diagnosis_summary(self):
        timeline, _ = build_timeline([records(VISITS)], threshold_days=30)

        strain, radiculopathy = timeline.diagnoses
        assert strain.diagnosis == "Cervical strain"
        assert strain.icd_code == "S13.4XXA"
        assert strain.mention_count == 3
        assert (strain.first_date, strain.last_date) == (date(2024, 1, 11), date(2024, 2, 20))
        assert radiculopathy.mention_count == 1

    def test_pain_score_history(self):
        timeline, _ = build_timeline([records(VISITS)], threshold_days=30)

        assert [(p.date, p.score) for p in timeline.pain_scores] == [
            (date(2024, 1, 11), 8.0),
            (date(2024, 1, 25), 6.0),
            (date(2024, 2, 20), 2.0),
        ]
        assert timeline.pain_scores[0].location == "neck"

    def test_out_of_range_pain_score_is_ignored(self):
        timeline, _ = build_timeline(
            [records([{"date": "2024-01-11", "painScore": 14}])], threshold_days=30
        )

        assert timeline.pain_scores == []

    def test_body_part_summary(self):
        timeline, _ = build_timeline([records(VISITS)], threshold_days=30)

        parts = {p.body_part: p for p in timeline.body_parts}
        assert parts["Neck"].diagnoses == ["Cervical strain"]
        assert parts["Neck"].treatments == ["Neck trigger point injection"]
        assert parts["Lower back"].treatments == ["Lower back stretching"]

    def test_mmi_detected_on_latest_statement(self):
        timeline, _ = build_timeline([records(VISITS)], threshold_days=30)

        assert timeline.mmi.reached
        assert timeline.mmi.date == date(2024, 2, 20)
        assert "maximum medical improvement" in timeline.mmi.notes

    def test_mmi_abbreviation_matches_whole_word_only(self):
        summit, _ = build_timeline(
            [records([{"date": "2024-01-11", "plan": "Summit Physical Therapy twice weekly"}])],
            threshold_days=30,
        )
        declared, _ = build_timeline(
            [records([{"date": "2024-01-18", "assessment": "Patient is P&S as of this visit"}])],
            threshold_days=30,
        )

        assert not summit.mmi.reached
        assert declared.mmi.date == date(2024, 1, 18)

    def test_no_mmi_statement(self):
        timeline, _ = build_timeline([records(VISITS[:2])], threshold_days=30)

        assert not timeline.mmi.reached
        assert timeline.mmi.date is None
