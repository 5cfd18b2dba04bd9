"""Treatment timeline and gap detection from medical records."""

from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from casework.core.exceptions import AggregationError
from casework.schemas.aggregation import (
    AggregationDiagnostic,
    EventDiagnosis,
    TimelineEvent,
    TreatmentGap,
    TreatmentTimeline,
)
from casework.schemas.case import DocumentSnapshot
from casework.schemas.enums import DocumentCategory
from casework.services.aggregation.chronology import (
    body_part_summary,
    detect_mmi,
    diagnosis_summary,
    pain_score_history,
    provider_summary,
)
from casework.utils.dates import money, parse_date, to_decimal

TIMELINE_CATEGORIES = (DocumentCategory.MEDICAL_RECORDS, DocumentCategory.PRIOR_MEDICAL_RECORDS)
IMAGING_EVENT = "Imaging"
PRE_INCIDENT_REASON = "treatment history before the incident"


def _list_field(data: Dict[str, Any], key: str, document: DocumentSnapshot) -> List[Dict[str, Any]]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise AggregationError(f"'{key}' of document {document.id} is not a list")
    for item in value:
        if not isinstance(item, dict):
            raise AggregationError(f"'{key}' of document {document.id} contains a non-object entry")
    return value


def _text(*values: Any) -> Optional[str]:
    for value in values:
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _strings(*values: Any) -> List[str]:
    """Non-empty strings from scalar or list values, in order, without repeats."""
    found: List[str] = []
    for value in values:
        items = value if isinstance(value, list) else [value]
        for item in items:
            text = _text(item)
            if text and text not in found:
                found.append(text)
    return found


def _diagnoses(value: Any) -> List[EventDiagnosis]:
    if not isinstance(value, list):
        return []
    diagnoses = []
    for entry in value:
        if isinstance(entry, str):
            name, code, body_part = _text(entry), None, None
        elif isinstance(entry, dict):
            name = _text(entry.get("description"), entry.get("diagnosis"), entry.get("name"))
            code = _text(entry.get("icd10Code"), entry.get("icdCode"))
            body_part = _text(entry.get("bodyPart"))
        else:
            continue
        if name:
            diagnoses.append(EventDiagnosis(name=name, icd_code=code, body_part=body_part))
    return diagnoses


def _pain_score(value: Any) -> Optional[float]:
    """Read a 0-10 pain score from 7, 6.5, "7" or "7/10"."""
    if isinstance(value, str):
        value = value.split("/")[0]
    amount = to_decimal(value)
    if amount is None or not 0 <= amount <= 10:
        return None
    return float(amount)


def _charge(*values: Any) -> Optional[float]:
    for value in values:
        amount = to_decimal(value)
        if amount is not None:
            return money(amount)
    return None


def events_from_document(document: DocumentSnapshot) -> List[TimelineEvent]:
    """Collect dated events from one medical records document.

    Entries without a usable date are left out.

    Raises:
        AggregationError: If visits or imagingSummary have an unusable shape
    """
    data = document.extracted_data
    if data is None:
        return []
    if not isinstance(data, dict):
        raise AggregationError(f"extracted data of document {document.id} is not an object")

    events: List[TimelineEvent] = []
    for visit in _list_field(data, "visits", document):
        visit_date = parse_date(visit.get("date"))
        if visit_date is None:
            continue
        events.append(
            TimelineEvent(
                date=visit_date,
                provider=_text(visit.get("providerName"), visit.get("facilityName"),
                               document.provider_name) or "Unknown provider",
                event_type=_text(visit.get("visitType")) or "Visit",
                description=_text(visit.get("chiefComplaint"), visit.get("treatmentProvided")) or "",
                category=document.category,
                document_id=document.id,
                gap_reason=_text(visit.get("gapReason")),
                diagnoses=_diagnoses(visit.get("diagnoses")),
                procedures=_strings(visit.get("proceduresPerformed"), visit.get("procedures")),
                pain_score=_pain_score(visit.get("painScore")),
                pain_location=_text(visit.get("painLocation")),
                charge=_charge(visit.get("charge"), visit.get("totalCharge")),
                clinical_notes=_strings(
                    visit.get("prognosis"), visit.get("permanencyStatements"),
                    visit.get("assessment"), visit.get("plan"),
                ),
            )
        )

    for study in _list_field(data, "imagingSummary", document):
        study_date = parse_date(study.get("date"))
        if study_date is None:
            continue
        label = " ".join(part for part in (_text(study.get("type")), _text(study.get("bodyPart"))) if part)
        impression = _text(study.get("impression"), study.get("findings"))
        events.append(
            TimelineEvent(
                date=study_date,
                provider=_text(study.get("facilityName"), document.provider_name) or "Unknown provider",
                event_type=IMAGING_EVENT,
                description=f"{label}: {impression}" if label and impression else (label or impression or ""),
                category=document.category,
                document_id=document.id,
                gap_reason=_text(study.get("gapReason")),
            )
        )
    return events


def _dedupe(events: List[TimelineEvent]) -> List[TimelineEvent]:
    """Drop events repeated across documents, keeping the first seen."""
    kept: Dict[Tuple[date, str, str], TimelineEvent] = {}
    for event in events:
        key = (event.date, event.provider.lower(), event.event_type.lower())
        first = kept.get(key)
        if first is None:
            kept[key] = event
        elif first.gap_reason is None and event.gap_reason:
            kept[key] = first.model_copy(update={"gap_reason": event.gap_reason})
    return sorted(kept.values(), key=lambda e: (e.date, e.provider.lower(), e.event_type.lower()))


def detect_gaps(
    events: List[TimelineEvent],
    threshold_days: int,
    incident_date: Optional[date] = None,
) -> List[TreatmentGap]:
    """Find intervals between consecutive treatment dates above the threshold.

    A gap is explained by a gapReason on an event closing it, or by the
    interval spanning the incident date (treatment history before the
    incident). Unexplained gaps are flagged.
    """
    reasons: Dict[date, Optional[str]] = {}
    for event in events:
        if reasons.get(event.date) is None:
            reasons[event.date] = event.gap_reason

    dates = sorted(reasons)
    gaps: List[TreatmentGap] = []
    for start, end in zip(dates, dates[1:]):
        duration = (end - start).days
        if duration <= threshold_days:
            continue
        reason = reasons[end]
        if reason is None and incident_date is not None and start < incident_date <= end:
            reason = PRE_INCIDENT_REASON
        gaps.append(
            TreatmentGap(
                start_date=start,
                end_date=end,
                duration_days=duration,
                reason=reason,
                flagged=reason is None,
            )
        )
    return gaps


def build_timeline(
    documents: List[DocumentSnapshot],
    threshold_days: int,
    incident_date: Optional[date] = None,
) -> Tuple[TreatmentTimeline, List[AggregationDiagnostic]]:
    """Build the treatment timeline of a case.

    Args:
        documents: COMPLETED snapshots, oldest first
        threshold_days: Longest interval that is not a gap
        incident_date: Incident date from intake, if known

    Returns:
        Tuple of (timeline, diagnostics for documents that were skipped)
    """
    collected: List[TimelineEvent] = []
    diagnostics: List[AggregationDiagnostic] = []

    for document in documents:
        if document.category not in TIMELINE_CATEGORIES:
            continue
        try:
            collected.extend(events_from_document(document))
        except AggregationError as e:
            diagnostics.append(
                AggregationDiagnostic(document_id=document.id, section="treatment_timeline", message=e.message)
            )

    events = _dedupe(collected)
    if not events:
        return TreatmentTimeline(), diagnostics

    first, last = events[0].date, events[-1].date
    return (
        TreatmentTimeline(
            events=events,
            gaps=detect_gaps(events, threshold_days, incident_date),
            first_treatment_date=first,
            last_treatment_date=last,
            total_visits=sum(1 for e in events if e.event_type != IMAGING_EVENT),
            treatment_duration_days=(last - first).days,
            providers=provider_summary(events),
            diagnoses=diagnosis_summary(events),
            pain_scores=pain_score_history(events),
            body_parts=body_part_summary(events),
            mmi=detect_mmi(events),
        ),
        diagnostics,
    )
