"""Default attorney warning rules."""

import re
from datetime import timedelta
from typing import List, Optional, Tuple

from casework.schemas.enums import DocumentCategory, WarningCategory, WarningSeverity
from casework.services.warnings.engine import CaseRecord, WarningRule, rule
from casework.services.warnings.statutes import add_years, statute_years

Finding = Optional[Tuple[str, str]]

AUTO_INCIDENT_KEYWORDS = frozenset({
    "auto", "automobile", "car", "motor", "vehicle", "mva", "truck", "motorcycle", "collision", "crash",
})


def _is_auto_incident(incident_type: Optional[str]) -> bool:
    if not incident_type:
        return False
    words = set(re.findall(r"[a-z]+", incident_type.lower()))
    return bool(words & AUTO_INCIDENT_KEYWORDS)


@rule("statute_of_limitations", WarningSeverity.CRITICAL, WarningCategory.STATUTE)
def statute_of_limitations(record: CaseRecord) -> Finding:
    incident_date = record.intake.incident_date
    if incident_date is None:
        return None

    years = statute_years(record.intake.jurisdiction, record.thresholds.default_statute_years)
    deadline = add_years(incident_date, years)
    days_left = (deadline - record.as_of).days
    jurisdiction = record.intake.jurisdiction or "default jurisdiction"

    if days_left < 0:
        return (
            f"Statute of limitations expired on {deadline.isoformat()} "
            f"({jurisdiction}: {years} years from the incident)",
            "Confirm whether tolling or an exception applies before any further work on the claim",
        )
    if days_left <= record.thresholds.statute_warning_days:
        return (
            f"Statute of limitations expires in {days_left} days on {deadline.isoformat()} "
            f"({jurisdiction}: {years} years from the incident)",
            "Calendar the deadline and prepare to file suit if the claim does not settle in time",
        )
    return None


@rule("missing_medical_records", WarningSeverity.CRITICAL, WarningCategory.MISSING_DOC)
def missing_medical_records(record: CaseRecord) -> Finding:
    if record.has_category(DocumentCategory.MEDICAL_RECORDS):
        return None
    return (
        "No medical records have been processed for this case",
        "Request records from every treating provider; injuries cannot be documented without them",
    )


@rule("missing_police_report", WarningSeverity.MODERATE, WarningCategory.MISSING_DOC)
def missing_police_report(record: CaseRecord) -> Finding:
    if not _is_auto_incident(record.intake.incident_type):
        return None
    if record.has_category(DocumentCategory.POLICE_REPORT):
        return None
    return (
        "No police report for a motor vehicle incident",
        "Order the collision report from the responding agency to establish liability",
    )


@rule("missing_medical_bills", WarningSeverity.MODERATE, WarningCategory.MISSING_DOC)
def missing_medical_bills(record: CaseRecord) -> Finding:
    if record.has_category(DocumentCategory.MEDICAL_BILLS):
        return None
    return (
        "No medical bills have been processed for this case",
        "Request itemized billing statements so medical specials can be calculated",
    )


@rule("treatment_gaps", WarningSeverity.MODERATE, WarningCategory.TREATMENT_GAP)
def treatment_gaps(record: CaseRecord) -> Finding:
    flagged = record.aggregation.timeline.flagged_gaps
    if not flagged:
        return None
    listed = "; ".join(
        f"{gap.start_date.isoformat()} to {gap.end_date.isoformat()} ({gap.duration_days} days)"
        for gap in flagged
    )
    noun = "gap" if len(flagged) == 1 else "gaps"
    return (
        f"{len(flagged)} unexplained treatment {noun} longer than "
        f"{record.thresholds.treatment_gap_days} days: {listed}",
        "Ask the client why treatment stopped and obtain documentation of the reason",
    )


@rule("delayed_initial_treatment", WarningSeverity.MODERATE, WarningCategory.CAUSATION)
def delayed_initial_treatment(record: CaseRecord) -> Finding:
    incident_date = record.intake.incident_date
    if incident_date is None:
        return None
    post_incident = [
        event.date for event in record.aggregation.timeline.events
        if event.category == DocumentCategory.MEDICAL_RECORDS and event.date >= incident_date
    ]
    if not post_incident:
        return None

    first = min(post_incident)
    delay = (first - incident_date).days
    if delay <= record.thresholds.initial_treatment_delay_days:
        return None
    return (
        f"First treatment on {first.isoformat()} was {delay} days after the incident",
        "Document why the client waited to seek care; insurers will argue the injury has another cause",
    )


def _pre_existing_conditions(record: CaseRecord) -> List[str]:
    conditions: List[str] = []
    for category in (DocumentCategory.MEDICAL_RECORDS, DocumentCategory.PRIOR_MEDICAL_RECORDS):
        data = record.aggregation.extracted_data.get(category.value)
        if not isinstance(data, dict):
            continue
        values = data.get("preExistingConditions")
        if isinstance(values, list):
            for value in values:
                if isinstance(value, str) and value.strip() and value.strip() not in conditions:
                    conditions.append(value.strip())
    return conditions


@rule("pre_existing_conditions", WarningSeverity.MODERATE, WarningCategory.PRE_EXISTING)
def pre_existing_conditions(record: CaseRecord) -> Finding:
    conditions = _pre_existing_conditions(record)
    has_prior_records = record.has_category(DocumentCategory.PRIOR_MEDICAL_RECORDS)
    if not conditions and not has_prior_records:
        return None

    if conditions:
        message = f"Pre-existing conditions noted: {', '.join(conditions)}"
    else:
        message = "Medical records from before the incident are in the file"
    return (
        message,
        "Separate aggravation of prior conditions from new injuries in the demand",
    )


@rule("damages_inconsistency", WarningSeverity.MODERATE, WarningCategory.DAMAGES)
def damages_inconsistency(record: CaseRecord) -> Finding:
    damages = record.aggregation.damages
    if damages.lost_wages > 0 and damages.medical_expenses == 0:
        return (
            "Lost wages are claimed but no medical expenses support the injury",
            "Obtain medical bills or a work restriction note covering the time off",
        )

    last_treatment = record.aggregation.timeline.last_treatment_date
    if last_treatment is None:
        return None
    allowed_until = last_treatment + timedelta(days=record.thresholds.treatment_gap_days)
    for period in damages.wage_loss_periods:
        end = period.end_date
        if end is None and period.start_date and period.days_missed:
            end = period.start_date + timedelta(days=period.days_missed)
        if end is not None and end > allowed_until:
            return (
                f"Time off work through {end.isoformat()} extends well past the last "
                f"treatment on {last_treatment.isoformat()}",
                "Get a provider's note supporting the full period away from work",
            )
    return None


@rule("conflicting_extractions", WarningSeverity.MINOR, WarningCategory.CREDIBILITY)
def conflicting_extractions(record: CaseRecord) -> Finding:
    conflicts = record.aggregation.conflicts
    if not conflicts:
        return None
    paths = sorted({conflict.path for conflict in conflicts})
    shown = ", ".join(paths[:5]) + (f" and {len(paths) - 5} more" if len(paths) > 5 else "")
    return (
        f"Documents disagree on {len(paths)} field(s): {shown}",
        "Review the conflicting documents and confirm the correct values with the client",
    )


DEFAULT_RULES: List[WarningRule] = [
    statute_of_limitations,
    missing_medical_records,
    missing_police_report,
    missing_medical_bills,
    treatment_gaps,
    delayed_initial_treatment,
    pre_existing_conditions,
    damages_inconsistency,
    conflicting_extractions,
]
