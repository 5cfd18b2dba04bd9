"""Summaries derived from the treatment chronology.

Every function takes the deduplicated events in date order and is
deterministic, so the summaries are recomputed with the rest of the
timeline on each aggregation.
"""

import re
from decimal import Decimal
from typing import Dict, List

from casework.schemas.aggregation import (
    BodyPartSummary,
    DiagnosisSummary,
    MMIStatus,
    PainScoreEntry,
    ProviderSummary,
    TimelineEvent,
)
from casework.utils.dates import money

MMI_PATTERN = re.compile(
    r"maximum medical improvement|\bmmi\b|permanent and stationary|\bp&s\b",
    re.IGNORECASE,
)


def provider_summary(events: List[TimelineEvent]) -> List[ProviderSummary]:
    """Visit count and billed cost per provider, busiest provider first."""
    counts: Dict[str, int] = {}
    costs: Dict[str, Decimal] = {}
    names: Dict[str, str] = {}
    for event in events:
        key = event.provider.lower()
        names.setdefault(key, event.provider)
        counts[key] = counts.get(key, 0) + 1
        costs[key] = costs.get(key, Decimal("0")) + Decimal(str(event.charge or 0))

    summaries = [
        ProviderSummary(name=names[key], visit_count=counts[key], total_cost=money(costs[key]))
        for key in names
    ]
    # Stable: providers with equal counts keep first-seen order
    return sorted(summaries, key=lambda s: -s.visit_count)


def diagnosis_summary(events: List[TimelineEvent]) -> List[DiagnosisSummary]:
    """First and last date each diagnosis was recorded, most mentioned first."""
    summaries: Dict[str, DiagnosisSummary] = {}
    for event in events:
        for diagnosis in event.diagnoses:
            key = diagnosis.name.lower()
            existing = summaries.get(key)
            if existing is None:
                summaries[key] = DiagnosisSummary(
                    diagnosis=diagnosis.name,
                    icd_code=diagnosis.icd_code,
                    body_part=diagnosis.body_part,
                    first_date=event.date,
                    last_date=event.date,
                    mention_count=1,
                )
                continue
            existing.mention_count += 1
            existing.first_date = min(existing.first_date, event.date)
            existing.last_date = max(existing.last_date, event.date)
            existing.icd_code = existing.icd_code or diagnosis.icd_code
            existing.body_part = existing.body_part or diagnosis.body_part

    return sorted(summaries.values(), key=lambda s: -s.mention_count)


def pain_score_history(events: List[TimelineEvent]) -> List[PainScoreEntry]:
    return [
        PainScoreEntry(
            date=event.date,
            score=event.pain_score,
            provider=event.provider,
            location=event.pain_location,
        )
        for event in events
        if event.pain_score is not None
    ]


def body_part_summary(events: List[TimelineEvent]) -> List[BodyPartSummary]:
    """Diagnoses per injured body part, with the procedures naming that body part."""
    parts: Dict[str, BodyPartSummary] = {}
    for event in events:
        for diagnosis in event.diagnoses:
            if not diagnosis.body_part:
                continue
            summary = parts.setdefault(
                diagnosis.body_part.lower(), BodyPartSummary(body_part=diagnosis.body_part)
            )
            if diagnosis.name not in summary.diagnoses:
                summary.diagnoses.append(diagnosis.name)

    for event in events:
        for procedure in event.procedures:
            for key, summary in parts.items():
                if key in procedure.lower() and procedure not in summary.treatments:
                    summary.treatments.append(procedure)

    return list(parts.values())


def detect_mmi(events: List[TimelineEvent]) -> MMIStatus:
    """Find the latest event whose clinical notes declare maximum medical improvement."""
    for event in reversed(events):
        for note in event.clinical_notes:
            if MMI_PATTERN.search(note):
                return MMIStatus(reached=True, date=event.date, notes=note)
    return MMIStatus()
