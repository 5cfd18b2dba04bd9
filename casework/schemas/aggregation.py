"""Pydantic schemas for the derived case record."""

import datetime
from datetime import date
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from casework.schemas.enums import DocumentCategory


class EventDiagnosis(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    icd_code: Optional[str] = None
    body_part: Optional[str] = None


class TimelineEvent(BaseModel):
    """A dated medical event collected from a medical records document."""
    model_config = ConfigDict(frozen=True)

    date: datetime.date
    provider: str
    event_type: str
    description: str = ""
    category: DocumentCategory
    document_id: UUID
    gap_reason: Optional[str] = None
    diagnoses: List[EventDiagnosis] = Field(default_factory=list)
    procedures: List[str] = Field(default_factory=list)
    pain_score: Optional[float] = None
    pain_location: Optional[str] = None
    charge: Optional[float] = None
    # Prognosis, permanency statements, assessment and plan as written
    clinical_notes: List[str] = Field(default_factory=list)


class TreatmentGap(BaseModel):
    """Interval between consecutive treatment dates above the gap threshold."""
    model_config = ConfigDict(frozen=True)

    start_date: date
    end_date: date
    duration_days: int
    reason: Optional[str] = None
    flagged: bool = True


class ProviderSummary(BaseModel):
    name: str
    visit_count: int
    total_cost: float = 0.0


class DiagnosisSummary(BaseModel):
    diagnosis: str
    icd_code: Optional[str] = None
    body_part: Optional[str] = None
    first_date: date
    last_date: date
    mention_count: int


class PainScoreEntry(BaseModel):
    date: datetime.date
    score: float
    provider: Optional[str] = None
    location: Optional[str] = None


class BodyPartSummary(BaseModel):
    body_part: str
    diagnoses: List[str] = Field(default_factory=list)
    treatments: List[str] = Field(default_factory=list)


class MMIStatus(BaseModel):
    """Whether a provider has declared maximum medical improvement."""
    reached: bool = False
    date: Optional[datetime.date] = None
    notes: Optional[str] = None


class TreatmentTimeline(BaseModel):
    events: List[TimelineEvent] = Field(default_factory=list)
    gaps: List[TreatmentGap] = Field(default_factory=list)
    first_treatment_date: Optional[date] = None
    last_treatment_date: Optional[date] = None
    total_visits: int = 0
    treatment_duration_days: int = 0
    providers: List[ProviderSummary] = Field(default_factory=list)
    diagnoses: List[DiagnosisSummary] = Field(default_factory=list)
    pain_scores: List[PainScoreEntry] = Field(default_factory=list)
    body_parts: List[BodyPartSummary] = Field(default_factory=list)
    mmi: MMIStatus = Field(default_factory=MMIStatus)

    @property
    def flagged_gaps(self) -> List[TreatmentGap]:
        return [gap for gap in self.gaps if gap.flagged]


class DamageLineItem(BaseModel):
    """One monetary entry counted towards the damages calculation."""
    model_config = ConfigDict(frozen=True)

    kind: str  # medical | lost_wages | other
    provider: str
    date: Optional[datetime.date] = None
    amount: float
    description: str = ""
    document_id: UUID


class WageLossPeriod(BaseModel):
    model_config = ConfigDict(frozen=True)

    start_date: Optional[date] = None
    end_date: Optional[date] = None
    days_missed: Optional[int] = None
    document_id: UUID


class DamagesCalculation(BaseModel):
    medical_expenses: float = 0.0
    lost_wages: float = 0.0
    other: float = 0.0
    total: float = 0.0
    line_items: List[DamageLineItem] = Field(default_factory=list)
    duplicates_removed: int = 0
    wage_loss_periods: List[WageLossPeriod] = Field(default_factory=list)


class FieldConflict(BaseModel):
    """A value that lost a merge to a more recent document."""
    model_config = ConfigDict(frozen=True)

    path: str
    value: Any
    document_id: UUID
    winning_value: Any
    superseded_by: UUID


class AggregationDiagnostic(BaseModel):
    """Input skipped during aggregation because its shape was unusable."""
    model_config = ConfigDict(frozen=True)

    document_id: UUID
    section: str
    message: str


class AggregationResult(BaseModel):
    """Everything the aggregator derives from a case's completed documents."""
    extracted_data: Dict[str, Any] = Field(default_factory=dict)
    conflicts: List[FieldConflict] = Field(default_factory=list)
    timeline: TreatmentTimeline = Field(default_factory=TreatmentTimeline)
    damages: DamagesCalculation = Field(default_factory=DamagesCalculation)
    diagnostics: List[AggregationDiagnostic] = Field(default_factory=list)
    completed_categories: List[DocumentCategory] = Field(default_factory=list)
    document_count: int = 0
