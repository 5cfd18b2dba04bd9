"""Pydantic schemas for cases, documents and generated documents."""

from datetime import date, datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from casework.schemas.enums import (
    CaseStatus,
    DocumentCategory,
    GeneratedDocumentType,
    ProcessingStatus,
    Tone,
)
from casework.schemas.warnings import AttorneyWarning


class CaseIntake(BaseModel):
    """Intake fields captured when a case is opened. Immutable afterwards."""
    model_config = ConfigDict(from_attributes=True, frozen=True)

    client_first_name: str
    client_last_name: str
    client_date_of_birth: Optional[date] = None
    client_address: Optional[str] = None
    incident_date: Optional[date] = None
    incident_type: Optional[str] = None
    incident_location: Optional[str] = None
    incident_description: Optional[str] = None
    defendant_name: Optional[str] = None
    defendant_insurer: Optional[str] = None
    claim_number: Optional[str] = None
    jurisdiction: Optional[str] = None

    @property
    def client_name(self) -> str:
        return f"{self.client_first_name} {self.client_last_name}".strip()


class DocumentSnapshot(BaseModel):
    """Read-only copy of a document handed to the aggregator."""
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: UUID
    case_id: UUID
    category: Optional[DocumentCategory] = None
    processing_status: ProcessingStatus
    # Left unvalidated; the aggregator reports shapes it cannot use
    extracted_data: Any = None
    document_date: Optional[date] = None
    provider_name: Optional[str] = None
    subcategory: Optional[str] = None
    original_filename: Optional[str] = None
    uploaded_at: Optional[datetime] = None


class DocumentView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    case_id: UUID
    category: Optional[DocumentCategory] = None
    category_hint: Optional[DocumentCategory] = None
    processing_status: ProcessingStatus
    processing_error: Optional[str] = None
    original_filename: Optional[str] = None
    mime_type: Optional[str] = None
    document_date: Optional[date] = None
    provider_name: Optional[str] = None
    subcategory: Optional[str] = None
    page_count: Optional[int] = None
    extracted_data: Optional[Dict[str, Any]] = None
    replaces_document_id: Optional[UUID] = None
    uploaded_at: Optional[datetime] = None


class CaseView(CaseIntake):
    """A case with its current status and the derived record."""
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: UUID
    status: CaseStatus
    extracted_data: Dict[str, Any] = Field(default_factory=dict)
    treatment_timeline: Dict[str, Any] = Field(default_factory=dict)
    damages_calculation: Dict[str, Any] = Field(default_factory=dict)
    attorney_warnings: List[AttorneyWarning] = Field(default_factory=list)
    extraction_conflicts: List[Dict[str, Any]] = Field(default_factory=list)
    aggregation_diagnostics: List[Dict[str, Any]] = Field(default_factory=list)
    aggregated_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class CaseStatusView(BaseModel):
    """Case status together with per-status document counts."""
    case_id: UUID
    status: CaseStatus
    total_documents: int
    document_counts: Dict[ProcessingStatus, int] = Field(default_factory=dict)
    all_documents_terminal: bool
    attorney_warnings: List[AttorneyWarning] = Field(default_factory=list)
    aggregated_at: Optional[datetime] = None


class GeneratedDocumentView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    case_id: UUID
    document_type: GeneratedDocumentType
    version: int
    tone: Tone
    parameters: Dict[str, Any] = Field(default_factory=dict)
    content: str
    content_html: str
    warnings: List[AttorneyWarning] = Field(default_factory=list)
    created_at: Optional[datetime] = None
