"""Closed enumerations shared by the pipeline."""

from enum import Enum


class DocumentCategory(str, Enum):
    """Category of an uploaded case document."""
    MEDICAL_RECORDS = "MEDICAL_RECORDS"
    MEDICAL_BILLS = "MEDICAL_BILLS"
    POLICE_REPORT = "POLICE_REPORT"
    PHOTOS = "PHOTOS"
    WAGE_DOCUMENTATION = "WAGE_DOCUMENTATION"
    INSURANCE_CORRESPONDENCE = "INSURANCE_CORRESPONDENCE"
    WITNESS_STATEMENT = "WITNESS_STATEMENT"
    EXPERT_REPORT = "EXPERT_REPORT"
    PRIOR_MEDICAL_RECORDS = "PRIOR_MEDICAL_RECORDS"
    LIEN_LETTER = "LIEN_LETTER"
    OTHER = "OTHER"

    @classmethod
    def parse(cls, value) -> "DocumentCategory":
        """Map a backend or user supplied value onto a category, OTHER if unknown."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            return cls.OTHER


class ProcessingStatus(str, Enum):
    """Per-document processing stage."""
    PENDING = "PENDING"
    EXTRACTING_TEXT = "EXTRACTING_TEXT"
    CLASSIFYING = "CLASSIFYING"
    EXTRACTING_DATA = "EXTRACTING_DATA"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (ProcessingStatus.COMPLETED, ProcessingStatus.FAILED)


class CaseStatus(str, Enum):
    """Lifecycle of a case."""
    INTAKE = "INTAKE"
    DOCUMENTS_UPLOADED = "DOCUMENTS_UPLOADED"
    PROCESSING = "PROCESSING"
    EXTRACTION_COMPLETE = "EXTRACTION_COMPLETE"
    DRAFT_READY = "DRAFT_READY"
    UNDER_REVIEW = "UNDER_REVIEW"
    SENT = "SENT"
    SETTLED = "SETTLED"
    LITIGATION = "LITIGATION"
    CLOSED = "CLOSED"


class GeneratedDocumentType(str, Enum):
    """Output documents the generator can render."""
    DEMAND_LETTER = "DEMAND_LETTER"
    EXECUTIVE_SUMMARY = "EXECUTIVE_SUMMARY"
    GAP_ANALYSIS = "GAP_ANALYSIS"
    TREATMENT_TIMELINE = "TREATMENT_TIMELINE"
    DAMAGES_WORKSHEET = "DAMAGES_WORKSHEET"


class Tone(str, Enum):
    """Tone applied to generated correspondence."""
    COOPERATIVE = "cooperative"
    MODERATE = "moderate"
    AGGRESSIVE = "aggressive"
    LITIGATION_READY = "litigation-ready"


class WarningSeverity(str, Enum):
    CRITICAL = "critical"
    MODERATE = "moderate"
    MINOR = "minor"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    WarningSeverity.CRITICAL: 0,
    WarningSeverity.MODERATE: 1,
    WarningSeverity.MINOR: 2,
}


class WarningCategory(str, Enum):
    TREATMENT_GAP = "treatment_gap"
    PRE_EXISTING = "pre_existing"
    CAUSATION = "causation"
    CREDIBILITY = "credibility"
    MISSING_DOC = "missing_doc"
    STATUTE = "statute"
    DAMAGES = "damages"
