"""SQLAlchemy models for all database tables."""

import uuid
from datetime import date, datetime, timezone
from typing import Any

from sqlalchemy import (
    JSON,
    Date,
    ForeignKey,
    Integer,
    String,
    Text,
    TIMESTAMP,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from casework.core.database import Base
from casework.schemas.enums import CaseStatus, ProcessingStatus

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Case(Base):
    """Personal injury case with intake fields and the derived case record."""

    __tablename__ = "cases"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    status: Mapped[str] = mapped_column(
        String, nullable=False, default=CaseStatus.INTAKE.value
    )

    # Intake
    client_first_name: Mapped[str] = mapped_column(String, nullable=False)
    client_last_name: Mapped[str] = mapped_column(String, nullable=False)
    client_date_of_birth: Mapped[date | None] = mapped_column(Date, nullable=True)
    client_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    incident_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    incident_type: Mapped[str | None] = mapped_column(String, nullable=True)
    incident_location: Mapped[str | None] = mapped_column(Text, nullable=True)
    incident_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    defendant_name: Mapped[str | None] = mapped_column(String, nullable=True)
    defendant_insurer: Mapped[str | None] = mapped_column(String, nullable=True)
    claim_number: Mapped[str | None] = mapped_column(String, nullable=True)
    jurisdiction: Mapped[str | None] = mapped_column(String, nullable=True)

    # Derived by aggregation; always rewritten together
    extracted_data: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    treatment_timeline: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    damages_calculation: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    attorney_warnings: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, nullable=False, default=list)
    extraction_conflicts: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, nullable=False, default=list)
    aggregation_diagnostics: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, nullable=False, default=list)
    aggregated_at: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=_utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    # Relationships
    documents: Mapped[list["Document"]] = relationship(
        "Document", back_populates="case", cascade="all, delete-orphan"
    )
    generated_documents: Mapped[list["GeneratedDocument"]] = relationship(
        "GeneratedDocument", back_populates="case", cascade="all, delete-orphan"
    )


class Document(Base):
    """Uploaded case document and its processing state."""

    __tablename__ = "documents"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    case_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("cases.id", ondelete="CASCADE"), nullable=False, index=True
    )
    file_ref: Mapped[str] = mapped_column(String, nullable=False)
    original_filename: Mapped[str | None] = mapped_column(String, nullable=True)
    mime_type: Mapped[str | None] = mapped_column(String, nullable=True)
    category_hint: Mapped[str | None] = mapped_column(String, nullable=True)
    category: Mapped[str | None] = mapped_column(String, nullable=True)
    subcategory: Mapped[str | None] = mapped_column(String, nullable=True)
    document_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    provider_name: Mapped[str | None] = mapped_column(String, nullable=True)
    page_count: Mapped[int | None] = mapped_column(Integer, nullable=True)

    processing_status: Mapped[str] = mapped_column(
        String, nullable=False, default=ProcessingStatus.PENDING.value
    )  # PENDING | EXTRACTING_TEXT | CLASSIFYING | EXTRACTING_DATA | COMPLETED | FAILED
    processing_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    stage_output: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    extracted_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    extracted_data: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)

    replaces_document_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("documents.id"), nullable=True
    )
    uploaded_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=_utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    # Relationships
    case: Mapped["Case"] = relationship("Case", back_populates="documents")


class GeneratedDocument(Base):
    """Immutable rendered output; one row per version."""

    __tablename__ = "generated_documents"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    case_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("cases.id", ondelete="CASCADE"), nullable=False, index=True
    )
    document_type: Mapped[str] = mapped_column(String, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    tone: Mapped[str] = mapped_column(String, nullable=False)
    parameters: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    content_html: Mapped[str] = mapped_column(Text, nullable=False)
    warnings: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), default=_utcnow, nullable=False
    )

    __table_args__ = (
        UniqueConstraint(
            "case_id", "document_type", "version", name="uq_generated_document_version"
        ),
    )

    # Relationships
    case: Mapped["Case"] = relationship("Case", back_populates="generated_documents")


class GenerationSequence(Base):
    """Last version assigned per (case, document type)."""

    __tablename__ = "generation_sequences"

    case_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("cases.id", ondelete="CASCADE"), primary_key=True
    )
    document_type: Mapped[str] = mapped_column(String, primary_key=True)
    last_version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
