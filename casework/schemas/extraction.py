"""Results returned by extraction backends."""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from casework.schemas.enums import DocumentCategory


class DocumentInput(BaseModel):
    """What a backend needs to read a stored document."""
    model_config = ConfigDict(frozen=True)

    file_ref: str
    filename: Optional[str] = None
    mime_type: Optional[str] = None


class ExtractedText(BaseModel):
    text: str
    page_count: Optional[int] = None


class ClassificationResult(BaseModel):
    """Category decided for a document plus the metadata found alongside it."""
    category: DocumentCategory
    confidence: Optional[float] = None
    subcategory: Optional[str] = None
    document_date: Optional[str] = None
    provider_name: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
