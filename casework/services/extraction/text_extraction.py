"""Local text extraction for the LLM backend."""

import asyncio
from io import BytesIO
from typing import Optional

import pdfplumber

from casework.core.exceptions import ExtractionError
from casework.schemas.extraction import ExtractedText
from casework.utils.logging import get_logger

LOGGER = get_logger(__name__)

TEXT_MIME_TYPES = {"text/plain", "text/markdown", "text/csv", "application/json"}
TEXT_SUFFIXES = (".txt", ".md", ".csv", ".json")


def guess_kind(filename: Optional[str], mime_type: Optional[str]) -> str:
    """Classify a file as pdf, text or image from its MIME type or name."""
    mime = (mime_type or "").lower()
    name = (filename or "").lower()

    if mime == "application/pdf" or name.endswith(".pdf"):
        return "pdf"
    if mime in TEXT_MIME_TYPES or mime.startswith("text/") or name.endswith(TEXT_SUFFIXES):
        return "text"
    if mime.startswith("image/") or name.endswith((".png", ".jpg", ".jpeg", ".tif", ".tiff", ".heic")):
        return "image"
    return "unknown"


def _read_pdf(pdf_bytes: bytes) -> ExtractedText:
    with pdfplumber.open(BytesIO(pdf_bytes)) as pdf:
        pages = [page.extract_text() or "" for page in pdf.pages]
    return ExtractedText(text="\n\n".join(pages).strip(), page_count=len(pages))


async def extract_pdf_text(pdf_bytes: bytes) -> ExtractedText:
    """Extract the text layer of a PDF with pdfplumber.

    Args:
        pdf_bytes: Raw PDF content

    Returns:
        ExtractedText with one entry per page joined by blank lines

    Raises:
        ExtractionError: permanent if the PDF cannot be parsed
    """
    try:
        result = await asyncio.to_thread(_read_pdf, pdf_bytes)
    except Exception as e:
        LOGGER.warning("PDF text extraction failed", extra={"error": str(e)})
        raise ExtractionError("the PDF could not be read", original_error=e) from e

    LOGGER.info(
        f"Extracted text from {result.page_count} PDF pages",
        extra={"page_count": result.page_count, "characters": len(result.text)}
    )
    return result


def decode_text(content: bytes) -> ExtractedText:
    """Decode a plain text upload."""
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise ExtractionError("the file is not valid UTF-8 text", original_error=e) from e
    return ExtractedText(text=text, page_count=1)
