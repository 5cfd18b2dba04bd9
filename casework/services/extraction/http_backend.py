"""Extraction backend for a JSON-over-HTTP document AI service."""

import base64
from typing import Any, Dict, Optional

import httpx

from casework.core.api_client import BaseAPIClient
from casework.core.config import settings
from casework.core.exceptions import ClassificationError, ExtractionError
from casework.schemas.enums import DocumentCategory
from casework.schemas.extraction import ClassificationResult, DocumentInput, ExtractedText
from casework.services.extraction.client import ExtractionBackend
from casework.services.extraction.file_store import FileStore
from casework.utils.logging import get_logger

LOGGER = get_logger(__name__)


class HttpExtractionBackend(ExtractionBackend):
    """Calls a document AI service exposing one endpoint per stage.

    Endpoints:
        POST /extract-text  {"filename", "mimeType", "content"(base64)} -> {"text", "pageCount"}
        POST /classify      {"text", "hints"} -> {"category", "confidence", ...}
        POST /extract-data  {"text", "category"} -> {"data": {...}}
    """

    def __init__(
        self,
        file_store: FileStore,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.file_store = file_store
        self.api_client = BaseAPIClient(
            api_key=settings.extraction_api_key if api_key is None else api_key,
            base_url=base_url or settings.extraction_api_url,
            timeout=timeout or settings.extraction_timeout_seconds,
            transport=transport,
        )

    async def extract_text(self, document: DocumentInput) -> ExtractedText:
        content = await self.file_store.read(document.file_ref)
        response = await self.api_client.call_api(
            endpoint="/extract-text",
            payload={
                "filename": document.filename,
                "mimeType": document.mime_type,
                "content": base64.b64encode(content).decode("ascii"),
            },
        )

        text = response.get("text")
        if not isinstance(text, str):
            raise ExtractionError("the extraction service returned no text")
        return ExtractedText(text=text, page_count=response.get("pageCount"))

    async def classify(
        self, text: str, hints: Optional[Dict[str, Any]] = None
    ) -> ClassificationResult:
        response = await self.api_client.call_api(
            endpoint="/classify",
            payload={"text": text, "hints": hints or {}},
        )

        if "category" not in response:
            raise ClassificationError("the classification service returned no category")

        category = DocumentCategory.parse(response.get("category"))
        if category == DocumentCategory.OTHER and response.get("category") != "OTHER":
            LOGGER.info(
                "Unknown category returned by classifier, using OTHER",
                extra={"category": response.get("category")}
            )

        return ClassificationResult(
            category=category,
            confidence=response.get("confidence"),
            subcategory=response.get("subcategory"),
            document_date=response.get("documentDate"),
            provider_name=response.get("providerName"),
            metadata={
                k: v for k, v in response.items()
                if k not in {"category", "confidence", "subcategory", "documentDate", "providerName"}
            },
        )

    async def extract_data(self, text: str, category: DocumentCategory) -> Dict[str, Any]:
        response = await self.api_client.call_api(
            endpoint="/extract-data",
            payload={"text": text, "category": DocumentCategory(category).value},
        )

        data = response.get("data", response)
        if not isinstance(data, dict):
            raise ExtractionError("the extraction service returned data that is not an object")
        return data
