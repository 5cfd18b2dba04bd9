"""Extraction backend using local text extraction and an LLM for the rest."""

import asyncio
from typing import Any, Dict, List, Optional

import httpx

from casework.core.api_client import BaseAPIClient
from casework.core.config import settings
from casework.core.exceptions import APIClientError, ClassificationError, ExtractionError
from casework.schemas.enums import DocumentCategory
from casework.schemas.extraction import ClassificationResult, DocumentInput, ExtractedText
from casework.services.extraction.client import ExtractionBackend
from casework.services.extraction.file_store import FileStore
from casework.services.extraction.prompts import (
    CLASSIFICATION_PROMPT,
    EXTRACTION_PROMPTS,
    SYSTEM_PROMPT,
)
from casework.services.extraction.text_extraction import decode_text, extract_pdf_text, guess_kind
from casework.utils.json_parser import parse_json_safely
from casework.utils.logging import get_logger

LOGGER = get_logger(__name__)

RAW_TEXT_PREVIEW_CHARS = 5000


def split_into_chunks(text: str, chunk_size: int) -> List[str]:
    """Split text into consecutive chunks of at most chunk_size characters."""
    if len(text) <= chunk_size:
        return [text]
    return [text[i:i + chunk_size] for i in range(0, len(text), chunk_size)]


def merge_chunk_results(results: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Combine per-chunk extractions of one document.

    Lists are concatenated in chunk order (repeated plain values dropped);
    any other value keeps the first non-empty one found.
    """
    merged: Dict[str, Any] = {}
    for result in results:
        for key, value in result.items():
            if isinstance(value, list):
                existing = merged.setdefault(key, [])
                if not isinstance(existing, list):
                    continue
                for item in value:
                    if isinstance(item, (dict, list)) or item not in existing:
                        existing.append(item)
            elif merged.get(key) in (None, "", {}):
                merged[key] = value
    return merged


class LLMExtractionBackend(ExtractionBackend):
    """Reads PDFs and text files locally and asks an LLM to classify and extract.

    Images have no text layer to read and are rejected as unsupported.
    """

    def __init__(
        self,
        file_store: FileStore,
        api_url: Optional[str] = None,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        chunk_size: Optional[int] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.file_store = file_store
        self.model = model or settings.llm_model
        self.chunk_size = chunk_size or settings.llm_chunk_size
        self.client = BaseAPIClient(
            api_key=settings.llm_api_key if api_key is None else api_key,
            base_url=api_url or settings.llm_api_url,
            timeout=timeout or settings.extraction_timeout_seconds,
            transport=transport,
        )

    async def extract_text(self, document: DocumentInput) -> ExtractedText:
        kind = guess_kind(document.filename, document.mime_type)
        if kind == "image":
            raise ExtractionError(
                f"unsupported file format {document.mime_type or document.filename!r} "
                "(images have no readable text)"
            )

        content = await self.file_store.read(document.file_ref)
        if kind == "pdf":
            return await extract_pdf_text(content)
        if kind == "text":
            return decode_text(content)

        LOGGER.warning(
            "Unknown file type, attempting text decode",
            extra={"file_ref": document.file_ref, "mime_type": document.mime_type}
        )
        try:
            return decode_text(content)
        except ExtractionError as e:
            raise ExtractionError(
                f"unsupported file format {document.mime_type or document.filename!r}",
                original_error=e,
            ) from e

    async def classify(
        self, text: str, hints: Optional[Dict[str, Any]] = None
    ) -> ClassificationResult:
        hint_lines = "\n".join(f"{k}: {v}" for k, v in (hints or {}).items() if v)
        user_content = f"Document text:\n{text[:self.chunk_size]}"
        if hint_lines:
            user_content = f"Upload details:\n{hint_lines}\n\n{user_content}"

        response_text = await self._complete(CLASSIFICATION_PROMPT, user_content)
        parsed = parse_json_safely(response_text)
        if not isinstance(parsed, dict) or "category" not in parsed:
            raise ClassificationError("the classifier returned an unreadable response", transient=True)

        confidence = parsed.get("confidence")
        return ClassificationResult(
            category=DocumentCategory.parse(parsed.get("category")),
            confidence=confidence if isinstance(confidence, (int, float)) else None,
            subcategory=parsed.get("subcategory"),
            document_date=parsed.get("documentDate"),
            provider_name=parsed.get("providerName"),
        )

    async def extract_data(self, text: str, category: DocumentCategory) -> Dict[str, Any]:
        prompt = EXTRACTION_PROMPTS.get(DocumentCategory(category))
        if prompt is None:
            LOGGER.info(f"No extraction prompt for category: {DocumentCategory(category).value}")
            return {"rawText": text[:RAW_TEXT_PREVIEW_CHARS]}

        chunks = split_into_chunks(text, self.chunk_size)
        if len(chunks) == 1:
            return await self._extract_chunk(prompt, chunks[0])

        LOGGER.info(
            f"Processing {len(chunks)} chunks for {DocumentCategory(category).value}",
            extra={"chunks": len(chunks), "characters": len(text)}
        )
        results = await asyncio.gather(*[
            self._extract_chunk(
                f"{prompt}\n\nNote: this is part {index + 1} of {len(chunks)} of the document.",
                chunk,
            )
            for index, chunk in enumerate(chunks)
        ])
        return merge_chunk_results(list(results))

    async def _extract_chunk(self, prompt: str, chunk: str) -> Dict[str, Any]:
        response_text = await self._complete(prompt, f"Document text:\n{chunk}")
        parsed = parse_json_safely(response_text)
        if not isinstance(parsed, dict):
            raise ExtractionError("the extraction model returned an unreadable response", transient=True)
        return parsed

    async def _complete(self, instructions: str, user_content: str) -> str:
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": f"{SYSTEM_PROMPT}\n\n{instructions}"},
                {"role": "user", "content": user_content},
            ],
            "temperature": 0.0,
            "max_tokens": 4000,
        }
        result = await self.client.call_api(endpoint="", method="POST", payload=payload)

        try:
            return result["choices"][0]["message"]["content"].strip()
        except (KeyError, IndexError, TypeError, AttributeError) as e:
            raise APIClientError(f"Unexpected API response format: {e}", status_code=502) from e
