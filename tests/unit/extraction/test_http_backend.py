"""Unit tests for the HTTP extraction backend and the file store."""

import base64
import json

import httpx
import pytest

from casework.core.exceptions import APIClientError, ClassificationError, ExtractionError
from casework.schemas.enums import DocumentCategory
from casework.schemas.extraction import DocumentInput
from casework.services.extraction.file_store import LocalFileStore
from casework.services.extraction.http_backend import HttpExtractionBackend


@pytest.fixture
def file_store(tmp_path):
    (tmp_path / "cases").mkdir()
    (tmp_path / "cases" / "bill.pdf").write_bytes(b"%PDF-1.4 fake")
    return LocalFileStore(str(tmp_path))


def make_backend(file_store, handler):
    return HttpExtractionBackend(
        file_store,
        base_url="http://extraction.test",
        api_key="secret",
        timeout=5,
        transport=httpx.MockTransport(handler),
    )


class TestLocalFileStore:

    @pytest.mark.asyncio
    async def test_reads_file(self, file_store):
        assert await file_store.read("cases/bill.pdf") == b"%PDF-1.4 fake"

    @pytest.mark.asyncio
    async def test_missing_file_is_permanent_error(self, file_store):
        with pytest.raises(ExtractionError) as exc_info:
            await file_store.read("cases/missing.pdf")
        assert not exc_info.value.transient

    def test_rejects_paths_outside_root(self, file_store):
        with pytest.raises(ExtractionError, match="outside the storage root"):
            file_store.resolve("../etc/passwd")


class TestHttpExtractionBackend:
    """Test suite for HttpExtractionBackend."""

    @pytest.mark.asyncio
    async def test_extract_text_sends_base64_content(self, file_store):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"text": "Statement of charges", "pageCount": 2})

        backend = make_backend(file_store, handler)
        result = await backend.extract_text(
            DocumentInput(file_ref="cases/bill.pdf", filename="bill.pdf", mime_type="application/pdf")
        )

        assert result.text == "Statement of charges"
        assert result.page_count == 2
        assert seen["path"] == "/extract-text"
        assert seen["auth"] == "Bearer secret"
        assert base64.b64decode(seen["body"]["content"]) == b"%PDF-1.4 fake"
        assert seen["body"]["mimeType"] == "application/pdf"

    @pytest.mark.asyncio
    async def test_classify_maps_fields(self, file_store):
        def handler(request):
            return httpx.Response(200, json={
                "category": "medical_bills",
                "confidence": 0.91,
                "documentDate": "2024-01-11",
                "providerName": "Valley Urgent Care",
                "pages": [1],
            })

        result = await make_backend(file_store, handler).classify("text", {"filename": "bill.pdf"})

        assert result.category == DocumentCategory.MEDICAL_BILLS
        assert result.document_date == "2024-01-11"
        assert result.provider_name == "Valley Urgent Care"
        assert result.metadata == {"pages": [1]}

    @pytest.mark.asyncio
    async def test_unknown_category_becomes_other(self, file_store):
        result = await make_backend(
            file_store, lambda request: httpx.Response(200, json={"category": "RECEIPT"})
        ).classify("text")

        assert result.category == DocumentCategory.OTHER

    @pytest.mark.asyncio
    async def test_classify_without_category_raises(self, file_store):
        backend = make_backend(file_store, lambda request: httpx.Response(200, json={}))

        with pytest.raises(ClassificationError):
            await backend.classify("text")

    @pytest.mark.asyncio
    async def test_extract_data_reads_data_field(self, file_store):
        def handler(request):
            assert json.loads(request.content)["category"] == "MEDICAL_BILLS"
            return httpx.Response(200, json={"data": {"charges": [{"amountBilled": 500}]}})

        data = await make_backend(file_store, handler).extract_data("text", DocumentCategory.MEDICAL_BILLS)

        assert data == {"charges": [{"amountBilled": 500}]}

    @pytest.mark.asyncio
    async def test_http_errors_carry_status_code(self, file_store):
        backend = make_backend(file_store, lambda request: httpx.Response(503, text="overloaded"))

        with pytest.raises(APIClientError) as exc_info:
            await backend.extract_data("text", DocumentCategory.MEDICAL_BILLS)

        assert exc_info.value.status_code == 503
        assert exc_info.value.retryable
