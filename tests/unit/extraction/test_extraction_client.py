"""Unit tests for ExtractionClient timeouts and retries."""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from casework.core.exceptions import (
    APIClientError,
    APITimeoutError,
    ClassificationError,
    ExtractionError,
    ExtractionTimeoutError,
)
from casework.schemas.enums import DocumentCategory
from casework.schemas.extraction import ClassificationResult, DocumentInput, ExtractedText
from casework.services.extraction.client import ExtractionBackend, ExtractionClient


@pytest.fixture
def mock_backend():
    backend = AsyncMock(spec=ExtractionBackend)
    backend.extract_text.return_value = ExtractedText(text="record text", page_count=3)
    backend.classify.return_value = ClassificationResult(category=DocumentCategory.MEDICAL_RECORDS)
    backend.extract_data.return_value = {"visits": []}
    return backend


@pytest.fixture
def client(mock_backend):
    return ExtractionClient(mock_backend, timeout=0.2, max_attempts=3, retry_delay=0, max_retry_delay=0)


class TestExtractionClient:
    """Test suite for ExtractionClient."""

    @pytest.mark.asyncio
    async def test_returns_backend_result(self, client, mock_backend):
        result = await client.extract_text(DocumentInput(file_ref="a.pdf"))

        assert result.text == "record text"
        mock_backend.extract_text.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_timeout_retried_then_raised(self, client, mock_backend):
        async def slow(*args, **kwargs):
            await asyncio.sleep(1)

        mock_backend.extract_text.side_effect = slow

        with pytest.raises(ExtractionTimeoutError) as exc_info:
            await client.extract_text(DocumentInput(file_ref="a.pdf"))

        assert exc_info.value.transient
        assert exc_info.value.message == "the extraction service timed out after 3 attempts"
        assert mock_backend.extract_text.await_count == 3

    @pytest.mark.asyncio
    async def test_api_timeout_becomes_extraction_timeout(self, client, mock_backend):
        mock_backend.extract_data.side_effect = APITimeoutError("API timeout")

        with pytest.raises(ExtractionTimeoutError):
            await client.extract_data("text", DocumentCategory.MEDICAL_BILLS)

    @pytest.mark.asyncio
    async def test_client_error_is_permanent(self, client, mock_backend):
        mock_backend.classify.side_effect = APIClientError("bad request", status_code=400)

        with pytest.raises(ClassificationError) as exc_info:
            await client.classify("text")

        assert not exc_info.value.transient
        assert "HTTP 400" in exc_info.value.message
        assert mock_backend.classify.await_count == 1

    @pytest.mark.asyncio
    async def test_server_error_retried_until_success(self, client, mock_backend):
        mock_backend.extract_data.side_effect = [
            APIClientError("unavailable", status_code=503),
            APIClientError("rate limited", status_code=429),
            {"charges": []},
        ]

        result = await client.extract_data("text", DocumentCategory.MEDICAL_BILLS)

        assert result == {"charges": []}
        assert mock_backend.extract_data.await_count == 3

    @pytest.mark.asyncio
    async def test_unreachable_service_message(self, client, mock_backend):
        mock_backend.extract_text.side_effect = APIClientError("connection refused")

        with pytest.raises(ExtractionError, match="unreachable after 3 attempts"):
            await client.extract_text(DocumentInput(file_ref="a.pdf"))

    @pytest.mark.asyncio
    async def test_non_object_data_rejected(self, client, mock_backend):
        mock_backend.extract_data.return_value = ["not", "an", "object"]

        with pytest.raises(ExtractionError) as exc_info:
            await client.extract_data("text", DocumentCategory.MEDICAL_BILLS)

        assert not exc_info.value.transient

    @pytest.mark.asyncio
    async def test_backoff_is_exponential_and_capped(self, mock_backend):
        client = ExtractionClient(mock_backend, timeout=1, max_attempts=4, retry_delay=1, max_retry_delay=3)
        mock_backend.extract_text.side_effect = ExtractionError("busy", transient=True)

        with patch("casework.services.extraction.client.asyncio.sleep", new_callable=AsyncMock) as sleep:
            with pytest.raises(ExtractionError):
                await client.extract_text(DocumentInput(file_ref="a.pdf"))

        assert [call.args[0] for call in sleep.await_args_list] == [1, 2, 3]
