"""Extraction client: timeouts and retries around an extraction backend."""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, Optional, Type, TypeVar, Union

from casework.core.config import settings
from casework.core.exceptions import (
    APIClientError,
    APITimeoutError,
    ClassificationError,
    ExtractionError,
    ExtractionTimeoutError,
)
from casework.schemas.enums import DocumentCategory
from casework.schemas.extraction import ClassificationResult, DocumentInput, ExtractedText
from casework.utils.logging import get_logger

LOGGER = get_logger(__name__)

T = TypeVar("T")
StageError = Union[ExtractionError, ClassificationError]


class ExtractionBackend(ABC):
    """Service that reads documents and returns structured results.

    Implementations raise ExtractionError / ClassificationError with the
    transient flag set, or let APIClientError propagate; the client decides
    what is retried.
    """

    @abstractmethod
    async def extract_text(self, document: DocumentInput) -> ExtractedText:
        ...

    @abstractmethod
    async def classify(
        self, text: str, hints: Optional[Dict[str, Any]] = None
    ) -> ClassificationResult:
        ...

    @abstractmethod
    async def extract_data(self, text: str, category: DocumentCategory) -> Dict[str, Any]:
        ...


class ExtractionClient:
    """Bounded, retrying access to an ExtractionBackend.

    Every call is limited by a timeout. Transient failures (timeouts, HTTP
    429/5xx, connection errors) are retried with exponential backoff;
    permanent failures are raised immediately.
    """

    def __init__(
        self,
        backend: ExtractionBackend,
        timeout: Optional[float] = None,
        max_attempts: Optional[int] = None,
        retry_delay: Optional[float] = None,
        max_retry_delay: Optional[float] = None,
    ):
        """Initialize the extraction client.

        Args:
            backend: Backend performing the actual calls
            timeout: Seconds allowed per call
            max_attempts: Attempts per call before a transient failure is final
            retry_delay: Base delay for exponential backoff
            max_retry_delay: Upper bound for a single backoff delay
        """
        self.backend = backend
        self.timeout = settings.extraction_timeout_seconds if timeout is None else timeout
        self.max_attempts = max(1, settings.extraction_max_attempts if max_attempts is None else max_attempts)
        self.retry_delay = settings.extraction_retry_delay if retry_delay is None else retry_delay
        self.max_retry_delay = (
            settings.extraction_max_retry_delay if max_retry_delay is None else max_retry_delay
        )
        self.logger = LOGGER

    async def extract_text(self, document: DocumentInput) -> ExtractedText:
        """Extract the text of a stored document.

        Raises:
            ExtractionError: permanent, or transient after all attempts failed
        """
        return await self._call(
            "extract_text", lambda: self.backend.extract_text(document), ExtractionError
        )

    async def classify(
        self, text: str, hints: Optional[Dict[str, Any]] = None
    ) -> ClassificationResult:
        """Classify document text.

        Raises:
            ClassificationError: permanent, or transient after all attempts failed
        """
        result = await self._call(
            "classify", lambda: self.backend.classify(text, hints), ClassificationError
        )
        # Backends may hand back raw strings; unknown categories become OTHER
        category = DocumentCategory.parse(result.category)
        if category != result.category:
            result = result.model_copy(update={"category": category})
        return result

    async def extract_data(self, text: str, category: DocumentCategory) -> Dict[str, Any]:
        """Extract structured data for a classified document.

        Raises:
            ExtractionError: permanent, or transient after all attempts failed
        """
        data = await self._call(
            "extract_data", lambda: self.backend.extract_data(text, category), ExtractionError
        )
        if not isinstance(data, dict):
            raise ExtractionError("the extraction service returned data that is not an object")
        return data

    async def _call(
        self,
        operation: str,
        call: Callable[[], Awaitable[T]],
        error_cls: Type[StageError],
    ) -> T:
        last_error: Optional[StageError] = None

        for attempt in range(self.max_attempts):
            try:
                return await asyncio.wait_for(call(), timeout=self.timeout)
            except asyncio.TimeoutError as e:
                last_error = self._transient(error_cls, "the extraction service timed out", e, timed_out=True)
            except (ExtractionError, ClassificationError) as e:
                if not e.transient:
                    raise
                last_error = e
            except APITimeoutError as e:
                last_error = self._transient(error_cls, "the extraction service timed out", e, timed_out=True)
            except APIClientError as e:
                if not e.retryable:
                    raise error_cls(
                        f"the extraction service rejected the request (HTTP {e.status_code})",
                        transient=False,
                        original_error=e,
                    ) from e
                reason = (
                    f"the extraction service returned HTTP {e.status_code}"
                    if e.status_code
                    else "the extraction service was unreachable"
                )
                last_error = self._transient(error_cls, reason, e)

            self.logger.warning(
                f"Extraction call failed (Attempt {attempt + 1}/{self.max_attempts})",
                extra={"operation": operation, "error": last_error.message}
            )
            if attempt < self.max_attempts - 1:
                await self._wait_before_retry(attempt)

        raise self._exhausted(error_cls, last_error)

    def _transient(
        self,
        error_cls: Type[StageError],
        message: str,
        cause: Exception,
        timed_out: bool = False,
    ) -> StageError:
        if timed_out and error_cls is ExtractionError:
            return ExtractionTimeoutError(message, original_error=cause)
        return error_cls(message, transient=True, original_error=cause)

    def _exhausted(self, error_cls: Type[StageError], last_error: StageError) -> StageError:
        message = f"{last_error.message} after {self.max_attempts} attempts"
        if isinstance(last_error, ExtractionTimeoutError):
            return ExtractionTimeoutError(message, original_error=last_error)
        return error_cls(message, transient=True, original_error=last_error)

    async def _wait_before_retry(self, attempt: int):
        """Exponential backoff wait."""
        wait_time = min(self.retry_delay * (2 ** attempt), self.max_retry_delay)
        await asyncio.sleep(wait_time)
