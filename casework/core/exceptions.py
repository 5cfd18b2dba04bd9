"""Custom exception hierarchy."""

from typing import Optional


class AppError(Exception):
    """Base exception for application errors."""
    def __init__(self, message: str, original_error: Exception = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error


class APIClientError(AppError):
    """Raised when an external API call fails."""
    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        original_error: Exception = None,
    ):
        super().__init__(message, original_error)
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        """Rate limiting, server errors and transport errors can be retried."""
        if self.status_code is None:
            return True
        return self.status_code == 429 or self.status_code >= 500


class APITimeoutError(APIClientError):
    """Raised when an external API call times out."""
    pass


class ConfigurationError(AppError):
    """Raised when configuration is invalid or missing."""
    pass


class ValidationError(AppError):
    """Raised when input validation fails."""
    pass


class PipelineError(AppError):
    """Base exception for pipeline errors."""
    pass


class ExtractionError(PipelineError):
    """Text or data extraction failed.

    Transient errors (timeouts, an unavailable backend) may succeed on retry;
    permanent errors (unreadable file, unsupported format) will not.
    """
    def __init__(self, message: str, transient: bool = False, original_error: Exception = None):
        super().__init__(message, original_error)
        self.transient = transient


class ExtractionTimeoutError(ExtractionError):
    """An extraction call exceeded its timeout."""
    def __init__(self, message: str, original_error: Exception = None):
        super().__init__(message, transient=True, original_error=original_error)


class ClassificationError(PipelineError):
    """Document classification failed."""
    def __init__(self, message: str, transient: bool = False, original_error: Exception = None):
        super().__init__(message, original_error)
        self.transient = transient


class AggregationError(PipelineError):
    """Extracted data of a document has a shape the aggregator cannot use."""
    pass


class GenerationError(PipelineError):
    """A generated document could not be produced."""
    pass


class InvalidTransitionError(PipelineError):
    """A status change is not allowed by its state machine."""
    pass


class CaseNotFoundError(AppError):
    """Raised when a case does not exist."""
    pass


class DocumentNotFoundError(AppError):
    """Raised when a document does not exist."""
    pass
