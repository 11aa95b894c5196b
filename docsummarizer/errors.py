"""
Error Types

Every stage of the document pipeline raises one of these instead of
returning sentinel values. Only the HTTP layer maps them to status codes.
"""

from typing import Optional


class DocSummarizerError(Exception):
    """Base class for all docsummarizer errors."""


class ConfigError(DocSummarizerError):
    """Raised when configuration values are missing or invalid."""


class ValidationError(DocSummarizerError):
    """Client-caused upload problem (missing file, wrong type, too large)."""


class ExtractionError(DocSummarizerError):
    """Text could not be recovered from the document."""

    PARSE_FAILURE = "parse failure"
    INSUFFICIENT_TEXT = "insufficient text"
    EMPTY_DOCUMENT = "empty document"

    def __init__(self, message: str, reason: str = PARSE_FAILURE):
        super().__init__(message)
        self.reason = reason


class SummarizationError(DocSummarizerError):
    """The generative-text service did not produce a usable summary."""


class LLMServiceError(SummarizationError):
    """Non-transient failure reported by the generative-text service."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RateLimitError(LLMServiceError):
    """Upstream 'too many requests' signal. Safe to retry."""

    def __init__(self, message: str = "Rate limit exceeded (429)"):
        super().__init__(message, status_code=429)


class InvalidResponseError(SummarizationError):
    """Response did not contain generated text at the expected path."""

    def __init__(self, message: str = "invalid response format"):
        super().__init__(message)


class RetryExhaustedError(DocSummarizerError):
    """All retry attempts failed with retryable errors."""

    def __init__(self, attempts: int, last_exception: Optional[BaseException] = None):
        super().__init__(f"Gave up after {attempts} attempts: {last_exception}")
        self.attempts = attempts
        self.last_exception = last_exception


class PipelineTimeoutError(DocSummarizerError):
    """The request exceeded its overall processing deadline."""

    def __init__(self, timeout: float):
        super().__init__(f"Request timed out after {timeout:.0f}s")
        self.timeout = timeout
