"""
Document Summarizer

Turns an uploaded PDF into a concise natural-language summary using a
hosted or local LLM.

Main Components:
- PDFExtractor: Extract plain text from PDFs with an OCR fallback
- TextChunker: Split long text into bounded character windows
- DocumentSummarizer: Per-chunk LLM summarization with rate-limit retries
- SummarizationPipeline: Extract → chunk → summarize under a request deadline

Usage:
    from docsummarizer import create_pipeline, get_config

    pipeline = create_pipeline(get_config())
    result = await pipeline.process_document(pdf_bytes, word_limit=300)

The HTTP API lives in docsummarizer.api (create_app) and the command line
tool in docsummarizer.cli.
"""

__version__ = "1.0.0"
__author__ = "Document Summarizer"

from .errors import (
    DocSummarizerError,
    ConfigError,
    ValidationError,
    ExtractionError,
    SummarizationError,
    LLMServiceError,
    RateLimitError,
    InvalidResponseError,
    RetryExhaustedError,
    PipelineTimeoutError
)

from .pdf_extractor import (
    PDFExtractor,
    ExtractedText,
    TesseractOCR,
    create_extractor
)

from .chunker import (
    TextChunker,
    TextChunk,
    chunk_text
)

from .retry import (
    BackoffPolicy,
    retry_async
)

from .llm import (
    LLMBackend,
    LLMProvider,
    ChatMessage,
    create_backend,
    is_rate_limited
)

from .summarizer import (
    DocumentSummarizer,
    SummaryResult,
    create_summarizer
)

from .config import (
    AppConfig,
    ConfigManager,
    get_config
)

from .pipeline import (
    SummarizationPipeline,
    ProcessingResult,
    ProcessingStatus,
    create_pipeline
)

__all__ = [
    # Errors
    "DocSummarizerError",
    "ConfigError",
    "ValidationError",
    "ExtractionError",
    "SummarizationError",
    "LLMServiceError",
    "RateLimitError",
    "InvalidResponseError",
    "RetryExhaustedError",
    "PipelineTimeoutError",

    # PDF Extraction
    "PDFExtractor",
    "ExtractedText",
    "TesseractOCR",
    "create_extractor",

    # Chunking
    "TextChunker",
    "TextChunk",
    "chunk_text",

    # Retry
    "BackoffPolicy",
    "retry_async",

    # LLM backends
    "LLMBackend",
    "LLMProvider",
    "ChatMessage",
    "create_backend",
    "is_rate_limited",

    # Summarization
    "DocumentSummarizer",
    "SummaryResult",
    "create_summarizer",

    # Configuration
    "AppConfig",
    "ConfigManager",
    "get_config",

    # Pipeline
    "SummarizationPipeline",
    "ProcessingResult",
    "ProcessingStatus",
    "create_pipeline"
]
