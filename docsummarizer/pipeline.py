"""
Summarization Pipeline

Main orchestrator that runs one uploaded document through extraction,
chunking and summarization under an overall request deadline.
"""

import asyncio
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

import structlog

from .chunker import TextChunker
from .config import AppConfig
from .errors import ExtractionError, PipelineTimeoutError, SummarizationError
from .llm import LLMBackend, create_backend
from .pdf_extractor import PDFExtractor, create_extractor
from .summarizer import DocumentSummarizer, create_summarizer

logger = structlog.get_logger(__name__)


class ProcessingStatus(Enum):
    """Request processing states."""
    RECEIVED = "received"
    EXTRACTING = "extracting"
    CHUNKING = "chunking"
    SUMMARIZING = "summarizing"
    COMPLETED = "completed"
    EXTRACTION_FAILED = "extraction_failed"
    SUMMARIZATION_FAILED = "summarization_failed"
    TIMED_OUT = "timed_out"


@dataclass
class ProcessingResult:
    """Outcome of processing a single document."""
    request_id: str
    status: ProcessingStatus
    summary: Optional[str] = None
    chunk_count: int = 0
    extraction_method: Optional[str] = None
    pages_processed: int = 0
    total_pages: int = 0
    text_length: int = 0
    model_used: Optional[str] = None
    processing_time: float = 0.0
    timestamp: str = ""


class SummarizationPipeline:
    """
    Extract → chunk → summarize for one document per call.

    The pipeline holds no per-request state; concurrent calls are independent.
    """

    def __init__(
        self,
        extractor: PDFExtractor,
        chunker: TextChunker,
        summarizer: DocumentSummarizer,
        request_timeout: Optional[float] = 120.0,
    ):
        """
        Initialize the pipeline.

        Args:
            extractor: PDF text extractor
            chunker: Text chunker
            summarizer: Chunk summarizer
            request_timeout: Overall deadline in seconds; None or 0 disables it
        """
        self.extractor = extractor
        self.chunker = chunker
        self.summarizer = summarizer
        self.request_timeout = request_timeout or None

    @property
    def backend(self) -> LLMBackend:
        return self.summarizer.backend

    async def process_document(self, data: bytes, word_limit: Optional[int] = None) -> ProcessingResult:
        """
        Process one document.

        Args:
            data: Raw PDF bytes
            word_limit: Target summary length hint

        Returns:
            Completed ProcessingResult

        Raises:
            ExtractionError: text could not be recovered
            SummarizationError: the LLM did not produce a summary
            PipelineTimeoutError: the request deadline passed
        """
        result = ProcessingResult(
            request_id=uuid.uuid4().hex,
            status=ProcessingStatus.RECEIVED,
            timestamp=datetime.now(timezone.utc).isoformat(),
        )
        log = logger.bind(request_id=result.request_id, size_bytes=len(data))
        start_time = time.time()
        log.info("Document received")

        try:
            await asyncio.wait_for(self._run(data, word_limit, result, log), timeout=self.request_timeout)
        except asyncio.TimeoutError:
            log.error("Request deadline exceeded", timeout=self.request_timeout,
                      stage_reached=result.status.value)
            result.status = ProcessingStatus.TIMED_OUT
            raise PipelineTimeoutError(self.request_timeout) from None
        finally:
            result.processing_time = time.time() - start_time

        log.info("Document summarized", chunks=result.chunk_count,
                 summary_length=len(result.summary or ""),
                 processing_time=round(result.processing_time, 3))
        return result

    async def _run(self, data: bytes, word_limit: Optional[int], result: ProcessingResult, log) -> None:
        # Step 1: Extraction
        result.status = ProcessingStatus.EXTRACTING
        try:
            extracted = await self.extractor.aextract(data)
        except ExtractionError as e:
            result.status = ProcessingStatus.EXTRACTION_FAILED
            log.warning("Extraction failed", reason=e.reason, error=str(e))
            raise

        result.extraction_method = extracted.method
        result.pages_processed = extracted.pages_processed
        result.total_pages = extracted.total_pages
        result.text_length = len(extracted.text)
        log.info("Text extracted", method=extracted.method, backend=extracted.backend,
                 pages=extracted.pages_processed, total_pages=extracted.total_pages,
                 chars=result.text_length)

        # Step 2: Chunking
        result.status = ProcessingStatus.CHUNKING
        chunks = self.chunker.split(extracted.text)
        result.chunk_count = len(chunks)

        # Step 3: Summarization
        result.status = ProcessingStatus.SUMMARIZING
        try:
            summary = await self.summarizer.summarize_chunks(chunks, word_limit)
        except SummarizationError as e:
            result.status = ProcessingStatus.SUMMARIZATION_FAILED
            log.warning("Summarization failed", error=str(e))
            raise

        result.summary = summary.summary
        result.model_used = summary.model_used
        result.status = ProcessingStatus.COMPLETED

    async def aclose(self) -> None:
        """Release the LLM backend's network resources."""
        await self.backend.aclose()


def create_pipeline(config: AppConfig, backend: Optional[LLMBackend] = None) -> SummarizationPipeline:
    """
    Build a pipeline from configuration.

    Args:
        config: Application configuration
        backend: Pre-built LLM backend; created from config.llm when omitted

    Returns:
        Configured pipeline
    """
    backend = backend or create_backend(config.llm)
    summarizer = create_summarizer(config, backend)

    return SummarizationPipeline(
        extractor=create_extractor(config.extraction),
        chunker=summarizer.chunker,
        summarizer=summarizer,
        request_timeout=config.server.request_timeout,
    )
