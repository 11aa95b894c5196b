"""
Document Summarizer

Sends each text chunk to the configured LLM backend and stitches the partial
summaries back together in chunk order. Rate-limited calls are retried with
backoff; any other failure fails the whole document.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, TYPE_CHECKING

from .chunker import TextChunk, TextChunker
from .errors import RetryExhaustedError, SummarizationError
from .llm import ChatMessage, LLMBackend, is_rate_limited
from .retry import BackoffPolicy, retry_async

if TYPE_CHECKING:
    from .config import AppConfig

logger = logging.getLogger(__name__)

SUMMARY_INSTRUCTION = "Summarize this text concisely"
DEFAULT_SYSTEM_PROMPT = "You are a helpful assistant that writes clear, faithful summaries of documents."


@dataclass
class SummaryResult:
    """Result of summarizing one document."""
    summary: str
    chunks_processed: int
    model_used: str
    processing_time: float


class DocumentSummarizer:
    """
    Chunk-by-chunk summarizer with retry on transient rate limiting.
    """

    def __init__(
        self,
        backend: LLMBackend,
        chunker: Optional[TextChunker] = None,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
        default_word_limit: int = 2000,
        max_attempts: int = 3,
        backoff: BackoffPolicy = BackoffPolicy.EXPONENTIAL,
        base_delay: float = 2.0,
        max_delay: float = 30.0,
        concurrency: int = 1,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        """
        Initialize the summarizer.

        Args:
            backend: Generative-text backend
            chunker: Chunker used by summarize_text
            system_prompt: System turn sent with every request
            default_word_limit: Target summary length when the caller gives none
            max_attempts: Attempts per chunk, including the first
            backoff: Delay growth between attempts
            base_delay: First retry delay in seconds
            max_delay: Cap for any single delay
            concurrency: Chunks summarized at once; 1 means strictly sequential
            sleep: Awaitable sleep used between retries
        """
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")

        self.backend = backend
        self.chunker = chunker or TextChunker()
        self.system_prompt = system_prompt
        self.default_word_limit = default_word_limit
        self.max_attempts = max_attempts
        self.backoff = backoff
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.concurrency = concurrency
        self.sleep = sleep

    def build_messages(self, content: str, word_limit: Optional[int] = None) -> List[ChatMessage]:
        """Role-tagged request for one chunk."""
        limit = self.default_word_limit if word_limit is None else word_limit
        if limit <= 0:
            raise ValueError(f"word_limit must be positive, got {limit}")
        return [
            ChatMessage(role="system", content=self.system_prompt),
            ChatMessage(role="user",
                        content=f"{SUMMARY_INSTRUCTION} in no more than {limit} words:\n\n{content}"),
        ]

    async def summarize_text(self, text: str, word_limit: Optional[int] = None) -> SummaryResult:
        """Chunk text and summarize it."""
        return await self.summarize_chunks(self.chunker.split(text), word_limit)

    async def summarize_chunks(self, chunks: List[TextChunk], word_limit: Optional[int] = None) -> SummaryResult:
        """
        Summarize chunks and join the results in chunk order.

        Args:
            chunks: Ordered text chunks
            word_limit: Target length hint for each partial summary

        Returns:
            SummaryResult with the combined summary

        Raises:
            SummarizationError: if any chunk fails
        """
        if not chunks:
            raise SummarizationError("No text to summarize")

        start_time = time.time()
        logger.info(f"Starting summarization of {len(chunks)} chunks with {self.backend.description}")

        if self.concurrency == 1:
            parts = []
            for chunk in chunks:
                parts.append(await self._summarize_chunk(chunk, word_limit))
        else:
            parts = await self._summarize_concurrently(chunks, word_limit)

        summary = "\n\n".join(parts).strip()
        processing_time = time.time() - start_time
        logger.info(f"Summarization completed in {processing_time:.2f}s")

        return SummaryResult(
            summary=summary,
            chunks_processed=len(chunks),
            model_used=self.backend.description,
            processing_time=processing_time,
        )

    async def _summarize_concurrently(self, chunks: List[TextChunk], word_limit: Optional[int]) -> List[str]:
        semaphore = asyncio.Semaphore(self.concurrency)

        async def limited(chunk: TextChunk) -> str:
            async with semaphore:
                return await self._summarize_chunk(chunk, word_limit)

        tasks = [asyncio.ensure_future(limited(chunk)) for chunk in chunks]
        try:
            # gather keeps results in chunk order regardless of completion order
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for task in tasks:
                task.cancel()
            raise

    async def _summarize_chunk(self, chunk: TextChunk, word_limit: Optional[int]) -> str:
        messages = self.build_messages(chunk.content, word_limit)

        try:
            summary = await retry_async(
                lambda: self.backend.generate(messages),
                should_retry=is_rate_limited,
                max_attempts=self.max_attempts,
                backoff=self.backoff,
                base_delay=self.base_delay,
                max_delay=self.max_delay,
                sleep=self.sleep,
            )
        except RetryExhaustedError as e:
            logger.error(f"Chunk {chunk.index} still rate limited after {e.attempts} attempts")
            raise SummarizationError("exceeded retry attempts") from e
        except SummarizationError as e:
            logger.error(f"Failed to summarize chunk {chunk.index}: {e}")
            raise
        except Exception as e:
            logger.error(f"Failed to summarize chunk {chunk.index}: {e}")
            raise SummarizationError(f"Failed to summarize text: {e}") from e

        logger.debug(f"Chunk {chunk.index} summary (first 500 chars): {summary[:500]}")
        return summary


def create_summarizer(config: "AppConfig", backend: LLMBackend) -> DocumentSummarizer:
    """Build a summarizer from the application configuration."""
    return DocumentSummarizer(
        backend=backend,
        chunker=TextChunker(config.chunking.max_chunk_chars),
        system_prompt=config.llm.system_prompt,
        default_word_limit=config.summary.default_word_limit,
        max_attempts=config.retry.max_attempts,
        backoff=config.retry.backoff,
        base_delay=config.retry.base_delay,
        max_delay=config.retry.max_delay,
        concurrency=config.summary.concurrency,
    )
