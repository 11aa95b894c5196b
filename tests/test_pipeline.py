"""
Tests for the summarization pipeline.
"""

import asyncio

import pytest

from docsummarizer.chunker import TextChunker
from docsummarizer.config import AppConfig
from docsummarizer.errors import ExtractionError, PipelineTimeoutError, SummarizationError
from docsummarizer.pdf_extractor import PDFExtractor
from docsummarizer.pipeline import ProcessingStatus, SummarizationPipeline, create_pipeline
from docsummarizer.summarizer import DocumentSummarizer

from conftest import FakeBackend, build_pdf, slow_response


def make_pipeline(backend, sleep=None, max_pages=50, max_chunk_chars=30000, request_timeout=120.0):
    chunker = TextChunker(max_chunk_chars)
    return SummarizationPipeline(
        extractor=PDFExtractor(max_pages=max_pages),
        chunker=chunker,
        summarizer=DocumentSummarizer(backend, chunker=chunker, sleep=sleep),
        request_timeout=request_timeout,
    )


class TestSummarizationPipeline:
    """Test cases for SummarizationPipeline."""

    def test_process_document(self, hello_pdf):
        backend = FakeBackend(["Two pages of greetings."])
        pipeline = make_pipeline(backend)

        result = asyncio.run(pipeline.process_document(hello_pdf, word_limit=50))

        assert result.status == ProcessingStatus.COMPLETED
        assert result.summary == "Two pages of greetings."
        assert result.chunk_count == 1
        assert result.extraction_method == "text"
        assert result.pages_processed == 2
        assert result.model_used == "ollama:fake-model"
        assert result.processing_time >= 0
        assert len(result.request_id) == 32
        assert "no more than 50 words" in backend.prompts()[0]

    def test_long_text_split_into_chunks(self, hello_pdf):
        backend = FakeBackend()
        pipeline = make_pipeline(backend, max_chunk_chars=40)

        result = asyncio.run(pipeline.process_document(hello_pdf))

        assert result.chunk_count == backend.call_count
        assert result.chunk_count > 1

    def test_page_cap_limits_prompt_text(self):
        data = build_pdf([f"page{n:03d} content" for n in range(1, 121)])
        backend = FakeBackend()
        pipeline = make_pipeline(backend, max_pages=50)

        result = asyncio.run(pipeline.process_document(data))

        assert result.pages_processed == 50
        assert result.total_pages == 120
        prompt = backend.prompts()[0]
        assert "page050" in prompt
        assert "page051" not in prompt

    def test_extraction_failure_skips_llm(self, blank_pdf):
        backend = FakeBackend()
        pipeline = make_pipeline(backend)

        with pytest.raises(ExtractionError):
            asyncio.run(pipeline.process_document(blank_pdf))

        assert backend.call_count == 0

    def test_summarization_failure_propagates(self, hello_pdf):
        backend = FakeBackend([SummarizationError("upstream broke")])
        pipeline = make_pipeline(backend)

        with pytest.raises(SummarizationError, match="upstream broke"):
            asyncio.run(pipeline.process_document(hello_pdf))

    def test_request_deadline(self, hello_pdf):
        backend = FakeBackend([slow_response(5.0)])
        pipeline = make_pipeline(backend, request_timeout=0.05)

        with pytest.raises(PipelineTimeoutError) as exc_info:
            asyncio.run(pipeline.process_document(hello_pdf))

        assert exc_info.value.timeout == 0.05

    def test_zero_timeout_disables_deadline(self, fake_backend):
        assert make_pipeline(fake_backend, request_timeout=0).request_timeout is None

    def test_aclose_releases_backend(self, fake_backend):
        asyncio.run(make_pipeline(fake_backend).aclose())
        assert fake_backend.closed


class TestCreatePipeline:

    def test_wiring_from_config(self, fake_backend):
        config = AppConfig()
        config.extraction.max_pages = 7
        config.chunking.max_chunk_chars = 1234
        config.server.request_timeout = 30.0

        pipeline = create_pipeline(config, backend=fake_backend)

        assert pipeline.backend is fake_backend
        assert pipeline.extractor.max_pages == 7
        assert pipeline.chunker.max_chunk_chars == 1234
        assert pipeline.summarizer.chunker is pipeline.chunker
        assert pipeline.request_timeout == 30.0
