"""
Tests for PDF text extraction and the OCR fallback.
"""

import asyncio
import io
from unittest.mock import patch

import fitz
import pytest
from PIL import Image

from docsummarizer.config import ExtractionConfig
from docsummarizer.errors import ExtractionError
from docsummarizer.pdf_extractor import (
    PDFExtractor,
    PdfPlumberBackend,
    PyMuPDFBackend,
    TesseractOCR,
    create_extractor,
    normalize_whitespace,
)

from conftest import build_pdf


class TestNormalizeWhitespace:

    def test_collapses_runs(self):
        assert normalize_whitespace("  Hello \n\n world\t again  ") == "Hello world again"


class TestPDFExtractor:
    """Test cases for PDFExtractor."""

    def test_extracts_text_from_all_pages(self, hello_pdf):
        result = PDFExtractor().extract(hello_pdf)

        assert result.method == "text"
        assert result.backend == "pymupdf"
        assert result.pages_processed == 2
        assert result.total_pages == 2
        assert result.text.count("Hello world.") == 10
        assert "  " not in result.text

    def test_pages_joined_in_order(self):
        data = build_pdf(["first page words", "second page words"])
        text = PDFExtractor().extract(data).text

        assert text.index("first") < text.index("second")

    def test_page_cap(self):
        data = build_pdf([f"page{n:03d} content" for n in range(1, 6)])
        result = PDFExtractor(max_pages=2).extract(data)

        assert result.pages_processed == 2
        assert result.total_pages == 5
        assert "page002" in result.text
        assert "page003" not in result.text

    def test_blank_pdf_is_insufficient(self, blank_pdf):
        with pytest.raises(ExtractionError, match="empty or too short") as exc_info:
            PDFExtractor().extract(blank_pdf)

        assert exc_info.value.reason == ExtractionError.INSUFFICIENT_TEXT

    def test_short_text_is_insufficient(self):
        data = build_pdf(["Hi"])

        with pytest.raises(ExtractionError) as exc_info:
            PDFExtractor(min_text_length=10).extract(data)

        assert exc_info.value.reason == ExtractionError.INSUFFICIENT_TEXT

    def test_text_at_threshold_is_sufficient(self):
        data = build_pdf(["abcdefghij"])
        assert PDFExtractor(min_text_length=10).extract(data).text == "abcdefghij"

    def test_garbage_bytes_fail_to_parse(self):
        with pytest.raises(ExtractionError, match="Failed to parse PDF") as exc_info:
            PDFExtractor().extract(b"this is definitely not a pdf document")

        assert exc_info.value.reason == ExtractionError.PARSE_FAILURE

    def test_empty_bytes(self):
        with pytest.raises(ExtractionError) as exc_info:
            PDFExtractor().extract(b"")

        assert exc_info.value.reason == ExtractionError.EMPTY_DOCUMENT

    def test_pdfplumber_backend(self, hello_pdf):
        result = PDFExtractor(backend=PdfPlumberBackend()).extract(hello_pdf)

        assert result.backend == "pdfplumber"
        assert result.pages_processed == 2
        assert "Hello world." in result.text

    def test_aextract_runs_off_loop(self, hello_pdf):
        result = asyncio.run(PDFExtractor().aextract(hello_pdf))
        assert result.pages_processed == 2

    def test_extract_from_file(self, tmp_path, hello_pdf):
        path = tmp_path / "doc.pdf"
        path.write_bytes(hello_pdf)

        assert "Hello world." in PDFExtractor().extract_from_file(str(path)).text

    def test_extract_from_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            PDFExtractor().extract_from_file(str(tmp_path / "missing.pdf"))


class TestOCRFallback:
    """Test cases for the Tesseract fallback path."""

    @patch("docsummarizer.pdf_extractor.pytesseract.image_to_string")
    def test_blank_pdf_recovered_by_ocr(self, mock_ocr, blank_pdf):
        mock_ocr.return_value = "Scanned   page text\nrecovered by OCR"

        result = PDFExtractor(ocr=TesseractOCR()).extract(blank_pdf)

        assert result.method == "ocr"
        assert result.backend == "tesseract"
        assert result.text == "Scanned page text recovered by OCR"
        mock_ocr.assert_called_once()
        assert mock_ocr.call_args.kwargs["lang"] == "eng"

    @patch("docsummarizer.pdf_extractor.pytesseract.image_to_string")
    def test_ocr_not_used_when_text_sufficient(self, mock_ocr, hello_pdf):
        result = PDFExtractor(ocr=TesseractOCR()).extract(hello_pdf)

        assert result.method == "text"
        mock_ocr.assert_not_called()

    @patch("docsummarizer.pdf_extractor.pytesseract.image_to_string")
    def test_ocr_respects_page_cap(self, mock_ocr):
        mock_ocr.return_value = "recognized words"
        data = build_pdf(["", "", "", ""])

        PDFExtractor(ocr=TesseractOCR(), max_pages=2).extract(data)

        assert mock_ocr.call_count == 2

    @patch("docsummarizer.pdf_extractor.pytesseract.image_to_string")
    def test_ocr_still_too_short(self, mock_ocr, blank_pdf):
        mock_ocr.return_value = "  "

        with pytest.raises(ExtractionError) as exc_info:
            PDFExtractor(ocr=TesseractOCR()).extract(blank_pdf)

        assert exc_info.value.reason == ExtractionError.INSUFFICIENT_TEXT

    @patch("docsummarizer.pdf_extractor.pytesseract.image_to_string")
    def test_raster_image_recovered_by_ocr(self, mock_ocr):
        buffer = io.BytesIO()
        Image.new("RGB", (200, 80), "white").save(buffer, format="PNG")
        mock_ocr.return_value = "Recovered  scanned\ntext here"

        result = PDFExtractor(ocr=TesseractOCR()).extract(buffer.getvalue())

        assert result.method == "ocr"
        assert result.text == "Recovered scanned text here"
        mock_ocr.assert_called_once()

    @patch("docsummarizer.pdf_extractor.pytesseract.image_to_string")
    def test_page_render_failure_is_extraction_error(self, mock_ocr, blank_pdf):
        with patch.object(fitz.Page, "get_pixmap", side_effect=RuntimeError("cannot render page")):
            with pytest.raises(ExtractionError):
                PDFExtractor(ocr=TesseractOCR()).extract(blank_pdf)

        mock_ocr.assert_not_called()

    def test_unparseable_non_image_keeps_parse_failure(self):
        extractor = PDFExtractor(ocr=TesseractOCR())

        with pytest.raises(ExtractionError) as exc_info:
            extractor.extract(b"neither a pdf nor an image")

        assert exc_info.value.reason == ExtractionError.PARSE_FAILURE


class TestCreateExtractor:

    def test_from_config(self):
        extractor = create_extractor(ExtractionConfig(backend="pdfplumber", max_pages=7, use_ocr=True,
                                                      ocr_language="deu"))

        assert isinstance(extractor.backend, PdfPlumberBackend)
        assert extractor.max_pages == 7
        assert extractor.ocr.language == "deu"

    def test_defaults(self):
        extractor = create_extractor(ExtractionConfig())

        assert isinstance(extractor.backend, PyMuPDFBackend)
        assert extractor.ocr is None

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            create_extractor(ExtractionConfig(backend="poppler"))
