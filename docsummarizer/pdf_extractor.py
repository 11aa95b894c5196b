"""
PDF Text Extractor

Extracts plain text from uploaded PDF bytes using PyMuPDF or pdfplumber.
Handles the page cap, whitespace normalisation and an OCR fallback for
scanned documents.
"""

import asyncio
import io
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple, TYPE_CHECKING

import fitz  # PyMuPDF
import pdfplumber
import pytesseract
from PIL import Image, UnidentifiedImageError

from .errors import ExtractionError

if TYPE_CHECKING:
    from .config import ExtractionConfig

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")

PARSE_FAILURE_MESSAGE = "Failed to parse PDF"
INSUFFICIENT_TEXT_MESSAGE = "Extracted text is empty or too short"


def normalize_whitespace(text: str) -> str:
    """Collapse whitespace runs to single spaces and trim the ends."""
    return _WHITESPACE.sub(" ", text).strip()


@dataclass
class ExtractedText:
    """Text recovered from a document."""
    text: str
    method: str  # 'text' or 'ocr'
    backend: str
    pages_processed: int
    total_pages: int

    def __len__(self) -> int:
        return len(self.text)


class PDFBackend(ABC):
    """Structured text extraction from PDF bytes."""

    name = ""

    @abstractmethod
    def read_pages(self, data: bytes, max_pages: int) -> Tuple[List[str], int]:
        """
        Read page text in page order.

        Args:
            data: Raw PDF bytes
            max_pages: Maximum number of pages to read

        Returns:
            (text of each page read, total pages in the document)

        Raises:
            ExtractionError: if the document cannot be parsed
        """


class PyMuPDFBackend(PDFBackend):
    """Word-level extraction with PyMuPDF."""

    name = "pymupdf"

    def read_pages(self, data: bytes, max_pages: int) -> Tuple[List[str], int]:
        try:
            doc = fitz.open(stream=data, filetype="pdf")
        except (RuntimeError, ValueError) as e:
            raise ExtractionError(PARSE_FAILURE_MESSAGE, ExtractionError.PARSE_FAILURE) from e

        with doc:
            if doc.needs_pass:
                raise ExtractionError("PDF is password-protected", ExtractionError.PARSE_FAILURE)

            total_pages = doc.page_count
            pages_text = []
            try:
                for page_num in range(min(total_pages, max_pages)):
                    page = doc.load_page(page_num)
                    words = page.get_text("words", sort=True)
                    pages_text.append(" ".join(word[4] for word in words))
                    del page
            except (RuntimeError, ValueError) as e:
                raise ExtractionError(PARSE_FAILURE_MESSAGE, ExtractionError.PARSE_FAILURE) from e

        return pages_text, total_pages


class PdfPlumberBackend(PDFBackend):
    """Word-level extraction with pdfplumber."""

    name = "pdfplumber"

    def read_pages(self, data: bytes, max_pages: int) -> Tuple[List[str], int]:
        try:
            pdf = pdfplumber.open(io.BytesIO(data))
        except Exception as e:
            # pdfminer raises many unrelated exception types for malformed input
            raise ExtractionError(PARSE_FAILURE_MESSAGE, ExtractionError.PARSE_FAILURE) from e

        with pdf:
            pages_text = []
            try:
                total_pages = len(pdf.pages)
                for page in pdf.pages[:max_pages]:
                    words = page.extract_words()
                    pages_text.append(" ".join(word["text"] for word in words))
                    page.close()
            except Exception as e:
                raise ExtractionError(PARSE_FAILURE_MESSAGE, ExtractionError.PARSE_FAILURE) from e

        return pages_text, total_pages


PDF_BACKENDS = {
    PyMuPDFBackend.name: PyMuPDFBackend,
    PdfPlumberBackend.name: PdfPlumberBackend,
}


class TesseractOCR:
    """Image-based text recognition used when structured extraction fails."""

    def __init__(self, language: str = "eng", zoom: float = 2.0):
        """
        Args:
            language: Tesseract language code
            zoom: Render scale for PDF pages (2.0 = 144 dpi)
        """
        self.language = language
        self.zoom = zoom

    def recognize(self, data: bytes, max_pages: int) -> str:
        """
        Recognize text in a document.

        PDF pages are rendered with PyMuPDF; anything that does not open as a
        PDF is treated as a raster image.
        """
        try:
            doc = fitz.open(stream=data, filetype="pdf")
        except (RuntimeError, ValueError):
            return self._recognize_image(data)

        with doc:
            return self._recognize_pages(doc, max_pages)

    def _recognize_pages(self, doc, max_pages: int) -> str:
        pages_text = []
        matrix = fitz.Matrix(self.zoom, self.zoom)

        for page_num in range(min(doc.page_count, max_pages)):
            try:
                pix = doc.load_page(page_num).get_pixmap(matrix=matrix)
                img_data = pix.tobytes("ppm")
            except (RuntimeError, ValueError) as e:
                raise ExtractionError(PARSE_FAILURE_MESSAGE, ExtractionError.PARSE_FAILURE) from e
            del pix
            pages_text.append(self._recognize_image(img_data))

        return " ".join(pages_text)

    def _recognize_image(self, data: bytes) -> str:
        try:
            with Image.open(io.BytesIO(data)) as img:
                return pytesseract.image_to_string(img, lang=self.language)
        except UnidentifiedImageError as e:
            raise ExtractionError(PARSE_FAILURE_MESSAGE, ExtractionError.PARSE_FAILURE) from e
        except (pytesseract.TesseractError, OSError) as e:
            raise ExtractionError(f"OCR failed: {e}", ExtractionError.PARSE_FAILURE) from e


class PDFExtractor:
    """Extracts plain text from PDF documents with an optional OCR fallback."""

    def __init__(
        self,
        backend: Optional[PDFBackend] = None,
        ocr: Optional[TesseractOCR] = None,
        max_pages: int = 50,
        min_text_length: int = 10,
    ):
        """
        Initialize PDF extractor.

        Args:
            backend: Structured extraction backend (PyMuPDF by default)
            ocr: OCR engine for the fallback path, None disables it
            max_pages: Only the first max_pages pages are read
            min_text_length: Shorter text counts as an extraction failure
        """
        self.backend = backend or PyMuPDFBackend()
        self.ocr = ocr
        self.max_pages = max_pages
        self.min_text_length = min_text_length

    def extract(self, data: bytes) -> ExtractedText:
        """
        Extract text from PDF bytes.

        Args:
            data: Raw document bytes

        Returns:
            ExtractedText with normalised text

        Raises:
            ExtractionError: parse failure or insufficient text
        """
        if not data:
            raise ExtractionError("Document is empty", ExtractionError.EMPTY_DOCUMENT)

        parse_error: Optional[ExtractionError] = None
        text = ""
        pages_processed = total_pages = 0

        try:
            pages_text, total_pages = self.backend.read_pages(data, self.max_pages)
            pages_processed = len(pages_text)
            text = normalize_whitespace(" ".join(pages_text))
            logger.info(f"Extracted {len(text)} chars from {pages_processed}/{total_pages} pages "
                        f"with {self.backend.name}")
        except ExtractionError as e:
            if self.ocr is None:
                logger.error(f"Failed to parse PDF with {self.backend.name}: {e.__cause__ or e}")
                raise
            parse_error = e
            logger.warning(f"{self.backend.name} could not parse document: {e.__cause__ or e}")

        if self._is_sufficient(text):
            logger.debug(f"Extracted text (first 500 chars): {text[:500]}")
            return ExtractedText(text, "text", self.backend.name, pages_processed, total_pages)

        if self.ocr is None:
            raise ExtractionError(INSUFFICIENT_TEXT_MESSAGE, ExtractionError.INSUFFICIENT_TEXT)

        logger.info("Text extraction insufficient, trying OCR fallback")
        return self._extract_with_ocr(data, parse_error)

    def _extract_with_ocr(self, data: bytes, parse_error: Optional[ExtractionError]) -> ExtractedText:
        try:
            text = normalize_whitespace(self.ocr.recognize(data, self.max_pages))
        except ExtractionError as e:
            logger.error(f"OCR fallback failed: {e}")
            if parse_error is not None:
                raise parse_error from e
            raise ExtractionError(INSUFFICIENT_TEXT_MESSAGE, ExtractionError.INSUFFICIENT_TEXT) from e

        if not self._is_sufficient(text):
            raise ExtractionError(INSUFFICIENT_TEXT_MESSAGE, ExtractionError.INSUFFICIENT_TEXT)

        logger.info(f"OCR recovered {len(text)} chars")
        return ExtractedText(text, "ocr", "tesseract", 0, 0)

    def _is_sufficient(self, text: str) -> bool:
        return len(text) >= self.min_text_length

    async def aextract(self, data: bytes) -> ExtractedText:
        """Run extract() in a worker thread so the event loop stays free."""
        return await asyncio.to_thread(self.extract, data)

    def extract_from_file(self, pdf_path: str) -> ExtractedText:
        """
        Extract text from a PDF file on disk.

        Args:
            pdf_path: Path to the PDF file

        Returns:
            ExtractedText with normalised text
        """
        pdf_path = Path(pdf_path)
        if not pdf_path.exists():
            raise FileNotFoundError(f"PDF file not found: {pdf_path}")

        logger.info(f"Extracting text from: {pdf_path}")
        return self.extract(pdf_path.read_bytes())


def create_extractor(config: "ExtractionConfig") -> PDFExtractor:
    """Build an extractor from the extraction section of the configuration."""
    try:
        backend = PDF_BACKENDS[config.backend]()
    except KeyError:
        raise ValueError(f"Unknown PDF backend: {config.backend}") from None

    ocr = TesseractOCR(language=config.ocr_language, zoom=config.ocr_zoom) if config.use_ocr else None

    return PDFExtractor(
        backend=backend,
        ocr=ocr,
        max_pages=config.max_pages,
        min_text_length=config.min_text_length,
    )
