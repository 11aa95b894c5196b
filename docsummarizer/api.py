"""
HTTP API

FastAPI application exposing the summarization pipeline:

- POST /upload   multipart upload of one PDF (field 'file', optional 'wordLimit')
- GET  /         static liveness payload
- GET  /health   health check with backend details

Error kinds raised by the pipeline are mapped to status codes here and
nowhere else.
"""

import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Dict, Optional

import structlog
from fastapi import FastAPI, File, Form, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from . import __version__
from .config import AppConfig, get_config
from .errors import (
    ExtractionError,
    PipelineTimeoutError,
    SummarizationError,
    ValidationError,
)
from .logging_config import setup_logging
from .pipeline import SummarizationPipeline, create_pipeline

logger = structlog.get_logger(__name__)

PDF_MEDIA_TYPE = "application/pdf"
SERVICE_NAME = "docsummarizer"


class UploadResponse(BaseModel):
    """Successful summarization"""
    success: bool = True
    summary: str


class ErrorResponse(BaseModel):
    """Failed request"""
    success: bool = False
    error: str
    detail: Optional[str] = None


class HealthStatus(BaseModel):
    """Health check response"""
    status: str
    timestamp: datetime
    service: str = SERVICE_NAME
    version: str = __version__
    llm: Dict[str, str]


def _error_response(status_code: int, message: str, detail: Optional[str] = None) -> JSONResponse:
    body = ErrorResponse(error=message, detail=detail).model_dump(exclude_none=True)
    return JSONResponse(status_code=status_code, content=body)


def create_app(config: Optional[AppConfig] = None,
               pipeline: Optional[SummarizationPipeline] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        config: Application configuration; loaded from the environment when omitted
        pipeline: Pre-built pipeline (tests inject one with a fake LLM backend)

    Returns:
        Configured application
    """
    config = config or get_config()
    setup_logging(config.log_level, config.log_json)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting docsummarizer API", version=__version__,
                    llm=app.state.pipeline.backend.description)
        yield
        logger.info("Shutting down docsummarizer API")
        await app.state.pipeline.aclose()

    app = FastAPI(
        title="Document Summarizer API",
        description="Upload a PDF and receive an LLM-generated summary",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.pipeline = pipeline or create_pipeline(config)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Request logging middleware"""
        start_time = time.time()
        response = await call_next(request)
        logger.info("Request handled",
                    method=request.method,
                    path=request.url.path,
                    status_code=response.status_code,
                    duration=round(time.time() - start_time, 3))
        return response

    # Error mapping

    def _debug_detail(exc: Exception) -> Optional[str]:
        return f"{type(exc).__name__}: {exc}" if config.debug else None

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        logger.info("Upload rejected", error=str(exc))
        return _error_response(400, str(exc))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        fields = ", ".join(".".join(str(p) for p in err.get("loc", ())[1:]) for err in exc.errors())
        logger.info("Malformed upload request", fields=fields)
        return _error_response(400, f"Invalid request fields: {fields}" if fields else "Invalid request")

    @app.exception_handler(ExtractionError)
    async def extraction_error_handler(request: Request, exc: ExtractionError):
        logger.error("Extraction failed", reason=exc.reason, error=str(exc))
        return _error_response(500, str(exc), _debug_detail(exc))

    @app.exception_handler(SummarizationError)
    async def summarization_error_handler(request: Request, exc: SummarizationError):
        logger.error("Summarization failed", error=str(exc))
        return _error_response(500, str(exc), _debug_detail(exc))

    @app.exception_handler(PipelineTimeoutError)
    async def timeout_handler(request: Request, exc: PipelineTimeoutError):
        return _error_response(504, "Request timed out", _debug_detail(exc))

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception("Unexpected error processing request", path=request.url.path)
        return _error_response(500, "Failed to process file", _debug_detail(exc))

    # Endpoints

    @app.get("/")
    async def root():
        return {"status": "healthy", "service": SERVICE_NAME, "version": __version__}

    @app.get("/health", response_model=HealthStatus)
    async def health_check():
        backend = app.state.pipeline.backend
        return HealthStatus(
            status="healthy",
            timestamp=datetime.now(timezone.utc),
            llm={"provider": backend.provider.value, "model": backend.model_name},
        )

    @app.post(
        "/upload",
        response_model=UploadResponse,
        responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse},
                   504: {"model": ErrorResponse}},
    )
    async def upload(
        file: Optional[UploadFile] = File(None),
        word_limit: Optional[int] = Form(None, alias="wordLimit"),
    ):
        """Summarize one uploaded PDF."""
        if file is None:
            raise ValidationError("No file uploaded")

        try:
            if file.content_type != PDF_MEDIA_TYPE:
                raise ValidationError("Invalid file type: only PDF files are allowed")
            if word_limit is not None and word_limit <= 0:
                raise ValidationError("wordLimit must be a positive integer")

            max_bytes = config.server.max_upload_bytes
            if file.size is not None and file.size > max_bytes:
                raise ValidationError(_too_large_message(file.size, max_bytes))

            content = await file.read()
            if not content:
                raise ValidationError("Uploaded file is empty")
            if len(content) > max_bytes:
                raise ValidationError(_too_large_message(len(content), max_bytes))

            logger.info("Upload accepted", filename=file.filename, size_bytes=len(content),
                        word_limit=word_limit)
            result = await app.state.pipeline.process_document(content, word_limit)
        finally:
            await file.close()

        return UploadResponse(summary=result.summary)

    return app


def _too_large_message(size: int, max_bytes: int) -> str:
    mb = 1024 * 1024
    return f"File too large. Maximum size is {max_bytes / mb:.0f}MB, got {size / mb:.1f}MB"
