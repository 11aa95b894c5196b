"""
Command Line Interface for the Document Summarizer

Provides CLI access to:
- Summarizing a local PDF file
- Extracting text from a PDF without summarizing
- Running the HTTP API server
- Configuration management
"""

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path

import uvicorn

from .config import AppConfig, ConfigManager, config_to_dict, get_config
from .errors import DocSummarizerError
from .llm import DEFAULT_MODELS, LLMProvider
from .logging_config import setup_logging
from .pdf_extractor import create_extractor
from .pipeline import create_pipeline

logger = logging.getLogger(__name__)


def positive_int(value: str) -> int:
    """argparse type for a strictly positive integer."""
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer: {value!r}") from None
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be a positive integer, got {number}")
    return number


def _load_config(args) -> AppConfig:
    config = get_config(args.config)
    if getattr(args, "provider", None):
        config.llm.provider = LLMProvider(args.provider)
        config.llm.model_name = DEFAULT_MODELS[config.llm.provider]
    if getattr(args, "model", None):
        config.llm.model_name = args.model
    if getattr(args, "ocr", False):
        config.extraction.use_ocr = True
    return config


def summarize_file(args) -> int:
    """Summarize a single PDF file."""
    config = _load_config(args)
    pdf_path = Path(args.pdf_path)
    if not pdf_path.is_file():
        print(f"Error: PDF file not found: {pdf_path}", file=sys.stderr)
        return 1

    async def run():
        pipeline = create_pipeline(config)
        try:
            return await pipeline.process_document(pdf_path.read_bytes(), args.word_limit)
        finally:
            await pipeline.aclose()

    result = asyncio.run(run())

    if args.json:
        output = asdict(result)
        output["status"] = result.status.value
        text = json.dumps(output, indent=2, ensure_ascii=False)
    else:
        text = result.summary

    if args.output:
        Path(args.output).write_text(text, encoding="utf-8")
        print(f"Summary written to: {args.output}")
    else:
        print(text)

    logger.info(f"Processed {result.pages_processed}/{result.total_pages} pages "
                f"in {result.chunk_count} chunks ({result.processing_time:.2f}s)")
    return 0


def extract_file(args) -> int:
    """Print the text extracted from a PDF file."""
    config = _load_config(args)
    extracted = create_extractor(config.extraction).extract_from_file(args.pdf_path)

    if args.json:
        print(json.dumps(asdict(extracted), indent=2, ensure_ascii=False))
    else:
        print(extracted.text)
    return 0


def serve(args) -> int:
    """Run the HTTP API."""
    config = get_config(args.config)
    host = args.host or config.server.host
    port = args.port or config.server.port

    uvicorn.run(
        "docsummarizer.api:create_app",
        factory=True,
        host=host,
        port=port,
        reload=args.reload,
        log_config=None,
    )
    return 0


def manage_config(args) -> int:
    """Configuration helpers."""
    manager = ConfigManager(args.config)

    if args.action == "sample":
        output = args.path or "docsummarizer.sample.json"
        manager.create_sample_config(output)
        print(f"Sample configuration created as {output}")
    elif args.action == "env":
        output = args.path or ".env.template"
        manager.create_env_template(output)
        print(f"Environment template created as {output}")
    elif args.action == "validate":
        config = manager.load_config()
        print("✓ Configuration is valid")
        print(json.dumps(config_to_dict(config), indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="docsummarizer",
        description="Summarize PDF documents with an LLM",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("-c", "--config", help="Path to JSON configuration file")

    subparsers = parser.add_subparsers(dest="command", required=True)

    providers = [p.value for p in LLMProvider]

    # summarize
    p_sum = subparsers.add_parser("summarize", help="Summarize a PDF file")
    p_sum.add_argument("pdf_path", help="Path to the PDF file")
    p_sum.add_argument("--word-limit", type=positive_int, default=None, help="Target summary length in words")
    p_sum.add_argument("--provider", choices=providers, help="LLM provider")
    p_sum.add_argument("--model", help="Model name for the provider")
    p_sum.add_argument("--ocr", action="store_true", help="Enable the OCR fallback")
    p_sum.add_argument("--output", "-o", help="Write the result to this file")
    p_sum.add_argument("--json", action="store_true", help="Print the full processing result as JSON")
    p_sum.set_defaults(func=summarize_file)

    # extract
    p_ext = subparsers.add_parser("extract", help="Print the text extracted from a PDF file")
    p_ext.add_argument("pdf_path", help="Path to the PDF file")
    p_ext.add_argument("--ocr", action="store_true", help="Enable the OCR fallback")
    p_ext.add_argument("--json", action="store_true", help="Print extraction details as JSON")
    p_ext.set_defaults(func=extract_file)

    # serve
    p_srv = subparsers.add_parser("serve", help="Run the HTTP API")
    p_srv.add_argument("--host", help="Bind address")
    p_srv.add_argument("--port", type=int, help="Port")
    p_srv.add_argument("--reload", action="store_true", help="Reload on code changes")
    p_srv.set_defaults(func=serve)

    # config
    p_cfg = subparsers.add_parser("config", help="Configuration helpers")
    p_cfg.add_argument("action", choices=["sample", "env", "validate"])
    p_cfg.add_argument("path", nargs="?", help="Output path for sample/env")
    p_cfg.set_defaults(func=manage_config)

    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging("DEBUG" if args.verbose else "INFO")

    try:
        return args.func(args)
    except (DocSummarizerError, FileNotFoundError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
