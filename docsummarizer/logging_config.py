"""
Logging setup.

structlog sits on top of the standard library so that modules using
logging.getLogger and modules using structlog.get_logger share handlers,
levels and output format.
"""

import logging
import sys

import structlog

_configured = False


def setup_logging(level: str = "INFO", json_logs: bool = False) -> None:
    """Configure stdlib logging and structlog. Safe to call more than once."""
    global _configured

    log_level = getattr(logging, str(level).upper(), logging.INFO)

    shared_processors = [
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    renderer = structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    if _configured:
        for existing in list(root.handlers):
            if getattr(existing, "_docsummarizer", False):
                root.removeHandler(existing)
    handler._docsummarizer = True
    root.addHandler(handler)
    root.setLevel(log_level)

    processors = [
        structlog.stdlib.filter_by_level,
        *shared_processors,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
    ]
    # ConsoleRenderer formats tracebacks itself
    if json_logs:
        processors.append(structlog.processors.format_exc_info)
    processors += [
        structlog.processors.UnicodeDecoder(),
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ]

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    _configured = True
