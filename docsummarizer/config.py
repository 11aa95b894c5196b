"""
Configuration Management

Handles settings for the document summarization service including:
- Environment variables and .env files
- Optional JSON configuration file
- Configuration validation
- Default settings for extraction, chunking, LLM access and retries
"""

import os
import json
import logging
from typing import Dict, Any, Optional, List
from pathlib import Path
from dataclasses import dataclass, asdict, field

from dotenv import load_dotenv

from .errors import ConfigError
from .llm import LLMProvider, DEFAULT_MODELS
from .pdf_extractor import PDF_BACKENDS
from .retry import BackoffPolicy
from .summarizer import DEFAULT_SYSTEM_PROMPT

logger = logging.getLogger(__name__)

MEGABYTE = 1024 * 1024


@dataclass
class ServerConfig:
    """HTTP server settings."""
    host: str = "0.0.0.0"
    port: int = 4000
    cors_origins: List[str] = field(default_factory=lambda: ["https://sum-flax.vercel.app"])
    max_upload_bytes: int = 10 * MEGABYTE
    request_timeout: float = 120.0  # seconds, 0 disables the deadline


@dataclass
class ExtractionConfig:
    """Settings for PDF text extraction."""
    backend: str = "pymupdf"
    max_pages: int = 50
    min_text_length: int = 10

    # OCR fallback
    use_ocr: bool = False
    ocr_language: str = "eng"
    ocr_zoom: float = 2.0


@dataclass
class ChunkingConfig:
    """Settings for splitting text before summarization."""
    max_chunk_chars: int = 30000


@dataclass
class LLMConfig:
    """Generative-text service settings."""
    provider: LLMProvider = LLMProvider.GEMINI
    model_name: str = DEFAULT_MODELS[LLMProvider.GEMINI]
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    temperature: float = 0.3
    timeout: float = 60.0
    system_prompt: str = DEFAULT_SYSTEM_PROMPT


@dataclass
class RetryConfig:
    """Retry policy for rate-limited summarization calls."""
    max_attempts: int = 3
    backoff: BackoffPolicy = BackoffPolicy.EXPONENTIAL
    base_delay: float = 2.0
    max_delay: float = 30.0


@dataclass
class SummaryConfig:
    """Summarization behaviour."""
    default_word_limit: int = 2000
    concurrency: int = 1


@dataclass
class AppConfig:
    """Complete configuration for the summarization service."""
    server: ServerConfig = field(default_factory=ServerConfig)
    extraction: ExtractionConfig = field(default_factory=ExtractionConfig)
    chunking: ChunkingConfig = field(default_factory=ChunkingConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    summary: SummaryConfig = field(default_factory=SummaryConfig)

    # General settings
    debug: bool = False
    log_level: str = "INFO"
    log_json: bool = False


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


class ConfigManager:
    """Manages configuration loading, validation, and saving."""

    # Environment variable -> (section, attribute, converter)
    ENV_OVERRIDES = {
        'PORT': ('server', 'port', int),
        'HOST': ('server', 'host', str),
        'CORS_ORIGINS': ('server', 'cors_origins',
                         lambda v: [o.strip() for o in v.split(',') if o.strip()]),
        'MAX_UPLOAD_MB': ('server', 'max_upload_bytes', lambda v: int(float(v) * MEGABYTE)),
        'REQUEST_TIMEOUT': ('server', 'request_timeout', float),
        'PDF_BACKEND': ('extraction', 'backend', str),
        'MAX_PAGES': ('extraction', 'max_pages', int),
        'MIN_TEXT_LENGTH': ('extraction', 'min_text_length', int),
        'USE_OCR': ('extraction', 'use_ocr', _parse_bool),
        'OCR_LANGUAGE': ('extraction', 'ocr_language', str),
        'CHUNK_SIZE': ('chunking', 'max_chunk_chars', int),
        'LLM_PROVIDER': ('llm', 'provider', LLMProvider),
        'LLM_MODEL': ('llm', 'model_name', str),
        'LLM_BASE_URL': ('llm', 'base_url', str),
        'LLM_TIMEOUT': ('llm', 'timeout', float),
        'RETRY_MAX_ATTEMPTS': ('retry', 'max_attempts', int),
        'RETRY_BACKOFF': ('retry', 'backoff', BackoffPolicy),
        'RETRY_BASE_DELAY': ('retry', 'base_delay', float),
        'SUMMARY_CONCURRENCY': ('summary', 'concurrency', int),
    }

    API_KEY_ENV = {
        LLMProvider.GEMINI: 'GEMINI_API_KEY',
        LLMProvider.OPENAI: 'OPENAI_API_KEY',
        LLMProvider.ANTHROPIC: 'ANTHROPIC_API_KEY',
    }

    def __init__(self, config_path: Optional[str] = None, env_file: str = ".env"):
        """
        Initialize configuration manager.

        Args:
            config_path: Path to a JSON configuration file
            env_file: Path to a .env file loaded before reading the environment
        """
        self.config_path = Path(config_path) if config_path else Path("docsummarizer.json")
        self.env_file = Path(env_file)
        self.config: Optional[AppConfig] = None

        self._load_env_vars()

    def _load_env_vars(self):
        """Load environment variables from .env file."""
        if self.env_file.exists():
            load_dotenv(self.env_file)
            logger.info(f"Loaded environment variables from {self.env_file}")

    def load_config(self) -> AppConfig:
        """Load configuration from file and environment."""
        if self.config_path.exists():
            logger.info(f"Loading configuration from {self.config_path}")
            config = self._load_from_file()
        else:
            config = AppConfig()

        config = self._apply_env_overrides(config)
        self._validate_config(config)

        self.config = config
        return config

    def _load_from_file(self) -> AppConfig:
        """Load configuration from JSON file."""
        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(f"Failed to load config from {self.config_path}: {e}") from e

        return self._dict_to_config(data)

    def _dict_to_config(self, data: Dict[str, Any]) -> AppConfig:
        """Convert dictionary to configuration object."""
        try:
            llm_data = dict(data.get('llm', {}))
            if 'provider' in llm_data:
                llm_data['provider'] = LLMProvider(llm_data['provider'])
                llm_data.setdefault('model_name', DEFAULT_MODELS[llm_data['provider']])

            retry_data = dict(data.get('retry', {}))
            if 'backoff' in retry_data:
                retry_data['backoff'] = BackoffPolicy(retry_data['backoff'])

            return AppConfig(
                server=ServerConfig(**data.get('server', {})),
                extraction=ExtractionConfig(**data.get('extraction', {})),
                chunking=ChunkingConfig(**data.get('chunking', {})),
                llm=LLMConfig(**llm_data),
                retry=RetryConfig(**retry_data),
                summary=SummaryConfig(**data.get('summary', {})),
                debug=data.get('debug', False),
                log_level=data.get('log_level', 'INFO'),
                log_json=data.get('log_json', False),
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid configuration in {self.config_path}: {e}") from e

    def _apply_env_overrides(self, config: AppConfig) -> AppConfig:
        """Apply environment variable overrides."""
        provider_from_env = False

        for env_name, (section, attr, convert) in self.ENV_OVERRIDES.items():
            raw = os.getenv(env_name)
            if raw is None or raw == "":
                continue
            try:
                value = convert(raw)
            except (ValueError, OverflowError) as e:
                raise ConfigError(f"Invalid value for {env_name}: {raw!r}") from e
            setattr(getattr(config, section), attr, value)
            if env_name == 'LLM_PROVIDER':
                provider_from_env = True

        # A provider switch without an explicit model gets that provider's default
        if provider_from_env and not os.getenv('LLM_MODEL'):
            config.llm.model_name = DEFAULT_MODELS[config.llm.provider]

        if os.getenv('DOCSUMMARIZER_DEBUG'):
            config.debug = _parse_bool(os.environ['DOCSUMMARIZER_DEBUG'])
        if os.getenv('LOG_LEVEL'):
            config.log_level = os.environ['LOG_LEVEL'].upper()
        if os.getenv('LOG_JSON'):
            config.log_json = _parse_bool(os.environ['LOG_JSON'])

        key_env = self.API_KEY_ENV.get(config.llm.provider)
        if key_env and os.getenv(key_env) and not config.llm.api_key:
            config.llm.api_key = os.getenv(key_env)

        return config

    def _validate_config(self, config: AppConfig):
        """Validate configuration settings."""
        errors = []

        if not 0 < config.server.port < 65536:
            errors.append("port must be between 1 and 65535")
        if config.server.max_upload_bytes <= 0:
            errors.append("max_upload_bytes must be positive")
        if config.server.request_timeout < 0:
            errors.append("request_timeout must not be negative")

        if config.extraction.backend not in PDF_BACKENDS:
            errors.append(f"unknown PDF backend '{config.extraction.backend}' "
                          f"(choose from {', '.join(sorted(PDF_BACKENDS))})")
        if config.extraction.max_pages <= 0:
            errors.append("max_pages must be positive")
        if config.extraction.min_text_length < 0:
            errors.append("min_text_length must not be negative")

        if config.chunking.max_chunk_chars <= 0:
            errors.append("max_chunk_chars must be positive")

        if config.retry.max_attempts <= 0:
            errors.append("retry max_attempts must be positive")
        if config.retry.base_delay < 0:
            errors.append("retry base_delay must not be negative")

        if config.summary.default_word_limit <= 0:
            errors.append("default_word_limit must be positive")
        if config.summary.concurrency <= 0:
            errors.append("summary concurrency must be positive")

        if config.llm.provider in self.API_KEY_ENV and not config.llm.api_key:
            logger.warning(f"No API key provided for {config.llm.provider.value}; "
                           f"set {self.API_KEY_ENV[config.llm.provider]}")

        if errors:
            raise ConfigError(f"Configuration validation failed: {'; '.join(errors)}")

        logger.debug("Configuration validation passed")

    def save_config(self, config: Optional[AppConfig] = None, output_path: Optional[str] = None):
        """Save configuration to a JSON file. API keys are never written."""
        config = config or self.config
        if config is None:
            raise ConfigError("No configuration to save")

        path = Path(output_path) if output_path else self.config_path
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(config_to_dict(config, include_secrets=False), f, indent=2)

        logger.info(f"Configuration saved to {path}")

    def create_sample_config(self, output_path: str = "docsummarizer.sample.json"):
        """Create a sample configuration file."""
        self.save_config(AppConfig(), output_path)

    def create_env_template(self, output_path: str = ".env.template"):
        """Create a .env template file."""
        template = """# docsummarizer environment variables

# LLM provider: gemini, ollama, openai or anthropic
LLM_PROVIDER=gemini
LLM_MODEL=gemini-1.5-pro
GEMINI_API_KEY=your_gemini_api_key_here
OPENAI_API_KEY=
ANTHROPIC_API_KEY=
LLM_BASE_URL=

# Server
PORT=4000
CORS_ORIGINS=https://sum-flax.vercel.app
MAX_UPLOAD_MB=10
REQUEST_TIMEOUT=120

# Extraction
PDF_BACKEND=pymupdf
MAX_PAGES=50
MIN_TEXT_LENGTH=10
USE_OCR=false

# Chunking and retries
CHUNK_SIZE=30000
RETRY_MAX_ATTEMPTS=3
RETRY_BACKOFF=exponential
RETRY_BASE_DELAY=2.0

# Logging
LOG_LEVEL=INFO
LOG_JSON=false
DOCSUMMARIZER_DEBUG=false
"""
        with open(output_path, 'w', encoding='utf-8') as f:
            f.write(template)

        logger.info(f"Environment template created at {output_path}")


def config_to_dict(config: AppConfig, include_secrets: bool = False) -> Dict[str, Any]:
    """Convert configuration object to a JSON-serialisable dictionary."""
    data = asdict(config)
    data['llm']['provider'] = config.llm.provider.value
    data['retry']['backoff'] = config.retry.backoff.value
    if not include_secrets:
        data['llm']['api_key'] = None
    return data


def get_config(config_path: Optional[str] = None) -> AppConfig:
    """
    Load the application configuration.

    Args:
        config_path: Optional path to configuration file

    Returns:
        Loaded and validated configuration
    """
    return ConfigManager(config_path).load_config()
