"""
Generative-Text Backends

Thin async clients for the LLM services the summarizer can talk to. Every
backend takes a role-tagged message list and returns the generated text, or
raises a typed error:

- RateLimitError: upstream 429, safe to retry
- LLMServiceError: any other service or transport failure
- InvalidResponseError: no text at the expected response path
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, TYPE_CHECKING

import httpx
from langchain_core.messages import HumanMessage, SystemMessage

from .errors import (
    DocSummarizerError,
    InvalidResponseError,
    LLMServiceError,
    RateLimitError,
)

if TYPE_CHECKING:
    from .config import LLMConfig

logger = logging.getLogger(__name__)


class LLMProvider(Enum):
    """Supported LLM providers."""
    GEMINI = "gemini"
    OLLAMA = "ollama"
    OPENAI = "openai"
    ANTHROPIC = "anthropic"


DEFAULT_MODELS = {
    LLMProvider.GEMINI: "gemini-1.5-pro",
    LLMProvider.OLLAMA: "llama2",
    LLMProvider.OPENAI: "gpt-4o-mini",
    LLMProvider.ANTHROPIC: "claude-3-5-sonnet-latest",
}

DEFAULT_BASE_URLS = {
    LLMProvider.GEMINI: "https://generativelanguage.googleapis.com",
    LLMProvider.OLLAMA: "http://localhost:11434",
}

_RATE_LIMIT_PATTERN = re.compile(r"\b429\b|too many requests|rate.?limit", re.IGNORECASE)


@dataclass(frozen=True)
class ChatMessage:
    """One role-tagged turn sent to the model."""
    role: str  # 'system' or 'user'
    content: str


def is_rate_limited(exc: BaseException) -> bool:
    """True when an exception signals a transient 'too many requests' condition."""
    if isinstance(exc, RateLimitError):
        return True
    if isinstance(exc, DocSummarizerError):
        return False

    for attr in ("status_code", "code", "status"):
        if getattr(exc, attr, None) == 429:
            return True
    response = getattr(exc, "response", None)
    if response is not None and getattr(response, "status_code", None) == 429:
        return True

    return bool(_RATE_LIMIT_PATTERN.search(str(exc)))


def _dig(data: Any, path: Sequence[Any]) -> Any:
    """Follow a key/index path through nested JSON, returning None when it breaks."""
    current = data
    for key in path:
        try:
            current = current[key]
        except (KeyError, IndexError, TypeError):
            return None
    return current


def _require_text(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidResponseError()
    return value.strip()


class LLMBackend(ABC):
    """Capability interface for generative-text services."""

    provider: LLMProvider

    def __init__(self, model_name: str):
        self.model_name = model_name

    @abstractmethod
    async def generate(self, messages: List[ChatMessage]) -> str:
        """Send the messages and return the generated text."""

    async def aclose(self) -> None:
        """Release network resources."""

    @property
    def description(self) -> str:
        return f"{self.provider.value}:{self.model_name}"


class HTTPBackend(LLMBackend):
    """Shared request handling for REST-based providers."""

    def __init__(
        self,
        model_name: str,
        base_url: str,
        temperature: float = 0.3,
        timeout: float = 60.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(model_name)
        self.base_url = base_url.rstrip("/")
        self.temperature = temperature
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def _post_json(self, url: str, payload: Dict[str, Any],
                         headers: Optional[Dict[str, str]] = None) -> Any:
        try:
            response = await self.client.post(url, json=payload, headers=headers)
        except httpx.TimeoutException as e:
            raise LLMServiceError(f"{self.provider.value} request timed out") from e
        except httpx.HTTPError as e:
            raise LLMServiceError(f"{self.provider.value} request failed: {e}") from e

        if response.status_code == 429:
            raise RateLimitError(f"{self.provider.value} rate limit exceeded (429)")
        if response.status_code >= 400:
            raise LLMServiceError(
                f"{self.provider.value} returned HTTP {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise InvalidResponseError() from e

    async def aclose(self) -> None:
        await self.client.aclose()


class GeminiBackend(HTTPBackend):
    """Google Gemini via the generateContent REST endpoint."""

    provider = LLMProvider.GEMINI
    RESPONSE_PATH = ("candidates", 0, "content", "parts", 0, "text")

    def __init__(self, model_name: str, api_key: Optional[str], base_url: Optional[str] = None, **kwargs):
        super().__init__(model_name, base_url or DEFAULT_BASE_URLS[LLMProvider.GEMINI], **kwargs)
        self.api_key = api_key

    def build_payload(self, messages: List[ChatMessage]) -> Dict[str, Any]:
        system_text = "\n\n".join(m.content for m in messages if m.role == "system")
        payload: Dict[str, Any] = {
            "contents": [
                {"role": "user" if m.role == "user" else "model", "parts": [{"text": m.content}]}
                for m in messages if m.role != "system"
            ],
            "generationConfig": {"temperature": self.temperature},
        }
        if system_text:
            payload["systemInstruction"] = {"parts": [{"text": system_text}]}
        return payload

    async def generate(self, messages: List[ChatMessage]) -> str:
        if not self.api_key:
            raise LLMServiceError("Gemini API key is not configured")

        data = await self._post_json(
            f"{self.base_url}/v1beta/models/{self.model_name}:generateContent",
            self.build_payload(messages),
            headers={"x-goog-api-key": self.api_key},
        )
        return _require_text(_dig(data, self.RESPONSE_PATH))


class OllamaBackend(HTTPBackend):
    """Local Ollama server via /api/chat."""

    provider = LLMProvider.OLLAMA
    RESPONSE_PATH = ("message", "content")

    def __init__(self, model_name: str, base_url: Optional[str] = None, **kwargs):
        super().__init__(model_name, base_url or DEFAULT_BASE_URLS[LLMProvider.OLLAMA], **kwargs)

    async def generate(self, messages: List[ChatMessage]) -> str:
        data = await self._post_json(
            f"{self.base_url}/api/chat",
            {
                "model": self.model_name,
                "messages": [{"role": m.role, "content": m.content} for m in messages],
                "stream": False,
                "options": {"temperature": self.temperature},
            },
        )
        return _require_text(_dig(data, self.RESPONSE_PATH))


class LangChainChatBackend(LLMBackend):
    """Any LangChain chat model (OpenAI, Anthropic, ...)."""

    def __init__(self, chat_model: Any, provider: LLMProvider, model_name: str):
        super().__init__(model_name)
        self.chat_model = chat_model
        self.provider = provider

    @staticmethod
    def to_langchain(messages: List[ChatMessage]) -> list:
        return [
            SystemMessage(content=m.content) if m.role == "system" else HumanMessage(content=m.content)
            for m in messages
        ]

    @staticmethod
    def _content_text(content: Any) -> Any:
        # Anthropic returns a list of content blocks
        if isinstance(content, list):
            return "".join(
                block.get("text", "") if isinstance(block, dict) else str(block)
                for block in content
            )
        return content

    async def generate(self, messages: List[ChatMessage]) -> str:
        try:
            response = await self.chat_model.ainvoke(self.to_langchain(messages))
        except Exception as e:
            if is_rate_limited(e):
                raise RateLimitError(f"{self.provider.value} rate limit exceeded: {e}") from e
            raise LLMServiceError(f"{self.provider.value} request failed: {e}",
                                  status_code=getattr(e, "status_code", None)) from e

        return _require_text(self._content_text(getattr(response, "content", None)))


def create_backend(config: "LLMConfig") -> LLMBackend:
    """
    Build the backend selected by configuration.

    Args:
        config: LLM section of the application configuration

    Returns:
        Ready-to-use backend
    """
    provider = config.provider
    model_name = config.model_name or DEFAULT_MODELS[provider]

    if provider == LLMProvider.GEMINI:
        backend: LLMBackend = GeminiBackend(
            model_name, api_key=config.api_key, base_url=config.base_url,
            temperature=config.temperature, timeout=config.timeout,
        )
    elif provider == LLMProvider.OLLAMA:
        backend = OllamaBackend(
            model_name, base_url=config.base_url,
            temperature=config.temperature, timeout=config.timeout,
        )
    elif provider in (LLMProvider.OPENAI, LLMProvider.ANTHROPIC):
        # Unset keys fall back to the client library's own environment lookup
        kwargs: Dict[str, Any] = {}
        if config.api_key:
            kwargs["api_key"] = config.api_key
        if config.base_url:
            kwargs["base_url"] = config.base_url

        if provider == LLMProvider.OPENAI:
            from langchain_openai import ChatOpenAI as chat_class
        else:
            from langchain_anthropic import ChatAnthropic as chat_class

        # Retries are handled by the summarizer, not the client library
        chat_model = chat_class(
            model=model_name,
            temperature=config.temperature,
            timeout=config.timeout,
            max_retries=0,
            **kwargs,
        )
        backend = LangChainChatBackend(chat_model, provider, model_name)
    else:
        raise ValueError(f"Unsupported LLM provider: {provider}")

    logger.info(f"Initialized {backend.description}")
    return backend
