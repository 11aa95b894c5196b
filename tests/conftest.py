"""
Shared fixtures for the docsummarizer test suite.

- PDF builders using PyMuPDF
- A scripted fake LLM backend
- A recording sleep so retry tests never wait
"""

import asyncio
import inspect
import os
import sys
from typing import Any, Callable, List, Optional

import fitz  # PyMuPDF
import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from docsummarizer.llm import ChatMessage, LLMBackend, LLMProvider


def build_pdf(pages: List[str]) -> bytes:
    """Create a PDF with one page per entry; empty strings give blank pages."""
    doc = fitz.open()
    for text in pages:
        page = doc.new_page()
        if text:
            page.insert_text((72, 72), text, fontsize=11)
    data = doc.tobytes()
    doc.close()
    return data


class FakeBackend(LLMBackend):
    """
    Scripted LLM backend.

    Each call consumes the next entry of `responses`: a string is returned,
    an exception is raised, and a callable is called with the messages
    (awaited when it returns a coroutine). Once the script runs out,
    `default` is returned.
    """

    provider = LLMProvider.OLLAMA

    def __init__(self, responses: Optional[List[Any]] = None,
                 default: Any = "A short summary.", model_name: str = "fake-model"):
        super().__init__(model_name)
        self.responses = list(responses or [])
        self.default = default
        self.calls: List[List[ChatMessage]] = []
        self.closed = False

    async def generate(self, messages: List[ChatMessage]) -> str:
        self.calls.append(list(messages))
        item = self.responses.pop(0) if self.responses else self.default

        if isinstance(item, BaseException):
            raise item
        if callable(item):
            item = item(messages)
            if inspect.isawaitable(item):
                item = await item
        return item

    async def aclose(self) -> None:
        self.closed = True

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def prompts(self) -> List[str]:
        return [next(m.content for m in call if m.role == "user") for call in self.calls]


class RecordingSleep:
    """Awaitable sleep replacement that records requested delays."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def slow_response(seconds: float, text: str = "too late") -> Callable:
    """Backend response that takes `seconds` to arrive."""
    async def respond(messages):
        await asyncio.sleep(seconds)
        return text
    return respond


@pytest.fixture
def pdf_builder():
    return build_pdf


@pytest.fixture
def hello_pdf():
    """Two pages of repeated 'Hello world.' text."""
    line = "Hello world. " * 5
    return build_pdf([line, line])


@pytest.fixture
def blank_pdf():
    return build_pdf([""])


@pytest.fixture
def fake_backend():
    return FakeBackend()


@pytest.fixture
def recording_sleep():
    return RecordingSleep()
