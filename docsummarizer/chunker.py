"""
Text Chunker

Splits extracted text into fixed-size windows so each summarization request
stays under the LLM's request-size limit. Boundaries are purely positional:
a split may land mid-sentence, but no characters are dropped or added.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List

logger = logging.getLogger(__name__)

DEFAULT_MAX_CHUNK_CHARS = 30000


@dataclass
class TextChunk:
    """A contiguous slice of the source text."""
    content: str
    index: int
    start: int
    end: int

    def __len__(self) -> int:
        return len(self.content)

    def to_dict(self) -> Dict:
        return {
            'content': self.content,
            'index': self.index,
            'start': self.start,
            'end': self.end,
        }


class TextChunker:
    """Fixed-window chunker."""

    def __init__(self, max_chunk_chars: int = DEFAULT_MAX_CHUNK_CHARS):
        if max_chunk_chars <= 0:
            raise ValueError("max_chunk_chars must be positive")
        self.max_chunk_chars = max_chunk_chars

    def split(self, text: str) -> List[TextChunk]:
        """
        Split text into ordered chunks of at most max_chunk_chars characters.

        Text that already fits comes back as a single chunk, even when empty.
        """
        size = self.max_chunk_chars

        if len(text) <= size:
            return [TextChunk(content=text, index=0, start=0, end=len(text))]

        chunks = [
            TextChunk(content=text[start:start + size], index=i, start=start,
                      end=min(start + size, len(text)))
            for i, start in enumerate(range(0, len(text), size))
        ]

        logger.info(f"Split {len(text)} chars into {len(chunks)} chunks of <= {size} chars")
        return chunks


def chunk_text(text: str, max_chunk_chars: int = DEFAULT_MAX_CHUNK_CHARS) -> List[TextChunk]:
    """Convenience function to chunk text with a one-off chunker."""
    return TextChunker(max_chunk_chars).split(text)
