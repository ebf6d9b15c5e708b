"""Fixed-size text chunking for the RAG pipeline.

Character-based windows with no overlap, so chunks map back onto the
source text in order.
"""
from dataclasses import dataclass
from typing import List

import structlog

from docqa import config
from docqa.errors import EmptyDocumentError

logger = structlog.get_logger()


@dataclass
class Chunk:
    """A trimmed slice of the source text.

    ``position`` is 1-indexed. ``char_start``/``char_end`` locate the
    untrimmed window in the source text.
    """

    position: int
    content: str
    char_start: int
    char_end: int


class TextChunker:
    """Splits text into non-overlapping windows of at most chunk_size chars."""

    def __init__(self, chunk_size: int = None):
        """Initialize the text chunker.

        Args:
            chunk_size: Window size in characters (default from config)

        Raises:
            ValueError: If chunk_size is less than 1
        """
        self.chunk_size = config.CHUNK_SIZE if chunk_size is None else chunk_size

        if self.chunk_size < 1:
            raise ValueError(f"Chunk size must be at least 1, got {self.chunk_size}")

    def chunk_text(self, text: str) -> List[Chunk]:
        """Split text into trimmed, non-empty chunks.

        Args:
            text: Full document text

        Returns:
            List of Chunk objects in source order

        Raises:
            EmptyDocumentError: If text is empty or whitespace-only
        """
        if not text or not text.strip():
            logger.error("empty_document_text", text_length=len(text or ""))
            raise EmptyDocumentError("Could not extract text from document (empty text).")

        chunks = []
        for start in range(0, len(text), self.chunk_size):
            end = min(start + self.chunk_size, len(text))
            content = text[start:end].strip()
            if not content:
                continue

            chunks.append(
                Chunk(
                    position=len(chunks) + 1,
                    content=content,
                    char_start=start,
                    char_end=end,
                )
            )

        logger.info(
            "text_chunked",
            text_length=len(text),
            chunk_size=self.chunk_size,
            chunk_count=len(chunks),
        )

        return chunks

    @staticmethod
    def get_chunk_stats(chunks: List[Chunk]) -> dict:
        """Get statistics about a set of chunks.

        Args:
            chunks: List of Chunk objects

        Returns:
            Dictionary with chunk statistics
        """
        if not chunks:
            return {
                "chunk_count": 0,
                "total_chars": 0,
                "avg_chunk_size": 0,
                "min_chunk_size": 0,
                "max_chunk_size": 0,
            }

        chunk_sizes = [len(c.content) for c in chunks]

        return {
            "chunk_count": len(chunks),
            "total_chars": sum(chunk_sizes),
            "avg_chunk_size": sum(chunk_sizes) // len(chunks),
            "min_chunk_size": min(chunk_sizes),
            "max_chunk_size": max(chunk_sizes),
        }


def chunk_text(text: str, chunk_size: int = None) -> List[Chunk]:
    """Chunk text with a one-off chunker (convenience function)."""
    return TextChunker(chunk_size=chunk_size).chunk_text(text)
