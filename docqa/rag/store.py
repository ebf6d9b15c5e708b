"""JSON-backed embedding index.

Handles:
- Building the index by embedding every chunk
- Atomic persistence to a single JSON file
- Loading with structural and model validation
"""
import asyncio
import json
import math
import os
import tempfile
from dataclasses import dataclass
from numbers import Real
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

import structlog

from docqa.errors import DimensionMismatchError, EmptyDocumentError, IndexCorruptError

logger = structlog.get_logger()

INDEX_FORMAT_VERSION = 1
# Version 0 is the bare {"chunks": [...], "embeddings": [...]} layout
SUPPORTED_VERSIONS = (0, 1)

EmbedFn = Callable[[str], Awaitable[List[float]]]


@dataclass
class VectorIndex:
    """Parallel chunk texts and embedding vectors for one document."""

    chunks: List[str]
    embeddings: List[List[float]]
    embedding_model: Optional[str] = None
    chunk_size: Optional[int] = None
    version: int = INDEX_FORMAT_VERSION

    def __len__(self) -> int:
        return len(self.chunks)

    @property
    def dimension(self) -> int:
        return len(self.embeddings[0]) if self.embeddings else 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "embedding_model": self.embedding_model,
            "dimension": self.dimension,
            "chunk_size": self.chunk_size,
            "chunks": self.chunks,
            "embeddings": self.embeddings,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "VectorIndex":
        """Validate a decoded index file and build a VectorIndex from it.

        Raises:
            IndexCorruptError: If any structural check fails
        """
        if not isinstance(data, dict):
            raise IndexCorruptError(
                f"Index must be a JSON object, got {type(data).__name__}"
            )

        version = data.get("version", 0)
        if isinstance(version, bool) or version not in SUPPORTED_VERSIONS:
            raise IndexCorruptError(f"Unsupported index version: {version!r}")

        chunks = data.get("chunks")
        embeddings = data.get("embeddings")

        if not isinstance(chunks, list) or not all(isinstance(c, str) for c in chunks):
            raise IndexCorruptError("'chunks' must be a list of strings")

        if not isinstance(embeddings, list):
            raise IndexCorruptError("'embeddings' must be a list of vectors")

        if len(chunks) != len(embeddings):
            raise IndexCorruptError(
                f"Index has {len(chunks)} chunks but {len(embeddings)} embeddings"
            )

        if not chunks:
            raise IndexCorruptError("Index contains no chunks")

        vectors = []
        dimension = None
        for i, vector in enumerate(embeddings):
            if (
                not isinstance(vector, list)
                or not vector
                or not all(isinstance(x, Real) and not isinstance(x, bool) for x in vector)
            ):
                raise IndexCorruptError(f"Embedding {i} is not a non-empty list of numbers")

            # json.load accepts NaN and Infinity literals
            if not all(math.isfinite(x) for x in vector):
                raise IndexCorruptError(f"Embedding {i} contains non-finite values")

            if dimension is None:
                dimension = len(vector)
            elif len(vector) != dimension:
                raise IndexCorruptError(
                    f"Embedding {i} has dimension {len(vector)}, expected {dimension}"
                )

            vectors.append([float(x) for x in vector])

        stored_dimension = data.get("dimension")
        if stored_dimension is not None and stored_dimension != dimension:
            raise IndexCorruptError(
                f"Index declares dimension {stored_dimension} but vectors have {dimension}"
            )

        return cls(
            chunks=chunks,
            embeddings=vectors,
            embedding_model=data.get("embedding_model"),
            chunk_size=data.get("chunk_size"),
            version=version,
        )

    def get_stats(self) -> Dict[str, Any]:
        """Get statistics about the index.

        Returns:
            Dictionary with index statistics
        """
        sizes = [len(c) for c in self.chunks]
        return {
            "version": self.version,
            "chunk_count": len(self.chunks),
            "dimension": self.dimension,
            "embedding_model": self.embedding_model,
            "chunk_size": self.chunk_size,
            "avg_chunk_chars": sum(sizes) // len(sizes) if sizes else 0,
            "max_chunk_chars": max(sizes) if sizes else 0,
        }


async def _embed_all(texts: Sequence[str], embed: EmbedFn, concurrency: int) -> List[List[float]]:
    """Embed texts, returning vectors in input order."""
    if concurrency <= 1:
        embeddings = []
        for position, text in enumerate(texts, 1):
            embeddings.append(await embed(text))
            logger.debug("chunk_embedded", position=position, total=len(texts))
        return embeddings

    semaphore = asyncio.Semaphore(concurrency)

    async def embed_one(text: str) -> List[float]:
        async with semaphore:
            return await embed(text)

    tasks = [asyncio.ensure_future(embed_one(text)) for text in texts]
    try:
        # gather returns results in task order, not completion order
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


async def build_index(
    chunks: Sequence[str],
    embed: EmbedFn,
    *,
    embedding_model: Optional[str] = None,
    chunk_size: Optional[int] = None,
    concurrency: int = 1,
) -> VectorIndex:
    """Embed every chunk and assemble an index.

    Args:
        chunks: Chunk texts in document order
        embed: Coroutine function returning the vector for one text
        embedding_model: Model name recorded in the index
        chunk_size: Chunk size recorded in the index
        concurrency: Maximum embedding calls in flight (1 = sequential)

    Returns:
        VectorIndex with one vector per chunk, in chunk order

    Raises:
        EmptyDocumentError: If there are no chunks to index
        EmbeddingServiceError: If any embedding call fails (nothing is built)
        DimensionMismatchError: If the service returns vectors of differing length
    """
    if not chunks:
        logger.error("index_build_no_chunks")
        raise EmptyDocumentError("Nothing to index: the document produced no chunks.")

    logger.info(
        "index_build_started",
        chunk_count=len(chunks),
        embedding_model=embedding_model,
        concurrency=concurrency,
    )

    try:
        embeddings = await _embed_all(chunks, embed, concurrency)
    except Exception as e:
        logger.error("index_build_failed", error=str(e), error_type=type(e).__name__)
        raise

    if embeddings:
        dimension = len(embeddings[0])
        for position, vector in enumerate(embeddings, 1):
            if len(vector) != dimension:
                raise DimensionMismatchError(dimension, len(vector), f"chunk {position}")

    index = VectorIndex(
        chunks=list(chunks),
        embeddings=[list(v) for v in embeddings],
        embedding_model=embedding_model,
        chunk_size=chunk_size,
    )

    logger.info("index_built", chunk_count=len(index), dimension=index.dimension)

    return index


def save_index(index: VectorIndex, path: Path) -> None:
    """Write the index to disk atomically.

    The JSON is written to a temporary file in the target directory and
    renamed over the target, so readers never see a partial file.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(
        dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp"
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(index.to_dict(), f, indent=2, ensure_ascii=False)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise

    logger.info(
        "index_saved",
        index_path=str(path),
        chunk_count=len(index),
        dimension=index.dimension,
    )


def load_index(path: Path, embedding_model: Optional[str] = None) -> VectorIndex:
    """Load and validate a persisted index.

    Args:
        path: Index file path
        embedding_model: Model the caller will embed queries with; when both
            this and the stored model are known they must match

    Returns:
        The loaded VectorIndex

    Raises:
        FileNotFoundError: If the index file does not exist
        IndexCorruptError: If the file is malformed or built with another model
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Index not found: {path}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.error("index_unreadable", index_path=str(path), error=str(e))
        raise IndexCorruptError(f"Index file {path} is not valid JSON: {e}") from e

    try:
        index = VectorIndex.from_dict(data)
    except IndexCorruptError as e:
        logger.error("index_invalid", index_path=str(path), error=str(e))
        raise IndexCorruptError(f"Index file {path} is invalid: {e}") from e

    if (
        embedding_model
        and index.embedding_model
        and index.embedding_model != embedding_model
    ):
        logger.error(
            "index_model_mismatch",
            stored_model=index.embedding_model,
            current_model=embedding_model,
        )
        raise IndexCorruptError(
            f"Index {path} was built with {index.embedding_model}, but the current "
            f"embedding model is {embedding_model}. Please rebuild the index."
        )

    logger.info(
        "index_loaded",
        index_path=str(path),
        version=index.version,
        chunk_count=len(index),
        dimension=index.dimension,
        embedding_model=index.embedding_model,
    )

    return index
