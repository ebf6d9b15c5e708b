"""Question answering pipeline for a single document.

Orchestrates:
- Index load, or build from the document when no index file exists
- Query retrieval
- Grounded answer generation
"""
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

import structlog

from docqa import config
from docqa.llm_client import OpenAIClient
from docqa.rag.chunker import TextChunker
from docqa.rag.document_loader import load_document
from docqa.rag.prompt import build_prompt
from docqa.rag.retriever import Retriever, ScoredCandidate
from docqa.rag.store import VectorIndex, build_index, load_index, save_index

logger = structlog.get_logger()


@dataclass
class Answer:
    """Answer to one question with the chunks it was grounded on."""

    question: str
    text: str
    sources: List[ScoredCandidate] = field(default_factory=list)


class DocumentQA:
    """Answers questions about one document through a persisted index."""

    def __init__(
        self,
        client: OpenAIClient,
        index_path: Path = None,
        embedding_model: str = None,
        chat_model: str = None,
        chunk_size: int = None,
        top_k: int = None,
        concurrency: int = None,
    ):
        """Initialize the pipeline.

        Args:
            client: API client for embeddings and chat completions
            index_path: Index file location (default from config)
            embedding_model: Embedding model name (default from config)
            chat_model: Chat model name (default from config)
            chunk_size: Chunk size in characters (default from config)
            top_k: Number of chunks passed as context (default from config)
            concurrency: Embedding calls in flight while building (default from config)
        """
        self.client = client
        self.index_path = Path(index_path or config.INDEX_PATH)
        self.embedding_model = embedding_model or config.EMBEDDING_MODEL
        self.chat_model = chat_model or config.CHAT_MODEL
        self.chunker = TextChunker(chunk_size=chunk_size)
        self.top_k = config.RETRIEVAL_TOP_K if top_k is None else top_k
        self.concurrency = concurrency or config.EMBED_CONCURRENCY

        self.index: Optional[VectorIndex] = None

    async def _embed(self, text: str) -> List[float]:
        return await self.client.embeddings(text, model=self.embedding_model)

    async def build(self, document_path: Path) -> VectorIndex:
        """Extract, chunk and embed a document, then persist the index.

        Raises:
            DocumentNotFoundError: If the document does not exist
            EmptyDocumentError: If no text could be extracted
            EmbeddingServiceError: If any chunk fails to embed (no file is written)
        """
        text = load_document(document_path)
        chunks = self.chunker.chunk_text(text)

        logger.info(
            "document_chunked",
            path=str(document_path),
            **self.chunker.get_chunk_stats(chunks),
        )

        index = await build_index(
            [c.content for c in chunks],
            self._embed,
            embedding_model=self.embedding_model,
            chunk_size=self.chunker.chunk_size,
            concurrency=self.concurrency,
        )
        save_index(index, self.index_path)
        return index

    async def load_or_build(self, document_path: Path, rebuild: bool = False) -> VectorIndex:
        """Load the persisted index, or build it if there is none.

        Args:
            document_path: Document to index when no index file exists
            rebuild: Ignore any existing index file and build anew

        Returns:
            The index used for the rest of the process
        """
        if self.index_path.exists() and not rebuild:
            logger.info("existing_index_detected", index_path=str(self.index_path))
            self.index = load_index(self.index_path, embedding_model=self.embedding_model)
        else:
            logger.info(
                "building_index",
                index_path=str(self.index_path),
                document=str(document_path),
                rebuild=rebuild,
            )
            self.index = await self.build(document_path)

        return self.index

    async def ask(self, question: str, top_k: Optional[int] = None) -> Answer:
        """Answer a question from the loaded index.

        Raises:
            RuntimeError: If no index has been loaded or built
            EmbeddingServiceError: If the question cannot be embedded
            AnswerServiceError: If the chat completion fails
        """
        if self.index is None:
            raise RuntimeError("No index loaded. Call load_or_build() first.")

        retriever = Retriever(
            self.index,
            self.client,
            embedding_model=self.embedding_model,
            top_k=self.top_k if top_k is None else top_k,
        )
        sources = await retriever.retrieve(question)

        prompt = build_prompt([s.content for s in sources], question)
        text = await self.client.chat(
            [{"role": "user", "content": prompt}],
            model=self.chat_model,
            temperature=config.ANSWER_TEMPERATURE,
        )

        logger.info(
            "question_answered",
            source_positions=[s.position for s in sources],
            answer_length=len(text),
        )

        return Answer(question=question, text=text, sources=sources)
