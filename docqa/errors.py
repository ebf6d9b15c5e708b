"""Exception hierarchy for docqa.

Every error is terminal for the current invocation; the CLI prints the
message to stderr and exits with status 1.
"""
from typing import Optional


class DocQAError(Exception):
    """Base class for all docqa errors."""


class ConfigurationError(DocQAError):
    """A required setting (usually the API key) is missing or invalid."""


class DocumentNotFoundError(DocQAError):
    """The document to index does not exist."""

    def __init__(self, path):
        self.path = path
        super().__init__(f"document not found: {path}")


class DocumentReadError(DocQAError):
    """The document exists but its text could not be extracted."""


class EmptyDocumentError(DocQAError):
    """The extracted document text is empty after trimming."""


class ServiceError(DocQAError):
    """Non-2xx response or transport failure from an external service."""

    service = "Service"

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, status_code={self.status_code})"


class EmbeddingServiceError(ServiceError):
    service = "Embeddings"


class AnswerServiceError(ServiceError):
    service = "Chat"


class IndexCorruptError(DocQAError):
    """The persisted index is malformed or was built for another model."""


class DimensionMismatchError(DocQAError):
    """Two embedding vectors that must be compared have different lengths."""

    def __init__(self, expected: int, got: int, context: str = "vector"):
        self.expected = expected
        self.got = got
        super().__init__(
            f"Embedding dimension mismatch for {context}: expected {expected}, got {got}"
        )
