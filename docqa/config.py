"""Application configuration with sensible defaults."""
import os
from pathlib import Path

from dotenv import load_dotenv

from docqa.errors import ConfigurationError

# Values already exported in the environment win over .env
load_dotenv(override=False)

# Paths
INDEX_PATH = Path(os.getenv("INDEX_PATH", "./rag_index.json"))
DEFAULT_DOCUMENT = Path(os.getenv("DEFAULT_DOCUMENT", "./document.pdf"))
DEFAULT_QUESTION = "What is this document about?"

# OpenAI-compatible API configuration
API_KEY_ENV = "OPENAI_API_KEY"
OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
EMBEDDING_MODEL = os.getenv("EMBEDDING_MODEL", "text-embedding-3-small")
CHAT_MODEL = os.getenv("CHAT_MODEL", "gpt-4o-mini")
ANSWER_TEMPERATURE = float(os.getenv("ANSWER_TEMPERATURE", "0.2"))
CHAT_TEMPERATURE = float(os.getenv("CHAT_TEMPERATURE", "0.7"))
REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", "60.0"))  # seconds, per request

# RAG parameters (character-based, no tokenizer)
CHUNK_SIZE = int(os.getenv("CHUNK_SIZE", "900"))
RETRIEVAL_TOP_K = int(os.getenv("RETRIEVAL_TOP_K", "3"))
EMBED_CONCURRENCY = int(os.getenv("EMBED_CONCURRENCY", "1"))  # 1 = strictly sequential


def require_api_key() -> str:
    """Return the API key from the environment.

    Read at call time so that the check happens before any network call.

    Raises:
        ConfigurationError: If OPENAI_API_KEY is unset or blank
    """
    api_key = os.getenv(API_KEY_ENV, "").strip()
    if not api_key:
        raise ConfigurationError(
            f"Missing {API_KEY_ENV}. Put it in .env or export it."
        )
    return api_key
