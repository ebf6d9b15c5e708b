"""Shared fixtures: a fake OpenAI-compatible API served through httpx.MockTransport."""
import json
from typing import Callable, Dict, List, Optional

import httpx
import pytest

from docqa.llm_client import OpenAIClient

BASE_URL = "https://api.test/v1"


class FakeOpenAI:
    """In-process stand-in for the embeddings and chat completion endpoints."""

    def __init__(
        self,
        vectors: Optional[Dict[str, List[float]]] = None,
        default_vector: Optional[List[float]] = None,
        answer: str = "It is a test document.",
    ):
        self.vectors = vectors or {}
        self.default_vector = default_vector or [1.0, 0.0, 0.0]
        self.answer = answer
        self.requests: List[dict] = []
        # Optional override: returns an httpx.Response for a given (path, body)
        self.responder: Optional[Callable[[str, dict], Optional[httpx.Response]]] = None

    @property
    def embedding_inputs(self) -> List[str]:
        return [r["body"]["input"] for r in self.requests if r["path"].endswith("/embeddings")]

    @property
    def chat_requests(self) -> List[dict]:
        return [r["body"] for r in self.requests if r["path"].endswith("/chat/completions")]

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.requests.append(
            {
                "path": request.url.path,
                "body": body,
                "authorization": request.headers.get("Authorization"),
            }
        )

        if self.responder is not None:
            response = self.responder(request.url.path, body)
            if response is not None:
                return response

        if request.url.path.endswith("/embeddings"):
            vector = self.vectors.get(body["input"], self.default_vector)
            return httpx.Response(
                200, json={"data": [{"embedding": vector, "index": 0}]}
            )

        if request.url.path.endswith("/chat/completions"):
            return httpx.Response(
                200,
                json={"choices": [{"message": {"role": "assistant", "content": self.answer}}]},
            )

        return httpx.Response(404, json={"error": {"message": "unknown endpoint"}})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def fake_api() -> FakeOpenAI:
    """Provide a fake API with default behaviour."""
    return FakeOpenAI()


@pytest.fixture
def client(fake_api: FakeOpenAI) -> OpenAIClient:
    """Provide a client wired to the fake API."""
    return OpenAIClient(api_key="test-key", base_url=BASE_URL, transport=fake_api.transport)


@pytest.fixture
def api_key_env(monkeypatch):
    """Set the API key in the environment."""
    monkeypatch.setenv("OPENAI_API_KEY", "test-key")


@pytest.fixture
def text_document(tmp_path):
    """Write a plain-text document and return its path."""
    def _write(text: str, name: str = "document.txt"):
        path = tmp_path / name
        path.write_text(text, encoding="utf-8")
        return path

    return _write
