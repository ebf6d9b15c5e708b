"""Tests for the load-or-build question answering pipeline."""
import httpx
import pytest

from docqa.errors import (
    AnswerServiceError,
    DocumentNotFoundError,
    EmbeddingServiceError,
    EmptyDocumentError,
)
from docqa.rag.document_loader import load_document
from docqa.rag.pipeline import DocumentQA
from docqa.rag.prompt import build_prompt
from docqa.rag.store import load_index


def test_build_prompt_layout():
    prompt = build_prompt(["first", "second"], "What?")

    assert prompt == (
        "Answer using ONLY the context.\n\n"
        "Context:\nfirst\n\nsecond\n\n"
        "Question: What?\n\n"
        "Answer:"
    )


def test_load_document_reads_text_files(text_document):
    path = text_document("  hello world \n")

    assert load_document(path) == "hello world"


def test_load_document_missing(tmp_path):
    with pytest.raises(DocumentNotFoundError, match="document not found"):
        load_document(tmp_path / "nope.pdf")


@pytest.mark.asyncio
async def test_builds_index_when_missing_then_answers(tmp_path, client, fake_api, text_document):
    document = text_document("a" * 900 + "b" * 900)
    fake_api.vectors = {
        "a" * 900: [1.0, 0.0],
        "b" * 900: [0.0, 1.0],
        "tell me about a": [1.0, 0.0],
    }
    fake_api.answer = "It is mostly the letter a."
    index_path = tmp_path / "rag_index.json"
    qa = DocumentQA(client, index_path=index_path, embedding_model="test-embed", top_k=1)

    index = await qa.load_or_build(document)
    answer = await qa.ask("tell me about a")

    assert len(index) == 2
    assert index_path.exists()
    assert answer.text == "It is mostly the letter a."
    assert [s.position for s in answer.sources] == [1]
    assert answer.sources[0].score == pytest.approx(1.0)

    prompt = fake_api.chat_requests[0]["messages"][0]["content"]
    assert prompt == build_prompt(["a" * 900], "tell me about a")
    assert fake_api.chat_requests[0]["temperature"] == 0.2


@pytest.mark.asyncio
async def test_existing_index_is_reused_without_reembedding(tmp_path, client, fake_api, text_document):
    document = text_document("some document text")
    index_path = tmp_path / "rag_index.json"

    await DocumentQA(client, index_path=index_path).load_or_build(document)
    embedded_before = len(fake_api.embedding_inputs)

    document.unlink()
    qa = DocumentQA(client, index_path=index_path)
    index = await qa.load_or_build(document)

    assert index.chunks == ["some document text"]
    assert len(fake_api.embedding_inputs) == embedded_before


@pytest.mark.asyncio
async def test_rebuild_ignores_existing_index(tmp_path, client, fake_api, text_document):
    index_path = tmp_path / "rag_index.json"
    await DocumentQA(client, index_path=index_path).load_or_build(text_document("old text"))

    index = await DocumentQA(client, index_path=index_path).load_or_build(
        text_document("new text"), rebuild=True
    )

    assert index.chunks == ["new text"]
    assert load_index(index_path).chunks == ["new text"]


@pytest.mark.asyncio
async def test_missing_document_writes_no_index(tmp_path, client, fake_api):
    index_path = tmp_path / "rag_index.json"
    qa = DocumentQA(client, index_path=index_path)

    with pytest.raises(DocumentNotFoundError):
        await qa.load_or_build(tmp_path / "missing.pdf")

    assert not index_path.exists()
    assert fake_api.requests == []


@pytest.mark.asyncio
async def test_empty_document_raises(tmp_path, client, text_document):
    qa = DocumentQA(client, index_path=tmp_path / "rag_index.json")

    with pytest.raises(EmptyDocumentError):
        await qa.load_or_build(text_document("   \n  "))


@pytest.mark.asyncio
async def test_embedding_failure_persists_nothing(tmp_path, client, fake_api, text_document):
    document = text_document("x" * 25)
    calls = []

    def fail_on_third(path, body):
        calls.append(body["input"])
        if len(calls) == 3:
            return httpx.Response(500, json={"error": {"message": "server error"}})
        return None

    fake_api.responder = fail_on_third
    index_path = tmp_path / "rag_index.json"
    qa = DocumentQA(client, index_path=index_path, chunk_size=10)

    with pytest.raises(EmbeddingServiceError, match="server error"):
        await qa.load_or_build(document)

    assert not index_path.exists()
    assert list(tmp_path.iterdir()) == [document]


@pytest.mark.asyncio
async def test_answer_failure_propagates(tmp_path, client, fake_api, text_document):
    qa = DocumentQA(client, index_path=tmp_path / "rag_index.json")
    await qa.load_or_build(text_document("content"))
    fake_api.responder = lambda path, body: (
        httpx.Response(503, json={"error": {"message": "overloaded"}})
        if path.endswith("/chat/completions")
        else None
    )

    with pytest.raises(AnswerServiceError, match="overloaded"):
        await qa.ask("anything?")


@pytest.mark.asyncio
async def test_ask_before_load_raises(client):
    with pytest.raises(RuntimeError):
        await DocumentQA(client).ask("too early")


@pytest.mark.asyncio
async def test_zero_top_k_is_rejected_not_defaulted(tmp_path, client, fake_api, text_document):
    qa = DocumentQA(client, index_path=tmp_path / "rag_index.json")
    await qa.load_or_build(text_document("content"))

    with pytest.raises(ValueError):
        await qa.ask("anything?", top_k=0)

    assert fake_api.chat_requests == []
