"""Tests for cosine scoring and top-K retrieval."""
import math

import pytest

from docqa.errors import DimensionMismatchError
from docqa.rag.chunker import chunk_text
from docqa.rag.retriever import Retriever, cosine_similarity, rank, retrieve, score_chunks
from docqa.rag.store import VectorIndex


@pytest.fixture
def index() -> VectorIndex:
    return VectorIndex(
        chunks=["north", "east", "north-east", "south"],
        embeddings=[
            [0.0, 1.0],
            [1.0, 0.0],
            [1.0, 1.0],
            [0.0, -1.0],
        ],
    )


class TestCosineSimilarity:
    def test_symmetric(self):
        a, b = [0.3, -1.2, 4.0], [2.0, 0.5, -0.7]
        assert cosine_similarity(a, b) == pytest.approx(cosine_similarity(b, a))

    def test_self_similarity_is_one(self):
        a = [0.3, -1.2, 4.0]
        assert cosine_similarity(a, a) == pytest.approx(1.0)

    def test_known_values(self):
        assert cosine_similarity([1, 0], [0, 1]) == pytest.approx(0.0)
        assert cosine_similarity([1, 0], [-1, 0]) == pytest.approx(-1.0)
        assert cosine_similarity([1, 1], [1, 0]) == pytest.approx(1 / math.sqrt(2))

    @pytest.mark.parametrize("a,b", [([0, 0], [1, 2]), ([1, 2], [0, 0]), ([0, 0], [0, 0])])
    def test_zero_vector_gives_exactly_zero(self, a, b):
        result = cosine_similarity(a, b)
        assert result == 0.0
        assert not math.isnan(result)

    def test_length_mismatch_raises(self):
        with pytest.raises(DimensionMismatchError):
            cosine_similarity([1.0, 2.0], [1.0, 2.0, 3.0])


def test_score_chunks_orders_by_descending_score(index):
    candidates = score_chunks(index, [0.0, 1.0])

    assert [c.content for c in candidates] == ["north", "north-east", "east", "south"]
    assert candidates[0].score == pytest.approx(1.0)
    assert candidates[-1].score == pytest.approx(-1.0)


def test_ties_keep_original_order():
    index = VectorIndex(
        chunks=["a", "b", "c", "d"],
        embeddings=[[1.0, 0.0], [2.0, 0.0], [0.0, 1.0], [3.0, 0.0]],
    )

    assert retrieve(index, [1.0, 0.0], k=4) == ["a", "b", "d", "c"]


def test_zero_vectors_in_index_score_zero():
    index = VectorIndex(chunks=["zero", "x"], embeddings=[[0.0, 0.0], [1.0, 0.0]])

    candidates = score_chunks(index, [1.0, 0.0])

    assert [(c.content, c.score) for c in candidates] == [("x", 1.0), ("zero", 0.0)]


def test_zero_query_scores_everything_zero(index):
    candidates = score_chunks(index, [0.0, 0.0])

    assert all(c.score == 0.0 for c in candidates)
    assert [c.index for c in candidates] == [0, 1, 2, 3]


def test_retrieve_returns_top_k(index):
    assert retrieve(index, [1.0, 0.2], k=2) == ["east", "north-east"]


def test_retrieve_defaults_to_three(index):
    assert len(retrieve(index, [1.0, 0.0])) == 3


def test_k_larger_than_index_returns_all(index):
    results = retrieve(index, [0.0, 1.0], k=10)

    assert results == ["north", "north-east", "east", "south"]


def test_invalid_k_rejected(index):
    with pytest.raises(ValueError):
        rank(index, [0.0, 1.0], k=0)


def test_retrieve_is_deterministic(index):
    query = [0.4, 0.9]
    first = retrieve(index, query, k=3)

    for _ in range(5):
        assert retrieve(index, query, k=3) == first


def test_query_dimension_mismatch(index):
    with pytest.raises(DimensionMismatchError):
        retrieve(index, [1.0, 0.0, 0.0])


def test_two_chunk_document_ranks_matching_chunk_first():
    text = "a" * 900 + "b" * 900
    chunks = chunk_text(text, chunk_size=900)
    index = VectorIndex(
        chunks=[c.content for c in chunks],
        embeddings=[[1.0, 0.0, 0.5], [0.0, 1.0, 0.5]],
    )

    ranked = rank(index, [1.0, 0.0, 0.5], k=3)

    assert len(chunks) == 2
    assert ranked[0].position == 1
    assert ranked[0].content == "a" * 900
    assert ranked[0].score == pytest.approx(1.0)


@pytest.mark.asyncio
async def test_retriever_embeds_query_and_ranks(index, client, fake_api):
    fake_api.vectors = {"which way is up?": [0.0, 1.0]}
    retriever = Retriever(index, client, embedding_model="test-embed", top_k=2)

    results = await retriever.retrieve("which way is up?")

    assert [r.content for r in results] == ["north", "north-east"]
    assert fake_api.embedding_inputs == ["which way is up?"]
    assert fake_api.requests[0]["body"]["model"] == "test-embed"


@pytest.mark.asyncio
@pytest.mark.parametrize("constructor_k,call_k", [(0, None), (2, 0)])
async def test_retriever_rejects_zero_top_k(index, client, constructor_k, call_k):
    retriever = Retriever(index, client, top_k=constructor_k)

    with pytest.raises(ValueError):
        await retriever.retrieve("anything", top_k=call_k)
