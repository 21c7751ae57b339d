from types import SimpleNamespace
from unittest.mock import AsyncMock

import numpy as np
import pytest

from searchrag.rank import OpenAIEmbedder, SimilarityIndex, build_embedder
from searchrag.types import DocumentChunk


def chunk(text: str, index: int) -> DocumentChunk:
    return DocumentChunk(text=text, link="https://example.com", title="Example", index=index)


@pytest.mark.asyncio
async def test_search_ranks_most_similar_chunk_first(embedder):
    chunks = [
        chunk("bread recipes and baking temperatures", 0),
        chunk("the eiffel tower is in paris france", 1),
        chunk("football scores from the weekend", 2),
    ]
    index = await SimilarityIndex.build(chunks, embedder)

    ranked = await index.search("where is the eiffel tower", k=2)

    assert len(ranked) == 2
    assert ranked[0].index == 1
    assert ranked[0].score >= ranked[1].score
    assert ranked[0].link == "https://example.com"


@pytest.mark.asyncio
async def test_search_caps_at_available_chunks(embedder):
    index = await SimilarityIndex.build([chunk("only one", 0)], embedder)

    assert len(await index.search("one", k=5)) == 1


@pytest.mark.asyncio
async def test_empty_index_returns_nothing(embedder):
    index = await SimilarityIndex.build([], embedder)

    assert await index.search("anything", k=2) == []


@pytest.mark.asyncio
async def test_zero_vectors_do_not_divide_by_zero():
    class ZeroEmbedder:
        async def embed_documents(self, texts):
            return np.zeros((len(texts), 4))

        async def embed_query(self, text):
            return np.zeros(4)

    index = await SimilarityIndex.build([chunk("a", 0), chunk("b", 1)], ZeroEmbedder())

    ranked = await index.search("q", k=2)

    assert [item.index for item in ranked] == [0, 1]
    assert all(item.score == 0.0 for item in ranked)


def test_build_embedder_rejects_unknown_provider():
    with pytest.raises(ValueError):
        build_embedder({"provider": "carrier-pigeon"})


@pytest.mark.asyncio
async def test_openai_embedder_calls_embeddings_endpoint():
    embedder = OpenAIEmbedder(model="text-embedding-3-small", api_key="test-key")
    create = AsyncMock(
        return_value=SimpleNamespace(
            data=[SimpleNamespace(embedding=[1.0, 0.0]), SimpleNamespace(embedding=[0.0, 1.0])]
        )
    )

    embedder._client = SimpleNamespace(embeddings=SimpleNamespace(create=create))

    vectors = await embedder.embed_documents(["first", "second"])

    create.assert_awaited_once_with(model="text-embedding-3-small", input=["first", "second"])
    assert vectors.shape == (2, 2)
    np.testing.assert_allclose(vectors, [[1.0, 0.0], [0.0, 1.0]])


@pytest.mark.asyncio
async def test_openai_embedder_query_returns_single_vector():
    embedder = OpenAIEmbedder(api_key="test-key")
    create = AsyncMock(return_value=SimpleNamespace(data=[SimpleNamespace(embedding=[0.5, 0.5, 0.0])]))

    embedder._client = SimpleNamespace(embeddings=SimpleNamespace(create=create))

    vector = await embedder.embed_query("capital of France")

    assert vector.shape == (3,)
    assert create.await_args.kwargs["input"] == ["capital of France"]


def test_build_embedder_selects_openai():
    embedder = build_embedder({"provider": "openai", "model": "text-embedding-3-large", "api_key": "test-key"})

    assert isinstance(embedder, OpenAIEmbedder)
    assert embedder.model_name == "text-embedding-3-large"
