from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Sequence

import numpy as np

from .types import DocumentChunk, RankedChunk

logger = logging.getLogger(__name__)


class Embedder(Protocol):
    async def embed_documents(self, texts: Sequence[str]) -> np.ndarray:
        ...

    async def embed_query(self, text: str) -> np.ndarray:
        ...


class SentenceTransformerEmbedder:
    """Local sentence-transformers model; encoding runs off the event loop."""

    def __init__(self, model: str = "sentence-transformers/all-MiniLM-L6-v2"):
        from sentence_transformers import SentenceTransformer

        self.model_name = model
        self._model = SentenceTransformer(model)

    def _encode(self, texts: Sequence[str]) -> np.ndarray:
        return self._model.encode(
            list(texts), convert_to_numpy=True, normalize_embeddings=True, show_progress_bar=False
        )

    async def embed_documents(self, texts: Sequence[str]) -> np.ndarray:
        return await asyncio.to_thread(self._encode, texts)

    async def embed_query(self, text: str) -> np.ndarray:
        vectors = await asyncio.to_thread(self._encode, [text])
        return vectors[0]


class OpenAIEmbedder:
    """Embeddings endpoint of any OpenAI-compatible API."""

    def __init__(
        self,
        model: str = "text-embedding-3-small",
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
    ):
        from openai import AsyncOpenAI

        self.model_name = model
        self._client = AsyncOpenAI(api_key=api_key or None, base_url=base_url or None)

    async def embed_documents(self, texts: Sequence[str]) -> np.ndarray:
        if not texts:
            return np.zeros((0, 0))
        response = await self._client.embeddings.create(model=self.model_name, input=list(texts))
        return np.array([item.embedding for item in response.data], dtype=float)

    async def embed_query(self, text: str) -> np.ndarray:
        vectors = await self.embed_documents([text])
        return vectors[0]


def build_embedder(config: Dict[str, Any]) -> Embedder:
    provider = config.get("provider", "sentence_transformers")
    if provider == "sentence_transformers":
        return SentenceTransformerEmbedder(model=config.get("model", "sentence-transformers/all-MiniLM-L6-v2"))
    if provider == "openai":
        return OpenAIEmbedder(
            model=config.get("model", "text-embedding-3-small"),
            api_key=config.get("api_key"),
            base_url=config.get("base_url"),
        )
    raise ValueError(f"Unsupported embeddings provider: {provider}")


def _normalize(matrix: np.ndarray) -> np.ndarray:
    norms = np.linalg.norm(matrix, axis=-1, keepdims=True)
    norms[norms == 0] = 1.0
    return matrix / norms


@dataclass
class SimilarityIndex:
    """In-memory vector index scoped to a single source."""

    chunks: List[DocumentChunk]
    vectors: np.ndarray
    embedder: Embedder

    @classmethod
    async def build(
        cls,
        chunks: Sequence[DocumentChunk],
        embedder: Embedder,
    ) -> "SimilarityIndex":
        chunk_list = list(chunks)
        if not chunk_list:
            return cls(chunks=[], vectors=np.zeros((0, 0)), embedder=embedder)
        vectors = await embedder.embed_documents([chunk.text for chunk in chunk_list])
        return cls(chunks=chunk_list, vectors=_normalize(np.asarray(vectors, dtype=float)), embedder=embedder)

    async def search(self, query: str, k: int) -> List[RankedChunk]:
        if not self.chunks or k <= 0:
            return []
        query_vector = _normalize(np.asarray(await self.embedder.embed_query(query), dtype=float))
        scores = self.vectors @ query_vector
        # stable sort keeps page order among equal scores
        order = np.argsort(-scores, kind="stable")[:k]
        return [
            RankedChunk(**self.chunks[idx].model_dump(), score=float(scores[idx]))
            for idx in order
        ]
