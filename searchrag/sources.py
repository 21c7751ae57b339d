from __future__ import annotations

import logging
from typing import Optional, Protocol

from .chunks import TextChunker, split_into_chunks
from .rank import Embedder, SimilarityIndex
from .types import ExtractedPage, PipelineOptions, SearchResultStub, SourceGroup

logger = logging.getLogger(__name__)

MIN_CONTENT_LENGTH = 250


class PageFetcher(Protocol):
    async def fetch_text(self, url: str) -> str:
        ...


class SourceProcessor:
    """Fetch, chunk, index and rank a single search result.

    ``process`` never raises: a broken source is logged and contributes
    ``None`` so sibling sources keep going.
    """

    def __init__(
        self,
        fetcher: PageFetcher,
        embedder: Embedder,
        min_content_length: int = MIN_CONTENT_LENGTH,
    ):
        self.fetcher = fetcher
        self.embedder = embedder
        self.min_content_length = min_content_length

    async def process(
        self,
        stub: SearchResultStub,
        query: str,
        options: PipelineOptions,
    ) -> Optional[SourceGroup]:
        try:
            return await self._process(stub, query, options)
        except Exception as exc:
            logger.warning("Dropping source %s: %s", stub.link, exc)
            return None

    async def _process(
        self,
        stub: SearchResultStub,
        query: str,
        options: PipelineOptions,
    ) -> Optional[SourceGroup]:
        text = await self.fetcher.fetch_text(stub.link)
        if not text:
            logger.info("No content extracted from %s", stub.link)
            return None
        if len(text) < self.min_content_length:
            logger.info(
                "Skipping %s: %s characters is below the %s character minimum.",
                stub.link,
                len(text),
                self.min_content_length,
            )
            return None

        page = ExtractedPage(link=stub.link, title=stub.title, text=text)
        chunker = TextChunker(chunk_size=options.chunk_size, chunk_overlap=options.chunk_overlap)
        chunks = split_into_chunks(page, chunker)
        index = await SimilarityIndex.build(chunks, self.embedder)
        ranked = await index.search(query, options.similarity_results_per_source)
        if not ranked:
            return None
        return SourceGroup(link=stub.link, title=stub.title, chunks=ranked)
