from __future__ import annotations

import logging
from typing import List

from langchain_text_splitters import RecursiveCharacterTextSplitter

from .types import DocumentChunk, ExtractedPage

logger = logging.getLogger(__name__)


class TextChunker:
    """Character-window splitter with overlap, separators tried coarse to fine."""

    def __init__(self, chunk_size: int = 800, chunk_overlap: int = 200):
        if chunk_overlap >= chunk_size:
            # langchain rejects overlap >= size; keep at least one fresh character per window.
            chunk_overlap = max(0, chunk_size - 1)
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self._splitter = RecursiveCharacterTextSplitter(
            chunk_size=chunk_size,
            chunk_overlap=chunk_overlap,
            length_function=len,
        )

    def split(self, text: str) -> List[str]:
        if not text.strip():
            return []
        return [piece for piece in self._splitter.split_text(text) if piece.strip()]


def split_into_chunks(page: ExtractedPage, chunker: TextChunker) -> List[DocumentChunk]:
    """Split page text into ordered chunks tagged with the page link and title."""

    chunks = [
        DocumentChunk(text=piece, link=page.link, title=page.title, index=index)
        for index, piece in enumerate(chunker.split(page.text))
    ]
    logger.debug("Split %s into %s chunks.", page.link, len(chunks))
    return chunks
