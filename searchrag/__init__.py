"""
Core pipeline components for the searchrag service.

This package exposes building blocks for the rephrase → search → fetch →
chunk → rank → synthesize pipeline along with its data types.
"""

from .types import (
    DocumentChunk,
    ExtractedPage,
    GoRequest,
    PipelineOptions,
    RankedChunk,
    ResponseEnvelope,
    SearchResultStub,
    SourceCitation,
    SourceGroup,
)

__all__ = [
    "DocumentChunk",
    "ExtractedPage",
    "GoRequest",
    "PipelineOptions",
    "RankedChunk",
    "ResponseEnvelope",
    "SearchResultStub",
    "SourceCitation",
    "SourceGroup",
]
