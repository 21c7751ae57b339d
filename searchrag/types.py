from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class PipelineOptions(BaseModel):
    """Per-request knobs handed explicitly to every pipeline component."""

    model_config = ConfigDict(frozen=True)

    return_sources: bool = True
    return_follow_up_questions: bool = True
    embed_sources_in_answer: bool = False
    chunk_size: int = Field(default=800, ge=1)
    chunk_overlap: int = Field(default=200, ge=0)
    similarity_results_per_source: int = Field(default=2, ge=1)
    pages_to_scan: int = Field(default=4, ge=1)


class GoRequest(BaseModel):
    """Body of ``POST /go``.

    Unset options are filled from the configured defaults by
    :meth:`to_options`, so only fields the client actually sent override them.
    """

    model_config = ConfigDict(populate_by_name=True)

    message: str = Field(..., min_length=1, description="Natural language question.")
    return_sources: Optional[bool] = Field(
        default=None,
        validation_alias=AliasChoices("returnSources", "return_sources"),
    )
    return_follow_up_questions: Optional[bool] = Field(
        default=None,
        validation_alias=AliasChoices("returnFollowUpQuestions", "return_follow_up_questions"),
    )
    embed_sources_in_answer: Optional[bool] = Field(
        default=None,
        validation_alias=AliasChoices(
            "embedSourcesInLLMResponse", "embedSourcesInAnswer", "embed_sources_in_answer"
        ),
    )
    chunk_size: Optional[int] = Field(
        default=None,
        ge=1,
        validation_alias=AliasChoices("textChunkSize", "chunkSize", "chunk_size"),
    )
    chunk_overlap: Optional[int] = Field(
        default=None,
        ge=0,
        validation_alias=AliasChoices("textChunkOverlap", "chunkOverlap", "chunk_overlap"),
    )
    similarity_results_per_source: Optional[int] = Field(
        default=None,
        ge=1,
        validation_alias=AliasChoices(
            "numberOfSimilarityResults",
            "similarityResultsPerSource",
            "similarity_results_per_source",
        ),
    )
    pages_to_scan: Optional[int] = Field(
        default=None,
        ge=1,
        validation_alias=AliasChoices("numberOfPagesToScan", "pagesToScan", "pages_to_scan"),
    )

    def to_options(self, defaults: Optional[Dict[str, Any]] = None) -> PipelineOptions:
        values: Dict[str, Any] = dict(defaults or {})
        sent = self.model_dump(exclude={"message"}, exclude_none=True)
        values.update(sent)
        known = PipelineOptions.model_fields.keys()
        return PipelineOptions(**{key: value for key, value in values.items() if key in known})


class SearchResultStub(BaseModel):
    """Search hit reduced to what the pipeline needs."""

    model_config = ConfigDict(frozen=True)

    title: str
    link: str


class ExtractedPage(BaseModel):
    """Visible text of a fetched page."""

    link: str
    title: str
    text: str = ""


class DocumentChunk(BaseModel):
    """Window of page text carrying its source metadata."""

    text: str
    link: str
    title: str
    index: int = 0


class RankedChunk(DocumentChunk):
    """Chunk scored against the query."""

    score: float = 0.0


class SourceGroup(BaseModel):
    """Top-ranked chunks from a single search result."""

    link: str
    title: str
    chunks: List[RankedChunk] = Field(default_factory=list)


class SourceCitation(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str
    link: str


class ResponseEnvelope(BaseModel):
    """Terminal JSON object of a ``/go`` response.

    ``sources`` and ``suggested_questions`` are left as ``None`` when they
    were not requested (or could not be produced) and are dropped on
    serialization.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    user_message: str = Field(serialization_alias="userMessage")
    sources: Optional[List[SourceCitation]] = None
    answer: str
    suggested_questions: Optional[List[str]] = Field(
        default=None, serialization_alias="suggestedQuestions"
    )

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)
