"""Shared fakes for the pipeline's external collaborators."""

import os
import re
import zlib
from pathlib import Path
from typing import Dict, List, Optional, Union

import numpy as np
import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
os.environ.setdefault("SEARCHRAG_CONFIG", str(PROJECT_ROOT / "configs" / "app.yaml"))

from searchrag.llm import FINAL_FRAGMENT, LLMResponse, StreamFragment  # noqa: E402
from searchrag.pipeline import Pipeline  # noqa: E402
from searchrag.search import SearchProvider, SearchService  # noqa: E402
from searchrag.sources import SourceProcessor  # noqa: E402
from searchrag.followup import FollowUpConfig, FollowUpGenerator  # noqa: E402
from searchrag.rephrase import QueryRephraser, RephraserConfig  # noqa: E402
from searchrag.synth import AnswerSynthesizer, SynthesizerConfig  # noqa: E402

TEST_CONFIG = {
    "search": {"excluded_domain": "brave.com"},
    "pipeline": {
        "min_content_length": 250,
        "defaults": {
            "return_sources": True,
            "return_follow_up_questions": True,
            "embed_sources_in_answer": False,
            "chunk_size": 800,
            "chunk_overlap": 200,
            "similarity_results_per_source": 2,
            "pages_to_scan": 4,
        },
    },
}


def page_text(topic: str, sentences: int = 12) -> str:
    return " ".join(
        f"{topic} fact number {idx} describes {topic} in some detail for readers." for idx in range(sentences)
    )


class FakeLLM:
    def __init__(
        self,
        content: str = "",
        fragments: Optional[List[str]] = None,
        error: Optional[Exception] = None,
        fail_after: Optional[int] = None,
    ):
        self.content = content
        self.fragments = fragments or []
        self.error = error
        self.fail_after = fail_after
        self.calls: List[list] = []

    async def generate(self, messages, **kwargs):
        self.calls.append(list(messages))
        if self.error:
            raise self.error
        return LLMResponse(content=self.content, usage={})

    async def stream(self, messages, **kwargs):
        self.calls.append(list(messages))
        if self.error:
            raise self.error
        return self._fragments()

    async def _fragments(self):
        for idx, text in enumerate(self.fragments):
            if self.fail_after is not None and idx == self.fail_after:
                raise RuntimeError("stream dropped")
            yield StreamFragment(text=text)
        yield FINAL_FRAGMENT


class FakeLLMFactory:
    def __init__(self, clients: Dict[str, FakeLLM]):
        self.clients = clients

    def build(self, section: str) -> FakeLLM:
        return self.clients[section]


class FakeSearchProvider(SearchProvider):
    def __init__(self, results: Union[str, list], error: Optional[Exception] = None):
        super().__init__()
        self.results = results
        self.error = error
        self.queries: List[tuple] = []

    async def search(self, query: str, count: int = 10):
        self.queries.append((query, count))
        if self.error:
            raise self.error
        return self.results


class FakeFetcher:
    """Maps URLs to page text; exceptions in the map are raised."""

    def __init__(self, pages: Dict[str, Union[str, Exception]]):
        self.pages = pages
        self.requested: List[str] = []

    async def fetch_text(self, url: str) -> str:
        self.requested.append(url)
        value = self.pages.get(url, "")
        if isinstance(value, Exception):
            raise value
        return value


class HashingEmbedder:
    """Bag-of-words vectors; enough to make lexical overlap rank first."""

    dims = 128

    def _vector(self, text: str) -> np.ndarray:
        vec = np.zeros(self.dims)
        for token in re.findall(r"[a-z0-9]+", text.lower()):
            vec[zlib.crc32(token.encode("utf-8")) % self.dims] += 1.0
        return vec

    async def embed_documents(self, texts):
        return np.array([self._vector(text) for text in texts])

    async def embed_query(self, text):
        return self._vector(text)


def results_for(links: List[str]) -> List[dict]:
    return [{"title": f"Title for {link}", "link": link} for link in links]


@pytest.fixture
def embedder() -> HashingEmbedder:
    return HashingEmbedder()


@pytest.fixture
def make_pipeline(embedder):
    """Build a Pipeline wired to fakes; returns (pipeline, fakes)."""

    def _make(
        results: Union[str, list],
        pages: Dict[str, Union[str, Exception]],
        fragments: Optional[List[str]] = None,
        follow_up: str = '["Q1?", "Q2?", "Q3?"]',
        rephrased: str = "rephrased query",
        rephrase_error: Optional[Exception] = None,
        search_error: Optional[Exception] = None,
        fail_after: Optional[int] = None,
    ):
        llms = {
            "rephraser": FakeLLM(content=rephrased, error=rephrase_error),
            "synthesizer": FakeLLM(fragments=fragments or [], fail_after=fail_after),
            "follow_up": FakeLLM(content=follow_up),
        }
        factory = FakeLLMFactory(llms)
        provider = FakeSearchProvider(results, error=search_error)
        fetcher = FakeFetcher(pages)
        pipeline = Pipeline(
            TEST_CONFIG,
            rephraser=QueryRephraser(RephraserConfig(), llm_factory=factory),
            search_service=SearchService(provider, excluded_domain="brave.com"),
            source_processor=SourceProcessor(fetcher, embedder, min_content_length=250),
            synthesizer=AnswerSynthesizer(SynthesizerConfig(), llm_factory=factory),
            follow_up=FollowUpGenerator(FollowUpConfig(), llm_factory=factory),
        )
        fakes = {"llms": llms, "provider": provider, "fetcher": fetcher}
        return pipeline, fakes

    return _make
