from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, List, Optional

from .config import load_app_config, section
from .errors import FollowUpParseError
from .fetch import DEFAULT_USER_AGENT, ContentFetcher
from .followup import FollowUpConfig, FollowUpGenerator
from .llm import LLMClientFactory, StreamFragment
from .rank import build_embedder
from .rephrase import QueryRephraser, RephraserConfig
from .search import BraveSearchProvider, SearchProvider, SearchService
from .sources import MIN_CONTENT_LENGTH, SourceProcessor
from .synth import AnswerSynthesizer, SynthesizerConfig, build_citations
from .types import (
    GoRequest,
    PipelineOptions,
    ResponseEnvelope,
    SearchResultStub,
    SourceCitation,
    SourceGroup,
)

logger = logging.getLogger(__name__)

# json.dumps never emits a raw newline, so the envelope is always the body's last line.
ENVELOPE_SEPARATOR = "\n"


@dataclass
class PreparedAnswer:
    """Everything gathered before the first answer fragment is sent."""

    message: str
    options: PipelineOptions
    citations: List[SourceCitation]
    groups: List[SourceGroup]
    fragments: AsyncIterator[StreamFragment]


class Pipeline:
    """High-level orchestrator: rephrase, search, rank sources, stream the answer."""

    def __init__(
        self,
        app_config: Optional[Dict[str, Any]] = None,
        *,
        rephraser: Optional[QueryRephraser] = None,
        search_service: Optional[SearchService] = None,
        source_processor: Optional[SourceProcessor] = None,
        synthesizer: Optional[AnswerSynthesizer] = None,
        follow_up: Optional[FollowUpGenerator] = None,
    ) -> None:
        self.app_config = app_config if app_config is not None else load_app_config()
        models_cfg = section(self.app_config, "models")
        llm_factory = LLMClientFactory(models_cfg)
        self.rephraser = rephraser or QueryRephraser(RephraserConfig(), llm_factory=llm_factory)
        self.search_service = search_service or SearchService(
            self._build_search_provider(),
            excluded_domain=section(self.app_config, "search").get("excluded_domain", "brave.com"),
        )
        self.source_processor = source_processor or self._build_source_processor()
        self.synthesizer = synthesizer or AnswerSynthesizer(SynthesizerConfig(), llm_factory=llm_factory)
        self.follow_up = follow_up or FollowUpGenerator(FollowUpConfig(), llm_factory=llm_factory)

    def _build_search_provider(self) -> SearchProvider:
        search_cfg = section(self.app_config, "search")
        provider_name = search_cfg.get("provider", "brave")
        if provider_name == "brave":
            brave_cfg = search_cfg.get("brave", {})
            return BraveSearchProvider(
                api_key=brave_cfg.get("api_key", ""),
                endpoint=brave_cfg.get("endpoint", "https://api.search.brave.com/res/v1/web/search"),
                timeout=float(search_cfg.get("timeout_seconds", 20)),
            )
        raise ValueError(f"Unsupported search provider: {provider_name}")

    def _build_source_processor(self) -> SourceProcessor:
        fetch_cfg = section(self.app_config, "fetch")
        fetcher = ContentFetcher(
            user_agent=fetch_cfg.get("user_agent") or DEFAULT_USER_AGENT,
            timeout=float(fetch_cfg.get("timeout_seconds", 10)),
        )
        embedder = build_embedder(section(self.app_config, "models", "embeddings"))
        return SourceProcessor(
            fetcher,
            embedder,
            min_content_length=int(
                section(self.app_config, "pipeline").get("min_content_length", MIN_CONTENT_LENGTH)
            ),
        )

    def options_for(self, request: GoRequest) -> PipelineOptions:
        return request.to_options(section(self.app_config, "pipeline", "defaults"))

    async def prepare(self, request: GoRequest) -> PreparedAnswer:
        """Run every stage up to opening the answer stream.

        Raises a :class:`~searchrag.errors.PipelineError` on fatal faults; no
        client output exists yet at that point.
        """

        options = self.options_for(request)
        message = request.message
        logger.info("Received query: %s", message)

        rephrased = await self.rephraser.rephrase(message)
        stubs = await self.search_service.search(rephrased, options.pages_to_scan)
        groups = await self._process_sources(stubs, message, options)
        citations = build_citations(groups)

        logger.info("RAG complete with %s sources; requesting answer stream.", len(groups))
        fragments = await self.synthesizer.stream_answer(
            message, groups, embed_sources=options.embed_sources_in_answer
        )
        return PreparedAnswer(
            message=message,
            options=options,
            citations=citations,
            groups=groups,
            fragments=fragments,
        )

    async def _process_sources(
        self,
        stubs: List[SearchResultStub],
        message: str,
        options: PipelineOptions,
    ) -> List[SourceGroup]:
        results = await asyncio.gather(
            *(self.source_processor.process(stub, message, options) for stub in stubs)
        )
        groups = [group for group in results if group is not None]
        logger.info("Processed %s of %s sources.", len(groups), len(stubs))
        return groups

    async def stream(self, prepared: PreparedAnswer) -> AsyncIterator[str]:
        """Yield answer fragments as they arrive, then the JSON envelope."""

        parts: List[str] = []
        fragments = prepared.fragments
        try:
            async for fragment in fragments:
                if fragment.is_final:
                    break
                parts.append(fragment.text)
                yield fragment.text
        except Exception:
            logger.exception("Answer stream failed after %s fragments.", len(parts))
        finally:
            aclose = getattr(fragments, "aclose", None)
            if aclose is not None:
                await aclose()

        answer = "".join(parts)
        suggested = None
        if prepared.options.return_follow_up_questions:
            suggested = await self._follow_up_questions(answer)

        envelope = ResponseEnvelope(
            user_message=prepared.message,
            sources=prepared.citations if prepared.options.return_sources else None,
            answer=answer,
            suggested_questions=suggested,
        )
        yield ENVELOPE_SEPARATOR + json.dumps(envelope.to_payload(), ensure_ascii=False)

    async def _follow_up_questions(self, answer: str) -> Optional[List[str]]:
        try:
            return await self.follow_up.generate(answer)
        except FollowUpParseError as exc:
            logger.warning("Omitting follow-up questions: %s", exc)
        except Exception:
            logger.exception("Follow-up generation failed; omitting suggested questions.")
        return None

    async def run(self, request: GoRequest) -> AsyncIterator[str]:
        prepared = await self.prepare(request)
        async for piece in self.stream(prepared):
            yield piece
