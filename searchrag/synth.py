from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import AsyncIterator, Dict, Iterable, List

from .errors import SynthesisError
from .llm import LLMClient, LLMClientFactory, LLMMessage, StreamFragment
from .types import SourceCitation, SourceGroup

logger = logging.getLogger(__name__)

NO_RESULTS_ANSWER = "No relevant results found."


@dataclass
class SynthesizerConfig:
    llm_section: str = "synthesizer"


def build_citations(groups: Iterable[SourceGroup]) -> List[SourceCitation]:
    """One citation per distinct link, in first-seen order."""

    citations: Dict[str, SourceCitation] = {}
    for group in groups:
        for chunk in group.chunks:
            if chunk.link in citations:
                continue
            citations[chunk.link] = SourceCitation(title=chunk.title, link=chunk.link)
    return list(citations.values())


def build_evidence(groups: Iterable[SourceGroup]) -> str:
    """Serialize ranked chunks, grouped by source, for the answer prompt."""

    payload = [
        [
            {
                "pageContent": chunk.text,
                "metadata": {"link": chunk.link, "title": chunk.title},
            }
            for chunk in group.chunks
        ]
        for group in groups
    ]
    return json.dumps(payload, ensure_ascii=False)


class AnswerSynthesizer:
    def __init__(self, config: SynthesizerConfig, llm_factory: LLMClientFactory):
        self.config = config
        self._llm: LLMClient = llm_factory.build(config.llm_section)

    def build_messages(
        self,
        message: str,
        groups: List[SourceGroup],
        embed_sources: bool = False,
    ) -> List[LLMMessage]:
        instructions = [
            f'- Here is my query "{message}", respond back with an answer that is as long '
            f'as possible. If you can\'t find any relevant results, respond with "{NO_RESULTS_ANSWER}"'
        ]
        if embed_sources:
            instructions.append(
                "- Return the sources used in the response with iterable numbered "
                "markdown style annotations."
            )
        return [
            LLMMessage(role="system", content="\n".join(instructions)),
            LLMMessage(
                role="user",
                content=f" - Here are the top results from a similarity search: {build_evidence(groups)}. ",
            ),
        ]

    async def stream_answer(
        self,
        message: str,
        groups: List[SourceGroup],
        embed_sources: bool = False,
    ) -> AsyncIterator[StreamFragment]:
        messages = self.build_messages(message, groups, embed_sources=embed_sources)
        try:
            return await self._llm.stream(messages)
        except Exception as exc:
            raise SynthesisError(f"Could not start answer stream: {exc}") from exc
