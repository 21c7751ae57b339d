from __future__ import annotations

import logging
from dataclasses import dataclass

from .errors import RephraseError
from .llm import LLMClient, LLMClientFactory, LLMMessage

logger = logging.getLogger(__name__)

REPHRASE_INSTRUCTIONS = (
    "You are a rephraser and always respond with a rephrased version of the input "
    "that is given to a search engine API. Always be succinct and use the same words "
    "as the input. ONLY RETURN THE REPHRASED VERSION OF THE INPUT."
)


@dataclass
class RephraserConfig:
    llm_section: str = "rephraser"


class QueryRephraser:
    """Turns a conversational question into a search-engine query."""

    def __init__(self, config: RephraserConfig, llm_factory: LLMClientFactory):
        self.config = config
        self._llm: LLMClient = llm_factory.build(config.llm_section)

    async def rephrase(self, message: str) -> str:
        messages = [
            LLMMessage(role="system", content=REPHRASE_INSTRUCTIONS),
            LLMMessage(role="user", content=message),
        ]
        try:
            response = await self._llm.generate(messages)
        except Exception as exc:
            raise RephraseError(f"Could not rephrase query: {exc}") from exc
        rephrased = response.content.strip().strip('"').strip()
        if not rephrased:
            raise RephraseError("Rephraser returned an empty query.")
        logger.info("Rephrased %r as %r", message, rephrased)
        return rephrased
