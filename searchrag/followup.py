from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import List

from .errors import FollowUpParseError
from .llm import LLMClient, LLMClientFactory, LLMMessage

logger = logging.getLogger(__name__)

QUESTION_COUNT = 3


@dataclass
class FollowUpConfig:
    llm_section: str = "follow_up"


def parse_questions(content: str, expected: int = QUESTION_COUNT) -> List[str]:
    """Decode the model's array literal, tolerating prose or fences around it."""

    start = content.find("[")
    end = content.rfind("]")
    if start == -1 or end <= start:
        raise FollowUpParseError("No array literal in follow-up response.")
    try:
        parsed = json.loads(content[start : end + 1])
    except json.JSONDecodeError as exc:
        raise FollowUpParseError(f"Malformed follow-up array: {exc}") from exc
    if not isinstance(parsed, list) or not all(isinstance(item, str) for item in parsed):
        raise FollowUpParseError("Follow-up response is not a list of strings.")
    questions = [item.strip() for item in parsed if item.strip()]
    if len(questions) != expected:
        raise FollowUpParseError(f"Expected {expected} follow-up questions, got {len(questions)}.")
    return questions


class FollowUpGenerator:
    """Suggests questions a reader might ask after the answer."""

    def __init__(self, config: FollowUpConfig, llm_factory: LLMClientFactory):
        self.config = config
        self._llm: LLMClient = llm_factory.build(config.llm_section)

    async def generate(self, answer: str) -> List[str]:
        messages = [
            LLMMessage(
                role="system",
                content=(
                    f"You are a question generator. Generate {QUESTION_COUNT} follow-up questions "
                    "based on the provided text. Return the questions in an array format."
                ),
            ),
            LLMMessage(
                role="user",
                content=(
                    f"Generate {QUESTION_COUNT} follow-up questions based on the following text:\n\n"
                    f"{answer}\n\n"
                    'Return the questions in the following format: ["Question 1", "Question 2", "Question 3"]'
                ),
            ),
        ]
        response = await self._llm.generate(messages)
        return parse_questions(response.content)
