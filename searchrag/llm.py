from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, Iterable, Optional, Protocol

import httpx

from .config import ConfigError

logger = logging.getLogger(__name__)


@dataclass
class LLMMessage:
    role: str
    content: str


@dataclass
class LLMResponse:
    content: str
    usage: Dict[str, Any]


@dataclass(frozen=True)
class StreamFragment:
    """One piece of a streamed completion.

    A stream always ends with exactly one fragment where ``is_final`` is true
    and ``text`` is empty.
    """

    text: str
    is_final: bool = False


FINAL_FRAGMENT = StreamFragment(text="", is_final=True)


class LLMClient(Protocol):
    """Minimal client interface for generative models."""

    async def generate(self, messages: Iterable[LLMMessage], **kwargs: Any) -> LLMResponse:
        ...

    async def stream(
        self, messages: Iterable[LLMMessage], **kwargs: Any
    ) -> AsyncIterator[StreamFragment]:
        """Open a streamed completion.

        Awaiting this sends the request, so connection and auth failures
        surface here rather than mid-iteration.
        """
        ...


def _payload(messages: Iterable[LLMMessage]) -> list:
    return [{"role": m.role, "content": m.content} for m in messages]


class OpenAIClient:
    """Wrapper over the official OpenAI client.

    ``base_url`` points it at any OpenAI-compatible endpoint (Groq by default
    in ``configs/app.yaml``).
    """

    def __init__(
        self,
        model: str,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: float = 30.0,
    ):
        from openai import AsyncOpenAI

        self._client = AsyncOpenAI(api_key=api_key or None, base_url=base_url or None)
        self.model = model
        self.timeout = timeout

    async def generate(
        self,
        messages: Iterable[LLMMessage],
        **kwargs: Any,
    ) -> LLMResponse:
        response = await self._client.chat.completions.create(
            model=self.model, messages=_payload(messages), timeout=self.timeout, **kwargs
        )
        choice = response.choices[0]
        content = choice.message.content or ""
        usage = response.usage.model_dump() if hasattr(response.usage, "model_dump") else {}
        return LLMResponse(content=content, usage=usage)

    async def stream(
        self,
        messages: Iterable[LLMMessage],
        **kwargs: Any,
    ) -> AsyncIterator[StreamFragment]:
        completion = await self._client.chat.completions.create(
            model=self.model,
            messages=_payload(messages),
            timeout=self.timeout,
            stream=True,
            **kwargs,
        )
        return self._fragments(completion)

    @staticmethod
    async def _fragments(completion: Any) -> AsyncIterator[StreamFragment]:
        try:
            async for chunk in completion:
                if not chunk.choices:
                    continue
                choice = chunk.choices[0]
                text = choice.delta.content if choice.delta else None
                if text:
                    yield StreamFragment(text=text)
                if choice.finish_reason is not None:
                    break
        finally:
            await completion.close()
        yield FINAL_FRAGMENT


class OpenRouterClient:
    """HTTP client for OpenRouter chat completions."""

    def __init__(
        self,
        model: str,
        api_key: str,
        endpoint: str = "https://openrouter.ai/api/v1/chat/completions",
        timeout: float = 40.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not api_key:
            raise ValueError("OpenRouter API key is required.")
        self._transport = transport
        self.model = model
        self.api_key = api_key
        self.endpoint = endpoint
        self.timeout = timeout

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "HTTP-Referer": "https://searchrag.local",
            "X-Title": "searchrag",
        }

    async def generate(
        self,
        messages: Iterable[LLMMessage],
        **kwargs: Any,
    ) -> LLMResponse:
        payload = {"model": self.model, "messages": _payload(messages)}
        payload.update(kwargs)
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.post(self.endpoint, json=payload, headers=self._headers())
            response.raise_for_status()
            data = response.json()
        choice = data["choices"][0]
        content = choice.get("message", {}).get("content", "")
        usage = data.get("usage", {})
        return LLMResponse(content=content, usage=usage)

    async def stream(
        self,
        messages: Iterable[LLMMessage],
        **kwargs: Any,
    ) -> AsyncIterator[StreamFragment]:
        payload = {"model": self.model, "messages": _payload(messages), "stream": True}
        payload.update(kwargs)
        client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
        try:
            request = client.build_request("POST", self.endpoint, json=payload, headers=self._headers())
            response = await client.send(request, stream=True)
            response.raise_for_status()
        except Exception:
            await client.aclose()
            raise
        return self._fragments(client, response)

    @staticmethod
    async def _fragments(
        client: httpx.AsyncClient, response: httpx.Response
    ) -> AsyncIterator[StreamFragment]:
        try:
            async for line in response.aiter_lines():
                if not line.startswith("data:"):
                    continue
                data = line[len("data:") :].strip()
                if data == "[DONE]":
                    break
                try:
                    event = json.loads(data)
                except json.JSONDecodeError:
                    logger.debug("Skipping malformed OpenRouter stream line: %s", data[:80])
                    continue
                choices = event.get("choices") or [{}]
                text = (choices[0].get("delta") or {}).get("content")
                if text:
                    yield StreamFragment(text=text)
                if choices[0].get("finish_reason"):
                    break
        finally:
            await response.aclose()
            await client.aclose()
        yield FINAL_FRAGMENT


class EchoClient:
    """Offline LLM client, used only when a section names ``provider: echo``."""

    def __init__(self, tag: str = "echo"):
        self.tag = tag

    def _echo(self, messages: Iterable[LLMMessage]) -> str:
        collected = "\n\n".join(f"[{m.role}] {m.content}" for m in messages)
        return f"[{self.tag} mock response]\n{collected}"

    async def generate(
        self,
        messages: Iterable[LLMMessage],
        **_: Any,
    ) -> LLMResponse:
        logger.warning("EchoClient returning request payload because no LLM is configured.")
        return LLMResponse(
            content=self._echo(messages),
            usage={"prompt_tokens": 0, "completion_tokens": 0, "total_tokens": 0},
        )

    async def stream(
        self,
        messages: Iterable[LLMMessage],
        **_: Any,
    ) -> AsyncIterator[StreamFragment]:
        logger.warning("EchoClient streaming request payload because no LLM is configured.")
        return self._fragments(self._echo(messages))

    @staticmethod
    async def _fragments(content: str) -> AsyncIterator[StreamFragment]:
        words = content.split(" ")
        for idx, word in enumerate(words):
            yield StreamFragment(text=word if idx == 0 else f" {word}")
        yield FINAL_FRAGMENT


class LLMClientFactory:
    """Factory that builds LLM clients from configuration dictionaries."""

    def __init__(self, config: Dict[str, Any]):
        self.config = config

    def build(self, section: str) -> LLMClient:
        section_cfg = self.config.get(section) or {}
        provider = section_cfg.get("provider")
        if not provider:
            raise ConfigError(f"No LLM provider configured for models.{section}.")
        if provider == "openai":
            model = section_cfg.get("model")
            if not model:
                raise ValueError(f"Missing model for {section} LLM configuration.")
            return OpenAIClient(
                model=model,
                api_key=section_cfg.get("api_key"),
                base_url=section_cfg.get("base_url"),
            )
        if provider == "openrouter":
            model = section_cfg.get("model")
            api_key = section_cfg.get("api_key")
            endpoint = section_cfg.get("endpoint", "https://openrouter.ai/api/v1/chat/completions")
            if not model or not api_key:
                raise ValueError(f"OpenRouter configuration requires model and api_key for {section}.")
            return OpenRouterClient(model=model, api_key=api_key, endpoint=endpoint)
        if provider == "echo":
            return EchoClient(tag=section)
        raise ValueError(f"Unsupported LLM provider: {provider}")
