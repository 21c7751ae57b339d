from __future__ import annotations

import abc
import json
import logging
from typing import Any, Dict, List, Optional, Set, Union

import httpx

from .errors import SearchError
from .types import SearchResultStub

logger = logging.getLogger(__name__)

RawResults = Union[str, List[Dict[str, Any]]]


class SearchProvider(abc.ABC):
    """Abstract search provider."""

    def __init__(self, timeout: float = 10.0):
        self.timeout = timeout

    @abc.abstractmethod
    async def search(self, query: str, count: int = 10) -> RawResults:
        """Return raw ``{title, link}`` entries, or a JSON string of them."""
        raise NotImplementedError


class BraveSearchProvider(SearchProvider):
    """Brave search API implementation."""

    def __init__(
        self,
        api_key: str,
        endpoint: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(timeout=timeout)
        self._transport = transport
        if not api_key:
            raise SearchError("Brave API key is not configured (BRAVE_SEARCH_API_KEY).")
        self.api_key = api_key
        self.endpoint = endpoint.rstrip("/")

    async def search(self, query: str, count: int = 10) -> RawResults:
        params = {"q": query, "count": count}
        headers = {
            "Accept": "application/json",
            "X-Subscription-Token": self.api_key,
        }
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.get(self.endpoint, params=params, headers=headers)
            response.raise_for_status()
            payload = response.json()
        return self._parse(payload)

    def _parse(self, payload: Dict[str, Any]) -> List[Dict[str, Any]]:
        web_results = payload.get("web", {}).get("results", [])
        return [
            {
                "title": item.get("title", ""),
                "link": item.get("url", ""),
                "snippet": item.get("description", ""),
            }
            for item in web_results
        ]


def normalize_results(
    raw: RawResults,
    page_count: int,
    excluded_domain: str = "brave.com",
) -> List[SearchResultStub]:
    """Reduce provider output to at most ``page_count`` usable stubs.

    Entries without a title or link, and links pointing back at the search
    provider itself, are dropped before truncating; a repeated link keeps its
    first occurrence.
    """

    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise SearchError(f"Search provider returned malformed JSON: {exc}") from exc
    if not isinstance(raw, list):
        raise SearchError(f"Search provider returned {type(raw).__name__}, expected a list.")

    stubs: List[SearchResultStub] = []
    seen: Set[str] = set()
    for item in raw:
        if not isinstance(item, dict):
            continue
        title = item.get("title")
        link = item.get("link")
        if not title or not link:
            continue
        if excluded_domain and excluded_domain in link:
            logger.debug("Dropping provider-internal result %s", link)
            continue
        if link in seen:
            continue
        seen.add(link)
        stubs.append(SearchResultStub(title=title, link=link))
    return stubs[:page_count]


class SearchService:
    """Runs a provider query and normalizes the hits."""

    def __init__(self, provider: SearchProvider, excluded_domain: str = "brave.com"):
        self.provider = provider
        self.excluded_domain = excluded_domain

    async def search(self, query: str, page_count: int) -> List[SearchResultStub]:
        try:
            raw = await self.provider.search(query, count=page_count)
        except SearchError:
            raise
        except Exception as exc:
            raise SearchError(f"Search request failed: {exc}") from exc
        stubs = normalize_results(raw, page_count, self.excluded_domain)
        logger.info("Search for %r returned %s usable results.", query, len(stubs))
        return stubs
