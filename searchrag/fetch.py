from __future__ import annotations

import logging
from typing import Dict, Optional

import httpx

from .parse import extract_main_content

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)


class ContentFetcher:
    """Downloads a page and returns its visible text.

    Every failure mode (transport error, timeout, non-2xx, unparsable
    markup) yields an empty string instead of an exception.
    """

    def __init__(
        self,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.user_agent = user_agent
        self.timeout = timeout
        self._transport = transport

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "User-Agent": self.user_agent,
            "Accept": "text/html,application/xhtml+xml",
            "Accept-Language": "en-US,en;q=0.9",
        }

    async def fetch_text(self, url: str) -> str:
        logger.info("Fetching page content for %s", url)
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                response = await client.get(url, headers=self.headers)
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as exc:
            logger.error("Fetch failed for %s: %s", url, exc)
            return ""

        if not response.is_success:
            logger.warning("HTTP error %s for %s", response.status_code, url)
            return ""

        try:
            text = extract_main_content(response.text)
        except Exception as exc:
            logger.error("Could not extract text from %s: %s", url, exc)
            return ""
        logger.debug("Extracted %s characters from %s", len(text), url)
        return text
