"""Async Gemini client for suggesting metadata for many books at once."""
import asyncio
import logging
from typing import List, Optional, Tuple

import httpx

from readlog.client import (
    BASE_URL,
    Suggestion,
    build_request_body,
    parse_suggestion_response,
)

logger = logging.getLogger(__name__)


class AsyncGeminiClient:
    """Async client for parallel metadata suggestions."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gemini-2.5-flash",
        timeout: int = 10,
        max_concurrent: int = 5,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize async client.

        Args:
            api_key: Gemini API key
            model: Model name
            timeout: Request timeout
            max_concurrent: Maximum concurrent requests
            transport: Optional httpx transport (used by tests)
        """
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.semaphore = asyncio.Semaphore(max_concurrent)

        self.client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def suggest(self, title: str, author: str = "") -> Suggestion:
        """
        Suggest metadata for one book asynchronously.

        Returns:
            Suggestion; the default suggestion on any failure
        """
        if not self.api_key:
            logger.error("Gemini API key is missing")
            return Suggestion.default()

        url = f"{BASE_URL}/{self.model}:generateContent"

        # Use semaphore to limit concurrency
        async with self.semaphore:
            try:
                logger.info(f"Async suggestion request: {title}")
                response = await self.client.post(
                    url,
                    params={"key": self.api_key},
                    json=build_request_body(title, author)
                )

                if response.status_code != 200:
                    logger.warning(f"Status {response.status_code} for title: {title}")
                    return Suggestion.default()

                return parse_suggestion_response(response.json()) or Suggestion.default()

            except (httpx.HTTPError, ValueError) as e:
                logger.error(f"Async request failed: {e}")
                return Suggestion.default()

    async def suggest_many(
        self,
        books: List[Tuple[str, str]]
    ) -> List[Suggestion]:
        """
        Suggest metadata for several books in parallel.

        Args:
            books: (title, author) pairs

        Returns:
            Suggestions in the same order as `books`
        """
        tasks = [self.suggest(title, author) for title, author in books]
        return list(await asyncio.gather(*tasks))

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()
