"""
Tavily Search Client

Async client for the Tavily /search endpoint, used by the evidence aggregator.

search_aggregated() issues one request per query concurrently over a shared
aiohttp session, skips queries that fail, and merges the results:

    {
        'all_results':    [...],   # every result, in query order
        'unique_results': [...],   # URL-deduplicated (when requested)
        'response_count': int,     # queries that succeeded
    }
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence

import aiohttp

from signal_agent.exceptions import SearchConfigurationError, TransientFetchError
from signal_agent.utils.config import SEARCH_TIMEOUT_SECONDS, TAVILY_API_KEY, TAVILY_API_URL

logger = logging.getLogger(__name__)


class TavilySearchClient:
    """Thin async wrapper around the Tavily REST API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: str = TAVILY_API_URL,
        timeout: float = SEARCH_TIMEOUT_SECONDS,
    ):
        self.api_key = api_key if api_key is not None else TAVILY_API_KEY
        self.api_url = api_url
        self.timeout = timeout

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    @staticmethod
    def _normalize_result(item: Dict[str, Any]) -> Dict[str, Any]:
        return {
            'title': item.get('title') or '',
            'url': item.get('url') or '',
            'content': item.get('content') or '',
            'score': item.get('score', 0.0),
            'published_date': item.get('published_date'),
        }

    async def search(
        self,
        session: aiohttp.ClientSession,
        query: str,
        search_depth: str = "basic",
        max_results: int = 5,
    ) -> List[Dict[str, Any]]:
        """
        Run one Tavily search.

        Returns:
            Normalized result dicts (title, url, content, score, published_date)

        Raises:
            TransientFetchError: On non-200 status or unreadable payload
        """
        payload = {
            "api_key": self.api_key,
            "query": query,
            "search_depth": search_depth,
            "max_results": max_results,
        }

        async with session.post(self.api_url, json=payload, headers=self._headers()) as response:
            if response.status != 200:
                body = await response.text()
                raise TransientFetchError(
                    f"Tavily API error {response.status}: {body[:200]}",
                    status_code=response.status,
                )
            try:
                data = await response.json()
            except (aiohttp.ContentTypeError, ValueError) as e:
                raise TransientFetchError(f"Tavily returned unreadable payload: {e}") from e

        results = data.get('results') if isinstance(data, dict) else None
        if not isinstance(results, list):
            return []
        return [self._normalize_result(item) for item in results if isinstance(item, dict)]

    async def search_aggregated(
        self,
        queries: Sequence[str],
        search_depth: str = "basic",
        max_results: int = 5,
        deduplicate_results: bool = True,
    ) -> Dict[str, Any]:
        """
        Run several searches concurrently and merge their results.

        Args:
            queries: Query strings, one request each
            search_depth: 'basic' or 'advanced'
            max_results: Per-query result cap
            deduplicate_results: Also build URL-deduplicated 'unique_results'

        Returns:
            Dict with all_results, unique_results, response_count

        Raises:
            SearchConfigurationError: If no API key is configured
            TransientFetchError: If every query failed
        """
        if not self.is_configured:
            raise SearchConfigurationError("Tavily client not available - API key not configured")

        if not queries:
            return {'all_results': [], 'unique_results': [], 'response_count': 0}

        timeout = aiohttp.ClientTimeout(total=self.timeout)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            tasks = [self.search(session, query, search_depth, max_results) for query in queries]
            responses = await asyncio.gather(*tasks, return_exceptions=True)

        all_results: List[Dict[str, Any]] = []
        errors: List[BaseException] = []
        for query, response in zip(queries, responses):
            if isinstance(response, BaseException):
                logger.warning(f"Tavily search failed for '{query}': {response}")
                errors.append(response)
                continue
            all_results.extend(response)

        response_count = len(queries) - len(errors)
        if response_count == 0:
            raise TransientFetchError(f"All {len(queries)} Tavily searches failed: {errors[0]}")

        if deduplicate_results:
            seen_urls = set()
            unique_results = []
            for item in all_results:
                if item['url'] in seen_urls:
                    continue
                seen_urls.add(item['url'])
                unique_results.append(item)
        else:
            unique_results = list(all_results)

        logger.info(
            f"Tavily: {response_count}/{len(queries)} queries succeeded, "
            f"{len(all_results)} results ({len(unique_results)} unique)"
        )

        return {
            'all_results': all_results,
            'unique_results': unique_results,
            'response_count': response_count,
        }
