from __future__ import annotations

from typing import Any

from tavily import AsyncTavilyClient

from tracevista.config import settings
from tracevista.errors import ProviderCallError
from tracevista.tools import web_utils


async def search(
    query: str,
    *,
    search_depth: str = "basic",
    max_results: int = 10,
    include_domains: list[str] | None = None,
) -> list[dict[str, Any]]:
    """Execute a Tavily web search and return loosely shaped result items."""
    if not settings.tavily_api_key:
        raise ProviderCallError("tavily", "TAVILY_API_KEY is not configured")

    client = AsyncTavilyClient(api_key=settings.tavily_api_key)

    kwargs: dict[str, Any] = {
        "query": query,
        "search_depth": search_depth,
        "max_results": max_results,
    }
    if include_domains:
        kwargs["include_domains"] = include_domains

    response = await client.search(**kwargs)

    return [
        {
            "title": r.get("title", ""),
            "url": r.get("url", ""),
            "snippet": r.get("content", ""),
            "source": web_utils.extract_domain(r.get("url", "")),
            "score": r.get("score", 0.0),
        }
        for r in response.get("results", [])
    ]
