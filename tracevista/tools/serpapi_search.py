from __future__ import annotations

from typing import Any

import httpx

from tracevista.config import settings
from tracevista.errors import ProviderCallError, ProviderErrorCause
from tracevista.tools import web_utils

SERPAPI_SEARCH_URL = "https://serpapi.com/search"


def _map_organic_results(payload: dict[str, Any]) -> list[dict[str, Any]]:
    raw_results = payload.get("organic_results", [])
    if not isinstance(raw_results, list):
        raise ProviderCallError(
            "serpapi",
            "organic_results is not a list",
            cause=ProviderErrorCause.MALFORMED_PAYLOAD,
        )
    mapped: list[dict[str, Any]] = []
    for item in raw_results:
        if not isinstance(item, dict):
            continue
        url = item.get("link", "") or ""
        mapped.append(
            {
                "title": item.get("title", "") or "",
                "snippet": item.get("snippet", "") or "",
                "url": url,
                "source": item.get("displayed_link") or web_utils.extract_domain(url),
            }
        )
    return mapped


async def search(
    query: str,
    *,
    max_results: int = 20,
    location: str | None = None,
) -> list[dict[str, Any]]:
    """Execute a Google search through SerpAPI and normalize organic results."""
    if not settings.serpapi_api_key:
        raise ProviderCallError("serpapi", "SERPAPI_API_KEY is not configured")

    params: dict[str, Any] = {
        "engine": "google",
        "q": query,
        "api_key": settings.serpapi_api_key,
        "num": max_results,
    }
    if location:
        params["location"] = location

    async with httpx.AsyncClient(timeout=30.0) as client:
        response = await client.get(SERPAPI_SEARCH_URL, params=params)
        response.raise_for_status()
        payload = response.json()

    if not isinstance(payload, dict):
        raise ProviderCallError("serpapi", "response is not an object", cause=ProviderErrorCause.MALFORMED_PAYLOAD)
    if payload.get("error") and not payload.get("organic_results"):
        message = str(payload["error"])
        # SerpAPI reports "no results" as an error string on a 200 response.
        if "hasn't returned any results" in message:
            return []
        raise ProviderCallError("serpapi", message, cause=ProviderErrorCause.HTTP_STATUS)
    return _map_organic_results(payload)[:max_results]
