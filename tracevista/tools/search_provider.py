from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from loguru import logger

from tracevista.config import settings
from tracevista.models.entities import ProviderQuery
from tracevista.services.query_planner import SCRAPE_CATEGORY, WEB_QUERY_COST
from tracevista.tools import serpapi_search, tavily_search


@dataclass
class RawProviderResult:
    """What one adapter call returned, before normalization.

    ``items`` are loosely shaped dicts; the orchestrator accepts
    ``title``/``name``, ``snippet``/``content``/``description``, ``url``/``link``
    and ``source``/``displayed_link``. ``cost`` and ``credits`` report actual
    spend; ``None`` means "same as estimated".
    """

    provider: str
    items: list[dict[str, Any]] = field(default_factory=list)
    cost: float | None = None
    credits: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class ProviderAdapter(Protocol):
    name: str
    priority: int

    def accepts(self, query: ProviderQuery) -> bool: ...

    def estimate(self, query: ProviderQuery) -> tuple[float, int]: ...

    async def call(self, query: ProviderQuery) -> RawProviderResult | Exception: ...


class WebSearchAdapter:
    """General web search: SerpAPI first, Tavily as fallback."""

    name = "web_search"

    def __init__(self, *, priority: int = 1, max_results: int | None = None, location: str | None = None):
        self.priority = priority
        self.max_results = max_results or settings.search_max_results
        self.location = location

    def accepts(self, query: ProviderQuery) -> bool:
        return query.category != SCRAPE_CATEGORY

    def estimate(self, query: ProviderQuery) -> tuple[float, int]:
        return (query.estimated_cost or WEB_QUERY_COST, 0)

    async def call(self, query: ProviderQuery) -> RawProviderResult:
        provider = settings.search_provider.lower().strip()
        use_fallback = settings.search_fallback_to_tavily

        if provider == "tavily":
            items = await tavily_search.search(query.query, max_results=self.max_results)
            return RawProviderResult(provider=self.name, items=items, metadata={"backend": "tavily"})

        if provider == "serpapi":
            try:
                items = await serpapi_search.search(
                    query.query,
                    max_results=self.max_results,
                    location=self.location,
                )
                if items or not use_fallback:
                    return RawProviderResult(provider=self.name, items=items, metadata={"backend": "serpapi"})
                fallback_reason = "serpapi returned zero results"
            except Exception as e:
                if not use_fallback:
                    raise
                fallback_reason = str(e)

            logger.warning(f"Web search falling back to tavily for {query.category}: {fallback_reason}")
            items = await tavily_search.search(query.query, max_results=self.max_results)
            return RawProviderResult(
                provider=self.name,
                items=items,
                metadata={
                    "backend": "tavily",
                    "fallback_from": "serpapi",
                    "fallback_reason": fallback_reason,
                },
            )

        raise ValueError(f"Unsupported SEARCH_PROVIDER: {settings.search_provider}")
