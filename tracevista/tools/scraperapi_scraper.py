from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx
from loguru import logger

from tracevista.config import settings
from tracevista.errors import ProviderCallError, ProviderErrorCause
from tracevista.models.entities import ProviderQuery
from tracevista.services.query_planner import CREDIT_COST_USD, MODE_CREDITS, SCRAPE_CATEGORY, platform_for_url
from tracevista.tools import web_utils
from tracevista.tools.search_provider import RawProviderResult

SCRAPERAPI_BASE_URL = "https://api.scraperapi.com"


@dataclass
class CreditInfo:
    remaining: int
    total: int


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def parse_credit_info(payload: Any) -> CreditInfo:
    """Read remaining/total credits from an account payload.

    The account endpoint has answered in several shapes over time. Anything we
    cannot read is treated as zero remaining credits.
    """
    if not isinstance(payload, dict):
        return CreditInfo(remaining=0, total=0)

    total = 0
    for key in ("requestLimit", "totalRequests", "maxCredits"):
        value = _as_int(payload.get(key))
        if value:
            total = value
            break

    used = _as_int(payload.get("requestCount"))
    if total and used is not None:
        return CreditInfo(remaining=max(0, total - used), total=total)

    for key in ("remainingRequests", "credits"):
        value = _as_int(payload.get(key))
        if value is not None:
            return CreditInfo(remaining=max(0, value), total=total)

    return CreditInfo(remaining=0, total=total)


async def fetch_credit_info(http_client: httpx.AsyncClient | None = None) -> CreditInfo:
    if not settings.scraperapi_api_key:
        return CreditInfo(remaining=0, total=0)

    async def _do_request(client: httpx.AsyncClient) -> Any:
        response = await client.get(f"{SCRAPERAPI_BASE_URL}/account", params={"api_key": settings.scraperapi_api_key})
        response.raise_for_status()
        return response.json()

    try:
        if http_client is None:
            async with httpx.AsyncClient(timeout=15.0) as client:
                payload = await _do_request(client)
        else:
            payload = await _do_request(http_client)
    except (httpx.HTTPError, ValueError) as e:
        logger.warning(f"ScraperAPI account lookup failed: {e}")
        return CreditInfo(remaining=0, total=0)
    return parse_credit_info(payload)


def _mode_for(url: str) -> tuple[str, str]:
    platform = platform_for_url(url)
    if platform is not None:
        return platform.name, platform.mode
    mode = settings.scrape_mode if settings.scrape_mode in MODE_CREDITS else "standard"
    return web_utils.extract_domain(url) or "scraperapi", mode


def build_request_params(url: str, mode: str) -> dict[str, str]:
    params = {
        "api_key": settings.scraperapi_api_key,
        "url": url,
        "render": "true" if mode != "light" else "false",
    }
    if settings.scrape_country:
        params["country_code"] = settings.scrape_country
    if mode == "stealth":
        params["residential"] = "true"
        params["keep_headers"] = "true"
    elif mode == "deep":
        params["premium"] = "true"
        params["keep_headers"] = "true"
    return params


class ScraperApiAdapter:
    """Fetches people-search result pages through ScraperAPI."""

    name = "scraperapi"

    def __init__(self, *, priority: int = 3, max_credits: int | None = None):
        self.priority = priority
        self.max_credits = settings.default_max_credits if max_credits is None else max_credits

    def accepts(self, query: ProviderQuery) -> bool:
        return query.category == SCRAPE_CATEGORY

    def estimate(self, query: ProviderQuery) -> tuple[float, int]:
        _, mode = _mode_for(query.query)
        credits = MODE_CREDITS[mode]
        return (credits * CREDIT_COST_USD, credits)

    async def available_credits(self) -> int:
        info = await fetch_credit_info()
        return min(info.remaining, self.max_credits)

    async def call(self, query: ProviderQuery) -> RawProviderResult:
        if not settings.scraperapi_api_key:
            raise ProviderCallError(self.name, "SCRAPERAPI_API_KEY is not configured")
        url = query.query
        if not web_utils.is_valid_url(url):
            raise ProviderCallError(self.name, f"not a scrapeable url: {url}", cause=ProviderErrorCause.MALFORMED_PAYLOAD)

        source, mode = _mode_for(url)
        async with httpx.AsyncClient(timeout=60.0) as client:
            response = await client.get(f"{SCRAPERAPI_BASE_URL}/", params=build_request_params(url, mode))
            response.raise_for_status()
            html = response.text

        title, text = web_utils.html_to_text(html)
        credits = MODE_CREDITS[mode]
        item = {
            "title": title or f"{source} results",
            "snippet": text,
            "url": url,
            "source": source,
        }
        return RawProviderResult(
            provider=self.name,
            items=[item] if text else [],
            cost=credits * CREDIT_COST_USD,
            credits=credits,
            metadata={"mode": mode, "platform": source},
        )
