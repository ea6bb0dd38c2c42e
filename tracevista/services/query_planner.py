from __future__ import annotations

import math
from dataclasses import dataclass
from urllib.parse import quote, urlparse

from tracevista.errors import SubjectValidationError
from tracevista.models.entities import ProviderQuery, SubjectParams

DEFAULT_MAX_QUERIES = 8
WEB_QUERY_COST = 0.005
CREDIT_COST_USD = 0.001
SCRAPE_CATEGORY = "scrape"

MODE_CREDITS = {
    "light": 1,
    "standard": 10,
    "deep": 25,
    "stealth": 50,
}


@dataclass(frozen=True, slots=True)
class ScrapePlatform:
    name: str
    domain: str
    priority: int
    mode: str
    success_rate: float
    average_entities: float
    requires_location: bool
    expected_types: tuple[str, ...]

    @property
    def credit_cost(self) -> int:
        return MODE_CREDITS[self.mode]

    @property
    def yield_score(self) -> float:
        return self.success_rate * self.average_entities / math.sqrt(self.credit_cost)


PEOPLE_SEARCH_PLATFORMS: tuple[ScrapePlatform, ...] = (
    ScrapePlatform("whitepages", "whitepages.com", 1, "stealth", 0.85, 4.2, True, ("phone", "address", "relative")),
    ScrapePlatform("truepeoplesearch", "truepeoplesearch.com", 1, "standard", 0.78, 3.8, True, ("address", "phone", "relative")),
    ScrapePlatform("fastpeoplesearch", "fastpeoplesearch.com", 2, "light", 0.65, 2.9, False, ("relative", "address", "phone")),
    ScrapePlatform("spokeo", "spokeo.com", 2, "deep", 0.72, 3.5, False, ("phone", "email", "social")),
    ScrapePlatform("beenverified", "beenverified.com", 2, "deep", 0.70, 3.1, True, ("address", "phone", "business", "relative")),
)


def validate_subject(params: SubjectParams) -> str:
    name = " ".join((params.name or "").split())
    if not name:
        raise SubjectValidationError("Subject name is required")
    return name


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = " ".join(value.split())
    return value or None


def plan(params: SubjectParams, *, max_queries: int = DEFAULT_MAX_QUERIES) -> list[ProviderQuery]:
    """Build the web-search queries for one subject, highest priority first.

    Categories whose field is missing are omitted. The result is capped at
    ``max_queries`` after a stable sort by priority, so equal priorities keep
    generation order.
    """
    name = validate_subject(params)
    location = _clean(params.location)
    phone = _clean(params.phone)
    email = _clean(params.email)
    address = _clean(params.address)

    candidates: list[tuple[str, str, int]] = [(f'"{name}"', "basic_identity", 1)]
    if location:
        candidates.append((f'"{name}" "{location}"', "location", 1))
    if phone:
        candidates.append((f'"{phone}"', "phone", 2))
        candidates.append((f'"{name}" "{phone}"', "name_phone", 2))
    if email:
        candidates.append((f'"{email}"', "email", 2))
        candidates.append((f'"{name}" "{email}"', "name_email", 2))
    if address:
        candidates.append((f'"{name}" "{address}"', "address", 2))
    candidates.append((f'"{name}" site:linkedin.com', "social_linkedin", 3))
    candidates.append((f'"{name}" site:facebook.com', "social_facebook", 3))
    candidates.append((f'"{name}" site:twitter.com OR site:x.com', "social_twitter", 3))
    if location:
        candidates.append((f'"{name}" "court" OR "record" OR "property" "{location}"', "public_records", 3))
    candidates.append((f'"{name}" "company" OR "business" OR "work"', "professional", 4))

    queries = [
        ProviderQuery(query=query, category=category, priority=priority, estimated_cost=WEB_QUERY_COST)
        for query, category, priority in candidates
    ]
    queries.sort(key=lambda q: q.priority)
    return queries[: max(max_queries, 0)]


def _platform_url(platform: ScrapePlatform, name: str, city: str | None, state: str | None) -> str | None:
    encoded_name = quote(name, safe="")
    has_location = bool(city and state)
    if platform.requires_location and not has_location:
        return None

    if platform.name == "whitepages":
        location = f"{'-'.join(city.split())}-{state}".lower()
        return f"https://www.whitepages.com/name/{encoded_name}/{quote(location, safe='')}"
    if platform.name == "truepeoplesearch":
        return (
            f"https://www.truepeoplesearch.com/results?name={encoded_name}"
            f"&citystatezip={quote(f'{city} {state}', safe='')}"
        )
    if platform.name == "fastpeoplesearch":
        suffix = f"/{quote(f'{city}-{state}', safe='')}" if has_location else ""
        return f"https://www.fastpeoplesearch.com/search/people/{encoded_name}{suffix}"
    if platform.name == "spokeo":
        if has_location:
            return f"https://www.spokeo.com/search?q={encoded_name}&citystate={quote(f'{city}, {state}', safe='')}"
        return f"https://www.spokeo.com/search?q={encoded_name}"
    if platform.name == "beenverified":
        return f"https://www.beenverified.com/people/{encoded_name}/{quote(f'{city}-{state}', safe='')}"
    return None


def plan_scrape_targets(
    params: SubjectParams,
    *,
    platforms: tuple[ScrapePlatform, ...] = PEOPLE_SEARCH_PLATFORMS,
) -> list[ProviderQuery]:
    """People-search pages to fetch through the scraping provider."""
    name = validate_subject(params)
    city = _clean(params.city)
    state = _clean(params.state)

    ordered = sorted(platforms, key=lambda p: (p.priority, -p.yield_score))
    targets: list[ProviderQuery] = []
    for platform in ordered:
        url = _platform_url(platform, name, city, state)
        if url is None:
            continue
        targets.append(
            ProviderQuery(
                query=url,
                category=SCRAPE_CATEGORY,
                priority=platform.priority,
                estimated_cost=platform.credit_cost * CREDIT_COST_USD,
            )
        )
    return targets


def platform_for_url(url: str) -> ScrapePlatform | None:
    host = (urlparse(url).hostname or "").lower()
    if host.startswith("www."):
        host = host[4:]
    for platform in PEOPLE_SEARCH_PLATFORMS:
        if host == platform.domain or host.endswith(f".{platform.domain}"):
            return platform
    return None
