"""Location history and follow-up suggestions derived from a finished run."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable

from tracevista.models.entities import Entity, EntityType, SearchResult, SubjectParams

US_STATES = (
    "AL AK AZ AR CA CO CT DE FL GA HI ID IL IN IA KS KY LA ME MD MA MI MN MS MO MT NE NV NH "
    "NJ NM NY NC ND OH OK OR PA RI SC SD TN TX UT VT VA WA WV WI WY"
).split()

_STATE_ALT = "|".join(US_STATES)
LOCATION_PATTERNS = (
    re.compile(r"\b([A-Z][a-z]+(?: [A-Z][a-z]+)?),\s*(" + _STATE_ALT + r")\b"),
    re.compile(r"\blives? in ([A-Z][A-Za-z]+(?: [A-Z][A-Za-z]+)?),?\s+(" + _STATE_ALT + r")\b", re.IGNORECASE),
    re.compile(r"\bcurrent address[:\s]+([A-Z][A-Za-z]+(?: [A-Z][A-Za-z]+)?),?\s+(" + _STATE_ALT + r")\b", re.IGNORECASE),
)

PREMIUM_PEOPLE_SEARCH = ("truepeoplesearch", "whitepages", "spokeo")
LOW_CORRELATION_THRESHOLD = 50


@dataclass
class LocationChain:
    current_location: str | None = None
    previous_locations: list[str] = field(default_factory=list)
    location_confidence: int = 0


def _format_location(city: str, state: str) -> str:
    return f"{' '.join(w.capitalize() for w in city.split())}, {state.upper()}"


def analyze_location_chain(results: list[SearchResult]) -> LocationChain:
    """Rank location mentions so earlier, more confident results win."""
    mentions: list[tuple[int, int, str]] = []
    total = len(results)
    for index, result in enumerate(results):
        recency = total - index
        for pattern in LOCATION_PATTERNS:
            for match in pattern.finditer(result.snippet or ""):
                location = _format_location(match.group(1), match.group(2))
                mentions.append((recency + result.confidence, result.confidence, location))

    mentions.sort(key=lambda m: m[0], reverse=True)
    seen: set[str] = set()
    unique: list[tuple[int, str]] = []
    for _, confidence, location in mentions:
        if location.lower() in seen:
            continue
        seen.add(location.lower())
        unique.append((confidence, location))

    if not unique:
        return LocationChain()
    return LocationChain(
        current_location=unique[0][1],
        previous_locations=[location for _, location in unique[1:4]],
        location_confidence=unique[0][0],
    )


def generate_recommendations(
    results: list[SearchResult],
    entities: Iterable[Entity],
    correlation_score: float,
    params: SubjectParams | None = None,
) -> list[str]:
    recommendations: list[str] = []
    chain = analyze_location_chain(results)

    searched = (params.location or "").lower() if params is not None else None
    if chain.current_location and searched is not None and chain.current_location.lower() != searched:
        recommendations.append(
            f"Subject may have moved to {chain.current_location}. Check records in this new location."
        )
    if chain.previous_locations:
        recommendations.append(
            f"Previous locations found: {', '.join(chain.previous_locations)}. Consider checking historical records."
        )

    if correlation_score < LOW_CORRELATION_THRESHOLD:
        recommendations.append(
            "Low data correlation detected. Consider expanding search to include maiden names, "
            "nicknames, or middle initials."
        )

    phones = [e.value for e in entities if e.type == EntityType.PHONE and e.verified]
    if len(phones) > 1:
        recommendations.append(
            f"Multiple phone numbers found: {', '.join(phones)}. Cross-reference for current contact."
        )

    if not any(site in (r.source or "").lower() for r in results for site in PREMIUM_PEOPLE_SEARCH):
        recommendations.append(
            "Consider checking premium people search databases (TruePeopleSearch, Spokeo, WhitePages) "
            "for more comprehensive results."
        )
    return recommendations
