"""Deterministic confidence and relevance scoring.

Every rule is additive over independent signals and clamped to 0..100, so each
score is monotonic in the signals it reads. All weights live on
``ScoringConfig`` so callers can recalibrate them without touching the rules.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Iterable

from tracevista.models.entities import (
    Entity,
    EntityType,
    SearchResult,
    SubjectParams,
    clamp_score,
)

KNOWN_AREA_CODES: dict[str, str] = {
    "212": "New York, NY",
    "213": "Los Angeles, CA",
    "312": "Chicago, IL",
    "404": "Atlanta, GA",
    "713": "Houston, TX",
    "405": "Central Oklahoma",
    "580": "Southern Oklahoma",
    "918": "Eastern Oklahoma",
}

TOLL_FREE_PREFIXES = ("800", "888", "877", "866", "855", "844", "833")

STREET_SUFFIXES = (
    "Street",
    "St",
    "Avenue",
    "Ave",
    "Road",
    "Rd",
    "Boulevard",
    "Blvd",
    "Drive",
    "Dr",
    "Lane",
    "Ln",
    "Court",
    "Ct",
    "Circle",
    "Cir",
    "Way",
    "Place",
    "Pl",
)

COMMON_EMAIL_DOMAINS = ("gmail.com", "yahoo.com", "hotmail.com", "outlook.com")
PLACEHOLDER_NAMES = ("John Doe", "Jane Doe", "Test User")
SOCIAL_DOMAINS = ("linkedin.com", "facebook.com")
PEOPLE_SEARCH_SOURCES = (
    "truepeoplesearch",
    "whitepages",
    "spokeo",
    "fastpeoplesearch",
    "peoplesearchnow",
    "truthfinder",
    "beenverified",
)

_VALID_AREA_CODE = re.compile(r"^[2-9]\d{2}$")
_CANONICAL_PHONE = re.compile(r"^\(\d{3}\)\s\d{3}-\d{4}$")
_EMAIL_SHAPE = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
_CAPITALIZED_NAME = re.compile(r"^[A-Z][a-z]+ [A-Z][a-z]+")
_STREET_SUFFIX = re.compile(r"\b(" + "|".join(STREET_SUFFIXES) + r")\b", re.IGNORECASE)
_DISPLAY_PHONE = re.compile(r"\((\d{3})\)\s?\d{3}-\d{4}")

# single-source verification at extraction time; fixed-shape identifiers always verify
TYPE_VERIFY_THRESHOLDS: dict[str, int] = {
    "phone": 80,
    "email": 70,
    "address": 60,
    "name": 50,
    "vin": 0,
    "ssn_masked": 0,
}


@dataclass(frozen=True)
class ScoringConfig:
    # phone
    phone_base: int = 50
    phone_valid_area_code: int = 20
    phone_known_region: int = 15
    phone_canonical_format: int = 10
    phone_not_toll_free: int = 5
    known_area_codes: dict[str, str] = field(default_factory=lambda: dict(KNOWN_AREA_CODES))
    toll_free_prefixes: tuple[str, ...] = TOLL_FREE_PREFIXES

    # email
    email_base: int = 40
    email_common_domain: int = 10
    email_custom_domain: int = 25
    email_valid_shape: int = 20
    email_length_bonus: int = 15
    email_length_range: tuple[int, int] = (6, 49)
    common_email_domains: tuple[str, ...] = COMMON_EMAIL_DOMAINS

    # address
    address_base: int = 30
    address_has_digit: int = 20
    address_street_suffix: int = 25
    address_location_match: int = 15
    address_length_bonus: int = 10
    address_length_range: tuple[int, int] = (11, 99)

    # name
    name_base: int = 25
    name_capitalized: int = 20
    name_not_placeholder: int = 15
    name_shares_subject_token: int = 20
    name_length_bonus: int = 20
    name_length_range: tuple[int, int] = (6, 49)
    placeholder_names: tuple[str, ...] = PLACEHOLDER_NAMES

    # fixed-shape identifiers
    vin_confidence: int = 95
    ssn_masked_confidence: int = 90

    # post-extraction adjustments
    adjust_noreply_penalty: int = 20
    adjust_address_without_digit: int = 15

    # result relevance
    relevance_title_exact: int = 30
    relevance_snippet_exact: int = 20
    relevance_title_word: int = 5
    relevance_snippet_word: int = 3
    relevance_min_word_length: int = 3

    # result confidence
    result_base: int = 50
    result_title_match: int = 20
    result_snippet_match: int = 15
    result_social_domain: int = 10
    result_location_match: int = 20
    result_area_code_mention: int = 12
    result_matching_phone: int = 18
    result_people_search_source: int = 10
    social_domains: tuple[str, ...] = SOCIAL_DOMAINS
    people_search_sources: tuple[str, ...] = PEOPLE_SEARCH_SOURCES

    # verification
    verify_threshold: int = 70
    type_verify_thresholds: dict[str, int] = field(default_factory=lambda: dict(TYPE_VERIFY_THRESHOLDS))
    high_confidence_threshold: int = 70

    def verify_threshold_for(self, entity_type: EntityType | str) -> int:
        return self.type_verify_thresholds.get(EntityType(entity_type).value, self.verify_threshold)


DEFAULT_SCORING = ScoringConfig()


def _within(length: int, bounds: tuple[int, int]) -> bool:
    return bounds[0] <= length <= bounds[1]


def phone_confidence(raw_match: str, area_code: str, config: ScoringConfig = DEFAULT_SCORING) -> int:
    score = config.phone_base
    if _VALID_AREA_CODE.match(area_code):
        score += config.phone_valid_area_code
    if area_code in config.known_area_codes:
        score += config.phone_known_region
    if _CANONICAL_PHONE.match(raw_match.strip()):
        score += config.phone_canonical_format
    if area_code not in config.toll_free_prefixes:
        score += config.phone_not_toll_free
    return clamp_score(score)


def email_confidence(email: str, config: ScoringConfig = DEFAULT_SCORING) -> int:
    domain = email.rsplit("@", 1)[-1].lower() if "@" in email else ""
    score = config.email_base
    if domain in config.common_email_domains:
        score += config.email_common_domain
    else:
        score += config.email_custom_domain
    if _EMAIL_SHAPE.match(email):
        score += config.email_valid_shape
    if _within(len(email), config.email_length_range):
        score += config.email_length_bonus
    return clamp_score(score)


def address_confidence(
    address: str,
    search_location: str | None = None,
    config: ScoringConfig = DEFAULT_SCORING,
) -> int:
    score = config.address_base
    if any(ch.isdigit() for ch in address):
        score += config.address_has_digit
    if _STREET_SUFFIX.search(address):
        score += config.address_street_suffix
    if search_location and search_location.strip().lower() in address.lower():
        score += config.address_location_match
    if _within(len(address), config.address_length_range):
        score += config.address_length_bonus
    return clamp_score(score)


def name_confidence(
    name: str,
    search_name: str | None = None,
    config: ScoringConfig = DEFAULT_SCORING,
) -> int:
    score = config.name_base
    if _CAPITALIZED_NAME.match(name):
        score += config.name_capitalized
    if name not in config.placeholder_names:
        score += config.name_not_placeholder
    if search_name and shares_name_token(name, search_name):
        score += config.name_shares_subject_token
    if _within(len(name), config.name_length_range):
        score += config.name_length_bonus
    return clamp_score(score)


def shares_name_token(name: str, search_name: str) -> bool:
    name_parts = set(name.lower().split())
    return any(part in name_parts for part in search_name.lower().split())


def adjust_entity_confidence(entity: Entity, config: ScoringConfig = DEFAULT_SCORING) -> int:
    """Second-pass confidence tweaks applied once an entity's base score is known."""
    score = entity.confidence
    if entity.type == EntityType.EMAIL:
        lowered = entity.value.lower()
        if "noreply" in lowered or "donotreply" in lowered:
            score -= config.adjust_noreply_penalty
    elif entity.type == EntityType.ADDRESS:
        if not any(ch.isdigit() for ch in entity.value):
            score -= config.adjust_address_without_digit
    return clamp_score(score)


def _query_phrase_and_words(query: str, min_word_length: int) -> tuple[str, list[str]]:
    tokens = [
        token
        for token in query.replace('"', " ").lower().split()
        if ":" not in token and token != "or"
    ]
    phrase = " ".join(tokens)
    words = [token.strip(",.;") for token in tokens]
    return phrase, [word for word in words if len(word) >= min_word_length]


def relevance_score(
    title: str,
    snippet: str,
    query: str,
    config: ScoringConfig = DEFAULT_SCORING,
) -> int:
    title_lower = (title or "").lower()
    snippet_lower = (snippet or "").lower()
    phrase, words = _query_phrase_and_words(query, config.relevance_min_word_length)

    score = 0
    if phrase and phrase in title_lower:
        score += config.relevance_title_exact
    if phrase and phrase in snippet_lower:
        score += config.relevance_snippet_exact
    for word in words:
        if word in title_lower:
            score += config.relevance_title_word
        if word in snippet_lower:
            score += config.relevance_snippet_word
    return clamp_score(score)


def result_confidence(
    *,
    title: str,
    snippet: str,
    source: str,
    url: str,
    query: str,
    params: SubjectParams | None = None,
    config: ScoringConfig = DEFAULT_SCORING,
) -> int:
    title_lower = (title or "").lower()
    snippet_lower = (snippet or "").lower()
    origin = f"{source} {url}".lower()
    phrase, _ = _query_phrase_and_words(query, config.relevance_min_word_length)

    score = config.result_base
    if phrase and phrase in title_lower:
        score += config.result_title_match
    if phrase and phrase in snippet_lower:
        score += config.result_snippet_match
    if any(domain in origin for domain in config.social_domains):
        score += config.result_social_domain

    if params is not None:
        text = f"{title_lower} {snippet_lower}"
        if params.city and params.state:
            if params.city.lower() in text and params.state.lower() in text:
                score += config.result_location_match
        area_code = params.phone_area_code
        if area_code:
            if area_code in text:
                score += config.result_area_code_mention
            for match in _DISPLAY_PHONE.finditer(snippet or ""):
                if match.group(1) == area_code:
                    score += config.result_matching_phone

    if any(site in origin for site in config.people_search_sources):
        score += config.result_people_search_source
    return clamp_score(score)


def accuracy_metrics(
    results: Iterable[SearchResult],
    entities: Iterable[Entity],
    config: ScoringConfig = DEFAULT_SCORING,
) -> dict[str, Any]:
    results = list(results)
    entities = list(entities)
    total = len(results)
    high = sum(1 for r in results if r.confidence >= config.high_confidence_threshold)
    overall = round(sum(r.confidence for r in results) / total) if total else 0
    quality = round(high / total * 100) if total else 0
    return {
        "overall_confidence": overall,
        "data_quality_score": quality,
        "total_results": total,
        "high_confidence_results": high,
        "verified_entities": sum(1 for e in entities if e.verified),
        "sources_count": len({r.source for r in results}),
        "completeness": min(100, round(total / 10 * 100)),
    }
