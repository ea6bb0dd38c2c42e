"""Pattern-based entity extraction from snippet and page text.

Each matcher runs independently over the same text, so one text can yield
several entities of different types and repeated entities of the same type.
Nothing is deduplicated here.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from tracevista.models.entities import Entity, EntityType, utc_now
from tracevista.research_core.score.service import (
    DEFAULT_SCORING,
    STREET_SUFFIXES,
    ScoringConfig,
    address_confidence,
    adjust_entity_confidence,
    email_confidence,
    name_confidence,
    phone_confidence,
    shares_name_token,
)

PATTERNS: dict[EntityType, re.Pattern[str]] = {
    EntityType.PHONE: re.compile(r"(\+?1[-.\s]?)?\(?([0-9]{3})\)?[-.\s]?([0-9]{3})[-.\s]?([0-9]{4})"),
    EntityType.EMAIL: re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Z|a-z]{2,}\b"),
    EntityType.ADDRESS: re.compile(
        r"\d{1,5}\s+([A-Za-z\s]{1,50})\s+(" + "|".join(STREET_SUFFIXES) + r")\b",
        re.IGNORECASE,
    ),
    EntityType.VIN: re.compile(r"\b[A-HJ-NPR-Z0-9]{17}\b"),
    EntityType.SSN_MASKED: re.compile(r"\*{3}-\*{2}-\d{4}|\d{3}-\*{2}-\*{4}"),
    EntityType.NAME: re.compile(r"\b[A-Z][a-z]+ [A-Z][a-z]+(?: [A-Z][a-z]+)?\b"),
}


@dataclass(frozen=True, slots=True)
class ExtractContext:
    search_name: str | None = None
    search_location: str | None = None


def format_phone(area_code: str, exchange: str, subscriber: str) -> str:
    return f"({area_code}) {exchange}-{subscriber}"


def extract(
    text: str,
    context: ExtractContext | None = None,
    *,
    source: str = "extraction",
    config: ScoringConfig = DEFAULT_SCORING,
) -> list[Entity]:
    """Extract typed entities from ``text`` with heuristic confidence."""
    context = context or ExtractContext()
    if not text:
        return []

    timestamp = utc_now()
    entities: list[Entity] = []

    def add(entity_type: EntityType, value: str, confidence: int, **metadata) -> None:
        entity = Entity(
            id=f"{entity_type.value}-{len(entities)}",
            type=entity_type,
            value=value,
            confidence=confidence,
            source=source,
            timestamp=timestamp,
            metadata=metadata,
        )
        entity.confidence = adjust_entity_confidence(entity, config)
        entity.verified = entity.confidence >= config.verify_threshold_for(entity_type)
        entities.append(entity)

    for match in PATTERNS[EntityType.PHONE].finditer(text):
        area_code, exchange, subscriber = match.group(2), match.group(3), match.group(4)
        region = config.known_area_codes.get(area_code)
        add(
            EntityType.PHONE,
            format_phone(area_code, exchange, subscriber),
            phone_confidence(match.group(0), area_code, config),
            raw=match.group(0),
            region=region or "Unknown",
        )

    for match in PATTERNS[EntityType.EMAIL].finditer(text):
        email = match.group(0)
        add(EntityType.EMAIL, email, email_confidence(email, config), domain=email.split("@")[1].lower())

    for match in PATTERNS[EntityType.ADDRESS].finditer(text):
        address = match.group(0)
        add(EntityType.ADDRESS, address, address_confidence(address, context.search_location, config))

    for match in PATTERNS[EntityType.VIN].finditer(text):
        add(EntityType.VIN, match.group(0), config.vin_confidence)

    for match in PATTERNS[EntityType.SSN_MASKED].finditer(text):
        add(EntityType.SSN_MASKED, match.group(0), config.ssn_masked_confidence)

    search_name = (context.search_name or "").strip()
    for match in PATTERNS[EntityType.NAME].finditer(text):
        name = match.group(0)
        if search_name and search_name.lower() in name.lower():
            continue
        candidate_relative = bool(search_name) and shares_name_token(name, search_name)
        add(
            EntityType.NAME,
            name,
            name_confidence(name, search_name or None, config),
            candidate_relative=candidate_relative,
        )

    return entities
