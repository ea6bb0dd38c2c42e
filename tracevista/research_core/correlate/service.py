"""Cross-source entity correlation.

Entities are grouped by identity key across every fetched result, before the
display list is deduplicated, so a repeated result from a second source still
counts toward corroboration. Inputs are never mutated; the correlated view is
built from fresh ``Entity`` objects.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from tracevista.models.entities import Entity, SearchResult, clamp_score, utc_now
from tracevista.research_core.score.service import DEFAULT_SCORING, ScoringConfig

SOURCE_BOOST = 10
MIN_CORROBORATING_SOURCES = 2


@dataclass(slots=True)
class _Group:
    first: Entity
    best_confidence: int
    occurrences: int = 0
    sources: list[str] = field(default_factory=list)


@dataclass(slots=True)
class CorrelationResult:
    entities: list[Entity]
    correlation_score: float


def correlate(
    results: Iterable[SearchResult],
    *,
    config: ScoringConfig = DEFAULT_SCORING,
    source_boost: int = SOURCE_BOOST,
    min_sources: int = MIN_CORROBORATING_SOURCES,
) -> CorrelationResult:
    groups: dict[tuple[str, str], _Group] = {}
    for result in results:
        for entity in result.entities:
            key = entity.key
            group = groups.get(key)
            if group is None:
                group = _Group(first=entity, best_confidence=entity.confidence)
                groups[key] = group
            group.occurrences += 1
            group.best_confidence = max(group.best_confidence, entity.confidence)
            source = result.source or entity.source
            if source not in group.sources:
                group.sources.append(source)

    timestamp = utc_now()
    correlated: list[Entity] = []
    for index, group in enumerate(groups.values()):
        distinct = len(group.sources)
        confidence = clamp_score(group.best_confidence + source_boost * (distinct - 1))
        verified = (
            confidence >= config.verify_threshold
            or distinct >= min_sources
        )
        correlated.append(
            Entity(
                id=f"correlated-{index}",
                type=group.first.type,
                value=group.first.value,
                confidence=confidence,
                source="correlation",
                timestamp=timestamp,
                verified=verified,
                metadata={
                    **group.first.metadata,
                    "occurrences": group.occurrences,
                    "sources": list(group.sources),
                },
            )
        )

    correlated.sort(key=lambda e: e.confidence, reverse=True)
    verified_count = sum(1 for e in correlated if e.verified)
    score = round(verified_count / len(correlated) * 100, 2) if correlated else 0.0
    return CorrelationResult(entities=correlated, correlation_score=score)
