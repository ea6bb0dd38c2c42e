from __future__ import annotations

import random

import pytest

from tracevista.models.entities import Entity, EntityType, SearchResult
from tracevista.research_core.compile.service import dedupe
from tracevista.research_core.correlate.service import correlate
from tracevista.research_core.extract.service import extract


def _result(rid: str, text: str, source: str, *, title: str | None = None, url: str | None = None) -> SearchResult:
    return SearchResult(
        id=rid,
        title=title or f"result {rid}",
        snippet=text,
        url=url or f"https://{source}.example/{rid}",
        source=source,
        confidence=50,
        relevance_score=0,
        query="q",
        entities=extract(text, source=source),
    )


def _phone(entities):
    return next(e for e in entities if e.type == EntityType.PHONE)


def test_phone_seen_by_two_sources_is_boosted_and_verified():
    results = [
        _result("1", "Phone 212.555.0100", "whitepages"),
        _result("2", "Reach him at (212) 555-0100", "truepeoplesearch"),
    ]
    base = _phone(results[0].entities).confidence

    correlated = correlate(results)
    phone = _phone(correlated.entities)

    assert phone.value == "(212) 555-0100"
    assert phone.confidence >= base + 10
    assert phone.verified is True
    assert phone.metadata["sources"] == ["whitepages", "truepeoplesearch"]
    assert phone.metadata["occurrences"] == 2


def test_single_source_low_confidence_is_not_verified():
    correlated = correlate([_result("1", "contact: John Doe", "example")])

    name = correlated.entities[0]
    assert name.confidence == 65
    assert name.verified is False
    assert correlated.correlation_score == 0.0


def test_second_source_verifies_low_confidence_entity():
    correlated = correlate(
        [
            _result("1", "contact: John Doe", "example"),
            _result("2", "contact: John Doe", "other"),
        ]
    )

    name = correlated.entities[0]
    assert name.confidence == 75
    assert name.verified is True
    assert correlated.correlation_score == 100.0


def test_same_source_twice_is_not_corroboration():
    correlated = correlate(
        [
            _result("1", "contact: John Doe", "example"),
            _result("2", "contact: John Doe", "example"),
        ]
    )

    name = correlated.entities[0]
    assert name.confidence == 65
    assert name.verified is False
    assert name.metadata["occurrences"] == 2


def test_duplicate_results_still_count_both_sources():
    first = _result("1", "Phone 212.555.0100", "whitepages", title="John Smith", url="https://e.com/p")
    second = _result("2", "Phone 212.555.0100", "truepeoplesearch", title="John Smith", url="https://e.com/p")

    correlated = correlate([first, second])

    assert dedupe([first, second]) == [first]
    assert _phone(correlated.entities).metadata["sources"] == ["whitepages", "truepeoplesearch"]
    assert _phone(correlated.entities).verified is True


def test_correlation_does_not_mutate_inputs():
    results = [
        _result("1", "Phone 212.555.0100", "whitepages"),
        _result("2", "Phone 212.555.0100", "spokeo"),
    ]
    before = [(e.id, e.confidence, e.verified) for r in results for e in r.entities]

    correlate(results)

    assert [(e.id, e.confidence, e.verified) for r in results for e in r.entities] == before


def test_correlation_score_is_percentage_verified():
    results = [
        SearchResult(
            id="1",
            title="t",
            snippet="",
            url="https://e",
            source="a",
            confidence=50,
            relevance_score=0,
            query="q",
            entities=[
                Entity(id="x", type=EntityType.NAME, value="Jane Roe", confidence=90, source="a"),
                Entity(id="y", type=EntityType.NAME, value="Jim Roe", confidence=30, source="a"),
            ],
        )
    ]

    assert correlate(results).correlation_score == 50.0


def test_entities_sorted_by_confidence():
    correlated = correlate([_result("1", "contact: John Doe at jane@example.org", "a")])

    confidences = [e.confidence for e in correlated.entities]
    assert confidences == sorted(confidences, reverse=True)


def test_empty_input():
    correlated = correlate([])

    assert correlated.entities == []
    assert correlated.correlation_score == 0.0


@pytest.mark.parametrize("seed", range(15))
def test_new_source_never_lowers_confidence(seed):
    rng = random.Random(seed)
    texts = ["Phone 212.555.0100", "Call (212) 555-0100", "1-212-555-0100 listed", "tel 212 555 0100"]
    sources = [f"source{i}" for i in range(rng.randint(1, 4))]
    results = [_result(str(i), rng.choice(texts), rng.choice(sources)) for i in range(rng.randint(1, 6))]

    before = _phone(correlate(results).entities).confidence
    results.append(_result("new", rng.choice(texts), "brand-new-source"))
    after = _phone(correlate(results).entities).confidence

    assert after >= before
