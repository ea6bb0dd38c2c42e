from __future__ import annotations

import random

import pytest

from tracevista.models.entities import SearchResult
from tracevista.research_core.compile.service import compile_results, dedupe, guard, rank


def _result(rid: str, title: str, url: str, *, source: str = "example.com", relevance: int = 0) -> SearchResult:
    return SearchResult(
        id=rid,
        title=title,
        snippet="",
        url=url,
        source=source,
        confidence=50,
        relevance_score=relevance,
        query="q",
    )


def test_dedupe_keeps_first_occurrence():
    first = _result("1", "John Smith - Profile", "https://example.com/p", source="whitepages")
    second = _result("2", "John Smith - Profile", "https://example.com/p", source="truepeoplesearch")

    assert dedupe([first, second]) == [first]


def test_dedupe_key_is_case_and_whitespace_normalized():
    results = [
        _result("1", "John Smith", "https://Example.com/p/"),
        _result("2", "john   SMITH", "https://example.com/p"),
        _result("3", "John Smith", "https://example.com/other"),
    ]

    assert [r.id for r in dedupe(results)] == ["1", "3"]


def test_dedupe_preserves_input_order():
    results = [_result(str(i), f"title {i % 4}", f"https://e.com/{i % 4}") for i in range(10)]

    assert [r.id for r in dedupe(results)] == ["0", "1", "2", "3"]


@pytest.mark.parametrize("seed", range(10))
def test_dedupe_is_idempotent(seed):
    rng = random.Random(seed)
    results = [
        _result(str(i), rng.choice(["A", "a", "B", "C "]), rng.choice(["https://x.com", "https://X.com/", "https://y.com"]))
        for i in range(rng.randint(0, 30))
    ]

    once = dedupe(results)

    assert dedupe(once) == once


def test_rank_breaks_ties_by_fetch_order():
    results = [
        _result("a", "a", "https://a", relevance=10),
        _result("b", "b", "https://b", relevance=40),
        _result("c", "c", "https://c", relevance=10),
        _result("d", "d", "https://d", relevance=40),
    ]

    assert [r.id for r in rank(results)] == ["b", "d", "a", "c"]


def test_compile_dedupes_before_ranking():
    results = [
        _result("low", "Same", "https://s", relevance=5),
        _result("high", "Same", "https://s", relevance=90),
        _result("other", "Other", "https://o", relevance=50),
    ]

    assert [r.id for r in compile_results(results)] == ["other", "low"]


@pytest.mark.parametrize("threshold", [1, 2, 5, 7])
def test_guard_boundary(threshold):
    at_threshold = [_result(str(i), str(i), f"https://e/{i}") for i in range(threshold)]

    assert guard(at_threshold, threshold) == {"has_low_results": False}
    assert guard(at_threshold[:-1], threshold) == {"has_low_results": True}


@pytest.mark.parametrize("count", range(0, 8))
def test_guard_default_threshold(count):
    results = [_result(str(i), str(i), f"https://e/{i}") for i in range(count)]

    assert guard(results)["has_low_results"] is (count < 5)


def test_guard_never_pads_results():
    results = [_result("1", "one", "https://e/1")]

    guard(results)

    assert len(results) == 1
