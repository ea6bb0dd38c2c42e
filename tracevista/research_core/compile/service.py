from __future__ import annotations

from typing import Iterable

from tracevista.models.entities import SearchResult

DEFAULT_LOW_RESULTS_THRESHOLD = 5


def dedupe(results: Iterable[SearchResult]) -> list[SearchResult]:
    """Keep the first result for each normalized (title, url); drop later repeats."""
    seen: set[tuple[str, str]] = set()
    unique: list[SearchResult] = []
    for result in results:
        key = result.dedupe_key
        if key in seen:
            continue
        seen.add(key)
        unique.append(result)
    return unique


def rank(results: Iterable[SearchResult]) -> list[SearchResult]:
    """Sort by relevance descending; the sort is stable so ties keep fetch order."""
    return sorted(results, key=lambda r: r.relevance_score, reverse=True)


def compile_results(results: Iterable[SearchResult]) -> list[SearchResult]:
    return rank(dedupe(results))


def is_low_signal(count: int, threshold: int = DEFAULT_LOW_RESULTS_THRESHOLD) -> bool:
    return count < threshold


def guard(
    compiled_results: list[SearchResult],
    threshold: int = DEFAULT_LOW_RESULTS_THRESHOLD,
) -> dict[str, bool]:
    """Flag a sparse result set. Never pads the list; a low count is reported, not hidden."""
    return {"has_low_results": is_low_signal(len(compiled_results), threshold)}
