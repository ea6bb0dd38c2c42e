"""Accumulated state for one investigation across repeated searches.

``reduce`` is pure: it returns a new ``SearchSession`` and never touches the
one it was given. ``SessionStore`` is the only mutable piece, and it only
swaps whole snapshots. Nothing here performs I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Iterable, Union

from tracevista.config import settings
from tracevista.models.entities import AggregatedReport, Entity, SearchResult
from tracevista.research_core.compile.service import (
    DEFAULT_LOW_RESULTS_THRESHOLD,
    compile_results,
    is_low_signal,
)

LOADING_MODULES = ("basic_search", "phone_search", "social_search", "email_search", "public_records")


@dataclass(frozen=True, slots=True)
class LoadingFlags:
    basic_search: bool = False
    phone_search: bool = False
    social_search: bool = False
    email_search: bool = False
    public_records: bool = False

    @property
    def busy(self) -> bool:
        return any(getattr(self, module) for module in LOADING_MODULES)


@dataclass(frozen=True, slots=True)
class SearchSession:
    compiled_results: tuple[SearchResult, ...] = ()
    entities: tuple[Entity, ...] = ()
    search_history: tuple[str, ...] = ()
    has_low_results: bool = False
    loading: LoadingFlags = field(default_factory=LoadingFlags)


@dataclass(frozen=True, slots=True)
class AddResults:
    results: tuple[SearchResult, ...]


@dataclass(frozen=True, slots=True)
class AddEntities:
    entities: tuple[Entity, ...]


@dataclass(frozen=True, slots=True)
class AddToHistory:
    query: str


@dataclass(frozen=True, slots=True)
class SetLoading:
    module: str
    loading: bool

    def __post_init__(self) -> None:
        if self.module not in LOADING_MODULES:
            raise ValueError(f"Unknown loading module: {self.module}")


@dataclass(frozen=True, slots=True)
class ClearAll:
    pass


SessionAction = Union[AddResults, AddEntities, AddToHistory, SetLoading, ClearAll]


def reduce(
    state: SearchSession,
    action: SessionAction,
    *,
    history_limit: int = 20,
    low_results_threshold: int = DEFAULT_LOW_RESULTS_THRESHOLD,
) -> SearchSession:
    if isinstance(action, AddResults):
        merged = compile_results([*state.compiled_results, *action.results])
        return replace(
            state,
            compiled_results=tuple(merged),
            has_low_results=is_low_signal(len(merged), low_results_threshold),
        )

    if isinstance(action, AddEntities):
        seen = {entity.key for entity in state.entities}
        added: list[Entity] = []
        for entity in action.entities:
            if entity.key in seen:
                continue
            seen.add(entity.key)
            added.append(entity)
        return replace(state, entities=state.entities + tuple(added))

    if isinstance(action, AddToHistory):
        history = (*state.search_history, action.query)
        if history_limit > 0:
            history = history[-history_limit:]
        return replace(state, search_history=history)

    if isinstance(action, SetLoading):
        return replace(state, loading=replace(state.loading, **{action.module: action.loading}))

    if isinstance(action, ClearAll):
        return SearchSession()

    raise TypeError(f"Unsupported session action: {type(action).__name__}")


class SessionStore:
    def __init__(
        self,
        *,
        history_limit: int | None = None,
        low_results_threshold: int | None = None,
    ):
        self._state = SearchSession()
        self.history_limit = settings.session_history_limit if history_limit is None else history_limit
        self.low_results_threshold = (
            settings.low_results_threshold if low_results_threshold is None else low_results_threshold
        )

    def snapshot(self) -> SearchSession:
        return self._state

    def dispatch(self, action: SessionAction) -> SearchSession:
        self._state = reduce(
            self._state,
            action,
            history_limit=self.history_limit,
            low_results_threshold=self.low_results_threshold,
        )
        return self._state

    def dispatch_all(self, actions: Iterable[SessionAction]) -> SearchSession:
        for action in actions:
            self.dispatch(action)
        return self._state

    def record_report(self, report: AggregatedReport, query: str) -> SearchSession:
        """Fold a finished aggregation into the session."""
        return self.dispatch_all(
            [
                AddResults(tuple(report.results)),
                AddEntities(tuple(report.entities)),
                AddToHistory(query),
            ]
        )
