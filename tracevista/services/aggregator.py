"""Provider fan-out and result merging for one subject search.

A run walks a fixed call plan (adapters by priority, then queries by priority),
skips calls the budget cannot cover, and dispatches the rest with a bounded
number in flight. Each finished call is normalized into ``SearchResult``s
immediately; merging (correlation, dedupe, ranking, low-signal flag) happens
once, after the fan-out settles, over outcomes kept in plan order.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Sequence

import httpx
from loguru import logger

from tracevista.config import settings
from tracevista.errors import ProviderCallError, ProviderErrorCause
from tracevista.models.entities import (
    AggregatedReport,
    Budget,
    BudgetSkip,
    CostTracker,
    ProviderError,
    ProviderQuery,
    RunStatus,
    SearchResult,
    SubjectParams,
)
from tracevista.models.events import RunEvent
from tracevista.research_core.compile.service import compile_results, guard
from tracevista.research_core.correlate.service import correlate
from tracevista.research_core.extract.service import ExtractContext, extract
from tracevista.research_core.score.service import (
    DEFAULT_SCORING,
    ScoringConfig,
    accuracy_metrics,
    relevance_score,
    result_confidence,
)
from tracevista.services import query_planner, recommendations, streaming
from tracevista.services.logger import log_aggregation_step, log_event, log_provider_call
from tracevista.tools import web_utils
from tracevista.tools.search_provider import ProviderAdapter, RawProviderResult


@dataclass(frozen=True)
class AggregationOptions:
    timeout_seconds: float = 5.0
    max_in_flight: int = 1
    delay_base_seconds: float = 1.0
    delay_factor: float = 1.5
    delay_cap_seconds: float = 5.0
    early_stop_enabled: bool = True
    early_stop_min_providers: int = 3
    early_stop_min_entity_types: int = 3
    low_results_threshold: int = 5
    scoring: ScoringConfig = DEFAULT_SCORING

    @classmethod
    def from_settings(cls, **overrides: Any) -> AggregationOptions:
        values: dict[str, Any] = {
            "timeout_seconds": settings.provider_timeout_seconds,
            "max_in_flight": settings.max_in_flight,
            "delay_base_seconds": settings.delay_base_seconds,
            "delay_factor": settings.delay_factor,
            "delay_cap_seconds": settings.delay_cap_seconds,
            "early_stop_enabled": settings.early_stop_enabled,
            "early_stop_min_providers": settings.early_stop_min_providers,
            "early_stop_min_entity_types": settings.early_stop_min_entity_types,
            "low_results_threshold": settings.low_results_threshold,
            "scoring": ScoringConfig(verify_threshold=settings.verify_threshold),
        }
        values.update(overrides)
        return cls(**values)

    def delay_for(self, calls_made: int) -> float:
        """Pause before the next dispatch; grows with calls already made, first call is immediate."""
        if calls_made <= 0 or self.delay_base_seconds <= 0:
            return 0.0
        return min(self.delay_cap_seconds, self.delay_base_seconds * self.delay_factor**calls_made)


@dataclass(slots=True)
class PlannedCall:
    index: int
    adapter: ProviderAdapter
    query: ProviderQuery


@dataclass(slots=True)
class CallOutcome:
    call: PlannedCall
    results: list[SearchResult] = field(default_factory=list)
    error: ProviderError | None = None
    cost: float = 0.0
    credits: int = 0


def build_call_plan(queries: Sequence[ProviderQuery], adapters: Sequence[ProviderAdapter]) -> list[PlannedCall]:
    ordered_adapters = sorted(adapters, key=lambda a: a.priority)
    ordered_queries = sorted(queries, key=lambda q: q.priority)
    plan: list[PlannedCall] = []
    for adapter in ordered_adapters:
        for query in ordered_queries:
            if adapter.accepts(query):
                plan.append(PlannedCall(index=len(plan), adapter=adapter, query=query))
    return plan


def provider_error_from_exception(call: PlannedCall, exc: BaseException) -> ProviderError:
    """Classify a failed adapter call."""
    status_code: int | None = None
    if isinstance(exc, ProviderCallError):
        cause = exc.cause
        status_code = exc.status_code
        message = exc.message
    elif isinstance(exc, (asyncio.TimeoutError, httpx.TimeoutException)):
        cause = ProviderErrorCause.TIMEOUT
        message = str(exc) or "provider call timed out"
    elif isinstance(exc, httpx.HTTPStatusError):
        status_code = exc.response.status_code
        cause = ProviderErrorCause.RATE_LIMITED if status_code == 429 else ProviderErrorCause.HTTP_STATUS
        message = f"HTTP {status_code}"
    elif isinstance(exc, httpx.HTTPError):
        cause = ProviderErrorCause.HTTP_STATUS
        message = str(exc) or type(exc).__name__
    elif isinstance(exc, (ValueError, KeyError, TypeError)):
        cause = ProviderErrorCause.MALFORMED_PAYLOAD
        message = str(exc) or type(exc).__name__
    else:
        cause = ProviderErrorCause.UNEXPECTED
        message = str(exc) or type(exc).__name__
    return ProviderError(
        provider=call.adapter.name,
        cause=cause,
        message=message,
        category=call.query.category,
        query=call.query.query,
        status_code=status_code,
    )


def _first_text(item: dict[str, Any], *keys: str) -> str:
    for key in keys:
        value = item.get(key)
        if value:
            return str(value)
    return ""


def normalize_items(
    raw: RawProviderResult | list[dict[str, Any]],
    call: PlannedCall,
    *,
    params: SubjectParams | None,
    scoring: ScoringConfig,
) -> list[SearchResult]:
    """Turn one adapter payload into scored ``SearchResult``s with their own entities."""
    items = raw.items if isinstance(raw, RawProviderResult) else raw
    if not isinstance(items, list):
        raise ProviderCallError(
            call.adapter.name,
            "result items are not a list",
            cause=ProviderErrorCause.MALFORMED_PAYLOAD,
        )

    context = ExtractContext(
        search_name=params.name if params is not None else None,
        search_location=params.location if params is not None else None,
    )
    results: list[SearchResult] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        title = web_utils.clean_content(_first_text(item, "title", "name"), max_length=500)
        snippet = web_utils.clean_content(_first_text(item, "snippet", "content", "description"))
        if not title and not snippet:
            continue
        url = _first_text(item, "url", "link")
        source = _first_text(item, "source", "displayed_link") or web_utils.extract_domain(url) or call.adapter.name

        result_id = f"{call.adapter.name}-{call.index}-{len(results)}"
        entities = extract(f"{title}\n{snippet}", context, source=source, config=scoring)
        for entity in entities:
            entity.id = f"{result_id}:{entity.id}"

        supplied = item.get("confidence")
        if isinstance(supplied, (int, float)) and not isinstance(supplied, bool):
            confidence = int(supplied)
        else:
            confidence = result_confidence(
                title=title,
                snippet=snippet,
                source=source,
                url=url,
                query=call.query.query,
                params=params,
                config=scoring,
            )

        results.append(
            SearchResult(
                id=result_id,
                title=title,
                snippet=snippet,
                url=url,
                source=source,
                confidence=confidence,
                relevance_score=relevance_score(title, snippet, call.query.query, scoring),
                query=call.query.query,
                entities=entities,
                provider=call.adapter.name,
                category=call.query.category,
            )
        )
    return results


async def _credit_ceiling(plan: list[PlannedCall], timeout_seconds: float) -> int | None:
    """Sum of provider credit balances; a lookup that fails or stalls counts as 0."""
    ceiling: int | None = None
    seen: set[int] = set()
    for call in plan:
        adapter = call.adapter
        lookup = getattr(adapter, "available_credits", None)
        if lookup is None or id(adapter) in seen:
            continue
        seen.add(id(adapter))
        try:
            available = int(await asyncio.wait_for(lookup(), timeout=timeout_seconds))
        except Exception as e:
            logger.warning(f"Credit lookup failed for {adapter.name}: {type(e).__name__}: {e}")
            available = 0
        ceiling = available if ceiling is None else ceiling + available
    return ceiling


async def run(
    queries: Sequence[ProviderQuery],
    adapters: Sequence[ProviderAdapter],
    budget: Budget | None = None,
    *,
    params: SubjectParams | None = None,
    options: AggregationOptions | None = None,
    cancel_event: asyncio.Event | None = None,
) -> AggregatedReport:
    """Fan queries out to adapters and merge whatever comes back.

    Provider failures never abort the run; they land in ``report.errors``.
    Calls the budget cannot cover are recorded in ``report.skipped`` and not
    attempted. Setting ``cancel_event`` abandons in-flight calls and returns a
    report with status ``cancelled`` holding only what had already finished.
    """
    if params is not None:
        query_planner.validate_subject(params)
    options = options or AggregationOptions.from_settings()
    budget = budget or Budget()
    run_id = uuid.uuid4().hex[:12]

    plan = build_call_plan(queries, adapters)
    tracker = CostTracker.from_budget(budget, credit_ceiling=await _credit_ceiling(plan, options.timeout_seconds))
    events: list[RunEvent] = [streaming.run_started(run_id, planned_calls=len(plan), queries=len(queries))]
    log_aggregation_step(run_id, "plan", "completed", {"queries": len(queries), "calls": len(plan)})

    outcomes: dict[int, CallOutcome] = {}
    skipped: list[BudgetSkip] = []
    tasks: list[asyncio.Task] = []
    semaphore = asyncio.Semaphore(max(options.max_in_flight, 1))
    stop = asyncio.Event()
    providers_with_entities: set[str] = set()
    entity_types_seen: set[str] = set()

    def should_stop_early() -> bool:
        return (
            options.early_stop_enabled
            and len(providers_with_entities) >= options.early_stop_min_providers
            and len(entity_types_seen) >= options.early_stop_min_entity_types
        )

    async def execute(call: PlannedCall, estimate: tuple[float, int]) -> None:
        events.append(streaming.provider_started(call.adapter.name, call.index, category=call.query.category))
        started = time.perf_counter()
        try:
            raw = await asyncio.wait_for(call.adapter.call(call.query), timeout=options.timeout_seconds)
            if isinstance(raw, Exception):
                raise raw
            results = normalize_items(raw, call, params=params, scoring=options.scoring)
        except Exception as e:
            tracker.release(*estimate)
            error = provider_error_from_exception(call, e)
            outcomes[call.index] = CallOutcome(call=call, error=error)
            events.append(
                streaming.provider_failed(call.adapter.name, call.index, cause=error.cause.value, message=error.message)
            )
            log_provider_call(
                call.adapter.name,
                call.query.category,
                error.cause.value,
                duration_ms=int((time.perf_counter() - started) * 1000),
                error=error.message,
            )
            return
        finally:
            semaphore.release()

        cost = raw.cost if isinstance(raw, RawProviderResult) and raw.cost is not None else estimate[0]
        credits = raw.credits if isinstance(raw, RawProviderResult) and raw.credits is not None else estimate[1]
        tracker.commit(estimate, (cost, credits))
        outcomes[call.index] = CallOutcome(call=call, results=results, cost=cost, credits=credits)

        for result in results:
            if result.entities:
                providers_with_entities.add(call.adapter.name)
            entity_types_seen.update(entity.type.value for entity in result.entities)

        events.append(streaming.provider_completed(call.adapter.name, call.index, results_count=len(results)))
        log_provider_call(
            call.adapter.name,
            call.query.category,
            "success",
            duration_ms=int((time.perf_counter() - started) * 1000),
            cost=cost,
            credits=credits,
        )
        if not stop.is_set() and should_stop_early():
            stop.set()

    async def dispatch() -> None:
        calls_made = 0
        for call in plan:
            if stop.is_set() or (cancel_event is not None and cancel_event.is_set()):
                break
            estimate = call.adapter.estimate(call.query)
            if not tracker.can_afford(*estimate):
                skipped.append(
                    BudgetSkip(
                        provider=call.adapter.name,
                        category=call.query.category,
                        query=call.query.query,
                        estimated_cost=estimate[0],
                        estimated_credits=estimate[1],
                    )
                )
                events.append(
                    streaming.provider_skipped(call.adapter.name, reason="skipped-for-budget", call=call.index)
                )
                log_event(
                    "provider_skipped",
                    f"{call.adapter.name} skipped for budget",
                    run_id=run_id,
                    category=call.query.category,
                    estimated_cost=estimate[0],
                    estimated_credits=estimate[1],
                )
                continue

            await semaphore.acquire()
            if stop.is_set():
                semaphore.release()
                break
            delay = options.delay_for(calls_made)
            if delay > 0:
                await asyncio.sleep(delay)
                # a call may have finished during the pause
                if stop.is_set() or (cancel_event is not None and cancel_event.is_set()):
                    semaphore.release()
                    break
            tracker.reserve(*estimate)
            calls_made += 1
            tasks.append(asyncio.create_task(execute(call, estimate)))

        if tasks:
            await asyncio.gather(*tasks)

    dispatcher = asyncio.create_task(dispatch())
    cancelled = False
    if cancel_event is None:
        await dispatcher
    else:
        waiter = asyncio.create_task(cancel_event.wait())
        await asyncio.wait({dispatcher, waiter}, return_when=asyncio.FIRST_COMPLETED)
        if cancel_event.is_set():
            cancelled = True
            if not dispatcher.done():
                dispatcher.cancel()
                for task in tasks:
                    task.cancel()
                await asyncio.gather(dispatcher, *tasks, return_exceptions=True)
        waiter.cancel()
        await asyncio.gather(waiter, return_exceptions=True)
        if not dispatcher.cancelled():
            dispatcher.result()

    if cancelled:
        status = RunStatus.CANCELLED
        events.append(streaming.run_cancelled(completed_calls=len(outcomes)))
        logger.warning(f"Aggregation {run_id} cancelled after {len(outcomes)} of {len(plan)} calls")
    elif stop.is_set():
        status = RunStatus.STOPPED_EARLY
        events.append(
            streaming.run_stopped_early(
                providers=sorted(providers_with_entities),
                entity_types=sorted(entity_types_seen),
            )
        )
        log_aggregation_step(run_id, "early_stop", "completed", {"completed_calls": len(outcomes)})
    else:
        status = RunStatus.COMPLETE

    report = merge_outcomes(
        [outcomes[index] for index in sorted(outcomes)],
        skipped=skipped,
        status=status,
        params=params,
        options=options,
    )
    report.events = events
    events.append(
        streaming.run_complete(
            status=status.value,
            results_count=len(report.results),
            entities_count=len(report.entities),
            errors_count=len(report.errors),
            total_cost=report.total_cost,
            credits_used=report.credits_used,
        )
    )
    log_aggregation_step(
        run_id,
        "merge",
        status.value,
        {
            "results": len(report.results),
            "entities": len(report.entities),
            "errors": len(report.errors),
            "skipped": len(report.skipped),
        },
    )
    return report


def merge_outcomes(
    outcomes: list[CallOutcome],
    *,
    skipped: list[BudgetSkip] | None = None,
    status: RunStatus = RunStatus.COMPLETE,
    params: SubjectParams | None = None,
    options: AggregationOptions | None = None,
) -> AggregatedReport:
    """Merge per-call outcomes, given in plan order, into the final report."""
    options = options or AggregationOptions()
    fetched = [result for outcome in outcomes for result in outcome.results]
    errors = [outcome.error for outcome in outcomes if outcome.error is not None]

    correlation = correlate(fetched, config=options.scoring)
    compiled = compile_results(fetched)
    flags = guard(compiled, options.low_results_threshold)

    summary = accuracy_metrics(compiled, correlation.entities, options.scoring)
    chain = recommendations.analyze_location_chain(compiled)
    summary["current_location"] = chain.current_location
    summary["previous_locations"] = chain.previous_locations

    return AggregatedReport(
        results=compiled,
        entities=correlation.entities,
        errors=errors,
        skipped=list(skipped or []),
        has_low_results=flags["has_low_results"],
        total_cost=round(sum(outcome.cost for outcome in outcomes), 6),
        credits_used=sum(outcome.credits for outcome in outcomes),
        correlation_score=correlation.correlation_score,
        status=status,
        summary=summary,
        recommendations=recommendations.generate_recommendations(
            compiled,
            correlation.entities,
            correlation.correlation_score,
            params,
        ),
    )


async def aggregate(
    params: SubjectParams,
    adapters: Sequence[ProviderAdapter],
    budget: Budget | None = None,
    *,
    options: AggregationOptions | None = None,
    cancel_event: asyncio.Event | None = None,
    max_queries: int | None = None,
) -> AggregatedReport:
    """Validate, plan and run a full search for one subject."""
    query_planner.validate_subject(params)
    queries = query_planner.plan(
        params,
        max_queries=settings.planner_max_queries if max_queries is None else max_queries,
    )
    targets = query_planner.plan_scrape_targets(params)
    if any(adapter.accepts(target) for adapter in adapters for target in targets):
        queries.extend(targets)
    return await run(queries, adapters, budget, params=params, options=options, cancel_event=cancel_event)
