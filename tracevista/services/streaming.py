from __future__ import annotations

from typing import Any

from tracevista.models.events import EventType, RunEvent


def run_started(run_id: str, *, planned_calls: int, **kwargs: Any) -> RunEvent:
    return RunEvent(
        event=EventType.RUN_STARTED,
        data={"run_id": run_id, "planned_calls": planned_calls, **kwargs},
    )


def provider_started(provider: str, call: int, **kwargs: Any) -> RunEvent:
    return RunEvent(event=EventType.PROVIDER_STARTED, data={"provider": provider, "call": call, **kwargs})


def provider_completed(provider: str, call: int, *, results_count: int, **kwargs: Any) -> RunEvent:
    return RunEvent(
        event=EventType.PROVIDER_COMPLETED,
        data={"provider": provider, "call": call, "results_count": results_count, **kwargs},
    )


def provider_failed(provider: str, call: int, *, cause: str, message: str, **kwargs: Any) -> RunEvent:
    return RunEvent(
        event=EventType.PROVIDER_FAILED,
        data={"provider": provider, "call": call, "cause": cause, "message": message, **kwargs},
    )


def provider_skipped(provider: str, *, reason: str, **kwargs: Any) -> RunEvent:
    return RunEvent(event=EventType.PROVIDER_SKIPPED, data={"provider": provider, "reason": reason, **kwargs})


def run_stopped_early(**kwargs: Any) -> RunEvent:
    return RunEvent(event=EventType.RUN_STOPPED_EARLY, data=kwargs)


def run_cancelled(**kwargs: Any) -> RunEvent:
    return RunEvent(event=EventType.RUN_CANCELLED, data=kwargs)


def run_complete(
    *,
    status: str,
    results_count: int,
    entities_count: int,
    errors_count: int,
    total_cost: float,
    credits_used: int,
) -> RunEvent:
    return RunEvent(
        event=EventType.RUN_COMPLETE,
        data={
            "status": status,
            "results_count": results_count,
            "entities_count": entities_count,
            "errors_count": errors_count,
            "total_cost": round(total_cost, 6),
            "credits_used": credits_used,
        },
    )
