from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any

from pydantic import BaseModel

from tracevista.errors import ProviderErrorCause

SCORE_MIN = 0
SCORE_MAX = 100


class EntityType(StrEnum):
    PHONE = "phone"
    EMAIL = "email"
    ADDRESS = "address"
    NAME = "name"
    VIN = "vin"
    SSN_MASKED = "ssn_masked"
    BUSINESS = "business"
    RELATIVE = "relative"
    SOCIAL = "social"


class RunStatus(StrEnum):
    COMPLETE = "complete"
    STOPPED_EARLY = "stopped-early"
    CANCELLED = "cancelled"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def clamp_score(value: float) -> int:
    """Round and clamp a score into the inclusive 0..100 range."""
    return int(max(SCORE_MIN, min(SCORE_MAX, round(value))))


def normalize_entity_value(entity_type: EntityType | str, value: str) -> str:
    """Canonical form used to decide whether two entity values are the same fact."""
    kind = EntityType(entity_type)
    if kind == EntityType.PHONE:
        digits = re.sub(r"\D", "", value)
        if len(digits) == 11 and digits.startswith("1"):
            digits = digits[1:]
        return digits
    if kind == EntityType.VIN:
        return re.sub(r"[^0-9a-z]", "", value.lower())
    if kind == EntityType.SSN_MASKED:
        return re.sub(r"[^0-9*]", "", value)
    return " ".join(value.lower().split()).strip(" .,;:")


@dataclass(slots=True)
class Entity:
    id: str
    type: EntityType
    value: str
    confidence: int
    source: str
    timestamp: datetime = field(default_factory=utc_now)
    verified: bool = False
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.type = EntityType(self.type)
        self.confidence = clamp_score(self.confidence)

    @property
    def key(self) -> tuple[str, str]:
        return identity_key(self)


def identity_key(entity: Entity) -> tuple[str, str]:
    return (entity.type.value, normalize_entity_value(entity.type, entity.value))


@dataclass(slots=True)
class SearchResult:
    id: str
    title: str
    snippet: str
    url: str
    source: str
    confidence: int
    relevance_score: int
    query: str
    timestamp: datetime = field(default_factory=utc_now)
    entities: list[Entity] = field(default_factory=list)
    provider: str = ""
    category: str = ""

    def __post_init__(self) -> None:
        self.confidence = clamp_score(self.confidence)
        self.relevance_score = clamp_score(self.relevance_score)

    @property
    def dedupe_key(self) -> tuple[str, str]:
        return (
            " ".join(self.title.lower().split()),
            self.url.strip().lower().rstrip("/"),
        )


@dataclass(frozen=True, slots=True)
class ProviderQuery:
    query: str
    category: str
    priority: int
    estimated_cost: float

    def __post_init__(self) -> None:
        if not 1 <= self.priority <= 5:
            raise ValueError(f"ProviderQuery priority must be within 1..5, got {self.priority}")


class SubjectParams(BaseModel):
    name: str
    city: str | None = None
    state: str | None = None
    phone: str | None = None
    email: str | None = None
    dob: str | None = None
    address: str | None = None

    @property
    def location(self) -> str | None:
        parts = [p.strip() for p in (self.city, self.state) if p and p.strip()]
        return ", ".join(parts) if parts else None

    @property
    def phone_area_code(self) -> str | None:
        if not self.phone:
            return None
        digits = re.sub(r"\D", "", self.phone)
        if len(digits) == 11 and digits.startswith("1"):
            digits = digits[1:]
        return digits[:3] if len(digits) >= 3 else None


@dataclass(frozen=True, slots=True)
class Budget:
    max_cost: float | None = None
    max_credits: int | None = None


@dataclass(slots=True)
class CostTracker:
    """Spend accounting for one aggregation run.

    Calls reserve their estimate when dispatched so concurrent dispatch cannot
    overshoot the ceiling; the reservation is replaced by the provider's
    reported spend on success and released on failure.
    """

    max_cost: float | None = None
    max_credits: int | None = None
    spent_cost: float = 0.0
    spent_credits: int = 0
    reserved_cost: float = 0.0
    reserved_credits: int = 0

    @classmethod
    def from_budget(cls, budget: Budget, *, credit_ceiling: int | None = None) -> CostTracker:
        max_credits = budget.max_credits
        if credit_ceiling is not None:
            max_credits = credit_ceiling if max_credits is None else min(max_credits, credit_ceiling)
        return cls(max_cost=budget.max_cost, max_credits=max_credits)

    def can_afford(self, cost: float, credits: int) -> bool:
        if self.max_cost is not None and cost > 0:
            if self.spent_cost + self.reserved_cost + cost > self.max_cost + 1e-9:
                return False
        if self.max_credits is not None and credits > 0:
            if self.spent_credits + self.reserved_credits + credits > self.max_credits:
                return False
        return True

    def reserve(self, cost: float, credits: int) -> None:
        self.reserved_cost += cost
        self.reserved_credits += credits

    def release(self, cost: float, credits: int) -> None:
        self.reserved_cost = max(0.0, self.reserved_cost - cost)
        self.reserved_credits = max(0, self.reserved_credits - credits)

    def commit(self, reserved: tuple[float, int], actual: tuple[float, int]) -> None:
        self.release(*reserved)
        self.spent_cost += actual[0]
        self.spent_credits += actual[1]


@dataclass(slots=True)
class ProviderError:
    provider: str
    cause: ProviderErrorCause
    message: str
    category: str = ""
    query: str = ""
    status_code: int | None = None


@dataclass(slots=True)
class BudgetSkip:
    provider: str
    category: str
    query: str
    estimated_cost: float
    estimated_credits: int
    reason: str = "skipped-for-budget"


@dataclass(slots=True)
class AggregatedReport:
    results: list[SearchResult] = field(default_factory=list)
    entities: list[Entity] = field(default_factory=list)
    errors: list[ProviderError] = field(default_factory=list)
    skipped: list[BudgetSkip] = field(default_factory=list)
    has_low_results: bool = True
    total_cost: float = 0.0
    credits_used: int = 0
    correlation_score: float = 0.0
    status: RunStatus = RunStatus.COMPLETE
    summary: dict[str, Any] = field(default_factory=dict)
    recommendations: list[str] = field(default_factory=list)
    events: list[Any] = field(default_factory=list)

    @property
    def is_partial(self) -> bool:
        return self.status == RunStatus.CANCELLED

    @property
    def all_providers_failed(self) -> bool:
        return not self.results and bool(self.errors)
