"""Search Contract v1.

Defines the canonical types shared by the router, the tiered retrieval engine,
the backend adapters and the context pruner:
  - Query input (Query, QueryFilters)
  - Tier ladder (Tier) and routing output (RoutingDecision)
  - Backend payload (SearchHit)
  - Session output (ConfidenceScore, TierAttempt, RetrievalOutcome)

Everything here is scoped to a single retrieval session; nothing is persisted.
"""

from __future__ import annotations

import re
from enum import IntEnum, StrEnum
from typing import Any
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from metasearch.core.errors import BackendErrorKind, QueryValidationError

MAX_QUERY_LENGTH = 1000

# ---------------------------------------------------------------------------
# Tiers
# ---------------------------------------------------------------------------


class Tier(IntEnum):
    """Retrieval ladder, strictly ordered by cost."""

    FREE = 1
    SEMANTIC = 2
    DEEP_EXTRACT = 3

    @property
    def label(self) -> str:
        return self.name.lower()

    @property
    def is_terminal(self) -> bool:
        return self is Tier.DEEP_EXTRACT

    def next(self) -> Tier | None:
        if self.is_terminal:
            return None
        return Tier(self.value + 1)


class Complexity(StrEnum):
    SIMPLE = "simple"
    MEDIUM = "medium"
    COMPLEX = "complex"


class TimeRange(StrEnum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


class OutcomeStatus(StrEnum):
    """Terminal state of a retrieval session."""

    ACCEPTED = "accepted"
    EXHAUSTED = "exhausted"
    CANCELLED = "cancelled"


class Transition(StrEnum):
    """What the engine did after evaluating a tier."""

    ACCEPT = "accept"
    ESCALATE = "escalate"
    EXHAUSTED = "exhausted"


# ---------------------------------------------------------------------------
# Query
# ---------------------------------------------------------------------------


class QueryFilters(BaseModel):
    """Optional narrowing of a query. Providers ignore filters they cannot express."""

    model_config = ConfigDict(frozen=True)

    category: str | None = Field(default=None, description="e.g. 'general', 'it', 'science'")
    language: str | None = Field(default=None, description="e.g. 'en', 'zh-TW'")
    time_range: TimeRange | None = Field(default=None)
    num_results: int | None = Field(
        default=None, ge=1, le=50, description="Requested result count; falls back to config"
    )
    complexity: Complexity | None = Field(
        default=None, description="Explicit override of the router's classification"
    )


class Query(BaseModel):
    """Immutable search input."""

    model_config = ConfigDict(frozen=True)

    text: str = Field(description="Raw query text, 1..1000 characters after stripping")
    filters: QueryFilters = Field(default_factory=QueryFilters)

    @field_validator("text")
    @classmethod
    def _text_bounded(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("query text must not be empty")
        if len(v) > MAX_QUERY_LENGTH:
            raise ValueError(
                f"query text is {len(v)} characters; limit is {MAX_QUERY_LENGTH}"
            )
        return v


def parse_query(text: str, **filters: Any) -> Query:
    """Build a Query, raising QueryValidationError on any malformed input."""
    try:
        return Query(text=text, filters=QueryFilters(**filters))
    except ValidationError as e:
        problems = "; ".join(err.get("msg", "") for err in e.errors())
        raise QueryValidationError(problems or str(e)) from e


# ---------------------------------------------------------------------------
# Hits
# ---------------------------------------------------------------------------

_WS = re.compile(r"\s+")
_NON_WORD = re.compile(r"[^\w\s]")


def normalize_url(url: str) -> str:
    """Scheme-, www-, fragment- and trailing-slash-insensitive URL key."""
    raw = (url or "").strip()
    if not raw:
        return ""
    parts = urlsplit(raw if "://" in raw else f"//{raw}")
    host = (parts.hostname or "").lower()
    if host.startswith("www."):
        host = host[4:]
    path = parts.path.rstrip("/")
    key = f"{host}{path}"
    if parts.query:
        key = f"{key}?{parts.query}"
    return key


def normalize_title(title: str) -> str:
    text = _NON_WORD.sub(" ", (title or "").lower())
    return _WS.sub(" ", text).strip()


class SearchHit(BaseModel):
    """One backend result."""

    title: str = Field(default="")
    url: str = Field(default="")
    snippet: str | None = Field(default=None)
    content: str | None = Field(default=None, description="Full extracted content, if any")
    engine: str = Field(default="", description="Underlying engine tag, e.g. 'google', 'exa'")
    tier: Tier = Field(description="Tier whose backend produced this hit")

    @property
    def normalized_url(self) -> str:
        return normalize_url(self.url)

    @property
    def normalized_title(self) -> str:
        return normalize_title(self.title)

    @property
    def engines(self) -> frozenset[str]:
        """Engine tags; aggregators report several as a comma-separated list."""
        return frozenset(e.strip().lower() for e in self.engine.split(",") if e.strip())

    @property
    def has_content(self) -> bool:
        return bool(self.content and self.content.strip())


# ---------------------------------------------------------------------------
# Routing, scoring, outcome
# ---------------------------------------------------------------------------


class RoutingDecision(BaseModel):
    """Semantic router output. Consumed once per session."""

    model_config = ConfigDict(frozen=True)

    complexity: Complexity
    start_tier: Tier
    free_threshold: float | None = Field(
        default=None, ge=0.0, le=1.0, description="Free-tier threshold override"
    )
    model_hint: str = Field(default="", description="Suggested downstream consumer model")
    reasons: tuple[str, ...] = Field(default=())


class ConfidenceScore(BaseModel):
    """Scalar quality estimate of one tier's hits."""

    model_config = ConfigDict(frozen=True)

    value: float = Field(ge=0.0, le=1.0)
    tier: Tier | None = None
    components: dict[str, float] = Field(default_factory=dict)

    @field_validator("value", mode="before")
    @classmethod
    def _clamp(cls, v: Any) -> float:
        try:
            f = float(v)
        except (TypeError, ValueError):
            return 0.0
        if f != f:  # NaN
            return 0.0
        return min(1.0, max(0.0, f))


class TierAttempt(BaseModel):
    """One entry of the escalation trail."""

    tier: Tier
    source: str = Field(default="", description="Backend(s) consulted")
    hit_count: int = Field(default=0, ge=0)
    score: float = Field(default=0.0, ge=0.0, le=1.0)
    threshold: float | None = None
    duration_ms: float = Field(default=0.0, ge=0.0)
    error: BackendErrorKind | None = None
    error_message: str | None = None
    transition: Transition | None = None


class RetrievalOutcome(BaseModel):
    """Terminal result of one retrieval session."""

    status: OutcomeStatus
    query: str
    hits: list[SearchHit] = Field(default_factory=list)
    final_tier: Tier | None = None
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)
    trail: list[TierAttempt] = Field(default_factory=list)
    routing: RoutingDecision | None = None
    cost_estimate: float = Field(default=0.0, ge=0.0)
    notes: list[str] = Field(default_factory=list)
    timing_ms: dict[str, float] = Field(default_factory=dict)

    @property
    def accepted(self) -> bool:
        return self.status == OutcomeStatus.ACCEPTED

    @property
    def tiers_attempted(self) -> list[Tier]:
        return [a.tier for a in self.trail]
