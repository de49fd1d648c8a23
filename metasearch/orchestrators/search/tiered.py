"""Tiered retrieval engine: confidence-gated escalation across search tiers.

States:
  Start -> AttemptTier(T) -> Evaluate -> Accept | Escalate(T+1) | Exhausted

The loop is strictly sequential: tier T+1 starts only after tier T has been
scored, tiers are visited at most once and only forwards, and every attempt is
recorded in the escalation trail whichever way the session ends.

Failure policy:
  - AuthFailure aborts the session immediately (raised to the caller).
  - Any other BackendError counts as a zero-hit tier and the loop continues.
  - A set cancel event stops the session at the next suspension point with a
    CANCELLED outcome; the in-flight call is cancelled and its permit released.
"""

import asyncio
import re
import time
from collections.abc import Awaitable
from dataclasses import dataclass, field
from typing import TypeVar

from metasearch.contracts.search_v1 import (
    OutcomeStatus,
    Query,
    RetrievalOutcome,
    RoutingDecision,
    SearchHit,
    Tier,
    TierAttempt,
    Transition,
)
from metasearch.core.config import Config, config
from metasearch.core.errors import BackendError
from metasearch.core.logger import logger
from metasearch.observability import traceable
from metasearch.orchestrators.search.adapter import BackendAdapter
from metasearch.orchestrators.search.confidence import ConfidenceCalculator

T = TypeVar("T")

_REFINE_WORD = re.compile(r"[^\W_]{4,}")
_MAX_REFINE_KEYWORDS = 5

DEFAULT_TIER_COSTS: dict[Tier, float] = {
    Tier.FREE: 0.0,
    Tier.SEMANTIC: 0.005,
    Tier.DEEP_EXTRACT: 0.015,
}


class _SessionCancelled(Exception):
    """Internal signal: the caller's cancel event fired."""


@dataclass
class TieredConfig:
    free_threshold: float = 0.85
    semantic_threshold: float = 0.85
    max_results_per_tier: int = 10
    deep_extract_top_k: int = 3
    refine_semantic_query: bool = True
    tier_costs: dict[Tier, float] = field(default_factory=lambda: dict(DEFAULT_TIER_COSTS))

    @classmethod
    def from_config(cls, cfg: Config | None = None) -> "TieredConfig":
        cfg = cfg or config
        return cls(
            free_threshold=cfg.free_tier_threshold,
            semantic_threshold=cfg.semantic_tier_threshold,
            max_results_per_tier=cfg.default_num_results,
            deep_extract_top_k=cfg.deep_extract_top_k,
            refine_semantic_query=cfg.refine_semantic_query,
        )


@dataclass
class _Evaluated:
    tier: Tier
    hits: list[SearchHit]
    score: float


def refine_query(original: str, hits: list[SearchHit]) -> str:
    """Append up to five informative snippet words not already in the query."""
    present = {w.lower() for w in _REFINE_WORD.findall(original)}
    keywords: list[str] = []
    for hit in hits:
        for word in _REFINE_WORD.findall(hit.snippet or ""):
            lowered = word.lower()
            if lowered in present:
                continue
            present.add(lowered)
            keywords.append(word)
            if len(keywords) >= _MAX_REFINE_KEYWORDS:
                return f"{original} {' '.join(keywords)}"
    if not keywords:
        return original
    return f"{original} {' '.join(keywords)}"


def candidate_urls(hits: list[SearchHit], top_k: int) -> list[str]:
    """Top-K distinct URLs, in rank order."""
    seen: set[str] = set()
    urls: list[str] = []
    for hit in hits:
        key = hit.normalized_url
        if not key or key in seen:
            continue
        seen.add(key)
        urls.append(hit.url)
        if len(urls) >= top_k:
            break
    return urls


class TieredRetrievalEngine:
    """Walks the tier ladder for one query and returns a RetrievalOutcome."""

    def __init__(
        self,
        adapter: BackendAdapter,
        calculator: ConfidenceCalculator | None = None,
        tiered_config: TieredConfig | None = None,
    ) -> None:
        self._adapter = adapter
        self._calculator = calculator or ConfidenceCalculator()
        self._config = tiered_config or TieredConfig()

    def ladder(self, start_tier: Tier) -> list[Tier]:
        """Registered tiers from `start_tier` onward, in enumeration order."""
        return [t for t in self._adapter.available_tiers() if t >= start_tier]

    def threshold_for(self, tier: Tier, decision: RoutingDecision | None = None) -> float | None:
        if tier == Tier.FREE:
            if decision is not None and decision.free_threshold is not None:
                return decision.free_threshold
            return self._config.free_threshold
        if tier == Tier.SEMANTIC:
            return self._config.semantic_threshold
        return None

    @traceable(name="tiered_retrieval", run_type="retriever")
    async def retrieve(
        self,
        query: Query,
        decision: RoutingDecision,
        cancel_event: asyncio.Event | None = None,
    ) -> RetrievalOutcome:
        session_start = time.monotonic()
        ladder = self.ladder(decision.start_tier)
        limit = query.filters.num_results or self._config.max_results_per_tier
        trail: list[TierAttempt] = []
        notes: list[str] = []
        cost = 0.0
        previous: _Evaluated | None = None
        last_nonempty: _Evaluated | None = None

        def finish(
            status: OutcomeStatus,
            hits: list[SearchHit],
            final_tier: Tier | None,
            confidence: float | None,
        ) -> RetrievalOutcome:
            return RetrievalOutcome(
                status=status,
                query=query.text,
                hits=hits,
                final_tier=final_tier,
                confidence=confidence,
                trail=trail,
                routing=decision,
                cost_estimate=round(cost, 6),
                notes=notes,
                timing_ms={
                    "retrieval": round((time.monotonic() - session_start) * 1000, 1)
                },
            )

        if not ladder:
            notes.append(
                f"No backend registered at or above tier {decision.start_tier.label}."
            )
            return finish(OutcomeStatus.EXHAUSTED, [], None, None)

        for position, tier in enumerate(ladder):
            is_last = position == len(ladder) - 1
            if cancel_event is not None and cancel_event.is_set():
                notes.append(f"Cancelled before tier {tier.label}.")
                return finish(OutcomeStatus.CANCELLED, [], None, None)

            attempt = TierAttempt(
                tier=tier,
                source=self._adapter.source_label(tier),
                threshold=self.threshold_for(tier, decision),
            )
            t0 = time.monotonic()
            hits: list[SearchHit] = []
            try:
                hits, called = await self._guard(
                    self._attempt(tier, query, limit, previous, notes),
                    cancel_event,
                )
                if called:
                    cost += self._config.tier_costs.get(tier, 0.0)
            except _SessionCancelled:
                notes.append(f"Cancelled during tier {tier.label}.")
                return finish(OutcomeStatus.CANCELLED, [], None, None)
            except BackendError as e:
                cost += self._config.tier_costs.get(tier, 0.0)
                attempt.error = e.kind
                attempt.error_message = str(e)
                if e.is_fatal:
                    attempt.duration_ms = round((time.monotonic() - t0) * 1000, 1)
                    trail.append(attempt)
                    logger.tier_result(attempt)
                    logger.error(
                        "Session aborted at tier %s: %s", tier.label, e, exception=e
                    )
                    raise
            attempt.duration_ms = round((time.monotonic() - t0) * 1000, 1)

            score = 0.0
            if hits:
                score = self._calculator.score(hits, query.text, limit, tier).value
            attempt.hit_count = len(hits)
            attempt.score = score
            evaluated = _Evaluated(tier=tier, hits=hits, score=score)
            if hits:
                last_nonempty = evaluated

            threshold = attempt.threshold
            meets_bar = bool(hits) and threshold is not None and score >= threshold
            if hits and (meets_bar or is_last):
                attempt.transition = Transition.ACCEPT
                trail.append(attempt)
                logger.tier_result(attempt)
                if not meets_bar and threshold is not None:
                    notes.append(
                        f"Accepted below threshold at last tier {tier.label} "
                        f"({score:.2f} < {threshold:.2f})."
                    )
                return finish(OutcomeStatus.ACCEPTED, hits, tier, score)

            if not is_last:
                attempt.transition = Transition.ESCALATE
                trail.append(attempt)
                logger.tier_result(attempt)
                previous = evaluated
                continue

            # Last tier, zero hits.
            if last_nonempty is not None:
                attempt.transition = Transition.ACCEPT
                trail.append(attempt)
                logger.tier_result(attempt)
                notes.append(
                    f"Degraded: tier {tier.label} returned nothing; keeping "
                    f"{len(last_nonempty.hits)} hits from tier {last_nonempty.tier.label}."
                )
                return finish(
                    OutcomeStatus.ACCEPTED,
                    last_nonempty.hits,
                    tier,
                    last_nonempty.score,
                )

            attempt.transition = Transition.EXHAUSTED
            trail.append(attempt)
            logger.tier_result(attempt)
            notes.append("No results from any tier.")
            return finish(OutcomeStatus.EXHAUSTED, [], tier, 0.0)

        raise AssertionError("tier loop terminated without an outcome")

    @traceable(name="tier_attempt", run_type="retriever")
    async def _attempt(
        self,
        tier: Tier,
        query: Query,
        limit: int,
        previous: _Evaluated | None,
        notes: list[str],
    ) -> tuple[list[SearchHit], bool]:
        """Run one tier. Returns (hits, whether a backend was actually called)."""
        if tier == Tier.DEEP_EXTRACT:
            source_hits = previous.hits if previous is not None else []
            urls = candidate_urls(source_hits, self._config.deep_extract_top_k)
            if not urls:
                notes.append("Deep extraction skipped: no candidate URLs from prior tier.")
                return [], False
            return await self._adapter.extract(urls), True

        text = query.text
        if (
            tier == Tier.SEMANTIC
            and self._config.refine_semantic_query
            and previous is not None
            and previous.tier == Tier.FREE
            and previous.hits
        ):
            text = refine_query(query.text, previous.hits)
        hits = await self._adapter.search(tier, text, limit=limit, filters=query.filters)
        return hits, True

    @staticmethod
    async def _guard(coro: Awaitable[T], cancel_event: asyncio.Event | None) -> T:
        """Await `coro`, abandoning it if `cancel_event` fires first."""
        if cancel_event is None:
            return await coro

        call = asyncio.ensure_future(coro)
        waiter = asyncio.ensure_future(cancel_event.wait())
        try:
            await asyncio.wait({call, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            call.cancel()
            waiter.cancel()
            raise
        waiter.cancel()

        if cancel_event.is_set():
            call.cancel()
            # Drain so the call's permit is released before the outcome is returned.
            await asyncio.gather(call, return_exceptions=True)
            raise _SessionCancelled()
        return call.result()
