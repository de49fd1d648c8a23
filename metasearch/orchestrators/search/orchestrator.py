"""Meta-search orchestrator: route, retrieve tier by tier, prune.

Pipeline:
  1. Validate the query (rejected before any backend call)
  2. Deterministic routing (complexity -> starting tier + model hint)
  3. Tiered retrieval (Free -> Semantic -> DeepExtract, confidence-gated)
  4. Context pruning (dedupe, clean, fit token budget)
  5. Return the outcome with timing per stage
"""

import asyncio
import time
from typing import Any

import httpx

from metasearch.contracts.search_v1 import OutcomeStatus, RetrievalOutcome, parse_query
from metasearch.core.config import Config, config
from metasearch.core.logger import logger
from metasearch.observability import traceable
from metasearch.orchestrators.search.adapter import BackendAdapter
from metasearch.orchestrators.search.admission import AdmissionGate, RateLimiter
from metasearch.orchestrators.search.backends import (
    DuckDuckGoBackend,
    ExaBackend,
    SearxngBackend,
    TavilyBackend,
)
from metasearch.orchestrators.search.confidence import ConfidenceCalculator
from metasearch.orchestrators.search.pruner import ContextPruner
from metasearch.orchestrators.search.router import RouterConfig, SemanticRouter
from metasearch.orchestrators.search.tiered import TieredConfig, TieredRetrievalEngine


class MetaSearchOrchestrator:
    """Cost-aware meta-search: cheapest tier first, escalate only when unsure."""

    def __init__(
        self,
        router: SemanticRouter,
        engine: TieredRetrievalEngine,
        pruner: ContextPruner,
        client: httpx.AsyncClient | None = None,
    ):
        self._router = router
        self._engine = engine
        self._pruner = pruner
        # Shared HTTP client owned by this orchestrator (from_config only).
        self._client = client

    @classmethod
    def from_config(
        cls,
        cfg: Config | None = None,
        gate: AdmissionGate | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> "MetaSearchOrchestrator":
        """Wire every configured provider behind one admission gate.

        SearXNG (and DuckDuckGo when enabled) serve the free tier; Exa and Tavily
        are registered only when their API keys are set.
        """
        cfg = cfg or config
        problems = cfg.validate()
        if problems:
            raise ValueError("Invalid configuration: " + "; ".join(problems))

        if gate is None:
            gate = AdmissionGate(
                max_concurrent=cfg.max_concurrent_requests,
                rate_limiter=RateLimiter(
                    requests_per_second=cfg.requests_per_second,
                    burst_size=cfg.rate_limit_burst,
                ),
            )
        owned_client = None
        if client is None:
            owned_client = client = httpx.AsyncClient(
                timeout=cfg.request_timeout_secs, follow_redirects=True
            )

        timeout = cfg.request_timeout_secs
        adapter = BackendAdapter(gate, timeout_secs=timeout)
        adapter.register(SearxngBackend(base_url=cfg.searxng_url, client=client, timeout=timeout))
        if cfg.duckduckgo_enabled:
            adapter.register(DuckDuckGoBackend(client=client, timeout=timeout))
        if cfg.exa_api_key:
            adapter.register(ExaBackend(api_key=cfg.exa_api_key, client=client, timeout=timeout))
        else:
            logger.info("EXA_API_KEY not set; semantic tier disabled")
        if cfg.tavily_api_key:
            adapter.register_extractor(
                TavilyBackend(api_key=cfg.tavily_api_key, client=client, timeout=timeout)
            )
        else:
            logger.info("TAVILY_API_KEY not set; deep extraction tier disabled")

        engine = TieredRetrievalEngine(
            adapter,
            calculator=ConfidenceCalculator(),
            tiered_config=TieredConfig.from_config(cfg),
        )
        return cls(
            router=SemanticRouter(RouterConfig.from_config(cfg)),
            engine=engine,
            pruner=ContextPruner(token_budget=cfg.context_token_budget),
            client=owned_client,
        )

    @traceable(name="meta_search", run_type="chain")
    async def search(
        self,
        text: str,
        *,
        token_budget: int | None = None,
        cancel_event: asyncio.Event | None = None,
        **filters: Any,
    ) -> RetrievalOutcome:
        """Run one retrieval session.

        Raises QueryValidationError for malformed input and AuthFailureError when a
        provider rejects its credentials. Every other backend failure is recorded
        in the outcome's trail.
        """
        pipeline_start = time.monotonic()
        query = parse_query(text, **filters)

        t0 = time.monotonic()
        decision = self._router.classify(query)
        routing_ms = round((time.monotonic() - t0) * 1000, 1)
        logger.session_start(query.text, decision)

        outcome = await self._engine.retrieve(query, decision, cancel_event=cancel_event)

        t0 = time.monotonic()
        if outcome.status == OutcomeStatus.ACCEPTED:
            pruned = self._pruner.prune(outcome.hits, token_budget=token_budget)
        else:
            pruned = []
        pruning_ms = round((time.monotonic() - t0) * 1000, 1)

        timing_ms = {
            "routing": routing_ms,
            "retrieval": outcome.timing_ms.get("retrieval", 0.0),
            "pruning": pruning_ms,
            "total": round((time.monotonic() - pipeline_start) * 1000, 1),
        }
        outcome = outcome.model_copy(update={"hits": pruned, "timing_ms": timing_ms})
        logger.session_outcome(outcome)
        return outcome

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
