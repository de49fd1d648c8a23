import asyncio
import dataclasses
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from metasearch.contracts.search_v1 import OutcomeStatus, RetrievalOutcome, SearchHit, Tier
from metasearch.core.config import Config
from metasearch.core.errors import AuthFailureError, QueryValidationError
from metasearch.core.logger import logger
from metasearch.orchestrators.search.adapter import BackendAdapter
from metasearch.orchestrators.search.admission import AdmissionGate
from metasearch.orchestrators.search.interface import SearchBackend
from metasearch.orchestrators.search.orchestrator import MetaSearchOrchestrator
from metasearch.orchestrators.search.pruner import ContextPruner
from metasearch.orchestrators.search.router import SemanticRouter
from metasearch.orchestrators.search.tiered import TieredConfig, TieredRetrievalEngine


class ListBackend(SearchBackend):
    def __init__(self, name, tier, hits=None, error=None):
        self.name = name
        self.tier = tier
        self.hits = hits or []
        self.error = error
        self.requests: list[tuple[str, int]] = []

    async def search(self, query, limit=10, filters=None):
        self.requests.append((query, limit))
        if self.error is not None:
            raise self.error
        return list(self.hits)[:limit]

    def get_source_name(self):
        return self.name

    def get_tier(self):
        return self.tier


TITLES = [
    "Tokio tutorial",
    "Async runtime internals",
    "Mio event loop",
    "Cargo workspace guide",
    "Pin and Unpin explained",
    "Send and Sync traits",
    "Rust futures overview",
    "Tower middleware",
]


def free_hits(n: int, body: str = "") -> list[SearchHit]:
    return [
        SearchHit(
            title=TITLES[i],
            url=f"https://docs.rs/tokio/{i}",
            snippet="Tokio is the async runtime for rust.",
            content=body or None,
            engine="google,bing",
            tier=Tier.FREE,
        )
        for i in range(n)
    ]


def build(free=None, semantic=None, token_budget=4000, free_threshold=0.85):
    adapter = BackendAdapter(AdmissionGate(max_concurrent=4), timeout_secs=5)
    for backend in (free, semantic):
        if backend is not None:
            adapter.register(backend)
    engine = TieredRetrievalEngine(
        adapter, tiered_config=TieredConfig(free_threshold=free_threshold)
    )
    return MetaSearchOrchestrator(
        router=SemanticRouter(),
        engine=engine,
        pruner=ContextPruner(token_budget=token_budget),
    )


class TestSearch:
    @pytest.mark.asyncio
    async def test_accepted_outcome_is_pruned_and_timed(self):
        duplicate = free_hits(1)[0].model_copy(update={"url": "http://www.docs.rs/tokio/0/"})
        free = ListBackend("searxng", Tier.FREE, free_hits(5) + [duplicate])
        orchestrator = build(free, free_threshold=0.0)

        outcome = await orchestrator.search("rust tokio")

        assert outcome.status == OutcomeStatus.ACCEPTED
        assert outcome.final_tier == Tier.FREE
        assert len(outcome.hits) == 5
        assert set(outcome.timing_ms) == {"routing", "retrieval", "pruning", "total"}
        assert outcome.routing is not None
        assert outcome.routing.model_hint == "claude-haiku-4-5"

    @pytest.mark.asyncio
    async def test_invalid_query_rejected_before_any_backend_call(self):
        free = ListBackend("searxng", Tier.FREE, free_hits(3))
        orchestrator = build(free)

        with pytest.raises(QueryValidationError):
            await orchestrator.search("   ")
        with pytest.raises(QueryValidationError):
            await orchestrator.search("x" * 1001)

        assert free.requests == []

    @pytest.mark.asyncio
    async def test_auth_failure_propagates(self):
        free = ListBackend("searxng", Tier.FREE, error=AuthFailureError("searxng", "HTTP 403"))
        orchestrator = build(free)

        with pytest.raises(AuthFailureError):
            await orchestrator.search("rust tokio")

    @pytest.mark.asyncio
    async def test_auth_failure_logged_once(self, monkeypatch):
        error = MagicMock()
        monkeypatch.setattr(logger, "error", error)
        free = ListBackend("searxng", Tier.FREE, error=AuthFailureError("searxng", "HTTP 401"))
        orchestrator = build(free)

        with pytest.raises(AuthFailureError):
            await orchestrator.search("rust tokio")

        assert error.call_count == 1

    @pytest.mark.asyncio
    async def test_filters_reach_backends(self):
        free = ListBackend("searxng", Tier.FREE, free_hits(8))
        orchestrator = build(free, free_threshold=0.0)

        outcome = await orchestrator.search("rust tokio", num_results=3)

        assert free.requests == [("rust tokio", 3)]
        assert len(outcome.hits) == 3

    @pytest.mark.asyncio
    async def test_token_budget_override(self):
        free = ListBackend("searxng", Tier.FREE, free_hits(5, body="detail " * 300))
        orchestrator = build(free, free_threshold=0.0)

        outcome = await orchestrator.search("rust tokio", token_budget=120)

        pruner = ContextPruner()
        assert sum(pruner.hit_tokens(h) for h in outcome.hits) <= 120
        assert len(outcome.hits) >= 1

    @pytest.mark.asyncio
    async def test_exhausted_outcome_has_no_hits(self):
        free = ListBackend("searxng", Tier.FREE, [])
        semantic = ListBackend("exa", Tier.SEMANTIC, [])
        orchestrator = build(free, semantic)

        outcome = await orchestrator.search("rust tokio")

        assert outcome.status == OutcomeStatus.EXHAUSTED
        assert outcome.hits == []
        assert outcome.tiers_attempted == [Tier.FREE, Tier.SEMANTIC]

    @pytest.mark.asyncio
    async def test_identical_queries_walk_identical_tiers(self):
        free = ListBackend("searxng", Tier.FREE, free_hits(2))
        semantic = ListBackend("exa", Tier.SEMANTIC, free_hits(2))
        orchestrator = build(free, semantic)

        first = await orchestrator.search("compare tokio and async-std")
        second = await orchestrator.search("compare tokio and async-std")

        assert first.routing == second.routing
        assert first.tiers_attempted == second.tiers_attempted

    @pytest.mark.asyncio
    async def test_cancel_event_passed_through_and_nothing_pruned(self):
        engine = MagicMock()
        engine.retrieve = AsyncMock(
            return_value=RetrievalOutcome(
                status=OutcomeStatus.CANCELLED, query="rust tokio", hits=free_hits(2)
            )
        )
        pruner = MagicMock()
        orchestrator = MetaSearchOrchestrator(
            router=SemanticRouter(), engine=engine, pruner=pruner
        )
        cancel = asyncio.Event()

        outcome = await orchestrator.search("rust tokio", cancel_event=cancel)

        assert outcome.status == OutcomeStatus.CANCELLED
        assert outcome.hits == []
        assert engine.retrieve.await_args.kwargs["cancel_event"] is cancel
        pruner.prune.assert_not_called()


class TestFromConfig:
    @pytest.fixture
    def base_config(self):
        return dataclasses.replace(
            Config.load(),
            searxng_url="http://searx.local",
            duckduckgo_enabled=True,
            exa_api_key="",
            tavily_api_key="",
        )

    @pytest.mark.asyncio
    async def test_free_only_without_keys(self, base_config):
        orchestrator = MetaSearchOrchestrator.from_config(base_config)
        adapter = orchestrator._engine._adapter
        try:
            assert adapter.available_tiers() == [Tier.FREE]
            assert adapter.source_label(Tier.FREE) == "searxng+duckduckgo"
        finally:
            await orchestrator.aclose()

    @pytest.mark.asyncio
    async def test_all_tiers_with_keys(self, base_config):
        cfg = dataclasses.replace(
            base_config, exa_api_key="exa", tavily_api_key="tvly", duckduckgo_enabled=False
        )
        async with httpx.AsyncClient() as client:
            orchestrator = MetaSearchOrchestrator.from_config(cfg, client=client)
            adapter = orchestrator._engine._adapter

            assert adapter.available_tiers() == [Tier.FREE, Tier.SEMANTIC, Tier.DEEP_EXTRACT]
            assert adapter.source_label(Tier.FREE) == "searxng"
            await orchestrator.aclose()
            assert not client.is_closed

    @pytest.mark.asyncio
    async def test_shared_gate_is_used(self, base_config):
        gate = AdmissionGate(max_concurrent=2)
        async with httpx.AsyncClient() as client:
            orchestrator = MetaSearchOrchestrator.from_config(base_config, gate=gate, client=client)
            assert orchestrator._engine._adapter.gate is gate

    def test_invalid_config_rejected(self, base_config):
        cfg = dataclasses.replace(base_config, free_tier_threshold=2.0)
        with pytest.raises(ValueError, match="free_tier_threshold"):
            MetaSearchOrchestrator.from_config(cfg)
