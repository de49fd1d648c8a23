from collections.abc import AsyncIterator

import pytest_asyncio

from metasearch.orchestrators.search.orchestrator import MetaSearchOrchestrator


@pytest_asyncio.fixture
async def orchestrator() -> AsyncIterator[MetaSearchOrchestrator]:
    """Real orchestrator wired from .env; e2e/integration suites only."""
    instance = MetaSearchOrchestrator.from_config()
    try:
        yield instance
    finally:
        await instance.aclose()
