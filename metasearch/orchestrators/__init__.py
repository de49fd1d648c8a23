"""Orchestrators: multi-step retrieval pipelines (e.g. tiered search)."""

from metasearch.contracts.search_v1 import RetrievalOutcome
from metasearch.orchestrators.search import (
    MetaSearchOrchestrator,
    SearchBackend,
)

__all__ = [
    "MetaSearchOrchestrator",
    "RetrievalOutcome",
    "SearchBackend",
]
