"""Tiered meta-search: router, backend adapter, confidence gate, pruner."""

from metasearch.orchestrators.search.adapter import BackendAdapter
from metasearch.orchestrators.search.admission import AdmissionGate, RateLimiter
from metasearch.orchestrators.search.confidence import ConfidenceCalculator
from metasearch.orchestrators.search.interface import ExtractionBackend, SearchBackend
from metasearch.orchestrators.search.orchestrator import MetaSearchOrchestrator
from metasearch.orchestrators.search.pruner import ContextPruner
from metasearch.orchestrators.search.router import SemanticRouter
from metasearch.orchestrators.search.tiered import TieredRetrievalEngine

__all__ = [
    "AdmissionGate",
    "BackendAdapter",
    "ConfidenceCalculator",
    "ContextPruner",
    "ExtractionBackend",
    "MetaSearchOrchestrator",
    "RateLimiter",
    "SearchBackend",
    "SemanticRouter",
    "TieredRetrievalEngine",
]
