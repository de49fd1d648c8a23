"""Search contract v1: shared types for queries, tiers, hits, and retrieval outcomes."""

from metasearch.contracts.search_v1 import (
    Complexity,
    ConfidenceScore,
    OutcomeStatus,
    Query,
    QueryFilters,
    RetrievalOutcome,
    RoutingDecision,
    SearchHit,
    Tier,
    TierAttempt,
    parse_query,
)

__all__ = [
    "Complexity",
    "ConfidenceScore",
    "OutcomeStatus",
    "Query",
    "QueryFilters",
    "RetrievalOutcome",
    "RoutingDecision",
    "SearchHit",
    "Tier",
    "TierAttempt",
    "parse_query",
]
