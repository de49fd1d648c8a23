from __future__ import annotations

import pytest
from hypothesis import given
from hypothesis import strategies as st

from metasearch.contracts.search_v1 import Complexity, Tier
from metasearch.orchestrators.search.router import SemanticRouter

EXPECTED_START = {
    Complexity.SIMPLE: Tier.FREE,
    Complexity.MEDIUM: Tier.FREE,
    Complexity.COMPLEX: Tier.SEMANTIC,
}


@given(text=st.text(max_size=300))
@pytest.mark.property
def test_classification_is_deterministic(text: str) -> None:
    router = SemanticRouter()
    assert router.classify(text) == router.classify(text)
    assert SemanticRouter().classify(text) == router.classify(text)


@given(text=st.text(max_size=300))
@pytest.mark.property
def test_start_tier_matches_complexity(text: str) -> None:
    decision = SemanticRouter().classify(text)
    assert decision.start_tier == EXPECTED_START[decision.complexity]
    assert (decision.free_threshold is not None) == (
        decision.complexity == Complexity.MEDIUM
    )
    assert decision.reasons


@given(
    words=st.lists(
        st.text(alphabet="abcdefghijklmnopqrstuvwxyz", min_size=1, max_size=6),
        min_size=1,
        max_size=5,
    )
)
@pytest.mark.property
def test_short_plain_queries_never_start_above_free(words: list[str]) -> None:
    text = " ".join(words)
    decision = SemanticRouter().classify(text)
    assert decision.start_tier == Tier.FREE
