import pytest

from metasearch.contracts.search_v1 import Complexity, Tier, parse_query
from metasearch.orchestrators.search.router import RouterConfig, SemanticRouter


class TestRouterClassification:
    @pytest.fixture
    def router(self):
        return SemanticRouter()

    def test_short_factual_query_is_simple(self, router):
        decision = router.classify(parse_query("rust tokio"))

        assert decision.complexity == Complexity.SIMPLE
        assert decision.start_tier == Tier.FREE
        assert decision.free_threshold is None
        assert decision.model_hint == "claude-haiku-4-5"

    def test_complex_keyword_in_short_query_is_medium(self, router):
        decision = router.classify(parse_query("compare tokio and async-std"))

        assert decision.complexity == Complexity.MEDIUM
        assert decision.start_tier == Tier.FREE
        assert decision.free_threshold == pytest.approx(0.80)
        assert decision.model_hint == "claude-sonnet-4-5"

    def test_versus_needs_word_boundaries(self, router):
        assert router.classify("rust vs go").complexity == Complexity.MEDIUM
        assert router.classify("canvas api").complexity == Complexity.SIMPLE

    def test_technical_marker_is_medium(self, router):
        decision = router.classify("arxiv attention paper")
        assert decision.complexity == Complexity.MEDIUM
        assert any("technical marker" in r for r in decision.reasons)

    def test_long_plain_query_is_medium(self, router):
        text = "how do I install the latest stable version of python on ubuntu linux"
        assert len(text) > 50
        assert router.classify(text).complexity == Complexity.MEDIUM

    def test_multiple_questions_are_complex(self, router):
        decision = router.classify("What is Raft? How does it differ from Paxos?")

        assert decision.complexity == Complexity.COMPLEX
        assert decision.start_tier == Tier.SEMANTIC
        assert decision.model_hint == "claude-opus-4-5"

    def test_many_clauses_are_complex(self, router):
        decision = router.classify("latency, throughput, durability")
        assert decision.complexity == Complexity.COMPLEX

    def test_fullwidth_punctuation_counts(self, router):
        assert router.classify("為什麼天空是藍色？為什麼海是藍色？").complexity == Complexity.COMPLEX

    def test_keyword_in_long_query_is_complex(self, router):
        text = "analyze " + "tokio runtime " * 10
        assert len(text) > 100
        assert router.classify(text).complexity == Complexity.COMPLEX

    def test_chinese_keyword_is_recognised(self, router):
        assert router.classify("如何 安裝 rust").complexity == Complexity.MEDIUM

    def test_explicit_override_wins(self, router):
        decision = router.classify(parse_query("rust", complexity="complex"))

        assert decision.complexity == Complexity.COMPLEX
        assert decision.start_tier == Tier.SEMANTIC
        assert decision.reasons == ("explicit override: complex",)

    def test_empty_input_falls_back_to_simple(self, router):
        decision = router.classify("   ")
        assert decision.complexity == Complexity.SIMPLE
        assert decision.start_tier == Tier.FREE

    def test_custom_medium_threshold(self):
        router = SemanticRouter(RouterConfig(medium_free_threshold=0.7))
        decision = router.classify("compare a and b")
        assert decision.free_threshold == pytest.approx(0.7)

    def test_select_model(self, router):
        assert router.select_model(Complexity.COMPLEX) == "claude-opus-4-5"
